"""
Airtable -> Firestore influencer reconciliation.

Pulls influencer rows from Airtable, remaps them to the dashboard's influencer
document and upserts them into Firestore keyed by the Airtable record id.
Running it twice with unchanged Airtable data creates nothing new.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from services.airtable_service import fetch_all_influencers
from services.batch_processor import (
    FIRESTORE_BATCH_LIMIT,
    _validate_batch_size,
    batch_upsert_influencers,
    load_existing_airtable_ids,
)
from services.influencer_mapper import map_airtable_rows

logger = logging.getLogger(__name__)

DEFAULT_SYNC_LIMIT = 50


def _report(progress_callback: Optional[Callable[[str], None]], message: str) -> None:
    logger.info(message)
    if progress_callback:
        progress_callback(message)


def preview_airtable_sync(table, limit: int = DEFAULT_SYNC_LIMIT) -> List[Dict[str, Any]]:
    """Fetch and map Airtable rows without writing anything."""
    return map_airtable_rows(fetch_all_influencers(table, limit))


def sync_from_airtable(
    db,
    table,
    limit: int = DEFAULT_SYNC_LIMIT,
    progress_callback: Optional[Callable[[str], None]] = None,
    batch_size: int = FIRESTORE_BATCH_LIMIT
) -> Dict[str, int]:
    """
    Run one Airtable -> Firestore sync pass.

    Args:
        db: Firestore client
        table: pyairtable Table for the influencer table
        limit: Maximum number of Airtable rows to pull
        progress_callback: Receives human-readable progress messages
        batch_size: Firestore writes per commit (1-500)

    Returns:
        {'total', 'created', 'updated', 'skipped'}
    """
    _validate_batch_size(batch_size)
    _report(progress_callback, 'Fetching from Airtable...')

    records = preview_airtable_sync(table, limit)

    if not records:
        _report(progress_callback, 'No data to sync')
        return {'total': 0, 'created': 0, 'updated': 0, 'skipped': 0}

    _report(progress_callback, f'Processing {len(records)} records...')

    existing_ids = load_existing_airtable_ids(db)

    created, updated, skipped = batch_upsert_influencers(
        db,
        records,
        existing_ids,
        batch_size=batch_size,
        progress_callback=progress_callback
    )

    _report(progress_callback, f'Sync complete: {created} created, {updated} updated')

    return {
        'total': len(records),
        'created': created,
        'updated': updated,
        'skipped': skipped,
    }
