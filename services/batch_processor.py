"""
Batch processing utilities for Firestore write operations.
"""
import logging
from typing import Callable, Dict, List, Optional, Tuple
from google.cloud.firestore_v1.base_query import FieldFilter

from services.firestore_client import SERVER_TIMESTAMP
from services.influencer_mapper import sync_update_payload

logger = logging.getLogger(__name__)

# Firestore rejects write batches with more than 500 operations
FIRESTORE_BATCH_LIMIT = 500

INFLUENCERS_COLLECTION = 'influencers'


def _validate_batch_size(batch_size: int) -> None:
    if batch_size < 1 or batch_size > FIRESTORE_BATCH_LIMIT:
        raise ValueError(f"batch_size must be between 1 and {FIRESTORE_BATCH_LIMIT}, got {batch_size}")


def load_existing_airtable_ids(db, collection: str = INFLUENCERS_COLLECTION) -> Dict[str, str]:
    """
    Build the airtableId -> Firestore document id map for already-synced records.

    Args:
        db: Firestore client
        collection: Collection holding synced influencers

    Returns:
        Dict mapping Airtable record IDs to Firestore document IDs
    """
    existing = {}
    query = db.collection(collection).where(filter=FieldFilter('airtableId', '!=', None))

    for snapshot in query.stream():
        data = snapshot.to_dict() or {}
        airtable_id = data.get('airtableId')
        if airtable_id:
            existing[airtable_id] = snapshot.id

    logger.info(f"Found {len(existing)} existing Airtable-linked documents in {collection}")
    return existing


def batch_upsert_influencers(
    db,
    records: List[Dict],
    existing_ids: Dict[str, str],
    batch_size: int = FIRESTORE_BATCH_LIMIT,
    progress_callback: Optional[Callable[[str], None]] = None,
    collection: str = INFLUENCERS_COLLECTION
) -> Tuple[int, int, int]:
    """
    Upsert synced influencers into Firestore using write batches.

    Records whose airtableId is already linked to a document only get their
    Airtable-sourced fields refreshed, so status, category and contract data
    entered in the dashboard survive a re-sync. Unknown records are created
    with a fresh document id.

    Args:
        db: Firestore client
        records: Influencer dicts produced by influencer_mapper.map_to_influencer
        existing_ids: airtableId -> document id map (see load_existing_airtable_ids)
        batch_size: Writes per commit (1-500)
        progress_callback: Called with "Processed <done>/<total>" after each commit
        collection: Target collection

    Returns:
        Tuple of (created, updated, skipped)
    """
    _validate_batch_size(batch_size)

    created = 0
    updated = 0
    skipped = 0

    total_records = len(records)
    total_batches = (total_records + batch_size - 1) // batch_size
    collection_ref = db.collection(collection)
    seen_ids = set()

    logger.info(f"Starting upsert of {total_records} influencers in batches of {batch_size}")

    for i in range(0, total_records, batch_size):
        chunk = records[i:i + batch_size]
        batch_num = (i // batch_size) + 1
        batch = db.batch()

        for record in chunk:
            airtable_id = record.get('airtableId')
            if not airtable_id or not record.get('handle'):
                skipped += 1
                continue

            if airtable_id in seen_ids:
                logger.warning(f"Duplicate airtableId {airtable_id} in sync input, skipping")
                skipped += 1
                continue
            seen_ids.add(airtable_id)

            existing_id = existing_ids.get(airtable_id)

            if existing_id:
                payload = sync_update_payload(record)
                payload['updatedAt'] = SERVER_TIMESTAMP
                payload['syncedFromAirtable'] = SERVER_TIMESTAMP
                batch.update(collection_ref.document(existing_id), payload)
                updated += 1
            else:
                payload = dict(record)
                payload['createdAt'] = SERVER_TIMESTAMP
                payload['updatedAt'] = SERVER_TIMESTAMP
                payload['syncedFromAirtable'] = SERVER_TIMESTAMP
                batch.set(collection_ref.document(), payload)
                created += 1

        batch.commit()

        processed = min(i + batch_size, total_records)
        logger.info(f"✓ Committed batch {batch_num}/{total_batches} ({processed}/{total_records})")
        if progress_callback:
            progress_callback(f"Processed {processed}/{total_records}")

    logger.info("=" * 70)
    logger.info("UPSERT COMPLETE:")
    logger.info(f"  - Created: {created}")
    logger.info(f"  - Updated: {updated}")
    logger.info(f"  - Skipped: {skipped}")
    logger.info("=" * 70)

    return created, updated, skipped


def batch_update_documents(
    db,
    collection: str,
    updates: List[Dict],
    batch_size: int = FIRESTORE_BATCH_LIMIT
) -> int:
    """
    Apply partial updates to documents in batches.

    Args:
        db: Firestore client
        collection: Collection name
        updates: List of {'id': document id, 'data': fields to update}
        batch_size: Writes per commit (1-500)

    Returns:
        Number of updated documents
    """
    _validate_batch_size(batch_size)

    updated_count = 0
    total_updates = len(updates)

    if not updates:
        return 0

    collection_ref = db.collection(collection)

    for i in range(0, total_updates, batch_size):
        chunk = updates[i:i + batch_size]
        batch = db.batch()

        for update in chunk:
            payload = dict(update.get('data', {}))
            payload['updatedAt'] = SERVER_TIMESTAMP
            batch.update(collection_ref.document(update['id']), payload)

        batch.commit()
        updated_count += len(chunk)
        logger.info(f"Update batch {(i // batch_size) + 1}: {updated_count}/{total_updates} updated in {collection}")

    return updated_count


def batch_delete_documents(
    db,
    collection: str,
    document_ids: List[str],
    batch_size: int = FIRESTORE_BATCH_LIMIT
) -> int:
    """Delete documents from a collection in batches. Returns the number deleted."""
    _validate_batch_size(batch_size)

    deleted_count = 0
    collection_ref = db.collection(collection)

    for i in range(0, len(document_ids), batch_size):
        chunk = document_ids[i:i + batch_size]
        batch = db.batch()

        for document_id in chunk:
            batch.delete(collection_ref.document(document_id))

        batch.commit()
        deleted_count += len(chunk)
        logger.info(f"Delete batch {(i // batch_size) + 1}: {deleted_count}/{len(document_ids)} deleted from {collection}")

    return deleted_count
