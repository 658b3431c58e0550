"""
Airtable Influencer Table Service
=================================
Reads and writes influencer rows in the agency's Airtable base.

Usage:
    from services.airtable_service import get_airtable_table, fetch_all_influencers

    table = get_airtable_table()
    influencers = fetch_all_influencers(table, limit=50)
"""

import os
import math
import time
import logging
from typing import Any, Dict, List, Optional
from pyairtable import Api, Table

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = 'Influencers'
ACCOUNT_FIELD = 'Influencer Account'

# Airtable allows 10 records per write request
AIRTABLE_BATCH_SIZE = 10
# Keeps filterByFormula well under Airtable's URL length limit
ACCOUNT_CHUNK_SIZE = 40
MAX_PAGE_SIZE = 100

# app field -> Airtable column
FIELD_MAPPING = {
    'account': ACCOUNT_FIELD,
    'tiktokProfileLink': 'TIKTOK PROFILE LINK',
    'email': 'Email',
    'followers': 'Followers',
    'maxViews': 'MAX Views',
    'averageViews5': '5_average',
    'medianViews20': '20_median',
    'averageViews20': '20_average',
    'followersDistribution': 'Followers 분포',
    'collabCount': 'Collab Count',
    'averageRate': 'Average Rate',
}


def get_airtable_table(base_id: Optional[str] = None, table_name: Optional[str] = None) -> Table:
    """
    Build a pyairtable Table handle for the influencer table.

    Args:
        base_id: Airtable base ID (defaults to AIRTABLE_BASE_ID)
        table_name: Table name (defaults to AIRTABLE_TABLE_NAME or 'Influencers')

    Returns:
        pyairtable Table instance

    Raises:
        ValueError: If the token or base ID is not configured
    """
    token = os.getenv('AIRTABLE_API_TOKEN')
    if not token:
        raise ValueError("AIRTABLE_API_TOKEN not configured")

    base_id = base_id or os.getenv('AIRTABLE_BASE_ID')
    if not base_id:
        raise ValueError("AIRTABLE_BASE_ID not configured. Set it in the environment or send an X-Base-Id header.")

    table_name = table_name or os.getenv('AIRTABLE_TABLE_NAME', DEFAULT_TABLE_NAME)

    return Api(token).table(base_id, table_name)


def map_airtable_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Convert an Airtable record ({'id', 'fields'}) into the app's influencer shape."""
    fields = record.get('fields', {})

    mapped = {'id': record['id']}
    for app_field, airtable_field in FIELD_MAPPING.items():
        mapped[app_field] = fields.get(airtable_field)

    mapped['account'] = mapped['account'] or ''
    return mapped


def map_to_airtable_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert app fields into Airtable columns.

    Only keys present in ``data`` are emitted, so partial dicts produce
    partial (PATCH-style) updates.
    """
    return {
        airtable_field: data[app_field]
        for app_field, airtable_field in FIELD_MAPPING.items()
        if app_field in data
    }


def escape_airtable_string(value: str) -> str:
    return value.replace("'", "\\'")


def build_filter_formula(accounts: List[str]) -> str:
    """Build OR({Influencer Account}='a',{Influencer Account}='b',...)"""
    conditions = [f"{{{ACCOUNT_FIELD}}}='{escape_airtable_string(a)}'" for a in accounts]
    return f"OR({','.join(conditions)})"


def fetch_all_influencers(table: Table, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Fetch influencer records, following Airtable's offset pagination.

    Args:
        table: pyairtable Table for the influencer table
        limit: Maximum number of records to return (None = all)

    Returns:
        List of mapped influencer dicts
    """
    options: Dict[str, Any] = {'page_size': MAX_PAGE_SIZE}
    if limit is not None:
        if limit <= 0:
            return []
        options['max_records'] = limit
        options['page_size'] = min(limit, MAX_PAGE_SIZE)

    records = table.all(**options)
    logger.info(f"Fetched {len(records)} records from Airtable")

    influencers = [map_airtable_record(r) for r in records]
    if limit is not None:
        influencers = influencers[:limit]
    return influencers


def fetch_influencers_by_accounts(table: Table, accounts: List[str],
                                  rate_limit_delay: float = 0.2) -> List[Dict[str, Any]]:
    """
    Fetch influencer records matching the given accounts, 40 accounts per request.

    A chunk that fails is logged and skipped; the remaining chunks still run.
    """
    if not accounts:
        return []

    results = []
    total_chunks = (len(accounts) + ACCOUNT_CHUNK_SIZE - 1) // ACCOUNT_CHUNK_SIZE

    for i in range(0, len(accounts), ACCOUNT_CHUNK_SIZE):
        chunk = accounts[i:i + ACCOUNT_CHUNK_SIZE]
        chunk_num = (i // ACCOUNT_CHUNK_SIZE) + 1

        try:
            records = table.all(formula=build_filter_formula(chunk))
            results.extend(map_airtable_record(r) for r in records)
            logger.debug(f"Account chunk {chunk_num}/{total_chunks}: {len(records)} matches")
        except Exception as e:
            logger.error(f"Airtable chunk request {chunk_num}/{total_chunks} failed: {str(e)}")
            continue

        if i + ACCOUNT_CHUNK_SIZE < len(accounts):
            time.sleep(rate_limit_delay)

    return results


def fetch_influencer_by_account(table: Table, account: str) -> Optional[Dict[str, Any]]:
    results = fetch_influencers_by_accounts(table, [account])
    return results[0] if results else None


def create_influencer(table: Table, data: Dict[str, Any]) -> Dict[str, Any]:
    record = table.create(map_to_airtable_fields(data))
    logger.info(f"Created Airtable record {record['id']}")
    return map_airtable_record(record)


def update_influencer(table: Table, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    record = table.update(record_id, map_to_airtable_fields(data))
    logger.info(f"Updated Airtable record {record_id}")
    return map_airtable_record(record)


def delete_influencer(table: Table, record_id: str) -> bool:
    table.delete(record_id)
    logger.info(f"Deleted Airtable record {record_id}")
    return True


def batch_create_influencers(table: Table, data_list: List[Dict[str, Any]],
                             rate_limit_delay: float = 0.2) -> List[Dict[str, Any]]:
    """
    Create influencer records in batches of 10 (Airtable limit).

    Args:
        table: pyairtable Table
        data_list: List of app-shaped influencer dicts (no id)
        rate_limit_delay: Pause between batches in seconds

    Returns:
        List of created, mapped records
    """
    results = []
    total_batches = (len(data_list) + AIRTABLE_BATCH_SIZE - 1) // AIRTABLE_BATCH_SIZE

    for i in range(0, len(data_list), AIRTABLE_BATCH_SIZE):
        batch = data_list[i:i + AIRTABLE_BATCH_SIZE]
        batch_num = (i // AIRTABLE_BATCH_SIZE) + 1

        created = table.batch_create([map_to_airtable_fields(d) for d in batch])
        results.extend(map_airtable_record(r) for r in created)
        logger.info(f"✓ Created batch {batch_num}/{total_batches} in Airtable ({len(batch)} records)")

        if i + AIRTABLE_BATCH_SIZE < len(data_list):
            time.sleep(rate_limit_delay)

    return results


def batch_update_influencers(table: Table, updates: List[Dict[str, Any]],
                             rate_limit_delay: float = 0.2) -> List[Dict[str, Any]]:
    """
    Update influencer records in batches of 10.

    Args:
        table: pyairtable Table
        updates: List of {'id': record_id, 'data': partial app dict}

    Returns:
        List of updated, mapped records
    """
    results = []
    total_batches = (len(updates) + AIRTABLE_BATCH_SIZE - 1) // AIRTABLE_BATCH_SIZE

    for i in range(0, len(updates), AIRTABLE_BATCH_SIZE):
        batch = updates[i:i + AIRTABLE_BATCH_SIZE]
        batch_num = (i // AIRTABLE_BATCH_SIZE) + 1

        updated = table.batch_update([
            {'id': u['id'], 'fields': map_to_airtable_fields(u.get('data', {}))}
            for u in batch
        ])
        results.extend(map_airtable_record(r) for r in updated)
        logger.info(f"✓ Updated batch {batch_num}/{total_batches} in Airtable ({len(batch)} records)")

        if i + AIRTABLE_BATCH_SIZE < len(updates):
            time.sleep(rate_limit_delay)

    return results


def format_rate_history(collab_count: Optional[float], average_rate: Optional[float]) -> str:
    """Format collab history as '<count> * <rate>$', e.g. '3 * 150$'."""
    if collab_count is None or average_rate is None:
        return ''
    rounded_rate = math.floor(average_rate + 0.5)
    return f"{collab_count} * {rounded_rate}$"
