"""
Maps Airtable influencer rows onto the Firestore influencer document shape.
"""
import re
from typing import Any, Dict, List, Optional

DEFAULT_COUNTRY = 'US'

# Fields refreshed on documents that already exist in Firestore.
# Workflow fields (status, category, contract, ...) are owned by the dashboard.
SYNC_UPDATE_FIELDS = (
    'followerCount',
    'followersDistribution',
    'metrics',
    'collabCount',
    'averageRate',
    'email',
    'tiktokProfileLink',
)

_COUNTRY_PATTERN = re.compile(r'^([A-Z]{2}):')


def build_handle(account: Optional[str]) -> str:
    if not account:
        return '@unknown'
    return '@' + account.replace('@', '', 1)


def extract_country(distribution: Optional[str]) -> str:
    """Leading country code of a followers distribution ("US: 83%, DE: 5%" -> "US")."""
    if not distribution:
        return DEFAULT_COUNTRY
    match = _COUNTRY_PATTERN.match(distribution)
    return match.group(1) if match else DEFAULT_COUNTRY


def map_to_influencer(airtable: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the Firestore influencer document for an Airtable row.

    Args:
        airtable: Mapped Airtable record (see airtable_service.map_airtable_record)

    Returns:
        Influencer dict keyed by ``airtableId``
    """
    handle = build_handle(airtable.get('account'))

    return {
        'airtableId': airtable['id'],
        'handle': handle,
        'name': airtable.get('account') or 'Unknown',
        'email': airtable.get('email') or '',
        'tiktokProfileLink': airtable.get('tiktokProfileLink') or f'https://tiktok.com/{handle}',
        'followerCount': airtable.get('followers') or 0,
        'country': extract_country(airtable.get('followersDistribution')),
        'followersDistribution': airtable.get('followersDistribution') or '',

        'metrics': {
            'views': airtable.get('averageViews20') or 0,
            'maxViews': airtable.get('maxViews') or 0,
            'avgViewsPerVideo': airtable.get('averageViews5') or 0,
            'medianViews': airtable.get('medianViews20') or 0,
            'likes': 0,
            'comments': 0,
            'shares': 0,
            'engagementRate': 0,
        },

        'collabCount': airtable.get('collabCount') or 0,
        'averageRate': airtable.get('averageRate') or 0,

        'status': 'Discovery',
        'category': '',
        'agreedAmount': 0,
        'currency': 'USD',
        'paymentStatus': 'Unpaid',
    }


def map_airtable_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Map Airtable rows, dropping rows without an account."""
    return [map_to_influencer(row) for row in rows if row.get('account')]


def sync_update_payload(record: Dict[str, Any]) -> Dict[str, Any]:
    return {field: record[field] for field in SYNC_UPDATE_FIELDS if field in record}
