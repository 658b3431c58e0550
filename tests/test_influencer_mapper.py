"""Tests for Airtable row -> influencer document mapping"""
import pytest

from services.influencer_mapper import (
    SYNC_UPDATE_FIELDS,
    build_handle,
    extract_country,
    map_airtable_rows,
    map_to_influencer,
    sync_update_payload,
)


@pytest.mark.parametrize('account, expected', [
    ('alice', '@alice'),
    ('@bob', '@bob'),
    ('@@x', '@@x'),
    ('a@b', '@ab'),
    ('', '@unknown'),
    (None, '@unknown'),
])
def test_build_handle(account, expected):
    assert build_handle(account) == expected


@pytest.mark.parametrize('distribution, expected', [
    ('US: 83%, DE: 5%', 'US'),
    ('KR: 60%', 'KR'),
    ('83% US', 'US'),
    ('', 'US'),
    (None, 'US'),
])
def test_extract_country(distribution, expected):
    assert extract_country(distribution) == expected


def test_map_to_influencer_full_row():
    doc = map_to_influencer({
        'id': 'recA',
        'account': 'alice',
        'email': 'alice@example.com',
        'tiktokProfileLink': None,
        'followers': 12000,
        'maxViews': 90000,
        'averageViews5': 4000,
        'medianViews20': 3500,
        'averageViews20': 3800,
        'followersDistribution': 'DE: 40%',
        'collabCount': 3,
        'averageRate': 150,
    })

    assert doc['airtableId'] == 'recA'
    assert doc['handle'] == '@alice'
    assert doc['name'] == 'alice'
    assert doc['tiktokProfileLink'] == 'https://tiktok.com/@alice'
    assert doc['followerCount'] == 12000
    assert doc['country'] == 'DE'
    assert doc['metrics'] == {
        'views': 3800,
        'maxViews': 90000,
        'avgViewsPerVideo': 4000,
        'medianViews': 3500,
        'likes': 0,
        'comments': 0,
        'shares': 0,
        'engagementRate': 0,
    }
    assert doc['status'] == 'Discovery'
    assert doc['currency'] == 'USD'
    assert doc['paymentStatus'] == 'Unpaid'
    assert doc['agreedAmount'] == 0


def test_map_to_influencer_missing_values_default():
    doc = map_to_influencer({'id': 'recB', 'account': 'bob'})

    assert doc['email'] == ''
    assert doc['followerCount'] == 0
    assert doc['followersDistribution'] == ''
    assert doc['collabCount'] == 0
    assert doc['averageRate'] == 0
    assert doc['metrics']['views'] == 0


def test_map_airtable_rows_drops_rows_without_account():
    rows = [
        {'id': 'rec1', 'account': 'alice'},
        {'id': 'rec2', 'account': ''},
        {'id': 'rec3', 'account': 'carol'},
    ]

    assert [d['airtableId'] for d in map_airtable_rows(rows)] == ['rec1', 'rec3']


def test_sync_update_payload_keeps_only_airtable_fields():
    doc = map_to_influencer({'id': 'recA', 'account': 'alice', 'followers': 5})
    doc['status'] = 'Approved'

    payload = sync_update_payload(doc)

    assert set(payload) == set(SYNC_UPDATE_FIELDS)
    assert 'status' not in payload
    assert payload['followerCount'] == 5
