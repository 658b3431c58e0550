"""Tests for the TikTok metrics client (outbound HTTP mocked)"""
from unittest import mock

import pytest
import requests

from services import tiktok_service
from services.tiktok_service import (
    apply_metrics_to_influencer,
    batch_fetch_metrics,
    fetch_creator_metrics,
    fetch_tiktok_user,
    fetch_tiktok_videos,
)

USER_RESPONSE = {
    'code': 0,
    'msg': 'success',
    'data': {
        'user': {
            'id': '123',
            'uniqueId': 'alice',
            'nickname': 'Alice',
            'avatarThumb': 'https://img/alice.jpg',
            'signature': 'hi',
            'verified': True,
        },
        'stats': {
            'followerCount': 12000,
            'followingCount': 10,
            'heartCount': 50000,
            'videoCount': 40,
        },
    },
}

POSTS_RESPONSE = {
    'code': 0,
    'data': {
        'videos': [
            {'video_id': 'v1', 'title': 'one', 'play_count': 1000, 'digg_count': 100, 'comment_count': 10, 'share_count': 5},
            {'video_id': 'v2', 'title': 'two', 'play_count': 2001, 'digg_count': 201, 'comment_count': 21, 'share_count': 6},
        ],
    },
}


def _response(payload):
    response = mock.Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def rapidapi_key(monkeypatch):
    monkeypatch.setenv('RAPIDAPI_KEY', 'test-key')
    monkeypatch.delenv('RAPIDAPI_HOST', raising=False)


def _route(url, **kwargs):
    if url.endswith('/user/info'):
        return _response(USER_RESPONSE)
    if url.endswith('/user/posts'):
        return _response(POSTS_RESPONSE)
    raise AssertionError(url)


def test_fetch_user_maps_fields(rapidapi_key):
    with mock.patch.object(tiktok_service.requests, 'get', side_effect=_route) as get:
        user = fetch_tiktok_user('@alice')

    assert user['uniqueId'] == 'alice'
    assert user['followerCount'] == 12000
    assert user['diggCount'] == 0
    _, kwargs = get.call_args
    assert kwargs['params'] == {'unique_id': 'alice'}
    assert kwargs['headers']['X-RapidAPI-Key'] == 'test-key'
    assert kwargs['headers']['X-RapidAPI-Host'] == 'tiktok-scraper7.p.rapidapi.com'


def test_fetch_user_strips_only_first_at(rapidapi_key):
    with mock.patch.object(tiktok_service.requests, 'get', side_effect=_route) as get:
        fetch_tiktok_user('@@alice')

    _, kwargs = get.call_args
    assert kwargs['params'] == {'unique_id': '@alice'}


def test_fetch_user_without_key_makes_no_request(monkeypatch):
    monkeypatch.delenv('RAPIDAPI_KEY', raising=False)

    with mock.patch.object(tiktok_service.requests, 'get') as get:
        assert fetch_tiktok_user('alice') is None
    get.assert_not_called()


def test_fetch_user_error_code(rapidapi_key):
    with mock.patch.object(tiktok_service.requests, 'get', return_value=_response({'code': -1, 'msg': 'not found'})):
        assert fetch_tiktok_user('ghost') is None


def test_fetch_user_http_error(rapidapi_key):
    with mock.patch.object(tiktok_service.requests, 'get', side_effect=requests.ConnectionError('down')):
        assert fetch_tiktok_user('alice') is None


def test_fetch_videos(rapidapi_key):
    with mock.patch.object(tiktok_service.requests, 'get', side_effect=_route) as get:
        videos = fetch_tiktok_videos('alice', count=2)

    assert [v['id'] for v in videos] == ['v1', 'v2']
    assert videos[0]['playCount'] == 1000
    assert videos[0]['collectCount'] == 0
    assert get.call_args[1]['params'] == {'unique_id': 'alice', 'count': 2}


def test_fetch_videos_failure_returns_empty(rapidapi_key):
    with mock.patch.object(tiktok_service.requests, 'get', return_value=_response({'code': 0, 'data': {}})):
        assert fetch_tiktok_videos('alice') == []


def test_fetch_creator_metrics_averages(rapidapi_key):
    with mock.patch.object(tiktok_service.requests, 'get', side_effect=_route):
        metrics = fetch_creator_metrics('alice')

    # averages: views 1500.5, likes 150.5, comments 15.5, shares 5.5
    assert metrics['avgViews'] == 1501
    assert metrics['avgLikes'] == 151
    assert metrics['avgComments'] == 16
    assert metrics['avgShares'] == 6
    assert metrics['engagementRate'] == 11.43
    assert len(metrics['recentVideos']) == 2


def test_fetch_creator_metrics_without_videos(rapidapi_key):
    def route(url, **kwargs):
        if url.endswith('/user/info'):
            return _response(USER_RESPONSE)
        return _response({'code': 0, 'data': {'videos': []}})

    with mock.patch.object(tiktok_service.requests, 'get', side_effect=route):
        metrics = fetch_creator_metrics('alice')

    assert metrics['avgViews'] == 0
    assert metrics['engagementRate'] == 0


def test_fetch_creator_metrics_unknown_user(rapidapi_key):
    with mock.patch.object(tiktok_service.requests, 'get', return_value=_response({'code': -1})):
        assert fetch_creator_metrics('ghost') is None


def test_batch_fetch_metrics_reports_progress():
    progress = []

    with mock.patch.object(tiktok_service, 'fetch_creator_metrics', side_effect=lambda u: {'user': u}) as fetch:
        results = batch_fetch_metrics(['a', 'b', 'c'], on_progress=lambda c, t: progress.append((c, t)), delay=0)

    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert results == {'a': {'user': 'a'}, 'b': {'user': 'b'}, 'c': {'user': 'c'}}
    assert fetch.call_count == 3


def test_apply_metrics_keeps_airtable_keys():
    existing = {'views': 10, 'maxViews': 900, 'medianViews': 50, 'avgViewsPerVideo': 60}
    result = {'avgViews': 100, 'avgLikes': 10, 'avgComments': 2, 'avgShares': 1, 'engagementRate': 13.0}

    merged = apply_metrics_to_influencer(existing, result)

    assert merged == {
        'views': 100,
        'likes': 10,
        'comments': 2,
        'shares': 1,
        'engagementRate': 13.0,
        'maxViews': 900,
        'medianViews': 50,
        'avgViewsPerVideo': 60,
    }
    assert existing['views'] == 10
