"""
TikTok creator metrics via the RapidAPI TikTok scraper.

API: https://rapidapi.com/tikwm-tikwm-default/api/tiktok-scraper7

Requires RAPIDAPI_KEY in the environment. Lookups that fail are logged and
return None / [] so one bad handle does not abort a batch refresh.
"""
import os
import math
import time
import logging
from typing import Any, Callable, Dict, List, Optional
import pandas as pd
import requests

logger = logging.getLogger(__name__)

DEFAULT_RAPIDAPI_HOST = 'tiktok-scraper7.p.rapidapi.com'
REQUEST_TIMEOUT = 15
METRICS_VIDEO_COUNT = 30


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clean_username(username: str) -> str:
    return username.replace('@', '', 1)


def _rapidapi_get(path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """GET a RapidAPI endpoint; None when the key is missing or the call fails."""
    api_key = os.getenv('RAPIDAPI_KEY')
    if not api_key:
        logger.error("[TokAPI] RAPIDAPI_KEY not configured")
        return None

    host = os.getenv('RAPIDAPI_HOST', DEFAULT_RAPIDAPI_HOST)

    try:
        response = requests.get(
            f"https://{host}{path}",
            params=params,
            headers={
                'X-RapidAPI-Key': api_key,
                'X-RapidAPI-Host': host,
            },
            timeout=REQUEST_TIMEOUT
        )
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"[TokAPI] {path} request failed: {str(e)}")
        return None


def fetch_tiktok_user(username: str) -> Optional[Dict[str, Any]]:
    """
    Fetch TikTok profile info and stats for a handle.

    Args:
        username: TikTok handle, with or without a leading '@'

    Returns:
        Profile dict or None if the user could not be fetched
    """
    data = _rapidapi_get('/user/info', {'unique_id': _clean_username(username)})
    if not data:
        return None

    payload = data.get('data') or {}
    if data.get('code') != 0 or not payload.get('user'):
        logger.error(f"[TokAPI] Invalid user response for {username}: {data.get('msg', data.get('code'))}")
        return None

    user = payload['user']
    stats = payload.get('stats') or {}

    return {
        'id': user.get('id'),
        'uniqueId': user.get('uniqueId'),
        'nickname': user.get('nickname'),
        'avatarThumb': user.get('avatarThumb'),
        'signature': user.get('signature') or '',
        'verified': user.get('verified') or False,
        'followerCount': stats.get('followerCount') or 0,
        'followingCount': stats.get('followingCount') or 0,
        'heartCount': stats.get('heartCount') or 0,
        'videoCount': stats.get('videoCount') or 0,
        'diggCount': stats.get('diggCount') or 0,
    }


def fetch_tiktok_videos(username: str, count: int = 10) -> List[Dict[str, Any]]:
    """Fetch a creator's most recent videos ([] on failure)."""
    data = _rapidapi_get('/user/posts', {'unique_id': _clean_username(username), 'count': count})
    if not data:
        return []

    payload = data.get('data') or {}
    if data.get('code') != 0 or not payload.get('videos'):
        logger.error(f"[TokAPI] Invalid posts response for {username}")
        return []

    return [
        {
            'id': v.get('video_id') or v.get('id'),
            'desc': v.get('title') or '',
            'createTime': v.get('create_time') or 0,
            'duration': v.get('duration') or 0,
            'playCount': v.get('play_count') or 0,
            'diggCount': v.get('digg_count') or 0,
            'commentCount': v.get('comment_count') or 0,
            'shareCount': v.get('share_count') or 0,
            'collectCount': v.get('collect_count') or 0,
            'downloadUrl': v.get('play') or '',
            'coverUrl': v.get('cover') or '',
        }
        for v in payload['videos']
    ]


def fetch_creator_metrics(username: str) -> Optional[Dict[str, Any]]:
    """
    Fetch profile plus averaged recent-video metrics for a creator.

    Engagement rate = (avg likes + avg comments + avg shares) / avg views * 100,
    computed on unrounded averages and rounded to 2 decimals.
    """
    user = fetch_tiktok_user(username)
    if not user:
        return None

    recent_videos = fetch_tiktok_videos(username, METRICS_VIDEO_COUNT)

    if recent_videos:
        videos_df = pd.DataFrame(recent_videos)
        averages = videos_df[['playCount', 'diggCount', 'commentCount', 'shareCount']].astype(float).mean()
        avg_views = float(averages['playCount'])
        avg_likes = float(averages['diggCount'])
        avg_comments = float(averages['commentCount'])
        avg_shares = float(averages['shareCount'])
    else:
        avg_views = avg_likes = avg_comments = avg_shares = 0.0

    total_engagement = avg_likes + avg_comments + avg_shares
    engagement_rate = (total_engagement / avg_views) * 100 if avg_views > 0 else 0.0

    return {
        'user': user,
        'recentVideos': recent_videos,
        'avgViews': _round_half_up(avg_views),
        'avgLikes': _round_half_up(avg_likes),
        'avgComments': _round_half_up(avg_comments),
        'avgShares': _round_half_up(avg_shares),
        'engagementRate': _round_half_up(engagement_rate * 100) / 100,
    }


def batch_fetch_metrics(
    usernames: List[str],
    on_progress: Optional[Callable[[int, int], None]] = None,
    delay: float = 0.5
) -> Dict[str, Optional[Dict[str, Any]]]:
    """
    Fetch metrics for several creators sequentially.

    Args:
        usernames: TikTok handles
        on_progress: Called with (current, total) before each lookup
        delay: Pause between lookups in seconds

    Returns:
        Dict mapping each handle to its metrics (None when not found)
    """
    results = {}
    total = len(usernames)

    for i, username in enumerate(usernames):
        if on_progress:
            on_progress(i + 1, total)

        results[username] = fetch_creator_metrics(username)

        if i < total - 1:
            time.sleep(delay)

    return results


def apply_metrics_to_influencer(existing_metrics: Optional[Dict[str, Any]],
                                result: Dict[str, Any]) -> Dict[str, Any]:
    """Merge fetched metrics into an influencer's metrics map, keeping Airtable-sourced keys."""
    metrics = dict(existing_metrics or {})
    metrics.update({
        'views': result['avgViews'],
        'likes': result['avgLikes'],
        'comments': result['avgComments'],
        'shares': result['avgShares'],
        'engagementRate': result['engagementRate'],
    })
    return metrics
