"""
Celery app for the Airtable sync and TikTok metrics workers.

Start a worker for both queues with:
    celery -A tasks worker -Q sync,metrics,default
"""
import os
import ssl
from typing import Any, Dict, Optional, Tuple

from celery import Celery
from kombu import Exchange, Queue

SYNC_QUEUE = 'sync'
METRICS_QUEUE = 'metrics'

# Airtable pulls plus Firestore commits for a full base stay well under 30 minutes
SYNC_TIME_LIMIT = 1800
SYNC_SOFT_TIME_LIMIT = 1740


def resolve_redis_url(url: str) -> Tuple[str, Optional[Dict[str, Any]]]:
    """
    Return the broker URL and its SSL options.

    Hosted Redis hands out redis:// URLs but only accepts TLS, so anything
    that is not localhost is switched to rediss://.
    """
    if url.startswith('redis://') and 'localhost' not in url:
        # managed Redis presents a self-signed certificate
        return url.replace('redis://', 'rediss://', 1), {'ssl_cert_reqs': ssl.CERT_NONE}
    return url, None


def _queue(name: str) -> Queue:
    return Queue(name, Exchange(name), routing_key=name)


redis_url, redis_ssl = resolve_redis_url(os.getenv('REDIS_URL', 'redis://localhost:6379/0'))

celery = Celery('creator_sync')

celery.conf.update(
    broker_url=redis_url,
    result_backend=redis_url,
    broker_use_ssl=redis_ssl,
    redis_backend_use_ssl=redis_ssl,
    broker_connection_retry_on_startup=True,
    broker_pool_limit=10,

    task_serializer='json',
    result_serializer='json',
    accept_content=['json'],
    timezone='UTC',
    enable_utc=True,

    task_time_limit=SYNC_TIME_LIMIT,
    task_soft_time_limit=SYNC_SOFT_TIME_LIMIT,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_max_tasks_per_child=50,

    result_expires=86400,  # 24 hours
    result_persistent=True,

    task_default_queue='default',
    task_queues=tuple(_queue(name) for name in ('default', SYNC_QUEUE, METRICS_QUEUE)),
    task_routes={
        'tasks.sync_airtable_influencers': {'queue': SYNC_QUEUE},
        'tasks.refresh_creator_metrics': {'queue': METRICS_QUEUE},
    },
)
