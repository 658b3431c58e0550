"""
Background tasks for asynchronous processing using Celery.
"""
import logging
from typing import Any, Dict, List, Optional
from celery import Task
from celery.exceptions import SoftTimeLimitExceeded

from celery_config import celery
from services.airtable_service import get_airtable_table
from services.airtable_sync import DEFAULT_SYNC_LIMIT, sync_from_airtable
from services.batch_processor import FIRESTORE_BATCH_LIMIT
from services.firestore_client import get_firestore_client
from services.firestore_repo import batch_update_influencers, get_influencer, get_influencers_by_project
from services.sync_jobs import SyncJobManager
from services.tiktok_service import apply_metrics_to_influencer, batch_fetch_metrics

logger = logging.getLogger(__name__)


class BaseTask(Task):
    """Base task with error handling and retry logic."""

    autoretry_for = (Exception,)
    retry_kwargs = {'max_retries': 3}
    retry_backoff = True
    retry_backoff_max = 600  # 10 minutes
    retry_jitter = True


# The Airtable sync is not retried: a failed run is recorded on its job
# document and can be re-queued, since the upsert is idempotent.
@celery.task(bind=True, name='tasks.sync_airtable_influencers')
def sync_airtable_influencers(
    self,
    job_id: str,
    base_id: Optional[str] = None,
    limit: int = DEFAULT_SYNC_LIMIT,
    batch_size: int = FIRESTORE_BATCH_LIMIT
) -> Dict[str, Any]:
    """
    Run an Airtable -> Firestore sync and record its progress on the job document.

    Args:
        job_id: Sync job id (see SyncJobManager)
        base_id: Airtable base to read; defaults to AIRTABLE_BASE_ID
        limit: Maximum number of Airtable rows to pull
        batch_size: Firestore writes per commit

    Returns:
        Sync result with the job id
    """
    db = get_firestore_client()

    try:
        logger.info(f"[Job {job_id}] Airtable sync started (limit={limit}, batch_size={batch_size})")
        SyncJobManager.mark_processing(db, job_id)

        table = get_airtable_table(base_id)

        def report_progress(message: str) -> None:
            SyncJobManager.update_progress(db, job_id, message)

        result = sync_from_airtable(
            db,
            table,
            limit=limit,
            progress_callback=report_progress,
            batch_size=batch_size
        )

        SyncJobManager.mark_completed(db, job_id, result)
        return {'job_id': job_id, **result}

    except SoftTimeLimitExceeded:
        logger.error(f"[Job {job_id}] Task exceeded time limit")
        SyncJobManager.mark_failed(db, job_id, 'Task exceeded time limit')
        raise
    except Exception as e:
        logger.error(f"[Job {job_id}] Airtable sync error - {str(e)}")
        SyncJobManager.mark_failed(db, job_id, str(e))
        raise


def _load_refresh_targets(db, influencer_ids: Optional[List[str]], project_id: Optional[str]) -> List[Dict[str, Any]]:
    if influencer_ids:
        influencers = []
        for influencer_id in influencer_ids:
            influencer = get_influencer(db, influencer_id)
            if influencer:
                influencers.append(influencer)
            else:
                logger.warning(f"Influencer {influencer_id} not found, skipping metrics refresh")
        return influencers

    if project_id:
        return get_influencers_by_project(db, project_id)

    raise ValueError("influencer_ids or project_id is required")


@celery.task(base=BaseTask, bind=True, name='tasks.refresh_creator_metrics',
             dont_autoretry_for=(SoftTimeLimitExceeded,))
def refresh_creator_metrics(
    self,
    job_id: str,
    influencer_ids: Optional[List[str]] = None,
    project_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Refresh TikTok metrics and follower counts for a set of creators.

    Args:
        job_id: Sync job id (see SyncJobManager)
        influencer_ids: Explicit Firestore influencer ids
        project_id: Refresh every creator in this project instead

    Returns:
        {'job_id', 'total', 'updated', 'not_found'}
    """
    db = get_firestore_client()

    try:
        SyncJobManager.mark_processing(db, job_id)

        influencers = [i for i in _load_refresh_targets(db, influencer_ids, project_id) if i.get('handle')]
        handles = list(dict.fromkeys(i['handle'] for i in influencers))
        logger.info(f"[Job {job_id}] Refreshing metrics for {len(handles)} creators")

        def report_progress(current: int, total: int) -> None:
            SyncJobManager.update_progress(db, job_id, f"Fetching metrics {current}/{total}")

        metrics_by_handle = batch_fetch_metrics(handles, on_progress=report_progress)

        updates = []
        not_found = []
        for influencer in influencers:
            metrics = metrics_by_handle.get(influencer['handle'])
            if not metrics:
                not_found.append(influencer['handle'])
                continue
            updates.append({
                'id': influencer['id'],
                'data': {
                    'metrics': apply_metrics_to_influencer(influencer.get('metrics'), metrics),
                    'followerCount': metrics['user']['followerCount'],
                }
            })

        updated = batch_update_influencers(db, updates) if updates else 0

        result = {
            'total': len(influencers),
            'updated': updated,
            'not_found': not_found,
        }
        SyncJobManager.mark_completed(db, job_id, result)
        return {'job_id': job_id, **result}

    except SoftTimeLimitExceeded:
        logger.error(f"[Job {job_id}] Task exceeded time limit")
        SyncJobManager.mark_failed(db, job_id, 'Task exceeded time limit')
        raise
    except Exception as e:
        if self.request.retries < self.max_retries:
            logger.warning(f"[Job {job_id}] Metrics refresh error, retrying - {str(e)}")
            SyncJobManager.update_progress(db, job_id, f"Retrying after error: {str(e)}")
            raise
        logger.error(f"[Job {job_id}] Metrics refresh error - {str(e)}")
        SyncJobManager.mark_failed(db, job_id, str(e))
        raise
