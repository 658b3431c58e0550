"""
Background Sync Job Tracking

Job documents live in the Firestore ``syncJobs`` collection so the dashboard
can poll progress of queued Airtable syncs and metrics refreshes.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from services.firestore_client import SERVER_TIMESTAMP

logger = logging.getLogger(__name__)

SYNC_JOBS_COLLECTION = 'syncJobs'

# Type aliases
JobType = Literal['airtable_sync', 'metrics_refresh']
JobStatus = Literal['queued', 'processing', 'completed', 'failed']


def _serialize_timestamp(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class SyncJobManager:
    """Manager for sync job documents"""

    @staticmethod
    def create_job(db, job_type: JobType, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Create a queued job document.

        Args:
            db: Firestore client
            job_type: 'airtable_sync' or 'metrics_refresh'
            params: Job parameters (limit, base_id, ...)

        Returns:
            The new job id
        """
        job_id = str(uuid.uuid4())
        db.collection(SYNC_JOBS_COLLECTION).document(job_id).set({
            'jobId': job_id,
            'type': job_type,
            'status': 'queued',
            'params': params or {},
            'progress': '',
            'result': None,
            'errorMessage': None,
            'createdAt': SERVER_TIMESTAMP,
            'updatedAt': SERVER_TIMESTAMP,
        })
        logger.info(f"[Job {job_id}] Created {job_type} job")
        return job_id

    @staticmethod
    def get_job(db, job_id: str) -> Optional[Dict[str, Any]]:
        """Get a job by id, with timestamps converted to ISO strings"""
        snapshot = db.collection(SYNC_JOBS_COLLECTION).document(job_id).get()
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        return {key: _serialize_timestamp(value) for key, value in data.items()}

    @staticmethod
    def _update(db, job_id: str, fields: Dict[str, Any]) -> None:
        fields['updatedAt'] = SERVER_TIMESTAMP
        db.collection(SYNC_JOBS_COLLECTION).document(job_id).update(fields)

    @staticmethod
    def mark_processing(db, job_id: str) -> None:
        SyncJobManager._update(db, job_id, {
            'status': 'processing',
            'startedAt': datetime.now(timezone.utc).isoformat(),
            'errorMessage': None,
            'completedAt': None,
        })

    @staticmethod
    def update_progress(db, job_id: str, message: str) -> None:
        SyncJobManager._update(db, job_id, {'progress': message})

    @staticmethod
    def mark_completed(db, job_id: str, result: Dict[str, Any]) -> None:
        SyncJobManager._update(db, job_id, {
            'status': 'completed',
            'result': result,
            'completedAt': datetime.now(timezone.utc).isoformat(),
        })
        logger.info(f"[Job {job_id}] Completed: {result}")

    @staticmethod
    def mark_failed(db, job_id: str, error: str) -> None:
        SyncJobManager._update(db, job_id, {
            'status': 'failed',
            'errorMessage': error,
            'completedAt': datetime.now(timezone.utc).isoformat(),
        })
        logger.error(f"[Job {job_id}] Failed: {error}")
