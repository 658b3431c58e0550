"""Tests for sync job tracking"""
from services.sync_jobs import SYNC_JOBS_COLLECTION, SyncJobManager


def test_job_lifecycle(fake_db):
    job_id = SyncJobManager.create_job(fake_db, 'airtable_sync', {'limit': 50})

    job = SyncJobManager.get_job(fake_db, job_id)
    assert job['jobId'] == job_id
    assert job['status'] == 'queued'
    assert job['params'] == {'limit': 50}
    assert isinstance(job['createdAt'], str)

    SyncJobManager.mark_processing(fake_db, job_id)
    SyncJobManager.update_progress(fake_db, job_id, 'Processed 10/20')
    job = SyncJobManager.get_job(fake_db, job_id)
    assert job['status'] == 'processing'
    assert job['progress'] == 'Processed 10/20'
    assert job['startedAt']

    result = {'total': 20, 'created': 5, 'updated': 15, 'skipped': 0}
    SyncJobManager.mark_completed(fake_db, job_id, result)
    job = SyncJobManager.get_job(fake_db, job_id)
    assert job['status'] == 'completed'
    assert job['result'] == result
    assert job['completedAt']


def test_mark_failed_records_error(fake_db):
    job_id = SyncJobManager.create_job(fake_db, 'metrics_refresh')

    SyncJobManager.mark_failed(fake_db, job_id, 'boom')

    stored = fake_db.docs(SYNC_JOBS_COLLECTION)[job_id]
    assert stored['status'] == 'failed'
    assert stored['errorMessage'] == 'boom'
    assert stored['params'] == {}


def test_get_missing_job(fake_db):
    assert SyncJobManager.get_job(fake_db, 'nope') is None


def test_mark_processing_clears_previous_failure(fake_db):
    job_id = SyncJobManager.create_job(fake_db, 'metrics_refresh')
    SyncJobManager.mark_failed(fake_db, job_id, 'transient')

    SyncJobManager.mark_processing(fake_db, job_id)

    job = SyncJobManager.get_job(fake_db, job_id)
    assert job['status'] == 'processing'
    assert job['errorMessage'] is None
    assert job['completedAt'] is None
