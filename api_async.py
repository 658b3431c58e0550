"""
Async API endpoints for background sync jobs.
This module contains endpoints that queue Celery tasks and report their progress.
"""
import logging
from flask import jsonify, request

from tasks import sync_airtable_influencers, refresh_creator_metrics
from services.airtable_sync import DEFAULT_SYNC_LIMIT
from services.base_id_utils import get_base_id_context
from services.batch_processor import FIRESTORE_BATCH_LIMIT
from services.sync_jobs import SyncJobManager

logger = logging.getLogger(__name__)


def register_async_endpoints(app, get_firestore_client, limiter):
    """
    Register async endpoints to Flask app.

    Args:
        app: Flask application instance
        get_firestore_client: Function to get the Firestore client
        limiter: Flask-Limiter instance for per-route limits
    """

    @app.route('/api/sync/airtable/jobs', methods=['POST'])
    @limiter.limit("20 per hour")
    def queue_airtable_sync():
        """
        ASYNC: Queue an Airtable -> Firestore sync.

        Expected JSON payload (all optional):
        {
            "limit": 50,
            "batch_size": 500,
            "base_id": "appXYZ123ABC"
        }

        Returns:
        {
            "success": true,
            "job_id": "uuid",
            "status_url": "/api/sync/jobs/uuid",
            "message": "Sync queued successfully. Poll status_url for progress."
        }
        """
        try:
            data = request.get_json(silent=True) or {}

            limit = data.get('limit', DEFAULT_SYNC_LIMIT)
            batch_size = data.get('batch_size', FIRESTORE_BATCH_LIMIT)

            if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
                return jsonify({
                    'success': False,
                    'error': '"limit" must be a positive integer'
                }), 400

            if not isinstance(batch_size, int) or isinstance(batch_size, bool) or not 1 <= batch_size <= FIRESTORE_BATCH_LIMIT:
                return jsonify({
                    'success': False,
                    'error': f'"batch_size" must be between 1 and {FIRESTORE_BATCH_LIMIT}'
                }), 400

            base_id = get_base_id_context()
            db = get_firestore_client()

            job_id = SyncJobManager.create_job(db, 'airtable_sync', {
                'limit': limit,
                'batch_size': batch_size,
                'base_id': base_id,
            })

            sync_airtable_influencers.delay(
                job_id=job_id,
                base_id=base_id,
                limit=limit,
                batch_size=batch_size
            )

            logger.info(f"Sync job {job_id} queued for base_id={base_id}")

            return jsonify({
                'success': True,
                'job_id': job_id,
                'base_id': base_id,
                'status_url': f'/api/sync/jobs/{job_id}',
                'message': 'Sync queued successfully. Poll status_url for progress.'
            }), 202  # 202 Accepted

        except Exception as e:
            logger.error(f"Error queueing sync job: {str(e)}")
            return jsonify({
                'success': False,
                'error': str(e)
            }), 500


    @app.route('/api/sync/jobs/<job_id>', methods=['GET'])
    def get_sync_job_status(job_id: str):
        """
        Get status of a sync or metrics refresh job.

        Returns:
        {
            "success": true,
            "job_id": "uuid",
            "type": "airtable_sync",
            "status": "processing",
            "progress": "Processed 500/1200",
            "result": null,
            "error_message": null
        }
        """
        try:
            job = SyncJobManager.get_job(get_firestore_client(), job_id)

            if not job:
                return jsonify({
                    'success': False,
                    'error': f'Job {job_id} not found'
                }), 404

            return jsonify({
                'success': True,
                'job_id': job_id,
                'type': job.get('type'),
                'status': job.get('status'),
                'progress': job.get('progress'),
                'params': job.get('params'),
                'result': job.get('result'),
                'error_message': job.get('errorMessage'),
                'created_at': job.get('createdAt'),
                'started_at': job.get('startedAt'),
                'completed_at': job.get('completedAt')
            })

        except Exception as e:
            logger.error(f"Error fetching job status: {str(e)}")
            return jsonify({
                'success': False,
                'error': str(e)
            }), 500


    @app.route('/api/tiktok/refresh', methods=['POST'])
    @limiter.limit("20 per hour")
    def queue_metrics_refresh():
        """
        ASYNC: Queue a TikTok metrics refresh.

        Expected JSON payload (one of):
        {"influencer_ids": ["id1", "id2"]}
        {"project_id": "projectId"}
        """
        try:
            data = request.get_json(silent=True) or {}
            influencer_ids = data.get('influencer_ids')
            project_id = data.get('project_id')

            if influencer_ids is not None and (not isinstance(influencer_ids, list) or len(influencer_ids) == 0):
                return jsonify({
                    'success': False,
                    'error': '"influencer_ids" must be a non-empty list'
                }), 400

            if not influencer_ids and not project_id:
                return jsonify({
                    'success': False,
                    'error': 'Provide "influencer_ids" or "project_id"'
                }), 400

            db = get_firestore_client()
            job_id = SyncJobManager.create_job(db, 'metrics_refresh', {
                'influencer_ids': influencer_ids,
                'project_id': project_id,
            })

            refresh_creator_metrics.delay(
                job_id=job_id,
                influencer_ids=influencer_ids,
                project_id=project_id
            )

            logger.info(f"Metrics refresh job {job_id} queued")

            return jsonify({
                'success': True,
                'job_id': job_id,
                'status_url': f'/api/sync/jobs/{job_id}',
                'message': 'Metrics refresh queued successfully. Poll status_url for progress.'
            }), 202

        except Exception as e:
            logger.error(f"Error queueing metrics refresh: {str(e)}")
            return jsonify({
                'success': False,
                'error': str(e)
            }), 500
