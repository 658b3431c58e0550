"""
Creator Sync API

A Flask API backing the creator-relationship dashboard: it reads and writes the
Airtable influencer table, reconciles it into Firestore, looks up TikTok creator
metrics, and serves the campaign/creator/outreach data the dashboard shows.

- Airtable -> Firestore sync inline or as a Celery background job
- Logging and error tracking with Sentry
- Rate limiting for API protection
"""

from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import os
import logging
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.celery import CeleryIntegration
from dotenv import load_dotenv

from services.airtable_service import (
    MAX_PAGE_SIZE,
    batch_create_influencers,
    batch_update_influencers,
    create_influencer,
    delete_influencer,
    fetch_all_influencers,
    fetch_influencers_by_accounts,
    format_rate_history,
    get_airtable_table,
    update_influencer,
)
from services.airtable_sync import DEFAULT_SYNC_LIMIT, preview_airtable_sync, sync_from_airtable
from services.base_id_utils import get_base_id_from_request, validate_base_id, set_base_id_context, get_base_id_context
from services.batch_processor import FIRESTORE_BATCH_LIMIT
from services.firestore_client import get_firestore_client
from services.firestore_repo import collection_counts, create_document
from services.tiktok_service import fetch_creator_metrics

# Load environment variables from .env file
load_dotenv()

# ===================================================================
# LOGGING CONFIGURATION
# ===================================================================
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

# ===================================================================
# SENTRY ERROR TRACKING
# ===================================================================
if os.getenv('SENTRY_DSN'):
    sentry_sdk.init(
        dsn=os.getenv('SENTRY_DSN'),
        integrations=[
            FlaskIntegration(),
            CeleryIntegration()
        ],
        traces_sample_rate=0.1,  # 10% performance monitoring
        environment=os.getenv('FLASK_ENV', 'development'),
        release=os.getenv('APP_VERSION', '1.0.0')
    )
    logger.info("Sentry error tracking initialized")
else:
    logger.warning("SENTRY_DSN not set, error tracking disabled")

DEFAULT_AIRTABLE_LIMIT = 10

# ===================================================================
# FLASK APP INITIALIZATION
# ===================================================================
app = Flask(__name__)

# CORS configuration with restricted origins
allowed_origins = os.getenv('ALLOWED_ORIGINS', '*').split(',')
CORS(app, resources={
    r"/api/*": {
        "origins": allowed_origins,
        "methods": ["GET", "POST", "PATCH", "DELETE"],
        "allow_headers": ["Content-Type", "X-Base-Id"]
    }
})

# Use in-memory storage to avoid SSL issues with Redis for rate limiting
limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    default_limits=["200 per hour"],
    storage_uri='memory://'
)

logger.info("Flask app initialized with CORS and rate limiting")


# ===================================================================
# AIRTABLE BASE SELECTION
# ===================================================================

@app.before_request
def setup_base_context():
    """
    Select the Airtable base for the current request.

    Skips OPTIONS requests (CORS preflight) and the health check endpoints.
    """
    if request.method == 'OPTIONS':
        return

    if request.path in ['/', '/health', '/healthz', '/favicon.ico']:
        return

    base_id = get_base_id_from_request(required=False)

    if base_id:
        if not validate_base_id(base_id):
            # Still set it; Airtable rejects it with a clear error later
            logger.warning(f"Invalid base_id format in request: {base_id}")
        set_base_id_context(base_id)
    else:
        logger.debug(f"No base_id provided for {request.method} {request.path}")


def get_request_table():
    """Influencer table of the base selected for this request."""
    return get_airtable_table(get_base_id_context())


def airtable_not_configured():
    if not os.getenv('AIRTABLE_API_TOKEN'):
        return jsonify({
            'success': False,
            'error': 'AIRTABLE_API_TOKEN not configured on server'
        }), 500
    return None


def parse_positive_int(value, default: int, name: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f'"{name}" must be an integer')
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'"{name}" must be an integer')
    if parsed < 1:
        raise ValueError(f'"{name}" must be at least 1')
    return parsed


# ============================================================================
# HEALTH CHECK ENDPOINTS (no base_id required)
# ============================================================================

@app.route('/', methods=['GET'])
def root():
    """Root endpoint for basic health checks and uptime monitoring."""
    return jsonify({
        'status': 'ok',
        'service': 'Creator Sync API',
        'version': os.getenv('APP_VERSION', '1.0.0')
    }), 200


@app.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'service': 'Creator Sync API',
        'version': os.getenv('APP_VERSION', '1.0.0'),
        'async_enabled': True
    })


@app.route('/healthz', methods=['GET'])
@limiter.exempt  # Exempt health checks from rate limiting
def healthz():
    return 'ok', 200


# ===================================================================
# AIRTABLE INFLUENCER TABLE
# ===================================================================

@app.route('/api/airtable', methods=['GET'])
def list_airtable_influencers():
    """
    Read influencer rows from Airtable.

    Query params:
        limit: Max rows (default 10, capped at 100)
        account: Look up a single influencer account instead
    """
    not_configured = airtable_not_configured()
    if not_configured:
        return not_configured

    try:
        limit = min(parse_positive_int(request.args.get('limit'), DEFAULT_AIRTABLE_LIMIT, 'limit'), MAX_PAGE_SIZE)
        account = request.args.get('account')

        table = get_request_table()

        if account:
            records = fetch_influencers_by_accounts(table, [account])
        else:
            records = fetch_all_influencers(table, limit)

        for record in records:
            record['rateHistory'] = format_rate_history(record.get('collabCount'), record.get('averageRate'))

        return jsonify({
            'success': True,
            'total': len(records),
            'data': records
        }), 200

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error reading Airtable influencers: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@app.route('/api/airtable', methods=['POST'])
def create_airtable_influencers():
    """
    Create influencer rows in Airtable.

    Body: a single influencer dict, or {"records": [...]} for a batch.
    """
    not_configured = airtable_not_configured()
    if not_configured:
        return not_configured

    try:
        data = request.get_json(silent=True)
        if not data or not isinstance(data, dict):
            return jsonify({'success': False, 'error': 'Request body must be a JSON object'}), 400

        table = get_request_table()

        if 'records' in data:
            records = data['records']
            if not isinstance(records, list) or len(records) == 0:
                return jsonify({'success': False, 'error': '"records" must be a non-empty list'}), 400
            created = batch_create_influencers(table, records)
            return jsonify({'success': True, 'total': len(created), 'data': created}), 201

        created = create_influencer(table, data)
        return jsonify({'success': True, 'data': created}), 201

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error creating Airtable influencer: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@app.route('/api/airtable', methods=['PATCH'])
def update_airtable_influencers():
    """
    Update influencer rows in Airtable.

    Body: {"id": "rec...", ...fields} for one row, or
          {"records": [{"id": "rec...", "data": {...}}]} for a batch.
    """
    not_configured = airtable_not_configured()
    if not_configured:
        return not_configured

    try:
        data = request.get_json(silent=True)
        if not data or not isinstance(data, dict):
            return jsonify({'success': False, 'error': 'Request body must be a JSON object'}), 400

        table = get_request_table()

        if 'records' in data:
            updates = data['records']
            if not isinstance(updates, list) or not all(isinstance(u, dict) and u.get('id') for u in updates):
                return jsonify({'success': False, 'error': 'Every record needs an "id"'}), 400
            updated = batch_update_influencers(table, updates)
            return jsonify({'success': True, 'total': len(updated), 'data': updated}), 200

        record_id = data.get('id')
        if not record_id:
            return jsonify({'success': False, 'error': 'Missing "id" field in request body'}), 400

        fields = {k: v for k, v in data.items() if k not in ('id', 'base_id')}
        updated = update_influencer(table, record_id, fields)
        return jsonify({'success': True, 'data': updated}), 200

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error updating Airtable influencer: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@app.route('/api/airtable', methods=['DELETE'])
def delete_airtable_influencer():
    not_configured = airtable_not_configured()
    if not_configured:
        return not_configured

    record_id = request.args.get('id')
    if not record_id:
        return jsonify({'success': False, 'error': 'Missing "id" query parameter'}), 400

    try:
        delete_influencer(get_request_table(), record_id)
        return jsonify({'success': True, 'id': record_id}), 200

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error deleting Airtable influencer {record_id}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ===================================================================
# AIRTABLE -> FIRESTORE SYNC
# ===================================================================

@app.route('/api/sync/airtable', methods=['GET'])
def preview_sync():
    """Airtable rows mapped to influencer documents, without writing to Firestore."""
    not_configured = airtable_not_configured()
    if not_configured:
        return not_configured

    try:
        limit = parse_positive_int(request.args.get('limit'), DEFAULT_SYNC_LIMIT, 'limit')
        records = preview_airtable_sync(get_request_table(), limit)

        return jsonify({
            'success': True,
            'total': len(records),
            'data': records
        }), 200

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error previewing Airtable sync: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@app.route('/api/sync/airtable', methods=['POST'])
@limiter.limit("10 per hour")
def run_sync():
    """
    Run the Airtable -> Firestore sync inside the request.

    Expected JSON payload (all optional):
    {
        "limit": 50,
        "batch_size": 500
    }

    Large syncs should use POST /api/sync/airtable/jobs instead.
    """
    not_configured = airtable_not_configured()
    if not_configured:
        return not_configured

    try:
        data = request.get_json(silent=True) or {}
        limit = parse_positive_int(data.get('limit'), DEFAULT_SYNC_LIMIT, 'limit')
        batch_size = parse_positive_int(data.get('batch_size'), FIRESTORE_BATCH_LIMIT, 'batch_size')

        table = get_request_table()
        db = get_firestore_client()

        progress = []
        result = sync_from_airtable(
            db,
            table,
            limit=limit,
            progress_callback=progress.append,
            batch_size=batch_size
        )

        return jsonify({
            'success': True,
            **result,
            'progress': progress
        }), 200

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Airtable sync failed: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ===================================================================
# TIKTOK METRICS
# ===================================================================

@app.route('/api/tiktok', methods=['GET'])
def get_tiktok_metrics():
    """Profile and averaged recent-video metrics for ?username=."""
    username = request.args.get('username')
    if not username:
        return jsonify({'success': False, 'error': 'Missing "username" query parameter'}), 400

    if not os.getenv('RAPIDAPI_KEY'):
        return jsonify({'success': False, 'error': 'RAPIDAPI_KEY not configured on server'}), 500

    try:
        metrics = fetch_creator_metrics(username)
        if not metrics:
            return jsonify({'success': False, 'error': f'TikTok user {username} not found'}), 404

        return jsonify({'success': True, 'data': metrics}), 200

    except Exception as e:
        logger.error(f"Error fetching TikTok metrics for {username}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ===================================================================
# DATABASE DIAGNOSTICS
# ===================================================================

@app.route('/api/test-db', methods=['GET'])
def test_db_counts():
    try:
        counts = collection_counts(get_firestore_client())
        return jsonify({'success': True, 'collections': counts}), 200
    except Exception as e:
        logger.error(f"Firestore check failed: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@app.route('/api/test-db', methods=['POST'])
def test_db_write():
    """Body: {"collection": "brands", "data": {...}}"""
    data = request.get_json(silent=True) or {}
    collection = data.get('collection')
    document = data.get('data')

    if not collection or not isinstance(document, dict):
        return jsonify({'success': False, 'error': 'Body needs "collection" and a "data" object'}), 400

    try:
        document_id = create_document(get_firestore_client(), collection, document)
        return jsonify({'success': True, 'collection': collection, 'id': document_id}), 201
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Firestore write to {collection} failed: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ===================================================================
# REGISTER ASYNC AND DASHBOARD ENDPOINTS
# ===================================================================
from api_async import register_async_endpoints  # noqa: E402
from api import register_dashboard_endpoints  # noqa: E402

register_async_endpoints(app, get_firestore_client, limiter)
register_dashboard_endpoints(app, get_firestore_client)
logger.info("✅ Async and dashboard endpoints registered successfully")


# ===================================================================
# APPLICATION ENTRY POINT
# ===================================================================
if __name__ == '__main__':
    port = int(os.environ.get("PORT", 5001))
    debug = os.getenv('FLASK_ENV') != 'production'

    logger.info("=" * 60)
    logger.info("Creator Sync API Starting...")
    logger.info(f"Port: {port}")
    logger.info(f"Environment: {os.getenv('FLASK_ENV', 'development')}")
    logger.info(f"Debug mode: {debug}")
    logger.info("=" * 60)

    app.run(host='0.0.0.0', port=port, debug=debug)
