"""
Dashboard API endpoints for projects, creators and outreach.

These endpoints read and write Firestore directly and are registered on the
main Flask app by register_dashboard_endpoints().
"""
import logging
from flask import jsonify, request

from services.firestore_repo import (
    STATUS_FLOW,
    add_influencers_to_project,
    advance_influencer_status,
    create_influencer,
    create_project,
    delete_influencer,
    delete_project,
    get_influencer,
    get_influencers_by_project,
    get_project,
    list_projects,
    process_payment,
    update_contract,
    update_influencer,
    update_logistics,
    update_project,
)
from services.outreach import DEFAULT_SENDER, OUTREACH_MACROS, get_outreach_queue, log_outreach

logger = logging.getLogger(__name__)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _not_found(kind: str, item_id: str):
    return jsonify({
        'success': False,
        'error': f'{kind} {item_id} not found'
    }), 404


def _server_error(action: str, e: Exception):
    logger.error(f"Error {action}: {str(e)}")
    return jsonify({
        'success': False,
        'error': str(e)
    }), 500


def register_dashboard_endpoints(app, get_firestore_client):
    """
    Register dashboard endpoints to Flask app.

    Args:
        app: Flask application instance
        get_firestore_client: Function to get the Firestore client
    """

    # ===================================================================
    # PROJECTS
    # ===================================================================

    @app.route('/api/projects', methods=['GET'])
    def list_projects_api():
        try:
            projects = list_projects(get_firestore_client())
            return jsonify({'success': True, 'total': len(projects), 'data': projects})
        except Exception as e:
            return _server_error('listing projects', e)


    @app.route('/api/projects', methods=['POST'])
    def create_project_api():
        """
        Create a campaign.

        Expected JSON payload:
        {
            "name": "Summer Launch",
            "brandId": "brand123",
            "budget": 5000,
            "spent": 0
        }
        """
        data = _json_body()
        if not data or not data.get('name'):
            return jsonify({'success': False, 'error': 'Missing "name" field in request body'}), 400

        try:
            project_id = create_project(get_firestore_client(), data)
            return jsonify({'success': True, 'id': project_id}), 201
        except Exception as e:
            return _server_error('creating project', e)


    @app.route('/api/projects/<project_id>', methods=['GET'])
    def get_project_api(project_id: str):
        try:
            project = get_project(get_firestore_client(), project_id)
            if not project:
                return _not_found('Project', project_id)
            return jsonify({'success': True, 'data': project})
        except Exception as e:
            return _server_error(f'fetching project {project_id}', e)


    @app.route('/api/projects/<project_id>', methods=['PATCH'])
    def update_project_api(project_id: str):
        data = _json_body()
        if not data:
            return jsonify({'success': False, 'error': 'Request body must be a non-empty JSON object'}), 400

        try:
            db = get_firestore_client()
            if not get_project(db, project_id):
                return _not_found('Project', project_id)
            update_project(db, project_id, data)
            return jsonify({'success': True, 'id': project_id})
        except Exception as e:
            return _server_error(f'updating project {project_id}', e)


    @app.route('/api/projects/<project_id>', methods=['DELETE'])
    def delete_project_api(project_id: str):
        try:
            db = get_firestore_client()
            if not get_project(db, project_id):
                return _not_found('Project', project_id)
            delete_project(db, project_id)
            return jsonify({'success': True, 'id': project_id})
        except Exception as e:
            return _server_error(f'deleting project {project_id}', e)


    @app.route('/api/projects/<project_id>/influencers', methods=['GET'])
    def list_project_influencers_api(project_id: str):
        try:
            influencers = get_influencers_by_project(get_firestore_client(), project_id)
            return jsonify({'success': True, 'total': len(influencers), 'data': influencers})
        except Exception as e:
            return _server_error(f'listing influencers of project {project_id}', e)


    @app.route('/api/projects/<project_id>/influencers', methods=['POST'])
    def add_project_influencers_api(project_id: str):
        """
        Move creators from the pool into a project (status reset to Discovery).

        Expected JSON payload:
        {"influencer_ids": ["id1", "id2"]}
        """
        data = _json_body() or {}
        influencer_ids = data.get('influencer_ids')
        if not isinstance(influencer_ids, list) or len(influencer_ids) == 0:
            return jsonify({'success': False, 'error': '"influencer_ids" must be a non-empty list'}), 400

        try:
            db = get_firestore_client()
            if not get_project(db, project_id):
                return _not_found('Project', project_id)
            added = add_influencers_to_project(db, influencer_ids, project_id)
            return jsonify({'success': True, 'project_id': project_id, 'added': added})
        except Exception as e:
            return _server_error(f'adding influencers to project {project_id}', e)

    # ===================================================================
    # INFLUENCERS
    # ===================================================================

    @app.route('/api/influencers', methods=['POST'])
    def create_influencer_api():
        data = _json_body()
        if not data or not data.get('handle'):
            return jsonify({'success': False, 'error': 'Missing "handle" field in request body'}), 400

        status = data.get('status', 'Discovery')
        if status not in STATUS_FLOW:
            return jsonify({'success': False, 'error': f'Unknown influencer status: {status}'}), 400

        try:
            influencer_id = create_influencer(get_firestore_client(), {**data, 'status': status})
            return jsonify({'success': True, 'id': influencer_id}), 201
        except Exception as e:
            return _server_error('creating influencer', e)


    @app.route('/api/influencers/<influencer_id>', methods=['GET'])
    def get_influencer_api(influencer_id: str):
        try:
            influencer = get_influencer(get_firestore_client(), influencer_id)
            if not influencer:
                return _not_found('Influencer', influencer_id)
            return jsonify({'success': True, 'data': influencer})
        except Exception as e:
            return _server_error(f'fetching influencer {influencer_id}', e)


    @app.route('/api/influencers/<influencer_id>', methods=['PATCH'])
    def update_influencer_api(influencer_id: str):
        data = _json_body()
        if not data:
            return jsonify({'success': False, 'error': 'Request body must be a non-empty JSON object'}), 400

        if 'status' in data and data['status'] not in STATUS_FLOW:
            return jsonify({'success': False, 'error': f"Unknown influencer status: {data['status']}"}), 400

        try:
            db = get_firestore_client()
            if not get_influencer(db, influencer_id):
                return _not_found('Influencer', influencer_id)
            update_influencer(db, influencer_id, data)
            return jsonify({'success': True, 'id': influencer_id})
        except Exception as e:
            return _server_error(f'updating influencer {influencer_id}', e)


    @app.route('/api/influencers/<influencer_id>', methods=['DELETE'])
    def delete_influencer_api(influencer_id: str):
        try:
            db = get_firestore_client()
            if not get_influencer(db, influencer_id):
                return _not_found('Influencer', influencer_id)
            delete_influencer(db, influencer_id)
            return jsonify({'success': True, 'id': influencer_id})
        except Exception as e:
            return _server_error(f'deleting influencer {influencer_id}', e)

    # ===================================================================
    # WORKFLOW
    # ===================================================================

    @app.route('/api/influencers/<influencer_id>/advance', methods=['POST'])
    def advance_influencer_api(influencer_id: str):
        """Move a creator one step along the workflow (Paid stays Paid)."""
        try:
            db = get_firestore_client()
            influencer = get_influencer(db, influencer_id)
            if not influencer:
                return _not_found('Influencer', influencer_id)

            previous = influencer.get('status', 'Discovery')
            new_status = advance_influencer_status(db, influencer_id, previous)

            return jsonify({
                'success': True,
                'id': influencer_id,
                'previous_status': previous,
                'status': new_status
            })
        except ValueError as e:
            return jsonify({'success': False, 'error': str(e)}), 400
        except Exception as e:
            return _server_error(f'advancing influencer {influencer_id}', e)


    @app.route('/api/influencers/<influencer_id>/payment', methods=['POST'])
    def process_payment_api(influencer_id: str):
        """
        Mark a creator Paid and add the amount to the project's spent total.

        Expected JSON payload:
        {
            "amount": 250,
            "project_id": "projectId" (optional, defaults to the creator's project)
        }
        """
        data = _json_body() or {}
        amount = data.get('amount')
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount < 0:
            return jsonify({'success': False, 'error': '"amount" must be a non-negative number'}), 400

        try:
            db = get_firestore_client()
            influencer = get_influencer(db, influencer_id)
            if not influencer:
                return _not_found('Influencer', influencer_id)

            project_id = data.get('project_id') or influencer.get('projectId')
            if not project_id:
                return jsonify({'success': False, 'error': 'Influencer has no project; provide "project_id"'}), 400

            process_payment(db, influencer_id, project_id, amount)

            return jsonify({
                'success': True,
                'id': influencer_id,
                'project_id': project_id,
                'amount': amount,
                'status': 'Paid'
            })
        except Exception as e:
            return _server_error(f'processing payment for influencer {influencer_id}', e)


    @app.route('/api/influencers/<influencer_id>/contract', methods=['PATCH'])
    def update_contract_api(influencer_id: str):
        data = _json_body()
        if not data:
            return jsonify({'success': False, 'error': 'Request body must be a non-empty JSON object'}), 400

        try:
            if not update_contract(get_firestore_client(), influencer_id, data):
                return _not_found('Influencer', influencer_id)
            return jsonify({'success': True, 'id': influencer_id})
        except Exception as e:
            return _server_error(f'updating contract of influencer {influencer_id}', e)


    @app.route('/api/influencers/<influencer_id>/logistics', methods=['PATCH'])
    def update_logistics_api(influencer_id: str):
        data = _json_body()
        if not data:
            return jsonify({'success': False, 'error': 'Request body must be a non-empty JSON object'}), 400

        try:
            if not update_logistics(get_firestore_client(), influencer_id, data):
                return _not_found('Influencer', influencer_id)
            return jsonify({'success': True, 'id': influencer_id})
        except Exception as e:
            return _server_error(f'updating logistics of influencer {influencer_id}', e)

    # ===================================================================
    # OUTREACH
    # ===================================================================

    @app.route('/api/outreach/queue', methods=['GET'])
    def outreach_queue_api():
        """Creators in Discovery or Contacted, optionally for ?project_id= only."""
        try:
            queue = get_outreach_queue(get_firestore_client(), request.args.get('project_id'))
            return jsonify({'success': True, 'total': len(queue), 'data': queue})
        except Exception as e:
            return _server_error('fetching outreach queue', e)


    @app.route('/api/outreach/macros', methods=['GET'])
    def outreach_macros_api():
        return jsonify({'success': True, 'data': OUTREACH_MACROS})


    @app.route('/api/outreach/log', methods=['POST'])
    def log_outreach_api():
        """
        Log an outreach email for one or more creators.

        Expected JSON payload:
        {
            "influencer_id": "id1"  or  "influencer_ids": ["id1", "id2"],
            "macro_id": "m1",
            "notes": "Sent from personal inbox" (optional),
            "custom_body": "Hi ..." (optional),
            "sender": "jane.doe" (optional)
        }

        Returns:
        {
            "success": true,
            "logged": [{"influencerId", "message", "status", "mailto"}, ...],
            "not_found": ["id3"]
        }
        """
        data = _json_body() or {}
        macro_id = data.get('macro_id')
        if not macro_id:
            return jsonify({'success': False, 'error': 'Missing "macro_id" field in request body'}), 400

        influencer_ids = data.get('influencer_ids')
        if influencer_ids is None and data.get('influencer_id'):
            influencer_ids = [data['influencer_id']]

        if not isinstance(influencer_ids, list) or len(influencer_ids) == 0:
            return jsonify({'success': False, 'error': 'Provide "influencer_id" or a non-empty "influencer_ids" list'}), 400

        try:
            db = get_firestore_client()
            logged = []
            not_found = []

            for influencer_id in influencer_ids:
                result = log_outreach(
                    db,
                    influencer_id,
                    macro_id,
                    notes=data.get('notes', ''),
                    custom_body=data.get('custom_body'),
                    sender=data.get('sender') or DEFAULT_SENDER
                )
                if result:
                    logged.append(result)
                else:
                    not_found.append(influencer_id)

            if not logged:
                return jsonify({
                    'success': False,
                    'error': 'No matching influencers found',
                    'not_found': not_found
                }), 404

            logger.info(f"Outreach '{macro_id}' logged for {len(logged)} creators ({len(not_found)} not found)")

            return jsonify({
                'success': True,
                'logged': logged,
                'not_found': not_found
            })

        except ValueError as e:
            return jsonify({'success': False, 'error': str(e)}), 400
        except Exception as e:
            return _server_error('logging outreach', e)
