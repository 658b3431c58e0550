"""
Firestore data access for the dashboard's persisted entities.

Collections: projects, influencers, brands, users, categories.
All functions take the Firestore client as their first argument.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from google.cloud.firestore_v1.base_query import FieldFilter

from services.batch_processor import FIRESTORE_BATCH_LIMIT, batch_update_documents
from services.firestore_client import SERVER_TIMESTAMP

logger = logging.getLogger(__name__)

PROJECTS = 'projects'
INFLUENCERS = 'influencers'
BRANDS = 'brands'
USERS = 'users'
CATEGORIES = 'categories'

KNOWN_COLLECTIONS = (PROJECTS, INFLUENCERS, BRANDS, USERS, CATEGORIES)

InfluencerStatus = Literal[
    'Discovery', 'Contacted', 'Negotiating', 'Approved',
    'Shipped', 'Content Live', 'Payment Pending', 'Paid'
]

# Discovery -> Contacted -> Negotiating -> Approved -> Shipped -> Content Live -> Payment Pending -> Paid
STATUS_FLOW: List[str] = [
    'Discovery',
    'Contacted',
    'Negotiating',
    'Approved',
    'Shipped',
    'Content Live',
    'Payment Pending',
    'Paid',
]


def snapshot_to_dict(snapshot) -> Dict[str, Any]:
    """Document snapshot -> JSON-friendly dict with its id."""
    data = snapshot.to_dict() or {}
    result = {'id': snapshot.id}
    for key, value in data.items():
        result[key] = value.isoformat() if isinstance(value, datetime) else value
    return result


def _get(db, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
    snapshot = db.collection(collection).document(document_id).get()
    if snapshot.exists:
        return snapshot_to_dict(snapshot)
    return None


def _create(db, collection: str, data: Dict[str, Any], with_updated_at: bool = True) -> str:
    payload = dict(data)
    payload.pop('id', None)
    payload['createdAt'] = SERVER_TIMESTAMP
    if with_updated_at:
        payload['updatedAt'] = SERVER_TIMESTAMP
    doc_ref = db.collection(collection).document()
    doc_ref.set(payload)
    logger.info(f"Created {collection}/{doc_ref.id}")
    return doc_ref.id


def _update(db, collection: str, document_id: str, data: Dict[str, Any], with_updated_at: bool = True) -> None:
    payload = dict(data)
    payload.pop('id', None)
    if with_updated_at:
        payload['updatedAt'] = SERVER_TIMESTAMP
    db.collection(collection).document(document_id).update(payload)


def _delete(db, collection: str, document_id: str) -> None:
    db.collection(collection).document(document_id).delete()
    logger.info(f"Deleted {collection}/{document_id}")


def _list(db, collection: str) -> List[Dict[str, Any]]:
    return [snapshot_to_dict(s) for s in db.collection(collection).stream()]


# ============================================
# PROJECTS
# ============================================

def create_project(db, data: Dict[str, Any]) -> str:
    return _create(db, PROJECTS, data)


def update_project(db, project_id: str, data: Dict[str, Any]) -> None:
    _update(db, PROJECTS, project_id, data)


def delete_project(db, project_id: str) -> None:
    _delete(db, PROJECTS, project_id)


def get_project(db, project_id: str) -> Optional[Dict[str, Any]]:
    return _get(db, PROJECTS, project_id)


def list_projects(db) -> List[Dict[str, Any]]:
    return _list(db, PROJECTS)


# ============================================
# INFLUENCERS
# ============================================

def create_influencer(db, data: Dict[str, Any]) -> str:
    return _create(db, INFLUENCERS, data)


def update_influencer(db, influencer_id: str, data: Dict[str, Any]) -> None:
    _update(db, INFLUENCERS, influencer_id, data)


def update_influencer_status(db, influencer_id: str, status: InfluencerStatus) -> None:
    if status not in STATUS_FLOW:
        raise ValueError(f"Unknown influencer status: {status}")
    update_influencer(db, influencer_id, {'status': status})


def delete_influencer(db, influencer_id: str) -> None:
    _delete(db, INFLUENCERS, influencer_id)


def get_influencer(db, influencer_id: str) -> Optional[Dict[str, Any]]:
    return _get(db, INFLUENCERS, influencer_id)


def get_influencers_by_project(db, project_id: str) -> List[Dict[str, Any]]:
    query = db.collection(INFLUENCERS).where(filter=FieldFilter('projectId', '==', project_id))
    return [snapshot_to_dict(s) for s in query.stream()]


def batch_update_influencers(db, updates: List[Dict[str, Any]]) -> int:
    """Apply [{'id', 'data'}] updates to influencers in Firestore-sized batches."""
    return batch_update_documents(db, INFLUENCERS, updates, batch_size=FIRESTORE_BATCH_LIMIT)


# ============================================
# BRANDS
# ============================================

def create_brand(db, data: Dict[str, Any]) -> str:
    return _create(db, BRANDS, data, with_updated_at=False)


def update_brand(db, brand_id: str, data: Dict[str, Any]) -> None:
    _update(db, BRANDS, brand_id, data, with_updated_at=False)


def delete_brand(db, brand_id: str) -> None:
    _delete(db, BRANDS, brand_id)


def list_brands(db) -> List[Dict[str, Any]]:
    return _list(db, BRANDS)


# ============================================
# USERS
# ============================================

def create_user(db, data: Dict[str, Any]) -> str:
    return _create(db, USERS, data, with_updated_at=False)


def update_user(db, user_id: str, data: Dict[str, Any]) -> None:
    _update(db, USERS, user_id, data, with_updated_at=False)


def delete_user(db, user_id: str) -> None:
    _delete(db, USERS, user_id)


def get_user_by_email(db, email: str) -> Optional[Dict[str, Any]]:
    query = db.collection(USERS).where(filter=FieldFilter('email', '==', email)).limit(1)
    for snapshot in query.stream():
        return snapshot_to_dict(snapshot)
    return None


# ============================================
# CATEGORIES
# ============================================

def create_category(db, name: str) -> str:
    return _create(db, CATEGORIES, {'name': name}, with_updated_at=False)


def list_categories(db) -> List[Dict[str, Any]]:
    return _list(db, CATEGORIES)


def delete_category(db, category_id: str) -> None:
    _delete(db, CATEGORIES, category_id)


# ============================================
# WORKFLOW HELPERS
# ============================================

def next_status(current_status: str) -> str:
    """Next workflow status; 'Paid' stays 'Paid'."""
    if current_status not in STATUS_FLOW:
        raise ValueError(f"Unknown influencer status: {current_status}")
    index = STATUS_FLOW.index(current_status)
    return STATUS_FLOW[min(index + 1, len(STATUS_FLOW) - 1)]


def advance_influencer_status(db, influencer_id: str, current_status: str) -> str:
    """
    Move an influencer one step along STATUS_FLOW.

    Returns:
        The resulting status (unchanged when already Paid)
    """
    new_status = next_status(current_status)
    if new_status != current_status:
        update_influencer_status(db, influencer_id, new_status)
        logger.info(f"Influencer {influencer_id}: {current_status} -> {new_status}")
    return new_status


def process_payment(db, influencer_id: str, project_id: str, amount: float) -> None:
    """Mark an influencer as Paid and add ``amount`` to the project's spent total, in one batch."""
    batch = db.batch()

    influencer_ref = db.collection(INFLUENCERS).document(influencer_id)
    batch.update(influencer_ref, {
        'status': 'Paid',
        'updatedAt': SERVER_TIMESTAMP,
    })

    project_ref = db.collection(PROJECTS).document(project_id)
    project_snapshot = project_ref.get()
    if project_snapshot.exists:
        current_spent = (project_snapshot.to_dict() or {}).get('spent') or 0
        batch.update(project_ref, {
            'spent': current_spent + amount,
            'updatedAt': SERVER_TIMESTAMP,
        })
    else:
        logger.warning(f"Project {project_id} not found, spent total not updated")

    batch.commit()
    logger.info(f"Processed payment of {amount} for influencer {influencer_id} (project {project_id})")


def add_influencers_to_project(db, influencer_ids: List[str], project_id: str) -> int:
    """Assign creators from the pool to a project, resetting them to Discovery."""
    updates = [
        {'id': influencer_id, 'data': {'projectId': project_id, 'status': 'Discovery'}}
        for influencer_id in influencer_ids
    ]
    return batch_update_influencers(db, updates)


def _merge_sub_document(db, influencer_id: str, field: str, partial: Dict[str, Any]) -> bool:
    doc_ref = db.collection(INFLUENCERS).document(influencer_id)
    snapshot = doc_ref.get()
    if not snapshot.exists:
        logger.warning(f"Influencer {influencer_id} not found, {field} not updated")
        return False

    current = (snapshot.to_dict() or {}).get(field) or {}
    doc_ref.update({
        field: {**current, **partial},
        'updatedAt': SERVER_TIMESTAMP,
    })
    return True


def update_contract(db, influencer_id: str, contract_data: Dict[str, Any]) -> bool:
    return _merge_sub_document(db, influencer_id, 'contract', contract_data)


def update_logistics(db, influencer_id: str, logistics_data: Dict[str, Any]) -> bool:
    return _merge_sub_document(db, influencer_id, 'logistics', logistics_data)


def create_document(db, collection: str, data: Dict[str, Any]) -> str:
    """Add a document to one of KNOWN_COLLECTIONS (diagnostics)."""
    if collection not in KNOWN_COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection}")
    return _create(db, collection, data)


def collection_counts(db) -> Dict[str, int]:
    """Number of documents per known collection."""
    counts = {}
    for collection in KNOWN_COLLECTIONS:
        counts[collection] = sum(1 for _ in db.collection(collection).stream())
    return counts
