"""
Outreach queue and outreach logging.

The outreach queue is every creator still waiting for a first contact
(Discovery) or a follow-up (Contacted). Sending an email template logs a chat
message on the creator's history and moves Discovery creators to Contacted.
"""
import time
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote
from google.cloud.firestore_v1.base_query import FieldFilter

from services.firestore_client import SERVER_TIMESTAMP
from services.firestore_repo import INFLUENCERS, snapshot_to_dict

logger = logging.getLogger(__name__)

OUTREACH_STATUSES = ['Discovery', 'Contacted']
DEFAULT_SENDER = 'operator.team'

OUTREACH_MACROS: List[Dict[str, str]] = [
    {
        'id': 'm1',
        'title': 'Initial Outreach',
        'subject': 'Collaboration Opportunity with [Brand Name]',
        'body': "Hi [Name],\n\nWe love your content on TikTok! We'd like to send you some of our products to try out. Let us know if you're interested.\n\nBest,\n[Brand Team]",
    },
    {
        'id': 'm2',
        'title': 'Rate Negotiation',
        'subject': 'Re: Collaboration Rates',
        'body': "Hi [Name],\n\nThanks for getting back to us. Our budget for this campaign is typically around $[Amount]. Does that work for you?\n\nBest,",
    },
    {
        'id': 'm3',
        'title': 'Shipping Confirmation',
        'subject': 'Your package is on the way!',
        'body': "Hi [Name],\n\nGreat news! We've shipped your package. Tracking number: [Tracking].\n\nCan't wait to see what you create!",
    },
    {
        'id': 'm4',
        'title': 'Payment Details Request',
        'subject': 'Invoice & Payment Details',
        'body': "Hi [Name],\n\nPlease send over your invoice and PayPal details so we can process your payment.\n\nThanks!",
    },
]


def get_macro(macro_id: str) -> Optional[Dict[str, str]]:
    for macro in OUTREACH_MACROS:
        if macro['id'] == macro_id:
            return macro
    return None


def get_outreach_queue(db, project_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Creators awaiting a first or follow-up contact.

    Args:
        db: Firestore client
        project_id: Restrict to one project's creators

    Returns:
        Influencer dicts in Discovery or Contacted status
    """
    query = db.collection(INFLUENCERS).where(filter=FieldFilter('status', 'in', OUTREACH_STATUSES))
    if project_id:
        query = query.where(filter=FieldFilter('projectId', '==', project_id))

    queue = [snapshot_to_dict(s) for s in query.stream()]
    logger.info(f"Outreach queue: {len(queue)} creators" + (f" in project {project_id}" if project_id else ""))
    return queue


def render_macro(macro: Dict[str, str], influencer: Dict[str, Any]) -> str:
    """Fill the creator's name and handle into a template body."""
    name = influencer.get('name') or ''
    handle = influencer.get('handle') or ''

    body = macro['body']
    for placeholder, value in (('{name}', name), ('[Name]', name), ('{handle}', handle), ('[Handle]', handle)):
        body = body.replace(placeholder, value)
    return body


def build_mailto_link(email: str, subject: str, body: str) -> str:
    return f"mailto:{email}?subject={quote(subject)}&body={quote(body)}"


def _chat_message(content: str, sender: str, is_internal: bool, message_type: str) -> Dict[str, Any]:
    return {
        'id': f"msg-{int(time.time() * 1000)}",
        'sender': sender,
        'content': content,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'isInternal': is_internal,
        'type': message_type,
    }


def log_outreach(
    db,
    influencer_id: str,
    macro_id: str,
    notes: str = '',
    custom_body: Optional[str] = None,
    sender: str = DEFAULT_SENDER
) -> Optional[Dict[str, Any]]:
    """
    Record an outreach email on a creator's history.

    Args:
        db: Firestore client
        influencer_id: Firestore influencer id
        macro_id: Template id (see OUTREACH_MACROS)
        notes: Optional internal note stored alongside the message
        custom_body: Edited email body; defaults to the rendered template
        sender: Operator name on the chat message

    Returns:
        {'influencerId', 'message', 'status', 'mailto'} or None if the creator does not exist

    Raises:
        ValueError: If the template id is unknown
    """
    macro = get_macro(macro_id)
    if not macro:
        raise ValueError(f"Unknown outreach template: {macro_id}")

    doc_ref = db.collection(INFLUENCERS).document(influencer_id)
    snapshot = doc_ref.get()
    if not snapshot.exists:
        logger.warning(f"Influencer {influencer_id} not found, outreach not logged")
        return None

    influencer = snapshot.to_dict() or {}
    content = custom_body if custom_body else render_macro(macro, influencer)

    message = _chat_message(content, sender, is_internal=False, message_type='macro')
    history = list(influencer.get('history') or [])
    history.append(message)

    if notes:
        note = _chat_message(notes, sender, is_internal=True, message_type='text')
        note['id'] = f"{message['id']}-note"
        history.append(note)

    current_status = influencer.get('status')
    new_status = 'Contacted' if current_status == 'Discovery' else current_status

    doc_ref.update({
        'history': history,
        'status': new_status,
        'updatedAt': SERVER_TIMESTAMP,
    })

    logger.info(f"Outreach logged for {influencer.get('handle', influencer_id)} using '{macro['title']}'")

    return {
        'influencerId': influencer_id,
        'message': message,
        'status': new_status,
        'mailto': build_mailto_link(influencer.get('email') or '', macro['title'], content),
    }
