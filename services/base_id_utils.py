"""
Airtable base selection for incoming requests.

This module provides helper functions for:
1. Extracting the Airtable base_id from request headers/body
2. Validating base_id format
3. Keeping the selected base_id on flask.g for the rest of the request

Priority order: X-Base-Id header, then base_id in the JSON body, then the
AIRTABLE_BASE_ID environment variable.
"""

import os
import re
import logging
from typing import Optional
from flask import g, request

logger = logging.getLogger(__name__)

# Context variable name in Flask g object
BASE_ID_CONTEXT_KEY = '_airtable_base_id'

_BASE_ID_PATTERN = re.compile(r'^app[a-zA-Z0-9]{8,20}$')
_BASE_URL_PATTERN = re.compile(r'https?://(?:www\.)?airtable\.com/(app[a-zA-Z0-9]+)')


def _normalize(value: str) -> str:
    """Accept either a bare base ID or a pasted Airtable URL."""
    value = value.strip()
    return extract_base_id_from_url(value) or value


def get_base_id_from_request(required: bool = False) -> Optional[str]:
    """
    Extract base_id from request headers or body, falling back to AIRTABLE_BASE_ID.

    Args:
        required: If True, raises ValueError when no base_id is available

    Returns:
        str: The base_id, or None if not found and not required

    Raises:
        ValueError: If required=True and base_id is not provided
    """
    # Check header first
    base_id_header = request.headers.get('X-Base-Id')
    if base_id_header and base_id_header.strip():
        logger.debug(f"Using base_id from header: {base_id_header}")
        return _normalize(base_id_header)

    data = request.get_json(silent=True) or {}
    if isinstance(data, dict):
        base_id_body = data.get('base_id')
        if base_id_body and isinstance(base_id_body, str) and base_id_body.strip():
            logger.debug(f"Using base_id from request body: {base_id_body}")
            return _normalize(base_id_body)

    base_id_env = os.getenv('AIRTABLE_BASE_ID')
    if base_id_env:
        return base_id_env

    if required:
        raise ValueError(
            "base_id is required. Provide it via 'X-Base-Id' header, 'base_id' in the request body, "
            "or the AIRTABLE_BASE_ID environment variable."
        )

    return None


def extract_base_id_from_url(url: str) -> Optional[str]:
    """
    Extract an Airtable base ID from an Airtable URL.

    Args:
        url: Airtable URL (e.g., https://airtable.com/app1ovtHsWbF2Ae7x/tblXXX/viwXXX)
             or a bare base ID

    Returns:
        Base ID (e.g., 'app1ovtHsWbF2Ae7x') or None if invalid
    """
    if url.startswith('app') and '/' not in url:
        return url

    match = _BASE_URL_PATTERN.search(url)
    return match.group(1) if match else None


def validate_base_id(base_id: Optional[str]) -> bool:
    """Airtable base IDs look like 'app' followed by 8-20 alphanumerics."""
    if not base_id or not isinstance(base_id, str):
        return False
    return bool(_BASE_ID_PATTERN.match(base_id.strip()))


def set_base_id_context(base_id: str) -> None:
    """Store the request's base_id on flask.g."""
    if not base_id or not isinstance(base_id, str):
        raise ValueError(f"Invalid base_id: {base_id}")

    g.setdefault(BASE_ID_CONTEXT_KEY, base_id)
    logger.debug(f"Base context set to base_id={base_id}")


def get_base_id_context() -> Optional[str]:
    """The base_id selected for the current request, if any."""
    return g.get(BASE_ID_CONTEXT_KEY)
