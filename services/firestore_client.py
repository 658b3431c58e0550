"""
Firestore client bootstrap.

A single firebase_admin app and Firestore client are shared by the Flask
process and Celery workers.
"""
import os
import logging
import threading
import firebase_admin
from firebase_admin import credentials, firestore

logger = logging.getLogger(__name__)

SERVER_TIMESTAMP = firestore.SERVER_TIMESTAMP

# Use singleton pattern with thread lock to prevent race conditions in multi-threaded Flask
_firestore_client = None
_firestore_lock = threading.Lock()


def get_firestore_client():
    """
    Initialize and return the Firestore client.

    Credentials come from FIREBASE_CREDENTIALS (service-account JSON path);
    without it, application-default credentials are used.
    """
    global _firestore_client

    # Double-checked locking pattern for thread safety
    if _firestore_client is not None:
        return _firestore_client

    with _firestore_lock:
        if _firestore_client is not None:
            return _firestore_client

        try:
            firebase_admin.get_app()
        except ValueError:
            credentials_path = os.getenv('FIREBASE_CREDENTIALS')
            options = {}
            if os.getenv('FIREBASE_PROJECT_ID'):
                options['projectId'] = os.getenv('FIREBASE_PROJECT_ID')

            if credentials_path:
                cred = credentials.Certificate(credentials_path)
            else:
                logger.warning("FIREBASE_CREDENTIALS not set, using application default credentials")
                cred = credentials.ApplicationDefault()

            firebase_admin.initialize_app(cred, options or None)

        _firestore_client = firestore.client()
        logger.info("✓ Firestore client initialized (thread-safe singleton)")

        return _firestore_client
