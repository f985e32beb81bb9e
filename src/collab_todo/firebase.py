from __future__ import annotations

import logging
from threading import Lock
from typing import Optional

import firebase_admin

logger = logging.getLogger(__name__)

_init_lock = Lock()


# PUBLIC_INTERFACE
def get_firebase_app(project_id: Optional[str] = None) -> firebase_admin.App:
    """
    Return the default Firebase Admin app, initializing it once with
    application-default credentials.
    """
    with _init_lock:
        try:
            return firebase_admin.get_app()
        except ValueError:
            options = {"projectId": project_id} if project_id else None
            logger.info("Initializing Firebase Admin app (project=%s)", project_id or "<default>")
            return firebase_admin.initialize_app(options=options)
