import logging
import os

import firebase_admin
from firebase_admin import credentials

from repairdesk.core.config import settings

logger = logging.getLogger(__name__)

_app: firebase_admin.App | None = None


class FirebaseNotConfigured(RuntimeError):
    pass


def init_firebase() -> bool:
    global _app
    if _app is not None:
        return True
    try:
        _app = firebase_admin.get_app()
        return True
    except ValueError:
        pass

    creds_path = (settings.firebase_credentials_json or "").strip()
    if creds_path and not os.path.exists(creds_path):
        logger.warning("Firebase credentials file %s does not exist", creds_path)
        return False
    try:
        cred = credentials.Certificate(creds_path) if creds_path else credentials.ApplicationDefault()
        _app = firebase_admin.initialize_app(cred)
        return True
    except Exception:
        logger.exception("Firebase initialisation failed")
        _app = None
        return False


def get_firebase_app() -> firebase_admin.App:
    if not init_firebase():
        raise FirebaseNotConfigured("Firebase app is not configured")
    return _app
