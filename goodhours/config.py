import os
import json
import logging
import firebase_admin
from firebase_admin import credentials

logger = logging.getLogger("goodhours.config")


def init_firebase():
    """Initialize the Firebase Admin SDK used to verify identity tokens.

    Behavior:
    - If FIREBASE_CERT_JSON env var is present, parse it as JSON and use it.
    - Else if FIREBASE_CERT_PATH env var is set or 'firebase_key.json' exists, use that path.
    - Else, do nothing (avoid raising at import time).
    """
    if firebase_admin._apps:
        return

    fb_json = os.environ.get("FIREBASE_CERT_JSON")
    if fb_json:
        try:
            cred = credentials.Certificate(json.loads(fb_json))
            firebase_admin.initialize_app(cred)
            return
        except (ValueError, IOError) as e:
            logger.error(f"Failed to init Firebase from FIREBASE_CERT_JSON: {e}")

    fb_path = os.environ.get("FIREBASE_CERT_PATH", "firebase_key.json")
    if fb_path and os.path.exists(fb_path):
        try:
            cred = credentials.Certificate(fb_path)
            firebase_admin.initialize_app(cred)
            return
        except (ValueError, IOError) as e:
            logger.error(f"Failed to init Firebase from path {fb_path}: {e}")

    logger.warning("No Firebase credentials found; skipping Firebase initialization.")
