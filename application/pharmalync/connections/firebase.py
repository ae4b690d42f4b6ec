"""
Firebase app and Firestore client.

The named app is initialised once at startup from a service-account file;
every repository and the push gateway resolve it through :func:`get_firebase_app`.
"""
import firebase_admin
from firebase_admin import credentials, firestore

# Logger
from pharmalync.logging.utils import get_app_logger
logger = get_app_logger(__name__)

# Settings
from pharmalync.config.settings import PharmaLyncConfigs
configs = PharmaLyncConfigs()


def initialize_firebase():
    """Initialise the named Firebase app if it is not already registered."""
    try:
        return firebase_admin.get_app(configs.FIREBASE_APP_NAME)
    except ValueError:
        pass

    if configs.FIREBASE_CREDENTIALS_PATH:
        cred = credentials.Certificate(configs.FIREBASE_CREDENTIALS_PATH)
    else:
        # falls back to GOOGLE_APPLICATION_CREDENTIALS / metadata server
        cred = credentials.ApplicationDefault()
    app = firebase_admin.initialize_app(cred, name=configs.FIREBASE_APP_NAME)
    logger.info(f"firebase_initialized | app={configs.FIREBASE_APP_NAME}")
    return app


def get_firebase_app():
    return firebase_admin.get_app(configs.FIREBASE_APP_NAME)


def get_firestore_client():
    app = get_firebase_app()
    if configs.FIRESTORE_DATABASE:
        return firestore.client(app=app, database_id=configs.FIRESTORE_DATABASE)
    return firestore.client(app=app)
