"""
============================================================================
FILE: config.py
LOCATION: api/config.py
============================================================================

PURPOSE:
    Centralized configuration for SemNotes and access to the managed
    Firebase backend (Auth, Firestore, Storage, callable Functions).

ROLE IN PROJECT:
    Loads environment variables and lazily initializes the backend clients
    for the API layer, supporting both the in-memory mock backend and a
    real Firebase project.

KEY COMPONENTS:
    - get_db: Returns mock or real Firestore client
    - get_auth: Returns mock auth or firebase_admin.auth
    - get_bucket: Returns mock or real Storage bucket
    - get_functions: Returns mock or HTTP callable-functions client
    - init_firebase: Initializes Firebase Admin SDK
    - reset_clients: Drops cached clients (tests)

DEPENDENCIES:
    - External: firebase_admin, google-cloud-firestore, python-dotenv
    - Internal: mock_firestore (mock mode), rpc (real mode)

USAGE:
    from api.config import get_db, get_bucket
============================================================================
"""

import os
from pathlib import Path

import dotenv
import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin import firestore
from firebase_admin import storage


# Load environment variables from .env
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DOTENV_PATH = PROJECT_ROOT / ".env"
if DOTENV_PATH.exists():
    dotenv.load_dotenv(DOTENV_PATH, override=False)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


# Test Mode (set to True to skip real backend calls)
SEMNOTES_TEST_MODE = _env_flag("SEMNOTES_TEST_MODE")

# Firebase project
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "semnotes-dev")
FIREBASE_WEB_API_KEY = os.getenv("FIREBASE_WEB_API_KEY", "")
FIREBASE_STORAGE_BUCKET = os.getenv(
    "FIREBASE_STORAGE_BUCKET",
    f"{FIREBASE_PROJECT_ID}.appspot.com",
)

# Callable functions (RPC endpoints)
FUNCTIONS_REGION = os.getenv("FUNCTIONS_REGION", "us-central1")
FUNCTIONS_BASE_URL = os.getenv(
    "FUNCTIONS_BASE_URL",
    f"https://{FUNCTIONS_REGION}-{FIREBASE_PROJECT_ID}.cloudfunctions.net",
)
FUNCTIONS_TIMEOUT_SECONDS = int(os.getenv("FUNCTIONS_TIMEOUT_SECONDS", "15"))

# Storage / PDF access
NOTES_BUCKET_PREFIX = os.getenv("NOTES_BUCKET_PREFIX", "notes")
PDF_URL_EXPIRY = int(os.getenv("PDF_URL_EXPIRY", "300"))
PDF_MOBILE_URL_EXPIRY = int(os.getenv("PDF_MOBILE_URL_EXPIRY", "3600"))
PDF_DIRECT_ACCESS = _env_flag("PDF_DIRECT_ACCESS")
PDF_ALLOW_DOWNLOADS = _env_flag("PDF_ALLOW_DOWNLOADS")
PDF_FETCH_TIMEOUT_SECONDS = int(os.getenv("PDF_FETCH_TIMEOUT_SECONDS", "20"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = _env_flag("LOG_JSON")

# Rate limiting
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")
RATE_LIMIT_UPLOAD = os.getenv("RATE_LIMIT_UPLOAD", "10/minute")

# CORS (comma separated; the Streamlit UI runs on 8501)
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:8501,http://127.0.0.1:8501").split(",")
    if origin.strip()
]

# Admin statistics cache (Redis); TTL in seconds
REDIS_ENABLED = _env_flag("REDIS_ENABLED", "true")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
STATS_CACHE_TTL = int(os.getenv("STATS_CACHE_TTL", "60"))

# Mock Database Configuration
USE_REAL_FIREBASE = _env_flag("USE_REAL_FIREBASE")
USE_MOCK_DB = not USE_REAL_FIREBASE
MOCK_DB_FILE = os.getenv("MOCK_DB_FILE", "mock_db.json")

# Cached client instances
_db_instance = None
_auth_instance = None
_bucket_instance = None
_functions_instance = None


def _resolve_credentials_path() -> Path:
    """Resolve the Firebase credentials file path.

    Returns:
        Path: Absolute path to the service account JSON file.
    """
    env_path = os.getenv("FIREBASE_CREDENTIALS")
    if env_path:
        path = Path(env_path)
        if not path.is_absolute():
            path = PROJECT_ROOT / env_path
        return path
    return PROJECT_ROOT / "serviceAccountKey.json"


def init_firebase() -> None:
    """Initialize Firebase Admin SDK once per process.

    Raises:
        FileNotFoundError: If real Firebase credentials are missing.
    """
    if firebase_admin._apps:
        return

    options = {
        "projectId": FIREBASE_PROJECT_ID,
        "storageBucket": FIREBASE_STORAGE_BUCKET,
    }
    key_path = _resolve_credentials_path()
    if not key_path.exists():
        raise FileNotFoundError(f"Firebase credentials not found: {key_path}")
    cred = credentials.Certificate(str(key_path))
    firebase_admin.initialize_app(cred, options)


def _mock_backend():
    from api.mock_firestore import get_mock_backend

    db_file = None if SEMNOTES_TEST_MODE else MOCK_DB_FILE
    return get_mock_backend(db_file)


def get_db():
    """Get Firestore database client (mock or real).

    Returns:
        object: Firestore client or MockFirestoreClient instance.
    """
    global _db_instance
    if _db_instance is None:
        if USE_MOCK_DB:
            _db_instance = _mock_backend().db
        else:
            init_firebase()
            _db_instance = firestore.client()
    return _db_instance


def get_auth():
    """Get Firebase auth module or mock auth.

    Returns:
        object: MockAuth instance or firebase_admin.auth module.
    """
    global _auth_instance
    if _auth_instance is None:
        if USE_MOCK_DB:
            _auth_instance = _mock_backend().auth
        else:
            init_firebase()
            _auth_instance = firebase_auth
    return _auth_instance


def get_bucket():
    """Get the Storage bucket holding uploaded PDFs (mock or real)."""
    global _bucket_instance
    if _bucket_instance is None:
        if USE_MOCK_DB:
            _bucket_instance = _mock_backend().bucket
        else:
            init_firebase()
            _bucket_instance = storage.bucket()
    return _bucket_instance


def get_functions():
    """Get the callable-functions client used for privileged RPCs."""
    global _functions_instance
    if _functions_instance is None:
        if USE_MOCK_DB:
            _functions_instance = _mock_backend().functions
        else:
            from api.rpc import FunctionsClient

            _functions_instance = FunctionsClient(FUNCTIONS_BASE_URL)
    return _functions_instance


def reset_clients() -> None:
    """Forget cached clients so the next access re-creates them."""
    global _db_instance, _auth_instance, _bucket_instance, _functions_instance
    _db_instance = None
    _auth_instance = None
    _bucket_instance = None
    _functions_instance = None
