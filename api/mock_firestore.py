"""
============================================================================
FILE: mock_firestore.py
LOCATION: api/mock_firestore.py
============================================================================

PURPOSE:
    Mock implementations of the managed Firebase backend used by SemNotes:
    Firestore, Authentication, the Storage bucket holding note PDFs and the
    callable Cloud Functions used for privileged mutations.

ROLE IN PROJECT:
    - Enables offline/unit testing of every service without a Firebase project
    - Optional persistence to a JSON file (mock_db.json) for local development
    - Purely in-memory instances for the test suite
    - Mimics the callable functions (force approve/reject, view counter,
      subject units) against the mock Firestore

KEY COMPONENTS:
    - MockFirestoreClient: collections, documents, queries, batches
    - MockQuery: where() with ==, !=, <, <=, >, >=, in, array_contains;
      order_by(), limit()
    - MockWriteBatch: queued writes applied on commit()
    - MockAuth: user records and mock ID tokens (mock-token-<role>-<uid>)
    - MockBucket / MockBlob: object storage with signed and public URLs
    - MockFunctions: callable functions backed by the mock Firestore
    - MockBackend / get_mock_backend: bundle of the four mocks

DEPENDENCIES:
    - External: google-cloud-firestore (Increment transform type),
      google-api-core (NotFound)
    - Internal: errors (RpcError)

USAGE:
    from api.mock_firestore import MockBackend

    backend = MockBackend()
    backend.db.collection("notes").document("n1").set({"title": "Unit 1"})

============================================================================
"""
import json
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

from google.api_core.exceptions import NotFound, PreconditionFailed
from google.cloud.firestore_v1.transforms import Increment

from api.errors import RpcError


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _apply_transforms(current: Dict[str, Any], data: Dict[str, Any]) -> None:
    """Merge data into current, resolving Increment sentinels."""
    for key, value in data.items():
        if isinstance(value, Increment):
            current[key] = (current.get(key) or 0) + value.value
        else:
            current[key] = value


class MockDocumentReference:
    def __init__(self, collection_parent, document_id):
        self.parent = collection_parent
        self.id = document_id

    @property
    def _data(self):
        # Always read through to the collection so writes stay visible
        return self.parent._docs.get(self.id)

    @property
    def path(self):
        return f"{self.parent.path}/{self.id}"

    def get(self, transaction=None):
        data = self._data
        return MockDocumentSnapshot(self, data, exists=data is not None)

    def set(self, data: Dict[str, Any], merge=False):
        if merge and self.id in self.parent._docs:
            _apply_transforms(self.parent._docs[self.id], data)
        else:
            fresh: Dict[str, Any] = {}
            _apply_transforms(fresh, data)
            self.parent._docs[self.id] = fresh
        self.parent._save()

    def update(self, data: Dict[str, Any]):
        if self.id not in self.parent._docs:
            raise NotFound(f"No document to update: {self.path}")
        _apply_transforms(self.parent._docs[self.id], data)
        self.parent._save()

    def delete(self):
        self.parent._docs.pop(self.id, None)
        self.parent._save()

    def collection(self, collection_name):
        return self.parent.client.collection(f"{self.path}/{collection_name}")


class MockDocumentSnapshot:
    def __init__(self, ref, data, exists=True):
        self._ref = ref
        self.id = ref.id
        self._data = dict(data) if data is not None else None
        self.exists = exists

    def to_dict(self):
        return dict(self._data) if self._data is not None else None

    def get(self, field_path):
        if not self.exists:
            return None
        curr = self._data
        for part in field_path.split("."):
            if isinstance(curr, dict) and part in curr:
                curr = curr[part]
            else:
                return None
        return curr

    @property
    def reference(self):
        return self._ref


def _matches(data: Dict[str, Any], field: str, op: str, value: Any) -> bool:
    val = data.get(field)
    if op == "==":
        return val == value
    if op == "!=":
        return val != value
    if op == "in":
        return bool(value) and val in value
    if op == "not-in":
        return val not in (value or [])
    if op == "array_contains":
        return isinstance(val, list) and value in val
    if val is None:
        return False
    if op == ">":
        return val > value
    if op == ">=":
        return val >= value
    if op == "<":
        return val < value
    if op == "<=":
        return val <= value
    raise ValueError(f"Unsupported operator: {op}")


class MockQuery:
    def __init__(self, collection, filters=None, limit=None, orders=None):
        self.collection = collection
        self.filters = list(filters or [])
        self.limit_val = limit
        self.orders = list(orders or [])

    def where(self, field, op, value):
        return MockQuery(self.collection, self.filters + [(field, op, value)], self.limit_val, self.orders)

    def limit(self, count):
        return MockQuery(self.collection, self.filters, count, self.orders)

    def order_by(self, field, direction="ASCENDING"):
        return MockQuery(self.collection, self.filters, self.limit_val, self.orders + [(field, direction)])

    def get(self):
        return list(self.stream())

    def stream(self):
        results = []
        for doc_id, data in list(self.collection._docs.items()):
            if data is None:
                continue
            if all(_matches(data, f, op, v) for f, op, v in self.filters):
                ref = self.collection.document(doc_id)
                results.append(MockDocumentSnapshot(ref, data, exists=True))

        # Stable sorts applied last-key-first give multi-key ordering
        for field, direction in reversed(self.orders):
            reverse = direction == "DESCENDING"
            present = [d for d in results if d._data.get(field) is not None]
            missing = [d for d in results if d._data.get(field) is None]
            present.sort(key=lambda d: d._data.get(field), reverse=reverse)
            results = present + missing

        if self.limit_val:
            results = results[: self.limit_val]

        return iter(results)


class MockCollectionReference(MockQuery):
    def __init__(self, client, path):
        self.client = client
        self.path = path
        self.id = path.split("/")[-1]
        self._docs = self.client._db_data.setdefault(path, {})
        super().__init__(self)

    def document(self, document_id=None):
        if not document_id:
            document_id = uuid.uuid4().hex[:20]
        return MockDocumentReference(self, document_id)

    def add(self, data: Dict[str, Any]):
        doc_ref = self.document()
        doc_ref.set(data)
        return _now_iso(), doc_ref

    def _save(self):
        self.client._save_db()


class MockWriteBatch:
    """Queues writes and applies them together on commit()."""

    def __init__(self, client):
        self.client = client
        self._ops = []

    def set(self, ref, data, merge=False):
        self._ops.append(lambda: ref.set(data, merge=merge))
        return self

    def update(self, ref, data):
        self._ops.append(lambda: ref.update(data))
        return self

    def delete(self, ref):
        self._ops.append(ref.delete)
        return self

    def commit(self):
        ops, self._ops = self._ops, []
        for op in ops:
            op()
        return [_now_iso() for _ in ops]


class MockFirestoreClient:
    def __init__(self, db_file: Optional[str] = None):
        if db_file:
            self.db_file = os.path.join(os.path.dirname(os.path.dirname(__file__)), db_file)
        else:
            self.db_file = None
        self._db_data: Dict[str, Dict[str, Any]] = {}
        self.reload()

    def reload(self):
        self._db_data = {}
        if self.db_file and os.path.exists(self.db_file):
            try:
                with open(self.db_file, "r") as f:
                    self._db_data = json.load(f)
            except (OSError, json.JSONDecodeError):
                self._db_data = {}

    def _save_db(self):
        if not self.db_file:
            return
        with open(self.db_file, "w") as f:
            json.dump(self._db_data, f, indent=2, default=str)

    def collection(self, name):
        return MockCollectionReference(self, name)

    def batch(self):
        return MockWriteBatch(self)


class MockUserRecord:
    def __init__(self, uid, email, display_name=None, password=None, disabled=False):
        self.uid = uid
        self.email = email
        self.display_name = display_name
        self._password = password
        self.disabled = disabled


class MockAuthError(Exception):
    pass


class MockEmailAlreadyExistsError(MockAuthError):
    pass


class MockUserNotFoundError(MockAuthError):
    pass


class MockInvalidIdTokenError(MockAuthError):
    pass


class MockAuth:
    # Exposed on the instance so callers can write auth.UserNotFoundError
    EmailAlreadyExistsError = MockEmailAlreadyExistsError
    UserNotFoundError = MockUserNotFoundError
    InvalidIdTokenError = MockInvalidIdTokenError

    def __init__(self):
        self._users: Dict[str, MockUserRecord] = {}

    def create_user(self, email=None, password=None, display_name=None, uid=None, disabled=False, **kwargs):
        if not email:
            raise ValueError("Email required")
        for u in self._users.values():
            if u.email == email:
                raise self.EmailAlreadyExistsError("Email already exists")

        uid = uid or f"mock-user-{int(time.time() * 1000)}"
        user = MockUserRecord(uid, email, display_name, password, disabled)
        self._users[uid] = user
        return user

    def get_user(self, uid):
        if uid not in self._users:
            raise self.UserNotFoundError("User not found")
        return self._users[uid]

    def get_user_by_email(self, email):
        for u in self._users.values():
            if u.email == email:
                return u
        raise self.UserNotFoundError("User not found")

    def delete_user(self, uid):
        if uid not in self._users:
            raise self.UserNotFoundError("User not found")
        del self._users[uid]

    def verify_id_token(self, token, check_revoked=False, clock_skew_seconds=0):
        """Decode tokens of the form mock-token-<role>-<uid>."""
        if not token or not token.startswith("mock-token-"):
            raise self.InvalidIdTokenError("Invalid mock token")
        parts = token.split("-", 3)
        if len(parts) < 4 or not parts[3]:
            raise self.InvalidIdTokenError("Malformed mock token")
        role, uid = parts[2], parts[3]
        user = self._users.get(uid)
        email = user.email if user else f"{uid}@semnotes.test"
        return {"uid": uid, "email": email, "role": role}


class MockBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name
        self.content_type = None

    @property
    def public_url(self):
        return f"https://storage.googleapis.com/{self.bucket.name}/{quote(self.name)}"

    def exists(self):
        return self.name in self.bucket._objects

    @property
    def size(self):
        data = self.bucket._objects.get(self.name)
        return len(data) if data is not None else None

    def upload_from_string(self, data, content_type=None, if_generation_match=None):
        if if_generation_match == 0 and self.exists():
            raise self.bucket.PreconditionFailed(f"The resource already exists (duplicate): {self.name}")
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.content_type = content_type
        self.bucket._objects[self.name] = bytes(data)

    def download_as_bytes(self):
        if not self.exists():
            raise NotFound(f"No such object: {self.bucket.name}/{self.name}")
        return self.bucket._objects[self.name]

    def delete(self):
        if not self.exists():
            raise NotFound(f"No such object: {self.bucket.name}/{self.name}")
        del self.bucket._objects[self.name]

    def generate_signed_url(self, expiration=None, version="v4", method="GET", **kwargs):
        if self.bucket.signing_error:
            raise ValueError(self.bucket.signing_error)
        seconds = int(expiration.total_seconds()) if hasattr(expiration, "total_seconds") else int(expiration or 0)
        return f"{self.public_url}?X-Goog-Expires={seconds}&X-Goog-Signature=mock"


class MockBucket:
    PreconditionFailed = PreconditionFailed

    def __init__(self, name="semnotes-dev.appspot.com"):
        self.name = name
        self._objects: Dict[str, bytes] = {}
        # Set to a message to make generate_signed_url fail
        self.signing_error: Optional[str] = None

    def blob(self, blob_name):
        return MockBlob(self, blob_name)

    def get_blob(self, blob_name):
        return MockBlob(self, blob_name) if blob_name in self._objects else None

    def list_blobs(self, prefix=None, max_results=None):
        names = sorted(n for n in self._objects if not prefix or n.startswith(prefix))
        if max_results:
            names = names[:max_results]
        return iter([MockBlob(self, n) for n in names])


class MockFunctions:
    """Callable Cloud Functions executed against the mock Firestore."""

    def __init__(self, db):
        self.db = db
        self.calls = []
        # name -> message; a listed function raises RpcError when called
        self.failures: Dict[str, str] = {}

    def call(self, name: str, payload: Optional[Dict[str, Any]] = None, id_token: Optional[str] = None):
        payload = payload or {}
        self.calls.append((name, payload))
        if name in self.failures:
            raise RpcError(self.failures[name], function_name=name)
        handler = getattr(self, f"_fn_{name}", None)
        if handler is None:
            raise RpcError(f"Function not found: {name}", function_name=name)
        return handler(payload)

    def _note_ref(self, payload):
        note_id = payload.get("note_id")
        ref = self.db.collection("notes").document(note_id)
        if not note_id or not ref.get().exists:
            raise RpcError(f"Note not found: {note_id}", function_name="notes")
        return ref

    def _fn_force_approve_note(self, payload):
        ref = self._note_ref(payload)
        ref.update({"is_approved": True, "rejection_reason": None, "updated_at": _now_iso()})
        return True

    def _fn_force_reject_note(self, payload):
        ref = self._note_ref(payload)
        ref.update({
            "is_approved": False,
            "rejection_reason": payload.get("rejection_reason"),
            "updated_at": _now_iso(),
        })
        return True

    def _fn_increment_note_views(self, payload):
        ref = self._note_ref(payload)
        ref.update({"views": Increment(1)})
        return ref.get().get("views")

    def _fn_create_subject_units(self, payload):
        subject_id = payload.get("subject_id")
        units = self.db.collection("units")
        existing = {d.to_dict().get("unit_number") for d in units.where("subject_id", "==", subject_id).stream()}
        created = 0
        for number in range(1, 6):
            if number in existing:
                continue
            units.add({
                "subject_id": subject_id,
                "unit_number": number,
                "title": f"Unit {number}",
                "description": None,
                "created_at": _now_iso(),
            })
            created += 1
        return created


class MockBackend:
    """Bundle of mock Firestore, Auth, Storage and Functions sharing state."""

    def __init__(self, db_file: Optional[str] = None, bucket_name: str = "semnotes-dev.appspot.com"):
        self.db = MockFirestoreClient(db_file)
        self.auth = MockAuth()
        self.bucket = MockBucket(bucket_name)
        self.functions = MockFunctions(self.db)


_backend: Optional[MockBackend] = None


def get_mock_backend(db_file: Optional[str] = None) -> MockBackend:
    """Return the process-wide mock backend, creating it on first use."""
    global _backend
    if _backend is None:
        _backend = MockBackend(db_file)
    return _backend


def reset_mock_backend(db_file: Optional[str] = None) -> MockBackend:
    """Replace the process-wide mock backend with a fresh one."""
    global _backend
    _backend = MockBackend(db_file)
    return _backend
