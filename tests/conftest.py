# conftest.py
# Shared fixtures for the SemNotes test suite
#
# Every test gets a fresh in-memory mock backend (Firestore, Auth, Storage,
# callable Functions) and the cached clients in api.config are dropped so
# services pick it up.
#
# @see: api/mock_firestore.py - MockBackend
# @see: ../conftest.py - Test-mode environment flags

import fitz
import pytest
from fastapi.testclient import TestClient

from api import config
from api.cache import StatsCache
from api.mock_firestore import reset_mock_backend
from api.models import utc_now_iso


def make_pdf(pages: int = 1, text: str = "SemNotes test page") -> bytes:
    """Build a real PDF in memory."""
    doc = fitz.open()
    for number in range(pages):
        page = doc.new_page()
        page.insert_text((72, 72), f"{text} {number + 1}")
    data = doc.tobytes()
    doc.close()
    return data


def auth_header(uid: str, role: str = "student") -> dict:
    return {"Authorization": f"Bearer mock-token-{role}-{uid}"}


class FakeRedis:
    """Dict-backed stand-in for the few redis.Redis calls StatsCache makes."""

    def __init__(self):
        self.store = {}

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value

    def delete(self, key):
        self.store.pop(key, None)


class Seeder:
    """Writes fixture documents straight into the mock Firestore."""

    def __init__(self, backend):
        self.backend = backend
        self.db = backend.db

    def student(self, uid="student1", branch="CSE", academic_year=2, semester=1, is_admin=False,
                email=None, full_name=None):
        self.db.collection("students").document(uid).set({
            "email": email or f"{uid}@semnotes.test",
            "full_name": full_name,
            "branch": branch,
            "academic_year": academic_year,
            "semester": semester,
            "is_admin": is_admin,
            "created_at": utc_now_iso(),
        })
        return uid

    def admin(self, uid="admin1"):
        return self.student(uid, is_admin=True)

    def subject(self, name="Data Structures", branch="CSE", academic_year=2, semester=1, is_common=False):
        _, ref = self.db.collection("subjects").add({
            "name": name,
            "branch": branch,
            "academic_year": academic_year,
            "semester": semester,
            "is_common": is_common,
            "created_at": utc_now_iso(),
        })
        return ref.id

    def note(self, subject_id, student_id="student1", approved=True, title="Linked Lists",
             stored_bytes=None, created_at=None, **extra):
        path = f"subject_{subject_id}/{student_id}_{len(self.backend.bucket._objects)}_notes.pdf"
        blob = self.backend.bucket.blob(f"{config.NOTES_BUCKET_PREFIX}/{path}")
        if stored_bytes is not None:
            blob.upload_from_string(stored_bytes, content_type="application/pdf")
        doc = {
            "title": title,
            "description": "Lecture notes for the unit",
            "subject_id": subject_id,
            "student_id": student_id,
            "file_url": blob.public_url,
            "unit_number": 1,
            "is_approved": approved,
            "views": 0,
            "downloads": 0,
            "average_rating": None,
            "page_count": 1,
            "rejection_reason": None,
            "created_at": created_at or utc_now_iso(),
            "updated_at": created_at or utc_now_iso(),
        }
        doc.update(extra)
        _, ref = self.db.collection("notes").add(doc)
        return ref.id


@pytest.fixture
def backend():
    config.reset_clients()
    fresh = reset_mock_backend()
    yield fresh
    config.reset_clients()


@pytest.fixture
def db(backend):
    return backend.db


@pytest.fixture
def seed(backend):
    return Seeder(backend)


@pytest.fixture
def pdf_bytes():
    return make_pdf(pages=2)


@pytest.fixture
def client(backend):
    from api.main import app

    app.dependency_overrides = {}
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


@pytest.fixture
def redis_cache():
    cache = StatsCache(enabled=True)
    cache._client = FakeRedis()
    return cache


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def as_user():
    return auth_header
