"""
============================================================================
FILE: test_mock_backend.py
LOCATION: tests/test_mock_backend.py
============================================================================

PURPOSE:
    Tests for the in-memory Firebase stand-ins used by every other test.

KEY COMPONENTS:
    - TestMockQuery: filters, ordering and limits
    - TestMockDocuments: update/merge semantics and Increment transforms
    - TestMockAuth: mock ID token decoding
    - TestMockFunctions: callable functions against the mock Firestore

USAGE:
    Run with: pytest tests/test_mock_backend.py -v
============================================================================
"""

import pytest
from google.api_core.exceptions import NotFound, PreconditionFailed
from google.cloud.firestore_v1.transforms import Increment

from api.errors import RpcError
from api.mock_firestore import MockAuth, MockAuthError, MockBackend


class TestMockQuery:
    def test_where_order_and_limit(self, db):
        notes = db.collection("notes")
        notes.document("a").set({"subject_id": "s1", "views": 3, "created_at": "2024-01-01"})
        notes.document("b").set({"subject_id": "s1", "views": 9, "created_at": "2024-03-01"})
        notes.document("c").set({"subject_id": "s2", "views": 5, "created_at": "2024-02-01"})

        ids = [d.id for d in notes.where("subject_id", "==", "s1").order_by("created_at", direction="DESCENDING").stream()]
        assert ids == ["b", "a"]

        top = list(notes.order_by("views", direction="DESCENDING").limit(1).stream())
        assert top[0].id == "b"

    def test_missing_fields_sort_last(self, db):
        units = db.collection("units")
        units.document("x").set({"unit_number": None})
        units.document("y").set({"unit_number": 2})
        units.document("z").set({"unit_number": 1})

        assert [d.id for d in units.order_by("unit_number").stream()] == ["z", "y", "x"]

    def test_in_and_comparison_operators(self, db):
        subjects = db.collection("subjects")
        subjects.document("1").set({"academic_year": 1})
        subjects.document("2").set({"academic_year": 2})
        subjects.document("3").set({"academic_year": 3})

        assert {d.id for d in subjects.where("academic_year", "in", [1, 3]).stream()} == {"1", "3"}
        assert {d.id for d in subjects.where("academic_year", ">=", 2).stream()} == {"2", "3"}

    def test_queries_are_immutable(self, db):
        base = db.collection("notes")
        filtered = base.where("is_approved", "==", True)
        assert base.filters == []
        assert filtered.filters == [("is_approved", "==", True)]


class TestMockDocuments:
    def test_update_missing_document_raises_not_found(self, db):
        with pytest.raises(NotFound):
            db.collection("notes").document("missing").update({"is_approved": True})

    def test_set_merge_keeps_other_fields(self, db):
        ref = db.collection("students").document("u1")
        ref.set({"email": "u1@semnotes.test", "branch": "CSE"})
        ref.set({"branch": "ECE"}, merge=True)
        assert ref.get().to_dict() == {"email": "u1@semnotes.test", "branch": "ECE"}

    def test_increment_transform(self, db):
        ref = db.collection("notes").document("n1")
        ref.set({"views": 4})
        ref.update({"views": Increment(1)})
        assert ref.get().get("views") == 5

    def test_batch_applies_on_commit(self, db):
        ref = db.collection("notes").document("n1")
        ref.set({"is_approved": False})
        batch = db.batch()
        batch.update(ref, {"is_approved": True})
        assert ref.get().get("is_approved") is False
        batch.commit()
        assert ref.get().get("is_approved") is True


class TestMockAuth:
    def test_verify_id_token_decodes_role_and_uid(self):
        auth = MockAuth()
        claims = auth.verify_id_token("mock-token-admin-user-42")
        assert claims == {"uid": "user-42", "email": "user-42@semnotes.test", "role": "admin"}

    def test_verify_id_token_uses_registered_email(self):
        auth = MockAuth()
        auth.create_user(email="asha@college.edu", uid="asha")
        assert auth.verify_id_token("mock-token-student-asha")["email"] == "asha@college.edu"

    def test_invalid_token_rejected(self):
        with pytest.raises(MockAuthError):
            MockAuth().verify_id_token("not-a-token")


class TestMockStorage:
    def test_duplicate_upload_with_generation_match(self):
        bucket = MockBackend().bucket
        bucket.blob("notes/a.pdf").upload_from_string(b"%PDF", if_generation_match=0)
        with pytest.raises(PreconditionFailed):
            bucket.blob("notes/a.pdf").upload_from_string(b"%PDF", if_generation_match=0)


class TestMockFunctions:
    def test_force_approve_clears_rejection(self, backend):
        ref = backend.db.collection("notes").document("n1")
        ref.set({"is_approved": False, "rejection_reason": "blurry"})
        assert backend.functions.call("force_approve_note", {"note_id": "n1"}) is True
        assert ref.get().get("is_approved") is True
        assert ref.get().get("rejection_reason") is None

    def test_unknown_note_raises(self, backend):
        with pytest.raises(RpcError):
            backend.functions.call("increment_note_views", {"note_id": "nope"})

    def test_create_subject_units_is_idempotent(self, backend):
        assert backend.functions.call("create_subject_units", {"subject_id": "s1"}) == 5
        assert backend.functions.call("create_subject_units", {"subject_id": "s1"}) == 0

    def test_configured_failure(self, backend):
        backend.functions.failures["force_reject_note"] = "permission-denied"
        with pytest.raises(RpcError, match="permission-denied"):
            backend.functions.call("force_reject_note", {"note_id": "n1"})
