"""
============================================================================
FILE: test_notes.py
LOCATION: tests/test_notes.py
============================================================================

PURPOSE:
    Tests for note upload validation, note reads and view tracking.

KEY COMPONENTS:
    - TestValidateUpload: field messages in check order
    - TestInspectPdf: type, size and page count
    - TestUploadNote: storage object plus unapproved note document
    - TestGetNote: approval visibility and embedded relations
    - TestRecordView: view counter and history upsert

USAGE:
    Run with: pytest tests/test_notes.py -v
============================================================================
"""

import pytest
from google.api_core.exceptions import ServiceUnavailable

from api.errors import NotFoundError, StorageError, ValidationError
from api.mock_firestore import MockCollectionReference, MockQuery
from api.notes import NoteService, inspect_pdf, validate_upload

VALID = {
    "title": "Trees",
    "description": "Binary trees and traversals",
    "subject_id": "s1",
    "academic_year": 2,
    "semester": 1,
}


class TestValidateUpload:
    @pytest.mark.parametrize("field,value,message", [
        ("title", "ab", "Title must be at least 3 characters"),
        ("description", "short", "Description must be at least 10 characters"),
        ("subject_id", "", "Please select a subject"),
        ("academic_year", 5, "Academic year must be between 1 and 4"),
        ("semester", 3, "Semester must be between 1 and 2"),
        ("unit_number", 11, "Unit number must be between 1 and 10"),
    ])
    def test_messages(self, field, value, message):
        fields = {**VALID, field: value}
        with pytest.raises(ValidationError) as exc_info:
            validate_upload(**fields)
        assert exc_info.value.message == message

    def test_whitespace_is_trimmed_before_length_checks(self):
        with pytest.raises(ValidationError, match="Title"):
            validate_upload(**{**VALID, "title": "  ab  "})

    def test_unit_defaults_to_one(self):
        assert validate_upload(**VALID)["unit_number"] == 1


class TestInspectPdf:
    def test_page_count(self, pdf_bytes):
        assert inspect_pdf(pdf_bytes, "application/pdf") == 2

    def test_wrong_content_type(self, pdf_bytes):
        with pytest.raises(ValidationError, match="Please upload a PDF file"):
            inspect_pdf(pdf_bytes, "image/png")

    def test_not_a_pdf(self):
        with pytest.raises(ValidationError, match="Please upload a PDF file"):
            inspect_pdf(b"hello", "application/pdf")

    def test_too_large(self):
        data = b"%PDF-1.7" + b"0" * (1024 * 1024)
        with pytest.raises(ValidationError, match="File size should be less than 1MB"):
            inspect_pdf(data, "application/pdf", max_bytes=1024 * 1024)


class TestUploadNote:
    def test_upload_stores_file_and_inserts_unapproved_note(self, seed, backend, pdf_bytes):
        subject_id = seed.subject()
        metadata = {**VALID, "subject_id": subject_id, "unit_number": 3}

        note = NoteService().upload_note("student1", metadata, "unit 3.pdf", "application/pdf", pdf_bytes,
                                         now_ms=1700000000000)

        assert note["is_approved"] is False
        assert note["page_count"] == 2
        assert note["unit_number"] == 3
        assert note["views"] == 0
        object_name = f"notes/subject_{subject_id}/student1_1700000000000_unit_3.pdf"
        assert object_name in backend.bucket._objects
        assert note["file_url"].endswith(object_name)
        stored = backend.db.collection("notes").document(note["id"]).get().to_dict()
        assert stored["student_id"] == "student1"

    def test_unknown_subject(self, backend, pdf_bytes):
        with pytest.raises(ValidationError, match="Subject not found"):
            NoteService().upload_note("student1", VALID, "a.pdf", "application/pdf", pdf_bytes)

    def test_duplicate_object_not_inserted(self, seed, backend, pdf_bytes):
        subject_id = seed.subject()
        metadata = {**VALID, "subject_id": subject_id}
        service = NoteService()
        service.upload_note("student1", metadata, "a.pdf", "application/pdf", pdf_bytes, now_ms=1)
        with pytest.raises(StorageError):
            service.upload_note("student1", metadata, "a.pdf", "application/pdf", pdf_bytes, now_ms=1)
        assert len(list(backend.db.collection("notes").stream())) == 1

    def test_failed_insert_removes_uploaded_file(self, seed, backend, pdf_bytes, monkeypatch):
        subject_id = seed.subject()

        def failing_add(self, data):
            raise ServiceUnavailable("firestore down")

        monkeypatch.setattr(MockCollectionReference, "add", failing_add)

        with pytest.raises(StorageError, match="Could not save note"):
            NoteService().upload_note("student1", {**VALID, "subject_id": subject_id}, "a.pdf",
                                      "application/pdf", pdf_bytes)
        assert backend.bucket._objects == {}


class TestGetNote:
    def test_approved_note_with_relations(self, seed):
        seed.student("student1", full_name="Asha")
        subject_id = seed.subject(name="Operating Systems")
        note_id = seed.note(subject_id)

        note = NoteService().get_note(note_id)

        assert note["subject"]["name"] == "Operating Systems"
        assert note["student"]["full_name"] == "Asha"

    def test_unapproved_hidden_from_students(self, seed):
        note_id = seed.note(seed.subject(), approved=False)
        with pytest.raises(NotFoundError):
            NoteService().get_note(note_id)

    def test_unapproved_visible_to_admin_source(self, seed):
        note_id = seed.note(seed.subject(), approved=False)
        assert NoteService().get_note(note_id, source="admin")["id"] == note_id

    def test_missing_note(self, backend):
        with pytest.raises(NotFoundError):
            NoteService().get_note("nope")


class TestRecordView:
    def test_first_view_creates_history(self, seed, backend):
        note_id = seed.note(seed.subject())

        assert NoteService().record_view(note_id, "student1") is True

        assert backend.db.collection("notes").document(note_id).get().get("views") == 1
        history = list(backend.db.collection("history").where("user_id", "==", "student1").stream())
        assert len(history) == 1
        assert history[0].to_dict()["note_id"] == note_id

    def test_repeat_view_updates_existing_entry(self, seed, backend):
        note_id = seed.note(seed.subject())
        service = NoteService()
        service.record_view(note_id, "student1")
        first = list(backend.db.collection("history").stream())[0].to_dict()["viewed_at"]
        service.record_view(note_id, "student1")

        history = list(backend.db.collection("history").stream())
        assert len(history) == 1
        assert history[0].to_dict()["viewed_at"] >= first
        assert backend.db.collection("notes").document(note_id).get().get("views") == 2

    def test_admin_preview_and_anonymous_skipped(self, seed, backend):
        note_id = seed.note(seed.subject())
        service = NoteService()
        assert service.record_view(note_id, "student1", source="admin") is False
        assert service.record_view(note_id, None) is False
        assert backend.functions.calls == []

    def test_counter_failure_still_records_history(self, seed, backend):
        note_id = seed.note(seed.subject())
        backend.functions.failures["increment_note_views"] = "unavailable"

        assert NoteService().record_view(note_id, "student1") is True

        assert backend.db.collection("notes").document(note_id).get().get("views") == 0
        assert len(list(backend.db.collection("history").stream())) == 1

    def test_history_lookup_failure_does_not_abort_view(self, seed, backend, monkeypatch):
        note_id = seed.note(seed.subject())
        original_stream = MockQuery.stream

        def stream(self):
            if self.collection.path == "history":
                raise ServiceUnavailable("firestore down")
            return original_stream(self)

        monkeypatch.setattr(MockQuery, "stream", stream)

        assert NoteService().record_view(note_id, "student1") is True
        assert backend.db.collection("notes").document(note_id).get().get("views") == 1

    def test_recent_history_embeds_note_and_subject(self, seed):
        subject_id = seed.subject(name="Networks")
        note_id = seed.note(subject_id)
        service = NoteService()
        service.record_view(note_id, "student1")

        entries = service.recent_history("student1")

        assert entries[0]["note"]["id"] == note_id
        assert entries[0]["note"]["subject"]["name"] == "Networks"
