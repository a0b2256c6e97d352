"""
============================================================================
FILE: notes.py
LOCATION: api/notes.py
============================================================================

PURPOSE:
    Student-facing note operations: PDF upload with validation, reading a
    single note, recording views and the viewing history.

ROLE IN PROJECT:
    Backs the upload page, the PDF viewer and the "recently viewed" lists
    on the home and profile pages. New uploads always start unapproved and
    only become visible to other students after admin approval.

KEY COMPONENTS:
    - validate_upload(): metadata rules (title, description, subject, year,
      semester, unit)
    - inspect_pdf(): content type, %PDF header, size limit, page count
    - NoteService.upload_note(): store the PDF and insert the note
    - NoteService.get_note(): note with subject and uploader embedded
    - NoteService.record_view(): view counter RPC plus history upsert
    - recent_history(): newest history entries with note and subject

DEPENDENCIES:
    - External: PyMuPDF (fitz), google-cloud-firestore
    - Internal: storage.py, rpc.py, documents.py, errors.py, models.py

USAGE:
    from api.notes import NoteService

    service = NoteService()
    note = service.upload_note(uid, metadata, "unit1.pdf", "application/pdf", data)
============================================================================
"""

import time
from typing import Any, Dict, List, Optional

import fitz  # PyMuPDF
from google.api_core.exceptions import GoogleAPICallError

from api import config, rpc
from api.config import get_db, get_functions
from api.documents import DESCENDING, embed_notes, get_document, snapshot_to_dict
from api.errors import NotFoundError, RpcError, StorageError, ValidationError
from api.logging_config import get_logger
from api.models import (
    MAX_SEMESTER,
    MAX_UNIT,
    MAX_YEAR,
    MIN_SEMESTER,
    MIN_UNIT,
    MIN_YEAR,
    utc_now_iso,
)
from api.storage import StorageService, build_object_path

logger = get_logger("notes")

PDF_CONTENT_TYPE = "application/pdf"
SOURCE_ADMIN = "admin"


def validate_upload(
    title: Optional[str],
    description: Optional[str],
    subject_id: Optional[str],
    academic_year: Optional[int],
    semester: Optional[int],
    unit_number: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Check upload metadata and return the cleaned values.

    Raises:
        ValidationError: With the message shown next to the offending field
    """
    title = (title or "").strip()
    description = (description or "").strip()
    if len(title) < 3:
        raise ValidationError("Title must be at least 3 characters")
    if len(description) < 10:
        raise ValidationError("Description must be at least 10 characters")
    if not subject_id:
        raise ValidationError("Please select a subject")
    if academic_year is None or not MIN_YEAR <= academic_year <= MAX_YEAR:
        raise ValidationError(f"Academic year must be between {MIN_YEAR} and {MAX_YEAR}")
    if semester is None or not MIN_SEMESTER <= semester <= MAX_SEMESTER:
        raise ValidationError(f"Semester must be between {MIN_SEMESTER} and {MAX_SEMESTER}")
    unit_number = unit_number or 1
    if not MIN_UNIT <= unit_number <= MAX_UNIT:
        raise ValidationError(f"Unit number must be between {MIN_UNIT} and {MAX_UNIT}")
    return {
        "title": title,
        "description": description,
        "subject_id": subject_id,
        "academic_year": academic_year,
        "semester": semester,
        "unit_number": unit_number,
    }


def inspect_pdf(data: bytes, content_type: Optional[str], max_bytes: Optional[int] = None) -> int:
    """
    Validate an uploaded file as a PDF and return its page count.

    Raises:
        ValidationError: Wrong type, too large or unreadable
    """
    max_bytes = max_bytes or config.MAX_UPLOAD_BYTES
    if content_type != PDF_CONTENT_TYPE or not data.startswith(b"%PDF"):
        raise ValidationError("Please upload a PDF file")
    if len(data) > max_bytes:
        raise ValidationError(f"File size should be less than {max_bytes // (1024 * 1024)}MB")
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            return doc.page_count
    except (RuntimeError, ValueError) as exc:
        raise ValidationError(f"Could not read PDF: {exc}") from exc


def insert_note(collection, storage: StorageService, path: str, note: Dict[str, Any]):
    """
    Add the note document for an object that was just uploaded.

    If the insert fails the object is removed again so the bucket holds no
    PDF without a note.

    Raises:
        StorageError: The note could not be saved
    """
    try:
        _, ref = collection.add(note)
    except GoogleAPICallError as exc:
        logger.error("Saving note for %s failed, removing upload: %s", path, exc)
        try:
            storage.delete(path)
        except StorageError as cleanup_exc:
            logger.error("Could not remove orphaned object %s: %s", path, cleanup_exc.message)
        raise StorageError(f"Could not save note: {exc}") from exc
    return ref


def recent_history(db, user_id: str, limit: int = 5) -> List[Dict[str, Any]]:
    """Newest history entries with note (and the note's subject) embedded."""
    query = (
        db.collection("history")
        .where("user_id", "==", user_id)
        .order_by("viewed_at", direction=DESCENDING)
        .limit(limit)
    )
    entries = [snapshot_to_dict(doc) for doc in query.stream()]
    for entry in entries:
        note = get_document(db, "notes", entry.get("note_id"))
        entry["note"] = embed_notes(db, [note])[0] if note else None
    return entries


class NoteService:
    """Upload, read and view tracking for notes."""

    COLLECTION = "notes"

    def __init__(self, db=None, storage: Optional[StorageService] = None, functions=None):
        self.db = db or get_db()
        self.storage = storage or StorageService()
        self.functions = functions or get_functions()
        self.collection = self.db.collection(self.COLLECTION)

    def upload_note(
        self,
        uid: str,
        metadata: Dict[str, Any],
        filename: str,
        content_type: Optional[str],
        data: bytes,
        now_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Store a student's PDF and insert the unapproved note.

        Args:
            uid: Uploader's UID
            metadata: title, description, subject_id, academic_year,
                semester and optional unit_number
            filename: Original file name
            content_type: Declared MIME type of the file
            data: File bytes
            now_ms: Timestamp used in the object name (defaults to now)

        Returns:
            The inserted note document

        Raises:
            ValidationError: Invalid metadata, unknown subject or bad file
            StorageError: The bucket rejected the upload
        """
        fields = validate_upload(
            metadata.get("title"),
            metadata.get("description"),
            metadata.get("subject_id"),
            metadata.get("academic_year"),
            metadata.get("semester"),
            metadata.get("unit_number"),
        )
        if get_document(self.db, "subjects", fields["subject_id"]) is None:
            raise ValidationError("Subject not found")
        page_count = inspect_pdf(data, content_type)

        now_ms = now_ms or int(time.time() * 1000)
        path = build_object_path(fields["subject_id"], uid, filename, now_ms)
        self.storage.upload_pdf(path, data)
        file_url = self.storage.public_url(path)

        now = utc_now_iso()
        note = {
            "title": fields["title"],
            "description": fields["description"],
            "subject_id": fields["subject_id"],
            "student_id": uid,
            "file_url": file_url,
            "unit_number": fields["unit_number"],
            "is_approved": False,
            "views": 0,
            "downloads": 0,
            "average_rating": None,
            "page_count": page_count,
            "rejection_reason": None,
            "created_at": now,
            "updated_at": now,
        }
        ref = insert_note(self.collection, self.storage, path, note)
        logger.info("Note %s uploaded by %s (%d pages)", ref.id, uid, page_count, extra={"note_id": ref.id, "uid": uid})
        note["id"] = ref.id
        return note

    def get_note(self, note_id: str, source: Optional[str] = None) -> Dict[str, Any]:
        """Note with subject and uploader; unapproved notes only for the admin source."""
        note = get_document(self.db, self.COLLECTION, note_id)
        if note is None or (source != SOURCE_ADMIN and not note.get("is_approved")):
            raise NotFoundError("Note not found")
        return embed_notes(self.db, [note], subject=True, student=True)[0]

    def record_view(self, note_id: str, user_id: Optional[str], source: Optional[str] = None,
                    id_token: Optional[str] = None) -> bool:
        """
        Count a view and upsert the viewer's history entry.

        Skipped for admin previews and anonymous viewers. Errors are logged
        and never propagate: failing to count a view must not block reading.

        Returns:
            True when the view was processed
        """
        if not note_id or not user_id or source == SOURCE_ADMIN:
            return False

        try:
            rpc.increment_note_views(note_id, functions=self.functions, id_token=id_token)
        except RpcError as exc:
            logger.error("Error incrementing views for %s: %s", note_id, exc.message)

        history = self.db.collection("history")
        viewed_at = utc_now_iso()
        try:
            existing = list(
                history.where("user_id", "==", user_id).where("note_id", "==", note_id).limit(1).stream()
            )
            if existing:
                existing[0].reference.update({"viewed_at": viewed_at})
            else:
                history.add({"user_id": user_id, "note_id": note_id, "viewed_at": viewed_at})
        except GoogleAPICallError as exc:
            logger.error("Error updating history for %s: %s", note_id, exc)
        return True

    def recent_history(self, user_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        return recent_history(self.db, user_id, limit)
