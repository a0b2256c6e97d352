"""
============================================================================
FILE: admin.py
LOCATION: api/admin.py
============================================================================

PURPOSE:
    Admin console data: dashboard statistics and charts, the user list
    with admin toggling, and the per-unit multi-upload of PDFs.

ROLE IN PROJECT:
    Dashboard numbers come from plain collection scans and are cached in
    Redis for a minute. Multi-upload lets an admin publish up to five unit
    PDFs for one subject at once; those notes skip moderation.

KEY COMPONENTS:
    - AdminService.statistics(): users, notes, total views, pending count
    - AdminService.notes_by_branch() / notes_by_year(): chart series
    - AdminService.list_users() / toggle_admin()
    - AdminService.multi_upload(): independent per-unit uploads
    - title_from_filename(), friendly_upload_error()

DEPENDENCIES:
    - External: google-cloud-firestore (via config), redis (via cache)
    - Internal: cache.py, storage.py, notes.py (inspect_pdf), documents.py

USAGE:
    from api.admin import AdminService

    stats = AdminService().statistics()
============================================================================
"""

import re
import time
from typing import Any, Dict, List, Optional

from google.api_core.exceptions import GoogleAPICallError

from api import config
from api.cache import ADMIN_STATS_KEY, invalidate_admin_statistics, stats_cache
from api.config import get_db
from api.documents import DESCENDING, get_document, stream_dicts
from api.errors import NotFoundError, SemNotesError, ValidationError
from api.logging_config import get_logger
from api.models import MAX_ADMIN_UNITS, utc_now_iso
from api.notes import insert_note, inspect_pdf
from api.storage import StorageService, build_object_path

logger = get_logger("admin")

YEAR_LABELS = [f"Year {year}" for year in range(1, 5)]

_UPLOAD_ERROR_MESSAGES = (
    ("object-too-large", "File is too large"),
    ("duplicate", "A file with this name already exists"),
    ("permission", "No permission to upload"),
)


def title_from_filename(filename: str, unit_number: int) -> str:
    """
    "data-structures_unit_1.pdf" -> "Data Structures Unit 1".

    Falls back to "Unit N Notes" when nothing is left of the name.
    """
    stem = re.sub(r"\.pdf$", "", filename or "", flags=re.IGNORECASE)
    stem = re.sub(r"[-_]", " ", stem).strip()
    title = " ".join(word[:1].upper() + word[1:] for word in stem.split(" "))
    return title or f"Unit {unit_number} Notes"


def friendly_upload_error(message: str) -> str:
    for needle, friendly in _UPLOAD_ERROR_MESSAGES:
        if needle in message:
            return friendly
    return message or "Upload failed"


class AdminService:
    """Dashboard, user management and multi-upload."""

    def __init__(self, db=None, storage: Optional[StorageService] = None, cache=None):
        self.db = db or get_db()
        self._storage = storage
        self.cache = cache or stats_cache

    @property
    def storage(self) -> StorageService:
        if self._storage is None:
            self._storage = StorageService()
        return self._storage

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def _compute_statistics(self) -> Dict[str, int]:
        notes = stream_dicts(self.db.collection("notes"))
        stats = {
            "users_count": len(stream_dicts(self.db.collection("students"))),
            "notes_count": len(notes),
            "total_views": sum(note.get("views") or 0 for note in notes),
            "pending_count": sum(1 for note in notes if not note.get("is_approved")),
        }
        logger.debug("Computed dashboard statistics: %s", stats)
        return stats

    def statistics(self, use_cache: bool = True) -> Dict[str, int]:
        """Dashboard counts, served from the cache unless use_cache is False."""
        return self.cache.get_or_compute(
            ADMIN_STATS_KEY, self._compute_statistics, config.STATS_CACHE_TTL, refresh=not use_cache,
        )

    def _notes_with_subject(self) -> List[Dict[str, Any]]:
        subjects = {s["id"]: s for s in stream_dicts(self.db.collection("subjects"))}
        notes = stream_dicts(self.db.collection("notes"))
        for note in notes:
            note["subject"] = subjects.get(note.get("subject_id"))
        return notes

    def notes_by_branch(self) -> List[Dict[str, Any]]:
        counts: Dict[str, int] = {}
        for note in self._notes_with_subject():
            branch = (note.get("subject") or {}).get("branch")
            if branch:
                counts[branch] = counts.get(branch, 0) + 1
        return [{"name": name, "value": value} for name, value in counts.items()]

    def notes_by_year(self) -> List[Dict[str, Any]]:
        counts = {label: 0 for label in YEAR_LABELS}
        for note in self._notes_with_subject():
            year = (note.get("subject") or {}).get("academic_year")
            if year:
                label = f"Year {year}"
                counts[label] = counts.get(label, 0) + 1
        return [{"name": name, "value": value} for name, value in counts.items()]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def list_users(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        users = stream_dicts(self.db.collection("students").order_by("created_at", direction=DESCENDING))
        if not search:
            return users
        needle = search.lower()
        return [
            user for user in users
            if any(needle in (user.get(key) or "").lower() for key in ("email", "full_name", "branch"))
        ]

    def toggle_admin(self, uid: str) -> Dict[str, Any]:
        ref = self.db.collection("students").document(uid)
        snapshot = ref.get()
        if not snapshot.exists:
            raise NotFoundError("User not found")
        new_status = not bool(snapshot.get("is_admin"))
        ref.update({"is_admin": new_status})
        logger.info("Admin status for %s set to %s", uid, new_status)
        return get_document(self.db, "students", uid)

    # ------------------------------------------------------------------
    # Multi-upload
    # ------------------------------------------------------------------

    def _upload_unit(self, admin_uid: str, subject_id: str, unit: Dict[str, Any]) -> Dict[str, Any]:
        unit_number = unit["unit_number"]
        filename = unit.get("filename") or f"unit{unit_number}.pdf"
        data = unit["data"]
        title = (unit.get("title") or "").strip()
        description = (unit.get("description") or "").strip()
        if title and len(title) < 3:
            raise ValidationError("Title must be at least 3 characters")
        if description and len(description) < 10:
            raise ValidationError("Description must be at least 10 characters")
        page_count = inspect_pdf(data, unit.get("content_type"))

        path = build_object_path(
            subject_id, admin_uid, filename, int(time.time() * 1000),
            unit_number=unit_number, admin=True,
        )
        self.storage.upload_pdf(path, data)
        now = utc_now_iso()
        note = {
            "title": title or title_from_filename(filename, unit_number),
            "description": description or f"Notes for Unit {unit_number}",
            "subject_id": subject_id,
            "student_id": admin_uid,
            "file_url": self.storage.public_url(path),
            "unit_number": unit_number,
            "is_approved": True,
            "views": 0,
            "downloads": 0,
            "average_rating": None,
            "page_count": page_count,
            "rejection_reason": None,
            "created_at": now,
            "updated_at": now,
        }
        ref = insert_note(self.db.collection("notes"), self.storage, path, note)
        return {"id": ref.id, **note}

    def multi_upload(self, admin_uid: str, subject_id: str, units: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Upload one PDF per unit; each unit succeeds or fails on its own.

        Args:
            admin_uid: Uploading admin's UID
            subject_id: Target subject
            units: dicts with unit_number (1-5), data, filename,
                content_type and optional title/description

        Returns:
            {"results": [{unit_number, status, note_id | error}],
             "success_count": int, "total": int}

        Raises:
            ValidationError: No files, unknown subject or bad unit numbers
        """
        if get_document(self.db, "subjects", subject_id) is None:
            raise ValidationError("Please select a subject")
        units = [unit for unit in units if unit.get("data")]
        if not units:
            raise ValidationError("Please upload at least one PDF file")
        numbers = [unit.get("unit_number") for unit in units]
        if any(isinstance(n, bool) or not isinstance(n, int) or not 1 <= n <= MAX_ADMIN_UNITS for n in numbers):
            raise ValidationError(f"Unit number must be between 1 and {MAX_ADMIN_UNITS}")

        results = []
        success_count = 0
        for unit in units:
            unit_number = unit["unit_number"]
            logger.info("Starting upload for Unit %s", unit_number)
            try:
                note = self._upload_unit(admin_uid, subject_id, unit)
            except (SemNotesError, GoogleAPICallError) as exc:
                detail = exc.message if isinstance(exc, SemNotesError) else str(exc)
                logger.error("Error uploading Unit %s: %s", unit_number, detail, extra={"subject_id": subject_id})
                results.append({"unit_number": unit_number, "status": "error", "error": friendly_upload_error(detail)})
                continue
            success_count += 1
            results.append({"unit_number": unit_number, "status": "success", "note_id": note["id"]})

        logger.info("Upload complete. %d of %d files uploaded successfully", success_count, len(units))
        if success_count:
            invalidate_admin_statistics(self.cache)
        return {"results": results, "success_count": success_count, "total": len(units)}
