# students.py
# Onboarding and profile management for the students collection

# students/{uid} is keyed by the Firebase Auth UID. The document is created
# by onboarding (branch, year, semester) and later edited from the profile
# page. profile_summary() gathers what the profile page shows.

# @see: routers/profile.py - HTTP endpoints
# @see: auth.py - load_profile() reads the same document per request
# @see: notes.py - recent_history()

from typing import Any, Dict, Optional

from api.config import get_db
from api.documents import DESCENDING, embed_notes, get_document, stream_dicts
from api.errors import NotFoundError, ValidationError
from api.logging_config import get_logger
from api.models import MAX_SEMESTER, MAX_YEAR, MIN_SEMESTER, MIN_YEAR, utc_now_iso
from api.notes import recent_history

logger = get_logger("students")


def is_onboarded(profile: Optional[Dict[str, Any]]) -> bool:
    """A profile is complete once branch, academic year and semester are set."""
    if not profile:
        return False
    return bool(profile.get("branch") and profile.get("academic_year") and profile.get("semester"))


def _check_academic(branch: Optional[str], academic_year: Optional[int], semester: Optional[int]) -> None:
    if branch is not None and not branch.strip():
        raise ValidationError("Branch is required")
    if academic_year is not None and not MIN_YEAR <= academic_year <= MAX_YEAR:
        raise ValidationError(f"Academic year must be between {MIN_YEAR} and {MAX_YEAR}")
    if semester is not None and not MIN_SEMESTER <= semester <= MAX_SEMESTER:
        raise ValidationError(f"Semester must be between {MIN_SEMESTER} and {MAX_SEMESTER}")


class StudentService:
    """CRUD for students documents."""

    COLLECTION = "students"

    def __init__(self, db=None):
        self.db = db or get_db()
        self.collection = self.db.collection(self.COLLECTION)

    def get_profile(self, uid: str) -> Optional[Dict[str, Any]]:
        return get_document(self.db, self.COLLECTION, uid)

    def complete_onboarding(self, uid: str, email: Optional[str], branch: str, academic_year: int,
                            semester: int) -> Dict[str, Any]:
        """
        Create or update the profile with the onboarding answers.

        Raises:
            ValidationError: Missing branch or out-of-range year/semester
        """
        if branch is None or academic_year is None or semester is None:
            raise ValidationError("Branch, academic year and semester are required")
        _check_academic(branch, academic_year, semester)

        ref = self.collection.document(uid)
        academic = {"branch": branch.strip(), "academic_year": academic_year, "semester": semester}
        if ref.get().exists:
            logger.info("Updating existing profile for %s", uid)
            ref.update(academic)
        else:
            logger.info("Creating new profile for %s", uid)
            ref.set({
                "email": email,
                "full_name": None,
                "is_admin": False,
                "created_at": utc_now_iso(),
                **academic,
            })
        return self.get_profile(uid)

    def update_profile(
        self,
        uid: str,
        full_name: Optional[str] = None,
        academic_year: Optional[int] = None,
        semester: Optional[int] = None,
        branch: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Apply the edit-profile dialog. None means "leave unchanged"."""
        _check_academic(branch, academic_year, semester)
        ref = self.collection.document(uid)
        if not ref.get().exists:
            raise NotFoundError("Profile not found")

        changes: Dict[str, Any] = {}
        if full_name is not None:
            changes["full_name"] = full_name.strip() or None
        if academic_year is not None:
            changes["academic_year"] = academic_year
        if semester is not None:
            changes["semester"] = semester
        if branch is not None:
            changes["branch"] = branch.strip()
        if changes:
            ref.update(changes)
        return self.get_profile(uid)

    def update_academic_details(self, uid: str, academic_year: int, semester: int, branch: str) -> Dict[str, Any]:
        return self.update_profile(uid, academic_year=academic_year, semester=semester, branch=branch)

    def profile_summary(self, uid: str, history_limit: int = 5) -> Dict[str, Any]:
        """Profile, own uploads with subject, upload/view/approval counts and recent history."""
        uploads = stream_dicts(
            self.db.collection("notes")
            .where("student_id", "==", uid)
            .order_by("created_at", direction=DESCENDING)
        )
        uploads = embed_notes(self.db, uploads)
        return {
            "profile": self.get_profile(uid),
            "uploads": uploads,
            "uploads_count": len(uploads),
            "views_count": sum(note.get("views") or 0 for note in uploads),
            "approved_count": sum(1 for note in uploads if note.get("is_approved")),
            "history": recent_history(self.db, uid, history_limit),
        }
