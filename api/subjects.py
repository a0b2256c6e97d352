# subjects.py
# Subject catalogue: explore/search, the student's own subjects, subject
# detail with its approved notes, and the per-subject units.

# Subjects are seeded by tools/seed_subjects.py; units are created by the
# create_subject_units callable function (units 1-5 per subject).

# @see: routers/subjects.py - HTTP endpoints
# @see: rpc.py - create_subject_units
# @see: tools/seed_subjects.py - catalogue seeding

from typing import Any, Dict, List, Optional

from api import rpc
from api.config import get_db, get_functions
from api.documents import ASCENDING, DESCENDING, embed_notes, get_document, stream_dicts
from api.errors import NotFoundError


def subject_matches(subject: Dict[str, Any], term: str) -> bool:
    """Case-insensitive match on name, branch, "Year N" or "Semester N"."""
    needle = term.strip().lower()
    if not needle:
        return True
    haystacks = (
        subject.get("name") or "",
        subject.get("branch") or "",
        f"Year {subject.get('academic_year')}",
        f"Semester {subject.get('semester')}",
    )
    return any(needle in value.lower() for value in haystacks)


class SubjectService:
    COLLECTION = "subjects"

    def __init__(self, db=None, functions=None):
        self.db = db or get_db()
        self.functions = functions
        self.collection = self.db.collection(self.COLLECTION)

    def list_subjects(self) -> List[Dict[str, Any]]:
        return sorted(stream_dicts(self.collection), key=lambda s: (s.get("name") or "").lower())

    def search_subjects(self, term: Optional[str]) -> List[Dict[str, Any]]:
        subjects = self.list_subjects()
        if not term:
            return subjects
        return [s for s in subjects if subject_matches(s, term)]

    def subjects_for_student(self, profile: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Subjects for the student's year and semester.

        A subject qualifies when its branch equals the student's branch or
        it is marked common to all branches.
        """
        if not profile:
            return []
        query = (
            self.collection
            .where("academic_year", "==", profile.get("academic_year"))
            .where("semester", "==", profile.get("semester"))
        )
        branch = profile.get("branch")
        subjects = [s for s in stream_dicts(query) if s.get("branch") == branch or s.get("is_common")]
        return sorted(subjects, key=lambda s: (s.get("name") or "").lower())

    def get_subject(self, subject_id: str) -> Dict[str, Any]:
        subject = get_document(self.db, self.COLLECTION, subject_id)
        if subject is None:
            raise NotFoundError("Subject not found")
        return subject

    def subject_notes(self, subject_id: str) -> List[Dict[str, Any]]:
        """Approved notes for a subject, newest first, each with its uploader."""
        query = (
            self.db.collection("notes")
            .where("subject_id", "==", subject_id)
            .where("is_approved", "==", True)
            .order_by("created_at", direction=DESCENDING)
        )
        return embed_notes(self.db, stream_dicts(query), subject=False, student=True)

    def list_units(self, subject_id: str) -> List[Dict[str, Any]]:
        query = self.db.collection("units").where("subject_id", "==", subject_id).order_by("unit_number", direction=ASCENDING)
        return stream_dicts(query)

    def create_subject_units(self, subject_id: str, id_token: Optional[str] = None) -> List[Dict[str, Any]]:
        """Ask the backend to create the standard units, then return them."""
        self.get_subject(subject_id)
        rpc.create_subject_units(subject_id, functions=self.functions or get_functions(), id_token=id_token)
        return self.list_units(subject_id)
