# engagement.py
# Bookmarks and ratings for notes

# bookmarks: one document per (user, subject, note) triple; adding the same
# bookmark twice returns the existing document.
# ratings: one document per (user, note) with id "<uid>_<note_id>", so a
# second rating replaces the first. notes.average_rating is recomputed on
# every write and rounded to two decimals.

# @see: routers/engagement.py - HTTP endpoints

from typing import Any, Dict, List, Optional

from api.config import get_db
from api.documents import DESCENDING, get_document, snapshot_to_dict, stream_dicts
from api.errors import NotFoundError, PermissionDeniedError, ValidationError
from api.logging_config import get_logger
from api.models import utc_now_iso

logger = get_logger("engagement")


class EngagementService:
    def __init__(self, db=None):
        self.db = db or get_db()
        self.bookmarks = self.db.collection("bookmarks")
        self.ratings = self.db.collection("ratings")

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------

    def add_bookmark(self, uid: str, subject_id: str, note_id: Optional[str] = None) -> Dict[str, Any]:
        if get_document(self.db, "subjects", subject_id) is None:
            raise NotFoundError("Subject not found")
        if note_id and get_document(self.db, "notes", note_id) is None:
            raise NotFoundError("Note not found")

        existing = list(
            self.bookmarks.where("user_id", "==", uid)
            .where("subject_id", "==", subject_id)
            .where("note_id", "==", note_id)
            .limit(1)
            .stream()
        )
        if existing:
            return snapshot_to_dict(existing[0])

        bookmark = {"user_id": uid, "subject_id": subject_id, "note_id": note_id, "created_at": utc_now_iso()}
        _, ref = self.bookmarks.add(bookmark)
        return {"id": ref.id, **bookmark}

    def remove_bookmark(self, uid: str, bookmark_id: str) -> None:
        bookmark = get_document(self.db, "bookmarks", bookmark_id)
        if bookmark is None:
            raise NotFoundError("Bookmark not found")
        if bookmark.get("user_id") != uid:
            raise PermissionDeniedError("Cannot remove another user's bookmark")
        self.bookmarks.document(bookmark_id).delete()

    def list_bookmarks(self, uid: str) -> List[Dict[str, Any]]:
        query = self.bookmarks.where("user_id", "==", uid).order_by("created_at", direction=DESCENDING)
        bookmarks = stream_dicts(query)
        for bookmark in bookmarks:
            bookmark["subject"] = get_document(self.db, "subjects", bookmark.get("subject_id"))
            bookmark["note"] = get_document(self.db, "notes", bookmark.get("note_id"))
        return bookmarks

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    def rate_note(self, uid: str, note_id: str, rating: int, comment: Optional[str] = None) -> Dict[str, Any]:
        """
        Store the caller's rating and refresh the note's average.

        Raises:
            ValidationError: Rating outside 1-5
            NotFoundError: Unknown or unapproved note
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        note_ref = self.db.collection("notes").document(note_id)
        note = note_ref.get()
        if not note.exists or not note.get("is_approved"):
            raise NotFoundError("Note not found")

        doc = {
            "user_id": uid,
            "note_id": note_id,
            "rating": rating,
            "comment": (comment or "").strip() or None,
            "created_at": utc_now_iso(),
        }
        self.ratings.document(f"{uid}_{note_id}").set(doc)

        average = self.average_rating(note_id)
        note_ref.update({"average_rating": average})
        logger.info("Note %s rated %d by %s (average %s)", note_id, rating, uid, average)
        return {"id": f"{uid}_{note_id}", **doc, "average_rating": average}

    def average_rating(self, note_id: str) -> Optional[float]:
        values = [r.get("rating") for r in self.list_ratings(note_id) if r.get("rating")]
        if not values:
            return None
        return round(sum(values) / len(values), 2)

    def list_ratings(self, note_id: str) -> List[Dict[str, Any]]:
        return stream_dicts(self.ratings.where("note_id", "==", note_id))
