"""
============================================================================
FILE: approval.py
LOCATION: api/approval.py
============================================================================

PURPOSE:
    Admin moderation of uploaded notes: the pending queue, approval with
    redundant write strategies, rejection, and the force approve/reject
    callable functions.

ROLE IN PROJECT:
    Security rules and caching have historically made a single approval
    write unreliable, so approve() tries each strategy in order and then
    re-reads the note to confirm the outcome:

        1. read the note (404 if missing, stop if already approved)
        2. direct document update
        3. force_approve_note callable function
        4. privileged batched write, only when 2 and 3 both failed
        5. verification read

    A failed verification is reported in ApprovalResult, never raised.
    Every state change drops the cached dashboard statistics.

KEY COMPONENTS:
    - ApprovalResult: per-strategy outcome and verification flag
    - ApprovalService.list_pending(): unapproved notes, newest first
    - ApprovalService.approve(): strategy chain described above
    - ApprovalService.reject(): delete note document and its PDF
    - ApprovalService.force_approve() / force_reject(): RPC wrappers

DEPENDENCIES:
    - External: google-cloud-firestore, google-api-core
    - Internal: rpc.py, storage.py, cache.py, documents.py, errors.py

USAGE:
    from api.approval import ApprovalService

    result = ApprovalService().approve(note_id)
    if not result.verified:
        ...
============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from google.api_core.exceptions import GoogleAPICallError

from api import rpc
from api.cache import invalidate_admin_statistics
from api.config import get_db, get_functions
from api.documents import DESCENDING, embed_notes, get_document, stream_dicts
from api.errors import NotFoundError, StorageError, ValidationError
from api.logging_config import get_logger
from api.models import utc_now_iso
from api.storage import StorageService, extract_path_from_url

logger = get_logger("approval")

STRATEGY_DIRECT = "direct_update"
STRATEGY_RPC = "rpc_force_approve"
STRATEGY_BATCH = "batched_write"


@dataclass
class ApprovalResult:
    """Outcome of ApprovalService.approve()."""
    note_id: str
    already_approved: bool = False
    strategies: List[Tuple[str, bool, str]] = field(default_factory=list)
    verified: bool = False

    @property
    def succeeded(self) -> bool:
        return self.already_approved or self.verified

    def to_dict(self) -> Dict[str, Any]:
        return {
            "note_id": self.note_id,
            "already_approved": self.already_approved,
            "strategies": [
                {"strategy": name, "ok": ok, "detail": detail} for name, ok, detail in self.strategies
            ],
            "verified": self.verified,
        }


class ApprovalService:
    """Moderation queue and approval strategies."""

    COLLECTION = "notes"

    def __init__(self, db=None, storage: Optional[StorageService] = None, functions=None, cache=None):
        self.db = db or get_db()
        self.storage = storage
        self.functions = functions or get_functions()
        self.cache = cache
        self.collection = self.db.collection(self.COLLECTION)

    def list_pending(self) -> List[Dict[str, Any]]:
        query = self.collection.where("is_approved", "==", False).order_by("created_at", direction=DESCENDING)
        return embed_notes(self.db, stream_dicts(query), subject=True, student=True)

    def _approval_fields(self) -> Dict[str, Any]:
        return {"is_approved": True, "updated_at": utc_now_iso()}

    def approve(self, note_id: str, id_token: Optional[str] = None) -> ApprovalResult:
        """
        Approve a note, trying each write strategy until one works.

        Raises:
            NotFoundError: The note does not exist
        """
        result = ApprovalResult(note_id=note_id)
        ref = self.collection.document(note_id)

        snapshot = ref.get()
        if not snapshot.exists:
            raise NotFoundError("Note not found")
        if snapshot.get("is_approved"):
            logger.info("Note %s is already approved, skipping update", note_id)
            result.already_approved = True
            result.verified = True
            return result

        try:
            ref.update(self._approval_fields())
            result.strategies.append((STRATEGY_DIRECT, True, "updated"))
        except GoogleAPICallError as exc:
            logger.warning("Direct update failed for %s, trying RPC function: %s", note_id, exc)
            result.strategies.append((STRATEGY_DIRECT, False, str(exc)))

        outcome = rpc.force_approve_note(note_id, functions=self.functions, id_token=id_token)
        if outcome["success"]:
            result.strategies.append((STRATEGY_RPC, True, "called"))
        else:
            logger.warning("RPC function failed for %s: %s", note_id, outcome["error"])
            result.strategies.append((STRATEGY_RPC, False, outcome["error"]))

        if not any(ok for _, ok, _ in result.strategies):
            logger.warning("Both update methods failed for %s, trying batched write", note_id)
            try:
                batch = self.db.batch()
                batch.update(ref, self._approval_fields())
                batch.commit()
                result.strategies.append((STRATEGY_BATCH, True, "committed"))
            except GoogleAPICallError as exc:
                logger.error("Batched write failed for %s: %s", note_id, exc)
                result.strategies.append((STRATEGY_BATCH, False, str(exc)))

        verify = ref.get()
        result.verified = bool(verify.exists and verify.get("is_approved"))
        if result.verified:
            logger.info("Approval confirmed for note %s", note_id, extra={"note_id": note_id})
        else:
            logger.error("Approval failed: note %s is still not approved", note_id, extra={"note_id": note_id})

        invalidate_admin_statistics(self.cache)
        return result

    def reject(self, note_id: str) -> Dict[str, Any]:
        """
        Delete a pending note and its stored PDF.

        Raises:
            NotFoundError: The note does not exist
        """
        note = get_document(self.db, self.COLLECTION, note_id)
        if note is None:
            raise NotFoundError("Note not found")

        self.collection.document(note_id).delete()
        logger.info("Note %s rejected and deleted", note_id)

        path = extract_path_from_url(note.get("file_url") or "")
        if path:
            storage = self.storage or StorageService()
            try:
                storage.delete(path)
            except StorageError as exc:
                logger.error("Could not delete object for rejected note %s: %s", note_id, exc.message)

        invalidate_admin_statistics(self.cache)
        return note

    def force_approve(self, note_id: str, id_token: Optional[str] = None) -> Dict[str, Any]:
        outcome = rpc.force_approve_note(note_id, functions=self.functions, id_token=id_token)
        invalidate_admin_statistics(self.cache)
        return outcome

    def force_reject(self, note_id: str, reason: Optional[str], id_token: Optional[str] = None) -> Dict[str, Any]:
        """
        Reject a note through the callable function, keeping the document.

        Raises:
            ValidationError: The reason is missing or blank
        """
        if not reason or not reason.strip():
            raise ValidationError("Please provide a reason for rejection")
        outcome = rpc.force_reject_note(note_id, reason.strip(), functions=self.functions, id_token=id_token)
        invalidate_admin_statistics(self.cache)
        return outcome
