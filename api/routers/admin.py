# admin.py
# Admin dashboard, moderation and multi-upload endpoints

# GET  /api/admin/statistics                 - dashboard counters (cached)
# GET  /api/admin/charts/branches            - notes per branch
# GET  /api/admin/charts/years               - notes per academic year
# GET  /api/admin/users?search=              - students, newest first
# POST /api/admin/users/{uid}/toggle-admin   - flip is_admin
# GET  /api/admin/notes/pending              - moderation queue
# POST /api/admin/notes/{id}/approve         - redundant approval chain
# POST /api/admin/notes/{id}/reject          - delete note and PDF
# POST /api/admin/notes/{id}/force-approve   - callable function
# POST /api/admin/notes/{id}/force-reject    - callable function with reason
# POST /api/admin/multi-upload               - one PDF per unit (rate limited)

# Every route requires an administrator.

# @see: admin.py - AdminService
# @see: approval.py - ApprovalService

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status

from api.admin import AdminService
from api.approval import ApprovalService
from api.auth import get_id_token, require_admin
from api.errors import SemNotesError, to_http_exception
from api.limiter import UPLOAD_LIMIT, limiter
from api.models import CurrentUser, ForceRejectInput

router = APIRouter(prefix="/api/admin", tags=["admin"])


def get_admin_service() -> AdminService:
    return AdminService()


def get_approval_service() -> ApprovalService:
    return ApprovalService()


# ============================================================================
# DASHBOARD
# ============================================================================

@router.get("/statistics")
async def read_statistics(
    refresh: bool = Query(False, description="Bypass the statistics cache"),
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return service.statistics(use_cache=not refresh)


@router.get("/charts/branches")
async def notes_by_branch(
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return service.notes_by_branch()


@router.get("/charts/years")
async def notes_by_year(
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return service.notes_by_year()


# ============================================================================
# USERS
# ============================================================================

@router.get("/users")
async def list_users(
    search: Optional[str] = Query(None),
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return service.list_users(search)


@router.post("/users/{uid}/toggle-admin")
async def toggle_admin(
    uid: str,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    if uid == admin.uid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot change your own admin status")
    try:
        return service.toggle_admin(uid)
    except SemNotesError as exc:
        raise to_http_exception(exc)


# ============================================================================
# MODERATION
# ============================================================================

@router.get("/notes/pending")
async def pending_notes(
    admin: CurrentUser = Depends(require_admin),
    service: ApprovalService = Depends(get_approval_service),
):
    return service.list_pending()


@router.post("/notes/{note_id}/approve")
async def approve_note(
    note_id: str,
    admin: CurrentUser = Depends(require_admin),
    id_token: str = Depends(get_id_token),
    service: ApprovalService = Depends(get_approval_service),
):
    """
    Approve a pending note.

    The response lists every write strategy attempted; "verified" is false
    when the note still reads back as unapproved.
    """
    try:
        result = service.approve(note_id, id_token=id_token)
    except SemNotesError as exc:
        raise to_http_exception(exc)
    return result.to_dict()


@router.post("/notes/{note_id}/reject")
async def reject_note(
    note_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: ApprovalService = Depends(get_approval_service),
):
    try:
        note = service.reject(note_id)
    except SemNotesError as exc:
        raise to_http_exception(exc)
    return {"note_id": note_id, "deleted": True, "title": note.get("title")}


@router.post("/notes/{note_id}/force-approve")
async def force_approve_note(
    note_id: str,
    admin: CurrentUser = Depends(require_admin),
    id_token: str = Depends(get_id_token),
    service: ApprovalService = Depends(get_approval_service),
):
    return service.force_approve(note_id, id_token=id_token)


@router.post("/notes/{note_id}/force-reject")
async def force_reject_note(
    note_id: str,
    payload: ForceRejectInput,
    admin: CurrentUser = Depends(require_admin),
    id_token: str = Depends(get_id_token),
    service: ApprovalService = Depends(get_approval_service),
):
    try:
        return service.force_reject(note_id, payload.reason, id_token=id_token)
    except SemNotesError as exc:
        raise to_http_exception(exc)


# ============================================================================
# MULTI-UPLOAD
# ============================================================================

@router.post("/multi-upload")
@limiter.limit(UPLOAD_LIMIT)
async def multi_upload(
    request: Request,
    subject_id: str = Form(...),
    unit_numbers: List[int] = Form(...),
    files: List[UploadFile] = File(...),
    titles: Optional[List[str]] = Form(None),
    descriptions: Optional[List[str]] = Form(None),
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    """
    Upload one PDF per unit of a subject.

    files[i] belongs to unit_numbers[i]; titles and descriptions are
    optional and matched by position. Each unit succeeds or fails
    independently and the notes are approved immediately.
    """
    if len(files) != len(unit_numbers):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Each file needs a matching unit number",
        )
    titles = titles or []
    descriptions = descriptions or []

    units = []
    for index, (upload, unit_number) in enumerate(zip(files, unit_numbers)):
        units.append({
            "unit_number": unit_number,
            "data": await upload.read(),
            "filename": upload.filename,
            "content_type": upload.content_type,
            "title": titles[index] if index < len(titles) else None,
            "description": descriptions[index] if index < len(descriptions) else None,
        })

    try:
        return service.multi_upload(admin.uid, subject_id, units)
    except SemNotesError as exc:
        raise to_http_exception(exc)
