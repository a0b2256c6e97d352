# notes.py
# Note upload, viewing and history endpoints

# POST /api/notes                    - multipart PDF upload (rate limited)
# GET  /api/notes/history            - caller's recently viewed notes
# GET  /api/notes/{id}?source=       - note with subject and uploader
# POST /api/notes/{id}/view?source=  - count a view and update history
# GET  /api/notes/{id}/file          - PDF bytes, or {"mode": "embed"} fallback
# GET  /api/notes/{id}/secure-url    - signed viewer URL

# source=admin lets administrators preview unapproved notes; such views
# are not counted.

# @see: notes.py - NoteService
# @see: pdf_retrieval.py - PdfRetriever

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import Response

from api.auth import get_current_user, get_id_token, require_onboarded
from api.errors import SemNotesError, to_http_exception
from api.limiter import UPLOAD_LIMIT, limiter
from api.models import CurrentUser
from api.notes import SOURCE_ADMIN, NoteService
from api.pdf_retrieval import PdfRetriever, is_mobile_user_agent

router = APIRouter(prefix="/api/notes", tags=["notes"])


def get_note_service() -> NoteService:
    return NoteService()


def get_pdf_retriever() -> PdfRetriever:
    return PdfRetriever()


def _check_source(source: Optional[str], user: CurrentUser) -> None:
    if source == SOURCE_ADMIN and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(UPLOAD_LIMIT)
async def upload_note(
    request: Request,
    title: str = Form(...),
    description: str = Form(...),
    subject_id: str = Form(...),
    academic_year: int = Form(...),
    semester: int = Form(...),
    unit_number: Optional[int] = Form(None),
    file: UploadFile = File(...),
    user: CurrentUser = Depends(require_onboarded),
    service: NoteService = Depends(get_note_service),
):
    """
    Upload a PDF for moderation.

    The note is created unapproved and becomes visible to other students
    once an administrator approves it.
    """
    data = await file.read()
    metadata = {
        "title": title,
        "description": description,
        "subject_id": subject_id,
        "academic_year": academic_year,
        "semester": semester,
        "unit_number": unit_number,
    }
    try:
        return service.upload_note(user.uid, metadata, file.filename or "notes.pdf", file.content_type, data)
    except SemNotesError as exc:
        raise to_http_exception(exc)


@router.get("/history")
async def read_history(
    limit: int = Query(5, ge=1, le=50),
    user: CurrentUser = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    return service.recent_history(user.uid, limit)


@router.get("/{note_id}")
async def read_note(
    note_id: str,
    source: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    _check_source(source, user)
    try:
        return service.get_note(note_id, source)
    except SemNotesError as exc:
        raise to_http_exception(exc)


@router.post("/{note_id}/view")
async def record_view(
    note_id: str,
    source: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    id_token: str = Depends(get_id_token),
    service: NoteService = Depends(get_note_service),
):
    _check_source(source, user)
    recorded = service.record_view(note_id, user.uid, source, id_token=id_token)
    return {"recorded": recorded}


@router.get("/{note_id}/file")
async def read_note_file(
    note_id: str,
    source: Optional[str] = Query(None),
    width: Optional[int] = Query(None, description="Client viewport width in pixels"),
    mobile: Optional[bool] = Query(None),
    user_agent: Optional[str] = Header(None),
    user: CurrentUser = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
    retriever: PdfRetriever = Depends(get_pdf_retriever),
):
    """Stream the PDF when any download strategy works, else return the embed URL."""
    _check_source(source, user)
    try:
        note = service.get_note(note_id, source)
    except SemNotesError as exc:
        raise to_http_exception(exc)

    is_mobile = mobile if mobile is not None else is_mobile_user_agent(user_agent, width)
    result = retriever.retrieve(note["file_url"], is_mobile=is_mobile)
    if result.is_blob:
        return Response(
            content=result.data,
            media_type="application/pdf",
            headers={"X-PDF-Strategy": result.strategy or "", "Cache-Control": "no-store"},
        )
    return {"mode": result.mode, "url": result.url, "strategy": result.strategy, "error": result.error}


@router.get("/{note_id}/secure-url")
async def read_secure_url(
    note_id: str,
    source: Optional[str] = Query(None),
    mobile: bool = Query(False),
    user: CurrentUser = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    _check_source(source, user)
    try:
        note = service.get_note(note_id, source)
    except SemNotesError as exc:
        raise to_http_exception(exc)
    result = service.storage.secure_pdf_url(note["file_url"], is_mobile=mobile)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result.error)
    return {"url": result.url}
