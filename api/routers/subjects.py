# subjects.py
# Subject catalogue endpoints

# GET  /api/subjects?search=     - explore page (all subjects, filtered)
# GET  /api/subjects/mine        - home page subjects for the caller
# GET  /api/subjects/{id}        - subject detail
# GET  /api/subjects/{id}/notes  - approved notes with uploader
# GET  /api/subjects/{id}/units  - units of the subject
# POST /api/subjects/{id}/units  - create the standard units (admin)

# @see: subjects.py - SubjectService

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.auth import get_current_user, get_id_token, require_admin, require_onboarded
from api.errors import SemNotesError, to_http_exception
from api.models import CurrentUser, Subject, Unit
from api.subjects import SubjectService

router = APIRouter(prefix="/api/subjects", tags=["subjects"])


def get_subject_service() -> SubjectService:
    return SubjectService()


@router.get("", response_model=List[Subject])
async def list_subjects(
    search: Optional[str] = Query(None, description="Matches name, branch, 'Year N' or 'Semester N'"),
    user: CurrentUser = Depends(get_current_user),
    service: SubjectService = Depends(get_subject_service),
):
    return service.search_subjects(search)


@router.get("/mine", response_model=List[Subject])
async def my_subjects(
    user: CurrentUser = Depends(require_onboarded),
    service: SubjectService = Depends(get_subject_service),
):
    return service.subjects_for_student(user.profile.model_dump())


@router.get("/{subject_id}", response_model=Subject)
async def get_subject(
    subject_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: SubjectService = Depends(get_subject_service),
):
    try:
        return service.get_subject(subject_id)
    except SemNotesError as exc:
        raise to_http_exception(exc)


@router.get("/{subject_id}/notes")
async def subject_notes(
    subject_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: SubjectService = Depends(get_subject_service),
):
    return service.subject_notes(subject_id)


@router.get("/{subject_id}/units", response_model=List[Unit])
async def list_units(
    subject_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: SubjectService = Depends(get_subject_service),
):
    return service.list_units(subject_id)


@router.post("/{subject_id}/units", response_model=List[Unit])
async def create_units(
    subject_id: str,
    user: CurrentUser = Depends(require_admin),
    id_token: str = Depends(get_id_token),
    service: SubjectService = Depends(get_subject_service),
):
    try:
        return service.create_subject_units(subject_id, id_token=id_token)
    except SemNotesError as exc:
        raise to_http_exception(exc)
