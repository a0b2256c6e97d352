# profile.py
# Current user, onboarding and profile endpoints

# GET  /api/auth/me              - caller, admin flag, onboarding state
# GET  /api/profile              - own students document
# PUT  /api/profile              - edit-profile dialog
# POST /api/profile/onboarding   - first-login branch/year/semester
# PUT  /api/profile/academic     - edit academic details
# GET  /api/profile/summary      - uploads, counts and recent history

# @see: students.py - StudentService

from fastapi import APIRouter, Depends, HTTPException, status

from api.auth import get_current_user
from api.errors import SemNotesError, to_http_exception
from api.models import AcademicDetailsInput, CurrentUser, OnboardingInput, ProfileUpdateInput
from api.students import StudentService, is_onboarded

router = APIRouter(prefix="/api", tags=["profile"])


def get_student_service() -> StudentService:
    return StudentService()


@router.get("/auth/me")
async def read_me(user: CurrentUser = Depends(get_current_user)):
    profile = user.profile.model_dump() if user.profile else None
    return {
        "uid": user.uid,
        "email": user.email,
        "is_admin": user.is_admin,
        "onboarded": is_onboarded(profile),
        "profile": profile,
    }


@router.get("/profile")
async def read_profile(
    user: CurrentUser = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    profile = service.get_profile(user.uid)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


@router.put("/profile")
async def update_profile(
    payload: ProfileUpdateInput,
    user: CurrentUser = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    try:
        return service.update_profile(
            user.uid,
            full_name=payload.full_name,
            academic_year=payload.academic_year,
            semester=payload.semester,
            branch=payload.branch,
        )
    except SemNotesError as exc:
        raise to_http_exception(exc)


@router.post("/profile/onboarding")
async def complete_onboarding(
    payload: OnboardingInput,
    user: CurrentUser = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    try:
        return service.complete_onboarding(
            user.uid, user.email, payload.branch, payload.academic_year, payload.semester,
        )
    except SemNotesError as exc:
        raise to_http_exception(exc)


@router.put("/profile/academic")
async def update_academic_details(
    payload: AcademicDetailsInput,
    user: CurrentUser = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    try:
        return service.update_academic_details(
            user.uid, payload.academic_year, payload.semester, payload.branch,
        )
    except SemNotesError as exc:
        raise to_http_exception(exc)


@router.get("/profile/summary")
async def profile_summary(
    user: CurrentUser = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    return service.profile_summary(user.uid)
