"""
============================================================================
FILE: models.py
LOCATION: api/models.py
============================================================================

PURPOSE:
    Pydantic models for the SemNotes Firestore documents and API inputs.

ROLE IN PROJECT:
    Centralizes the schema of students, subjects, units, notes, history,
    bookmarks and ratings so the services and routers validate the same
    shapes. Request models accept both snake_case and camelCase keys.

KEY COMPONENTS:
    - StudentProfile, OnboardingInput, ProfileUpdateInput, AcademicDetailsInput
    - Subject, Unit
    - Note, NoteUploadInput, HistoryEntry
    - Bookmark, BookmarkInput, Rating, RatingInput
    - ForceRejectInput, UnitUploadInput
    - CurrentUser: authenticated caller resolved by auth.get_current_user

DEPENDENCIES:
    - External: pydantic
    - Internal: None

USAGE:
    from api.models import Note, OnboardingInput
============================================================================
"""

import datetime
import typing

import pydantic


MIN_YEAR, MAX_YEAR = 1, 4
MIN_SEMESTER, MAX_SEMESTER = 1, 2
MIN_UNIT, MAX_UNIT = 1, 10
MAX_ADMIN_UNITS = 5


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def _alias(*names: str) -> pydantic.AliasChoices:
    return pydantic.AliasChoices(*names)


# ============================================================================
# STUDENTS
# ============================================================================


class StudentProfile(pydantic.BaseModel):
    """Represents a document in the students collection."""

    model_config = pydantic.ConfigDict(populate_by_name=True)

    id: str = pydantic.Field(..., description="Firebase Auth UID")
    email: typing.Optional[str] = None
    full_name: typing.Optional[str] = None
    branch: typing.Optional[str] = None
    academic_year: typing.Optional[int] = None
    semester: typing.Optional[int] = None
    is_admin: bool = False
    created_at: typing.Optional[str] = pydantic.Field(default_factory=utc_now_iso)

    @property
    def is_onboarded(self) -> bool:
        return bool(self.branch and self.academic_year and self.semester)


class OnboardingInput(pydantic.BaseModel):
    """Input for the first-login onboarding form."""

    branch: str = pydantic.Field(..., min_length=1)
    academic_year: int = pydantic.Field(
        ...,
        ge=MIN_YEAR,
        le=MAX_YEAR,
        validation_alias=_alias("academic_year", "academicYear", "year"),
    )
    semester: int = pydantic.Field(..., ge=MIN_SEMESTER, le=MAX_SEMESTER)

    @pydantic.field_validator("branch")
    @classmethod
    def strip_branch(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Branch is required")
        return value


class AcademicDetailsInput(OnboardingInput):
    """Input for editing branch, year and semester from the profile page."""


class ProfileUpdateInput(pydantic.BaseModel):
    """Input for the edit-profile dialog. Omitted fields are left unchanged."""

    full_name: typing.Optional[str] = pydantic.Field(
        None,
        validation_alias=_alias("full_name", "fullName"),
    )
    branch: typing.Optional[str] = None
    academic_year: typing.Optional[int] = pydantic.Field(
        None,
        ge=MIN_YEAR,
        le=MAX_YEAR,
        validation_alias=_alias("academic_year", "academicYear"),
    )
    semester: typing.Optional[int] = pydantic.Field(None, ge=MIN_SEMESTER, le=MAX_SEMESTER)


class CurrentUser(pydantic.BaseModel):
    """Authenticated caller with its students document (if onboarded)."""

    uid: str
    email: typing.Optional[str] = None
    is_admin: bool = False
    profile: typing.Optional[StudentProfile] = None


# ============================================================================
# SUBJECTS / UNITS
# ============================================================================


class Subject(pydantic.BaseModel):
    id: str
    name: str
    branch: str
    academic_year: int
    semester: int
    is_common: bool = False
    created_at: typing.Optional[str] = None


class Unit(pydantic.BaseModel):
    id: str
    subject_id: str
    unit_number: int
    title: str
    description: typing.Optional[str] = None
    created_at: typing.Optional[str] = None


# ============================================================================
# NOTES
# ============================================================================


class Note(pydantic.BaseModel):
    """A notes document with its embedded relations when resolved."""

    id: str
    title: str
    description: typing.Optional[str] = None
    subject_id: str
    student_id: str
    file_url: str
    unit_number: int = 1
    is_approved: bool = False
    views: int = 0
    downloads: int = 0
    average_rating: typing.Optional[float] = None
    page_count: typing.Optional[int] = None
    rejection_reason: typing.Optional[str] = None
    created_at: typing.Optional[str] = None
    updated_at: typing.Optional[str] = None

    subject: typing.Optional[Subject] = None
    student: typing.Optional[StudentProfile] = None


class NoteUploadInput(pydantic.BaseModel):
    """Metadata accompanying a student's PDF upload."""

    title: str = pydantic.Field(..., min_length=3)
    description: str = pydantic.Field(..., min_length=10)
    subject_id: str = pydantic.Field(
        ...,
        min_length=1,
        validation_alias=_alias("subject_id", "subjectId", "subject"),
    )
    academic_year: int = pydantic.Field(
        ...,
        ge=MIN_YEAR,
        le=MAX_YEAR,
        validation_alias=_alias("academic_year", "academicYear", "year"),
    )
    semester: int = pydantic.Field(..., ge=MIN_SEMESTER, le=MAX_SEMESTER)
    unit_number: int = pydantic.Field(
        1,
        ge=MIN_UNIT,
        le=MAX_UNIT,
        validation_alias=_alias("unit_number", "unitNumber", "unit"),
    )

    @pydantic.field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class HistoryEntry(pydantic.BaseModel):
    id: str
    user_id: str
    note_id: str
    viewed_at: str
    note: typing.Optional[Note] = None


class ForceRejectInput(pydantic.BaseModel):
    reason: str = pydantic.Field(
        ...,
        validation_alias=_alias("reason", "rejection_reason"),
    )

    @pydantic.field_validator("reason")
    @classmethod
    def reason_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please provide a reason for rejection")
        return value


class UnitUploadInput(pydantic.BaseModel):
    """One unit in an admin multi-upload. The file travels separately."""

    unit_number: int = pydantic.Field(
        ...,
        ge=1,
        le=MAX_ADMIN_UNITS,
        validation_alias=_alias("unit_number", "unitNumber"),
    )
    title: typing.Optional[str] = None
    description: typing.Optional[str] = None

    @pydantic.model_validator(mode="after")
    def validate_lengths(self) -> "UnitUploadInput":
        """Blank title/description fall back to defaults; short ones are rejected."""
        if self.title is not None:
            self.title = self.title.strip() or None
        if self.description is not None:
            self.description = self.description.strip() or None
        if self.title is not None and len(self.title) < 3:
            raise ValueError("Title must be at least 3 characters")
        if self.description is not None and len(self.description) < 10:
            raise ValueError("Description must be at least 10 characters")
        return self


# ============================================================================
# BOOKMARKS / RATINGS
# ============================================================================


class Bookmark(pydantic.BaseModel):
    id: str
    user_id: str
    subject_id: str
    note_id: typing.Optional[str] = None
    created_at: typing.Optional[str] = None


class BookmarkInput(pydantic.BaseModel):
    subject_id: str = pydantic.Field(..., validation_alias=_alias("subject_id", "subjectId"))
    note_id: typing.Optional[str] = pydantic.Field(None, validation_alias=_alias("note_id", "noteId"))


class Rating(pydantic.BaseModel):
    id: str
    user_id: str
    note_id: str
    rating: int
    comment: typing.Optional[str] = None
    created_at: typing.Optional[str] = None


class RatingInput(pydantic.BaseModel):
    rating: int = pydantic.Field(..., ge=1, le=5)
    comment: typing.Optional[str] = None
