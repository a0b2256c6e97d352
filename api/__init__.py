"""
============================================================================
FILE: __init__.py
LOCATION: api/__init__.py
============================================================================

PURPOSE:
    Package initialization for the SemNotes API.

EXPORTS:
    - SemNotesError and its subclasses
    - Service classes for each domain

USAGE:
    from api import NoteService, ApprovalService
============================================================================
"""

from .errors import (
    AuthError,
    NotFoundError,
    PermissionDeniedError,
    RpcError,
    SemNotesError,
    StorageError,
    ValidationError,
)
from .admin import AdminService
from .approval import ApprovalResult, ApprovalService
from .engagement import EngagementService
from .notes import NoteService
from .students import StudentService
from .subjects import SubjectService

__all__ = [
    "AuthError",
    "NotFoundError",
    "PermissionDeniedError",
    "RpcError",
    "SemNotesError",
    "StorageError",
    "ValidationError",
    "AdminService",
    "ApprovalResult",
    "ApprovalService",
    "EngagementService",
    "NoteService",
    "StudentService",
    "SubjectService",
]
