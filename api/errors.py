# errors.py
# Domain exceptions raised by the service layer and their HTTP translation.
#
# Services raise SemNotesError subclasses; routers call to_http_exception()
# (or rely on the app-wide handler registered in main.py) so the HTTP status
# stays in one place.
#
# @see: main.py - semnotes_error_handler
# @see: routers/ - endpoints translating service errors

from fastapi import HTTPException, status


class SemNotesError(Exception):
    """Base class for every error raised by SemNotes services."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SemNotesError):
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(SemNotesError):
    status_code = status.HTTP_403_FORBIDDEN


class ValidationError(SemNotesError):
    status_code = status.HTTP_400_BAD_REQUEST


class StorageError(SemNotesError):
    """Object storage rejected an upload, download or delete."""

    status_code = status.HTTP_502_BAD_GATEWAY


class RpcError(SemNotesError):
    """A callable function returned an error or could not be reached."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, function_name: str = ""):
        super().__init__(message)
        self.function_name = function_name


class AuthError(SemNotesError):
    status_code = status.HTTP_401_UNAUTHORIZED


def to_http_exception(exc: SemNotesError) -> HTTPException:
    """Translate a service error into the HTTPException FastAPI returns."""
    headers = None
    if isinstance(exc, AuthError):
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(status_code=exc.status_code, detail=exc.message, headers=headers)
