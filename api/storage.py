"""
============================================================================
FILE: storage.py
LOCATION: api/storage.py
============================================================================

PURPOSE:
    Object storage access for uploaded note PDFs: object naming, upload,
    download, delete, public and signed URLs.

ROLE IN PROJECT:
    All PDFs live under the "notes/" prefix of the Firebase Storage bucket.
    notes.py and admin.py upload through StorageService; pdf_retrieval.py
    uses extract_path_from_url() and signed URLs to read them back;
    approval.py deletes the object of a rejected note.

KEY COMPONENTS:
    - build_object_path(): subject_<id>/<uid>_<ms>_<name> naming scheme
    - extract_path_from_url(): recover the object path from a stored file URL
    - StorageService: upload_pdf, public_url, download, delete,
      create_signed_url, secure_pdf_url, ensure_notes_bucket
    - SecureUrlResult: outcome of secure_pdf_url()

DEPENDENCIES:
    - External: google-cloud-storage (via firebase_admin.storage), google-api-core
    - Internal: config.py (bucket, expiry and access settings), errors.py

USAGE:
    from api.storage import StorageService, build_object_path

    storage = StorageService()
    path = build_object_path("s1", uid, "Unit 1.pdf", now_ms)
    storage.upload_pdf(path, data)
============================================================================
"""

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from urllib.parse import unquote

from google.api_core.exceptions import Forbidden, GoogleAPICallError, NotFound, PreconditionFailed
from google.auth.exceptions import GoogleAuthError

from api import config
from api.errors import NotFoundError, StorageError
from api.logging_config import get_logger

logger = get_logger("storage")

PDF_VIEWER_RESTRICTIONS = "#toolbar=0&navpanes=0&scrollbar=0&download=0"

_SIGNING_ERRORS = (GoogleAPICallError, GoogleAuthError, ValueError, AttributeError)


def build_object_path(
    subject_id: str,
    uid: str,
    filename: str,
    now_ms: int,
    unit_number: Optional[int] = None,
    admin: bool = False,
) -> str:
    """Object path (relative to the notes prefix) for a new upload."""
    safe_name = filename.replace(" ", "_")
    if admin:
        return f"subject_{subject_id}/admin_{uid}_unit{unit_number}_{now_ms}_{safe_name}"
    return f"subject_{subject_id}/{uid}_{now_ms}_{safe_name}"


def extract_path_from_url(url: str, prefix: str = config.NOTES_BUCKET_PREFIX) -> Optional[str]:
    """
    Recover the object path from a stored file URL.

    Tries "/object/public/<prefix>/(.+)" first, then "/<prefix>/(.+)".
    Query string and fragment are not part of the path.

    Returns:
        The URL-decoded path relative to the prefix, or None when no
        pattern matches.
    """
    if not url:
        return None
    patterns = (
        re.compile(rf"/object/public/{re.escape(prefix)}/(.+)", re.IGNORECASE),
        re.compile(rf"/{re.escape(prefix)}/(.+)", re.IGNORECASE),
    )
    for pattern in patterns:
        match = pattern.search(url)
        if match and match.group(1):
            raw = re.split(r"[?#]", match.group(1), maxsplit=1)[0]
            return unquote(raw)

    logger.error("Could not extract path from URL: %s", url)
    return None


@dataclass
class SecureUrlResult:
    """Outcome of StorageService.secure_pdf_url()."""
    url: str
    success: bool
    error: Optional[str] = None


class StorageService:
    """Access to PDFs under the notes prefix of the Storage bucket."""

    def __init__(self, bucket=None, prefix: str = config.NOTES_BUCKET_PREFIX):
        self.bucket = bucket or config.get_bucket()
        self.prefix = prefix

    def _blob(self, path: str):
        return self.bucket.blob(f"{self.prefix}/{path}")

    def upload_pdf(self, path: str, data: bytes, content_type: str = "application/pdf") -> str:
        """
        Upload bytes without overwriting an existing object.

        Returns:
            The path that was written

        Raises:
            StorageError: If the bucket rejects the upload
        """
        try:
            self._blob(path).upload_from_string(data, content_type=content_type, if_generation_match=0)
        except PreconditionFailed as exc:
            raise StorageError(f"duplicate object {path}") from exc
        except Forbidden as exc:
            raise StorageError(f"permission denied for {path}") from exc
        except GoogleAPICallError as exc:
            logger.error("Upload failed for %s: %s", path, exc)
            raise StorageError(str(exc)) from exc
        logger.info("Uploaded %s (%d bytes)", path, len(data))
        return path

    def public_url(self, path: str) -> str:
        return self._blob(path).public_url

    def download(self, path: str) -> bytes:
        try:
            return self._blob(path).download_as_bytes()
        except NotFound as exc:
            raise NotFoundError(f"File not found: {path}") from exc
        except GoogleAPICallError as exc:
            raise StorageError(str(exc)) from exc

    def delete(self, path: str) -> None:
        try:
            self._blob(path).delete()
        except NotFound:
            logger.warning("Object already gone: %s", path)
        except GoogleAPICallError as exc:
            raise StorageError(str(exc)) from exc

    def create_signed_url(self, path: str, expiry_seconds: int) -> str:
        """Time-limited GET URL for a private object."""
        try:
            return self._blob(path).generate_signed_url(
                expiration=timedelta(seconds=expiry_seconds),
                version="v4",
                method="GET",
            )
        except _SIGNING_ERRORS as exc:
            raise StorageError(f"Could not sign URL for {path}: {exc}") from exc

    def secure_pdf_url(self, file_url: str, is_mobile: bool = False) -> SecureUrlResult:
        """
        Signed URL for viewing a PDF, with viewer download controls hidden.

        Mobile clients get the longer expiry since they open the file in a
        separate viewer. When signing fails the original URL is returned
        only if PDF_DIRECT_ACCESS is enabled.
        """
        path = extract_path_from_url(file_url, self.prefix)
        if not path:
            return SecureUrlResult(url="", success=False, error="Could not extract path from file URL")

        expiry = config.PDF_MOBILE_URL_EXPIRY if is_mobile else config.PDF_URL_EXPIRY
        try:
            signed_url = self.create_signed_url(path, expiry)
        except StorageError as exc:
            logger.error("Error creating signed URL: %s", exc.message)
            if config.PDF_DIRECT_ACCESS:
                return SecureUrlResult(url=file_url, success=True)
            return SecureUrlResult(url="", success=False, error=exc.message)

        if not signed_url:
            return SecureUrlResult(url="", success=False, error="No signed URL returned")

        if not config.PDF_ALLOW_DOWNLOADS:
            signed_url = f"{signed_url}{PDF_VIEWER_RESTRICTIONS}"
        return SecureUrlResult(url=signed_url, success=True)

    def ensure_notes_bucket(self) -> bool:
        """True when objects under the notes prefix can be listed."""
        try:
            list(self.bucket.list_blobs(prefix=f"{self.prefix}/", max_results=1))
        except (GoogleAPICallError, GoogleAuthError) as exc:
            if "not found" not in str(exc).lower():
                logger.warning("Access issue with notes bucket: %s", exc)
            return False
        return True
