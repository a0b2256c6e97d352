# pdf_retrieval.py
# Fallback chain used to load a note's PDF for the viewer

# Cross-origin rules and mobile browsers make a single download approach
# unreliable, so retrieval walks a fixed sequence and stops at the first
# success:
#   mobile client      -> embed the stored URL, no download
#   signed URL + GET   -> blob
#   direct GET         -> blob
#   storage download   -> blob
#   nothing worked     -> embed the stored URL, error carries last failure
# Individual failures are logged and recorded in `attempts`, never raised.

# @see: storage.py - extract_path_from_url, StorageService
# @see: routers/notes.py - GET /api/notes/{id}/file
# @see: UI/main.py - renders blob bytes or embeds the URL

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import requests

from api import config
from api.errors import SemNotesError
from api.logging_config import get_logger
from api.storage import StorageService, extract_path_from_url

logger = get_logger("pdf_retrieval")

MODE_BLOB = "blob"
MODE_EMBED = "embed"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

MOBILE_MAX_WIDTH = 768
MOBILE_UA_PATTERN = re.compile(
    r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini",
    re.IGNORECASE,
)


def is_mobile_user_agent(user_agent: Optional[str], viewport_width: Optional[int] = None) -> bool:
    """Narrow viewport or a mobile browser user agent."""
    if viewport_width is not None and viewport_width <= MOBILE_MAX_WIDTH:
        return True
    return bool(user_agent and MOBILE_UA_PATTERN.search(user_agent))


@dataclass
class PdfRetrievalResult:
    """Outcome of the retrieval chain."""
    mode: str
    data: Optional[bytes] = None
    url: Optional[str] = None
    strategy: Optional[str] = None
    attempts: List[Tuple[str, bool, str]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_blob(self) -> bool:
        return self.mode == MODE_BLOB


class PdfRetriever:
    """Runs the signed URL / direct / storage / embed sequence."""

    def __init__(self, storage: Optional[StorageService] = None, session: Optional[requests.Session] = None,
                 timeout: int = config.PDF_FETCH_TIMEOUT_SECONDS):
        self.storage = storage or StorageService()
        self.session = session or requests.Session()
        self.timeout = timeout

    def _fetch(self, url: str) -> Tuple[Optional[bytes], str]:
        try:
            response = self.session.get(url, headers=NO_CACHE_HEADERS, timeout=self.timeout)
        except requests.RequestException as exc:
            return None, str(exc)
        if not response.ok:
            return None, f"HTTP {response.status_code}"
        return response.content, f"HTTP {response.status_code}"

    def retrieve(self, file_url: str, is_mobile: bool = False) -> PdfRetrievalResult:
        """
        Load the PDF behind file_url.

        Args:
            file_url: The note's stored file URL
            is_mobile: Skip downloading and embed directly

        Returns:
            PdfRetrievalResult with mode "blob" (data set) or "embed" (url set)
        """
        result = PdfRetrievalResult(mode=MODE_EMBED, url=file_url)

        if is_mobile:
            logger.info("Mobile client, embedding %s", file_url)
            result.strategy = "mobile"
            return result

        path = extract_path_from_url(file_url, self.storage.prefix)
        last_error: Optional[str] = None

        if path:
            logger.info("Attempt 1: signed URL for %s", path)
            try:
                signed_url = self.storage.create_signed_url(path, config.PDF_URL_EXPIRY)
                data, detail = self._fetch(signed_url)
            except SemNotesError as exc:
                data, detail = None, exc.message
            result.attempts.append(("signed_url", data is not None, detail))
            if data is not None:
                return self._blob(result, data, "signed_url")
            logger.warning("Signed URL approach failed: %s", detail)
            last_error = detail

        logger.info("Attempt 2: direct fetch of %s", file_url)
        data, detail = self._fetch(file_url)
        result.attempts.append(("direct", data is not None, detail))
        if data is not None:
            return self._blob(result, data, "direct")
        logger.warning("Direct fetch failed: %s", detail)
        last_error = detail

        if path:
            logger.info("Attempt 3: storage download of %s", path)
            try:
                data = self.storage.download(path) or None
                detail = f"{len(data)} bytes" if data else "empty download"
            except SemNotesError as exc:
                data, detail = None, exc.message
            result.attempts.append(("storage_download", data is not None, detail))
            if data is not None:
                return self._blob(result, data, "storage_download")
            logger.error("Storage download failed: %s", detail)
            last_error = detail

        logger.warning("All download attempts failed, falling back to embed")
        result.strategy = "embed"
        result.error = last_error
        return result

    @staticmethod
    def _blob(result: PdfRetrievalResult, data: bytes, strategy: str) -> PdfRetrievalResult:
        logger.info("PDF loaded via %s (%d bytes)", strategy, len(data), extra={"strategy": strategy})
        result.mode = MODE_BLOB
        result.data = data
        result.strategy = strategy
        return result


def retrieve_pdf(file_url: str, is_mobile: bool = False, storage: Optional[StorageService] = None,
                 session: Optional[requests.Session] = None) -> PdfRetrievalResult:
    return PdfRetriever(storage=storage, session=session).retrieve(file_url, is_mobile)
