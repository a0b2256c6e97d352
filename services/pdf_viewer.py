# pdf_viewer.py
# Turns the API's PDF response into something the Streamlit viewer can show
#
# Blob responses are rasterized page by page with PyMuPDF so the viewer
# never exposes a download link; embed responses carry a signed URL that
# the page shows in an iframe with the viewer toolbar disabled.
#
# @see: api/pdf_retrieval.py - Server-side fallback chain
# @see: services/api_client.py - SemNotesClient.note_file

from dataclasses import dataclass, field
from typing import List, Optional

import fitz

from api.logging_config import get_logger

logger = get_logger("pdf_viewer")

DEFAULT_ZOOM = 1.5


@dataclass
class ViewerContent:
    mode: str
    pages: List[bytes] = field(default_factory=list)
    page_count: int = 0
    url: Optional[str] = None
    error: Optional[str] = None


def render_pages(data: bytes, zoom: float = DEFAULT_ZOOM, max_pages: Optional[int] = None) -> List[bytes]:
    """Render PDF pages to PNG images."""
    images = []
    with fitz.open(stream=data, filetype="pdf") as doc:
        matrix = fitz.Matrix(zoom, zoom)
        for index, page in enumerate(doc):
            if max_pages is not None and index >= max_pages:
                break
            images.append(page.get_pixmap(matrix=matrix).tobytes("png"))
    return images


def load_viewer_content(client, note_id: str, source: Optional[str] = None, mobile: bool = False,
                        zoom: float = DEFAULT_ZOOM, max_pages: Optional[int] = None) -> ViewerContent:
    mode, payload = client.note_file(note_id, source=source, mobile=mobile)
    if mode == "blob":
        try:
            pages = render_pages(payload, zoom=zoom, max_pages=max_pages)
        except (RuntimeError, ValueError) as exc:
            logger.error("Could not render PDF for note %s: %s", note_id, exc)
            return ViewerContent(mode="error", error="Could not render this PDF")
        return ViewerContent(mode="blob", pages=pages, page_count=len(pages))

    if not payload.get("url"):
        return ViewerContent(mode="error", error=payload.get("error") or "PDF is unavailable")
    return ViewerContent(mode="embed", url=payload["url"], error=payload.get("error"))
