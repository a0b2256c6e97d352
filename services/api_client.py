# api_client.py
# HTTP client the Streamlit pages use to talk to the SemNotes API
#
# Every request carries the session's current ID token (refreshed first
# when close to expiry). Error responses are raised as ApiError with the
# API's "detail" message and status code; a 401 signs the session out.
#
# @see: services/auth_session.py - Token source
# @see: api/main.py - Server side of these calls

import os
from typing import Any, Dict, List, Optional, Tuple

import requests

from api.errors import SemNotesError
from api.logging_config import get_logger

logger = get_logger("api_client")

API_BASE = os.getenv("API_BASE_URL", "http://localhost:8000")


class ApiError(SemNotesError):
    """Non-2xx response from the SemNotes API."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class SemNotesClient:
    def __init__(self, auth_session=None, base_url: str = API_BASE, http=None, timeout: int = 30):
        self.auth_session = auth_session
        self.base_url = base_url.rstrip("/")
        self.http = http or requests.Session()
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        if self.auth_session is None:
            return {}
        token = self.auth_session.get_id_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        try:
            response = self.http.request(
                method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            logger.error("API request %s %s failed: %s", method, path, exc)
            raise ApiError("Could not reach the SemNotes API", status_code=503) from exc

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = None
            if isinstance(detail, list):
                # FastAPI validation errors
                detail = "; ".join(item.get("msg", "") for item in detail if isinstance(item, dict))
            message = detail or f"Request failed with status {response.status_code}"
            if response.status_code == 401 and self.auth_session is not None and self.auth_session.is_authenticated:
                self.auth_session.sign_out()
            raise ApiError(message, status_code=response.status_code)
        return response

    def _json(self, method: str, path: str, **kwargs) -> Any:
        response = self.request(method, path, **kwargs)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Profile

    def me(self) -> Dict[str, Any]:
        return self._json("GET", "/api/auth/me")

    def complete_onboarding(self, branch: str, academic_year: int, semester: int) -> Dict[str, Any]:
        return self._json(
            "POST", "/api/profile/onboarding",
            json={"branch": branch, "academic_year": academic_year, "semester": semester},
        )

    def update_profile(self, **fields) -> Dict[str, Any]:
        return self._json("PUT", "/api/profile", json={k: v for k, v in fields.items() if v is not None})

    def update_academic_details(self, branch: str, academic_year: int, semester: int) -> Dict[str, Any]:
        return self._json(
            "PUT", "/api/profile/academic",
            json={"branch": branch, "academic_year": academic_year, "semester": semester},
        )

    def profile_summary(self) -> Dict[str, Any]:
        return self._json("GET", "/api/profile/summary")

    # Subjects

    def subjects(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._json("GET", "/api/subjects", params={"search": search} if search else None)

    def my_subjects(self) -> List[Dict[str, Any]]:
        return self._json("GET", "/api/subjects/mine")

    def subject(self, subject_id: str) -> Dict[str, Any]:
        return self._json("GET", f"/api/subjects/{subject_id}")

    def subject_notes(self, subject_id: str) -> List[Dict[str, Any]]:
        return self._json("GET", f"/api/subjects/{subject_id}/notes")

    def units(self, subject_id: str) -> List[Dict[str, Any]]:
        return self._json("GET", f"/api/subjects/{subject_id}/units")

    def create_units(self, subject_id: str) -> List[Dict[str, Any]]:
        return self._json("POST", f"/api/subjects/{subject_id}/units")

    # Notes

    def upload_note(self, metadata: Dict[str, Any], filename: str, data: bytes) -> Dict[str, Any]:
        form = {k: str(v) for k, v in metadata.items() if v is not None}
        return self._json(
            "POST", "/api/notes", data=form, files={"file": (filename, data, "application/pdf")}
        )

    def note(self, note_id: str, source: Optional[str] = None) -> Dict[str, Any]:
        return self._json("GET", f"/api/notes/{note_id}", params={"source": source} if source else None)

    def record_view(self, note_id: str, source: Optional[str] = None) -> bool:
        body = self._json("POST", f"/api/notes/{note_id}/view", params={"source": source} if source else None)
        return bool(body and body.get("recorded"))

    def note_file(self, note_id: str, source: Optional[str] = None, mobile: bool = False) -> Tuple[str, Any]:
        """
        Fetch a note's PDF through the API's fallback chain.

        Returns:
            ("blob", bytes) or ("embed", {"url", "strategy", "error"})
        """
        params = {"mobile": str(mobile).lower()}
        if source:
            params["source"] = source
        response = self.request("GET", f"/api/notes/{note_id}/file", params=params)
        if response.headers.get("content-type", "").startswith("application/pdf"):
            return "blob", response.content
        return "embed", response.json()

    def history(self, limit: int = 5) -> List[Dict[str, Any]]:
        return self._json("GET", "/api/notes/history", params={"limit": limit})

    # Bookmarks and ratings

    def bookmarks(self) -> List[Dict[str, Any]]:
        return self._json("GET", "/api/bookmarks")

    def add_bookmark(self, subject_id: str, note_id: Optional[str] = None) -> Dict[str, Any]:
        return self._json("POST", "/api/bookmarks", json={"subject_id": subject_id, "note_id": note_id})

    def remove_bookmark(self, bookmark_id: str) -> None:
        self._json("DELETE", f"/api/bookmarks/{bookmark_id}")

    def rate_note(self, note_id: str, rating: int, comment: Optional[str] = None) -> Dict[str, Any]:
        return self._json("POST", f"/api/notes/{note_id}/ratings", json={"rating": rating, "comment": comment})

    # Admin

    def admin_statistics(self, refresh: bool = False) -> Dict[str, int]:
        return self._json("GET", "/api/admin/statistics", params={"refresh": str(refresh).lower()})

    def admin_chart(self, kind: str) -> List[Dict[str, Any]]:
        return self._json("GET", f"/api/admin/charts/{kind}")

    def admin_users(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._json("GET", "/api/admin/users", params={"search": search} if search else None)

    def toggle_admin(self, uid: str) -> Dict[str, Any]:
        return self._json("POST", f"/api/admin/users/{uid}/toggle-admin")

    def pending_notes(self) -> List[Dict[str, Any]]:
        return self._json("GET", "/api/admin/notes/pending")

    def approve_note(self, note_id: str) -> Dict[str, Any]:
        return self._json("POST", f"/api/admin/notes/{note_id}/approve")

    def reject_note(self, note_id: str) -> Dict[str, Any]:
        return self._json("POST", f"/api/admin/notes/{note_id}/reject")

    def force_approve(self, note_id: str) -> Dict[str, Any]:
        return self._json("POST", f"/api/admin/notes/{note_id}/force-approve")

    def force_reject(self, note_id: str, reason: str) -> Dict[str, Any]:
        return self._json("POST", f"/api/admin/notes/{note_id}/force-reject", json={"reason": reason})

    def multi_upload(self, subject_id: str, units: List[Dict[str, Any]]) -> Dict[str, Any]:
        """units: dicts with unit_number, filename, data and optional title/description."""
        form = [("subject_id", subject_id)]
        files = []
        for unit in units:
            form.append(("unit_numbers", str(unit["unit_number"])))
            form.append(("titles", unit.get("title") or ""))
            form.append(("descriptions", unit.get("description") or ""))
            files.append(("files", (unit["filename"], unit["data"], "application/pdf")))
        return self._json("POST", "/api/admin/multi-upload", data=form, files=files)
