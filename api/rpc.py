# rpc.py
# Client for the HTTPS callable Cloud Functions behind privileged mutations

# Callable protocol: POST {"data": payload} to <base>/<name>; a 2xx body
# holds {"result": ...} or {"error": {"message", "status"}}.
# The named wrappers below are what approval.py, notes.py and subjects.py use.

# @see: approval.py - force_approve_note as the second approval strategy
# @see: notes.py - increment_note_views on every recorded view
# @see: mock_firestore.py - MockFunctions (same call() signature)

from typing import Any, Dict, Optional

import requests

from api.config import FUNCTIONS_TIMEOUT_SECONDS, get_functions
from api.errors import RpcError
from api.logging_config import get_logger

logger = get_logger("rpc")


class FunctionsClient:
    """Invoke callable Cloud Functions by name."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout: int = FUNCTIONS_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def call(self, name: str, payload: Optional[Dict[str, Any]] = None, id_token: Optional[str] = None) -> Any:
        """
        Call a function and return its result.

        Args:
            name: Function name (e.g. "force_approve_note")
            payload: Arguments sent as the callable "data" field
            id_token: Caller's Firebase ID token, forwarded for rule checks

        Returns:
            The "result" field of the response body

        Raises:
            RpcError: On transport failure, non-2xx status or an "error" body
        """
        headers = {"Content-Type": "application/json"}
        if id_token:
            headers["Authorization"] = f"Bearer {id_token}"

        url = f"{self.base_url}/{name}"
        try:
            response = self.session.post(url, json={"data": payload or {}}, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RpcError(f"Could not reach {name}: {exc}", function_name=name) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        error = body.get("error") if isinstance(body, dict) else None
        if error or not response.ok:
            message = (error or {}).get("message") if isinstance(error, dict) else error
            raise RpcError(message or f"{name} failed with HTTP {response.status_code}", function_name=name)

        return body.get("result")


def _call(name: str, payload: Dict[str, Any], functions=None, id_token: Optional[str] = None) -> Any:
    client = functions or get_functions()
    return client.call(name, payload, id_token=id_token)


def _as_outcome(name: str, payload: Dict[str, Any], functions=None, id_token: Optional[str] = None,
                fallback_error: str = "") -> Dict[str, Any]:
    try:
        data = _call(name, payload, functions, id_token)
    except RpcError as exc:
        logger.error("Error calling %s: %s", name, exc.message, extra={"function_name": name})
        return {"success": False, "error": exc.message or fallback_error}
    return {"success": True, "data": data}


def force_approve_note(note_id: str, functions=None, id_token: Optional[str] = None) -> Dict[str, Any]:
    """Approve a note through the privileged function. Never raises."""
    return _as_outcome("force_approve_note", {"note_id": note_id}, functions, id_token,
                       fallback_error="Failed to force-approve note")


def force_reject_note(note_id: str, rejection_reason: Optional[str] = None, functions=None,
                      id_token: Optional[str] = None) -> Dict[str, Any]:
    """Reject a note through the privileged function. Never raises."""
    payload: Dict[str, Any] = {"note_id": note_id}
    if rejection_reason:
        payload["rejection_reason"] = rejection_reason
    return _as_outcome("force_reject_note", payload, functions, id_token,
                       fallback_error="Failed to force-reject note")


def increment_note_views(note_id: str, functions=None, id_token: Optional[str] = None) -> Any:
    return _call("increment_note_views", {"note_id": note_id}, functions, id_token)


def create_subject_units(subject_id: str, functions=None, id_token: Optional[str] = None) -> Any:
    return _call("create_subject_units", {"subject_id": subject_id}, functions, id_token)
