# identity.py
# Firebase Identity Toolkit / Secure Token REST client
#
# The UI signs users in with email+password or a Google OAuth credential and
# keeps the resulting ID token for calls to the SemNotes API. Service error
# codes (EMAIL_EXISTS, INVALID_PASSWORD, ...) are raised as AuthError with a
# readable message.
#
# MockIdentityClient issues mock-token-<role>-<uid> tokens that the API's
# mock backend accepts, so the UI works against a local mock deployment.
#
# @see: services/auth_session.py - Session holder built on these tokens
# @see: api/auth.py - Server-side verification of the issued ID tokens

import hashlib
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from api import config
from api.errors import AuthError
from api.logging_config import get_logger

logger = get_logger("identity")

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

ERROR_MESSAGES = {
    "EMAIL_EXISTS": "An account with this email already exists",
    "EMAIL_NOT_FOUND": "No account found with this email",
    "INVALID_PASSWORD": "Incorrect password",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password",
    "INVALID_EMAIL": "Please enter a valid email address",
    "USER_DISABLED": "This account has been disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts, please try again later",
    "TOKEN_EXPIRED": "Your session has expired, please sign in again",
    "INVALID_REFRESH_TOKEN": "Your session has expired, please sign in again",
    "INVALID_ID_TOKEN": "Your session has expired, please sign in again",
    "USER_NOT_FOUND": "No account found for this session",
    "INVALID_IDP_RESPONSE": "Google sign-in failed, please try again",
}


def readable_error(code: str) -> str:
    """Map an Identity Toolkit error code to a user-facing message."""
    # Codes may carry a suffix, e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
    key = code.split(":", 1)[0].strip()
    if key == "WEAK_PASSWORD":
        return "Password should be at least 6 characters"
    return ERROR_MESSAGES.get(key, key.replace("_", " ").capitalize() or "Authentication failed")


@dataclass
class AuthTokens:
    """Tokens returned by a sign-in, sign-up or refresh."""
    id_token: str
    refresh_token: str
    uid: str
    email: Optional[str] = None
    expires_at: float = 0.0

    def expires_within(self, seconds: float, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return self.expires_at - now <= seconds


class IdentityClient:
    """REST client for Firebase Authentication."""

    def __init__(self, api_key: str = None, session: requests.Session = None, timeout: int = 10):
        self.api_key = api_key if api_key is not None else config.FIREBASE_WEB_API_KEY
        self.session = session or requests.Session()
        self.timeout = timeout

    def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise AuthError("FIREBASE_WEB_API_KEY is not configured")
        try:
            response = self.session.post(url, params={"key": self.api_key}, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Identity service unreachable: %s", exc)
            raise AuthError("Authentication service unavailable") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400 or "error" in body:
            code = (body.get("error") or {}).get("message") or f"HTTP {response.status_code}"
            logger.info("Identity request rejected: %s", code)
            raise AuthError(readable_error(code))
        return body

    @staticmethod
    def _tokens(body: Dict[str, Any]) -> AuthTokens:
        return AuthTokens(
            id_token=body["idToken"],
            refresh_token=body["refreshToken"],
            uid=body["localId"],
            email=body.get("email"),
            expires_at=time.time() + int(body.get("expiresIn", 3600)),
        )

    def sign_in_with_password(self, email: str, password: str) -> AuthTokens:
        body = self._post(
            f"{IDENTITY_TOOLKIT_URL}:signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._tokens(body)

    def sign_up(self, email: str, password: str) -> AuthTokens:
        body = self._post(
            f"{IDENTITY_TOOLKIT_URL}:signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._tokens(body)

    def sign_in_with_idp(self, google_id_token: str, request_uri: str = "http://localhost") -> AuthTokens:
        """Exchange a Google OAuth ID token for a Firebase session."""
        body = self._post(
            f"{IDENTITY_TOOLKIT_URL}:signInWithIdp",
            {
                "postBody": f"id_token={google_id_token}&providerId=google.com",
                "requestUri": request_uri,
                "returnSecureToken": True,
                "returnIdpCredential": True,
            },
        )
        return self._tokens(body)

    def refresh(self, refresh_token: str) -> AuthTokens:
        if not self.api_key:
            raise AuthError("FIREBASE_WEB_API_KEY is not configured")
        try:
            response = self.session.post(
                SECURE_TOKEN_URL,
                params={"key": self.api_key},
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                timeout=self.timeout,
            )
            body = response.json()
        except requests.RequestException as exc:
            raise AuthError("Authentication service unavailable") from exc
        except ValueError:
            body = {}
        if response.status_code >= 400 or "error" in body:
            error = body.get("error") or {}
            code = error.get("message") if isinstance(error, dict) else str(error)
            raise AuthError(readable_error(code or "TOKEN_EXPIRED"))
        return AuthTokens(
            id_token=body["id_token"],
            refresh_token=body["refresh_token"],
            uid=body["user_id"],
            expires_at=time.time() + int(body.get("expires_in", 3600)),
        )

    def lookup(self, id_token: str) -> Dict[str, Any]:
        body = self._post(f"{IDENTITY_TOOLKIT_URL}:lookup", {"idToken": id_token})
        users = body.get("users") or []
        if not users:
            raise AuthError(readable_error("USER_NOT_FOUND"))
        return users[0]


class MockIdentityClient:
    """Offline identity provider for the mock backend."""

    TOKEN_TTL = 3600

    def __init__(self, admin_emails=()):
        self.admin_emails = {email.lower() for email in admin_emails}
        self._accounts: Dict[str, str] = {}

    @staticmethod
    def uid_for(email: str) -> str:
        local = re.sub(r"[^a-z0-9]", "", email.split("@", 1)[0].lower()) or "user"
        return f"{local}{hashlib.sha1(email.lower().encode()).hexdigest()[:6]}"

    def _issue(self, email: str) -> AuthTokens:
        uid = self.uid_for(email)
        role = "admin" if email.lower() in self.admin_emails else "student"
        return AuthTokens(
            id_token=f"mock-token-{role}-{uid}",
            refresh_token=f"mock-refresh-{role}-{uid}",
            uid=uid,
            email=email,
            expires_at=time.time() + self.TOKEN_TTL,
        )

    def sign_up(self, email: str, password: str) -> AuthTokens:
        if email.lower() in self._accounts:
            raise AuthError(readable_error("EMAIL_EXISTS"))
        if len(password or "") < 6:
            raise AuthError(readable_error("WEAK_PASSWORD"))
        self._accounts[email.lower()] = password
        return self._issue(email)

    def sign_in_with_password(self, email: str, password: str) -> AuthTokens:
        stored = self._accounts.get(email.lower())
        if stored is not None and stored != password:
            raise AuthError(readable_error("INVALID_PASSWORD"))
        self._accounts.setdefault(email.lower(), password)
        return self._issue(email)

    def sign_in_with_idp(self, google_id_token: str, request_uri: str = "http://localhost") -> AuthTokens:
        # The mock treats the credential as the Google account's email
        return self._issue(google_id_token)

    def refresh(self, refresh_token: str) -> AuthTokens:
        parts = refresh_token.split("-", 3)
        if len(parts) != 4 or parts[:2] != ["mock", "refresh"]:
            raise AuthError(readable_error("INVALID_REFRESH_TOKEN"))
        role, uid = parts[2], parts[3]
        return AuthTokens(
            id_token=f"mock-token-{role}-{uid}",
            refresh_token=refresh_token,
            uid=uid,
            expires_at=time.time() + self.TOKEN_TTL,
        )

    def lookup(self, id_token: str) -> Dict[str, Any]:
        parts = id_token.split("-", 3)
        if len(parts) != 4:
            raise AuthError(readable_error("INVALID_ID_TOKEN"))
        return {"localId": parts[3]}


def get_identity_client():
    """Identity client matching the configured backend."""
    if config.USE_MOCK_DB:
        return MockIdentityClient()
    return IdentityClient()
