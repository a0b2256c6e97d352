"""
============================================================================
FILE: test_identity.py
LOCATION: tests/test_identity.py
============================================================================

PURPOSE:
    Tests for the Firebase Authentication REST client and its offline
    counterpart used with the mock backend.

KEY COMPONENTS:
    - TestReadableError: error code to message mapping
    - TestIdentityClient: request shape and error handling (mocked session)
    - TestMockIdentityClient: sign-up, sign-in and refresh rules

USAGE:
    Run with: pytest tests/test_identity.py -v
============================================================================
"""

from unittest.mock import MagicMock

import pytest
import requests

from api.errors import AuthError
from services.identity import (
    IDENTITY_TOOLKIT_URL,
    SECURE_TOKEN_URL,
    AuthTokens,
    IdentityClient,
    MockIdentityClient,
    readable_error,
)


def _response(status=200, body=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = body if body is not None else {}
    return response


SIGN_IN_BODY = {
    "idToken": "id-1",
    "refreshToken": "refresh-1",
    "localId": "uid-1",
    "email": "asha@college.edu",
    "expiresIn": "3600",
}


class TestReadableError:
    def test_known_codes(self):
        assert readable_error("EMAIL_EXISTS") == "An account with this email already exists"
        assert readable_error("INVALID_LOGIN_CREDENTIALS") == "Invalid email or password"

    def test_weak_password_with_suffix(self):
        message = readable_error("WEAK_PASSWORD : Password should be at least 6 characters")
        assert message == "Password should be at least 6 characters"

    def test_unknown_code(self):
        assert readable_error("OPERATION_NOT_ALLOWED") == "Operation not allowed"


class TestAuthTokens:
    def test_expires_within(self):
        tokens = AuthTokens(id_token="a", refresh_token="b", uid="u", expires_at=1000.0)
        assert tokens.expires_within(60, now=950.0)
        assert not tokens.expires_within(60, now=900.0)


class TestIdentityClient:
    def test_sign_in_posts_credentials(self):
        session = MagicMock()
        session.post.return_value = _response(body=SIGN_IN_BODY)

        tokens = IdentityClient(api_key="key", session=session).sign_in_with_password("asha@college.edu", "secret")

        assert tokens.uid == "uid-1"
        assert tokens.email == "asha@college.edu"
        call = session.post.call_args
        assert call.args[0] == f"{IDENTITY_TOOLKIT_URL}:signInWithPassword"
        assert call.kwargs["params"] == {"key": "key"}
        assert call.kwargs["json"]["returnSecureToken"] is True

    def test_error_body_becomes_auth_error(self):
        session = MagicMock()
        session.post.return_value = _response(400, {"error": {"message": "EMAIL_NOT_FOUND"}})

        with pytest.raises(AuthError, match="No account found with this email"):
            IdentityClient(api_key="key", session=session).sign_in_with_password("x@y.z", "pw")

    def test_network_failure(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("down")

        with pytest.raises(AuthError, match="unavailable"):
            IdentityClient(api_key="key", session=session).sign_up("x@y.z", "secret")

    def test_missing_api_key(self):
        with pytest.raises(AuthError, match="FIREBASE_WEB_API_KEY"):
            IdentityClient(api_key="", session=MagicMock()).sign_up("x@y.z", "secret")

    def test_google_sign_in_sends_provider_post_body(self):
        session = MagicMock()
        session.post.return_value = _response(body=SIGN_IN_BODY)

        IdentityClient(api_key="key", session=session).sign_in_with_idp("google-jwt")

        payload = session.post.call_args.kwargs["json"]
        assert payload["postBody"] == "id_token=google-jwt&providerId=google.com"

    def test_refresh_uses_secure_token_endpoint(self):
        session = MagicMock()
        session.post.return_value = _response(body={
            "id_token": "id-2", "refresh_token": "refresh-2", "user_id": "uid-1", "expires_in": "3600",
        })

        tokens = IdentityClient(api_key="key", session=session).refresh("refresh-1")

        assert tokens.id_token == "id-2"
        assert session.post.call_args.args[0] == SECURE_TOKEN_URL
        assert session.post.call_args.kwargs["data"]["grant_type"] == "refresh_token"

    def test_refresh_rejected(self):
        session = MagicMock()
        session.post.return_value = _response(400, {"error": {"message": "TOKEN_EXPIRED"}})

        with pytest.raises(AuthError, match="session has expired"):
            IdentityClient(api_key="key", session=session).refresh("stale")

    def test_lookup_without_users(self):
        session = MagicMock()
        session.post.return_value = _response(body={"users": []})

        with pytest.raises(AuthError):
            IdentityClient(api_key="key", session=session).lookup("id-1")


class TestMockIdentityClient:
    def test_sign_up_then_sign_in(self):
        identity = MockIdentityClient()
        created = identity.sign_up("Asha@college.edu", "secret1")
        again = identity.sign_in_with_password("asha@college.edu", "secret1")

        assert created.uid == again.uid
        assert created.id_token == f"mock-token-student-{created.uid}"

    def test_duplicate_and_weak_password(self):
        identity = MockIdentityClient()
        identity.sign_up("a@b.c", "secret1")
        with pytest.raises(AuthError, match="already exists"):
            identity.sign_up("a@b.c", "secret1")
        with pytest.raises(AuthError, match="at least 6"):
            identity.sign_up("new@b.c", "123")

    def test_wrong_password(self):
        identity = MockIdentityClient()
        identity.sign_up("a@b.c", "secret1")
        with pytest.raises(AuthError, match="Incorrect password"):
            identity.sign_in_with_password("a@b.c", "nope")

    def test_admin_emails_get_admin_tokens(self):
        identity = MockIdentityClient(admin_emails=["boss@college.edu"])
        tokens = identity.sign_in_with_idp("boss@college.edu")
        assert tokens.id_token.startswith("mock-token-admin-")

    def test_refresh_round_trip(self):
        identity = MockIdentityClient()
        tokens = identity.sign_up("a@b.c", "secret1")
        assert identity.refresh(tokens.refresh_token).id_token == tokens.id_token
        with pytest.raises(AuthError):
            identity.refresh("bogus")
