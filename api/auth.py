"""
============================================================================
FILE: auth.py
LOCATION: api/auth.py
============================================================================

PURPOSE:
    Firebase Authentication utilities for verifying ID tokens and resolving
    the caller's students profile for admin and onboarding checks.

ROLE IN PROJECT:
    Provides FastAPI dependencies for protected endpoints. Every router that
    needs a signed-in caller, an onboarded student or an administrator uses
    one of these dependencies.

KEY COMPONENTS:
    - verify_id_token(): Verify a Firebase ID token (mock tokens in test mode)
    - get_current_user(): Dependency returning CurrentUser (profile optional)
    - require_admin(): Dependency that ensures students/{uid}.is_admin
    - require_onboarded(): Dependency that ensures branch/year/semester are set
    - get_id_token(): Raw bearer token for forwarding to callable functions

DEPENDENCIES:
    - External: firebase_admin.auth, fastapi
    - Internal: config.py (auth and Firestore clients), models.py

USAGE:
    from api.auth import get_current_user, require_admin

    @router.get("/api/admin/statistics")
    async def statistics(user: CurrentUser = Depends(require_admin)):
        ...
============================================================================
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions

from api.config import get_auth, get_db
from api.logging_config import get_logger
from api.mock_firestore import MockAuthError
from api.models import CurrentUser, StudentProfile

logger = get_logger("auth")

security = HTTPBearer()

ONBOARDING_REQUIRED = "onboarding required"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_id_token(token: str) -> dict:
    """
    Verify a Firebase ID token and return decoded claims.

    Args:
        token: The Firebase ID token (JWT), or mock-token-<role>-<uid>
            when the mock backend is active

    Returns:
        dict: Decoded token claims containing uid, email, etc.

    Raises:
        HTTPException: 401 if the token is invalid, expired or revoked
    """
    auth_client = get_auth()
    try:
        # Allow 10 seconds of clock skew to prevent "Token used too early" errors
        return auth_client.verify_id_token(token, clock_skew_seconds=10)
    except auth.ExpiredIdTokenError as exc:
        logger.info("Expired token: %s", exc)
        raise _unauthorized(f"Authentication token has expired: {exc}")
    except auth.RevokedIdTokenError as exc:
        logger.info("Revoked token: %s", exc)
        raise _unauthorized(f"Authentication token has been revoked: {exc}")
    except auth.InvalidIdTokenError as exc:
        logger.info("Invalid token: %s", exc)
        raise _unauthorized(f"Invalid authentication token: {exc}")
    except (MockAuthError, ValueError, firebase_exceptions.FirebaseError) as exc:
        logger.warning("Token verification failed: %s", exc)
        raise _unauthorized(f"Authentication failed: {exc}")


def load_profile(uid: str, db=None) -> Optional[StudentProfile]:
    """Read students/{uid}; None when the student has not onboarded yet."""
    database = db or get_db()
    doc = database.collection("students").document(uid).get()
    if not doc.exists:
        return None
    return StudentProfile(**{**doc.to_dict(), "id": uid})


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    Resolve the caller from the Authorization header.

    A missing students document is not an error: a freshly signed-up user
    has no profile until onboarding completes.
    """
    decoded_token = verify_id_token(credentials.credentials)
    uid = decoded_token.get("uid")
    if not uid:
        raise _unauthorized("Token missing uid claim")

    profile = load_profile(uid)
    email = decoded_token.get("email") or (profile.email if profile else None)
    return CurrentUser(
        uid=uid,
        email=email,
        is_admin=bool(profile and profile.is_admin),
        profile=profile,
    )


async def require_admin(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Dependency that requires students/{uid}.is_admin."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


async def require_onboarded(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Dependency that requires branch, academic year and semester."""
    if user.profile is None or not user.profile.is_onboarded:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ONBOARDING_REQUIRED,
        )
    return user


async def get_id_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """Raw bearer token, forwarded to callable functions."""
    return credentials.credentials
