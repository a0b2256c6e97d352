# auth_session.py
# Client-side authentication state for the SemNotes UI
#
# AuthSession holds the signed-in user's tokens, notifies listeners about
# SIGNED_IN / SIGNED_OUT / TOKEN_REFRESHED / INITIAL_SESSION, and decides
# where the UI should land after each event:
#
#   SIGNED_IN        profile incomplete -> /onboarding, otherwise /home
#   SIGNED_OUT       -> /
#   INITIAL_SESSION  content pages (/page-view/, /notes/, /subjects/) stay put;
#                    otherwise a remembered path under /admin, /profile,
#                    /subjects, /notes or /home is restored
#
# Visibility handling: returning to the page after more than 1 s and less
# than 30 min of inactivity re-validates the session, and post-sign-in
# navigation is suppressed for 3 s after the page becomes visible again.
# heartbeat() refreshes the session every 10 min while visible; tokens that
# expire within 60 s are refreshed before they are handed out.
#
# @see: services/identity.py - Token issuing and refresh
# @see: UI/main.py - Streamlit pages driving this session

import time
from typing import Any, Callable, Dict, List, Optional

from api.errors import AuthError, SemNotesError
from api.logging_config import get_logger
from services.identity import AuthTokens

logger = get_logger("auth_session")

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"
INITIAL_SESSION = "INITIAL_SESSION"

MIN_INACTIVE_SECONDS = 1
MAX_INACTIVE_SECONDS = 30 * 60
NAVIGATION_SUPPRESS_SECONDS = 3
HEARTBEAT_INTERVAL_SECONDS = 10 * 60
REFRESH_MARGIN_SECONDS = 60

CONTENT_PREFIXES = ("/page-view/", "/notes/", "/subjects/")
RESTORABLE_PREFIXES = ("/admin", "/profile", "/subjects", "/notes", "/home")
PUBLIC_PATHS = ("/", "/auth")

Listener = Callable[[str, Optional[AuthTokens]], None]


def is_protected_path(path: str) -> bool:
    return path not in PUBLIC_PATHS and "/auth/callback" not in path


def is_content_path(path: str) -> bool:
    return path.startswith(CONTENT_PREFIXES)


def should_restore_path(path: Optional[str]) -> bool:
    return bool(path) and path != "/" and path.startswith(RESTORABLE_PREFIXES)


def profile_complete(profile: Optional[Dict[str, Any]]) -> bool:
    if not profile:
        return False
    return bool(profile.get("branch") and profile.get("academic_year") and profile.get("semester"))


class AuthSession:
    """
    Session holder shared by the UI pages.

    Args:
        identity: IdentityClient or MockIdentityClient
        profile_loader: callable(id_token) -> students profile dict or None
        navigate: callable(path) invoked when the session decides a landing page
        clock: time source (seconds)
    """

    def __init__(
        self,
        identity,
        profile_loader: Optional[Callable[[str], Optional[Dict[str, Any]]]] = None,
        navigate: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.identity = identity
        self.profile_loader = profile_loader
        self.navigate = navigate
        self.clock = clock

        self.tokens: Optional[AuthTokens] = None
        self.last_path: Optional[str] = None
        self.visible = True
        self.last_active = clock()
        self.last_heartbeat = clock()
        self._suppress_until = 0.0
        self._restoring = False
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_auth_state_change(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str) -> None:
        logger.debug("Auth state changed: %s", event)
        for listener in list(self._listeners):
            listener(event, self.tokens)

    def _go(self, path: str) -> None:
        if self.navigate is not None:
            self.navigate(path)

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    @property
    def user_id(self) -> Optional[str]:
        return self.tokens.uid if self.tokens else None

    @property
    def is_authenticated(self) -> bool:
        return self.tokens is not None

    @property
    def skip_navigation(self) -> bool:
        return self.clock() < self._suppress_until

    def _load_profile(self) -> Optional[Dict[str, Any]]:
        if self.profile_loader is None or self.tokens is None:
            return None
        return self.profile_loader(self.tokens.id_token)

    def _signed_in(self, tokens: AuthTokens) -> AuthTokens:
        self.tokens = tokens
        self.last_heartbeat = self.clock()
        self._emit(SIGNED_IN)
        if not self.skip_navigation and not self._restoring:
            self._go(self.landing_after_sign_in())
        return tokens

    def landing_after_sign_in(self) -> str:
        try:
            profile = self._load_profile()
        except (SemNotesError, ValueError) as exc:
            logger.warning("Could not load profile after sign-in: %s", exc)
            return "/onboarding"
        return "/home" if profile_complete(profile) else "/onboarding"

    def sign_in(self, email: str, password: str) -> AuthTokens:
        return self._signed_in(self.identity.sign_in_with_password(email, password))

    def sign_up(self, email: str, password: str) -> AuthTokens:
        return self._signed_in(self.identity.sign_up(email, password))

    def sign_in_with_google(self, google_id_token: str) -> AuthTokens:
        return self._signed_in(self.identity.sign_in_with_idp(google_id_token))

    def sign_out(self) -> None:
        self.tokens = None
        self._emit(SIGNED_OUT)
        self._go("/")

    def restore(self, tokens: Optional[AuthTokens], current_path: str = "/") -> Optional[str]:
        """
        Resume a stored session when the UI starts.

        Returns:
            The path navigated to, or None when the current page is kept.
        """
        if is_protected_path(current_path):
            self.last_path = current_path
        if tokens is None:
            self._emit(INITIAL_SESSION)
            return None

        self._restoring = True
        try:
            self.tokens = tokens
            self._emit(INITIAL_SESSION)
            try:
                profile = self._load_profile()
            except (SemNotesError, ValueError) as exc:
                logger.warning("Could not load profile for restored session: %s", exc)
                profile = None

            target = None
            if not profile_complete(profile):
                target = "/onboarding"
            elif is_content_path(current_path):
                target = None
            elif should_restore_path(self.last_path):
                target = self.last_path
            if target:
                self._go(target)
            return target
        finally:
            self._restoring = False

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def refresh(self) -> AuthTokens:
        if self.tokens is None:
            raise AuthError("Not signed in")
        refreshed = self.identity.refresh(self.tokens.refresh_token)
        if refreshed.email is None:
            refreshed.email = self.tokens.email
        self.tokens = refreshed
        self._emit(TOKEN_REFRESHED)
        return refreshed

    def get_id_token(self) -> Optional[str]:
        """Current ID token, refreshed first when it expires within 60 s."""
        if self.tokens is None:
            return None
        if self.tokens.expires_within(REFRESH_MARGIN_SECONDS, now=self.clock()):
            self.refresh()
        return self.tokens.id_token

    # ------------------------------------------------------------------
    # Visibility
    # ------------------------------------------------------------------

    def mark_hidden(self) -> None:
        self.visible = False
        self.last_active = self.clock()

    def mark_visible(self) -> bool:
        """
        Handle the page becoming visible again.

        Returns:
            True when the session was re-validated.
        """
        now = self.clock()
        inactive = now - self.last_active
        self.visible = True
        self.last_active = now
        self._suppress_until = now + NAVIGATION_SUPPRESS_SECONDS

        if self.tokens is None or not MIN_INACTIVE_SECONDS < inactive < MAX_INACTIVE_SECONDS:
            return False
        try:
            self.get_id_token()
        except AuthError as exc:
            logger.info("Session no longer valid after returning: %s", exc)
            self.sign_out()
            return False
        return True

    def heartbeat(self) -> bool:
        """Refresh the session when visible and the interval has elapsed."""
        now = self.clock()
        if not self.visible or self.tokens is None:
            return False
        if now - self.last_heartbeat < HEARTBEAT_INTERVAL_SECONDS:
            return False
        self.last_heartbeat = now
        try:
            self.refresh()
        except AuthError as exc:
            logger.warning("Heartbeat refresh failed: %s", exc)
            return False
        return True
