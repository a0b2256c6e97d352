"""
============================================================================
FILE: test_auth_session.py
LOCATION: tests/test_auth_session.py
============================================================================

PURPOSE:
    Tests for the UI session holder: post sign-in navigation, session
    restore, token refresh and the visibility/heartbeat timers.

ROLE IN PROJECT:
    A fake clock drives the timers; MockIdentityClient stands in for the
    Firebase Authentication REST API.

USAGE:
    Run with: pytest tests/test_auth_session.py -v
============================================================================
"""

import pytest

from api.errors import AuthError
from services.auth_session import (
    HEARTBEAT_INTERVAL_SECONDS,
    INITIAL_SESSION,
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    AuthSession,
    is_protected_path,
    should_restore_path,
)
from services.identity import AuthTokens, MockIdentityClient

COMPLETE = {"branch": "CSE", "academic_year": 2, "semester": 1}


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def visits():
    return []


def _session(clock, visits, profile=None, identity=None):
    return AuthSession(
        identity or MockIdentityClient(),
        profile_loader=lambda token: profile,
        navigate=visits.append,
        clock=clock,
    )


class TestPaths:
    def test_protected(self):
        assert not is_protected_path("/")
        assert not is_protected_path("/auth")
        assert not is_protected_path("/auth/callback?code=1")
        assert is_protected_path("/home")

    def test_restorable(self):
        assert should_restore_path("/profile")
        assert not should_restore_path("/")
        assert not should_restore_path("/onboarding")
        assert not should_restore_path(None)


class TestSignIn:
    def test_complete_profile_goes_home(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        events = []
        session.on_auth_state_change(lambda event, tokens: events.append(event))

        session.sign_up("a@b.c", "secret1")

        assert visits == ["/home"]
        assert events == [SIGNED_IN]
        assert session.is_authenticated

    def test_missing_profile_goes_to_onboarding(self, clock, visits):
        _session(clock, visits, profile=None).sign_up("a@b.c", "secret1")
        assert visits == ["/onboarding"]

    def test_profile_error_goes_to_onboarding(self, clock, visits):
        def failing_loader(token):
            raise AuthError("expired")

        session = AuthSession(MockIdentityClient(), profile_loader=failing_loader, navigate=visits.append, clock=clock)
        session.sign_up("a@b.c", "secret1")
        assert visits == ["/onboarding"]

    def test_unsubscribe(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        events = []
        unsubscribe = session.on_auth_state_change(lambda event, tokens: events.append(event))
        unsubscribe()
        session.sign_up("a@b.c", "secret1")
        assert events == []

    def test_sign_out(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        events = []
        session.sign_up("a@b.c", "secret1")
        session.on_auth_state_change(lambda event, tokens: events.append((event, tokens)))

        session.sign_out()

        assert events == [(SIGNED_OUT, None)]
        assert visits[-1] == "/"
        assert session.user_id is None


class TestRestore:
    def _tokens(self, clock, expires_in=3600):
        return AuthTokens(id_token="mock-token-student-u1", refresh_token="mock-refresh-student-u1",
                          uid="u1", expires_at=clock() + expires_in)

    def test_no_session(self, clock, visits):
        session = _session(clock, visits)
        events = []
        session.on_auth_state_change(lambda event, tokens: events.append(event))
        assert session.restore(None, "/home") is None
        assert events == [INITIAL_SESSION]
        assert visits == []

    def test_incomplete_profile(self, clock, visits):
        session = _session(clock, visits, profile={"branch": "CSE"})
        assert session.restore(self._tokens(clock), "/home") == "/onboarding"

    def test_content_page_is_kept(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        assert session.restore(self._tokens(clock), "/notes/n1") is None
        assert visits == []

    def test_protected_page_is_restored(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        assert session.restore(self._tokens(clock), "/profile") == "/profile"

    def test_restore_does_not_trigger_sign_in_navigation(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        session.restore(self._tokens(clock), "/")
        assert visits == []


class TestTokens:
    def test_refresh_near_expiry(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        session.sign_up("a@b.c", "secret1")
        session.tokens.expires_at = clock() + 30
        events = []
        session.on_auth_state_change(lambda event, tokens: events.append(event))

        token = session.get_id_token()

        assert token.startswith("mock-token-student-")
        assert events == [TOKEN_REFRESHED]
        assert session.tokens.email == "a@b.c"

    def test_no_refresh_when_fresh(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        session.sign_up("a@b.c", "secret1")
        session.tokens.expires_at = clock() + 3000
        events = []
        session.on_auth_state_change(lambda event, tokens: events.append(event))
        session.get_id_token()
        assert events == []

    def test_refresh_signed_out(self, clock, visits):
        with pytest.raises(AuthError):
            _session(clock, visits).refresh()


class TestVisibility:
    def test_return_within_window_revalidates(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        session.sign_up("a@b.c", "secret1")
        session.mark_hidden()
        clock.now += 120

        assert session.mark_visible() is True
        assert session.skip_navigation

        clock.now += 5
        assert not session.skip_navigation

    def test_long_absence_not_revalidated(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        session.sign_up("a@b.c", "secret1")
        session.mark_hidden()
        clock.now += 3600
        assert session.mark_visible() is False

    def test_invalid_session_signs_out(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        session.sign_up("a@b.c", "secret1")
        session.tokens.refresh_token = "bogus"
        session.tokens.expires_at = clock()
        session.mark_hidden()
        clock.now += 60

        assert session.mark_visible() is False
        assert not session.is_authenticated
        assert visits[-1] == "/"

    def test_sign_in_during_suppression_skips_navigation(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        session.mark_visible()
        session.sign_up("a@b.c", "secret1")
        assert visits == []


class TestHeartbeat:
    def test_interval(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        session.sign_up("a@b.c", "secret1")

        assert session.heartbeat() is False
        clock.now += HEARTBEAT_INTERVAL_SECONDS
        assert session.heartbeat() is True

    def test_hidden_page_skips(self, clock, visits):
        session = _session(clock, visits, profile=COMPLETE)
        session.sign_up("a@b.c", "secret1")
        session.mark_hidden()
        clock.now += HEARTBEAT_INTERVAL_SECONDS
        assert session.heartbeat() is False
