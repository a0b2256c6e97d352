"""
Shared Streamlit glue for the SemNotes pages: auth session, API client
and path-based navigation kept in st.session_state.
"""
import streamlit as st

from api import config
from api.errors import SemNotesError
from services.api_client import SemNotesClient
from services.auth_session import AuthSession
from services.identity import MockIdentityClient, get_identity_client

BRANCHES = ["CSE", "ECE", "EEE", "MECH", "CIVIL", "IT"]


@st.cache_resource
def identity_client():
    # One mock identity provider per server process so accounts survive reruns
    if config.USE_MOCK_DB:
        return MockIdentityClient()
    return get_identity_client()


def navigate(path: str):
    st.session_state['path'] = path


def current_path() -> str:
    return st.session_state.get('path', '/')


def _load_profile(id_token: str):
    me = SemNotesClient()._json(
        "GET", "/api/auth/me", headers={"Authorization": f"Bearer {id_token}"}
    )
    return me.get('profile') if me else None


def get_session() -> AuthSession:
    if 'auth' not in st.session_state:
        st.session_state['auth'] = AuthSession(
            identity_client(), profile_loader=_load_profile, navigate=navigate
        )
        st.session_state['auth'].restore(None, current_path())
    return st.session_state['auth']


def get_client() -> SemNotesClient:
    if 'client' not in st.session_state:
        st.session_state['client'] = SemNotesClient(get_session())
    return st.session_state['client']


def call(fn, *args, **kwargs):
    """Run an API call and show its error instead of raising."""
    try:
        return fn(*args, **kwargs)
    except SemNotesError as e:
        st.error(e.message)
        return None


def keep_alive():
    get_session().heartbeat()
