"""
SemNotes - Student Interface
Sign in, browse subjects, upload notes and read approved PDFs.
Run with: streamlit run UI/main.py
"""
import os
import sys

import streamlit as st
import streamlit.components.v1 as components
from dotenv import load_dotenv

# Add parent dir to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from UI.common import BRANCHES, call, current_path, get_client, get_session, keep_alive, navigate
from services.pdf_viewer import load_viewer_content

load_dotenv()

ADMIN_UI_URL = os.getenv("ADMIN_UI_URL", "http://localhost:8502")

st.set_page_config(page_title="SemNotes", page_icon="📚", layout="wide")

session = get_session()
client = get_client()
keep_alive()

if 'viewed' not in st.session_state:
    st.session_state['viewed'] = set()


def go(path: str):
    navigate(path)
    st.rerun()


# ========== PAGES ==========

def landing_page():
    st.title("📚 SemNotes")
    st.markdown("Share and discover semester notes from students in your branch.")
    if st.button("Get started", type="primary"):
        go("/auth")


def auth_page():
    st.title("Welcome to SemNotes")
    sign_in_tab, sign_up_tab, google_tab = st.tabs(["Sign in", "Sign up", "Google"])

    with sign_in_tab:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Sign in", use_container_width=True):
                if call(session.sign_in, email, password):
                    st.success("Successfully signed in!")
                    st.rerun()

    with sign_up_tab:
        with st.form("sign_up"):
            email = st.text_input("Email", key="signup_email")
            password = st.text_input("Password", type="password", key="signup_password")
            if st.form_submit_button("Create account", use_container_width=True):
                if call(session.sign_up, email, password):
                    st.success("Account created!")
                    st.rerun()

    with google_tab:
        credential = st.text_input("Google ID token", type="password")
        if st.button("Continue with Google") and credential:
            if call(session.sign_in_with_google, credential):
                st.rerun()


def onboarding_page():
    st.title("Complete your profile")
    st.caption("Tell us what you study so we can show you the right subjects.")
    with st.form("onboarding"):
        branch = st.selectbox("Branch", BRANCHES)
        year = st.selectbox("Academic year", [1, 2, 3, 4])
        semester = st.selectbox("Semester", [1, 2])
        if st.form_submit_button("Continue", type="primary"):
            if call(client.complete_onboarding, branch, year, semester):
                go("/home")


def note_row(note, key_prefix):
    col1, col2, col3 = st.columns([6, 1, 1])
    with col1:
        st.markdown(f"**{note.get('title')}** · Unit {note.get('unit_number', 1)}")
        subject = note.get('subject') or {}
        uploader = (note.get('student') or {}).get('full_name') or (note.get('student') or {}).get('email')
        meta = [subject.get('name'), f"{note.get('views') or 0} views"]
        if note.get('average_rating'):
            meta.append(f"★ {note['average_rating']}")
        if uploader:
            meta.append(f"by {uploader}")
        st.caption(" · ".join(m for m in meta if m))
    with col2:
        if st.button("📖 View", key=f"{key_prefix}_view_{note['id']}", use_container_width=True):
            go(f"/page-view/{note['id']}")
    with col3:
        if st.button("🔖", key=f"{key_prefix}_bm_{note['id']}", use_container_width=True):
            if call(client.add_bookmark, note['subject_id'], note['id']):
                st.toast("Bookmarked")


def subject_cards(subjects, key_prefix):
    if not subjects:
        st.info("No subjects found.")
        return
    cols = st.columns(3)
    for i, subject in enumerate(subjects):
        with cols[i % 3]:
            with st.container(border=True):
                st.markdown(f"**{subject['name']}**")
                st.caption(f"{subject['branch']} · Year {subject['academic_year']} · Semester {subject['semester']}")
                if st.button("Open", key=f"{key_prefix}_{subject['id']}", use_container_width=True):
                    go(f"/subjects/{subject['id']}")


def home_page():
    st.title("Home")
    st.subheader("My subjects")
    subject_cards(call(client.my_subjects) or [], "home")

    st.subheader("Recently viewed")
    history = call(client.history) or []
    if not history:
        st.caption("Notes you open will show up here.")
    for entry in history:
        if entry.get('note'):
            note_row(entry['note'], "history")

    st.subheader("Bookmarks")
    for bookmark in call(client.bookmarks) or []:
        label = (bookmark.get('note') or {}).get('title') or (bookmark.get('subject') or {}).get('name')
        col1, col2 = st.columns([8, 1])
        with col1:
            st.markdown(f"🔖 {label}")
        with col2:
            if st.button("✖", key=f"unbm_{bookmark['id']}"):
                call(client.remove_bookmark, bookmark['id'])
                st.rerun()


def explore_page():
    st.title("Explore")
    search = st.text_input("🔍 Search subjects", placeholder="Name, branch, 'Year 2' or 'Semester 1'")
    subject_cards(call(client.subjects, search or None) or [], "explore")


def subject_page(subject_id):
    subject = call(client.subject, subject_id)
    if not subject:
        return
    st.title(subject['name'])
    st.caption(f"{subject['branch']} · Year {subject['academic_year']} · Semester {subject['semester']}")

    units = call(client.units, subject_id) or []
    notes = call(client.subject_notes, subject_id) or []
    if units:
        tabs = st.tabs([f"Unit {u['unit_number']}" for u in units] + ["All"])
        for tab, unit in zip(tabs, units):
            with tab:
                st.caption(unit.get('description') or unit['title'])
                unit_notes = [n for n in notes if n.get('unit_number') == unit['unit_number']]
                if not unit_notes:
                    st.info("No notes for this unit yet.")
                for note in unit_notes:
                    note_row(note, f"unit{unit['unit_number']}")
        with tabs[-1]:
            for note in notes:
                note_row(note, "all")
    else:
        for note in notes:
            note_row(note, "all")


def upload_page():
    st.title("Upload notes")
    subjects = call(client.subjects) or []
    options = {f"{s['name']} ({s['branch']}, Year {s['academic_year']})": s for s in subjects}
    with st.form("upload"):
        title = st.text_input("Title")
        description = st.text_area("Description")
        label = st.selectbox("Subject", list(options.keys()), index=None, placeholder="Please select a subject")
        col1, col2, col3 = st.columns(3)
        with col1:
            year = st.selectbox("Academic year", [1, 2, 3, 4])
        with col2:
            semester = st.selectbox("Semester", [1, 2])
        with col3:
            unit = st.number_input("Unit", min_value=1, max_value=10, value=1)
        file = st.file_uploader("PDF", type=["pdf"])
        if st.form_submit_button("Upload", type="primary"):
            if not file:
                st.warning("Please upload a PDF file")
            else:
                metadata = {
                    "title": title,
                    "description": description,
                    "subject_id": options[label]['id'] if label else "",
                    "academic_year": year,
                    "semester": semester,
                    "unit_number": unit,
                }
                note = call(client.upload_note, metadata, file.name, file.getvalue())
                if note:
                    st.success("Notes uploaded! They will appear once an admin approves them.")


def viewer_page(note_id, source=None):
    note = call(client.note, note_id, source)
    if not note:
        return
    st.title(note['title'])
    st.caption(note.get('description') or "")

    # Count each note once per browser session
    if source != "admin" and note_id not in st.session_state['viewed']:
        client.record_view(note_id)
        st.session_state['viewed'].add(note_id)

    mobile = st.toggle("Mobile layout", value=False)
    with st.spinner("Loading PDF..."):
        content = call(load_viewer_content, client, note_id, source=source, mobile=mobile)
    if content is None:
        return
    if content.mode == "blob":
        for page in content.pages:
            st.image(page, use_container_width=True)
    elif content.mode == "embed":
        if content.error:
            st.caption(f"Showing embedded viewer ({content.error})")
        components.iframe(content.url, height=900, scrolling=True)
    else:
        st.error(content.error)

    if source != "admin":
        st.divider()
        with st.form("rate"):
            rating = st.slider("Rate these notes", 1, 5, 4)
            comment = st.text_input("Comment (optional)")
            if st.form_submit_button("Submit rating"):
                if call(client.rate_note, note_id, rating, comment or None):
                    st.success("Thanks for rating!")


def profile_page():
    summary = call(client.profile_summary)
    if not summary:
        return
    profile = summary.get('profile') or {}
    st.title(profile.get('full_name') or profile.get('email') or "Profile")
    col1, col2, col3 = st.columns(3)
    col1.metric("Uploads", summary['uploads_count'])
    col2.metric("Approved", summary['approved_count'])
    col3.metric("Total views", summary['views_count'])

    with st.expander("Edit profile"):
        with st.form("edit_profile"):
            full_name = st.text_input("Full name", value=profile.get('full_name') or "")
            branch = st.selectbox(
                "Branch", BRANCHES,
                index=BRANCHES.index(profile['branch']) if profile.get('branch') in BRANCHES else 0,
            )
            year = st.selectbox("Academic year", [1, 2, 3, 4], index=(profile.get('academic_year') or 1) - 1)
            semester = st.selectbox("Semester", [1, 2], index=(profile.get('semester') or 1) - 1)
            if st.form_submit_button("Save"):
                if call(client.update_profile, full_name=full_name, branch=branch,
                        academic_year=year, semester=semester):
                    st.success("Profile updated")
                    st.rerun()

    st.subheader("My uploads")
    for note in summary.get('uploads', []):
        status = "✅ Approved" if note.get('is_approved') else "⏳ Pending"
        if note.get('rejection_reason'):
            status = f"❌ Rejected: {note['rejection_reason']}"
        st.markdown(f"**{note['title']}** · {status} · {note.get('views') or 0} views")


# ========== LAYOUT ==========

path = current_path()

if session.is_authenticated:
    with st.sidebar:
        st.markdown(f"Signed in as **{session.tokens.email or session.user_id}**")
        for label, target in [("🏠 Home", "/home"), ("🔍 Explore", "/explore"),
                              ("⬆️ Upload", "/upload"), ("👤 Profile", "/profile")]:
            if st.button(label, use_container_width=True):
                go(target)
        st.markdown(f"[Admin console]({ADMIN_UI_URL})")
        if st.button("Sign out", use_container_width=True):
            session.sign_out()
            st.rerun()

if not session.is_authenticated:
    if path == "/auth":
        auth_page()
    else:
        landing_page()
elif path in ("/", "/auth"):
    go("/home")
elif path == "/onboarding":
    onboarding_page()
elif path == "/home":
    home_page()
elif path == "/explore":
    explore_page()
elif path == "/upload":
    upload_page()
elif path == "/profile":
    profile_page()
elif path.startswith("/subjects/"):
    subject_page(path.split("/", 2)[2])
elif path.startswith("/page-view/"):
    viewer_page(path.split("/", 2)[2])
else:
    st.error("Page not found")
