"""
SemNotes - Admin Console
Dashboard, moderation queue, user management and multi-unit upload.
Run with: streamlit run UI/admin.py --server.port 8502
"""
import os
import sys

import streamlit as st
from dotenv import load_dotenv

# Add parent dir to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from UI.common import call, get_client, get_session, keep_alive
from services.pdf_viewer import load_viewer_content

load_dotenv()

st.set_page_config(page_title="SemNotes Admin", page_icon="🛡️", layout="wide")

session = get_session()
client = get_client()
keep_alive()

if 'reject_target' not in st.session_state:
    st.session_state['reject_target'] = None
if 'preview_note' not in st.session_state:
    st.session_state['preview_note'] = None

# ========== ADMIN AUTHENTICATION ==========

if not session.is_authenticated:
    st.title("🛡️ SemNotes Admin")
    with st.form("admin_sign_in"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Sign in"):
            if call(session.sign_in, email, password):
                st.rerun()
    st.stop()

me = call(client.me)
if not me or not me.get('is_admin'):
    st.error("Admin access required")
    if st.button("Sign out"):
        session.sign_out()
        st.rerun()
    st.stop()

with st.sidebar:
    st.markdown(f"Signed in as **{me.get('email')}**")
    if st.button("🔄 Refresh", use_container_width=True):
        st.rerun()
    if st.button("Sign out", use_container_width=True):
        session.sign_out()
        st.rerun()

st.title("🛡️ Admin Console")
dashboard_tab, pending_tab, users_tab, upload_tab = st.tabs(["Dashboard", "Pending notes", "Users", "Multi-upload"])

# ========== DASHBOARD ==========

with dashboard_tab:
    stats = call(client.admin_statistics) or {}
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Users", stats.get('users_count', 0))
    col2.metric("Notes", stats.get('notes_count', 0))
    col3.metric("Total views", stats.get('total_views', 0))
    col4.metric("Pending", stats.get('pending_count', 0))

    chart1, chart2 = st.columns(2)
    with chart1:
        st.subheader("Notes by branch")
        branches = call(client.admin_chart, "branches") or []
        if branches:
            st.bar_chart({"name": [r["name"] for r in branches], "notes": [r["value"] for r in branches]}, x="name", y="notes")
        else:
            st.caption("No notes yet")
    with chart2:
        st.subheader("Notes by year")
        years = call(client.admin_chart, "years") or []
        if years:
            st.bar_chart({"name": [r["name"] for r in years], "notes": [r["value"] for r in years]}, x="name", y="notes")

# ========== PENDING NOTES ==========

with pending_tab:
    pending = call(client.pending_notes) or []
    if not pending:
        st.info("🎉 No notes waiting for approval")

    for note in pending:
        with st.container(border=True):
            subject = note.get('subject') or {}
            student = note.get('student') or {}
            st.markdown(f"**{note['title']}** · {subject.get('name', 'Unknown subject')} · Unit {note.get('unit_number', 1)}")
            st.caption(f"{note.get('description') or ''}  \nUploaded by {student.get('email') or note.get('student_id')} on {note.get('created_at', '')[:10]}")

            cols = st.columns(5)
            if cols[0].button("👁️ Preview", key=f"preview_{note['id']}", use_container_width=True):
                st.session_state['preview_note'] = note['id']
            if cols[1].button("✅ Approve", key=f"approve_{note['id']}", use_container_width=True):
                result = call(client.approve_note, note['id'])
                if result and result.get('verified'):
                    st.success("Note approved")
                    st.rerun()
                elif result:
                    st.error("Approval could not be confirmed, try Force approve")
                    with st.expander("Attempted strategies"):
                        st.json(result.get('strategies'))
            if cols[2].button("🗑️ Reject", key=f"reject_{note['id']}", use_container_width=True):
                if call(client.reject_note, note['id']):
                    st.success("Note rejected and deleted")
                    st.rerun()
            if cols[3].button("⚡ Force approve", key=f"force_approve_{note['id']}", use_container_width=True):
                outcome = call(client.force_approve, note['id'])
                if outcome and outcome.get('success'):
                    st.success("Note force approved")
                    st.rerun()
                elif outcome:
                    st.error(outcome.get('error'))
            if cols[4].button("⛔ Force reject", key=f"force_reject_{note['id']}", use_container_width=True):
                st.session_state['reject_target'] = note['id']

            if st.session_state['reject_target'] == note['id']:
                with st.form(f"force_reject_form_{note['id']}"):
                    reason = st.text_area("Reason for rejection")
                    submit, cancel = st.columns(2)
                    if submit.form_submit_button("Reject note"):
                        outcome = call(client.force_reject, note['id'], reason)
                        if outcome and outcome.get('success'):
                            st.session_state['reject_target'] = None
                            st.success("Note rejected")
                            st.rerun()
                        elif outcome:
                            st.error(outcome.get('error'))
                    if cancel.form_submit_button("Cancel"):
                        st.session_state['reject_target'] = None
                        st.rerun()

            if st.session_state['preview_note'] == note['id']:
                content = call(load_viewer_content, client, note['id'], source="admin", max_pages=3)
                if content and content.mode == "blob":
                    for page in content.pages:
                        st.image(page, use_container_width=True)
                elif content and content.mode == "embed":
                    st.markdown(f"[Open PDF]({content.url})")
                elif content:
                    st.error(content.error)

# ========== USERS ==========

with users_tab:
    search = st.text_input("🔍 Search users", placeholder="Email, name or branch")
    users = call(client.admin_users, search or None) or []
    for user in users:
        col1, col2, col3 = st.columns([5, 2, 2])
        col1.markdown(f"**{user.get('full_name') or user.get('email')}**  \n{user.get('email')}")
        col2.caption(f"{user.get('branch') or '-'} · Year {user.get('academic_year') or '-'}")
        label = "Remove admin" if user.get('is_admin') else "Make admin"
        if user['id'] != me['uid'] and col3.button(label, key=f"toggle_{user['id']}", use_container_width=True):
            if call(client.toggle_admin, user['id']):
                st.rerun()

# ========== MULTI-UPLOAD ==========

with upload_tab:
    subjects = call(client.subjects) or []
    options = {f"{s['name']} ({s['branch']}, Year {s['academic_year']}, Sem {s['semester']})": s for s in subjects}
    label = st.selectbox("Subject", list(options.keys()), index=None, placeholder="Please select a subject")
    if label and st.button("Create standard units"):
        if call(client.create_units, options[label]['id']) is not None:
            st.success("Units ready")

    units = []
    for unit_number in range(1, 6):
        with st.expander(f"Unit {unit_number}"):
            file = st.file_uploader(f"PDF for Unit {unit_number}", type=["pdf"], key=f"unit_file_{unit_number}")
            title = st.text_input("Title (optional)", key=f"unit_title_{unit_number}")
            description = st.text_input("Description (optional)", key=f"unit_desc_{unit_number}")
            if file:
                units.append({
                    "unit_number": unit_number,
                    "filename": file.name,
                    "data": file.getvalue(),
                    "title": title,
                    "description": description,
                })

    if st.button("Upload all", type="primary", disabled=not units):
        if not label:
            st.warning("Please select a subject")
        else:
            with st.spinner(f"Uploading {len(units)} file(s)..."):
                outcome = call(client.multi_upload, options[label]['id'], units)
            if outcome:
                st.success(f"Uploaded {outcome['success_count']} of {outcome['total']} files")
                for result in outcome['results']:
                    if result['status'] == "error":
                        st.error(f"Unit {result['unit_number']}: {result['error']}")
