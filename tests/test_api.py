"""
============================================================================
FILE: test_api.py
LOCATION: tests/test_api.py
============================================================================

PURPOSE:
    End-to-end tests of the FastAPI application over TestClient, with the
    mock backend standing in for Firebase.

KEY COMPONENTS:
    - TestHealth: root and health endpoints
    - TestProfileEndpoints: /api/auth/me, onboarding and profile edits
    - TestSubjectEndpoints: catalogue, own subjects, units
    - TestNoteEndpoints: upload, read, view, file retrieval modes
    - TestEngagementEndpoints: bookmarks and ratings
    - TestAdminEndpoints: guards, moderation and multi-upload

USAGE:
    Run with: pytest tests/test_api.py -v
============================================================================
"""

from unittest.mock import MagicMock

from starlette.requests import Request

from api.limiter import client_key
from api.pdf_retrieval import MODE_BLOB, MODE_EMBED, PdfRetrievalResult, PdfRetriever
from api.routers.notes import get_pdf_retriever


class TestHealth:
    def test_root(self, client):
        assert client.get("/").json() == {"message": "SemNotes API"}

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["backend"] == "mock"
        assert body["cache"] is False

    def test_missing_token(self, client):
        assert client.get("/api/auth/me").status_code in (401, 403)

    def test_bad_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestProfileEndpoints:
    def test_me_before_onboarding(self, client, as_user):
        body = client.get("/api/auth/me", headers=as_user("fresh")).json()
        assert body["uid"] == "fresh"
        assert body["onboarded"] is False
        assert body["profile"] is None

    def test_onboarding_then_me(self, client, as_user):
        headers = as_user("fresh")
        response = client.post("/api/profile/onboarding", json={"branch": "CSE", "academic_year": 2, "semester": 1},
                               headers=headers)
        assert response.status_code == 200
        assert response.json()["email"] == "fresh@semnotes.test"

        assert client.get("/api/auth/me", headers=headers).json()["onboarded"] is True

    def test_onboarding_rejects_bad_semester(self, client, as_user):
        response = client.post("/api/profile/onboarding", json={"branch": "CSE", "academic_year": 2, "semester": 3},
                               headers=as_user("fresh"))
        assert response.status_code == 422

    def test_update_profile(self, client, seed, as_user):
        seed.student("u1")
        response = client.put("/api/profile", json={"full_name": "Asha"}, headers=as_user("u1"))
        assert response.json()["full_name"] == "Asha"

    def test_profile_missing(self, client, as_user):
        assert client.get("/api/profile", headers=as_user("ghost")).status_code == 404

    def test_summary(self, client, seed, as_user):
        seed.student("u1")
        seed.note(seed.subject(), student_id="u1", views=3)
        body = client.get("/api/profile/summary", headers=as_user("u1")).json()
        assert body["uploads_count"] == 1
        assert body["views_count"] == 3


class TestSubjectEndpoints:
    def test_search(self, client, seed, as_user):
        seed.subject(name="Compilers")
        seed.subject(name="Circuits", branch="EEE")
        body = client.get("/api/subjects", params={"search": "eee"}, headers=as_user("u1")).json()
        assert [s["name"] for s in body] == ["Circuits"]

    def test_mine_requires_onboarding(self, client, as_user):
        response = client.get("/api/subjects/mine", headers=as_user("fresh"))
        assert response.status_code == 409
        assert response.json()["detail"] == "onboarding required"

    def test_mine(self, client, seed, as_user):
        seed.student("u1", branch="CSE", academic_year=2, semester=1)
        seed.subject(name="Data Structures")
        seed.subject(name="Thermodynamics", branch="MECH")
        body = client.get("/api/subjects/mine", headers=as_user("u1")).json()
        assert [s["name"] for s in body] == ["Data Structures"]

    def test_unknown_subject(self, client, as_user):
        assert client.get("/api/subjects/nope", headers=as_user("u1")).status_code == 404

    def test_create_units_admin_only(self, client, seed, as_user):
        seed.student("u1")
        seed.admin("a1")
        subject_id = seed.subject()

        assert client.post(f"/api/subjects/{subject_id}/units", headers=as_user("u1")).status_code == 403

        response = client.post(f"/api/subjects/{subject_id}/units", headers=as_user("a1", "admin"))
        assert [u["unit_number"] for u in response.json()] == [1, 2, 3, 4, 5]
        listed = client.get(f"/api/subjects/{subject_id}/units", headers=as_user("u1")).json()
        assert len(listed) == 5


class TestNoteEndpoints:
    def _upload(self, client, headers, subject_id, data, content_type="application/pdf", title="Stacks and Queues"):
        return client.post(
            "/api/notes",
            data={
                "title": title,
                "description": "Array and linked implementations",
                "subject_id": subject_id,
                "academic_year": "2",
                "semester": "1",
                "unit_number": "2",
            },
            files={"file": ("stacks.pdf", data, content_type)},
            headers=headers,
        )

    def test_upload(self, client, seed, as_user, pdf_bytes):
        seed.student("u1")
        subject_id = seed.subject()

        response = self._upload(client, as_user("u1"), subject_id, pdf_bytes)

        assert response.status_code == 201
        body = response.json()
        assert body["is_approved"] is False
        assert body["page_count"] == 2
        assert body["unit_number"] == 2

    def test_upload_requires_onboarding(self, client, seed, as_user, pdf_bytes):
        response = self._upload(client, as_user("fresh"), seed.subject(), pdf_bytes)
        assert response.status_code == 409

    def test_upload_rejects_non_pdf(self, client, seed, as_user):
        seed.student("u1")
        response = self._upload(client, as_user("u1"), seed.subject(), b"hello", content_type="text/plain")
        assert response.status_code == 400
        assert response.json()["detail"] == "Please upload a PDF file"

    def test_upload_short_title(self, client, seed, as_user, pdf_bytes):
        seed.student("u1")
        response = self._upload(client, as_user("u1"), seed.subject(), pdf_bytes, title="ab")
        assert response.status_code == 400
        assert response.json()["detail"] == "Title must be at least 3 characters"

    def test_read_note_visibility(self, client, seed, as_user):
        seed.student("u1")
        seed.admin("a1")
        note_id = seed.note(seed.subject(), approved=False)

        assert client.get(f"/api/notes/{note_id}", headers=as_user("u1")).status_code == 404
        assert client.get(f"/api/notes/{note_id}", params={"source": "admin"},
                          headers=as_user("u1")).status_code == 403
        response = client.get(f"/api/notes/{note_id}", params={"source": "admin"}, headers=as_user("a1", "admin"))
        assert response.json()["id"] == note_id

    def test_view_and_history(self, client, seed, as_user, backend):
        seed.student("u1")
        note_id = seed.note(seed.subject(name="Networks"))
        headers = as_user("u1")

        assert client.post(f"/api/notes/{note_id}/view", headers=headers).json() == {"recorded": True}

        history = client.get("/api/notes/history", headers=headers).json()
        assert history[0]["note"]["subject"]["name"] == "Networks"
        assert backend.functions.calls == [("increment_note_views", {"note_id": note_id})]

    def test_file_streams_pdf(self, client, seed, as_user, pdf_bytes):
        note_id = seed.note(seed.subject())
        retriever = MagicMock()
        retriever.retrieve.return_value = PdfRetrievalResult(mode=MODE_BLOB, data=pdf_bytes, strategy="signed_url")
        client.app.dependency_overrides[get_pdf_retriever] = lambda: retriever

        response = client.get(f"/api/notes/{note_id}/file", headers=as_user("u1"))

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["x-pdf-strategy"] == "signed_url"
        assert response.content == pdf_bytes

    def test_file_mobile_gets_embed(self, client, seed, as_user):
        note_id = seed.note(seed.subject())
        retriever = MagicMock()
        retriever.retrieve.return_value = PdfRetrievalResult(mode=MODE_EMBED, url="https://x/notes/a.pdf", strategy="mobile")
        client.app.dependency_overrides[get_pdf_retriever] = lambda: retriever
        headers = {**as_user("u1"), "User-Agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)"}

        body = client.get(f"/api/notes/{note_id}/file", headers=headers).json()

        assert body["mode"] == MODE_EMBED
        assert retriever.retrieve.call_args.kwargs["is_mobile"] is True

    def test_file_from_storage(self, client, seed, as_user, pdf_bytes):
        note_id = seed.note(seed.subject(), stored_bytes=pdf_bytes)
        session = MagicMock()
        failed = MagicMock(ok=False, status_code=403)
        session.get.return_value = failed
        client.app.dependency_overrides[get_pdf_retriever] = lambda: PdfRetriever(session=session)

        response = client.get(f"/api/notes/{note_id}/file", params={"mobile": "false"}, headers=as_user("u1"))

        assert response.headers["x-pdf-strategy"] == "storage_download"
        assert response.content == pdf_bytes

    def test_secure_url(self, client, seed, as_user):
        note_id = seed.note(seed.subject())
        body = client.get(f"/api/notes/{note_id}/secure-url", params={"mobile": "true"}, headers=as_user("u1")).json()
        assert "X-Goog-Expires=3600" in body["url"]


class TestEngagementEndpoints:
    def test_bookmark_lifecycle(self, client, seed, as_user):
        subject_id = seed.subject()
        headers = as_user("u1")

        created = client.post("/api/bookmarks", json={"subject_id": subject_id}, headers=headers)
        assert created.status_code == 201
        assert len(client.get("/api/bookmarks", headers=headers).json()) == 1

        bookmark_id = created.json()["id"]
        assert client.delete(f"/api/bookmarks/{bookmark_id}", headers=as_user("u2")).status_code == 403
        assert client.delete(f"/api/bookmarks/{bookmark_id}", headers=headers).status_code == 204
        assert client.get("/api/bookmarks", headers=headers).json() == []

    def test_ratings(self, client, seed, as_user):
        note_id = seed.note(seed.subject())
        client.post(f"/api/notes/{note_id}/ratings", json={"rating": 4}, headers=as_user("u1"))
        client.post(f"/api/notes/{note_id}/ratings", json={"rating": 2, "comment": "ok"}, headers=as_user("u2"))

        body = client.get(f"/api/notes/{note_id}/ratings", headers=as_user("u1")).json()

        assert body["average_rating"] == 3
        assert len(body["ratings"]) == 2

    def test_rating_out_of_range(self, client, seed, as_user):
        note_id = seed.note(seed.subject())
        response = client.post(f"/api/notes/{note_id}/ratings", json={"rating": 9}, headers=as_user("u1"))
        assert response.status_code == 422


class TestAdminEndpoints:
    def test_students_are_forbidden(self, client, seed, as_user):
        seed.student("u1")
        assert client.get("/api/admin/statistics", headers=as_user("u1", "admin")).status_code == 403

    def test_statistics_and_charts(self, client, seed, as_user):
        seed.admin("a1")
        subject_id = seed.subject(branch="ECE", academic_year=1)
        seed.note(subject_id, approved=False, views=2)
        headers = as_user("a1", "admin")

        stats = client.get("/api/admin/statistics", params={"refresh": "true"}, headers=headers).json()
        assert stats == {"users_count": 1, "notes_count": 1, "total_views": 2, "pending_count": 1}
        branches = client.get("/api/admin/charts/branches", headers=headers).json()
        assert branches == [{"name": "ECE", "value": 1}]
        years = client.get("/api/admin/charts/years", headers=headers).json()
        assert years[0] == {"name": "Year 1", "value": 1}

    def test_toggle_admin(self, client, seed, as_user):
        seed.admin("a1")
        seed.student("u1")
        headers = as_user("a1", "admin")

        assert client.post("/api/admin/users/a1/toggle-admin", headers=headers).status_code == 400
        assert client.post("/api/admin/users/u1/toggle-admin", headers=headers).json()["is_admin"] is True
        assert client.post("/api/admin/users/ghost/toggle-admin", headers=headers).status_code == 404

    def test_users_search(self, client, seed, as_user):
        seed.admin("a1")
        seed.student("u1", full_name="Asha")
        body = client.get("/api/admin/users", params={"search": "asha"}, headers=as_user("a1", "admin")).json()
        assert [u["id"] for u in body] == ["u1"]

    def test_moderation_flow(self, client, seed, as_user, backend, pdf_bytes):
        seed.admin("a1")
        subject_id = seed.subject()
        keep = seed.note(subject_id, approved=False)
        drop = seed.note(subject_id, approved=False, stored_bytes=pdf_bytes, title="Blurry scan")
        headers = as_user("a1", "admin")

        pending = client.get("/api/admin/notes/pending", headers=headers).json()
        assert {n["id"] for n in pending} == {keep, drop}

        approved = client.post(f"/api/admin/notes/{keep}/approve", headers=headers).json()
        assert approved["verified"] is True
        rejected = client.post(f"/api/admin/notes/{drop}/reject", headers=headers).json()
        assert rejected == {"note_id": drop, "deleted": True, "title": "Blurry scan"}

        assert client.get("/api/admin/notes/pending", headers=headers).json() == []
        assert client.post("/api/admin/notes/missing/approve", headers=headers).status_code == 404

    def test_force_endpoints(self, client, seed, as_user, backend):
        seed.admin("a1")
        note_id = seed.note(seed.subject(), approved=True)
        headers = as_user("a1", "admin")

        blank = client.post(f"/api/admin/notes/{note_id}/force-reject", json={"reason": "  "}, headers=headers)
        assert blank.status_code in (400, 422)

        rejected = client.post(f"/api/admin/notes/{note_id}/force-reject", json={"reason": "Wrong unit"},
                               headers=headers).json()
        assert rejected["success"] is True
        assert backend.db.collection("notes").document(note_id).get().get("rejection_reason") == "Wrong unit"

        approved = client.post(f"/api/admin/notes/{note_id}/force-approve", headers=headers).json()
        assert approved["success"] is True

    def test_multi_upload(self, client, seed, as_user, pdf_bytes):
        seed.admin("a1")
        subject_id = seed.subject()
        headers = as_user("a1", "admin")

        response = client.post(
            "/api/admin/multi-upload",
            data={"subject_id": subject_id, "unit_numbers": ["1", "2"]},
            files=[
                ("files", ("unit_one.pdf", pdf_bytes, "application/pdf")),
                ("files", ("unit_two.txt", b"plain text", "text/plain")),
            ],
            headers=headers,
        )

        body = response.json()
        assert body["success_count"] == 1
        assert [r["status"] for r in body["results"]] == ["success", "error"]

    def test_multi_upload_mismatch(self, client, seed, as_user, pdf_bytes):
        seed.admin("a1")
        response = client.post(
            "/api/admin/multi-upload",
            data={"subject_id": seed.subject(), "unit_numbers": ["1", "2"]},
            files=[("files", ("unit_one.pdf", pdf_bytes, "application/pdf"))],
            headers=as_user("a1", "admin"),
        )
        assert response.status_code == 400


class TestRateLimitKey:
    def _request(self, headers=()):
        return Request({"type": "http", "headers": list(headers), "client": ("10.0.0.7", 5000)})

    def test_bearer_token_keyed(self):
        first = client_key(self._request([(b"authorization", b"Bearer mock-token-student-u1")]))
        second = client_key(self._request([(b"authorization", b"Bearer mock-token-student-u2")]))
        assert first.startswith("token:")
        assert first != second

    def test_anonymous_keyed_by_address(self):
        assert client_key(self._request()) == "10.0.0.7"
