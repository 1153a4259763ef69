"""Tests for HTTP routes using FastAPI TestClient."""

import uuid
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from applicant_intake.applicants.models import Applicant
from applicant_intake.main import create_app

from .conftest import PDF_BYTES, make_settings


def _submit(client, make_form, **kwargs):
    data, files = make_form(**kwargs)
    return client.post("/resume", data=data, files=files)


class TestSubmitResume:
    def test_example_submission(self, client, make_form, db_session):
        response = _submit(client, make_form)
        assert response.status_code == 200
        assert response.text == "Signup successful!"

        applicants = db_session.query(Applicant).all()
        assert len(applicants) == 1
        record = applicants[0]
        assert record.name == "Jane Doe"
        assert record.phone_no == "555-1234"
        assert record.email == "jane.doe@example.com"
        assert response.headers["location"] == f"/resume/{record.id}"

        download = client.get(response.headers["location"])
        assert download.status_code == 200
        assert download.content == PDF_BYTES

    def test_stores_escaped_fields(self, client, make_form, db_session):
        response = _submit(client, make_form, name=" <b>Jane</b> & Co ", phone_no=" 555'1234 ")
        assert response.status_code == 200
        record = db_session.query(Applicant).one()
        assert record.name == "&lt;b&gt;Jane&lt;&#x2F;b&gt; &amp; Co"
        assert record.phone_no == "555&#x27;1234"

    def test_blob_named_by_timestamp_and_filename(self, client, make_form, db_session, upload_dir):
        _submit(client, make_form, filename="my cv.pdf")
        record = db_session.query(Applicant).one()
        files = list(upload_dir.iterdir())
        assert len(files) == 1
        stamp, _, original = files[0].name.partition("-")
        assert stamp.isdigit()
        assert original == "my cv.pdf"
        assert record.resume_path.endswith(files[0].name)

    def test_client_path_in_filename_is_dropped(self, client, make_form, upload_dir):
        response = _submit(client, make_form, filename="../../evil.pdf")
        assert response.status_code == 200
        files = list(upload_dir.iterdir())
        assert len(files) == 1
        assert files[0].name.endswith("-evil.pdf")

    @pytest.mark.parametrize(
        "override, path",
        [
            ({"name": ""}, "name"),
            ({"name": "    "}, "name"),
            ({"phone_no": ""}, "phoneNo"),
            ({"email": "not-an-email"}, "email"),
            ({"email": ""}, "email"),
        ],
    )
    def test_invalid_field_returns_400(self, client, make_form, db_session, upload_dir, override, path):
        response = _submit(client, make_form, **override)
        assert response.status_code == 400
        errors = response.json()["errors"]
        assert [e["path"] for e in errors] == [path]
        assert errors[0]["location"] == "body"
        assert db_session.query(Applicant).count() == 0
        assert not upload_dir.exists() or list(upload_dir.iterdir()) == []

    def test_missing_resume_returns_400(self, client, db_session):
        response = client.post(
            "/resume",
            data={"name": "Jane Doe", "phoneNo": "555-1234", "email": "jane@example.com"},
        )
        assert response.status_code == 400
        assert [e["path"] for e in response.json()["errors"]] == ["resume"]
        assert db_session.query(Applicant).count() == 0

    def test_all_errors_reported_together(self, client):
        response = client.post("/resume", data={"name": "", "phoneNo": "", "email": "x"})
        assert response.status_code == 400
        assert [e["path"] for e in response.json()["errors"]] == ["name", "phoneNo", "email", "resume"]

    def test_resume_sent_as_text_returns_400(self, client, db_session):
        response = client.post(
            "/resume",
            data={"name": "Jane Doe", "phoneNo": "555-1234", "email": "jane@example.com", "resume": "cv.pdf"},
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["path"] == "resume"
        assert db_session.query(Applicant).count() == 0

    def test_duplicate_normalized_email_fails(self, client, make_form, db_session, upload_dir):
        first = _submit(client, make_form, email="Dup@Example.com", filename="first.pdf")
        assert first.status_code == 200

        second = _submit(client, make_form, email="  dup@EXAMPLE.com ", filename="second.pdf")
        assert second.status_code == 500
        assert second.text == "Signup failed. Please try again."

        assert db_session.query(Applicant).count() == 1
        assert [p.name.split("-", 1)[1] for p in upload_dir.iterdir()] == ["first.pdf"]

    def test_storage_failure_removes_blob(self, client, make_form, db_session, upload_dir):
        failure = OperationalError("INSERT INTO applicants", {}, Exception("database is down"))
        with patch("applicant_intake.applicants.routes.create_applicant", side_effect=failure):
            response = _submit(client, make_form)
        assert response.status_code == 500
        assert response.text == "Signup failed. Please try again."
        assert "database is down" not in response.text
        assert list(upload_dir.iterdir()) == []
        assert db_session.query(Applicant).count() == 0

    def test_blob_write_failure_returns_500(self, client, make_form, db_session):
        with patch("applicant_intake.storage.blob_store.BlobStore.save", side_effect=OSError("read-only")):
            response = _submit(client, make_form)
        assert response.status_code == 500
        assert response.text == "Signup failed. Please try again."
        assert db_session.query(Applicant).count() == 0

    def test_distinct_emails_both_retrievable(self, client, make_form):
        a = _submit(client, make_form, email="a@example.com", filename="a.txt", content=b"resume A")
        b = _submit(client, make_form, email="b@example.com", filename="a.txt", content=b"resume B")
        assert a.status_code == 200
        assert b.status_code == 200
        assert a.headers["location"] != b.headers["location"]

        assert client.get(a.headers["location"]).content == b"resume A"
        assert client.get(b.headers["location"]).content == b"resume B"


class TestSubmissionPolicy:
    def test_extension_allow_list(self, tmp_path, engine, make_form):
        settings = make_settings(tmp_path, allowed_resume_extensions="pdf, .DOCX")
        app = create_app(settings, engine=engine)
        with TestClient(app, raise_server_exceptions=False) as client:
            rejected = _submit(client, make_form, filename="cv.exe")
            accepted = _submit(client, make_form, filename="cv.docx")
        assert rejected.status_code == 400
        assert rejected.json()["errors"][0]["path"] == "resume"
        assert accepted.status_code == 200

    def test_size_limit(self, tmp_path, engine, make_form):
        settings = make_settings(tmp_path, max_resume_bytes=10)
        app = create_app(settings, engine=engine)
        with TestClient(app, raise_server_exceptions=False) as client:
            response = _submit(client, make_form, content=b"x" * 11)
        assert response.status_code == 400
        assert response.json()["errors"][0]["path"] == "resume"


class TestDownloadResume:
    def test_unknown_id_returns_404(self, client):
        response = client.get(f"/resume/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.text == "User not found"

    def test_malformed_id_returns_500(self, client):
        response = client.get("/resume/not-a-valid-id")
        assert response.status_code == 500
        assert response.text == "Error retrieving resume"

    def test_missing_file_returns_500(self, client, make_form, upload_dir):
        created = _submit(client, make_form)
        for path in upload_dir.iterdir():
            path.unlink()
        response = client.get(created.headers["location"])
        assert response.status_code == 500
        assert response.text == "Error retrieving resume"

    def test_content_type_follows_filename(self, client, make_form):
        created = _submit(client, make_form)
        response = client.get(created.headers["location"])
        assert response.headers["content-type"] == "application/pdf"


class TestStaticUploads:
    def test_uploaded_file_served_from_mount(self, client, make_form, upload_dir):
        _submit(client, make_form)
        stored = next(upload_dir.iterdir())
        response = client.get(f"/uploads/{stored.name}")
        assert response.status_code == 200
        assert response.content == PDF_BYTES


class TestPagesAndHealth:
    def test_signup_form(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert 'action="/resume"' in response.text
        assert 'name="phoneNo"' in response.text

    def test_health_returns_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["db"] == "ok"
        assert "version" in data
        assert "uptime_seconds" in data

    def test_unknown_route_is_plain_404(self, client):
        response = client.get("/nonexistent-page")
        assert response.status_code == 404
        assert response.text == "Not Found"

    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestRateLimit:
    def test_excess_requests_get_429(self, tmp_path, engine):
        settings = make_settings(tmp_path, rate_limit="2/minute", rate_limit_enabled=True)
        app = create_app(settings, engine=engine)
        with TestClient(app, raise_server_exceptions=False) as client:
            codes = [client.get("/health").status_code for _ in range(3)]
            last = client.get("/health")
        assert codes == [200, 200, 429]
        assert last.json()["error"] == "Too many requests"
        assert last.headers["Retry-After"] == "60"


class TestConcurrentSubmissions:
    def test_parallel_submissions_each_have_a_record(self, tmp_path, make_form):
        settings = make_settings(tmp_path, database_url=f"sqlite:///{tmp_path / 'concurrent.db'}")
        app = create_app(settings)
        forms = [make_form(email=f"user{i}@example.com", content=f"resume {i}".encode()) for i in range(6)]
        forms.append(make_form(email=" USER0@Example.com", content=b"duplicate"))

        with TestClient(app, raise_server_exceptions=False) as client:
            with ThreadPoolExecutor(max_workers=len(forms)) as pool:
                responses = list(pool.map(lambda form: client.post("/resume", data=form[0], files=form[1]), forms))

            succeeded = [(form, r) for form, r in zip(forms, responses) if r.status_code == 200]
            downloads = [
                (form[1]["resume"][1].getvalue(), client.get(r.headers["location"])) for form, r in succeeded
            ]
            with app.state.session_factory() as db:
                stored = db.query(Applicant).count()

        codes = [r.status_code for r in responses]
        assert codes[1:6] == [200] * 5
        assert sorted([codes[0], codes[6]]) == [200, 500]
        assert stored == len(succeeded) == 6
        for content, download in downloads:
            assert download.status_code == 200
            assert download.content == content
        assert len(list((tmp_path / "uploads").iterdir())) == 6


class TestProviderNormalization:
    def test_outlook_subaddress_is_same_applicant(self, client, make_form, db_session):
        first = _submit(client, make_form, email="Foo+jobs@outlook.com", filename="first.pdf")
        second = _submit(client, make_form, email="foo@outlook.com", filename="second.pdf")
        assert first.status_code == 200
        assert second.status_code == 500
        assert [a.email for a in db_session.query(Applicant).all()] == ["foo@outlook.com"]


class TestRetryAfter:
    def test_retry_after_follows_limit_window(self, tmp_path, engine):
        settings = make_settings(tmp_path, rate_limit="1/hour", rate_limit_enabled=True)
        app = create_app(settings, engine=engine)
        with TestClient(app, raise_server_exceptions=False) as client:
            client.get("/health")
            response = client.get("/health")
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "3600"
        assert response.json()["retry_after"] == 3600
