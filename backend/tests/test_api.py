"""
End-to-end tests through the HTTP API
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from portal.errors import (
    AuthError, AuthorizationError, StoreLookupError, SubmitError, UpdateError, UploadError
)
from portal.models import Admin, Application

PDF = b"%PDF-1.4\n" + b"0" * 4096


def _register_and_login(client, email, full_name="Amina Uwase", phone="+250700000001", password="secret123"):
    response = client.post("/api/auth/register", json={
        "email": email, "password": password, "full_name": full_name, "phone": phone,
    })
    assert response.status_code == 201, response.text
    login = client.post("/api/auth/login", json={"email": email, "password": password})
    assert login.status_code == 200, login.text
    body = login.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['access_token']}"}


def _submit(client, headers, passport_type="application/pdf", **form):
    data = {
        "desired_country": "Canada",
        "desired_institution": "UBC",
        "education_level": "Bachelor's Degree",
        "field_of_study": "Engineering",
    }
    data.update(form)
    files = {
        "passport": ("passport.pdf", PDF, passport_type),
        "transcripts": ("transcripts.pdf", PDF, "application/pdf"),
        "motivation_letter": ("letter.pdf", PDF, "application/pdf"),
    }
    return client.post("/api/applications", data=data, files=files, headers=headers)


@pytest.fixture
def admin_headers(client, db):
    admin_id, headers = _register_and_login(client, "admin@portal.test", full_name="Portal Admin")
    db.add(Admin(id=admin_id, email="admin@portal.test", full_name="Portal Admin"))
    db.commit()
    return headers


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


def test_student_submits_and_sees_only_own_application(client, blobs):
    student_id, headers = _register_and_login(client, "a@x.com")

    response = _submit(client, headers)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["status"] == "Pending"
    assert body["handoff_url"].startswith("https://wa.me/")
    assert len(blobs.objects) == 3

    mine = client.get("/api/applications/mine", headers=headers).json()
    assert [a["id"] for a in mine["data"]] == [body["id"]]
    assert mine["data"][0]["status"] == "Pending"
    assert mine["data"][0]["student_id"] == student_id
    assert mine["student"]["full_name"] == "Amina Uwase"

    _, other_headers = _register_and_login(client, "b@x.com", full_name="Jean Bosco")
    assert client.get("/api/applications/mine", headers=other_headers).json()["data"] == []


def test_admin_updates_status(client, db, admin_headers):
    _, student_headers = _register_and_login(client, "a@x.com")
    app_id = _submit(client, student_headers).json()["id"]

    application = db.get(Application, app_id)
    application.updated_at = datetime.now(timezone.utc) - timedelta(hours=1)
    db.commit()
    before = db.get(Application, app_id).updated_at.replace(tzinfo=None)

    response = client.patch(f"/api/admin/applications/{app_id}/status",
                            json={"status": "Accepted"}, headers=admin_headers)
    assert response.status_code == 200, response.text

    listing = client.get("/api/admin/applications", headers=admin_headers).json()
    (row,) = listing["data"]
    assert row["status"] == "Accepted"
    assert row["student"]["full_name"] == "Amina Uwase"
    assert datetime.fromisoformat(row["updated_at"]).replace(tzinfo=None) > before
    assert listing["counts"]["Accepted"] == 1


def test_non_admin_cannot_update_or_list_all(client, db):
    _, student_headers = _register_and_login(client, "a@x.com")
    app_id = _submit(client, student_headers).json()["id"]

    response = client.patch(f"/api/admin/applications/{app_id}/status",
                            json={"status": "Accepted"}, headers=student_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"

    assert client.get("/api/admin/applications", headers=student_headers).status_code == 403

    db.expire_all()
    assert db.get(Application, app_id).status.value == "Pending"


def test_png_passport_rejected(client, db, blobs):
    _, headers = _register_and_login(client, "a@x.com")

    response = _submit(client, headers, passport_type="image/png")

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_type"
    assert blobs.upload_calls == []
    assert db.query(Application).count() == 0


def test_missing_field_is_422(client, db, blobs):
    _, headers = _register_and_login(client, "a@x.com")

    response = _submit(client, headers, field_of_study="")

    assert response.status_code == 422
    assert response.json()["field"] == "field_of_study"
    assert blobs.upload_calls == []


def test_admin_filtering(client, admin_headers):
    _, h1 = _register_and_login(client, "a@x.com", full_name="Aline Mukamana")
    _, h2 = _register_and_login(client, "b@x.com", full_name="Jean Bosco")
    _submit(client, h1, desired_country="Canada", desired_institution="UBC")
    app2 = _submit(client, h2, desired_country="United States", desired_institution="Harvard University").json()["id"]
    client.patch(f"/api/admin/applications/{app2}/status", json={"status": "Reviewed"}, headers=admin_headers)

    harvard = client.get("/api/admin/applications", params={"search": "harvard"}, headers=admin_headers).json()
    assert [a["id"] for a in harvard["data"]] == [app2]
    assert harvard["total"] == 2

    pending = client.get("/api/admin/applications", params={"status": "Pending"}, headers=admin_headers).json()
    assert [a["student"]["full_name"] for a in pending["data"]] == ["Aline Mukamana"]


def test_requests_without_token_are_401(client):
    assert client.get("/api/applications/mine").status_code == 401
    assert client.get("/api/admin/applications").status_code == 401
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_duplicate_registration_is_409(client):
    _register_and_login(client, "a@x.com")
    response = client.post("/api/auth/register", json={
        "email": "a@x.com", "password": "secret123", "full_name": "Again", "phone": "1",
    })
    assert response.status_code == 409
    assert response.json()["error"] == "duplicate"


def test_me_and_logout(client, identity, admin_headers):
    me = client.get("/api/auth/me", headers=admin_headers).json()
    assert me["is_admin"] is True
    assert me["profile"]["full_name"] == "Portal Admin"

    assert client.post("/api/auth/logout", headers=admin_headers).status_code == 204
    assert client.get("/api/auth/me", headers=admin_headers).status_code == 401


def test_login_reports_admin_flag(client, admin_headers):
    _register_and_login(client, "a@x.com")
    student = client.post("/api/auth/login", json={"email": "a@x.com", "password": "secret123"}).json()
    admin = client.post("/api/auth/login", json={"email": "admin@portal.test", "password": "secret123"}).json()
    assert student["is_admin"] is False
    assert admin["is_admin"] is True


def test_identity_provider_down_is_503_not_401(client, identity):
    _, headers = _register_and_login(client, "a@x.com")
    identity.get_user = Mock(side_effect=AuthError("identity provider unreachable",
                                                   kind="provider_unreachable"))

    response = client.get("/api/applications/mine", headers=headers)

    assert response.status_code == 503
    assert response.json()["error"] == "provider_unreachable"


def test_caller_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "trace-1234"})
    assert response.headers["X-Request-ID"] == "trace-1234"

    spoofed = client.get("/health", headers={"X-Request-ID": "not a usable id!"})
    assert spoofed.headers["X-Request-ID"] != "not a usable id!"


@pytest.mark.parametrize("error, status", [
    (AuthError("bad token"), 401),
    (AuthError("taken", kind="duplicate"), 409),
    (AuthError("profile insert failed", kind="profile_failed"), 500),
    (AuthError("down", kind="provider_unreachable"), 503),
    (AuthorizationError("no"), 403),
    (SubmitError("field_of_study"), 422),
    (UploadError("png", kind="invalid_type"), 400),
    (UploadError("bucket", kind="store_failure"), 502),
    (UpdateError("gone", kind="not_found"), 404),
    (StoreLookupError("db"), 503),
])
def test_status_code_mapping(error, status):
    from portal.main import status_code_for
    assert status_code_for(error) == status


def test_run_serves_app_with_uvicorn(monkeypatch):
    from portal import main
    serve = Mock()
    monkeypatch.setattr(main.uvicorn, "run", serve)

    main.run()

    serve.assert_called_once_with("portal.main:app", host=main.HOST, port=main.PORT, log_config=None)
