from __future__ import annotations

import json

from sqlalchemy import select

from db import SessionLocal
from models import AuditLog, Profile


ADMIN_PASSWORD = "Training-Admin-2024"


def _api(client, payload: dict):
    return client.post("/api", data=json.dumps(payload), content_type="text/plain; charset=utf-8")


def _email_login(client, email: str) -> str:
    res = _api(client, {"action": "EMAIL_LOGIN", "token": None, "data": {"email": email}})
    assert res.status_code == 200, res.get_json()
    body = res.get_json()
    assert body["ok"] is True
    return body["data"]["sessionToken"]


def test_email_login_and_get_me(app_client, seed):
    _app, client = app_client
    uid = seed.profile(name="Siti Aminah", email="siti@example.com", department="Finance")

    res = _api(client, {"action": "EMAIL_LOGIN", "data": {"email": "  SITI@Example.com "}})
    body = res.get_json()
    assert res.status_code == 200
    assert body["data"]["me"]["userId"] == uid
    assert body["data"]["me"]["role"] == "EMPLOYEE"
    token = body["data"]["sessionToken"]

    me = _api(client, {"action": "GET_ME", "token": token}).get_json()
    assert me["ok"] is True
    assert me["data"]["me"]["email"] == "siti@example.com"
    assert me["data"]["me"]["name"] == "Siti Aminah"
    assert "EMPLOYEE_DASHBOARD" in me["data"]["actionKeys"]
    assert "ADMIN_DASHBOARD" not in me["data"]["actionKeys"]


def test_token_accepted_from_bearer_header(app_client, seed):
    _app, client = app_client
    seed.profile(name="Header User", email="header@example.com")
    token = _email_login(client, "header@example.com")

    res = client.post(
        "/api",
        data=json.dumps({"action": "GET_ME"}),
        content_type="text/plain; charset=utf-8",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert res.get_json()["ok"] is True


def test_email_login_rejects_unknown_inactive_and_malformed(app_client, seed):
    _app, client = app_client
    seed.profile(name="Gone", email="gone@example.com", status="inactive")

    res = _api(client, {"action": "EMAIL_LOGIN", "data": {"email": "nobody@example.com"}})
    assert res.status_code == 401
    assert res.get_json()["error"]["code"] == "AUTH_INVALID"

    res = _api(client, {"action": "EMAIL_LOGIN", "data": {"email": "gone@example.com"}})
    assert res.status_code == 401

    res = _api(client, {"action": "EMAIL_LOGIN", "data": {"email": "not-an-email"}})
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "BAD_REQUEST"


def test_email_login_picks_up_admin_role(app_client, seed):
    _app, client = app_client
    seed.profile(name="Boss", email="boss@example.com", role="admin")

    body = _api(client, {"action": "EMAIL_LOGIN", "data": {"email": "boss@example.com"}}).get_json()
    assert body["data"]["me"]["role"] == "ADMIN"


def test_admin_login_requires_password_and_admin_role(app_client, seed):
    _app, client = app_client
    seed.profile(name="Admin", email="admin@example.com", role="admin", password=ADMIN_PASSWORD)
    seed.profile(name="Emp", email="emp@example.com", password=ADMIN_PASSWORD)

    ok = _api(client, {"action": "ADMIN_LOGIN", "data": {"email": "admin@example.com", "password": ADMIN_PASSWORD}})
    assert ok.status_code == 200
    assert ok.get_json()["data"]["me"]["role"] == "ADMIN"

    wrong = _api(client, {"action": "ADMIN_LOGIN", "data": {"email": "admin@example.com", "password": "nope-nope-1"}})
    assert wrong.status_code == 401
    assert wrong.get_json()["error"]["code"] == "AUTH_INVALID"

    not_admin = _api(client, {"action": "ADMIN_LOGIN", "data": {"email": "emp@example.com", "password": ADMIN_PASSWORD}})
    assert not_admin.status_code == 403
    assert not_admin.get_json()["error"]["code"] == "FORBIDDEN"


def test_missing_token_and_employee_forbidden_from_admin_actions(app_client, seed):
    _app, client = app_client
    seed.profile(name="Emp", email="emp@example.com")
    token = _email_login(client, "emp@example.com")

    res = _api(client, {"action": "ADMIN_DASHBOARD", "data": {}})
    assert res.status_code == 401

    res = _api(client, {"action": "ADMIN_DASHBOARD", "token": token, "data": {}})
    assert res.status_code == 403
    assert res.get_json()["error"]["code"] == "FORBIDDEN"

    res = _api(client, {"action": "PROPOSAL_LIST", "token": token, "data": {}})
    assert res.status_code == 403


def test_unknown_action_and_bad_body(app_client, seed):
    _app, client = app_client
    seed.profile(name="Emp", email="emp@example.com")
    token = _email_login(client, "emp@example.com")

    res = _api(client, {"action": "DROP_TABLES", "token": token})
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "BAD_REQUEST"

    res = client.post("/api", data="{not json", content_type="text/plain; charset=utf-8")
    assert res.status_code == 400

    res = _api(client, {"token": token})
    assert res.get_json()["error"]["message"] == "Missing action"


def test_logout_revokes_session(app_client, seed):
    _app, client = app_client
    seed.profile(name="Emp", email="emp@example.com")
    token = _email_login(client, "emp@example.com")

    res = _api(client, {"action": "LOGOUT", "token": token})
    assert res.get_json()["data"] == {"loggedOut": True}

    res = _api(client, {"action": "GET_ME", "token": token})
    assert res.status_code == 401


def test_deactivated_profile_loses_access(app_client, seed):
    _app, client = app_client
    uid = seed.profile(name="Leaver", email="leaver@example.com")
    token = _email_login(client, "leaver@example.com")

    with SessionLocal() as db:
        db.get(Profile, uid).status = "inactive"
        db.commit()

    res = _api(client, {"action": "GET_ME", "token": token})
    assert res.status_code == 403
    assert res.get_json()["error"]["code"] == "FORBIDDEN"


def test_api_calls_and_errors_are_audited_without_secrets(app_client, seed):
    _app, client = app_client
    seed.profile(name="Admin", email="admin@example.com", role="admin", password=ADMIN_PASSWORD)

    _api(client, {"action": "ADMIN_LOGIN", "data": {"email": "admin@example.com", "password": ADMIN_PASSWORD}})
    _api(client, {"action": "ADMIN_LOGIN", "data": {"email": "admin@example.com", "password": "Wrong-pass-123"}})

    with SessionLocal() as db:
        rows = db.execute(select(AuditLog).where(AuditLog.action == "ADMIN_LOGIN")).scalars().all()

    stages = sorted(r.stageTag for r in rows)
    assert stages == ["API_CALL", "API_ERROR", "AUTH_LOGIN"]
    for r in rows:
        assert ADMIN_PASSWORD not in r.metaJson
        assert "Wrong-pass-123" not in r.metaJson
