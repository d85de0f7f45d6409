from __future__ import annotations

from solarcrm.auth.jwt import decode_session_token
from solarcrm.models import Lead, User
from solarcrm.models.enums import LeadSource

PASSWORD = "correct-horse-battery"


def _register(fake_auth, user):
    fake_auth.register(user.id, user.email)


def test_login_issues_session_cookie(client, config, fake_auth, users):
    _register(fake_auth, users["office"])

    response = client.post("/api/auth/login", json={"email": "Omar.Office@example.com", "password": PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["role"] == "office"
    assert response.cookies.get(config.SESSION_COOKIE_NAME) == body["session_token"]
    session = decode_session_token(body["session_token"], secret=config.JWT_SECRET)
    assert session.user_id == users["office"].id
    assert session.secondary_refresh_token == f"refresh-{users['office'].id}"


def test_login_rejects_bad_password(client, fake_auth, users):
    _register(fake_auth, users["office"])
    response = client.post("/api/auth/login", json={"email": users["office"].email, "password": "wrong-password"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_login_disabled_account(client, fake_auth, users):
    _register(fake_auth, users["disabled"])
    response = client.post("/api/auth/login", json={"email": users["disabled"].email, "password": PASSWORD})
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "ACCOUNT_DISABLED"


def test_login_without_profile(client, fake_auth):
    fake_auth.register("orphan-id", "orphan@example.com")
    response = client.post("/api/auth/login", json={"email": "orphan@example.com", "password": PASSWORD})
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "User profile not found"


def test_session_reports_profile_role(client, users, auth_headers):
    response = client.get("/api/auth/session", headers=auth_headers(users["agent"]))
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "agent"
    assert response.json()["refresh_recommended"] is False


def test_refresh_is_skipped_inside_window(client, fake_auth, users, auth_headers):
    response = client.post("/api/auth/refresh", headers=auth_headers(users["agent"]))
    assert response.status_code == 200
    assert response.json()["refreshed"] is False
    assert fake_auth.refreshed == []


def test_forced_refresh_reissues_session(client, config, fake_auth, users, auth_headers):
    _register(fake_auth, users["agent"])
    response = client.post("/api/auth/refresh?force=true", headers=auth_headers(users["agent"]))

    assert response.status_code == 200
    assert response.json()["refreshed"] is True
    assert fake_auth.refreshed == [f"refresh-{users['agent'].id}"]
    assert response.cookies.get(config.SESSION_COOKIE_NAME)


def test_refresh_requires_session(client):
    assert client.post("/api/auth/refresh").status_code == 401


def test_logout_clears_cookie_and_signs_out(client, fake_auth, users, auth_headers):
    response = client.post("/api/auth/logout", headers=auth_headers(users["agent"]))
    assert response.json() == {"success": True}
    assert len(fake_auth.signed_out) == 1


def test_logout_tolerates_garbage_token(client, fake_auth):
    response = client.post("/api/auth/logout", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 200
    assert fake_auth.signed_out == []


def test_customer_signup_creates_profile_and_lead(client, db, steps):
    response = client.post(
        "/api/auth/customer-signup",
        json={"email": "neha@example.com", "password": PASSWORD, "name": "Neha Shah", "phone": "9123456780"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["leadCreated"] is True
    assert body["user"]["role"] == "customer"
    assert "session" in body

    db.expire_all()
    profile = db.query(User).filter(User.email == "neha@example.com").one()
    lead = db.query(Lead).filter(Lead.customer_account_id == profile.id).one()
    assert lead.source == LeadSource.SELF
    assert lead.address == "Not provided"


def test_customer_signup_without_session(client, fake_auth, steps):
    fake_auth.return_session_on_signup = False
    response = client.post(
        "/api/auth/customer-signup",
        json={"email": "kabir@example.com", "password": PASSWORD, "name": "Kabir", "phone": "9123456781"},
    )
    assert response.status_code == 201
    assert "session" not in response.json()


def test_customer_signup_duplicate_email(client, users):
    response = client.post(
        "/api/auth/customer-signup",
        json={"email": users["agent"].email, "password": PASSWORD, "name": "Dup", "phone": "9123456782"},
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "EMAIL_EXISTS"


def test_customer_signup_invalid_phone(client):
    response = client.post(
        "/api/auth/customer-signup",
        json={"email": "x@example.com", "password": PASSWORD, "name": "Xavier", "phone": "abcdefghij"},
    )
    assert response.status_code == 400
