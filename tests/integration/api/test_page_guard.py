from __future__ import annotations

import pytest


@pytest.fixture
def browser(client, config, session_token):
    def _login(user):
        client.cookies.set(config.SESSION_COOKIE_NAME, session_token(user))
        return client

    return _login


def test_anonymous_home_shows_login(client):
    response = client.get("/", follow_redirects=False)
    assert response.status_code == 200
    assert response.json()["page"] == "login"


def test_anonymous_protected_page_redirects_home(client):
    response = client.get("/admin/dashboard", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/?redirectTo=%2Fadmin%2Fdashboard"


def test_signed_in_home_redirects_to_dashboard(browser, users):
    response = browser(users["installer"]).get("/", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/installer/dashboard"


def test_wrong_role_goes_to_own_dashboard(browser, users):
    response = browser(users["office"]).get("/admin/users", follow_redirects=False)
    assert response.headers["location"] == "/office/dashboard"


def test_admin_may_open_every_area(browser, users):
    response = browser(users["admin"]).get("/office/dashboard", follow_redirects=False)
    assert response.status_code == 200
    assert response.json()["page"] == "office_dashboard"
    assert response.json()["metrics"]["role"] == "admin"


def test_disabled_account_is_bounced(browser, users):
    response = browser(users["disabled"]).get("/office/dashboard", follow_redirects=False)
    assert response.headers["location"] == "/?error=account_disabled"


def test_prefix_lookalikes_are_not_guarded(client):
    response = client.get("/administrator", follow_redirects=False)
    assert response.status_code == 404


def test_api_routes_bypass_the_guard(client):
    assert client.get("/api/health", follow_redirects=False).status_code == 200


def test_auth_callback_is_public(client):
    response = client.get("/auth/callback?next=/agent/dashboard", follow_redirects=False)
    assert response.json() == {"page": "auth_callback", "next": "/agent/dashboard"}
