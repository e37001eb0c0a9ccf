"""HTTP-level tests for the /api/v1/auth endpoints."""

from __future__ import annotations

import fakeredis
import pytest

from notes_auth.api.deps import SESSION_SERVICE_KEY
from notes_auth.infra.redis import RedisTokenStore
from notes_auth.infra.sqlalchemy import SqlUserDirectory
from notes_auth.models.user import User
from notes_auth.services._shared.ports import RecordingMailSender, TokenKind
from notes_auth.services.wiring import build_session_service
from tests.factories.user import DEFAULT_PASSWORD, UserFactory

BASE = "/api/v1/auth"
COOKIE = "refresh_token"


# ---- Fixtures ----
@pytest.fixture()
def install_service(app):
    """Swap the app's session facade for one with a recording mailer and a fresh store."""
    original = app.extensions[SESSION_SERVICE_KEY]

    def _install(**overrides):
        overrides.setdefault("mailer", RecordingMailSender())
        service = build_session_service(app.config, users=SqlUserDirectory(), **overrides)
        app.extensions[SESSION_SERVICE_KEY] = service
        return service

    yield _install
    app.extensions[SESSION_SERVICE_KEY] = original


@pytest.fixture()
def service(install_service, session):
    return install_service()


@pytest.fixture()
def client(app, service):
    return app.test_client()


def _login(client, email, password=DEFAULT_PASSWORD):
    return client.post(f"{BASE}/login", json={"email": email, "password": password})


def _refresh_cookie(client):
    return client.get_cookie(COOKIE, path=BASE)


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def _problem_code(resp):
    assert resp.mimetype == "application/problem+json"
    return resp.get_json()["code"]


def _cleared_cookie(resp):
    headers = resp.headers.getlist("Set-Cookie")
    return any(h.startswith(f"{COOKIE}=;") and "Expires=Thu, 01 Jan 1970" in h for h in headers)


# ---- Login ----
def test_login_returns_access_token_and_sets_cookie(client, service):
    user = UserFactory(email="alice@example.com")

    resp = _login(client, "alice@example.com")

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["token_type"] == "bearer"
    assert data["user_id"] == user.id
    assert data["expires_in"] == 15 * 60
    claims = service.rotation.access_codec.verify(data["access_token"]).value
    assert claims.subject == user.id

    set_cookie = resp.headers["Set-Cookie"]
    assert "HttpOnly" in set_cookie
    assert f"Path={BASE}" in set_cookie
    assert "SameSite=Strict" in set_cookie
    assert _refresh_cookie(client) is not None
    assert "refresh_token" not in data


def test_login_with_wrong_password(client):
    UserFactory(email="alice@example.com")

    resp = _login(client, "alice@example.com", "wrong-password")

    assert resp.status_code == 401
    assert _problem_code(resp) == "invalid_credentials"
    assert _refresh_cookie(client) is None


def test_login_unknown_email_matches_wrong_password(client):
    resp = _login(client, "nobody@example.com", "wrong-password")
    assert resp.status_code == 401
    assert _problem_code(resp) == "invalid_credentials"


def test_login_refused_until_email_verified(client):
    UserFactory(email="new@example.com", email_verified=False)

    resp = _login(client, "new@example.com")

    assert resp.status_code == 403
    assert _problem_code(resp) == "email_not_verified"


def test_login_validation_error(client):
    resp = client.post(f"{BASE}/login", json={"email": "not-an-email"})
    assert resp.status_code == 422
    assert _problem_code(resp) == "validation_error"
    assert set(resp.get_json()["details"]["errors"]) == {"email", "password"}


# ---- Refresh ----
def test_refresh_rotates_cookie(client):
    user = UserFactory(email="alice@example.com")
    _login(client, "alice@example.com")
    first = _refresh_cookie(client).value

    resp = client.post(f"{BASE}/refresh", json={"user_id": user.id})

    assert resp.status_code == 200
    assert resp.get_json()["data"]["access_token"]
    assert _refresh_cookie(client).value != first


def test_refresh_token_in_body_for_non_browser_clients(app, client):
    user = UserFactory(email="alice@example.com")
    _login(client, "alice@example.com")
    token = _refresh_cookie(client).value

    other = app.test_client()
    resp = other.post(f"{BASE}/refresh", json={"user_id": user.id, "refresh_token": token})

    assert resp.status_code == 200


def test_replayed_refresh_token_revokes_every_session(app, client, service):
    user = UserFactory(email="alice@example.com")
    _login(client, "alice@example.com")
    stolen = _refresh_cookie(client).value

    # Legitimate client rotates first.
    assert client.post(f"{BASE}/refresh", json={"user_id": user.id}).status_code == 200

    attacker = app.test_client()
    replay = attacker.post(f"{BASE}/refresh", json={"user_id": user.id, "refresh_token": stolen})

    assert replay.status_code == 403
    assert _problem_code(replay) == "token_reuse_detected"
    assert _cleared_cookie(replay)
    assert service.rotation.store.count_for_user(user.id, TokenKind.REFRESH) == 0

    # The legitimate client's current token died with the family.
    legit = client.post(f"{BASE}/refresh", json={"user_id": user.id})
    assert legit.status_code == 403
    assert _refresh_cookie(client) is None


def test_refresh_without_token_is_session_expired(client):
    resp = client.post(f"{BASE}/refresh", json={"user_id": "someone"})

    assert resp.status_code == 401
    assert _problem_code(resp) == "session_expired"
    assert _cleared_cookie(resp)


def test_refresh_with_garbage_token_is_session_expired(client):
    resp = client.post(f"{BASE}/refresh", json={"user_id": "u1", "refresh_token": "garbage"})
    assert resp.status_code == 401
    assert _problem_code(resp) == "session_expired"


def test_refresh_for_other_user_is_session_expired(client):
    UserFactory(email="alice@example.com")
    _login(client, "alice@example.com")

    resp = client.post(f"{BASE}/refresh", json={"user_id": "someone-else"})

    assert resp.status_code == 401
    assert _problem_code(resp) == "session_expired"


def test_refresh_requires_user_id(client):
    resp = client.post(f"{BASE}/refresh", json={})
    assert resp.status_code == 422


# ---- Logout ----
def test_logout_revokes_refresh_token_and_clears_cookie(client, service):
    user = UserFactory(email="alice@example.com")
    access = _login(client, "alice@example.com").get_json()["data"]["access_token"]

    resp = client.post(f"{BASE}/logout", headers=_bearer(access))

    assert resp.status_code == 204
    assert _cleared_cookie(resp)
    assert service.rotation.store.count_for_user(user.id, TokenKind.REFRESH) == 0


def test_logout_all_sessions(app, client, service):
    user = UserFactory(email="alice@example.com")
    access = _login(client, "alice@example.com").get_json()["data"]["access_token"]
    _login(app.test_client(), "alice@example.com")

    resp = client.post(f"{BASE}/logout", json={"all_sessions": True}, headers=_bearer(access))

    assert resp.status_code == 204
    assert service.rotation.store.count_for_user(user.id) == 0


def test_logout_requires_access_token(client):
    resp = client.post(f"{BASE}/logout")
    assert resp.status_code == 401
    assert _problem_code(resp) == "unauthorized"


def test_refresh_token_is_not_an_access_token(client):
    UserFactory(email="alice@example.com")
    _login(client, "alice@example.com")
    refresh = _refresh_cookie(client).value

    resp = client.post(f"{BASE}/logout", headers=_bearer(refresh))

    assert resp.status_code == 401


# ---- Email verification ----
def test_email_verification_flow(client, service, session):
    user = UserFactory(email="new@example.com", email_verified=False)
    access = service.login(user.id).value.access_token

    resp = client.post(f"{BASE}/verify-email/request", headers=_bearer(access))
    assert resp.status_code == 202

    again = client.post(f"{BASE}/verify-email/request", headers=_bearer(access))
    assert again.status_code == 429
    assert _problem_code(again) == "link_pending"

    mail = service.mailer.last("email_verification")
    assert mail.email == "new@example.com"

    confirm = client.post(f"{BASE}/verify-email/confirm", json={"token": mail.token})
    assert confirm.status_code == 200
    assert confirm.get_json()["data"] == {"email_verified": True}
    session.expire_all()
    assert session.get(User, user.id).email_verified is True

    reused = client.post(f"{BASE}/verify-email/confirm", json={"token": mail.token})
    assert reused.status_code == 400
    assert _problem_code(reused) == "invalid_link"

    verified = client.post(f"{BASE}/verify-email/request", headers=_bearer(access))
    assert verified.status_code == 409
    assert _problem_code(verified) == "already_verified"


def test_verify_email_confirm_with_unknown_token(client):
    resp = client.post(f"{BASE}/verify-email/confirm", json={"token": "nope"})
    assert resp.status_code == 400
    assert resp.get_json()["detail"] == "Invalid or expired link"


# ---- Password reset ----
def test_password_reset_flow(client, service):
    UserFactory(email="carol@example.com")
    _login(client, "carol@example.com")

    resp = client.post(f"{BASE}/password-reset/request", json={"email": "carol@example.com"})
    assert resp.status_code == 202
    token = service.mailer.last("password_reset").token

    assert client.get(f"{BASE}/password-reset/{token}").status_code == 200

    confirm = client.post(
        f"{BASE}/password-reset/confirm", json={"token": token, "password": "N3w-password!"}
    )
    assert confirm.status_code == 200
    assert confirm.get_json()["data"] == {"password_reset": True}
    assert _cleared_cookie(confirm)

    assert _login(client, "carol@example.com").status_code == 401
    assert _login(client, "carol@example.com", "N3w-password!").status_code == 200

    used = client.get(f"{BASE}/password-reset/{token}")
    assert used.status_code == 400
    assert _problem_code(used) == "invalid_link"


def test_password_reset_revokes_existing_sessions(client, service):
    user = UserFactory(email="carol@example.com")
    _login(client, "carol@example.com")
    token = service.reset_password_request(user.id).value

    client.post(
        f"{BASE}/password-reset/confirm", json={"token": token, "password": "N3w-password!"}
    )

    assert service.rotation.store.count_for_user(user.id, TokenKind.REFRESH) == 0


@pytest.mark.parametrize(
    "email, verified", [("ghost@example.com", None), ("pending@example.com", False)]
)
def test_password_reset_request_never_discloses_accounts(client, service, email, verified):
    if verified is not None:
        UserFactory(email=email, email_verified=verified)

    resp = client.post(f"{BASE}/password-reset/request", json={"email": email})

    assert resp.status_code == 202
    assert resp.get_json()["data"] == {"status": "accepted"}
    assert service.mailer.outbox == []


def test_password_reset_confirm_rejects_short_password(client, service):
    user = UserFactory(email="carol@example.com")
    token = service.reset_password_request(user.id).value

    resp = client.post(f"{BASE}/password-reset/confirm", json={"token": token, "password": "short"})

    assert resp.status_code == 422
    assert client.get(f"{BASE}/password-reset/{token}").status_code == 200


# ---- Infrastructure failures ----
def test_token_store_outage_is_service_unavailable(app, install_service, session):
    server = fakeredis.FakeServer()
    server.connected = False
    install_service(store=RedisTokenStore(r=fakeredis.FakeRedis(server=server)))
    UserFactory(email="alice@example.com")

    resp = _login(app.test_client(), "alice@example.com")

    assert resp.status_code == 503
    assert _problem_code(resp) == "service_unavailable"


def test_unknown_route_is_problem_json(client):
    resp = client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert _problem_code(resp) == "not_found"
