"""
Authentication tests.

Login, logout, session validation and timeouts, and the audit trail.
"""

from datetime import timedelta

import pytest

from partsdesk.models import SecurityEvent, SessionToken
from partsdesk.services import auth_service, session_service
from partsdesk.services.auth_service import PasswordValidationError

from conftest import OPERATOR_EMAIL, OPERATOR_PASSWORD, bearer, get_auth_token


@pytest.mark.parametrize("password", ["Sh0rt!", "alllowercase1!", "ALLUPPER1!", "NoDigits!!", "NoSpecial123"])
def test_weak_passwords_rejected(password):
    with pytest.raises(PasswordValidationError):
        auth_service.validate_password_strength(password)


def test_verify_password_handles_garbage_hash():
    assert auth_service.verify_password("Password123!", "not-a-bcrypt-hash") is False


def test_create_user_normalises_email_and_rejects_duplicates(db_session, operator):
    with pytest.raises(ValueError):
        auth_service.create_user("  OWNER@shop.local ", "Password123!")


def test_login_returns_token(client, operator):
    response = client.post("/api/auth/login", json={"email": OPERATOR_EMAIL, "password": OPERATOR_PASSWORD})

    assert response.status_code == 200
    assert len(response.json["token"]) == 64
    assert response.json["user"]["email"] == OPERATOR_EMAIL
    assert "password_hash" not in response.json["user"]


def test_login_failure_is_audited(client, db_session, operator):
    response = client.post("/api/auth/login", json={"email": OPERATOR_EMAIL, "password": "WrongPass1!"})

    assert response.status_code == 401
    event = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
    assert event.success is False
    assert event.resource == OPERATOR_EMAIL


def test_login_requires_both_fields(client, operator):
    response = client.post("/api/auth/login", json={"email": OPERATOR_EMAIL})
    assert response.status_code == 400


def test_token_is_stored_hashed(client, db_session, operator):
    token = get_auth_token(client, OPERATOR_EMAIL, OPERATOR_PASSWORD)
    row = db_session.query(SessionToken).one()
    assert row.token_hash == session_service.hash_token(token)
    assert row.token_hash != token


def test_data_routes_require_auth(client, db_session):
    for path in ("/api/products", "/api/transactions", "/api/dashboard", "/api/backup"):
        assert client.get(path).status_code == 401
    assert client.get("/api/products", headers=bearer("bogus")).status_code == 401


def test_session_route(client, auth_headers):
    response = client.get("/api/auth/session", headers=auth_headers)
    assert response.status_code == 200
    assert response.json["authenticated"] is True
    assert response.json["user"]["email"] == OPERATOR_EMAIL


def test_logout_revokes_token(client, db_session, auth_headers):
    response = client.post("/api/auth/logout", headers=auth_headers)
    assert response.status_code == 200

    assert client.get("/api/auth/session", headers=auth_headers).status_code == 401
    assert client.post("/api/auth/logout", headers=auth_headers).status_code == 401
    assert db_session.query(SecurityEvent).filter_by(event_type="LOGOUT").count() == 1


def test_idle_session_is_revoked(client, db_session, operator):
    token = get_auth_token(client, OPERATOR_EMAIL, OPERATOR_PASSWORD)
    row = db_session.query(SessionToken).one()
    row.last_used_at = row.last_used_at - session_service.SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
    db_session.commit()

    assert session_service.validate_session(token) is None
    db_session.refresh(row)
    assert row.is_revoked is True
    assert row.revoked_reason == "Idle timeout"


def test_expired_session_is_rejected(client, db_session, operator):
    token = get_auth_token(client, OPERATOR_EMAIL, OPERATOR_PASSWORD)
    row = db_session.query(SessionToken).one()
    row.expires_at = row.created_at - timedelta(seconds=1)
    db_session.commit()

    assert session_service.validate_session(token) is None


def test_deactivated_user_loses_session(client, db_session, operator):
    token = get_auth_token(client, OPERATOR_EMAIL, OPERATOR_PASSWORD)
    operator.is_active = False
    db_session.commit()

    assert session_service.validate_session(token) is None
