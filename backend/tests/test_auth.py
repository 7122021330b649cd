"""
Authentication and session tests: sign-up, sign-in, sign-out, profiles.
"""

from datetime import timedelta

import pytest

from importdocs.extensions import db
from importdocs.models import SessionToken, User
from importdocs.services import auth_service, session_service
from importdocs.services.auth_service import PasswordValidationError
from importdocs.time_utils import utcnow
from importdocs.validation import ConflictError, ValidationError

from conftest import PASSWORD, auth_headers


def _signup(client, **overrides):
    body = {
        "email": "new.user@example.com",
        "password": "secret123",
        "confirm_password": "secret123",
        "full_name": "New User",
        "department": "Warehouse",
    }
    body.update(overrides)
    return client.post("/api/auth/signup", json=body)


class TestSignUp:

    def test_signup_creates_profile_with_default_role(self, client):
        resp = _signup(client)
        assert resp.status_code == 201, resp.json
        profile = resp.json["profile"]
        assert profile["role"] == "Requester"
        assert profile["department"] == "Warehouse"
        assert profile["email"] == "new.user@example.com"

    def test_email_is_case_insensitive_and_unique(self, client):
        assert _signup(client).status_code == 201
        assert _signup(client, email="NEW.User@Example.com").status_code == 409

    @pytest.mark.parametrize("overrides", [
        {"password": "short", "confirm_password": "short"},
        {"confirm_password": "different"},
        {"full_name": "   "},
        {"email": "not-an-email"},
        {"department": "Marketing"},
        {"role": "Superuser"},
    ])
    def test_invalid_signup_is_400(self, client, overrides):
        assert _signup(client, **overrides).status_code == 400

    def test_missing_confirmation_is_400(self, client):
        body = {"email": "no.confirm@example.com", "password": "secret123", "full_name": "No Confirm"}
        resp = client.post("/api/auth/signup", json=body)
        assert resp.status_code == 400
        assert resp.json["error"] == "Passwords do not match"
        assert db.session.query(User).filter_by(email="no.confirm@example.com").count() == 0

    def test_password_rules(self, app):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password("12345")
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password("123456", "1234567")
        auth_service.validate_password("123456", "123456")

    def test_duplicate_signup_service_conflict(self, requester):
        with pytest.raises(ConflictError):
            auth_service.sign_up(
                email="rita@example.com", password=PASSWORD, confirm_password=PASSWORD,
                full_name="Again",
            )


class TestSignIn:

    def test_login_returns_token_usable_on_me(self, client, approver):
        resp = client.post("/api/auth/login", json={"email": "ALEX@example.com", "password": PASSWORD})
        assert resp.status_code == 200
        token = resp.json["token"]

        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json["profile"]["role"] == "Approver"
        assert resp.json["capabilities"]["decide_documents"] is True
        assert resp.json["capabilities"]["manage_products"] is False

    def test_wrong_password_is_401(self, client, approver):
        resp = client.post("/api/auth/login", json={"email": "alex@example.com", "password": "nope123"})
        assert resp.status_code == 401

    def test_missing_fields_is_400(self, client):
        assert client.post("/api/auth/login", json={"email": "x@example.com"}).status_code == 400

    def test_deactivated_user_cannot_login(self, client, approver):
        approver.user.is_active = False
        db.session.commit()
        resp = client.post("/api/auth/login", json={"email": "alex@example.com", "password": PASSWORD})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, requester):
        headers = auth_headers(requester)
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401


class TestSessions:

    def test_idle_session_expires(self, requester):
        session, token = session_service.create_session(user_id=requester.id)
        session.last_used_at = utcnow() - session_service.SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db.session.commit()

        assert session_service.validate_session(token) is None
        assert db.session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_absolute_expiry(self, requester):
        session, token = session_service.create_session(user_id=requester.id)
        session.expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()
        assert session_service.validate_session(token) is None

    def test_cleanup_removes_old_revoked_sessions(self, requester):
        session, token = session_service.create_session(user_id=requester.id)
        session_service.revoke_session(token)
        session.created_at = utcnow() - timedelta(days=40)
        db.session.commit()

        assert session_service.cleanup_expired_sessions(retention_days=30) == 1


class TestProfiles:

    def test_self_update(self, client, requester):
        resp = client.patch(
            "/api/auth/profile",
            json={"full_name": "Rita R.", "department": "Finance"},
            headers=auth_headers(requester),
        )
        assert resp.status_code == 200
        assert resp.json["profile"]["full_name"] == "Rita R."
        assert resp.json["profile"]["department"] == "Finance"

    def test_role_is_not_self_service(self, client, requester):
        resp = client.patch(
            "/api/auth/profile", json={"role": "Admin"}, headers=auth_headers(requester)
        )
        assert resp.status_code == 400

    def test_list_profiles_by_role(self, client, requester, approver, other_approver):
        resp = client.get("/api/profiles?role=Approver", headers=auth_headers(requester))
        assert resp.status_code == 200
        assert sorted(p["full_name"] for p in resp.json["items"]) == ["Alex Approver", "Bea Approver"]

    def test_set_role_is_administrative(self, requester):
        profile = auth_service.set_role(requester.id, "Finance")
        assert profile.role == "Finance"
        with pytest.raises(ValidationError):
            auth_service.set_role(requester.id, "Owner")
