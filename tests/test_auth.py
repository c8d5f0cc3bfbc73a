"""
Tests for the credential issuer and the users API
"""
import time
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from course_shop.auth import (
    ALGORITHM, CredentialIssuer, create_access_token, get_password_hash, verify_password, verify_token
)
from course_shop.db import UserStore
from course_shop.exceptions import AuthError, ConflictError, ValidationError
from conftest import TEST_PASSWORD, bearer


class TestPasswordHashing:

    def test_hash_and_verify(self):
        hashed = get_password_hash("Secret123", rounds=4)
        assert hashed != "Secret123"
        assert verify_password("Secret123", hashed)
        assert not verify_password("Secret124", hashed)

    def test_long_password_is_prehashed(self):
        long_password = "Aa1" + "x" * 100
        hashed = get_password_hash(long_password, rounds=4)
        assert verify_password(long_password, hashed)
        # Differs only after byte 72
        assert not verify_password(long_password[:-1] + "y", hashed)

    def test_empty_inputs(self):
        with pytest.raises(ValueError):
            get_password_hash("")
        assert verify_password("", "hash") is False
        assert verify_password("x", "not-a-bcrypt-hash") is False


class TestSignIn:

    def test_missing_email(self, issuer):
        with pytest.raises(ValidationError):
            issuer.sign_in(None, TEST_PASSWORD)

    def test_missing_password(self, issuer, test_user):
        with pytest.raises(ValidationError):
            issuer.sign_in(test_user.email, "")

    def test_unknown_email(self, issuer):
        with pytest.raises(AuthError):
            issuer.sign_in("nobody@example.com", TEST_PASSWORD)

    def test_wrong_password(self, issuer, test_user):
        with pytest.raises(AuthError):
            issuer.sign_in(test_user.email, "Wrong1234")

    def test_token_carries_user_and_expiry(self, issuer, test_user, config):
        user, token = issuer.sign_in("TEST@example.com", TEST_PASSWORD)
        assert user.id == test_user.id

        claims = jwt.decode(token, config.SECRET_KEY, algorithms=[ALGORITHM])
        assert claims["sub"] == str(test_user.id)
        assert claims["exp"] - int(claims["iat"]) == pytest.approx(config.ACCESS_TOKEN_EXPIRE_MINUTES * 60, abs=1)

    def test_sign_in_does_not_modify_user(self, issuer, test_user, db_session):
        before = (test_user.hashed_password, test_user.password_changed_at, test_user.updated_at)
        issuer.sign_in(test_user.email, TEST_PASSWORD)
        db_session.refresh(test_user)
        assert (test_user.hashed_password, test_user.password_changed_at, test_user.updated_at) == before


class TestSignUp:

    def test_creates_user(self, issuer):
        user, token = issuer.sign_up("new@example.com", "Newpass123", user_name="New")
        assert user.id is not None
        assert user.role == "user"
        assert issuer.protect(token).id == user.id

    def test_duplicate_email(self, issuer, test_user):
        with pytest.raises(ConflictError):
            issuer.sign_up(test_user.email, "Newpass123")

    def test_weak_password(self, issuer):
        with pytest.raises(ValidationError) as exc_info:
            issuer.sign_up("weak@example.com", "short")
        assert exc_info.value.details["field"] == "password"


class TestProtect:

    def test_valid_token(self, issuer, test_user):
        token = issuer.issue_token(test_user)
        assert issuer.protect(token).id == test_user.id

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_missing_token(self, issuer, token):
        with pytest.raises(AuthError):
            issuer.protect(token)

    def test_bad_signature(self, issuer, test_user):
        token = create_access_token(test_user.id, "another-secret-key-that-is-32-chars-long", 60)
        with pytest.raises(AuthError):
            issuer.protect(token)

    def test_malformed_token(self, issuer):
        with pytest.raises(AuthError):
            issuer.protect("not.a.jwt")

    def test_expired_token(self, issuer, test_user, config):
        token = create_access_token(test_user.id, config.SECRET_KEY, -1)
        assert verify_token(token, config.SECRET_KEY) is None
        with pytest.raises(AuthError):
            issuer.protect(token)

    def test_token_without_subject(self, issuer, config):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"iat": now.timestamp(), "exp": now + timedelta(minutes=5)},
            config.SECRET_KEY,
            algorithm=ALGORITHM,
        )
        with pytest.raises(AuthError):
            issuer.protect(token)

    def test_deleted_user(self, issuer, test_user, db_session):
        token = issuer.issue_token(test_user)
        db_session.delete(test_user)
        db_session.commit()
        with pytest.raises(AuthError):
            issuer.protect(token)

    def test_token_issued_before_password_change_is_rejected(self, issuer, test_user, db_session):
        old_token = issuer.issue_token(test_user)
        time.sleep(0.01)

        issuer.change_password(test_user, "Changed123")
        UserStore(db_session).save(test_user)

        with pytest.raises(AuthError) as exc_info:
            issuer.protect(old_token)
        assert "changed password" in exc_info.value.message

        new_token = issuer.issue_token(test_user)
        assert issuer.protect(new_token).id == test_user.id


class TestExternalSignIn:

    def test_first_sign_in_creates_user(self, issuer, db_session):
        user, token = issuer.external_sign_in("g@example.com", "Google User")
        assert user.provider == "google"
        assert user.hashed_password
        assert UserStore(db_session).find_by_email("g@example.com").id == user.id

    def test_existing_user_is_reused(self, issuer, test_user):
        user, _ = issuer.external_sign_in(test_user.email, "Other name")
        assert user.id == test_user.id


class TestUsersAPI:
    """HTTP surface of /api/v1/users"""

    def test_signup(self, client):
        response = client.post(
            "/api/v1/users/signup",
            json={"userName": "Olena", "email": "Olena@Example.com", "password": "Kyiv12345"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "success"
        assert data["token"]
        assert data["data"]["user"]["email"] == "olena@example.com"
        assert "hashed_password" not in data["data"]["user"]

    def test_signup_duplicate(self, client, test_user):
        response = client.post(
            "/api/v1/users/signup",
            json={"email": test_user.email, "password": "Kyiv12345"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_signup_invalid_email(self, client):
        response = client.post("/api/v1/users/signup", json={"email": "nope", "password": "Kyiv12345"})
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_signin_missing_password(self, client, test_user):
        response = client.post("/api/v1/users/signin", json={"email": test_user.email})
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_signin_wrong_password(self, client, test_user):
        response = client.post("/api/v1/users/signin", json={"email": test_user.email, "password": "Wrong1234"})
        assert response.status_code == 401
        body = response.json()
        assert body["code"] == "AUTH_ERROR"
        assert body["request_id"] == response.headers["X-Request-ID"]

    def test_signup_signin_protect_flow(self, client):
        signup = client.post("/api/v1/users/signup", json={"email": "flow@example.com", "password": "Flow12345"})
        assert signup.status_code == 201

        signin = client.post("/api/v1/users/signin", json={"email": "flow@example.com", "password": "Flow12345"})
        assert signin.status_code == 200
        token = signin.json()["token"]

        me = client.get("/api/v1/users/currentUser", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["data"]["user"]["email"] == "flow@example.com"

    def test_current_user_requires_token(self, client):
        response = client.get("/api/v1/users/currentUser")
        assert response.status_code == 401

    def test_token_in_body_is_not_accepted(self, client, test_user, config):
        token = bearer(test_user, config)["Authorization"].split()[1]
        response = client.request("GET", "/api/v1/users/currentUser", json={"token": token})
        assert response.status_code == 401

    def test_update_me(self, client, auth_headers):
        response = client.patch("/api/v1/users/updateMe", json={"userName": "Renamed"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["user"]["user_name"] == "Renamed"

    def test_update_me_rejects_password(self, client, auth_headers):
        response = client.patch("/api/v1/users/updateMe", json={"password": "Other1234"}, headers=auth_headers)
        assert response.status_code == 422

    def test_google_auth(self, client, identity_provider):
        identity_provider.verify.return_value = {"email": "g@example.com", "name": "G User"}
        response = client.post("/api/v1/users/googleAuth", json={"idToken": "google-id-token"})
        assert response.status_code == 200
        assert response.json()["data"]["user"]["provider"] == "google"
        identity_provider.verify.assert_called_once_with("google-id-token")

    def test_google_auth_rejected(self, client, identity_provider):
        identity_provider.verify.side_effect = AuthError("Invalid Google ID token")
        response = client.post("/api/v1/users/googleAuth", json={"idToken": "bad"})
        assert response.status_code == 401


class TestRoleGate:

    def test_admin_lists_users(self, client, admin_headers, test_user):
        response = client.get("/api/v1/users/", headers=admin_headers)
        assert response.status_code == 200
        emails = {u["email"] for u in response.json()["data"]["users"]}
        assert {"admin@example.com", test_user.email} <= emails

    def test_user_cannot_list_users(self, client, auth_headers):
        response = client.get("/api/v1/users/", headers=auth_headers)
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_admin_gets_user(self, client, admin_headers, test_user):
        response = client.get(f"/api/v1/users/{test_user.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["user"]["id"] == test_user.id

    def test_admin_gets_missing_user(self, client, admin_headers):
        response = client.get("/api/v1/users/9999", headers=admin_headers)
        assert response.status_code == 404

    def test_admin_updates_user_role(self, client, admin_headers, test_user):
        response = client.patch(
            f"/api/v1/users/{test_user.id}",
            json={"userName": "Promoted", "role": "admin"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        user = response.json()["data"]["user"]
        assert user["user_name"] == "Promoted"
        assert user["role"] == "admin"

    def test_admin_update_rejects_unknown_role(self, client, admin_headers, test_user):
        response = client.patch(f"/api/v1/users/{test_user.id}", json={"role": "owner"}, headers=admin_headers)
        assert response.status_code == 422

    def test_admin_update_rejects_password(self, client, admin_headers, test_user):
        response = client.patch(f"/api/v1/users/{test_user.id}", json={"password": "Other1234"}, headers=admin_headers)
        assert response.status_code == 422

    def test_user_cannot_update_others(self, client, auth_headers, admin_user):
        response = client.patch(f"/api/v1/users/{admin_user.id}", json={"role": "user"}, headers=auth_headers)
        assert response.status_code == 403

    def test_admin_deletes_user(self, client, admin_headers, test_user, auth_headers):
        response = client.delete(f"/api/v1/users/{test_user.id}", headers=admin_headers)
        assert response.status_code == 204
        assert client.get(f"/api/v1/users/{test_user.id}", headers=admin_headers).status_code == 404
        assert client.get("/api/v1/users/currentUser", headers=auth_headers).status_code == 401

    def test_admin_deletes_missing_user(self, client, admin_headers):
        response = client.delete("/api/v1/users/9999", headers=admin_headers)
        assert response.status_code == 404
