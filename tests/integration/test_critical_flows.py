"""
Integration tests for critical flows, end to end over HTTP
"""
import re
import time

from fastapi.testclient import TestClient


def mailed_code(email_provider) -> str:
    message = email_provider.send.call_args[0][0]
    return re.search(r"<strong>([A-Za-z0-9]+)</strong>", message.html_body).group(1)


class TestAccountFlow:
    """Sign up, sign in, then reach a protected route"""

    def test_signup_signin_protect(self, client: TestClient):
        signup = client.post(
            "/api/v1/users/signup",
            json={"userName": "Taras", "email": "taras@example.com", "password": "Shevchenko1814"},
        )
        assert signup.status_code == 201, f"Signup failed: {signup.text}"

        signin = client.post("/api/v1/users/signin", json={"email": "taras@example.com", "password": "Shevchenko1814"})
        assert signin.status_code == 200
        token = signin.json()["token"]

        me = client.get("/api/v1/users/currentUser", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["data"]["user"]["user_name"] == "Taras"

    def test_short_example_account(self, client: TestClient, email_provider):
        assert client.post("/api/v1/users/signup", json={"email": "a@x.com", "password": "Secret1!"}).status_code == 201
        token = client.post("/api/v1/users/signin", json={"email": "a@x.com", "password": "Secret1!"}).json()["token"]
        me = client.get("/api/v1/users/currentUser", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["data"]["user"]["email"] == "a@x.com"

        client.post("/api/v1/users/forgotPassword", json={"email": "a@x.com"})
        code = mailed_code(email_provider)
        assert len(code) >= 6
        body = {"email": "a@x.com", "passwordResetToken": code, "password": "NewPass1!"}
        assert client.patch("/api/v1/users/resetPassword", json=body).status_code == 200
        assert client.patch("/api/v1/users/resetPassword", json=body).json()["code"] == "INVALID_STATE"


class TestPasswordResetFlow:
    """Request a reset, use the code once, and old sessions stop working"""

    def test_reset_invalidates_old_token(self, client: TestClient, test_user, auth_headers, email_provider):
        assert client.get("/api/v1/users/currentUser", headers=auth_headers).status_code == 200
        time.sleep(0.01)

        assert client.post("/api/v1/users/forgotPassword", json={"email": test_user.email}).status_code == 200
        code = mailed_code(email_provider)

        reset = client.patch(
            "/api/v1/users/resetPassword",
            json={"email": test_user.email, "passwordResetToken": code, "password": "Brandnew123"},
        )
        assert reset.status_code == 200

        stale = client.get("/api/v1/users/currentUser", headers=auth_headers)
        assert stale.status_code == 401

        reused = client.patch(
            "/api/v1/users/resetPassword",
            json={"email": test_user.email, "passwordResetToken": code, "password": "Another123"},
        )
        assert reused.status_code == 400
        assert reused.json()["code"] == "INVALID_STATE"

        signin = client.post("/api/v1/users/signin", json={"email": test_user.email, "password": "Brandnew123"})
        assert signin.status_code == 200


class TestPurchaseFlow:
    """Invoice, paid callback, repeated callback, then file access"""

    def test_buy_course(self, client: TestClient, auth_headers, course, payment_gateway, file_access, config):
        config.REQUIRE_PURCHASE_FOR_FILE_ACCESS = True

        denied = client.post(f"/api/v1/courses/{course.id}/access", headers=auth_headers)
        assert denied.status_code == 403

        invoice = client.post(f"/api/v1/courses/{course.id}/invoice", headers=auth_headers)
        assert invoice.status_code == 200

        for _ in range(2):
            paid = client.post("/api/v1/courses/payment/callback", json={"invoiceId": "inv_123", "status": "success"})
            assert paid.status_code == 200

        me = client.get("/api/v1/users/currentUser", headers=auth_headers)
        assert me.json()["data"]["user"]["purchased_courses"] == [course.id]

        access = client.post(f"/api/v1/courses/{course.id}/access", headers=auth_headers)
        assert access.status_code == 200
        file_access.grant_read.assert_called_once_with("file_abc", "test@example.com")
