import os
import unittest
from uuid import uuid4

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.core.security import create_user_token
from tests.base import ApiTestBase


class AuthTests(ApiTestBase):
    def test_register_login_and_me(self):
        registered = self.client.post(
            "/api/v2/auth/register",
            json={"name": "Ada", "email": " Ada@Example.com ", "password": "secret123", "role": "publisher"},
        )
        self.assertEqual(registered.status_code, 201)
        self.assertTrue(registered.json()["token"])

        login = self.client.post("/api/v2/auth/login", json={"email": "ada@example.com", "password": "secret123"})
        self.assertEqual(login.status_code, 200)
        token = login.json()["token"]

        me = self.client.get("/api/v2/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(me.status_code, 200)
        data = me.json()["data"]
        self.assertEqual(data["email"], "ada@example.com")
        self.assertEqual(data["role"], "publisher")

    def test_admin_role_cannot_be_self_registered(self):
        response = self.client.post(
            "/api/v2/auth/register",
            json={"name": "Eve", "email": "eve@example.com", "password": "secret123", "role": "admin"},
        )
        self.assertEqual(response.status_code, 400)

    def test_duplicate_email_is_rejected(self):
        self.create_user(email="ada@example.com")
        response = self.client.post(
            "/api/v2/auth/register",
            json={"name": "Ada", "email": "ada@example.com", "password": "secret123"},
        )
        self.assertEqual(response.status_code, 400)

    def test_wrong_password_is_rejected(self):
        self.create_user(email="ada@example.com", password="secret123")
        response = self.client.post("/api/v2/auth/login", json={"email": "ada@example.com", "password": "nope"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"success": False, "error": "Invalid credentials"})

    def test_invalid_and_stale_tokens_are_rejected(self):
        garbage = self.client.get("/api/v2/auth/me", headers={"Authorization": "Bearer not-a-token"})
        self.assertEqual(garbage.status_code, 401)

        stale = create_user_token(str(uuid4()), "publisher")
        deleted_user = self.client.get("/api/v2/auth/me", headers={"Authorization": f"Bearer {stale}"})
        self.assertEqual(deleted_user.status_code, 401)


if __name__ == "__main__":
    unittest.main()
