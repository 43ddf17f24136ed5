import unittest
from datetime import timedelta

from tests.base import CrudApiTestBase

from app.core.config import settings
from app.core.security import create_jwt, decode_jwt
from app.models.user import User


class AuthTests(CrudApiTestBase):
    def _register(self, **overrides):
        payload = {"name": "John Doe", "email": "John@Example.com", "password": "password123"}
        payload.update(overrides)
        return self.client.post("/api/auth/register", json=payload)

    def test_register_returns_user_and_token(self):
        response = self._register()
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["message"], "User registered successfully")
        self.assertEqual(body["user"]["email"], "john@example.com")
        self.assertEqual(body["user"]["role"], "user")
        self.assertNotIn("password_hash", body["user"])

        claims = decode_jwt(body["token"], settings.JWT_SECRET)
        self.assertEqual(claims["sub"], str(body["user"]["id"]))
        self.assertEqual(claims["email"], "john@example.com")
        self.assertEqual(claims["role"], "user")
        self.assertEqual(claims["exp"] - claims["iat"], settings.JWT_TTL_HOURS * 3600)

    def test_register_accepts_manager_but_not_admin(self):
        manager = self._register(email="bob@example.com", role="manager")
        self.assertEqual(manager.status_code, 201)
        self.assertEqual(manager.json()["user"]["role"], "manager")

        admin = self._register(email="eve@example.com", role="admin")
        self.assertEqual(admin.status_code, 400)
        with self.SessionLocal() as db:
            self.assertIsNone(db.query(User).filter(User.email == "eve@example.com").first())

    def test_register_duplicate_email_is_409(self):
        self.assertEqual(self._register().status_code, 201)
        response = self._register(name="Another John", email="JOHN@example.com")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json(), {"error": "Email already registered"})

    def test_register_validates_input(self):
        self.assertEqual(self._register(email="not-an-email").status_code, 400)
        self.assertEqual(self._register(password="123").status_code, 400)
        response = self._register(name="")
        self.assertEqual(response.status_code, 400)
        self.assertIn("name", response.json()["error"])

    def test_login_with_valid_credentials(self):
        self._seed_user(name="Jane Smith", email="jane@example.com", password="secret123")
        response = self.client.post("/api/auth/login", json={"email": " JANE@example.com ", "password": "secret123"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["message"], "Login successful")
        self.assertEqual(body["user"]["name"], "Jane Smith")
        self.assertTrue(body["token"])

    def test_login_with_wrong_password_or_unknown_email_is_401(self):
        self._seed_user(name="Jane Smith", email="jane@example.com", password="secret123")
        wrong = self.client.post("/api/auth/login", json={"email": "jane@example.com", "password": "nope-nope"})
        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(wrong.json(), {"error": "Invalid credentials"})
        unknown = self.client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "secret123"})
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(unknown.json(), {"error": "Invalid credentials"})

    def test_me_returns_current_user(self):
        token = self._register().json()["token"]
        response = self.client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["email"], "john@example.com")

    def test_me_requires_token(self):
        self.assertEqual(self.client.get("/api/auth/me").status_code, 401)

    def test_me_with_expired_token_is_401(self):
        user_id = self._seed_user(name="Jane Smith", email="jane@example.com")
        token = create_jwt(
            {"sub": str(user_id), "email": "jane@example.com", "role": "user"},
            settings.JWT_SECRET,
            timedelta(minutes=-5),
        )
        response = self.client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid or expired token"})

    def test_me_for_deleted_account_is_404(self):
        response = self.client.get("/api/auth/me", headers=self._auth_headers("user", sub=424242))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "User not found"})

    def test_token_from_login_opens_crud_routes(self):
        self._seed_user(name="Jane Smith", email="jane@example.com", password="secret123")
        token = self.client.post(
            "/api/auth/login", json={"email": "jane@example.com", "password": "secret123"}
        ).json()["token"]
        response = self.client.get("/api/products", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], [])


if __name__ == "__main__":
    unittest.main()
