import unittest
from datetime import timedelta

from tests.base import CrudApiTestBase

from app.core.security import create_jwt, verify_password
from app.models.user import User


class UsersAccessTests(CrudApiTestBase):
    def setUp(self):
        super().setUp()
        self.admin_id = self._seed_user(name="Admin", email="admin@example.com", role="admin")
        self.john_id = self._seed_user(name="John Doe", email="john@example.com")
        self.jane_id = self._seed_user(name="Jane Smith", email="jane@example.com")
        self.admin_headers = self._auth_headers("admin", sub=self.admin_id)
        self.john_headers = self._auth_headers("user", sub=self.john_id, email="john@example.com")

    def test_missing_or_invalid_token_is_401(self):
        self.assertEqual(self.client.get("/api/users").status_code, 401)
        response = self.client.get("/api/users", headers={"Authorization": "Bearer not-a-jwt"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid or expired token"})
        self.assertEqual(response.headers.get("www-authenticate"), "Bearer")

    def test_token_signed_with_other_secret_is_401(self):
        token = create_jwt({"sub": str(self.admin_id), "role": "admin"}, "other-secret", timedelta(minutes=5))
        response = self.client.get("/api/users", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 401)

    def test_non_admin_cannot_list_or_create_users(self):
        self.assertEqual(self.client.get("/api/users", headers=self.john_headers).status_code, 403)
        response = self.client.post(
            "/api/users",
            json={"name": "Eve", "email": "eve@example.com", "password": "secret123"},
            headers=self.john_headers,
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "Insufficient permissions"})

    def test_non_admin_cannot_update_or_delete_other_users(self):
        patch = self.client.patch(f"/api/users/{self.jane_id}", json={"name": "Hacked"}, headers=self.john_headers)
        self.assertEqual(patch.status_code, 403)
        delete = self.client.delete(f"/api/users/{self.jane_id}", headers=self.john_headers)
        self.assertEqual(delete.status_code, 403)

    def test_admin_lists_users_without_password_hash(self):
        response = self.client.get("/api/users", params={"sort": "id", "order": "asc"}, headers=self.admin_headers)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["total"], 3)
        for row in body["data"]:
            self.assertNotIn("password_hash", row)
            self.assertNotIn("password", row)

    def test_admin_cannot_filter_or_sort_on_password_hash(self):
        response = self.client.get("/api/users", params={"sort": "password_hash"}, headers=self.admin_headers)
        self.assertEqual(response.status_code, 400)

    def test_admin_search_users(self):
        response = self.client.get("/api/users", params={"q": "jane"}, headers=self.admin_headers)
        self.assertEqual([row["email"] for row in response.json()["data"]], ["jane@example.com"])

    def test_user_can_update_own_record(self):
        response = self.client.patch(f"/api/users/{self.john_id}", json={"name": "Johnny"}, headers=self.john_headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["name"], "Johnny")
        self.assertEqual(response.json()["role"], "user")

    def test_user_cannot_change_own_role(self):
        response = self.client.patch(f"/api/users/{self.john_id}", json={"role": "admin"}, headers=self.john_headers)
        self.assertEqual(response.status_code, 403)
        self.assertIn("role", response.json()["error"])
        with self.SessionLocal() as db:
            self.assertEqual(db.get(User, self.john_id).role, "user")

    def test_user_replace_keeps_role_and_password(self):
        response = self.client.put(
            f"/api/users/{self.john_id}",
            json={"name": "John D.", "email": "john.d@example.com"},
            headers=self.john_headers,
        )
        self.assertEqual(response.status_code, 200)
        with self.SessionLocal() as db:
            user = db.get(User, self.john_id)
            self.assertEqual(user.role, "user")
            self.assertEqual(user.email, "john.d@example.com")
            self.assertTrue(verify_password("password123", user.password_hash))

    def test_admin_can_change_role(self):
        response = self.client.patch(f"/api/users/{self.jane_id}", json={"role": "manager"}, headers=self.admin_headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["role"], "manager")

    def test_created_user_password_is_hashed(self):
        response = self.client.post(
            "/api/users",
            json={"name": "Bob Wilson", "email": "bob@example.com", "password": "secret123", "role": "manager"},
            headers=self.admin_headers,
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertNotIn("password_hash", body)
        self.assertNotIn("password", body)

        with self.SessionLocal() as db:
            user = db.get(User, body["id"])
            self.assertNotEqual(user.password_hash, "secret123")
            self.assertTrue(verify_password("secret123", user.password_hash))

        login = self.client.post("/api/auth/login", json={"email": "bob@example.com", "password": "secret123"})
        self.assertEqual(login.status_code, 200)

    def test_password_change_is_rehashed(self):
        response = self.client.patch(
            f"/api/users/{self.john_id}", json={"password": "brand-new-pass"}, headers=self.john_headers
        )
        self.assertEqual(response.status_code, 200)
        with self.SessionLocal() as db:
            user = db.get(User, self.john_id)
            self.assertTrue(verify_password("brand-new-pass", user.password_hash))
            self.assertFalse(verify_password("password123", user.password_hash))

    def test_user_create_requires_valid_password(self):
        missing = self.client.post(
            "/api/users", json={"name": "Eve", "email": "eve@example.com"}, headers=self.admin_headers
        )
        self.assertEqual(missing.status_code, 400)
        short = self.client.post(
            "/api/users", json={"name": "Eve", "email": "eve@example.com", "password": "123"}, headers=self.admin_headers
        )
        self.assertEqual(short.status_code, 400)

    def test_client_cannot_write_password_hash_directly(self):
        response = self.client.post(
            "/api/users",
            json={"name": "Eve", "email": "eve@example.com", "password": "secret123", "password_hash": "x"},
            headers=self.admin_headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_duplicate_email_violates_constraint(self):
        response = self.client.post(
            "/api/users",
            json={"name": "Other John", "email": "john@example.com", "password": "secret123"},
            headers=self.admin_headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Data constraint violated"})

    def test_soft_deleted_user_cannot_log_in(self):
        self.assertEqual(self.client.delete(f"/api/users/{self.jane_id}", headers=self.admin_headers).status_code, 200)
        login = self.client.post("/api/auth/login", json={"email": "jane@example.com", "password": "password123"})
        self.assertEqual(login.status_code, 401)


if __name__ == "__main__":
    unittest.main()
