"""HTTP-level tests for /api/auth and /api/users using FastAPI's TestClient."""

import unittest
from datetime import UTC, datetime, timedelta

from fastapi.testclient import TestClient

from app.api.v1.auth import get_dispatcher, get_token_issuer
from app.core.config import get_auth_config
from app.core.database import get_db
from app.core.security import TokenIssuer
from app.main import app
from app.models import User
from app.services.credential_store import CredentialStore
from tests._support import ADMIN_ROLE_ID, SALES_ROLE_ID, RecordingDispatcher, make_session_factory

ALICE = {
    "username": "alice",
    "email": "a@x.com",
    "password": "secret1",
    "firstName": "Alice",
    "lastName": "A",
    "roleId": SALES_ROLE_ID,
}
BOB = {**ALICE, "username": "bob", "email": "b@x.com", "password": "secret2", "firstName": "Bob"}


class _RoutesTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.factory = make_session_factory()
        self.dispatcher = RecordingDispatcher()
        self.issuer = TokenIssuer(get_auth_config())

        def override_db():
            db = self.factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_db
        app.dependency_overrides[get_dispatcher] = lambda: self.dispatcher
        app.dependency_overrides[get_token_issuer] = lambda: self.issuer
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def login(self, email: str, password: str):
        return self.client.post("/api/auth/login", json={"identifier": email, "password": password})

    def auth_header(self, email: str, password: str) -> dict[str, str]:
        token = self.login(email, password).json()["token"]
        return {"Authorization": f"Bearer {token}"}


class TestSignupRoute(_RoutesTestCase):
    def test_first_signup_creates_administrator(self) -> None:
        response = self.client.post("/api/auth/signup", json=ALICE)
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["message"], "Initial System Administrator account created successfully.")
        self.assertIsInstance(body["userId"], int)
        with self.factory() as db:
            self.assertEqual(db.get(User, body["userId"]).role_id, ADMIN_ROLE_ID)

    def test_second_signup_is_regular_user(self) -> None:
        self.client.post("/api/auth/signup", json=ALICE)
        response = self.client.post("/api/auth/signup", json=BOB)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["message"], "User registered successfully.")

    def test_duplicate_email_is_409(self) -> None:
        self.client.post("/api/auth/signup", json=ALICE)
        response = self.client.post("/api/auth/signup", json={**BOB, "email": ALICE["email"]})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json(), {"error": "User with that email already exists."})

    def test_missing_field_is_400(self) -> None:
        response = self.client.post("/api/auth/signup", json={**ALICE, "lastName": ""})
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.json())

    def test_malformed_role_is_400(self) -> None:
        response = self.client.post("/api/auth/signup", json={**ALICE, "roleId": "admin"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.json())


class TestLoginRoute(_RoutesTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client.post("/api/auth/signup", json=ALICE)

    def test_login_returns_token_expiry_and_user(self) -> None:
        response = self.login("a@x.com", "secret1")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(
            set(body["user"]), {"id", "username", "fullName", "email", "roleId", "status"}
        )
        self.assertEqual(body["user"]["fullName"], "Alice A")
        payload = self.issuer.verify(body["token"])
        self.assertEqual(body["expiresAt"], payload["exp"] * 1000)
        self.assertEqual(payload["sub"], str(body["user"]["id"]))

    def test_wrong_password_and_unknown_account_are_identical(self) -> None:
        wrong = self.login("a@x.com", "wrong")
        unknown = self.login("nobody@x.com", "secret1")
        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(wrong.json(), {"error": "Invalid credentials."})
        self.assertEqual(wrong.content, unknown.content)
        self.assertEqual(unknown.status_code, 401)

    def test_inactive_account_is_403(self) -> None:
        with self.factory() as db:
            db.query(User).filter(User.username == "alice").update({"status": "Inactive"})
            db.commit()
        response = self.login("a@x.com", "secret1")
        self.assertEqual(response.status_code, 403)
        self.assertNotEqual(response.json()["error"], "Invalid credentials.")

    def test_me_requires_valid_token(self) -> None:
        self.assertEqual(self.client.get("/api/auth/me").status_code, 401)
        bad = self.client.get("/api/auth/me", headers={"Authorization": "Bearer junk"})
        self.assertEqual(bad.status_code, 401)
        me = self.client.get("/api/auth/me", headers=self.auth_header("a@x.com", "secret1"))
        self.assertEqual(me.status_code, 200)
        self.assertTrue(me.json()["isAdmin"])


class TestResetRoutes(_RoutesTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.alice_id = self.client.post("/api/auth/signup", json=ALICE).json()["userId"]
        self.bob_id = self.client.post("/api/auth/signup", json=BOB).json()["userId"]
        self.admin = self.auth_header("a@x.com", "secret1")

    def test_send_reset_link_then_reset_once(self) -> None:
        response = self.client.post(f"/api/users/{self.bob_id}/send-reset-link", headers=self.admin)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Password reset link sent to b@x.com"})
        token = self.dispatcher.last_token

        body = {"token": token, "newPassword": "brand-new-pass"}
        first = self.client.post("/api/auth/reset-password", json=body)
        self.assertEqual(first.status_code, 200)
        second = self.client.post("/api/auth/reset-password", json=body)
        self.assertEqual(second.status_code, 400)
        self.assertEqual(second.json(), {"error": "Password reset link is invalid or has expired."})
        self.assertEqual(self.login("b@x.com", "brand-new-pass").status_code, 200)

    def test_expired_reset_token_is_400(self) -> None:
        self.client.post(f"/api/users/{self.bob_id}/send-reset-link", headers=self.admin)
        token = self.dispatcher.last_token
        with self.factory() as db:
            store = CredentialStore(db)
            store.set_reset_token(store.get_by_id(self.bob_id), token, datetime.now(UTC) - timedelta(hours=1))
            db.commit()
        response = self.client.post(
            "/api/auth/reset-password", json={"token": token, "newPassword": "brand-new-pass"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Password reset link is invalid or has expired."})

    def test_send_reset_link_unknown_user_is_404(self) -> None:
        response = self.client.post("/api/users/9999/send-reset-link", headers=self.admin)
        self.assertEqual(response.status_code, 404)

    def test_send_reset_link_delivery_failure_is_500(self) -> None:
        self.dispatcher.fail = True
        response = self.client.post(f"/api/users/{self.bob_id}/send-reset-link", headers=self.admin)
        self.assertEqual(response.status_code, 500)
        self.assertIn("error", response.json())

    def test_send_reset_link_requires_admin(self) -> None:
        self.assertEqual(self.client.post(f"/api/users/{self.bob_id}/send-reset-link").status_code, 401)
        bob = self.auth_header("b@x.com", "secret2")
        response = self.client.post(f"/api/users/{self.alice_id}/send-reset-link", headers=bob)
        self.assertEqual(response.status_code, 403)

    def test_forgot_password_is_generic(self) -> None:
        known = self.client.post("/api/auth/forgot-password", json={"email": "b@x.com"})
        unknown = self.client.post("/api/auth/forgot-password", json={"email": "zz@x.com"})
        self.assertEqual(known.status_code, 200)
        self.assertEqual(known.json(), unknown.json())
        self.assertEqual(len(self.dispatcher.sent), 1)

    def test_short_new_password_is_400(self) -> None:
        response = self.client.post(
            "/api/auth/reset-password", json={"token": "x" * 64, "newPassword": "short"}
        )
        self.assertEqual(response.status_code, 400)


class TestUsersRoutes(_RoutesTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client.post("/api/auth/signup", json=ALICE)
        self.bob_id = self.client.post("/api/auth/signup", json=BOB).json()["userId"]
        self.admin = self.auth_header("a@x.com", "secret1")

    def test_list_users_excludes_hash(self) -> None:
        response = self.client.get("/api/users", headers=self.admin)
        self.assertEqual(response.status_code, 200)
        users = response.json()["users"]
        self.assertEqual([u["username"] for u in users], ["alice", "bob"])
        self.assertTrue(all("password_hash" not in u and "passwordHash" not in u for u in users))

    def test_patch_updates_only_given_fields(self) -> None:
        response = self.client.patch(
            f"/api/users/{self.bob_id}", json={"status": "Inactive"}, headers=self.admin
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "Inactive")
        self.assertEqual(response.json()["email"], "b@x.com")
        self.assertEqual(self.login("b@x.com", "secret2").status_code, 403)

    def test_patch_with_no_fields_is_400(self) -> None:
        response = self.client.patch(f"/api/users/{self.bob_id}", json={}, headers=self.admin)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "No fields provided for update."})

    def test_deactivated_token_holder_is_rejected(self) -> None:
        bob = self.auth_header("b@x.com", "secret2")
        self.client.patch(f"/api/users/{self.bob_id}", json={"status": "Inactive"}, headers=self.admin)
        self.assertEqual(self.client.get("/api/auth/me", headers=bob).status_code, 401)


if __name__ == "__main__":
    unittest.main()
