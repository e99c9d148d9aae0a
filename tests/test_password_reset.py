"""Tests for reset-link issuance and single-use reset completion."""

import unittest
from datetime import UTC, datetime, timedelta

from sqlalchemy import select

from app.core.security import PASSWORD_MAX_LEN, verify_password
from app.models import User
from app.services.auth_service import (
    FORGOT_PASSWORD_MESSAGE,
    PASSWORD_TOO_LONG_MESSAGE,
    RESET_DONE_MESSAGE,
)
from app.services.credential_store import CredentialStore
from app.services.errors import (
    AuthenticationError,
    DeliveryError,
    InvalidOrExpiredError,
    NotFoundError,
    ValidationError,
)
from tests._support import (
    FixedClock,
    RecordingDispatcher,
    make_service,
    make_session_factory,
    signup,
)

INVALID_LINK_MESSAGE = "Password reset link is invalid or has expired."


class _ResetTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.factory = make_session_factory()
        self.db = self.factory()
        self.clock = FixedClock()
        self.dispatcher = RecordingDispatcher()
        self.service = make_service(self.db, dispatcher=self.dispatcher, clock=self.clock)
        self.alice_id = signup(self.service, "alice", "a@x.com", password="secret1").user_id

    def tearDown(self) -> None:
        self.db.close()

    def stored(self) -> User:
        with self.factory() as db:
            return db.scalars(select(User).where(User.id == self.alice_id)).one()


class TestIssuePasswordReset(_ResetTestCase):
    def test_token_is_persisted_with_24_hour_expiry_and_emailed(self) -> None:
        message = self.service.issue_password_reset(user_id=self.alice_id)
        self.assertEqual(message, "Password reset link sent to a@x.com")
        alice = self.stored()
        self.assertEqual(len(alice.reset_password_token), 64)
        expected = (self.clock.now + timedelta(hours=24)).replace(tzinfo=None)
        self.assertEqual(alice.reset_password_expires.replace(tzinfo=None), expected)
        to_email, url = self.dispatcher.sent[-1]
        self.assertEqual(to_email, "a@x.com")
        self.assertEqual(url, f"http://localhost:5173/reset-password/{alice.reset_password_token}")

    def test_lookup_by_email(self) -> None:
        self.service.issue_password_reset(email="a@x.com")
        self.assertEqual(self.dispatcher.last_token, self.stored().reset_password_token)

    def test_new_issuance_overwrites_previous_token(self) -> None:
        self.service.issue_password_reset(user_id=self.alice_id)
        first = self.dispatcher.last_token
        self.service.issue_password_reset(user_id=self.alice_id)
        second = self.dispatcher.last_token
        self.assertNotEqual(first, second)
        self.assertEqual(self.stored().reset_password_token, second)
        with self.assertRaises(InvalidOrExpiredError):
            self.service.complete_password_reset(first, "new-password-1")

    def test_unknown_account_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError) as ctx:
            self.service.issue_password_reset(user_id=9999)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(self.dispatcher.sent, [])

    def test_account_without_email_is_rejected(self) -> None:
        self.db.query(User).filter(User.id == self.alice_id).update({"email": None})
        self.db.commit()
        with self.assertRaises(ValidationError) as ctx:
            self.service.issue_password_reset(user_id=self.alice_id)
        self.assertEqual(ctx.exception.message, "User has no email address configured.")
        self.assertIsNone(self.stored().reset_password_token)

    def test_delivery_failure_keeps_token_so_resend_is_safe(self) -> None:
        self.dispatcher.fail = True
        with self.assertRaises(DeliveryError) as ctx:
            self.service.issue_password_reset(user_id=self.alice_id)
        self.assertEqual(ctx.exception.status_code, 500)
        persisted = self.stored().reset_password_token
        self.assertIsNotNone(persisted)
        # The persisted token is still redeemable.
        self.assertEqual(
            self.service.complete_password_reset(persisted, "new-password-1"),
            RESET_DONE_MESSAGE,
        )


class TestForgotPassword(_ResetTestCase):
    def test_registered_email_gets_link(self) -> None:
        self.assertEqual(self.service.request_password_reset("a@x.com"), FORGOT_PASSWORD_MESSAGE)
        self.assertEqual(len(self.dispatcher.sent), 1)

    def test_unknown_email_gets_same_response(self) -> None:
        self.assertEqual(self.service.request_password_reset("nobody@x.com"), FORGOT_PASSWORD_MESSAGE)
        self.assertEqual(self.dispatcher.sent, [])

    def test_delivery_failure_is_not_disclosed(self) -> None:
        self.dispatcher.fail = True
        self.assertEqual(self.service.request_password_reset("a@x.com"), FORGOT_PASSWORD_MESSAGE)

    def test_missing_email_is_validation_error(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.request_password_reset("  ")


class TestCompletePasswordReset(_ResetTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.service.issue_password_reset(user_id=self.alice_id)
        self.token = self.dispatcher.last_token

    def test_reset_succeeds_exactly_once(self) -> None:
        self.assertEqual(
            self.service.complete_password_reset(self.token, "new-password-1"),
            RESET_DONE_MESSAGE,
        )
        alice = self.stored()
        self.assertTrue(verify_password("new-password-1", alice.password_hash))
        self.assertIsNone(alice.reset_password_token)
        self.assertIsNone(alice.reset_password_expires)

        with self.assertRaises(InvalidOrExpiredError) as ctx:
            self.service.complete_password_reset(self.token, "new-password-2")
        self.assertEqual(ctx.exception.message, INVALID_LINK_MESSAGE)
        self.assertTrue(verify_password("new-password-1", self.stored().password_hash))

    def test_login_uses_new_password_after_reset(self) -> None:
        self.service.complete_password_reset(self.token, "new-password-1")
        self.assertEqual(self.service.login("alice", "new-password-1").user.id, self.alice_id)
        with self.assertRaises(AuthenticationError):
            self.service.login("alice", "secret1")

    def test_expired_token_matches_wrong_token_message(self) -> None:
        with self.assertRaises(InvalidOrExpiredError) as wrong:
            self.service.complete_password_reset("f" * 64, "new-password-1")

        self.clock.advance(hours=24, seconds=1)
        with self.assertRaises(InvalidOrExpiredError) as expired:
            self.service.complete_password_reset(self.token, "new-password-1")

        self.assertEqual(expired.exception.message, INVALID_LINK_MESSAGE)
        self.assertEqual(expired.exception.message, wrong.exception.message)
        self.assertEqual(expired.exception.status_code, 400)
        self.assertTrue(verify_password("secret1", self.stored().password_hash))

    def test_token_is_rejected_at_exact_expiry_instant(self) -> None:
        self.clock.advance(hours=24)
        with self.assertRaises(InvalidOrExpiredError):
            self.service.complete_password_reset(self.token, "new-password-1")

    def test_token_forced_into_the_past_is_rejected(self) -> None:
        store = CredentialStore(self.db)
        alice = store.get_by_id(self.alice_id)
        store.set_reset_token(alice, self.token, datetime.now(UTC) - timedelta(hours=1))
        self.db.commit()
        real_clock_service = make_service(self.db)
        with self.assertRaises(InvalidOrExpiredError):
            real_clock_service.complete_password_reset(self.token, "new-password-1")

    def test_short_password_is_rejected_and_token_kept(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.complete_password_reset(self.token, "short")
        self.assertEqual(self.stored().reset_password_token, self.token)

    def test_long_password_is_rejected_with_its_own_message(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self.service.complete_password_reset(self.token, "p" * (PASSWORD_MAX_LEN + 1))
        self.assertEqual(ctx.exception.message, PASSWORD_TOO_LONG_MESSAGE)
        self.assertEqual(self.stored().reset_password_token, self.token)

    def test_missing_inputs_are_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.complete_password_reset("", "new-password-1")
        with self.assertRaises(ValidationError):
            self.service.complete_password_reset(self.token, None)


if __name__ == "__main__":
    unittest.main()
