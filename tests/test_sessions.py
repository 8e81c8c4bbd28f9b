"""Tests for mylibrary.services.sessions.SessionManager: the full account/session lifecycle."""

import unittest
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

from pydantic import ValidationError

from mylibrary.core.database import SessionLocal
from mylibrary.core.security import (
    EMAIL_VERIFICATION_TOKEN,
    TokenExpiredError,
    TokenInvalidError,
    TokenIssuer,
)
from mylibrary.models import User
from mylibrary.schemas.auth import AddressFields, ProfileUpdate
from mylibrary.services.mailer import DeliveryError
from mylibrary.services.sessions import (
    EmailNotVerifiedError,
    InvalidCredentialsError,
    refresh_token_digest,
)
from mylibrary.services.users import (
    DuplicateEmailError,
    DuplicateUsernameError,
    UserNotFoundError,
)
from tests.support import TEST_SECRET, RecordingMailer, make_manager, reset_database


class SessionTestCase(unittest.TestCase):
    def setUp(self) -> None:
        reset_database()
        self.db = SessionLocal()
        self.mailer = RecordingMailer()
        self.manager = make_manager(self.db, self.mailer)

    def tearDown(self) -> None:
        self.db.close()


class TestRegister(SessionTestCase):
    def test_register_returns_user_without_password(self) -> None:
        user = self.manager.register("a@x.com", "a", "P@ss1")
        self.assertEqual(user.email, "a@x.com")
        self.assertEqual(user.username, "a")
        self.assertFalse(user.email_is_verified)
        self.assertNotIn("password", user.model_dump())

    def test_stored_password_is_hashed(self) -> None:
        user = self.manager.register("a@x.com", "a", "P@ss1")
        row = self.db.get(User, user.id)
        self.assertNotEqual(row.password, "P@ss1")

    def test_register_sends_no_email(self) -> None:
        self.manager.register("a@x.com", "a", "P@ss1")
        self.assertEqual(self.mailer.sent, [])

    def test_duplicate_email_leaves_store_unchanged(self) -> None:
        first = self.manager.register("a@x.com", "a", "P@ss1")
        with self.assertRaises(DuplicateEmailError):
            self.manager.register("a@x.com", "someone-else", "Other1")
        rows = self.db.query(User).all()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].id, first.id)
        self.assertEqual(rows[0].username, "a")

    def test_duplicate_username(self) -> None:
        self.manager.register("a@x.com", "a", "P@ss1")
        with self.assertRaises(DuplicateUsernameError):
            self.manager.register("b@x.com", "a", "P@ss1")


class TestLogin(SessionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.manager.register("a@x.com", "a", "P@ss1")

    def test_login_returns_two_distinct_tokens(self) -> None:
        tokens = self.manager.login("a@x.com", "P@ss1")
        self.assertTrue(tokens.access_token)
        self.assertTrue(tokens.refresh_token)
        self.assertNotEqual(tokens.access_token, tokens.refresh_token)

    def test_login_tokens_carry_user_id(self) -> None:
        tokens = self.manager.login("a@x.com", "P@ss1")
        self.assertEqual(tokens.user_id, self.user.id)

    def test_login_persists_refresh_token_digest(self) -> None:
        tokens = self.manager.login("a@x.com", "P@ss1")
        row = self.db.get(User, self.user.id)
        self.assertEqual(row.refresh_token_hash, refresh_token_digest(tokens.refresh_token))

    def test_wrong_password_and_unknown_email_fail_identically(self) -> None:
        with self.assertRaises(InvalidCredentialsError) as wrong_pw:
            self.manager.login("a@x.com", "wrong")
        with self.assertRaises(InvalidCredentialsError) as unknown:
            self.manager.login("nobody@x.com", "P@ss1")
        self.assertIs(type(wrong_pw.exception), type(unknown.exception))
        self.assertEqual(wrong_pw.exception.message, unknown.exception.message)

    def test_register_then_login_scenario(self) -> None:
        tokens = self.manager.login("a@x.com", "P@ss1")
        self.assertTrue(tokens.access_token)
        with self.assertRaises(InvalidCredentialsError):
            self.manager.login("a@x.com", "wrong")

    def test_unverified_email_allowed_by_default(self) -> None:
        self.assertTrue(self.manager.login("a@x.com", "P@ss1").access_token)

    def test_unverified_email_blocked_when_required(self) -> None:
        manager = make_manager(self.db, self.mailer, require_verified_email=True)
        with self.assertRaises(EmailNotVerifiedError):
            manager.login("a@x.com", "P@ss1")
        # Wrong password is still the generic failure, not the verification one.
        with self.assertRaises(InvalidCredentialsError) as ctx:
            manager.login("a@x.com", "wrong")
        self.assertNotIsInstance(ctx.exception, EmailNotVerifiedError)


class TestRefreshAndLogout(SessionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.manager.register("a@x.com", "a", "P@ss1")
        self.tokens = self.manager.login("a@x.com", "P@ss1")

    def test_refresh_issues_new_pair(self) -> None:
        new = self.manager.refresh(self.tokens.refresh_token)
        self.assertNotEqual(new.refresh_token, self.tokens.refresh_token)
        self.assertNotEqual(new.access_token, self.tokens.access_token)

    def test_rotated_refresh_token_cannot_be_reused(self) -> None:
        new = self.manager.refresh(self.tokens.refresh_token)
        with self.assertRaises(TokenInvalidError):
            self.manager.refresh(self.tokens.refresh_token)
        self.assertTrue(self.manager.refresh(new.refresh_token).access_token)

    def test_refresh_after_logout_fails(self) -> None:
        self.manager.logout(self.user.id)
        with self.assertRaises(TokenInvalidError):
            self.manager.refresh(self.tokens.refresh_token)

    def test_logout_is_idempotent(self) -> None:
        self.manager.logout(self.user.id)
        self.manager.logout(self.user.id)
        self.manager.logout("unknown-user")
        self.assertIsNone(self.db.get(User, self.user.id).refresh_token_hash)

    def test_access_token_is_not_a_refresh_token(self) -> None:
        with self.assertRaises(TokenInvalidError):
            self.manager.refresh(self.tokens.access_token)

    def test_garbage_refresh_token(self) -> None:
        with self.assertRaises(TokenInvalidError):
            self.manager.refresh("garbage")

    def test_expired_refresh_token(self) -> None:
        expired = TokenIssuer(TEST_SECRET).issue(
            {"sub": self.user.id, "type": "refresh"}, timedelta(seconds=-1)
        )
        with self.assertRaises(TokenExpiredError):
            self.manager.refresh(expired)


class TestEmailVerification(SessionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.manager.register("a@x.com", "a", "P@ss1")

    def test_request_sends_link_with_token(self) -> None:
        token = self.manager.request_email_verification("a@x.com")
        self.assertEqual(len(self.mailer.sent), 1)
        to, subject, body = self.mailer.sent[0]
        self.assertEqual(to, "a@x.com")
        self.assertEqual(subject, "Email Verification")
        self.assertIn("Welcome to MyLibrary!", body)
        start = body.index('href="') + len('href="')
        link = body[start : body.index('"', start)].replace("&amp;", "&")
        parsed = urlparse(link)
        self.assertEqual(parsed.path, "/api/v1/auth/verify-email")
        self.assertEqual(parse_qs(parsed.query)["token"], [token])

    def test_request_unknown_email(self) -> None:
        with self.assertRaises(UserNotFoundError):
            self.manager.request_email_verification("nobody@x.com")
        self.assertEqual(self.mailer.sent, [])

    def test_delivery_failure_propagates(self) -> None:
        manager = make_manager(self.db, RecordingMailer(fail=True))
        with self.assertRaises(DeliveryError):
            manager.request_email_verification("a@x.com")

    def test_verify_sets_flag_and_is_idempotent(self) -> None:
        token = self.manager.request_email_verification("a@x.com")
        self.assertTrue(self.manager.verify_email(token).email_is_verified)
        self.assertTrue(self.manager.verify_email(token).email_is_verified)

    def test_expired_verification_token(self) -> None:
        token = TokenIssuer(TEST_SECRET).issue(
            {"email": "a@x.com", "type": EMAIL_VERIFICATION_TOKEN}, timedelta(seconds=-1)
        )
        with self.assertRaises(TokenExpiredError):
            self.manager.verify_email(token)
        self.assertFalse(self.db.get(User, self.user.id).email_is_verified)

    def test_login_token_cannot_verify_email(self) -> None:
        tokens = self.manager.login("a@x.com", "P@ss1")
        with self.assertRaises(TokenInvalidError):
            self.manager.verify_email(tokens.access_token)

    def test_token_for_unknown_email(self) -> None:
        token = TokenIssuer(TEST_SECRET).issue(
            {"email": "gone@x.com", "type": EMAIL_VERIFICATION_TOKEN}, timedelta(hours=1)
        )
        with self.assertRaises(TokenInvalidError):
            self.manager.verify_email(token)


class TestProfile(SessionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.manager.register("a@x.com", "a", "P@ss1")

    def test_get_profile(self) -> None:
        self.assertEqual(self.manager.get_profile(self.user.id).username, "a")

    def test_get_profile_unknown(self) -> None:
        with self.assertRaises(UserNotFoundError):
            self.manager.get_profile("missing")

    def test_update_username_phone_and_address(self) -> None:
        changes = ProfileUpdate(
            username="alice",
            phone_number="+2348000000000",
            address=AddressFields(
                apartment_number="1", street="Broad St", city="Lagos", country="NG"
            ),
        )
        user = self.manager.update_profile(self.user.id, changes)
        self.assertEqual(user.username, "alice")
        self.assertEqual(user.phone_number, "+2348000000000")
        self.assertEqual(user.address.street, "Broad St")

    def test_update_to_taken_username(self) -> None:
        self.manager.register("b@x.com", "b", "P@ss1")
        with self.assertRaises(DuplicateUsernameError):
            self.manager.update_profile(self.user.id, ProfileUpdate(username="b"))

    def test_empty_update_is_noop(self) -> None:
        user = self.manager.update_profile(self.user.id, ProfileUpdate())
        self.assertEqual(user.username, "a")

    def test_clearing_street_on_existing_address_is_rejected(self) -> None:
        self.manager.update_profile(
            self.user.id,
            ProfileUpdate(
                address=AddressFields(
                    apartment_number="1", street="Broad St", city="Lagos", country="NG"
                )
            ),
        )
        changes = ProfileUpdate.model_validate({"address": {"street": None}})
        with self.assertRaises(ValueError) as ctx:
            self.manager.update_profile(self.user.id, changes)
        self.assertNotIsInstance(ctx.exception, DuplicateUsernameError)
        self.assertEqual(self.manager.get_profile(self.user.id).address.street, "Broad St")

    def test_rejected_address_keeps_old_username(self) -> None:
        changes = ProfileUpdate.model_validate(
            {"username": "renamed", "address": {"city": "Lagos"}}
        )
        with self.assertRaises(ValueError):
            self.manager.update_profile(self.user.id, changes)
        profile = self.manager.get_profile(self.user.id)
        self.assertEqual(profile.username, "a")
        self.assertIsNone(profile.address)

    def test_profile_username_is_stripped_and_must_not_be_blank(self) -> None:
        self.assertEqual(ProfileUpdate(username="  bob  ").username, "bob")
        with self.assertRaises(ValidationError):
            ProfileUpdate(username="   ")


if __name__ == "__main__":
    unittest.main()
