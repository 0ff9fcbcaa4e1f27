"""Registration, email verification codes and login."""

import time

import jwt
import pytest

from conftest import FakeSender
from supplyhub.core import auth, storage
from supplyhub.core.db import get_db, fetch_one
from supplyhub.core.errors import ServiceError, VerificationError, ValidationError
from supplyhub.core.identity import resolve_token


def _latest_code(user_id):
    with get_db() as conn:
        return fetch_one(conn, "SELECT * FROM verification_codes WHERE user_id=? ORDER BY id DESC LIMIT 1",
                         (user_id,))


def _user(user_id):
    with get_db() as conn:
        return fetch_one(conn, "SELECT * FROM users WHERE id=?", (user_id,))


# ─── Registration ───────────────────────────────────────────────────────────

class TestCreateUser:

    def test_creates_unverified_buyer_and_emails_code(self, fake_sender):
        result = auth.create_user("Nurse@Example.com", "password123", "Amina", sender=fake_sender)
        user = _user(result["user_id"])
        assert user["email"] == "nurse@example.com"
        assert user["role"] == "buyer"
        assert user["verified"] == 0
        assert user["status"] == "pending"
        assert user["password_hash"] != "password123"

        code = _latest_code(result["user_id"])
        assert len(code["code"]) == 6
        assert fake_sender.sent[0]["to"] == "nurse@example.com"
        assert code["code"] in fake_sender.sent[0]["html"]
        assert "15 minutes" in fake_sender.sent[0]["html"]

    def test_code_expires_in_fifteen_minutes(self, fake_sender):
        before = time.time()
        result = auth.create_user("a@example.com", "password123", "A", sender=fake_sender)
        code = _latest_code(result["user_id"])
        assert before + 15 * 60 <= code["expires_at"] <= time.time() + 15 * 60

    def test_duplicate_email_rejected(self, fake_sender):
        auth.create_user("dup@example.com", "password123", "A", sender=fake_sender)
        with pytest.raises(ValidationError):
            auth.create_user("DUP@example.com", "password123", "B", sender=fake_sender)

    @pytest.mark.parametrize("email,password,name", [
        ("not-an-email", "password123", "A"),
        ("a@example.com", "short", "A"),
        ("a@example.com", "password123", "  "),
    ])
    def test_bad_input_rejected(self, fake_sender, email, password, name):
        with pytest.raises(ValidationError):
            auth.create_user(email, password, name, sender=fake_sender)
        assert fake_sender.sent == []

    def test_email_failure_surfaces_but_keeps_account(self):
        from supplyhub.core.errors import external
        sender = FakeSender(fail_with=external("Failed to send email: boom"))
        with pytest.raises(ServiceError) as exc:
            auth.create_user("fail@example.com", "password123", "F", sender=sender)
        assert exc.value.code == "EXTERNAL_SERVICE_ERROR"
        with get_db() as conn:
            assert fetch_one(conn, "SELECT id FROM users WHERE email=?", ("fail@example.com",))

    def test_missing_provider_key_is_external_error(self, monkeypatch):
        monkeypatch.delenv("RESEND_API_KEY", raising=False)
        with pytest.raises(ServiceError) as exc:
            auth.create_user("nokey@example.com", "password123", "N")
        assert exc.value.code == "EXTERNAL_SERVICE_ERROR"
        assert "RESEND_API_KEY" in exc.value.message


# ─── Verification ───────────────────────────────────────────────────────────

class TestVerifyCode:

    @pytest.fixture
    def registered(self, fake_sender):
        return auth.create_user("v@example.com", "password123", "V", sender=fake_sender)["user_id"]

    def test_correct_code_verifies_user(self, registered):
        code = _latest_code(registered)
        assert auth.verify_code(registered, code["code"]) is True
        assert _user(registered)["verified"] == 1
        assert _latest_code(registered)["verified"] == 1

    def test_wrong_code_changes_nothing(self, registered):
        with pytest.raises(VerificationError, match="Invalid"):
            auth.verify_code(registered, "000000")
        assert _user(registered)["verified"] == 0
        assert _latest_code(registered)["verified"] == 0

    def test_expired_code_rejected(self, registered):
        code = _latest_code(registered)
        with pytest.raises(VerificationError, match="expired"):
            auth.verify_code(registered, code["code"], now=code["expires_at"] + 1)
        assert _user(registered)["verified"] == 0

    def test_code_single_use(self, registered):
        code = _latest_code(registered)["code"]
        auth.verify_code(registered, code)
        with pytest.raises(VerificationError, match="already used"):
            auth.verify_code(registered, code)

    def test_only_newest_code_counts(self, registered, fake_sender):
        old = _latest_code(registered)["code"]
        auth.resend_verification_code("v@example.com", sender=fake_sender)
        new = _latest_code(registered)["code"]
        if old != new:
            with pytest.raises(VerificationError):
                auth.verify_code(registered, old)
        assert auth.verify_code(registered, new)

    def test_unknown_user(self):
        with pytest.raises(VerificationError, match="not found"):
            auth.verify_code("nobody", "123456")

    def test_resend_for_verified_user_rejected(self, registered, fake_sender):
        auth.verify_code(registered, _latest_code(registered)["code"])
        with pytest.raises(VerificationError):
            auth.resend_verification_code("v@example.com", sender=fake_sender)


# ─── Login ──────────────────────────────────────────────────────────────────

class TestLogin:

    def test_login_returns_token_for_user(self, make_user):
        user = make_user("vendor", email="login@example.com", password="s3cretpass")
        result = auth.login("login@example.com", "s3cretpass")
        assert "password_hash" not in result["user"]
        identity = resolve_token(result["token"])
        assert identity.user_id == user["id"]
        assert identity.role.value == "vendor"

    def test_wrong_password(self, make_user):
        make_user(email="x@example.com", password="rightpass1")
        with pytest.raises(ServiceError) as exc:
            auth.login("x@example.com", "wrongpass")
        assert exc.value.code == "UNAUTHENTICATED"

    def test_unknown_email(self):
        with pytest.raises(ServiceError) as exc:
            auth.login("ghost@example.com", "whatever1")
        assert exc.value.code == "UNAUTHENTICATED"

    def test_garbage_token_resolves_to_none(self):
        assert resolve_token("not.a.token") is None
        assert resolve_token("") is None

    def test_upload_token_is_not_a_session(self, vendor):
        upload_url = storage.generate_upload_url(vendor.identity)
        assert resolve_token(upload_url.rsplit("/", 1)[1]) is None

    def test_token_without_purpose_rejected(self, vendor):
        legacy = jwt.encode({"sub": vendor["id"], "exp": int(time.time()) + 60},
                            "test-secret", algorithm="HS256")
        assert resolve_token(legacy) is None
