"""
auth.py — Registration, email verification and login.

Flow:
  create_user → verification code issued (15 min) → emailed
  verify_code → newest code for the user checked; code + user marked verified
  login       → bcrypt check → signed token
"""

import time
import secrets
import logging

from supplyhub.agents.email_sender import send_verification_email, CODE_TTL_MINUTES
from supplyhub.core.db import get_db, fetch_one, new_id, now_iso, _jl
from supplyhub.core.enums import Role, UserStatus
from supplyhub.core.errors import VerificationError, ValidationError, not_found, unauthenticated
from supplyhub.core.identity import hash_password, check_password, create_token

log = logging.getLogger("supplyhub.auth")

CODE_TTL_SECONDS = CODE_TTL_MINUTES * 60


def public_user(user: dict | None) -> dict | None:
    """User row without the password hash, with flags as booleans."""
    if user is None:
        return None
    out = {k: v for k, v in user.items() if k != "password_hash"}
    for flag in ("verified", "email_notifications", "whatsapp_notifications"):
        if flag in out:
            out[flag] = bool(out[flag])
    if "categories" in out:
        out["categories"] = _jl(out["categories"], [])
    return out


def _normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError(f"Invalid email address: {email!r}")
    return email


def _generate_code() -> str:
    return str(100000 + secrets.randbelow(900000))


def create_verification_code(conn, user_id: str) -> str:
    """Insert a fresh 6-digit code for user_id inside the caller's transaction."""
    code = _generate_code()
    conn.execute(
        "INSERT INTO verification_codes (user_id, code, expires_at, verified, created_at)"
        " VALUES (?,?,?,0,?)",
        (user_id, code, time.time() + CODE_TTL_SECONDS, now_iso()),
    )
    return code


def create_user(email: str, password: str, name: str, sender=None) -> dict:
    """Register a new unverified buyer account and email the first code.

    The user row is committed before the email goes out, so a provider
    failure leaves an account that can request a new code.
    """
    email = _normalize_email(email)
    if not password or len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if not (name or "").strip():
        raise ValidationError("Name is required")

    user_id = new_id()
    with get_db() as conn:
        if fetch_one(conn, "SELECT id FROM users WHERE email=?", (email,)):
            raise ValidationError("Email already registered")
        conn.execute(
            "INSERT INTO users (id, email, password_hash, name, role, verified, status, registered_at)"
            " VALUES (?,?,?,?,?,0,?,?)",
            (user_id, email, hash_password(password), name.strip(),
             Role.BUYER.value, UserStatus.PENDING.value, now_iso()),
        )
        code = create_verification_code(conn, user_id)
    log.info("Registered %s (%s)", email, user_id, extra={"user_id": user_id})

    send_verification_email(email, code, sender=sender)
    return {"user_id": user_id, "success": True}


def resend_verification_code(email: str, sender=None) -> dict:
    email = _normalize_email(email)
    with get_db() as conn:
        user = fetch_one(conn, "SELECT id, verified FROM users WHERE email=?", (email,))
        if not user:
            raise not_found("User not found")
        if user["verified"]:
            raise VerificationError("Email already verified")
        code = create_verification_code(conn, user["id"])
    send_verification_email(email, code, sender=sender)
    return {"user_id": user["id"], "success": True}


def verify_code(user_id: str, code: str, now: float = None) -> bool:
    """Accept the most recently issued code for user_id.

    Raises VerificationError without touching any row when the code is
    missing, expired, mismatched or already used.
    """
    now = time.time() if now is None else now
    with get_db() as conn:
        verification = fetch_one(
            conn,
            "SELECT * FROM verification_codes WHERE user_id=? ORDER BY id DESC LIMIT 1",
            (user_id,),
        )
        if not verification:
            raise VerificationError("Verification code not found")
        if verification["verified"]:
            raise VerificationError("Verification code already used")
        if verification["expires_at"] < now:
            raise VerificationError("Verification code expired")
        if not secrets.compare_digest(str(verification["code"]), str(code or "").strip()):
            raise VerificationError("Invalid verification code")

        conn.execute("UPDATE verification_codes SET verified=1 WHERE id=?", (verification["id"],))
        conn.execute("UPDATE users SET verified=1, updated_at=? WHERE id=?", (now_iso(), user_id))
    log.info("Verified user %s", user_id, extra={"user_id": user_id})
    return True


def login(email: str, password: str) -> dict:
    """Check credentials. Returns {token, user} or raises UNAUTHENTICATED."""
    email = _normalize_email(email)
    with get_db() as conn:
        user = fetch_one(conn, "SELECT * FROM users WHERE email=?", (email,))
    if not user or not check_password(password or "", user["password_hash"]):
        log.warning("Failed login for %s", email)
        raise unauthenticated("Incorrect email or password")
    return {"token": create_token(user), "user": public_user(user)}
