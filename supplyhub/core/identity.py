"""
identity.py — Session tokens, password hashing and role gates.

Every request resolves its bearer token exactly once (see
supplyhub.api.common) into an Identity. Domain operations receive that
Identity as their first argument and never look the caller up themselves.
"""

import time
import logging

import bcrypt
import jwt

from supplyhub.core.db import get_db, fetch_one
from supplyhub.core.enums import Role
from supplyhub.core.errors import unauthenticated, forbidden
from supplyhub.core.secrets import get_key

log = logging.getLogger("supplyhub.identity")

JWT_ALGO = "HS256"
TOKEN_TTL_SECONDS = 7 * 24 * 3600
SESSION_PURPOSE = "session"


class Identity:
    """The resolved caller: user id, email and role."""

    def __init__(self, user_id: str, email: str, role: Role, verified: bool = False):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.verified = verified

    @classmethod
    def from_user(cls, user: dict) -> "Identity":
        return cls(user["id"], user["email"], Role(user["role"]), bool(user.get("verified")))

    def __repr__(self):
        return f"Identity({self.user_id!r}, {self.role.value})"


# ── Passwords ─────────────────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def check_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed hash in the row
        return False


# ── Tokens ────────────────────────────────────────────────────────────────────

def create_token(user: dict) -> str:
    now = int(time.time())
    payload = {
        "sub": user["id"],
        "email": user["email"],
        "purpose": SESSION_PURPOSE,
        "iat": now,
        "exp": now + TOKEN_TTL_SECONDS,
    }
    return jwt.encode(payload, get_key("jwt_secret"), algorithm=JWT_ALGO)


def resolve_token(token: str) -> Identity | None:
    """Decode a bearer token and load the user it names. None when invalid."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, get_key("jwt_secret"), algorithms=[JWT_ALGO])
    except jwt.PyJWTError as e:
        log.debug("Rejected token: %s", e)
        return None
    if payload.get("purpose") != SESSION_PURPOSE:
        log.debug("Rejected non-session token (purpose=%s)", payload.get("purpose"))
        return None
    with get_db() as conn:
        user = fetch_one(conn, "SELECT id, email, role, verified FROM users WHERE id=?",
                         (payload.get("sub"),))
    if not user:
        return None
    return Identity.from_user(user)


# ── Role gates ────────────────────────────────────────────────────────────────

def require_identity(identity: Identity | None) -> Identity:
    if identity is None:
        raise unauthenticated()
    return identity


def require_role(identity: Identity | None, *allowed: Role, message: str = "") -> Identity:
    """Raise UNAUTHENTICATED without identity, FORBIDDEN unless role is in allowed."""
    identity = require_identity(identity)
    role = identity.role
    if role is Role.ADMIN:
        permitted = Role.ADMIN in allowed
    elif role is Role.VENDOR:
        permitted = Role.VENDOR in allowed
    elif role is Role.BUYER:
        permitted = Role.BUYER in allowed
    else:
        permitted = False
    if not permitted:
        names = "/".join(r.value for r in allowed)
        raise forbidden(message or f"Only {names} users can do this")
    return identity


def require_admin(identity: Identity | None, message: str = "") -> Identity:
    return require_role(identity, Role.ADMIN, message=message or "Admin access required")
