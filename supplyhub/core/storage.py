"""
storage.py — Blob uploads for product and quotation photos.

  generate_upload_url() → /api/uploads/<signed token>  (valid 1 hour)
  POST file to that URL  → saved under UPLOAD_DIR/<storage_id>
  cdn_url(storage_id)    → CDN_BASE_URL/<storage_id>
"""

import os
import re
import time
import logging

import jwt

from supplyhub.core import paths
from supplyhub.core.db import new_id
from supplyhub.core.enums import Role
from supplyhub.core.errors import ValidationError, forbidden
from supplyhub.core.identity import Identity, require_role
from supplyhub.core.secrets import get_key

log = logging.getLogger("supplyhub.storage")

UPLOAD_TOKEN_TTL = 3600
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
_STORAGE_ID = re.compile(r"^[0-9a-f]{32}$")


def generate_upload_url(identity: Identity | None, base_url: str = "") -> str:
    identity = require_role(identity, Role.ADMIN, Role.VENDOR,
                            message="Only admins and vendors can upload photos")
    now = int(time.time())
    token = jwt.encode({"sub": identity.user_id, "purpose": "upload", "iat": now,
                        "exp": now + UPLOAD_TOKEN_TTL},
                       get_key("jwt_secret"), algorithm="HS256")
    return f"{base_url.rstrip('/')}/api/uploads/{token}"


def check_upload_token(token: str) -> str:
    """Return the uploader's user id, or raise FORBIDDEN for a bad/expired token."""
    try:
        payload = jwt.decode(token, get_key("jwt_secret"), algorithms=["HS256"])
    except jwt.PyJWTError as e:
        log.warning("Rejected upload token: %s", e)
        raise forbidden("Upload URL is invalid or expired") from None
    if payload.get("purpose") != "upload":
        raise forbidden("Upload URL is invalid or expired")
    return payload["sub"]


def store_blob(token: str, data: bytes, content_type: str = "") -> str:
    """Persist an uploaded file. Returns its storage id."""
    uploader = check_upload_token(token)
    if not data:
        raise ValidationError("Empty upload")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationError(f"Upload exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)} MB")
    storage_id = new_id()
    os.makedirs(paths.UPLOAD_DIR, exist_ok=True)
    with open(os.path.join(paths.UPLOAD_DIR, storage_id), "wb") as f:
        f.write(data)
    log.info("Stored upload %s (%d bytes, %s) from %s", storage_id, len(data),
             content_type or "unknown", uploader)
    return storage_id


def blob_path(storage_id: str) -> str | None:
    if not _STORAGE_ID.match(storage_id or ""):
        return None
    path = os.path.join(paths.UPLOAD_DIR, storage_id)
    return path if os.path.exists(path) else None


def cdn_url(storage_id: str) -> str:
    return f"{get_key('cdn_base_url').rstrip('/')}/{storage_id}"
