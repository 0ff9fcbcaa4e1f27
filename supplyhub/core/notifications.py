"""
notifications.py — Per-user bell notifications.

Other modules call notify() inside their own transaction so the
notification lands atomically with the change it describes.
"""

import logging

from supplyhub.core.db import get_db, fetch_one, fetch_all, now_iso
from supplyhub.core.enums import NotificationType, Role, parse_enum
from supplyhub.core.errors import ValidationError, not_found
from supplyhub.core.identity import Identity, require_identity

log = logging.getLogger("supplyhub.notifications")

RECENT_LIMIT = 50


def _public(row: dict) -> dict:
    row["is_read"] = bool(row["is_read"])
    return row


def notify(conn, user_id: str, type, title: str, message: str, related_id: str = None) -> int:
    """Insert one unread notification and return its id."""
    type = parse_enum(NotificationType, type, "notification type")
    cur = conn.execute(
        "INSERT INTO notifications (user_id, type, title, message, is_read, related_id, created_at)"
        " VALUES (?,?,?,?,0,?,?)",
        (user_id, type.value, title, message, related_id, now_iso()),
    )
    log.debug("Notify %s: %s", user_id, title)
    return cur.lastrowid


def get_my_notifications(identity: Identity | None) -> list:
    """Newest 50 notifications for the caller. Empty when signed out."""
    if identity is None:
        return []
    with get_db() as conn:
        rows = fetch_all(
            conn,
            "SELECT * FROM notifications WHERE user_id=? ORDER BY id DESC LIMIT ?",
            (identity.user_id, RECENT_LIMIT),
        )
    return [_public(r) for r in rows]


def mark_as_read(identity: Identity | None, notification_id: int) -> dict:
    identity = require_identity(identity)
    with get_db() as conn:
        row = fetch_one(conn, "SELECT user_id FROM notifications WHERE id=?", (notification_id,))
        if not row or row["user_id"] != identity.user_id:
            raise not_found("Notification not found")
        conn.execute("UPDATE notifications SET is_read=1 WHERE id=?", (notification_id,))
    return {"success": True}


def mark_all_as_read(identity: Identity | None) -> dict:
    identity = require_identity(identity)
    with get_db() as conn:
        cur = conn.execute("UPDATE notifications SET is_read=1 WHERE user_id=? AND is_read=0",
                           (identity.user_id,))
    return {"success": True, "updated": cur.rowcount}


def get_unread_count(identity: Identity | None) -> int:
    if identity is None:
        return 0
    with get_db() as conn:
        return conn.execute("SELECT COUNT(*) FROM notifications WHERE user_id=? AND is_read=0",
                            (identity.user_id,)).fetchone()[0]


def send_admin_contact_message(name: str, email: str, phone: str, product_request: str) -> dict:
    """Chatbot product request: one notification for every admin. No sign-in needed."""
    for field, value in (("name", name), ("email", email), ("product request", product_request)):
        if not (value or "").strip():
            raise ValidationError(f"Missing {field}")
    message = f"{name} ({email}, {phone}) is looking for: {product_request}"
    with get_db() as conn:
        admins = fetch_all(conn, "SELECT id FROM users WHERE role=?", (Role.ADMIN.value,))
        for admin in admins:
            notify(conn, admin["id"], NotificationType.RFQ_RECEIVED,
                   "Product Request from Chatbot", message)
    log.info("Contact message from %s sent to %d admins", email, len(admins))
    return {"success": True, "notified": len(admins)}
