"""
users.py — Current-user profile, vendor preferences and admin user management.
"""

import logging

from supplyhub.core.auth import public_user
from supplyhub.core.db import get_db, fetch_one, fetch_all, now_iso, log_audit, _jd
from supplyhub.core.enums import Role, UserStatus, QuotationPreference, parse_enum
from supplyhub.core.errors import ValidationError, not_found, forbidden
from supplyhub.core.identity import Identity, require_identity, require_admin
from supplyhub.core.secrets import get_flag

log = logging.getLogger("supplyhub.users")


def _load_user(conn, user_id: str) -> dict:
    user = fetch_one(conn, "SELECT * FROM users WHERE id=?", (user_id,))
    if not user:
        raise not_found("User not found")
    return user


# ── Current user ──────────────────────────────────────────────────────────────

def get_current_user(identity: Identity | None) -> dict | None:
    """The caller's profile, or None when signed out."""
    if identity is None:
        return None
    with get_db() as conn:
        user = fetch_one(conn, "SELECT * FROM users WHERE id=?", (identity.user_id,))
    return public_user(user)


def update_current_user(identity: Identity | None, role: str, company_name: str,
                        phone: str, address: str) -> dict:
    """Complete onboarding: pick vendor/buyer and company details. Resets status to pending."""
    identity = require_identity(identity)
    role = parse_enum(Role, role, "role")
    if role is Role.ADMIN:
        raise ValidationError("Role must be vendor or buyer")
    with get_db() as conn:
        _load_user(conn, identity.user_id)
        conn.execute(
            "UPDATE users SET role=?, company_name=?, phone=?, address=?, status=?, updated_at=?"
            " WHERE id=?",
            (role.value, company_name, phone, address, UserStatus.PENDING.value,
             now_iso(), identity.user_id),
        )
    log.info("User %s onboarded as %s", identity.user_id, role.value)
    return {"success": True}


def update_quotation_preference(identity: Identity | None, preference: str) -> dict:
    """Vendors choose which RFQs they see: hospitals only, registered buyers, or guests too."""
    identity = require_identity(identity)
    preference = parse_enum(QuotationPreference, preference, "preference")
    with get_db() as conn:
        user = _load_user(conn, identity.user_id)
        if user["role"] != Role.VENDOR.value:
            raise forbidden("Only vendors can set quotation preferences")
        conn.execute("UPDATE users SET quotation_preference=?, updated_at=? WHERE id=?",
                     (preference.value, now_iso(), identity.user_id))
    return {"success": True}


def update_notification_preferences(identity: Identity | None, email_notifications: bool = None,
                                    whatsapp_notifications: bool = None) -> dict:
    identity = require_identity(identity)
    updates = {}
    if email_notifications is not None:
        updates["email_notifications"] = 1 if email_notifications else 0
    if whatsapp_notifications is not None:
        updates["whatsapp_notifications"] = 1 if whatsapp_notifications else 0
    with get_db() as conn:
        _load_user(conn, identity.user_id)
        for column, value in updates.items():
            conn.execute(f"UPDATE users SET {column}=? WHERE id=?", (value, identity.user_id))
    return {"success": True}


def make_user_admin(identity: Identity | None, ip_address: str = "") -> dict:
    """Promote the caller to admin.

    Development convenience only: disabled unless SUPPLYHUB_ALLOW_SELF_ADMIN
    is set, and every use is written to the audit trail.
    """
    identity = require_identity(identity)
    if not get_flag("allow_self_admin"):
        log.warning("Self-admin elevation refused for %s", identity.user_id)
        raise forbidden("Self-service admin elevation is disabled")
    with get_db() as conn:
        user = _load_user(conn, identity.user_id)
        conn.execute("UPDATE users SET role=?, status=?, updated_at=? WHERE id=?",
                     (Role.ADMIN.value, UserStatus.APPROVED.value, now_iso(), identity.user_id))
        log_audit(conn, "self_admin_elevation",
                  details=f"{user['email']} promoted from {user['role']} to admin",
                  actor=identity.user_id, ip_address=ip_address)
    log.warning("User %s promoted themselves to admin", identity.user_id)
    return {"success": True}


# ── Admin: user management ────────────────────────────────────────────────────

def get_all_users(identity: Identity | None) -> list:
    require_admin(identity, "Only admins can view all users")
    with get_db() as conn:
        rows = fetch_all(conn, "SELECT * FROM users ORDER BY registered_at DESC")
    return [public_user(u) for u in rows]


def get_pending_users(identity: Identity | None) -> list:
    require_admin(identity, "Only admins can view pending users")
    with get_db() as conn:
        rows = fetch_all(conn, "SELECT * FROM users WHERE status=? ORDER BY registered_at",
                         (UserStatus.PENDING.value,))
    return [public_user(u) for u in rows]


def get_user_details(user_id: str) -> dict | None:
    with get_db() as conn:
        return public_user(fetch_one(conn, "SELECT * FROM users WHERE id=?", (user_id,)))


def verify_user(identity: Identity | None, user_id: str) -> dict:
    require_admin(identity, "Only admins can verify users")
    with get_db() as conn:
        _load_user(conn, user_id)
        conn.execute("UPDATE users SET verified=1, updated_at=? WHERE id=?", (now_iso(), user_id))
    return {"success": True}


def toggle_user_verified(identity: Identity | None, user_id: str) -> dict:
    require_admin(identity, "Only admins can toggle user status")
    with get_db() as conn:
        user = _load_user(conn, user_id)
        verified = 0 if user["verified"] else 1
        conn.execute("UPDATE users SET verified=?, updated_at=? WHERE id=?",
                     (verified, now_iso(), user_id))
    return {"success": True, "verified": bool(verified)}


def _set_status(identity, user_id: str, status: UserStatus, verb: str) -> dict:
    require_admin(identity, f"Only admins can {verb} users")
    with get_db() as conn:
        _load_user(conn, user_id)
        conn.execute("UPDATE users SET status=?, updated_at=? WHERE id=?",
                     (status.value, now_iso(), user_id))
    log.info("User %s %s by %s", user_id, status.value, identity.user_id)
    return {"success": True}


def approve_user(identity: Identity | None, user_id: str) -> dict:
    return _set_status(identity, user_id, UserStatus.APPROVED, "approve")


def reject_user(identity: Identity | None, user_id: str) -> dict:
    return _set_status(identity, user_id, UserStatus.REJECTED, "reject")


def delete_user(identity: Identity | None, user_id: str) -> dict:
    identity = require_admin(identity, "Only admins can delete users")
    if user_id == identity.user_id:
        raise ValidationError("Admins cannot delete their own account")
    with get_db() as conn:
        _load_user(conn, user_id)
        conn.execute("DELETE FROM users WHERE id=?", (user_id,))
        log_audit(conn, "user_deleted", details=user_id, actor=identity.user_id)
    return {"success": True}


def assign_categories_to_vendor(identity: Identity | None, vendor_id: str, categories: list) -> dict:
    require_admin(identity, "Only admins can assign categories")
    categories = [str(c) for c in (categories or [])]
    with get_db() as conn:
        vendor = _load_user(conn, vendor_id)
        if vendor["role"] != Role.VENDOR.value:
            raise ValidationError("Categories can only be assigned to vendors")
        for category_id in categories:
            if not fetch_one(conn, "SELECT id FROM categories WHERE id=?", (category_id,)):
                raise not_found(f"Category not found: {category_id}")
        conn.execute("UPDATE users SET categories=?, updated_at=? WHERE id=?",
                     (_jd(categories), now_iso(), vendor_id))
    return {"success": True}

