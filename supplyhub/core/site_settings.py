"""
site_settings.py — Editable site copy (logo, name, workflow steps).

Persisted rows override DEFAULT_SETTINGS key by key. Keys that were never
set, or were reset, fall back to the defaults.
"""

import logging

from supplyhub.core.db import get_db, fetch_all, now_iso
from supplyhub.core.errors import ValidationError
from supplyhub.core.identity import Identity, require_admin

log = logging.getLogger("supplyhub.settings")

DEFAULT_SETTINGS = {
    "logoUrl": "https://cdn.hercules.app/file_bqE3zk4Ry0XmWJeiuCRNP3vv",
    "logoSize": "h-28",
    "siteName": "Medical Supplies Kenya",
    "tagline": "Find Medical Equipment & Supplies",
    "hospitalStep1": "Search Products",
    "hospitalStep2": "Create RFQ",
    "hospitalStep3": "Receive Quotations",
    "hospitalStep4": "Choose Best Vendor",
    "vendorStep1": "Upload Products",
    "vendorStep2": "Receive RFQ Alerts",
    "vendorStep3": "Submit Quotations",
    "vendorStep4": "Win Orders",
    "workflowTextSize": "text-sm",
    "workflowBgColor": "bg-blue-50",
}


def get_site_settings() -> dict:
    settings = dict(DEFAULT_SETTINGS)
    with get_db() as conn:
        for row in fetch_all(conn, "SELECT key, value FROM site_settings"):
            settings[row["key"]] = row["value"]
    return settings


def _upsert(conn, key: str, value: str):
    if not isinstance(key, str) or not key.strip():
        raise ValidationError("Setting key is required")
    if not isinstance(value, str):
        raise ValidationError(f"Setting {key!r} must be a string")
    conn.execute(
        "INSERT INTO site_settings (key, value, updated_at) VALUES (?,?,?)"
        " ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
        (key, value, now_iso()),
    )


def update_site_setting(identity: Identity | None, key: str, value: str) -> None:
    identity = require_admin(identity, "Only admins can update site settings")
    with get_db() as conn:
        _upsert(conn, key, value)
    log.info("Site setting %s updated by %s", key, identity.user_id)


def update_site_settings(identity: Identity | None, settings: dict) -> None:
    """Upsert several keys at once. All or nothing."""
    identity = require_admin(identity, "Only admins can update site settings")
    if not isinstance(settings, dict):
        raise ValidationError("settings must be an object of key → value")
    with get_db() as conn:
        for key, value in settings.items():
            _upsert(conn, key, value)
    log.info("%d site settings updated by %s", len(settings), identity.user_id)


def reset_site_settings(identity: Identity | None, keys: list = None) -> int:
    """Drop overrides for keys, or all overrides when keys is empty. Returns rows removed."""
    identity = require_admin(identity, "Only admins can reset site settings")
    with get_db() as conn:
        if keys:
            placeholders = ",".join("?" * len(keys))
            cur = conn.execute(f"DELETE FROM site_settings WHERE key IN ({placeholders})", list(keys))
        else:
            cur = conn.execute("DELETE FROM site_settings")
    log.info("Site settings reset (%d rows) by %s", cur.rowcount, identity.user_id)
    return cur.rowcount
