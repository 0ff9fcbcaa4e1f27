"""
secrets.py — Centralized Secret & Setting Management for SupplyHub

Single source of truth for API keys, credentials and env-driven switches.

Env vars:
  OPENAI_API_KEY          — Vision model for catalog scanning
  OPENAI_MODEL            — Vision model name (default gpt-4o)
  RESEND_API_KEY          — Transactional email provider
  EMAIL_FROM              — Verification email sender
  JWT_SECRET              — Session token signing key
  CDN_BASE_URL            — Public prefix for uploaded blobs
  SUPPLYHUB_ALLOW_SELF_ADMIN — Allow self-service admin elevation (dev only)

Security:
  - Keys are never logged in full (masked to first 8 chars)
  - Health endpoint shows which keys are set (not values)
  - Validate on startup — warn loudly about missing keys
"""

import os
import logging

log = logging.getLogger("supplyhub.secrets")

# ─── Secret Definitions ─────────────────────────────────────────────────────

_REGISTRY = {
    "openai": {
        "env": "OPENAI_API_KEY",
        "required": False,
        "desc": "OpenAI API key — catalog image scanning",
        "features": ["catalog_scanner"],
        "sensitive": True,
    },
    "openai_model": {
        "env": "OPENAI_MODEL",
        "required": False,
        "desc": "Vision-capable chat model",
        "features": ["catalog_scanner"],
        "default": "gpt-4o",
    },
    "openai_base_url": {
        "env": "OPENAI_BASE_URL",
        "required": False,
        "desc": "OpenAI-compatible API base URL",
        "features": ["catalog_scanner"],
        "default": "https://api.openai.com/v1",
    },
    "resend": {
        "env": "RESEND_API_KEY",
        "required": False,
        "desc": "Resend API key — verification emails",
        "features": ["email"],
        "sensitive": True,
    },
    "email_from": {
        "env": "EMAIL_FROM",
        "required": False,
        "desc": "Verification email sender",
        "features": ["email"],
        "default": "supply.co.ke <noreply@supply.co.ke>",
    },
    "jwt_secret": {
        "env": "JWT_SECRET",
        "required": True,
        "desc": "Session token signing key",
        "features": ["auth"],
        "sensitive": True,
        "default": "dev-secret-change-me",
    },
    "cdn_base_url": {
        "env": "CDN_BASE_URL",
        "required": False,
        "desc": "Public URL prefix for uploaded files",
        "features": ["uploads"],
        "default": "https://cdn.supplyhub.app",
    },
    "allow_self_admin": {
        "env": "SUPPLYHUB_ALLOW_SELF_ADMIN",
        "required": False,
        "desc": "Allow any signed-in user to promote themselves to admin",
        "features": ["users"],
        "default": "false",
    },
}


# ─── Public API ──────────────────────────────────────────────────────────────

def get_key(name: str) -> str:
    """Get a secret value by registry name. Returns empty string if not set."""
    entry = _REGISTRY.get(name)
    if not entry:
        log.warning("Unknown secret requested: %s", name)
        return ""

    val = os.environ.get(entry["env"], "")
    if not val and "default" in entry:
        val = entry["default"]
    return val


def get_flag(name: str) -> bool:
    """Read a boolean switch from the registry ("true"/"1"/"yes"/"on")."""
    return get_key(name).strip().lower() in ("true", "1", "yes", "on")


def mask(value: str) -> str:
    """Mask a secret for safe logging. Shows first 8 chars."""
    if not value:
        return "(not set)"
    if len(value) <= 12:
        return value[:4] + "****"
    return value[:8] + "****" + f"({len(value)} chars)"


def validate_all() -> dict:
    """Validate all secrets. Returns status report."""
    results = {}
    warnings = []
    for name, entry in _REGISTRY.items():
        val = get_key(name)
        is_set = bool(os.environ.get(entry["env"]))
        results[name] = {
            "set": is_set,
            "env": entry["env"],
            "desc": entry["desc"],
            "masked": ("set" if is_set else "not set") if entry.get("sensitive") else mask(val),
            "required": entry.get("required", False),
            "features": entry["features"],
        }
        if entry.get("required") and not is_set:
            warnings.append(f"REQUIRED secret missing: {entry['env']} ({entry['desc']})")

    return {
        "secrets": results,
        "total": len(results),
        "set": sum(1 for r in results.values() if r["set"]),
        "missing": sum(1 for r in results.values() if not r["set"]),
        "warnings": warnings,
    }


def startup_check() -> dict:
    """Run on startup. Logs warnings for missing critical secrets."""
    report = validate_all()
    log.info("Secrets: %d/%d configured", report["set"], report["total"])
    for w in report["warnings"]:
        log.warning("SECRET: %s", w)
    if get_flag("allow_self_admin"):
        log.warning("Self-service admin elevation is ENABLED — do not run this in production")
    return report
