"""
common.py — Blueprint, per-request identity and the JSON error envelope.

Every request resolves its bearer token once (before_request) into
g.identity, which route handlers pass to domain functions. Domain errors
propagate to the error handlers below and leave as
{"ok": false, "error": ..., "code": ...}.
"""

import time
import logging

from flask import Blueprint, request, jsonify, g

from supplyhub.core.errors import ServiceError, VerificationError
from supplyhub.core.identity import resolve_token

log = logging.getLogger("supplyhub.api")

bp = Blueprint("supplyhub", __name__)


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return ""


def _route_label() -> str:
    """Matched URL rule rather than the raw path, so signed upload tokens stay out of logs."""
    return request.url_rule.rule if request.url_rule else request.path


@bp.before_app_request
def _resolve_identity():
    request._start_time = time.time()
    g.identity = resolve_token(_bearer_token())


@bp.after_app_request
def _log_request_end(response):
    if hasattr(request, "_start_time"):
        duration_ms = round((time.time() - request._start_time) * 1000, 1)
        if request.path != "/api/health":
            identity = getattr(g, "identity", None)
            route = _route_label()
            log.info("%s %s → %d (%.0fms)",
                     request.method, route, response.status_code, duration_ms,
                     extra={"route": route, "method": request.method,
                            "status": response.status_code, "duration_ms": duration_ms,
                            "user_id": identity.user_id if identity else None})
    return response


# ── Error envelope ────────────────────────────────────────────────────────────

@bp.app_errorhandler(ServiceError)
def _service_error(e: ServiceError):
    if e.status >= 500:
        log.error("%s %s: %s %s", request.method, _route_label(), e.code, e.message,
                  extra={"code": e.code})
    return jsonify(e.to_dict()), e.status


@bp.app_errorhandler(VerificationError)
def _verification_error(e: VerificationError):
    return jsonify({"ok": False, "error": str(e), "code": "VERIFICATION_FAILED"}), 400


@bp.app_errorhandler(ValueError)
def _value_error(e: ValueError):
    return jsonify({"ok": False, "error": str(e), "code": "INVALID_ARGUMENT"}), 400


# ── Helpers ───────────────────────────────────────────────────────────────────

def ok(**payload):
    """Success envelope."""
    return jsonify({"ok": True, **payload})


def body() -> dict:
    return request.get_json(silent=True) or {}


def identity():
    return g.get("identity")


def client_ip() -> str:
    return request.remote_addr or ""
