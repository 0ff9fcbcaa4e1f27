"""
Security Middleware — Rate Limiting + Response Headers
======================================================

Rate Limiting:
- In-memory token bucket per client IP and tier
- 429 with the standard error envelope when exceeded
- DISABLE_RATE_LIMIT=true turns it off (tests, local dev)

Bearer tokens replace cookie sessions, so there is no CSRF layer.
"""

import os
import time
import sqlite3
import logging
import functools
from threading import Lock

from flask import request, jsonify, g

from supplyhub.core.db import get_db, log_audit

log = logging.getLogger("supplyhub.security")


# ═══════════════════════════════════════════════════════════════════════════════
# Rate Limiting
# ═══════════════════════════════════════════════════════════════════════════════

class RateLimiter:
    """In-memory token bucket keyed by an arbitrary string.

    Buckets idle for longer than max_idle are swept during check(), at most
    once per sweep_interval, so one-off client IPs do not accumulate.
    """

    def __init__(self, clock=time.time, max_idle: int = 3600, sweep_interval: int = 300):
        self._clock = clock
        self._buckets = {}
        self._lock = Lock()
        self.max_idle = max_idle
        self.sweep_interval = sweep_interval
        self._last_sweep = clock()

    def __len__(self):
        return len(self._buckets)

    def check(self, key: str, max_tokens: int = 60, refill_rate: float = 1.0) -> bool:
        """Take one token from key's bucket. False when the bucket is empty.

        Args:
            key: bucket key, usually "<ip>:<tier>"
            max_tokens: burst capacity
            refill_rate: tokens added per second
        """
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.sweep_interval:
                self._drop_idle(now, self.max_idle)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = self._buckets[key] = {"tokens": float(max_tokens), "last_refill": now}

            elapsed = now - bucket["last_refill"]
            bucket["tokens"] = min(max_tokens, bucket["tokens"] + elapsed * refill_rate)
            bucket["last_refill"] = now

            if bucket["tokens"] >= 1:
                bucket["tokens"] -= 1
                return True
            return False

    def _drop_idle(self, now: float, max_idle: float) -> int:
        # caller holds self._lock
        stale = [k for k, v in self._buckets.items() if now - v["last_refill"] > max_idle]
        for k in stale:
            del self._buckets[k]
        self._last_sweep = now
        if stale:
            log.debug("Rate limiter dropped %d idle buckets", len(stale))
        return len(stale)

    def cleanup(self, max_age: int = None) -> int:
        """Drop buckets idle for more than max_age seconds (default max_idle) now."""
        with self._lock:
            return self._drop_idle(self._clock(), self.max_idle if max_age is None else max_age)


_limiter = RateLimiter()


RATE_LIMITS = {
    "default":     {"max_tokens": 60,  "refill_rate": 2.0},   # 120/min
    "api":         {"max_tokens": 30,  "refill_rate": 1.0},   # 60/min
    "auth":        {"max_tokens": 5,   "refill_rate": 0.1},   # 6/min (login, register, codes)
    "heavy":       {"max_tokens": 10,  "refill_rate": 0.2},   # 12/min (catalog scans, exports)
}


def rate_limiting_disabled() -> bool:
    return os.environ.get("DISABLE_RATE_LIMIT", "").lower() == "true"


def rate_limit(tier: str = "default", limiter: RateLimiter = None):
    """Decorator applying a rate-limit tier to a route."""
    def decorator(f):
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            if rate_limiting_disabled():
                return f(*args, **kwargs)

            ip = request.remote_addr or "unknown"
            limits = RATE_LIMITS.get(tier, RATE_LIMITS["default"])
            if not (limiter or _limiter).check(f"{ip}:{tier}", **limits):
                log.warning("Rate limit exceeded: %s tier=%s", ip, tier)
                record_audit("rate_limited", f"IP {ip} exceeded {tier} rate limit")
                return jsonify({"ok": False, "error": "Rate limit exceeded. Please try again shortly.",
                                "code": "RATE_LIMITED"}), 429

            return f(*args, **kwargs)
        return wrapper
    return decorator


# ═══════════════════════════════════════════════════════════════════════════════
# Audit Trail Integration
# ═══════════════════════════════════════════════════════════════════════════════

def record_audit(action: str, details: str = "", metadata: dict = None):
    """Write one audit entry for the current request in its own transaction.

    Audit is a side channel: a database failure here is logged, not raised.
    """
    identity = getattr(g, "identity", None)
    try:
        with get_db() as conn:
            log_audit(conn, action, details=details,
                      actor=identity.user_id if identity else "",
                      ip_address=request.remote_addr or "",
                      metadata=metadata)
    except sqlite3.Error as e:
        log.error("Audit write failed for %s: %s", action, e)


def audit_action(action_name: str):
    """Decorator recording successful calls of a route in the audit trail."""
    def decorator(f):
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            result = f(*args, **kwargs)
            details = f"{request.method} {request.path}"
            if kwargs:
                details += f" {kwargs}"
            record_audit(action_name, details)
            return result
        return wrapper
    return decorator


# ═══════════════════════════════════════════════════════════════════════════════
# Security Headers Middleware
# ═══════════════════════════════════════════════════════════════════════════════

def add_security_headers(response):
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "SAMEORIGIN"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if not response.headers.get("Cache-Control"):
        response.headers["Cache-Control"] = "no-store"
    return response


def init_security(app):
    """Attach security middleware to the Flask app."""
    app.after_request(add_security_headers)
    log.info("Security middleware initialized: rate limiting, security headers")
