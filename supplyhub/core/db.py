"""
supplyhub/core/db.py — Persistent SQLite Database Layer

One SQLite file at DATA_DIR/supplyhub.db holds every marketplace table.
WAL mode so the web workers can read while one writes.

TABLES:
  users               — buyers (hospitals), vendors and admins
  verification_codes  — 6-digit email codes, newest one wins
  categories          — admin-managed product categories
  products            — catalog entries, one category each
  vendor_quotations   — vendor price lists (pre-filled) and RFQ answers (on-demand)
  rfqs / rfq_items    — buyer requests-for-quotation and their lines
  sent_quotations     — quotations delivered to a buyer against an RFQ
  orders              — accepted quotations
  ratings             — buyer ratings of vendors per RFQ
  notifications       — per-user bell notifications
  site_settings       — key/value overrides of the default site copy
  audit_trail         — security-relevant actions (admin elevation, rate limits)
"""

import os
import json
import uuid
import sqlite3
import logging
import threading
from datetime import datetime
from contextlib import contextmanager

from supplyhub.core.paths import DATA_DIR

log = logging.getLogger("supplyhub.db")

DB_PATH = os.path.join(DATA_DIR, "supplyhub.db")

_db_lock = threading.RLock()


# ── Connection factory ────────────────────────────────────────────────────────
@contextmanager
def get_db():
    """Thread-safe SQLite connection. Commits on success, rolls back on error."""
    with _db_lock:
        conn = sqlite3.connect(DB_PATH, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


# ── Schema ────────────────────────────────────────────────────────────────────
SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id                      TEXT PRIMARY KEY,
    email                   TEXT UNIQUE NOT NULL,
    password_hash           TEXT NOT NULL DEFAULT '',
    name                    TEXT NOT NULL,
    role                    TEXT NOT NULL DEFAULT 'buyer',   -- admin|vendor|buyer
    verified                INTEGER DEFAULT 0,
    status                  TEXT DEFAULT 'pending',          -- pending|approved|rejected
    company_name            TEXT,
    phone                   TEXT,
    address                 TEXT,
    avatar                  TEXT,
    categories              TEXT DEFAULT '[]',               -- JSON array of category ids
    quotation_preference    TEXT,
    email_notifications     INTEGER DEFAULT 1,
    whatsapp_notifications  INTEGER DEFAULT 0,
    registered_at           TEXT NOT NULL,
    updated_at              TEXT
);

CREATE INDEX IF NOT EXISTS idx_users_role ON users(role);

CREATE TABLE IF NOT EXISTS verification_codes (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    code            TEXT NOT NULL,
    expires_at      REAL NOT NULL,  -- epoch seconds
    verified        INTEGER DEFAULT 0,
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_vcodes_user ON verification_codes(user_id, id);

CREATE TABLE IF NOT EXISTS categories (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    slug            TEXT,
    description     TEXT,
    icon            TEXT,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS products (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    category_id     TEXT NOT NULL REFERENCES categories(id),
    description     TEXT NOT NULL,
    specifications  TEXT,
    image           TEXT,
    sku             TEXT,
    price           REAL,
    created_at      TEXT NOT NULL,
    updated_at      TEXT
);

CREATE INDEX IF NOT EXISTS idx_products_category ON products(category_id);

CREATE TABLE IF NOT EXISTS vendor_quotations (
    id                      TEXT PRIMARY KEY,
    vendor_id               TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    product_id              TEXT NOT NULL REFERENCES products(id) ON DELETE CASCADE,
    rfq_id                  TEXT,
    quotation_type          TEXT DEFAULT 'pre-filled',   -- pre-filled|on-demand
    source                  TEXT DEFAULT 'manual',
    price                   REAL NOT NULL,
    quantity                INTEGER NOT NULL,
    payment_terms           TEXT NOT NULL,               -- cash|credit
    delivery_time           TEXT NOT NULL,
    warranty_period         TEXT DEFAULT '',
    country_of_origin       TEXT,
    product_specifications  TEXT,
    product_photo           TEXT,
    product_description     TEXT,
    brand                   TEXT,
    active                  INTEGER DEFAULT 1,
    created_at              TEXT NOT NULL,
    updated_at              TEXT
);

CREATE INDEX IF NOT EXISTS idx_vq_vendor ON vendor_quotations(vendor_id);
CREATE INDEX IF NOT EXISTS idx_vq_product ON vendor_quotations(product_id);
CREATE INDEX IF NOT EXISTS idx_vq_rfq ON vendor_quotations(rfq_id);

CREATE TABLE IF NOT EXISTS rfqs (
    id                      TEXT PRIMARY KEY,
    buyer_id                TEXT REFERENCES users(id) ON DELETE CASCADE,  -- NULL for guest RFQs
    status                  TEXT DEFAULT 'pending',      -- pending|quoted|completed
    is_guest                INTEGER DEFAULT 0,
    guest_name              TEXT,
    guest_company_name      TEXT,
    guest_phone             TEXT,
    guest_email             TEXT,
    expected_delivery_time  TEXT,
    created_at              TEXT NOT NULL,
    updated_at              TEXT
);

CREATE INDEX IF NOT EXISTS idx_rfqs_buyer ON rfqs(buyer_id, created_at);
CREATE INDEX IF NOT EXISTS idx_rfqs_status ON rfqs(status);

CREATE TABLE IF NOT EXISTS rfq_items (
    id              TEXT PRIMARY KEY,
    rfq_id          TEXT NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
    product_id      TEXT NOT NULL REFERENCES products(id),
    product_name    TEXT NOT NULL,
    quantity        INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_rfq_items_rfq ON rfq_items(rfq_id);

CREATE TABLE IF NOT EXISTS sent_quotations (
    id                      TEXT PRIMARY KEY,
    rfq_id                  TEXT NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
    buyer_id                TEXT,
    vendor_id               TEXT NOT NULL,
    product_id              TEXT NOT NULL,
    quotation_id            TEXT NOT NULL,
    quotation_type          TEXT NOT NULL,
    price                   REAL NOT NULL,
    quantity                INTEGER NOT NULL,
    payment_terms           TEXT NOT NULL,
    delivery_time           TEXT NOT NULL,
    warranty_period         TEXT DEFAULT '',
    product_photo           TEXT,
    product_description     TEXT,
    brand                   TEXT,
    opened                  INTEGER DEFAULT 0,
    chosen                  INTEGER DEFAULT 0,
    sent_at                 TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sq_rfq ON sent_quotations(rfq_id);
CREATE INDEX IF NOT EXISTS idx_sq_vendor ON sent_quotations(vendor_id, sent_at);
CREATE INDEX IF NOT EXISTS idx_sq_buyer ON sent_quotations(buyer_id);

CREATE TABLE IF NOT EXISTS orders (
    id                      TEXT PRIMARY KEY,
    rfq_id                  TEXT NOT NULL,
    quotation_id            TEXT NOT NULL,
    buyer_id                TEXT NOT NULL,
    vendor_id               TEXT NOT NULL,
    product_id              TEXT NOT NULL,
    quantity                INTEGER NOT NULL,
    total_amount            REAL NOT NULL,
    status                  TEXT DEFAULT 'ordered',
    tracking_number         TEXT,
    estimated_delivery_date TEXT,
    actual_delivery_date    TEXT,
    delivery_notes          TEXT,
    cancel_reason           TEXT,
    proof_of_delivery       TEXT,
    status_history          TEXT DEFAULT '[]',   -- JSON [{from,to,timestamp,actor}]
    order_date              TEXT NOT NULL,
    last_updated            TEXT
);

CREATE INDEX IF NOT EXISTS idx_orders_buyer ON orders(buyer_id, order_date);
CREATE INDEX IF NOT EXISTS idx_orders_vendor ON orders(vendor_id, order_date);

CREATE TABLE IF NOT EXISTS ratings (
    id              TEXT PRIMARY KEY,
    buyer_id        TEXT NOT NULL,
    vendor_id       TEXT NOT NULL,
    rfq_id          TEXT NOT NULL,
    rating          INTEGER NOT NULL,
    review          TEXT,
    created_at      TEXT NOT NULL,
    UNIQUE (buyer_id, vendor_id, rfq_id)
);

CREATE INDEX IF NOT EXISTS idx_ratings_vendor ON ratings(vendor_id);

CREATE TABLE IF NOT EXISTS notifications (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    type            TEXT NOT NULL,
    title           TEXT NOT NULL,
    message         TEXT NOT NULL,
    is_read         INTEGER DEFAULT 0,
    related_id      TEXT,
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_notif_user ON notifications(user_id, id);
CREATE INDEX IF NOT EXISTS idx_notif_unread ON notifications(user_id, is_read);

CREATE TABLE IF NOT EXISTS site_settings (
    key             TEXT PRIMARY KEY,
    value           TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS audit_trail (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp       TEXT NOT NULL,
    action          TEXT NOT NULL,
    details         TEXT,
    actor           TEXT,
    ip_address      TEXT,
    metadata        TEXT
);
"""


def init_db():
    """Create all tables if they don't exist. Safe to call multiple times."""
    os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)
    with get_db() as conn:
        conn.executescript(SCHEMA)
    log.info("DB initialized at %s", DB_PATH)
    return True


# ── Row helpers ───────────────────────────────────────────────────────────────

def new_id() -> str:
    return uuid.uuid4().hex


def now_iso() -> str:
    return datetime.now().isoformat()


def _row_to_dict(row) -> dict | None:
    """Convert sqlite3.Row to dict (None stays None)."""
    if row is None:
        return None
    return dict(row)


def _jl(val, default=None):
    """JSON-load a DB column value safely."""
    if val is None:
        return default if default is not None else []
    if isinstance(val, (dict, list)):
        return val
    try:
        return json.loads(val)
    except ValueError:
        return default if default is not None else []


def _jd(val) -> str:
    """JSON-dump a value for DB storage."""
    if val is None:
        return "[]"
    if isinstance(val, str):
        return val
    return json.dumps(val, default=str)


def fetch_one(conn, sql: str, params=()) -> dict | None:
    return _row_to_dict(conn.execute(sql, params).fetchone())


def fetch_all(conn, sql: str, params=()) -> list:
    return [dict(r) for r in conn.execute(sql, params).fetchall()]


# ── Audit trail ───────────────────────────────────────────────────────────────

def log_audit(conn, action: str, details: str = "", actor: str = "",
              ip_address: str = "", metadata: dict = None):
    """Append one audit entry inside the caller's transaction."""
    conn.execute(
        "INSERT INTO audit_trail (timestamp, action, details, actor, ip_address, metadata)"
        " VALUES (?,?,?,?,?,?)",
        (now_iso(), action, (details or "")[:500], actor, ip_address,
         json.dumps(metadata or {}, default=str)[:1000]),
    )


def get_audit_trail(action: str = None, limit: int = 100) -> list:
    with get_db() as conn:
        if action:
            return fetch_all(conn, "SELECT * FROM audit_trail WHERE action=? ORDER BY id DESC LIMIT ?",
                             (action, limit))
        return fetch_all(conn, "SELECT * FROM audit_trail ORDER BY id DESC LIMIT ?", (limit,))


# ── DB stats ─────────────────────────────────────────────────────────────────

def get_db_stats() -> dict:
    """Row counts per table, for /api/health."""
    tables = ("users", "categories", "products", "vendor_quotations", "rfqs",
              "sent_quotations", "orders", "notifications", "site_settings")
    stats = {}
    with get_db() as conn:
        for t in tables:
            stats[t] = conn.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0]
    return stats
