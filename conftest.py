"""
Shared pytest fixtures for the SupplyHub test suite.

Every test gets its own SQLite file and upload directory. SUPPLYHUB_DATA_DIR
is pointed at a scratch directory BEFORE supplyhub is imported, so importing
app.py never touches the project data/ directory.
"""
import os
import tempfile

import pytest

os.environ.setdefault("SUPPLYHUB_DATA_DIR", tempfile.mkdtemp(prefix="supplyhub-test-"))
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["DISABLE_RATE_LIMIT"] = "true"

from supplyhub.core import db, paths  # noqa: E402
from supplyhub.core.db import get_db, new_id, now_iso, _jd  # noqa: E402
from supplyhub.core.enums import Role, UserStatus  # noqa: E402
from supplyhub.core.identity import Identity, create_token, hash_password  # noqa: E402


# ── Temp data directory (per-test isolation) ──────────────────────────────────

@pytest.fixture(autouse=True)
def temp_data_dir(tmp_path, monkeypatch):
    """Redirect the database and uploads to an isolated tmp directory."""
    data = tmp_path / "data"
    uploads = data / "uploads"
    uploads.mkdir(parents=True)
    monkeypatch.setattr(db, "DB_PATH", str(data / "supplyhub.db"))
    monkeypatch.setattr(paths, "UPLOAD_DIR", str(uploads))
    monkeypatch.setenv("DISABLE_RATE_LIMIT", "true")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.delenv("SUPPLYHUB_ALLOW_SELF_ADMIN", raising=False)
    db.init_db()
    return str(data)


# ── Flask test client ─────────────────────────────────────────────────────────

@pytest.fixture
def app(temp_data_dir):
    from app import create_app
    return create_app({"TESTING": True})


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


# ── Email ─────────────────────────────────────────────────────────────────────

class FakeSender:
    """Stands in for EmailSender; records what would have been sent."""

    def __init__(self, fail_with=None):
        self.sent = []
        self.fail_with = fail_with

    def send(self, to, subject, html):
        if self.fail_with:
            raise self.fail_with
        self.sent.append({"to": to, "subject": subject, "html": html})
        return {"success": True, "id": f"msg-{len(self.sent)}"}


@pytest.fixture
def fake_sender():
    return FakeSender()


@pytest.fixture
def outbox(monkeypatch):
    """Capture verification emails sent through the API routes."""
    sender = FakeSender()
    monkeypatch.setattr("supplyhub.agents.email_sender.EmailSender", lambda *a, **kw: sender)
    return sender.sent


# ── Seed helpers ──────────────────────────────────────────────────────────────

class SeededUser(dict):
    """User row plus a ready-made Identity and Authorization header."""

    @property
    def identity(self) -> Identity:
        return Identity(self["id"], self["email"], Role(self["role"]), bool(self["verified"]))

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {create_token(self)}"}


@pytest.fixture
def make_user(temp_data_dir):
    """Factory: make_user("vendor", categories=[...], verified=True, ...) → SeededUser."""
    counter = {"n": 0}

    def _make(role="buyer", verified=True, categories=None, password="password123", **fields):
        counter["n"] += 1
        row = {
            "id": new_id(),
            "email": fields.pop("email", f"{role}{counter['n']}@example.com"),
            "password_hash": hash_password(password),
            "name": fields.pop("name", f"{role.title()} {counter['n']}"),
            "role": role,
            "verified": 1 if verified else 0,
            "status": fields.pop("status", UserStatus.APPROVED.value),
            "categories": _jd(categories or []),
            "registered_at": now_iso(),
        }
        row.update(fields)
        with get_db() as conn:
            cols = ", ".join(row)
            conn.execute(f"INSERT INTO users ({cols}) VALUES ({', '.join('?' * len(row))})",
                         tuple(row.values()))
        return SeededUser(row)
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin", name="Site Admin")


@pytest.fixture
def buyer(make_user):
    return make_user("buyer", name="Kenyatta Hospital Procurement", company_name="KNH",
                     phone="+254700000001")


@pytest.fixture
def category(temp_data_dir):
    cid = new_id()
    with get_db() as conn:
        conn.execute("INSERT INTO categories (id, name, slug, description, icon, created_at)"
                     " VALUES (?,?,?,?,?,?)",
                     (cid, "Diagnostic Equipment", "diagnostic-equipment",
                      "Monitors and imaging", "stethoscope", now_iso()))
    return {"id": cid, "name": "Diagnostic Equipment"}


@pytest.fixture
def other_category(temp_data_dir):
    cid = new_id()
    with get_db() as conn:
        conn.execute("INSERT INTO categories (id, name, slug, created_at) VALUES (?,?,?,?)",
                     (cid, "Surgical Instruments", "surgical-instruments", now_iso()))
    return {"id": cid, "name": "Surgical Instruments"}


@pytest.fixture
def make_product(temp_data_dir):
    def _make(category_id, name="Patient Monitor", sku=None, price=None):
        pid = new_id()
        with get_db() as conn:
            conn.execute("INSERT INTO products (id, name, category_id, description, sku, price, created_at)"
                         " VALUES (?,?,?,?,?,?,?)",
                         (pid, name, category_id, f"{name} for hospital use", sku, price, now_iso()))
        return {"id": pid, "name": name, "category_id": category_id}
    return _make


@pytest.fixture
def product(make_product, category):
    return make_product(category["id"])


@pytest.fixture
def vendor(make_user, category):
    return make_user("vendor", name="Jane Vendor", company_name="MedSupply Ltd",
                     categories=[category["id"]],
                     quotation_preference="all_including_guests")
