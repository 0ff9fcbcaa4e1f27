"""Rate limiting, audit trail, secrets registry and signed uploads."""

import os

import pytest

from supplyhub.core import secrets, storage
from supplyhub.core.db import get_audit_trail
from supplyhub.core.errors import ServiceError, ValidationError
from supplyhub.core.security import RateLimiter, record_audit


# ─── Rate limiter ───────────────────────────────────────────────────────────

class TestRateLimiter:

    def test_burst_then_refill(self):
        now = [1000.0]
        limiter = RateLimiter(clock=lambda: now[0])
        assert all(limiter.check("ip:auth", max_tokens=3, refill_rate=1.0) for _ in range(3))
        assert limiter.check("ip:auth", max_tokens=3, refill_rate=1.0) is False
        now[0] += 1.0
        assert limiter.check("ip:auth", max_tokens=3, refill_rate=1.0) is True

    def test_keys_are_independent(self):
        limiter = RateLimiter(clock=lambda: 0.0)
        assert limiter.check("a", max_tokens=1)
        assert not limiter.check("a", max_tokens=1)
        assert limiter.check("b", max_tokens=1)

    def test_cleanup_drops_idle_buckets(self):
        now = [0.0]
        limiter = RateLimiter(clock=lambda: now[0])
        limiter.check("a")
        now[0] = 7200
        assert limiter.cleanup(max_age=3600) == 1

    def test_check_sweeps_idle_buckets(self):
        now = [0.0]
        limiter = RateLimiter(clock=lambda: now[0], max_idle=3600, sweep_interval=300)
        for i in range(50):
            limiter.check(f"10.0.0.{i}:api")
        assert len(limiter) == 50
        now[0] = 4000
        limiter.check("10.0.0.99:api")
        assert len(limiter) == 1

    def test_no_sweep_before_interval(self):
        now = [0.0]
        limiter = RateLimiter(clock=lambda: now[0], max_idle=10, sweep_interval=300)
        limiter.check("a")
        now[0] = 100
        limiter.check("b")
        assert len(limiter) == 2


class TestAudit:

    def test_record_audit_in_request(self, app):
        with app.test_request_context("/api/anything", environ_base={"REMOTE_ADDR": "10.1.1.1"}):
            record_audit("export", "orders.csv")
        entry = get_audit_trail("export")[0]
        assert entry["ip_address"] == "10.1.1.1"
        assert entry["details"] == "orders.csv"


# ─── Secrets ────────────────────────────────────────────────────────────────

class TestSecrets:

    def test_mask(self):
        assert secrets.mask("") == "(not set)"
        masked = secrets.mask("sk-proj-verylongsecretvalue")
        assert masked.startswith("sk-proj-")
        assert "verylongsecretvalue" not in masked

    def test_defaults_and_unknown(self, monkeypatch):
        monkeypatch.delenv("OPENAI_MODEL", raising=False)
        assert secrets.get_key("openai_model") == "gpt-4o"
        assert secrets.get_key("nonexistent") == ""

    def test_flag(self, monkeypatch):
        assert secrets.get_flag("allow_self_admin") is False
        monkeypatch.setenv("SUPPLYHUB_ALLOW_SELF_ADMIN", "yes")
        assert secrets.get_flag("allow_self_admin") is True

    def test_validate_all_never_leaks_sensitive_values(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-very-secret-value")
        report = secrets.validate_all()
        assert report["secrets"]["openai"]["set"] is True
        assert "sk-very" not in str(report)

    def test_required_registry_fields(self):
        for name, entry in secrets._REGISTRY.items():
            assert "env" in entry, name
            assert "desc" in entry, name
            assert "features" in entry, name


# ─── Uploads ────────────────────────────────────────────────────────────────

class TestStorage:

    def test_upload_url_for_vendor(self, vendor):
        url = storage.generate_upload_url(vendor.identity, "http://localhost/")
        assert url.startswith("http://localhost/api/uploads/")
        token = url.rsplit("/", 1)[1]
        assert storage.check_upload_token(token) == vendor["id"]

    def test_buyer_cannot_upload(self, buyer):
        with pytest.raises(ServiceError) as exc:
            storage.generate_upload_url(buyer.identity)
        assert exc.value.code == "FORBIDDEN"

    def test_store_and_locate_blob(self, vendor, temp_data_dir):
        token = storage.generate_upload_url(vendor.identity).rsplit("/", 1)[1]
        storage_id = storage.store_blob(token, b"\x89PNG...", "image/png")
        path = storage.blob_path(storage_id)
        assert path.startswith(temp_data_dir)
        with open(path, "rb") as f:
            assert f.read() == b"\x89PNG..."
        assert storage.cdn_url(storage_id).endswith("/" + storage_id)

    def test_bad_token(self):
        with pytest.raises(ServiceError) as exc:
            storage.store_blob("forged", b"data")
        assert exc.value.code == "FORBIDDEN"

    def test_session_token_is_not_an_upload_token(self, vendor):
        session = vendor.headers["Authorization"].split()[1]
        with pytest.raises(ServiceError):
            storage.store_blob(session, b"data")

    def test_empty_and_oversized(self, vendor, monkeypatch):
        token = storage.generate_upload_url(vendor.identity).rsplit("/", 1)[1]
        with pytest.raises(ValidationError):
            storage.store_blob(token, b"")
        monkeypatch.setattr(storage, "MAX_UPLOAD_BYTES", 4)
        with pytest.raises(ValidationError):
            storage.store_blob(token, b"12345")

    @pytest.mark.parametrize("storage_id", ["../etc/passwd", "abc", "", "0" * 32])
    def test_blob_path_rejects_unknown_ids(self, storage_id):
        assert storage.blob_path(storage_id) is None

    def test_upload_dir_is_isolated(self, temp_data_dir):
        assert os.path.isdir(os.path.join(temp_data_dir, "uploads"))
