"""
supplyhub/core/paths.py — Centralized Path Configuration

Single source of truth for directory paths. Every module imports from here
instead of computing its own DATA_DIR.

Priority: SUPPLYHUB_DATA_DIR env → project data/ directory.
"""

import os
import logging

log = logging.getLogger("supplyhub.paths")

# ── Project Root ──────────────────────────────────────────────────────────────
_THIS_FILE = os.path.abspath(__file__)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(_THIS_FILE)))

_DEFAULT_DATA_DIR = os.path.join(PROJECT_ROOT, "data")


def _resolve_data_dir() -> str:
    """Find the data directory (SQLite file, uploaded blobs, logs)."""
    env_dir = os.environ.get("SUPPLYHUB_DATA_DIR", "")
    if env_dir:
        return env_dir
    return _DEFAULT_DATA_DIR


DATA_DIR = _resolve_data_dir()
UPLOAD_DIR = os.path.join(DATA_DIR, "uploads")
LOG_DIR = os.path.join(DATA_DIR, "logs")

for _d in (DATA_DIR, UPLOAD_DIR):
    os.makedirs(_d, exist_ok=True)


def validate_paths() -> dict:
    """Runtime validation — call at app startup to catch path issues early.

    Returns:
        {"ok": bool, "errors": [str], "resolved": {name: path}}
    """
    result = {"ok": True, "errors": [], "resolved": {}}
    for name, path in (("DATA_DIR", DATA_DIR), ("UPLOAD_DIR", UPLOAD_DIR)):
        result["resolved"][name] = path
        if not os.path.isdir(path):
            result["errors"].append(f"{name} not found: {path}")
            result["ok"] = False

    test_file = os.path.join(DATA_DIR, ".write_test")
    try:
        with open(test_file, "w") as f:
            f.write("ok")
        os.remove(test_file)
    except OSError as e:
        result["errors"].append(f"DATA_DIR not writable: {e}")
        result["ok"] = False

    if result["ok"]:
        log.info("DATA_DIR: %s", DATA_DIR)
    return result
