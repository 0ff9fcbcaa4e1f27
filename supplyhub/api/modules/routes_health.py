# Health + Admin Diagnostics

from flask import request

from supplyhub import __version__
from supplyhub.api.common import bp, ok, identity
from supplyhub.core.db import get_db_stats, get_audit_trail
from supplyhub.core.identity import require_admin
from supplyhub.core.paths import validate_paths
from supplyhub.core.secrets import validate_all


@bp.route("/api/health")
def api_health():
    """Liveness plus row counts. Secret values are never included."""
    paths = validate_paths()
    secrets_report = validate_all()
    return ok(
        status="ok" if paths["ok"] else "degraded",
        version=__version__,
        db=get_db_stats(),
        paths=paths["errors"],
        secrets={name: s["set"] for name, s in secrets_report["secrets"].items()},
    )


@bp.route("/api/admin/audit")
def api_admin_audit():
    """?action=<name>&limit=N"""
    require_admin(identity())
    limit = min(request.args.get("limit", 100, type=int), 500)
    return ok(entries=get_audit_trail(request.args.get("action"), limit))
