# Catalog Scanner Route — admin vision-model extraction

from supplyhub.api.common import bp, ok, body, identity
from supplyhub.agents.catalog_scanner import scan_catalog_image
from supplyhub.core.security import rate_limit, audit_action


@bp.route("/api/admin/catalog-scan", methods=["POST"])
@rate_limit("heavy")
@audit_action("catalog_scan")
def api_catalog_scan():
    """POST {image_url, context?} → {ok, products: [...]}"""
    data = body()
    result = scan_catalog_image(identity(), data.get("image_url"), data.get("context"))
    return ok(products=result["products"])
