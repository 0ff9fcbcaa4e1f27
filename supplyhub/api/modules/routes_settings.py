# Site Settings Routes — public read, admin write

from supplyhub.api.common import bp, ok, body, identity
from supplyhub.core import site_settings
from supplyhub.core.security import audit_action


@bp.route("/api/site-settings")
def api_site_settings():
    return ok(settings=site_settings.get_site_settings())


@bp.route("/api/site-settings", methods=["PUT", "POST"])
@audit_action("site_settings_update")
def api_site_settings_update():
    """{settings: {key: value, ...}} or {key, value}"""
    data = body()
    if "settings" in data:
        site_settings.update_site_settings(identity(), data["settings"])
    else:
        site_settings.update_site_setting(identity(), data.get("key"), data.get("value"))
    return ok(settings=site_settings.get_site_settings())


@bp.route("/api/site-settings/reset", methods=["POST"])
@audit_action("site_settings_reset")
def api_site_settings_reset():
    """{keys: [...]} resets those keys; no keys resets everything."""
    removed = site_settings.reset_site_settings(identity(), body().get("keys"))
    return ok(removed=removed, settings=site_settings.get_site_settings())
