# User Routes — profile, preferences, admin user management

from supplyhub.api.common import bp, ok, body, identity, client_ip
from supplyhub.core import users
from supplyhub.core.security import rate_limit, audit_action


@bp.route("/api/users/me")
def api_me():
    return ok(user=users.get_current_user(identity()))


@bp.route("/api/users/me", methods=["PUT", "POST"])
def api_update_me():
    """Onboarding: {role: vendor|buyer, company_name, phone, address}"""
    data = body()
    users.update_current_user(identity(), data.get("role"), data.get("company_name"),
                              data.get("phone"), data.get("address"))
    return ok()


@bp.route("/api/users/me/quotation-preference", methods=["PUT", "POST"])
def api_quotation_preference():
    users.update_quotation_preference(identity(), body().get("preference"))
    return ok()


@bp.route("/api/users/me/notification-preferences", methods=["PUT", "POST"])
def api_notification_preferences():
    data = body()
    users.update_notification_preferences(identity(), data.get("email_notifications"),
                                          data.get("whatsapp_notifications"))
    return ok()


@bp.route("/api/users/me/make-admin", methods=["POST"])
@rate_limit("auth")
def api_make_admin():
    users.make_user_admin(identity(), ip_address=client_ip())
    return ok()


# ── Admin ─────────────────────────────────────────────────────────────────────

@bp.route("/api/admin/users")
def api_admin_users():
    return ok(users=users.get_all_users(identity()))


@bp.route("/api/admin/users/pending")
def api_admin_pending_users():
    return ok(users=users.get_pending_users(identity()))


@bp.route("/api/admin/users/<user_id>/verify", methods=["POST"])
@audit_action("user_verify")
def api_admin_verify_user(user_id):
    users.verify_user(identity(), user_id)
    return ok()


@bp.route("/api/admin/users/<user_id>/toggle-verified", methods=["POST"])
@audit_action("user_toggle_verified")
def api_admin_toggle_verified(user_id):
    result = users.toggle_user_verified(identity(), user_id)
    return ok(verified=result["verified"])


@bp.route("/api/admin/users/<user_id>/approve", methods=["POST"])
@audit_action("user_approve")
def api_admin_approve(user_id):
    users.approve_user(identity(), user_id)
    return ok()


@bp.route("/api/admin/users/<user_id>/reject", methods=["POST"])
@audit_action("user_reject")
def api_admin_reject(user_id):
    users.reject_user(identity(), user_id)
    return ok()


@bp.route("/api/admin/users/<user_id>", methods=["DELETE"])
def api_admin_delete_user(user_id):
    users.delete_user(identity(), user_id)
    return ok()


@bp.route("/api/admin/users/<user_id>/categories", methods=["PUT", "POST"])
@audit_action("vendor_categories")
def api_admin_assign_categories(user_id):
    users.assign_categories_to_vendor(identity(), user_id, body().get("categories") or [])
    return ok()
