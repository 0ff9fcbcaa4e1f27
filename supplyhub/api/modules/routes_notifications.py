# Notification Routes — bell menu + public contact form

from supplyhub.api.common import bp, ok, body, identity
from supplyhub.core import notifications
from supplyhub.core.security import rate_limit


@bp.route("/api/notifications")
def api_notifications():
    return ok(notifications=notifications.get_my_notifications(identity()))


@bp.route("/api/notifications/unread-count")
def api_notifications_unread():
    return ok(count=notifications.get_unread_count(identity()))


@bp.route("/api/notifications/<int:notification_id>/read", methods=["POST"])
def api_notification_read(notification_id):
    notifications.mark_as_read(identity(), notification_id)
    return ok()


@bp.route("/api/notifications/read-all", methods=["POST"])
def api_notifications_read_all():
    result = notifications.mark_all_as_read(identity())
    return ok(updated=result["updated"])


@bp.route("/api/contact", methods=["POST"])
@rate_limit("auth")
def api_contact():
    """Chatbot product request, no sign-in: {name, email, phone, product_request}"""
    data = body()
    result = notifications.send_admin_contact_message(
        data.get("name"), data.get("email"), data.get("phone"), data.get("product_request"))
    return ok(notified=result["notified"])
