# Order Routes — create from quotation, lifecycle, delivery, exports

from supplyhub.api.common import bp, ok, body, identity
from supplyhub.core import orders
from supplyhub.core.db import get_db
from supplyhub.core.enums import Role
from supplyhub.core.errors import not_found, forbidden
from supplyhub.core.identity import require_identity
from supplyhub.core.security import rate_limit, audit_action
from supplyhub.integrations.quickbooks_export import (export_order_to_csv, export_orders_to_csv,
                                                      csv_response)


@bp.route("/api/orders", methods=["POST"])
@rate_limit("api")
@audit_action("order_create")
def api_order_create():
    """Buyer accepts a quotation: {rfq_id, quotation_id} → {ok, order_id}"""
    data = body()
    order_id = orders.create_order(identity(), data.get("rfq_id"), data.get("quotation_id"))
    return ok(order_id=order_id), 201


@bp.route("/api/orders/mine")
def api_my_orders():
    return ok(orders=orders.get_my_orders(identity()))


@bp.route("/api/orders/vendor")
def api_vendor_orders():
    return ok(orders=orders.get_vendor_orders(identity()))


@bp.route("/api/orders/stats")
def api_order_stats():
    return ok(stats=orders.get_order_stats(identity()))


@bp.route("/api/orders/<order_id>/status", methods=["POST"])
@audit_action("order_status")
def api_order_status(order_id):
    """Vendor: {status, tracking_number?, estimated_delivery_date?, delivery_notes?, cancel_reason?}"""
    data = body()
    orders.update_order_status(
        identity(), order_id, data.get("status"),
        tracking_number=data.get("tracking_number"),
        estimated_delivery_date=data.get("estimated_delivery_date"),
        delivery_notes=data.get("delivery_notes"),
        cancel_reason=data.get("cancel_reason"))
    return ok()


@bp.route("/api/orders/<order_id>/proof-of-delivery", methods=["POST"])
def api_order_proof(order_id):
    orders.upload_proof_of_delivery(identity(), order_id, body().get("proof_of_delivery"))
    return ok()


@bp.route("/api/orders/<order_id>/confirm-delivery", methods=["POST"])
@audit_action("order_delivery_confirmed")
def api_order_confirm_delivery(order_id):
    orders.confirm_delivery(identity(), order_id)
    return ok()


# ── QuickBooks CSV ────────────────────────────────────────────────────────────

@bp.route("/api/orders/<order_id>/export.csv")
@rate_limit("heavy")
def api_order_export(order_id):
    caller = require_identity(identity())
    with get_db() as conn:
        order = orders.get_order(conn, order_id)
    if not order:
        raise not_found("Order not found")
    if caller.user_id not in (order["buyer_id"], order["vendor_id"]):
        raise forbidden("Not authorized to export this order")
    return csv_response(export_order_to_csv(order), f"order-{order_id}.csv")


@bp.route("/api/orders/export.csv")
@rate_limit("heavy")
def api_orders_export():
    """Every order the caller placed (buyer) or fulfils (vendor), one CSV for bulk import."""
    caller = require_identity(identity())
    if caller.role is Role.VENDOR:
        rows = orders.get_vendor_orders(caller)
    else:
        rows = orders.get_my_orders(caller)
    return csv_response(export_orders_to_csv(rows), "orders.csv")
