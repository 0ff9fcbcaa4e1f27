"""
orders.py — Orders derived from accepted quotations.

Order lifecycle:
  ordered → confirmed → processing → shipped → delivered
  any non-terminal state → cancelled

Vendors move their orders forward (steps may be skipped, never reversed).
Buyers may confirm delivery. Every transition is appended to status_history
and the other party gets a notification.
"""

import logging

from supplyhub.core.db import get_db, fetch_one, fetch_all, new_id, now_iso, _jl, _jd
from supplyhub.core.enums import Role, RFQStatus, OrderStatus, NotificationType, parse_enum
from supplyhub.core.errors import ValidationError, not_found, forbidden
from supplyhub.core.identity import Identity, require_identity, require_role
from supplyhub.core.notifications import notify

log = logging.getLogger("supplyhub.orders")

ORDER_LIFECYCLE = [OrderStatus.ORDERED, OrderStatus.CONFIRMED, OrderStatus.PROCESSING,
                   OrderStatus.SHIPPED, OrderStatus.DELIVERED]
TERMINAL = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
IN_PROGRESS = {OrderStatus.ORDERED, OrderStatus.CONFIRMED, OrderStatus.PROCESSING,
               OrderStatus.SHIPPED}


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    if current in TERMINAL:
        return False
    if new is OrderStatus.CANCELLED:
        return True
    return ORDER_LIFECYCLE.index(new) > ORDER_LIFECYCLE.index(current)


def _transition_status(order: dict, new_status: OrderStatus, actor: str, notes: str = "") -> list:
    """Validate and record a transition. Returns the new status_history."""
    current = OrderStatus(order["status"])
    if not can_transition(current, new_status):
        raise ValidationError(f"Cannot move order from {current.value} to {new_status.value}")
    history = _jl(order["status_history"], [])
    entry = {"from": current.value, "to": new_status.value, "timestamp": now_iso(), "actor": actor}
    if notes:
        entry["notes"] = notes
    history.append(entry)
    return history


def status_message(status: OrderStatus, tracking_number: str = None, cancel_reason: str = None) -> str:
    if status is OrderStatus.CONFIRMED:
        return "Your order has been confirmed by the vendor"
    if status is OrderStatus.PROCESSING:
        return "Your order is being processed"
    if status is OrderStatus.SHIPPED:
        if tracking_number:
            return f"Your order has been shipped. Tracking: {tracking_number}"
        return "Your order has been shipped"
    if status is OrderStatus.DELIVERED:
        return "Your order has been delivered"
    if status is OrderStatus.CANCELLED:
        if cancel_reason:
            return f"Your order has been cancelled. Reason: {cancel_reason}"
        return "Your order has been cancelled"
    return f"Your order is {status.value}"


def _public(order: dict) -> dict:
    order["status_history"] = _jl(order["status_history"], [])
    return order


def _load_order(conn, order_id: str) -> dict:
    order = fetch_one(conn, "SELECT * FROM orders WHERE id=?", (order_id,))
    if not order:
        raise not_found("Order not found")
    return order


# ── Create ────────────────────────────────────────────────────────────────────

def create_order(identity: Identity | None, rfq_id: str, quotation_id: str) -> str:
    """The RFQ's buyer accepts one sent quotation. Returns the order id."""
    identity = require_role(identity, Role.BUYER, message="Only buyers can place orders")
    with get_db() as conn:
        rfq = fetch_one(conn, "SELECT * FROM rfqs WHERE id=?", (rfq_id,))
        if not rfq:
            raise not_found("RFQ not found")
        if rfq["buyer_id"] != identity.user_id:
            raise forbidden("You can only order from your own RFQs")
        quotation = fetch_one(conn, "SELECT * FROM sent_quotations WHERE id=? AND rfq_id=?",
                              (quotation_id, rfq_id))
        if not quotation:
            raise not_found("Quotation not found")
        if quotation["chosen"]:
            raise ValidationError("Quotation has already been accepted")

        order_id = new_id()
        now = now_iso()
        history = [{"from": "", "to": OrderStatus.ORDERED.value, "timestamp": now,
                    "actor": identity.user_id}]
        conn.execute(
            "INSERT INTO orders (id, rfq_id, quotation_id, buyer_id, vendor_id, product_id, quantity,"
            " total_amount, status, status_history, order_date, last_updated)"
            " VALUES (?,?,?,?,?,?,?,?,?,?,?,?)",
            (order_id, rfq_id, quotation_id, identity.user_id, quotation["vendor_id"],
             quotation["product_id"], quotation["quantity"],
             quotation["price"] * quotation["quantity"], OrderStatus.ORDERED.value,
             _jd(history), now, now),
        )
        conn.execute("UPDATE sent_quotations SET chosen=1, opened=1 WHERE id=?", (quotation_id,))
        conn.execute("UPDATE rfqs SET status=?, updated_at=? WHERE id=?",
                     (RFQStatus.COMPLETED.value, now, rfq_id))
        notify(conn, quotation["vendor_id"], NotificationType.QUOTATION_CHOSEN,
               "Your Quotation Was Chosen!",
               f"Congratulations! Your quotation has been accepted. Order ID: {order_id}",
               related_id=order_id)
    log.info("Order %s created from quotation %s", order_id, quotation_id,
             extra={"order_id": order_id, "rfq_id": rfq_id})
    return order_id


# ── Reads ─────────────────────────────────────────────────────────────────────

def get_order(conn, order_id: str) -> dict | None:
    """Order row with vendor, buyer and product joined, for exports."""
    order = fetch_one(
        conn,
        "SELECT o.*, COALESCE(v.company_name, v.name) AS vendor_name,"
        " v.company_name AS vendor_company, p.name AS product_name FROM orders o"
        " LEFT JOIN users v ON v.id = o.vendor_id"
        " LEFT JOIN products p ON p.id = o.product_id WHERE o.id=?",
        (order_id,),
    )
    return _public(order) if order else None


def get_my_orders(identity: Identity | None) -> list:
    if identity is None:
        return []
    with get_db() as conn:
        rows = fetch_all(
            conn,
            "SELECT o.*, COALESCE(v.company_name, v.name) AS vendor_name,"
            " v.name AS vendor_contact, v.company_name AS vendor_company, p.name AS product_name"
            " FROM orders o LEFT JOIN users v ON v.id = o.vendor_id"
            " LEFT JOIN products p ON p.id = o.product_id"
            " WHERE o.buyer_id=? ORDER BY o.order_date DESC",
            (identity.user_id,),
        )
    return [_public(o) for o in rows]


def get_vendor_orders(identity: Identity | None) -> list:
    if identity is None:
        return []
    with get_db() as conn:
        rows = fetch_all(
            conn,
            "SELECT o.*, COALESCE(b.company_name, b.name) AS buyer_name, b.phone AS buyer_phone,"
            " b.email AS buyer_email, COALESCE(v.company_name, v.name) AS vendor_name,"
            " v.company_name AS vendor_company, p.name AS product_name"
            " FROM orders o LEFT JOIN users b ON b.id = o.buyer_id"
            " LEFT JOIN users v ON v.id = o.vendor_id"
            " LEFT JOIN products p ON p.id = o.product_id"
            " WHERE o.vendor_id=? ORDER BY o.order_date DESC",
            (identity.user_id,),
        )
    return [_public(o) for o in rows]


# ── Lifecycle ─────────────────────────────────────────────────────────────────

def update_order_status(identity: Identity | None, order_id: str, status: str,
                        tracking_number: str = None, estimated_delivery_date: str = None,
                        delivery_notes: str = None, cancel_reason: str = None) -> dict:
    """Vendor moves their order along the lifecycle and the buyer is notified."""
    identity = require_identity(identity)
    status = parse_enum(OrderStatus, status, "status")
    with get_db() as conn:
        order = _load_order(conn, order_id)
        if order["vendor_id"] != identity.user_id:
            raise forbidden("Not authorized to update this order")
        history = _transition_status(order, status, actor=identity.user_id,
                                     notes=cancel_reason or delivery_notes or "")
        now = now_iso()
        conn.execute(
            "UPDATE orders SET status=?, status_history=?,"
            " tracking_number=COALESCE(?, tracking_number),"
            " estimated_delivery_date=COALESCE(?, estimated_delivery_date),"
            " delivery_notes=COALESCE(?, delivery_notes),"
            " cancel_reason=COALESCE(?, cancel_reason),"
            " actual_delivery_date=COALESCE(?, actual_delivery_date), last_updated=? WHERE id=?",
            (status.value, _jd(history), tracking_number or None, estimated_delivery_date or None,
             delivery_notes or None, cancel_reason or None,
             now if status is OrderStatus.DELIVERED else None, now, order_id),
        )
        notify(conn, order["buyer_id"], NotificationType.ORDER_UPDATE, "Order Status Update",
               status_message(status, tracking_number, cancel_reason), related_id=order_id)
    log.info("Order %s: %s → %s", order_id, order["status"], status.value,
             extra={"order_id": order_id})
    return {"success": True}


def upload_proof_of_delivery(identity: Identity | None, order_id: str, proof_of_delivery: str) -> dict:
    """Attach a delivery note / photo URL. Vendor of the order only."""
    identity = require_identity(identity)
    if not (proof_of_delivery or "").strip():
        raise ValidationError("Proof of delivery is required")
    with get_db() as conn:
        order = _load_order(conn, order_id)
        if order["vendor_id"] != identity.user_id:
            raise forbidden("Not authorized to update this order")
        conn.execute("UPDATE orders SET proof_of_delivery=?, last_updated=? WHERE id=?",
                     (proof_of_delivery, now_iso(), order_id))
    return {"success": True}


def confirm_delivery(identity: Identity | None, order_id: str) -> dict:
    """Buyer confirms receipt; the order becomes delivered and the vendor is told."""
    identity = require_identity(identity)
    with get_db() as conn:
        order = _load_order(conn, order_id)
        if order["buyer_id"] != identity.user_id:
            raise forbidden("Not authorized to confirm this order")
        history = _transition_status(order, OrderStatus.DELIVERED, actor=identity.user_id,
                                     notes="Confirmed by buyer")
        now = now_iso()
        conn.execute(
            "UPDATE orders SET status=?, status_history=?, actual_delivery_date=?, last_updated=?"
            " WHERE id=?",
            (OrderStatus.DELIVERED.value, _jd(history), now, now, order_id),
        )
        notify(conn, order["vendor_id"], NotificationType.ORDER_UPDATE, "Delivery Confirmed",
               "The buyer has confirmed delivery of the order", related_id=order_id)
    log.info("Order %s delivery confirmed by buyer", order_id, extra={"order_id": order_id})
    return {"success": True}


def get_order_stats(identity: Identity | None) -> dict | None:
    """Totals over the caller's orders (as vendor for vendors, as buyer otherwise)."""
    if identity is None:
        return None
    column = "vendor_id" if identity.role is Role.VENDOR else "buyer_id"
    with get_db() as conn:
        orders = fetch_all(conn, f"SELECT status, total_amount FROM orders WHERE {column}=?",
                           (identity.user_id,))
    total = len(orders)
    delivered = sum(1 for o in orders if o["status"] == OrderStatus.DELIVERED.value)
    in_progress = sum(1 for o in orders if OrderStatus(o["status"]) in IN_PROGRESS)
    return {
        "total_orders": total,
        "total_value": sum(o["total_amount"] for o in orders),
        "delivered": delivered,
        "in_progress": in_progress,
        "delivery_rate": (delivered / total) * 100 if total else 0,
    }
