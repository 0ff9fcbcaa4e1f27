"""
rfqs.py — Requests-for-quotation: submission, auto-match and reads.

Lifecycle: pending → quoted (first quotation arrives) → completed (order placed).

On submit, every active vendor quotation for a requested product whose
vendor is verified is copied into sent_quotations straight away, so a
buyer usually sees prices without waiting for vendors to respond.
"""

import logging

from supplyhub.core.auth import public_user
from supplyhub.core.db import get_db, fetch_one, fetch_all, new_id, now_iso, _jl
from supplyhub.core.enums import Role, RFQStatus, NotificationType, QuotationPreference
from supplyhub.core.errors import ValidationError, not_found, forbidden
from supplyhub.core.identity import Identity, require_identity, require_role
from supplyhub.core.notifications import notify
from supplyhub.core.ratings import vendor_rating_summary

log = logging.getLogger("supplyhub.rfqs")


def _clean_items(items) -> list:
    """Validate [{product_id, quantity, product_name?}]. Empty lists and quantity <= 0 are rejected."""
    if not items:
        raise ValidationError("An RFQ needs at least one item")
    cleaned = []
    for item in items:
        product_id = (item or {}).get("product_id")
        if not product_id:
            raise ValidationError("Each RFQ item needs a product_id")
        try:
            quantity = int(item.get("quantity"))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid quantity for product {product_id}") from None
        if quantity <= 0:
            raise ValidationError(f"Quantity must be greater than 0 (product {product_id})")
        cleaned.append({"product_id": product_id, "quantity": quantity,
                        "product_name": item.get("product_name")})
    return cleaned


def _insert_rfq(conn, items: list, buyer_id: str = None, expected_delivery_time: str = None,
                guest: dict = None) -> tuple:
    """Insert the RFQ and its items. Returns (rfq_id, {product_id: product})."""
    products = {}
    for item in items:
        product = fetch_one(conn, "SELECT id, name FROM products WHERE id=?", (item["product_id"],))
        if not product:
            raise not_found(f"Product not found: {item['product_id']}")
        products[product["id"]] = product

    rfq_id = new_id()
    guest = guest or {}
    conn.execute(
        "INSERT INTO rfqs (id, buyer_id, status, is_guest, guest_name, guest_company_name,"
        " guest_phone, guest_email, expected_delivery_time, created_at)"
        " VALUES (?,?,?,?,?,?,?,?,?,?)",
        (rfq_id, buyer_id, RFQStatus.PENDING.value, 1 if guest else 0,
         guest.get("name"), guest.get("company_name"), guest.get("phone"), guest.get("email"),
         expected_delivery_time, now_iso()),
    )
    for item in items:
        conn.execute(
            "INSERT INTO rfq_items (id, rfq_id, product_id, product_name, quantity) VALUES (?,?,?,?,?)",
            (new_id(), rfq_id, item["product_id"],
             item["product_name"] or products[item["product_id"]]["name"], item["quantity"]),
        )
    return rfq_id, products


def _auto_match(conn, rfq_id: str, buyer_id: str, items: list, products: dict) -> int:
    """Copy matching pre-filled quotations into sent_quotations and tell each vendor."""
    matched = 0
    for item in items:
        quotations = fetch_all(
            conn,
            "SELECT q.* FROM vendor_quotations q JOIN users u ON u.id = q.vendor_id"
            " WHERE q.product_id=? AND q.active=1 AND u.verified=1 AND q.rfq_id IS NULL",
            (item["product_id"],),
        )
        for q in quotations:
            conn.execute(
                "INSERT INTO sent_quotations (id, rfq_id, buyer_id, vendor_id, product_id,"
                " quotation_id, quotation_type, price, quantity, payment_terms, delivery_time,"
                " warranty_period, product_photo, product_description, brand, sent_at)"
                " VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)",
                (new_id(), rfq_id, buyer_id, q["vendor_id"], q["product_id"], q["id"],
                 q["quotation_type"], q["price"], q["quantity"], q["payment_terms"],
                 q["delivery_time"], q["warranty_period"], q["product_photo"],
                 q["product_description"], q["brand"], now_iso()),
            )
            notify(conn, q["vendor_id"], NotificationType.QUOTATION_SENT,
                   "Your Quotation Was Sent",
                   f"Your quotation for {products[item['product_id']]['name']} was sent to a buyer",
                   related_id=rfq_id)
            matched += 1
    return matched


def submit_rfq(identity: Identity | None, items: list, expected_delivery_time: str = None) -> dict:
    """Buyer posts an RFQ. Returns {rfq_id, matched_count}."""
    identity = require_role(identity, Role.BUYER, message="Only buyers can submit RFQs")
    items = _clean_items(items)
    with get_db() as conn:
        rfq_id, products = _insert_rfq(conn, items, buyer_id=identity.user_id,
                                       expected_delivery_time=expected_delivery_time)
        matched = _auto_match(conn, rfq_id, identity.user_id, items, products)
        if matched:
            conn.execute("UPDATE rfqs SET status=?, updated_at=? WHERE id=?",
                         (RFQStatus.QUOTED.value, now_iso(), rfq_id))
    log.info("RFQ %s submitted by %s: %d items, %d auto-matched",
             rfq_id, identity.user_id, len(items), matched, extra={"rfq_id": rfq_id})
    return {"rfq_id": rfq_id, "matched_count": matched}


def submit_guest_rfq(guest_name: str, guest_company_name: str, guest_phone: str,
                     guest_email: str, items: list, expected_delivery_time: str = None) -> dict:
    """RFQ from a visitor without an account. Only vendors accepting guest RFQs see it."""
    guest = {"name": guest_name, "company_name": guest_company_name,
             "phone": guest_phone, "email": guest_email}
    for field, value in guest.items():
        if not (value or "").strip():
            raise ValidationError(f"Guest {field.replace('_', ' ')} is required")
    items = _clean_items(items)
    with get_db() as conn:
        rfq_id, _ = _insert_rfq(conn, items, expected_delivery_time=expected_delivery_time,
                                guest=guest)
    log.info("Guest RFQ %s from %s", rfq_id, guest_email, extra={"rfq_id": rfq_id})
    return {"rfq_id": rfq_id}


# ── Reads ─────────────────────────────────────────────────────────────────────

def _items_with_products(conn, rfq_id: str) -> list:
    items = fetch_all(conn, "SELECT * FROM rfq_items WHERE rfq_id=? ORDER BY rowid", (rfq_id,))
    for item in items:
        item["product"] = fetch_one(conn, "SELECT * FROM products WHERE id=?", (item["product_id"],))
    return items


def get_my_rfqs(identity: Identity | None) -> list:
    """Buyer's RFQs, newest first, with items and quotation count."""
    if identity is None or identity.role is not Role.BUYER:
        return []
    with get_db() as conn:
        rfqs = fetch_all(conn, "SELECT * FROM rfqs WHERE buyer_id=? ORDER BY created_at DESC, rowid DESC",
                         (identity.user_id,))
        for rfq in rfqs:
            rfq["items"] = _items_with_products(conn, rfq["id"])
            rfq["quotation_count"] = conn.execute(
                "SELECT COUNT(*) FROM sent_quotations WHERE rfq_id=?", (rfq["id"],)).fetchone()[0]
    return rfqs


def get_rfq_details(identity: Identity | None, rfq_id: str) -> dict:
    """RFQ with items and every quotation received, each with vendor and rating."""
    identity = require_identity(identity)
    with get_db() as conn:
        rfq = fetch_one(conn, "SELECT * FROM rfqs WHERE id=?", (rfq_id,))
        if not rfq:
            raise not_found("RFQ not found")
        if identity.role is Role.BUYER and rfq["buyer_id"] != identity.user_id:
            raise forbidden("Access denied")

        rfq["items"] = _items_with_products(conn, rfq_id)
        quotations = fetch_all(conn, "SELECT * FROM sent_quotations WHERE rfq_id=? ORDER BY sent_at",
                               (rfq_id,))
        for q in quotations:
            q["opened"] = bool(q["opened"])
            q["chosen"] = bool(q["chosen"])
            q["vendor"] = public_user(fetch_one(conn, "SELECT * FROM users WHERE id=?", (q["vendor_id"],)))
            q["product"] = fetch_one(conn, "SELECT * FROM products WHERE id=?", (q["product_id"],))
            summary = vendor_rating_summary(conn, q["vendor_id"])
            q["vendor_rating"] = summary["average"]
            q["vendor_review_count"] = summary["count"]
        rfq["quotations"] = quotations
    return rfq


def mark_quotation_opened(identity: Identity | None, sent_quotation_id: str) -> None:
    identity = require_identity(identity)
    with get_db() as conn:
        q = fetch_one(conn, "SELECT buyer_id FROM sent_quotations WHERE id=?", (sent_quotation_id,))
        if not q:
            raise not_found("Quotation not found")
        if identity.role is not Role.ADMIN and q["buyer_id"] != identity.user_id:
            raise forbidden("Only the receiving buyer can open this quotation")
        conn.execute("UPDATE sent_quotations SET opened=1 WHERE id=?", (sent_quotation_id,))


def get_my_quotations_sent(identity: Identity | None) -> list:
    """Everything a vendor has had sent to buyers, newest first."""
    if identity is None or identity.role is not Role.VENDOR:
        return []
    with get_db() as conn:
        sent = fetch_all(conn, "SELECT * FROM sent_quotations WHERE vendor_id=? ORDER BY sent_at DESC",
                         (identity.user_id,))
        for q in sent:
            q["opened"] = bool(q["opened"])
            q["chosen"] = bool(q["chosen"])
            q["product"] = fetch_one(conn, "SELECT * FROM products WHERE id=?", (q["product_id"],))
            q["buyer"] = public_user(fetch_one(conn, "SELECT * FROM users WHERE id=?", (q["buyer_id"],)))
            q["rfq"] = fetch_one(conn, "SELECT * FROM rfqs WHERE id=?", (q["rfq_id"],))
    return sent


def _visible_to(rfq: dict, buyer_role: str | None, preference: QuotationPreference) -> bool:
    if preference is QuotationPreference.ALL_INCLUDING_GUESTS:
        return True
    if rfq["is_guest"]:
        return False
    if preference is QuotationPreference.REGISTERED_HOSPITALS_ONLY:
        return buyer_role == Role.BUYER.value
    return True


def get_pending_rfqs(identity: Identity | None) -> list:
    """Pending RFQs a vendor can quote: items in their categories, filtered by preference."""
    if identity is None or identity.role is not Role.VENDOR:
        return []
    with get_db() as conn:
        vendor = fetch_one(conn, "SELECT categories, quotation_preference FROM users WHERE id=?",
                           (identity.user_id,))
        categories = set(_jl(vendor["categories"], [])) if vendor else set()
        if not categories:
            return []
        preference = QuotationPreference(vendor["quotation_preference"]
                                         or QuotationPreference.ALL_INCLUDING_GUESTS.value)

        rfqs = fetch_all(
            conn,
            "SELECT r.*, u.role AS buyer_role FROM rfqs r LEFT JOIN users u ON u.id = r.buyer_id"
            " WHERE r.status=? ORDER BY r.created_at DESC, r.rowid DESC",
            (RFQStatus.PENDING.value,),
        )
        out = []
        for rfq in rfqs:
            buyer_role = rfq.pop("buyer_role")
            if not _visible_to(rfq, buyer_role, preference):
                continue
            items = fetch_all(
                conn,
                "SELECT i.id AS rfq_item_id, i.product_id, i.quantity,"
                " COALESCE(p.name, 'Unknown') AS product_name, p.category_id"
                " FROM rfq_items i LEFT JOIN products p ON p.id = i.product_id"
                " WHERE i.rfq_id=? ORDER BY i.rowid",
                (rfq["id"],),
            )
            relevant = []
            for item in items:
                if item["category_id"] not in categories:
                    continue
                item["already_quoted"] = conn.execute(
                    "SELECT 1 FROM sent_quotations WHERE rfq_id=? AND vendor_id=? AND product_id=?",
                    (rfq["id"], identity.user_id, item["product_id"]),
                ).fetchone() is not None
                relevant.append(item)
            if relevant:
                rfq["is_guest"] = bool(rfq["is_guest"])
                rfq["items"] = relevant
                out.append(rfq)
    return out
