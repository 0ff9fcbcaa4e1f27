"""
quotations.py — Vendor quotations.

Two kinds live in vendor_quotations:
  pre-filled — a vendor's standing price for a product; auto-matched into new RFQs
  on-demand  — a price written in answer to one RFQ (rfq_id set)

What a buyer actually sees is the sent_quotations copy, made either by
RFQ auto-match or by submit_quotation.
"""

import logging

from supplyhub.core.auth import public_user
from supplyhub.core.db import get_db, fetch_one, fetch_all, new_id, now_iso
from supplyhub.core.enums import (Role, RFQStatus, QuotationType, PaymentTerms,
                                  NotificationType, parse_enum)
from supplyhub.core.errors import ValidationError, not_found
from supplyhub.core.identity import Identity, require_role, require_admin
from supplyhub.core.notifications import notify
from supplyhub.core.ratings import vendor_rating_summary

log = logging.getLogger("supplyhub.quotations")

OPTIONAL_FIELDS = ("country_of_origin", "product_specifications", "product_photo",
                   "product_description", "brand")


def _clean_terms(price, quantity, payment_terms, delivery_time, warranty_period) -> dict:
    try:
        price = float(price)
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError("Price and quantity must be numbers") from None
    if price < 0:
        raise ValidationError("Price cannot be negative")
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")
    if not (delivery_time or "").strip():
        raise ValidationError("Delivery time is required")
    return {
        "price": price,
        "quantity": quantity,
        "payment_terms": parse_enum(PaymentTerms, payment_terms, "payment terms").value,
        "delivery_time": delivery_time.strip(),
        "warranty_period": warranty_period or "",
    }


def _insert_vendor_quotation(conn, vendor_id: str, product_id: str, terms: dict, extra: dict,
                             rfq_id: str = None, source: str = "manual") -> str:
    if not fetch_one(conn, "SELECT id FROM products WHERE id=?", (product_id,)):
        raise not_found(f"Product not found: {product_id}")
    quotation_id = new_id()
    qtype = QuotationType.ON_DEMAND if rfq_id else QuotationType.PRE_FILLED
    now = now_iso()
    conn.execute(
        "INSERT INTO vendor_quotations (id, vendor_id, product_id, rfq_id, quotation_type, source,"
        " price, quantity, payment_terms, delivery_time, warranty_period, country_of_origin,"
        " product_specifications, product_photo, product_description, brand, active,"
        " created_at, updated_at) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,1,?,?)",
        (quotation_id, vendor_id, product_id, rfq_id, qtype.value, source,
         terms["price"], terms["quantity"], terms["payment_terms"], terms["delivery_time"],
         terms["warranty_period"], *(extra.get(f) for f in OPTIONAL_FIELDS), now, now),
    )
    return quotation_id


# ── RFQ answers ───────────────────────────────────────────────────────────────

def submit_quotation(identity: Identity | None, rfq_id: str, product_id: str, price, quantity,
                     payment_terms: str, delivery_time: str, warranty_period: str = "",
                     **extra) -> dict:
    """Vendor answers an RFQ line. A vendor may quote the same RFQ more than once."""
    identity = require_role(identity, Role.VENDOR, message="Only vendors can submit quotations")
    terms = _clean_terms(price, quantity, payment_terms, delivery_time, warranty_period)
    with get_db() as conn:
        rfq = fetch_one(conn, "SELECT * FROM rfqs WHERE id=?", (rfq_id,))
        if not rfq:
            raise not_found("RFQ not found")
        if rfq["status"] == RFQStatus.COMPLETED.value:
            raise ValidationError("RFQ is already completed")
        if not fetch_one(conn, "SELECT 1 FROM rfq_items WHERE rfq_id=? AND product_id=?",
                         (rfq_id, product_id)):
            raise not_found("Product is not part of this RFQ")

        quotation_id = _insert_vendor_quotation(conn, identity.user_id, product_id, terms,
                                                extra, rfq_id=rfq_id)
        sent_id = new_id()
        conn.execute(
            "INSERT INTO sent_quotations (id, rfq_id, buyer_id, vendor_id, product_id, quotation_id,"
            " quotation_type, price, quantity, payment_terms, delivery_time, warranty_period,"
            " product_photo, product_description, brand, sent_at)"
            " VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)",
            (sent_id, rfq_id, rfq["buyer_id"], identity.user_id, product_id, quotation_id,
             QuotationType.ON_DEMAND.value, terms["price"], terms["quantity"],
             terms["payment_terms"], terms["delivery_time"], terms["warranty_period"],
             extra.get("product_photo"), extra.get("product_description"), extra.get("brand"),
             now_iso()),
        )
        if rfq["status"] == RFQStatus.PENDING.value:
            conn.execute("UPDATE rfqs SET status=?, updated_at=? WHERE id=?",
                         (RFQStatus.QUOTED.value, now_iso(), rfq_id))
        if rfq["buyer_id"]:
            notify(conn, rfq["buyer_id"], NotificationType.QUOTATION_SENT,
                   "New Quotation Received", "A vendor has sent a quotation for your RFQ",
                   related_id=rfq_id)
    log.info("Quotation %s sent on RFQ %s by %s", sent_id, rfq_id, identity.user_id,
             extra={"rfq_id": rfq_id})
    return {"sent_quotation_id": sent_id, "quotation_id": quotation_id}


# ── Pre-filled price list ─────────────────────────────────────────────────────

def create_quotation(identity: Identity | None, product_id: str, price, quantity,
                     payment_terms: str, delivery_time: str, warranty_period: str = "",
                     rfq_id: str = None, **extra) -> str:
    identity = require_role(identity, Role.VENDOR, message="Only vendors can create quotations")
    terms = _clean_terms(price, quantity, payment_terms, delivery_time, warranty_period)
    with get_db() as conn:
        if rfq_id and not fetch_one(conn, "SELECT id FROM rfqs WHERE id=?", (rfq_id,)):
            raise not_found("RFQ not found")
        return _insert_vendor_quotation(conn, identity.user_id, product_id, terms, extra,
                                        rfq_id=rfq_id)


def _own_quotation(conn, identity: Identity, quotation_id: str) -> dict:
    quotation = fetch_one(conn, "SELECT * FROM vendor_quotations WHERE id=?", (quotation_id,))
    if not quotation or quotation["vendor_id"] != identity.user_id:
        raise not_found("Quotation not found or unauthorized")
    return quotation


def update_quotation(identity: Identity | None, quotation_id: str, price, quantity,
                     payment_terms: str, delivery_time: str, warranty_period: str = "",
                     active: bool = None, **extra) -> None:
    identity = require_role(identity, Role.VENDOR, message="Only vendors can update quotations")
    terms = _clean_terms(price, quantity, payment_terms, delivery_time, warranty_period)
    with get_db() as conn:
        current = _own_quotation(conn, identity, quotation_id)
        is_active = current["active"] if active is None else (1 if active else 0)
        conn.execute(
            "UPDATE vendor_quotations SET price=?, quantity=?, payment_terms=?, delivery_time=?,"
            " warranty_period=?, country_of_origin=?, product_specifications=?, product_photo=?,"
            " product_description=?, brand=?, active=?, updated_at=? WHERE id=?",
            (terms["price"], terms["quantity"], terms["payment_terms"], terms["delivery_time"],
             terms["warranty_period"], *(extra.get(f) for f in OPTIONAL_FIELDS),
             is_active, now_iso(), quotation_id),
        )


def delete_quotation(identity: Identity | None, quotation_id: str) -> None:
    identity = require_role(identity, Role.VENDOR, message="Only vendors can delete quotations")
    with get_db() as conn:
        _own_quotation(conn, identity, quotation_id)
        conn.execute("DELETE FROM vendor_quotations WHERE id=?", (quotation_id,))


def get_my_quotations(identity: Identity | None) -> list:
    if identity is None or identity.role is not Role.VENDOR:
        return []
    with get_db() as conn:
        rows = fetch_all(conn, "SELECT * FROM vendor_quotations WHERE vendor_id=? ORDER BY created_at DESC",
                         (identity.user_id,))
        for q in rows:
            q["active"] = bool(q["active"])
            q["product"] = fetch_one(conn, "SELECT * FROM products WHERE id=?", (q["product_id"],))
    return rows


def get_all_quotations_for_admin(identity: Identity | None) -> list:
    """Every vendor quotation with vendor rating, product and RFQ buyer."""
    require_admin(identity)
    with get_db() as conn:
        rows = fetch_all(conn, "SELECT * FROM vendor_quotations ORDER BY created_at DESC")
        for q in rows:
            q["active"] = bool(q["active"])
            vendor = fetch_one(conn, "SELECT * FROM users WHERE id=?", (q["vendor_id"],))
            if vendor:
                summary = vendor_rating_summary(conn, q["vendor_id"])
                q["vendor"] = {
                    "name": vendor["name"],
                    "email": vendor["email"],
                    "company_name": vendor["company_name"] or "N/A",
                    "average_rating": summary["average"],
                    "total_ratings": summary["count"],
                }
            else:
                q["vendor"] = None
            product = fetch_one(conn, "SELECT name, image, description FROM products WHERE id=?",
                                (q["product_id"],))
            q["product"] = product
            q["rfq"] = _rfq_buyer_info(conn, q["rfq_id"]) if q["rfq_id"] else None
    return rows


def _rfq_buyer_info(conn, rfq_id: str) -> dict | None:
    rfq = fetch_one(conn, "SELECT * FROM rfqs WHERE id=?", (rfq_id,))
    if not rfq:
        return None
    buyer = None
    if rfq["buyer_id"]:
        user = public_user(fetch_one(conn, "SELECT * FROM users WHERE id=?", (rfq["buyer_id"],)))
        if user:
            buyer = {"name": user["name"], "company_name": user["company_name"]}
    elif rfq["is_guest"]:
        buyer = {"name": rfq["guest_name"] or "Guest",
                 "company_name": rfq["guest_company_name"] or "N/A"}
    return {"id": rfq["id"], "buyer": buyer}
