"""
ratings.py — Buyer ratings of vendors, one per vendor per RFQ.
"""

import sqlite3
import logging

from supplyhub.core.auth import public_user
from supplyhub.core.db import get_db, fetch_one, fetch_all, new_id, now_iso
from supplyhub.core.enums import Role
from supplyhub.core.errors import ValidationError, not_found, forbidden
from supplyhub.core.identity import Identity, require_role

log = logging.getLogger("supplyhub.ratings")


def vendor_rating_summary(conn, vendor_id: str) -> dict:
    """{average, count} for vendor_id; average 0 when unrated."""
    row = conn.execute("SELECT AVG(rating), COUNT(*) FROM ratings WHERE vendor_id=?",
                       (vendor_id,)).fetchone()
    return {"average": row[0] or 0, "count": row[1]}


def submit_rating(identity: Identity | None, vendor_id: str, rfq_id: str, rating: int,
                  review: str = None) -> str:
    identity = require_role(identity, Role.BUYER, message="Only buyers can rate vendors")
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValidationError("Rating must be a whole number between 1 and 5") from None
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    rating_id = new_id()
    with get_db() as conn:
        vendor = fetch_one(conn, "SELECT role FROM users WHERE id=?", (vendor_id,))
        if not vendor or vendor["role"] != Role.VENDOR.value:
            raise not_found("Vendor not found")
        rfq = fetch_one(conn, "SELECT buyer_id FROM rfqs WHERE id=?", (rfq_id,))
        if not rfq:
            raise not_found("RFQ not found")
        if rfq["buyer_id"] != identity.user_id:
            raise forbidden("You can only rate vendors on your own RFQs")
        try:
            conn.execute(
                "INSERT INTO ratings (id, buyer_id, vendor_id, rfq_id, rating, review, created_at)"
                " VALUES (?,?,?,?,?,?,?)",
                (rating_id, identity.user_id, vendor_id, rfq_id, rating, review, now_iso()),
            )
        except sqlite3.IntegrityError:
            raise forbidden("You have already rated this vendor for this RFQ") from None
    log.info("Vendor %s rated %d by %s", vendor_id, rating, identity.user_id)
    return rating_id


def get_vendor_ratings(vendor_id: str) -> dict:
    with get_db() as conn:
        ratings = fetch_all(conn, "SELECT * FROM ratings WHERE vendor_id=? ORDER BY created_at DESC",
                            (vendor_id,))
        for r in ratings:
            r["buyer"] = public_user(fetch_one(conn, "SELECT * FROM users WHERE id=?", (r["buyer_id"],)))
        summary = vendor_rating_summary(conn, vendor_id)
    return {"ratings": ratings, "average_rating": summary["average"],
            "total_ratings": summary["count"]}


def get_vendor_average_rating(vendor_id: str) -> dict:
    with get_db() as conn:
        return vendor_rating_summary(conn, vendor_id)


def get_my_ratings(identity: Identity | None) -> list:
    if identity is None or identity.role is not Role.BUYER:
        return []
    with get_db() as conn:
        ratings = fetch_all(conn, "SELECT * FROM ratings WHERE buyer_id=? ORDER BY created_at DESC",
                            (identity.user_id,))
        for r in ratings:
            r["vendor"] = public_user(fetch_one(conn, "SELECT * FROM users WHERE id=?", (r["vendor_id"],)))
    return ratings
