"""
catalog.py — Product categories and catalog products.

Reads are public. Every write requires an admin identity.
"""

import re
import logging

from supplyhub.core.db import get_db, fetch_one, fetch_all, new_id, now_iso
from supplyhub.core.errors import ValidationError, not_found
from supplyhub.core.identity import Identity, require_admin

log = logging.getLogger("supplyhub.catalog")

_NON_WORD = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")


def slugify(text: str) -> str:
    """'Surgical Instruments & Tools' -> 'surgical-instruments-tools'"""
    text = _NON_WORD.sub("", (text or "").lower().strip())
    return _SEPARATORS.sub("-", text).strip("-")


def _require_text(value, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


# ── Categories ────────────────────────────────────────────────────────────────

def get_categories() -> list:
    with get_db() as conn:
        return fetch_all(conn, "SELECT * FROM categories ORDER BY created_at, name")


def get_category(category_id: str) -> dict | None:
    with get_db() as conn:
        return fetch_one(conn, "SELECT * FROM categories WHERE id=?", (category_id,))


def create_category(identity: Identity | None, name: str, description: str = None,
                    icon: str = None) -> str:
    identity = require_admin(identity, "Only admins can create categories")
    name = _require_text(name, "Category name")
    category_id = new_id()
    with get_db() as conn:
        conn.execute(
            "INSERT INTO categories (id, name, slug, description, icon, created_at) VALUES (?,?,?,?,?,?)",
            (category_id, name, slugify(name), description, icon, now_iso()),
        )
    log.info("Category created: %s (%s) by %s", name, category_id, identity.user_id)
    return category_id


def update_category(identity: Identity | None, category_id: str, name: str,
                    description: str = None, icon: str = None) -> None:
    require_admin(identity, "Only admins can update categories")
    name = _require_text(name, "Category name")
    with get_db() as conn:
        cur = conn.execute(
            "UPDATE categories SET name=?, slug=?, description=?, icon=? WHERE id=?",
            (name, slugify(name), description, icon, category_id),
        )
        if cur.rowcount == 0:
            raise not_found("Category not found")


def delete_category(identity: Identity | None, category_id: str) -> None:
    require_admin(identity, "Only admins can delete categories")
    with get_db() as conn:
        if not fetch_one(conn, "SELECT id FROM categories WHERE id=?", (category_id,)):
            raise not_found("Category not found")
        in_use = conn.execute("SELECT COUNT(*) FROM products WHERE category_id=?",
                              (category_id,)).fetchone()[0]
        if in_use:
            raise ValidationError(f"Category still has {in_use} products")
        conn.execute("DELETE FROM categories WHERE id=?", (category_id,))
    log.info("Category deleted: %s", category_id)


# ── Products ──────────────────────────────────────────────────────────────────

def get_products(category_id: str = None) -> list:
    """All products (or one category's) with their category name."""
    sql = ("SELECT p.*, COALESCE(c.name, 'Unknown') AS category_name"
           " FROM products p LEFT JOIN categories c ON c.id = p.category_id")
    with get_db() as conn:
        if category_id:
            return fetch_all(conn, sql + " WHERE p.category_id=? ORDER BY p.name", (category_id,))
        return fetch_all(conn, sql + " ORDER BY p.name")


def get_product(product_id: str) -> dict | None:
    with get_db() as conn:
        product = fetch_one(conn, "SELECT * FROM products WHERE id=?", (product_id,))
        if not product:
            return None
        product["category"] = fetch_one(conn, "SELECT * FROM categories WHERE id=?",
                                        (product["category_id"],))
    return product


def _check_price(price):
    if price is not None and float(price) < 0:
        raise ValidationError("Price cannot be negative")
    return price


def _insert_product(conn, data: dict) -> str:
    name = _require_text(data.get("name"), "Product name")
    description = _require_text(data.get("description"), "Product description")
    category_id = data.get("category_id")
    if not category_id or not fetch_one(conn, "SELECT id FROM categories WHERE id=?", (category_id,)):
        raise not_found(f"Category not found: {category_id}")
    price = _check_price(data.get("price"))

    product_id = new_id()
    conn.execute(
        "INSERT INTO products (id, name, category_id, description, specifications, image, sku,"
        " price, created_at) VALUES (?,?,?,?,?,?,?,?,?)",
        (product_id, name, category_id, description, data.get("specifications"),
         data.get("image"), data.get("sku"), price, now_iso()),
    )
    return product_id


def create_product(identity: Identity | None, name: str, category_id: str, description: str,
                   image: str = None, sku: str = None, specifications: str = None,
                   price: float = None) -> str:
    require_admin(identity, "Only admins can create products")
    with get_db() as conn:
        return _insert_product(conn, {
            "name": name, "category_id": category_id, "description": description,
            "image": image, "sku": sku, "specifications": specifications, "price": price,
        })


def bulk_create_products(identity: Identity | None, products: list) -> dict:
    """Insert a batch of products in one transaction; any bad row aborts the batch."""
    require_admin(identity, "Only admins can bulk create products")
    if not products:
        raise ValidationError("No products to create")
    with get_db() as conn:
        product_ids = [_insert_product(conn, p) for p in products]
    log.info("Bulk created %d products", len(product_ids))
    return {"count": len(product_ids), "product_ids": product_ids}


def update_product(identity: Identity | None, product_id: str, name: str, category_id: str,
                   description: str, image: str = None, sku: str = None,
                   specifications: str = None, price: float = None) -> None:
    require_admin(identity, "Only admins can update products")
    name = _require_text(name, "Product name")
    description = _require_text(description, "Product description")
    price = _check_price(price)
    with get_db() as conn:
        if not fetch_one(conn, "SELECT id FROM products WHERE id=?", (product_id,)):
            raise not_found("Product not found")
        if not fetch_one(conn, "SELECT id FROM categories WHERE id=?", (category_id,)):
            raise not_found(f"Category not found: {category_id}")
        conn.execute(
            "UPDATE products SET name=?, category_id=?, description=?, image=?, sku=?,"
            " specifications=?, price=?, updated_at=? WHERE id=?",
            (name, category_id, description, image, sku, specifications, price,
             now_iso(), product_id),
        )


def delete_product(identity: Identity | None, product_id: str) -> None:
    require_admin(identity, "Only admins can delete products")
    with get_db() as conn:
        if not fetch_one(conn, "SELECT id FROM products WHERE id=?", (product_id,)):
            raise not_found("Product not found")
        in_use = conn.execute("SELECT COUNT(*) FROM rfq_items WHERE product_id=?",
                              (product_id,)).fetchone()[0]
        if in_use:
            raise ValidationError(f"Product is listed on {in_use} RFQ items")
        conn.execute("DELETE FROM products WHERE id=?", (product_id,))
    log.info("Product deleted: %s", product_id)
