"""Seed data bundled with the application.

`flask seed` loads the default medical categories (and a few sample
products) into an empty database. Re-running is safe: rows whose slug or
SKU already exists are skipped.
"""

import logging

from supplyhub.core.catalog import slugify
from supplyhub.core.db import get_db, fetch_one, new_id, now_iso

log = logging.getLogger("supplyhub.seed")

DEFAULT_CATEGORIES = [
    {"name": "Diagnostic Equipment", "icon": "stethoscope",
     "description": "Monitors, ECG machines, ultrasound and imaging"},
    {"name": "Laboratory Equipment", "icon": "flask-conical",
     "description": "Analyzers, centrifuges, microscopes and lab consumables"},
    {"name": "Surgical Instruments", "icon": "scissors",
     "description": "Theatre instruments, sutures and surgical sets"},
    {"name": "Hospital Furniture", "icon": "bed",
     "description": "Beds, examination couches, trolleys and cabinets"},
    {"name": "Personal Protective Equipment", "icon": "shield",
     "description": "Gloves, masks, gowns and face shields"},
    {"name": "Medical Consumables", "icon": "syringe",
     "description": "Syringes, cannulas, dressings and catheters"},
]

SAMPLE_PRODUCTS = [
    {"category": "Diagnostic Equipment", "name": "Patient Monitor 12.1\"", "sku": "DX-PM-121",
     "description": "Six-parameter bedside monitor with ECG, SpO2, NIBP, temperature and respiration.",
     "specifications": "12.1\" colour display; 4 h battery; HL7 output"},
    {"category": "Laboratory Equipment", "name": "Benchtop Centrifuge 6x50ml", "sku": "LB-CF-650",
     "description": "Low-speed centrifuge for blood separation with brushless motor.",
     "specifications": "Max 4000 rpm; 6 x 50 ml rotor; digital timer"},
    {"category": "Personal Protective Equipment", "name": "Nitrile Examination Gloves (100)",
     "sku": "PPE-NG-100",
     "description": "Powder-free nitrile examination gloves, box of 100.",
     "specifications": "Sizes S-XL; 4 mil; EN 455"},
]


def seed_catalog() -> dict:
    """Insert default categories and sample products. Returns counts added."""
    added = {"categories": 0, "products": 0}
    with get_db() as conn:
        category_ids = {}
        for cat in DEFAULT_CATEGORIES:
            slug = slugify(cat["name"])
            existing = fetch_one(conn, "SELECT id FROM categories WHERE slug=?", (slug,))
            if existing:
                category_ids[cat["name"]] = existing["id"]
                continue
            cid = new_id()
            conn.execute(
                "INSERT INTO categories (id, name, slug, description, icon, created_at) VALUES (?,?,?,?,?,?)",
                (cid, cat["name"], slug, cat["description"], cat["icon"], now_iso()),
            )
            category_ids[cat["name"]] = cid
            added["categories"] += 1

        for p in SAMPLE_PRODUCTS:
            if fetch_one(conn, "SELECT id FROM products WHERE sku=?", (p["sku"],)):
                continue
            conn.execute(
                "INSERT INTO products (id, name, category_id, description, specifications, sku, created_at)"
                " VALUES (?,?,?,?,?,?,?)",
                (new_id(), p["name"], category_ids[p["category"]], p["description"],
                 p["specifications"], p["sku"], now_iso()),
            )
            added["products"] += 1
    log.info("Seeded %d categories, %d products", added["categories"], added["products"])
    return added
