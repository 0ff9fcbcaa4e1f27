# Catalog Routes — categories, products, bulk upload

from flask import request

from supplyhub.api.common import bp, ok, body, identity
from supplyhub.core import catalog
from supplyhub.core.errors import not_found
from supplyhub.core.security import rate_limit, audit_action


@bp.route("/api/categories")
def api_categories():
    return ok(categories=catalog.get_categories())


@bp.route("/api/categories", methods=["POST"])
@audit_action("category_create")
def api_category_create():
    data = body()
    category_id = catalog.create_category(identity(), data.get("name"),
                                          data.get("description"), data.get("icon"))
    return ok(category_id=category_id), 201


@bp.route("/api/categories/<category_id>")
def api_category(category_id):
    category = catalog.get_category(category_id)
    if not category:
        raise not_found("Category not found")
    return ok(category=category)


@bp.route("/api/categories/<category_id>", methods=["PUT"])
@audit_action("category_update")
def api_category_update(category_id):
    data = body()
    catalog.update_category(identity(), category_id, data.get("name"),
                            data.get("description"), data.get("icon"))
    return ok()


@bp.route("/api/categories/<category_id>", methods=["DELETE"])
@audit_action("category_delete")
def api_category_delete(category_id):
    catalog.delete_category(identity(), category_id)
    return ok()


@bp.route("/api/products")
def api_products():
    """?category_id=<id> to filter"""
    return ok(products=catalog.get_products(request.args.get("category_id")))


@bp.route("/api/products/<product_id>")
def api_product(product_id):
    product = catalog.get_product(product_id)
    if not product:
        raise not_found("Product not found")
    return ok(product=product)


_PRODUCT_FIELDS = ("name", "category_id", "description", "image", "sku", "specifications", "price")


@bp.route("/api/products", methods=["POST"])
def api_product_create():
    data = body()
    product_id = catalog.create_product(identity(), **{f: data.get(f) for f in _PRODUCT_FIELDS})
    return ok(product_id=product_id), 201


@bp.route("/api/products/bulk", methods=["POST"])
@rate_limit("heavy")
@audit_action("product_bulk_create")
def api_product_bulk_create():
    """POST {products: [{name, category_id, description, ...}]}"""
    result = catalog.bulk_create_products(identity(), body().get("products") or [])
    return ok(**result), 201


@bp.route("/api/products/<product_id>", methods=["PUT"])
def api_product_update(product_id):
    data = body()
    catalog.update_product(identity(), product_id, **{f: data.get(f) for f in _PRODUCT_FIELDS})
    return ok()


@bp.route("/api/products/<product_id>", methods=["DELETE"])
@audit_action("product_delete")
def api_product_delete(product_id):
    catalog.delete_product(identity(), product_id)
    return ok()
