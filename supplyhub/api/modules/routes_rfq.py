# RFQ + Quotation Routes
# Buyers post RFQs and accept quotations; vendors answer and manage price lists.

from supplyhub.api.common import bp, ok, body, identity
from supplyhub.core import rfqs, quotations, ratings
from supplyhub.core.security import rate_limit
from supplyhub.integrations.quickbooks_export import export_rfq_to_csv, csv_response


@bp.route("/api/rfqs", methods=["POST"])
@rate_limit("api")
def api_rfq_submit():
    """POST {items: [{product_id, quantity, product_name?}], expected_delivery_time?}"""
    data = body()
    result = rfqs.submit_rfq(identity(), data.get("items"), data.get("expected_delivery_time"))
    return ok(**result), 201


@bp.route("/api/rfqs/guest", methods=["POST"])
@rate_limit("auth")
def api_rfq_submit_guest():
    data = body()
    result = rfqs.submit_guest_rfq(
        data.get("guest_name"), data.get("guest_company_name"), data.get("guest_phone"),
        data.get("guest_email"), data.get("items"), data.get("expected_delivery_time"))
    return ok(**result), 201


@bp.route("/api/rfqs/mine")
def api_my_rfqs():
    return ok(rfqs=rfqs.get_my_rfqs(identity()))


@bp.route("/api/rfqs/pending")
def api_pending_rfqs():
    """Vendor view: pending RFQs in the vendor's categories."""
    return ok(rfqs=rfqs.get_pending_rfqs(identity()))


@bp.route("/api/rfqs/<rfq_id>")
def api_rfq_detail(rfq_id):
    return ok(rfq=rfqs.get_rfq_details(identity(), rfq_id))


@bp.route("/api/rfqs/<rfq_id>/export.csv")
@rate_limit("heavy")
def api_rfq_export(rfq_id):
    rfq = rfqs.get_rfq_details(identity(), rfq_id)
    return csv_response(export_rfq_to_csv(rfq), f"rfq-{rfq_id}.csv")


@bp.route("/api/rfqs/<rfq_id>/quotations", methods=["POST"])
@rate_limit("api")
def api_rfq_quote(rfq_id):
    """Vendor answers: {product_id, price, quantity, payment_terms, delivery_time, warranty_period, ...}"""
    data = body()
    result = quotations.submit_quotation(identity(), rfq_id, data.get("product_id"),
                                         **_quotation_args(data))
    return ok(**result), 201


@bp.route("/api/sent-quotations/<sent_id>/opened", methods=["POST"])
def api_quotation_opened(sent_id):
    rfqs.mark_quotation_opened(identity(), sent_id)
    return ok()


@bp.route("/api/sent-quotations/mine")
def api_my_sent_quotations():
    return ok(quotations=rfqs.get_my_quotations_sent(identity()))


# ── Vendor price list ─────────────────────────────────────────────────────────

def _quotation_args(data: dict) -> dict:
    args = {k: data.get(k) for k in ("price", "quantity", "payment_terms", "delivery_time")}
    args["warranty_period"] = data.get("warranty_period", "")
    args.update({k: data.get(k) for k in quotations.OPTIONAL_FIELDS})
    return args


@bp.route("/api/quotations/mine")
def api_my_quotations():
    return ok(quotations=quotations.get_my_quotations(identity()))


@bp.route("/api/quotations", methods=["POST"])
def api_quotation_create():
    data = body()
    quotation_id = quotations.create_quotation(identity(), data.get("product_id"),
                                               rfq_id=data.get("rfq_id"), **_quotation_args(data))
    return ok(quotation_id=quotation_id), 201


@bp.route("/api/quotations/<quotation_id>", methods=["PUT"])
def api_quotation_update(quotation_id):
    data = body()
    quotations.update_quotation(identity(), quotation_id, active=data.get("active"),
                                **_quotation_args(data))
    return ok()


@bp.route("/api/quotations/<quotation_id>", methods=["DELETE"])
def api_quotation_delete(quotation_id):
    quotations.delete_quotation(identity(), quotation_id)
    return ok()


@bp.route("/api/admin/quotations")
def api_admin_quotations():
    return ok(quotations=quotations.get_all_quotations_for_admin(identity()))


# ── Ratings ───────────────────────────────────────────────────────────────────

@bp.route("/api/ratings", methods=["POST"])
def api_rating_submit():
    """POST {vendor_id, rfq_id, rating: 1-5, review?}"""
    data = body()
    rating_id = ratings.submit_rating(identity(), data.get("vendor_id"), data.get("rfq_id"),
                                      data.get("rating"), data.get("review"))
    return ok(rating_id=rating_id), 201


@bp.route("/api/ratings/mine")
def api_my_ratings():
    return ok(ratings=ratings.get_my_ratings(identity()))


@bp.route("/api/vendors/<vendor_id>/ratings")
def api_vendor_ratings(vendor_id):
    return ok(**ratings.get_vendor_ratings(vendor_id))


@bp.route("/api/vendors/<vendor_id>/rating")
def api_vendor_average(vendor_id):
    return ok(**ratings.get_vendor_average_rating(vendor_id))
