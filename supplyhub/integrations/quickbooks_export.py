"""
quickbooks_export.py — CSV exports of RFQs and orders for QuickBooks import.

Every cell is double-quoted, rows are joined with "\\n", dates render as
M/D/YYYY. Unit price on orders is total_amount / quantity with two
decimals, computed the same way for single and bulk exports.
"""

import io
import csv
import logging
from datetime import datetime

from flask import Response

log = logging.getLogger("supplyhub.export")

RFQ_HEADERS = ["RFQ ID", "Date", "Product", "Quantity", "Vendor", "Unit Price", "Total",
               "Payment Terms", "Delivery Time"]

ORDER_HEADERS = ["Order ID", "Order Date", "Vendor Name", "Vendor Company", "Product", "Quantity",
                 "Unit Price", "Total Amount", "Status", "Tracking Number", "Delivery Date", "Memo"]


def format_date(value) -> str:
    """ISO string or datetime → M/D/YYYY. Empty for None/""."""
    if not value:
        return ""
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value))
    return f"{value.month}/{value.day}/{value.year}"


def _money(value) -> str:
    return f"{float(value):.2f}"


def _to_csv(rows: list) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    return buf.getvalue().rstrip("\n")


def _vendor_name(quotation: dict) -> str:
    if quotation.get("vendor_name"):
        return quotation["vendor_name"]
    vendor = quotation.get("vendor") or {}
    return vendor.get("company_name") or vendor.get("name") or ""


def export_rfq_to_csv(rfq: dict) -> str:
    """One row per item × quotation; "Pending" rows when no quotation has arrived."""
    rows = [RFQ_HEADERS]
    date = format_date(rfq.get("created_at"))
    quotations = rfq.get("quotations") or []
    for item in rfq.get("items") or []:
        if not quotations:
            rows.append([rfq["id"], date, item["product_name"], str(item["quantity"]),
                         "Pending", "", "", "", ""])
            continue
        for q in quotations:
            rows.append([
                rfq["id"], date, item["product_name"], str(item["quantity"]),
                _vendor_name(q), _money(q["price"]), _money(q["price"] * q["quantity"]),
                q["payment_terms"], q["delivery_time"],
            ])
    return _to_csv(rows)


def _order_row(order: dict) -> list:
    quantity = order["quantity"]
    if not quantity:
        raise ValueError(f"Order {order['id']} has zero quantity; unit price is undefined")
    unit_price = order["total_amount"] / quantity
    return [
        order["id"],
        format_date(order.get("order_date")),
        order.get("vendor_name") or "",
        order.get("vendor_company") or "",
        order.get("product_name") or "",
        str(quantity),
        _money(unit_price),
        _money(order["total_amount"]),
        order["status"],
        order.get("tracking_number") or "",
        format_date(order.get("actual_delivery_date")),
        f"Medical Equipment Order - {order.get('product_name') or ''}",
    ]


def export_order_to_csv(order: dict) -> str:
    return _to_csv([ORDER_HEADERS, _order_row(order)])


def export_orders_to_csv(orders: list) -> str:
    """Bulk export: one header, one row per order."""
    return _to_csv([ORDER_HEADERS] + [_order_row(o) for o in orders])


def csv_response(content: str, filename: str) -> Response:
    """Serve CSV text as a download."""
    log.info("CSV export %s (%d bytes)", filename, len(content))
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
