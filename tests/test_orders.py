"""Order creation from an accepted quotation and the order lifecycle."""

import pytest

from supplyhub.core import orders, rfqs, quotations
from supplyhub.core.db import get_db, fetch_one, fetch_all
from supplyhub.core.enums import OrderStatus
from supplyhub.core.errors import ServiceError, ValidationError


@pytest.fixture
def quoted_rfq(buyer, vendor, product):
    """RFQ for 4 units with one on-demand quotation at 125.00 each."""
    rfq_id = rfqs.submit_rfq(buyer.identity, [{"product_id": product["id"], "quantity": 4}])["rfq_id"]
    sent = quotations.submit_quotation(vendor.identity, rfq_id, product["id"], 125, 4,
                                       "cash", "7 days")
    return {"rfq_id": rfq_id, "quotation_id": sent["sent_quotation_id"]}


@pytest.fixture
def order_id(buyer, quoted_rfq):
    return orders.create_order(buyer.identity, quoted_rfq["rfq_id"], quoted_rfq["quotation_id"])


def _order(order_id):
    with get_db() as conn:
        return orders.get_order(conn, order_id)


def _last_note(user_id):
    with get_db() as conn:
        return fetch_all(conn, "SELECT * FROM notifications WHERE user_id=? ORDER BY id DESC LIMIT 1",
                         (user_id,))[0]


class TestTransitions:

    @pytest.mark.parametrize("current,new,allowed", [
        (OrderStatus.ORDERED, OrderStatus.CONFIRMED, True),
        (OrderStatus.ORDERED, OrderStatus.SHIPPED, True),
        (OrderStatus.SHIPPED, OrderStatus.PROCESSING, False),
        (OrderStatus.CONFIRMED, OrderStatus.CONFIRMED, False),
        (OrderStatus.PROCESSING, OrderStatus.CANCELLED, True),
        (OrderStatus.DELIVERED, OrderStatus.CANCELLED, False),
        (OrderStatus.CANCELLED, OrderStatus.ORDERED, False),
    ])
    def test_can_transition(self, current, new, allowed):
        assert orders.can_transition(current, new) is allowed

    def test_status_messages(self):
        assert "Tracking: TRK1" in orders.status_message(OrderStatus.SHIPPED, tracking_number="TRK1")
        assert "Reason: out of stock" in orders.status_message(OrderStatus.CANCELLED,
                                                                cancel_reason="out of stock")


class TestCreateOrder:

    def test_order_from_quotation(self, buyer, vendor, quoted_rfq, order_id):
        order = _order(order_id)
        assert order["status"] == "ordered"
        assert order["total_amount"] == 500
        assert order["quantity"] == 4
        assert order["vendor_id"] == vendor["id"]
        assert order["status_history"][0]["to"] == "ordered"

        with get_db() as conn:
            rfq = fetch_one(conn, "SELECT status FROM rfqs WHERE id=?", (quoted_rfq["rfq_id"],))
            sent = fetch_one(conn, "SELECT chosen, opened FROM sent_quotations WHERE id=?",
                             (quoted_rfq["quotation_id"],))
        assert rfq["status"] == "completed"
        assert sent["chosen"] == 1 and sent["opened"] == 1

        note = _last_note(vendor["id"])
        assert note["type"] == "quotation_chosen"
        assert order_id in note["message"]

    def test_quotation_cannot_be_accepted_twice(self, buyer, quoted_rfq, order_id):
        with pytest.raises(ValidationError):
            orders.create_order(buyer.identity, quoted_rfq["rfq_id"], quoted_rfq["quotation_id"])

    def test_only_rfq_owner(self, make_user, quoted_rfq):
        stranger = make_user("buyer")
        with pytest.raises(ServiceError) as exc:
            orders.create_order(stranger.identity, quoted_rfq["rfq_id"], quoted_rfq["quotation_id"])
        assert exc.value.code == "FORBIDDEN"

    def test_vendor_cannot_order(self, vendor, quoted_rfq):
        with pytest.raises(ServiceError) as exc:
            orders.create_order(vendor.identity, quoted_rfq["rfq_id"], quoted_rfq["quotation_id"])
        assert exc.value.code == "FORBIDDEN"

    def test_completed_rfq_takes_no_more_quotes(self, vendor, product, quoted_rfq, order_id):
        with pytest.raises(ValidationError):
            quotations.submit_quotation(vendor.identity, quoted_rfq["rfq_id"], product["id"],
                                        100, 4, "cash", "1 day")


class TestLifecycle:

    def test_vendor_moves_order_forward(self, buyer, vendor, order_id):
        orders.update_order_status(vendor.identity, order_id, "confirmed")
        orders.update_order_status(vendor.identity, order_id, "shipped", tracking_number="TRK-9")
        order = _order(order_id)
        assert order["status"] == "shipped"
        assert order["tracking_number"] == "TRK-9"
        assert [h["to"] for h in order["status_history"]] == ["ordered", "confirmed", "shipped"]
        assert order["status_history"][-1]["from"] == "confirmed"

        note = _last_note(buyer["id"])
        assert note["type"] == "order_update"
        assert "TRK-9" in note["message"]

    def test_backwards_rejected(self, vendor, order_id):
        orders.update_order_status(vendor.identity, order_id, "processing")
        with pytest.raises(ValidationError):
            orders.update_order_status(vendor.identity, order_id, "confirmed")
        assert _order(order_id)["status"] == "processing"

    def test_delivered_sets_actual_date(self, vendor, order_id):
        orders.update_order_status(vendor.identity, order_id, "delivered")
        assert _order(order_id)["actual_delivery_date"]
        with pytest.raises(ValidationError):
            orders.update_order_status(vendor.identity, order_id, "cancelled")

    def test_cancel_keeps_reason(self, vendor, order_id):
        orders.update_order_status(vendor.identity, order_id, "cancelled", cancel_reason="Recall")
        order = _order(order_id)
        assert order["cancel_reason"] == "Recall"
        assert order["status_history"][-1]["notes"] == "Recall"

    def test_only_vendor_owner_updates(self, buyer, make_user, order_id):
        for who in (buyer, make_user("vendor")):
            with pytest.raises(ServiceError) as exc:
                orders.update_order_status(who.identity, order_id, "confirmed")
            assert exc.value.code == "FORBIDDEN"

    def test_unknown_status(self, vendor, order_id):
        with pytest.raises(ValidationError):
            orders.update_order_status(vendor.identity, order_id, "lost")

    def test_buyer_confirms_delivery(self, buyer, vendor, order_id):
        orders.update_order_status(vendor.identity, order_id, "shipped")
        orders.confirm_delivery(buyer.identity, order_id)
        assert _order(order_id)["status"] == "delivered"
        assert _last_note(vendor["id"])["title"] == "Delivery Confirmed"
        with pytest.raises(ServiceError):
            orders.confirm_delivery(vendor.identity, order_id)

    def test_proof_of_delivery(self, buyer, vendor, order_id):
        orders.upload_proof_of_delivery(vendor.identity, order_id, "https://cdn/pod.jpg")
        assert _order(order_id)["proof_of_delivery"] == "https://cdn/pod.jpg"
        with pytest.raises(ServiceError):
            orders.upload_proof_of_delivery(buyer.identity, order_id, "x")


class TestOrderReads:

    def test_my_orders_and_vendor_orders(self, buyer, vendor, order_id):
        mine = orders.get_my_orders(buyer.identity)
        assert mine[0]["vendor_name"] == "MedSupply Ltd"
        assert mine[0]["product_name"] == "Patient Monitor"
        theirs = orders.get_vendor_orders(vendor.identity)
        assert theirs[0]["buyer_email"] == buyer["email"]
        assert orders.get_my_orders(None) == []

    def test_stats(self, buyer, vendor, order_id):
        stats = orders.get_order_stats(vendor.identity)
        assert stats == {"total_orders": 1, "total_value": 500, "delivered": 0,
                         "in_progress": 1, "delivery_rate": 0}
        orders.update_order_status(vendor.identity, order_id, "delivered")
        assert orders.get_order_stats(buyer.identity)["delivery_rate"] == 100
        assert orders.get_order_stats(None) is None
