"""Notifications, the chatbot contact form and vendor ratings."""

import pytest

from supplyhub.core import notifications, ratings, rfqs
from supplyhub.core.db import get_db
from supplyhub.core.enums import NotificationType
from supplyhub.core.errors import ServiceError, ValidationError


def _notify(user, n=1):
    with get_db() as conn:
        for i in range(n):
            notifications.notify(conn, user["id"], NotificationType.ORDER_UPDATE, f"T{i}", f"M{i}")


class TestNotifications:

    def test_signed_out_gets_nothing(self):
        assert notifications.get_my_notifications(None) == []
        assert notifications.get_unread_count(None) == 0

    def test_newest_first_and_capped(self, buyer):
        _notify(buyer, notifications.RECENT_LIMIT + 5)
        mine = notifications.get_my_notifications(buyer.identity)
        assert len(mine) == notifications.RECENT_LIMIT
        assert mine[0]["title"] == f"T{notifications.RECENT_LIMIT + 4}"
        assert mine[0]["is_read"] is False

    def test_mark_read(self, buyer):
        _notify(buyer, 3)
        first = notifications.get_my_notifications(buyer.identity)[0]
        notifications.mark_as_read(buyer.identity, first["id"])
        assert notifications.get_unread_count(buyer.identity) == 2
        assert notifications.mark_all_as_read(buyer.identity)["updated"] == 2
        assert notifications.get_unread_count(buyer.identity) == 0

    def test_cannot_read_someone_elses(self, buyer, vendor):
        _notify(buyer)
        nid = notifications.get_my_notifications(buyer.identity)[0]["id"]
        with pytest.raises(ServiceError) as exc:
            notifications.mark_as_read(vendor.identity, nid)
        assert exc.value.code == "NOT_FOUND"


class TestContactMessage:

    def test_every_admin_notified(self, make_user):
        admins = [make_user("admin"), make_user("admin")]
        result = notifications.send_admin_contact_message(
            "Grace", "grace@clinic.org", "+254733", "oxygen concentrators")
        assert result["notified"] == 2
        for a in admins:
            note = notifications.get_my_notifications(a.identity)[0]
            assert note["title"] == "Product Request from Chatbot"
            assert "oxygen concentrators" in note["message"]
            assert note["type"] == "rfq_received"

    def test_missing_fields(self):
        with pytest.raises(ValidationError):
            notifications.send_admin_contact_message("Grace", "", "1", "gloves")


class TestRatings:

    @pytest.fixture
    def rfq_id(self, buyer, product):
        return rfqs.submit_rfq(buyer.identity, [{"product_id": product["id"], "quantity": 1}])["rfq_id"]

    def test_rate_and_summarize(self, buyer, vendor, rfq_id):
        ratings.submit_rating(buyer.identity, vendor["id"], rfq_id, 4, "Fast delivery")
        summary = ratings.get_vendor_ratings(vendor["id"])
        assert summary["average_rating"] == 4
        assert summary["total_ratings"] == 1
        assert summary["ratings"][0]["buyer"]["name"] == buyer["name"]
        assert ratings.get_my_ratings(buyer.identity)[0]["vendor"]["id"] == vendor["id"]

    def test_one_rating_per_vendor_per_rfq(self, buyer, vendor, rfq_id):
        ratings.submit_rating(buyer.identity, vendor["id"], rfq_id, 5)
        with pytest.raises(ServiceError) as exc:
            ratings.submit_rating(buyer.identity, vendor["id"], rfq_id, 1)
        assert exc.value.code == "FORBIDDEN"
        assert ratings.get_vendor_average_rating(vendor["id"]) == {"average": 5, "count": 1}

    @pytest.mark.parametrize("value", [0, 6, "great"])
    def test_out_of_range(self, buyer, vendor, rfq_id, value):
        with pytest.raises(ValidationError):
            ratings.submit_rating(buyer.identity, vendor["id"], rfq_id, value)

    def test_only_own_rfq(self, make_user, vendor, rfq_id):
        with pytest.raises(ServiceError) as exc:
            ratings.submit_rating(make_user("buyer").identity, vendor["id"], rfq_id, 3)
        assert exc.value.code == "FORBIDDEN"

    def test_target_must_be_vendor(self, buyer, make_user, rfq_id):
        with pytest.raises(ServiceError) as exc:
            ratings.submit_rating(buyer.identity, make_user("buyer")["id"], rfq_id, 3)
        assert exc.value.code == "NOT_FOUND"
