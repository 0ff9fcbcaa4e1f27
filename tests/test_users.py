"""Profile, vendor preferences, role gates and admin user management."""

import pytest

from supplyhub.core import users
from supplyhub.core.db import get_audit_trail
from supplyhub.core.errors import ServiceError, ValidationError
from supplyhub.core.identity import require_role
from supplyhub.core.enums import Role


def _code(exc_info):
    return exc_info.value.code


class TestRoleGates:

    def test_no_identity_is_unauthenticated(self):
        with pytest.raises(ServiceError) as exc:
            require_role(None, Role.ADMIN)
        assert _code(exc) == "UNAUTHENTICATED"

    def test_wrong_role_is_forbidden(self, buyer):
        with pytest.raises(ServiceError) as exc:
            require_role(buyer.identity, Role.ADMIN, Role.VENDOR)
        assert _code(exc) == "FORBIDDEN"

    def test_allowed_role_passes(self, vendor):
        assert require_role(vendor.identity, Role.ADMIN, Role.VENDOR).user_id == vendor["id"]


class TestCurrentUser:

    def test_signed_out_is_none(self):
        assert users.get_current_user(None) is None

    def test_profile_has_no_password_hash(self, vendor, category):
        me = users.get_current_user(vendor.identity)
        assert "password_hash" not in me
        assert me["verified"] is True
        assert me["categories"] == [category["id"]]

    def test_onboarding_sets_role_and_resets_status(self, buyer):
        users.update_current_user(buyer.identity, "vendor", "MedCo", "+254711", "Nairobi")
        me = users.get_user_details(buyer["id"])
        assert me["role"] == "vendor"
        assert me["company_name"] == "MedCo"
        assert me["status"] == "pending"

    def test_onboarding_cannot_pick_admin(self, buyer):
        with pytest.raises(ValidationError):
            users.update_current_user(buyer.identity, "admin", "X", "1", "Y")

    def test_notification_preferences(self, buyer):
        users.update_notification_preferences(buyer.identity, email_notifications=False,
                                              whatsapp_notifications=True)
        me = users.get_user_details(buyer["id"])
        assert me["email_notifications"] is False
        assert me["whatsapp_notifications"] is True


class TestQuotationPreference:

    def test_vendor_sets_preference(self, vendor):
        users.update_quotation_preference(vendor.identity, "registered_hospitals_only")
        assert users.get_user_details(vendor["id"])["quotation_preference"] == "registered_hospitals_only"

    def test_buyer_forbidden(self, buyer):
        with pytest.raises(ServiceError) as exc:
            users.update_quotation_preference(buyer.identity, "registered_all")
        assert _code(exc) == "FORBIDDEN"

    def test_unknown_value_rejected(self, vendor):
        with pytest.raises(ValidationError):
            users.update_quotation_preference(vendor.identity, "everyone")


class TestSelfAdmin:

    def test_disabled_by_default(self, buyer):
        with pytest.raises(ServiceError) as exc:
            users.make_user_admin(buyer.identity)
        assert _code(exc) == "FORBIDDEN"
        assert users.get_user_details(buyer["id"])["role"] == "buyer"

    def test_enabled_flag_promotes_and_audits(self, buyer, monkeypatch):
        monkeypatch.setenv("SUPPLYHUB_ALLOW_SELF_ADMIN", "true")
        users.make_user_admin(buyer.identity, ip_address="10.0.0.1")
        assert users.get_user_details(buyer["id"])["role"] == "admin"
        entries = get_audit_trail("self_admin_elevation")
        assert entries[0]["actor"] == buyer["id"]
        assert entries[0]["ip_address"] == "10.0.0.1"


class TestAdminUserManagement:

    def test_non_admin_cannot_list(self, buyer):
        with pytest.raises(ServiceError) as exc:
            users.get_all_users(buyer.identity)
        assert _code(exc) == "FORBIDDEN"

    def test_pending_users(self, admin, make_user):
        pending = make_user("buyer", status="pending")
        ids = [u["id"] for u in users.get_pending_users(admin.identity)]
        assert ids == [pending["id"]]

    def test_approve_and_reject(self, admin, make_user):
        u = make_user("vendor", status="pending")
        users.approve_user(admin.identity, u["id"])
        assert users.get_user_details(u["id"])["status"] == "approved"
        users.reject_user(admin.identity, u["id"])
        assert users.get_user_details(u["id"])["status"] == "rejected"

    def test_verify_and_toggle(self, admin, make_user):
        u = make_user("vendor", verified=False)
        users.verify_user(admin.identity, u["id"])
        assert users.get_user_details(u["id"])["verified"] is True
        assert users.toggle_user_verified(admin.identity, u["id"])["verified"] is False

    def test_unknown_user_not_found(self, admin):
        with pytest.raises(ServiceError) as exc:
            users.approve_user(admin.identity, "missing")
        assert _code(exc) == "NOT_FOUND"

    def test_delete_user(self, admin, buyer):
        users.delete_user(admin.identity, buyer["id"])
        assert users.get_user_details(buyer["id"]) is None

    def test_admin_cannot_delete_self(self, admin):
        with pytest.raises(ValidationError):
            users.delete_user(admin.identity, admin["id"])

    def test_assign_categories(self, admin, make_user, category, other_category):
        v = make_user("vendor")
        users.assign_categories_to_vendor(admin.identity, v["id"], [category["id"], other_category["id"]])
        assert users.get_user_details(v["id"])["categories"] == [category["id"], other_category["id"]]

    def test_assign_unknown_category(self, admin, make_user):
        v = make_user("vendor")
        with pytest.raises(ServiceError) as exc:
            users.assign_categories_to_vendor(admin.identity, v["id"], ["nope"])
        assert _code(exc) == "NOT_FOUND"

    def test_assign_to_buyer_rejected(self, admin, buyer, category):
        with pytest.raises(ValidationError):
            users.assign_categories_to_vendor(admin.identity, buyer["id"], [category["id"]])
