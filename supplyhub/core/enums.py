"""Closed value sets stored as text columns."""

from enum import Enum

from supplyhub.core.errors import ValidationError


class Role(str, Enum):
    ADMIN = "admin"
    VENDOR = "vendor"
    BUYER = "buyer"


class UserStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RFQStatus(str, Enum):
    PENDING = "pending"
    QUOTED = "quoted"
    COMPLETED = "completed"


class OrderStatus(str, Enum):
    ORDERED = "ordered"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class QuotationType(str, Enum):
    PRE_FILLED = "pre-filled"
    ON_DEMAND = "on-demand"


class PaymentTerms(str, Enum):
    CASH = "cash"
    CREDIT = "credit"


class QuotationPreference(str, Enum):
    REGISTERED_HOSPITALS_ONLY = "registered_hospitals_only"
    REGISTERED_ALL = "registered_all"
    ALL_INCLUDING_GUESTS = "all_including_guests"


class NotificationType(str, Enum):
    QUOTATION_SENT = "quotation_sent"
    RFQ_RECEIVED = "rfq_received"
    VENDOR_APPROVED = "vendor_approved"
    BUYER_APPROVED = "buyer_approved"
    RFQ_NEEDS_QUOTATION = "rfq_needs_quotation"
    QUOTATION_CHOSEN = "quotation_chosen"
    ORDER_UPDATE = "order_update"


def parse_enum(enum_cls, value, field: str):
    """Coerce a raw string into enum_cls or raise ValidationError naming the field."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field}: {value!r} (expected one of {allowed})") from None
