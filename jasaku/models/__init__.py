"""Database models."""

from jasaku.models.admin import AuditLog
from jasaku.models.booking import Booking
from jasaku.models.payment import Payment, Refund

__all__ = [
    # Booking
    "Booking",
    # Payment
    "Payment",
    "Refund",
    # Admin
    "AuditLog",
]
