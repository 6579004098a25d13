"""Payment-related database models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jasaku.database import Base
from jasaku.domain.payment_state import PaymentStatus
from jasaku.models.booking import new_id, utcnow

if TYPE_CHECKING:
    from jasaku.models.booking import Booking


class Payment(Base):
    """Payment for exactly one booking."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    booking_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("bookings.id"), unique=True, nullable=False
    )

    # Amount
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # smallest currency unit

    # Method label, e.g. "BCA Virtual Account", "GoPay", "QRIS"
    payment_method: Mapped[str | None] = mapped_column(String(100))

    # Gateway
    external_id: Mapped[str | None] = mapped_column(String(200), unique=True)  # JASAKU-{booking}-{payment}
    gateway_transaction_id: Mapped[str | None] = mapped_column(String(100), unique=True)
    gateway_response: Mapped[dict | None] = mapped_column(JSON)

    # Status
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False, length=20),
        default=PaymentStatus.PENDING,
        nullable=False,
    )

    # Timestamps
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="payment")
    refunds: Mapped[list["Refund"]] = relationship("Refund", back_populates="payment")


class Refund(Base):
    """Refund issued against a payment, kept for audit."""

    __tablename__ = "refunds"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    booking_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("bookings.id"), nullable=False, index=True
    )
    payment_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("payments.id"), nullable=False, index=True
    )

    # Amount
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)

    # Processing
    processed_by: Mapped[str] = mapped_column(String(64), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="refunds")
    payment: Mapped["Payment"] = relationship("Payment", back_populates="refunds")
