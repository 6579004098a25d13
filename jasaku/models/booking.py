"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jasaku.database import Base
from jasaku.domain.booking_state import BookingStatus

if TYPE_CHECKING:
    from jasaku.models.payment import Payment, Refund


def new_id() -> str:
    """Dash-free opaque id, safe inside correlation identifiers."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(UTC)


class Booking(Base):
    """A scheduled engagement between a customer and a provider."""

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)

    # Owned by the catalog and identity collaborators
    service_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    review_id: Mapped[str | None] = mapped_column(String(64))

    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)  # smallest currency unit

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, native_enum=False, length=20),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    payment: Mapped["Payment | None"] = relationship(
        "Payment", back_populates="booking", uselist=False
    )
    refunds: Mapped[list["Refund"]] = relationship("Refund", back_populates="booking")
