"""Refund workflow."""

import pytest
from sqlalchemy import select

from jasaku.core.exceptions import AuthorizationError, InvalidRefundAmount, NotFoundError, RefundNotAllowed
from jasaku.domain.actors import Actor, ActorRole
from jasaku.domain.booking_state import BookingStatus
from jasaku.domain.events import BookingStateChanged
from jasaku.domain.payment_state import PaymentStatus
from jasaku.models.payment import Refund
from tests.conftest import ADMIN_ID, CUSTOMER_ID

ADMIN = Actor(id=ADMIN_ID, role=ActorRole.ADMIN)


@pytest.fixture
def paid_booking(create_booking, create_payment):
    async def _create(booking_status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.COMPLETED):
        booking = await create_booking(status=booking_status, total_amount=100000)
        booking_id = booking.id
        payment = await create_payment(booking, status=payment_status, amount=100000)
        return booking_id, payment.id

    return _create


@pytest.mark.asyncio
async def test_partial_refund_cancels_booking(db, refunds, paid_booking, published):
    booking_id, payment_id = await paid_booking()

    outcome = await refunds.refund(db, payment_id, 50000, "Provider no-show", ADMIN)

    assert outcome.payment.status == PaymentStatus.REFUNDED
    assert outcome.booking.status == BookingStatus.CANCELLED
    assert outcome.refund.amount == 50000
    assert outcome.refund.processed_by == ADMIN_ID
    assert outcome.refunded_at is not None

    stored = (await db.execute(select(Refund).where(Refund.payment_id == payment_id))).scalars().all()
    assert [r.amount for r in stored] == [50000]

    event = published[-1]
    assert isinstance(event, BookingStateChanged)
    assert event.cause == "refund"
    assert (event.from_status, event.to_status) == (BookingStatus.CONFIRMED, BookingStatus.CANCELLED)

    with pytest.raises(RefundNotAllowed):
        await refunds.refund(db, payment_id, 50000, "Again", ADMIN)


@pytest.mark.asyncio
async def test_completed_booking_can_be_refunded(db, refunds, paid_booking):
    _, payment_id = await paid_booking(booking_status=BookingStatus.COMPLETED)

    outcome = await refunds.refund(db, payment_id, 100000, "Service not delivered", ADMIN)

    assert outcome.booking.status == BookingStatus.CANCELLED
    assert outcome.payment.status == PaymentStatus.REFUNDED


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -1, 100001])
async def test_invalid_amount(db, refunds, paid_booking, amount):
    _, payment_id = await paid_booking()

    with pytest.raises(InvalidRefundAmount):
        await refunds.refund(db, payment_id, amount, "Typo", ADMIN)


@pytest.mark.asyncio
async def test_pending_payment_is_not_refundable(db, refunds, paid_booking):
    _, payment_id = await paid_booking(payment_status=PaymentStatus.PENDING)

    with pytest.raises(RefundNotAllowed):
        await refunds.refund(db, payment_id, 100, "Early", ADMIN)


@pytest.mark.asyncio
async def test_only_admin_may_refund(db, refunds, paid_booking):
    _, payment_id = await paid_booking()

    with pytest.raises(AuthorizationError):
        await refunds.refund(db, payment_id, 100, "Please", Actor(id=CUSTOMER_ID, role=ActorRole.CUSTOMER))


@pytest.mark.asyncio
async def test_missing_payment(db, refunds):
    with pytest.raises(NotFoundError):
        await refunds.refund(db, "nope", 100, "Ghost", ADMIN)
