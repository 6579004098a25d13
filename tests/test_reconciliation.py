"""Reconciliation engine against a real database."""

import asyncio
import json
from datetime import UTC, datetime

import pytest
from sqlalchemy import func, select, update

from jasaku.core.exceptions import (
    AuthorizationError,
    Conflict,
    InconsistentJointState,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from jasaku.domain.actors import Actor, ActorRole
from jasaku.domain.booking_state import BookingStatus
from jasaku.domain.events import BookingStateChanged
from jasaku.domain.payment_state import PaymentStatus
from jasaku.domain.transitions import TransitionRequest, is_valid_joint_state
from jasaku.models.admin import AuditLog
from jasaku.models.booking import Booking
from jasaku.services.webhook_service import WebhookIngestionGateway
from tests.conftest import CALLBACK_TOKEN, CUSTOMER_ID, PROVIDER_ID

CUSTOMER = Actor(id=CUSTOMER_ID, role=ActorRole.CUSTOMER)
PROVIDER = Actor(id=PROVIDER_ID, role=ActorRole.PROVIDER)
ADMIN = Actor(id="admin1", role=ActorRole.ADMIN)


async def audit_count(db) -> int:
    return (await db.execute(select(func.count()).select_from(AuditLog))).scalar_one()


def cancel_by(actor, booking_id):
    return TransitionRequest(booking_id=booking_id, actor=actor, booking_status=BookingStatus.CANCELLED)


@pytest.mark.asyncio
async def test_confirm_booking_commits_audits_and_publishes(db, engine, create_booking, published):
    booking_id = (await create_booking()).id

    result = await engine.apply(
        db,
        TransitionRequest(booking_id=booking_id, actor=PROVIDER, booking_status=BookingStatus.CONFIRMED),
    )

    assert result.applied
    assert result.booking.status == BookingStatus.CONFIRMED
    assert await audit_count(db) == 1
    assert len(published) == 1
    event = published[0]
    assert isinstance(event, BookingStateChanged)
    assert event.from_status == BookingStatus.PENDING
    assert event.to_status == BookingStatus.CONFIRMED
    assert event.actor_role == ActorRole.PROVIDER
    assert event.to_dict()["event"] == "BookingStateChanged"


@pytest.mark.asyncio
async def test_cancel_voids_pending_payment(db, engine, create_booking, create_payment):
    booking = await create_booking()
    payment_id = (await create_payment(booking)).id

    result = await engine.apply(db, cancel_by(CUSTOMER, booking.id))

    assert result.booking.status == BookingStatus.CANCELLED
    assert result.payment.id == payment_id
    assert result.payment.status == PaymentStatus.CANCELLED
    assert result.event.payment_to == PaymentStatus.CANCELLED


@pytest.mark.asyncio
async def test_completion_records_completed_at(db, engine, create_booking):
    booking_id = (await create_booking(status=BookingStatus.IN_PROGRESS)).id
    finished = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    result = await engine.apply(
        db,
        TransitionRequest(
            booking_id=booking_id,
            actor=PROVIDER,
            booking_status=BookingStatus.COMPLETED,
            completed_at=finished,
        ),
    )

    assert result.booking.completed_at.replace(tzinfo=UTC) == finished


@pytest.mark.asyncio
async def test_rejection_writes_nothing(db, engine, create_booking, create_payment, published):
    booking = await create_booking(status=BookingStatus.CONFIRMED)
    booking_id = booking.id
    await create_payment(booking, status=PaymentStatus.COMPLETED)

    with pytest.raises(InconsistentJointState):
        await engine.apply(db, cancel_by(CUSTOMER, booking_id))

    current, payment = await engine.load_pair(db, booking_id)
    assert current.status == BookingStatus.CONFIRMED
    assert payment.status == PaymentStatus.COMPLETED
    assert await audit_count(db) == 0
    assert published == []


@pytest.mark.asyncio
async def test_invalid_and_unauthorized_requests(db, engine, create_booking):
    booking_id = (await create_booking()).id

    with pytest.raises(InvalidTransition):
        await engine.apply(
            db,
            TransitionRequest(booking_id=booking_id, actor=PROVIDER, booking_status=BookingStatus.COMPLETED),
        )
    with pytest.raises(AuthorizationError):
        await engine.apply(db, cancel_by(Actor(id="intruder", role=ActorRole.CUSTOMER), booking_id))


@pytest.mark.asyncio
async def test_missing_booking_or_foreign_payment(db, engine, create_booking, create_payment):
    with pytest.raises(NotFoundError):
        await engine.apply(db, cancel_by(ADMIN, "nope"))

    booking_id = (await create_booking()).id
    other = await create_booking()
    other_payment_id = (await create_payment(other)).id
    with pytest.raises(NotFoundError):
        await engine.apply(
            db,
            TransitionRequest(
                booking_id=booking_id,
                payment_id=other_payment_id,
                actor=Actor.gateway(),
                booking_status=BookingStatus.CONFIRMED,
                payment_status=PaymentStatus.COMPLETED,
            ),
        )


@pytest.mark.asyncio
async def test_noop_does_not_write_or_publish(db, engine, create_booking, published):
    booking_id = (await create_booking(status=BookingStatus.CONFIRMED)).id

    result = await engine.apply(
        db,
        TransitionRequest(booking_id=booking_id, actor=CUSTOMER, booking_status=BookingStatus.CONFIRMED),
    )

    assert not result.applied
    assert result.event is None
    assert published == []
    assert await audit_count(db) == 0


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_undo_change(db, engine, notifier, create_booking):
    @notifier.subscribe
    async def explode(event) -> None:
        raise RuntimeError("mailer down")

    booking_id = (await create_booking()).id
    result = await engine.apply(db, cancel_by(CUSTOMER, booking_id))

    assert result.applied
    current, _ = await engine.load_pair(db, booking_id)
    assert current.status == BookingStatus.CANCELLED


@pytest.mark.asyncio
async def test_stale_status_precondition_raises_conflict(db, engine, create_booking):
    booking_id = (await create_booking()).id

    async def someone_else_writes_first(current, payment) -> None:
        await db.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .values(status=BookingStatus.CONFIRMED)
            .execution_options(synchronize_session=False)
        )

    with pytest.raises(Conflict):
        await engine.apply(db, cancel_by(CUSTOMER, booking_id), guard=someone_else_writes_first)

    current, _ = await engine.load_pair(db, booking_id)
    assert current.status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_concurrent_cancel_and_paid_have_one_winner(
    session_factory, engine, notifier, create_booking, create_payment, published
):
    booking = await create_booking()
    booking_id = booking.id
    payment_id = (await create_payment(booking)).id
    gateway = WebhookIngestionGateway(engine, callback_token=CALLBACK_TOKEN, notifier=notifier)
    body = json.dumps(
        {
            "event": "invoice.paid",
            "data": {"id": "tx-race", "external_id": f"JASAKU-{booking_id}-{payment_id}"},
        }
    )

    async def cancel() -> str:
        async with session_factory() as db:
            try:
                await engine.apply(db, cancel_by(CUSTOMER, booking_id))
            except InconsistentJointState:
                return "refused"
            return "cancelled"

    async def paid() -> str:
        async with session_factory() as db:
            return (await gateway.ingest(db, body, CALLBACK_TOKEN))["message"]

    cancel_outcome, paid_outcome = await asyncio.gather(cancel(), paid())

    async with session_factory() as db:
        final_booking, final_payment = await engine.load_pair(db, booking_id)

    assert is_valid_joint_state(final_booking.status, final_payment.status)
    state_changes = [e for e in published if isinstance(e, BookingStateChanged)]
    assert len(state_changes) == 1

    if cancel_outcome == "cancelled":
        assert paid_outcome == "Event acknowledged but not applied"
        assert (final_booking.status, final_payment.status) == (
            BookingStatus.CANCELLED,
            PaymentStatus.CANCELLED,
        )
    else:
        assert paid_outcome == "Webhook processed successfully"
        assert (final_booking.status, final_payment.status) == (
            BookingStatus.CONFIRMED,
            PaymentStatus.COMPLETED,
        )


class TestOpenPayment:
    @pytest.mark.asyncio
    async def test_creates_pending_payment_with_correlation_id(self, db, engine, create_booking):
        booking_id = (await create_booking(total_amount=250000)).id

        payment = await engine.open_payment(db, booking_id, CUSTOMER, payment_method="BCA Virtual Account")

        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == 250000
        assert payment.external_id == f"JASAKU-{booking_id}-{payment.id}"
        assert await audit_count(db) == 1

    @pytest.mark.asyncio
    async def test_only_one_payment_per_booking(self, db, engine, create_booking):
        booking_id = (await create_booking()).id
        await engine.open_payment(db, booking_id, CUSTOMER)

        with pytest.raises(ValidationError):
            await engine.open_payment(db, booking_id, CUSTOMER)

    @pytest.mark.asyncio
    async def test_provider_cannot_open_payment(self, db, engine, create_booking):
        booking_id = (await create_booking()).id
        with pytest.raises(AuthorizationError):
            await engine.open_payment(db, booking_id, PROVIDER)

    @pytest.mark.asyncio
    async def test_cancelled_booking_is_not_payable(self, db, engine, create_booking):
        booking_id = (await create_booking(status=BookingStatus.CANCELLED)).id
        with pytest.raises(ValidationError):
            await engine.open_payment(db, booking_id, CUSTOMER)
