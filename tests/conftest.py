"""Shared fixtures: a throwaway SQLite database per test and an app wired to it."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import jasaku.models  # noqa: F401
from jasaku.api.deps import (
    get_db,
    get_reconciliation_engine,
    get_refund_service,
    get_webhook_gateway,
)
from jasaku.core.locks import BookingLockRegistry
from jasaku.core.security import create_access_token
from jasaku.database import Base
from jasaku.domain.booking_state import BookingStatus
from jasaku.domain.payment_state import PaymentStatus
from jasaku.main import app
from jasaku.models.booking import Booking
from jasaku.models.payment import Payment
from jasaku.services.notification_service import NotificationService
from jasaku.services.reconciliation_service import ReconciliationEngine
from jasaku.services.refund_service import RefundService
from jasaku.services.webhook_service import WebhookIngestionGateway

CALLBACK_TOKEN = "test-callback-token"
CUSTOMER_ID = "cust1"
PROVIDER_ID = "prov1"
ADMIN_ID = "admin1"


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def published() -> list:
    """Events delivered to the test notifier, in order."""
    return []


@pytest.fixture
def notifier(published) -> NotificationService:
    service = NotificationService()

    @service.subscribe
    async def record(event) -> None:
        published.append(event)

    return service


@pytest.fixture
def engine(notifier) -> ReconciliationEngine:
    return ReconciliationEngine(
        locks=BookingLockRegistry(timeout=5),
        notifier=notifier,
        correlation_prefix="JASAKU",
    )


@pytest.fixture
def refunds(engine) -> RefundService:
    return RefundService(engine=engine)


@pytest.fixture
def gateway(engine, notifier) -> WebhookIngestionGateway:
    return WebhookIngestionGateway(
        engine=engine,
        callback_token=CALLBACK_TOKEN,
        correlation_prefix="JASAKU",
        notifier=notifier,
    )


@pytest.fixture
def create_booking(db):
    async def _create(
        booking_id: str | None = None,
        status: BookingStatus = BookingStatus.PENDING,
        total_amount: int = 100000,
        customer_id: str = CUSTOMER_ID,
        provider_id: str = PROVIDER_ID,
    ) -> Booking:
        booking = Booking(
            service_id="svc1",
            customer_id=customer_id,
            provider_id=provider_id,
            scheduled_at=datetime.now(UTC) + timedelta(days=3),
            total_amount=total_amount,
            status=status,
        )
        if booking_id:
            booking.id = booking_id
        db.add(booking)
        await db.commit()
        return booking

    return _create


@pytest.fixture
def create_payment(db):
    async def _create(
        booking: Booking,
        payment_id: str | None = None,
        status: PaymentStatus = PaymentStatus.PENDING,
        amount: int | None = None,
    ) -> Payment:
        payment = Payment(
            booking_id=booking.id,
            amount=amount if amount is not None else booking.total_amount,
            status=status,
        )
        if payment_id:
            payment.id = payment_id
        db.add(payment)
        await db.flush()
        payment.external_id = f"JASAKU-{booking.id}-{payment.id}"
        await db.commit()
        return payment

    return _create


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = CUSTOMER_ID, role: str = "SEEKER") -> dict[str, str]:
        token = create_access_token({"sub": user_id, "role": role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(session_factory, engine, refunds, gateway) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
            finally:
                if session.in_transaction():
                    await session.rollback()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reconciliation_engine] = lambda: engine
    app.dependency_overrides[get_refund_service] = lambda: refunds
    app.dependency_overrides[get_webhook_gateway] = lambda: gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
