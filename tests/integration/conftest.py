import asyncio
import json
import pytest
import pytest_asyncio
from datetime import datetime
from typing import Dict, Optional
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import src.domain  # noqa: F401  registers tables on SQLModel.metadata
from src.app.services.payment_gateway import (
    PaymentGateway,
    PaymentGatewayError,
    WebhookSignatureError,
    GatewayPaymentIntent,
    GatewayRefund,
    GatewayEvent,
)
from src.depends import get_session, get_payment_gateway
from src.domain.consultation_package import ConsultationPackage
from src.domain.credit_account import ClientCreditAccount

VALID_SIGNATURE = "t=1,v1=valid"


class FakePaymentGateway(PaymentGateway):
    """In-memory gateway; tests move intents through their states explicitly"""

    def __init__(self):
        self.intents: Dict[str, GatewayPaymentIntent] = {}
        self.refunds = []
        self.intent_keys = []
        self.refund_keys = []
        self.fail_refunds = False
        self.unavailable = False
        self._sequence = 0

    def _next(self, prefix: str) -> str:
        self._sequence += 1
        return f"{prefix}_fake_{self._sequence}"

    def succeed(self, payment_intent_id: str) -> None:
        self.intents[payment_intent_id] = self.intents[payment_intent_id].model_copy(
            update={"status": "succeeded", "charge_id": f"ch_for_{payment_intent_id}"}
        )

    def cancel(self, payment_intent_id: str) -> None:
        self.intents[payment_intent_id] = self.intents[payment_intent_id].model_copy(
            update={"status": "canceled"}
        )

    async def ensure_customer(self, existing_customer_id, email=None, name=None, metadata=None) -> str:
        return existing_customer_id or self._next("cus")

    async def create_payment_intent(
        self, amount, currency, customer_id, metadata, description=None,
        payment_method_id=None, idempotency_key=None,
    ) -> GatewayPaymentIntent:
        self.intent_keys.append(idempotency_key)
        intent_id = self._next("pi")
        intent = GatewayPaymentIntent(
            id=intent_id,
            status="requires_payment_method",
            amount=amount,
            currency=currency.lower(),
            client_secret=f"{intent_id}_secret",
            customer_id=customer_id,
        )
        self.intents[intent_id] = intent
        return intent

    async def retrieve_payment_intent(self, payment_intent_id: str) -> GatewayPaymentIntent:
        if self.unavailable:
            raise PaymentGatewayError("Connection to gateway timed out")
        if payment_intent_id not in self.intents:
            raise PaymentGatewayError(f"No such payment_intent: {payment_intent_id}")
        return self.intents[payment_intent_id]

    async def create_refund(
        self, payment_intent_id, amount, reason=None, metadata=None, idempotency_key=None,
    ) -> GatewayRefund:
        # Yield so concurrent callers interleave around the network call
        await asyncio.sleep(0)
        self.refund_keys.append(idempotency_key)
        if self.fail_refunds:
            raise PaymentGatewayError("Refund declined")
        refund = GatewayRefund(id=self._next("re"), amount=amount, status="succeeded")
        self.refunds.append((payment_intent_id, amount, reason))
        return refund

    def construct_event(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        if signature != VALID_SIGNATURE:
            raise WebhookSignatureError("Invalid signature")
        event = json.loads(payload)
        return GatewayEvent(id=event["id"], type=event["type"], data_object=event["data"]["object"])


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """File-backed SQLite so separate sessions use separate connections"""
    test_db_url = f"sqlite+aiosqlite:///{tmp_path / 'billing_test.db'}"

    engine = create_async_engine(test_db_url, echo=False, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a new database session for each test"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def seed(db_session):
    """Insert accounts and packages directly"""

    class Seed:
        async def account(self, client_id="client_1", tenant_id="tenant_1", **overrides):
            values = dict(
                tenant_id=tenant_id,
                client_id=client_id,
                email=f"{client_id}@example.com",
                free_trial_eligible=True,
                free_trial_used=False,
                created_at=datetime.utcnow(),
                updated_at=datetime.utcnow(),
            )
            values.update(overrides)
            account = ClientCreditAccount(**values)
            db_session.add(account)
            await db_session.commit()
            return account

        async def package(self, package_id="pkg_5", tenant_id="tenant_1", credits_total=5, **overrides):
            values = dict(
                package_id=package_id,
                tenant_id=tenant_id,
                name=f"{credits_total} sessions",
                credits_total=credits_total,
                price_amount=10000,
                expires_after_days=90,
            )
            values.update(overrides)
            package = ConsultationPackage(**values)
            db_session.add(package)
            await db_session.commit()
            return package

    return Seed()


@pytest_asyncio.fixture
async def client(db_session, gateway):
    """Create test client with database session and gateway overrides"""
    from src.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig)

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def client_headers():
    return {"X-Tenant-Id": "tenant_1", "X-User-Id": "user_1", "X-Client-Id": "client_1"}


@pytest.fixture
def admin_headers():
    return {"X-Tenant-Id": "tenant_1", "X-User-Id": "admin_1", "X-User-Roles": "admin"}
