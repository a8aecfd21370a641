from decimal import Decimal
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.adapter.services.stripe_gateway import StripePaymentGateway
from src.app.services.payment_gateway import PaymentGateway
from src.app.use_cases.billing.fees import FeePolicy

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


def build_payment_gateway(config=ApplicationConfig) -> PaymentGateway:
    return StripePaymentGateway(
        secret_key=config.STRIPE_SECRET_KEY,
        webhook_secret=config.STRIPE_WEBHOOK_SECRET,
        statement_descriptor=config.STATEMENT_DESCRIPTOR,
        webhook_tolerance=config.WEBHOOK_TOLERANCE_SECONDS,
    )


_payment_gateway = None


def get_payment_gateway() -> PaymentGateway:
    global _payment_gateway
    if _payment_gateway is None:
        _payment_gateway = build_payment_gateway()
    return _payment_gateway


def get_fee_policy(config=ApplicationConfig) -> FeePolicy:
    return FeePolicy(
        platform_fee_percentage=Decimal(str(config.PLATFORM_FEE_PERCENTAGE)),
        gateway_fee_percentage=Decimal(str(config.GATEWAY_FEE_PERCENTAGE)),
        gateway_fixed_fee=int(config.GATEWAY_FIXED_FEE),
    )
