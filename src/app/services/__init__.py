from .unit_of_work import UnitOfWork
from .payment_gateway import (
    PaymentGateway,
    PaymentGatewayError,
    WebhookSignatureError,
    GatewayPaymentIntent,
    GatewayRefund,
    GatewayEvent,
)

__all__ = [
    "UnitOfWork",
    "PaymentGateway",
    "PaymentGatewayError",
    "WebhookSignatureError",
    "GatewayPaymentIntent",
    "GatewayRefund",
    "GatewayEvent",
]
