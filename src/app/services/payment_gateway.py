"""Payment Gateway Interface

Boundary to the external payment processor. Implementations are the only
components that hold gateway credentials.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from pydantic import BaseModel


class PaymentGatewayError(Exception):
    """Gateway unreachable, timed out, or returned an unexpected error"""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class WebhookSignatureError(Exception):
    """Webhook payload failed signature verification or could not be parsed"""


class GatewayPaymentIntent(BaseModel):
    id: str
    status: str
    amount: int
    currency: str
    client_secret: Optional[str] = None
    customer_id: Optional[str] = None
    charge_id: Optional[str] = None
    receipt_url: Optional[str] = None
    failure_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @property
    def canceled(self) -> bool:
        return self.status == "canceled"


class GatewayRefund(BaseModel):
    id: str
    amount: int
    status: str


class GatewayEvent(BaseModel):
    """Verified webhook event"""
    id: str
    type: str
    data_object: Dict[str, Any]


class PaymentGateway(ABC):

    @abstractmethod
    async def ensure_customer(
        self,
        existing_customer_id: Optional[str],
        email: Optional[str] = None,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Return a valid gateway customer id

        Reuses existing_customer_id when the gateway still knows it,
        otherwise creates a new customer.
        """
        pass

    @abstractmethod
    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        customer_id: str,
        metadata: Dict[str, str],
        description: Optional[str] = None,
        payment_method_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> GatewayPaymentIntent:
        pass

    @abstractmethod
    async def retrieve_payment_intent(self, payment_intent_id: str) -> GatewayPaymentIntent:
        pass

    @abstractmethod
    async def create_refund(
        self,
        payment_intent_id: str,
        amount: int,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> GatewayRefund:
        pass

    @abstractmethod
    def construct_event(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        """
        Verify the webhook signature over the raw payload and parse the event

        Raises:
            WebhookSignatureError: On missing/invalid signature or malformed payload
        """
        pass
