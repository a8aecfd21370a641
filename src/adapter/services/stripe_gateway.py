"""Stripe implementation of PaymentGateway

All Stripe API calls go through this adapter. Stripe errors (including
connection failures and timeouts) surface as PaymentGatewayError; nothing
here retries, retries belong to the caller.
"""

import logging
from typing import Any, Dict, Optional
import stripe

from src.app.services.payment_gateway import (
    PaymentGateway,
    PaymentGatewayError,
    WebhookSignatureError,
    GatewayPaymentIntent,
    GatewayRefund,
    GatewayEvent,
)

logger = logging.getLogger(__name__)

REFUND_REASONS = {
    "client_requested": "requested_by_customer",
    "duplicate": "duplicate",
    "fraudulent": "fraudulent",
}


class StripePaymentGateway(PaymentGateway):
    """
    Stripe-backed payment gateway

    The secret key is passed per request instead of being set globally on
    the stripe module, so credentials stay inside this object.
    """

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        statement_descriptor: Optional[str] = None,
        webhook_tolerance: int = 300,
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.statement_descriptor = statement_descriptor
        self.webhook_tolerance = webhook_tolerance

    def _wrap(self, operation: str, error: stripe.StripeError) -> PaymentGatewayError:
        logger.error(f"Stripe {operation} failed: {type(error).__name__}: {error.user_message or error}")
        return PaymentGatewayError(
            message=f"Payment gateway error during {operation}",
            code=getattr(error, "code", None),
        )

    async def ensure_customer(
        self,
        existing_customer_id: Optional[str],
        email: Optional[str] = None,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        if existing_customer_id:
            try:
                customer = await stripe.Customer.retrieve_async(
                    existing_customer_id, api_key=self.secret_key
                )
                if not getattr(customer, "deleted", False):
                    return customer.id
                logger.warning(f"Stripe customer {existing_customer_id} was deleted, creating new")
            except stripe.InvalidRequestError:
                logger.warning(f"Invalid Stripe customer id {existing_customer_id}, creating new")
            except stripe.StripeError as e:
                raise self._wrap("customer retrieval", e) from e

        params: Dict[str, Any] = {"metadata": metadata or {}}
        if email:
            params["email"] = email
        if name:
            params["name"] = name

        try:
            customer = await stripe.Customer.create_async(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            raise self._wrap("customer creation", e) from e

        logger.info(f"Stripe customer created: {customer.id}")
        return customer.id

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
        params: Dict[str, Any] = {
            "amount": amount,
            "currency": currency.lower(),
            "customer": customer_id,
            "metadata": metadata,
            "description": description or "Consultation payment",
            "automatic_payment_methods": {"enabled": True},
        }
        if self.statement_descriptor:
            params["statement_descriptor_suffix"] = self.statement_descriptor[:22]
        if payment_method_id:
            params["payment_method"] = payment_method_id
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        try:
            intent = await stripe.PaymentIntent.create_async(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            raise self._wrap("payment intent creation", e) from e

        return self._to_intent(intent)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> GatewayPaymentIntent:
        try:
            intent = await stripe.PaymentIntent.retrieve_async(
                payment_intent_id,
                api_key=self.secret_key,
                expand=["latest_charge"],
            )
        except stripe.StripeError as e:
            raise self._wrap("payment intent retrieval", e) from e

        return self._to_intent(intent)

    async def create_refund(
        self,
        payment_intent_id: str,
        amount: int,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> GatewayRefund:
        params: Dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "amount": amount,
            "metadata": metadata or {},
        }
        stripe_reason = REFUND_REASONS.get(reason or "")
        if stripe_reason:
            params["reason"] = stripe_reason
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        try:
            refund = await stripe.Refund.create_async(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            raise self._wrap("refund creation", e) from e

        return GatewayRefund(id=refund.id, amount=refund.amount, status=refund.status)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        if not signature:
            raise WebhookSignatureError("Missing signature header")
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook secret not configured")

        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                self.webhook_secret,
                tolerance=self.webhook_tolerance,
                api_key=self.secret_key,
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(f"Invalid signature: {e}") from e
        except ValueError as e:
            raise WebhookSignatureError(f"Invalid payload: {e}") from e

        try:
            data = event.to_dict()
            return GatewayEvent(
                id=data["id"],
                type=data["type"],
                data_object=data["data"]["object"],
            )
        except (KeyError, TypeError) as e:
            raise WebhookSignatureError(f"Malformed event payload: {e}") from e

    def _to_intent(self, intent: Any) -> GatewayPaymentIntent:
        charge_id = None
        receipt_url = None
        latest_charge = getattr(intent, "latest_charge", None)
        if isinstance(latest_charge, str):
            charge_id = latest_charge
        elif latest_charge is not None:
            charge_id = latest_charge.id
            receipt_url = getattr(latest_charge, "receipt_url", None)

        last_error = getattr(intent, "last_payment_error", None)
        failure_message = getattr(last_error, "message", None) if last_error else None

        customer = getattr(intent, "customer", None)
        if customer is not None and not isinstance(customer, str):
            customer = customer.id

        return GatewayPaymentIntent(
            id=intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            client_secret=getattr(intent, "client_secret", None),
            customer_id=customer,
            charge_id=charge_id,
            receipt_url=receipt_url,
            failure_message=failure_message,
        )
