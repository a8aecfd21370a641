"""HandleGatewayWebhook Use Case

Verifies inbound gateway events and routes them. A verified event is
acknowledged unless confirming it failed for a transient reason (gateway
unreachable, account busy); those are answered with an error so the
gateway redelivers the event.
"""

import logging
from typing import Optional
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import PaymentGateway, WebhookSignatureError, GatewayEvent
from src.app.repositories.payment_event_log_repository import PaymentEventLogRepository
from src.domain.payment_event_log import PaymentEventLog, EventOutcome
from .confirm_payment import ConfirmPayment
from .dtos import WebhookResultDTO

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"

# Confirmation errors the gateway should retry by redelivering the event
RETRYABLE_CONFIRM_ERRORS = {ErrorCode.EXTERNAL_SERVICE_ERROR, ErrorCode.CONCURRENT_UPDATE}


class HandleGatewayWebhook:
    """
    Use Case: Process a gateway webhook

    received -> verified -> dispatched -> acknowledged

    - Signature failure: rejected, no side effects
    - payment_intent.succeeded: dispatched to ConfirmPayment (idempotent);
      transient confirmation errors are logged and returned as errors,
      business failures (unknown intent, unpaid) are logged and acknowledged
    - payment_intent.payment_failed: logged only, transaction untouched
    - anything else: acknowledged and ignored
    """

    def __init__(
        self,
        uow: UnitOfWork,
        gateway: PaymentGateway,
        event_log_repo: PaymentEventLogRepository,
        confirm_payment: ConfirmPayment,
    ):
        self.uow = uow
        self.gateway = gateway
        self.event_log_repo = event_log_repo
        self.confirm_payment = confirm_payment

    async def execute(self, payload: bytes, signature: Optional[str]) -> Result[WebhookResultDTO]:
        try:
            event = self.gateway.construct_event(payload, signature)
        except WebhookSignatureError as e:
            logger.warning(f"Rejected webhook: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.WEBHOOK_SIGNATURE_INVALID,
                    message="Webhook signature verification failed",
                    reason=str(e),
                )
            )

        payment_intent_id = event.data_object.get("id")
        retry_error = None

        if event.type == PAYMENT_SUCCEEDED:
            outcome, message, retry_error = await self._on_payment_succeeded(event, payment_intent_id)
        elif event.type == PAYMENT_FAILED:
            outcome, message = self._on_payment_failed(event, payment_intent_id)
        else:
            outcome, message = EventOutcome.IGNORED, None
            logger.info(f"Unhandled webhook event type {event.type} ({event.id}); ignoring")

        await self.event_log_repo.create(
            PaymentEventLog(
                event_id=event.id,
                event_type=event.type,
                payment_intent_id=payment_intent_id,
                outcome=outcome,
                message=message,
            )
        )
        await self.uow.commit()

        if retry_error:
            logger.warning(f"Webhook {event.id} not acknowledged, gateway will redeliver: {retry_error.code}")
            return Return.err(retry_error)

        return Return.ok(
            WebhookResultDTO(
                received=True,
                event_id=event.id,
                event_type=event.type,
                outcome=outcome.value,
            )
        )

    async def _on_payment_succeeded(self, event: GatewayEvent, payment_intent_id: Optional[str]):
        if not payment_intent_id:
            logger.warning(f"Webhook {event.id} has no payment intent id")
            return EventOutcome.DISPATCH_FAILED, "missing payment intent id", None

        result = await self.confirm_payment.execute(payment_intent_id)
        if result.is_err():
            logger.error(
                f"Webhook {event.id} confirmation failed for {payment_intent_id}: "
                f"{result.error.code} {result.error.message}"
            )
            retry_error = None
            if result.error.code in RETRYABLE_CONFIRM_ERRORS:
                retry_error = Error(
                    code=result.error.code,
                    message="Webhook could not be processed, retry later",
                    reason=result.error.reason,
                )
            return (
                EventOutcome.DISPATCH_FAILED,
                f"{result.error.code}: {result.error.message}",
                retry_error,
            )

        confirmed = result.value
        logger.info(
            f"Webhook {event.id} confirmed transaction {confirmed.transaction_id} "
            f"(already_confirmed={confirmed.already_confirmed})"
        )
        return (
            EventOutcome.DISPATCHED,
            f"transaction={confirmed.transaction_id} credits_added={confirmed.credits_added}",
            None,
        )

    def _on_payment_failed(self, event: GatewayEvent, payment_intent_id: Optional[str]):
        error = event.data_object.get("last_payment_error") or {}
        message = error.get("message") or "Payment failed"
        logger.warning(f"Payment failed for intent {payment_intent_id}: {message}")
        return EventOutcome.FAILURE_LOGGED, message
