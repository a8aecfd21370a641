"""Gateway webhook endpoint

No caller identity here: the request is authenticated by its signature.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.error import ClientError
from src.api.routes.payments import build_confirm_payment
from src.app.services.payment_gateway import PaymentGateway
from src.app.use_cases.billing import HandleGatewayWebhook
from src.app.use_cases.billing.dtos import WebhookResultDTO
from src.adapter.repositories.payment_event_log_repository import SqlAlchemyPaymentEventLogRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_session, get_payment_gateway

router = APIRouter(prefix="/billing/webhooks", tags=["Webhooks"])


@router.post("/stripe", response_model=WebhookResultDTO)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Receive a Stripe event.

    The raw body is verified against the `Stripe-Signature` header before
    anything in it is read.

    **Returns:**
    - 200: `{"received": true, ...}` for verified events, including ignored
      types, confirmations that were already applied and confirmations
      that failed for business reasons
    - 400: Signature missing or invalid
    - 409: Client account busy during confirmation; Stripe redelivers
    - 503: Payment gateway unreachable during confirmation; Stripe redelivers
    """
    payload = await request.body()

    use_case = HandleGatewayWebhook(
        uow=SqlAlchemyUnitOfWork(session),
        gateway=gateway,
        event_log_repo=SqlAlchemyPaymentEventLogRepository(session),
        confirm_payment=build_confirm_payment(session, gateway),
    )
    result = await use_case.execute(payload, stripe_signature)

    if result.is_err():
        raise ClientError(result.error)

    return result.value
