"""Payment API Routes

FastAPI routes for payment intents, confirmation, transaction lookup,
refunds, packages and consultant payouts.
"""

from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from libs.result import Error
from src.api.auth import AuthContext, get_auth_context, require_admin
from src.api.error import ClientError
from src.api.schemas.payment_request import (
    CreatePaymentIntentRequestSchema,
    RefundRequestSchema,
    SchedulePayoutRequestSchema,
)
from src.app.errors import ErrorCode
from src.app.services.payment_gateway import PaymentGateway
from src.app.use_cases.billing import (
    CreatePaymentIntent,
    ConfirmPayment,
    GetPaymentStatus,
    ListPaymentHistory,
    RefundPayment,
    ListAvailablePackages,
    SchedulePayouts,
    CalculateConsultantPayout,
    next_payout_date,
)
from src.app.use_cases.billing.dtos import (
    CreatePaymentIntentCommandDTO,
    PaymentIntentResponseDTO,
    ConfirmPaymentResponseDTO,
    TransactionDetailDTO,
    PaymentHistoryResponseDTO,
    RefundCommandDTO,
    RefundResponseDTO,
    PackageDTO,
    PayoutScheduleResponseDTO,
    PayoutCalculationDTO,
)
from src.adapter.repositories.billing_transaction_repository import SqlAlchemyBillingTransactionRepository
from src.adapter.repositories.credit_account_repository import SqlAlchemyCreditAccountRepository
from src.adapter.repositories.consultation_package_repository import SqlAlchemyConsultationPackageRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_session, get_payment_gateway, get_fee_policy

router = APIRouter(prefix="/billing/payments", tags=["Payments"])

ERROR_EXAMPLE = {
    "application/json": {
        "example": {
            "success": False,
            "error": {"code": "EXTERNAL_SERVICE_ERROR", "message": "Payment gateway unavailable"},
        }
    }
}


def build_confirm_payment(session: AsyncSession, gateway: PaymentGateway) -> ConfirmPayment:
    return ConfirmPayment(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyBillingTransactionRepository(session),
        account_repo=SqlAlchemyCreditAccountRepository(session),
        package_repo=SqlAlchemyConsultationPackageRepository(session),
        gateway=gateway,
        max_attempts=ApplicationConfig.OPTIMISTIC_RETRY_ATTEMPTS,
    )


@router.post(
    "/intents",
    response_model=PaymentIntentResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={503: {"description": "Payment gateway unavailable", "content": ERROR_EXAMPLE}},
)
async def create_payment_intent(
    request: CreatePaymentIntentRequestSchema,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Create a payment intent for a package purchase or a consultation.

    **Request body:**
    - `amount` (required): Gross amount in minor units (must be > 0)
    - `currency` (optional): ISO code, defaults to USD
    - `package_id` (optional): Credit package being purchased
    - `payment_method_id` (optional): Saved payment method

    **Returns:**
    - 201: `client_secret`, `payment_intent_id`, `transaction_id` and fee breakdown
    - 400: Invalid amount or currency
    - 404: Client or package not found
    - 503: Payment gateway unavailable
    """
    client_id = request.client_id if (auth.is_admin and request.client_id) else auth.client_id
    if not client_id:
        raise ClientError(Error(code=ErrorCode.VALIDATION_ERROR, message="Client id is required"))

    command = CreatePaymentIntentCommandDTO(
        tenant_id=auth.tenant_id,
        client_id=client_id,
        amount=request.amount,
        currency=request.currency,
        package_id=request.package_id,
        consultant_id=request.consultant_id,
        consultation_id=request.consultation_id,
        quantity=request.quantity,
        payment_method_id=request.payment_method_id,
        description=request.description,
        created_by=auth.user_id,
    )

    use_case = CreatePaymentIntent(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyBillingTransactionRepository(session),
        account_repo=SqlAlchemyCreditAccountRepository(session),
        package_repo=SqlAlchemyConsultationPackageRepository(session),
        gateway=gateway,
        fee_policy=get_fee_policy(),
        default_currency=ApplicationConfig.DEFAULT_CURRENCY,
        max_attempts=ApplicationConfig.OPTIMISTIC_RETRY_ATTEMPTS,
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post("/{payment_intent_id}/confirm", response_model=ConfirmPaymentResponseDTO)
async def confirm_payment(
    payment_intent_id: str,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Confirm a payment after checkout.

    Idempotent: confirming twice (or after the webhook did) returns the same
    outcome with `already_confirmed=true` and adds no credits.

    **Returns:**
    - 200: `transaction_id`, `status`, `credits_added`, `available_credits`
    - 404: No transaction for the payment intent
    - 422: Payment has not succeeded at the gateway
    - 503: Payment gateway unavailable
    """
    result = await build_confirm_payment(session, gateway).execute(payment_intent_id)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.get("/transactions/{transaction_id}", response_model=TransactionDetailDTO)
async def get_payment_status(
    transaction_id: str,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """
    Get a transaction. The caller must own it or hold the admin role.

    **Returns:**
    - 200: Full transaction record
    - 403: Not the owner
    - 404: Transaction not found
    """
    use_case = GetPaymentStatus(SqlAlchemyBillingTransactionRepository(session))
    result = await use_case.execute(
        transaction_id,
        tenant_id=auth.tenant_id,
        requester_client_id=auth.client_id,
        is_admin=auth.is_admin,
    )

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.get("/transactions/{transaction_id}/payout", response_model=PayoutCalculationDTO)
async def calculate_consultant_payout(
    transaction_id: str,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """Fee and consultant earnings breakdown for one transaction (admin only)."""
    require_admin(auth)

    use_case = CalculateConsultantPayout(SqlAlchemyBillingTransactionRepository(session))
    result = await use_case.execute(transaction_id, tenant_id=auth.tenant_id)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.get("/clients/{client_id}/history", response_model=PaymentHistoryResponseDTO)
async def list_payment_history(
    client_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """
    Paginated payment history of a client, most recent first.

    **Query parameters:**
    - `page` (default 1), `limit` (default 20, max 100)
    - `status`: pending, succeeded, failed or refunded
    - `start_date`, `end_date`: created_at bounds (inclusive)
    """
    use_case = ListPaymentHistory(SqlAlchemyBillingTransactionRepository(session))
    result = await use_case.execute(
        tenant_id=auth.tenant_id,
        client_id=client_id,
        requester_client_id=auth.client_id,
        is_admin=auth.is_admin,
        page=page,
        limit=limit,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
    )

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post("/transactions/{transaction_id}/refund", response_model=RefundResponseDTO)
async def refund_payment(
    transaction_id: str,
    request: RefundRequestSchema,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Refund a succeeded transaction (admin only).

    Package purchases lose the credits they granted. Only one refund per
    transaction is sent to Stripe at a time.

    **Returns:**
    - 200: `refund_id`, `amount`, `status`, `credits_clawed_back`
    - 404: Transaction not found
    - 422: Not refundable (including a refund already in progress), or
      amount exceeds the net amount
    - 503: Payment gateway unavailable (transaction stays refundable)
    """
    require_admin(auth)

    use_case = RefundPayment(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyBillingTransactionRepository(session),
        account_repo=SqlAlchemyCreditAccountRepository(session),
        gateway=gateway,
        max_attempts=ApplicationConfig.OPTIMISTIC_RETRY_ATTEMPTS,
    )
    result = await use_case.execute(
        RefundCommandDTO(
            transaction_id=transaction_id,
            tenant_id=auth.tenant_id,
            amount=request.amount,
            reason=request.reason,
            requested_by=auth.user_id,
        )
    )

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.get("/packages", response_model=List[PackageDTO])
async def list_available_packages(
    featured: bool = Query(default=False),
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """Active consultation packages of the caller's tenant."""
    use_case = ListAvailablePackages(SqlAlchemyConsultationPackageRepository(session))
    result = await use_case.execute(auth.tenant_id, featured_only=featured)
    return result.value


@router.post("/payouts/{consultant_id}", response_model=PayoutScheduleResponseDTO)
async def schedule_payouts(
    consultant_id: str,
    request: Optional[SchedulePayoutRequestSchema] = None,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """
    Schedule a payout of the consultant's unpaid earnings (admin only).

    Below the minimum payout amount nothing is scheduled and
    `reason="below_minimum"` is returned.
    """
    require_admin(auth)

    payout_date = (request.payout_date if request else None) or next_payout_date(
        ApplicationConfig.PAYOUT_SCHEDULE
    )

    use_case = SchedulePayouts(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyBillingTransactionRepository(session),
        minimum_payout_amount=ApplicationConfig.MINIMUM_PAYOUT_AMOUNT,
    )
    result = await use_case.execute(auth.tenant_id, consultant_id, payout_date)

    if result.is_err():
        raise ClientError(result.error)

    return result.value
