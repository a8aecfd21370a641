"""Consultation Credit API Routes

Balance lookup for clients, plus the endpoints the consultation service
calls when booking and completing consultations.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from libs.result import Error
from src.api.auth import AuthContext, get_auth_context, require_admin
from src.api.error import ClientError
from src.api.schemas.payment_request import (
    OpenCreditAccountRequestSchema,
    DeductCreditRequestSchema,
    UseFreeTrialRequestSchema,
)
from src.app.errors import ErrorCode
from src.app.use_cases.billing import (
    GetCreditBalance,
    OpenCreditAccount,
    ValidateConsultationEligibility,
    DeductConsultationCredit,
    UseFreeTrial,
)
from src.app.use_cases.billing.dtos import (
    CreditBalanceResponseDTO,
    CreditAccountResponseDTO,
    EligibilityResponseDTO,
    CreditDeductionResponseDTO,
    FreeTrialStatusDTO,
    OpenCreditAccountCommandDTO,
    DeductCreditCommandDTO,
    UseFreeTrialCommandDTO,
)
from src.adapter.repositories.credit_account_repository import SqlAlchemyCreditAccountRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_session

router = APIRouter(prefix="/billing/credits", tags=["Credits"])


def _resolve_client(auth: AuthContext, client_id: Optional[str]) -> str:
    """Admins may act for any client; others only for themselves"""
    if client_id and (auth.is_admin or client_id == auth.client_id):
        return client_id
    if client_id:
        raise ClientError(Error(code=ErrorCode.ACCESS_DENIED, message="Not allowed to act for this client"))
    if not auth.client_id:
        raise ClientError(Error(code=ErrorCode.VALIDATION_ERROR, message="Client id is required"))
    return auth.client_id


@router.get("/balance", response_model=CreditBalanceResponseDTO)
async def get_credit_balance(
    client_id: Optional[str] = Query(default=None),
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """
    Credit balance of the calling client.

    Never fails for a client without a credit profile: returns a zero
    balance with a `warning` instead.

    **Example response:**
    ```json
    {
      "available_credits": 3,
      "free_trial": {"eligible": false, "used": true, "expired": false},
      "active_credits": [{"package_id": "pkg_5", "credits_remaining": 3, "status": "active"}],
      "lifetime": {"total_credits_purchased": 5, "total_credits_used": 2}
    }
    ```
    """
    use_case = GetCreditBalance(
        SqlAlchemyCreditAccountRepository(session),
        free_trial_duration_minutes=ApplicationConfig.FREE_TRIAL_DURATION_MINUTES,
    )
    result = await use_case.execute(_resolve_client(auth, client_id), tenant_id=auth.tenant_id)
    return result.value


@router.post("/accounts", response_model=CreditAccountResponseDTO, status_code=status.HTTP_201_CREATED)
async def open_credit_account(
    request: OpenCreditAccountRequestSchema,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """
    Open a credit account for a client (admin only).

    **Returns:**
    - 201: Account created, free trial granted unless `grant_free_trial=false`
    - 409: Account already exists
    """
    require_admin(auth)

    use_case = OpenCreditAccount(
        uow=SqlAlchemyUnitOfWork(session),
        account_repo=SqlAlchemyCreditAccountRepository(session),
        free_trial_expiry_days=ApplicationConfig.FREE_TRIAL_EXPIRY_DAYS,
        free_trial_duration_minutes=ApplicationConfig.FREE_TRIAL_DURATION_MINUTES,
    )
    result = await use_case.execute(
        OpenCreditAccountCommandDTO(
            tenant_id=auth.tenant_id,
            client_id=request.client_id,
            email=request.email,
            name=request.name,
            grant_free_trial=request.grant_free_trial,
        )
    )

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.get("/eligibility", response_model=EligibilityResponseDTO)
async def validate_consultation_eligibility(
    duration_minutes: int = Query(..., gt=0),
    client_id: Optional[str] = Query(default=None),
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """
    How a consultation of `duration_minutes` would be paid:
    `free_trial`, `credits`, or `payment` required.
    """
    use_case = ValidateConsultationEligibility(
        SqlAlchemyCreditAccountRepository(session),
        free_trial_duration_minutes=ApplicationConfig.FREE_TRIAL_DURATION_MINUTES,
    )
    result = await use_case.execute(
        _resolve_client(auth, client_id), duration_minutes, tenant_id=auth.tenant_id
    )

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post("/deduct", response_model=CreditDeductionResponseDTO)
async def deduct_consultation_credit(
    request: DeductCreditRequestSchema,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """
    Deduct one credit for a completed consultation (oldest lot first).

    **Returns:**
    - 200: Remaining balance
    - 404: Client not found
    - 409: Account busy after retries
    - 422: Insufficient credits
    """
    use_case = DeductConsultationCredit(
        uow=SqlAlchemyUnitOfWork(session),
        account_repo=SqlAlchemyCreditAccountRepository(session),
        max_attempts=ApplicationConfig.OPTIMISTIC_RETRY_ATTEMPTS,
    )
    result = await use_case.execute(
        DeductCreditCommandDTO(
            client_id=_resolve_client(auth, request.client_id),
            consultation_id=request.consultation_id,
            tenant_id=auth.tenant_id,
        )
    )

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post("/free-trial/use", response_model=FreeTrialStatusDTO)
async def use_free_trial(
    request: UseFreeTrialRequestSchema,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_session),
):
    """Consume the client's free trial for a consultation (once per client)."""
    use_case = UseFreeTrial(
        uow=SqlAlchemyUnitOfWork(session),
        account_repo=SqlAlchemyCreditAccountRepository(session),
        free_trial_duration_minutes=ApplicationConfig.FREE_TRIAL_DURATION_MINUTES,
        max_attempts=ApplicationConfig.OPTIMISTIC_RETRY_ATTEMPTS,
    )
    result = await use_case.execute(
        UseFreeTrialCommandDTO(
            client_id=_resolve_client(auth, request.client_id),
            consultation_id=request.consultation_id,
            tenant_id=auth.tenant_id,
        )
    )

    if result.is_err():
        raise ClientError(result.error)

    return result.value
