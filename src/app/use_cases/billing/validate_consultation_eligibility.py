"""ValidateConsultationEligibility Use Case

Decides how a client pays for a consultation of a given length.
"""

from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.repositories.credit_account_repository import CreditAccountRepository
from .dtos import EligibilityResponseDTO


class ValidateConsultationEligibility:
    """
    Use Case: Check whether a consultation can be paid for

    Decision order (fixed precedence):
    1. Unused, unexpired free trial covering the requested duration -> free_trial
    2. At least one available credit -> credits
    3. Otherwise -> payment required

    Read-only: nothing is consumed here, see UseFreeTrial and
    DeductConsultationCredit.
    """

    def __init__(self, account_repo: CreditAccountRepository, free_trial_duration_minutes: int = 15):
        self.account_repo = account_repo
        self.free_trial_duration_minutes = free_trial_duration_minutes

    async def execute(
        self,
        client_id: str,
        duration_minutes: int,
        tenant_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Result[EligibilityResponseDTO]:
        if duration_minutes <= 0:
            return Return.err(
                Error(
                    code=ErrorCode.VALIDATION_ERROR,
                    message="Duration must be a positive number of minutes",
                    reason=f"duration_minutes={duration_minutes}",
                )
            )

        account = await self.account_repo.get_by_client_id(client_id, tenant_id)
        if not account:
            return Return.err(
                Error(code=ErrorCode.CLIENT_NOT_FOUND, message=f"Client {client_id} not found")
            )

        if account.free_trial_available(now) and duration_minutes <= self.free_trial_duration_minutes:
            return Return.ok(
                EligibilityResponseDTO(
                    valid=True,
                    payment_required=False,
                    method="free_trial",
                    message="Free trial consultation",
                )
            )

        if account.available_credits >= 1:
            return Return.ok(
                EligibilityResponseDTO(
                    valid=True,
                    payment_required=False,
                    method="credits",
                    message="Payment using consultation credits",
                    credits_available=account.available_credits,
                )
            )

        return Return.ok(
            EligibilityResponseDTO(
                valid=False,
                payment_required=True,
                method="payment",
                message="Payment required - insufficient credits",
                credits_available=account.available_credits,
            )
        )
