"""Free trial use cases

CheckFreeTrialEligibility reports the trial state of a client;
UseFreeTrial consumes it, at most once per client.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.credit_account_repository import CreditAccountRepository
from .concurrency import run_with_optimistic_retry, ConcurrentUpdateExhausted
from .dtos import FreeTrialStatusDTO, UseFreeTrialCommandDTO
from .mappers import to_free_trial_dto

logger = logging.getLogger(__name__)


class CheckFreeTrialEligibility:
    def __init__(self, account_repo: CreditAccountRepository, free_trial_duration_minutes: int = 15):
        self.account_repo = account_repo
        self.free_trial_duration_minutes = free_trial_duration_minutes

    async def execute(
        self, client_id: str, tenant_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> Result[FreeTrialStatusDTO]:
        account = await self.account_repo.get_by_client_id(client_id, tenant_id)
        if not account:
            return Return.err(
                Error(code=ErrorCode.CLIENT_NOT_FOUND, message=f"Client {client_id} not found")
            )

        return Return.ok(to_free_trial_dto(account, self.free_trial_duration_minutes, now))


class UseFreeTrial:
    """
    Use Case: Consume the client's free trial for a consultation

    Business Rules:
    1. Trial must be eligible, unused and unexpired (FREE_TRIAL_UNAVAILABLE)
    2. Marks used, clears eligibility, records consultation id and time
    3. Version checked write with retry; a concurrent second use observes
       used=True on its retry and is rejected
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: CreditAccountRepository,
        free_trial_duration_minutes: int = 15,
        max_attempts: int = 3,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.free_trial_duration_minutes = free_trial_duration_minutes
        self.max_attempts = max_attempts

    async def execute(self, command: UseFreeTrialCommandDTO) -> Result[FreeTrialStatusDTO]:
        try:
            return await run_with_optimistic_retry(
                self.uow,
                lambda: self._use(command),
                max_attempts=self.max_attempts,
            )
        except ConcurrentUpdateExhausted as e:
            return Return.err(
                Error(
                    code=ErrorCode.CONCURRENT_UPDATE,
                    message="Client account is busy, retry",
                    reason=str(e),
                )
            )

    async def _use(self, command: UseFreeTrialCommandDTO) -> Result[FreeTrialStatusDTO]:
        account = await self.account_repo.get_by_client_id(command.client_id, command.tenant_id)
        if not account:
            return Return.err(
                Error(code=ErrorCode.CLIENT_NOT_FOUND, message=f"Client {command.client_id} not found")
            )

        now = datetime.utcnow()
        if not account.free_trial_available(now):
            reason = "used" if account.free_trial_used else (
                "expired" if account.free_trial_expired(now) else "not_eligible"
            )
            return Return.err(
                Error(
                    code=ErrorCode.FREE_TRIAL_UNAVAILABLE,
                    message="Free trial is not available for this client",
                    reason=reason,
                )
            )

        account.free_trial_used = True
        account.free_trial_eligible = False
        account.free_trial_used_at = now
        account.free_trial_consultation_id = command.consultation_id
        await self.account_repo.save(account)

        await self.uow.commit()

        logger.info(
            f"Free trial used: client={account.client_id} consultation={command.consultation_id}"
        )

        return Return.ok(to_free_trial_dto(account, self.free_trial_duration_minutes, now))
