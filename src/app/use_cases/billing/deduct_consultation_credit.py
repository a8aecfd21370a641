"""DeductConsultationCredit Use Case

Consumes one credit for a completed consultation, oldest lot first.
"""

import logging
from datetime import datetime
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.domain.credit_lot import CreditLotStatus
from .concurrency import run_with_optimistic_retry, ConcurrentUpdateExhausted
from .dtos import DeductCreditCommandDTO, CreditDeductionResponseDTO

logger = logging.getLogger(__name__)


class DeductConsultationCredit:
    """
    Use Case: Deduct one consultation credit

    Business Rules:
    1. available_credits >= 1 required (INSUFFICIENT_CREDITS otherwise)
    2. FIFO: the oldest active lot with credits remaining is consumed;
       it flips to depleted when it reaches zero
    3. Lifetime usage counters and last consultation time are updated
    4. Read-modify-write on the account is version checked and retried,
       so it cannot interleave destructively with a confirmation
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: CreditAccountRepository,
        max_attempts: int = 3,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.max_attempts = max_attempts

    async def execute(self, command: DeductCreditCommandDTO) -> Result[CreditDeductionResponseDTO]:
        try:
            return await run_with_optimistic_retry(
                self.uow,
                lambda: self._deduct(command),
                max_attempts=self.max_attempts,
            )
        except ConcurrentUpdateExhausted as e:
            logger.error(f"Credit deduction for client {command.client_id} gave up: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.CONCURRENT_UPDATE,
                    message="Client account is busy, retry deduction",
                    reason=str(e),
                )
            )

    async def _deduct(self, command: DeductCreditCommandDTO) -> Result[CreditDeductionResponseDTO]:
        account = await self.account_repo.get_by_client_id(command.client_id, command.tenant_id)
        if not account:
            return Return.err(
                Error(code=ErrorCode.CLIENT_NOT_FOUND, message=f"Client {command.client_id} not found")
            )

        if account.available_credits < 1:
            return Return.err(
                Error(
                    code=ErrorCode.INSUFFICIENT_CREDITS,
                    message="Insufficient consultation credits",
                    reason=f"available_credits={account.available_credits}",
                )
            )

        lots = await self.account_repo.get_lots(account.id)
        lot = next(
            (l for l in lots if l.status == CreditLotStatus.ACTIVE and l.credits_remaining > 0),
            None,
        )
        if lot is None:
            # Balance says credits exist but no lot backs them
            logger.error(
                f"Client {account.client_id} has available_credits={account.available_credits} "
                f"but no active lot with credits remaining"
            )
            return Return.err(
                Error(
                    code=ErrorCode.INSUFFICIENT_CREDITS,
                    message="Insufficient consultation credits",
                    reason="no active credit lot",
                )
            )

        lot.consume_one()
        await self.account_repo.update_lot(lot)

        account.available_credits -= 1
        account.total_credits_used += 1
        account.total_consultations += 1
        account.last_consultation_at = datetime.utcnow()
        await self.account_repo.save(account)

        await self.uow.commit()

        logger.info(
            f"Consultation credit deducted: client={account.client_id} "
            f"consultation={command.consultation_id} lot={lot.billing_transaction_id} "
            f"remaining={account.available_credits}"
        )

        return Return.ok(
            CreditDeductionResponseDTO(
                client_id=account.client_id,
                consultation_id=command.consultation_id,
                billing_transaction_id=lot.billing_transaction_id,
                available_credits=account.available_credits,
                total_credits_used=account.total_credits_used,
            )
        )
