"""RepairRefundClawbacks Use Case

Batch job closing the window where a refund was recorded but its credit
clawback never landed.
"""

import logging
import time
from libs.result import Result, Return
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.billing_transaction_repository import BillingTransactionRepository
from src.app.repositories.credit_account_repository import CreditAccountRepository
from .clawback import claw_back_credits, ClawbackTargetMissing
from .concurrency import run_with_optimistic_retry, ConcurrentUpdateExhausted
from .dtos import RefundRepairDTO, RefundRepairResultDTO

logger = logging.getLogger(__name__)


class RepairRefundClawbacks:
    """
    Use Case: Apply missing refund clawbacks

    Scans refunded package purchases and claws back any whose lot is not
    yet refunded. Idempotent: lots already refunded are skipped, so
    repeated runs change nothing.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: BillingTransactionRepository,
        account_repo: CreditAccountRepository,
        max_attempts: int = 3,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.account_repo = account_repo
        self.max_attempts = max_attempts

    async def execute(self) -> Result[RefundRepairResultDTO]:
        start_time = time.time()

        transactions = await self.transaction_repo.get_refunded_package_purchases()
        transaction_ids = [t.transaction_id for t in transactions]
        logger.info(f"Refund repair: checking {len(transaction_ids)} refunded package purchases")

        repairs = []
        failures = 0

        for transaction_id in transaction_ids:
            try:
                repair = await run_with_optimistic_retry(
                    self.uow,
                    lambda: self._repair(transaction_id),
                    max_attempts=self.max_attempts,
                )
            except (ClawbackTargetMissing, ConcurrentUpdateExhausted) as e:
                await self.uow.rollback()
                failures += 1
                logger.error(f"Refund repair failed for transaction {transaction_id}: {e}")
                continue

            if repair:
                repairs.append(repair)

        execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Refund repair complete: repaired={len(repairs)} failures={failures} "
            f"in {execution_time_ms}ms"
        )

        return Return.ok(
            RefundRepairResultDTO(
                transactions_checked=len(transaction_ids),
                repaired=len(repairs),
                repairs=repairs,
                failures=failures,
                execution_time_ms=execution_time_ms,
            )
        )

    async def _repair(self, transaction_id: str):
        transaction = await self.transaction_repo.get_by_transaction_id(transaction_id)
        credits = await claw_back_credits(self.account_repo, transaction)
        if credits is None:
            return None

        await self.uow.commit()
        logger.warning(
            f"Repaired missing clawback: transaction={transaction_id} "
            f"client={transaction.client_id} credits={credits}"
        )
        return RefundRepairDTO(
            transaction_id=transaction_id,
            client_id=transaction.client_id,
            credits_clawed_back=credits,
        )
