"""ExpireCreditLots Use Case

Batch job: retires credit lots past their expiry date and removes their
remaining credits from the client balance.
"""

import logging
import time
from datetime import datetime
from typing import Optional, Tuple
from libs.result import Result, Return
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.domain.credit_lot import CreditLotStatus
from .concurrency import run_with_optimistic_retry, ConcurrentUpdateExhausted
from .dtos import CreditExpiryResultDTO

logger = logging.getLogger(__name__)


class ExpireCreditLots:
    """
    Use Case: Expire credit lots

    Business Rules:
    1. Only active lots with expiry_date <= now are expired
    2. available_credits drops by each expired lot's credits_remaining,
       keeping the balance equal to the sum over active lots
    3. Each client is processed in its own version checked unit of work;
       one failing client does not stop the run
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

    async def execute(self, now: Optional[datetime] = None) -> Result[CreditExpiryResultDTO]:
        start_time = time.time()
        now = now or datetime.utcnow()

        client_ids = await self.account_repo.get_client_ids_with_expired_lots(now)
        logger.info(f"Credit expiry: {len(client_ids)} clients with expired lots")

        lots_expired = 0
        credits_expired = 0
        failures = 0

        for client_id in client_ids:
            try:
                lots, credits = await run_with_optimistic_retry(
                    self.uow,
                    lambda: self._expire_for_client(client_id, now),
                    max_attempts=self.max_attempts,
                )
                lots_expired += lots
                credits_expired += credits
            except ConcurrentUpdateExhausted as e:
                failures += 1
                logger.error(f"Credit expiry failed for client {client_id}: {e}")

        execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Credit expiry complete: lots={lots_expired} credits={credits_expired} "
            f"failures={failures} in {execution_time_ms}ms"
        )

        return Return.ok(
            CreditExpiryResultDTO(
                clients_checked=len(client_ids),
                lots_expired=lots_expired,
                credits_expired=credits_expired,
                failures=failures,
                execution_time_ms=execution_time_ms,
            )
        )

    async def _expire_for_client(self, client_id: str, now: datetime) -> Tuple[int, int]:
        account = await self.account_repo.get_by_client_id(client_id)
        if not account:
            return 0, 0

        lots_expired = 0
        credits_expired = 0
        for lot in await self.account_repo.get_lots(account.id):
            if lot.status != CreditLotStatus.ACTIVE or lot.expiry_date is None or lot.expiry_date > now:
                continue

            credits_expired += lot.credits_remaining
            lot.status = CreditLotStatus.EXPIRED
            lot.expired_at = now
            await self.account_repo.update_lot(lot)
            lots_expired += 1

        if lots_expired == 0:
            return 0, 0

        account.available_credits = max(0, account.available_credits - credits_expired)
        await self.account_repo.save(account)
        await self.uow.commit()

        logger.info(
            f"Expired {lots_expired} lots ({credits_expired} credits) for client {client_id}"
        )
        return lots_expired, credits_expired
