"""SchedulePayouts Use Case

Groups a consultant's unpaid earnings into a payout batch.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Optional
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.billing_transaction_repository import BillingTransactionRepository
from src.domain.base import generate_payout_batch_id
from .dtos import PayoutScheduleResponseDTO, PayoutRunResultDTO

logger = logging.getLogger(__name__)

PAYOUT_INTERVALS = {
    "weekly": timedelta(days=7),
    "biweekly": timedelta(days=14),
    "monthly": timedelta(days=30),
}


def next_payout_date(schedule: str, now: Optional[datetime] = None) -> datetime:
    """Next payout date for a schedule name (weekly, biweekly, monthly)"""
    now = now or datetime.utcnow()
    interval = PAYOUT_INTERVALS.get(schedule)
    if interval is None:
        raise ValueError(f"Unknown payout schedule: {schedule}")
    return (now + interval).replace(hour=0, minute=0, second=0, microsecond=0)


class SchedulePayouts:
    """
    Use Case: Schedule a consultant payout

    Business Rules:
    1. Earnings per transaction = net - platform_fee - processing_fee
    2. Only succeeded transactions not yet in a payout are selected
    3. Below minimum_payout_amount nothing is marked; the earnings carry
       forward to the next run
    4. Marking is conditional on the rows still being unscheduled; if a
       concurrent run marked any of them first, this run is rolled back
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: BillingTransactionRepository,
        minimum_payout_amount: int = 5000,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.minimum_payout_amount = minimum_payout_amount

    async def execute(
        self, tenant_id: str, consultant_id: str, payout_date: datetime
    ) -> Result[PayoutScheduleResponseDTO]:
        pending = await self.transaction_repo.get_unscheduled_payouts(tenant_id, consultant_id)
        total = sum(t.consultant_earnings for t in pending)

        if total < self.minimum_payout_amount:
            logger.info(
                f"Payout below minimum for consultant {consultant_id}: "
                f"amount={total} minimum={self.minimum_payout_amount}"
            )
            return Return.ok(
                PayoutScheduleResponseDTO(
                    consultant_id=consultant_id,
                    scheduled=False,
                    total_amount=total,
                    count=len(pending),
                    reason="below_minimum",
                    minimum=self.minimum_payout_amount,
                )
            )

        batch_id = generate_payout_batch_id()
        marked = await self.transaction_repo.schedule_payout(
            [t.id for t in pending], batch_id, payout_date
        )
        if marked != len(pending):
            await self.uow.rollback()
            logger.warning(
                f"Payout for consultant {consultant_id} raced with another run "
                f"({marked}/{len(pending)} rows still unscheduled); nothing scheduled"
            )
            return Return.err(
                Error(
                    code=ErrorCode.CONCURRENT_UPDATE,
                    message="Payouts were scheduled concurrently, retry",
                    reason=f"marked={marked} expected={len(pending)}",
                )
            )

        await self.uow.commit()

        logger.info(
            f"Consultant payouts scheduled: consultant={consultant_id} batch={batch_id} "
            f"count={len(pending)} total={total} date={payout_date.isoformat()}"
        )

        return Return.ok(
            PayoutScheduleResponseDTO(
                consultant_id=consultant_id,
                scheduled=True,
                total_amount=total,
                count=len(pending),
                payout_date=payout_date,
                payout_batch_id=batch_id,
            )
        )


class RunPayoutBatch:
    """
    Use Case: Schedule payouts for every consultant with unpaid earnings

    Used by the payout worker. Errors for one consultant are counted and
    logged; the run continues with the next.
    """

    def __init__(self, transaction_repo: BillingTransactionRepository, schedule_payouts: SchedulePayouts):
        self.transaction_repo = transaction_repo
        self.schedule_payouts = schedule_payouts

    async def execute(self, payout_date: datetime) -> Result[PayoutRunResultDTO]:
        start_time = time.time()

        consultants = await self.transaction_repo.get_consultants_with_unscheduled_payouts()
        logger.info(f"Payout run: {len(consultants)} consultants with unscheduled earnings")

        scheduled = 0
        below_minimum = 0
        failures = 0
        total_amount = 0

        for tenant_id, consultant_id in consultants:
            result = await self.schedule_payouts.execute(tenant_id, consultant_id, payout_date)
            if result.is_err():
                failures += 1
                logger.error(
                    f"Payout scheduling failed for consultant {consultant_id} "
                    f"(tenant {tenant_id}): {result.error.message}"
                )
            elif result.value.scheduled:
                scheduled += 1
                total_amount += result.value.total_amount
            else:
                below_minimum += 1

        execution_time_ms = int((time.time() - start_time) * 1000)

        return Return.ok(
            PayoutRunResultDTO(
                consultants_checked=len(consultants),
                payouts_scheduled=scheduled,
                total_amount=total_amount,
                below_minimum=below_minimum,
                failures=failures,
                execution_time_ms=execution_time_ms,
            )
        )
