"""Consultant Payout Background Worker

Schedules payouts for every consultant with unpaid earnings, dated by
the configured payout schedule (weekly, biweekly, monthly).
Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.billing_transaction_repository import SqlAlchemyBillingTransactionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.use_cases.billing import (
    SchedulePayouts,
    RunPayoutBatch,
    PayoutRunResultDTO,
    next_payout_date,
)

logger = logging.getLogger(__name__)


class PayoutSchedulerWorker:
    """
    Background worker for consultant payouts

    Features:
    - Groups each consultant's unscheduled succeeded transactions into a batch
    - Skips consultants below the minimum payout amount (carried forward)
    - Safe to re-run: already scheduled transactions are never selected again

    Usage:
        worker = PayoutSchedulerWorker()
        result = await worker.run_once()
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        schedule: Optional[str] = None,
        minimum_payout_amount: Optional[int] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            schedule: Payout schedule name (defaults to ApplicationConfig.PAYOUT_SCHEDULE)
            minimum_payout_amount: Threshold in minor units (defaults to ApplicationConfig)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        self.schedule = schedule or ApplicationConfig.PAYOUT_SCHEDULE
        self.minimum_payout_amount = (
            minimum_payout_amount
            if minimum_payout_amount is not None
            else ApplicationConfig.MINIMUM_PAYOUT_AMOUNT
        )

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info(
            f"PayoutSchedulerWorker initialized (schedule={self.schedule}, "
            f"minimum={self.minimum_payout_amount})"
        )

    async def run_once(self, payout_date: Optional[datetime] = None) -> PayoutRunResultDTO:
        """
        Run one payout batch

        Args:
            payout_date: Date to stamp on scheduled payouts (defaults to the
                next date of the configured schedule)
        """
        if not ApplicationConfig.PAYOUT_SCHEDULER_ENABLED:
            logger.info("Payout scheduler is disabled, skipping")
            return PayoutRunResultDTO(
                consultants_checked=0,
                payouts_scheduled=0,
                total_amount=0,
                below_minimum=0,
                failures=0,
                execution_time_ms=0,
            )

        payout_date = payout_date or next_payout_date(self.schedule)

        async with self.async_session_factory() as session:
            transaction_repo = SqlAlchemyBillingTransactionRepository(session)
            use_case = RunPayoutBatch(
                transaction_repo=transaction_repo,
                schedule_payouts=SchedulePayouts(
                    uow=SqlAlchemyUnitOfWork(session),
                    transaction_repo=transaction_repo,
                    minimum_payout_amount=self.minimum_payout_amount,
                ),
            )

            result = await use_case.execute(payout_date)

            if result.is_err():
                logger.error(f"Payout run failed: {result.error.message}")
                raise RuntimeError(f"Payout run failed: {result.error.message}")

            response = result.value
            if response.failures > 0:
                logger.error(f"ALERT: {response.failures} consultant payouts failed to schedule")

            return response

    async def run_forever(self, interval_seconds: int = 86400):
        logger.info(f"Starting continuous payout scheduling with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Payout cycle complete. Checked {result.consultants_checked} consultants, "
                    f"scheduled {result.payouts_scheduled} payouts totalling {result.total_amount}, "
                    f"{result.below_minimum} below minimum, in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Payout cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        await self.engine.dispose()
        logger.info("PayoutSchedulerWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run once
        python -m src.worker.payout_scheduler --once

        # Run continuously
        python -m src.worker.payout_scheduler --interval 86400
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Consultant Payout Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.PAYOUT_INTERVAL_SECONDS,
        help="Interval between runs in seconds",
    )
    args = parser.parse_args()

    worker = PayoutSchedulerWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Payout run complete:")
            print(f"  Consultants checked: {result.consultants_checked}")
            print(f"  Payouts scheduled: {result.payouts_scheduled}")
            print(f"  Total amount: {result.total_amount}")
            print(f"  Below minimum: {result.below_minimum}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
