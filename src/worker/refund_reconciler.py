"""Refund Clawback Repair Background Worker

Periodically applies credit clawbacks that a refund recorded but never
landed (e.g. the client account write failed after the gateway refund).
Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.billing_transaction_repository import SqlAlchemyBillingTransactionRepository
from src.adapter.repositories.credit_account_repository import SqlAlchemyCreditAccountRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.use_cases.billing import RepairRefundClawbacks, RefundRepairResultDTO

logger = logging.getLogger(__name__)


class RefundReconcilerWorker:
    """
    Background worker for refund clawback repair

    Usage:
        # Run once
        worker = RefundReconcilerWorker()
        result = await worker.run_once()

        # Run continuously
        await worker.run_forever(interval_seconds=86400)
    """

    def __init__(self, db_uri: Optional[str] = None):
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("RefundReconcilerWorker initialized")

    async def run_once(self) -> RefundRepairResultDTO:
        if not ApplicationConfig.REFUND_RECONCILIATION_ENABLED:
            logger.info("Refund reconciliation is disabled, skipping")
            return RefundRepairResultDTO(
                transactions_checked=0,
                repaired=0,
                repairs=[],
                failures=0,
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            use_case = RepairRefundClawbacks(
                uow=SqlAlchemyUnitOfWork(session),
                transaction_repo=SqlAlchemyBillingTransactionRepository(session),
                account_repo=SqlAlchemyCreditAccountRepository(session),
                max_attempts=ApplicationConfig.OPTIMISTIC_RETRY_ATTEMPTS,
            )

            result = await use_case.execute()

            if result.is_err():
                logger.error(f"Refund reconciliation failed: {result.error.message}")
                raise RuntimeError(f"Refund reconciliation failed: {result.error.message}")

            response = result.value

            if response.repaired > 0:
                logger.warning(f"Repaired {response.repaired} missing refund clawbacks")
                for r in response.repairs:
                    logger.warning(
                        f"  - Transaction {r.transaction_id} (client {r.client_id}): "
                        f"{r.credits_clawed_back} credits clawed back"
                    )

            return response

    async def run_forever(self, interval_seconds: int = 86400):
        logger.info(f"Starting continuous refund reconciliation with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Refund reconciliation cycle complete. "
                    f"Checked {result.transactions_checked}, repaired {result.repaired}, "
                    f"failures {result.failures} in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Refund reconciliation cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        await self.engine.dispose()
        logger.info("RefundReconcilerWorker shutdown complete")


async def main():
    """
    Usage:
        python -m src.worker.refund_reconciler --once
        python -m src.worker.refund_reconciler --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Refund Clawback Repair Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.REFUND_RECONCILIATION_INTERVAL_SECONDS,
        help="Interval between runs in seconds",
    )
    args = parser.parse_args()

    worker = RefundReconcilerWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Refund reconciliation complete:")
            print(f"  Transactions checked: {result.transactions_checked}")
            print(f"  Repaired: {result.repaired}")
            print(f"  Failures: {result.failures}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
