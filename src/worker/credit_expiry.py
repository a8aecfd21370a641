"""Credit Lot Expiry Background Worker

Expires credit lots past their expiry date and removes their remaining
credits from client balances.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.credit_account_repository import SqlAlchemyCreditAccountRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.use_cases.billing import ExpireCreditLots, CreditExpiryResultDTO

logger = logging.getLogger(__name__)


class CreditExpiryWorker:
    def __init__(self, db_uri: Optional[str] = None):
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("CreditExpiryWorker initialized")

    async def run_once(self) -> CreditExpiryResultDTO:
        if not ApplicationConfig.CREDIT_EXPIRY_ENABLED:
            logger.info("Credit expiry is disabled, skipping")
            return CreditExpiryResultDTO(
                clients_checked=0,
                lots_expired=0,
                credits_expired=0,
                failures=0,
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            use_case = ExpireCreditLots(
                uow=SqlAlchemyUnitOfWork(session),
                account_repo=SqlAlchemyCreditAccountRepository(session),
                max_attempts=ApplicationConfig.OPTIMISTIC_RETRY_ATTEMPTS,
            )
            result = await use_case.execute()

            if result.is_err():
                logger.error(f"Credit expiry failed: {result.error.message}")
                raise RuntimeError(f"Credit expiry failed: {result.error.message}")

            return result.value

    async def run_forever(self, interval_seconds: int = 86400):
        logger.info(f"Starting continuous credit expiry with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Credit expiry cycle complete. Expired {result.lots_expired} lots "
                    f"({result.credits_expired} credits) for {result.clients_checked} clients "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Credit expiry cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        await self.engine.dispose()
        logger.info("CreditExpiryWorker shutdown complete")


async def main():
    """
    Usage:
        python -m src.worker.credit_expiry --once
        python -m src.worker.credit_expiry --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Credit Lot Expiry Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.CREDIT_EXPIRY_INTERVAL_SECONDS,
        help="Interval between runs in seconds",
    )
    args = parser.parse_args()

    worker = CreditExpiryWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Credit expiry complete:")
            print(f"  Clients checked: {result.clients_checked}")
            print(f"  Lots expired: {result.lots_expired}")
            print(f"  Credits expired: {result.credits_expired}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
