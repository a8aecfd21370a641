"""Unit tests for PayoutSchedulerWorker

Tests cover:
- Worker initialization with configuration
- run_once executes the payout batch
- Disabled scheduler skips the run
- Use case error raises
- Shutdown disposes the engine
"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

from src.worker.payout_scheduler import PayoutSchedulerWorker
from src.app.use_cases.billing.dtos import PayoutRunResultDTO


def session_factory():
    mock_session = MagicMock()
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=mock_session)


@pytest.fixture
def sample_run_result():
    return PayoutRunResultDTO(
        consultants_checked=4,
        payouts_scheduled=3,
        total_amount=42000,
        below_minimum=1,
        failures=0,
        execution_time_ms=120,
    )


class TestPayoutSchedulerWorkerInit:

    @patch("src.worker.payout_scheduler.ApplicationConfig")
    @patch("src.worker.payout_scheduler.create_async_engine")
    def test_initializes_with_default_config(self, mock_create_engine, mock_app_config):
        mock_app_config.DB_URI = "postgresql+asyncpg://default@localhost/db"
        mock_app_config.PAYOUT_SCHEDULE = "biweekly"
        mock_app_config.MINIMUM_PAYOUT_AMOUNT = 2500
        mock_create_engine.return_value = MagicMock()

        worker = PayoutSchedulerWorker()

        assert worker.db_uri == "postgresql+asyncpg://default@localhost/db"
        assert worker.schedule == "biweekly"
        assert worker.minimum_payout_amount == 2500
        mock_create_engine.assert_called_once()

    @patch("src.worker.payout_scheduler.ApplicationConfig")
    @patch("src.worker.payout_scheduler.create_async_engine")
    def test_zero_minimum_is_respected(self, mock_create_engine, mock_app_config):
        mock_app_config.MINIMUM_PAYOUT_AMOUNT = 5000
        mock_create_engine.return_value = MagicMock()

        worker = PayoutSchedulerWorker(db_uri="sqlite+aiosqlite://", minimum_payout_amount=0)

        assert worker.minimum_payout_amount == 0


@pytest.mark.asyncio
class TestPayoutSchedulerWorkerRunOnce:

    @patch("src.worker.payout_scheduler.ApplicationConfig")
    @patch("src.worker.payout_scheduler.RunPayoutBatch")
    @patch("src.worker.payout_scheduler.SchedulePayouts")
    @patch("src.worker.payout_scheduler.SqlAlchemyUnitOfWork")
    @patch("src.worker.payout_scheduler.SqlAlchemyBillingTransactionRepository")
    @patch("src.worker.payout_scheduler.create_async_engine")
    @patch("src.worker.payout_scheduler.sessionmaker")
    async def test_run_once_executes_batch(
        self,
        mock_sessionmaker,
        mock_create_engine,
        mock_repo_class,
        mock_uow_class,
        mock_schedule_class,
        mock_run_class,
        mock_app_config,
        sample_run_result,
    ):
        """
        Given: Payout scheduler is enabled
        When: run_once is called with a payout date
        Then: The batch use case runs for that date and its result is returned
        """
        mock_app_config.PAYOUT_SCHEDULER_ENABLED = True
        mock_app_config.MINIMUM_PAYOUT_AMOUNT = 5000
        mock_app_config.PAYOUT_SCHEDULE = "weekly"
        mock_sessionmaker.return_value = session_factory()
        mock_create_engine.return_value = MagicMock()

        mock_use_case = MagicMock()
        mock_result = MagicMock()
        mock_result.is_err.return_value = False
        mock_result.value = sample_run_result
        mock_use_case.execute = AsyncMock(return_value=mock_result)
        mock_run_class.return_value = mock_use_case

        payout_date = datetime(2024, 6, 8)
        worker = PayoutSchedulerWorker()
        result = await worker.run_once(payout_date)

        assert result.payouts_scheduled == 3
        mock_use_case.execute.assert_awaited_once_with(payout_date)
        assert mock_schedule_class.call_args.kwargs["minimum_payout_amount"] == 5000

    @patch("src.worker.payout_scheduler.ApplicationConfig")
    @patch("src.worker.payout_scheduler.create_async_engine")
    async def test_run_once_skips_when_disabled(self, mock_create_engine, mock_app_config):
        mock_app_config.PAYOUT_SCHEDULER_ENABLED = False
        mock_create_engine.return_value = MagicMock()

        worker = PayoutSchedulerWorker(db_uri="sqlite+aiosqlite://")
        result = await worker.run_once()

        assert result.consultants_checked == 0
        assert result.payouts_scheduled == 0

    @patch("src.worker.payout_scheduler.ApplicationConfig")
    @patch("src.worker.payout_scheduler.RunPayoutBatch")
    @patch("src.worker.payout_scheduler.SchedulePayouts")
    @patch("src.worker.payout_scheduler.SqlAlchemyUnitOfWork")
    @patch("src.worker.payout_scheduler.SqlAlchemyBillingTransactionRepository")
    @patch("src.worker.payout_scheduler.create_async_engine")
    @patch("src.worker.payout_scheduler.sessionmaker")
    async def test_run_once_raises_on_error(
        self,
        mock_sessionmaker,
        mock_create_engine,
        mock_repo_class,
        mock_uow_class,
        mock_schedule_class,
        mock_run_class,
        mock_app_config,
    ):
        mock_app_config.PAYOUT_SCHEDULER_ENABLED = True
        mock_sessionmaker.return_value = session_factory()
        mock_create_engine.return_value = MagicMock()

        mock_use_case = MagicMock()
        mock_result = MagicMock()
        mock_result.is_err.return_value = True
        mock_result.error.message = "Database connection failed"
        mock_use_case.execute = AsyncMock(return_value=mock_result)
        mock_run_class.return_value = mock_use_case

        worker = PayoutSchedulerWorker(db_uri="sqlite+aiosqlite://", schedule="weekly")

        with pytest.raises(RuntimeError, match="Payout run failed"):
            await worker.run_once(datetime(2024, 6, 8))


@pytest.mark.asyncio
class TestPayoutSchedulerWorkerShutdown:

    @patch("src.worker.payout_scheduler.create_async_engine")
    async def test_shutdown_disposes_engine(self, mock_create_engine):
        mock_engine = MagicMock()
        mock_engine.dispose = AsyncMock()
        mock_create_engine.return_value = mock_engine

        worker = PayoutSchedulerWorker(db_uri="sqlite+aiosqlite://", schedule="weekly", minimum_payout_amount=1)
        await worker.shutdown()

        mock_engine.dispose.assert_awaited_once()
