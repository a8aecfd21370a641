"""Unit tests for payout use cases"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from libs.result import Return, Error
from src.app.errors import ErrorCode
from src.app.use_cases.billing.calculate_consultant_payout import CalculateConsultantPayout
from src.app.use_cases.billing.dtos import PayoutScheduleResponseDTO
from src.app.use_cases.billing.schedule_payouts import (
    SchedulePayouts,
    RunPayoutBatch,
    next_payout_date,
)
from src.domain.billing_transaction import BillingTransaction, TransactionStatus, TransactionType

PAYOUT_DATE = datetime(2024, 6, 8)


def earning(row_id: int, net: int, platform: int = 0, processing: int = 0) -> BillingTransaction:
    return BillingTransaction(
        id=row_id,
        transaction_id=f"TXN-20240601-{row_id:010d}",
        tenant_id="tenant_123",
        client_id="client_123",
        consultant_id="consultant_1",
        transaction_type=TransactionType.CONSULTATION_PAYMENT,
        gross_amount=net + platform + processing,
        platform_fee=platform,
        processing_fee=processing,
        net_amount=net,
        payment_intent_id=f"pi_{row_id}",
        customer_id="cus_123",
        status=TransactionStatus.SUCCEEDED,
    )


class TestNextPayoutDate:

    def test_weekly(self):
        assert next_payout_date("weekly", datetime(2024, 6, 1, 15, 30)) == datetime(2024, 6, 8)

    def test_biweekly(self):
        assert next_payout_date("biweekly", datetime(2024, 6, 1, 15, 30)) == datetime(2024, 6, 15)

    def test_monthly(self):
        assert next_payout_date("monthly", datetime(2024, 6, 1)) == datetime(2024, 7, 1)

    def test_unknown_schedule(self):
        with pytest.raises(ValueError):
            next_payout_date("daily")


@pytest.mark.asyncio
class TestSchedulePayouts:

    async def test_schedules_batch_above_minimum(self, mock_uow, mock_transaction_repo):
        """
        Given: Two unscheduled earnings totalling 6000 with a 5000 minimum
        When: Payouts are scheduled
        Then: Both rows are marked in one batch and committed
        """
        rows = [earning(1, 4000), earning(2, 2000)]
        mock_transaction_repo.get_unscheduled_payouts = AsyncMock(return_value=rows)
        mock_transaction_repo.schedule_payout = AsyncMock(return_value=2)
        use_case = SchedulePayouts(uow=mock_uow, transaction_repo=mock_transaction_repo, minimum_payout_amount=5000)

        result = await use_case.execute("tenant_123", "consultant_1", PAYOUT_DATE)

        assert result.is_ok()
        assert result.value.scheduled is True
        assert result.value.total_amount == 6000
        assert result.value.count == 2
        assert result.value.payout_batch_id.startswith("PAYOUT-")
        ids, batch_id, payout_date = mock_transaction_repo.schedule_payout.call_args[0]
        assert ids == [1, 2]
        assert batch_id == result.value.payout_batch_id
        assert payout_date == PAYOUT_DATE
        mock_uow.commit.assert_awaited_once()

    async def test_earnings_exclude_fees(self, mock_uow, mock_transaction_repo):
        rows = [earning(1, 8180, platform=1500, processing=320)]
        mock_transaction_repo.get_unscheduled_payouts = AsyncMock(return_value=rows)
        mock_transaction_repo.schedule_payout = AsyncMock(return_value=1)
        use_case = SchedulePayouts(uow=mock_uow, transaction_repo=mock_transaction_repo, minimum_payout_amount=0)

        result = await use_case.execute("tenant_123", "consultant_1", PAYOUT_DATE)

        assert result.value.total_amount == 6360

    async def test_below_minimum_carries_forward(self, mock_uow, mock_transaction_repo):
        mock_transaction_repo.get_unscheduled_payouts = AsyncMock(return_value=[earning(1, 4999)])
        mock_transaction_repo.schedule_payout = AsyncMock()
        use_case = SchedulePayouts(uow=mock_uow, transaction_repo=mock_transaction_repo, minimum_payout_amount=5000)

        result = await use_case.execute("tenant_123", "consultant_1", PAYOUT_DATE)

        assert result.is_ok()
        assert result.value.scheduled is False
        assert result.value.reason == "below_minimum"
        assert result.value.minimum == 5000
        mock_transaction_repo.schedule_payout.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_concurrent_run_rolls_back(self, mock_uow, mock_transaction_repo):
        """
        Given: Another run marked one of the rows first
        When: Payouts are scheduled
        Then: Nothing is committed and CONCURRENT_UPDATE is returned
        """
        rows = [earning(1, 4000), earning(2, 2000)]
        mock_transaction_repo.get_unscheduled_payouts = AsyncMock(return_value=rows)
        mock_transaction_repo.schedule_payout = AsyncMock(return_value=1)
        use_case = SchedulePayouts(uow=mock_uow, transaction_repo=mock_transaction_repo, minimum_payout_amount=5000)

        result = await use_case.execute("tenant_123", "consultant_1", PAYOUT_DATE)

        assert result.is_err()
        assert result.error.code == ErrorCode.CONCURRENT_UPDATE
        mock_uow.rollback.assert_awaited_once()
        mock_uow.commit.assert_not_called()


@pytest.mark.asyncio
class TestRunPayoutBatch:

    async def test_tallies_outcomes_per_consultant(self, mock_transaction_repo):
        mock_transaction_repo.get_consultants_with_unscheduled_payouts = AsyncMock(
            return_value=[("tenant_123", "c1"), ("tenant_123", "c2"), ("tenant_456", "c3")]
        )
        schedule_payouts = MagicMock()
        schedule_payouts.execute = AsyncMock(
            side_effect=[
                Return.ok(PayoutScheduleResponseDTO(consultant_id="c1", scheduled=True, total_amount=7000, count=2)),
                Return.ok(PayoutScheduleResponseDTO(consultant_id="c2", scheduled=False, total_amount=100, count=1,
                                                    reason="below_minimum", minimum=5000)),
                Return.err(Error(code=ErrorCode.CONCURRENT_UPDATE, message="raced")),
            ]
        )
        use_case = RunPayoutBatch(transaction_repo=mock_transaction_repo, schedule_payouts=schedule_payouts)

        result = await use_case.execute(PAYOUT_DATE)

        assert result.is_ok()
        assert result.value.consultants_checked == 3
        assert result.value.payouts_scheduled == 1
        assert result.value.total_amount == 7000
        assert result.value.below_minimum == 1
        assert result.value.failures == 1


@pytest.mark.asyncio
class TestCalculateConsultantPayout:

    async def test_breakdown(self, mock_transaction_repo):
        mock_transaction_repo.get_by_transaction_id = AsyncMock(
            return_value=earning(1, 8180, platform=1500, processing=320)
        )
        use_case = CalculateConsultantPayout(transaction_repo=mock_transaction_repo)

        result = await use_case.execute("TXN-20240601-0000000001")

        assert result.is_ok()
        assert result.value.gross_amount == 10000
        assert result.value.consultant_earnings == 6360

    async def test_unknown_transaction(self, mock_transaction_repo):
        mock_transaction_repo.get_by_transaction_id = AsyncMock(return_value=None)
        use_case = CalculateConsultantPayout(transaction_repo=mock_transaction_repo)

        result = await use_case.execute("TXN-X")

        assert result.error.code == ErrorCode.TRANSACTION_NOT_FOUND
