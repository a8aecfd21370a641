"""Unit tests for ExpireCreditLots use case"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

from src.app.repositories.credit_account_repository import StaleAccountError
from src.app.use_cases.billing.expire_credit_lots import ExpireCreditLots
from src.domain.credit_lot import CreditLotStatus

NOW = datetime(2024, 6, 1, 12, 0)


@pytest.mark.asyncio
class TestExpireCreditLots:

    async def test_expires_past_due_lots_and_reduces_balance(
        self, mock_uow, mock_account_repo, sample_account, make_lot
    ):
        """
        Given: One lot past expiry with 2 credits left and one still valid
        When: Expiry runs
        Then: Only the past-due lot expires and the balance drops by 2
        """
        due = make_lot(credits_added=5, credits_remaining=2, expiry_date=NOW - timedelta(days=1),
                       billing_transaction_id="TXN-A", lot_id=1)
        valid = make_lot(credits_added=5, expiry_date=NOW + timedelta(days=1),
                         billing_transaction_id="TXN-B", lot_id=2)
        sample_account.available_credits = 7
        mock_account_repo.get_client_ids_with_expired_lots = AsyncMock(return_value=["client_123"])
        mock_account_repo.get_by_client_id = AsyncMock(return_value=sample_account)
        mock_account_repo.get_lots = AsyncMock(return_value=[due, valid])
        use_case = ExpireCreditLots(uow=mock_uow, account_repo=mock_account_repo)

        result = await use_case.execute(now=NOW)

        assert result.is_ok()
        assert result.value.clients_checked == 1
        assert result.value.lots_expired == 1
        assert result.value.credits_expired == 2
        assert due.status == CreditLotStatus.EXPIRED
        assert due.expired_at == NOW
        assert valid.status == CreditLotStatus.ACTIVE
        assert sample_account.available_credits == 5
        mock_uow.commit.assert_awaited_once()

    async def test_nothing_due(self, mock_uow, mock_account_repo):
        mock_account_repo.get_client_ids_with_expired_lots = AsyncMock(return_value=[])
        use_case = ExpireCreditLots(uow=mock_uow, account_repo=mock_account_repo)

        result = await use_case.execute(now=NOW)

        assert result.value.lots_expired == 0
        mock_uow.commit.assert_not_called()

    @patch("src.app.use_cases.billing.concurrency.asyncio.sleep", new_callable=AsyncMock)
    async def test_conflicting_client_counts_as_failure(
        self, mock_sleep, mock_uow, mock_account_repo, sample_account, make_lot
    ):
        mock_account_repo.get_client_ids_with_expired_lots = AsyncMock(return_value=["client_123"])
        mock_account_repo.get_by_client_id = AsyncMock(return_value=sample_account)
        mock_account_repo.get_lots = AsyncMock(
            side_effect=lambda account_id: [make_lot(expiry_date=NOW - timedelta(days=1))]
        )
        mock_account_repo.save = AsyncMock(side_effect=StaleAccountError("client_123", 1))
        sample_account.available_credits = 5
        use_case = ExpireCreditLots(uow=mock_uow, account_repo=mock_account_repo, max_attempts=2)

        result = await use_case.execute(now=NOW)

        assert result.is_ok()
        assert result.value.failures == 1
        assert result.value.lots_expired == 0
