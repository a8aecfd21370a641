import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from src.domain.billing_transaction import BillingTransaction, TransactionStatus, TransactionType
from src.domain.credit_account import ClientCreditAccount
from src.domain.credit_lot import CreditLot, CreditLotStatus
from src.domain.consultation_package import ConsultationPackage


@pytest.fixture
def mock_uow():
    """Mock unit of work"""
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock()
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()
    return uow


@pytest.fixture
def mock_transaction_repo():
    """Mock billing transaction repository"""
    return MagicMock()


@pytest.fixture
def mock_account_repo():
    """Mock credit account repository"""
    repo = MagicMock()
    repo.save = AsyncMock(side_effect=lambda account: account)
    repo.update_lot = AsyncMock(side_effect=lambda lot: lot)
    repo.add_lot = AsyncMock(side_effect=lambda lot: lot)
    return repo


@pytest.fixture
def mock_package_repo():
    """Mock consultation package repository"""
    repo = MagicMock()
    repo.increment_purchase_count = AsyncMock()
    return repo


@pytest.fixture
def mock_gateway():
    """Mock payment gateway"""
    return MagicMock()


@pytest.fixture
def sample_account():
    """Client account with no credits and an unused free trial"""
    return ClientCreditAccount(
        id=1,
        tenant_id="tenant_123",
        client_id="client_123",
        email="client@example.com",
        name="Test Client",
        gateway_customer_id="cus_123",
        available_credits=0,
        free_trial_eligible=True,
        free_trial_used=False,
        free_trial_expires_at=None,
        version=1,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )


@pytest.fixture
def sample_package():
    """Five-credit package"""
    return ConsultationPackage(
        id=1,
        package_id="pkg_5",
        tenant_id="tenant_123",
        name="Five Sessions",
        credits_total=5,
        expires_after_days=90,
        price_amount=10000,
        currency="USD",
        is_active=True,
    )


@pytest.fixture
def pending_purchase():
    """Pending package purchase of 10000 minor units"""
    return BillingTransaction(
        id=10,
        transaction_id="TXN-20240115-AAAAAAAAAA",
        tenant_id="tenant_123",
        client_id="client_123",
        consultant_id="consultant_1",
        package_id="pkg_5",
        transaction_type=TransactionType.PACKAGE_PURCHASE,
        gross_amount=10000,
        platform_fee=1500,
        processing_fee=320,
        net_amount=8180,
        currency="USD",
        payment_intent_id="pi_123",
        customer_id="cus_123",
        status=TransactionStatus.PENDING,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )


@pytest.fixture
def make_lot():
    """Factory for credit lots"""

    def _make(
        credits_added=5,
        credits_remaining=None,
        billing_transaction_id="TXN-20240115-AAAAAAAAAA",
        status=CreditLotStatus.ACTIVE,
        purchase_date=None,
        expiry_date=None,
        lot_id=1,
    ):
        remaining = credits_added if credits_remaining is None else credits_remaining
        return CreditLot(
            id=lot_id,
            account_id=1,
            client_id="client_123",
            package_id="pkg_5",
            package_name="Five Sessions",
            credits_added=credits_added,
            credits_used=credits_added - remaining,
            credits_remaining=remaining,
            purchase_date=purchase_date or datetime.utcnow(),
            expiry_date=expiry_date,
            billing_transaction_id=billing_transaction_id,
            status=status,
        )

    return _make
