"""Billing Transaction Repository Interface

Defines the contract for billing transaction persistence, including the
conditional status writes that serialize concurrent confirmations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Tuple
from src.domain.billing_transaction import BillingTransaction, TransactionStatus


class DuplicatePaymentIntentError(Exception):
    """Raised when a transaction already exists for the payment intent id"""

    def __init__(self, payment_intent_id: str):
        super().__init__(f"Transaction already exists for payment intent {payment_intent_id}")
        self.payment_intent_id = payment_intent_id


class BillingTransactionRepository(ABC):
    """Repository interface for BillingTransaction persistence"""

    @abstractmethod
    async def create(self, transaction: BillingTransaction) -> BillingTransaction:
        """
        Persist a new transaction

        Raises:
            DuplicatePaymentIntentError: If payment_intent_id is already used
        """
        pass

    @abstractmethod
    async def get_by_transaction_id(
        self, transaction_id: str, tenant_id: Optional[str] = None
    ) -> Optional[BillingTransaction]:
        """Retrieve a non-deleted transaction by its public id, optionally scoped to a tenant"""
        pass

    @abstractmethod
    async def get_by_payment_intent_id(self, payment_intent_id: str) -> Optional[BillingTransaction]:
        """Retrieve a non-deleted transaction by gateway payment intent id"""
        pass

    @abstractmethod
    async def mark_succeeded_if_pending(
        self,
        payment_intent_id: str,
        charge_id: Optional[str] = None,
        receipt_url: Optional[str] = None,
    ) -> bool:
        """
        Compare-and-set the status from pending to succeeded

        Returns:
            True if this call performed the transition, False if the
            transaction was no longer pending
        """
        pass

    @abstractmethod
    async def mark_failed_if_pending(self, payment_intent_id: str, reason: Optional[str]) -> bool:
        """Compare-and-set the status from pending to failed"""
        pass

    @abstractmethod
    async def claim_refund(
        self,
        transaction_id: str,
        amount: int,
        reason: Optional[str],
        requested_by: Optional[str],
    ) -> bool:
        """
        Mark a refund as pending on a succeeded, unrefunded transaction

        Only one caller can hold the claim at a time; a claim released
        after a gateway failure can be taken again.

        Returns:
            True if this call took the claim
        """
        pass

    @abstractmethod
    async def release_refund_claim(self, transaction_id: str) -> bool:
        """Clear a pending refund claim, leaving the transaction as it was before the claim"""
        pass

    @abstractmethod
    async def update(self, transaction: BillingTransaction) -> BillingTransaction:
        """Persist changes to an existing transaction"""
        pass

    @abstractmethod
    async def list_by_client(
        self,
        tenant_id: str,
        client_id: str,
        status: Optional[TransactionStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[BillingTransaction], int]:
        """Paginated client history, most recent first, with total count"""
        pass

    @abstractmethod
    async def get_unscheduled_payouts(
        self, tenant_id: str, consultant_id: str
    ) -> List[BillingTransaction]:
        """Succeeded, non-deleted transactions for the consultant not yet in a payout"""
        pass

    @abstractmethod
    async def schedule_payout(
        self,
        transaction_ids: List[int],
        batch_id: str,
        payout_date: datetime,
    ) -> int:
        """
        Mark transactions as scheduled for payout, only where still unscheduled

        Returns:
            Number of rows actually marked
        """
        pass

    @abstractmethod
    async def get_consultants_with_unscheduled_payouts(self) -> List[Tuple[str, str]]:
        """Distinct (tenant_id, consultant_id) pairs with unscheduled succeeded transactions"""
        pass

    @abstractmethod
    async def get_refunded_package_purchases(self) -> List[BillingTransaction]:
        """Refunded package purchases whose credit lot is not yet marked refunded"""
        pass
