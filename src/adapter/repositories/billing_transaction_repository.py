"""SQLAlchemy implementation of BillingTransactionRepository

Status transitions are single conditional UPDATE statements; the affected
row count tells the caller whether it won the transition.
"""

from datetime import datetime
from typing import Optional, List, Tuple
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy import update, func
from sqlalchemy.exc import IntegrityError
from src.app.repositories.billing_transaction_repository import (
    BillingTransactionRepository,
    DuplicatePaymentIntentError,
)
from src.domain.billing_transaction import BillingTransaction, TransactionStatus, RefundStatus
from src.domain.credit_lot import CreditLot, CreditLotStatus


class SqlAlchemyBillingTransactionRepository(BillingTransactionRepository):
    """
    SQLAlchemy implementation of BillingTransactionRepository

    Features:
    - Unique payment_intent_id enforced by the database
    - Compare-and-set status updates (pending -> succeeded/failed)
    - Refund claim so one request reaches the gateway per transaction
    - Conditional payout marking so no transaction is paid out twice
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, transaction: BillingTransaction) -> BillingTransaction:
        """
        Create a new billing transaction

        Raises:
            DuplicatePaymentIntentError: If payment_intent_id already exists
        """
        self.session.add(transaction)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicatePaymentIntentError(transaction.payment_intent_id) from e
        await self.session.refresh(transaction)
        return transaction

    async def get_by_transaction_id(
        self, transaction_id: str, tenant_id: Optional[str] = None
    ) -> Optional[BillingTransaction]:
        stmt = select(BillingTransaction).where(
            BillingTransaction.transaction_id == transaction_id,
            BillingTransaction.is_deleted == False,  # noqa: E712
        )
        if tenant_id is not None:
            stmt = stmt.where(BillingTransaction.tenant_id == tenant_id)

        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def get_by_payment_intent_id(self, payment_intent_id: str) -> Optional[BillingTransaction]:
        stmt = select(BillingTransaction).where(
            BillingTransaction.payment_intent_id == payment_intent_id,
            BillingTransaction.is_deleted == False,  # noqa: E712
        )
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def mark_succeeded_if_pending(
        self,
        payment_intent_id: str,
        charge_id: Optional[str] = None,
        receipt_url: Optional[str] = None,
    ) -> bool:
        """
        UPDATE ... SET status='succeeded' WHERE payment_intent_id=? AND status='pending'

        Concurrent callers serialize on the row; only one sees rowcount 1.
        """
        now = datetime.utcnow()
        values = {
            "status": TransactionStatus.SUCCEEDED,
            "completed_at": now,
            "updated_at": now,
        }
        if charge_id:
            values["charge_id"] = charge_id
        if receipt_url:
            values["receipt_url"] = receipt_url

        stmt = (
            update(BillingTransaction)
            .where(
                BillingTransaction.payment_intent_id == payment_intent_id,
                BillingTransaction.status == TransactionStatus.PENDING,
                BillingTransaction.is_deleted == False,  # noqa: E712
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_failed_if_pending(self, payment_intent_id: str, reason: Optional[str]) -> bool:
        stmt = (
            update(BillingTransaction)
            .where(
                BillingTransaction.payment_intent_id == payment_intent_id,
                BillingTransaction.status == TransactionStatus.PENDING,
                BillingTransaction.is_deleted == False,  # noqa: E712
            )
            .values(
                status=TransactionStatus.FAILED,
                failure_reason=reason,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def claim_refund(
        self,
        transaction_id: str,
        amount: int,
        reason: Optional[str],
        requested_by: Optional[str],
    ) -> bool:
        """
        UPDATE ... SET refund_status='pending' WHERE status='succeeded'
        AND refunded_at IS NULL AND refund_status IS NULL

        One concurrent refund request wins the claim; the rest see rowcount 0.
        """
        stmt = (
            update(BillingTransaction)
            .where(
                BillingTransaction.transaction_id == transaction_id,
                BillingTransaction.status == TransactionStatus.SUCCEEDED,
                BillingTransaction.refunded_at.is_(None),
                BillingTransaction.refund_status.is_(None),
                BillingTransaction.is_deleted == False,  # noqa: E712
            )
            .values(
                refund_status=RefundStatus.PENDING,
                refund_amount=amount,
                refund_reason=reason,
                refunded_by=requested_by,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def release_refund_claim(self, transaction_id: str) -> bool:
        stmt = (
            update(BillingTransaction)
            .where(
                BillingTransaction.transaction_id == transaction_id,
                BillingTransaction.refund_status == RefundStatus.PENDING,
            )
            .values(
                refund_status=None,
                refund_amount=None,
                refund_reason=None,
                refunded_by=None,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def update(self, transaction: BillingTransaction) -> BillingTransaction:
        self.session.add(transaction)
        await self.session.flush()
        return transaction

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
        """
        Paginated client history, most recent first

        Returns:
            (transactions on this page, total matching count)
        """
        conditions = [
            BillingTransaction.tenant_id == tenant_id,
            BillingTransaction.client_id == client_id,
            BillingTransaction.is_deleted == False,  # noqa: E712
        ]
        if status is not None:
            conditions.append(BillingTransaction.status == status)
        if start_date is not None:
            conditions.append(BillingTransaction.created_at >= start_date)
        if end_date is not None:
            conditions.append(BillingTransaction.created_at <= end_date)

        count_stmt = select(func.count()).select_from(BillingTransaction).where(*conditions)
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar_one()

        stmt = (
            select(BillingTransaction)
            .where(*conditions)
            .order_by(BillingTransaction.created_at.desc(), BillingTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def get_unscheduled_payouts(
        self, tenant_id: str, consultant_id: str
    ) -> List[BillingTransaction]:
        stmt = (
            select(BillingTransaction)
            .where(
                BillingTransaction.tenant_id == tenant_id,
                BillingTransaction.consultant_id == consultant_id,
                BillingTransaction.status == TransactionStatus.SUCCEEDED,
                BillingTransaction.payout_scheduled == False,  # noqa: E712
                BillingTransaction.is_deleted == False,  # noqa: E712
            )
            .order_by(BillingTransaction.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def schedule_payout(
        self,
        transaction_ids: List[int],
        batch_id: str,
        payout_date: datetime,
    ) -> int:
        """Mark rows still unscheduled; payout_amount is computed per row"""
        if not transaction_ids:
            return 0

        stmt = (
            update(BillingTransaction)
            .where(
                BillingTransaction.id.in_(transaction_ids),
                BillingTransaction.status == TransactionStatus.SUCCEEDED,
                BillingTransaction.payout_scheduled == False,  # noqa: E712
            )
            .values(
                payout_scheduled=True,
                payout_scheduled_date=payout_date,
                payout_batch_id=batch_id,
                payout_amount=(
                    BillingTransaction.net_amount
                    - BillingTransaction.platform_fee
                    - BillingTransaction.processing_fee
                ),
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def get_consultants_with_unscheduled_payouts(self) -> List[Tuple[str, str]]:
        stmt = (
            select(BillingTransaction.tenant_id, BillingTransaction.consultant_id)
            .where(
                BillingTransaction.consultant_id.is_not(None),
                BillingTransaction.status == TransactionStatus.SUCCEEDED,
                BillingTransaction.payout_scheduled == False,  # noqa: E712
                BillingTransaction.is_deleted == False,  # noqa: E712
            )
            .distinct()
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def get_refunded_package_purchases(self) -> List[BillingTransaction]:
        """Refunded package purchases whose credit lot has not been clawed back"""
        stmt = (
            select(BillingTransaction)
            .join(CreditLot, CreditLot.billing_transaction_id == BillingTransaction.transaction_id)
            .where(
                BillingTransaction.status == TransactionStatus.REFUNDED,
                BillingTransaction.package_id.is_not(None),
                CreditLot.status != CreditLotStatus.REFUNDED,
            )
            .order_by(BillingTransaction.refunded_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
