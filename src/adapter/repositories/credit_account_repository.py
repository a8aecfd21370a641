"""SQLAlchemy implementation of CreditAccountRepository

Accounts are written with optimistic versioning: the version column is
compared and bumped in one conditional UPDATE before the remaining
changes are flushed in the same transaction.
"""

from datetime import datetime
from typing import Optional, List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy import update
from src.app.repositories.credit_account_repository import CreditAccountRepository, StaleAccountError
from src.domain.credit_account import ClientCreditAccount
from src.domain.credit_lot import CreditLot, CreditLotStatus


class SqlAlchemyCreditAccountRepository(CreditAccountRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_client_id(
        self, client_id: str, tenant_id: Optional[str] = None
    ) -> Optional[ClientCreditAccount]:
        """
        Retrieve the account for a client

        Always reloads the row so a retried read-modify-write sees the
        latest version.
        """
        stmt = select(ClientCreditAccount).where(ClientCreditAccount.client_id == client_id)
        if tenant_id is not None:
            stmt = stmt.where(ClientCreditAccount.tenant_id == tenant_id)

        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def create(self, account: ClientCreditAccount) -> ClientCreditAccount:
        self.session.add(account)
        await self.session.flush()
        await self.session.refresh(account)
        return account

    async def save(self, account: ClientCreditAccount) -> ClientCreditAccount:
        """
        Write account changes if the stored version still matches

        Raises:
            StaleAccountError: If another writer bumped the version first
        """
        expected_version = account.version
        now = datetime.utcnow()

        stmt = (
            update(ClientCreditAccount)
            .where(
                ClientCreditAccount.id == account.id,
                ClientCreditAccount.version == expected_version,
            )
            .values(version=expected_version + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            raise StaleAccountError(account.client_id, expected_version)

        account.version = expected_version + 1
        account.updated_at = now
        self.session.add(account)
        await self.session.flush()
        return account

    async def get_lots(self, account_id: int) -> List[CreditLot]:
        stmt = (
            select(CreditLot)
            .where(CreditLot.account_id == account_id)
            .order_by(CreditLot.purchase_date, CreditLot.id)
        )
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def get_lot_by_billing_transaction(self, transaction_id: str) -> Optional[CreditLot]:
        stmt = select(CreditLot).where(CreditLot.billing_transaction_id == transaction_id)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def add_lot(self, lot: CreditLot) -> CreditLot:
        self.session.add(lot)
        await self.session.flush()
        await self.session.refresh(lot)
        return lot

    async def update_lot(self, lot: CreditLot) -> CreditLot:
        self.session.add(lot)
        await self.session.flush()
        return lot

    async def get_client_ids_with_expired_lots(self, now: datetime) -> List[str]:
        stmt = (
            select(CreditLot.client_id)
            .where(
                CreditLot.status == CreditLotStatus.ACTIVE,
                CreditLot.expiry_date.is_not(None),
                CreditLot.expiry_date <= now,
            )
            .distinct()
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
