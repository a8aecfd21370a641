"""SQLAlchemy implementation of PaymentEventLogRepository"""

from typing import List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.payment_event_log_repository import PaymentEventLogRepository
from src.domain.payment_event_log import PaymentEventLog


class SqlAlchemyPaymentEventLogRepository(PaymentEventLogRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, entry: PaymentEventLog) -> PaymentEventLog:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_by_event_id(self, event_id: str) -> List[PaymentEventLog]:
        stmt = (
            select(PaymentEventLog)
            .where(PaymentEventLog.event_id == event_id)
            .order_by(PaymentEventLog.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
