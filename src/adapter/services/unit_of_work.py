"""Unit of work over a single async session

Repositories built on the same session write into one database
transaction; commit() makes all of it visible at once.
"""

from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.services.unit_of_work import UnitOfWork


class SqlAlchemyUnitOfWork(UnitOfWork):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        # Expires loaded entities; the next read reloads them
        await self.session.rollback()
