"""SQLAlchemy implementation of ConsultationPackageRepository"""

from datetime import datetime
from typing import Optional, List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy import update
from src.app.repositories.consultation_package_repository import ConsultationPackageRepository
from src.domain.consultation_package import ConsultationPackage


class SqlAlchemyConsultationPackageRepository(ConsultationPackageRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_package_id(
        self, package_id: str, tenant_id: Optional[str] = None
    ) -> Optional[ConsultationPackage]:
        stmt = select(ConsultationPackage).where(ConsultationPackage.package_id == package_id)
        if tenant_id is not None:
            stmt = stmt.where(ConsultationPackage.tenant_id == tenant_id)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(self, tenant_id: str, featured_only: bool = False) -> List[ConsultationPackage]:
        stmt = select(ConsultationPackage).where(
            ConsultationPackage.tenant_id == tenant_id,
            ConsultationPackage.is_active == True,  # noqa: E712
        )
        if featured_only:
            stmt = stmt.where(ConsultationPackage.is_featured == True)  # noqa: E712

        stmt = stmt.order_by(ConsultationPackage.is_featured.desc(), ConsultationPackage.price_amount)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def increment_purchase_count(self, package_id: str) -> None:
        """Atomic counter increment in SQL"""
        stmt = (
            update(ConsultationPackage)
            .where(ConsultationPackage.package_id == package_id)
            .values(
                purchase_count=ConsultationPackage.purchase_count + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
