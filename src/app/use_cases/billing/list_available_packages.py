"""ListAvailablePackages Use Case"""

from typing import List
from libs.result import Result, Return
from src.app.repositories.consultation_package_repository import ConsultationPackageRepository
from .dtos import PackageDTO


class ListAvailablePackages:
    def __init__(self, package_repo: ConsultationPackageRepository):
        self.package_repo = package_repo

    async def execute(self, tenant_id: str, featured_only: bool = False) -> Result[List[PackageDTO]]:
        packages = await self.package_repo.list_active(tenant_id, featured_only=featured_only)
        return Return.ok(
            [
                PackageDTO(
                    package_id=p.package_id,
                    name=p.name,
                    description=p.description,
                    credits_total=p.credits_total,
                    expires_after_days=p.expires_after_days,
                    price_amount=p.price_amount,
                    currency=p.currency,
                    is_featured=p.is_featured,
                )
                for p in packages
            ]
        )
