"""Consultation Package Repository Interface"""

from abc import ABC, abstractmethod
from typing import Optional, List
from src.domain.consultation_package import ConsultationPackage


class ConsultationPackageRepository(ABC):

    @abstractmethod
    async def get_by_package_id(
        self, package_id: str, tenant_id: Optional[str] = None
    ) -> Optional[ConsultationPackage]:
        pass

    @abstractmethod
    async def list_active(self, tenant_id: str, featured_only: bool = False) -> List[ConsultationPackage]:
        pass

    @abstractmethod
    async def increment_purchase_count(self, package_id: str) -> None:
        pass
