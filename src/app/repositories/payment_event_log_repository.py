"""Payment Event Log Repository Interface"""

from abc import ABC, abstractmethod
from typing import List
from src.domain.payment_event_log import PaymentEventLog


class PaymentEventLogRepository(ABC):

    @abstractmethod
    async def create(self, entry: PaymentEventLog) -> PaymentEventLog:
        """Append an event log entry"""
        pass

    @abstractmethod
    async def get_by_event_id(self, event_id: str) -> List[PaymentEventLog]:
        """All entries recorded for a gateway event id"""
        pass
