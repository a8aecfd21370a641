"""Credit Account Repository Interface

Defines the contract for client credit accounts and their credit lots.
Writes use optimistic versioning on the account row.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List
from src.domain.credit_account import ClientCreditAccount
from src.domain.credit_lot import CreditLot


class StaleAccountError(Exception):
    """Raised when the account version changed since it was read"""

    def __init__(self, client_id: str, expected_version: int):
        super().__init__(
            f"Credit account for client {client_id} was modified concurrently "
            f"(expected version {expected_version})"
        )
        self.client_id = client_id
        self.expected_version = expected_version


class CreditAccountRepository(ABC):
    """Repository interface for ClientCreditAccount and CreditLot persistence"""

    @abstractmethod
    async def get_by_client_id(
        self, client_id: str, tenant_id: Optional[str] = None
    ) -> Optional[ClientCreditAccount]:
        """Retrieve the account for a client, optionally scoped to a tenant"""
        pass

    @abstractmethod
    async def create(self, account: ClientCreditAccount) -> ClientCreditAccount:
        """Persist a new account"""
        pass

    @abstractmethod
    async def save(self, account: ClientCreditAccount) -> ClientCreditAccount:
        """
        Write account changes if its version is unchanged in storage

        Increments account.version on success.

        Raises:
            StaleAccountError: If another writer updated the account first
        """
        pass

    @abstractmethod
    async def get_lots(self, account_id: int) -> List[CreditLot]:
        """All lots of an account, oldest purchase first"""
        pass

    @abstractmethod
    async def get_lot_by_billing_transaction(self, transaction_id: str) -> Optional[CreditLot]:
        """Lot created by the given billing transaction, if any"""
        pass

    @abstractmethod
    async def add_lot(self, lot: CreditLot) -> CreditLot:
        """Persist a new lot"""
        pass

    @abstractmethod
    async def update_lot(self, lot: CreditLot) -> CreditLot:
        """Persist changes to a lot"""
        pass

    @abstractmethod
    async def get_client_ids_with_expired_lots(self, now: datetime) -> List[str]:
        """Clients owning active lots whose expiry_date is at or before now"""
        pass
