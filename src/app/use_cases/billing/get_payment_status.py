"""GetPaymentStatus Use Case"""

from typing import Optional
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.repositories.billing_transaction_repository import BillingTransactionRepository
from .dtos import TransactionDetailDTO
from .mappers import to_transaction_dto


class GetPaymentStatus:
    """
    Use Case: Fetch one transaction

    The caller must own the transaction (same client) or be an admin.
    Lookups are scoped to the caller's tenant.
    """

    def __init__(self, transaction_repo: BillingTransactionRepository):
        self.transaction_repo = transaction_repo

    async def execute(
        self,
        transaction_id: str,
        tenant_id: Optional[str],
        requester_client_id: Optional[str],
        is_admin: bool = False,
    ) -> Result[TransactionDetailDTO]:
        transaction = await self.transaction_repo.get_by_transaction_id(transaction_id, tenant_id)
        if not transaction:
            return Return.err(
                Error(code=ErrorCode.TRANSACTION_NOT_FOUND, message=f"Transaction {transaction_id} not found")
            )

        if not is_admin and transaction.client_id != requester_client_id:
            return Return.err(
                Error(
                    code=ErrorCode.ACCESS_DENIED,
                    message="Not allowed to view this transaction",
                )
            )

        return Return.ok(to_transaction_dto(transaction))
