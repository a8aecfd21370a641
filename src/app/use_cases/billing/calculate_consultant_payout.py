"""CalculateConsultantPayout Use Case"""

from typing import Optional
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.repositories.billing_transaction_repository import BillingTransactionRepository
from .dtos import PayoutCalculationDTO


class CalculateConsultantPayout:
    """Break down one transaction into fees and consultant earnings"""

    def __init__(self, transaction_repo: BillingTransactionRepository):
        self.transaction_repo = transaction_repo

    async def execute(self, transaction_id: str, tenant_id: Optional[str] = None) -> Result[PayoutCalculationDTO]:
        transaction = await self.transaction_repo.get_by_transaction_id(transaction_id, tenant_id)
        if not transaction:
            return Return.err(
                Error(code=ErrorCode.TRANSACTION_NOT_FOUND, message=f"Transaction {transaction_id} not found")
            )

        return Return.ok(
            PayoutCalculationDTO(
                transaction_id=transaction.transaction_id,
                gross_amount=transaction.gross_amount,
                net_amount=transaction.net_amount,
                platform_fee=transaction.platform_fee,
                processing_fee=transaction.processing_fee,
                consultant_earnings=transaction.consultant_earnings,
                currency=transaction.currency,
            )
        )
