"""
List Payment History Use Case

Retrieves a client's billing transactions with filters and page-based pagination.
"""
import math
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.repositories.billing_transaction_repository import BillingTransactionRepository
from src.domain.billing_transaction import TransactionStatus
from .dtos import PaymentHistoryResponseDTO, PaginationDTO
from .mappers import to_transaction_dto

MAX_PAGE_SIZE = 100


class ListPaymentHistory:
    """
    Use case: View a client's payment history

    Transactions are ordered by created_at DESC (most recent first).
    Non-admin callers may only list their own history.
    """

    def __init__(self, transaction_repo: BillingTransactionRepository):
        """
        Initialize with transaction repository.

        Args:
            transaction_repo: BillingTransactionRepository instance
        """
        self.transaction_repo = transaction_repo

    async def execute(
        self,
        tenant_id: str,
        client_id: str,
        requester_client_id: Optional[str] = None,
        is_admin: bool = False,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Result[PaymentHistoryResponseDTO]:
        """
        List transactions for a client.

        Args:
            tenant_id: Tenant identifier
            client_id: Client whose history is listed
            requester_client_id: Client id of the caller
            is_admin: Caller holds the admin role
            page: 1-based page number
            limit: Page size, at most 100
            status: Optional status filter
            start_date: Only transactions created at or after
            end_date: Only transactions created at or before

        Returns:
            Result[PaymentHistoryResponseDTO]: Page of transactions plus pagination info
        """
        if not is_admin and client_id != requester_client_id:
            return Return.err(
                Error(code=ErrorCode.ACCESS_DENIED, message="Not allowed to view this client's history")
            )

        if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
            return Return.err(
                Error(
                    code=ErrorCode.VALIDATION_ERROR,
                    message=f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}",
                )
            )

        status_filter = None
        if status:
            try:
                status_filter = TransactionStatus(status)
            except ValueError:
                return Return.err(
                    Error(code=ErrorCode.VALIDATION_ERROR, message=f"Unknown transaction status: {status}")
                )

        transactions, total = await self.transaction_repo.list_by_client(
            tenant_id=tenant_id,
            client_id=client_id,
            status=status_filter,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=(page - 1) * limit,
        )

        return Return.ok(
            PaymentHistoryResponseDTO(
                transactions=[to_transaction_dto(t) for t in transactions],
                pagination=PaginationDTO(
                    current_page=page,
                    total_pages=math.ceil(total / limit) if total else 0,
                    total_items=total,
                    items_per_page=limit,
                ),
            )
        )
