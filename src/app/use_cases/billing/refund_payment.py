"""RefundPayment Use Case

Refunds a succeeded transaction through the gateway and claws back the
credits a package purchase granted.
"""

import logging
from datetime import datetime
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import PaymentGateway, PaymentGatewayError
from src.app.repositories.billing_transaction_repository import BillingTransactionRepository
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.domain.billing_transaction import TransactionStatus, RefundStatus
from .clawback import claw_back_credits, ClawbackTargetMissing
from .concurrency import run_with_optimistic_retry, ConcurrentUpdateExhausted
from .dtos import RefundCommandDTO, RefundResponseDTO

logger = logging.getLogger(__name__)


class RefundPayment:
    """
    Use Case: Refund a transaction

    Business Rules:
    1. Only succeeded, not yet refunded transactions are refundable
    2. amount defaults to the net amount and may not exceed it
    3. A conditional claim (refund_status -> pending) is committed before
       the gateway call; only one request per transaction holds it
    4. The gateway refund carries an idempotency key derived from the
       transaction id; if it fails the claim is released and the
       transaction is left as it was
    5. The transaction is marked refunded and committed before the clawback
    6. Package purchases give back the credits still in their lot and have
       the credits already consumed from it drained from the client's other
       lots; if the clawback cannot be applied the refund still stands and
       the repair job picks it up later

    Flow:
    1. Load transaction and check preconditions
    2. Claim the refund, commit
    3. Refund through the gateway
    4. Mark transaction refunded, commit
    5. Claw back credits under optimistic retry
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: BillingTransactionRepository,
        account_repo: CreditAccountRepository,
        gateway: PaymentGateway,
        max_attempts: int = 3,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.account_repo = account_repo
        self.gateway = gateway
        self.max_attempts = max_attempts

    async def execute(self, command: RefundCommandDTO) -> Result[RefundResponseDTO]:
        # Step 1: Preconditions
        transaction = await self.transaction_repo.get_by_transaction_id(
            command.transaction_id, command.tenant_id
        )
        if not transaction:
            return Return.err(
                Error(
                    code=ErrorCode.TRANSACTION_NOT_FOUND,
                    message=f"Transaction {command.transaction_id} not found",
                )
            )

        if not transaction.is_refundable:
            return Return.err(
                Error(
                    code=ErrorCode.NOT_REFUNDABLE,
                    message="Transaction is not refundable",
                    reason=f"status={transaction.status.value}",
                )
            )

        amount = command.amount if command.amount is not None else transaction.net_amount
        if amount > transaction.net_amount:
            return Return.err(
                Error(
                    code=ErrorCode.REFUND_EXCEEDS_AMOUNT,
                    message=f"Refund amount {amount} exceeds refundable amount {transaction.net_amount}",
                )
            )

        # Step 2: Claim the refund so concurrent requests cannot both reach the gateway
        transaction_id = transaction.transaction_id
        payment_intent_id = transaction.payment_intent_id
        net_amount = transaction.net_amount
        claimed = await self.transaction_repo.claim_refund(
            transaction_id, amount, command.reason, command.requested_by
        )
        if not claimed:
            await self.uow.rollback()
            logger.warning(f"Refund for transaction {transaction_id} already claimed by another request")
            return Return.err(
                Error(
                    code=ErrorCode.NOT_REFUNDABLE,
                    message="Transaction is not refundable",
                    reason="refund already in progress or completed",
                )
            )
        await self.uow.commit()

        # Step 3: Gateway refund
        try:
            refund = await self.gateway.create_refund(
                payment_intent_id,
                amount,
                reason=command.reason,
                metadata={
                    "transactionId": transaction_id,
                    "originalAmount": str(net_amount),
                },
                idempotency_key=f"refund-{transaction_id}",
            )
        except PaymentGatewayError as e:
            logger.error(f"Gateway refund failed for transaction {transaction_id}: {e.message}")
            await self.transaction_repo.release_refund_claim(transaction_id)
            await self.uow.commit()
            return Return.err(
                Error(
                    code=ErrorCode.EXTERNAL_SERVICE_ERROR,
                    message="Payment gateway unavailable",
                    reason=e.message,
                )
            )

        # Step 4: Record refund
        transaction = await self.transaction_repo.get_by_transaction_id(transaction_id)
        now = datetime.utcnow()
        transaction.status = TransactionStatus.REFUNDED
        transaction.refund_amount = amount
        transaction.refund_status = RefundStatus.SUCCEEDED
        transaction.refund_reason = command.reason
        transaction.refunded_at = now
        transaction.refunded_by = command.requested_by
        transaction.gateway_refund_id = refund.id
        transaction.updated_at = now
        await self.transaction_repo.update(transaction)
        await self.uow.commit()

        logger.info(
            f"Refund processed: transaction={transaction_id} "
            f"refund={refund.id} amount={amount}"
        )

        # Step 5: Clawback
        credits_clawed_back = 0
        if transaction.is_package_purchase:
            credits_clawed_back = await self._claw_back(transaction_id)

        return Return.ok(
            RefundResponseDTO(
                transaction_id=transaction_id,
                refund_id=refund.id,
                amount=amount,
                status=RefundStatus.SUCCEEDED.value,
                credits_clawed_back=credits_clawed_back,
            )
        )

    async def _claw_back(self, transaction_id: str) -> int:
        async def attempt() -> int:
            transaction = await self.transaction_repo.get_by_transaction_id(transaction_id)
            credits = await claw_back_credits(self.account_repo, transaction)
            if credits is None:
                return 0
            await self.uow.commit()
            return credits

        try:
            return await run_with_optimistic_retry(self.uow, attempt, max_attempts=self.max_attempts)
        except (ClawbackTargetMissing, ConcurrentUpdateExhausted) as e:
            await self.uow.rollback()
            logger.error(
                f"Refund recorded but credits not clawed back for transaction {transaction_id}: {e}"
            )
            return 0
