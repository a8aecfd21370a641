"""ConfirmPayment Use Case

Confirms a payment with the gateway and applies the purchased credits.
Called both by the client after checkout and by the gateway webhook, so it
must apply credits at most once per transaction.
"""

import logging
from datetime import datetime, timedelta
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import PaymentGateway, PaymentGatewayError, GatewayPaymentIntent
from src.app.repositories.billing_transaction_repository import BillingTransactionRepository
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.app.repositories.consultation_package_repository import ConsultationPackageRepository
from src.domain.billing_transaction import BillingTransaction, TransactionStatus
from src.domain.credit_lot import CreditLot, CreditLotStatus
from .concurrency import run_with_optimistic_retry, ConcurrentUpdateExhausted
from .dtos import ConfirmPaymentResponseDTO

logger = logging.getLogger(__name__)


class ConfirmPayment:
    """
    Use Case: Confirm a payment and credit the client

    Business Rules:
    1. The gateway is authoritative: anything but "succeeded" is rejected
    2. Idempotency: an already succeeded (or refunded) transaction returns
       the earlier outcome without crediting again
    3. The pending -> succeeded transition is a compare-and-set; only the
       caller that wins it applies credits
    4. Status change, credit lot, account summary and package counter are
       committed together; a version conflict on the account rolls all of
       it back and the attempt is retried

    Flow:
    1. Retrieve payment intent from gateway (no local lock held)
    2. Look up transaction by payment intent id
    3. Short-circuit if already confirmed
    4. CAS status, append lot, update account, commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: BillingTransactionRepository,
        account_repo: CreditAccountRepository,
        package_repo: ConsultationPackageRepository,
        gateway: PaymentGateway,
        max_attempts: int = 3,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.account_repo = account_repo
        self.package_repo = package_repo
        self.gateway = gateway
        self.max_attempts = max_attempts

    async def execute(self, payment_intent_id: str) -> Result[ConfirmPaymentResponseDTO]:
        """
        Execute payment confirmation

        Args:
            payment_intent_id: Gateway payment intent id

        Returns:
            Result[ConfirmPaymentResponseDTO]: Same outcome on every successful call
        """
        # Step 1: Authoritative status from the gateway
        try:
            intent = await self.gateway.retrieve_payment_intent(payment_intent_id)
        except PaymentGatewayError as e:
            logger.error(f"Gateway error retrieving payment intent {payment_intent_id}: {e.message}")
            return Return.err(
                Error(
                    code=ErrorCode.EXTERNAL_SERVICE_ERROR,
                    message="Payment gateway unavailable",
                    reason=e.message,
                )
            )

        if not intent.succeeded:
            if intent.canceled:
                await self._mark_failed(payment_intent_id, intent.failure_message or "Payment canceled")
            return Return.err(
                Error(
                    code=ErrorCode.PAYMENT_NOT_SUCCEEDED,
                    message="Payment has not succeeded yet",
                    reason=f"gateway_status={intent.status}",
                )
            )

        # Step 2: Local transaction
        transaction = await self.transaction_repo.get_by_payment_intent_id(payment_intent_id)
        if not transaction:
            logger.error(f"No billing transaction for payment intent {payment_intent_id}")
            return Return.err(
                Error(
                    code=ErrorCode.TRANSACTION_NOT_FOUND,
                    message=f"Transaction for payment intent {payment_intent_id} not found",
                )
            )

        # Step 3: Idempotent short-circuit
        if transaction.status in (TransactionStatus.SUCCEEDED, TransactionStatus.REFUNDED):
            return Return.ok(await self._previous_outcome(transaction))

        if transaction.status == TransactionStatus.FAILED:
            return Return.err(
                Error(
                    code=ErrorCode.PAYMENT_NOT_SUCCEEDED,
                    message="Transaction was marked as failed",
                    reason=transaction.failure_reason,
                )
            )

        # Step 4: Apply under compare-and-set with optimistic retry
        try:
            return await run_with_optimistic_retry(
                self.uow,
                lambda: self._apply(payment_intent_id, intent),
                max_attempts=self.max_attempts,
            )
        except ConcurrentUpdateExhausted as e:
            logger.error(f"Could not apply credits for payment intent {payment_intent_id}: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.CONCURRENT_UPDATE,
                    message="Client account is busy, retry confirmation",
                    reason=str(e),
                )
            )

    async def _apply(
        self, payment_intent_id: str, intent: GatewayPaymentIntent
    ) -> Result[ConfirmPaymentResponseDTO]:
        transaction = await self.transaction_repo.get_by_payment_intent_id(payment_intent_id)

        won = await self.transaction_repo.mark_succeeded_if_pending(
            payment_intent_id,
            charge_id=intent.charge_id,
            receipt_url=intent.receipt_url,
        )
        if not won:
            # Another caller confirmed first
            await self.uow.rollback()
            transaction = await self.transaction_repo.get_by_payment_intent_id(payment_intent_id)
            logger.info(
                f"Payment intent {payment_intent_id} already confirmed concurrently "
                f"(transaction {transaction.transaction_id})"
            )
            return Return.ok(await self._previous_outcome(transaction))

        client_id = transaction.client_id
        account = await self.account_repo.get_by_client_id(client_id)
        if not account:
            transaction_id = transaction.transaction_id
            await self.uow.rollback()
            logger.error(f"Client {client_id} missing while confirming transaction {transaction_id}")
            return Return.err(
                Error(
                    code=ErrorCode.CLIENT_NOT_FOUND,
                    message=f"Client {client_id} not found",
                )
            )

        credits_added = 0
        if transaction.package_id:
            package = await self.package_repo.get_by_package_id(transaction.package_id)
            if package:
                now = datetime.utcnow()
                expiry_date = (
                    now + timedelta(days=package.expires_after_days)
                    if package.expires_after_days
                    else None
                )
                await self.account_repo.add_lot(
                    CreditLot(
                        account_id=account.id,
                        client_id=account.client_id,
                        package_id=package.package_id,
                        package_name=package.name,
                        credits_added=package.credits_total,
                        credits_used=0,
                        credits_remaining=package.credits_total,
                        purchase_date=now,
                        expiry_date=expiry_date,
                        billing_transaction_id=transaction.transaction_id,
                        status=CreditLotStatus.ACTIVE,
                    )
                )
                await self.package_repo.increment_purchase_count(package.package_id)

                credits_added = package.credits_total
                account.available_credits += credits_added
                account.total_credits_purchased += credits_added
            else:
                logger.warning(
                    f"Package {transaction.package_id} missing for transaction "
                    f"{transaction.transaction_id}; no credits applied"
                )

        account.total_spent += transaction.net_amount
        await self.account_repo.save(account)

        await self.uow.commit()

        logger.info(
            f"Payment confirmed: transaction={transaction.transaction_id} "
            f"intent={payment_intent_id} client={account.client_id} credits_added={credits_added}"
        )

        return Return.ok(
            ConfirmPaymentResponseDTO(
                transaction_id=transaction.transaction_id,
                status=TransactionStatus.SUCCEEDED.value,
                credits_added=credits_added,
                available_credits=account.available_credits,
                total_spent=account.total_spent,
                already_confirmed=False,
            )
        )

    async def _previous_outcome(self, transaction: BillingTransaction) -> ConfirmPaymentResponseDTO:
        lot = await self.account_repo.get_lot_by_billing_transaction(transaction.transaction_id)
        account = await self.account_repo.get_by_client_id(transaction.client_id)
        status = transaction.status.value if hasattr(transaction.status, "value") else transaction.status

        return ConfirmPaymentResponseDTO(
            transaction_id=transaction.transaction_id,
            status=status,
            credits_added=lot.credits_added if lot else 0,
            available_credits=account.available_credits if account else 0,
            total_spent=account.total_spent if account else 0,
            already_confirmed=True,
        )

    async def _mark_failed(self, payment_intent_id: str, reason: str) -> None:
        if await self.transaction_repo.mark_failed_if_pending(payment_intent_id, reason):
            await self.uow.commit()
            logger.warning(f"Transaction for payment intent {payment_intent_id} marked failed: {reason}")
