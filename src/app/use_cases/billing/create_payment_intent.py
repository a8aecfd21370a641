"""CreatePaymentIntent Use Case

Creates a gateway payment intent for a package purchase or a consultation
payment and records a pending billing transaction keyed by the intent id.
"""

import logging
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import PaymentGateway, PaymentGatewayError
from src.app.repositories.billing_transaction_repository import (
    BillingTransactionRepository,
    DuplicatePaymentIntentError,
)
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.app.repositories.consultation_package_repository import ConsultationPackageRepository
from src.domain.base import generate_transaction_id
from src.domain.billing_transaction import BillingTransaction, TransactionStatus, TransactionType
from src.domain.credit_account import ClientCreditAccount
from .concurrency import run_with_optimistic_retry, ConcurrentUpdateExhausted
from .fees import FeePolicy, calculate_fees
from .dtos import CreatePaymentIntentCommandDTO, PaymentIntentResponseDTO, AmountDTO

logger = logging.getLogger(__name__)


class CreatePaymentIntent:
    """
    Use Case: Create a payment intent

    Business Rules:
    1. amount > 0 and must cover the platform and processing fees
    2. The client must have a credit account; a gateway customer is
       provisioned lazily and its id stored on the account
    3. platform_fee = round(gross * platform%), processing_fee =
       round(gross * gateway% + fixed), net = gross - both (half-up)
    4. The pending transaction is persisted before returning; gateway calls
       happen before any local write
    5. The gateway intent carries an idempotency key derived from the
       transaction id

    Flow:
    1. Validate amount and resolve client account (and package, if any)
    2. Ensure gateway customer, persist its id if it changed
    3. Calculate fees
    4. Create gateway payment intent
    5. Persist pending BillingTransaction and commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: BillingTransactionRepository,
        account_repo: CreditAccountRepository,
        package_repo: ConsultationPackageRepository,
        gateway: PaymentGateway,
        fee_policy: FeePolicy,
        default_currency: str = "USD",
        max_attempts: int = 3,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.account_repo = account_repo
        self.package_repo = package_repo
        self.gateway = gateway
        self.fee_policy = fee_policy
        self.default_currency = default_currency
        self.max_attempts = max_attempts

    async def execute(self, command: CreatePaymentIntentCommandDTO) -> Result[PaymentIntentResponseDTO]:
        """
        Execute payment intent creation

        Args:
            command: CreatePaymentIntentCommandDTO

        Returns:
            Result[PaymentIntentResponseDTO]: client secret, intent id, transaction id and fee split
        """
        currency = (command.currency or self.default_currency).upper()

        # Step 1: Validate inputs
        try:
            fees = calculate_fees(command.amount, self.fee_policy)
        except ValueError as e:
            return Return.err(Error(code=ErrorCode.INVALID_AMOUNT, message=str(e)))

        if not currency.isalpha() or len(currency) != 3:
            return Return.err(
                Error(code=ErrorCode.INVALID_CURRENCY, message=f"Invalid currency code: {currency}")
            )

        account = await self.account_repo.get_by_client_id(command.client_id, command.tenant_id)
        if not account:
            return Return.err(
                Error(
                    code=ErrorCode.CLIENT_NOT_FOUND,
                    message=f"Client {command.client_id} not found",
                    reason="No credit account for client in tenant",
                )
            )

        if command.package_id:
            package = await self.package_repo.get_by_package_id(command.package_id, command.tenant_id)
            if not package or not package.is_active:
                return Return.err(
                    Error(
                        code=ErrorCode.PACKAGE_NOT_FOUND,
                        message=f"Package {command.package_id} not found",
                    )
                )

        transaction_id = generate_transaction_id()

        try:
            # Step 2: Ensure gateway customer
            customer_id = await self.gateway.ensure_customer(
                account.gateway_customer_id,
                email=account.email,
                name=account.name,
                metadata={"clientId": command.client_id, "tenantId": command.tenant_id},
            )
            if customer_id != account.gateway_customer_id:
                await self._store_customer_id(command.client_id, command.tenant_id, customer_id)

            # Step 3: Create payment intent
            intent = await self.gateway.create_payment_intent(
                amount=fees.gross,
                currency=currency,
                customer_id=customer_id,
                metadata={
                    "clientId": command.client_id,
                    "tenantId": command.tenant_id,
                    "packageId": command.package_id or "",
                    "consultationId": command.consultation_id or "",
                },
                description=command.description,
                payment_method_id=command.payment_method_id,
                idempotency_key=f"intent-{transaction_id}",
            )
        except PaymentGatewayError as e:
            logger.error(f"Gateway error creating payment intent for client {command.client_id}: {e.message}")
            return Return.err(
                Error(
                    code=ErrorCode.EXTERNAL_SERVICE_ERROR,
                    message="Payment gateway unavailable",
                    reason=e.message,
                )
            )
        except ConcurrentUpdateExhausted as e:
            return Return.err(
                Error(code=ErrorCode.CONCURRENT_UPDATE, message="Client account is busy, retry", reason=str(e))
            )

        # Step 4: Persist pending transaction
        transaction = BillingTransaction(
            transaction_id=transaction_id,
            tenant_id=command.tenant_id,
            client_id=command.client_id,
            consultant_id=command.consultant_id,
            consultation_id=command.consultation_id,
            package_id=command.package_id,
            transaction_type=(
                TransactionType.PACKAGE_PURCHASE if command.package_id else TransactionType.CONSULTATION_PAYMENT
            ),
            description=command.description or "Consultation payment",
            gross_amount=fees.gross,
            platform_fee=fees.platform_fee,
            processing_fee=fees.processing_fee,
            net_amount=fees.net,
            currency=currency,
            payment_intent_id=intent.id,
            customer_id=customer_id,
            status=TransactionStatus.PENDING,
            created_by=command.created_by,
        )

        try:
            created = await self.transaction_repo.create(transaction)
            await self.uow.commit()
        except DuplicatePaymentIntentError as e:
            await self.uow.rollback()
            logger.error(f"Duplicate payment intent {intent.id} for client {command.client_id}")
            return Return.err(
                Error(code=ErrorCode.DUPLICATE_PAYMENT_INTENT, message=str(e))
            )

        logger.info(
            f"Payment intent created: transaction={created.transaction_id} "
            f"intent={intent.id} client={command.client_id} amount={fees.gross} {currency}"
        )

        return Return.ok(
            PaymentIntentResponseDTO(
                client_secret=intent.client_secret,
                payment_intent_id=intent.id,
                transaction_id=created.transaction_id,
                amount=AmountDTO(
                    gross=fees.gross,
                    platform_fee=fees.platform_fee,
                    processing_fee=fees.processing_fee,
                    net=fees.net,
                    currency=currency,
                ),
                status=TransactionStatus.PENDING.value,
            )
        )

    async def _store_customer_id(self, client_id: str, tenant_id: str, customer_id: str) -> None:
        async def attempt() -> ClientCreditAccount:
            account = await self.account_repo.get_by_client_id(client_id, tenant_id)
            account.gateway_customer_id = customer_id
            saved = await self.account_repo.save(account)
            await self.uow.commit()
            return saved

        await run_with_optimistic_retry(self.uow, attempt, max_attempts=self.max_attempts)
        logger.info(f"Gateway customer {customer_id} linked to client {client_id}")
