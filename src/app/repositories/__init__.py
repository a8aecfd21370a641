from .billing_transaction_repository import BillingTransactionRepository, DuplicatePaymentIntentError
from .credit_account_repository import CreditAccountRepository, StaleAccountError
from .consultation_package_repository import ConsultationPackageRepository
from .payment_event_log_repository import PaymentEventLogRepository

__all__ = [
    "BillingTransactionRepository",
    "DuplicatePaymentIntentError",
    "CreditAccountRepository",
    "StaleAccountError",
    "ConsultationPackageRepository",
    "PaymentEventLogRepository",
]
