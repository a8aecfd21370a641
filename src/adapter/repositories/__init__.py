from .billing_transaction_repository import SqlAlchemyBillingTransactionRepository
from .credit_account_repository import SqlAlchemyCreditAccountRepository
from .consultation_package_repository import SqlAlchemyConsultationPackageRepository
from .payment_event_log_repository import SqlAlchemyPaymentEventLogRepository

__all__ = [
    "SqlAlchemyBillingTransactionRepository",
    "SqlAlchemyCreditAccountRepository",
    "SqlAlchemyConsultationPackageRepository",
    "SqlAlchemyPaymentEventLogRepository",
]
