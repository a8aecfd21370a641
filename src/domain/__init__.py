from .base import BaseModel, generate_transaction_id, generate_payout_batch_id
from .billing_transaction import BillingTransaction, TransactionStatus, TransactionType, RefundStatus
from .credit_account import ClientCreditAccount
from .credit_lot import CreditLot, CreditLotStatus
from .consultation_package import ConsultationPackage
from .payment_event_log import PaymentEventLog, EventOutcome

__all__ = [
    "BaseModel",
    "generate_transaction_id",
    "generate_payout_batch_id",
    "BillingTransaction",
    "TransactionStatus",
    "TransactionType",
    "RefundStatus",
    "ClientCreditAccount",
    "CreditLot",
    "CreditLotStatus",
    "ConsultationPackage",
    "PaymentEventLog",
    "EventOutcome",
]
