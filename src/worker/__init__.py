"""Background workers for billing service"""
from .payout_scheduler import PayoutSchedulerWorker
from .refund_reconciler import RefundReconcilerWorker
from .credit_expiry import CreditExpiryWorker

__all__ = ["PayoutSchedulerWorker", "RefundReconcilerWorker", "CreditExpiryWorker"]
