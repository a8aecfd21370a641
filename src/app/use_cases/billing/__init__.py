"""Billing domain use cases"""
from .create_payment_intent import CreatePaymentIntent
from .confirm_payment import ConfirmPayment
from .validate_consultation_eligibility import ValidateConsultationEligibility
from .deduct_consultation_credit import DeductConsultationCredit
from .free_trial import CheckFreeTrialEligibility, UseFreeTrial
from .open_credit_account import OpenCreditAccount
from .get_credit_balance import GetCreditBalance
from .expire_credit_lots import ExpireCreditLots
from .refund_payment import RefundPayment
from .repair_refund_clawbacks import RepairRefundClawbacks
from .schedule_payouts import SchedulePayouts, RunPayoutBatch, next_payout_date
from .calculate_consultant_payout import CalculateConsultantPayout
from .handle_gateway_webhook import HandleGatewayWebhook
from .get_payment_status import GetPaymentStatus
from .list_payment_history import ListPaymentHistory
from .list_available_packages import ListAvailablePackages
from .fees import FeePolicy, FeeBreakdown, calculate_fees
from .dtos import (
    CreatePaymentIntentCommandDTO,
    PaymentIntentResponseDTO,
    ConfirmPaymentResponseDTO,
    TransactionDetailDTO,
    PaymentHistoryResponseDTO,
    RefundCommandDTO,
    RefundResponseDTO,
    RefundRepairResultDTO,
    EligibilityResponseDTO,
    DeductCreditCommandDTO,
    CreditDeductionResponseDTO,
    FreeTrialStatusDTO,
    UseFreeTrialCommandDTO,
    CreditBalanceResponseDTO,
    OpenCreditAccountCommandDTO,
    CreditAccountResponseDTO,
    CreditExpiryResultDTO,
    PackageDTO,
    PayoutCalculationDTO,
    PayoutScheduleResponseDTO,
    PayoutRunResultDTO,
    WebhookResultDTO,
)

__all__ = [
    "CreatePaymentIntent",
    "ConfirmPayment",
    "ValidateConsultationEligibility",
    "DeductConsultationCredit",
    "CheckFreeTrialEligibility",
    "UseFreeTrial",
    "OpenCreditAccount",
    "GetCreditBalance",
    "ExpireCreditLots",
    "RefundPayment",
    "RepairRefundClawbacks",
    "SchedulePayouts",
    "RunPayoutBatch",
    "next_payout_date",
    "CalculateConsultantPayout",
    "HandleGatewayWebhook",
    "GetPaymentStatus",
    "ListPaymentHistory",
    "ListAvailablePackages",
    "FeePolicy",
    "FeeBreakdown",
    "calculate_fees",
    "CreatePaymentIntentCommandDTO",
    "PaymentIntentResponseDTO",
    "ConfirmPaymentResponseDTO",
    "TransactionDetailDTO",
    "PaymentHistoryResponseDTO",
    "RefundCommandDTO",
    "RefundResponseDTO",
    "RefundRepairResultDTO",
    "EligibilityResponseDTO",
    "DeductCreditCommandDTO",
    "CreditDeductionResponseDTO",
    "FreeTrialStatusDTO",
    "UseFreeTrialCommandDTO",
    "CreditBalanceResponseDTO",
    "OpenCreditAccountCommandDTO",
    "CreditAccountResponseDTO",
    "CreditExpiryResultDTO",
    "PackageDTO",
    "PayoutCalculationDTO",
    "PayoutScheduleResponseDTO",
    "PayoutRunResultDTO",
    "WebhookResultDTO",
]
