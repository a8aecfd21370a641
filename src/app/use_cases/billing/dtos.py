"""Data Transfer Objects for Billing Use Cases

Pydantic models for command inputs and response outputs.
Monetary amounts are integers in minor currency units.
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Payment intents and confirmation
# ---------------------------------------------------------------------------

class CreatePaymentIntentCommandDTO(BaseModel):
    """
    Command DTO for creating a payment intent

    Used as input to CreatePaymentIntent use case.
    """

    tenant_id: str = Field(..., description="Tenant identifier")
    client_id: str = Field(..., description="Paying client")
    amount: int = Field(..., gt=0, description="Gross amount in minor units (must be > 0)")
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    package_id: Optional[str] = Field(default=None, description="Package being purchased")
    consultant_id: Optional[str] = Field(default=None)
    consultation_id: Optional[str] = Field(default=None)
    quantity: int = Field(default=1, ge=1)
    payment_method_id: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None)
    created_by: Optional[str] = Field(default=None, description="User who initiated the purchase")


class AmountDTO(BaseModel):
    gross: int
    platform_fee: int
    processing_fee: int
    net: int
    currency: str


class PaymentIntentResponseDTO(BaseModel):
    client_secret: Optional[str] = None
    payment_intent_id: str
    transaction_id: str
    amount: AmountDTO
    status: str


class ConfirmPaymentResponseDTO(BaseModel):
    """Outcome of a payment confirmation; identical on repeated confirmation"""

    transaction_id: str
    status: str
    credits_added: int = Field(default=0, description="Credits granted by this purchase")
    available_credits: int = Field(default=0, description="Client balance after confirmation")
    total_spent: int = 0
    already_confirmed: bool = Field(default=False, description="True when an earlier call applied the credits")


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

class RefundInfoDTO(BaseModel):
    refund_amount: Optional[int] = None
    refund_status: Optional[str] = None
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None
    gateway_refund_id: Optional[str] = None


class PayoutInfoDTO(BaseModel):
    scheduled: bool = False
    scheduled_date: Optional[datetime] = None
    payout_batch_id: Optional[str] = None
    amount: Optional[int] = None


class TransactionDetailDTO(BaseModel):
    transaction_id: str
    tenant_id: str
    client_id: str
    consultant_id: Optional[str] = None
    consultation_id: Optional[str] = None
    package_id: Optional[str] = None
    transaction_type: str
    description: Optional[str] = None
    amount: AmountDTO
    payment_intent_id: str
    customer_id: str
    charge_id: Optional[str] = None
    receipt_url: Optional[str] = None
    status: str
    failure_reason: Optional[str] = None
    refund: Optional[RefundInfoDTO] = None
    payout: PayoutInfoDTO
    created_at: datetime
    completed_at: Optional[datetime] = None


class PaginationDTO(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class PaymentHistoryResponseDTO(BaseModel):
    transactions: List[TransactionDetailDTO]
    pagination: PaginationDTO


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------

class RefundCommandDTO(BaseModel):
    """
    Command DTO for refunding a transaction

    amount defaults to the transaction's net amount when omitted.
    """

    transaction_id: str = Field(..., min_length=1)
    tenant_id: Optional[str] = Field(default=None, description="Restrict lookup to this tenant")
    amount: Optional[int] = Field(default=None, gt=0, description="Refund amount in minor units")
    reason: str = Field(..., min_length=1)
    requested_by: Optional[str] = Field(default=None)


class RefundResponseDTO(BaseModel):
    transaction_id: str
    refund_id: str
    amount: int
    status: str
    credits_clawed_back: int = 0


class RefundRepairDTO(BaseModel):
    transaction_id: str
    client_id: str
    credits_clawed_back: int


class RefundRepairResultDTO(BaseModel):
    transactions_checked: int
    repaired: int
    repairs: List[RefundRepairDTO]
    failures: int = 0
    execution_time_ms: int


# ---------------------------------------------------------------------------
# Credits
# ---------------------------------------------------------------------------

class EligibilityResponseDTO(BaseModel):
    valid: bool
    payment_required: bool
    method: str = Field(..., description="free_trial, credits or payment")
    message: str
    credits_available: Optional[int] = None


class DeductCreditCommandDTO(BaseModel):
    client_id: str = Field(..., min_length=1)
    consultation_id: str = Field(..., min_length=1)
    tenant_id: Optional[str] = None


class CreditDeductionResponseDTO(BaseModel):
    client_id: str
    consultation_id: str
    billing_transaction_id: Optional[str] = Field(
        default=None, description="Purchase whose lot supplied the credit"
    )
    available_credits: int
    total_credits_used: int


class FreeTrialStatusDTO(BaseModel):
    eligible: bool
    used: bool
    expired: bool = False
    expires_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None


class UseFreeTrialCommandDTO(BaseModel):
    client_id: str = Field(..., min_length=1)
    consultation_id: str = Field(..., min_length=1)
    tenant_id: Optional[str] = None


class CreditLotDTO(BaseModel):
    package_id: str
    package_name: Optional[str] = None
    credits_added: int
    credits_used: int
    credits_remaining: int
    purchase_date: datetime
    expiry_date: Optional[datetime] = None
    billing_transaction_id: str
    status: str


class LifetimeStatsDTO(BaseModel):
    total_credits_purchased: int = 0
    total_credits_used: int = 0
    total_spent: int = 0
    total_consultations: int = 0
    last_consultation_at: Optional[datetime] = None


class CreditBalanceResponseDTO(BaseModel):
    available_credits: int
    free_trial: FreeTrialStatusDTO
    active_credits: List[CreditLotDTO]
    lifetime: LifetimeStatsDTO
    warning: Optional[str] = None


class OpenCreditAccountCommandDTO(BaseModel):
    tenant_id: str = Field(..., min_length=1)
    client_id: str = Field(..., min_length=1)
    email: Optional[str] = None
    name: Optional[str] = None
    grant_free_trial: bool = True


class CreditAccountResponseDTO(BaseModel):
    tenant_id: str
    client_id: str
    available_credits: int
    free_trial: FreeTrialStatusDTO
    created_at: datetime


class CreditExpiryResultDTO(BaseModel):
    clients_checked: int
    lots_expired: int
    credits_expired: int
    failures: int = 0
    execution_time_ms: int


# ---------------------------------------------------------------------------
# Packages and payouts
# ---------------------------------------------------------------------------

class PackageDTO(BaseModel):
    package_id: str
    name: str
    description: Optional[str] = None
    credits_total: int
    expires_after_days: Optional[int] = None
    price_amount: int
    currency: str
    is_featured: bool = False


class PayoutCalculationDTO(BaseModel):
    transaction_id: str
    gross_amount: int
    net_amount: int
    platform_fee: int
    processing_fee: int
    consultant_earnings: int
    currency: str


class PayoutScheduleResponseDTO(BaseModel):
    consultant_id: str
    scheduled: bool
    total_amount: int
    count: int
    payout_date: Optional[datetime] = None
    payout_batch_id: Optional[str] = None
    reason: Optional[str] = Field(default=None, description="Why nothing was scheduled, e.g. below_minimum")
    minimum: Optional[int] = None


class PayoutRunResultDTO(BaseModel):
    consultants_checked: int
    payouts_scheduled: int
    total_amount: int
    below_minimum: int
    failures: int
    execution_time_ms: int


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------

class WebhookResultDTO(BaseModel):
    received: bool = True
    event_id: str
    event_type: str
    outcome: str
