"""Billing Transaction Domain Entity

One row per purchase/payment attempt. The gateway payment intent id is the
idempotency anchor for confirmation and is unique across transactions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, Integer, String
from src.domain.base import BaseModel


class TransactionStatus(str, Enum):
    """Transaction lifecycle: pending -> succeeded -> refunded, or pending -> failed"""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class TransactionType(str, Enum):
    PACKAGE_PURCHASE = "package_purchase"
    CONSULTATION_PAYMENT = "consultation_payment"


class RefundStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BillingTransaction(BaseModel, table=True):
    """
    Billing Transaction - persisted payment attempt

    Domain Rules:
    - transaction_id is generated once at intent creation and never changes
    - tenant_id, client_id, consultant_id and package_id are immutable
    - gross = platform_fee + processing_fee + net (minor units, non-negative)
    - payment_intent_id is unique (one transaction per gateway intent)
    - status only moves pending -> succeeded/failed and succeeded -> refunded
    - payout fields are written by the payout aggregator only
    - rows are soft-deleted via is_deleted, never removed
    """

    __tablename__ = "billing_transactions"
    __table_args__ = (
        Index('ix_billing_transactions_client', 'tenant_id', 'client_id'),
        Index('ix_billing_transactions_payout', 'consultant_id', 'status', 'payout_scheduled'),
        Index('ix_billing_transactions_created_at', 'created_at'),
    )

    id: int = Field(
        sa_column=Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
        description="Internal row identifier (auto-increment)"
    )

    transaction_id: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True, index=True),
        description="Human-referenceable transaction id (e.g., TXN-20240115-3F9A0C1B2D)"
    )

    tenant_id: str = Field(index=True, description="Owning tenant")
    client_id: str = Field(index=True, description="Paying client")
    consultant_id: Optional[str] = Field(default=None, description="Consultant who earns the payment")
    consultation_id: Optional[str] = Field(default=None, description="Consultation paid for, if any")
    package_id: Optional[str] = Field(default=None, description="Credit package purchased, if any")

    transaction_type: TransactionType = Field(
        description="package_purchase or consultation_payment"
    )
    description: Optional[str] = Field(default=None)

    # Amounts in minor currency units
    gross_amount: int = Field(ge=0, description="Amount charged to the client")
    platform_fee: int = Field(default=0, ge=0)
    processing_fee: int = Field(default=0, ge=0)
    net_amount: int = Field(default=0, ge=0)
    currency: str = Field(default="USD", max_length=3)

    # Gateway references
    payment_intent_id: str = Field(
        sa_column=Column(String(255), nullable=False, unique=True, index=True),
        description="Gateway payment intent id (idempotency anchor)"
    )
    customer_id: str = Field(description="Gateway customer id")
    charge_id: Optional[str] = Field(default=None)
    receipt_url: Optional[str] = Field(default=None)

    status: TransactionStatus = Field(default=TransactionStatus.PENDING, index=True)
    failure_reason: Optional[str] = Field(default=None)

    # Refund block, present once a refund is initiated
    refund_amount: Optional[int] = Field(default=None)
    refund_status: Optional[RefundStatus] = Field(default=None)
    refund_reason: Optional[str] = Field(default=None)
    refunded_at: Optional[datetime] = Field(default=None)
    refunded_by: Optional[str] = Field(default=None)
    gateway_refund_id: Optional[str] = Field(default=None)

    # Payout block, set by the payout aggregator
    payout_scheduled: bool = Field(default=False)
    payout_scheduled_date: Optional[datetime] = Field(default=None)
    payout_batch_id: Optional[str] = Field(default=None, index=True)
    payout_amount: Optional[int] = Field(default=None)

    created_by: Optional[str] = Field(default=None)
    is_deleted: bool = Field(default=False)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_refundable(self) -> bool:
        return (
            self.status == TransactionStatus.SUCCEEDED
            and self.refunded_at is None
            and self.refund_status != RefundStatus.PENDING
        )

    @property
    def is_package_purchase(self) -> bool:
        return self.package_id is not None

    @property
    def consultant_earnings(self) -> int:
        return self.net_amount - self.platform_fee - self.processing_fee

    @property
    def platform_revenue(self) -> int:
        return self.platform_fee + self.processing_fee
