"""Credit Lot Domain Entity

A batch of consultation credits granted by one package purchase, tracked
until depletion, expiry or refund.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, Integer, ForeignKey, String
from src.domain.base import BaseModel


class CreditLotStatus(str, Enum):
    ACTIVE = "active"
    DEPLETED = "depleted"
    EXPIRED = "expired"
    REFUNDED = "refunded"


class CreditLot(BaseModel, table=True):
    """
    Credit Lot - credits from a single package purchase

    Domain Rules:
    - credits_used + credits_remaining = credits_added
    - billing_transaction_id references the originating BillingTransaction
      by its transaction_id (non-owning) and is unique: one lot per purchase
    - Consumption is FIFO across active lots, one credit per consultation
    """

    __tablename__ = "credit_lots"
    __table_args__ = (
        Index('ix_credit_lots_account_status', 'account_id', 'status'),
        Index('ix_credit_lots_expiry', 'status', 'expiry_date'),
    )

    id: int = Field(
        sa_column=Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
        description="Unique lot identifier (auto-increment)"
    )

    account_id: int = Field(
        sa_column=Column(
            BigInteger().with_variant(Integer, "sqlite"),
            ForeignKey("client_credit_accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        description="Owning ClientCreditAccount"
    )

    client_id: str = Field(index=True)
    package_id: str = Field(description="Package that granted the credits")
    package_name: Optional[str] = Field(default=None)

    credits_added: int = Field(ge=0)
    credits_used: int = Field(default=0, ge=0)
    credits_remaining: int = Field(ge=0)

    purchase_date: datetime = Field(default_factory=datetime.utcnow)
    expiry_date: Optional[datetime] = Field(default=None)
    expired_at: Optional[datetime] = Field(default=None)
    refunded_at: Optional[datetime] = Field(default=None)

    billing_transaction_id: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True, index=True),
        description="transaction_id of the purchase that created this lot"
    )

    status: CreditLotStatus = Field(default=CreditLotStatus.ACTIVE)

    def consume_one(self) -> None:
        """Use one credit; the lot becomes depleted when none remain"""
        self.credits_used += 1
        self.credits_remaining -= 1
        if self.credits_remaining == 0:
            self.status = CreditLotStatus.DEPLETED
