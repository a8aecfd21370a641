"""Client Credit Account Domain Entity

Aggregate holding a client's consultation-credit summary, lifetime counters
and free-trial flag. Credit lots hang off the account (see credit_lot.py).
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import BigInteger, Integer
from src.domain.base import BaseModel


class ClientCreditAccount(BaseModel, table=True):
    """
    Client Credit Account - per-client credit summary

    Domain Rules:
    - One account per client (client_id is unique)
    - available_credits equals the sum of credits_remaining over active lots
    - Lifetime counters only grow, except through refund clawback
    - The free trial is consumed at most once
    - version increments on every write; writers compare-and-set on it
    """

    __tablename__ = "client_credit_accounts"

    id: int = Field(
        sa_column=Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
        description="Unique account identifier (auto-increment)"
    )

    tenant_id: str = Field(index=True, description="Owning tenant")
    client_id: str = Field(unique=True, index=True, description="Client id (one account per client)")
    email: Optional[str] = Field(default=None)
    name: Optional[str] = Field(default=None)
    gateway_customer_id: Optional[str] = Field(default=None, description="Payment gateway customer id")

    available_credits: int = Field(default=0, ge=0)

    total_credits_purchased: int = Field(default=0)
    total_credits_used: int = Field(default=0)
    total_spent: int = Field(default=0, description="Lifetime spend in minor units")
    total_consultations: int = Field(default=0)
    last_consultation_at: Optional[datetime] = Field(default=None)

    free_trial_eligible: bool = Field(default=False)
    free_trial_used: bool = Field(default=False)
    free_trial_expires_at: Optional[datetime] = Field(default=None)
    free_trial_used_at: Optional[datetime] = Field(default=None)
    free_trial_consultation_id: Optional[str] = Field(default=None)

    version: int = Field(default=1, description="Optimistic concurrency version")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def free_trial_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        return self.free_trial_expires_at is not None and self.free_trial_expires_at < now

    def free_trial_available(self, now: datetime | None = None) -> bool:
        return (
            self.free_trial_eligible
            and not self.free_trial_used
            and not self.free_trial_expired(now)
        )
