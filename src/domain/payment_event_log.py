"""Payment Event Log Domain Entity

Append-only record of inbound gateway webhook events and what was done with them.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, Integer, Text
from src.domain.base import BaseModel


class EventOutcome(str, Enum):
    DISPATCHED = "dispatched"            # Routed to payment confirmation
    DISPATCH_FAILED = "dispatch_failed"  # Confirmation returned an error
    FAILURE_LOGGED = "failure_logged"    # payment_failed recorded, no state change
    IGNORED = "ignored"                  # Unhandled event type


class PaymentEventLog(BaseModel, table=True):
    __tablename__ = "payment_event_logs"
    __table_args__ = (
        Index('ix_payment_event_logs_event_id', 'event_id'),
        Index('ix_payment_event_logs_payment_intent', 'payment_intent_id'),
    )

    id: int = Field(
        sa_column=Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    )

    event_id: str = Field(description="Gateway event id")
    event_type: str = Field(description="Gateway event type, e.g. payment_intent.succeeded")
    payment_intent_id: Optional[str] = Field(default=None)
    outcome: EventOutcome = Field()
    message: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=datetime.utcnow)
