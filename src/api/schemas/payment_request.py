"""Request schemas for Billing API

Pydantic models for validating incoming HTTP requests.
Tenant and client identity come from the caller context, not the body.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class CreatePaymentIntentRequestSchema(BaseModel):
    """
    Request schema for creating a payment intent

    Used for POST /billing/payments/intents endpoint.
    """

    amount: int = Field(..., gt=0, description="Gross amount in minor currency units (must be > 0)")
    currency: Optional[str] = Field(default=None, description="ISO 4217 code, defaults to USD")
    package_id: Optional[str] = Field(default=None, description="Credit package being purchased")
    consultant_id: Optional[str] = Field(default=None)
    consultation_id: Optional[str] = Field(default=None)
    quantity: int = Field(default=1, ge=1)
    payment_method_id: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None, max_length=500)
    client_id: Optional[str] = Field(
        default=None,
        description="Paying client; admins may pay on behalf of a client, others default to themselves",
    )

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        if v is None:
            return v
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be a 3-letter ISO code")
        return v.upper()

    class Config:
        json_schema_extra = {
            "example": {
                "amount": 10000,
                "currency": "USD",
                "package_id": "pkg_five_sessions",
            }
        }


class RefundRequestSchema(BaseModel):
    """
    Request schema for refunding a transaction

    Used for POST /billing/payments/transactions/{transaction_id}/refund endpoint.
    """

    amount: Optional[int] = Field(default=None, gt=0, description="Defaults to the net amount")
    reason: str = Field(..., min_length=1, description="e.g. client_requested, duplicate")


class OpenCreditAccountRequestSchema(BaseModel):
    client_id: str = Field(..., min_length=1)
    email: Optional[str] = Field(default=None)
    name: Optional[str] = Field(default=None)
    grant_free_trial: bool = Field(default=True)


class DeductCreditRequestSchema(BaseModel):
    client_id: str = Field(..., min_length=1)
    consultation_id: str = Field(..., min_length=1)


class UseFreeTrialRequestSchema(BaseModel):
    client_id: str = Field(..., min_length=1)
    consultation_id: str = Field(..., min_length=1)


class SchedulePayoutRequestSchema(BaseModel):
    payout_date: Optional[datetime] = Field(
        default=None, description="Defaults to the next date of the configured schedule"
    )
