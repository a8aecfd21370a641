"""Consultation Package Domain Entity

Purchasable bundle of consultation credits offered by a tenant.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import BigInteger, Integer, String
from src.domain.base import BaseModel


class ConsultationPackage(BaseModel, table=True):
    """
    Consultation Package - catalogue entry

    Domain Rules:
    - package_id is unique
    - credits_total credits are granted per purchase
    - expires_after_days (optional) bounds the lifetime of granted credits
    """

    __tablename__ = "consultation_packages"

    id: int = Field(
        sa_column=Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    )

    package_id: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True, index=True),
        description="Public package identifier"
    )
    tenant_id: str = Field(index=True)
    name: str = Field(description="Display name")
    description: Optional[str] = Field(default=None)

    credits_total: int = Field(ge=1, description="Credits granted per purchase")
    expires_after_days: Optional[int] = Field(default=None)

    price_amount: int = Field(ge=0, description="Price in minor units")
    currency: str = Field(default="USD", max_length=3)

    is_active: bool = Field(default=True)
    is_featured: bool = Field(default=False)
    purchase_count: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
