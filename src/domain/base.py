import uuid
from datetime import datetime
from sqlmodel import SQLModel


class BaseModel(SQLModel):
    """Base class for all persisted domain entities"""
    pass


def generate_transaction_id(now: datetime | None = None) -> str:
    """Human-referenceable transaction id, e.g. TXN-20240115-3F9A0C1B2D"""
    now = now or datetime.utcnow()
    return f"TXN-{now.strftime('%Y%m%d')}-{uuid.uuid4().hex[:10].upper()}"


def generate_payout_batch_id(now: datetime | None = None) -> str:
    now = now or datetime.utcnow()
    return f"PAYOUT-{now.strftime('%Y%m%d')}-{uuid.uuid4().hex[:8].upper()}"
