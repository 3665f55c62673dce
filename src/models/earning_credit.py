from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from utils.dates import utcnow


class EarningCredit(SQLModel, table=True):
    __tablename__ = "earning_credits"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    # idempotency key, an order is credited at most once
    order_id: str = Field(max_length=64, index=True, unique=True)
    affiliate_id: UUID = Field(foreign_key="affiliates.id", index=True)
    referral_id: Optional[UUID] = Field(default=None, foreign_key="referrals.id")
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    created_at: datetime = Field(
        default_factory=utcnow, index=True, sa_type=DateTime(timezone=True)
    )
