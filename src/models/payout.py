from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from core import constants
from utils.dates import utcnow


class PayoutBase(SQLModel):
    payout_id: str = Field(max_length=64, index=True, unique=True)
    affiliate_id: UUID = Field(foreign_key="affiliates.id", index=True)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    payment_method: constants.PaymentMethod
    status: constants.PayoutStatus = Field(
        default=constants.PayoutStatus.pending, index=True
    )
    processed_date: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    account_last4: Optional[str] = Field(default=None, max_length=4)
    payment_gateway: Optional[str] = Field(default=None, max_length=64)
    gateway_payout_id: Optional[str] = Field(default=None, max_length=128)
    failure_reason: Optional[str] = None


class Payout(PayoutBase, table=True):
    __tablename__ = "payouts"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
