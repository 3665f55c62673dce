from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, SQLModel

from core import constants
from utils.dates import utcnow


class ReferralBase(SQLModel):
    referral_id: str = Field(max_length=64, index=True, unique=True)
    affiliate_id: UUID = Field(foreign_key="affiliates.id", index=True)
    referred_user_id: UUID = Field(index=True, unique=True)
    referral_date: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    # value copies of the affiliate allocation at attribution time
    customer_discount: int
    affiliate_reward: int
    status: constants.ReferralStatus = Field(
        default=constants.ReferralStatus.pending, index=True
    )
    discount_applied: bool = Field(default=False)
    reward_paid: bool = Field(default=False)
    first_order_id: Optional[str] = Field(default=None, max_length=64)
    discount_eligible_amount: Optional[Decimal] = Field(
        default=None, max_digits=12, decimal_places=2
    )
    reward_amount: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    cancel_reason: Optional[str] = None
    expires_at: datetime = Field(index=True, sa_type=DateTime(timezone=True))
    ip_address: Optional[str] = Field(default=None, max_length=64)
    user_agent: Optional[str] = Field(default=None, max_length=512)
    source: Optional[str] = Field(default=None, max_length=128)


class Referral(ReferralBase, table=True):
    __tablename__ = "referrals"
    __table_args__ = (
        CheckConstraint(
            f"customer_discount + affiliate_reward = {constants.TOTAL_DISCOUNT_POOL}",
            name="ck_referrals_discount_pool",
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
