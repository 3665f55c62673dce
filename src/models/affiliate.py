from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, DateTime
from sqlmodel import Column, Field, SQLModel

from core import constants
from utils.dates import utcnow


class AffiliateBase(SQLModel):
    user_id: UUID = Field(index=True, unique=True)
    referral_code: str = Field(max_length=64, index=True, unique=True)
    customer_discount: int = Field(default=constants.DEFAULT_CUSTOMER_DISCOUNT)
    affiliate_reward: int = Field(default=constants.DEFAULT_AFFILIATE_REWARD)
    total_earnings: Decimal = Field(default=0, max_digits=12, decimal_places=2)
    available_balance: Decimal = Field(default=0, max_digits=12, decimal_places=2)
    # funds of payouts requested but not yet completed or failed
    pending_balance: Decimal = Field(default=0, max_digits=12, decimal_places=2)
    total_referrals: int = Field(default=0)
    successful_referrals: int = Field(default=0)
    status: constants.AffiliateStatus = Field(default=constants.AffiliateStatus.active)
    payout_method: constants.PaymentMethod = Field(default=constants.PaymentMethod.paypal)
    minimum_payout: Decimal = Field(default=25, max_digits=12, decimal_places=2)


class Affiliate(AffiliateBase, table=True):
    __tablename__ = "affiliates"
    __table_args__ = (
        CheckConstraint(
            f"customer_discount + affiliate_reward = {constants.TOTAL_DISCOUNT_POOL}",
            name="ck_affiliates_discount_pool",
        ),
        CheckConstraint("available_balance >= 0", name="ck_affiliates_available_balance"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    payout_details: Optional[dict] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
