import uuid
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from core import constants


class ReferralMetadata(BaseModel):
    ip_address: str | None = None
    user_agent: str | None = None
    source: str | None = None


class ReferralBase(BaseModel):
    id: uuid.UUID
    referral_id: str
    affiliate_id: uuid.UUID
    referred_user_id: uuid.UUID
    referral_date: datetime
    customer_discount: int
    affiliate_reward: int
    status: constants.ReferralStatus
    discount_applied: bool
    reward_paid: bool
    first_order_id: str | None = None
    discount_eligible_amount: float | None = None
    reward_amount: float | None = None
    cancel_reason: str | None = None
    expires_at: datetime
    source: str | None = None


class Referral(ReferralBase):
    model_config = ConfigDict(from_attributes=True)


class ReferralPage(BaseModel):
    referrals: List[Referral]
    current_page: int
    total_pages: int
    total_referrals: int


class ReferralCreate(ReferralMetadata):
    referral_code: str
    referred_user_id: uuid.UUID


class ReferralComplete(BaseModel):
    first_order_id: str
    discount_eligible_amount: Decimal = Field(ge=0)


class ReferralCancel(BaseModel):
    reason: str
