import uuid
from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict

from core import constants


class AffiliateBase(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    referral_code: str
    customer_discount: int
    affiliate_reward: int
    total_earnings: float
    available_balance: float
    pending_balance: float
    total_referrals: int
    successful_referrals: int
    status: constants.AffiliateStatus
    payout_method: constants.PaymentMethod
    payout_details: Dict[str, str] | None = None
    minimum_payout: float
    created_at: datetime
    updated_at: datetime


# Properties to return to client
class Affiliate(AffiliateBase):
    model_config = ConfigDict(from_attributes=True)


class OptIn(BaseModel):
    payout_method: constants.PaymentMethod | None = None
    payout_details: Dict[str, str] | None = None


class AllocationUpdate(BaseModel):
    # range and pool checks raise pool_mismatch in the allocation service
    customer_discount: int


class AllocationOut(BaseModel):
    customer_discount: int
    affiliate_reward: int
    total_discount_pool: int = constants.TOTAL_DISCOUNT_POOL


class PayoutMethodUpdate(BaseModel):
    payout_method: constants.PaymentMethod
    payout_details: Dict[str, str] = {}


class MonthlyEarnings(BaseModel):
    year: int
    month: int
    total_earnings: float
    order_count: int


class EarningsSummary(BaseModel):
    total_earnings: float
    available_balance: float
    pending_balance: float
    last_30_days_earnings: float
    conversion_rate: float
    average_reward: float
    monthly_earnings: List[MonthlyEarnings] = []
