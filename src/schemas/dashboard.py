from typing import List

from pydantic import BaseModel

from .affiliate import Affiliate
from .referral import Referral


class Dashboard(BaseModel):
    affiliate: Affiliate
    referrals: List[Referral] = []
    recent_earnings: float = 0
