from sqlmodel import SQLModel
from .affiliate import Affiliate, AffiliateBase
from .referrals import Referral, ReferralBase
from .payout import Payout, PayoutBase
from .earning_credit import EarningCredit
