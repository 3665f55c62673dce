import enum

# The discount pool shared between customer discount and affiliate reward.
TOTAL_DISCOUNT_POOL = 15

DEFAULT_CUSTOMER_DISCOUNT = 10
DEFAULT_AFFILIATE_REWARD = 5

RECENT_EARNINGS_DAYS = 30
REFERRALS_PAGE_SIZE = 20
DASHBOARD_REFERRALS_LIMIT = 10


class AffiliateStatus(str, enum.Enum):
    active = "active"
    paused = "paused"
    suspended = "suspended"


class ReferralStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    expired = "expired"
    cancelled = "cancelled"


class PayoutStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class PaymentMethod(str, enum.Enum):
    paypal = "paypal"
    bank_transfer = "bank_transfer"
    crypto = "crypto"
