from .affiliate import (
    Affiliate,
    AllocationOut,
    AllocationUpdate,
    EarningsSummary,
    MonthlyEarnings,
    OptIn,
    PayoutMethodUpdate,
)
from .referral import (
    Referral,
    ReferralCancel,
    ReferralComplete,
    ReferralCreate,
    ReferralMetadata,
    ReferralPage,
)
from .payout import GatewayDetails, Payout, PayoutFailure, PayoutRequested
from .dashboard import Dashboard
