from fastapi import APIRouter

from api.api_v1.endpoints import (
    affiliate,
    payouts,
    referral,
)

api_router = APIRouter()

api_router.include_router(
    affiliate.router, prefix="/affiliate", tags=["affiliate"]
)
api_router.include_router(
    referral.router, prefix="/referrals", tags=["referrals"]
)
api_router.include_router(
    payouts.router, prefix="/payouts", tags=["payouts"]
)
api_router.redirect_slashes = False
