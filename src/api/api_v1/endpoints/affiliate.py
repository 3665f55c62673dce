from typing import List

from fastapi import APIRouter, Query
from sqlmodel import Session

import schemas
from api.api_v1.deps import CurrentUserDep, SessionDep
from core import constants
from core.errors import NotFound
from models import Affiliate
from services import affiliate_ledger, payouts, referrals

router = APIRouter()


def _current_affiliate(session: Session, user_id) -> Affiliate:
    affiliate = affiliate_ledger.get_affiliate_by_user(session, user_id)
    if affiliate is None:
        raise NotFound("You are not enrolled in the affiliate program")
    return affiliate


@router.post("/opt-in", response_model=schemas.Affiliate, status_code=201)
async def opt_in(session: SessionDep, user_id: CurrentUserDep, body: schemas.OptIn | None = None):
    body = body or schemas.OptIn()
    return affiliate_ledger.create_affiliate(
        session,
        user_id,
        payout_method=body.payout_method,
        payout_details=body.payout_details,
    )


@router.get("/dashboard", response_model=schemas.Dashboard)
async def get_dashboard(session: SessionDep, user_id: CurrentUserDep):
    affiliate = _current_affiliate(session, user_id)
    recent, _ = referrals.list_referrals(
        session, affiliate.id, limit=constants.DASHBOARD_REFERRALS_LIMIT
    )
    return schemas.Dashboard(
        affiliate=schemas.Affiliate.model_validate(affiliate),
        referrals=[schemas.Referral.model_validate(r) for r in recent],
        recent_earnings=affiliate_ledger.recent_earnings(session, affiliate.id),
    )


@router.get("/referrals", response_model=schemas.ReferralPage)
async def get_referrals(
    session: SessionDep, user_id: CurrentUserDep, page: int = Query(default=1, ge=1)
):
    affiliate = _current_affiliate(session, user_id)
    return referrals.referral_page(session, affiliate.id, page)


@router.get("/earnings", response_model=schemas.EarningsSummary)
async def get_earnings(session: SessionDep, user_id: CurrentUserDep):
    affiliate = _current_affiliate(session, user_id)
    return affiliate_ledger.earnings_summary(session, affiliate)


@router.post("/update-allocation", response_model=schemas.AllocationOut)
async def update_allocation(
    session: SessionDep, user_id: CurrentUserDep, body: schemas.AllocationUpdate
):
    affiliate = _current_affiliate(session, user_id)
    allocation = affiliate_ledger.update_allocation(
        session, affiliate.id, body.customer_discount
    )
    return schemas.AllocationOut(
        customer_discount=allocation.customer_discount,
        affiliate_reward=allocation.affiliate_reward,
    )


@router.post("/payout-method", response_model=schemas.Affiliate)
async def update_payout_method(
    session: SessionDep, user_id: CurrentUserDep, body: schemas.PayoutMethodUpdate
):
    affiliate = _current_affiliate(session, user_id)
    return affiliate_ledger.update_payout_method(
        session, affiliate.id, body.payout_method, body.payout_details
    )


@router.post("/request-payout", response_model=schemas.PayoutRequested)
async def request_payout(session: SessionDep, user_id: CurrentUserDep):
    affiliate = _current_affiliate(session, user_id)
    payout, new_balance = payouts.request_payout(session, affiliate.id)
    return schemas.PayoutRequested(
        new_balance=new_balance, payout=schemas.Payout.model_validate(payout)
    )


@router.get("/payouts", response_model=List[schemas.Payout])
async def get_payouts(session: SessionDep, user_id: CurrentUserDep):
    affiliate = _current_affiliate(session, user_id)
    return payouts.list_payouts(session, affiliate.id)
