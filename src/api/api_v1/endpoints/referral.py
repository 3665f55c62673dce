import uuid

from fastapi import APIRouter

import schemas
from api.api_v1.deps import SessionDep
from services import referrals

router = APIRouter()


@router.post("", response_model=schemas.Referral, status_code=201)
async def attribute_referral(session: SessionDep, body: schemas.ReferralCreate):
    metadata = schemas.ReferralMetadata(
        ip_address=body.ip_address, user_agent=body.user_agent, source=body.source
    )
    return referrals.attribute_by_code(
        session, body.referral_code, body.referred_user_id, metadata
    )


@router.post("/{referral_id}/complete", response_model=schemas.Referral)
async def complete_referral(
    session: SessionDep, referral_id: uuid.UUID, body: schemas.ReferralComplete
):
    return referrals.complete_referral(
        session, referral_id, body.first_order_id, body.discount_eligible_amount
    )


@router.post("/{referral_id}/cancel", response_model=schemas.Referral)
async def cancel_referral(
    session: SessionDep, referral_id: uuid.UUID, body: schemas.ReferralCancel
):
    return referrals.cancel_referral(session, referral_id, body.reason)


@router.post("/{referral_id}/retry-reward", response_model=schemas.Referral)
async def retry_reward(session: SessionDep, referral_id: uuid.UUID):
    return referrals.retry_reward(session, referral_id)
