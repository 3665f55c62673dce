from fastapi import APIRouter

import schemas
from api.api_v1.deps import SessionDep
from services import payouts

router = APIRouter()


@router.post("/{payout_id}/processing", response_model=schemas.Payout)
async def payout_processing(
    session: SessionDep, payout_id: str, body: schemas.GatewayDetails | None = None
):
    return payouts.mark_processing(session, payout_id, body)


@router.post("/{payout_id}/completed", response_model=schemas.Payout)
async def payout_completed(
    session: SessionDep, payout_id: str, body: schemas.GatewayDetails | None = None
):
    return payouts.mark_completed(session, payout_id, body)


@router.post("/{payout_id}/failed", response_model=schemas.Payout)
async def payout_failed(session: SessionDep, payout_id: str, body: schemas.PayoutFailure):
    return payouts.mark_failed(session, payout_id, body.reason)
