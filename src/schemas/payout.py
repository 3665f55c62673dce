import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from core import constants


class PayoutBase(BaseModel):
    id: uuid.UUID
    payout_id: str
    affiliate_id: uuid.UUID
    amount: float
    payment_method: constants.PaymentMethod
    status: constants.PayoutStatus
    processed_date: datetime | None = None
    account_last4: str | None = None
    payment_gateway: str | None = None
    gateway_payout_id: str | None = None
    failure_reason: str | None = None
    created_at: datetime


class Payout(PayoutBase):
    model_config = ConfigDict(from_attributes=True)


class PayoutRequested(BaseModel):
    success: bool = True
    new_balance: float
    payout: Payout


class GatewayDetails(BaseModel):
    payment_gateway: str | None = None
    gateway_payout_id: str | None = None
    account_last4: str | None = None


class PayoutFailure(BaseModel):
    reason: str
