"""Payout requests and the callbacks the payment gateway drives them with.

Requesting a payout moves the whole available balance into
``pending_balance`` and records the payout in one transaction. The gateway
then reports ``processing``, ``completed`` or ``failed``; a failure puts the
amount back into the available balance.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Tuple
from uuid import UUID

from sqlalchemy import update
from sqlmodel import Session, select

import schemas
from core import constants
from core.errors import AffiliateInactive, BelowMinimum, InvalidTransition, NotFound
from models import Payout
from services import affiliate_ledger
from utils.codes import generate_payout_id, unique_identifier
from utils.dates import utcnow

logger = logging.getLogger(__name__)

OPEN_STATUSES = (constants.PayoutStatus.pending, constants.PayoutStatus.processing)


def get_payout(session: Session, payout_id: str) -> Payout:
    payout = session.exec(select(Payout).where(Payout.payout_id == payout_id)).first()
    if payout is None:
        raise NotFound(f"Payout {payout_id} not found")
    return payout


def list_payouts(session: Session, affiliate_id: UUID) -> List[Payout]:
    statement = (
        select(Payout)
        .where(Payout.affiliate_id == affiliate_id)
        .order_by(Payout.created_at.desc())
    )
    return list(session.exec(statement).all())


def request_payout(session: Session, affiliate_id: UUID) -> Tuple[Payout, Decimal]:
    """Withdraw the full available balance. Returns the payout and the new balance."""
    affiliate = affiliate_ledger.get_affiliate(session, affiliate_id)
    if affiliate.status != constants.AffiliateStatus.active:
        raise AffiliateInactive(f"Affiliate {affiliate_id} is {affiliate.status.value}")

    amount = affiliate.available_balance
    minimum = affiliate.minimum_payout
    if amount < minimum or amount <= 0:
        raise BelowMinimum(
            f"Minimum payout amount is ${float(minimum):g}",
            available_balance=float(amount),
            minimum_payout=float(minimum),
        )
    payment_method = affiliate.payout_method
    account_last4 = (affiliate.payout_details or {}).get("account_last4")

    affiliate_ledger.move_available_to_pending(session, affiliate_id, amount)
    try:
        payout = Payout(
            payout_id=unique_identifier(session, Payout.payout_id, generate_payout_id),
            affiliate_id=affiliate_id,
            amount=amount,
            payment_method=payment_method,
            account_last4=account_last4,
        )
        session.add(payout)
        session.commit()
    except Exception:
        # the balance move is part of the same transaction and goes with it
        session.rollback()
        raise
    session.refresh(payout)
    new_balance = affiliate_ledger.get_affiliate(session, affiliate_id).available_balance
    logger.info(
        "Payout %s of %.2f requested by affiliate %s", payout.payout_id, amount, affiliate_id
    )
    return payout, new_balance


def _transition(
    session: Session,
    payout: Payout,
    allowed_from: Iterable[constants.PayoutStatus],
    to_status: constants.PayoutStatus,
    **values,
) -> None:
    allowed_from = tuple(allowed_from)
    result = session.exec(
        update(Payout)
        .execution_options(synchronize_session=False)
        .where(Payout.id == payout.id)
        .where(Payout.status.in_(allowed_from))
        .values(status=to_status, updated_at=utcnow(), **values)
    )
    if result.rowcount == 0:
        session.rollback()
        current = get_payout(session, payout.payout_id)
        raise InvalidTransition(
            f"Payout {current.payout_id} cannot move from {current.status.value} to {to_status.value}"
        )


def _gateway_values(details: schemas.GatewayDetails | None) -> dict:
    if details is None:
        return {}
    return details.model_dump(exclude_none=True)


def mark_processing(
    session: Session, payout_id: str, details: schemas.GatewayDetails | None = None
) -> Payout:
    payout = get_payout(session, payout_id)
    _transition(
        session,
        payout,
        [constants.PayoutStatus.pending],
        constants.PayoutStatus.processing,
        **_gateway_values(details),
    )
    session.commit()
    logger.info("Payout %s is processing", payout_id)
    return get_payout(session, payout_id)


def mark_completed(
    session: Session, payout_id: str, details: schemas.GatewayDetails | None = None
) -> Payout:
    payout = get_payout(session, payout_id)
    affiliate_id, amount = payout.affiliate_id, payout.amount
    _transition(
        session,
        payout,
        OPEN_STATUSES,
        constants.PayoutStatus.completed,
        processed_date=utcnow(),
        **_gateway_values(details),
    )
    affiliate_ledger.settle_pending(session, affiliate_id, amount)
    session.commit()
    logger.info("Payout %s of %.2f completed", payout_id, amount)
    return get_payout(session, payout_id)


def mark_failed(session: Session, payout_id: str, reason: str) -> Payout:
    """Gateway failure callback: returns the payout amount to the available balance."""
    payout = get_payout(session, payout_id)
    affiliate_id, amount = payout.affiliate_id, payout.amount
    _transition(
        session,
        payout,
        OPEN_STATUSES,
        constants.PayoutStatus.failed,
        processed_date=utcnow(),
        failure_reason=reason,
    )
    affiliate_ledger.restore_pending(session, affiliate_id, amount)
    session.commit()
    logger.warning(
        "Payout %s failed (%s), %.2f returned to affiliate %s",
        payout_id,
        reason,
        amount,
        affiliate_id,
    )
    return get_payout(session, payout_id)
