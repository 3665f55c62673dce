"""Referral lifecycle: attribution, conversion, expiry and cancellation.

A referral leaves ``pending`` exactly once. Every transition is a conditional
update on ``status == pending`` so a completion racing the expiry sweep has a
single winner and the loser's update matches no row.
"""

import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

import schemas
from core import constants
from core.config import settings
from core.errors import (
    AffiliateInactive,
    AffiliateProgramError,
    AlreadyProcessed,
    DuplicateReferral,
    Expired,
    InvalidTransition,
    NotFound,
    RewardCreditFailed,
    SelfReferral,
)
from models import Referral
from services import affiliate_ledger
from services.allocation import Allocation, validate_allocation
from utils.codes import generate_referral_id, unique_identifier
from utils.dates import as_utc, utcnow
from utils.money import ZERO, to_money

logger = logging.getLogger(__name__)

PENDING = constants.ReferralStatus.pending


def get_referral(session: Session, referral_id: UUID) -> Referral:
    referral = session.get(Referral, referral_id)
    if referral is None:
        raise NotFound(f"Referral {referral_id} not found")
    return referral


def get_referral_for_user(session: Session, referred_user_id: UUID) -> Optional[Referral]:
    statement = select(Referral).where(Referral.referred_user_id == referred_user_id)
    return session.exec(statement).first()


def list_referrals(
    session: Session,
    affiliate_id: UUID,
    page: int = 1,
    limit: int = constants.REFERRALS_PAGE_SIZE,
) -> Tuple[List[Referral], int]:
    page = max(page, 1)
    statement = (
        select(Referral)
        .where(Referral.affiliate_id == affiliate_id)
        .order_by(Referral.referral_date.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    referrals = session.exec(statement).all()
    total = session.exec(
        select(func.count()).select_from(Referral).where(Referral.affiliate_id == affiliate_id)
    ).one()
    return list(referrals), total


def referral_page(session: Session, affiliate_id: UUID, page: int = 1) -> schemas.ReferralPage:
    referrals, total = list_referrals(session, affiliate_id, page)
    return schemas.ReferralPage(
        referrals=[schemas.Referral.model_validate(r) for r in referrals],
        current_page=max(page, 1),
        total_pages=math.ceil(total / constants.REFERRALS_PAGE_SIZE),
        total_referrals=total,
    )


def create_referral(
    session: Session,
    affiliate_id: UUID,
    referred_user_id: UUID,
    metadata: schemas.ReferralMetadata | None = None,
) -> Referral:
    affiliate = affiliate_ledger.get_affiliate(session, affiliate_id)
    if affiliate.status != constants.AffiliateStatus.active:
        raise AffiliateInactive(f"Affiliate {affiliate_id} is {affiliate.status.value}")
    if affiliate.user_id == referred_user_id:
        raise SelfReferral("Affiliates cannot refer themselves")
    if get_referral_for_user(session, referred_user_id) is not None:
        raise DuplicateReferral(f"User {referred_user_id} already has a referral")

    # value copy, later allocation edits must not reach this referral
    allocation = validate_allocation(affiliate.customer_discount, affiliate.affiliate_reward)
    metadata = metadata or schemas.ReferralMetadata()
    now = utcnow()
    referral = Referral(
        referral_id=unique_identifier(session, Referral.referral_id, generate_referral_id),
        affiliate_id=affiliate.id,
        referred_user_id=referred_user_id,
        referral_date=now,
        customer_discount=allocation.customer_discount,
        affiliate_reward=allocation.affiliate_reward,
        expires_at=now + timedelta(days=settings.REFERRAL_TTL_DAYS),
        ip_address=metadata.ip_address,
        user_agent=metadata.user_agent,
        source=metadata.source,
    )
    try:
        session.add(referral)
        # the counter update autoflushes the insert
        affiliate_ledger.record_referral_attribution(session, affiliate.id, commit=False)
        session.commit()
    except IntegrityError:
        session.rollback()
        if get_referral_for_user(session, referred_user_id) is not None:
            raise DuplicateReferral(f"User {referred_user_id} already has a referral")
        raise
    session.refresh(referral)
    logger.info(
        "Referral %s created: affiliate %s -> user %s",
        referral.referral_id,
        affiliate.id,
        referred_user_id,
    )
    return referral


def attribute_by_code(
    session: Session,
    referral_code: str,
    referred_user_id: UUID,
    metadata: schemas.ReferralMetadata | None = None,
) -> Referral:
    affiliate = affiliate_ledger.get_affiliate_by_code(session, referral_code)
    if affiliate is None:
        raise NotFound(f"Referral code {referral_code} not found")
    return create_referral(session, affiliate.id, referred_user_id, metadata)


def _reject_transition(session: Session, referral_id: UUID) -> None:
    referral = get_referral(session, referral_id)
    if referral.status == constants.ReferralStatus.expired:
        raise Expired(f"Referral {referral.referral_id} has expired")
    if referral.status != PENDING:
        raise AlreadyProcessed(
            f"Referral {referral.referral_id} is already {referral.status.value}"
        )
    raise Expired(f"Referral {referral.referral_id} has expired")


def complete_referral(
    session: Session,
    referral_id: UUID,
    first_order_id: str,
    discount_eligible_amount: Decimal,
) -> Referral:
    """Convert a pending referral on its first qualifying order and pay the reward.

    The status change is committed before the reward is credited. When the
    credit fails the referral stays completed with ``reward_paid = False`` and
    ``RewardCreditFailed`` is raised; ``retry_reward`` picks it up later.
    """
    if discount_eligible_amount < 0:
        raise ValueError("Discount eligible amount must not be negative")

    result = session.exec(
        update(Referral)
        .execution_options(synchronize_session=False)
        .where(Referral.id == referral_id)
        .where(Referral.status == PENDING)
        .where(Referral.expires_at > utcnow())
        .values(
            status=constants.ReferralStatus.completed,
            first_order_id=first_order_id,
            discount_eligible_amount=to_money(discount_eligible_amount),
            discount_applied=True,
        )
    )
    if result.rowcount == 0:
        session.rollback()
        _reject_transition(session, referral_id)
    session.commit()
    logger.info("Referral %s completed by order %s", referral_id, first_order_id)
    return _pay_reward(session, get_referral(session, referral_id))


def _pay_reward(session: Session, referral: Referral) -> Referral:
    referral_pk, public_id = referral.id, referral.referral_id
    allocation = Allocation(referral.customer_discount, referral.affiliate_reward)
    reward = allocation.reward_for(referral.discount_eligible_amount or 0)
    try:
        credit = affiliate_ledger.credit_earnings(
            session,
            referral.affiliate_id,
            reward,
            order_id=referral.first_order_id,
            referral_id=referral.id,
        )
    except (AffiliateProgramError, SQLAlchemyError) as exc:
        session.rollback()
        logger.error("Reward credit for referral %s failed: %s", public_id, exc)
        raise RewardCreditFailed(
            f"Referral {public_id} completed but its reward was not credited",
            referral_id=str(referral_pk),
        ) from exc

    session.exec(
        update(Referral)
        .execution_options(synchronize_session=False)
        .where(Referral.id == referral.id)
        .where(Referral.status == constants.ReferralStatus.completed)
        .values(reward_paid=True, reward_amount=credit.amount)
    )
    session.commit()
    session.refresh(referral)
    return referral


def retry_reward(session: Session, referral_id: UUID) -> Referral:
    referral = get_referral(session, referral_id)
    if referral.status != constants.ReferralStatus.completed:
        raise InvalidTransition(
            f"Referral {referral.referral_id} is {referral.status.value}, not completed"
        )
    if referral.reward_paid:
        raise AlreadyProcessed(f"Reward for referral {referral.referral_id} already paid")
    return _pay_reward(session, referral)


def list_unpaid_rewards(session: Session) -> List[Referral]:
    statement = (
        select(Referral)
        .where(Referral.status == constants.ReferralStatus.completed)
        .where(Referral.reward_paid == False)  # noqa: E712
        .order_by(Referral.referral_date)
    )
    return list(session.exec(statement).all())


def expire_referral(session: Session, referral_id: UUID) -> Referral:
    result = session.exec(
        update(Referral)
        .execution_options(synchronize_session=False)
        .where(Referral.id == referral_id)
        .where(Referral.status == PENDING)
        .where(Referral.expires_at <= utcnow())
        .values(status=constants.ReferralStatus.expired)
    )
    if result.rowcount:
        session.commit()
        logger.info("Referral %s expired", referral_id)
        return get_referral(session, referral_id)

    session.rollback()
    referral = get_referral(session, referral_id)
    if referral.status == constants.ReferralStatus.expired:
        return referral
    if referral.status != PENDING:
        raise AlreadyProcessed(
            f"Referral {referral.referral_id} is already {referral.status.value}"
        )
    raise InvalidTransition(
        f"Referral {referral.referral_id} does not expire until {as_utc(referral.expires_at)}"
    )


def expire_pending_referrals(session: Session, now: datetime | None = None) -> int:
    result = session.exec(
        update(Referral)
        .execution_options(synchronize_session=False)
        .where(Referral.status == PENDING)
        .where(Referral.expires_at <= (now or utcnow()))
        .values(status=constants.ReferralStatus.expired)
    )
    session.commit()
    logger.info("Expired %d pending referrals", result.rowcount)
    return result.rowcount


def cancel_referral(session: Session, referral_id: UUID, reason: str) -> Referral:
    result = session.exec(
        update(Referral)
        .execution_options(synchronize_session=False)
        .where(Referral.id == referral_id)
        .where(Referral.status == PENDING)
        .values(status=constants.ReferralStatus.cancelled, cancel_reason=reason)
    )
    if result.rowcount == 0:
        session.rollback()
        referral = get_referral(session, referral_id)
        raise AlreadyProcessed(
            f"Referral {referral.referral_id} is already {referral.status.value}"
        )
    session.commit()
    logger.info("Referral %s cancelled: %s", referral_id, reason)
    return get_referral(session, referral_id)


def customer_discount_for(
    session: Session, referred_user_id: UUID, amount: Decimal
) -> Decimal:
    """Discount a referred customer gets on ``amount`` while their referral is open."""
    referral = get_referral_for_user(session, referred_user_id)
    if referral is None or referral.status != PENDING:
        return ZERO
    if as_utc(referral.expires_at) <= utcnow():
        return ZERO
    return Allocation(referral.customer_discount, referral.affiliate_reward).discount_for(amount)
