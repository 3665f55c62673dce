"""Affiliate ledger: enrolment, allocation and every balance change.

Balance columns are only ever changed with SQL side increments or
compare-and-update statements so concurrent requests cannot lose updates.
The payout helpers and ``record_referral_attribution(commit=False)`` leave the
transaction open for callers that need several writes to land together.
"""

import logging
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

import schemas
from core import constants
from core.config import settings
from core.errors import ConcurrencyConflict, DuplicateAffiliate, NotFound
from models import Affiliate, EarningCredit
from services.allocation import (
    Allocation,
    allocation_from_customer_discount,
    validate_allocation,
)
from utils.codes import generate_referral_code, unique_identifier
from utils.dates import as_utc, utcnow
from utils.money import ZERO, to_money

logger = logging.getLogger(__name__)


def _cents(expression):
    # rounding in SQL keeps stored balances exact to the cent on every backend
    return func.round(expression, 2)


def get_affiliate(session: Session, affiliate_id: UUID) -> Affiliate:
    affiliate = session.get(Affiliate, affiliate_id)
    if affiliate is None:
        raise NotFound(f"Affiliate {affiliate_id} not found")
    return affiliate


def get_affiliate_by_user(session: Session, user_id: UUID) -> Optional[Affiliate]:
    statement = select(Affiliate).where(Affiliate.user_id == user_id)
    return session.exec(statement).first()


def get_affiliate_by_code(session: Session, referral_code: str) -> Optional[Affiliate]:
    statement = select(Affiliate).where(
        Affiliate.referral_code == referral_code.strip().upper()
    )
    return session.exec(statement).first()


def create_affiliate(
    session: Session,
    user_id: UUID,
    allocation: Allocation | None = None,
    payout_method: constants.PaymentMethod | None = None,
    payout_details: dict | None = None,
) -> Affiliate:
    allocation = allocation or Allocation()
    validate_allocation(allocation.customer_discount, allocation.affiliate_reward)

    if get_affiliate_by_user(session, user_id) is not None:
        raise DuplicateAffiliate(f"User {user_id} is already an affiliate")

    affiliate = Affiliate(
        user_id=user_id,
        referral_code=unique_identifier(
            session, Affiliate.referral_code, generate_referral_code
        ),
        customer_discount=allocation.customer_discount,
        affiliate_reward=allocation.affiliate_reward,
        payout_method=payout_method or constants.PaymentMethod(settings.DEFAULT_PAYOUT_METHOD),
        payout_details=payout_details or {},
        minimum_payout=settings.DEFAULT_MINIMUM_PAYOUT,
    )
    session.add(affiliate)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        if get_affiliate_by_user(session, user_id) is not None:
            raise DuplicateAffiliate(f"User {user_id} is already an affiliate")
        raise ConcurrencyConflict("Referral code was taken concurrently, retry enrolment")
    session.refresh(affiliate)
    logger.info(
        "Affiliate %s enrolled for user %s with code %s",
        affiliate.id,
        user_id,
        affiliate.referral_code,
    )
    return affiliate


def update_allocation(
    session: Session, affiliate_id: UUID, customer_discount: int
) -> Allocation:
    allocation = allocation_from_customer_discount(customer_discount)
    result = session.exec(
        update(Affiliate)
        .execution_options(synchronize_session=False)
        .where(Affiliate.id == affiliate_id)
        .values(
            customer_discount=allocation.customer_discount,
            affiliate_reward=allocation.affiliate_reward,
            updated_at=utcnow(),
        )
    )
    if result.rowcount == 0:
        session.rollback()
        raise NotFound(f"Affiliate {affiliate_id} not found")
    session.commit()
    logger.info(
        "Affiliate %s allocation set to %s/%s",
        affiliate_id,
        allocation.customer_discount,
        allocation.affiliate_reward,
    )
    return allocation


def record_referral_attribution(
    session: Session, affiliate_id: UUID, commit: bool = True
) -> None:
    result = session.exec(
        update(Affiliate)
        .execution_options(synchronize_session=False)
        .where(Affiliate.id == affiliate_id)
        .values(
            total_referrals=Affiliate.total_referrals + 1,
            updated_at=utcnow(),
        )
    )
    if result.rowcount == 0:
        session.rollback()
        raise NotFound(f"Affiliate {affiliate_id} not found")
    if commit:
        session.commit()


def _find_credit(session: Session, order_id: str) -> Optional[EarningCredit]:
    statement = select(EarningCredit).where(EarningCredit.order_id == order_id)
    return session.exec(statement).first()


def credit_earnings(
    session: Session,
    affiliate_id: UUID,
    amount: Decimal,
    order_id: str,
    referral_id: UUID | None = None,
) -> EarningCredit:
    """Credit ``amount`` for a qualifying order, at most once per ``order_id``.

    A repeated call for an already credited order returns the original
    credit without touching the balances.
    """
    if amount < 0:
        raise ValueError("Earnings amount must not be negative")
    amount = to_money(amount)

    existing = _find_credit(session, order_id)
    if existing is not None:
        logger.info("Order %s already credited, skipping", order_id)
        return existing

    result = session.exec(
        update(Affiliate)
        .execution_options(synchronize_session=False)
        .where(Affiliate.id == affiliate_id)
        .values(
            available_balance=_cents(Affiliate.available_balance + amount),
            total_earnings=_cents(Affiliate.total_earnings + amount),
            successful_referrals=Affiliate.successful_referrals + 1,
            updated_at=utcnow(),
        )
    )
    if result.rowcount == 0:
        session.rollback()
        raise NotFound(f"Affiliate {affiliate_id} not found")

    credit = EarningCredit(
        order_id=order_id,
        affiliate_id=affiliate_id,
        referral_id=referral_id,
        amount=amount,
    )
    session.add(credit)
    try:
        session.commit()
    except IntegrityError:
        # a concurrent request credited the same order first
        session.rollback()
        existing = _find_credit(session, order_id)
        if existing is None:
            raise
        return existing
    session.refresh(credit)
    logger.info("Credited %.2f to affiliate %s for order %s", amount, affiliate_id, order_id)
    return credit


def move_available_to_pending(
    session: Session, affiliate_id: UUID, expected_available: Decimal
) -> None:
    """Move the whole available balance into the in-flight bucket.

    Only applies while the balance still equals ``expected_available``;
    otherwise another request changed it and ``ConcurrencyConflict`` is raised.
    Leaves the transaction open.
    """
    result = session.exec(
        update(Affiliate)
        .execution_options(synchronize_session=False)
        .where(Affiliate.id == affiliate_id)
        .where(Affiliate.available_balance == expected_available)
        .values(
            available_balance=0,
            pending_balance=_cents(Affiliate.pending_balance + expected_available),
            updated_at=utcnow(),
        )
    )
    if result.rowcount == 0:
        session.rollback()
        raise ConcurrencyConflict(
            f"Balance of affiliate {affiliate_id} changed, retry with fresh state"
        )


def settle_pending(session: Session, affiliate_id: UUID, amount: Decimal) -> None:
    """Drop a paid out amount from the in-flight bucket. Leaves the transaction open."""
    session.exec(
        update(Affiliate)
        .execution_options(synchronize_session=False)
        .where(Affiliate.id == affiliate_id)
        .values(
            pending_balance=_cents(Affiliate.pending_balance - amount),
            updated_at=utcnow(),
        )
    )


def restore_pending(session: Session, affiliate_id: UUID, amount: Decimal) -> None:
    """Give a failed payout back to the available balance. Leaves the transaction open."""
    session.exec(
        update(Affiliate)
        .execution_options(synchronize_session=False)
        .where(Affiliate.id == affiliate_id)
        .values(
            pending_balance=_cents(Affiliate.pending_balance - amount),
            available_balance=_cents(Affiliate.available_balance + amount),
            updated_at=utcnow(),
        )
    )


def set_status(
    session: Session, affiliate_id: UUID, status: constants.AffiliateStatus
) -> Affiliate:
    affiliate = get_affiliate(session, affiliate_id)
    affiliate.status = status
    affiliate.updated_at = utcnow()
    session.add(affiliate)
    session.commit()
    session.refresh(affiliate)
    logger.info("Affiliate %s status set to %s", affiliate_id, status.value)
    return affiliate


def update_payout_method(
    session: Session,
    affiliate_id: UUID,
    payout_method: constants.PaymentMethod,
    payout_details: dict | None = None,
) -> Affiliate:
    affiliate = get_affiliate(session, affiliate_id)
    affiliate.payout_method = payout_method
    affiliate.payout_details = {k: str(v) for k, v in (payout_details or {}).items()}
    affiliate.updated_at = utcnow()
    session.add(affiliate)
    session.commit()
    session.refresh(affiliate)
    return affiliate


def recent_earnings(
    session: Session, affiliate_id: UUID, days: int = constants.RECENT_EARNINGS_DAYS
) -> Decimal:
    since = utcnow() - timedelta(days=days)
    statement = (
        select(func.coalesce(func.sum(EarningCredit.amount), 0))
        .where(EarningCredit.affiliate_id == affiliate_id)
        .where(EarningCredit.created_at >= since)
    )
    return to_money(session.exec(statement).one())


def earnings_summary(session: Session, affiliate: Affiliate) -> schemas.EarningsSummary:
    credits = session.exec(
        select(EarningCredit)
        .where(EarningCredit.affiliate_id == affiliate.id)
        .order_by(EarningCredit.created_at.desc())
    ).all()

    # group credits by calendar month, newest month first
    months = defaultdict(lambda: [ZERO, 0])
    for credit in credits:
        created_at = as_utc(credit.created_at)
        key = (created_at.year, created_at.month)
        months[key][0] += credit.amount
        months[key][1] += 1
    monthly = [
        schemas.MonthlyEarnings(
            year=year, month=month, total_earnings=to_money(total), order_count=count
        )
        for (year, month), (total, count) in sorted(months.items(), reverse=True)
    ]

    conversion_rate = 0.0
    if affiliate.total_referrals:
        conversion_rate = round(
            affiliate.successful_referrals / affiliate.total_referrals * 100, 2
        )
    average_reward = ZERO
    if affiliate.successful_referrals:
        average_reward = to_money(affiliate.total_earnings / affiliate.successful_referrals)

    return schemas.EarningsSummary(
        total_earnings=affiliate.total_earnings,
        available_balance=affiliate.available_balance,
        pending_balance=affiliate.pending_balance,
        last_30_days_earnings=recent_earnings(session, affiliate.id),
        conversion_rate=conversion_rate,
        average_reward=average_reward,
        monthly_earnings=monthly,
    )
