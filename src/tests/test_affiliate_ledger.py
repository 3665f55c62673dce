import re
import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import DateTime
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from core import constants
from core.errors import (
    AllocationError,
    DuplicateAffiliate,
    IdentifierExhausted,
    NotFound,
)
from models import Affiliate, EarningCredit, Payout, Referral
from services import affiliate_ledger
from services.allocation import Allocation


def test_create_affiliate_defaults(db_session: Session):
    user_id = uuid.uuid4()
    affiliate = affiliate_ledger.create_affiliate(db_session, user_id)

    assert affiliate.user_id == user_id
    assert re.fullmatch(r"WHITECOAT-[0-9A-F]{8}", affiliate.referral_code)
    assert affiliate.customer_discount == 10
    assert affiliate.affiliate_reward == 5
    assert affiliate.available_balance == 0
    assert affiliate.pending_balance == 0
    assert affiliate.total_earnings == 0
    assert affiliate.total_referrals == 0
    assert affiliate.minimum_payout == 25
    assert affiliate.status == constants.AffiliateStatus.active
    assert affiliate.payout_method == constants.PaymentMethod.paypal


def test_create_affiliate_twice_for_same_user(db_session: Session, affiliate: Affiliate):
    with pytest.raises(DuplicateAffiliate):
        affiliate_ledger.create_affiliate(db_session, affiliate.user_id)

    count = len(db_session.exec(select(Affiliate)).all())
    assert count == 1


def test_create_affiliate_with_invalid_allocation(db_session: Session):
    with pytest.raises(AllocationError):
        affiliate_ledger.create_affiliate(
            db_session, uuid.uuid4(), allocation=Allocation(10, 4)
        )

    assert db_session.exec(select(Affiliate)).first() is None


def test_referral_code_collision_is_retried(db_session: Session, affiliate: Affiliate):
    with patch(
        "services.affiliate_ledger.generate_referral_code",
        side_effect=[affiliate.referral_code, "WHITECOAT-0000BEEF"],
    ):
        second = affiliate_ledger.create_affiliate(db_session, uuid.uuid4())

    assert second.referral_code == "WHITECOAT-0000BEEF"


def test_referral_code_generation_gives_up(db_session: Session, affiliate: Affiliate):
    with patch(
        "services.affiliate_ledger.generate_referral_code",
        return_value=affiliate.referral_code,
    ):
        with pytest.raises(IdentifierExhausted):
            affiliate_ledger.create_affiliate(db_session, uuid.uuid4())


def test_get_affiliate_by_code_ignores_case(db_session: Session, affiliate: Affiliate):
    found = affiliate_ledger.get_affiliate_by_code(
        db_session, f" {affiliate.referral_code.lower()} "
    )
    assert found.id == affiliate.id


def test_update_allocation_sets_complement(db_session: Session, affiliate: Affiliate):
    allocation = affiliate_ledger.update_allocation(db_session, affiliate.id, 12)

    assert allocation == Allocation(12, 3)
    db_session.refresh(affiliate)
    assert affiliate.customer_discount == 12
    assert affiliate.affiliate_reward == 3


def test_update_allocation_rejects_negative_reward(db_session: Session, affiliate: Affiliate):
    with pytest.raises(AllocationError):
        affiliate_ledger.update_allocation(db_session, affiliate.id, 20)

    db_session.refresh(affiliate)
    assert affiliate.customer_discount == 10
    assert affiliate.affiliate_reward == 5


def test_update_allocation_unknown_affiliate(db_session: Session):
    with pytest.raises(NotFound):
        affiliate_ledger.update_allocation(db_session, uuid.uuid4(), 5)


def test_credit_earnings(db_session: Session, affiliate: Affiliate):
    credit = affiliate_ledger.credit_earnings(db_session, affiliate.id, 7.5, "order-1")

    assert credit.amount == 7.5
    db_session.refresh(affiliate)
    assert affiliate.available_balance == 7.5
    assert affiliate.total_earnings == 7.5
    assert affiliate.successful_referrals == 1


def test_credit_earnings_is_idempotent_per_order(db_session: Session, affiliate: Affiliate):
    first = affiliate_ledger.credit_earnings(db_session, affiliate.id, 10, "order-1")
    second = affiliate_ledger.credit_earnings(db_session, affiliate.id, 10, "order-1")

    assert first.id == second.id
    db_session.refresh(affiliate)
    assert affiliate.available_balance == 10
    assert affiliate.total_earnings == 10
    assert affiliate.successful_referrals == 1
    assert len(db_session.exec(select(EarningCredit)).all()) == 1


def test_credit_earnings_unknown_affiliate(db_session: Session):
    with pytest.raises(NotFound):
        affiliate_ledger.credit_earnings(db_session, uuid.uuid4(), 10, "order-1")

    assert db_session.exec(select(EarningCredit)).first() is None


def test_credit_earnings_rejects_negative_amount(db_session: Session, affiliate: Affiliate):
    with pytest.raises(ValueError):
        affiliate_ledger.credit_earnings(db_session, affiliate.id, -1, "order-1")


def test_record_referral_attribution(db_session: Session, affiliate: Affiliate):
    affiliate_ledger.record_referral_attribution(db_session, affiliate.id)
    affiliate_ledger.record_referral_attribution(db_session, affiliate.id)

    db_session.refresh(affiliate)
    assert affiliate.total_referrals == 2
    assert affiliate.successful_referrals == 0


def test_set_status_and_payout_method(db_session: Session, affiliate: Affiliate):
    affiliate_ledger.set_status(db_session, affiliate.id, constants.AffiliateStatus.paused)
    updated = affiliate_ledger.update_payout_method(
        db_session,
        affiliate.id,
        constants.PaymentMethod.bank_transfer,
        {"account_last4": 1234},
    )

    assert updated.status == constants.AffiliateStatus.paused
    assert updated.payout_method == constants.PaymentMethod.bank_transfer
    assert updated.payout_details == {"account_last4": "1234"}


def test_earnings_summary(db_session: Session, affiliate: Affiliate):
    for _ in range(4):
        affiliate_ledger.record_referral_attribution(db_session, affiliate.id)
    affiliate_ledger.credit_earnings(db_session, affiliate.id, 10, "order-1")
    affiliate_ledger.credit_earnings(db_session, affiliate.id, 5, "order-2")
    db_session.refresh(affiliate)

    summary = affiliate_ledger.earnings_summary(db_session, affiliate)

    assert summary.total_earnings == 15
    assert summary.available_balance == 15
    assert summary.last_30_days_earnings == 15
    assert summary.conversion_rate == 50
    assert summary.average_reward == 7.5
    assert len(summary.monthly_earnings) == 1
    assert summary.monthly_earnings[0].total_earnings == 15
    assert summary.monthly_earnings[0].order_count == 2


def test_create_affiliate_race_hits_unique_user(
    db_session: Session, affiliate: Affiliate, miss_once
):
    lookup = miss_once(affiliate_ledger.get_affiliate_by_user)
    with patch("services.affiliate_ledger.get_affiliate_by_user", side_effect=lookup):
        with pytest.raises(DuplicateAffiliate):
            affiliate_ledger.create_affiliate(db_session, affiliate.user_id)

    assert len(db_session.exec(select(Affiliate)).all()) == 1


def test_credit_earnings_race_on_same_order_keeps_first_credit(
    db_session: Session, affiliate: Affiliate, miss_once
):
    first = affiliate_ledger.credit_earnings(db_session, affiliate.id, 10, "order-1")
    first_id = first.id

    lookup = miss_once(affiliate_ledger._find_credit)
    with patch("services.affiliate_ledger._find_credit", side_effect=lookup):
        second = affiliate_ledger.credit_earnings(db_session, affiliate.id, 10, "order-1")

    assert second.id == first_id
    db_session.refresh(affiliate)
    assert affiliate.available_balance == 10
    assert affiliate.total_earnings == 10
    assert affiliate.successful_referrals == 1
    assert len(db_session.exec(select(EarningCredit)).all()) == 1


def test_cent_credits_add_up_exactly(db_session: Session, affiliate: Affiliate):
    for order_id, amount in (("o-1", 1.78), ("o-2", 8.99), ("o-3", 13.6), ("o-4", 0.63)):
        affiliate_ledger.credit_earnings(db_session, affiliate.id, amount, order_id)

    db_session.refresh(affiliate)
    assert affiliate.available_balance == Decimal("25.00")
    assert affiliate.total_earnings == Decimal("25.00")


def test_schema_rejects_allocation_outside_the_pool(db_session: Session):
    db_session.add(
        Affiliate(
            user_id=uuid.uuid4(),
            referral_code="WHITECOAT-00000000",
            customer_discount=12,
            affiliate_reward=5,
        )
    )
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_schema_rejects_negative_available_balance(db_session: Session, affiliate: Affiliate):
    affiliate.available_balance = Decimal("-1.00")
    db_session.add(affiliate)
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_timestamp_columns_are_timezone_aware():
    for model in (Affiliate, Referral, Payout, EarningCredit):
        for column in model.__table__.columns:
            if isinstance(column.type, DateTime):
                assert column.type.timezone, f"{model.__tablename__}.{column.name}"
