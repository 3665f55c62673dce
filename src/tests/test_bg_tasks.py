import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from bg_tasks.expire_referrals import expire_referrals_job, main as expire_referrals_cli
from bg_tasks.retry_referral_rewards import retry_referral_rewards_job
from core import constants
from core.errors import AlreadyProcessed, RewardCreditFailed
from models import Affiliate
from services import referrals
from utils.dates import utcnow


def test_expire_referrals_job(db_session: Session, affiliate: Affiliate):
    stale = referrals.create_referral(db_session, affiliate.id, uuid.uuid4())
    fresh = referrals.create_referral(db_session, affiliate.id, uuid.uuid4())
    stale.expires_at = utcnow() - timedelta(days=1)
    db_session.add(stale)
    db_session.commit()

    assert expire_referrals_job() == 1

    db_session.refresh(stale)
    db_session.refresh(fresh)
    assert stale.status == constants.ReferralStatus.expired
    assert fresh.status == constants.ReferralStatus.pending


def test_retry_referral_rewards_job(db_session: Session, affiliate: Affiliate):
    referral = referrals.create_referral(db_session, affiliate.id, uuid.uuid4())
    with patch(
        "services.affiliate_ledger.credit_earnings",
        side_effect=SQLAlchemyError("ledger unavailable"),
    ):
        with pytest.raises(RewardCreditFailed):
            referrals.complete_referral(db_session, referral.id, "order-1", 100)

    assert retry_referral_rewards_job() == 1

    db_session.refresh(referral)
    db_session.refresh(affiliate)
    assert referral.reward_paid
    assert affiliate.available_balance == 5
    assert retry_referral_rewards_job() == 0


def test_expire_referrals_cli_as_of(db_session: Session, affiliate: Affiliate):
    referral = referrals.create_referral(db_session, affiliate.id, uuid.uuid4())
    due = (referral.expires_at + timedelta(minutes=1)).isoformat()

    result = CliRunner().invoke(expire_referrals_cli, ["--as-of", f"{due}+00:00"])

    assert result.exit_code == 0
    db_session.refresh(referral)
    assert referral.status == constants.ReferralStatus.expired


def test_retry_referral_rewards_job_continues_after_domain_error(
    db_session: Session, affiliate: Affiliate
):
    first = referrals.create_referral(db_session, affiliate.id, uuid.uuid4())
    second = referrals.create_referral(db_session, affiliate.id, uuid.uuid4())
    with patch(
        "services.affiliate_ledger.credit_earnings",
        side_effect=SQLAlchemyError("ledger unavailable"),
    ):
        for order_id, referral in (("order-1", first), ("order-2", second)):
            with pytest.raises(RewardCreditFailed):
                referrals.complete_referral(db_session, referral.id, order_id, 100)

    real_retry = referrals.retry_reward
    attempts = []

    def paid_elsewhere_first(session, referral_pk):
        attempts.append(referral_pk)
        if len(attempts) == 1:
            raise AlreadyProcessed("Reward already paid")
        return real_retry(session, referral_pk)

    with patch(
        "bg_tasks.retry_referral_rewards.retry_reward", side_effect=paid_elsewhere_first
    ):
        assert retry_referral_rewards_job() == 1

    assert len(attempts) == 2
    db_session.refresh(first)
    db_session.refresh(second)
    assert [first.reward_paid, second.reward_paid].count(True) == 1
