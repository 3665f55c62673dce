import logging

from sqlmodel import Session

from core.db import engine
from core.errors import AffiliateProgramError
from log import setup_logging_to_file
from services.referrals import list_unpaid_rewards, retry_reward

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def retry_referral_rewards_job() -> int:
    """Credit rewards of completed referrals whose first credit attempt failed."""
    paid = 0
    with Session(engine) as session:
        unpaid = list_unpaid_rewards(session)
        logger.info("Retrying rewards for %d completed referrals...", len(unpaid))
        for referral_pk in [referral.id for referral in unpaid]:
            try:
                retry_reward(session, referral_pk)
            except AffiliateProgramError as exc:
                # a failed credit stays unpaid and is picked up by the next run
                logger.warning(
                    "Reward retry for referral %s skipped (%s): %s",
                    referral_pk,
                    exc.error_code,
                    exc.error_message,
                )
                continue
            paid += 1
    logger.info("Reward retry job completed, %d rewards paid.", paid)
    return paid


if __name__ == "__main__":
    setup_logging_to_file("retry_referral_rewards", logger=logger)
    retry_referral_rewards_job()
