import logging
from datetime import datetime

import click
import pendulum
from sqlmodel import Session

from core.db import engine
from log import setup_logging_to_file
from services.referrals import expire_pending_referrals

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def expire_referrals_job(now: datetime | None = None) -> int:
    with Session(engine) as session:
        logger.info("Starting referral expiry job...")
        expired = expire_pending_referrals(session, now)
        logger.info("Referral expiry job completed, %d referrals expired.", expired)
        return expired


@click.command()
@click.option("--as-of", default=None, help="Expire referrals due at this ISO timestamp instead of now")
def main(as_of: str | None):
    now = None
    if as_of:
        now = pendulum.parse(as_of).in_timezone("UTC")
    expire_referrals_job(now)


if __name__ == "__main__":
    setup_logging_to_file("expire_referrals", logger=logger)
    main()
