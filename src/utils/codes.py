import secrets
import string
import time
from typing import Callable

from sqlmodel import Session, select

from core.config import settings
from core.errors import IdentifierExhausted

BASE36 = string.digits + string.ascii_lowercase


def generate_referral_code(prefix: str | None = None, nbytes: int | None = None) -> str:
    prefix = prefix or settings.REFERRAL_CODE_PREFIX
    nbytes = nbytes or settings.REFERRAL_CODE_BYTES
    return f"{prefix}-{secrets.token_hex(nbytes).upper()}"


def generate_referral_id() -> str:
    suffix = "".join(secrets.choice(BASE36) for _ in range(9))
    return f"REF-{int(time.time() * 1000)}-{suffix}"


def generate_payout_id() -> str:
    return f"PAY-{secrets.token_hex(6).upper()}"


def unique_identifier(
    session: Session,
    column,
    generator: Callable[[], str],
    max_attempts: int | None = None,
) -> str:
    """Draw identifiers from ``generator`` until one is unused in ``column``.

    The unique constraint on the column still backs this check, the lookup
    only keeps collisions from surfacing as integrity errors.
    """
    max_attempts = max_attempts or settings.REFERRAL_CODE_MAX_ATTEMPTS
    for _ in range(max_attempts):
        candidate = generator()
        statement = select(column.class_).where(column == candidate)
        if session.exec(statement).first() is None:
            return candidate
    raise IdentifierExhausted(
        f"Could not generate a unique {column.key} after {max_attempts} attempts"
    )
