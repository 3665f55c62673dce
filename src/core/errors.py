"""Domain errors raised by the affiliate program services.

Every error carries a stable ``error_code`` and a client safe
``error_message``. The HTTP layer maps them to JSON responses in ``main.py``;
services never return partial results instead of raising.
"""

from fastapi import status


class AffiliateProgramError(Exception):
    error_code = "affiliate_program_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, error_message: str, **details):
        super().__init__(error_message)
        self.error_message = error_message
        self.details = details

    def to_payload(self) -> dict:
        payload = {"error": self.error_code, "message": self.error_message}
        if self.details:
            payload["details"] = self.details
        return payload


class AllocationError(AffiliateProgramError):
    """Customer discount and affiliate reward do not fill the discount pool."""

    error_code = "pool_mismatch"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class DuplicateAffiliate(AffiliateProgramError):
    error_code = "duplicate_affiliate"
    status_code = status.HTTP_409_CONFLICT


class DuplicateReferral(AffiliateProgramError):
    error_code = "duplicate_referral"
    status_code = status.HTTP_409_CONFLICT


class NotFound(AffiliateProgramError):
    error_code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class AlreadyProcessed(AffiliateProgramError):
    error_code = "already_processed"
    status_code = status.HTTP_409_CONFLICT


class Expired(AffiliateProgramError):
    error_code = "expired"
    status_code = status.HTTP_410_GONE


class BelowMinimum(AffiliateProgramError):
    error_code = "below_minimum"


class ConcurrencyConflict(AffiliateProgramError):
    """The row changed between read and conditional update; retry with fresh state."""

    error_code = "concurrency_conflict"
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(AffiliateProgramError):
    error_code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT


class RewardCreditFailed(AffiliateProgramError):
    """The referral completed but its reward was not credited; retryable."""

    error_code = "reward_credit_failed"
    status_code = status.HTTP_502_BAD_GATEWAY


class IdentifierExhausted(AffiliateProgramError):
    """No unused identifier was found within the configured attempts."""

    error_code = "identifier_exhausted"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class AffiliateInactive(AffiliateProgramError):
    error_code = "affiliate_inactive"
    status_code = status.HTTP_403_FORBIDDEN


class SelfReferral(AffiliateProgramError):
    error_code = "self_referral"
