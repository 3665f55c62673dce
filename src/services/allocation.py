from dataclasses import dataclass
from decimal import Decimal

from core import constants
from core.errors import AllocationError
from utils.money import to_money


@dataclass(frozen=True)
class Allocation:
    """Split of the discount pool, in whole percent."""

    customer_discount: int = constants.DEFAULT_CUSTOMER_DISCOUNT
    affiliate_reward: int = constants.DEFAULT_AFFILIATE_REWARD

    def discount_for(self, amount) -> Decimal:
        return to_money(to_money(amount) * self.customer_discount / 100)

    def reward_for(self, amount) -> Decimal:
        return to_money(to_money(amount) * self.affiliate_reward / 100)


def validate_allocation(customer_discount: int, affiliate_reward: int) -> Allocation:
    for name, value in (
        ("customer_discount", customer_discount),
        ("affiliate_reward", affiliate_reward),
    ):
        if not 0 <= value <= constants.TOTAL_DISCOUNT_POOL:
            raise AllocationError(
                f"{name} must be between 0 and {constants.TOTAL_DISCOUNT_POOL}",
                customer_discount=customer_discount,
                affiliate_reward=affiliate_reward,
            )
    if customer_discount + affiliate_reward != constants.TOTAL_DISCOUNT_POOL:
        raise AllocationError(
            f"Total discount allocation must equal {constants.TOTAL_DISCOUNT_POOL}%",
            customer_discount=customer_discount,
            affiliate_reward=affiliate_reward,
        )
    return Allocation(customer_discount, affiliate_reward)


def allocation_from_customer_discount(customer_discount: int) -> Allocation:
    # the reward is always the complement of the customer side
    return validate_allocation(
        customer_discount, constants.TOTAL_DISCOUNT_POOL - customer_discount
    )
