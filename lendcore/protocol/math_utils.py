"""Interest accumulation formulas.

The liquidity index grows with simple (linear) interest between updates; the
variable borrow index compounds. Compounding uses the binomial expansion of

    (1 + r / SECONDS_PER_YEAR) ** t

truncated after the cubic term, which is what the deployed pool computes.
Reproducing the truncation exactly keeps index values bit-for-bit identical
with existing on-chain state; the approximation slightly undercharges very
large rates over long idle periods.
"""

from lendcore.data.constants import RAY, SECONDS_PER_YEAR
from lendcore.protocol.errors import ReserveInvariantError
from lendcore.protocol.wad_ray_math import ray_mul


def _elapsed(last_update_timestamp: int, current_timestamp: int) -> int:
    elapsed = current_timestamp - last_update_timestamp
    if elapsed < 0:
        raise ReserveInvariantError(
            f"current timestamp {current_timestamp} precedes last update {last_update_timestamp}"
        )
    return elapsed


def calculate_linear_interest(
    rate: int, last_update_timestamp: int, current_timestamp: int
) -> int:
    """Linear interest factor accumulated since *last_update_timestamp*.

    Args:
        rate: Annualized rate in ray.
        last_update_timestamp: Seconds timestamp of the last update.
        current_timestamp: Seconds timestamp to project to.

    Returns:
        Growth factor in ray (``RAY`` when no time elapsed).
    """
    elapsed = _elapsed(last_update_timestamp, current_timestamp)
    return RAY + rate * elapsed // SECONDS_PER_YEAR


def calculate_compounded_interest(
    rate: int, last_update_timestamp: int, current_timestamp: int
) -> int:
    """Compounded interest factor, third-order binomial approximation.

    Args:
        rate: Annualized rate in ray.
        last_update_timestamp: Seconds timestamp of the last update.
        current_timestamp: Seconds timestamp to project to.

    Returns:
        Growth factor in ray (``RAY`` when no time elapsed).
    """
    exp = _elapsed(last_update_timestamp, current_timestamp)
    if exp == 0:
        return RAY

    exp_minus_one = exp - 1
    exp_minus_two = exp - 2 if exp > 2 else 0

    base_power_two = ray_mul(rate, rate) // (SECONDS_PER_YEAR * SECONDS_PER_YEAR)
    base_power_three = ray_mul(base_power_two, rate) // SECONDS_PER_YEAR

    second_term = exp * exp_minus_one * base_power_two // 2
    third_term = exp * exp_minus_one * exp_minus_two * base_power_three // 6

    return RAY + rate * exp // SECONDS_PER_YEAR + second_term + third_term
