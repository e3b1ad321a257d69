"""Wad/ray fixed-point arithmetic.

Two precisions are used throughout the protocol:

- WAD: 18 decimal places (token amounts)
- RAY: 27 decimal places (indices and rates)

All operations round half up (add half the divisor before dividing), so
rounding drift is bounded in both directions. Results are checked against
the 256-bit range of the deployed contracts; division by zero propagates as
``ZeroDivisionError``.
"""

from lendcore.data.constants import (
    HALF_RAY,
    HALF_WAD,
    MAX_UINT256,
    RAY,
    WAD,
    WAD_RAY_RATIO,
)
from lendcore.protocol.errors import MathOverflowError


def checked_uint256(value: int) -> int:
    if value > MAX_UINT256:
        raise MathOverflowError(f"fixed-point result overflows uint256: {value}")
    return value


def wad_mul(a: int, b: int) -> int:
    """Multiply two wads, rounding half up."""
    return checked_uint256(a * b + HALF_WAD) // WAD


def wad_div(a: int, b: int) -> int:
    """Divide two wads, rounding half up."""
    return checked_uint256(a * WAD + b // 2) // b


def ray_mul(a: int, b: int) -> int:
    """Multiply two rays, rounding half up."""
    return checked_uint256(a * b + HALF_RAY) // RAY


def ray_div(a: int, b: int) -> int:
    """Divide two rays, rounding half up."""
    return checked_uint256(a * RAY + b // 2) // b


def ray_to_wad(a: int) -> int:
    result, remainder = divmod(a, WAD_RAY_RATIO)
    if remainder >= WAD_RAY_RATIO // 2:
        result += 1
    return result


def wad_to_ray(a: int) -> int:
    return checked_uint256(a * WAD_RAY_RATIO)
