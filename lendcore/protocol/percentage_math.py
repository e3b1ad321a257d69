"""Basis-point percentage math (10_000 = 100%), rounding half up."""

from lendcore.data.constants import HALF_PERCENTAGE_FACTOR, PERCENTAGE_FACTOR
from lendcore.protocol.wad_ray_math import checked_uint256


def percent_mul(value: int, percentage: int) -> int:
    """Apply a bps percentage to *value*."""
    return checked_uint256(value * percentage + HALF_PERCENTAGE_FACTOR) // PERCENTAGE_FACTOR


def percent_div(value: int, percentage: int) -> int:
    return checked_uint256(value * PERCENTAGE_FACTOR + percentage // 2) // percentage
