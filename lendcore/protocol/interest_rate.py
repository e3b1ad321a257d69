"""Aave V3 piecewise linear interest rate strategy.

Replicates DefaultReserveInterestRateStrategyV2: parameters are configured in
basis points, stored as rays, and the borrow rate follows a two-segment
curve with a kink at the optimal usage ratio.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import numpy as np
import pandas as pd

from lendcore.data.constants import (
    MAX_BORROW_RATE,
    MAX_OPTIMAL_POINT,
    MIN_OPTIMAL_POINT,
    PERCENTAGE_FACTOR,
    RAY,
)
from lendcore.protocol.errors import (
    AssetNotListed,
    InvalidMaxRate,
    InvalidOptimalUsageRatio,
    ReserveInvariantError,
    Slope2MustBeGteSlope1,
)
from lendcore.protocol.events import RateDataUpdate
from lendcore.protocol.percentage_math import percent_mul
from lendcore.protocol.wad_ray_math import ray_div, ray_mul

logger = logging.getLogger(__name__)

BPS_TO_RAY = RAY // PERCENTAGE_FACTOR


@dataclass(frozen=True)
class InterestRateParams:
    """Parameters for the piecewise linear rate curve, all in ray."""

    optimal_usage_ratio: int
    base_variable_borrow_rate: int
    variable_rate_slope1: int
    variable_rate_slope2: int

    @classmethod
    def from_bps(
        cls,
        optimal_usage_ratio: int,
        base_variable_borrow_rate: int,
        variable_rate_slope1: int,
        variable_rate_slope2: int,
    ) -> InterestRateParams:
        """Build validated params from basis-point inputs (8000 = 80%)."""
        if not MIN_OPTIMAL_POINT <= optimal_usage_ratio <= MAX_OPTIMAL_POINT:
            raise InvalidOptimalUsageRatio(
                f"optimal usage ratio {optimal_usage_ratio} bps outside "
                f"[{MIN_OPTIMAL_POINT}, {MAX_OPTIMAL_POINT}]"
            )
        if variable_rate_slope1 > variable_rate_slope2:
            raise Slope2MustBeGteSlope1(
                f"slope1 {variable_rate_slope1} bps > slope2 {variable_rate_slope2} bps"
            )
        max_rate = base_variable_borrow_rate + variable_rate_slope1 + variable_rate_slope2
        if max_rate > MAX_BORROW_RATE:
            raise InvalidMaxRate(f"max borrow rate {max_rate} bps exceeds {MAX_BORROW_RATE} bps")

        return cls(
            optimal_usage_ratio=optimal_usage_ratio * BPS_TO_RAY,
            base_variable_borrow_rate=base_variable_borrow_rate * BPS_TO_RAY,
            variable_rate_slope1=variable_rate_slope1 * BPS_TO_RAY,
            variable_rate_slope2=variable_rate_slope2 * BPS_TO_RAY,
        )

    def to_bps(self) -> tuple[int, int, int, int]:
        return (
            self.optimal_usage_ratio // BPS_TO_RAY,
            self.base_variable_borrow_rate // BPS_TO_RAY,
            self.variable_rate_slope1 // BPS_TO_RAY,
            self.variable_rate_slope2 // BPS_TO_RAY,
        )

    @property
    def max_variable_borrow_rate(self) -> int:
        return (
            self.base_variable_borrow_rate
            + self.variable_rate_slope1
            + self.variable_rate_slope2
        )


def calculate_interest_rates(
    params: InterestRateParams,
    unbacked: int,
    liquidity_added: int,
    liquidity_taken: int,
    total_debt: int,
    reserve_factor: int,
    virtual_underlying_balance: int,
) -> tuple[int, int]:
    """Compute (liquidity_rate, variable_borrow_rate) for a reserve.

    Args:
        params: Curve parameters.
        unbacked: Liquidity counted for suppliers but not lent out (deficit).
        liquidity_added: Underlying entering the reserve in this operation.
        liquidity_taken: Underlying leaving the reserve in this operation.
        total_debt: Total variable debt at the post-update index.
        reserve_factor: Protocol share of interest in bps.
        virtual_underlying_balance: Accounted liquidity before the operation.

    Returns:
        Tuple of annualized ray rates ``(liquidity_rate, variable_borrow_rate)``.
    """
    liquidity_rate = 0
    borrow_rate = params.base_variable_borrow_rate

    if total_debt == 0:
        return liquidity_rate, borrow_rate

    available_liquidity = virtual_underlying_balance + liquidity_added - liquidity_taken
    if available_liquidity < 0:
        raise ReserveInvariantError(
            f"available liquidity would be negative ({available_liquidity})"
        )

    available_liquidity_plus_debt = available_liquidity + total_debt
    borrow_usage_ratio = ray_div(total_debt, available_liquidity_plus_debt)
    supply_usage_ratio = ray_div(total_debt, available_liquidity_plus_debt + unbacked)

    optimal = params.optimal_usage_ratio
    if borrow_usage_ratio > optimal:
        excess_borrow_usage_ratio = ray_div(borrow_usage_ratio - optimal, RAY - optimal)
        borrow_rate += params.variable_rate_slope1 + ray_mul(
            params.variable_rate_slope2, excess_borrow_usage_ratio
        )
    else:
        borrow_rate += ray_div(ray_mul(params.variable_rate_slope1, borrow_usage_ratio), optimal)

    liquidity_rate = percent_mul(
        ray_mul(borrow_rate, supply_usage_ratio),
        PERCENTAGE_FACTOR - reserve_factor,
    )
    return liquidity_rate, borrow_rate


class DefaultReserveInterestRateStrategy:
    """Per-reserve store of curve parameters (kinked curve)."""

    def __init__(self, emit: Callable[[object], None] | None = None) -> None:
        self._params: dict[str, InterestRateParams] = {}
        self._emit = emit

    def set_interest_rate_params(self, asset: str, params: InterestRateParams) -> None:
        self._params[asset] = params
        logger.info("interest rate params for %s set to %s bps", asset, params.to_bps())
        if self._emit is not None:
            self._emit(
                RateDataUpdate(
                    asset=asset,
                    optimal_usage_ratio=params.optimal_usage_ratio,
                    base_variable_borrow_rate=params.base_variable_borrow_rate,
                    variable_rate_slope1=params.variable_rate_slope1,
                    variable_rate_slope2=params.variable_rate_slope2,
                )
            )

    def remove(self, asset: str) -> None:
        self._params.pop(asset, None)

    def get_interest_rate_data(self, asset: str) -> InterestRateParams:
        try:
            return self._params[asset]
        except KeyError:
            raise AssetNotListed(f"no interest rate data for {asset}") from None

    def get_interest_rate_data_bps(self, asset: str) -> tuple[int, int, int, int]:
        return self.get_interest_rate_data(asset).to_bps()

    def get_optimal_usage_ratio(self, asset: str) -> int:
        return self.get_interest_rate_data(asset).optimal_usage_ratio

    def get_base_variable_borrow_rate(self, asset: str) -> int:
        return self.get_interest_rate_data(asset).base_variable_borrow_rate

    def get_variable_rate_slope1(self, asset: str) -> int:
        return self.get_interest_rate_data(asset).variable_rate_slope1

    def get_variable_rate_slope2(self, asset: str) -> int:
        return self.get_interest_rate_data(asset).variable_rate_slope2

    def get_max_variable_borrow_rate(self, asset: str) -> int:
        return self.get_interest_rate_data(asset).max_variable_borrow_rate

    def calculate_interest_rates(
        self,
        asset: str,
        unbacked: int,
        liquidity_added: int,
        liquidity_taken: int,
        total_debt: int,
        reserve_factor: int,
        virtual_underlying_balance: int,
    ) -> tuple[int, int]:
        return calculate_interest_rates(
            self.get_interest_rate_data(asset),
            unbacked=unbacked,
            liquidity_added=liquidity_added,
            liquidity_taken=liquidity_taken,
            total_debt=total_debt,
            reserve_factor=reserve_factor,
            virtual_underlying_balance=virtual_underlying_balance,
        )


def rate_curve(
    params: InterestRateParams,
    reserve_factor: int,
    n_points: int = 200,
    notional: int = 10**24,
) -> pd.DataFrame:
    """Tabulate the integer curve over a utilization grid.

    Args:
        params: Curve parameters.
        reserve_factor: Reserve factor in bps.
        n_points: Number of grid points in [0, 1].
        notional: Pool size used to turn utilization into debt/liquidity.

    Returns:
        DataFrame with columns: utilization, borrow_rate, supply_rate
    """
    utilizations = np.linspace(0, 1, n_points)
    borrow_rates = []
    supply_rates = []
    for u in utilizations:
        total_debt = int(round(u * notional))
        liquidity_rate, borrow_rate = calculate_interest_rates(
            params,
            unbacked=0,
            liquidity_added=0,
            liquidity_taken=0,
            total_debt=total_debt,
            reserve_factor=reserve_factor,
            virtual_underlying_balance=notional - total_debt,
        )
        borrow_rates.append(borrow_rate / RAY)
        supply_rates.append(liquidity_rate / RAY)

    return pd.DataFrame(
        {
            "utilization": utilizations,
            "borrow_rate": borrow_rates,
            "supply_rate": supply_rates,
        }
    )
