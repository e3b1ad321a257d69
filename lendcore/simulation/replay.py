"""Replay a utilization path through a real pool with exact integer math."""

from __future__ import annotations

import logging
from typing import Sequence

import pandas as pd

from lendcore.data.constants import DAI
from lendcore.protocol.clock import ManualClock
from lendcore.protocol.configurator import PoolConfigurator, ReserveInitInput
from lendcore.protocol.events import EventLog
from lendcore.protocol.interest_rate import DefaultReserveInterestRateStrategy, InterestRateParams
from lendcore.protocol.pool import Pool
from lendcore.protocol.reserve import ReserveConfiguration
from lendcore.protocol.reserve_ledger import ReserveLedger
from lendcore.protocol.wad_ray_math import ray_div

logger = logging.getLogger(__name__)

SUPPLIER = "supplier"
BORROWER = "borrower"


def replay_utilization_path(
    utilization_path: Sequence[float],
    params: InterestRateParams,
    reserve_factor: int = 10_00,
    step_seconds: int = 24 * 3600,
    notional: int = 10**24,
    asset: str = DAI,
    start_timestamp: int = 0,
) -> pd.DataFrame:
    """Drive a single-reserve pool along a target utilization path.

    One supplier deposits ``notional``; at each step one borrower borrows or
    repays so that debt / (available + debt) matches the target, then the
    clock advances by ``step_seconds``.

    Args:
        utilization_path: Target utilization per step, in [0, 1].
        params: Rate curve parameters.
        reserve_factor: Reserve factor in bps.
        step_seconds: Seconds between steps.
        notional: Initial deposit in the asset's smallest unit.
        asset: Asset symbol used for the reserve.
        start_timestamp: Clock value at step 0.

    Returns:
        DataFrame with columns: step, timestamp, target_utilization,
        utilization, liquidity_rate, variable_borrow_rate, liquidity_index,
        variable_borrow_index, total_debt, accrued_to_treasury. Rates,
        indices and utilization are ray integers.
    """
    clock = ManualClock(start_timestamp)
    ledger = ReserveLedger(clock, EventLog())
    pool = Pool(ledger, DefaultReserveInterestRateStrategy(emit=ledger.emit), clock)
    PoolConfigurator(pool).init_reserves(
        [
            ReserveInitInput(
                asset=asset,
                configuration=ReserveConfiguration(reserve_factor=reserve_factor),
                interest_rate_params=params,
            )
        ]
    )
    pool.supply(asset, notional, SUPPLIER)

    rows = []
    for step, target in enumerate(utilization_path):
        reserve = ledger.get_reserve(asset)
        total_debt = pool.get_total_debt(asset)
        available = reserve.virtual_underlying_balance
        target_debt = int((available + total_debt) * min(max(target, 0.0), 1.0))

        borrow_amount = min(target_debt - total_debt, available)
        if borrow_amount > 0:
            pool.borrow(asset, borrow_amount, BORROWER)
        elif target_debt < total_debt:
            pool.repay(asset, total_debt - target_debt, BORROWER)

        total_debt = pool.get_total_debt(asset)
        available = reserve.virtual_underlying_balance
        rows.append(
            {
                "step": step,
                "timestamp": clock.now(),
                "target_utilization": target,
                "utilization": ray_div(total_debt, available + total_debt) if total_debt else 0,
                "liquidity_rate": reserve.current_liquidity_rate,
                "variable_borrow_rate": reserve.current_variable_borrow_rate,
                "liquidity_index": reserve.liquidity_index,
                "variable_borrow_index": reserve.variable_borrow_index,
                "total_debt": total_debt,
                "accrued_to_treasury": reserve.accrued_to_treasury,
            }
        )
        clock.advance(step_seconds)

    logger.debug("replayed %d steps on %s", len(rows), asset)
    return pd.DataFrame(rows)
