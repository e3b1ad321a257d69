"""Ephemeral working snapshot of a reserve for a single operation."""

from dataclasses import dataclass

from lendcore.protocol.reserve import ReserveConfiguration


@dataclass
class ReserveCache:
    """Current and post-update ("next") values read once per operation.

    ``next_*`` fields start equal to ``curr_*`` and are advanced in place by
    the accrual pipeline, so rate computation sees the already-advanced
    indices without re-reading mutable reserve state.
    """

    reserve_configuration: ReserveConfiguration
    reserve_factor: int
    curr_liquidity_index: int
    next_liquidity_index: int
    curr_variable_borrow_index: int
    next_variable_borrow_index: int
    curr_liquidity_rate: int
    curr_variable_borrow_rate: int
    curr_scaled_variable_debt: int
    next_scaled_variable_debt: int
    reserve_last_update_timestamp: int
