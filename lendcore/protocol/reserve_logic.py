"""Reserve accrual engine: index updates, treasury accrual and rate refresh.

Every mutating operation runs the same pipeline against one reserve::

    cache = engine.cache(reserve)
    engine.update_state(reserve, cache)          # advance indices to now
    ...                                          # mutate receipt balances
    engine.update_interest_rates_and_virtual_balance(reserve, cache, added, taken)

The pipeline must run inside a single ``ReserveLedger.transaction`` so that a
half-applied update is never observable.
"""

from __future__ import annotations

import logging
from typing import Callable

from lendcore.protocol.clock import Clock
from lendcore.protocol.errors import ReserveInvariantError
from lendcore.protocol.events import ReserveDataUpdated
from lendcore.protocol.interest_rate import DefaultReserveInterestRateStrategy
from lendcore.protocol.math_utils import (
    calculate_compounded_interest,
    calculate_linear_interest,
)
from lendcore.protocol.percentage_math import percent_mul
from lendcore.protocol.reserve import ReserveState
from lendcore.protocol.reserve_cache import ReserveCache
from lendcore.protocol.wad_ray_math import ray_div, ray_mul

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Read-only projections
# ---------------------------------------------------------------------------

def normalized_income(reserve: ReserveState, now: int) -> int:
    """Liquidity index projected to ``now`` without touching the reserve."""
    timestamp = reserve.last_update_timestamp
    if timestamp == now:
        return reserve.liquidity_index
    return ray_mul(
        calculate_linear_interest(reserve.current_liquidity_rate, timestamp, now),
        reserve.liquidity_index,
    )


def normalized_debt(reserve: ReserveState, now: int) -> int:
    """Variable borrow index projected to ``now`` without touching the reserve."""
    timestamp = reserve.last_update_timestamp
    if timestamp == now:
        return reserve.variable_borrow_index
    return ray_mul(
        calculate_compounded_interest(reserve.current_variable_borrow_rate, timestamp, now),
        reserve.variable_borrow_index,
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class ReserveAccrualEngine:
    """Advances reserve indices and re-derives rates.

    Parameters
    ----------
    strategy : DefaultReserveInterestRateStrategy
        Source of curve parameters and the rate calculation.
    clock : Clock
        Provides "now" in seconds.
    emit : Callable[[object], None]
        Event sink (normally ``ReserveLedger.emit``).
    """

    def __init__(
        self,
        strategy: DefaultReserveInterestRateStrategy,
        clock: Clock,
        emit: Callable[[object], None],
    ) -> None:
        self.strategy = strategy
        self.clock = clock
        self._emit = emit

    def cache(self, reserve: ReserveState) -> ReserveCache:
        configuration = reserve.configuration
        scaled_variable_debt = reserve.variable_debt_token.scaled_total_supply()
        return ReserveCache(
            reserve_configuration=configuration,
            reserve_factor=configuration.reserve_factor,
            curr_liquidity_index=reserve.liquidity_index,
            next_liquidity_index=reserve.liquidity_index,
            curr_variable_borrow_index=reserve.variable_borrow_index,
            next_variable_borrow_index=reserve.variable_borrow_index,
            curr_liquidity_rate=reserve.current_liquidity_rate,
            curr_variable_borrow_rate=reserve.current_variable_borrow_rate,
            curr_scaled_variable_debt=scaled_variable_debt,
            next_scaled_variable_debt=scaled_variable_debt,
            reserve_last_update_timestamp=reserve.last_update_timestamp,
        )

    def update_state(self, reserve: ReserveState, cache: ReserveCache) -> None:
        """Advance both indices to now and accrue the treasury share.

        No-op if the reserve was already updated in the current second.
        """
        now = self.clock.now()
        if reserve.last_update_timestamp == now:
            return

        self._update_indexes(reserve, cache, now)
        self._accrue_to_treasury(reserve, cache)

        reserve.last_update_timestamp = now
        cache.reserve_last_update_timestamp = now

    def _update_indexes(self, reserve: ReserveState, cache: ReserveCache, now: int) -> None:
        if cache.curr_liquidity_rate != 0:
            cumulated_liquidity_interest = calculate_linear_interest(
                cache.curr_liquidity_rate, cache.reserve_last_update_timestamp, now
            )
            cache.next_liquidity_index = ray_mul(
                cumulated_liquidity_interest, cache.curr_liquidity_index
            )
            reserve.liquidity_index = cache.next_liquidity_index

        # Gate on outstanding debt, not on the rate: a non-zero base rate
        # with no borrowers must leave the index untouched.
        if cache.curr_scaled_variable_debt != 0:
            cumulated_variable_borrow_interest = calculate_compounded_interest(
                cache.curr_variable_borrow_rate, cache.reserve_last_update_timestamp, now
            )
            cache.next_variable_borrow_index = ray_mul(
                cumulated_variable_borrow_interest, cache.curr_variable_borrow_index
            )
            reserve.variable_borrow_index = cache.next_variable_borrow_index

        logger.debug(
            "%s indexes advanced over %ds: liquidity=%d variable_borrow=%d",
            reserve.asset,
            now - cache.reserve_last_update_timestamp,
            cache.next_liquidity_index,
            cache.next_variable_borrow_index,
        )

    def _accrue_to_treasury(self, reserve: ReserveState, cache: ReserveCache) -> None:
        if cache.reserve_factor == 0:
            return

        prev_total_variable_debt = ray_mul(
            cache.curr_scaled_variable_debt, cache.curr_variable_borrow_index
        )
        curr_total_variable_debt = ray_mul(
            cache.curr_scaled_variable_debt, cache.next_variable_borrow_index
        )
        total_debt_accrued = curr_total_variable_debt - prev_total_variable_debt
        amount_to_mint = percent_mul(total_debt_accrued, cache.reserve_factor)

        if amount_to_mint != 0:
            reserve.accrued_to_treasury += ray_div(amount_to_mint, cache.next_liquidity_index)

    def update_interest_rates_and_virtual_balance(
        self,
        reserve: ReserveState,
        cache: ReserveCache,
        liquidity_added: int,
        liquidity_taken: int,
    ) -> None:
        """Re-derive and persist rates against the post-operation utilization."""
        if reserve.virtual_underlying_balance + liquidity_added < liquidity_taken:
            raise ReserveInvariantError(
                f"{reserve.asset}: taking {liquidity_taken} from a virtual balance of "
                f"{reserve.virtual_underlying_balance}"
            )

        total_variable_debt = ray_mul(
            cache.next_scaled_variable_debt, cache.next_variable_borrow_index
        )

        next_liquidity_rate, next_variable_rate = self.strategy.calculate_interest_rates(
            reserve.asset,
            unbacked=reserve.deficit,
            liquidity_added=liquidity_added,
            liquidity_taken=liquidity_taken,
            total_debt=total_variable_debt,
            reserve_factor=cache.reserve_factor,
            virtual_underlying_balance=reserve.virtual_underlying_balance,
        )

        reserve.current_liquidity_rate = next_liquidity_rate
        reserve.current_variable_borrow_rate = next_variable_rate
        reserve.virtual_underlying_balance += liquidity_added - liquidity_taken

        logger.debug(
            "%s rates updated: liquidity=%d variable_borrow=%d virtual_balance=%d",
            reserve.asset,
            next_liquidity_rate,
            next_variable_rate,
            reserve.virtual_underlying_balance,
        )
        self._emit(
            ReserveDataUpdated(
                asset=reserve.asset,
                liquidity_rate=next_liquidity_rate,
                variable_borrow_rate=next_variable_rate,
                liquidity_index=cache.next_liquidity_index,
                variable_borrow_index=cache.next_variable_borrow_index,
            )
        )

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
        return self.strategy.calculate_interest_rates(
            asset,
            unbacked=unbacked,
            liquidity_added=liquidity_added,
            liquidity_taken=liquidity_taken,
            total_debt=total_debt,
            reserve_factor=reserve_factor,
            virtual_underlying_balance=virtual_underlying_balance,
        )

    # ------------------------------------------------------------------
    # Configuration changes
    # ------------------------------------------------------------------

    def sync_indexes_state(self, reserve: ReserveState) -> ReserveCache:
        """Accrue with the parameters in force before a configuration change."""
        cache = self.cache(reserve)
        self.update_state(reserve, cache)
        return cache

    def sync_rates_state(self, reserve: ReserveState) -> None:
        """Re-derive rates after a configuration change, moving no liquidity."""
        cache = self.cache(reserve)
        self.update_interest_rates_and_virtual_balance(reserve, cache, 0, 0)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def get_normalized_income(self, reserve: ReserveState) -> int:
        return normalized_income(reserve, self.clock.now())

    def get_normalized_debt(self, reserve: ReserveState) -> int:
        return normalized_debt(reserve, self.clock.now())
