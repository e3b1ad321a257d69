"""Reserve listing and parameter changes.

Changes that affect accrual (reserve factor, rate curve) first accrue the
reserve under the old parameters and then re-derive rates under the new
ones, all inside one ledger transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from lendcore.data.constants import TREASURY
from lendcore.protocol.errors import UnderlyingClaimableRightsNotZero
from lendcore.protocol.events import ReserveConfigurationChanged
from lendcore.protocol.interest_rate import InterestRateParams
from lendcore.protocol.reserve import ReserveConfiguration, ReserveState

if TYPE_CHECKING:
    from lendcore.protocol.pool import Pool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReserveInitInput:
    """Everything needed to list one reserve."""

    asset: str
    configuration: ReserveConfiguration
    interest_rate_params: InterestRateParams
    treasury: str = TREASURY


class PoolConfigurator:
    """Administrative entry points of a ``Pool``. Callers are not authenticated."""

    def __init__(self, pool: Pool) -> None:
        self.pool = pool
        self.ledger = pool.ledger
        self.strategy = pool.strategy
        self.engine = pool.engine

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def init_reserves(self, inputs: Iterable[ReserveInitInput]) -> None:
        for params in inputs:
            self.ledger.init_reserve(params.asset, params.configuration, params.treasury)
            self.strategy.set_interest_rate_params(params.asset, params.interest_rate_params)

    def drop_reserve(self, asset: str) -> None:
        self.ledger.drop_reserve(asset)
        self.strategy.remove(asset)

    # ------------------------------------------------------------------
    # Accrual-affecting parameters
    # ------------------------------------------------------------------

    def set_reserve_factor(self, asset: str, reserve_factor: int) -> None:
        """Change the protocol's share of interest (bps).

        Interest accrued up to now is split with the old factor.
        """
        with self.ledger.transaction(asset) as (reserve,):
            new_configuration = reserve.configuration.with_changes(reserve_factor=reserve_factor)
            self.engine.sync_indexes_state(reserve)
            self._apply(reserve, new_configuration, "reserve_factor")
            self.engine.sync_rates_state(reserve)

    def update_interest_rate_strategy(
        self,
        asset: str,
        optimal_usage_ratio: int,
        base_variable_borrow_rate: int,
        variable_rate_slope1: int,
        variable_rate_slope2: int,
    ) -> None:
        """Replace the reserve's rate curve; all arguments in bps."""
        params = InterestRateParams.from_bps(
            optimal_usage_ratio,
            base_variable_borrow_rate,
            variable_rate_slope1,
            variable_rate_slope2,
        )
        with self.ledger.transaction(asset) as (reserve,):
            previous = self.strategy.get_interest_rate_data(asset)
            self.engine.sync_indexes_state(reserve)
            self.strategy.set_interest_rate_params(asset, params)
            try:
                self.engine.sync_rates_state(reserve)
            except Exception:
                self.strategy.set_interest_rate_params(asset, previous)
                raise

    # ------------------------------------------------------------------
    # Flags and caps
    # ------------------------------------------------------------------

    def set_reserve_active(self, asset: str, active: bool) -> None:
        """Activate or deactivate a reserve.

        A reserve can only be deactivated once nobody holds deposit receipts
        and the treasury has nothing accrued.
        """
        with self.ledger.transaction(asset) as (reserve,):
            if not active and (
                reserve.a_token.scaled_total_supply() != 0 or reserve.accrued_to_treasury != 0
            ):
                raise UnderlyingClaimableRightsNotZero(f"{asset} still has suppliers")
            self._set(reserve, "active", active)

    def set_reserve_freeze(self, asset: str, frozen: bool) -> None:
        self._update(asset, "frozen", frozen)

    def set_reserve_pause(self, asset: str, paused: bool) -> None:
        self._update(asset, "paused", paused)

    def set_reserve_borrowing(self, asset: str, enabled: bool) -> None:
        self._update(asset, "borrowing_enabled", enabled)

    def set_supply_cap(self, asset: str, supply_cap: int) -> None:
        self._update(asset, "supply_cap", supply_cap)

    def set_borrow_cap(self, asset: str, borrow_cap: int) -> None:
        self._update(asset, "borrow_cap", borrow_cap)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _update(self, asset: str, field_name: str, value: object) -> None:
        with self.ledger.transaction(asset) as (reserve,):
            self._set(reserve, field_name, value)

    def _set(self, reserve: ReserveState, field_name: str, value: object) -> None:
        new_configuration = reserve.configuration.with_changes(**{field_name: value})
        self._apply(reserve, new_configuration, field_name)

    def _apply(
        self,
        reserve: ReserveState,
        new_configuration: ReserveConfiguration,
        field_name: str,
    ) -> None:
        old_value = getattr(reserve.configuration, field_name)
        new_value = getattr(new_configuration, field_name)
        reserve.configuration = new_configuration
        logger.info("%s %s changed from %s to %s", reserve.asset, field_name, old_value, new_value)
        self.ledger.emit(
            ReserveConfigurationChanged(
                asset=reserve.asset,
                field_name=field_name,
                old_value=old_value,
                new_value=new_value,
            )
        )
