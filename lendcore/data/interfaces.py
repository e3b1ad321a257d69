"""Abstract reserve configuration provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from lendcore.protocol.interest_rate import InterestRateParams
from lendcore.protocol.reserve import ReserveConfiguration


@dataclass(frozen=True)
class ReserveSnapshot:
    """Live accounting state of a deployed reserve.

    Indices and rates are rays; amounts are in the asset's smallest unit.
    """

    liquidity_index: int
    variable_borrow_index: int
    current_liquidity_rate: int
    current_variable_borrow_rate: int
    last_update_timestamp: int
    accrued_to_treasury: int = 0  # aToken scaled units
    virtual_underlying_balance: int = 0
    total_a_token: int = 0
    total_variable_debt: int = 0


class ReserveConfigProvider(ABC):
    """Source of reserve configuration and rate-curve parameters."""

    @abstractmethod
    def get_reserve_configuration(self, asset: str) -> ReserveConfiguration:
        """Get flags, reserve factor, caps and decimals for a reserve."""

    @abstractmethod
    def get_interest_rate_params(self, asset: str) -> InterestRateParams:
        """Get the validated rate curve for a reserve."""

    @abstractmethod
    def get_reserve_snapshot(self, asset: str) -> ReserveSnapshot | None:
        """Get live indices and rates, or None when the provider has none."""

    def list_assets(self) -> list[str]:
        """Assets this provider can configure, in listing order."""
        return []
