"""Static data provider with hardcoded reserve parameters.

Values mirror the reference test deployment: every reserve uses the
``rateStrategyStableTwo`` curve (80% optimal, 0% base, 4% / 75% slopes).
"""

from lendcore.data.constants import AAVE, DAI, EURS, LINK, USDC, USDT, WBTC, WETH
from lendcore.data.interfaces import ReserveConfigProvider, ReserveSnapshot
from lendcore.protocol.errors import AssetNotListed
from lendcore.protocol.interest_rate import InterestRateParams
from lendcore.protocol.reserve import ReserveConfiguration

# --- Rate curves (bps) ---

RATE_STRATEGY_STABLE_TWO = InterestRateParams.from_bps(
    optimal_usage_ratio=80_00,
    base_variable_borrow_rate=0,
    variable_rate_slope1=4_00,
    variable_rate_slope2=75_00,
)

# --- Reserve configurations ---

_RESERVE_CONFIGURATIONS: dict[str, ReserveConfiguration] = {
    DAI: ReserveConfiguration(
        decimals=8,
        reserve_factor=10_00,
        supply_cap=100_000,
    ),
    USDC: ReserveConfiguration(
        decimals=8,
        reserve_factor=10_00,
    ),
    AAVE: ReserveConfiguration(
        decimals=8,
        reserve_factor=0,
        borrowing_enabled=False,
        borrow_cap=80_000,
    ),
    WETH: ReserveConfiguration(
        decimals=8,
        reserve_factor=10_00,
    ),
    LINK: ReserveConfiguration(
        decimals=18,
        reserve_factor=20_00,
    ),
    WBTC: ReserveConfiguration(
        decimals=8,
        reserve_factor=20_00,
        supply_cap=200_000,
        borrow_cap=100_000,
    ),
    USDT: ReserveConfiguration(
        decimals=6,
        reserve_factor=10_00,
    ),
    EURS: ReserveConfiguration(
        decimals=2,
        reserve_factor=10_00,
    ),
}

_INTEREST_RATE_PARAMS: dict[str, InterestRateParams] = {
    asset: RATE_STRATEGY_STABLE_TWO for asset in _RESERVE_CONFIGURATIONS
}


class StaticDataProvider(ReserveConfigProvider):
    """Data provider using the hardcoded reserve table."""

    def get_reserve_configuration(self, asset: str) -> ReserveConfiguration:
        try:
            return _RESERVE_CONFIGURATIONS[asset]
        except KeyError:
            raise AssetNotListed(f"no static configuration for {asset}") from None

    def get_interest_rate_params(self, asset: str) -> InterestRateParams:
        try:
            return _INTEREST_RATE_PARAMS[asset]
        except KeyError:
            raise AssetNotListed(f"no static rate strategy for {asset}") from None

    def get_reserve_snapshot(self, asset: str) -> ReserveSnapshot | None:
        return None

    def list_assets(self) -> list[str]:
        return list(_RESERVE_CONFIGURATIONS)
