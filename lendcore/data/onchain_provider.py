"""On-chain data provider fetching live Aave V3 reserve parameters via web3.py."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from lendcore.data.contracts import (
    AAVE_POOL,
    AAVE_POOL_DATA_PROVIDER,
    ASSET_ADDRESSES,
    POOL_ABI,
    POOL_DATA_PROVIDER_ABI,
    RATE_STRATEGY_ABI_V1,
    RATE_STRATEGY_ABI_V2,
    RATE_STRATEGY_ABI_V3,
)
from lendcore.data.interfaces import ReserveConfigProvider, ReserveSnapshot
from lendcore.protocol.errors import AssetNotListed
from lendcore.protocol.interest_rate import InterestRateParams
from lendcore.protocol.reserve import ReserveConfiguration

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# TTL cache
# ---------------------------------------------------------------------------

class _TTLCache:
    """Dict-based cache with per-entry TTL expiry."""

    def __init__(self, ttl: float) -> None:
        self._ttl = ttl
        self._store: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        ts, value = entry
        if time.monotonic() - ts > self._ttl:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (time.monotonic(), value)

    def clear(self) -> None:
        self._store.clear()


# ---------------------------------------------------------------------------
# OnChainDataProvider
# ---------------------------------------------------------------------------

class OnChainDataProvider(ReserveConfigProvider):
    """Live on-chain reserve configuration for Aave V3 via web3.py.

    Parameters
    ----------
    rpc_url : str
        Ethereum JSON-RPC endpoint URL.
    cache_ttl : float
        Seconds before a cached value expires (default 60).
    fallback : ReserveConfigProvider | None
        Optional fallback provider used when an RPC call fails.
    """

    def __init__(
        self,
        rpc_url: str,
        cache_ttl: float = 60.0,
        fallback: ReserveConfigProvider | None = None,
    ) -> None:
        from web3 import Web3

        self._w3 = Web3(Web3.HTTPProvider(rpc_url))
        self._cache = _TTLCache(cache_ttl)
        self._fallback = fallback

        # Pre-build main contract objects (no RPC calls here)
        self._pool_data_provider = self._w3.eth.contract(
            address=self._w3.to_checksum_address(AAVE_POOL_DATA_PROVIDER),
            abi=POOL_DATA_PROVIDER_ABI,
        )
        self._pool = self._w3.eth.contract(
            address=self._w3.to_checksum_address(AAVE_POOL),
            abi=POOL_ABI,
        )

        # Lazily resolved per-asset rate strategy contracts
        self._rate_strategy_contracts: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _resolve_address(self, asset: str) -> str:
        """Map asset symbol to checksummed on-chain address."""
        raw = ASSET_ADDRESSES.get(asset)
        if raw is None:
            raise AssetNotListed(f"no on-chain address for {asset}")
        return self._w3.to_checksum_address(raw)

    def _get_rate_strategy_contract(self, asset: str) -> Any:
        """Lazily fetch and cache the rate strategy contract for *asset*."""
        if asset in self._rate_strategy_contracts:
            return self._rate_strategy_contracts[asset]

        addr = self._pool_data_provider.functions.getInterestRateStrategyAddress(
            self._resolve_address(asset),
        ).call()

        # Build with all ABIs (v3.2 + v3.0 struct + v1 individual getters)
        contract = self._w3.eth.contract(
            address=self._w3.to_checksum_address(addr),
            abi=RATE_STRATEGY_ABI_V3 + RATE_STRATEGY_ABI_V2 + RATE_STRATEGY_ABI_V1,
        )
        self._rate_strategy_contracts[asset] = contract
        return contract

    def _call_with_fallback(
        self,
        cache_key: str,
        fetcher: Callable[[], Any],
        fallback_method: Callable[..., Any] | None,
        *fallback_args: Any,
    ) -> Any:
        """Cache → RPC → fallback pipeline."""
        # 1. Cache hit
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        # 2. RPC call
        try:
            value = fetcher()
        except AssetNotListed:
            raise
        except Exception:
            logger.warning(
                "RPC call failed for key=%s, using fallback", cache_key, exc_info=True
            )
        else:
            self._cache.set(cache_key, value)
            return value

        # 3. Fallback
        if fallback_method is not None:
            return fallback_method(*fallback_args)

        raise RuntimeError(f"RPC call failed and no fallback available for {cache_key}")

    # ------------------------------------------------------------------
    # Fetchers
    # ------------------------------------------------------------------

    def _fetch_configuration(self, asset: str) -> ReserveConfiguration:
        asset_addr = self._resolve_address(asset)
        functions = self._pool_data_provider.functions

        config = functions.getReserveConfigurationData(asset_addr).call()
        paused = functions.getPaused(asset_addr).call()
        borrow_cap, supply_cap = functions.getReserveCaps(asset_addr).call()

        return ReserveConfiguration(
            decimals=int(config[0]),
            reserve_factor=int(config[4]),
            borrowing_enabled=bool(config[6]),
            active=bool(config[8]),
            frozen=bool(config[9]),
            paused=bool(paused),
            supply_cap=int(supply_cap),
            borrow_cap=int(borrow_cap),
        )

    def _fetch_rate_params(self, asset: str) -> InterestRateParams:
        """Fetch the rate curve, probing strategy versions newest first."""
        strategy = self._get_rate_strategy_contract(asset)
        asset_addr = self._resolve_address(asset)

        # V3.2: getInterestRateDataBps(address reserve), bps values
        try:
            data = strategy.functions.getInterestRateDataBps(asset_addr).call()
            return InterestRateParams.from_bps(*(int(v) for v in data[:4]))
        except Exception:
            logger.debug("getInterestRateDataBps unavailable for %s", asset, exc_info=True)

        # V3.0/V3.1: getInterestRateData(), bps values
        try:
            data = strategy.functions.getInterestRateData().call()
            return InterestRateParams.from_bps(*(int(v) for v in data[:4]))
        except Exception:
            logger.debug("getInterestRateData unavailable for %s", asset, exc_info=True)

        # Fall back to V1 individual RAY-returning getters
        return InterestRateParams(
            optimal_usage_ratio=strategy.functions.OPTIMAL_USAGE_RATIO().call(),
            base_variable_borrow_rate=strategy.functions.getBaseVariableBorrowRate().call(),
            variable_rate_slope1=strategy.functions.getVariableRateSlope1().call(),
            variable_rate_slope2=strategy.functions.getVariableRateSlope2().call(),
        )

    def _fetch_snapshot(self, asset: str) -> ReserveSnapshot:
        asset_addr = self._resolve_address(asset)
        data = self._pool_data_provider.functions.getReserveData(asset_addr).call()
        virtual_balance = self._pool.functions.getVirtualUnderlyingBalance(asset_addr).call()
        return ReserveSnapshot(
            liquidity_index=int(data[9]),
            variable_borrow_index=int(data[10]),
            current_liquidity_rate=int(data[5]),
            current_variable_borrow_rate=int(data[6]),
            last_update_timestamp=int(data[11]),
            accrued_to_treasury=int(data[1]),
            virtual_underlying_balance=int(virtual_balance),
            total_a_token=int(data[2]),
            total_variable_debt=int(data[4]),
        )

    # ------------------------------------------------------------------
    # ReserveConfigProvider interface
    # ------------------------------------------------------------------

    def get_reserve_configuration(self, asset: str) -> ReserveConfiguration:
        fb = self._fallback.get_reserve_configuration if self._fallback else None
        return self._call_with_fallback(
            f"configuration:{asset}", lambda: self._fetch_configuration(asset), fb, asset
        )

    def get_interest_rate_params(self, asset: str) -> InterestRateParams:
        fb = self._fallback.get_interest_rate_params if self._fallback else None
        return self._call_with_fallback(
            f"rate_params:{asset}", lambda: self._fetch_rate_params(asset), fb, asset
        )

    def get_reserve_snapshot(self, asset: str) -> ReserveSnapshot | None:
        fb = self._fallback.get_reserve_snapshot if self._fallback else None
        return self._call_with_fallback(
            f"snapshot:{asset}", lambda: self._fetch_snapshot(asset), fb, asset
        )

    def list_assets(self) -> list[str]:
        return list(ASSET_ADDRESSES)

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Invalidate all cached values, forcing fresh RPC calls."""
        self._cache.clear()
        self._rate_strategy_contracts.clear()

    @property
    def is_connected(self) -> bool:
        """Check if the Web3 provider is connected."""
        try:
            return self._w3.is_connected()
        except Exception:
            return False
