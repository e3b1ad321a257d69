"""Factory for creating the appropriate ReserveConfigProvider."""

from __future__ import annotations

import logging
import os

from lendcore.data.interfaces import ReserveConfigProvider
from lendcore.data.static_params import StaticDataProvider

logger = logging.getLogger(__name__)


def create_provider(
    use_onchain: bool = False,
    rpc_url: str | None = None,
    cache_ttl: float = 60.0,
) -> ReserveConfigProvider:
    """Create a data provider, selecting static or on-chain.

    Parameters
    ----------
    use_onchain : bool
        If True, attempt to create an ``OnChainDataProvider``.
    rpc_url : str | None
        Ethereum JSON-RPC URL.  Falls back to the ``ETH_RPC_URL``
        environment variable when not supplied.
    cache_ttl : float
        TTL in seconds for the on-chain cache (default 60).

    Returns
    -------
    ReserveConfigProvider
        ``OnChainDataProvider`` when requested and reachable, otherwise
        ``StaticDataProvider``.
    """
    if not use_onchain:
        return StaticDataProvider()

    resolved_url = rpc_url or os.environ.get("ETH_RPC_URL")
    if not resolved_url:
        logger.warning("On-chain data requested but no RPC URL provided; using static data")
        return StaticDataProvider()

    from lendcore.data.onchain_provider import OnChainDataProvider

    try:
        provider = OnChainDataProvider(
            rpc_url=resolved_url,
            cache_ttl=cache_ttl,
            fallback=StaticDataProvider(),
        )
    except Exception:
        logger.warning("Failed to create OnChainDataProvider; using static data", exc_info=True)
        return StaticDataProvider()

    if not provider.is_connected:
        logger.warning("RPC endpoint %s is not reachable; using static data", resolved_url)
        return StaticDataProvider()
    return provider
