"""Accounting core of a collateralized lending pool."""

from lendcore.data.provider_factory import create_provider
from lendcore.protocol.clock import ManualClock, SystemClock
from lendcore.protocol.configurator import PoolConfigurator, ReserveInitInput
from lendcore.protocol.events import EventLog
from lendcore.protocol.interest_rate import DefaultReserveInterestRateStrategy, InterestRateParams
from lendcore.protocol.pool import Pool
from lendcore.protocol.reserve import ReserveConfiguration
from lendcore.protocol.reserve_ledger import ReserveLedger

__all__ = [
    "DefaultReserveInterestRateStrategy",
    "EventLog",
    "InterestRateParams",
    "ManualClock",
    "Pool",
    "PoolConfigurator",
    "ReserveConfiguration",
    "ReserveInitInput",
    "ReserveLedger",
    "SystemClock",
    "create_provider",
]
