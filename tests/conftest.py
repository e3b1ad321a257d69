"""Shared fixtures: a single-reserve pool on a manual clock."""

import pytest

from lendcore.data.constants import DAI
from lendcore.protocol.clock import ManualClock
from lendcore.protocol.configurator import PoolConfigurator, ReserveInitInput
from lendcore.protocol.events import EventLog
from lendcore.protocol.interest_rate import DefaultReserveInterestRateStrategy, InterestRateParams
from lendcore.protocol.pool import Pool
from lendcore.protocol.reserve import ReserveConfiguration
from lendcore.protocol.reserve_ledger import ReserveLedger

START = 1_700_000_000

# 80% optimal, 0% base, 4% / 75% slopes
STABLE_TWO = InterestRateParams.from_bps(8000, 0, 400, 7500)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START)


@pytest.fixture
def event_log() -> EventLog:
    return EventLog()


@pytest.fixture
def ledger(clock: ManualClock, event_log: EventLog) -> ReserveLedger:
    return ReserveLedger(clock, event_log)


@pytest.fixture
def pool(ledger: ReserveLedger, clock: ManualClock) -> Pool:
    strategy = DefaultReserveInterestRateStrategy(emit=ledger.emit)
    return Pool(ledger, strategy, clock)


@pytest.fixture
def configurator(pool: Pool) -> PoolConfigurator:
    return PoolConfigurator(pool)


@pytest.fixture
def dai_pool(pool: Pool, configurator: PoolConfigurator, event_log: EventLog) -> Pool:
    """Pool with DAI listed: 18 decimals, 10% reserve factor, no caps."""
    configurator.init_reserves(
        [
            ReserveInitInput(
                asset=DAI,
                configuration=ReserveConfiguration(decimals=18, reserve_factor=1000),
                interest_rate_params=STABLE_TWO,
            )
        ]
    )
    event_log.clear()
    return pool
