"""Event payloads emitted by the accounting core, and event sinks.

The core only produces payloads; delivery and storage belong to whatever
sink the host wires in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")


# ---------------------------------------------------------------------------
# Token events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Transfer:
    """Real-amount movement; ``sender``/``recipient`` is None for mint/burn."""

    token: str
    sender: str | None
    recipient: str | None
    value: int


@dataclass(frozen=True)
class Mint:
    """Mint of principal plus accrued interest.

    ``value`` includes ``balance_increase`` (interest since the holder's last
    touch) so observers can separate principal from interest.
    """

    token: str
    caller: str
    on_behalf_of: str
    value: int
    balance_increase: int
    index: int


@dataclass(frozen=True)
class Burn:
    token: str
    sender: str
    target: str | None
    value: int
    balance_increase: int
    index: int


@dataclass(frozen=True)
class BalanceTransfer:
    """Deposit receipt transfer expressed in scaled units."""

    token: str
    sender: str
    recipient: str
    value: int
    index: int


# ---------------------------------------------------------------------------
# Reserve events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReserveInitialized:
    asset: str
    reserve_id: int
    a_token: str
    variable_debt_token: str


@dataclass(frozen=True)
class ReserveDropped:
    asset: str


@dataclass(frozen=True)
class ReserveDataUpdated:
    asset: str
    liquidity_rate: int
    variable_borrow_rate: int
    liquidity_index: int
    variable_borrow_index: int


@dataclass(frozen=True)
class RateDataUpdate:
    asset: str
    optimal_usage_ratio: int
    base_variable_borrow_rate: int
    variable_rate_slope1: int
    variable_rate_slope2: int


@dataclass(frozen=True)
class ReserveConfigurationChanged:
    asset: str
    field_name: str
    old_value: object
    new_value: object


@dataclass(frozen=True)
class MintedToTreasury:
    asset: str
    amount_minted: int


@dataclass(frozen=True)
class DeficitCreated:
    user: str
    asset: str
    amount_created: int


# ---------------------------------------------------------------------------
# Operation events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Supply:
    asset: str
    user: str
    on_behalf_of: str
    amount: int


@dataclass(frozen=True)
class Withdraw:
    asset: str
    user: str
    to: str
    amount: int


@dataclass(frozen=True)
class Borrow:
    asset: str
    user: str
    on_behalf_of: str
    amount: int
    borrow_rate: int


@dataclass(frozen=True)
class Repay:
    asset: str
    user: str
    repayer: str
    amount: int


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------

class EventSink(Protocol):
    def emit(self, event: object) -> None: ...


@dataclass
class EventLog:
    """In-memory sink that keeps every delivered event in order."""

    events: list[object] = field(default_factory=list)

    def emit(self, event: object) -> None:
        self.events.append(event)

    def of_type(self, event_type: type[E]) -> list[E]:
        return [e for e in self.events if isinstance(e, event_type)]

    def clear(self) -> None:
        self.events.clear()


class LoggingEventSink:
    """Sink that writes each event to the module logger at DEBUG level."""

    def emit(self, event: object) -> None:
        logger.debug("event %r", event)
