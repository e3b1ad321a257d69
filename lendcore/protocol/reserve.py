"""Reserve configuration and persistent per-asset state."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import TYPE_CHECKING

from lendcore.data.constants import (
    MAX_VALID_BORROW_CAP,
    MAX_VALID_SUPPLY_CAP,
    PERCENTAGE_FACTOR,
    RAY,
)
from lendcore.protocol.errors import InvalidBorrowCap, InvalidReserveFactor, InvalidSupplyCap

if TYPE_CHECKING:
    from lendcore.tokens.a_token import AToken
    from lendcore.tokens.scaled_balance_token import UndoJournal
    from lendcore.tokens.variable_debt_token import VariableDebtToken


@dataclass(frozen=True)
class ReserveConfiguration:
    """Reserve flags, factor and caps, owned by the configuration layer."""

    decimals: int = 18
    active: bool = True
    frozen: bool = False
    paused: bool = False
    borrowing_enabled: bool = True
    reserve_factor: int = 0  # bps, e.g. 1000 = 10%
    supply_cap: int = 0  # whole tokens, 0 = uncapped
    borrow_cap: int = 0  # whole tokens, 0 = uncapped

    def __post_init__(self) -> None:
        if not 0 <= self.reserve_factor <= PERCENTAGE_FACTOR:
            raise InvalidReserveFactor(f"reserve factor {self.reserve_factor} bps")
        if not 0 <= self.supply_cap <= MAX_VALID_SUPPLY_CAP:
            raise InvalidSupplyCap(f"supply cap {self.supply_cap}")
        if not 0 <= self.borrow_cap <= MAX_VALID_BORROW_CAP:
            raise InvalidBorrowCap(f"borrow cap {self.borrow_cap}")

    def with_changes(self, **changes: object) -> ReserveConfiguration:
        return replace(self, **changes)


@dataclass
class ReserveState:
    """Durable accounting state of one listed asset.

    Indices and rates are rays. ``accrued_to_treasury`` is expressed in
    deposit-receipt scaled units; ``deficit`` is uncovered bad debt in
    underlying units.
    """

    asset: str
    id: int
    configuration: ReserveConfiguration
    a_token: AToken = field(repr=False, compare=False)
    variable_debt_token: VariableDebtToken = field(repr=False, compare=False)
    liquidity_index: int = RAY
    current_liquidity_rate: int = 0
    variable_borrow_index: int = RAY
    current_variable_borrow_rate: int = 0
    last_update_timestamp: int = 0
    virtual_underlying_balance: int = 0
    accrued_to_treasury: int = 0
    deficit: int = 0


# Fields restored when a transaction rolls back
_SNAPSHOT_FIELDS = tuple(
    f.name for f in fields(ReserveState) if f.name not in ("a_token", "variable_debt_token")
)


@dataclass(frozen=True)
class ReserveSnapshotCopy:
    """Point-in-time copy of a reserve's scalars plus undo journals on both tokens.

    The journals keep recording until ``restore`` or ``discard`` closes them.
    """

    reserve: ReserveState
    values: dict[str, object]
    a_token_journal: UndoJournal
    variable_debt_token_journal: UndoJournal

    @classmethod
    def take(cls, reserve: ReserveState) -> ReserveSnapshotCopy:
        return cls(
            reserve=reserve,
            values={name: getattr(reserve, name) for name in _SNAPSHOT_FIELDS},
            a_token_journal=reserve.a_token.open_journal(),
            variable_debt_token_journal=reserve.variable_debt_token.open_journal(),
        )

    def restore(self) -> None:
        for name, value in self.values.items():
            setattr(self.reserve, name, value)
        self.reserve.a_token.rollback(self.a_token_journal)
        self.reserve.variable_debt_token.rollback(self.variable_debt_token_journal)

    def discard(self) -> None:
        self.reserve.a_token.close_journal(self.a_token_journal)
        self.reserve.variable_debt_token.close_journal(self.variable_debt_token_journal)
