"""Per-asset reserve store with an explicit transaction boundary."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from lendcore.data.constants import MAX_NUMBER_RESERVES, TREASURY
from lendcore.protocol.clock import Clock
from lendcore.protocol.errors import (
    AssetNotListed,
    NoMoreReservesAllowed,
    ReserveAlreadyAdded,
    UnderlyingClaimableRightsNotZero,
    VariableDebtSupplyNotZero,
    ZeroAddressNotValid,
)
from lendcore.protocol.events import EventSink, ReserveDropped, ReserveInitialized
from lendcore.protocol.reserve import ReserveConfiguration, ReserveSnapshotCopy, ReserveState
from lendcore.protocol.reserve_logic import normalized_debt, normalized_income
from lendcore.tokens.a_token import AToken
from lendcore.tokens.variable_debt_token import VariableDebtToken

logger = logging.getLogger(__name__)


class ReserveLedger:
    """Owns every ``ReserveState`` and its two receipt tokens.

    All mutation of a reserve must happen inside ``transaction(asset)``:
    the reserve lock is held for the duration, and any exception restores
    the reserve (and its token balances) to the state it had on entry.
    Events emitted during a transaction are only delivered once it commits.
    """

    def __init__(
        self,
        clock: Clock,
        event_sink: EventSink,
        max_number_reserves: int = MAX_NUMBER_RESERVES,
    ) -> None:
        self.clock = clock
        self.event_sink = event_sink
        self.max_number_reserves = max_number_reserves
        self._reserves: dict[str, ReserveState] = {}
        self._reserves_list: list[str | None] = []
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.RLock()
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Reserve lifecycle
    # ------------------------------------------------------------------

    def init_reserve(
        self,
        asset: str,
        configuration: ReserveConfiguration,
        treasury: str = TREASURY,
    ) -> ReserveState:
        """List ``asset`` and create its deposit and debt receipts.

        The reserve takes the lowest id left free by a dropped reserve, or
        the next id after the last one.

        Raises:
            ZeroAddressNotValid: if ``asset`` is empty.
            ReserveAlreadyAdded: if ``asset`` is already listed.
            NoMoreReservesAllowed: if every id slot is taken.
        """
        if not asset:
            raise ZeroAddressNotValid()

        with self._registry_lock:
            if asset in self._reserves:
                raise ReserveAlreadyAdded(f"{asset} is already listed")

            try:
                reserve_id = self._reserves_list.index(None)
            except ValueError:
                reserve_id = len(self._reserves_list)
                if reserve_id >= self.max_number_reserves:
                    raise NoMoreReservesAllowed(
                        f"{self.max_number_reserves} reserves already listed"
                    ) from None
                self._reserves_list.append(None)

            reserve: ReserveState
            a_token = AToken(
                underlying_asset=asset,
                treasury=treasury,
                index_source=lambda: normalized_income(reserve, self.clock.now()),
                emit=self.emit,
            )
            variable_debt_token = VariableDebtToken(
                underlying_asset=asset,
                index_source=lambda: normalized_debt(reserve, self.clock.now()),
                emit=self.emit,
            )
            reserve = ReserveState(
                asset=asset,
                id=reserve_id,
                configuration=configuration,
                a_token=a_token,
                variable_debt_token=variable_debt_token,
                last_update_timestamp=self.clock.now(),
            )

            self._reserves[asset] = reserve
            self._reserves_list[reserve_id] = asset
            # A relisted asset keeps its lock so waiters on it still exclude each other
            self._locks.setdefault(asset, threading.RLock())

        logger.info("reserve %s listed with id %d", asset, reserve_id)
        self.emit(
            ReserveInitialized(
                asset=asset,
                reserve_id=reserve_id,
                a_token=a_token.symbol,
                variable_debt_token=variable_debt_token.symbol,
            )
        )
        return reserve

    def drop_reserve(self, asset: str) -> None:
        """Delist ``asset`` once nothing is owed to or by its holders."""
        with self.transaction(asset):
            reserve = self.get_reserve(asset)
            if reserve.variable_debt_token.scaled_total_supply() != 0:
                raise VariableDebtSupplyNotZero(f"{asset} has outstanding variable debt")
            if (
                reserve.a_token.scaled_total_supply() != 0
                or reserve.accrued_to_treasury != 0
            ):
                raise UnderlyingClaimableRightsNotZero(f"{asset} has outstanding deposits")

            with self._registry_lock:
                del self._reserves[asset]
                self._reserves_list[reserve.id] = None

            logger.info("reserve %s dropped, id %d freed", asset, reserve.id)
            self.emit(ReserveDropped(asset=asset))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_reserve(self, asset: str) -> ReserveState:
        try:
            return self._reserves[asset]
        except KeyError:
            raise AssetNotListed(f"{asset} is not listed") from None

    def is_listed(self, asset: str) -> bool:
        return asset in self._reserves

    def get_reserves_list(self) -> list[str]:
        """Listed assets ordered by reserve id."""
        return [asset for asset in self._reserves_list if asset is not None]

    def get_reserves_count(self) -> int:
        """Number of id slots ever handed out, dropped ones included."""
        return len(self._reserves_list)

    def get_reserve_address_by_id(self, reserve_id: int) -> str | None:
        if 0 <= reserve_id < len(self._reserves_list):
            return self._reserves_list[reserve_id]
        return None

    def a_token(self, asset: str) -> AToken:
        return self.get_reserve(asset).a_token

    def variable_debt_token(self, asset: str) -> VariableDebtToken:
        return self.get_reserve(asset).variable_debt_token

    # ------------------------------------------------------------------
    # Transactions and events
    # ------------------------------------------------------------------

    def _frames(self) -> list[_TransactionFrame]:
        frames = getattr(self._local, "frames", None)
        if frames is None:
            frames = self._local.frames = []
        return frames

    def emit(self, event: object) -> None:
        frames = self._frames()
        if frames:
            frames[-1].events.append(event)
        else:
            self.event_sink.emit(event)

    @contextmanager
    def transaction(self, *assets: str) -> Iterator[list[ReserveState]]:
        """Run a block atomically against the reserves of ``assets``.

        Yields the reserves in the order requested. Locks are taken in
        sorted asset order so that concurrent multi-reserve transactions
        cannot deadlock. A nested transaction that commits hands its
        snapshots, locks and events to the enclosing one, so the outermost
        transaction decides whether any of it sticks.
        """
        for asset in assets:
            self.get_reserve(asset)
        ordered = sorted(set(assets))
        frame = _TransactionFrame(locks=[self._locks[asset] for asset in ordered])

        for lock in frame.locks:
            lock.acquire()
        frames = self._frames()
        try:
            # Re-read under the locks: the reserve may have been dropped meanwhile
            reserves = [self.get_reserve(asset) for asset in assets]
            for asset in ordered:
                frame.snapshots.append(ReserveSnapshotCopy.take(self._reserves[asset]))
            frames.append(frame)
        except BaseException:
            frame.discard()
            frame.release()
            raise

        try:
            yield reserves
        except BaseException:
            frames.pop()
            for snapshot in reversed(frame.snapshots):
                snapshot.restore()
            frame.release()
            logger.debug("transaction on %s rolled back", ", ".join(ordered), exc_info=True)
            raise

        frames.pop()
        if frames:
            frames[-1].absorb(frame)
            return
        frame.discard()
        frame.release()
        for event in frame.events:
            self.event_sink.emit(event)


@dataclass
class _TransactionFrame:
    """Snapshots, held locks and buffered events of one open transaction."""

    locks: list[threading.RLock]
    snapshots: list[ReserveSnapshotCopy] = field(default_factory=list)
    events: list[object] = field(default_factory=list)

    def absorb(self, inner: _TransactionFrame) -> None:
        # Inner snapshots were taken later, so restoring in reverse order
        # ends on the outer (older) state.
        self.snapshots.extend(inner.snapshots)
        self.locks.extend(inner.locks)
        self.events.extend(inner.events)

    def discard(self) -> None:
        for snapshot in self.snapshots:
            snapshot.discard()

    def release(self) -> None:
        for lock in reversed(self.locks):
            lock.release()
