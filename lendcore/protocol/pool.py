"""Pool operations over the reserve ledger.

Every mutating entry point runs the accrual pipeline inside one ledger
transaction::

    cache -> update_state -> validate -> mutate receipts -> update rates

so a failed validation or token check leaves the reserve untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from lendcore.data.constants import MAX_UINT256, RAY
from lendcore.data.interfaces import ReserveConfigProvider
from lendcore.protocol.clock import Clock, SystemClock
from lendcore.protocol.configurator import PoolConfigurator, ReserveInitInput
from lendcore.protocol.errors import InvalidAmount
from lendcore.protocol.events import (
    Borrow,
    DeficitCreated,
    EventSink,
    LoggingEventSink,
    MintedToTreasury,
    Repay,
    Supply,
    Withdraw,
)
from lendcore.protocol.interest_rate import DefaultReserveInterestRateStrategy
from lendcore.protocol.reserve import ReserveConfiguration
from lendcore.protocol.reserve_ledger import ReserveLedger
from lendcore.protocol.reserve_logic import ReserveAccrualEngine
from lendcore.protocol.validation import (
    validate_borrow,
    validate_repay,
    validate_supply,
    validate_transfer,
    validate_withdraw,
)
from lendcore.protocol.wad_ray_math import ray_div, ray_mul

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReserveData:
    """Read-only view of a reserve's stored state."""

    id: int
    configuration: ReserveConfiguration
    liquidity_index: int
    current_liquidity_rate: int
    variable_borrow_index: int
    current_variable_borrow_rate: int
    last_update_timestamp: int
    a_token: str
    variable_debt_token: str
    accrued_to_treasury: int
    virtual_underlying_balance: int
    deficit: int


@dataclass(frozen=True)
class UserReserveData:
    """A holder's position in one reserve, projected to now."""

    current_a_token_balance: int
    current_variable_debt: int
    scaled_a_token_balance: int
    scaled_variable_debt: int
    liquidity_rate: int


def _borrow_usage_ratio(total_debt: int, available_liquidity: int) -> int:
    if total_debt == 0:
        return 0
    return ray_div(total_debt, available_liquidity + total_debt)


class Pool:
    """Supply, withdraw, borrow and repay against the reserves of a ledger.

    Parameters
    ----------
    ledger : ReserveLedger
        Store of reserve state; also the event router.
    strategy : DefaultReserveInterestRateStrategy
        Per-reserve rate curves.
    clock : Clock | None
        Time source; defaults to the ledger's clock.
    """

    def __init__(
        self,
        ledger: ReserveLedger,
        strategy: DefaultReserveInterestRateStrategy,
        clock: Clock | None = None,
    ) -> None:
        self.ledger = ledger
        self.strategy = strategy
        self.clock = clock if clock is not None else ledger.clock
        self.engine = ReserveAccrualEngine(strategy, self.clock, ledger.emit)

    @classmethod
    def from_provider(
        cls,
        provider: ReserveConfigProvider,
        assets: Iterable[str] | None = None,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
    ) -> Pool:
        """Build a pool with every asset of ``provider`` listed.

        When the provider has a live snapshot for an asset, its indices and
        rates are carried over and taken as current at construction time.
        """
        clock = clock if clock is not None else SystemClock()
        event_sink = event_sink if event_sink is not None else LoggingEventSink()
        ledger = ReserveLedger(clock, event_sink)
        strategy = DefaultReserveInterestRateStrategy(emit=ledger.emit)
        pool = cls(ledger, strategy, clock)

        assets = list(assets) if assets is not None else provider.list_assets()
        PoolConfigurator(pool).init_reserves(
            ReserveInitInput(
                asset=asset,
                configuration=provider.get_reserve_configuration(asset),
                interest_rate_params=provider.get_interest_rate_params(asset),
            )
            for asset in assets
        )

        for asset in assets:
            snapshot = provider.get_reserve_snapshot(asset)
            if snapshot is None:
                continue
            with ledger.transaction(asset) as (reserve,):
                reserve.liquidity_index = snapshot.liquidity_index
                reserve.variable_borrow_index = snapshot.variable_borrow_index
                reserve.current_liquidity_rate = snapshot.current_liquidity_rate
                reserve.current_variable_borrow_rate = snapshot.current_variable_borrow_rate
                reserve.last_update_timestamp = clock.now()
            logger.info("seeded %s indexes from live snapshot", asset)

        return pool

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    def supply(
        self,
        asset: str,
        amount: int,
        on_behalf_of: str,
        caller: str | None = None,
    ) -> bool:
        """Deposit ``amount`` of underlying, crediting ``on_behalf_of``.

        Returns True on the holder's first supply to this reserve.
        """
        caller = caller if caller is not None else on_behalf_of
        with self.ledger.transaction(asset) as (reserve,):
            cache = self.engine.cache(reserve)
            self.engine.update_state(reserve, cache)
            validate_supply(reserve, cache, amount)
            self.engine.update_interest_rates_and_virtual_balance(reserve, cache, amount, 0)
            is_first_supply = reserve.a_token.mint(
                caller, on_behalf_of, amount, cache.next_liquidity_index
            )
            self.ledger.emit(
                Supply(asset=asset, user=caller, on_behalf_of=on_behalf_of, amount=amount)
            )
        return is_first_supply

    def withdraw(
        self,
        asset: str,
        amount: int,
        user: str,
        to: str | None = None,
    ) -> int:
        """Redeem deposit receipts; ``MAX_UINT256`` withdraws everything.

        Returns the amount of underlying withdrawn.
        """
        to = to if to is not None else user
        with self.ledger.transaction(asset) as (reserve,):
            cache = self.engine.cache(reserve)
            self.engine.update_state(reserve, cache)

            user_balance = ray_mul(
                reserve.a_token.scaled_balance_of(user), cache.next_liquidity_index
            )
            amount_to_withdraw = user_balance if amount == MAX_UINT256 else amount

            validate_withdraw(reserve, cache, amount_to_withdraw, user_balance)
            self.engine.update_interest_rates_and_virtual_balance(
                reserve, cache, 0, amount_to_withdraw
            )
            reserve.a_token.burn(user, to, amount_to_withdraw, cache.next_liquidity_index)
            self.ledger.emit(Withdraw(asset=asset, user=user, to=to, amount=amount_to_withdraw))
        return amount_to_withdraw

    def borrow(
        self,
        asset: str,
        amount: int,
        on_behalf_of: str,
        caller: str | None = None,
    ) -> bool:
        """Open or increase variable debt for ``on_behalf_of``.

        Returns True on the holder's first borrow of this reserve.
        """
        caller = caller if caller is not None else on_behalf_of
        with self.ledger.transaction(asset) as (reserve,):
            cache = self.engine.cache(reserve)
            self.engine.update_state(reserve, cache)
            validate_borrow(reserve, cache, amount)

            is_first_borrow, cache.next_scaled_variable_debt = reserve.variable_debt_token.mint(
                caller, on_behalf_of, amount, cache.next_variable_borrow_index
            )
            self.engine.update_interest_rates_and_virtual_balance(reserve, cache, 0, amount)
            self.ledger.emit(
                Borrow(
                    asset=asset,
                    user=caller,
                    on_behalf_of=on_behalf_of,
                    amount=amount,
                    borrow_rate=reserve.current_variable_borrow_rate,
                )
            )
        return is_first_borrow

    def repay(
        self,
        asset: str,
        amount: int,
        on_behalf_of: str,
        caller: str | None = None,
    ) -> int:
        """Pay back variable debt; amounts above the debt repay it in full.

        Returns the amount actually repaid.
        """
        caller = caller if caller is not None else on_behalf_of
        with self.ledger.transaction(asset) as (reserve,):
            cache = self.engine.cache(reserve)
            self.engine.update_state(reserve, cache)

            variable_debt = ray_mul(
                reserve.variable_debt_token.scaled_balance_of(on_behalf_of),
                cache.next_variable_borrow_index,
            )
            validate_repay(cache, amount, variable_debt)
            payback_amount = min(amount, variable_debt)

            cache.next_scaled_variable_debt = reserve.variable_debt_token.burn(
                on_behalf_of, payback_amount, cache.next_variable_borrow_index
            )
            self.engine.update_interest_rates_and_virtual_balance(
                reserve, cache, payback_amount, 0
            )
            self.ledger.emit(
                Repay(asset=asset, user=on_behalf_of, repayer=caller, amount=payback_amount)
            )
        return payback_amount

    def transfer_deposit(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """Move deposit receipts between holders at the current normalized income."""
        with self.ledger.transaction(asset) as (reserve,):
            validate_transfer(reserve)
            reserve.a_token.transfer(sender, recipient, amount)

    def mint_to_treasury(self, assets: Iterable[str]) -> None:
        """Turn accrued treasury shares into deposit receipts.

        Unlisted and inactive reserves are skipped.
        """
        for asset in assets:
            if not self.ledger.is_listed(asset):
                continue
            with self.ledger.transaction(asset) as (reserve,):
                if not reserve.configuration.active:
                    continue
                accrued_to_treasury = reserve.accrued_to_treasury
                if accrued_to_treasury == 0:
                    continue

                reserve.accrued_to_treasury = 0
                normalized_income = self.engine.get_normalized_income(reserve)
                amount_to_mint = ray_mul(accrued_to_treasury, normalized_income)
                reserve.a_token.mint_to_treasury(amount_to_mint, normalized_income)
                self.ledger.emit(MintedToTreasury(asset=asset, amount_minted=amount_to_mint))
            logger.info("minted %d to treasury on %s", amount_to_mint, asset)

    def register_deficit(self, asset: str, user: str) -> int:
        """Write off ``user``'s remaining variable debt as reserve deficit.

        Called once a liquidation leaves debt with no collateral behind it.
        Returns the amount moved to the deficit.
        """
        with self.ledger.transaction(asset) as (reserve,):
            cache = self.engine.cache(reserve)
            self.engine.update_state(reserve, cache)

            outstanding_debt = ray_mul(
                reserve.variable_debt_token.scaled_balance_of(user),
                cache.next_variable_borrow_index,
            )
            if outstanding_debt != 0:
                cache.next_scaled_variable_debt = reserve.variable_debt_token.burn(
                    user, outstanding_debt, cache.next_variable_borrow_index
                )
                reserve.deficit += outstanding_debt
                self.ledger.emit(
                    DeficitCreated(user=user, asset=asset, amount_created=outstanding_debt)
                )
            # Indexes were just advanced, so rates follow even when nothing is written off
            self.engine.update_interest_rates_and_virtual_balance(reserve, cache, 0, 0)

        if outstanding_debt != 0:
            logger.info("deficit of %d registered on %s for %s", outstanding_debt, asset, user)
        return outstanding_debt

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_reserve_data(self, asset: str) -> ReserveData:
        reserve = self.ledger.get_reserve(asset)
        return ReserveData(
            id=reserve.id,
            configuration=reserve.configuration,
            liquidity_index=reserve.liquidity_index,
            current_liquidity_rate=reserve.current_liquidity_rate,
            variable_borrow_index=reserve.variable_borrow_index,
            current_variable_borrow_rate=reserve.current_variable_borrow_rate,
            last_update_timestamp=reserve.last_update_timestamp,
            a_token=reserve.a_token.symbol,
            variable_debt_token=reserve.variable_debt_token.symbol,
            accrued_to_treasury=reserve.accrued_to_treasury,
            virtual_underlying_balance=reserve.virtual_underlying_balance,
            deficit=reserve.deficit,
        )

    def get_reserve_normalized_income(self, asset: str) -> int:
        return self.engine.get_normalized_income(self.ledger.get_reserve(asset))

    def get_reserve_normalized_variable_debt(self, asset: str) -> int:
        return self.engine.get_normalized_debt(self.ledger.get_reserve(asset))

    def get_user_reserve_data(self, asset: str, user: str) -> UserReserveData:
        reserve = self.ledger.get_reserve(asset)
        return UserReserveData(
            current_a_token_balance=reserve.a_token.balance_of(user),
            current_variable_debt=reserve.variable_debt_token.balance_of(user),
            scaled_a_token_balance=reserve.a_token.scaled_balance_of(user),
            scaled_variable_debt=reserve.variable_debt_token.scaled_balance_of(user),
            liquidity_rate=reserve.current_liquidity_rate,
        )

    def get_total_debt(self, asset: str) -> int:
        return self.ledger.get_reserve(asset).variable_debt_token.total_supply()

    def get_a_token_total_supply(self, asset: str) -> int:
        return self.ledger.get_reserve(asset).a_token.total_supply()

    def _projected_rates(
        self,
        asset: str,
        total_debt: int,
        liquidity_added: int,
        liquidity_taken: int,
    ) -> tuple[int, int, int]:
        reserve = self.ledger.get_reserve(asset)
        liquidity_rate, borrow_rate = self.engine.calculate_interest_rates(
            asset,
            unbacked=reserve.deficit,
            liquidity_added=liquidity_added,
            liquidity_taken=liquidity_taken,
            total_debt=total_debt,
            reserve_factor=reserve.configuration.reserve_factor,
            virtual_underlying_balance=reserve.virtual_underlying_balance,
        )
        available = reserve.virtual_underlying_balance + liquidity_added - liquidity_taken
        return _borrow_usage_ratio(total_debt, available), liquidity_rate, borrow_rate

    def simulate_borrow(self, asset: str, amount: int) -> dict[str, int]:
        """Project the impact of an additional borrow on rates.

        A borrow adds to total debt and takes the same amount from available
        liquidity; deposits are unchanged. Utilization and rates are rays.

        Does NOT mutate state.
        """
        reserve = self.ledger.get_reserve(asset)
        if amount > reserve.virtual_underlying_balance:
            raise InvalidAmount(
                f"{asset}: borrowing {amount} with {reserve.virtual_underlying_balance} available"
            )
        total_debt = self.get_total_debt(asset)
        u_before, supply_before, borrow_before = self._projected_rates(asset, total_debt, 0, 0)
        u_after, supply_after, borrow_after = self._projected_rates(
            asset, total_debt + amount, 0, amount
        )
        return {
            "utilization_before": u_before,
            "utilization_after": u_after,
            "borrow_rate_before": borrow_before,
            "borrow_rate_after": borrow_after,
            "supply_rate_before": supply_before,
            "supply_rate_after": supply_after,
        }

    def simulate_withdrawal(self, asset: str, amount: int) -> dict[str, int]:
        """Project the impact of a supply withdrawal on rates.

        Debt stays the same while available liquidity shrinks; a withdrawal
        larger than the available liquidity projects full utilization.

        Does NOT mutate state.
        """
        reserve = self.ledger.get_reserve(asset)
        total_debt = self.get_total_debt(asset)
        taken = min(amount, reserve.virtual_underlying_balance)
        u_before, supply_before, borrow_before = self._projected_rates(asset, total_debt, 0, 0)
        u_after, supply_after, borrow_after = self._projected_rates(asset, total_debt, 0, taken)
        if total_debt != 0 and taken < amount:
            u_after = RAY
        return {
            "utilization_before": u_before,
            "utilization_after": u_after,
            "borrow_rate_before": borrow_before,
            "borrow_rate_after": borrow_after,
            "supply_rate_before": supply_before,
            "supply_rate_after": supply_after,
        }
