"""Pre-mutation checks for pool operations.

Each validator runs after ``update_state`` so that caps and balances are
measured at the current indices. Collateral and health-factor checks are
not performed here.
"""

from lendcore.protocol.errors import (
    BorrowCapExceeded,
    BorrowingNotEnabled,
    InvalidAmount,
    NoDebtOfSelectedType,
    NotEnoughAvailableUserBalance,
    ReserveFrozen,
    ReserveInactive,
    ReservePaused,
    SupplyCapExceeded,
)
from lendcore.protocol.reserve import ReserveConfiguration, ReserveState
from lendcore.protocol.reserve_cache import ReserveCache
from lendcore.protocol.wad_ray_math import ray_mul


def _validate_amount(amount: int) -> None:
    if amount <= 0:
        raise InvalidAmount()


def _validate_flags(
    configuration: ReserveConfiguration,
    allow_frozen: bool,
) -> None:
    if not configuration.active:
        raise ReserveInactive()
    if configuration.paused:
        raise ReservePaused()
    if not allow_frozen and configuration.frozen:
        raise ReserveFrozen()


def validate_supply(reserve: ReserveState, cache: ReserveCache, amount: int) -> None:
    _validate_amount(amount)
    configuration = cache.reserve_configuration
    _validate_flags(configuration, allow_frozen=False)

    supply_cap = configuration.supply_cap
    if supply_cap != 0:
        total_supplied = ray_mul(
            reserve.a_token.scaled_total_supply() + reserve.accrued_to_treasury,
            cache.next_liquidity_index,
        )
        if total_supplied + amount > supply_cap * 10**configuration.decimals:
            raise SupplyCapExceeded(
                f"{reserve.asset}: {total_supplied} + {amount} over cap {supply_cap}"
            )


def validate_withdraw(
    reserve: ReserveState,
    cache: ReserveCache,
    amount: int,
    user_balance: int,
) -> None:
    _validate_amount(amount)
    if amount > user_balance:
        raise NotEnoughAvailableUserBalance(
            f"{reserve.asset}: withdrawing {amount} from a balance of {user_balance}"
        )
    if amount > reserve.virtual_underlying_balance:
        raise NotEnoughAvailableUserBalance(
            f"{reserve.asset}: only {reserve.virtual_underlying_balance} is not lent out"
        )
    _validate_flags(cache.reserve_configuration, allow_frozen=True)


def validate_borrow(reserve: ReserveState, cache: ReserveCache, amount: int) -> None:
    _validate_amount(amount)
    configuration = cache.reserve_configuration
    _validate_flags(configuration, allow_frozen=False)
    if not configuration.borrowing_enabled:
        raise BorrowingNotEnabled()

    if reserve.virtual_underlying_balance < amount:
        raise InvalidAmount(
            f"{reserve.asset}: borrowing {amount} with {reserve.virtual_underlying_balance} available"
        )

    borrow_cap = configuration.borrow_cap
    if borrow_cap != 0:
        total_debt = ray_mul(cache.curr_scaled_variable_debt, cache.next_variable_borrow_index)
        if total_debt + amount > borrow_cap * 10**configuration.decimals:
            raise BorrowCapExceeded(
                f"{reserve.asset}: {total_debt} + {amount} over cap {borrow_cap}"
            )


def validate_repay(cache: ReserveCache, amount: int, variable_debt: int) -> None:
    _validate_amount(amount)
    _validate_flags(cache.reserve_configuration, allow_frozen=True)
    if variable_debt == 0:
        raise NoDebtOfSelectedType()


def validate_transfer(reserve: ReserveState) -> None:
    if reserve.configuration.paused:
        raise ReservePaused()
