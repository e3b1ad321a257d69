"""Tests for index accrual, treasury accrual and rate refresh."""

import pytest

from lendcore.data.constants import DAI, RAY, SECONDS_PER_YEAR, WAD
from lendcore.protocol.clock import ManualClock
from lendcore.protocol.configurator import PoolConfigurator
from lendcore.protocol.errors import ReserveInvariantError
from lendcore.protocol.events import EventLog, ReserveDataUpdated
from lendcore.protocol.math_utils import (
    calculate_compounded_interest,
    calculate_linear_interest,
)
from lendcore.protocol.percentage_math import percent_mul
from lendcore.protocol.pool import Pool
from lendcore.protocol.reserve_logic import normalized_debt, normalized_income
from lendcore.protocol.wad_ray_math import ray_div, ray_mul

START = 1_700_000_000



@pytest.fixture
def borrowed_pool(dai_pool: Pool, event_log: EventLog) -> Pool:
    """DAI pool with 100 supplied and 40 borrowed at START (40% utilization)."""
    dai_pool.supply(DAI, 100 * WAD, "alice")
    dai_pool.borrow(DAI, 40 * WAD, "bob")
    event_log.clear()
    return dai_pool


class TestRates:
    def test_rates_at_forty_percent(self, borrowed_pool: Pool) -> None:
        data = borrowed_pool.get_reserve_data(DAI)
        assert data.current_variable_borrow_rate == 2 * 10**25
        # 2% * 0.4 * (1 - 10%)
        assert data.current_liquidity_rate == 72 * 10**23

    def test_rates_above_kink(self, borrowed_pool: Pool) -> None:
        borrowed_pool.borrow(DAI, 50 * WAD, "bob")
        data = borrowed_pool.get_reserve_data(DAI)
        # 4% + 75% * (0.9 - 0.8) / 0.2
        assert data.current_variable_borrow_rate == 415 * 10**24

    def test_rate_refresh_event(self, dai_pool: Pool, event_log: EventLog) -> None:
        dai_pool.supply(DAI, 100 * WAD, "alice")
        events = event_log.of_type(ReserveDataUpdated)
        assert events == [
            ReserveDataUpdated(
                asset=DAI,
                liquidity_rate=0,
                variable_borrow_rate=0,
                liquidity_index=RAY,
                variable_borrow_index=RAY,
            )
        ]

    def test_taking_more_than_virtual_balance(self, dai_pool: Pool) -> None:
        dai_pool.supply(DAI, 10 * WAD, "alice")
        engine = dai_pool.engine
        with pytest.raises(ReserveInvariantError):
            with dai_pool.ledger.transaction(DAI) as (reserve,):
                cache = engine.cache(reserve)
                engine.update_interest_rates_and_virtual_balance(reserve, cache, 0, 11 * WAD)
        assert dai_pool.get_reserve_data(DAI).virtual_underlying_balance == 10 * WAD


class TestUpdateState:
    def test_same_second_is_noop(self, borrowed_pool: Pool, clock: ManualClock) -> None:
        clock.advance(3600)
        with borrowed_pool.ledger.transaction(DAI) as (reserve,):
            borrowed_pool.engine.sync_indexes_state(reserve)
            first = (reserve.liquidity_index, reserve.variable_borrow_index)
            accrued = reserve.accrued_to_treasury
            borrowed_pool.engine.sync_indexes_state(reserve)

            assert (reserve.liquidity_index, reserve.variable_borrow_index) == first
            assert reserve.accrued_to_treasury == accrued
            assert reserve.last_update_timestamp == START + 3600

    def test_indexes_never_decrease(self, borrowed_pool: Pool, clock: ManualClock) -> None:
        previous = (RAY, RAY)
        for step in range(10):
            clock.advance(86_400 * (step + 1))
            borrowed_pool.supply(DAI, WAD, "carol")
            data = borrowed_pool.get_reserve_data(DAI)
            current = (data.liquidity_index, data.variable_borrow_index)
            assert current[0] >= previous[0]
            assert current[1] >= previous[1]
            previous = current
        assert previous[0] > RAY
        assert previous[1] > RAY

    def test_base_rate_without_debt_leaves_indexes(
        self, dai_pool: Pool, configurator: PoolConfigurator, clock: ManualClock
    ) -> None:
        configurator.update_interest_rate_strategy(DAI, 8000, 200, 400, 7500)
        dai_pool.supply(DAI, 100 * WAD, "alice")
        assert dai_pool.get_reserve_data(DAI).current_variable_borrow_rate == 2 * 10**25

        clock.advance(SECONDS_PER_YEAR)
        dai_pool.supply(DAI, WAD, "alice")

        data = dai_pool.get_reserve_data(DAI)
        assert data.liquidity_index == RAY
        assert data.variable_borrow_index == RAY
        assert data.accrued_to_treasury == 0

    def test_one_year_accrual(self, borrowed_pool: Pool, clock: ManualClock) -> None:
        clock.advance(SECONDS_PER_YEAR)
        borrowed_pool.supply(DAI, WAD, "carol")

        borrow_index = calculate_compounded_interest(
            2 * 10**25, START, START + SECONDS_PER_YEAR
        )
        liquidity_index = calculate_linear_interest(
            72 * 10**23, START, START + SECONDS_PER_YEAR
        )
        accrued_debt = ray_mul(40 * WAD, borrow_index) - 40 * WAD
        expected_treasury = ray_div(percent_mul(accrued_debt, 1000), liquidity_index)

        data = borrowed_pool.get_reserve_data(DAI)
        assert data.variable_borrow_index == borrow_index
        assert data.liquidity_index == liquidity_index == RAY + 72 * 10**23
        assert data.accrued_to_treasury == expected_treasury
        assert data.last_update_timestamp == START + SECONDS_PER_YEAR

    def test_zero_reserve_factor_accrues_nothing(
        self, borrowed_pool: Pool, configurator: PoolConfigurator, clock: ManualClock
    ) -> None:
        configurator.set_reserve_factor(DAI, 0)
        clock.advance(SECONDS_PER_YEAR)
        borrowed_pool.supply(DAI, WAD, "carol")
        assert borrowed_pool.get_reserve_data(DAI).accrued_to_treasury == 0


class TestNormalizedViews:
    def test_views_do_not_mutate(self, borrowed_pool: Pool, clock: ManualClock) -> None:
        clock.advance(30 * 86_400)
        income = borrowed_pool.get_reserve_normalized_income(DAI)
        debt = borrowed_pool.get_reserve_normalized_variable_debt(DAI)

        data = borrowed_pool.get_reserve_data(DAI)
        assert income > data.liquidity_index == RAY
        assert debt > data.variable_borrow_index == RAY
        assert data.last_update_timestamp == START

    def test_views_match_next_update(self, borrowed_pool: Pool, clock: ManualClock) -> None:
        clock.advance(30 * 86_400)
        income = borrowed_pool.get_reserve_normalized_income(DAI)
        debt = borrowed_pool.get_reserve_normalized_variable_debt(DAI)

        borrowed_pool.supply(DAI, WAD, "carol")
        data = borrowed_pool.get_reserve_data(DAI)
        assert data.liquidity_index == income
        assert data.variable_borrow_index == debt

    def test_same_timestamp_returns_stored(self, borrowed_pool: Pool) -> None:
        reserve = borrowed_pool.ledger.get_reserve(DAI)
        assert normalized_income(reserve, START) == reserve.liquidity_index
        assert normalized_debt(reserve, START) == reserve.variable_borrow_index

    def test_balances_grow_with_time(self, borrowed_pool: Pool, clock: ManualClock) -> None:
        clock.advance(SECONDS_PER_YEAR)
        user = borrowed_pool.get_user_reserve_data(DAI, "alice")
        assert user.current_a_token_balance == ray_mul(
            100 * WAD, borrowed_pool.get_reserve_normalized_income(DAI)
        )
        assert borrowed_pool.get_user_reserve_data(DAI, "bob").current_variable_debt > 40 * WAD
