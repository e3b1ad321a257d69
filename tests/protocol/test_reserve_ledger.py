"""Tests for reserve listing, lookups and transactional rollback."""

import threading

import pytest

from lendcore.data.constants import DAI, RAY, USDC, WAD, WETH
from lendcore.protocol.clock import ManualClock
from lendcore.protocol.errors import (
    AssetNotListed,
    InvalidAmount,
    NoMoreReservesAllowed,
    ReserveAlreadyAdded,
    UnderlyingClaimableRightsNotZero,
    VariableDebtSupplyNotZero,
    ZeroAddressNotValid,
)
from lendcore.protocol.events import EventLog, Mint, ReserveDropped, ReserveInitialized
from lendcore.protocol.pool import Pool
from lendcore.protocol.reserve import ReserveConfiguration
from lendcore.protocol.reserve_ledger import ReserveLedger


class TestListing:
    def test_ids_follow_listing_order(self, ledger: ReserveLedger, event_log: EventLog) -> None:
        dai = ledger.init_reserve(DAI, ReserveConfiguration())
        usdc = ledger.init_reserve(USDC, ReserveConfiguration(decimals=6))

        assert (dai.id, usdc.id) == (0, 1)
        assert ledger.get_reserves_list() == [DAI, USDC]
        assert ledger.get_reserves_count() == 2
        assert ledger.get_reserve_address_by_id(1) == USDC
        assert ledger.get_reserve_address_by_id(7) is None
        assert event_log.of_type(ReserveInitialized) == [
            ReserveInitialized(DAI, 0, "aDAI", "variableDebtDAI"),
            ReserveInitialized(USDC, 1, "aUSDC", "variableDebtUSDC"),
        ]

    def test_new_reserve_state(self, ledger: ReserveLedger, clock: ManualClock) -> None:
        reserve = ledger.init_reserve(DAI, ReserveConfiguration())
        assert reserve.liquidity_index == RAY
        assert reserve.variable_borrow_index == RAY
        assert reserve.current_liquidity_rate == 0
        assert reserve.last_update_timestamp == clock.now()
        assert ledger.a_token(DAI) is reserve.a_token
        assert ledger.variable_debt_token(DAI) is reserve.variable_debt_token

    def test_duplicate_asset(self, ledger: ReserveLedger) -> None:
        ledger.init_reserve(DAI, ReserveConfiguration())
        with pytest.raises(ReserveAlreadyAdded) as exc_info:
            ledger.init_reserve(DAI, ReserveConfiguration())
        assert exc_info.value.code == "49"

    def test_empty_asset(self, ledger: ReserveLedger) -> None:
        with pytest.raises(ZeroAddressNotValid):
            ledger.init_reserve("", ReserveConfiguration())

    def test_reserve_limit(self, clock: ManualClock) -> None:
        ledger = ReserveLedger(clock, EventLog(), max_number_reserves=2)
        ledger.init_reserve(DAI, ReserveConfiguration())
        ledger.init_reserve(USDC, ReserveConfiguration())
        with pytest.raises(NoMoreReservesAllowed) as exc_info:
            ledger.init_reserve(WETH, ReserveConfiguration())
        assert exc_info.value.code == "52"
        assert not ledger.is_listed(WETH)

    def test_unknown_asset(self, ledger: ReserveLedger) -> None:
        with pytest.raises(AssetNotListed) as exc_info:
            ledger.get_reserve("XYZ")
        assert exc_info.value.code == "82"
        with pytest.raises(AssetNotListed):
            with ledger.transaction("XYZ"):
                pass


class TestDrop:
    def test_drop_frees_id_for_reuse(self, ledger: ReserveLedger, event_log: EventLog) -> None:
        ledger.init_reserve(DAI, ReserveConfiguration())
        ledger.init_reserve(USDC, ReserveConfiguration())
        ledger.drop_reserve(DAI)

        assert not ledger.is_listed(DAI)
        assert ledger.get_reserve_address_by_id(0) is None
        assert ledger.get_reserves_list() == [USDC]
        assert ledger.get_reserves_count() == 2
        assert event_log.of_type(ReserveDropped) == [ReserveDropped(DAI)]

        weth = ledger.init_reserve(WETH, ReserveConfiguration())
        assert weth.id == 0
        assert ledger.get_reserves_list() == [WETH, USDC]

    def test_drop_with_debt(self, dai_pool: Pool) -> None:
        dai_pool.supply(DAI, 100 * WAD, "alice")
        dai_pool.borrow(DAI, 10 * WAD, "bob")
        with pytest.raises(VariableDebtSupplyNotZero) as exc_info:
            dai_pool.ledger.drop_reserve(DAI)
        assert exc_info.value.code == "56"
        assert dai_pool.ledger.is_listed(DAI)

    def test_drop_with_deposits(self, dai_pool: Pool) -> None:
        dai_pool.supply(DAI, 100 * WAD, "alice")
        with pytest.raises(UnderlyingClaimableRightsNotZero) as exc_info:
            dai_pool.ledger.drop_reserve(DAI)
        assert exc_info.value.code == "54"

    def test_relisting_keeps_the_lock(self, ledger: ReserveLedger) -> None:
        ledger.init_reserve(DAI, ReserveConfiguration())
        lock = ledger._locks[DAI]

        ledger.drop_reserve(DAI)
        ledger.init_reserve(DAI, ReserveConfiguration())

        assert ledger._locks[DAI] is lock

    def test_transaction_on_dropped_reserve(self, ledger: ReserveLedger) -> None:
        ledger.init_reserve(DAI, ReserveConfiguration())
        ledger.drop_reserve(DAI)
        with pytest.raises(AssetNotListed):
            with ledger.transaction(DAI):
                pass


class TestTransaction:
    def test_rollback_restores_reserve_and_tokens(
        self, ledger: ReserveLedger, event_log: EventLog
    ) -> None:
        ledger.init_reserve(DAI, ReserveConfiguration())
        event_log.clear()

        with pytest.raises(RuntimeError):
            with ledger.transaction(DAI) as (reserve,):
                reserve.liquidity_index = 2 * RAY
                reserve.virtual_underlying_balance = 500
                reserve.a_token.mint("alice", "alice", 100, RAY)
                raise RuntimeError("abort")

        reserve = ledger.get_reserve(DAI)
        assert reserve.liquidity_index == RAY
        assert reserve.virtual_underlying_balance == 0
        assert reserve.a_token.scaled_balance_of("alice") == 0
        assert reserve.a_token.scaled_total_supply() == 0
        assert event_log.events == []

    def test_rollback_touches_only_written_holders(self, dai_pool: Pool) -> None:
        holders = [f"holder-{n}" for n in range(500)]
        for holder in holders:
            dai_pool.supply(DAI, WAD, holder)
        a_token = dai_pool.ledger.a_token(DAI)
        before = {holder: a_token.scaled_balance_of(holder) for holder in holders}

        with pytest.raises(RuntimeError):
            with dai_pool.ledger.transaction(DAI):
                dai_pool.supply(DAI, 5 * WAD, "holder-7")
                dai_pool.supply(DAI, 5 * WAD, "newcomer")
                raise RuntimeError("abort")

        assert {holder: a_token.scaled_balance_of(holder) for holder in holders} == before
        assert a_token.scaled_balance_of("newcomer") == 0
        assert "newcomer" not in a_token._accounts
        assert a_token.scaled_total_supply() == sum(before.values())
        assert a_token._journals == []

    def test_journals_closed_after_commit(self, dai_pool: Pool) -> None:
        dai_pool.supply(DAI, 100 * WAD, "alice")
        with dai_pool.ledger.transaction(DAI):
            dai_pool.borrow(DAI, 10 * WAD, "bob")

        reserve = dai_pool.ledger.get_reserve(DAI)
        assert reserve.a_token._journals == []
        assert reserve.variable_debt_token._journals == []

    def test_events_delivered_on_commit(self, ledger: ReserveLedger, event_log: EventLog) -> None:
        ledger.init_reserve(DAI, ReserveConfiguration())
        event_log.clear()

        with ledger.transaction(DAI) as (reserve,):
            reserve.a_token.mint("alice", "alice", 100, RAY)
            assert event_log.events == []

        assert len(event_log.of_type(Mint)) == 1

    def test_nested_transactions(self, ledger: ReserveLedger, event_log: EventLog) -> None:
        ledger.init_reserve(DAI, ReserveConfiguration())
        ledger.init_reserve(USDC, ReserveConfiguration())
        event_log.clear()

        with pytest.raises(RuntimeError):
            with ledger.transaction(DAI) as (dai,):
                with ledger.transaction(USDC, DAI) as (usdc, inner_dai):
                    assert inner_dai is dai
                    usdc.a_token.mint("alice", "alice", 100, RAY)
                    dai.a_token.mint("alice", "alice", 100, RAY)
                assert event_log.events == []
                raise RuntimeError("abort outer")

        assert ledger.a_token(DAI).scaled_total_supply() == 0
        assert ledger.a_token(USDC).scaled_total_supply() == 0
        assert event_log.events == []

    def test_failed_operation_keeps_timestamp(self, dai_pool: Pool, clock: ManualClock) -> None:
        dai_pool.supply(DAI, 100 * WAD, "alice")
        dai_pool.borrow(DAI, 40 * WAD, "bob")
        before = dai_pool.get_reserve_data(DAI)

        clock.advance(86_400)
        with pytest.raises(InvalidAmount):
            dai_pool.supply(DAI, 0, "alice")

        assert dai_pool.get_reserve_data(DAI) == before

    def test_concurrent_supplies(self, dai_pool: Pool) -> None:
        n_threads, n_supplies = 8, 50

        def supplier(user: str) -> None:
            for _ in range(n_supplies):
                dai_pool.supply(DAI, WAD, user)

        threads = [threading.Thread(target=supplier, args=(f"user{i}",)) for i in range(n_threads)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        data = dai_pool.get_reserve_data(DAI)
        a_token = dai_pool.ledger.a_token(DAI)
        assert data.virtual_underlying_balance == n_threads * n_supplies * WAD
        assert a_token.scaled_total_supply() == n_threads * n_supplies * WAD
        assert sum(acc.scaled_balance for _, acc in a_token.holders()) == a_token.scaled_total_supply()

    def test_nested_commit_flushes_once(self, ledger: ReserveLedger, event_log: EventLog) -> None:
        ledger.init_reserve(DAI, ReserveConfiguration())
        ledger.init_reserve(USDC, ReserveConfiguration())
        event_log.clear()

        with ledger.transaction(DAI) as (dai,):
            dai.a_token.mint("alice", "alice", 100, RAY)
            with ledger.transaction(USDC) as (usdc,):
                usdc.a_token.mint("alice", "alice", 100, RAY)
            assert event_log.events == []

        assert [m.token for m in event_log.of_type(Mint)] == ["aDAI", "aUSDC"]
