"""Tests for the Monte Carlo index projection."""

import numpy as np
import pytest

from lendcore.data.constants import RAY, SECONDS_PER_YEAR
from lendcore.protocol.interest_rate import InterestRateParams, calculate_interest_rates
from lendcore.protocol.math_utils import calculate_compounded_interest
from lendcore.simulation.monte_carlo import (
    _vectorized_borrow_rate,
    _vectorized_supply_rate,
    compounding_truncation_error,
    project_indices,
    run_index_monte_carlo,
    simulate_utilization_paths,
)
from lendcore.simulation.params import OUParams, calibrate_ou_params

STABLE_TWO = InterestRateParams.from_bps(8000, 0, 400, 7500)
DAY = 24 * 3600


class TestOUProcess:
    def test_paths_bounded_0_1(self) -> None:
        ou = OUParams(theta=0.5, kappa=5.0, sigma=0.15)
        rng = np.random.default_rng(42)
        paths = simulate_utilization_paths(ou, 0.5, n_paths=500, n_steps=365, dt=1 / 365, rng=rng)
        assert np.all(paths >= 0.0)
        assert np.all(paths <= 1.0)

    def test_mean_reverts_to_theta(self) -> None:
        ou = OUParams(theta=0.60, kappa=10.0, sigma=0.05)
        rng = np.random.default_rng(123)
        paths = simulate_utilization_paths(ou, 0.30, n_paths=2000, n_steps=365, dt=1 / 365, rng=rng)
        # After 1 year with strong mean reversion, mean should be near theta
        final_mean = np.mean(paths[:, -1])
        assert abs(final_mean - 0.60) < 0.05

    def test_deterministic_with_seed(self) -> None:
        ou = OUParams()
        p1 = simulate_utilization_paths(ou, 0.44, 100, 50, 1 / 365, np.random.default_rng(99))
        p2 = simulate_utilization_paths(ou, 0.44, 100, 50, 1 / 365, np.random.default_rng(99))
        np.testing.assert_array_equal(p1, p2)

    def test_initial_value(self) -> None:
        rng = np.random.default_rng(0)
        paths = simulate_utilization_paths(OUParams(), 0.75, n_paths=5, n_steps=10, dt=1 / 365, rng=rng)
        assert paths.shape == (5, 10)
        np.testing.assert_array_almost_equal(paths[:, 0], 0.75)


class TestCalibration:
    def test_short_history_gives_defaults(self) -> None:
        assert calibrate_ou_params([0.5] * 10) == OUParams()

    def test_explosive_history_gives_defaults(self) -> None:
        history = [0.01 * 1.01**t for t in range(100)]
        assert calibrate_ou_params(history) == OUParams()

    def test_recovers_long_run_mean(self) -> None:
        true = OUParams(theta=0.6, kappa=5.0, sigma=0.05)
        path = simulate_utilization_paths(
            true, 0.6, n_paths=1, n_steps=3000, dt=1 / 365, rng=np.random.default_rng(7)
        )[0]

        fitted = calibrate_ou_params(path.tolist())
        assert fitted.theta == pytest.approx(0.6, abs=0.05)
        assert fitted.sigma == pytest.approx(0.05, rel=0.3)
        assert fitted.kappa > 0


class TestVectorizedRates:
    @pytest.mark.parametrize("utilization", [0.0, 0.2, 0.4, 0.8, 0.9, 1.0])
    def test_matches_integer_curve(self, utilization: float) -> None:
        notional = 10**24
        debt = int(round(utilization * notional))
        liquidity_rate, borrow_rate = calculate_interest_rates(
            STABLE_TWO,
            unbacked=0,
            liquidity_added=0,
            liquidity_taken=0,
            total_debt=debt,
            reserve_factor=1000,
            virtual_underlying_balance=notional - debt,
        )

        u = np.array([utilization])
        vec_borrow = _vectorized_borrow_rate(u, STABLE_TWO)
        vec_supply = _vectorized_supply_rate(u, vec_borrow, 1000)
        assert vec_borrow[0] == pytest.approx(borrow_rate / RAY, abs=1e-12)
        assert vec_supply[0] == pytest.approx(liquidity_rate / RAY, abs=1e-12)


class TestProjectIndices:
    def test_constant_utilization(self) -> None:
        paths = np.full((1, 366), 0.4)
        result = project_indices(STABLE_TWO, 1000, paths, dt_seconds=DAY)

        daily_linear = 1.0 + 0.0072 * DAY / SECONDS_PER_YEAR
        assert result.terminal_supply_growth[0] == pytest.approx(daily_linear**365, rel=1e-12)
        first_step = calculate_compounded_interest(2 * 10**25, 0, DAY) / RAY
        assert result.variable_borrow_index_paths[0, 1] == pytest.approx(first_step, rel=1e-12)
        assert result.timesteps[-1] == 365 * DAY

    def test_indexes_start_at_one_and_grow(self) -> None:
        paths = np.array([[0.1, 0.5, 0.95, 0.3], [0.0, 0.0, 0.0, 0.0]])
        result = project_indices(STABLE_TWO, 1000, paths, dt_seconds=DAY)

        np.testing.assert_array_equal(result.liquidity_index_paths[:, 0], 1.0)
        assert np.all(np.diff(result.liquidity_index_paths, axis=1) >= 0)
        assert np.all(np.diff(result.variable_borrow_index_paths, axis=1) >= 0)
        # No debt, no growth
        np.testing.assert_array_equal(result.liquidity_index_paths[1], 1.0)

    def test_debt_grows_faster_than_deposits(self) -> None:
        paths = np.full((1, 31), 0.9)
        result = project_indices(STABLE_TWO, 1000, paths, dt_seconds=DAY)
        assert result.terminal_debt_growth[0] > result.terminal_supply_growth[0] > 1.0


class TestCompoundingTruncation:
    def test_small_for_short_intervals(self) -> None:
        assert 0 <= compounding_truncation_error(5 * 10**25, DAY) < 1e-12

    def test_grows_with_rate_and_time(self) -> None:
        low = compounding_truncation_error(10**26, SECONDS_PER_YEAR)
        high_rate = compounding_truncation_error(10**27, SECONDS_PER_YEAR)
        long_gap = compounding_truncation_error(10**26, 5 * SECONDS_PER_YEAR)
        assert 0 < low < high_rate
        assert low < long_gap


class TestRunIndexMonteCarlo:
    def test_result_shapes(self) -> None:
        result = run_index_monte_carlo(STABLE_TWO, 1000, u0=0.6, n_paths=50, horizon_days=30, seed=42)
        assert result.utilization_paths.shape == (50, 31)
        assert result.borrow_rate_paths.shape == (50, 31)
        assert result.liquidity_index_paths.shape == (50, 31)
        assert result.terminal_supply_growth.shape == (50,)
        assert np.all(result.terminal_supply_growth >= 1.0)

    def test_reproducible(self) -> None:
        a = run_index_monte_carlo(STABLE_TWO, 1000, u0=0.6, n_paths=20, horizon_days=10, seed=3)
        b = run_index_monte_carlo(STABLE_TWO, 1000, u0=0.6, n_paths=20, horizon_days=10, seed=3)
        np.testing.assert_array_equal(a.variable_borrow_index_paths, b.variable_borrow_index_paths)
