"""Monte Carlo projection of reserve rates and indices.

Utilization follows an Ornstein-Uhlenbeck mean-reverting process. Each
path is run through the kinked rate curve and accrued the same way the
reserve does it: linear interest for the liquidity index and the
cubic-truncated compounding for the variable borrow index. Everything is
float and vectorized; use ``replay_utilization_path`` for exact integers.
"""

from __future__ import annotations

import numpy as np

from lendcore.data.constants import PERCENTAGE_FACTOR, RAY, SECONDS_PER_YEAR
from lendcore.protocol.interest_rate import InterestRateParams
from lendcore.protocol.math_utils import calculate_compounded_interest
from lendcore.simulation.params import OUParams
from lendcore.simulation.results import IndexProjectionResult


def simulate_utilization_paths(
    ou: OUParams,
    u0: float,
    n_paths: int,
    n_steps: int,
    dt: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Simulate utilization paths via Euler-Maruyama on an OU process.

    Args:
        ou: OU process parameters.
        u0: Initial utilization.
        n_paths: Number of Monte Carlo paths.
        n_steps: Number of time steps.
        dt: Time step size in years (e.g. 1/365).
        rng: Numpy random generator for reproducibility.

    Returns:
        (n_paths, n_steps) array of utilization values clamped to [0, 1].
    """
    paths = np.empty((n_paths, n_steps))
    paths[:, 0] = u0

    sqrt_dt = np.sqrt(dt)
    noise = rng.standard_normal((n_paths, n_steps - 1))

    for t in range(1, n_steps):
        drift = ou.kappa * (ou.theta - paths[:, t - 1]) * dt
        diffusion = ou.sigma * sqrt_dt * noise[:, t - 1]
        paths[:, t] = paths[:, t - 1] + drift + diffusion

    # Clamp to [0, 1]
    np.clip(paths, 0.0, 1.0, out=paths)
    return paths


def _vectorized_borrow_rate(
    utilization: np.ndarray,
    params: InterestRateParams,
) -> np.ndarray:
    """Vectorized piecewise borrow rate, as a float fraction per year."""
    optimal = params.optimal_usage_ratio / RAY
    base = params.base_variable_borrow_rate / RAY
    slope1 = params.variable_rate_slope1 / RAY
    slope2 = params.variable_rate_slope2 / RAY

    below_kink = utilization <= optimal
    return np.where(
        below_kink,
        base + (utilization / optimal) * slope1,
        base + slope1 + ((utilization - optimal) / (1.0 - optimal)) * slope2,
    )


def _vectorized_supply_rate(
    utilization: np.ndarray,
    borrow_rate: np.ndarray,
    reserve_factor: int,
) -> np.ndarray:
    """Supply rate with no unbacked liquidity: borrow × u × (1 - rf)."""
    return borrow_rate * utilization * (1.0 - reserve_factor / PERCENTAGE_FACTOR)


def _truncated_compound_factor(rate: np.ndarray, elapsed: float) -> np.ndarray:
    """Float mirror of the three-term binomial compounding."""
    per_second = rate / SECONDS_PER_YEAR
    second_term = elapsed * (elapsed - 1) / 2.0 * per_second**2
    third_term = elapsed * (elapsed - 1) * max(elapsed - 2, 0) / 6.0 * per_second**3
    return 1.0 + per_second * elapsed + second_term + third_term


def project_indices(
    params: InterestRateParams,
    reserve_factor: int,
    utilization_paths: np.ndarray,
    dt_seconds: int,
) -> IndexProjectionResult:
    """Project rates and indices along utilization paths.

    Rates at step ``t`` accrue over the interval ``[t, t+1)``, matching the
    reserve where the rate set by one operation applies until the next.

    Args:
        params: Rate curve parameters.
        reserve_factor: Reserve factor in bps.
        utilization_paths: (n_paths, n_steps) utilization array.
        dt_seconds: Seconds between steps.

    Returns:
        IndexProjectionResult with indices normalised to 1.0 at step 0.
    """
    n_paths, n_steps = utilization_paths.shape
    borrow_rates = _vectorized_borrow_rate(utilization_paths, params)
    supply_rates = _vectorized_supply_rate(utilization_paths, borrow_rates, reserve_factor)

    liquidity_index = np.ones((n_paths, n_steps))
    borrow_index = np.ones((n_paths, n_steps))
    for t in range(1, n_steps):
        linear = 1.0 + supply_rates[:, t - 1] * dt_seconds / SECONDS_PER_YEAR
        liquidity_index[:, t] = liquidity_index[:, t - 1] * linear
        borrow_index[:, t] = borrow_index[:, t - 1] * _truncated_compound_factor(
            borrow_rates[:, t - 1], dt_seconds
        )

    return IndexProjectionResult(
        utilization_paths=utilization_paths,
        borrow_rate_paths=borrow_rates,
        supply_rate_paths=supply_rates,
        liquidity_index_paths=liquidity_index,
        variable_borrow_index_paths=borrow_index,
        timesteps=np.arange(n_steps, dtype=float) * dt_seconds,
    )


def compounding_truncation_error(rate: int, elapsed_seconds: int) -> float:
    """Relative shortfall of the truncated compounding vs. exact compounding.

    Args:
        rate: Annual rate in ray.
        elapsed_seconds: Accrual interval.

    Returns:
        ``(exact - truncated) / exact``; non-negative, and grows with both
        the rate and the interval.
    """
    truncated = calculate_compounded_interest(rate, 0, elapsed_seconds) / RAY
    exact = float(np.exp(rate / RAY * elapsed_seconds / SECONDS_PER_YEAR))
    return (exact - truncated) / exact


def run_index_monte_carlo(
    params: InterestRateParams,
    reserve_factor: int,
    u0: float,
    ou_params: OUParams | None = None,
    n_paths: int = 1000,
    horizon_days: int = 365,
    seed: int | None = None,
) -> IndexProjectionResult:
    """Simulate utilization and project daily-accrued indices.

    Args:
        params: Rate curve parameters.
        reserve_factor: Reserve factor in bps.
        u0: Initial utilization.
        ou_params: OU process parameters (defaults used if None).
        n_paths: Number of simulation paths.
        horizon_days: Simulation horizon in days.
        seed: Random seed for reproducibility.

    Returns:
        IndexProjectionResult over ``horizon_days + 1`` daily steps.
    """
    if ou_params is None:
        ou_params = OUParams()

    rng = np.random.default_rng(seed)
    n_steps = horizon_days + 1  # +1: index 0 = initial state
    paths = simulate_utilization_paths(ou_params, u0, n_paths, n_steps, 1.0 / 365.0, rng)
    return project_indices(params, reserve_factor, paths, dt_seconds=24 * 3600)
