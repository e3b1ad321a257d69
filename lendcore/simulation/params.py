"""Parameters for utilization dynamics in Monte Carlo simulations."""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class OUParams:
    """Parameters for the Ornstein-Uhlenbeck utilization process.

    The utilization follows:
      du = κ(θ - u)dt + σ·dW

    Attributes:
        theta: Long-run mean utilization.
        kappa: Mean-reversion speed (higher = faster revert).
        sigma: Volatility of utilization shocks.
    """

    theta: float = 0.78
    kappa: float = 5.0
    sigma: float = 0.08


def calibrate_ou_params(
    daily_utilization: list[float],
    min_observations: int = 30,
) -> OUParams:
    """Calibrate OU parameters from historical daily utilization.

    Fits the exact AR(1) discretisation u[t+1] = a + b·u[t] + ε by least
    squares and maps it back to (θ, κ, σ).

    Args:
        daily_utilization: Chronological list of daily utilization values.
        min_observations: Minimum number of observations required.

    Returns:
        Calibrated OUParams, or the defaults when the history is too short
        or shows no mean reversion.
    """
    if len(daily_utilization) < min_observations:
        return OUParams()  # Return defaults

    u = np.asarray(daily_utilization, dtype=float)
    x, y = u[:-1], u[1:]
    b, a = np.polyfit(x, y, 1)

    if not 0.0 < b < 1.0:
        return OUParams()

    dt = 1.0 / 365.0
    kappa = -np.log(b) / dt
    theta = a / (1.0 - b)
    residuals = y - (a + b * x)
    # Variance of the exact discretisation: σ²(1 - b²) / 2κ
    sigma = float(np.std(residuals) * np.sqrt(2.0 * kappa / (1.0 - b * b)))

    return OUParams(
        theta=float(np.clip(theta, 0.0, 1.0)),
        kappa=float(kappa),
        sigma=max(0.001, sigma),  # Floor at 0.1%
    )
