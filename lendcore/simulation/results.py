"""Result dataclasses for simulation outputs."""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class IndexProjectionResult:
    """Projected rates and indices for a batch of utilization paths.

    Attributes:
        utilization_paths: (n_paths, n_steps) array of utilization over time.
        borrow_rate_paths: (n_paths, n_steps) array of annual borrow rates.
        supply_rate_paths: (n_paths, n_steps) array of annual supply rates.
        liquidity_index_paths: (n_paths, n_steps) liquidity index, 1.0 at step 0.
        variable_borrow_index_paths: (n_paths, n_steps) variable borrow index,
            1.0 at step 0.
        timesteps: (n_steps,) array of elapsed time in seconds.
    """

    utilization_paths: np.ndarray
    borrow_rate_paths: np.ndarray
    supply_rate_paths: np.ndarray
    liquidity_index_paths: np.ndarray
    variable_borrow_index_paths: np.ndarray
    timesteps: np.ndarray

    @property
    def terminal_supply_growth(self) -> np.ndarray:
        """(n_paths,) growth of a deposit over the whole horizon."""
        return self.liquidity_index_paths[:, -1]

    @property
    def terminal_debt_growth(self) -> np.ndarray:
        """(n_paths,) growth of a variable debt over the whole horizon."""
        return self.variable_borrow_index_paths[:, -1]
