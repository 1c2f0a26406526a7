from dataclasses import dataclass
from typing import Optional

import numpy as np

from dynalysis.algorithms.types.core import _DynalysisBaseConfig
from dynalysis.utils.config import ABS_TOL, MAX_ITERS, REL_TOL, STEP_MIN


@dataclass(frozen=True)
class SolverConfig(_DynalysisBaseConfig):
    """Step-control configuration of the adaptive integrators.

    Parameters
    ----------
    abs_tol : float, default 1e-8
        Absolute error tolerance per component.
    rel_tol : float, default 1e-8
        Relative error tolerance per component.
    max_iters : int, default 500000
        Budget of step attempts (accepted and rejected) for one integration.
    step_min : float, default 1e-12
        Smallest step magnitude. A rejected step at this size aborts the
        integration.
    step_max : float, default inf
        Largest step magnitude.
    initial_step : float or None, default None
        First trial step. When None it is chosen from the scaled norms of
        the initial state and its derivative.
    """

    abs_tol: float = ABS_TOL
    rel_tol: float = REL_TOL
    max_iters: int = MAX_ITERS
    step_min: float = STEP_MIN
    step_max: float = np.inf
    initial_step: Optional[float] = None

    def _validate(self) -> None:
        """Validate the configuration."""
        if not self.abs_tol > 0.0 or not self.rel_tol > 0.0:
            raise ValueError(
                f"Tolerances must be positive, got abs_tol={self.abs_tol}, rel_tol={self.rel_tol}."
            )
        if not self.step_min > 0.0:
            raise ValueError(f"step_min must be positive, got {self.step_min}.")
        if self.step_min > self.step_max:
            raise ValueError(
                f"step_min ({self.step_min}) must not exceed step_max ({self.step_max})."
            )
        if int(self.max_iters) < 1:
            raise ValueError(f"max_iters must be >= 1, got {self.max_iters}.")
        if self.initial_step is not None and not self.initial_step > 0.0:
            raise ValueError(f"initial_step must be positive or None, got {self.initial_step}.")
