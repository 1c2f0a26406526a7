"""Configuration classes for numerical continuation."""

from dataclasses import dataclass

import numpy as np

from dynalysis.algorithms.types.core import _DynalysisBaseConfig
from dynalysis.utils.config import DS_GROWTH, MAX_NEWTON_ITERS, NEWTON_TOL


@dataclass(frozen=True)
class ContinuationConfig(_DynalysisBaseConfig):
    """Step control and stopping criteria of pseudo-arclength continuation.

    Parameters
    ----------
    p_min, p_max : float
        Admissible range of the continuation parameter. The branch stops at
        the first corrected point outside the range; that point is discarded.
    ds : float, default 0.01
        Initial arclength step.
    ds_min, ds_max : float
        Bounds of the arclength step. A corrector failure at ``ds_min``
        terminates the branch.
    max_steps : int, default 200
        Maximum number of accepted continuation steps (the starting point is
        not counted).
    newton_tol : float, default ``NEWTON_TOL``
        Convergence threshold applied to both the residual norm and the
        Newton update norm.
    max_newton_iters : int, default ``MAX_NEWTON_ITERS``
        Corrector iteration budget per step.
    ds_growth : float, default ``DS_GROWTH``
        Step multiplier after a successful correction.
    direction : {1, -1}, default 1
        Initial direction of travel along the parameter axis.
    detect_bifurcations : bool, default True
        Evaluate stability and test functions at every accepted point.
    """
    p_min: float = -np.inf
    p_max: float = np.inf
    ds: float = 0.01
    ds_min: float = 1e-6
    ds_max: float = 0.1
    max_steps: int = 200
    newton_tol: float = NEWTON_TOL
    max_newton_iters: int = MAX_NEWTON_ITERS
    ds_growth: float = DS_GROWTH
    direction: int = 1
    detect_bifurcations: bool = True

    def _validate(self) -> None:
        if not self.p_min < self.p_max:
            raise ValueError(f"p_min must be smaller than p_max, got [{self.p_min}, {self.p_max}]")
        if not 0.0 < self.ds_min <= self.ds_max:
            raise ValueError(f"Need 0 < ds_min <= ds_max, got ds_min={self.ds_min}, ds_max={self.ds_max}")
        if not self.ds_min <= self.ds <= self.ds_max:
            raise ValueError(f"ds={self.ds} must lie in [ds_min, ds_max]")
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be >= 1, got {self.max_steps}")
        if self.newton_tol <= 0.0:
            raise ValueError(f"newton_tol must be positive, got {self.newton_tol}")
        if self.max_newton_iters < 1:
            raise ValueError(f"max_newton_iters must be >= 1, got {self.max_newton_iters}")
        if self.ds_growth < 1.0:
            raise ValueError(f"ds_growth must be >= 1, got {self.ds_growth}")
        if self.direction not in (1, -1):
            raise ValueError(f"direction must be 1 or -1, got {self.direction}")


@dataclass(frozen=True)
class CollocationConfig(_DynalysisBaseConfig):
    """Discretisation of periodic orbits by orthogonal collocation.

    Parameters
    ----------
    n_mesh : int, default 20
        Number of uniform mesh intervals ``M``.
    degree : int, default 4
        Degree ``d`` of the piecewise Lagrange polynomials; each interval
        carries ``d`` Gauss-Legendre collocation points.
    amplitude : float, default 1e-2
        Size of the first step off a Hopf point, in state units.
    """
    n_mesh: int = 20
    degree: int = 4
    amplitude: float = 1e-2

    def _validate(self) -> None:
        if self.n_mesh < 2:
            raise ValueError(f"n_mesh must be >= 2, got {self.n_mesh}")
        if self.degree < 1:
            raise ValueError(f"degree must be >= 1, got {self.degree}")
        if self.amplitude <= 0.0:
            raise ValueError(f"amplitude must be positive, got {self.amplitude}")
