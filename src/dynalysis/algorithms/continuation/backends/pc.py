"""Pseudo-arclength predictor-corrector backend (Moore-Penrose variant).

Each step predicts ``z + ds v`` along the unit tangent ``v`` of the branch
in ``z = (x, p)`` space and corrects with Newton iterations on the bordered
system

    [ F_z ]  dz = [ F ]        [ F_z ]  dv = [ F_z v ]
    [ v^T ]       [ 0 ]        [ v^T ]       [   0   ]

updating both the point and the tangent at every iteration. The bordered
matrix stays regular at simple folds, where ``F_x`` alone is singular.

References
----------
Dhooge, A.; Govaerts, W.; Kuznetsov, Yu. A. (2003). "MATCONT: A MATLAB
package for numerical bifurcation analysis of ODEs".
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from dynalysis.algorithms.continuation.config import ContinuationConfig
from dynalysis.algorithms.continuation.problems import _BifurcationProblem
from dynalysis.algorithms.continuation.types import TerminationReason
from dynalysis.algorithms.linalg.backend import _LinalgBackend
from dynalysis.algorithms.types.core import _DynalysisBaseBackend
from dynalysis.algorithms.types.exceptions import (CorrectorFailure,
                                                   DynalysisError)
from dynalysis.utils.log_config import logger


@dataclass
class _AcceptedStep:
    z: np.ndarray
    tangent: np.ndarray
    iterations: int
    residual_norm: float


@dataclass
class _ContinuationOutputs:
    """Raw backend outputs: accepted points in ``(x, p)`` space plus run info."""
    steps: List[_AcceptedStep] = field(default_factory=list)
    termination: Optional[TerminationReason] = None
    failure: Optional[CorrectorFailure] = None
    n_rejected: int = 0
    final_ds: float = float("nan")


class _MoorePenroseBackend(_DynalysisBaseBackend[_ContinuationOutputs]):
    """Predictor-corrector loop with step-size adaptation.

    Parameters
    ----------
    linalg : :class:`~dynalysis.algorithms.linalg.backend._LinalgBackend`, optional
        Solver for the bordered systems.
    """

    def __init__(self, linalg: Optional[_LinalgBackend] = None) -> None:
        super().__init__()
        self._linalg = linalg if linalg is not None else _LinalgBackend()

    def correct(
        self,
        problem: _BifurcationProblem,
        z: np.ndarray,
        v: np.ndarray,
        *,
        tol: float,
        max_iter: int,
    ) -> Tuple[Optional[np.ndarray], np.ndarray, int, float]:
        """Moore-Penrose corrector started from the predicted point *z*.

        Returns
        -------
        z : numpy.ndarray or None
            Corrected point, ``None`` when the iteration did not converge.
        v : numpy.ndarray
            Updated unit tangent.
        iterations : int
        residual_norm : float
        """
        z = np.array(z, dtype=np.float64, copy=True)
        v = np.array(v, dtype=np.float64, copy=True)
        rhs = np.zeros((z.size, 2))
        G = problem.residual(z[:-1], z[-1])
        r_norm = float(np.linalg.norm(G))

        for it in range(1, max_iter + 1):
            A = problem.extended_jacobian(z[:-1], z[-1])
            B = np.vstack((A, v))
            rhs[:-1, 0] = G
            rhs[:-1, 1] = A @ v
            sol = self._linalg.solve(B, rhs)
            dz = sol[:, 0]
            w = v - sol[:, 1]
            w_norm = float(np.linalg.norm(w))
            if not (np.all(np.isfinite(dz)) and np.isfinite(w_norm)) or w_norm == 0.0:
                return None, v, it, float("nan")
            z -= dz
            v = w / w_norm

            G = problem.residual(z[:-1], z[-1])
            r_norm = float(np.linalg.norm(G))
            dz_norm = float(np.linalg.norm(dz))
            self.on_iteration(it, z, r_norm)
            if not np.isfinite(r_norm):
                return None, v, it, r_norm
            if r_norm < tol and dz_norm < tol:
                return z, v, it, r_norm
        return None, v, max_iter, r_norm

    def run(
        self,
        *,
        problem: _BifurcationProblem,
        x0: np.ndarray,
        p0: float,
        config: ContinuationConfig,
        tangent: Optional[np.ndarray] = None,
        ds: Optional[float] = None,
        correct_seed: bool = True,
        include_seed: bool = True,
    ) -> _ContinuationOutputs:
        """Trace a branch of ``F(x, p) = 0`` starting at ``(x0, p0)``.

        Raises
        ------
        :class:`~dynalysis.algorithms.types.exceptions.ConvergenceError`
            If the starting point cannot be corrected at fixed ``p0``.
        """
        out = _ContinuationOutputs()
        x = np.asarray(x0, dtype=np.float64)
        p = float(p0)
        seed_iters = 0
        if correct_seed:
            x, seed_iters = problem.correct(x, p, tol=config.newton_tol, max_iter=config.max_newton_iters)
            logger.info(f"Seed corrected at p={p:.8g} in {seed_iters} Newton iterations")

        z = np.concatenate((x, [p]))
        v = problem.initial_tangent(x, p, config.direction) if tangent is None else np.asarray(tangent, dtype=np.float64)
        v = v / np.linalg.norm(v)
        if include_seed:
            out.steps.append(_AcceptedStep(z.copy(), v.copy(), seed_iters, float(np.linalg.norm(problem.residual(x, p)))))
            problem.on_accept(x, p)

        h = float(np.clip(config.ds if ds is None else ds, config.ds_min, config.ds_max))
        n_steps = 0
        while True:
            if n_steps >= config.max_steps:
                out.termination = TerminationReason.MAX_STEPS
                break

            z_pred = z + h * v
            try:
                z_new, v_new, iters, r_norm = self.correct(
                    problem, z_pred, v, tol=config.newton_tol, max_iter=config.max_newton_iters,
                )
            except (np.linalg.LinAlgError, ArithmeticError, DynalysisError) as exc:
                logger.debug(f"Corrector raised {type(exc).__name__}: {exc}")
                z_new, iters, r_norm = None, 0, float("nan")

            if z_new is None:
                out.n_rejected += 1
                self.on_reject(z_pred, ds=h)
                if h <= config.ds_min:
                    out.failure = CorrectorFailure(
                        f"Corrector failed at ds_min={config.ds_min:.3e} from p={z[-1]:.8g} "
                        f"(|F|={r_norm:.3e})",
                        parameter=float(z[-1]),
                        ds=h,
                    )
                    out.termination = TerminationReason.CORRECTOR_FAILURE
                    self.on_failure(z_pred, iterations=iters, residual_norm=r_norm)
                    logger.warning(str(out.failure))
                    break
                h = max(0.5 * h, config.ds_min)
                logger.debug(f"Step rejected, ds reduced to {h:.3e}")
                continue

            if not config.p_min <= z_new[-1] <= config.p_max:
                out.termination = TerminationReason.PARAMETER_RANGE
                logger.info(f"Parameter left [{config.p_min}, {config.p_max}] at p={z_new[-1]:.8g}")
                break

            if np.dot(v_new, v) < 0.0:
                v_new = -v_new
            z, v = z_new, v_new
            n_steps += 1
            out.steps.append(_AcceptedStep(z.copy(), v.copy(), iters, r_norm))
            problem.on_accept(z[:-1], z[-1])
            self.on_accept(z, iterations=iters, residual_norm=r_norm)
            logger.debug(f"Step {n_steps}: p={z[-1]:.10g} ds={h:.3e} iters={iters}")
            h = min(h * config.ds_growth, config.ds_max)

        out.final_ds = h
        return out
