"""Algebraic problems ``F(x, p) = 0`` followed by the continuation engine."""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple, Union

import numpy as np

from dynalysis.algorithms.continuation.bifurcation import (
    EquilibriumTest, detect_equilibrium_bifurcations)
from dynalysis.algorithms.continuation.types import SpecialPointKind
from dynalysis.algorithms.linalg.backend import _LinalgBackend
from dynalysis.algorithms.types.exceptions import ConvergenceError
from dynalysis.utils.config import MAX_NEWTON_ITERS, NEWTON_TOL
from dynalysis.utils.log_config import logger

RecordFn = Callable[[np.ndarray, float], Optional[dict]]


class _BifurcationProblem(ABC):
    """Base class of the problems handled by the continuation engine.

    Subclasses define the residual ``F(x, p)`` and its derivatives with
    respect to the unknowns ``x`` and the continuation parameter ``p``, and
    how the stability of a solution is measured.

    Parameters
    ----------
    system : :class:`~dynalysis.algorithms.dynamics.base.DynamicalSystem`
        Underlying vector field.
    parameter : int or str
        Index or name of the continuation parameter.
    record : callable, optional
        ``record(x, p) -> dict`` evaluated at every accepted point.
    linalg : :class:`~dynalysis.algorithms.linalg.backend._LinalgBackend`, optional
    """

    kind: str = "problem"

    def __init__(self, system, parameter: Union[int, str], record: Optional[RecordFn] = None, linalg: Optional[_LinalgBackend] = None):
        self.system = system
        self.parameter_index = system.param_index(parameter)
        names = getattr(system, "param_names", None)
        self.parameter_name = names[self.parameter_index] if names else None
        self._record = record
        self._linalg = linalg if linalg is not None else _LinalgBackend()

    @property
    @abstractmethod
    def dim(self) -> int:
        """Number of unknowns ``x`` (the parameter excluded)."""

    @property
    def state_dim(self) -> int:
        return int(self.system.dim)

    @property
    def linalg(self) -> _LinalgBackend:
        return self._linalg

    def params(self, p: float) -> np.ndarray:
        """System parameter vector with the continuation parameter set to *p*."""
        out = np.array(self.system.params, dtype=np.float64)
        out[self.parameter_index] = p
        return out

    @abstractmethod
    def residual(self, x: np.ndarray, p: float) -> np.ndarray:
        ...

    @abstractmethod
    def jacobian(self, x: np.ndarray, p: float) -> np.ndarray:
        """``dF/dx``, shape ``(dim, dim)``."""

    @abstractmethod
    def parameter_jacobian(self, x: np.ndarray, p: float) -> np.ndarray:
        """``dF/dp``, shape ``(dim,)``."""

    def extended_jacobian(self, x: np.ndarray, p: float) -> np.ndarray:
        """``[F_x | F_p]``, shape ``(dim, dim + 1)``."""
        return np.column_stack((self.jacobian(x, p), self.parameter_jacobian(x, p)))

    @abstractmethod
    def stability(self, x: np.ndarray, p: float) -> Tuple[np.ndarray, object]:
        """Return ``(eigenvalues, test)`` where ``test`` feeds :meth:`detect`."""

    @abstractmethod
    def detect(self, prev_test, curr_test) -> List[Tuple[SpecialPointKind, float]]:
        ...

    def record(self, x: np.ndarray, p: float) -> Optional[dict]:
        return None if self._record is None else self._record(x, p)

    def on_accept(self, x: np.ndarray, p: float) -> None:
        """Called by the backend after every accepted point."""
        return None

    def correct(self, x0: np.ndarray, p: float, *, tol: float = NEWTON_TOL, max_iter: int = MAX_NEWTON_ITERS) -> Tuple[np.ndarray, int]:
        """Newton iteration on ``F(x, p) = 0`` at fixed *p*.

        Returns
        -------
        x : numpy.ndarray
            Corrected solution.
        iterations : int

        Raises
        ------
        :class:`~dynalysis.algorithms.types.exceptions.ConvergenceError`
            If ``|F|`` and ``|dx|`` do not both drop below *tol* within
            *max_iter* iterations.
        """
        x = np.array(x0, dtype=np.float64, copy=True)
        r = self.residual(x, p)
        for it in range(1, max_iter + 1):
            dx = self._linalg.solve(self.jacobian(x, p), r)
            x -= dx
            r = self.residual(x, p)
            r_norm = float(np.linalg.norm(r))
            dx_norm = float(np.linalg.norm(dx))
            logger.debug(f"Newton iter {it}: |F|={r_norm:.3e} |dx|={dx_norm:.3e}")
            if not (np.isfinite(r_norm) and np.isfinite(dx_norm)):
                break
            if r_norm < tol and dx_norm < tol:
                return x, it
        raise ConvergenceError(
            f"Newton correction at p={p:.8g} did not converge in {max_iter} iterations "
            f"(|F|={float(np.linalg.norm(r)):.3e})"
        )

    def initial_tangent(self, x: np.ndarray, p: float, direction: int = 1) -> np.ndarray:
        """Unit null vector of ``[F_x | F_p]`` oriented along ``direction`` in ``p``."""
        v = self._linalg.null_vector(self.extended_jacobian(x, p))
        if v[-1] * direction < 0.0:
            v = -v
        return v


class EquilibriumProblem(_BifurcationProblem):
    """Equilibria ``f(x, p) = 0`` of a vector field.

    Stability comes from the eigenvalues of ``f_x``; folds are flagged by a
    sign change of ``det f_x`` and Hopf points by a complex pair crossing the
    imaginary axis.

    Examples
    --------
    >>> from dynalysis.algorithms.dynamics import hopf_normal_form
    >>> problem = EquilibriumProblem(hopf_normal_form(mu=-1.0), "mu")
    >>> problem.residual(np.zeros(2), -1.0)
    array([0., 0.])
    """

    kind = "equilibrium"

    @property
    def dim(self) -> int:
        return int(self.system.dim)

    def residual(self, x: np.ndarray, p: float) -> np.ndarray:
        return self.system.derivative(x, self.params(p), 0.0)

    def jacobian(self, x: np.ndarray, p: float) -> np.ndarray:
        return self.system.jacobian(x, self.params(p), 0.0)

    def parameter_jacobian(self, x: np.ndarray, p: float) -> np.ndarray:
        return self.system.parameter_derivative(x, self.parameter_index, self.params(p), 0.0)

    def stability(self, x: np.ndarray, p: float) -> Tuple[np.ndarray, EquilibriumTest]:
        eigenvalues = self._linalg.eigvals(self.jacobian(x, p))
        return eigenvalues, EquilibriumTest.from_eigenvalues(eigenvalues)

    def detect(self, prev_test: EquilibriumTest, curr_test: EquilibriumTest) -> List[Tuple[SpecialPointKind, float]]:
        return detect_equilibrium_bifurcations(prev_test, curr_test)
