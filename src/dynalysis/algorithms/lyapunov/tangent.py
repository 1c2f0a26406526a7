"""Tangent-space state and the variational (augmented) vector field."""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from dynalysis.algorithms.dynamics.base import DynamicalSystemProtocol


@dataclass(frozen=True)
class TangentState:
    """Base state plus ``k`` tangent vectors.

    Attributes
    ----------
    t : float
        Time of the state.
    state : numpy.ndarray
        Base state, shape ``(n,)``.
    Q : numpy.ndarray
        Tangent vectors as columns, shape ``(n, k)``.
    """
    t: float
    state: np.ndarray
    Q: np.ndarray

    @property
    def k(self) -> int:
        return self.Q.shape[1]

    def orthonormality_error(self) -> float:
        """Frobenius norm of ``Q^T Q - I``."""
        return float(np.linalg.norm(self.Q.T @ self.Q - np.eye(self.k)))

    def pack(self) -> np.ndarray:
        """Flatten to the augmented state ``[x, vec(Q)]`` (column-major)."""
        return np.concatenate((self.state, self.Q.ravel(order="F")))

    @classmethod
    def unpack(cls, t: float, z: np.ndarray, n: int, k: int) -> "TangentState":
        return cls(float(t), np.array(z[:n]), np.array(z[n:].reshape((n, k), order="F")))


class _VariationalSystem:
    """Augmented system ``x' = f(x, p, t)``, ``W' = J(x, p, t) W``.

    Only the first ``n`` components take part in the integrator's error
    control (:attr:`error_dim`), so the tangent columns are advanced on the
    steps accepted for the base trajectory.

    Parameters
    ----------
    system : :class:`~dynalysis.algorithms.dynamics.base.DynamicalSystemProtocol`
        Base system. Its ``jacobian`` may be analytic or finite-difference.
    k : int
        Number of tangent vectors.
    params : numpy.ndarray, optional
        Parameter override; defaults to ``system.params``.
    """

    def __init__(self, system: DynamicalSystemProtocol, k: int, params: Optional[np.ndarray] = None):
        n = int(system.dim)
        if not 1 <= k <= n:
            raise ValueError(f"Number of tangent vectors must be in [1, {n}], got {k}")
        self._system = system
        self._n = n
        self._k = int(k)
        self._params = np.asarray(system.params if params is None else params, dtype=np.float64)

    @property
    def dim(self) -> int:
        return self._n * (1 + self._k)

    @property
    def error_dim(self) -> int:
        return self._n

    @property
    def rhs(self) -> Callable[[float, np.ndarray], np.ndarray]:
        system = self._system
        n, k, p = self._n, self._k, self._params

        def _rhs(t: float, z: np.ndarray) -> np.ndarray:
            x = z[:n]
            W = z[n:].reshape((n, k), order="F")
            out = np.empty_like(z)
            out[:n] = system.derivative(x, p, t)
            out[n:] = (system.jacobian(x, p, t) @ W).ravel(order="F")
            return out

        return _rhs
