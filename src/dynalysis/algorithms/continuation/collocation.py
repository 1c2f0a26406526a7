"""Periodic orbits by orthogonal collocation.

One period, rescaled to ``tau in [0, 1]``, is split into ``M`` uniform mesh
intervals. On each interval the orbit is a degree-``d`` Lagrange polynomial
through ``d + 1`` equally spaced nodes; neighbouring intervals share their
boundary node. The unknowns are the ``M d + 1`` node states followed by the
period ``T``. The equations are

* the collocation conditions ``u'(tau) = T f(u(tau), p)`` at the ``d``
  Gauss-Legendre points of every interval,
* periodicity ``u(0) = u(1)``,
* the integral phase condition ``int <u(tau), u_ref'(tau)> dtau = 0``
  against the previously accepted orbit ``u_ref``.

References
----------
Doedel, E.; Keller, H. B.; Kernevez, J.-P. (1991). "Numerical analysis and
control of bifurcation problems (II): Bifurcation in infinite dimensions".
"""

from typing import List, Optional, Tuple, Union

import numba
import numpy as np
from numpy.polynomial.legendre import leggauss

from dynalysis.algorithms.continuation.bifurcation import (
    CycleTest, detect_cycle_bifurcations)
from dynalysis.algorithms.continuation.config import CollocationConfig
from dynalysis.algorithms.continuation.problems import (RecordFn,
                                                        _BifurcationProblem)
from dynalysis.algorithms.continuation.types import SpecialPointKind
from dynalysis.algorithms.integrators.configs import SolverConfig
from dynalysis.algorithms.integrators.rk import AdaptiveRK
from dynalysis.algorithms.integrators.types import Trajectory
from dynalysis.algorithms.linalg.backend import _LinalgBackend
from dynalysis.algorithms.lyapunov.tangent import _VariationalSystem
from dynalysis.algorithms.types.exceptions import BackendError, DynalysisError
from dynalysis.utils.config import FASTMATH
from dynalysis.utils.log_config import logger


@numba.njit(cache=False, fastmath=FASTMATH)
def _lagrange_matrices(nodes, points):
    """Values ``L[k, i] = l_i(c_k)`` and derivatives ``D[k, i] = l_i'(c_k)``
    of the Lagrange basis through *nodes* at *points*."""
    m = nodes.size
    K = points.size
    L = np.empty((K, m))
    D = np.empty((K, m))
    for k in range(K):
        c = points[k]
        for i in range(m):
            li = 1.0
            for j in range(m):
                if j != i:
                    li *= (c - nodes[j]) / (nodes[i] - nodes[j])
            L[k, i] = li
            di = 0.0
            for j in range(m):
                if j == i:
                    continue
                term = 1.0 / (nodes[i] - nodes[j])
                for l in range(m):
                    if l != i and l != j:
                        term *= (c - nodes[l]) / (nodes[i] - nodes[l])
                di += term
            D[k, i] = di
    return L, D


class PeriodicOrbitProblem(_BifurcationProblem):
    """Collocation discretisation of a family of periodic orbits.

    Parameters
    ----------
    system : :class:`~dynalysis.algorithms.dynamics.base.DynamicalSystem`
    parameter : int or str
        Continuation parameter.
    collocation : :class:`~dynalysis.algorithms.continuation.config.CollocationConfig`, optional
    reference : numpy.ndarray, optional
        Node states ``(M d + 1, n)`` of the orbit used by the phase
        condition. Replaced by every accepted orbit.
    record : callable, optional
        ``record(x, p) -> dict``; defaults to :meth:`default_record`.
    floquet_config : :class:`~dynalysis.algorithms.integrators.configs.SolverConfig`, optional
        Step control of the monodromy integration.
    linalg : :class:`~dynalysis.algorithms.linalg.backend._LinalgBackend`, optional
    """

    kind = "periodic_orbit"

    def __init__(
        self,
        system,
        parameter: Union[int, str],
        *,
        collocation: Optional[CollocationConfig] = None,
        reference: Optional[np.ndarray] = None,
        record: Optional[RecordFn] = None,
        floquet_config: Optional[SolverConfig] = None,
        linalg: Optional[_LinalgBackend] = None,
    ):
        super().__init__(system, parameter, record=record, linalg=linalg)
        self.config = collocation if collocation is not None else CollocationConfig()
        M, d = self.config.n_mesh, self.config.degree
        self._n = int(system.dim)
        self._n_nodes = M * d + 1

        gp, gw = leggauss(d)
        self._points = 0.5 * (gp + 1.0)
        self._weights = 0.5 * gw
        self._L, self._D = _lagrange_matrices(np.linspace(0.0, 1.0, d + 1), self._points)
        self._blocks = np.arange(M)[:, None] * d + np.arange(d + 1)[None, :]
        self.tau = np.linspace(0.0, 1.0, self._n_nodes)

        self._integrator = AdaptiveRK(
            order=5, config=floquet_config or SolverConfig(abs_tol=1e-10, rel_tol=1e-10),
        )
        self._phase_row = np.zeros(self._n_nodes * self._n)
        if reference is not None:
            self.set_reference(reference)

    @property
    def dim(self) -> int:
        return self._n_nodes * self._n + 1

    @property
    def n_nodes(self) -> int:
        return self._n_nodes

    def split(self, x: np.ndarray) -> Tuple[np.ndarray, float]:
        """Return the node states ``(M d + 1, n)`` and the period."""
        return x[:-1].reshape(self._n_nodes, self._n), float(x[-1])

    def pack(self, nodes: np.ndarray, period: float) -> np.ndarray:
        return np.concatenate((np.asarray(nodes, dtype=np.float64).ravel(), [float(period)]))

    def set_reference(self, nodes: np.ndarray) -> None:
        """Rebuild the phase-condition row from the reference node states."""
        nodes = np.asarray(nodes, dtype=np.float64).reshape(self._n_nodes, self._n)
        M = self.config.n_mesh
        d_ref = np.einsum("ki,mid->mkd", self._D, nodes[self._blocks]) * M
        contrib = np.einsum("k,ki,mkd->mid", self._weights / M, self._L, d_ref)
        row = np.zeros((self._n_nodes, self._n))
        np.add.at(row, self._blocks, contrib)
        self._phase_row = row.ravel()

    def _collocation_states(self, nodes: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        blocks = nodes[self._blocks]
        X = np.einsum("ki,mid->mkd", self._L, blocks)
        dX = np.einsum("ki,mid->mkd", self._D, blocks) * self.config.n_mesh
        return X, dX

    def residual(self, x: np.ndarray, p: float) -> np.ndarray:
        nodes, T = self.split(x)
        params = self.params(p)
        X, dX = self._collocation_states(nodes)
        F = np.empty_like(X)
        for m in range(X.shape[0]):
            for k in range(X.shape[1]):
                F[m, k] = self.system.derivative(X[m, k], params, 0.0)
        return np.concatenate((
            (dX - T * F).ravel(),
            nodes[0] - nodes[-1],
            [self._phase_row @ x[:-1]],
        ))

    def jacobian(self, x: np.ndarray, p: float) -> np.ndarray:
        nodes, T = self.split(x)
        params = self.params(p)
        n, M, d = self._n, self.config.n_mesh, self.config.degree
        X, _ = self._collocation_states(nodes)
        J = np.zeros((self.dim, self.dim))
        eye = np.eye(n)
        for m in range(M):
            for k in range(d):
                r = (m * d + k) * n
                Jf = self.system.jacobian(X[m, k], params, 0.0)
                for i in range(d + 1):
                    c = self._blocks[m, i] * n
                    J[r:r + n, c:c + n] += M * self._D[k, i] * eye - T * self._L[k, i] * Jf
                J[r:r + n, -1] = -self.system.derivative(X[m, k], params, 0.0)
        r = M * d * n
        J[r:r + n, :n] = eye
        J[r:r + n, (self._n_nodes - 1) * n:self._n_nodes * n] = -eye
        J[-1, :-1] = self._phase_row
        return J

    def parameter_jacobian(self, x: np.ndarray, p: float) -> np.ndarray:
        nodes, T = self.split(x)
        params = self.params(p)
        X, _ = self._collocation_states(nodes)
        out = np.zeros(self.dim)
        n, d = self._n, self.config.degree
        for m in range(X.shape[0]):
            for k in range(X.shape[1]):
                r = (m * d + k) * n
                out[r:r + n] = -T * self.system.parameter_derivative(X[m, k], self.parameter_index, params, 0.0)
        return out

    def monodromy(self, x: np.ndarray, p: float) -> np.ndarray:
        """Monodromy matrix from the variational equations over one period."""
        nodes, T = self.split(x)
        if not T > 0.0:
            raise DynalysisError(f"Non-positive period T={T:.6g}")
        n = self._n
        variational = _VariationalSystem(self.system, n, params=self.params(p))
        z0 = np.concatenate((nodes[0], np.eye(n).ravel(order="F")))
        traj = self._integrator.integrate(variational, z0, (0.0, T), t_eval=np.array([T]))
        return traj.final_state[n:].reshape((n, n), order="F")

    def stability(self, x: np.ndarray, p: float) -> Tuple[np.ndarray, CycleTest]:
        multipliers = self._linalg.eigvals(self.monodromy(x, p))
        return multipliers, CycleTest.from_multipliers(multipliers)

    def detect(self, prev_test: CycleTest, curr_test: CycleTest) -> List[Tuple[SpecialPointKind, float]]:
        return detect_cycle_bifurcations(prev_test, curr_test)

    def on_accept(self, x: np.ndarray, p: float) -> None:
        self.set_reference(self.split(x)[0])

    def trajectory(self, x: np.ndarray) -> Trajectory:
        """Node states of one period as a :class:`~dynalysis.algorithms.integrators.types.Trajectory`."""
        nodes, T = self.split(x)
        names = [f"x{i}" for i in range(self._n)]
        return Trajectory.from_arrays(self.tau * T, nodes, state_names=names)

    def default_record(self, x: np.ndarray, p: float) -> dict:
        return {"period": self.split(x)[1], "trajectory": self.trajectory(x)}

    def record(self, x: np.ndarray, p: float) -> Optional[dict]:
        if self._record is None:
            return self.default_record(x, p)
        return self._record(x, p)

    def hopf_seed(self, state: np.ndarray, parameter: float) -> Tuple[np.ndarray, np.ndarray, float]:
        """Start data for the orbit branch emanating from a Hopf point.

        The seed is the constant orbit at the equilibrium with period
        ``2 pi / omega``. The tangent points along
        ``psi(tau) = Re q cos(2 pi tau) - Im q sin(2 pi tau)``, ``q`` being the
        eigenvector of the critical eigenvalue ``i omega``, and the first step
        has length ``amplitude * |Psi|`` so that the first predicted orbit is
        ``x* + amplitude psi``.

        Returns
        -------
        x0 : numpy.ndarray
            Seed unknowns (constant nodes, period).
        tangent : numpy.ndarray
            Unit tangent in ``(x, p)`` space.
        ds : float
            First arclength step.

        Raises
        ------
        :class:`~dynalysis.algorithms.types.exceptions.BackendError`
            If the Jacobian has no complex eigenvalue pair.
        """
        x_star = np.asarray(state, dtype=np.float64)
        J = self.system.jacobian(x_star, self.params(parameter), 0.0)
        vals, vecs = self._linalg.eig(J)
        candidates = np.flatnonzero(vals.imag > 0.0)
        if candidates.size == 0:
            raise BackendError(f"No complex eigenvalue pair at p={parameter:.8g}; not a Hopf point")
        i = candidates[np.argmin(np.abs(vals.real[candidates]))]
        omega = float(vals.imag[i])
        q = vecs[:, i] / np.linalg.norm(vecs[:, i])
        logger.info(f"Hopf seed at p={parameter:.8g}: omega={omega:.8g}, Re(lambda)={vals.real[i]:.3e}")

        phase = 2.0 * np.pi * self.tau
        psi = np.outer(np.cos(phase), q.real) - np.outer(np.sin(phase), q.imag)
        amplitude = self.config.amplitude

        nodes = np.tile(x_star, (self._n_nodes, 1))
        x0 = self.pack(nodes, 2.0 * np.pi / omega)
        self.set_reference(nodes + amplitude * psi)

        Psi = np.concatenate((psi.ravel(), [0.0, 0.0]))
        norm = float(np.linalg.norm(Psi))
        return x0, Psi / norm, amplitude * norm
