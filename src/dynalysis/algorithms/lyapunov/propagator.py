"""Lyapunov spectrum via QR re-orthonormalisation of the tangent flow.

The base state and ``k`` tangent vectors are advanced together over
windows of length ``dt``. After every window the tangent matrix is
factorised ``W = Q R``; ``Q`` replaces the tangent matrix and
``log|R_ii|`` is accumulated. The exponents are the accumulated sums
divided by the total averaging time ``N dt``.

References
----------
Benettin, G.; Galgani, L.; Giorgilli, A.; Strelcyn, J.-M. (1980).
"Lyapunov characteristic exponents for smooth dynamical systems and for
Hamiltonian systems; a method for computing all of them".
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import numpy as np
import pandas as pd

from dynalysis.algorithms.dynamics.base import DynamicalSystemProtocol
from dynalysis.algorithms.integrators.configs import SolverConfig
from dynalysis.algorithms.integrators.rk import AdaptiveRK
from dynalysis.algorithms.linalg.backend import _LinalgBackend
from dynalysis.algorithms.lyapunov.dimension import kaplan_yorke_dimension
from dynalysis.algorithms.lyapunov.tangent import (TangentState,
                                                   _VariationalSystem)
from dynalysis.algorithms.types.exceptions import DynalysisError
from dynalysis.utils.log_config import logger


@dataclass(frozen=True)
class LyapunovSpectrum:
    """Lyapunov exponents in descending order.

    Attributes
    ----------
    exponents : numpy.ndarray
        The ``k`` exponents, largest first.
    history : numpy.ndarray
        Running estimates after each renormalisation, shape ``(N, k)``
        (columns in QR order, not sorted).
    Ttr, dt : float
        Transient time and renormalisation interval.
    N : int
        Number of renormalisations.
    final : :class:`~dynalysis.algorithms.lyapunov.tangent.TangentState`
        Base state and tangent frame after the last renormalisation.
    """
    exponents: np.ndarray
    history: np.ndarray = field(repr=False)
    Ttr: float
    dt: float
    N: int
    final: Optional[TangentState] = field(default=None, repr=False)

    def __len__(self) -> int:
        return self.exponents.size

    def __getitem__(self, i):
        return self.exponents[i]

    def __iter__(self):
        return iter(self.exponents)

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self.exponents, dtype=dtype)

    @property
    def maximal(self) -> float:
        return float(self.exponents[0])

    @property
    def kaplan_yorke(self) -> float:
        return kaplan_yorke_dimension(self.exponents)

    def to_df(self) -> pd.DataFrame:
        """Running estimates as a :class:`pandas.DataFrame` indexed by time."""
        cols = [f"lambda_{i + 1}" for i in range(self.history.shape[1])]
        times = self.Ttr + self.dt * np.arange(1, self.N + 1)
        return pd.DataFrame(self.history, columns=cols, index=pd.Index(times, name="t"))


class VariationalPropagator:
    """Co-evolve a base trajectory and its tangent vectors.

    Parameters
    ----------
    system : :class:`~dynalysis.algorithms.dynamics.base.DynamicalSystemProtocol`
        System providing ``derivative`` and ``jacobian``.
    config : :class:`~dynalysis.algorithms.integrators.configs.SolverConfig`, optional
        Step control for both the transient and the tangent windows.
    order : {5, 3}, default 5
        Runge-Kutta pair.
    linalg : :class:`~dynalysis.algorithms.linalg.backend._LinalgBackend`, optional
        Provides the QR factorisation.
    """

    def __init__(
        self,
        system: DynamicalSystemProtocol,
        config: Optional[SolverConfig] = None,
        order: int = 5,
        linalg: Optional[_LinalgBackend] = None,
    ):
        self._system = system
        self._integrator = AdaptiveRK(order=order, config=config)
        self._linalg = linalg if linalg is not None else _LinalgBackend()

    @property
    def system(self) -> DynamicalSystemProtocol:
        return self._system

    def transient(self, u0: np.ndarray, Ttr: float, t0: float = 0.0) -> np.ndarray:
        """Integrate the base state alone for ``Ttr`` and return the end state."""
        return self._transient(self._system, u0, Ttr, t0)

    def _transient(self, system, u0, Ttr, t0):
        u0 = np.asarray(u0, dtype=np.float64)
        if Ttr <= 0.0:
            return u0.copy()
        traj = self._integrator.integrate(system, u0, (t0, t0 + Ttr), t_eval=np.array([t0 + Ttr]))
        return traj.final_state

    def spectrum(
        self,
        u0: Sequence[float],
        *,
        k: Optional[int] = None,
        Ttr: float = 0.0,
        N: int = 1000,
        dt: float = 0.1,
        params: Optional[Sequence[float]] = None,
        t0: float = 0.0,
        callback: Optional[Callable[[int, TangentState], None]] = None,
    ) -> LyapunovSpectrum:
        """Compute the ``k`` leading Lyapunov exponents.

        Parameters
        ----------
        u0 : array_like
            Initial state.
        k : int, optional
            Number of exponents, ``1 <= k <= n``. Defaults to ``n``.
        Ttr : float, default 0
            Transient integrated (base state only) before averaging.
        N : int, default 1000
            Number of renormalisations.
        dt : float, default 0.1
            Renormalisation interval.
        params : array_like, optional
            Parameter vector overriding the system's own.
        t0 : float, default 0
            Initial time.
        callback : callable, optional
            ``callback(i, tangent_state)`` after the ``i``-th renormalisation.

        Returns
        -------
        :class:`~dynalysis.algorithms.lyapunov.propagator.LyapunovSpectrum`

        Raises
        ------
        ValueError
            For invalid ``k``, ``N`` or ``dt``.
        :class:`~dynalysis.algorithms.types.exceptions.IntegrationError`
            If a window cannot be integrated.
        :class:`~dynalysis.algorithms.types.exceptions.DynalysisError`
            If the tangent vectors become linearly dependent.
        """
        system = self._system
        if params is not None:
            system = system.with_params(params)
        n = int(system.dim)
        k = n if k is None else int(k)
        if N < 1:
            raise ValueError(f"N must be >= 1, got {N}")
        if not dt > 0.0:
            raise ValueError(f"dt must be positive, got {dt}")

        x = np.asarray(u0, dtype=np.float64).copy()
        if x.size != n:
            raise ValueError(f"Initial state dimension {x.size} != system dimension {n}")
        if Ttr > 0.0:
            x = self._transient(system, x, Ttr, t0)

        variational = _VariationalSystem(system, k)
        sums = np.zeros(k)
        history = np.empty((N, k))
        t = t0 + Ttr
        state = TangentState(t, x, np.eye(n, k))
        z = state.pack()
        first_step = None

        for i in range(N):
            traj = self._integrator.integrate(
                variational, z, (t, t + dt), t_eval=np.array([t + dt]), first_step=first_step,
            )
            nxt = traj.stats.next_step
            first_step = nxt if np.isfinite(nxt) else None

            t = t + dt
            raw = TangentState.unpack(t, traj.final_state, n, k)
            Q, R = self._linalg.qr(raw.Q)
            with np.errstate(divide="ignore"):
                growth = np.log(np.abs(np.diag(R)))
            if not np.all(np.isfinite(growth)):
                raise DynalysisError(
                    f"Tangent vectors became linearly dependent at t={t:.6g}; reduce dt"
                )
            sums += growth
            history[i] = sums / ((i + 1) * dt)
            state = TangentState(t, raw.state, Q)
            z = state.pack()

            if callback is not None:
                callback(i, state)

        exponents = np.sort(sums / (N * dt))[::-1]
        logger.debug(f"Lyapunov spectrum after {N} renormalisations: {exponents}")
        return LyapunovSpectrum(
            exponents=exponents,
            history=history,
            Ttr=float(Ttr),
            dt=float(dt),
            N=int(N),
            final=state,
        )


def lyapunov_spectrum(
    system: DynamicalSystemProtocol,
    u0: Sequence[float],
    *,
    Ttr: float = 0.0,
    N: int = 1000,
    dt: float = 0.1,
    k: Optional[int] = None,
    params: Optional[Sequence[float]] = None,
    config: Optional[SolverConfig] = None,
    callback: Optional[Callable[[int, TangentState], None]] = None,
) -> LyapunovSpectrum:
    """Compute the Lyapunov spectrum of *system* starting from *u0*.

    Examples
    --------
    >>> from dynalysis.algorithms.dynamics import lorenz
    >>> spec = lyapunov_spectrum(lorenz(), [1.0, 1.0, 1.0], Ttr=100.0, N=300, dt=0.1)
    >>> spec.exponents[0] > 0
    True
    """
    propagator = VariationalPropagator(system, config=config)
    return propagator.spectrum(u0, k=k, Ttr=Ttr, N=N, dt=dt, params=params, callback=callback)


def lyapunov(
    system: DynamicalSystemProtocol,
    u0: Sequence[float],
    *,
    Ttr: float = 0.0,
    N: int = 1000,
    dt: float = 0.1,
    params: Optional[Sequence[float]] = None,
    config: Optional[SolverConfig] = None,
) -> float:
    """Maximal Lyapunov exponent (a single tangent vector)."""
    return lyapunov_spectrum(system, u0, Ttr=Ttr, N=N, dt=dt, k=1, params=params, config=config).maximal
