"""Provide the embedded Runge-Kutta integrators.

Two adaptive pairs are available: Dormand-Prince 5(4) and Bogacki-Shampine
3(2). Both share one driver that performs error-controlled stepping, dense
output, event location and output sampling. The small array kernels are
compiled with numba; the driver itself stays in Python so that arbitrary
Python right-hand sides, event conditions and effects can be used.

References
----------
Hairer, E.; Norsett, S.; Wanner, G. (1993). "Solving Ordinary Differential
Equations I".

Dormand, J. R.; Prince, P. J. (1980). "A family of embedded Runge-Kutta
formulas".

Bogacki, P.; Shampine, L. F. (1989). "A 3(2) pair of Runge-Kutta formulas".
"""

import inspect
from typing import Callable, List, Optional, Sequence, Tuple

import numba
import numpy as np

from dynalysis.algorithms.dynamics.base import DynamicalSystemProtocol
from dynalysis.algorithms.integrators.base import _Integrator
from dynalysis.algorithms.integrators.coefficients import rk23, rk45
from dynalysis.algorithms.integrators.configs import SolverConfig
from dynalysis.algorithms.integrators.events import (Event, _direction_allows,
                                                     locate_crossing)
from dynalysis.algorithms.integrators.types import EventRecord, Trajectory
from dynalysis.algorithms.types.exceptions import (EventLocalizationError,
                                                   IntegrationError)
from dynalysis.utils.config import FASTMATH
from dynalysis.utils.log_config import logger

SAFETY = 0.9
MIN_FACTOR = 0.2
MAX_FACTOR = 10.0
_EPS = 4.0 * np.finfo(float).eps


@numba.njit(cache=False, fastmath=FASTMATH)
def _error_norm(err, y, y_new, atol, rtol, n_err):
    """RMS norm of ``err / (atol + rtol * max(|y|, |y_new|))`` over the first *n_err* components."""
    acc = 0.0
    for i in range(n_err):
        scale = atol + rtol * max(abs(y[i]), abs(y_new[i]))
        r = err[i] / scale
        acc += r * r
    return np.sqrt(acc / n_err)


@numba.njit(cache=False, fastmath=FASTMATH)
def _step_factor(err_norm, err_exp):
    if err_norm == 0.0:
        return MAX_FACTOR
    factor = SAFETY * err_norm ** (-err_exp)
    if factor < MIN_FACTOR:
        factor = MIN_FACTOR
    if factor > MAX_FACTOR:
        factor = MAX_FACTOR
    return factor


@numba.njit(cache=False, fastmath=FASTMATH)
def _select_initial_step(y, dy, atol, rtol, n_err):
    d0 = 0.0
    d1 = 0.0
    for i in range(n_err):
        scale = atol + rtol * abs(y[i])
        d0 += (y[i] / scale) ** 2
        d1 += (dy[i] / scale) ** 2
    d0 = np.sqrt(d0 / n_err)
    d1 = np.sqrt(d1 / n_err)
    if d0 < 1e-5 or d1 < 1e-5:
        return 1e-6
    return 0.01 * d0 / d1


@numba.njit(cache=False, fastmath=FASTMATH)
def _dense_eval(y_old, Q, h, x):
    """Evaluate ``y_old + h * Q @ [x, x^2, ...]``."""
    n = Q.shape[0]
    p_len = Q.shape[1]
    out = y_old.copy()
    for d in range(n):
        acc = 0.0
        val = x
        for c in range(p_len):
            acc += Q[d, c] * val
            val *= x
        out[d] += h * acc
    return out


class _AdaptiveStepRK(_Integrator):
    """Implement an embedded adaptive Runge-Kutta integrator.

    Concrete pairs only provide their tableau; the driver in
    :meth:`integrate` is shared.

    Parameters
    ----------
    name : str, default "AdaptiveRK"
        Identifier passed to the :class:`~dynalysis.algorithms.integrators.base._Integrator` base class.
    config : :class:`~dynalysis.algorithms.integrators.configs.SolverConfig`, optional
        Tolerances, step bounds and step budget.

    Attributes
    ----------
    SAFETY, MIN_FACTOR, MAX_FACTOR : float
        Constants of the step-size controller. They follow SciPy's
        implementation and the recommendations by Hairer et al.

    Notes
    -----
    Systems may expose an integer attribute ``error_dim``; only the first
    ``error_dim`` components then take part in error control. The remaining
    components ride along on the accepted steps.
    """

    SAFETY = SAFETY
    MIN_FACTOR = MIN_FACTOR
    MAX_FACTOR = MAX_FACTOR

    _A: np.ndarray
    _B_HIGH: np.ndarray
    _C: np.ndarray
    _E: np.ndarray
    _P: np.ndarray
    _p: int
    _q: int

    def __init__(self, name: str = "AdaptiveRK", config: Optional[SolverConfig] = None, **options):
        super().__init__(name, config=config, **options)
        self._n_stages = self._B_HIGH.size
        self._err_exp = 1.0 / (self._q + 1)

    @property
    def order(self) -> int:
        return self._p

    def _rk_embedded_step(self, f, t, y, f0, h) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Advance one step of signed size *h*; return ``(y_new, err_vec, K)``."""
        s = self._n_stages
        K = np.empty((s + 1, y.size), dtype=np.float64)
        K[0] = f0
        for i in range(1, s):
            dy = K[:i].T @ self._A[i, :i] * h
            K[i] = f(t + self._C[i] * h, y + dy)
        y_new = y + h * (K[:s].T @ self._B_HIGH)
        K[s] = f(t + h, y_new)
        err_vec = h * (K.T @ self._E)
        return y_new, err_vec, K

    def integrate(
        self,
        system: DynamicalSystemProtocol,
        y0: np.ndarray,
        t_span: Tuple[float, float],
        *,
        events: Optional[Sequence[Event]] = None,
        t_eval: Optional[np.ndarray] = None,
        first_step: Optional[float] = None,
    ) -> Trajectory:
        y0 = np.array(y0, dtype=np.float64, copy=True).reshape(-1)
        self.validate_inputs(system, y0, t_span, t_eval)
        cfg = self.config
        events = list(events or ())
        f = _build_rhs_wrapper(system)

        t0, t1 = float(t_span[0]), float(t_span[1])
        direction = 1.0 if t1 >= t0 else -1.0
        n_err = int(getattr(system, "error_dim", y0.size))
        names = getattr(system, "state_names", None)

        traj = Trajectory(y0.size, state_names=names)
        stats = traj.stats
        t_out = None if t_eval is None else np.asarray(t_eval, dtype=np.float64)
        out_idx = 0

        t = t0
        y = y0
        fy = np.asarray(f(t, y), dtype=np.float64)
        stats.n_rhs_evals += 1

        if t_out is None:
            traj.append(t, y, fy)
        else:
            while out_idx < t_out.size and t_out[out_idx] == t0:
                traj.append(t0, y, fy)
                out_idx += 1

        if t0 == t1:
            return traj.freeze()

        h = first_step if first_step is not None else cfg.initial_step
        if h is None:
            h = _select_initial_step(y, fy, cfg.abs_tol, cfg.rel_tol, n_err)
        h = min(max(abs(float(h)), cfg.step_min), cfg.step_max)

        g_prev = [ev(y, t) for ev in events]
        last_fired: dict = {}

        while direction * (t1 - t) > 0.0:
            if stats.n_attempts >= cfg.max_iters:
                raise IntegrationError(
                    f"{self.name}: step budget of {cfg.max_iters} attempts exhausted at t={t:.6g} "
                    f"before reaching t={t1:.6g}",
                    traj.freeze(),
                )
            h = min(h, cfg.step_max)
            remaining = abs(t1 - t)
            last = h >= remaining
            h_step = remaining if last else h
            hs = direction * h_step

            y_new, err_vec, K = self._rk_embedded_step(f, t, y, fy, hs)
            stats.n_rhs_evals += self._n_stages

            err_norm = _error_norm(err_vec, y, y_new, cfg.abs_tol, cfg.rel_tol, n_err)
            if not np.isfinite(err_norm):
                err_norm = np.inf
            factor = _step_factor(err_norm, self._err_exp)

            if err_norm > 1.0:
                stats.n_rejected += 1
                if h_step <= cfg.step_min:
                    raise IntegrationError(
                        f"{self.name}: step size underflow at t={t:.6g} (h={h_step:.3e}, "
                        f"error norm {err_norm:.3e})",
                        traj.freeze(),
                    )
                h = max(h_step * factor, cfg.step_min)
                continue

            stats.n_accepted += 1
            t_new = t1 if last else t + hs
            f_new = K[-1]
            Q = K.T @ self._P
            y_old = y

            def interpolant(s, _y=y_old, _Q=Q, _t=t, _h=hs):
                return _dense_eval(_y, _Q, _h, (s - _t) / _h)

            hit = self._first_event(events, g_prev, last_fired, interpolant, t, y_new, t_new, direction, traj)

            stats.last_step = h_step
            h = min(max(h_step * factor, cfg.step_min), cfg.step_max)
            stats.next_step = h

            if hit is None:
                out_idx = self._emit(traj, f, interpolant, t_out, out_idx, t_new, y_new, f_new, direction)
                t, y, fy = t_new, y_new, f_new
                g_prev = [ev(y, t) for ev in events]
                continue

            idx, te = hit
            ev = events[idx]
            ye = interpolant(te)
            y_after = ev.apply(ye, te)
            traj.events.append(EventRecord(te, idx, ev.name, ye.copy(), y_after.copy()))
            stats.n_events += 1
            logger.debug(f"Event {ev.name!r} fired at t={te:.12g}")

            fe = np.asarray(f(te, ye), dtype=np.float64)
            stats.n_rhs_evals += 1
            out_idx = self._emit(traj, f, interpolant, t_out, out_idx, te, ye, fe, direction)
            t, y = te, y_after
            if not np.array_equal(ye, y_after):
                fy = np.asarray(f(t, y), dtype=np.float64)
                stats.n_rhs_evals += 1
                if t_out is None:
                    traj.append(t, y, fy)
            else:
                fy = fe
            last_fired[idx] = te
            g_prev = [e(y, t) for e in events]

            if ev.terminal:
                if t_out is not None:
                    traj.append(t, y, fy)
                logger.debug(f"Terminal event {ev.name!r} stopped integration at t={t:.12g}")
                break

        return traj.freeze()

    @staticmethod
    def _first_event(events, g_prev, last_fired, interpolant, t, y_new, t_new, direction, traj) -> Optional[Tuple[int, float]]:
        """Locate the earliest event crossing inside ``[t, t_new]``."""
        best: Optional[Tuple[int, float]] = None
        for i, ev in enumerate(events):
            g1 = ev(y_new, t_new)
            if not _direction_allows(g_prev[i], g1, int(ev.direction)):
                continue
            try:
                te = locate_crossing(ev, interpolant, t, g_prev[i], t_new, g1)
            except (ValueError, RuntimeError) as exc:
                raise EventLocalizationError(
                    f"Could not locate event {ev.name!r} in [{t:.12g}, {t_new:.12g}]: {exc}",
                    traj.freeze(),
                ) from exc
            # a root at the restart time of the same event is the event itself
            if i in last_fired and abs(te - last_fired[i]) <= 2.0 * ev.tol + _EPS * abs(te):
                continue
            if best is None or direction * (te - best[1]) < 0.0:
                best = (i, te)
        return best

    @staticmethod
    def _emit(traj, f, interpolant, t_out, out_idx, t_end, y_end, f_end, direction) -> int:
        """Append the samples up to ``t_end``; return the next output index."""
        if t_out is None:
            traj.append(t_end, y_end, f_end)
            return out_idx
        while out_idx < t_out.size and direction * (t_out[out_idx] - t_end) <= 0.0:
            tq = t_out[out_idx]
            yq = y_end if tq == t_end else interpolant(tq)
            traj.append(tq, yq, f(tq, yq))
            out_idx += 1
        return out_idx


class _RK45(_AdaptiveStepRK):
    """Implement the Dormand-Prince 5(4) adaptive Runge-Kutta method.

    This is the Dormand-Prince 5th-order adaptive Runge-Kutta method with
    4th-order error estimation and a quartic continuous extension. It
    provides a good balance between accuracy and computational efficiency
    for most applications.
    """
    _A = rk45.A
    _B_HIGH = rk45.B_HIGH
    _C = rk45.C
    _E = rk45.E
    _P = rk45.P
    _p = rk45.ORDER
    _q = rk45.ERROR_ESTIMATOR_ORDER

    def __init__(self, **opts):
        super().__init__("RK45", **opts)


class _RK23(_AdaptiveStepRK):
    """Implement the Bogacki-Shampine 3(2) adaptive Runge-Kutta method.

    Cheaper per step than RK45; suited to loose tolerances.
    """
    _A = rk23.A
    _B_HIGH = rk23.B_HIGH
    _C = rk23.C
    _E = rk23.E
    _P = rk23.P
    _p = rk23.ORDER
    _q = rk23.ERROR_ESTIMATOR_ORDER

    def __init__(self, **opts):
        super().__init__("RK23", **opts)


class AdaptiveRK:
    """Implement a factory class for creating adaptive step-size Runge-Kutta integrators.

    This factory provides convenient access to adaptive step-size Runge-Kutta
    methods. The available orders are 5 (Dormand-Prince 5(4)) and 3
    (Bogacki-Shampine 3(2)).

    Examples
    --------
    >>> rk45 = AdaptiveRK(order=5)
    >>> rk23 = AdaptiveRK(order=3, config=SolverConfig(abs_tol=1e-6, rel_tol=1e-6))
    """
    _map = {5: _RK45, 3: _RK23}

    def __new__(cls, order=5, **opts):
        """Create an adaptive step-size Runge-Kutta integrator of specified order.

        Parameters
        ----------
        order : int, default 5
            Order of the Runge-Kutta method. Must be 5 or 3.
        **opts
            Additional options passed to the integrator constructor.

        Returns
        -------
        :class:`~dynalysis.algorithms.integrators.rk._AdaptiveStepRK`
            An adaptive step-size Runge-Kutta integrator instance.

        Raises
        ------
        ValueError
            If the specified order is not supported.
        """
        if order not in cls._map:
            raise ValueError(f"Adaptive RK order must be one of {sorted(cls._map)}, got {order}")
        return cls._map[order](**opts)


def _build_rhs_wrapper(system: DynamicalSystemProtocol) -> Callable[[float, np.ndarray], np.ndarray]:
    """Return the ``(t, y)`` right-hand side of *system*.

    Systems exposing only ``derivative(state, params, t)`` are wrapped with
    their current parameters bound.

    Raises
    ------
    ValueError
        If `system.rhs` does not have the `(t, y)` signature.
    """
    rhs_func = getattr(system, "rhs", None)
    if rhs_func is None:
        deriv = system.derivative
        params = getattr(system, "params", None)

        def rhs_func(t, y):
            return deriv(y, params, t)

        return rhs_func

    sig = inspect.signature(rhs_func)
    if len(sig.parameters) < 2:
        raise ValueError("System.rhs must have signature (t, y)")
    return rhs_func


def integrate(
    system: DynamicalSystemProtocol,
    y0: np.ndarray,
    t_span: Tuple[float, float],
    config: Optional[SolverConfig] = None,
    events: Optional[List[Event]] = None,
    t_eval: Optional[np.ndarray] = None,
    order: int = 5,
) -> Trajectory:
    """Integrate *system* from *y0* over *t_span* with an adaptive RK pair.

    Parameters
    ----------
    system : :class:`~dynalysis.algorithms.dynamics.base.DynamicalSystemProtocol`
        System to integrate.
    y0 : array_like
        Initial state.
    t_span : tuple of float
        ``(t0, t1)``.
    config : :class:`~dynalysis.algorithms.integrators.configs.SolverConfig`, optional
        Step-control configuration.
    events : list of :class:`~dynalysis.algorithms.integrators.events.Event`, optional
        Events to detect.
    t_eval : array_like, optional
        Output times.
    order : {5, 3}, default 5
        Selects Dormand-Prince 5(4) or Bogacki-Shampine 3(2).

    Returns
    -------
    :class:`~dynalysis.algorithms.integrators.types.Trajectory`
    """
    integrator = AdaptiveRK(order=order, config=config)
    return integrator.integrate(system, y0, t_span, events=events, t_eval=t_eval)
