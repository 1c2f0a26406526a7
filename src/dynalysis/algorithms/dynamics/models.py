"""Built-in dynamical systems with analytic Jacobians.

The vector fields are compiled with numba and follow the
``f(state, params, t)`` convention of
:class:`~dynalysis.algorithms.dynamics.base.DynamicalSystem`.
"""

import numba
import numpy as np

from dynalysis.algorithms.dynamics.base import DynamicalSystem
from dynalysis.algorithms.integrators.events import Direction, Event
from dynalysis.utils.config import FASTMATH


@numba.njit(cache=False, fastmath=FASTMATH)
def _lorenz_rhs(state, params, t):
    sigma, rho, beta = params[0], params[1], params[2]
    x, y, z = state[0], state[1], state[2]
    out = np.empty(3, dtype=np.float64)
    out[0] = sigma * (y - x)
    out[1] = x * (rho - z) - y
    out[2] = x * y - beta * z
    return out


@numba.njit(cache=False, fastmath=FASTMATH)
def _lorenz_jac(state, params, t):
    sigma, rho, beta = params[0], params[1], params[2]
    x, y, z = state[0], state[1], state[2]
    J = np.empty((3, 3), dtype=np.float64)
    J[0, 0] = -sigma
    J[0, 1] = sigma
    J[0, 2] = 0.0
    J[1, 0] = rho - z
    J[1, 1] = -1.0
    J[1, 2] = -x
    J[2, 0] = y
    J[2, 1] = x
    J[2, 2] = -beta
    return J


@numba.njit(cache=False, fastmath=FASTMATH)
def _rossler_rhs(state, params, t):
    a, b, c = params[0], params[1], params[2]
    x, y, z = state[0], state[1], state[2]
    out = np.empty(3, dtype=np.float64)
    out[0] = -y - z
    out[1] = x + a * y
    out[2] = b + z * (x - c)
    return out


@numba.njit(cache=False, fastmath=FASTMATH)
def _rossler_jac(state, params, t):
    a, c = params[0], params[2]
    x, z = state[0], state[2]
    J = np.zeros((3, 3), dtype=np.float64)
    J[0, 1] = -1.0
    J[0, 2] = -1.0
    J[1, 0] = 1.0
    J[1, 1] = a
    J[2, 0] = z
    J[2, 2] = x - c
    return J


@numba.njit(cache=False, fastmath=FASTMATH)
def _hopf_rhs(state, params, t):
    mu, omega = params[0], params[1]
    x, y = state[0], state[1]
    r2 = x * x + y * y
    out = np.empty(2, dtype=np.float64)
    out[0] = mu * x - omega * y - x * r2
    out[1] = omega * x + mu * y - y * r2
    return out


@numba.njit(cache=False, fastmath=FASTMATH)
def _hopf_jac(state, params, t):
    mu, omega = params[0], params[1]
    x, y = state[0], state[1]
    J = np.empty((2, 2), dtype=np.float64)
    J[0, 0] = mu - 3.0 * x * x - y * y
    J[0, 1] = -omega - 2.0 * x * y
    J[1, 0] = omega - 2.0 * x * y
    J[1, 1] = mu - x * x - 3.0 * y * y
    return J


@numba.njit(cache=False, fastmath=FASTMATH)
def _lif_rhs(state, params, t):
    v_rest, tau, resistance, current = params[0], params[2], params[3], params[4]
    out = np.empty(1, dtype=np.float64)
    out[0] = (-(state[0] - v_rest) + resistance * current) / tau
    return out


@numba.njit(cache=False, fastmath=FASTMATH)
def _lif_jac(state, params, t):
    J = np.empty((1, 1), dtype=np.float64)
    J[0, 0] = -1.0 / params[2]
    return J


def lorenz(sigma: float = 10.0, rho: float = 28.0, beta: float = 8.0 / 3.0) -> DynamicalSystem:
    """Lorenz (1963) convection model with parameters ``(sigma, rho, beta)``."""
    return DynamicalSystem(
        _lorenz_rhs, 3, (sigma, rho, beta),
        jacobian=_lorenz_jac, param_names=("sigma", "rho", "beta"), name="lorenz",
    )


def rossler(a: float = 0.2, b: float = 0.2, c: float = 5.7) -> DynamicalSystem:
    """Rossler attractor with parameters ``(a, b, c)``."""
    return DynamicalSystem(
        _rossler_rhs, 3, (a, b, c),
        jacobian=_rossler_jac, param_names=("a", "b", "c"), name="rossler",
    )


def hopf_normal_form(mu: float = 0.0, omega: float = 1.0) -> DynamicalSystem:
    """Supercritical Hopf normal form in Cartesian coordinates.

    For ``mu > 0`` the origin is unstable and a stable limit cycle of radius
    ``sqrt(mu)`` and period ``2 pi / omega`` exists.
    """
    return DynamicalSystem(
        _hopf_rhs, 2, (mu, omega),
        jacobian=_hopf_jac, param_names=("mu", "omega"), name="hopf",
    )


def integrate_and_fire(
    v_rest: float = -70.0,
    v_threshold: float = -50.0,
    tau: float = 10.0,
    resistance: float = 1.0,
    current: float = 25.0,
) -> DynamicalSystem:
    """Leaky integrate-and-fire neuron ``tau dV/dt = -(V - V_rest) + R I``.

    The threshold is stored as a parameter so that
    :func:`~dynalysis.algorithms.dynamics.models.spike_reset_event` can read it.
    """
    return DynamicalSystem(
        _lif_rhs, 1, (v_rest, v_threshold, tau, resistance, current),
        jacobian=_lif_jac,
        param_names=("v_rest", "v_threshold", "tau", "resistance", "current"),
        name="integrate_and_fire",
    )


def spike_reset_event(system: DynamicalSystem) -> Event:
    """Threshold crossing of an integrate-and-fire neuron, resetting to ``V_rest``."""
    v_rest = float(system.params[system.param_index("v_rest")])
    v_th = float(system.params[system.param_index("v_threshold")])

    def _condition(state, t):
        return state[0] - v_th

    def _reset(state, t):
        state[0] = v_rest
        return state

    return Event(_condition, _reset, direction=Direction.RISING, name="spike")


def integrate_and_fire_period(system: DynamicalSystem) -> float:
    """Analytic inter-spike interval ``tau ln(R I / (R I - (V_th - V_rest)))``.

    Returns ``inf`` when the drive never reaches the threshold.
    """
    v_rest, v_th, tau, resistance, current = (float(v) for v in system.params)
    drive = resistance * current
    gap = v_th - v_rest
    if drive <= gap:
        return float("inf")
    return tau * np.log(drive / (drive - gap))
