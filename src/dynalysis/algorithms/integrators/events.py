"""Event detection utilities for the adaptive integrators.

Notes
-----
This module is intentionally lightweight to minimize per-step overhead. The
condition of every event is evaluated at both ends of an accepted step and
root refinement is only activated when a sign change consistent with the
requested direction is found. Refinement runs Brent's method on the dense
output of the step, so no additional right-hand side evaluations are needed.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional

import numpy as np
from numba import njit
from scipy.optimize import brentq

from dynalysis.utils.config import FASTMATH

ConditionFn = Callable[[np.ndarray, float], float]
EffectFn = Callable[[np.ndarray, float], Optional[np.ndarray]]


class Direction(IntEnum):
    """Crossing direction of an event condition.

    Parameters
    ----------
    RISING : int
        Condition crosses zero from negative to non-negative.
    FALLING : int
        Condition crosses zero from positive to non-positive.
    EITHER : int
        Any of the above.
    """
    FALLING = -1
    EITHER = 0
    RISING = 1

    @classmethod
    def coerce(cls, value) -> "Direction":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.upper()]
            except KeyError:
                raise ValueError(f"Unknown event direction {value!r}") from None
        return cls(int(value))


@dataclass(frozen=True)
class Event:
    """A scalar condition whose zero crossings trigger an effect.

    Parameters
    ----------
    condition : callable
        ``g(state, t) -> float``. The event fires when ``g`` crosses zero.
    effect : callable or None, default None
        ``effect(state, t) -> new_state | None``. Applied at the located
        crossing; returning ``None`` keeps the state (the crossing is only
        recorded).
    direction : :class:`~dynalysis.algorithms.integrators.events.Direction`, default EITHER
        Crossing direction to detect. Strings ``"rising"``, ``"falling"``
        and ``"either"`` are accepted as well.
    terminal : bool, default False
        When True, integration stops after the first firing.
    tol : float, default 1e-12
        Absolute time tolerance of the root refinement.
    max_iter : int, default 100
        Maximum iterations of the root refinement.
    name : str, default "event"
        Label used in logs and exported tables.
    """

    condition: ConditionFn
    effect: Optional[EffectFn] = None
    direction: Direction = Direction.EITHER
    terminal: bool = False
    tol: float = 1e-12
    max_iter: int = 100
    name: str = "event"

    def __post_init__(self):
        if not callable(self.condition):
            raise TypeError("Event condition must be callable")
        if self.effect is not None and not callable(self.effect):
            raise TypeError("Event effect must be callable or None")
        object.__setattr__(self, "direction", Direction.coerce(self.direction))
        if not self.tol > 0.0:
            raise ValueError("Event tolerance must be positive")
        if self.max_iter < 1:
            raise ValueError("Event max_iter must be >= 1")

    def __call__(self, state: np.ndarray, t: float) -> float:
        return float(self.condition(state, t))

    def apply(self, state: np.ndarray, t: float) -> np.ndarray:
        """Apply the effect and return the post-event state (always a new array)."""
        if self.effect is None:
            return np.array(state, dtype=np.float64, copy=True)
        new_state = self.effect(np.array(state, dtype=np.float64, copy=True), t)
        if new_state is None:
            return np.array(state, dtype=np.float64, copy=True)
        new_state = np.asarray(new_state, dtype=np.float64)
        if new_state.shape != np.shape(state):
            raise ValueError(
                f"Effect of event {self.name!r} returned shape {new_state.shape}, expected {np.shape(state)}"
            )
        return new_state.copy()


@njit(cache=False, fastmath=FASTMATH)
def _direction_allows(g0: float, g1: float, direction: int) -> bool:
    """Return True if the change (g0 -> g1) is a crossing in the desired direction.

    A zero at the right endpoint counts as a crossing, a zero at the left
    endpoint never does (it belongs to the previous step).
    direction = 0 allows both; +1 requires increasing; -1 decreasing.
    """
    rising = g0 < 0.0 and g1 >= 0.0
    falling = g0 > 0.0 and g1 <= 0.0
    if direction > 0:
        return rising
    if direction < 0:
        return falling
    return rising or falling


def locate_crossing(
    event: Event,
    interpolant: Callable[[float], np.ndarray],
    t0: float,
    g0: float,
    t1: float,
    g1: float,
) -> float:
    """Refine the crossing time of ``event`` inside ``[t0, t1]``.

    Parameters
    ----------
    event : :class:`~dynalysis.algorithms.integrators.events.Event`
        Event whose condition changes sign over the step.
    interpolant : callable
        Dense output of the step, ``t -> state``.
    t0, t1 : float
        Step endpoints (``t1 < t0`` for backward integration).
    g0, g1 : float
        Condition values at the endpoints.

    Returns
    -------
    float
        Crossing time within ``event.tol``.

    Raises
    ------
    ValueError
        If the interpolated condition does not bracket a root.
    RuntimeError
        If Brent's method does not converge within ``event.max_iter``.
    """
    if g1 == 0.0:
        return float(t1)

    def g(t: float) -> float:
        # endpoint values come from the accepted states, not the interpolant
        if t == t0:
            return g0
        if t == t1:
            return g1
        return event(interpolant(t), t)

    lo, hi = (t0, t1) if t0 < t1 else (t1, t0)
    return float(brentq(g, lo, hi, xtol=event.tol, maxiter=event.max_iter))
