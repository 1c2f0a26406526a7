"""Adaptive Runge-Kutta integration with event detection.

The entry points are the :class:`~dynalysis.algorithms.integrators.rk.AdaptiveRK`
factory and the :func:`~dynalysis.algorithms.integrators.rk.integrate`
convenience function.
"""

from .configs import SolverConfig
from .events import Direction, Event
from .rk import AdaptiveRK, integrate
from .types import EventRecord, IntegrationStats, Trajectory

__all__ = [
    "AdaptiveRK",
    "integrate",
    "SolverConfig",
    "Direction",
    "Event",
    "EventRecord",
    "IntegrationStats",
    "Trajectory",
]
