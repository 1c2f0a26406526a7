"""Pseudo-arclength continuation of equilibria and periodic orbits."""

from .base import ParameterContinuation
from .bifurcation import (CycleTest, EquilibriumTest,
                          detect_cycle_bifurcations,
                          detect_equilibrium_bifurcations,
                          drop_trivial_multiplier)
from .collocation import PeriodicOrbitProblem
from .config import CollocationConfig, ContinuationConfig
from .problems import EquilibriumProblem
from .types import (Branch, ContinuationPoint, SpecialPoint, SpecialPointKind,
                    TerminationReason)

__all__ = [
    "Branch",
    "CollocationConfig",
    "ContinuationConfig",
    "ContinuationPoint",
    "CycleTest",
    "EquilibriumProblem",
    "EquilibriumTest",
    "ParameterContinuation",
    "PeriodicOrbitProblem",
    "SpecialPoint",
    "SpecialPointKind",
    "TerminationReason",
    "detect_cycle_bifurcations",
    "detect_equilibrium_bifurcations",
    "drop_trivial_multiplier",
]
