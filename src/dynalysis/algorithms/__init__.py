""" Public API for the :mod:`~dynalysis.algorithms` package.
"""

from .continuation import (Branch, CollocationConfig, ContinuationConfig,
                           ParameterContinuation, SpecialPointKind)
from .dynamics import (DynamicalSystem, create_system, hopf_normal_form,
                       integrate_and_fire, lorenz, rossler)
from .integrators import AdaptiveRK, Event, SolverConfig, Trajectory, integrate
from .lyapunov import (LyapunovSpectrum, kaplan_yorke_dimension, lyapunov,
                       lyapunov_spectrum)
from .sweep import ParameterSweep, SweepResult, lyapunov_task

__all__ = [
    "AdaptiveRK",
    "Branch",
    "CollocationConfig",
    "ContinuationConfig",
    "DynamicalSystem",
    "Event",
    "LyapunovSpectrum",
    "ParameterContinuation",
    "ParameterSweep",
    "SolverConfig",
    "SpecialPointKind",
    "SweepResult",
    "Trajectory",
    "create_system",
    "hopf_normal_form",
    "integrate",
    "integrate_and_fire",
    "kaplan_yorke_dimension",
    "lorenz",
    "lyapunov",
    "lyapunov_spectrum",
    "lyapunov_task",
    "rossler",
]
