"""Public API for the :mod:`dynalysis` package.

Adaptive integration with events, Lyapunov spectra, parallel parameter
sweeps and pseudo-arclength continuation of equilibria and periodic
orbits.
"""

from .algorithms import (AdaptiveRK, Branch, CollocationConfig,
                         ContinuationConfig, DynamicalSystem, Event,
                         LyapunovSpectrum, ParameterContinuation,
                         ParameterSweep, SolverConfig, SpecialPointKind,
                         SweepResult, Trajectory, create_system,
                         hopf_normal_form, integrate, integrate_and_fire,
                         kaplan_yorke_dimension, lorenz, lyapunov,
                         lyapunov_spectrum, lyapunov_task, rossler)
from .algorithms.types.exceptions import (ConvergenceError, CorrectorFailure,
                                          DynalysisError,
                                          EventLocalizationError,
                                          IntegrationError)

__version__ = "0.1.0"

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
    "DynalysisError",
    "ConvergenceError",
    "CorrectorFailure",
    "EventLocalizationError",
    "IntegrationError",
]
