"""
Custom exceptions for the algorithms package.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from dynalysis.algorithms.integrators.types import Trajectory


class DynalysisError(Exception):
    """Base exception for dynalysis errors.
    
    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class ConvergenceError(DynalysisError):
    """Raised when an algorithm fails to converge.
    
    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class IntegrationError(DynalysisError):
    """Raised when an integration cannot reach the end of its time span.

    The step size underflowed ``step_min`` with the local error still above
    tolerance, or the step-attempt budget ``max_iters`` was exhausted.

    Parameters
    ----------
    message : str
        The error message.
    trajectory : :class:`~dynalysis.algorithms.integrators.types.Trajectory`, optional
        Samples accepted before the failure, ending at the last good step.
    """

    def __init__(self, message: str, trajectory: Optional["Trajectory"] = None):
        super().__init__(message)
        self.trajectory = trajectory


class EventLocalizationError(IntegrationError):
    """Raised when a detected event crossing cannot be located in time.

    Parameters
    ----------
    message : str
        The error message.
    trajectory : :class:`~dynalysis.algorithms.integrators.types.Trajectory`, optional
        Samples accepted before the offending step.
    """


class CorrectorFailure(DynalysisError):
    """Continuation corrector failed even at the minimum step length.

    Instances are stored on the returned branch rather than raised out of
    the continuation engine.

    Parameters
    ----------
    message : str
        The error message.
    parameter : float
        Parameter value of the last accepted point.
    ds : float
        Step length of the failed attempt.
    """

    def __init__(self, message: str, parameter: float = float("nan"), ds: float = float("nan")):
        super().__init__(message)
        self.parameter = parameter
        self.ds = ds


class BackendError(DynalysisError):
    """Raised when an exception occurs in a backend.
    
    Parameters
    ----------
    message : str
        The error message.
    """
    
    def __init__(self, message: str):
        super().__init__(message)


class EngineError(DynalysisError):
    """Raised when an exception occurs in the engine.
    
    Parameters
    ----------
    message : str
        The error message.
    """
    
    def __init__(self, message: str):
        super().__init__(message)
