"""Parallel parameter sweeps."""

from .executor import LyapunovTask, ParameterSweep, lyapunov_task
from .types import LyapunovPoint, SweepFailure, SweepResult

__all__ = [
    "LyapunovPoint",
    "LyapunovTask",
    "ParameterSweep",
    "SweepFailure",
    "SweepResult",
    "lyapunov_task",
]
