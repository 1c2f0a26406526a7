"""Shared base classes and exceptions for the algorithms package."""

from .core import (_BackendCall, _DynalysisBaseBackend, _DynalysisBaseConfig,
                   _DynalysisBaseEngine, _DynalysisBaseInterface)
from .exceptions import (BackendError, ConvergenceError, CorrectorFailure,
                         DynalysisError, EngineError, EventLocalizationError,
                         IntegrationError)

__all__ = [
    "_BackendCall",
    "_DynalysisBaseBackend",
    "_DynalysisBaseConfig",
    "_DynalysisBaseEngine",
    "_DynalysisBaseInterface",
    "DynalysisError",
    "ConvergenceError",
    "IntegrationError",
    "EventLocalizationError",
    "CorrectorFailure",
    "BackendError",
    "EngineError",
]
