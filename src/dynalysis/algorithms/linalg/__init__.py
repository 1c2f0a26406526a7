"""Linear algebra module public API.

Exposes the SciPy-backed backend and the stability facade.
"""

from .backend import _LinalgBackend
from .base import StabilityProperties
from .interfaces import _EigenDecompositionInterface
from .types import EigenDecompositionResults, _SystemType

__all__ = [
    "StabilityProperties",
    "_LinalgBackend",
    "_EigenDecompositionInterface",
    "EigenDecompositionResults",
    "_SystemType",
]
