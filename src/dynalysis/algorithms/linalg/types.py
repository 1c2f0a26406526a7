"""Result and problem payloads of the linear stability engine."""

from dataclasses import dataclass
from enum import Enum

import numpy as np

from .config import _EigenDecompositionConfig


class _SystemType(Enum):
    """Which stability boundary classifies an eigenvalue.

    ``CONTINUOUS`` compares real parts with zero (Jacobians of vector
    fields); ``DISCRETE`` compares moduli with one (monodromy matrices and
    maps).
    """
    CONTINUOUS = 0
    DISCRETE = 1


@dataclass
class EigenDecompositionResults:
    """Eigenvalues of a matrix split by the stability boundary.

    Attributes
    ----------
    stable, unstable, center : numpy.ndarray
        Eigenvalues strictly inside, strictly outside and within ``delta``
        of the boundary.
    eigvals : numpy.ndarray
        Every eigenvalue, in LAPACK order.
    eigvecs : numpy.ndarray
        Right eigenvectors as columns, matching ``eigvals``.
    """
    stable: np.ndarray
    unstable: np.ndarray
    center: np.ndarray
    eigvals: np.ndarray
    eigvecs: np.ndarray

    @property
    def n_unstable(self) -> int:
        return int(self.unstable.size)

    @property
    def is_hyperbolic(self) -> bool:
        """True when no eigenvalue lies on the boundary."""
        return self.center.size == 0


@dataclass(frozen=True)
class _EigenDecompositionProblem:
    """Square matrix plus the classification settings."""

    A: np.ndarray
    config: _EigenDecompositionConfig
