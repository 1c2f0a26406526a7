"""SciPy-backed linear algebra used by the propagators and continuation.

The backend is stateless apart from its ``system_type`` switch and is safe
to share between threads.
"""

import warnings
from typing import Tuple

import numpy as np
import scipy.linalg as sla
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from dynalysis.algorithms.linalg.types import (EigenDecompositionResults,
                                               _EigenDecompositionProblem,
                                               _SystemType)
from dynalysis.algorithms.types.core import _DynalysisBaseBackend
from dynalysis.utils.log_config import logger


class _LinalgBackend(_DynalysisBaseBackend[EigenDecompositionResults]):
    """Dense/sparse solves, QR, eigen-decomposition and null vectors.

    Parameters
    ----------
    system_type : :class:`~dynalysis.algorithms.linalg.types._SystemType`, default CONTINUOUS
        Stability boundary used by :meth:`eigenvalue_decomposition`.
    """

    def __init__(self, system_type: _SystemType = _SystemType.CONTINUOUS) -> None:
        super().__init__()
        self.system_type = system_type

    def run(self, problem: _EigenDecompositionProblem) -> EigenDecompositionResults:
        self.system_type = problem.config.system_type
        return self.eigenvalue_decomposition(problem.A, problem.config.delta)

    def solve(self, A, b: np.ndarray) -> np.ndarray:
        """Solve ``A x = b`` for dense or sparse ``A``.

        Singular or badly conditioned dense systems fall back to a
        least-squares solution.
        """
        if sp.issparse(A):
            x = spla.spsolve(sp.csc_matrix(A), b)
            if not np.all(np.isfinite(x)):
                logger.warning("Sparse solve failed; falling back to least squares")
                x = spla.lsqr(A, b)[0]
            return np.asarray(x, dtype=np.float64)

        A = np.asarray(A)
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("error", sla.LinAlgWarning)
                return sla.solve(A, b)
        except (sla.LinAlgError, sla.LinAlgWarning) as exc:
            logger.debug(f"Dense solve fell back to least squares: {exc}")
            return sla.lstsq(A, b)[0]

    def qr(self, W: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Economic QR decomposition ``W = Q R``."""
        return sla.qr(np.asarray(W, dtype=np.float64), mode="economic")

    def eig(self, A: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Eigenvalues and right eigenvectors of a dense matrix."""
        return sla.eig(np.asarray(A, dtype=np.float64))

    def eigvals(self, A: np.ndarray) -> np.ndarray:
        return sla.eigvals(np.asarray(A, dtype=np.float64))

    def null_vector(self, A: np.ndarray) -> np.ndarray:
        """Unit vector spanning the (numerical) null space of a wide or square ``A``.

        Uses the right singular vector of the smallest singular value.
        """
        _, _, vh = sla.svd(np.asarray(A, dtype=np.float64))
        v = vh[-1].copy()
        return v / np.linalg.norm(v)

    def eigenvalue_decomposition(self, A: np.ndarray, delta: float = 1e-6) -> EigenDecompositionResults:
        """Classify eigenvalues as stable, unstable or center.

        For continuous systems the boundary is ``Re(lambda) = 0``; for
        discrete systems it is ``|lambda| = 1``. Eigenvalues within
        ``delta`` of the boundary are center eigenvalues.
        """
        vals, vecs = self.eig(A)
        if self.system_type is _SystemType.DISCRETE:
            metric = np.abs(vals) - 1.0
        else:
            metric = vals.real
        stable = vals[metric < -delta]
        unstable = vals[metric > delta]
        center = vals[np.abs(metric) <= delta]
        return EigenDecompositionResults(
            stable=stable,
            unstable=unstable,
            center=center,
            eigvals=vals,
            eigvecs=vecs,
        )
