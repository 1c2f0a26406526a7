"""Engines orchestrating linalg backends and interfaces."""

from dynalysis.algorithms.linalg.backend import _LinalgBackend
from dynalysis.algorithms.linalg.types import (EigenDecompositionResults,
                                               _EigenDecompositionProblem)
from dynalysis.algorithms.types.core import _DynalysisBaseEngine


class _LinearStabilityEngine(_DynalysisBaseEngine[_EigenDecompositionProblem, EigenDecompositionResults, EigenDecompositionResults]):

    def __init__(self, backend: _LinalgBackend) -> None:
        super().__init__(backend=backend)
