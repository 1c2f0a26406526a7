"""Interfaces (Adapters) for linalg engines."""

import numpy as np

from dynalysis.algorithms.linalg.config import _EigenDecompositionConfig
from dynalysis.algorithms.linalg.types import (EigenDecompositionResults,
                                               _EigenDecompositionProblem)
from dynalysis.algorithms.types.core import (_BackendCall,
                                             _DynalysisBaseInterface)


class _EigenDecompositionInterface(
    _DynalysisBaseInterface[
        _EigenDecompositionConfig,
        _EigenDecompositionProblem,
        EigenDecompositionResults,
        EigenDecompositionResults,
    ]
):
    """Adapter producing eigen-decomposition problems from matrices."""

    def __init__(self) -> None:
        super().__init__()

    def create_problem(
        self,
        *,
        domain_obj: np.ndarray,
        config: _EigenDecompositionConfig,
    ) -> _EigenDecompositionProblem:
        matrix_arr = np.asarray(domain_obj, dtype=float)
        if matrix_arr.ndim != 2 or matrix_arr.shape[0] != matrix_arr.shape[1]:
            raise ValueError(f"Expected a square matrix, got shape {matrix_arr.shape}")
        self._config = config
        return _EigenDecompositionProblem(A=matrix_arr, config=config)

    def to_backend_inputs(self, problem: _EigenDecompositionProblem) -> _BackendCall:
        return _BackendCall(args=(problem,))

    def to_results(self, outputs: EigenDecompositionResults, *, problem: _EigenDecompositionProblem, domain_payload=None) -> EigenDecompositionResults:
        return outputs
