"""User-facing access to the linear stability engine."""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from dynalysis.algorithms.linalg.backend import _LinalgBackend
from dynalysis.algorithms.linalg.config import _EigenDecompositionConfig
from dynalysis.algorithms.linalg.engine import _LinearStabilityEngine
from dynalysis.algorithms.linalg.interfaces import _EigenDecompositionInterface
from dynalysis.algorithms.linalg.types import (EigenDecompositionResults,
                                               _SystemType)
from dynalysis.algorithms.types.exceptions import EngineError


@dataclass
class StabilityProperties:
    """Classify the spectrum of a linearisation and keep the last result.

    Build it with :meth:`with_default_engine`, then call :meth:`compute`
    with a Jacobian (continuous systems) or a monodromy matrix (discrete).
    """

    _engine: _LinearStabilityEngine
    _result: EigenDecompositionResults | None = None
    _config: _EigenDecompositionConfig | None = None

    @classmethod
    def with_default_engine(cls, system_type: _SystemType = _SystemType.CONTINUOUS, delta: float = 1e-6) -> "StabilityProperties":
        config = _EigenDecompositionConfig(system_type=system_type, delta=delta)
        engine = _LinearStabilityEngine(backend=_LinalgBackend(system_type))
        return cls(engine.with_interface(_EigenDecompositionInterface()), _config=config)

    @property
    def config(self) -> _EigenDecompositionConfig:
        if self._config is None:
            raise ValueError("Configuration not set")
        return self._config

    def compute(self, matrix: np.ndarray, *, system_type: _SystemType | None = None) -> EigenDecompositionResults:
        """Classify the eigenvalues of *matrix*.

        *system_type* overrides the configured boundary for this call only.
        """
        cfg = self.config
        if system_type is not None and system_type is not cfg.system_type:
            cfg = _EigenDecompositionConfig(system_type=system_type, delta=cfg.delta)

        interface = _EigenDecompositionInterface()
        self._engine.with_interface(interface)
        problem = interface.create_problem(domain_obj=np.asarray(matrix, dtype=float), config=cfg)
        self._result = self._engine.solve(problem)
        return self._result

    def require_result(self) -> EigenDecompositionResults:
        if self._result is None:
            raise EngineError("Stability results not computed; call compute() first")
        return self._result

    @property
    def is_stable(self) -> bool:
        """No eigenvalue outside the boundary (center eigenvalues allowed)."""
        return self.require_result().n_unstable == 0

    @property
    def eigenvalues(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """``(stable, unstable, center)`` eigenvalues of the last computation."""
        result = self.require_result()
        return result.stable, result.unstable, result.center
