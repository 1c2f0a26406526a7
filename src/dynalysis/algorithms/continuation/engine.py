"""Continuation engine wiring the predictor-corrector backend and interface."""

from dynalysis.algorithms.continuation.backends.pc import (
    _ContinuationOutputs, _MoorePenroseBackend)
from dynalysis.algorithms.continuation.interfaces import \
    _ContinuationInterface
from dynalysis.algorithms.continuation.types import (Branch,
                                                     _ContinuationProblem)
from dynalysis.algorithms.types.core import _DynalysisBaseEngine
from dynalysis.algorithms.types.exceptions import DynalysisError


class _ContinuationEngine(_DynalysisBaseEngine[_ContinuationProblem, Branch, _ContinuationOutputs]):
    """Engine orchestrating branch continuation via backend and interface.

    Numerical errors raised by the backend (for instance a seed that cannot
    be corrected) reach the caller unchanged; anything else is wrapped in
    :class:`~dynalysis.algorithms.types.exceptions.EngineError`.
    """

    def __init__(
        self,
        *,
        backend: _MoorePenroseBackend,
        interface: _ContinuationInterface | None = None,
    ) -> None:
        super().__init__(backend=backend, interface=interface)

    def _handle_backend_failure(self, exc: Exception, *, problem, call, interface) -> None:
        if isinstance(exc, DynalysisError):
            raise exc
        super()._handle_backend_failure(exc, problem=problem, call=call, interface=interface)
