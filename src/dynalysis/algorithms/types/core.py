"""Abstract base classes shared by the dynalysis algorithms.

The engine/interface/backend triad separates orchestration (engines),
translation between user-facing objects and numerical inputs (interfaces)
and the numerical work itself (backends).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

from dynalysis.algorithms.types.exceptions import EngineError

ConfigT = TypeVar("ConfigT", bound=Union["_DynalysisBaseConfig", None])

ProblemT = TypeVar("ProblemT")

ResultT = TypeVar("ResultT")

OutputsT = TypeVar("OutputsT")


@dataclass(frozen=True)
class _BackendCall:
    """Describe a backend call with positional and keyword arguments."""

    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class _DynalysisBaseConfig(ABC):
    """Base class for frozen configuration payloads.

    Subclasses override :meth:`_validate`, which runs right after the
    dataclass ``__init__`` so that invalid configurations never exist.
    """

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        """Validate the configuration."""
        return None


class _DynalysisBaseBackend(Generic[OutputsT], ABC):
    """Abstract base class for all backend implementations.

    Backends are responsible for the core numerical computations, while
    engines handle orchestration and interfaces manage data translation.

    Notes
    -----
    This base class provides common lifecycle hooks that backends can override:
    - on_iteration: Called after each iteration of the main algorithm
    - on_accept: Called when the backend accepts a new solution
    - on_reject: Called when the backend rejects a trial step
    - on_failure: Called when the backend completes without converging
    """

    def __init__(self) -> None:
        """Initialize the backend."""
        pass

    @abstractmethod
    def run(self, **kwargs) -> OutputsT:
        """Run the backend.

        Parameters
        ----------
        **kwargs
            Additional keyword arguments passed to the run method.
        """
        ...

    def on_iteration(self, k: int, x: Any, r_norm: float) -> None:
        """Called after each iteration of the main algorithm.

        Parameters
        ----------
        k : int
            Current iteration number (0-based).
        x : Any
            Current solution estimate or state.
        r_norm : float
            Current residual norm or convergence metric.
        """
        return

    def on_accept(self, x: Any, *, iterations: int, residual_norm: float) -> None:
        """Called when the backend accepts a solution.

        Parameters
        ----------
        x : Any
            Accepted solution.
        iterations : int
            Number of iterations performed.
        residual_norm : float
            Final residual norm.
        """
        return

    def on_reject(self, x: Any, *, ds: float) -> None:
        """Called when the backend rejects a trial step."""
        return

    def on_failure(self, x: Any, *, iterations: int, residual_norm: float) -> None:
        """Called when the backend gives up."""
        return


class _DynalysisBaseInterface(Generic[ConfigT, ProblemT, ResultT, OutputsT], ABC):
    """Shared contract for translating between domain objects and backends."""

    def __init__(self) -> None:
        self._config: ConfigT | None = None
        self._backend: _DynalysisBaseBackend | None = None

    @property
    def current_config(self) -> ConfigT | None:
        return self._config

    @abstractmethod
    def create_problem(self, *args, config: ConfigT | None = None, **kwargs) -> ProblemT:
        """Compose an immutable problem payload for the backend."""

    @abstractmethod
    def to_backend_inputs(self, problem: ProblemT) -> _BackendCall:
        """Translate a problem into backend invocation arguments."""

    def to_domain(self, outputs: OutputsT, *, problem: ProblemT) -> Any:
        """Optional hook to mutate or derive domain artefacts from outputs."""
        return None

    @abstractmethod
    def to_results(self, outputs: OutputsT, *, problem: ProblemT, domain_payload: Any = None) -> ResultT:
        """Package backend outputs into user-facing result objects."""

    def bind_backend(self, backend: _DynalysisBaseBackend) -> None:
        self._backend = backend

    def on_start(self, problem: ProblemT) -> None:
        return None

    def on_success(self, outputs: OutputsT, *, problem: ProblemT, domain_payload: Any = None) -> None:
        return None

    def on_failure(self, exc: Exception, *, problem: ProblemT) -> None:
        return None


class _DynalysisBaseEngine(Generic[ProblemT, ResultT, OutputsT], ABC):
    """Template providing the canonical engine flow."""

    def __init__(
        self,
        *,
        backend: _DynalysisBaseBackend[OutputsT],
        interface: _DynalysisBaseInterface[Any, ProblemT, ResultT, OutputsT] | None = None,
    ) -> None:
        self._backend = backend
        self._interface = interface

    @property
    def backend(self) -> _DynalysisBaseBackend[OutputsT]:
        return self._backend

    def solve(self, problem: ProblemT) -> ResultT:
        """Execute the standard engine orchestration for ``problem``."""

        interface = self._get_interface(problem)
        interface.bind_backend(self._backend)
        call = interface.to_backend_inputs(problem)
        interface.on_start(problem)
        self._before_backend(problem, call, interface)

        try:
            outputs = self._invoke_backend(call)

        except Exception as exc:
            interface.on_failure(exc, problem=problem)
            self._handle_backend_failure(exc, problem=problem, call=call, interface=interface)

        domain_payload = interface.to_domain(outputs, problem=problem)
        interface.on_success(outputs, problem=problem, domain_payload=domain_payload)
        self._after_backend_success(outputs, problem=problem, domain_payload=domain_payload, interface=interface)
        return interface.to_results(outputs, problem=problem, domain_payload=domain_payload)

    def _get_interface(
        self,
        problem: ProblemT,
    ) -> _DynalysisBaseInterface[Any, ProblemT, ResultT, OutputsT]:
        if self._interface is None:
            raise EngineError(
                f"{self.__class__.__name__} must be configured with an interface before solving."
            )
        return self._interface

    def set_interface(
        self,
        interface: _DynalysisBaseInterface[Any, ProblemT, ResultT, OutputsT],
    ) -> None:
        self._interface = interface

    def with_interface(
        self,
        interface: _DynalysisBaseInterface[Any, ProblemT, ResultT, OutputsT],
    ) -> "_DynalysisBaseEngine[ProblemT, ResultT, OutputsT]":
        self.set_interface(interface)
        return self

    def _before_backend(self, problem: ProblemT, call: _BackendCall, interface: _DynalysisBaseInterface[Any, ProblemT, ResultT, OutputsT]) -> None:
        return None

    def _after_backend_success(self, outputs: OutputsT, *, problem: ProblemT, domain_payload: Any, interface: _DynalysisBaseInterface[Any, ProblemT, ResultT, OutputsT]) -> None:
        return None

    def _handle_backend_failure(self, exc: Exception, *, problem: ProblemT, call: _BackendCall, interface: _DynalysisBaseInterface[Any, ProblemT, ResultT, OutputsT]) -> None:
        if isinstance(exc, EngineError):
            raise exc
        raise EngineError(f"{self.__class__.__name__} backend failed: {exc}") from exc

    def _invoke_backend(self, call: _BackendCall) -> OutputsT:
        backend_callable = getattr(self._backend, "run")
        return backend_callable(*call.args, **call.kwargs)
