"""Provide the dynamical-system capability consumed by every algorithm.

A dynamical system is a pair of pure functions ``derivative(state, params, t)``
and, optionally, ``jacobian(state, params, t)`` together with the state
dimension and a parameter vector. Algorithms never mutate a system's
parameters: new systems are derived with
:meth:`~dynalysis.algorithms.dynamics.base.DynamicalSystem.with_params`.
"""

import copy
from abc import ABC, abstractmethod
from typing import (Callable, Mapping, Optional, Protocol, Sequence, Union,
                    runtime_checkable)

import numpy as np

from dynalysis.algorithms.linalg.base import StabilityProperties
from dynalysis.algorithms.linalg.types import _SystemType
from dynalysis.utils.config import FD_STEP

DerivativeFn = Callable[[np.ndarray, np.ndarray, float], np.ndarray]
JacobianFn = Callable[[np.ndarray, np.ndarray, float], np.ndarray]
ParamKey = Union[int, str]


@runtime_checkable
class DynamicalSystemProtocol(Protocol):
    """
    Protocol defining the interface for dynamical systems.

    This protocol specifies the minimum interface that any dynamical system
    must implement to be compatible with the integrator, the variational
    propagator and the continuation engine.
    """

    @property
    def dim(self) -> int:
        """Dimension of the state space."""
        ...

    @property
    def params(self) -> np.ndarray:
        ...

    def derivative(self, state: np.ndarray, params: Optional[np.ndarray] = None, t: float = 0.0) -> np.ndarray:
        ...

    def jacobian(self, state: np.ndarray, params: Optional[np.ndarray] = None, t: float = 0.0) -> np.ndarray:
        ...

    @property
    def rhs(self) -> Callable[[float, np.ndarray], np.ndarray]:
        ...


class _DynamicalSystem(ABC):
    """
    Abstract base class for dynamical systems.

    This class provides common functionality for all dynamical systems
    while requiring subclasses to implement the specific dynamics.
    """

    def __init__(self, dim: int):
        """
        Initialize the dynamical system.

        Parameters
        ----------
        dim : int
            Dimension of the state space
        """
        if dim <= 0:
            raise ValueError(f"Dimension must be positive, got {dim}")
        self._dim = int(dim)

    @property
    def dim(self) -> int:
        """Dimension of the state space."""
        return self._dim

    @property
    @abstractmethod
    def rhs(self) -> Callable[[float, np.ndarray], np.ndarray]:
        pass

    def validate_state(self, y: np.ndarray) -> None:
        """
        Validate that a state vector has the correct dimension.

        Parameters
        ----------
        y : numpy.ndarray
            State vector to validate

        Raises
        ------
        ValueError
            If the state vector has incorrect dimension
        """
        if len(y) != self.dim:
            raise ValueError(f"State vector dimension {len(y)} != system dimension {self.dim}")


def _finite_difference_jacobian(fn: DerivativeFn, state: np.ndarray, params: np.ndarray, t: float, step: float) -> np.ndarray:
    """Central-difference approximation of ``d fn / d state``."""
    n = state.size
    jac = np.empty((n, n), dtype=np.float64)
    for j in range(n):
        h = step * max(1.0, abs(state[j]))
        xp = state.copy()
        xm = state.copy()
        xp[j] += h
        xm[j] -= h
        jac[:, j] = (np.asarray(fn(xp, params, t)) - np.asarray(fn(xm, params, t))) / (2.0 * h)
    return jac


class DynamicalSystem(_DynamicalSystem):
    """Explicit capability object bundling a vector field and its parameters.

    Parameters
    ----------
    derivative : callable
        Pure function ``f(state, params, t) -> rate`` returning a new array.
    dim : int
        Dimension of the state space.
    params : sequence of float, optional
        Parameter vector. Stored as a read-only float64 copy.
    jacobian : callable or None, optional
        Analytic Jacobian ``J(state, params, t) -> (dim, dim)``. When
        omitted a central finite-difference approximation is used.
    param_names : sequence of str, optional
        Names of the parameters, enabling lookups by name.
    name : str, default "system"
        Human-readable identifier.
    fd_step : float, optional
        Relative step of the finite-difference approximations.

    Notes
    -----
    Instances behave as values: :meth:`with_params` and :meth:`with_param`
    return new systems and :func:`copy.deepcopy` shares the (stateless)
    callables while copying the parameter vector.
    """

    def __init__(
        self,
        derivative: DerivativeFn,
        dim: int,
        params: Sequence[float] = (),
        jacobian: Optional[JacobianFn] = None,
        param_names: Optional[Sequence[str]] = None,
        name: str = "system",
        fd_step: float = FD_STEP,
    ):
        super().__init__(dim)
        if not callable(derivative):
            raise TypeError("derivative must be callable")
        if jacobian is not None and not callable(jacobian):
            raise TypeError("jacobian must be callable or None")
        p = np.array(params, dtype=np.float64).reshape(-1)
        if param_names is not None:
            param_names = tuple(str(s) for s in param_names)
            if len(param_names) != p.size:
                raise ValueError(
                    f"Got {len(param_names)} parameter names for {p.size} parameters"
                )
        p.setflags(write=False)
        self._derivative = derivative
        self._jacobian = jacobian
        self._params = p
        self._param_names = param_names
        self.name = name
        self._fd_step = float(fd_step)

    @property
    def params(self) -> np.ndarray:
        """Read-only parameter vector."""
        return self._params

    @property
    def param_names(self) -> Optional[tuple[str, ...]]:
        return self._param_names

    @property
    def has_jacobian(self) -> bool:
        """True when an analytic Jacobian was supplied."""
        return self._jacobian is not None

    def _resolve(self, params: Optional[np.ndarray]) -> np.ndarray:
        return self._params if params is None else np.asarray(params, dtype=np.float64)

    def derivative(self, state: np.ndarray, params: Optional[np.ndarray] = None, t: float = 0.0) -> np.ndarray:
        """Evaluate the vector field at ``state``."""
        p = self._resolve(params)
        return np.asarray(self._derivative(np.asarray(state, dtype=np.float64), p, float(t)), dtype=np.float64)

    def jacobian(self, state: np.ndarray, params: Optional[np.ndarray] = None, t: float = 0.0) -> np.ndarray:
        """Evaluate ``df/dstate``; analytic when available, finite differences otherwise."""
        p = self._resolve(params)
        x = np.asarray(state, dtype=np.float64)
        if self._jacobian is not None:
            return np.asarray(self._jacobian(x, p, float(t)), dtype=np.float64)
        return _finite_difference_jacobian(self._derivative, x, p, float(t), self._fd_step)

    def parameter_derivative(self, state: np.ndarray, index: ParamKey, params: Optional[np.ndarray] = None, t: float = 0.0) -> np.ndarray:
        """Central-difference approximation of ``df/dp`` for one parameter."""
        i = self.param_index(index)
        p = np.array(self._resolve(params), dtype=np.float64)
        h = self._fd_step * max(1.0, abs(p[i]))
        pp = p.copy()
        pm = p.copy()
        pp[i] += h
        pm[i] -= h
        return (self.derivative(state, pp, t) - self.derivative(state, pm, t)) / (2.0 * h)

    def linear_stability(self, state: np.ndarray, params: Optional[np.ndarray] = None, t: float = 0.0, delta: float = 1e-6) -> StabilityProperties:
        """Classify the eigenvalues of the Jacobian at *state*.

        Eigenvalues with ``|Re| <= delta`` are reported as center eigenvalues.
        """
        stab = StabilityProperties.with_default_engine(_SystemType.CONTINUOUS, delta=delta)
        stab.compute(self.jacobian(state, params, t))
        return stab

    @property
    def rhs(self) -> Callable[[float, np.ndarray], np.ndarray]:
        """Right-hand side ``(t, y)`` with the parameters bound."""
        f = self._derivative
        p = self._params

        def _rhs(t: float, y: np.ndarray) -> np.ndarray:
            return np.asarray(f(y, p, t), dtype=np.float64)

        return _rhs

    def param_index(self, key: ParamKey) -> int:
        """Return the positional index of a parameter given its index or name."""
        if isinstance(key, str):
            if self._param_names is None or key not in self._param_names:
                raise KeyError(f"Unknown parameter {key!r} for {self.name}")
            return self._param_names.index(key)
        idx = int(key)
        if not -self._params.size <= idx < self._params.size:
            raise IndexError(f"Parameter index {idx} out of range for {self._params.size} parameters")
        return idx % self._params.size

    def with_params(self, params: Union[Sequence[float], Mapping[ParamKey, float]]) -> "DynamicalSystem":
        """Return a new system with replaced parameters.

        ``params`` is either a full parameter vector or a mapping from
        parameter index/name to value; unmapped parameters keep their value.
        """
        if isinstance(params, Mapping):
            new = np.array(self._params, dtype=np.float64)
            for key, value in params.items():
                new[self.param_index(key)] = float(value)
        else:
            new = np.array(params, dtype=np.float64).reshape(-1)
            if new.size != self._params.size:
                raise ValueError(
                    f"Expected {self._params.size} parameters, got {new.size}"
                )
        return DynamicalSystem(
            self._derivative,
            self.dim,
            new,
            jacobian=self._jacobian,
            param_names=self._param_names,
            name=self.name,
            fd_step=self._fd_step,
        )

    def with_param(self, key: ParamKey, value: float) -> "DynamicalSystem":
        """Return a new system with a single parameter replaced."""
        return self.with_params({key: value})

    def __deepcopy__(self, memo):
        clone = self.with_params(np.array(self._params, copy=True))
        memo[id(self)] = clone
        return clone

    def clone(self) -> "DynamicalSystem":
        return copy.deepcopy(self)

    def __repr__(self):
        return (f"DynamicalSystem(name={self.name!r}, dim={self.dim}, "
                f"params={self._params.tolist()})")


def create_system(
    derivative: DerivativeFn,
    dim: int,
    params: Sequence[float] = (),
    jacobian: Optional[JacobianFn] = None,
    param_names: Optional[Sequence[str]] = None,
    name: str = "system",
) -> DynamicalSystem:
    """Create a :class:`~dynalysis.algorithms.dynamics.base.DynamicalSystem` from plain functions.

    Examples
    --------
    >>> def decay(x, p, t):
    ...     return -p[0] * x
    >>> sys = create_system(decay, dim=1, params=[0.5], param_names=["k"])
    >>> sys.derivative(np.array([2.0]))
    array([-1.])
    """
    return DynamicalSystem(derivative, dim, params, jacobian=jacobian, param_names=param_names, name=name)
