"""Provide abstract interfaces for numerical time integration.

References
----------
Hairer, E., Norsett, S. P., & Wanner, G. (1993). "Solving Ordinary
Differential Equations I: Non-stiff Problems".
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

import numpy as np

from dynalysis.algorithms.dynamics.base import DynamicalSystemProtocol
from dynalysis.algorithms.integrators.configs import SolverConfig
from dynalysis.algorithms.integrators.events import Event
from dynalysis.algorithms.integrators.types import Trajectory


class _Integrator(ABC):
    """Define the minimal interface that every concrete integrator must satisfy.

    Parameters
    ----------
    name : str
        Human-readable identifier of the method.
    config : :class:`~dynalysis.algorithms.integrators.configs.SolverConfig`, optional
        Step-control configuration. Defaults to ``SolverConfig()``.
    **options
        Extra keyword arguments left untouched and stored in
        :attr:`~dynalysis.algorithms.integrators.base._Integrator.options` for later use by subclasses.

    Notes
    -----
    Subclasses *must* implement the abstract members :func:`~dynalysis.algorithms.integrators.base._Integrator.order` and
    :func:`~dynalysis.algorithms.integrators.base._Integrator.integrate`.
    """

    def __init__(self, name: str, config: Optional[SolverConfig] = None, **options):
        self.name = name
        self.config = config if config is not None else SolverConfig()
        self.options = options

    @property
    @abstractmethod
    def order(self) -> Optional[int]:
        """Order of accuracy of the integrator.

        Returns
        -------
        int or None
            Order of the method, or None if not applicable
        """
        pass

    @abstractmethod
    def integrate(
        self,
        system: DynamicalSystemProtocol,
        y0: np.ndarray,
        t_span: Tuple[float, float],
        *,
        events: Optional[Sequence[Event]] = None,
        t_eval: Optional[np.ndarray] = None,
        first_step: Optional[float] = None,
    ) -> Trajectory:
        """Integrate the dynamical system from initial conditions.

        Parameters
        ----------
        system : :class:`~dynalysis.algorithms.dynamics.base.DynamicalSystemProtocol`
            The dynamical system to integrate.
        y0 : numpy.ndarray
            Initial state vector, shape ``(system.dim,)``.
        t_span : tuple of float
            ``(t0, t1)``; ``t1 < t0`` integrates backward in time.
        events : sequence of :class:`~dynalysis.algorithms.integrators.events.Event`, optional
            Events checked after every accepted step.
        t_eval : numpy.ndarray, optional
            Output times. When omitted every accepted step is sampled.
        first_step : float, optional
            Overrides ``config.initial_step`` for this call.

        Returns
        -------
        :class:`~dynalysis.algorithms.integrators.types.Trajectory`
            Integration results containing times and states.

        Raises
        ------
        :class:`~dynalysis.algorithms.types.exceptions.IntegrationError`
            If the step budget is exhausted or the step size underflows.
        :class:`~dynalysis.algorithms.types.exceptions.EventLocalizationError`
            If a detected crossing cannot be located.
        """
        pass

    def validate_system(self, system: DynamicalSystemProtocol) -> None:
        """Check that *system* exposes a right-hand side.

        Raises
        ------
        ValueError
            If neither ``rhs`` nor ``derivative`` is available.
        """
        if not hasattr(system, "rhs") and not hasattr(system, "derivative"):
            raise ValueError(f"System must implement 'rhs' or 'derivative' for {self.name}")

    def validate_inputs(
        self,
        system: DynamicalSystemProtocol,
        y0: np.ndarray,
        t_span: Tuple[float, float],
        t_eval: Optional[np.ndarray] = None,
    ) -> None:
        """Validate that the input arguments form a consistent integration task.

        Raises
        ------
        ValueError
            If any of the following conditions holds:
            - ``len(y0)`` differs from ``system.dim``.
            - ``t_span`` is not a pair of finite numbers.
            - ``t_eval`` leaves the span or is not monotonic in the
              integration direction.
        """
        self.validate_system(system)

        if len(y0) != system.dim:
            raise ValueError(
                f"Initial state dimension {len(y0)} != system dimension {system.dim}"
            )
        if len(t_span) != 2 or not np.all(np.isfinite(t_span)):
            raise ValueError(f"t_span must be a pair of finite times, got {t_span!r}")
        if not np.all(np.isfinite(y0)):
            raise ValueError("Initial state must be finite")

        if t_eval is not None and len(t_eval) > 0:
            t0, t1 = float(t_span[0]), float(t_span[1])
            sign = 1.0 if t1 >= t0 else -1.0
            te = sign * np.asarray(t_eval, dtype=float)
            if np.any(np.diff(te) < 0):
                raise ValueError("t_eval must be monotonic in the direction of integration")
            if te[0] < sign * t0 or te[-1] > sign * t1:
                raise ValueError("t_eval must lie within t_span")

    def __str__(self):
        return f"dynalysis-{self.name}"

    def __repr__(self):
        return f"{self.__class__.__name__}(name='{self.name}', config={self.config}, options={self.options})"
