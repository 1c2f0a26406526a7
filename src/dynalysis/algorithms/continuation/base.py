"""User-facing facade for continuation workflows.

The facade assembles the engine, backend and interface and provides a
simple API to trace equilibrium branches and the periodic-orbit branches
born at Hopf points.
"""

from typing import Optional, Sequence, Tuple, Union

import numpy as np

from dynalysis.algorithms.continuation.collocation import PeriodicOrbitProblem
from dynalysis.algorithms.continuation.config import (CollocationConfig,
                                                      ContinuationConfig)
from dynalysis.algorithms.continuation.engine import _ContinuationEngine
from dynalysis.algorithms.continuation.interfaces import \
    _ContinuationInterface
from dynalysis.algorithms.continuation.problems import (EquilibriumProblem,
                                                        RecordFn,
                                                        _BifurcationProblem)
from dynalysis.algorithms.continuation.types import (Branch, SpecialPoint,
                                                     SpecialPointKind)
from dynalysis.algorithms.linalg.backend import _LinalgBackend


class ParameterContinuation:
    """Facade for pseudo-arclength continuation in one parameter.

    Users supply an engine (DI). Use
    :meth:`ParameterContinuation.with_default_engine` to construct a default
    engine wired with the Moore-Penrose backend and the continuation
    interface.

    Examples
    --------
    >>> from dynalysis.algorithms.dynamics import lorenz
    >>> cont = ParameterContinuation.with_default_engine(
    ...     config=ContinuationConfig(p_min=2.0, p_max=4.0, ds=0.01, ds_max=0.1))
    >>> branch = cont.equilibria(lorenz(), [72 ** 0.5, 72 ** 0.5, 27.0], "beta")
    >>> [str(sp.kind) for sp in branch.special_points]
    ['hopf']
    """

    def __init__(
        self,
        config: ContinuationConfig,
        engine: _ContinuationEngine,
        collocation: Optional[CollocationConfig] = None,
    ) -> None:
        self._config = config
        self._engine = engine
        self._collocation = collocation if collocation is not None else CollocationConfig()
        self._results: Optional[Branch] = None

    @classmethod
    def with_default_engine(
        cls,
        *,
        config: Optional[ContinuationConfig] = None,
        collocation: Optional[CollocationConfig] = None,
        linalg: Optional[_LinalgBackend] = None,
    ) -> "ParameterContinuation":
        """Create a facade instance with a default engine (factory)."""
        from dynalysis.algorithms.continuation.backends.pc import \
            _MoorePenroseBackend

        backend = _MoorePenroseBackend(linalg=linalg)
        engine = _ContinuationEngine(backend=backend, interface=_ContinuationInterface())
        return cls(config if config is not None else ContinuationConfig(), engine, collocation)

    @property
    def config(self) -> ContinuationConfig:
        return self._config

    @property
    def results(self) -> Optional[Branch]:
        """Branch of the last run."""
        return self._results

    def run(
        self,
        problem: _BifurcationProblem,
        x0: Sequence[float],
        p0: Optional[float] = None,
        *,
        config: Optional[ContinuationConfig] = None,
        tangent: Optional[np.ndarray] = None,
        ds: Optional[float] = None,
        correct_seed: bool = True,
        include_seed: bool = True,
    ) -> Branch:
        """Continue the solutions of *problem* from ``(x0, p0)``.

        Parameters
        ----------
        problem : :class:`~dynalysis.algorithms.continuation.problems._BifurcationProblem`
        x0 : array_like
            Starting solution.
        p0 : float, optional
            Starting parameter; defaults to the system's current value.
        config : :class:`~dynalysis.algorithms.continuation.config.ContinuationConfig`, optional
            Overrides the facade configuration for this run.
        tangent : numpy.ndarray, optional
            Initial tangent; computed from ``[F_x | F_p]`` when omitted.
        ds : float, optional
            First step; defaults to ``config.ds``.
        correct_seed : bool, default True
            Newton-correct the starting solution at fixed ``p0``.
        include_seed : bool, default True
            Store the starting solution as the first point.

        Returns
        -------
        :class:`~dynalysis.algorithms.continuation.types.Branch`

        Raises
        ------
        :class:`~dynalysis.algorithms.types.exceptions.ConvergenceError`
            If the starting solution cannot be corrected.
        """
        interface = _ContinuationInterface()
        self._engine.with_interface(interface)
        cont_problem = interface.create_problem(
            domain_obj=problem,
            x0=x0,
            p0=p0,
            config=config if config is not None else self._config,
            tangent=tangent,
            ds=ds,
            correct_seed=correct_seed,
            include_seed=include_seed,
        )
        self._results = self._engine.solve(cont_problem)
        return self._results

    def equilibria(
        self,
        system,
        x0: Sequence[float],
        parameter: Union[int, str],
        p0: Optional[float] = None,
        *,
        config: Optional[ContinuationConfig] = None,
        record: Optional[RecordFn] = None,
    ) -> Branch:
        """Trace the equilibrium branch of *system* through ``x0``."""
        problem = EquilibriumProblem(system, parameter, record=record)
        return self.run(problem, x0, p0, config=config)

    def periodic_orbits_from_hopf(
        self,
        system,
        parameter: Union[int, str],
        hopf: Union[SpecialPoint, Tuple[Sequence[float], float]],
        *,
        config: Optional[ContinuationConfig] = None,
        collocation: Optional[CollocationConfig] = None,
        record: Optional[RecordFn] = None,
        refine: bool = True,
    ) -> Branch:
        """Trace the periodic orbits born at a Hopf point.

        Parameters
        ----------
        system : :class:`~dynalysis.algorithms.dynamics.base.DynamicalSystem`
        parameter : int or str
            Continuation parameter (the one the Hopf point was found in).
        hopf : :class:`~dynalysis.algorithms.continuation.types.SpecialPoint` or (state, parameter)
            Hopf point of an equilibrium branch.
        collocation : :class:`~dynalysis.algorithms.continuation.config.CollocationConfig`, optional
            Mesh size, degree and first-step amplitude.
        record : callable, optional
            ``record(x, p) -> dict``; by default every point records its
            ``period`` and one-period ``trajectory``.
        refine : bool, default True
            Newton-correct the interpolated equilibrium at the Hopf
            parameter before building the seed.

        Returns
        -------
        :class:`~dynalysis.algorithms.continuation.types.Branch`
            Branch of kind ``"periodic_orbit"``; the degenerate orbit at the
            Hopf point itself is not stored.
        """
        if isinstance(hopf, SpecialPoint):
            if hopf.kind is not SpecialPointKind.HOPF:
                raise ValueError(f"Expected a Hopf point, got {hopf.kind.value}")
            state, p_h = hopf.state, hopf.parameter
        else:
            state, p_h = hopf
        state = np.asarray(state, dtype=np.float64)
        p_h = float(p_h)
        cfg = config if config is not None else self._config

        if refine:
            eq = EquilibriumProblem(system, parameter)
            state, _ = eq.correct(state, p_h, tol=cfg.newton_tol, max_iter=cfg.max_newton_iters)

        problem = PeriodicOrbitProblem(
            system,
            parameter,
            collocation=collocation if collocation is not None else self._collocation,
            record=record,
        )
        x0, tangent, ds = problem.hopf_seed(state, p_h)
        return self.run(
            problem, x0, p_h, config=cfg, tangent=tangent, ds=ds,
            correct_seed=False, include_seed=False,
        )
