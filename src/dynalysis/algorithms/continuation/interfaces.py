"""Interface translating continuation problems into backend calls and branches."""

from typing import List, Optional

import numpy as np

from dynalysis.algorithms.continuation.backends.pc import (
    _AcceptedStep, _ContinuationOutputs)
from dynalysis.algorithms.continuation.config import ContinuationConfig
from dynalysis.algorithms.continuation.problems import _BifurcationProblem
from dynalysis.algorithms.continuation.types import (Branch,
                                                     ContinuationPoint,
                                                     SpecialPoint,
                                                     TerminationReason,
                                                     _ContinuationProblem)
from dynalysis.algorithms.types.core import (_BackendCall,
                                             _DynalysisBaseInterface)
from dynalysis.algorithms.types.exceptions import DynalysisError
from dynalysis.utils.log_config import logger


class _ContinuationInterface(
    _DynalysisBaseInterface[
        ContinuationConfig,
        _ContinuationProblem,
        Branch,
        _ContinuationOutputs,
    ]
):
    """Build continuation problems and turn accepted steps into a :class:`Branch`.

    Stability and the bifurcation test functions are evaluated for every
    accepted point in :meth:`to_results`; special points are interpolated
    between the two points whose test values differ.
    """

    def create_problem(
        self,
        *,
        domain_obj: _BifurcationProblem,
        x0: np.ndarray,
        p0: Optional[float] = None,
        config: ContinuationConfig,
        tangent: Optional[np.ndarray] = None,
        ds: Optional[float] = None,
        correct_seed: bool = True,
        include_seed: bool = True,
    ) -> _ContinuationProblem:
        x0 = np.asarray(x0, dtype=np.float64).reshape(-1)
        if x0.size != domain_obj.dim:
            raise ValueError(f"Starting solution has {x0.size} unknowns, problem expects {domain_obj.dim}")
        if p0 is None:
            p0 = float(domain_obj.system.params[domain_obj.parameter_index])
        if not config.p_min <= p0 <= config.p_max:
            raise ValueError(f"Starting parameter {p0} outside [{config.p_min}, {config.p_max}]")
        if tangent is not None:
            tangent = np.asarray(tangent, dtype=np.float64).reshape(-1)
            if tangent.size != domain_obj.dim + 1:
                raise ValueError(f"Tangent must have {domain_obj.dim + 1} components, got {tangent.size}")
        self._config = config
        return _ContinuationProblem(
            problem=domain_obj,
            x0=x0,
            p0=float(p0),
            config=config,
            tangent=tangent,
            ds=ds,
            correct_seed=bool(correct_seed),
            include_seed=bool(include_seed),
        )

    def to_backend_inputs(self, problem: _ContinuationProblem) -> _BackendCall:
        return _BackendCall(kwargs={
            "problem": problem.problem,
            "x0": problem.x0,
            "p0": problem.p0,
            "config": problem.config,
            "tangent": problem.tangent,
            "ds": problem.ds,
            "correct_seed": problem.correct_seed,
            "include_seed": problem.include_seed,
        })

    def on_start(self, problem: _ContinuationProblem) -> None:
        bp = problem.problem
        label = bp.parameter_name or f"p[{bp.parameter_index}]"
        logger.info(
            f"Continuing {bp.kind} branch in {label} from {problem.p0:.8g} "
            f"within [{problem.config.p_min}, {problem.config.p_max}]"
        )

    def _points(self, steps: List[_AcceptedStep], problem: _ContinuationProblem):
        """Accepted steps as branch points.

        Returns the points, their test values and whether the list was cut
        short because stability could not be evaluated at a point.
        """
        bp = problem.problem
        detect = problem.config.detect_bifurcations
        points, tests = [], []
        for step in steps:
            x, p = step.z[:-1], float(step.z[-1])
            if detect:
                try:
                    eigenvalues, test = bp.stability(x, p)
                except DynalysisError as exc:
                    logger.warning(
                        f"Stability failed at {bp.parameter_name}={p:.6g} "
                        f"({type(exc).__name__}: {exc}); keeping {len(points)} points"
                    )
                    return points, tests, True
                stable = bool(test.stable)
            else:
                eigenvalues, test, stable = np.empty(0, dtype=complex), None, None
            points.append(ContinuationPoint(
                state=x.copy(),
                parameter=p,
                tangent=step.tangent.copy(),
                stable=stable,
                eigenvalues=eigenvalues,
                newton_iterations=step.iterations,
                record=bp.record(x, p),
            ))
            tests.append(test)
        return points, tests, False

    def to_results(self, outputs: _ContinuationOutputs, *, problem: _ContinuationProblem, domain_payload=None) -> Branch:
        bp = problem.problem
        points, tests, truncated = self._points(outputs.steps, problem)
        special: List[SpecialPoint] = []
        if problem.config.detect_bifurcations:
            for i in range(1, len(points)):
                for kind, s in bp.detect(tests[i - 1], tests[i]):
                    prev, curr = points[i - 1], points[i]
                    sp = SpecialPoint(
                        kind=kind,
                        index=i,
                        parameter=prev.parameter + s * (curr.parameter - prev.parameter),
                        state=prev.state + s * (curr.state - prev.state),
                        eigenvalues=curr.eigenvalues.copy(),
                    )
                    special.append(sp)
                    logger.info(f"Detected {sp}")

        return Branch(
            points=points,
            special_points=special,
            parameter_index=bp.parameter_index,
            parameter_name=bp.parameter_name,
            kind=bp.kind,
            state_dim=bp.state_dim,
            termination=TerminationReason.STABILITY_FAILURE if truncated else outputs.termination,
            failure=None if truncated else outputs.failure,
            n_rejected=outputs.n_rejected,
        )
