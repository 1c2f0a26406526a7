"""Types for the continuation module."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, List, Optional, Union

import numpy as np
import pandas as pd

from dynalysis.algorithms.types.exceptions import CorrectorFailure

if TYPE_CHECKING:
    from dynalysis.algorithms.continuation.config import ContinuationConfig
    from dynalysis.algorithms.continuation.problems import _BifurcationProblem


class SpecialPointKind(str, Enum):
    """Codimension-one bifurcations detected along a branch."""
    FOLD = "fold"
    HOPF = "hopf"
    NEIMARK_SACKER = "neimark_sacker"
    PERIOD_DOUBLING = "period_doubling"
    CYCLE_FOLD = "cycle_fold"

    def __str__(self) -> str:
        return self.value


class TerminationReason(str, Enum):
    """Why a branch stopped growing."""
    PARAMETER_RANGE = "parameter_range"
    MAX_STEPS = "max_steps"
    CORRECTOR_FAILURE = "corrector_failure"
    STABILITY_FAILURE = "stability_failure"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ContinuationPoint:
    """One accepted point of a branch.

    Attributes
    ----------
    state : numpy.ndarray
        Solution unknowns: the equilibrium, or the collocation nodes
        followed by the period.
    parameter : float
        Continuation parameter value.
    tangent : numpy.ndarray
        Unit tangent of the branch in ``(state, parameter)`` space.
    stable : bool or None
        Linear stability; ``None`` when bifurcation detection is disabled.
    eigenvalues : numpy.ndarray
        Jacobian eigenvalues (equilibria) or Floquet multipliers (orbits).
    newton_iterations : int
        Corrector iterations spent on this point.
    record : dict or None
        Output of the problem's ``record`` hook.
    """
    state: np.ndarray
    parameter: float
    tangent: np.ndarray = field(repr=False)
    stable: Optional[bool] = None
    eigenvalues: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=complex), repr=False)
    newton_iterations: int = 0
    record: Optional[dict] = field(default=None, repr=False)


@dataclass(frozen=True)
class SpecialPoint:
    """A bifurcation located between two consecutive branch points.

    Attributes
    ----------
    kind : :class:`SpecialPointKind`
    index : int
        Index of the first branch point past the bifurcation.
    parameter : float
        Linearly interpolated parameter value.
    state : numpy.ndarray
        Linearly interpolated solution unknowns.
    eigenvalues : numpy.ndarray
        Eigenvalues (or multipliers) at ``index``.
    """
    kind: SpecialPointKind
    index: int
    parameter: float
    state: np.ndarray = field(repr=False)
    eigenvalues: np.ndarray = field(repr=False)

    def __str__(self) -> str:
        return f"{self.kind.value} at p={self.parameter:.8g} (after point {self.index})"


@dataclass
class Branch:
    """Solution branch produced by the continuation engine.

    Attributes
    ----------
    points : list of :class:`ContinuationPoint`
    special_points : list of :class:`SpecialPoint`
    parameter_index : int
        Position of the continuation parameter in the system's vector.
    parameter_name : str or None
    kind : {"equilibrium", "periodic_orbit"}
    state_dim : int
        Dimension of the underlying dynamical system.
    termination : :class:`TerminationReason` or None
    failure : :class:`~dynalysis.algorithms.types.exceptions.CorrectorFailure` or None
        Recorded when the corrector failed at ``ds_min``.
    n_rejected : int
        Number of rejected corrector attempts.
    """
    points: List[ContinuationPoint] = field(default_factory=list)
    special_points: List[SpecialPoint] = field(default_factory=list)
    parameter_index: int = 0
    parameter_name: Optional[str] = None
    kind: str = "equilibrium"
    state_dim: int = 0
    termination: Optional[TerminationReason] = None
    failure: Optional[CorrectorFailure] = None
    n_rejected: int = 0

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[ContinuationPoint]:
        return iter(self.points)

    def __getitem__(self, i) -> ContinuationPoint:
        return self.points[i]

    @property
    def parameters(self) -> np.ndarray:
        return np.array([pt.parameter for pt in self.points], dtype=np.float64)

    @property
    def states(self) -> np.ndarray:
        if not self.points:
            return np.empty((0, 0))
        return np.vstack([pt.state for pt in self.points])

    @property
    def stability(self) -> np.ndarray:
        return np.array([bool(pt.stable) for pt in self.points], dtype=bool)

    @property
    def periods(self) -> np.ndarray:
        """Orbit periods (periodic-orbit branches only)."""
        if self.kind != "periodic_orbit":
            raise AttributeError("Only periodic-orbit branches have periods")
        return np.array([pt.state[-1] for pt in self.points], dtype=np.float64)

    def special(self, kind: Union[SpecialPointKind, str, None] = None) -> List[SpecialPoint]:
        """Special points, optionally filtered by kind."""
        if kind is None:
            return list(self.special_points)
        kind = SpecialPointKind(kind)
        return [sp for sp in self.special_points if sp.kind is kind]

    @property
    def succeeded(self) -> bool:
        """True unless the branch was cut short by a corrector or stability failure."""
        return self.failure is None and self.termination is not TerminationReason.STABILITY_FAILURE

    def to_df(self) -> pd.DataFrame:
        """One row per point: parameter, stability, iterations and a state summary."""
        label = self.parameter_name or f"p{self.parameter_index}"
        rows = []
        for pt in self.points:
            row: dict[str, Any] = {label: pt.parameter, "stable": pt.stable, "newton_iterations": pt.newton_iterations}
            row.update(_state_summary(self.kind, self.state_dim, pt.state))
            rows.append(row)
        return pd.DataFrame(rows)

    def special_points_df(self) -> pd.DataFrame:
        label = self.parameter_name or f"p{self.parameter_index}"
        return pd.DataFrame(
            [{"kind": sp.kind.value, "index": sp.index, label: sp.parameter} for sp in self.special_points],
            columns=["kind", "index", label],
        )

    def save(self, filepath: Union[str, Path], **kwargs) -> None:
        """Persist the branch to an HDF5 file."""
        from dynalysis.utils.io import save_branch
        save_branch(self, filepath, **kwargs)

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> "Branch":
        """Load a branch written by :meth:`save`."""
        from dynalysis.utils.io import load_branch
        return load_branch(filepath)

    def __repr__(self) -> str:
        return (f"Branch(kind={self.kind!r}, n_points={len(self.points)}, "
                f"special_points={[str(sp) for sp in self.special_points]}, termination={self.termination})")


def _state_summary(kind: str, n: int, state: np.ndarray) -> dict:
    if kind != "periodic_orbit":
        return {f"x{i}": state[i] for i in range(state.size)}
    nodes = state[:-1].reshape(-1, n)[:-1]
    centre = nodes.mean(axis=0)
    row = {"period": state[-1], "amplitude": float(np.max(np.linalg.norm(nodes - centre, axis=1)))}
    for i in range(n):
        row[f"x{i}_min"] = nodes[:, i].min()
        row[f"x{i}_max"] = nodes[:, i].max()
    return row


@dataclass(frozen=True)
class _ContinuationProblem:
    """Inputs of one continuation run.

    Attributes
    ----------
    problem : :class:`~dynalysis.algorithms.continuation.problems._BifurcationProblem`
        Algebraic formulation ``F(x, p) = 0``.
    x0 : numpy.ndarray
        Starting solution.
    p0 : float
        Starting parameter value.
    config : :class:`~dynalysis.algorithms.continuation.config.ContinuationConfig`
    tangent : numpy.ndarray or None
        Prescribed initial tangent; computed from ``[F_x | F_p]`` when None.
    ds : float or None
        Prescribed first step; ``config.ds`` when None.
    correct_seed : bool
        Newton-correct the starting solution at fixed ``p0``.
    include_seed : bool
        Store the starting solution as the first branch point.
    """
    problem: "_BifurcationProblem"
    x0: np.ndarray
    p0: float
    config: "ContinuationConfig"
    tangent: Optional[np.ndarray] = None
    ds: Optional[float] = None
    correct_seed: bool = True
    include_seed: bool = True
