"""Result containers of the parameter sweep."""

from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Optional, Tuple

import numpy as np
import pandas as pd

from dynalysis.algorithms.lyapunov.propagator import LyapunovSpectrum


@dataclass(frozen=True)
class SweepFailure:
    """Marker stored in the result grid for a point that did not complete.

    Attributes
    ----------
    index : tuple of int
        Position of the point in the grid.
    params : dict
        Parameter values applied at the point.
    error_type : str
        Name of the exception class, or ``"Cancelled"``.
    message : str
        Exception message.
    """
    index: Tuple[int, ...]
    params: dict
    error_type: str
    message: str = ""

    @property
    def cancelled(self) -> bool:
        return self.error_type == "Cancelled"

    @classmethod
    def from_exception(cls, index, params, exc: BaseException) -> "SweepFailure":
        return cls(tuple(index), dict(params), type(exc).__name__, str(exc))


@dataclass(frozen=True)
class LyapunovPoint:
    """Per-point result of :func:`~dynalysis.algorithms.sweep.executor.lyapunov_task`."""
    spectrum: LyapunovSpectrum
    dimension: float

    @property
    def maximal(self) -> float:
        return self.spectrum.maximal


@dataclass
class SweepResult:
    """Results of a :class:`~dynalysis.algorithms.sweep.executor.ParameterSweep` aligned to its grid.

    Attributes
    ----------
    values : numpy.ndarray
        Object array of shape ``tuple(len(v) for v in axes.values())``. Each
        slot holds the task's return value or a :class:`SweepFailure`.
    axes : dict
        Parameter key to the 1-D array of values along that axis, in grid
        order.
    cancelled : bool
        True when the sweep was cancelled before every point ran.
    """
    values: np.ndarray
    axes: dict
    cancelled: bool = False
    elapsed: float = field(default=float("nan"), repr=False)

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.values.shape

    @property
    def keys(self) -> Tuple[Hashable, ...]:
        return tuple(self.axes)

    @property
    def succeeded(self) -> np.ndarray:
        """Boolean mask of the points that returned a value."""
        mask = np.empty(self.values.shape, dtype=bool)
        for idx, v in np.ndenumerate(self.values):
            mask[idx] = not isinstance(v, SweepFailure)
        return mask

    @property
    def failures(self) -> list:
        return [v for v in self.values.flat if isinstance(v, SweepFailure)]

    def __getitem__(self, index):
        return self.values[index]

    def __len__(self) -> int:
        return self.values.size

    def to_array(self, getter: Optional[Callable[[Any], float]] = None, fill: float = np.nan) -> np.ndarray:
        """Extract a float array from the result grid.

        Parameters
        ----------
        getter : callable, optional
            Maps a successful point's value to a float. Defaults to
            ``float(value)``.
        fill : float, default nan
            Value used for failed or cancelled points.
        """
        getter = float if getter is None else getter
        out = np.full(self.values.shape, fill, dtype=np.float64)
        for idx, v in np.ndenumerate(self.values):
            if not isinstance(v, SweepFailure):
                out[idx] = getter(v)
        return out

    def to_df(self, getter: Optional[Callable[[Any], Any]] = None) -> pd.DataFrame:
        """One row per grid point: parameter columns, ``value`` and ``error``."""
        rows = []
        for idx, v in np.ndenumerate(self.values):
            row = {str(k): ax[i] for (k, ax), i in zip(self.axes.items(), idx)}
            if isinstance(v, SweepFailure):
                row["value"] = None
                row["error"] = f"{v.error_type}: {v.message}" if v.message else v.error_type
            else:
                row["value"] = v if getter is None else getter(v)
                row["error"] = None
            rows.append(row)
        return pd.DataFrame(rows)
