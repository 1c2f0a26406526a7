"""Result containers produced by the integrators."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class EventRecord:
    """A single event firing.

    Attributes
    ----------
    time : float
        Located crossing time.
    event_index : int
        Position of the event in the list passed to the integrator.
    name : str
        Name of the event.
    state_before : numpy.ndarray
        Interpolated state at ``time`` before the effect.
    state_after : numpy.ndarray
        State integration resumed from.
    """
    time: float
    event_index: int
    name: str
    state_before: np.ndarray
    state_after: np.ndarray


@dataclass
class IntegrationStats:
    """Counters collected during one integration."""
    n_accepted: int = 0
    n_rejected: int = 0
    n_rhs_evals: int = 0
    n_events: int = 0
    last_step: float = float("nan")
    next_step: float = float("nan")

    @property
    def n_attempts(self) -> int:
        return self.n_accepted + self.n_rejected


class Trajectory:
    """Time-ordered ``(t, state)`` samples of one integration.

    The trajectory is append-only while the integrator owns it and becomes
    read-only once :meth:`freeze` is called; the arrays exposed by
    :attr:`times`, :attr:`states` and :attr:`derivatives` are never
    writable.

    Parameters
    ----------
    dim : int
        State dimension.
    state_names : sequence of str, optional
        Column labels for :meth:`to_df`.

    Notes
    -----
    When an event effect changes the state, two samples share the event
    time: the state before and the state after the effect. Interpolation
    at exactly that time returns the post-event state.
    """

    def __init__(self, dim: int, state_names: Optional[Sequence[str]] = None):
        self._dim = int(dim)
        self._t: List[float] = []
        self._y: List[np.ndarray] = []
        self._dy: List[np.ndarray] = []
        self._has_derivatives = True
        self._frozen = False
        self._times: Optional[np.ndarray] = None
        self._states: Optional[np.ndarray] = None
        self._derivatives: Optional[np.ndarray] = None
        self.events: List[EventRecord] = []
        self.stats = IntegrationStats()
        self.state_names = tuple(state_names) if state_names is not None else tuple(f"x{i}" for i in range(self._dim))

    @classmethod
    def from_arrays(
        cls,
        times: np.ndarray,
        states: np.ndarray,
        derivatives: Optional[np.ndarray] = None,
        events: Optional[Sequence[EventRecord]] = None,
        state_names: Optional[Sequence[str]] = None,
    ) -> "Trajectory":
        """Build a frozen trajectory from already computed arrays."""
        times = np.asarray(times, dtype=np.float64)
        states = np.atleast_2d(np.asarray(states, dtype=np.float64))
        if len(times) != len(states):
            raise ValueError(
                f"Times and states must have same length: "
                f"{len(times)} != {len(states)}"
            )
        if derivatives is not None and len(derivatives) != len(times):
            raise ValueError(
                "If provided, derivatives must have the same length as times "
                f"({len(derivatives)} != {len(times)})"
            )
        traj = cls(states.shape[1], state_names=state_names)
        for i in range(len(times)):
            traj.append(times[i], states[i], None if derivatives is None else derivatives[i])
        traj.events.extend(events or ())
        return traj.freeze()

    def append(self, t: float, state: np.ndarray, derivative: Optional[np.ndarray] = None) -> None:
        """Append a sample. Only valid before :meth:`freeze`."""
        if self._frozen:
            raise RuntimeError("Trajectory is read-only")
        state = np.array(state, dtype=np.float64, copy=True)
        if state.shape != (self._dim,):
            raise ValueError(f"State vector dimension {state.shape} != trajectory dimension ({self._dim},)")
        self._t.append(float(t))
        self._y.append(state)
        if derivative is None:
            self._has_derivatives = False
        elif self._has_derivatives:
            self._dy.append(np.array(derivative, dtype=np.float64, copy=True))

    def freeze(self) -> "Trajectory":
        """Convert the samples to read-only arrays and forbid further appends."""
        if self._frozen:
            return self
        self._times = np.asarray(self._t, dtype=np.float64)
        self._states = np.asarray(self._y, dtype=np.float64).reshape(len(self._t), self._dim)
        if self._has_derivatives and len(self._dy) == len(self._t) and len(self._t) > 0:
            self._derivatives = np.asarray(self._dy, dtype=np.float64).reshape(len(self._t), self._dim)
            self._derivatives.setflags(write=False)
        self._times.setflags(write=False)
        self._states.setflags(write=False)
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def dim(self) -> int:
        return self._dim

    @property
    def times(self) -> np.ndarray:
        self.freeze()
        return self._times

    @property
    def states(self) -> np.ndarray:
        self.freeze()
        return self._states

    @property
    def derivatives(self) -> Optional[np.ndarray]:
        self.freeze()
        return self._derivatives

    @property
    def t_final(self) -> float:
        return self._t[-1]

    @property
    def final_state(self) -> np.ndarray:
        return self._y[-1].copy()

    def __len__(self) -> int:
        return len(self._t)

    def event_times(self, name_or_index: Union[str, int, None] = None) -> np.ndarray:
        """Times of the recorded event firings, optionally filtered."""
        if name_or_index is None:
            recs = self.events
        elif isinstance(name_or_index, str):
            recs = [r for r in self.events if r.name == name_or_index]
        else:
            recs = [r for r in self.events if r.event_index == int(name_or_index)]
        return np.array([r.time for r in recs], dtype=np.float64)

    def interpolate(self, t: Union[np.ndarray, float]) -> np.ndarray:
        """Evaluate the trajectory at arbitrary time points by interpolation.

        If derivative samples are available, a cubic Hermite interpolant is
        used on every interval; otherwise linear interpolation is applied.

        Parameters
        ----------
        t : float or array_like
            Time (or array of times) at which to evaluate the trajectory.
            Must lie within the integration interval.

        Returns
        -------
        ndarray
            Interpolated state(s) with shape ``(n_dim,)`` for a scalar *t* or
            ``(n_times, n_dim)`` for an array input.
        """
        times = self.times
        states = self.states
        if times.size == 0:
            raise ValueError("Cannot interpolate an empty trajectory.")
        t_arr = np.atleast_1d(np.asarray(t, dtype=float))
        if times.size == 1:
            if np.any(t_arr != times[0]):
                raise ValueError("Interpolation times must lie within the solution interval.")
            out = np.repeat(states[:1], t_arr.size, axis=0)
            return out[0] if np.isscalar(t) else out

        # backward integrations are handled on the reversed time axis
        sign = 1.0 if times[-1] >= times[0] else -1.0
        ts = sign * times
        tq = sign * t_arr
        if np.any(tq < ts[0]) or np.any(tq > ts[-1]):
            raise ValueError("Interpolation times must lie within the solution interval.")

        idxs = np.searchsorted(ts, tq, side="right") - 1
        idxs = np.clip(idxs, 0, len(ts) - 2)

        t0 = times[idxs]
        h = times[idxs + 1] - t0
        y0 = states[idxs]
        y1 = states[idxs + 1]

        # zero-length intervals only occur at event discontinuities
        degenerate = h == 0.0
        h_safe = np.where(degenerate, 1.0, h)
        s = np.where(degenerate, 1.0, (t_arr - t0) / h_safe)

        if self.derivatives is None:
            y_out = y0 + ((y1 - y0).T * s).T
        else:
            f0 = self.derivatives[idxs]
            f1 = self.derivatives[idxs + 1]

            s2 = s * s
            s3 = s2 * s
            h00 = 2 * s3 - 3 * s2 + 1
            h10 = s3 - 2 * s2 + s
            h01 = -2 * s3 + 3 * s2
            h11 = s3 - s2

            hh = np.where(degenerate, 0.0, h)[:, None]
            y_out = (
                (h00[:, None] * y0) +
                (h10[:, None] * (hh * f0)) +
                (h01[:, None] * y1) +
                (h11[:, None] * (hh * f1))
            )

        if np.isscalar(t):
            return y_out[0]
        return y_out

    def to_df(self) -> pd.DataFrame:
        """Return the samples as a :class:`pandas.DataFrame` with a ``t`` column."""
        df = pd.DataFrame(self.states, columns=list(self.state_names))
        df.insert(0, "t", self.times)
        return df

    def events_df(self) -> pd.DataFrame:
        """Return the event records as a :class:`pandas.DataFrame`."""
        rows = []
        for rec in self.events:
            row = {"time": rec.time, "event_index": rec.event_index, "name": rec.name}
            for i, label in enumerate(self.state_names):
                row[f"{label}_before"] = rec.state_before[i]
                row[f"{label}_after"] = rec.state_after[i]
            rows.append(row)
        return pd.DataFrame(rows)

    def save(self, filepath: Union[str, Path], **kwargs) -> None:
        """Persist the trajectory to an HDF5 file."""
        from dynalysis.utils.io import save_trajectory
        save_trajectory(self, filepath, **kwargs)

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> "Trajectory":
        """Load a trajectory written by :meth:`save`."""
        from dynalysis.utils.io import load_trajectory
        return load_trajectory(filepath)

    def __repr__(self):
        span = (self._t[0], self._t[-1]) if self._t else ()
        return f"Trajectory(n_samples={len(self)}, dim={self._dim}, span={span}, n_events={len(self.events)})"
