"""Input/output utilities for trajectories and continuation branches.

Objects are stored in HDF5 files with a ``class`` attribute naming the
stored type and a ``format_version`` attribute. Array data is compressed
with gzip by default.

Notes
-----
The ``record`` payloads of branch points hold arbitrary Python objects and
are not written; periodic-orbit trajectories can be rebuilt from the stored
collocation unknowns.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Optional

import h5py
import numpy as np

if TYPE_CHECKING:
    from dynalysis.algorithms.continuation.types import Branch
    from dynalysis.algorithms.integrators.types import Trajectory


HDF5_VERSION = "1.0"
"""HDF5 format version for dynalysis data."""


def _ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _write_dataset(group: h5py.Group, name: str, data, *, compression: Optional[str] = "gzip", level: int = 4) -> None:
    arr = np.asarray(data)
    if compression is not None and arr.ndim > 0 and arr.size > 0:
        group.create_dataset(name, data=arr, compression=compression, compression_opts=level)
    else:
        group.create_dataset(name, data=arr)


def _check_class(f: h5py.File, expected: str, path: Path) -> None:
    found = str(f.attrs.get("class", ""))
    if found != expected:
        raise ValueError(f"{path} does not contain a {expected} object (found {found!r})")


def save_trajectory(
    trajectory: "Trajectory",
    path: str | Path,
    *,
    compression: str = "gzip",
    level: int = 4,
) -> None:
    """Serialize a trajectory, its event records and counters to HDF5.

    Parameters
    ----------
    trajectory : :class:`~dynalysis.algorithms.integrators.types.Trajectory`
    path : str or pathlib.Path
    compression : str, default "gzip"
    level : int, default 4
        Compression level (0-9).
    """
    path = Path(path)
    _ensure_dir(path.parent)
    stats = trajectory.stats

    with h5py.File(path, "w") as f:
        f.attrs["format_version"] = HDF5_VERSION
        f.attrs["class"] = "Trajectory"
        f.attrs["dim"] = trajectory.dim
        f.attrs["state_names"] = list(trajectory.state_names)
        _write_dataset(f, "times", trajectory.times, compression=compression, level=level)
        _write_dataset(f, "states", trajectory.states, compression=compression, level=level)
        if trajectory.derivatives is not None:
            _write_dataset(f, "derivatives", trajectory.derivatives, compression=compression, level=level)

        sgrp = f.create_group("stats")
        for key in ("n_accepted", "n_rejected", "n_rhs_evals", "n_events"):
            sgrp.attrs[key] = int(getattr(stats, key))
        sgrp.attrs["last_step"] = float(stats.last_step)
        sgrp.attrs["next_step"] = float(stats.next_step)

        egrp = f.create_group("events")
        recs = trajectory.events
        _write_dataset(egrp, "name", np.array([r.name for r in recs], dtype=h5py.string_dtype()), compression=None)
        _write_dataset(egrp, "time", np.array([r.time for r in recs], dtype=np.float64))
        _write_dataset(egrp, "event_index", np.array([r.event_index for r in recs], dtype=np.int64))
        shape = (len(recs), trajectory.dim)
        _write_dataset(egrp, "state_before", np.array([r.state_before for r in recs], dtype=np.float64).reshape(shape))
        _write_dataset(egrp, "state_after", np.array([r.state_after for r in recs], dtype=np.float64).reshape(shape))


def load_trajectory(path: str | Path) -> "Trajectory":
    """Load a trajectory written by :func:`save_trajectory`.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file holds another kind of object.
    """
    from dynalysis.algorithms.integrators.types import (EventRecord,
                                                        IntegrationStats,
                                                        Trajectory)

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    with h5py.File(path, "r") as f:
        _check_class(f, "Trajectory", path)
        names = [str(s) for s in f.attrs["state_names"]]
        times = f["times"][()]
        states = f["states"][()]
        derivatives = f["derivatives"][()] if "derivatives" in f else None

        egrp = f["events"]
        ev_names = [str(s) for s in egrp["name"].asstr()[()]]
        ev_t = egrp["time"][()]
        ev_i = egrp["event_index"][()]
        before = egrp["state_before"][()]
        after = egrp["state_after"][()]
        events = [
            EventRecord(float(ev_t[j]), int(ev_i[j]), ev_names[j], before[j].copy(), after[j].copy())
            for j in range(len(ev_names))
        ]
        sgrp = f["stats"]
        stats = IntegrationStats(
            n_accepted=int(sgrp.attrs["n_accepted"]),
            n_rejected=int(sgrp.attrs["n_rejected"]),
            n_rhs_evals=int(sgrp.attrs["n_rhs_evals"]),
            n_events=int(sgrp.attrs["n_events"]),
            last_step=float(sgrp.attrs["last_step"]),
            next_step=float(sgrp.attrs["next_step"]),
        )

    traj = Trajectory.from_arrays(times, states, derivatives, events=events, state_names=names)
    traj.stats = stats
    return traj


def save_branch(
    branch: "Branch",
    path: str | Path,
    *,
    compression: str = "gzip",
    level: int = 4,
) -> None:
    """Serialize a continuation branch and its special points to HDF5.

    Parameters
    ----------
    branch : :class:`~dynalysis.algorithms.continuation.types.Branch`
    path : str or pathlib.Path
    compression : str, default "gzip"
    level : int, default 4
    """
    path = Path(path)
    _ensure_dir(path.parent)
    pts = branch.points

    with h5py.File(path, "w") as f:
        f.attrs["format_version"] = HDF5_VERSION
        f.attrs["class"] = "Branch"
        f.attrs["kind"] = branch.kind
        f.attrs["parameter_index"] = int(branch.parameter_index)
        f.attrs["parameter_name"] = branch.parameter_name or ""
        f.attrs["state_dim"] = int(branch.state_dim)
        f.attrs["termination"] = branch.termination.value if branch.termination is not None else ""
        f.attrs["n_rejected"] = int(branch.n_rejected)
        if branch.failure is not None:
            fgrp = f.create_group("failure")
            fgrp.attrs["message"] = str(branch.failure)
            fgrp.attrs["parameter"] = float(branch.failure.parameter)
            fgrp.attrs["ds"] = float(branch.failure.ds)

        pgrp = f.create_group("points")
        _write_dataset(pgrp, "parameter", branch.parameters)
        _write_dataset(pgrp, "state", branch.states, compression=compression, level=level)
        _write_dataset(pgrp, "tangent", np.array([pt.tangent for pt in pts], dtype=np.float64),
                       compression=compression, level=level)
        _write_dataset(pgrp, "stable", np.array([-1 if pt.stable is None else int(pt.stable) for pt in pts], dtype=np.int8))
        _write_dataset(pgrp, "newton_iterations", np.array([pt.newton_iterations for pt in pts], dtype=np.int64))
        egrp = pgrp.create_group("eigenvalues")
        for i, pt in enumerate(pts):
            _write_dataset(egrp, str(i), np.asarray(pt.eigenvalues, dtype=np.complex128))

        sgrp = f.create_group("special_points")
        sps = branch.special_points
        _write_dataset(sgrp, "kind", np.array([sp.kind.value for sp in sps], dtype=h5py.string_dtype()), compression=None)
        _write_dataset(sgrp, "index", np.array([sp.index for sp in sps], dtype=np.int64))
        _write_dataset(sgrp, "parameter", np.array([sp.parameter for sp in sps], dtype=np.float64))
        for i, sp in enumerate(sps):
            sub = sgrp.create_group(str(i))
            _write_dataset(sub, "state", sp.state)
            _write_dataset(sub, "eigenvalues", np.asarray(sp.eigenvalues, dtype=np.complex128))


def load_branch(path: str | Path) -> "Branch":
    """Load a branch written by :func:`save_branch`.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file holds another kind of object.
    """
    from dynalysis.algorithms.continuation.types import (Branch,
                                                         ContinuationPoint,
                                                         SpecialPoint,
                                                         SpecialPointKind,
                                                         TerminationReason)
    from dynalysis.algorithms.types.exceptions import CorrectorFailure

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    with h5py.File(path, "r") as f:
        _check_class(f, "Branch", path)
        termination = str(f.attrs["termination"])
        failure = None
        if "failure" in f:
            fgrp = f["failure"]
            failure = CorrectorFailure(
                str(fgrp.attrs["message"]),
                parameter=float(fgrp.attrs["parameter"]),
                ds=float(fgrp.attrs["ds"]),
            )

        pgrp = f["points"]
        params = pgrp["parameter"][()]
        states = pgrp["state"][()]
        tangents = pgrp["tangent"][()]
        stable = pgrp["stable"][()]
        iters = pgrp["newton_iterations"][()]
        points = [
            ContinuationPoint(
                state=states[i].copy(),
                parameter=float(params[i]),
                tangent=tangents[i].copy(),
                stable=None if stable[i] < 0 else bool(stable[i]),
                eigenvalues=pgrp["eigenvalues"][str(i)][()],
                newton_iterations=int(iters[i]),
            )
            for i in range(params.size)
        ]

        sgrp = f["special_points"]
        kinds = [str(s) for s in sgrp["kind"].asstr()[()]]
        idx = sgrp["index"][()]
        sp_params = sgrp["parameter"][()]
        special = [
            SpecialPoint(
                kind=SpecialPointKind(kinds[i]),
                index=int(idx[i]),
                parameter=float(sp_params[i]),
                state=sgrp[str(i)]["state"][()],
                eigenvalues=sgrp[str(i)]["eigenvalues"][()],
            )
            for i in range(len(kinds))
        ]

        name = str(f.attrs["parameter_name"])
        return Branch(
            points=points,
            special_points=special,
            parameter_index=int(f.attrs["parameter_index"]),
            parameter_name=name or None,
            kind=str(f.attrs["kind"]),
            state_dim=int(f.attrs["state_dim"]),
            termination=TerminationReason(termination) if termination else None,
            failure=failure,
            n_rejected=int(f.attrs["n_rejected"]),
        )
