"""Data-parallel evaluation of a per-point task over a parameter grid.

Every grid point receives its own system built with
:meth:`~dynalysis.algorithms.dynamics.base.DynamicalSystem.with_params`, so
no two points share mutable state and results are written into disjoint,
index-addressed slots of the output grid.
"""

import itertools
import multiprocessing
import threading
import time
from concurrent.futures import (FIRST_COMPLETED, ProcessPoolExecutor,
                                ThreadPoolExecutor, wait)
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Mapping, Optional, Sequence

import numpy as np
from tqdm import tqdm

from dynalysis.algorithms.integrators.configs import SolverConfig
from dynalysis.algorithms.lyapunov.dimension import kaplan_yorke_dimension
from dynalysis.algorithms.lyapunov.propagator import VariationalPropagator
from dynalysis.algorithms.sweep.types import (LyapunovPoint, SweepFailure,
                                              SweepResult)
from dynalysis.algorithms.types.exceptions import DynalysisError
from dynalysis.utils.config import N_WORKERS
from dynalysis.utils.log_config import logger

# errors that mark a single point as failed instead of aborting the sweep
_POINT_ERRORS = (DynalysisError, ArithmeticError, ValueError, np.linalg.LinAlgError)


def _run_chunk(system, keys, points, indices, task, cancel_flag=None):
    """Evaluate *task* on the grid points listed in *indices*.

    Returns a list of ``(flat_index, value)``. Cancellation is checked
    between points; unstarted points come back as cancelled failures.
    """
    out = []
    for flat in indices:
        idx, values = points[flat]
        params = dict(zip(keys, values))
        if cancel_flag is not None and cancel_flag.is_set():
            out.append((flat, SweepFailure(idx, params, "Cancelled")))
            continue
        try:
            local = system.with_params(params)
            out.append((flat, task(local)))
        except _POINT_ERRORS as exc:
            logger.warning(f"Sweep point {idx} {params} failed: {type(exc).__name__}: {exc}")
            out.append((flat, SweepFailure.from_exception(idx, params, exc)))
    return out


class ParameterSweep:
    """Evaluate a task on the Cartesian product of parameter values.

    Parameters
    ----------
    system : :class:`~dynalysis.algorithms.dynamics.base.DynamicalSystem`
        Template system. It is never mutated; each grid point works on a
        fresh copy carrying that point's parameters.
    grid : mapping
        Parameter index or name to the values along that axis. The output
        grid has one axis per entry, in mapping order.
    task : callable
        ``task(system) -> value`` evaluated once per grid point. For
        ``executor="process"`` the task and the system must be picklable.
    n_workers : int, default ``N_WORKERS``
        Size of the worker pool. ``1`` runs sequentially in the caller's
        thread.
    executor : {"thread", "process"}, default "thread"
        Pool type. Threads avoid pickling compiled vector fields.
    show_progress : bool, default False
        Display a tqdm progress bar.

    Examples
    --------
    >>> from dynalysis.algorithms.dynamics import lorenz
    >>> sweep = ParameterSweep(lorenz(), {"rho": [20.0, 28.0]},
    ...                        lyapunov_task([1.0, 1.0, 1.0], Ttr=50.0, N=200))
    >>> result = sweep.run()
    >>> result.to_array(lambda p: p.maximal).shape
    (2,)
    """

    def __init__(
        self,
        system,
        grid: Mapping[Hashable, Sequence[float]],
        task: Callable[[Any], Any],
        *,
        n_workers: int = N_WORKERS,
        executor: str = "thread",
        show_progress: bool = False,
    ):
        if not callable(task):
            raise TypeError("task must be callable")
        if not grid:
            raise ValueError("Parameter grid must have at least one axis")
        if executor not in ("thread", "process"):
            raise ValueError(f"executor must be 'thread' or 'process', got {executor!r}")
        if int(n_workers) < 1:
            raise ValueError(f"n_workers must be >= 1, got {n_workers}")

        self._axes = {}
        for key, values in grid.items():
            system.param_index(key)
            arr = np.asarray(values, dtype=np.float64).reshape(-1)
            if arr.size == 0:
                raise ValueError(f"Grid axis {key!r} is empty")
            self._axes[key] = arr

        self._system = system
        self._task = task
        self._n_workers = int(n_workers)
        self._executor = executor
        self._show_progress = bool(show_progress)
        self._cancel = threading.Event()
        self._futures: list = []
        # manager-backed twin of _cancel seen by worker processes
        self._shared_cancel = None
        self._lock = threading.Lock()

    @property
    def axes(self) -> dict:
        return dict(self._axes)

    @property
    def shape(self) -> tuple:
        return tuple(a.size for a in self._axes.values())

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Request cooperative cancellation.

        Points already running finish, in worker threads and worker
        processes alike; pending chunks are cancelled and every unstarted point is reported as a cancelled
        :class:`~dynalysis.algorithms.sweep.types.SweepFailure`.
        """
        self._cancel.set()
        with self._lock:
            if self._shared_cancel is not None:
                self._shared_cancel.set()
        for fut in list(self._futures):
            fut.cancel()
        logger.info("Parameter sweep cancellation requested")

    def _points(self):
        axes = list(self._axes.values())
        ranges = [range(a.size) for a in axes]
        return [
            (idx, tuple(float(ax[i]) for ax, i in zip(axes, idx)))
            for idx in itertools.product(*ranges)
        ]

    def run(self) -> SweepResult:
        """Evaluate the task on every grid point.

        Returns
        -------
        :class:`~dynalysis.algorithms.sweep.types.SweepResult`
        """
        self._cancel.clear()
        keys = tuple(self._axes)
        points = self._points()
        total = len(points)
        flat_values = np.empty(total, dtype=object)
        filled = np.zeros(total, dtype=bool)
        t_start = time.perf_counter()

        bar = tqdm(total=total, desc="Parameter sweep", disable=not self._show_progress)
        try:
            if self._n_workers <= 1 or total <= 1:
                for flat in range(total):
                    for i, value in _run_chunk(self._system, keys, points, [flat], self._task, self._cancel):
                        flat_values[i] = value
                        filled[i] = True
                    bar.update(1)
            else:
                self._run_pool(keys, points, flat_values, filled, bar)
        finally:
            bar.close()

        for flat in np.flatnonzero(~filled):
            idx, vals = points[flat]
            flat_values[flat] = SweepFailure(idx, dict(zip(keys, vals)), "Cancelled")

        elapsed = time.perf_counter() - t_start
        result = SweepResult(
            values=flat_values.reshape(self.shape),
            axes=self.axes,
            cancelled=self._cancel.is_set(),
            elapsed=elapsed,
        )
        logger.info(
            f"Parameter sweep finished: {int(result.succeeded.sum())}/{total} points succeeded "
            f"in {elapsed:.2f}s"
        )
        return result

    def _run_pool(self, keys, points, flat_values, filled, bar):
        total = len(points)
        n_chunks = min(total, 4 * self._n_workers)
        chunks = [c.tolist() for c in np.array_split(np.arange(total), n_chunks) if len(c)]

        logger.info(f"Running {total} sweep points in {len(chunks)} chunks on {self._n_workers} {self._executor} workers")
        if self._executor != "process":
            self._drain(ThreadPoolExecutor, self._cancel, keys, points, chunks, flat_values, filled, bar)
            return

        manager = multiprocessing.Manager()
        try:
            with self._lock:
                self._shared_cancel = manager.Event()
                if self._cancel.is_set():
                    self._shared_cancel.set()
            self._drain(ProcessPoolExecutor, self._shared_cancel, keys, points, chunks, flat_values, filled, bar)
        finally:
            with self._lock:
                self._shared_cancel = None
            manager.shutdown()

    def _drain(self, pool_cls, flag, keys, points, chunks, flat_values, filled, bar):
        with pool_cls(max_workers=self._n_workers) as ex:
            self._futures = [
                ex.submit(_run_chunk, self._system, keys, points, chunk, self._task, flag)
                for chunk in chunks
            ]
            pending = set(self._futures)
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for fut in done:
                    if fut.cancelled():
                        continue
                    part = fut.result()
                    for i, value in part:
                        flat_values[i] = value
                        filled[i] = True
                    bar.update(len(part))
        self._futures = []


@dataclass(frozen=True)
class LyapunovTask:
    """Picklable per-point computation: Lyapunov spectrum plus Kaplan-Yorke dimension."""
    u0: tuple
    k: Optional[int] = None
    Ttr: float = 0.0
    N: int = 1000
    dt: float = 0.1
    config: Optional[SolverConfig] = None

    def __call__(self, system) -> LyapunovPoint:
        propagator = VariationalPropagator(system, config=self.config)
        spectrum = propagator.spectrum(np.asarray(self.u0, dtype=np.float64), k=self.k, Ttr=self.Ttr, N=self.N, dt=self.dt)
        return LyapunovPoint(spectrum, kaplan_yorke_dimension(spectrum.exponents))


def lyapunov_task(
    u0: Sequence[float],
    *,
    k: Optional[int] = None,
    Ttr: float = 0.0,
    N: int = 1000,
    dt: float = 0.1,
    config: Optional[SolverConfig] = None,
) -> LyapunovTask:
    """Build the standard sweep task returning a :class:`~dynalysis.algorithms.sweep.types.LyapunovPoint`."""
    return LyapunovTask(tuple(float(x) for x in u0), k, float(Ttr), int(N), float(dt), config)
