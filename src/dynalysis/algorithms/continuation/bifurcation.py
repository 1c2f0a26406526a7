"""Test functions for codimension-one bifurcations.

Equilibria are classified from the eigenvalues of ``F_x``; periodic orbits
from their Floquet multipliers with the trivial multiplier removed. A
bifurcation is flagged when an integer test (sign of the determinant, count
of eigenvalues beyond the stability boundary) differs between two
consecutive accepted points.
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from dynalysis.algorithms.continuation.types import SpecialPointKind

_IMAG_TOL = 1e-8


def _is_complex(values: np.ndarray) -> np.ndarray:
    return np.abs(values.imag) > _IMAG_TOL * np.maximum(1.0, np.abs(values))


def _fraction(a: float, b: float) -> float:
    """Zero of the linear interpolant between test values *a* and *b* in ``[0, 1]``."""
    if not (np.isfinite(a) and np.isfinite(b)) or a == b:
        return 0.5
    return float(np.clip(a / (a - b), 0.0, 1.0))


@dataclass(frozen=True)
class EquilibriumTest:
    """Test-function values of one equilibrium.

    Attributes
    ----------
    det : float
        ``det(F_x)`` as the product of the eigenvalues.
    n_unstable : int
        Eigenvalues with positive real part.
    critical_re : float
        Real part of the complex eigenvalue closest to the imaginary axis
        (``nan`` when all eigenvalues are real).
    n_unstable_complex : int
        Non-real eigenvalues with positive real part.
    """
    det: float
    n_unstable: int
    critical_re: float
    n_unstable_complex: int

    @classmethod
    def from_eigenvalues(cls, eigenvalues: np.ndarray) -> "EquilibriumTest":
        ev = np.asarray(eigenvalues, dtype=complex)
        cplx = ev[_is_complex(ev)]
        crit = float(cplx.real[np.argmin(np.abs(cplx.real))]) if cplx.size else float("nan")
        return cls(
            det=float(np.prod(ev).real),
            n_unstable=int(np.sum(ev.real > 0.0)),
            critical_re=crit,
            n_unstable_complex=int(np.sum(cplx.real > 0.0)),
        )

    @property
    def stable(self) -> bool:
        return self.n_unstable == 0


def detect_equilibrium_bifurcations(prev: EquilibriumTest, curr: EquilibriumTest) -> List[Tuple[SpecialPointKind, float]]:
    """Bifurcations between two consecutive equilibria.

    A sign change of the determinant is a fold. Otherwise a Hopf point is
    reported when the number of unstable eigenvalues changes together with
    the number of unstable complex ones, i.e. a conjugate pair crossed the
    imaginary axis. Two real eigenvalues crossing zero together leave the
    determinant sign unchanged and are not reported, nor is a collision of
    two real eigenvalues into a complex pair off the axis.

    Returns
    -------
    list of (kind, fraction)
        ``fraction`` in ``[0, 1]`` locates the bifurcation between the two
        points by linear interpolation of the relevant test value.
    """
    if prev.det * curr.det < 0.0:
        return [(SpecialPointKind.FOLD, _fraction(prev.det, curr.det))]
    if prev.n_unstable != curr.n_unstable and prev.n_unstable_complex != curr.n_unstable_complex:
        return [(SpecialPointKind.HOPF, _fraction(prev.critical_re, curr.critical_re))]
    return []


def drop_trivial_multiplier(multipliers: np.ndarray) -> np.ndarray:
    """Remove the multiplier closest to ``1`` (the flow direction)."""
    mu = np.asarray(multipliers, dtype=complex)
    if mu.size == 0:
        return mu
    return np.delete(mu, int(np.argmin(np.abs(mu - 1.0))))


@dataclass(frozen=True)
class CycleTest:
    """Test-function values of one periodic orbit.

    Attributes
    ----------
    n_ns : int
        Complex non-trivial multipliers outside the unit circle.
    n_pd : int
        Real multipliers below ``-1``.
    n_lpc : int
        Real non-trivial multipliers above ``+1``.
    ns_value, pd_value, lpc_value : float
        ``|mu| - 1``, ``mu + 1`` and ``mu - 1`` of the multiplier closest to
        each boundary (``nan`` when there is none).
    max_modulus : float
        Largest non-trivial multiplier modulus.
    """
    n_ns: int
    n_pd: int
    n_lpc: int
    ns_value: float
    pd_value: float
    lpc_value: float
    max_modulus: float

    @classmethod
    def from_multipliers(cls, multipliers: np.ndarray) -> "CycleTest":
        mu = drop_trivial_multiplier(multipliers)
        cplx = _is_complex(mu)
        mc = mu[cplx]
        mr = mu[~cplx].real

        def _closest(values):
            return float(values[np.argmin(np.abs(values))]) if values.size else float("nan")

        return cls(
            n_ns=int(np.sum(np.abs(mc) > 1.0)),
            n_pd=int(np.sum(mr < -1.0)),
            n_lpc=int(np.sum(mr > 1.0)),
            ns_value=_closest(np.abs(mc) - 1.0),
            pd_value=_closest(mr + 1.0),
            lpc_value=_closest(mr - 1.0),
            max_modulus=float(np.max(np.abs(mu))) if mu.size else 0.0,
        )

    @property
    def stable(self) -> bool:
        return self.max_modulus < 1.0


def detect_cycle_bifurcations(prev: CycleTest, curr: CycleTest) -> List[Tuple[SpecialPointKind, float]]:
    """Bifurcations between two consecutive periodic orbits."""
    found = []
    if prev.n_ns != curr.n_ns:
        found.append((SpecialPointKind.NEIMARK_SACKER, _fraction(prev.ns_value, curr.ns_value)))
    if prev.n_pd != curr.n_pd:
        found.append((SpecialPointKind.PERIOD_DOUBLING, _fraction(prev.pd_value, curr.pd_value)))
    if prev.n_lpc != curr.n_lpc:
        found.append((SpecialPointKind.CYCLE_FOLD, _fraction(prev.lpc_value, curr.lpc_value)))
    return found
