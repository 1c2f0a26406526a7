"""Lyapunov spectra and the Kaplan-Yorke dimension."""

from .dimension import kaplan_yorke_dimension
from .propagator import (LyapunovSpectrum, VariationalPropagator, lyapunov,
                         lyapunov_spectrum)
from .tangent import TangentState

__all__ = [
    "LyapunovSpectrum",
    "TangentState",
    "VariationalPropagator",
    "kaplan_yorke_dimension",
    "lyapunov",
    "lyapunov_spectrum",
]
