"""Dynamical-system capability objects and built-in models."""

from .base import (DynamicalSystem, DynamicalSystemProtocol, _DynamicalSystem,
                   create_system)
from .models import (hopf_normal_form, integrate_and_fire,
                     integrate_and_fire_period, lorenz, rossler,
                     spike_reset_event)

__all__ = [
    "DynamicalSystem",
    "DynamicalSystemProtocol",
    "_DynamicalSystem",
    "create_system",
    "lorenz",
    "rossler",
    "hopf_normal_form",
    "integrate_and_fire",
    "integrate_and_fire_period",
    "spike_reset_event",
]
