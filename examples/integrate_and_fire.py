"""Example script: spike train of a leaky integrate-and-fire neuron.

The threshold crossing is located with an event and the membrane potential
is reset in place; the measured inter-spike interval is compared with the
analytic one.

Run with
    python examples/integrate_and_fire.py
"""

import os
import sys

import numpy as np

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dynalysis import integrate, integrate_and_fire
from dynalysis.algorithms.dynamics import (integrate_and_fire_period,
                                          spike_reset_event)
from dynalysis.utils.io import _ensure_dir
from dynalysis.utils.log_config import logger

_ensure_dir("results")


def main() -> None:
    neuron = integrate_and_fire(current=25.0)
    spike = spike_reset_event(neuron)

    traj = integrate(neuron, [-70.0], (0.0, 200.0), events=[spike])
    spikes = traj.event_times("spike")

    logger.info("%d spikes, first at t = %.4f", spikes.size, spikes[0])
    logger.info("Measured inter-spike interval: %.6f", np.mean(np.diff(spikes)))
    logger.info("Analytic inter-spike interval: %.6f", integrate_and_fire_period(neuron))

    traj.save(os.path.join("results", "integrate_and_fire.h5"))


if __name__ == "__main__":
    main()
