"""Example script: maximal Lyapunov exponent of the Lorenz system over a (rho, sigma) grid.

Run with
    python examples/parameter_sweep.py
"""

import os
import sys

import numpy as np

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dynalysis import ParameterSweep, lorenz, lyapunov_task
from dynalysis.utils.log_config import logger


def main() -> None:
    grid = {
        "rho": np.linspace(20.0, 180.0, 17),
        "sigma": np.linspace(8.0, 12.0, 5),
    }
    task = lyapunov_task([1.0, 1.0, 1.0], Ttr=50.0, N=500, dt=0.1)

    sweep = ParameterSweep(lorenz(), grid, task, n_workers=4, executor="process", show_progress=True)
    result = sweep.run()

    lam_max = result.to_array(lambda point: point.maximal)
    logger.info("Maximal exponent grid (rows: rho, columns: sigma):\n%s", np.round(lam_max, 3))

    chaotic = np.count_nonzero(lam_max > 0.01)
    logger.info("%d of %d parameter points are chaotic", chaotic, lam_max.size)

    for failure in result.failures:
        logger.warning("Point %s failed: %s", failure.params, failure.message)


if __name__ == "__main__":
    main()
