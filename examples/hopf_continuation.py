"""Example script: equilibrium branch of the Lorenz system in beta and the
periodic orbits emanating from its Hopf bifurcation.

Run with
    python examples/hopf_continuation.py
"""

import os
import sys

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dynalysis import (CollocationConfig, ContinuationConfig,
                       ParameterContinuation, SpecialPointKind, lorenz)
from dynalysis.utils.io import _ensure_dir
from dynalysis.utils.log_config import logger

_ensure_dir("results")


def main() -> None:
    system = lorenz()
    x_eq = (8.0 / 3.0 * 27.0) ** 0.5
    continuation = ParameterContinuation.with_default_engine(
        config=ContinuationConfig(p_min=2.0, p_max=4.0, ds=0.01, ds_max=0.1, max_steps=500),
    )

    # Equilibrium C+ from beta = 8/3 upward
    branch = continuation.equilibria(system, [x_eq, x_eq, 27.0], "beta")
    logger.info("%s", branch)
    for sp in branch.special_points:
        logger.info("  %s", sp)
    branch.save(os.path.join("results", "lorenz_equilibria.h5"))

    hopf = branch.special(SpecialPointKind.HOPF)
    if not hopf:
        logger.warning("No Hopf bifurcation found on the equilibrium branch")
        return

    # The Hopf bifurcation of the Lorenz system is subcritical: the
    # unstable cycles exist on the stable side of C+.
    orbits = continuation.periodic_orbits_from_hopf(
        system, "beta", hopf[0],
        config=ContinuationConfig(p_min=2.0, p_max=4.0, ds=0.05, ds_max=0.5, max_steps=60),
        collocation=CollocationConfig(n_mesh=40, degree=4, amplitude=1e-2),
    )
    logger.info("%s", orbits)
    logger.info("Periodic orbit summary:\n%s", orbits.to_df()[["beta", "period", "amplitude", "stable"]])


if __name__ == "__main__":
    main()
