"""Example script: Lyapunov spectrum and Kaplan-Yorke dimension of the Lorenz attractor.

Run with
    python examples/lorenz_spectrum.py
"""

import os
import sys

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dynalysis import kaplan_yorke_dimension, lorenz, lyapunov_spectrum
from dynalysis.utils.log_config import logger


def main() -> None:
    system = lorenz()
    spectrum = lyapunov_spectrum(system, [1.0, 1.0, 1.0], Ttr=100.0, N=5000, dt=0.1)

    logger.info("Lyapunov exponents: %s", spectrum.exponents)
    logger.info("Sum of exponents: %.4f (trace of the Jacobian: %.4f)",
                spectrum.exponents.sum(), -(10.0 + 1.0 + 8.0 / 3.0))
    logger.info("Kaplan-Yorke dimension: %.4f", kaplan_yorke_dimension(spectrum.exponents))

    # convergence of the running estimates
    df = spectrum.to_df()
    logger.info("Running estimates (every 1000 renormalisations):\n%s", df.iloc[::1000])


if __name__ == "__main__":
    main()
