"""Kaplan-Yorke (Lyapunov) dimension of an exponent spectrum."""

from typing import Sequence, Union

import numpy as np

from dynalysis.utils.log_config import logger


def kaplan_yorke_dimension(spectrum: Union[Sequence[float], np.ndarray]) -> float:
    """Kaplan-Yorke dimension ``k + S_k / |lambda_{k+1}|``.

    ``k`` is the largest index whose partial sum ``S_k`` of the first ``k``
    exponents is non-negative (``k = 0`` when the first exponent is already
    negative). The spectrum is used in the order given; callers pass it
    sorted in descending order.

    Parameters
    ----------
    spectrum : array_like or :class:`~dynalysis.algorithms.lyapunov.propagator.LyapunovSpectrum`
        Lyapunov exponents.

    Returns
    -------
    float
        ``k`` exactly when ``k == 0`` or ``k == len(spectrum)``; ``nan`` when
        ``lambda_{k+1} == 0``; the interpolated dimension otherwise.

    Examples
    --------
    >>> kaplan_yorke_dimension([1.0, 1.0, 1.0])
    3.0
    >>> kaplan_yorke_dimension([-1.0, -2.0])
    0.0
    >>> round(kaplan_yorke_dimension([0.9, 0.0, -14.6]), 4)
    2.0616
    """
    lam = np.asarray(spectrum, dtype=np.float64).reshape(-1)
    if lam.size == 0:
        return 0.0
    partial = np.cumsum(lam)
    nonneg = np.flatnonzero(partial >= 0.0)
    k = int(nonneg[-1]) + 1 if nonneg.size else 0
    if k == 0 or k == lam.size:
        return float(k)
    denom = abs(lam[k])
    if denom == 0.0:
        logger.warning(f"Kaplan-Yorke dimension undefined: exponent {k + 1} is zero")
        return float("nan")
    return k + partial[k - 1] / denom
