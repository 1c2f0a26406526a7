"""Bogacki-Shampine 3(2) coefficients with the cubic Hermite dense output."""

import numpy as np

C = np.array([0.0, 1.0 / 2.0, 3.0 / 4.0], dtype=np.float64)

A = np.array([
    [0.0, 0.0],
    [1.0 / 2.0, 0.0],
    [0.0, 3.0 / 4.0],
], dtype=np.float64)

B_HIGH = np.array([2.0 / 9.0, 1.0 / 3.0, 4.0 / 9.0], dtype=np.float64)

E = np.array([5.0 / 72.0, -1.0 / 12.0, -1.0 / 9.0, 1.0 / 8.0], dtype=np.float64)

P = np.array([
    [1.0, -4.0 / 3.0, 5.0 / 9.0],
    [0.0, 1.0, -2.0 / 3.0],
    [0.0, 4.0 / 3.0, -8.0 / 9.0],
    [0.0, -1.0, 1.0],
], dtype=np.float64)

ORDER = 3
ERROR_ESTIMATOR_ORDER = 2
N_STAGES = 3
