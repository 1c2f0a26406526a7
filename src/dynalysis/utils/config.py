"""Global numerical defaults shared by the kernels and configuration classes."""

FASTMATH = False  # Global flag for Numba's fastmath option

# Integrator defaults
ABS_TOL = 1e-8
REL_TOL = 1e-8
MAX_ITERS = 500_000
STEP_MIN = 1e-12

# Finite-difference step for Jacobians when no analytic one is supplied
FD_STEP = 1e-7

# Continuation defaults
NEWTON_TOL = 1e-9
MAX_NEWTON_ITERS = 12
DS_GROWTH = 1.3

# Parameter sweeps
N_WORKERS = 4
