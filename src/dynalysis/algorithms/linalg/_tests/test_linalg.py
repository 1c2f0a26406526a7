import numpy as np
import pytest
import scipy.sparse as sp

from dynalysis.algorithms.linalg import (StabilityProperties, _LinalgBackend,
                                         _SystemType)
from dynalysis.algorithms.types.exceptions import EngineError


def test_eigenvalue_decomposition_discrete():
    A = np.array([[ 5,  3,  5],
                  [-3,  5,  5],
                  [ 2, -3,  2]], dtype=float)
    backend = _LinalgBackend(_SystemType.DISCRETE)
    res = backend.eigenvalue_decomposition(A)

    assert len(res.stable) + len(res.unstable) + len(res.center) == 3
    for i, lam in enumerate(res.eigvals):
        resid = A @ res.eigvecs[:, i] - lam * res.eigvecs[:, i]
        assert np.linalg.norm(resid) < 1e-10
    assert np.all(np.abs(res.unstable) > 1.0)


def test_eigenvalue_decomposition_continuous():
    A = np.diag([-2.0, 0.0, 3.0])
    res = _LinalgBackend(_SystemType.CONTINUOUS).eigenvalue_decomposition(A)
    np.testing.assert_allclose(res.stable, [-2.0])
    np.testing.assert_allclose(res.center, [0.0])
    np.testing.assert_allclose(res.unstable, [3.0])


def test_solve_dense_sparse_and_singular():
    backend = _LinalgBackend()
    A = np.array([[4.0, 1.0], [1.0, 3.0]])
    b = np.array([1.0, 2.0])
    np.testing.assert_allclose(A @ backend.solve(A, b), b)
    np.testing.assert_allclose(A @ backend.solve(sp.csr_matrix(A), b), b)

    singular = np.array([[1.0, 1.0], [1.0, 1.0]])
    x = backend.solve(singular, np.array([2.0, 2.0]))
    np.testing.assert_allclose(singular @ x, [2.0, 2.0])


def test_qr_is_orthonormal():
    rng = np.random.default_rng(0)
    W = rng.standard_normal((5, 3))
    Q, R = _LinalgBackend().qr(W)
    assert Q.shape == (5, 3)
    assert R.shape == (3, 3)
    assert np.linalg.norm(Q.T @ Q - np.eye(3)) < 1e-12
    np.testing.assert_allclose(Q @ R, W, atol=1e-12)


def test_null_vector_of_wide_matrix():
    A = np.array([[1.0, 0.0, -1.0], [0.0, 1.0, -2.0]])
    v = _LinalgBackend().null_vector(A)
    assert abs(np.linalg.norm(v) - 1.0) < 1e-12
    assert np.linalg.norm(A @ v) < 1e-12


def test_stability_properties_facade():
    stab = StabilityProperties.with_default_engine(_SystemType.CONTINUOUS)
    with pytest.raises(EngineError):
        stab.require_result()

    stab.compute(np.array([[-1.0, 2.0], [-2.0, -1.0]]))
    assert stab.is_stable
    stable, unstable, center = stab.eigenvalues
    assert len(stable) == 2 and len(unstable) == 0 and len(center) == 0

    stab.compute(np.diag([0.5, 2.0]), system_type=_SystemType.DISCRETE)
    assert not stab.is_stable


def test_results_helpers():
    res = _LinalgBackend().eigenvalue_decomposition(np.diag([-1.0, 2.0, 3.0]))
    assert res.n_unstable == 2
    assert res.is_hyperbolic

    res = _LinalgBackend().eigenvalue_decomposition(np.array([[0.0, -1.0], [1.0, 0.0]]))
    assert res.n_unstable == 0
    assert not res.is_hyperbolic
