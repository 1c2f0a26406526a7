import numpy as np
import pytest

from dynalysis.algorithms.dynamics import create_system
from dynalysis.algorithms.integrators import (AdaptiveRK, SolverConfig,
                                              Trajectory, integrate)
from dynalysis.algorithms.types.exceptions import IntegrationError


@pytest.fixture
def decay():
    def rhs(x, p, t):
        return -p[0] * x
    return create_system(rhs, dim=1, params=[1.0], param_names=["k"], name="decay")


@pytest.fixture
def oscillator():
    def rhs(x, p, t):
        return np.array([x[1], -x[0]])
    return create_system(rhs, dim=2, name="harmonic")


@pytest.mark.parametrize("order", [5, 3])
def test_zero_rate_system_keeps_initial_state(order):
    def rhs(x, p, t):
        return np.zeros_like(x)

    sys = create_system(rhs, dim=3, name="frozen")
    y0 = np.array([1.5, -2.0, 0.25])
    traj = integrate(sys, y0, (0.0, 37.0), order=order)
    assert np.all(traj.states == y0)

    t_eval = np.linspace(-5.0, 12.0, 9)
    traj = integrate(sys, y0, (-5.0, 12.0), t_eval=t_eval, order=order)
    np.testing.assert_array_equal(traj.times, t_eval)
    assert np.all(traj.states == y0)


@pytest.mark.parametrize("order,tol", [(5, 1e-10), (3, 1e-8)])
def test_exponential_decay_accuracy(decay, order, tol):
    cfg = SolverConfig(abs_tol=tol, rel_tol=tol)
    traj = integrate(decay, np.array([1.0]), (0.0, 5.0), config=cfg, order=order)
    exact = np.exp(-traj.times)
    assert traj.times[0] == 0.0
    assert traj.times[-1] == 5.0
    assert np.max(np.abs(traj.states[:, 0] - exact)) < 100 * tol


def test_backward_integration(decay):
    cfg = SolverConfig(abs_tol=1e-10, rel_tol=1e-10)
    traj = integrate(decay, np.array([np.exp(-2.0)]), (2.0, 0.0), config=cfg)
    assert np.all(np.diff(traj.times) < 0)
    assert abs(traj.final_state[0] - 1.0) < 1e-8
    mid = traj.interpolate(1.0)
    assert abs(mid[0] - np.exp(-1.0)) < 1e-6


def test_t_eval_uses_dense_output(oscillator):
    cfg = SolverConfig(abs_tol=1e-10, rel_tol=1e-10)
    t_eval = np.linspace(0.0, 2.0 * np.pi, 50)
    traj = integrate(oscillator, np.array([1.0, 0.0]), (0.0, 2.0 * np.pi), config=cfg, t_eval=t_eval)
    np.testing.assert_array_equal(traj.times, t_eval)
    np.testing.assert_allclose(traj.states[:, 0], np.cos(t_eval), atol=1e-8)
    np.testing.assert_allclose(traj.states[:, 1], -np.sin(t_eval), atol=1e-8)


def test_hermite_interpolation_between_steps(oscillator):
    cfg = SolverConfig(abs_tol=1e-10, rel_tol=1e-10)
    traj = integrate(oscillator, np.array([1.0, 0.0]), (0.0, 10.0), config=cfg)
    tq = np.linspace(0.0, 10.0, 101)
    yq = traj.interpolate(tq)
    assert yq.shape == (101, 2)
    np.testing.assert_allclose(yq[:, 0], np.cos(tq), atol=1e-5)
    with pytest.raises(ValueError):
        traj.interpolate(11.0)


def test_step_max_bounds_accepted_steps(decay):
    cfg = SolverConfig(step_max=0.05)
    traj = integrate(decay, np.array([1.0]), (0.0, 1.0), config=cfg)
    assert np.all(np.diff(traj.times) <= 0.05 + 1e-15)
    assert traj.stats.n_accepted == len(traj) - 1


def test_budget_exhaustion_raises_with_partial_trajectory(oscillator):
    cfg = SolverConfig(max_iters=10, step_max=0.01)
    with pytest.raises(IntegrationError) as info:
        integrate(oscillator, np.array([1.0, 0.0]), (0.0, 10.0), config=cfg)
    partial = info.value.trajectory
    assert isinstance(partial, Trajectory)
    assert partial.frozen
    assert 0.0 < partial.t_final < 10.0
    assert partial.stats.n_attempts == 10


def test_step_underflow_raises():
    # y' = y^2 blows up at t = 1
    def rhs(x, p, t):
        return x * x

    sys = create_system(rhs, dim=1, name="blowup")
    cfg = SolverConfig(step_min=1e-6)
    with pytest.raises(IntegrationError) as info:
        integrate(sys, np.array([1.0]), (0.0, 2.0), config=cfg)
    assert info.value.trajectory.t_final < 1.0


def test_error_dim_restricts_error_control():
    class _Partial:
        dim = 2
        error_dim = 1

        @property
        def rhs(self):
            return lambda t, y: np.array([0.0, 1e6 * np.cos(1e3 * t)])

    loose = AdaptiveRK(order=5, config=SolverConfig(abs_tol=1e-6, rel_tol=1e-6))
    traj = loose.integrate(_Partial(), np.zeros(2), (0.0, 1.0))
    # only the constant first component is controlled, so steps grow freely
    assert traj.stats.n_rejected == 0
    assert len(traj) < 10


def test_zero_span_returns_single_sample(decay):
    traj = integrate(decay, np.array([3.0]), (1.0, 1.0))
    assert len(traj) == 1
    assert traj.final_state[0] == 3.0


def test_trajectory_is_read_only_after_integration(decay):
    traj = integrate(decay, np.array([1.0]), (0.0, 1.0))
    with pytest.raises(RuntimeError):
        traj.append(2.0, np.array([0.0]))
    with pytest.raises(ValueError):
        traj.states[0, 0] = 5.0
    df = traj.to_df()
    assert list(df.columns) == ["t", "x0"]
    assert len(df) == len(traj)


def test_invalid_configuration():
    with pytest.raises(ValueError):
        SolverConfig(abs_tol=0.0)
    with pytest.raises(ValueError):
        SolverConfig(step_min=1.0, step_max=0.1)
    with pytest.raises(ValueError):
        SolverConfig(max_iters=0)
    with pytest.raises(ValueError):
        AdaptiveRK(order=8)


def test_invalid_inputs(decay):
    with pytest.raises(ValueError):
        integrate(decay, np.array([1.0, 2.0]), (0.0, 1.0))
    with pytest.raises(ValueError):
        integrate(decay, np.array([1.0]), (0.0, 1.0), t_eval=np.array([0.5, 2.0]))
