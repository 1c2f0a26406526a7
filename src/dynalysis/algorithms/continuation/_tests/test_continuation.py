import numpy as np
import pytest

from dynalysis.algorithms.continuation import (Branch, CollocationConfig,
                                               ContinuationConfig,
                                               EquilibriumProblem,
                                               ParameterContinuation,
                                               PeriodicOrbitProblem,
                                               SpecialPointKind,
                                               TerminationReason)
from dynalysis.algorithms.dynamics import (create_system, hopf_normal_form,
                                           lorenz)
from dynalysis.algorithms.types.exceptions import (BackendError,
                                                   ConvergenceError,
                                                   CorrectorFailure,
                                                   IntegrationError)

LORENZ_C_PLUS = np.array([np.sqrt(72.0), np.sqrt(72.0), 27.0])


def _facade(**kwargs):
    return ParameterContinuation.with_default_engine(config=ContinuationConfig(**kwargs))


@pytest.fixture(scope="module")
def lorenz_branch():
    cont = _facade(p_min=2.0, p_max=4.0, ds=0.01, ds_max=0.1, max_steps=500)
    return cont.equilibria(lorenz(), LORENZ_C_PLUS, "beta")


def test_lorenz_hopf_in_beta(lorenz_branch):
    hopf = lorenz_branch.special(SpecialPointKind.HOPF)
    assert len(hopf) == 1
    assert hopf[0].parameter < 4.0
    assert hopf[0].parameter == pytest.approx(122.0 / 38.0, abs=1e-2)
    assert lorenz_branch.special(SpecialPointKind.FOLD) == []


def test_lorenz_branch_follows_analytic_equilibrium(lorenz_branch):
    beta = lorenz_branch.parameters
    expected = np.sqrt(beta * 27.0)
    np.testing.assert_allclose(lorenz_branch.states[:, 0], expected, rtol=1e-8)
    np.testing.assert_allclose(lorenz_branch.states[:, 2], 27.0, rtol=1e-8)
    assert np.all(np.diff(beta) > 0.0)
    assert beta[-1] <= 4.0
    assert lorenz_branch.termination is TerminationReason.PARAMETER_RANGE
    assert lorenz_branch.succeeded


def test_lorenz_stability_changes_at_hopf(lorenz_branch):
    idx = lorenz_branch.special(SpecialPointKind.HOPF)[0].index
    stable = lorenz_branch.stability
    assert not stable[:idx].any()
    assert stable[idx:].all()


def test_tangents_are_unit_and_consistent(lorenz_branch):
    tangents = np.array([pt.tangent for pt in lorenz_branch])
    np.testing.assert_allclose(np.linalg.norm(tangents, axis=1), 1.0)
    assert np.all(np.sum(tangents[1:] * tangents[:-1], axis=1) > 0.0)


def test_branch_dataframes(lorenz_branch):
    df = lorenz_branch.to_df()
    assert list(df.columns) == ["beta", "stable", "newton_iterations", "x0", "x1", "x2"]
    assert len(df) == len(lorenz_branch)
    sp = lorenz_branch.special_points_df()
    assert sp["kind"].tolist() == ["hopf"]


@pytest.fixture(scope="module")
def hopf_eq_branch():
    cont = _facade(p_min=-1.0, p_max=0.5, ds=0.05, ds_max=0.1, max_steps=100)
    return cont.equilibria(hopf_normal_form(mu=-0.5, omega=2.0), [0.0, 0.0], "mu")


def test_hopf_normal_form_equilibrium_branch(hopf_eq_branch):
    hopf = hopf_eq_branch.special(SpecialPointKind.HOPF)
    assert len(hopf) == 1
    assert hopf[0].parameter == pytest.approx(0.0, abs=1e-8)
    np.testing.assert_allclose(hopf_eq_branch.states, 0.0, atol=1e-12)
    assert hopf_eq_branch.parameters[-1] <= 0.5


def test_periodic_orbits_from_hopf(hopf_eq_branch):
    omega = 2.0
    system = hopf_normal_form(mu=-0.5, omega=omega)
    cont = _facade(p_min=-1.0, p_max=0.5, ds=0.05, ds_max=0.5, max_steps=80)
    hopf = hopf_eq_branch.special(SpecialPointKind.HOPF)[0]
    branch = cont.periodic_orbits_from_hopf(
        system, "mu", hopf, collocation=CollocationConfig(n_mesh=20, degree=4, amplitude=1e-2),
    )

    assert branch.kind == "periodic_orbit"
    assert branch.termination is TerminationReason.PARAMETER_RANGE
    assert len(branch) > 3
    mu = branch.parameters
    assert np.all(mu > 0.0)
    assert mu[-1] > 0.3

    np.testing.assert_allclose(branch.periods, 2.0 * np.pi / omega, rtol=1e-6)
    df = branch.to_df()
    np.testing.assert_allclose(df["amplitude"].to_numpy(), np.sqrt(mu), rtol=1e-4)

    for pt in branch:
        assert pt.stable
        mult = np.sort(np.abs(pt.eigenvalues))
        T = pt.record["period"]
        assert mult[-1] == pytest.approx(1.0, abs=1e-6)
        assert mult[0] == pytest.approx(np.exp(-2.0 * pt.parameter * T), rel=1e-4)
        traj = pt.record["trajectory"]
        assert traj.times[-1] == pytest.approx(T)
        np.testing.assert_allclose(traj.states[0], traj.states[-1], atol=1e-8)
    assert branch.special_points == []


def test_custom_record_hook():
    calls = []

    def record(x, p):
        calls.append(p)
        return {"norm": float(np.linalg.norm(x))}

    cont = _facade(p_min=-1.0, p_max=1.0, ds=0.1, ds_max=0.2, max_steps=5)
    branch = cont.equilibria(hopf_normal_form(mu=-0.5), [0.0, 0.0], "mu", record=record)
    assert len(calls) == len(branch)
    assert branch[0].record == {"norm": 0.0}


def test_parameter_range_stop_discards_outside_point():
    def rhs(x, p, t):
        return np.array([x[0] - p[0]])

    system = create_system(rhs, dim=1, params=[0.0], param_names=["p"], name="identity")
    cont = _facade(p_min=-1.0, p_max=1.0, ds=0.3, ds_max=0.3, max_steps=100)
    branch = cont.equilibria(system, [0.0], "p")
    assert branch.termination is TerminationReason.PARAMETER_RANGE
    assert branch.parameters.max() <= 1.0
    assert branch.parameters[-1] > 1.0 - 0.3
    np.testing.assert_allclose(branch.states[:, 0], branch.parameters, atol=1e-12)


def test_direction_and_max_steps():
    def rhs(x, p, t):
        return np.array([x[0] - p[0]])

    system = create_system(rhs, dim=1, params=[0.0], name="identity")
    cont = _facade(ds=0.1, ds_max=0.1, max_steps=5, direction=-1)
    branch = cont.equilibria(system, [0.0], 0)
    assert len(branch) == 6
    assert branch.termination is TerminationReason.MAX_STEPS
    assert np.all(np.diff(branch.parameters) < 0.0)


def test_fold_is_detected():
    # x^2 + p = 0 has a fold at p = 0
    def rhs(x, p, t):
        return np.array([x[0] ** 2 + p[0]])

    system = create_system(rhs, dim=1, params=[-1.0], param_names=["p"], name="fold")
    cont = _facade(p_min=-2.0, p_max=1.0, ds=0.05, ds_max=0.1, max_steps=200)
    branch = cont.equilibria(system, [1.0], "p")
    folds = branch.special(SpecialPointKind.FOLD)
    assert len(folds) == 1
    assert folds[0].parameter == pytest.approx(0.0, abs=1e-2)
    # the branch turns around and comes back on the other side
    assert branch.states[-1, 0] < 0.0
    assert branch.termination is TerminationReason.PARAMETER_RANGE


def test_corrector_failure_ends_branch():
    cont = _facade(p_min=2.0, p_max=4.0, ds=0.01, ds_min=1e-3, ds_max=0.1, max_newton_iters=1)
    branch = cont.equilibria(lorenz(), LORENZ_C_PLUS, "beta")
    assert branch.termination is TerminationReason.CORRECTOR_FAILURE
    assert isinstance(branch.failure, CorrectorFailure)
    assert branch.failure.parameter == pytest.approx(8.0 / 3.0)
    assert branch.failure.ds == pytest.approx(1e-3)
    assert not branch.succeeded
    assert len(branch) == 1
    assert branch.n_rejected >= 4


class _FlakyStability(EquilibriumProblem):
    """Equilibrium problem whose stability evaluation breaks after two points."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = 0

    def stability(self, x, p):
        self.calls += 1
        if self.calls > 2:
            raise IntegrationError(f"monodromy integration failed at p={p}")
        return super().stability(x, p)


def test_stability_failure_keeps_partial_branch(tmp_path):
    problem = _FlakyStability(hopf_normal_form(mu=-1.0), "mu")
    cont = _facade(p_min=-2.0, p_max=1.0, ds=0.1, ds_max=0.1, max_steps=6)
    branch = cont.run(problem, [0.0, 0.0], -1.0)
    assert len(branch) == 2
    assert branch.termination is TerminationReason.STABILITY_FAILURE
    assert branch.failure is None
    assert not branch.succeeded
    assert all(pt.stable for pt in branch)
    np.testing.assert_allclose(branch.parameters, [-1.0, -0.9], atol=1e-10)

    path = tmp_path / "partial.h5"
    branch.save(path)
    assert Branch.load(path).termination is TerminationReason.STABILITY_FAILURE


def test_seed_that_cannot_be_corrected_raises():
    cont = _facade(p_min=2.0, p_max=4.0, max_newton_iters=2)
    with pytest.raises(ConvergenceError):
        cont.equilibria(lorenz(), [1.0, 1.0, 1.0], "beta")


def test_start_outside_range():
    cont = _facade(p_min=3.0, p_max=4.0)
    with pytest.raises(ValueError):
        cont.equilibria(lorenz(), LORENZ_C_PLUS, "beta")


def test_collocation_residual_vanishes_on_exact_cycle():
    mu, omega = 0.25, 1.5
    system = hopf_normal_form(mu=mu, omega=omega)
    T = 2.0 * np.pi / omega

    def exact(n_mesh):
        problem = PeriodicOrbitProblem(system, "mu", collocation=CollocationConfig(n_mesh=n_mesh, degree=5))
        tau = problem.tau
        nodes = np.sqrt(mu) * np.column_stack((np.cos(2 * np.pi * tau), np.sin(2 * np.pi * tau)))
        problem.set_reference(nodes)
        return problem, problem.pack(nodes, T)

    coarse, x_coarse = exact(10)
    fine, x_fine = exact(20)
    r_coarse = np.max(np.abs(coarse.residual(x_coarse, mu)))
    r_fine = np.max(np.abs(fine.residual(x_fine, mu)))
    assert r_coarse < 1e-3
    assert r_fine < r_coarse / 16.0

    problem, x = coarse, x_coarse
    assert problem.dim == (10 * 5 + 1) * 2 + 1

    # analytic Jacobian against central differences
    J = problem.jacobian(x, mu)
    h = 1e-6
    J_fd = np.empty_like(J)
    for j in range(x.size):
        e = np.zeros_like(x)
        e[j] = h
        J_fd[:, j] = (problem.residual(x + e, mu) - problem.residual(x - e, mu)) / (2 * h)
    np.testing.assert_allclose(J, J_fd, atol=1e-6)

    Fp = problem.parameter_jacobian(x, mu)
    Fp_fd = (problem.residual(x, mu + h) - problem.residual(x, mu - h)) / (2 * h)
    np.testing.assert_allclose(Fp, Fp_fd, atol=1e-6)


def test_equilibrium_problem_tangent():
    problem = EquilibriumProblem(lorenz(), "beta")
    v = problem.initial_tangent(LORENZ_C_PLUS, 8.0 / 3.0, direction=1)
    assert v[-1] > 0.0
    assert np.linalg.norm(problem.extended_jacobian(LORENZ_C_PLUS, 8.0 / 3.0) @ v) < 1e-10


def test_config_validation():
    with pytest.raises(ValueError):
        ContinuationConfig(p_min=1.0, p_max=0.0)
    with pytest.raises(ValueError):
        ContinuationConfig(ds=1.0, ds_max=0.1)
    with pytest.raises(ValueError):
        ContinuationConfig(direction=0)
    with pytest.raises(ValueError):
        ContinuationConfig(ds_growth=0.5)
    with pytest.raises(ValueError):
        CollocationConfig(n_mesh=1)
    with pytest.raises(ValueError):
        CollocationConfig(amplitude=0.0)


def test_hopf_seed_requires_complex_pair():
    # the origin of the Lorenz system at rho=28 is a saddle with real eigenvalues
    problem = PeriodicOrbitProblem(lorenz(), "beta")
    with pytest.raises(BackendError):
        problem.hopf_seed(np.zeros(3), 8.0 / 3.0)
