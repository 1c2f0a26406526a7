import copy

import numpy as np
import pytest

from dynalysis.algorithms.dynamics import (DynamicalSystemProtocol,
                                           create_system, hopf_normal_form,
                                           integrate_and_fire,
                                           integrate_and_fire_period, lorenz,
                                           rossler)


@pytest.mark.parametrize("factory", [lorenz, rossler, hopf_normal_form])
def test_analytic_jacobian_matches_finite_differences(factory):
    system = factory()
    fd_system = create_system(system._derivative, system.dim, system.params)
    assert system.has_jacobian and not fd_system.has_jacobian

    rng = np.random.default_rng(1)
    for _ in range(3):
        x = rng.uniform(-2.0, 2.0, system.dim)
        np.testing.assert_allclose(system.jacobian(x), fd_system.jacobian(x), atol=1e-5)


def test_parameters_are_read_only_values():
    system = lorenz()
    with pytest.raises(ValueError):
        system.params[0] = 1.0

    other = system.with_params({"rho": 99.0})
    assert other.params[1] == 99.0
    assert system.params[1] == 28.0
    assert other.param_names == system.param_names

    by_index = system.with_param(2, 1.0)
    np.testing.assert_array_equal(by_index.params, [10.0, 28.0, 1.0])

    full = system.with_params([1.0, 2.0, 3.0])
    np.testing.assert_array_equal(full.params, [1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        system.with_params([1.0, 2.0])


def test_param_index_lookup():
    system = lorenz()
    assert system.param_index("beta") == 2
    assert system.param_index(-1) == 2
    with pytest.raises(KeyError):
        system.param_index("gamma")
    with pytest.raises(IndexError):
        system.param_index(3)

    unnamed = create_system(lambda x, p, t: -p[0] * x, 1, [0.5])
    with pytest.raises(KeyError):
        unnamed.param_index("k")


def test_deepcopy_copies_parameters():
    system = hopf_normal_form(mu=0.3, omega=2.0)
    clone = copy.deepcopy(system)
    assert clone is not system
    assert clone.params is not system.params
    np.testing.assert_array_equal(clone.params, system.params)
    x = np.array([0.1, -0.2])
    np.testing.assert_array_equal(clone.derivative(x), system.derivative(x))


def test_clone_is_independent_of_original():
    system = hopf_normal_form(mu=0.3, omega=2.0)
    twin = system.clone()
    assert type(twin) is type(system)
    assert twin.name == system.name
    assert twin.param_names == system.param_names
    assert twin.params is not system.params
    np.testing.assert_array_equal(twin.params, system.params)
    with pytest.raises(ValueError):
        twin.params[0] = -1.0
    twin.name = "renamed"
    assert system.name == "hopf"
    x = np.array([0.1, -0.2])
    np.testing.assert_array_equal(twin.jacobian(x), system.jacobian(x))


def test_parameter_derivative():
    system = hopf_normal_form(mu=0.1, omega=1.0)
    x = np.array([0.4, -0.3])
    # d/dmu (mu x - omega y - x r^2, omega x + mu y - y r^2) = (x, y)
    np.testing.assert_allclose(system.parameter_derivative(x, "mu"), x, atol=1e-8)
    np.testing.assert_allclose(system.parameter_derivative(x, "omega"), [0.3, 0.4], atol=1e-8)


def test_rhs_binds_parameters():
    system = create_system(lambda x, p, t: -p[0] * x, 1, [0.5], param_names=["k"])
    np.testing.assert_allclose(system.rhs(0.0, np.array([2.0])), [-1.0])
    np.testing.assert_allclose(system.derivative(np.array([2.0]), np.array([2.0])), [-4.0])


def test_linear_stability():
    stab = hopf_normal_form(mu=-0.5, omega=2.0).linear_stability(np.zeros(2))
    assert stab.is_stable
    stable, unstable, center = stab.eigenvalues
    np.testing.assert_allclose(np.sort_complex(stable), [-0.5 - 2.0j, -0.5 + 2.0j])

    stab = hopf_normal_form(mu=0.0, omega=2.0).linear_stability(np.zeros(2))
    assert len(stab.eigenvalues[2]) == 2

    # origin of the Lorenz system at rho=28: one unstable direction
    stable, unstable, center = lorenz().linear_stability(np.zeros(3)).eigenvalues
    assert len(unstable) == 1 and len(stable) == 2


def test_integrate_and_fire_period():
    assert integrate_and_fire_period(integrate_and_fire()) == pytest.approx(10.0 * np.log(5.0))
    assert integrate_and_fire_period(integrate_and_fire(current=10.0)) == float("inf")


def test_invalid_construction():
    with pytest.raises(TypeError):
        create_system("not callable", 2)
    with pytest.raises(ValueError):
        create_system(lambda x, p, t: x, 0)
    with pytest.raises(ValueError):
        create_system(lambda x, p, t: x, 1, [1.0, 2.0], param_names=["a"])


def test_protocol_conformance():
    assert isinstance(lorenz(), DynamicalSystemProtocol)
