import numpy as np
import pytest

from dynalysis.algorithms.continuation import (CycleTest, EquilibriumTest,
                                               SpecialPointKind,
                                               detect_cycle_bifurcations,
                                               detect_equilibrium_bifurcations,
                                               drop_trivial_multiplier)


def _equilibria(before, after):
    return detect_equilibrium_bifurcations(
        EquilibriumTest.from_eigenvalues(np.array(before, dtype=complex)),
        EquilibriumTest.from_eigenvalues(np.array(after, dtype=complex)),
    )


def _cycles(before, after):
    return detect_cycle_bifurcations(
        CycleTest.from_multipliers(np.array(before, dtype=complex)),
        CycleTest.from_multipliers(np.array(after, dtype=complex)),
    )


def test_equilibrium_test_values():
    test = EquilibriumTest.from_eigenvalues(np.array([0.2 + 1j, 0.2 - 1j, -3.0, 0.5]))
    assert test.n_unstable == 3
    assert test.n_unstable_complex == 2
    assert test.critical_re == pytest.approx(0.2)
    assert test.det == pytest.approx(1.04 * -3.0 * 0.5)
    assert not test.stable
    real = EquilibriumTest.from_eigenvalues(np.array([-1.0, -2.0]))
    assert real.stable
    assert np.isnan(real.critical_re)


def test_real_eigenvalue_through_zero_is_a_fold():
    found = _equilibria([-0.1, -1.0], [0.1, -1.0])
    assert len(found) == 1
    kind, frac = found[0]
    assert kind is SpecialPointKind.FOLD
    assert frac == pytest.approx(0.5)


@pytest.mark.parametrize("before,after", [
    ([-0.1 + 1j, -0.1 - 1j, -2.0], [0.1 + 1j, 0.1 - 1j, -2.0]),
    ([0.3 + 2j, 0.3 - 2j], [-0.1 + 2j, -0.1 - 2j]),
])
def test_complex_pair_through_imaginary_axis_is_hopf(before, after):
    found = _equilibria(before, after)
    assert [kind for kind, _ in found] == [SpecialPointKind.HOPF]
    re0, re1 = before[0].real, after[0].real
    assert found[0][1] == pytest.approx(re0 / (re0 - re1))


def test_two_real_eigenvalues_crossing_together_are_not_hopf():
    assert _equilibria([-0.1, -0.2], [0.1, 0.2]) == []


def test_real_pair_colliding_off_axis_is_not_hopf():
    assert _equilibria([0.5, 0.6, -1.0], [0.55 + 0.1j, 0.55 - 0.1j, -1.0]) == []


def test_no_crossing_no_bifurcation():
    assert _equilibria([-1.0 + 1j, -1.0 - 1j], [-0.5 + 1j, -0.5 - 1j]) == []


def test_drop_trivial_multiplier():
    mu = drop_trivial_multiplier(np.array([0.2, 1.0 + 1e-9, -0.5]))
    np.testing.assert_array_equal(mu, [0.2, -0.5])
    assert drop_trivial_multiplier(np.array([])).size == 0


def test_cycle_test_values():
    theta = 0.7
    test = CycleTest.from_multipliers(np.array([1.0, 1.2 * np.exp(1j * theta), 1.2 * np.exp(-1j * theta), -0.4]))
    assert (test.n_ns, test.n_pd, test.n_lpc) == (2, 0, 0)
    assert test.ns_value == pytest.approx(0.2)
    assert test.pd_value == pytest.approx(0.6)
    assert test.lpc_value == pytest.approx(-1.4)
    assert test.max_modulus == pytest.approx(1.2)
    assert not test.stable
    assert CycleTest.from_multipliers(np.array([1.0, 0.3])).stable


def test_complex_multipliers_leaving_unit_circle_are_neimark_sacker():
    theta = 0.9
    pair = np.array([np.exp(1j * theta), np.exp(-1j * theta)])
    found = _cycles(np.r_[1.0, 0.9 * pair], np.r_[1.0, 1.1 * pair])
    assert len(found) == 1
    kind, frac = found[0]
    assert kind is SpecialPointKind.NEIMARK_SACKER
    assert frac == pytest.approx(0.5)


def test_real_multiplier_through_minus_one_is_period_doubling():
    found = _cycles([1.0, -0.9], [1.0, -1.1])
    assert len(found) == 1
    kind, frac = found[0]
    assert kind is SpecialPointKind.PERIOD_DOUBLING
    assert frac == pytest.approx(0.5)


def test_real_multiplier_through_plus_one_is_cycle_fold():
    found = _cycles([1.0, 0.9, 0.2], [1.0, 1.1, 0.2])
    assert len(found) == 1
    kind, frac = found[0]
    assert kind is SpecialPointKind.CYCLE_FOLD
    assert frac == pytest.approx(0.5)


def test_stable_cycle_family_has_no_bifurcation():
    assert _cycles([1.0, 0.5, -0.2], [1.0, 0.6, -0.3]) == []
