import numpy as np
import pytest

from dynalysis.algorithms.dynamics import hopf_normal_form, lorenz
from dynalysis.algorithms.lyapunov import (TangentState, VariationalPropagator,
                                           kaplan_yorke_dimension, lyapunov,
                                           lyapunov_spectrum)


@pytest.fixture(scope="module")
def lorenz_spectrum():
    return lyapunov_spectrum(lorenz(), [1.0, 1.0, 1.0], Ttr=100.0, N=300, dt=0.1)


def test_lorenz_spectrum_signature(lorenz_spectrum):
    lam = lorenz_spectrum.exponents
    assert lam.shape == (3,)
    assert np.all(np.diff(lam) <= 0.0)
    assert 0.5 < lam[0] < 1.4
    assert abs(lam[1]) < 0.2
    assert lam[2] < -13.0
    # volume contraction rate is the constant trace -(sigma + 1 + beta)
    assert lam.sum() == pytest.approx(-(10.0 + 1.0 + 8.0 / 3.0), abs=1e-3)


def test_lorenz_kaplan_yorke_dimension(lorenz_spectrum):
    d = lorenz_spectrum.kaplan_yorke
    assert d == pytest.approx(2.06, abs=0.05)
    assert d == pytest.approx(kaplan_yorke_dimension(lorenz_spectrum.exponents))


def test_history_and_dataframe(lorenz_spectrum):
    assert lorenz_spectrum.history.shape == (300, 3)
    df = lorenz_spectrum.to_df()
    assert list(df.columns) == ["lambda_1", "lambda_2", "lambda_3"]
    assert df.index[0] == pytest.approx(100.1)
    assert df.index[-1] == pytest.approx(130.0)
    np.testing.assert_allclose(np.sort(df.iloc[-1].to_numpy())[::-1], lorenz_spectrum.exponents)


def test_tangent_frame_stays_orthonormal():
    errors = []

    def cb(i, state):
        errors.append(state.orthonormality_error())

    propagator = VariationalPropagator(lorenz())
    propagator.spectrum([1.0, 1.0, 1.0], Ttr=10.0, N=50, dt=0.1, callback=cb)
    assert len(errors) == 50
    assert max(errors) < 1e-10


def test_stable_focus_has_exact_exponents():
    sys = hopf_normal_form(mu=-1.0, omega=2.0)
    spec = lyapunov_spectrum(sys, [0.0, 0.0], N=200, dt=0.1)
    np.testing.assert_allclose(spec.exponents, [-1.0, -1.0], atol=1e-4)


def test_limit_cycle_has_zero_exponent():
    mu = 0.5
    sys = hopf_normal_form(mu=mu, omega=1.0)
    # a purely radial first tangent vector never rotates onto the flow
    # direction, so start off the x axis and let the frame settle
    spec = lyapunov_spectrum(sys, [0.0, np.sqrt(mu)], Ttr=10.0, N=500, dt=0.1)
    assert abs(spec.exponents[0]) < 0.02
    assert spec.exponents[1] == pytest.approx(-2.0 * mu, abs=0.02)
    # trace of the Jacobian on the cycle is 2 mu - 4 mu
    assert spec.exponents.sum() == pytest.approx(-2.0 * mu, abs=1e-3)


def test_maximal_exponent_with_parameter_override():
    sys = hopf_normal_form(mu=-1.0)
    lam = lyapunov(sys, [0.0, 0.0], N=100, dt=0.1, params=[-2.0, 1.0])
    assert lam == pytest.approx(-2.0, abs=1e-4)
    # the system itself is untouched
    assert sys.params[0] == -1.0


def test_partial_spectrum():
    spec = lyapunov_spectrum(hopf_normal_form(mu=-0.5), [0.0, 0.0], N=50, dt=0.2, k=1)
    assert len(spec) == 1
    assert spec.maximal == pytest.approx(-0.5, abs=1e-4)


def test_tangent_state_pack_unpack_is_column_major():
    Q = np.array([[1.0, 0.0], [0.0, 0.6], [0.0, 0.8]])
    state = TangentState(2.5, np.array([1.0, 2.0, 3.0]), Q)
    z = state.pack()
    np.testing.assert_array_equal(z, [1.0, 2.0, 3.0, 1.0, 0.0, 0.0, 0.0, 0.6, 0.8])
    back = TangentState.unpack(2.5, z, 3, 2)
    assert back.t == 2.5
    assert back.k == 2
    np.testing.assert_array_equal(back.state, state.state)
    np.testing.assert_array_equal(back.Q, Q)
    assert back.orthonormality_error() == pytest.approx(0.0, abs=1e-15)


def test_final_tangent_state_matches_last_callback():
    seen = []
    spec = lyapunov_spectrum(lorenz(), [1.0, 1.0, 1.0], N=5, dt=0.1,
                             callback=lambda i, s: seen.append(s))
    assert spec.final.t == pytest.approx(0.5)
    np.testing.assert_array_equal(spec.final.Q, seen[-1].Q)
    np.testing.assert_array_equal(spec.final.state, seen[-1].state)


def test_transient_settles_onto_attractor():
    sys = hopf_normal_form(mu=-1.0, omega=1.0)
    propagator = VariationalPropagator(sys)
    end = propagator.transient([1.0, 0.0], Ttr=20.0)
    assert np.linalg.norm(end) < 1e-6

    u0 = np.array([0.3, 0.4])
    same = propagator.transient(u0, Ttr=0.0)
    np.testing.assert_array_equal(same, u0)
    assert same is not u0


def test_transient_reaches_limit_cycle_radius():
    mu = 0.5
    end = VariationalPropagator(hopf_normal_form(mu=mu)).transient([0.1, 0.0], Ttr=40.0)
    assert np.hypot(*end) == pytest.approx(np.sqrt(mu), abs=1e-6)


def test_invalid_arguments():
    propagator = VariationalPropagator(lorenz())
    with pytest.raises(ValueError):
        propagator.spectrum([1.0, 1.0, 1.0], k=4, N=10)
    with pytest.raises(ValueError):
        propagator.spectrum([1.0, 1.0, 1.0], k=0, N=10)
    with pytest.raises(ValueError):
        propagator.spectrum([1.0, 1.0, 1.0], N=0)
    with pytest.raises(ValueError):
        propagator.spectrum([1.0, 1.0, 1.0], dt=0.0)
    with pytest.raises(ValueError):
        propagator.spectrum([1.0, 1.0], N=10)


@pytest.mark.parametrize("spectrum,expected", [
    ([1.0, 1.0, 1.0], 3.0),
    ([-1.0, -2.0], 0.0),
    ([0.0, -1.0], 1.0),
    ([0.5, -1.0], 1.5),
    ([0.9, 0.0, -14.6], 2.0 + 0.9 / 14.6),
    ([], 0.0),
])
def test_kaplan_yorke_values(spectrum, expected):
    assert kaplan_yorke_dimension(spectrum) == pytest.approx(expected)


def test_kaplan_yorke_does_not_sort():
    # ascending input is taken as given
    assert kaplan_yorke_dimension([-2.0, 1.0]) == 0.0
