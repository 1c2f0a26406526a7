import numpy as np
import pytest

from dynalysis.algorithms.continuation import (Branch, ContinuationConfig,
                                               ParameterContinuation)
from dynalysis.algorithms.dynamics import (hopf_normal_form,
                                           integrate_and_fire,
                                           spike_reset_event)
from dynalysis.algorithms.integrators import Trajectory, integrate
from dynalysis.utils.io import (load_branch, load_trajectory, save_branch,
                                save_trajectory)


@pytest.fixture
def spiking_trajectory():
    system = integrate_and_fire()
    return integrate(system, np.array([-70.0]), (0.0, 40.0), events=[spike_reset_event(system)])


@pytest.fixture
def hopf_branch():
    cont = ParameterContinuation.with_default_engine(
        config=ContinuationConfig(p_min=-1.0, p_max=0.5, ds=0.05, ds_max=0.1, max_steps=40),
    )
    return cont.equilibria(hopf_normal_form(mu=-0.5), [0.0, 0.0], "mu")


def test_trajectory_roundtrip(tmp_path, spiking_trajectory):
    path = tmp_path / "nested" / "lif.h5"
    save_trajectory(spiking_trajectory, path)
    loaded = load_trajectory(path)

    np.testing.assert_array_equal(loaded.times, spiking_trajectory.times)
    np.testing.assert_array_equal(loaded.states, spiking_trajectory.states)
    np.testing.assert_array_equal(loaded.derivatives, spiking_trajectory.derivatives)
    assert loaded.state_names == spiking_trajectory.state_names
    assert len(loaded.events) == len(spiking_trajectory.events) == 2
    for a, b in zip(loaded.events, spiking_trajectory.events):
        assert a.time == b.time
        assert a.name == b.name == "spike"
        np.testing.assert_array_equal(a.state_after, b.state_after)
    assert loaded.stats.n_accepted == spiking_trajectory.stats.n_accepted
    assert loaded.frozen


def test_trajectory_methods_delegate(tmp_path):
    traj = Trajectory.from_arrays(np.array([0.0, 1.0]), np.array([[1.0, 2.0], [3.0, 4.0]]))
    path = tmp_path / "plain.h5"
    traj.save(path)
    loaded = Trajectory.load(path)
    assert loaded.derivatives is None
    assert loaded.events == []
    np.testing.assert_array_equal(loaded.interpolate(0.5), [2.0, 3.0])


def test_branch_roundtrip(tmp_path, hopf_branch):
    path = tmp_path / "branch.h5"
    hopf_branch.save(path)
    loaded = Branch.load(path)

    assert loaded.kind == "equilibrium"
    assert loaded.parameter_name == "mu"
    assert loaded.termination == hopf_branch.termination
    np.testing.assert_array_equal(loaded.parameters, hopf_branch.parameters)
    np.testing.assert_array_equal(loaded.states, hopf_branch.states)
    np.testing.assert_array_equal(loaded.stability, hopf_branch.stability)
    assert [sp.kind for sp in loaded.special_points] == [sp.kind for sp in hopf_branch.special_points]
    assert loaded.special_points[0].parameter == hopf_branch.special_points[0].parameter
    np.testing.assert_array_equal(loaded[3].eigenvalues, hopf_branch[3].eigenvalues)


def test_wrong_class_is_rejected(tmp_path, spiking_trajectory):
    path = tmp_path / "traj.h5"
    save_trajectory(spiking_trajectory, path)
    with pytest.raises(ValueError):
        load_branch(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_trajectory(tmp_path / "missing.h5")
    with pytest.raises(FileNotFoundError):
        load_branch(tmp_path / "missing.h5")


def test_branch_without_points(tmp_path):
    branch = Branch(parameter_index=1, kind="equilibrium", state_dim=2)
    save_branch(branch, tmp_path / "empty.h5")
    loaded = load_branch(tmp_path / "empty.h5")
    assert len(loaded) == 0
    assert loaded.parameter_name is None
    assert loaded.termination is None
