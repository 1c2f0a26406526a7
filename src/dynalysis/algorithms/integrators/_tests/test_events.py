import numpy as np
import pytest

from dynalysis.algorithms.dynamics import (create_system, integrate_and_fire,
                                           integrate_and_fire_period,
                                           spike_reset_event)
from dynalysis.algorithms.integrators import (AdaptiveRK, Direction, Event,
                                              SolverConfig, integrate)
from dynalysis.algorithms.types.exceptions import EventLocalizationError


def _unit_slope(sign=1.0):
    def rhs(x, p, t):
        return np.array([sign])
    return create_system(rhs, dim=1, name="unit_slope")


def test_event_rising_crossing_terminal():
    # dy/dt = 1, y(t) = t; event at y = 1 -> t_hit = 1
    ev = Event(lambda y, t: y[0] - 1.0, direction=Direction.RISING, terminal=True)
    traj = integrate(_unit_slope(), np.array([0.0]), (0.0, 2.0), events=[ev])

    assert len(traj.events) == 1
    assert abs(traj.t_final - 1.0) < 1e-10
    assert abs(traj.final_state[0] - 1.0) < 1e-10
    assert abs(traj.events[0].time - 1.0) < 1e-10


def test_event_falling_crossing():
    ev = Event(lambda y, t: y[0] - 1.0, direction="falling", terminal=True)
    traj = integrate(_unit_slope(-1.0), np.array([1.5]), (0.0, 2.0), events=[ev])

    assert abs(traj.t_final - 0.5) < 1e-10
    assert abs(traj.final_state[0] - 1.0) < 1e-10


def test_event_strict_direction_no_hit():
    ev = Event(lambda y, t: y[0] - 1.0, direction=Direction.FALLING, terminal=True)
    traj = integrate(_unit_slope(), np.array([0.0]), (0.0, 1.5), events=[ev])

    assert traj.events == []
    assert traj.t_final == 1.5
    assert abs(traj.final_state[0] - 1.5) < 1e-8


def test_start_on_surface_moving_away_no_hit():
    ev = Event(lambda y, t: y[0] - 1.0, direction=Direction.RISING, terminal=True)
    traj = integrate(_unit_slope(), np.array([1.0]), (0.0, 0.5), events=[ev])

    assert traj.events == []
    assert traj.t_final == 0.5


def test_either_direction_and_non_terminal_events_keep_going():
    ev = Event(lambda y, t: y[0] - 1.0, direction=Direction.EITHER)
    traj = integrate(_unit_slope(), np.array([0.25]), (0.0, 5.0), events=[ev])

    assert len(traj.events) == 1
    assert abs(traj.events[0].time - 0.75) < 1e-10
    assert traj.t_final == 5.0
    assert abs(traj.final_state[0] - 5.25) < 1e-8


def test_events_in_one_step_are_applied_in_time_order():
    # a single large step covers both crossings
    ev_late = Event(lambda y, t: y[0] - 0.5, direction=Direction.RISING, name="late")
    ev_early = Event(lambda y, t: y[0] - 0.3, direction=Direction.RISING, name="early")
    cfg = SolverConfig(initial_step=1.0)
    traj = integrate(_unit_slope(), np.array([0.0]), (0.0, 1.0), config=cfg, events=[ev_late, ev_early])

    assert [r.name for r in traj.events] == ["early", "late"]
    assert abs(traj.events[0].time - 0.3) < 1e-10
    assert abs(traj.events[1].time - 0.5) < 1e-10
    assert traj.events[0].event_index == 1


def test_effect_restarts_from_post_event_state():
    # jump back by 0.5 each time y reaches 1; y' = 1 on [0, 1.8]
    def reset(y, t):
        return y - 0.5

    ev = Event(lambda y, t: y[0] - 1.0, reset, direction=Direction.RISING, name="kick")
    traj = integrate(_unit_slope(), np.array([0.0]), (0.0, 1.8), events=[ev])

    times = traj.event_times("kick")
    np.testing.assert_allclose(times, [1.0, 1.5], atol=1e-9)
    for rec in traj.events:
        assert abs(rec.state_before[0] - 1.0) < 1e-9
        assert abs(rec.state_after[0] - 0.5) < 1e-9
    assert abs(traj.final_state[0] - 0.8) < 1e-8


def test_effect_none_only_records():
    ev = Event(lambda y, t: y[0] - 1.0, None, direction=Direction.RISING)
    traj = integrate(_unit_slope(), np.array([0.0]), (0.0, 3.0), events=[ev])

    assert len(traj.events) == 1
    np.testing.assert_array_equal(traj.events[0].state_before, traj.events[0].state_after)
    assert abs(traj.final_state[0] - 3.0) < 1e-8


def test_integrate_and_fire_spikes_are_periodic_and_reset_exactly():
    lif = integrate_and_fire(v_rest=-70.0, v_threshold=-50.0, tau=10.0, resistance=1.0, current=25.0)
    period = integrate_and_fire_period(lif)
    assert abs(period - 10.0 * np.log(5.0)) < 1e-12

    cfg = SolverConfig(abs_tol=1e-10, rel_tol=1e-10)
    traj = integrate(lif, np.array([-70.0]), (0.0, 100.0), config=cfg, events=[spike_reset_event(lif)])

    spikes = traj.event_times("spike")
    assert spikes.size == int(100.0 // period)
    np.testing.assert_allclose(np.diff(spikes), period, atol=1e-6)
    assert abs(spikes[0] - period) < 1e-6
    for rec in traj.events:
        assert rec.state_after[0] == -70.0
        assert abs(rec.state_before[0] + 50.0) < 1e-6
    # the sample recorded right after every spike is the reset state
    idx = [i for i in range(1, len(traj)) if traj.times[i] == traj.times[i - 1]]
    assert len(idx) == spikes.size
    assert np.all(traj.states[idx, 0] == -70.0)
    assert np.all(traj.states[:, 0] <= -50.0 + 1e-6)


def test_event_table_lists_every_spike():
    lif = integrate_and_fire()
    traj = integrate(lif, np.array([-70.0]), (0.0, 60.0), events=[spike_reset_event(lif)])
    df = traj.events_df()
    assert list(df.columns) == ["time", "event_index", "name", "x0_before", "x0_after"]
    assert len(df) == len(traj.events) == 3
    np.testing.assert_allclose(df["time"].to_numpy(), traj.event_times("spike"))
    assert set(df["name"]) == {"spike"}
    assert (df["event_index"] == 0).all()
    assert (df["x0_after"] == -70.0).all()
    np.testing.assert_allclose(df["x0_before"].to_numpy(), -50.0, atol=1e-6)


def test_subthreshold_current_never_spikes():
    lif = integrate_and_fire(current=15.0)
    assert integrate_and_fire_period(lif) == np.inf
    traj = integrate(lif, np.array([-70.0]), (0.0, 200.0), events=[spike_reset_event(lif)])
    assert traj.events == []
    assert abs(traj.final_state[0] + 55.0) < 1e-4


def test_event_localization_failure_carries_partial_trajectory():
    ev = Event(lambda y, t: y[0] ** 3 - 0.2, direction=Direction.RISING, max_iter=1)
    integrator = AdaptiveRK(order=5)
    with pytest.raises(EventLocalizationError) as info:
        integrator.integrate(_unit_slope(), np.array([0.0]), (0.0, 2.0), events=[ev])

    partial = info.value.trajectory
    assert partial is not None
    assert partial.frozen
    assert partial.t_final < 0.2 ** (1.0 / 3.0)


def test_event_validation():
    with pytest.raises(TypeError):
        Event("not callable")
    with pytest.raises(ValueError):
        Event(lambda y, t: y[0], direction="sideways")
    with pytest.raises(ValueError):
        Event(lambda y, t: y[0], tol=0.0)
