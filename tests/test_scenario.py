import logging

import numpy as np

from lie_kalman.filters.ekf import ExtendedKalmanFilter
from lie_kalman.filters.ukfm import UnscentedKalmanFilterManifolds
from lie_kalman.lie.bundle import Bundle
from lie_kalman.lie.rn import Rn
from lie_kalman.lie.se2 import SE2
from lie_kalman.metrics import TrajectoryRecorder
from lie_kalman.sim.scenario import UNFILTERED, build_filters, run_scenario
from lie_kalman.sim.simulator import DiffDriveSimulator, ScenarioConfig
from lie_kalman.sim.world import World2D
from lie_kalman.types import UKFMConfig

FILTER_NAMES = {"EKF", "SEKF", "IEKF", "UKFM"}


def test_build_filters_shares_initial_estimate() -> None:
    initial = Bundle(SE2(0.1, 0.2, 0.3), Rn([1.0, 1.0, 1.0]))
    filters = build_filters(initial, np.eye(6) * 1e-3)
    assert set(filters) == FILTER_NAMES
    for kf in filters.values():
        assert kf.get_state() is initial
        assert np.allclose(kf.get_covariance(), np.eye(6) * 1e-3)


def test_unfiltered_estimate_starts_from_the_truth() -> None:
    result = run_scenario(ScenarioConfig(), seed=0, steps=1)
    assert result.recorder.position_errors(UNFILTERED)[0] < 1e-3
    assert result.recorder.position_errors("EKF")[0] > 0.0


def test_every_filter_beats_unfiltered_odometry_across_calibration_change() -> None:
    config = ScenarioConfig(duration_s=25.0, calibration_change_s=5.0)
    result = run_scenario(config, seed=0)

    expected_initial = DiffDriveSimulator(world=World2D.beacons(), config=config, seed=0).sample_initial_state()
    assert result.initial_state.is_approx(expected_initial, tol=1e-12)
    assert np.allclose(result.true_state.element(1).coeffs, config.changed_calibration)

    assert result.failures == {}
    assert set(result.final_states) == FILTER_NAMES
    assert set(result.recorder.names) == FILTER_NAMES | {UNFILTERED}

    recorder = result.recorder
    window = recorder.times(UNFILTERED) >= 10.0
    unfiltered_error = recorder.position_errors(UNFILTERED)[window].mean()
    assert unfiltered_error > 0.05
    for name in FILTER_NAMES:
        assert len(recorder.times(name)) == config.steps
        filtered_error = recorder.position_errors(name)[window].mean()
        assert filtered_error < 0.05
        assert filtered_error < unfiltered_error

    summaries = recorder.summary(start_time_s=10.0)
    assert summaries["EKF"].rmse_position < summaries[UNFILTERED].rmse_position


def test_failing_filter_is_dropped_and_others_continue(caplog) -> None:
    initial = Bundle(SE2.identity(), Rn([1.0, 1.0, 1.0]))
    cov = ScenarioConfig().initial_covariance
    filters = {
        "EKF": ExtendedKalmanFilter(initial, cov),
        "UKFM": UnscentedKalmanFilterManifolds(initial, cov, config=UKFMConfig(max_iterations=1, tolerance=0.0)),
    }

    with caplog.at_level(logging.WARNING, logger="lie_kalman.sim.scenario"):
        result = run_scenario(seed=3, initial_state=initial, steps=20, filters=filters)

    assert set(result.failures) == {"UKFM"}
    assert "did not converge" in result.failures["UKFM"]
    assert set(result.final_states) == {"EKF"}
    assert "UKFM" not in result.recorder.names
    assert len(result.recorder.times("EKF")) == 20
    assert any("UKFM" in record.getMessage() for record in caplog.records)


def test_scenario_is_reproducible() -> None:
    config = ScenarioConfig(duration_s=0.5)
    first = run_scenario(config, seed=9)
    second = run_scenario(config, seed=9)
    assert first.initial_state.is_approx(second.initial_state, tol=1e-12)
    for name in FILTER_NAMES:
        assert first.final_states[name].is_approx(second.final_states[name], tol=1e-12)


def test_recorder_errors_and_summary() -> None:
    recorder = TrajectoryRecorder()
    recorder.record("A", 0.0, SE2(0.0, 0.0, 3.1), SE2(3.0, 4.0, -3.1))
    recorder.record("A", 1.0, SE2(1.0, 0.0, 0.0), SE2(1.0, 1.0, 0.2), np.eye(3))

    assert np.allclose(recorder.position_errors("A"), [5.0, 1.0])
    assert np.allclose(recorder.heading_errors("A"), [2.0 * np.pi - 6.2, 0.2])
    assert np.allclose(recorder.pose_covariances("A")[0], 0.0)
    assert np.allclose(recorder.pose_covariances("A")[1], np.eye(3))

    summary = recorder.summary()["A"]
    assert np.isclose(summary.rmse_position, np.sqrt(13.0))
    assert np.isclose(summary.final_position, 1.0)
    assert np.isclose(summary.max_position, 5.0)
    assert summary.samples == 2

    late = recorder.summary(start_time_s=0.5)["A"]
    assert late.samples == 1
    assert np.isclose(late.rmse_heading, 0.2)
    assert recorder.summary(start_time_s=5.0) == {}
