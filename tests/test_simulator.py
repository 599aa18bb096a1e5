import numpy as np
import pytest

from lie_kalman.lie.bundle import Bundle
from lie_kalman.sim.simulator import DiffDriveSimulator, ScenarioConfig
from lie_kalman.sim.world import World2D


def test_simulator_generates_steps() -> None:
    sim = DiffDriveSimulator(world=World2D.beacons(), config=ScenarioConfig(duration_s=0.1), seed=3)
    steps = sim.run()
    assert len(steps) == 10
    assert np.allclose([step.time_s for step in steps], np.arange(10) * 0.01)
    assert all(isinstance(step.true_state, Bundle) for step in steps)


def test_simulator_reset_reproducible() -> None:
    sim = DiffDriveSimulator(world=World2D.beacons(), seed=5)

    rollout_a = sim.run(20)
    sim.reset(seed=5)
    rollout_b = sim.run(20)

    for a, b in zip(rollout_a, rollout_b):
        assert np.array_equal(a.control, b.control)
        assert np.array_equal(a.true_state.as_array(), b.true_state.as_array())
        assert len(a.landmark_measurements) == len(b.landmark_measurements)
        for ya, yb in zip(a.landmark_measurements, b.landmark_measurements):
            assert np.array_equal(ya, yb)


def test_measurement_cadence() -> None:
    sim = DiffDriveSimulator(world=World2D.beacons(), seed=1)
    steps = sim.run(20)
    for index, step in enumerate(steps):
        expected_landmarks = 3 if index % 2 == 0 else 0
        assert len(step.landmark_measurements) == expected_landmarks
        assert (step.gps is not None) == (index % 10 == 0)


def test_ground_truth_follows_noiseless_controls() -> None:
    sim = DiffDriveSimulator(world=World2D.beacons(), config=ScenarioConfig(calibration_change_s=None), seed=2)
    truth = sim.initial_true_state()
    for step in sim.run(50):
        truth = sim.system_model.predict_state(truth, step.control_true)
        assert np.allclose(step.control_true, np.array([0.5, 0.35]) * 0.01)
        assert step.true_state.is_approx(truth, tol=1e-12)


def test_control_noise_level() -> None:
    config = ScenarioConfig()
    sim = DiffDriveSimulator(world=World2D.beacons(), config=config, seed=4)
    noise = np.array([step.control - step.control_true for step in sim.run(4000)])
    expected_std = np.sqrt(config.var_wheel) * np.sqrt(config.dt)
    assert np.allclose(noise.std(axis=0), expected_std, rtol=0.1)
    assert np.allclose(noise.mean(axis=0), 0.0, atol=4.0 * expected_std / np.sqrt(4000))


def test_landmark_measurements_are_near_prediction() -> None:
    sim = DiffDriveSimulator(world=World2D.beacons(), seed=8)
    step = sim.step()
    for model, y in zip(sim.landmark_models, step.landmark_measurements):
        assert np.linalg.norm(y - model.predict(step.true_state)) < 0.1


def test_calibration_change_event() -> None:
    config = ScenarioConfig(calibration_change_s=0.055)
    sim = DiffDriveSimulator(world=World2D.beacons(), config=config, seed=0)
    steps = sim.run(10)
    assert np.allclose(steps[5].true_state.element(1).coeffs, [1.0, 1.0, 1.0])
    assert np.allclose(steps[6].true_state.element(1).coeffs, [0.85, 0.85, 1.0])


def test_sample_initial_state_is_seeded() -> None:
    sim = DiffDriveSimulator(world=World2D.beacons(), seed=0)
    a = sim.sample_initial_state(np.random.default_rng(12))
    b = sim.sample_initial_state(np.random.default_rng(12))
    assert a.is_approx(b, tol=1e-12)
    assert not a.is_approx(sim.initial_true_state())


def test_sample_initial_state_draws_pose_coordinates_directly() -> None:
    sim = DiffDriveSimulator(world=World2D.beacons(), seed=0)
    sample = sim.sample_initial_state(np.random.default_rng(5))
    std = np.sqrt(np.asarray(sim.config.initial_covariance_diag))
    expected = std * np.random.default_rng(5).standard_normal(6)
    expected[3:] += 1.0
    assert np.allclose(sample.element(0).as_array(), expected[:3])
    assert np.allclose(sample.element(1).coeffs, expected[3:])


def test_config_rejects_rates_that_do_not_divide_control_rate() -> None:
    with pytest.raises(ValueError):
        ScenarioConfig(gps_rate_hz=30.0)
    with pytest.raises(ValueError):
        ScenarioConfig(dt=0.0)


def test_config_derived_values() -> None:
    config = ScenarioConfig()
    assert config.steps == 24000
    assert config.landmark_period_steps == 2
    assert config.gps_period_steps == 10
    assert np.allclose(config.initial_covariance, np.diag([0.1, 0.1, 0.17, 1e-5, 1e-5, 1e-5]))
    assert np.allclose(config.landmark_cov, np.diag([1e-4, 1e-4]))


def test_world_builds_adapted_landmark_models() -> None:
    world = World2D.from_points([[2.0, 0.0], [2.0, 1.0]])
    assert [landmark.landmark_id for landmark in world.landmarks] == [0, 1]
    assert world.as_array().shape == (2, 2)

    adapted = world.measurement_models(np.eye(2) * 1e-4)
    bare = world.measurement_models(np.eye(2) * 1e-4, bundle_index=None)
    assert len(adapted) == len(bare) == 2
    assert np.allclose(adapted[1].model.landmark, [2.0, 1.0])
    assert np.allclose(bare[0].landmark, [2.0, 0.0])
    assert World2D(landmarks=[]).as_array().shape == (0, 2)
