from __future__ import annotations

import numpy as np
import pytest

from lie_kalman.lie.bundle import Bundle
from lie_kalman.lie.rn import Rn
from lie_kalman.lie.se2 import SE2
from lie_kalman.models.motion import DiffDriveSystemModel
from lie_kalman.sim.simulator import DiffDriveSimulator, ScenarioConfig
from lie_kalman.sim.world import World2D
from lie_kalman.types import Kinematics


@pytest.fixture
def kinematics() -> Kinematics:
    return Kinematics(0.15, 0.15, 0.4)


@pytest.fixture
def system_model(kinematics: Kinematics) -> DiffDriveSystemModel:
    return DiffDriveSystemModel(kinematics, covariance=np.diag([9e-5, 9e-5]))


@pytest.fixture
def calibrated_state() -> Bundle:
    """Pose away from the origin with a non-trivial calibration."""
    return Bundle(SE2(0.3, -0.2, 0.4), Rn([1.05, 0.97, 1.02]))


@pytest.fixture
def deterministic_simulator() -> DiffDriveSimulator:
    """Small seeded simulator fixture used for stable filter regression tests."""
    config = ScenarioConfig(duration_s=2.0, calibration_change_s=None)
    return DiffDriveSimulator(world=World2D.beacons(), config=config, seed=7)
