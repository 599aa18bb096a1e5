r"""lie_kalman package.

On-manifold Kalman filters (EKF, square-root EKF, invariant EKF and UKF-M)
for a differential-drive robot that calibrates its odometry on-line.
"""

from .errors import ConvergenceError, FilterConstructionError, FilterError, SingularInnovationError
from .filters.ekf import ExtendedKalmanFilter
from .filters.iekf import InvariantExtendedKalmanFilter
from .filters.sekf import SquareRootExtendedKalmanFilter
from .filters.ukfm import UnscentedKalmanFilterManifolds
from .lie.bundle import Bundle
from .lie.rn import Rn
from .lie.se2 import SE2
from .types import EKFConfig, Kinematics, Landmark2D, SimulationStep, UKFMConfig, WheelIncrements

__all__ = [
    "Bundle",
    "ConvergenceError",
    "EKFConfig",
    "ExtendedKalmanFilter",
    "FilterConstructionError",
    "FilterError",
    "InvariantExtendedKalmanFilter",
    "Kinematics",
    "Landmark2D",
    "Rn",
    "SE2",
    "SimulationStep",
    "SingularInnovationError",
    "SquareRootExtendedKalmanFilter",
    "UKFMConfig",
    "UnscentedKalmanFilterManifolds",
    "WheelIncrements",
]
