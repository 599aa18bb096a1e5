r"""Common typed dataclasses used across lie_kalman.

The module keeps containers lightweight so the filtering logic stays easy to
unit test. Manifold elements themselves live in :mod:`lie_kalman.lie`.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


@dataclass(slots=True)
class Kinematics:
    """Nominal differential-drive geometry.

    Attributes
    ----------
    left_radius, right_radius:
        Wheel radii in meters.
    wheel_separation:
        Distance between the two wheel contact points in meters.
    """

    left_radius: float
    right_radius: float
    wheel_separation: float

    def __post_init__(self) -> None:
        for name in ("left_radius", "right_radius", "wheel_separation"):
            value = float(getattr(self, name))
            if not np.isfinite(value) or value <= 0.0:
                raise ValueError(f"Kinematics.{name} must be positive and finite, got {value}")
            setattr(self, name, value)

    def as_array(self) -> np.ndarray:
        """Return ``[r_left, r_right, separation]`` as a numpy array."""
        return np.array([self.left_radius, self.right_radius, self.wheel_separation], dtype=float)


@dataclass(slots=True)
class WheelIncrements:
    r"""Wheel-encoder control for one time step.

    We use the control vector :math:`u=[\phi_l, \phi_r]` where each entry is
    the incremental wheel rotation in radians over the step.
    """

    phi_left: float
    phi_right: float

    def as_array(self) -> np.ndarray:
        """Return ``[phi_l, phi_r]`` as a numpy array."""
        return np.array([self.phi_left, self.phi_right], dtype=float)


@dataclass(slots=True)
class Landmark2D:
    """Fixed world-frame landmark with a stable integer identifier."""

    landmark_id: int
    x: float
    y: float

    def as_array(self) -> np.ndarray:
        """Return ``[x, y]`` as a numpy array."""
        return np.array([self.x, self.y], dtype=float)


@dataclass(slots=True)
class EKFConfig:
    """Tunable parameters shared by the Jacobian-based filters.

    Parameters
    ----------
    use_joseph_form:
        If ``True``, update covariance using Joseph stabilized form. The
        square-root filter is unaffected: its QR update is already stable.
    reset_covariance:
        If ``True``, re-express the covariance in the tangent space at the
        corrected mean, ``P <- J(dx) P J(dx)^T``.
    """

    use_joseph_form: bool = True
    reset_covariance: bool = True


@dataclass(slots=True)
class UKFMConfig:
    """Tunable parameters for the unscented filter on manifolds.

    Parameters
    ----------
    alpha, beta, kappa:
        Unscented transform spread and weighting. The defaults give
        ``lambda = 0`` and non-negative covariance weights.
    max_iterations:
        Bound on the fixed-point iterations of the on-manifold mean.
    tolerance:
        Norm of the mean correction below which the iteration stops.
    """

    alpha: float = 1.0
    beta: float = 2.0
    kappa: float = 0.0
    max_iterations: int = 20
    tolerance: float = 1e-10


@dataclass(slots=True)
class SimulationStep:
    """One simulator tick.

    ``control`` holds the noisy wheel increments handed to the filters and
    ``control_true`` the noiseless ones that moved the ground truth. Landmark
    measurements are ordered like the world's landmarks and empty on ticks
    without a landmark scan; ``gps`` is ``None`` off GPS ticks.
    """

    time_s: float
    true_state: object
    control: np.ndarray
    control_true: np.ndarray
    landmark_measurements: list[np.ndarray] = field(default_factory=list)
    gps: np.ndarray | None = None
