r"""Differential-drive system model with on-line calibration.

Control is a pair of incremental wheel angles :math:`u=[\phi_l, \phi_r]`.
Assuming constant wheel velocities over the step, the base travels along an
arc expressed in the tangent space of SE(2):

.. math::
   d_l = \tfrac{1}{2}(r_l c_l \phi_l + r_r c_r \phi_r), \quad
   d_\theta = \frac{r_r c_r \phi_r - r_l c_l \phi_l}{d_w c_w}, \quad
   \tau = [d_l, 0, d_\theta]^T

where ``(r_l, r_r, d_w)`` are the nominal kinematics and ``c = (c_l, c_r, c_w)``
are the multiplicative calibration factors held in the second element of the
state bundle. The pose is advanced with :math:`X \leftarrow X \oplus \tau`; the
calibration element is static and only observed through its effect on
:math:`\tau`.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from lie_kalman.math_utils import is_symmetric_psd
from lie_kalman.types import Kinematics


def as_control_vector(control) -> np.ndarray:
    """Return ``[phi_l, phi_r]`` from an array-like or :class:`WheelIncrements`."""
    values = control.as_array() if hasattr(control, "as_array") else control
    values = np.asarray(values, dtype=float).reshape(-1)
    if values.size != 2:
        raise ValueError(f"Differential-drive control has 2 entries, got {values.size}")
    return values


@dataclass(slots=True)
class DiffDriveSystemModel:
    """Wheel-odometry motion model on ``Bundle(SE2, Rn(3))`` or on a bare ``SE2``.

    State convention: element 0 is the pose, element 1 the calibration factors
    ``[c_l, c_r, c_w]`` when ``with_calibration`` is set.
    Control convention: incremental wheel angles ``[phi_l, phi_r]`` in radians.
    """

    kinematics: Kinematics
    covariance: np.ndarray = field(default_factory=lambda: np.diag([9e-5, 9e-5]))
    with_calibration: bool = True

    def __post_init__(self) -> None:
        self.set_covariance(self.covariance)

    @property
    def noise_dim(self) -> int:
        return 2

    def set_covariance(self, covariance: np.ndarray) -> None:
        """Set the control-noise covariance ``Q`` (one variance per wheel on the diagonal)."""
        covariance = np.asarray(covariance, dtype=float)
        if covariance.shape != (2, 2):
            raise ValueError(f"Control covariance must be 2x2, got {covariance.shape}")
        if not is_symmetric_psd(covariance):
            raise ValueError("Control covariance must be symmetric positive semi-definite")
        self.covariance = covariance

    def pose_of(self, state):
        return state.element(0) if self.with_calibration else state

    def calibration_of(self, state) -> np.ndarray:
        if self.with_calibration:
            return state.element(1).coeffs
        return np.ones(3, dtype=float)

    def arc(self, control, calibration: np.ndarray | None = None) -> np.ndarray:
        """Tangent-space arc ``[d_l, 0, d_theta]`` travelled under ``control``."""
        phi_l, phi_r = as_control_vector(control)
        calibration = np.ones(3) if calibration is None else np.asarray(calibration, dtype=float)
        r_l, r_r, d_w = self.kinematics.as_array() * calibration
        d_l = 0.5 * (r_l * phi_l + r_r * phi_r)
        d_theta = (r_r * phi_r - r_l * phi_l) / d_w
        return np.array([d_l, 0.0, d_theta], dtype=float)

    def arc_jacobians(self, control, calibration: np.ndarray | None = None) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(J_u, J_c)``: Jacobians of the arc w.r.t. control and calibration."""
        phi_l, phi_r = as_control_vector(control)
        calibration = np.ones(3) if calibration is None else np.asarray(calibration, dtype=float)
        nominal = self.kinematics.as_array()
        r_l, r_r, d_w = nominal * calibration
        r_l0, r_r0, d_w0 = nominal
        d_theta = (r_r * phi_r - r_l * phi_l) / d_w

        j_u = np.array(
            [
                [0.5 * r_l, 0.5 * r_r],
                [0.0, 0.0],
                [-r_l / d_w, r_r / d_w],
            ],
            dtype=float,
        )
        j_c = np.array(
            [
                [0.5 * r_l0 * phi_l, 0.5 * r_r0 * phi_r, 0.0],
                [0.0, 0.0, 0.0],
                [-r_l0 * phi_l / d_w, r_r0 * phi_r / d_w, -d_theta / calibration[2]],
            ],
            dtype=float,
        )
        return j_u, j_c

    def predict_state(self, state, control):
        """Advance ``state`` by one control step (no uncertainty bookkeeping)."""
        tau = self.arc(control, self.calibration_of(state))
        pose = self.pose_of(state).rplus(tau)
        if self.with_calibration:
            return state.with_element(0, pose)
        return pose

    def __call__(self, state, control):
        return self.predict_state(state, control)

    def jacobians(self, state, control) -> tuple[np.ndarray, np.ndarray]:
        """Return Jacobians ``(F, W)`` of the motion model.

        - ``F = d f / d state`` (``dof x dof``, right tangent convention)
        - ``W = d f / d u`` (``dof x 2``)
        """
        calibration = self.calibration_of(state)
        tau = self.arc(control, calibration)
        j_u, j_c = self.arc_jacobians(control, calibration)
        j_pose, j_tau = self.pose_of(state).rplus_jacobians(tau)

        if not self.with_calibration:
            return j_pose, j_tau @ j_u

        pose_block = state.block(0)
        calib_block = state.block(1)
        f = np.eye(state.dof, dtype=float)
        f[pose_block, pose_block] = j_pose
        f[pose_block, calib_block] = j_tau @ j_c

        w = np.zeros((state.dof, 2), dtype=float)
        w[pose_block, :] = j_tau @ j_u
        return f, w
