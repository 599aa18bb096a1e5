r"""Measurement models for landmark and GPS corrections.

Landmark observations are the rigid inverse action of the pose on a known
world point, put in Cartesian form:

.. math::
   y = h(X, b) = X^{-1} \cdot b = R^T (b - t)

GPS observes the robot position :math:`y = t`.

Both models are written for the SE(2) pose. :class:`BundleMeasurementAdapter`
lets them run against a composite state by picking the relevant element(s)
and zero-padding the Jacobian columns of the others.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from lie_kalman.lie.bundle import Bundle
from lie_kalman.lie.se2 import SE2


def _as_point(landmark) -> np.ndarray:
    values = landmark.as_array() if hasattr(landmark, "as_array") else landmark
    point = np.asarray(values, dtype=float).reshape(-1)
    if point.size != 2:
        raise ValueError(f"Landmark must be a 2D point, got {point.size} entries")
    return point


@dataclass(slots=True)
class Landmark2DMeasurementModel:
    """Known landmark observed in the robot frame."""

    landmark: np.ndarray
    covariance: np.ndarray = field(default_factory=lambda: np.diag([0.01**2, 0.01**2]))

    def __post_init__(self) -> None:
        self.landmark = _as_point(self.landmark)
        self.covariance = np.asarray(self.covariance, dtype=float)

    def predict(self, pose: SE2) -> np.ndarray:
        return pose.inverse_act(self.landmark)

    def __call__(self, pose: SE2) -> np.ndarray:
        return self.predict(pose)

    def jacobian(self, pose: SE2) -> np.ndarray:
        """Return ``H = dh/dX`` (2x3) in the right tangent space of the pose."""
        y = self.predict(pose)
        return np.array([[-1.0, 0.0, y[1]], [0.0, -1.0, -y[0]]], dtype=float)

    def residual(self, measurement: np.ndarray, predicted: np.ndarray) -> np.ndarray:
        return np.asarray(measurement, dtype=float) - predicted


@dataclass(slots=True)
class GPSMeasurementModel:
    """Idealized position fix of the robot in the world frame."""

    covariance: np.ndarray = field(default_factory=lambda: np.diag([6e-3, 6e-3]))

    def __post_init__(self) -> None:
        self.covariance = np.asarray(self.covariance, dtype=float)

    def predict(self, pose: SE2) -> np.ndarray:
        return pose.translation()

    def __call__(self, pose: SE2) -> np.ndarray:
        return self.predict(pose)

    def jacobian(self, pose: SE2) -> np.ndarray:
        """Return ``H = [R | 0]`` (2x3)."""
        h = np.zeros((2, 3), dtype=float)
        h[:, :2] = pose.rotation()
        return h

    def residual(self, measurement: np.ndarray, predicted: np.ndarray) -> np.ndarray:
        return np.asarray(measurement, dtype=float) - predicted


@dataclass(slots=True)
class BundleMeasurementAdapter:
    """Run a sub-state measurement model on a full :class:`Bundle` state.

    Parameters
    ----------
    model:
        Measurement model exposing ``predict``, ``jacobian``, ``residual`` and
        ``covariance`` for the sub-state.
    indices:
        Bundle elements the model reads. One index passes that element
        directly; several indices pass a sub-bundle in the given order.
    """

    model: object
    indices: tuple[int, ...] = (0,)

    def __post_init__(self) -> None:
        self.indices = tuple(int(index) for index in self.indices)
        if not self.indices:
            raise ValueError("Adapter needs at least one bundle index")

    @property
    def covariance(self) -> np.ndarray:
        return self.model.covariance

    def substate(self, state: Bundle):
        if len(self.indices) == 1:
            return state.element(self.indices[0])
        return Bundle(*(state.element(index) for index in self.indices))

    def predict(self, state: Bundle) -> np.ndarray:
        return self.model.predict(self.substate(state))

    def __call__(self, state: Bundle) -> np.ndarray:
        return self.predict(state)

    def jacobian(self, state: Bundle) -> np.ndarray:
        """Embed the sub-state Jacobian into the full tangent width of ``state``."""
        h_sub = np.atleast_2d(self.model.jacobian(self.substate(state)))
        h = np.zeros((h_sub.shape[0], state.dof), dtype=float)
        column = 0
        for index in self.indices:
            block = state.block(index)
            width = block.stop - block.start
            h[:, block] = h_sub[:, column : column + width]
            column += width
        return h

    def residual(self, measurement: np.ndarray, predicted: np.ndarray) -> np.ndarray:
        return self.model.residual(measurement, predicted)
