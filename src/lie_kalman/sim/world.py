"""Known landmark map for the differential-drive scenarios.

Landmark association is given: measurement ``i`` of a landmark tick always
belongs to ``world.landmarks[i]``.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from lie_kalman.models.measurement import BundleMeasurementAdapter, Landmark2DMeasurementModel
from lie_kalman.types import Landmark2D

DEFAULT_BEACONS: tuple[tuple[float, float], ...] = ((2.0, 0.0), (2.0, 1.0), (2.0, -1.0))


@dataclass(slots=True)
class World2D:
    """Static 2D landmark world."""

    landmarks: list[Landmark2D]

    @classmethod
    def from_points(cls, points) -> "World2D":
        """Create a world from ``(x, y)`` pairs, numbering landmarks in order."""
        xy = np.asarray(points, dtype=float).reshape(-1, 2)
        landmarks = [
            Landmark2D(landmark_id=i, x=float(x_value), y=float(y_value))
            for i, (x_value, y_value) in enumerate(xy)
        ]
        return cls(landmarks=landmarks)

    @classmethod
    def beacons(cls) -> "World2D":
        """Three beacons ahead of the start pose, used by the calibration demo."""
        return cls.from_points(DEFAULT_BEACONS)

    def as_array(self) -> np.ndarray:
        """Return landmark positions as an ``(N, 2)`` array."""
        if not self.landmarks:
            return np.empty((0, 2), dtype=float)
        return np.array([landmark.as_array() for landmark in self.landmarks], dtype=float)

    def measurement_models(self, covariance: np.ndarray, bundle_index: int | None = 0) -> list:
        """Build one landmark measurement model per landmark.

        Parameters
        ----------
        covariance:
            2x2 measurement covariance shared by all landmarks.
        bundle_index:
            Element of the state bundle holding the pose. ``None`` returns the
            bare pose models for pose-only states.
        """
        models = [Landmark2DMeasurementModel(landmark, covariance=covariance) for landmark in self.landmarks]
        if bundle_index is None:
            return models
        return [BundleMeasurementAdapter(model, indices=(bundle_index,)) for model in models]
