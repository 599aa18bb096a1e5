"""Per-estimator trajectory bookkeeping and error summaries.

Every estimator is recorded under a name. One row per tick keeps the time,
the true and estimated poses as ``[x, y, angle]`` and the 3x3 pose block of
the estimator's covariance.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from lie_kalman.lie.se2 import SE2
from lie_kalman.math_utils import wrap_angle_array


@dataclass(slots=True)
class ErrorSummary:
    """Aggregate pose errors of one estimator over a time window."""

    rmse_position: float
    rmse_heading: float
    final_position: float
    max_position: float
    samples: int


@dataclass(slots=True)
class _Track:
    times: list[float] = field(default_factory=list)
    true_poses: list[np.ndarray] = field(default_factory=list)
    est_poses: list[np.ndarray] = field(default_factory=list)
    covariances: list[np.ndarray] = field(default_factory=list)


@dataclass(slots=True)
class TrajectoryRecorder:
    """Collect ground truth and estimates tick by tick."""

    _tracks: dict[str, _Track] = field(default_factory=dict, repr=False)

    def record(
        self,
        name: str,
        time_s: float,
        true_pose: SE2,
        est_pose: SE2,
        pose_covariance: np.ndarray | None = None,
    ) -> None:
        """Append one tick for estimator ``name``; a missing covariance is stored as zeros."""
        track = self._tracks.setdefault(name, _Track())
        cov = np.zeros((3, 3), dtype=float) if pose_covariance is None else np.asarray(pose_covariance, dtype=float)
        track.times.append(float(time_s))
        track.true_poses.append(true_pose.as_array())
        track.est_poses.append(est_pose.as_array())
        track.covariances.append(cov[:3, :3].copy())

    @property
    def names(self) -> list[str]:
        return list(self._tracks)

    def _track(self, name: str) -> _Track:
        if name not in self._tracks:
            raise KeyError(f"No trajectory recorded for {name!r}")
        return self._tracks[name]

    def times(self, name: str) -> np.ndarray:
        return np.asarray(self._track(name).times, dtype=float)

    def true_poses(self, name: str) -> np.ndarray:
        return np.asarray(self._track(name).true_poses, dtype=float).reshape(-1, 3)

    def estimated_poses(self, name: str) -> np.ndarray:
        return np.asarray(self._track(name).est_poses, dtype=float).reshape(-1, 3)

    def pose_covariances(self, name: str) -> np.ndarray:
        return np.asarray(self._track(name).covariances, dtype=float).reshape(-1, 3, 3)

    def position_errors(self, name: str) -> np.ndarray:
        """Euclidean distance between true and estimated positions per tick."""
        delta = self.estimated_poses(name)[:, :2] - self.true_poses(name)[:, :2]
        return np.linalg.norm(delta, axis=1)

    def heading_errors(self, name: str) -> np.ndarray:
        """Signed heading error per tick, wrapped to ``[-pi, pi)``."""
        return wrap_angle_array(self.estimated_poses(name)[:, 2] - self.true_poses(name)[:, 2])

    def summary(self, start_time_s: float = 0.0) -> dict[str, ErrorSummary]:
        """Summarize every estimator over ticks with ``time >= start_time_s``.

        Estimators without ticks in the window are left out.
        """
        summaries: dict[str, ErrorSummary] = {}
        for name in self._tracks:
            mask = self.times(name) >= start_time_s
            if not np.any(mask):
                continue
            position = self.position_errors(name)[mask]
            heading = self.heading_errors(name)[mask]
            summaries[name] = ErrorSummary(
                rmse_position=float(np.sqrt(np.mean(position**2))),
                rmse_heading=float(np.sqrt(np.mean(heading**2))),
                final_position=float(position[-1]),
                max_position=float(np.max(position)),
                samples=int(mask.sum()),
            )
        return summaries
