"""Matplotlib views of recorded trajectories for the calibration demos."""

from __future__ import annotations

from dataclasses import dataclass, field

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Ellipse

from lie_kalman.math_utils import covariance_ellipse_params
from lie_kalman.metrics import TrajectoryRecorder

_COLORS = ("tab:blue", "tab:orange", "tab:green", "tab:red", "tab:purple", "tab:brown", "tab:gray")


@dataclass(slots=True)
class TrajectoryViewer:
    """Plot ground truth, every recorded estimate and landmarks on one axis.

    Notes
    -----
    Artists are created once per estimator and updated in place, so
    :meth:`update` can be called repeatedly while a run is in progress.
    """

    show_ground_truth: bool = True
    show_covariance: bool = True
    live: bool = False
    n_std: float = 2.0
    fig: plt.Figure = field(init=False)
    ax: plt.Axes = field(init=False)
    _true_traj_line: object = field(init=False, repr=False)
    _landmarks: object = field(init=False, repr=False)
    _est_lines: dict = field(init=False, repr=False)
    _ellipses: dict = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.fig, self.ax = plt.subplots(figsize=(8, 8))
        self.ax.set_title("lie_kalman trajectories")
        self.ax.set_xlabel("x [m]")
        self.ax.set_ylabel("y [m]")
        self.ax.axis("equal")
        self.ax.grid(True, alpha=0.3)

        (self._true_traj_line,) = self.ax.plot([], [], "k-", lw=1.6, label="ground truth")
        self._landmarks = self.ax.scatter([], [], c="k", marker="x", label="landmarks")
        self._est_lines = {}
        self._ellipses = {}

    def update(self, recorder: TrajectoryRecorder, landmarks: np.ndarray | None = None) -> None:
        """Redraw every estimator in ``recorder`` and the landmark positions."""
        names = recorder.names
        landmarks = np.empty((0, 2)) if landmarks is None else np.asarray(landmarks, dtype=float).reshape(-1, 2)

        if names and self.show_ground_truth:
            true_xy = recorder.true_poses(names[0])[:, :2]
            self._true_traj_line.set_data(true_xy[:, 0], true_xy[:, 1])
        else:
            self._true_traj_line.set_data([], [])
        self._true_traj_line.set_visible(self.show_ground_truth)
        self._landmarks.set_offsets(landmarks)

        for index, name in enumerate(names):
            est_xy = recorder.estimated_poses(name)[:, :2]
            line = self._est_lines.get(name)
            if line is None:
                color = _COLORS[index % len(_COLORS)]
                (line,) = self.ax.plot([], [], color=color, ls="--", lw=1.4, label=name)
                self._est_lines[name] = line
            line.set_data(est_xy[:, 0], est_xy[:, 1])

            ellipse = self._ellipses.get(name)
            if ellipse is None:
                ellipse = Ellipse((0.0, 0.0), width=0.0, height=0.0, angle=0.0, fill=False, edgecolor=line.get_color(), lw=1.2)
                self._ellipses[name] = ellipse
                self.ax.add_patch(ellipse)

            cov_xy = recorder.pose_covariances(name)[-1][:2, :2] if est_xy.size else np.zeros((2, 2))
            if self.show_covariance and est_xy.size and np.any(cov_xy):
                self._set_ellipse(ellipse, center_xy=est_xy[-1], cov_xy=cov_xy)
                ellipse.set_visible(True)
            else:
                ellipse.set_visible(False)

        self.ax.legend(loc="upper right")
        self._autoscale_view(recorder, landmarks)
        self.fig.canvas.draw_idle()
        if self.live:
            plt.pause(0.001)

    def _autoscale_view(self, recorder: TrajectoryRecorder, landmarks: np.ndarray) -> None:
        points: list[np.ndarray] = [recorder.estimated_poses(name)[:, :2] for name in recorder.names]
        if recorder.names and self.show_ground_truth:
            points.append(recorder.true_poses(recorder.names[0])[:, :2])
        if landmarks.size:
            points.append(landmarks)
        points = [p for p in points if p.size]
        if not points:
            return

        all_pts = np.vstack(points)
        x_min, y_min = np.min(all_pts, axis=0)
        x_max, y_max = np.max(all_pts, axis=0)
        pad = 0.5
        self.ax.set_xlim(x_min - pad, x_max + pad)
        self.ax.set_ylim(y_min - pad, y_max + pad)

    def _set_ellipse(self, ellipse: Ellipse, center_xy: np.ndarray, cov_xy: np.ndarray) -> None:
        center, width, height, angle = covariance_ellipse_params(center_xy, cov_xy, n_std=self.n_std)
        ellipse.set_center((center[0], center[1]))
        ellipse.width = width
        ellipse.height = height
        ellipse.angle = angle


def plot_errors(recorder: TrajectoryRecorder) -> plt.Figure:
    """Position and heading error over time for every recorded estimator."""
    fig, (ax_pos, ax_head) = plt.subplots(2, 1, sharex=True, figsize=(9, 6))
    for index, name in enumerate(recorder.names):
        color = _COLORS[index % len(_COLORS)]
        times = recorder.times(name)
        ax_pos.plot(times, recorder.position_errors(name), color=color, lw=1.0, label=name)
        ax_head.plot(times, np.abs(recorder.heading_errors(name)), color=color, lw=1.0, label=name)
    ax_pos.set_ylabel("position error [m]")
    ax_head.set_ylabel("|heading error| [rad]")
    ax_head.set_xlabel("time [s]")
    for ax in (ax_pos, ax_head):
        ax.grid(True, alpha=0.3)
    ax_pos.legend(loc="upper right")
    return fig
