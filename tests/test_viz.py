import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from lie_kalman.lie.se2 import SE2  # noqa: E402
from lie_kalman.metrics import TrajectoryRecorder  # noqa: E402
from lie_kalman.sim.world import World2D  # noqa: E402
from lie_kalman.viz.trajectory_viewer import TrajectoryViewer, plot_errors  # noqa: E402


def _recorder() -> TrajectoryRecorder:
    recorder = TrajectoryRecorder()
    for k in range(5):
        truth = SE2(0.1 * k, 0.0, 0.0)
        recorder.record("EKF", 0.01 * k, truth, SE2(0.1 * k, 0.01, 0.0), np.diag([1e-3, 2e-3, 1e-3]))
        recorder.record("UNFI", 0.01 * k, truth, SE2(0.1 * k, 0.05 * k, 0.1))
    return recorder


def test_viewer_draws_every_estimate() -> None:
    viewer = TrajectoryViewer()
    recorder = _recorder()
    viewer.update(recorder, landmarks=World2D.beacons().as_array())
    viewer.update(recorder, landmarks=World2D.beacons().as_array())

    labels = [line.get_label() for line in viewer.ax.get_lines()]
    assert labels.count("EKF") == 1
    assert labels.count("UNFI") == 1
    assert viewer._ellipses["EKF"].get_visible()
    assert not viewer._ellipses["UNFI"].get_visible()

    x_min, x_max = viewer.ax.get_xlim()
    assert x_min < 0.0 and x_max > 2.0
    plt.close(viewer.fig)


def test_error_plot_has_one_line_per_estimate() -> None:
    fig = plot_errors(_recorder())
    assert len(fig.axes) == 2
    assert len(fig.axes[0].get_lines()) == 2
    plt.close(fig)
