r"""Square-root Extended Kalman Filter.

Same error definition and models as :mod:`lie_kalman.filters.ekf`, but the
covariance is carried as a lower-triangular factor :math:`S` with
:math:`P = S S^T`. Every step is a QR triangularization, so the implied
covariance is PSD by construction.

Prediction
----------
.. math::
   \begin{bmatrix} F S & W Q^{1/2} \end{bmatrix}^T = \Theta \begin{bmatrix} S^{+T} \\ 0 \end{bmatrix}

Update
------
The pre-array is triangularized in one step:

.. math::
   \begin{bmatrix} R^{1/2} & H S \\ 0 & S \end{bmatrix} \Theta =
   \begin{bmatrix} S_z^{1/2} & 0 \\ \bar{K} & S^+ \end{bmatrix},
   \quad K = \bar{K} S_z^{-1/2}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
from scipy.linalg import solve_triangular

from lie_kalman.errors import SingularInnovationError
from lie_kalman.filters.base import validate_initial_conditions
from lie_kalman.filters.covariance import SquareRootCovariance
from lie_kalman.math_utils import psd_sqrt, triangular_factor
from lie_kalman.types import EKFConfig

logger = logging.getLogger(__name__)

_SINGULAR_RTOL = 1e-12


@dataclass(slots=True)
class SquareRootExtendedKalmanFilter:
    """EKF that propagates a Cholesky-like factor of the covariance."""

    initial_state: object
    initial_covariance: np.ndarray
    config: EKFConfig = field(default_factory=EKFConfig)

    _x: object = field(init=False, repr=False)
    _cov: SquareRootCovariance = field(init=False, repr=False)

    def __post_init__(self) -> None:
        covariance = validate_initial_conditions(self.initial_state, self.initial_covariance)
        self._x = self.initial_state
        self._cov = SquareRootCovariance.from_matrix(covariance)
        logger.debug("Square-root EKF initialized with %d DoF", self._cov.dim)

    def propagate(self, model, control, dt: float | None = None) -> None:
        """Run the square-root prediction; ``dt`` is unused."""
        f_x, f_u = model.jacobians(self._x, control)
        self._x = model.predict_state(self._x, control)

        q_sqrt = psd_sqrt(model.covariance)
        self._cov.set_from_root(np.hstack([f_x @ self._cov.factor, f_u @ q_sqrt]))

    def update(self, model, measurement) -> None:
        """Run the square-root correction for one measurement."""
        y = np.asarray(measurement, dtype=float)
        factor = self._cov.factor
        n = factor.shape[0]

        y_hat = model.predict(self._x)
        h = model.jacobian(self._x)
        innovation = model.residual(y, y_hat)
        m = innovation.size

        pre = np.zeros((m + n, m + n), dtype=float)
        pre[:m, :m] = psd_sqrt(model.covariance)
        pre[:m, m:] = h @ factor
        pre[m:, m:] = factor
        post = triangular_factor(pre)

        innovation_sqrt = post[:m, :m]
        k_bar = post[m:, :m]
        posterior_factor = post[m:, m:]

        scale = max(1.0, float(np.max(np.abs(pre))))
        if np.min(np.abs(np.diag(innovation_sqrt))) <= _SINGULAR_RTOL * scale:
            logger.debug("Square-root innovation factor is rank deficient:\n%s", innovation_sqrt)
            raise SingularInnovationError("Innovation covariance is singular")

        dx = k_bar @ solve_triangular(innovation_sqrt, innovation, lower=True)
        self._x = self._x.rplus(dx)

        if self.config.reset_covariance:
            self._cov.set_from_root(self._x.rjac(dx) @ posterior_factor)
        else:
            self._cov.factor = posterior_factor

    def get_state(self):
        return self._x

    def get_covariance(self) -> np.ndarray:
        """Return ``S @ S.T``."""
        return self._cov.matrix

    def get_covariance_sqrt(self) -> np.ndarray:
        """Return a copy of the lower-triangular factor ``S``."""
        return self._cov.factor.copy()

    @property
    def state(self):
        return self._x

    @property
    def covariance(self) -> np.ndarray:
        return self._cov.matrix.copy()
