r"""Unscented Kalman Filter on manifolds (UKF-M).

Uncertainty is represented by sigma points drawn in the tangent space at the
mean and retracted with :math:`\oplus`. Models are evaluated exactly; no
Jacobian is needed.

Propagation uses augmented sigma points over ``[state tangent, control noise]``
of dimension :math:`N = n + q`. With :math:`\lambda = \alpha^2 (N + \kappa) - N`:

.. math::
   \xi_{\pm i} = \pm \sqrt{N + \lambda}\, \operatorname{col}_i
   \left(\operatorname{diag}(P, Q)^{1/2}\right), \quad
   \mathcal{X}_i = f(\hat{X} \oplus \xi^x_i, u + \xi^u_i)

The new mean is the fixed point :math:`\bar{X} \leftarrow \bar{X} \oplus
\sum_i w^m_i (\mathcal{X}_i \ominus \bar{X})` started at :math:`f(\hat{X}, u)`,
and the new covariance is
:math:`P = \sum_i w^c_i (\mathcal{X}_i \ominus \bar{X})(\cdot)^T`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
from scipy.linalg import block_diag

from lie_kalman.errors import ConvergenceError
from lie_kalman.filters.base import solve_gain, validate_initial_conditions
from lie_kalman.filters.covariance import FullCovariance
from lie_kalman.math_utils import psd_sqrt
from lie_kalman.types import UKFMConfig

logger = logging.getLogger(__name__)


def _control_array(control) -> np.ndarray:
    values = control.as_array() if hasattr(control, "as_array") else control
    return np.asarray(values, dtype=float).reshape(-1)


@dataclass(slots=True)
class UnscentedKalmanFilterManifolds:
    """Sigma-point filter for any manifold element or bundle."""

    initial_state: object
    initial_covariance: np.ndarray
    config: UKFMConfig = field(default_factory=UKFMConfig)

    _x: object = field(init=False, repr=False)
    _cov: FullCovariance = field(init=False, repr=False)

    def __post_init__(self) -> None:
        covariance = validate_initial_conditions(self.initial_state, self.initial_covariance)
        self._x = self.initial_state
        self._cov = FullCovariance.from_matrix(covariance)
        logger.debug("UKF-M initialized with %d DoF", self._cov.dim)

    def weights(self, dim: int) -> tuple[np.ndarray, np.ndarray, float]:
        """Return mean weights, covariance weights and the spread ``N + lambda``."""
        alpha, beta, kappa = self.config.alpha, self.config.beta, self.config.kappa
        lam = alpha**2 * (dim + kappa) - dim
        spread = dim + lam
        if spread <= 0.0:
            raise ValueError(f"Unscented spread must be positive, got {spread} for dimension {dim}")
        w_m = np.full(2 * dim + 1, 0.5 / spread, dtype=float)
        w_c = w_m.copy()
        w_m[0] = lam / spread
        w_c[0] = lam / spread + (1.0 - alpha**2 + beta)
        return w_m, w_c, spread

    @staticmethod
    def _offsets(root: np.ndarray) -> np.ndarray:
        """Rows ``0, +col_1, ..., +col_N, -col_1, ..., -col_N`` of the scaled root."""
        dim = root.shape[0]
        return np.vstack([np.zeros((1, dim)), root.T, -root.T])

    def propagate(self, model, control, dt: float | None = None) -> None:
        """Propagate the sigma points through ``model``; ``dt`` is unused."""
        u = _control_array(control)
        q_u = np.asarray(model.covariance, dtype=float)
        n = self._cov.dim
        w_m, w_c, spread = self.weights(n + q_u.shape[0])

        root = np.sqrt(spread) * block_diag(psd_sqrt(self._cov.matrix), psd_sqrt(q_u))
        offsets = self._offsets(root)

        predicted = model.predict_state(self._x, u)
        points = [predicted]
        for offset in offsets[1:]:
            points.append(model.predict_state(self._x.rplus(offset[:n]), u + offset[n:]))

        mean = self._manifold_mean(points, w_m, start=predicted)
        deviations = np.array([point.rminus(mean) for point in points])

        self._x = mean
        self._cov.matrix = deviations.T @ (w_c[:, None] * deviations)

    def update(self, model, measurement) -> None:
        """Unscented correction for one measurement."""
        y = np.asarray(measurement, dtype=float)
        r = np.asarray(model.covariance, dtype=float)
        sigma = self._cov.matrix
        w_m, w_c, spread = self.weights(self._cov.dim)

        offsets = self._offsets(np.sqrt(spread) * psd_sqrt(sigma))
        z = np.array([model.predict(self._x.rplus(offset)) for offset in offsets])
        z_mean = w_m @ z
        dz = z - z_mean

        p_zz = dz.T @ (w_c[:, None] * dz) + r
        p_xz = offsets.T @ (w_c[:, None] * dz)
        k = solve_gain(p_xz, p_zz)

        dx = k @ model.residual(y, z_mean)
        self._x = self._x.rplus(dx)
        self._cov.matrix = sigma - k @ p_zz @ k.T

    def _manifold_mean(self, points: list, w_m: np.ndarray, start):
        """Weighted on-manifold mean by fixed-point iteration.

        Raises
        ------
        ConvergenceError
            If the correction norm is still above ``tolerance`` after
            ``max_iterations`` iterations.
        """
        mean = start
        correction_norm = np.inf
        for _ in range(self.config.max_iterations):
            correction = w_m @ np.array([point.rminus(mean) for point in points])
            mean = mean.rplus(correction)
            correction_norm = float(np.linalg.norm(correction))
            if correction_norm < self.config.tolerance:
                return mean
        logger.debug("Sigma-point mean did not converge, last correction norm %.3e", correction_norm)
        raise ConvergenceError(
            f"Sigma-point mean did not converge in {self.config.max_iterations} iterations "
            f"(last correction norm {correction_norm:.3e})",
            iterations=self.config.max_iterations,
            residual_norm=correction_norm,
        )

    def get_state(self):
        return self._x

    def get_covariance(self) -> np.ndarray:
        return self._cov.matrix.copy()

    @property
    def state(self):
        return self._x

    @property
    def covariance(self) -> np.ndarray:
        return self._cov.matrix.copy()
