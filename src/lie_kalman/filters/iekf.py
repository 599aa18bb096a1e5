r"""Invariant Extended Kalman Filter.

Error definition
----------------
The error is right-invariant, applied on the left of the estimate:

.. math::
   X = \operatorname{Exp}(\xi) \circ \hat{X}, \quad \xi \sim \mathcal{N}(0, P)

For ``X <- X ∘ Exp(tau)`` this error does not depend on the pose at all: only
the calibration coupling appears in the transition matrix. The filter reuses
the right-tangent Jacobians of the shared models and moves them to the left
tangent space with the adjoint:

.. math::
   F_L = \operatorname{Ad}_{X^+} F \operatorname{Ad}_{X}^{-1}, \quad
   W_L = \operatorname{Ad}_{X^+} W, \quad
   H_L = H \operatorname{Ad}_{X}^{-1}

Discretization
--------------
The error dynamics over a step of length ``dt`` are written in continuous time,
:math:`A = (F_L - I)/dt` with noise intensity :math:`Q_c = W_L Q W_L^T / dt`,
and rediscretized with Van Loan's method so that the transition and the
integrated process noise are consistent over the step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
from scipy.linalg import expm

from lie_kalman.filters.base import corrected_covariance, kalman_gain, validate_initial_conditions
from lie_kalman.filters.covariance import FullCovariance
from lie_kalman.math_utils import mahalanobis_distance, symmetrize
from lie_kalman.types import EKFConfig

logger = logging.getLogger(__name__)


def van_loan_discretization(a: np.ndarray, q_c: np.ndarray, dt: float) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(Phi, Q_d)`` for ``dx/dt = A x + w`` with white noise intensity ``Q_c``."""
    n = a.shape[0]
    block = np.zeros((2 * n, 2 * n), dtype=float)
    block[:n, :n] = -a
    block[:n, n:] = q_c
    block[n:, n:] = a.T
    exponential = expm(block * dt)
    phi = exponential[n:, n:].T
    q_d = phi @ exponential[:n, n:]
    return phi, symmetrize(q_d)


@dataclass(slots=True)
class InvariantExtendedKalmanFilter:
    """Right-invariant EKF on any manifold element or bundle."""

    initial_state: object
    initial_covariance: np.ndarray
    config: EKFConfig = field(default_factory=EKFConfig)

    _x: object = field(init=False, repr=False)
    _cov: FullCovariance = field(init=False, repr=False)
    _nis_values: list[float] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        covariance = validate_initial_conditions(self.initial_state, self.initial_covariance)
        self._x = self.initial_state
        self._cov = FullCovariance.from_matrix(covariance)
        self._nis_values = []
        logger.debug("IEKF initialized with %d DoF", self._cov.dim)

    def propagate(self, model, control, dt: float | None = None) -> None:
        """Run the invariant prediction over a step of ``dt`` seconds.

        Raises
        ------
        ValueError
            If ``dt`` is missing, not finite or not positive.
        """
        if dt is None or not np.isfinite(dt) or dt <= 0.0:
            raise ValueError(f"Invariant EKF propagation needs a positive step duration, got {dt}")

        x_prev = self._x
        f_x, f_u = model.jacobians(x_prev, control)
        self._x = model.predict_state(x_prev, control)

        adj_next = self._x.adj()
        f_left = adj_next @ f_x @ np.linalg.inv(x_prev.adj())
        w_left = adj_next @ f_u

        n = f_left.shape[0]
        a = (f_left - np.eye(n, dtype=float)) / dt
        q_c = w_left @ np.asarray(model.covariance, dtype=float) @ w_left.T / dt
        phi, q_d = van_loan_discretization(a, q_c, dt)

        sigma = self._cov.matrix
        self._cov.matrix = phi @ sigma @ phi.T + q_d

    def update(self, model, measurement) -> None:
        """Run the invariant correction ``X <- Exp(K z) ∘ X`` for one measurement."""
        y = np.asarray(measurement, dtype=float)
        r = np.asarray(model.covariance, dtype=float)
        sigma = self._cov.matrix

        y_hat = model.predict(self._x)
        h = model.jacobian(self._x) @ np.linalg.inv(self._x.adj())
        innovation = model.residual(y, y_hat)
        k, s = kalman_gain(sigma, h, r)

        dx = k @ innovation
        self._x = self._x.lplus(dx)

        sigma = corrected_covariance(sigma, k, h, r, self.config.use_joseph_form)
        if self.config.reset_covariance:
            j = self._x.ljac(dx)
            sigma = j @ sigma @ j.T
        self._cov.matrix = sigma

        self._nis_values.append(mahalanobis_distance(innovation, s))

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

    @property
    def nis_values(self) -> list[float]:
        return self._nis_values
