r"""Extended Kalman Filter on a manifold state.

Error definition
----------------
The estimation error lives in the right tangent space at the mean:

.. math::
   X = \hat{X} \oplus \delta x = \hat{X} \circ \operatorname{Exp}(\delta x),
   \quad \delta x \sim \mathcal{N}(0, P)

Prediction model
----------------
With the system Jacobians :math:`F = \partial f / \partial X` and
:math:`W = \partial f / \partial u` and control noise :math:`Q`:

.. math::
   \hat{X} \leftarrow f(\hat{X}, u), \quad P \leftarrow F P F^T + W Q W^T

Update model
------------
For a measurement :math:`y` with model :math:`h`, Jacobian :math:`H` and noise
:math:`R`:

.. math::
   z = y - h(\hat{X}), \quad S = H P H^T + R, \quad K = P H^T S^{-1},
   \quad \hat{X} \leftarrow \hat{X} \oplus K z

The covariance is updated in Joseph form and then re-expressed in the
tangent space at the corrected mean with :math:`J_r(Kz)`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from lie_kalman.filters.base import corrected_covariance, kalman_gain, validate_initial_conditions
from lie_kalman.filters.covariance import FullCovariance
from lie_kalman.math_utils import mahalanobis_distance
from lie_kalman.types import EKFConfig

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExtendedKalmanFilter:
    """Error-state EKF for any manifold element or :class:`~lie_kalman.lie.bundle.Bundle`."""

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
        logger.debug("EKF initialized with %d DoF", self._cov.dim)

    def propagate(self, model, control, dt: float | None = None) -> None:
        """Run EKF prediction.

        Parameters
        ----------
        model:
            System model exposing ``predict_state``, ``jacobians`` and ``covariance``.
        control:
            Control for this step, in the model's convention.
        dt:
            Unused; accepted so every filter shares one call signature.
        """
        f_x, f_u = model.jacobians(self._x, control)
        self._x = model.predict_state(self._x, control)

        sigma = self._cov.matrix
        q_u = np.asarray(model.covariance, dtype=float)
        self._cov.matrix = f_x @ sigma @ f_x.T + f_u @ q_u @ f_u.T

    def update(self, model, measurement) -> None:
        """Run EKF correction for one measurement.

        Raises
        ------
        SingularInnovationError
            If ``H P H^T + R`` is not positive definite. The filter is left unchanged.
        """
        y = np.asarray(measurement, dtype=float)
        r = np.asarray(model.covariance, dtype=float)
        sigma = self._cov.matrix

        y_hat = model.predict(self._x)
        h = model.jacobian(self._x)
        innovation = model.residual(y, y_hat)
        k, s = kalman_gain(sigma, h, r)

        dx = k @ innovation
        self._x = self._x.rplus(dx)

        sigma = corrected_covariance(sigma, k, h, r, self.config.use_joseph_form)
        if self.config.reset_covariance:
            j = self._x.rjac(dx)
            sigma = j @ sigma @ j.T
        self._cov.matrix = sigma

        self._nis_values.append(mahalanobis_distance(innovation, s))

    def get_state(self):
        """Return the current state estimate."""
        return self._x

    def get_covariance(self) -> np.ndarray:
        """Return a copy of the current covariance matrix."""
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
