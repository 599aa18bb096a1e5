"""Shared contract and linear-algebra steps of the on-manifold filters.

The four filters are independent classes. They share the call signature
described by :class:`KalmanFilter` and the free functions below, never a base
class holding state.
"""

from __future__ import annotations

import logging
from typing import Protocol

import numpy as np
from scipy import linalg

from lie_kalman.errors import FilterConstructionError, SingularInnovationError
from lie_kalman.math_utils import is_symmetric_psd, symmetrize

logger = logging.getLogger(__name__)


class KalmanFilter(Protocol):
    """Operations every filter exposes to the orchestration loop."""

    def propagate(self, model, control, dt: float | None = None) -> None: ...

    def update(self, model, measurement) -> None: ...

    def get_state(self): ...

    def get_covariance(self) -> np.ndarray: ...


def validate_initial_conditions(state, covariance: np.ndarray) -> np.ndarray:
    """Check that ``covariance`` is a symmetric PSD matrix matching ``state.dof``."""
    dof = getattr(state, "dof", None)
    if dof is None:
        raise FilterConstructionError(f"Initial state {state!r} is not a manifold element")
    covariance = np.asarray(covariance, dtype=float)
    if covariance.shape != (dof, dof):
        raise FilterConstructionError(
            f"Initial covariance has shape {covariance.shape}, state has {dof} DoF"
        )
    if not is_symmetric_psd(covariance):
        raise FilterConstructionError("Initial covariance must be symmetric positive semi-definite")
    return symmetrize(covariance.copy())


def solve_gain(cross_covariance: np.ndarray, innovation_covariance: np.ndarray) -> np.ndarray:
    """Return ``K = P_xz @ S^-1`` through a Cholesky factorization of ``S``."""
    try:
        factor = linalg.cho_factor(symmetrize(innovation_covariance), lower=True)
    except np.linalg.LinAlgError as exc:
        logger.debug("Innovation covariance is not positive definite:\n%s", innovation_covariance)
        raise SingularInnovationError("Innovation covariance is singular") from exc
    return linalg.cho_solve(factor, cross_covariance.T).T


def kalman_gain(covariance: np.ndarray, h: np.ndarray, r: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(K, S)`` with ``S = H P H^T + R`` and ``K = P H^T S^-1``."""
    s = symmetrize(h @ covariance @ h.T + r)
    return solve_gain(covariance @ h.T, s), s


def corrected_covariance(
    covariance: np.ndarray,
    k: np.ndarray,
    h: np.ndarray,
    r: np.ndarray,
    use_joseph_form: bool,
) -> np.ndarray:
    """Posterior covariance in Joseph or standard form."""
    i_n = np.eye(covariance.shape[0], dtype=float)
    residual = i_n - k @ h
    if use_joseph_form:
        return symmetrize(residual @ covariance @ residual.T + k @ r @ k.T)
    return symmetrize(residual @ covariance)
