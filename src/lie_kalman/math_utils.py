"""Math helpers used by the filters, simulation, and visualization."""

from __future__ import annotations

import numpy as np
from scipy import linalg


def wrap_angle(angle_rad: float) -> float:
    """Wrap angle to ``[-pi, pi)``."""
    return (angle_rad + np.pi) % (2.0 * np.pi) - np.pi


def wrap_angle_array(angles_rad: np.ndarray) -> np.ndarray:
    """Vectorized angle wrapping to ``[-pi, pi)``."""
    return (angles_rad + np.pi) % (2.0 * np.pi) - np.pi


def mahalanobis_distance(error: np.ndarray, covariance: np.ndarray) -> float:
    """Compute squared Mahalanobis distance ``e.T @ S^-1 @ e``."""
    return float(error.T @ np.linalg.solve(covariance, error))


def symmetrize(matrix: np.ndarray) -> np.ndarray:
    """Return ``(M + M^T) / 2``."""
    return 0.5 * (matrix + matrix.T)


def is_symmetric_psd(matrix: np.ndarray, tol: float = 1e-9) -> bool:
    """Check symmetry and positive semi-definiteness up to a relative tolerance."""
    matrix = np.asarray(matrix, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        return False
    if not np.all(np.isfinite(matrix)):
        return False
    scale = max(1.0, float(np.max(np.abs(matrix))) if matrix.size else 1.0)
    if not np.allclose(matrix, matrix.T, rtol=0.0, atol=tol * scale):
        return False
    eigenvalues = np.linalg.eigvalsh(symmetrize(matrix))
    return bool(eigenvalues.size == 0 or eigenvalues.min() >= -tol * scale)


def psd_sqrt(matrix: np.ndarray) -> np.ndarray:
    """Return a lower-triangular ``L`` with ``L @ L.T == matrix``.

    Cholesky is tried first. Singular PSD matrices (e.g. zero process noise)
    fall back to an eigendecomposition whose square root is re-triangularized
    with a QR step, so callers always get a triangular factor.
    """
    matrix = symmetrize(np.asarray(matrix, dtype=float))
    try:
        return linalg.cholesky(matrix, lower=True)
    except np.linalg.LinAlgError:
        eigenvalues, eigenvectors = np.linalg.eigh(matrix)
        root = eigenvectors @ np.diag(np.sqrt(np.maximum(eigenvalues, 0.0)))
        return triangular_factor(root)


def triangular_factor(root: np.ndarray) -> np.ndarray:
    """Turn any square root ``A`` (``A @ A.T == P``) into a lower-triangular one.

    ``A.T = Q R`` gives ``P = R.T @ R``; rows of ``R`` are sign-normalized so
    the returned factor has a non-negative diagonal.
    """
    r = linalg.qr(np.asarray(root, dtype=float).T, mode="r")[0]
    n = root.shape[0]
    r = r[:n, :n]
    signs = np.where(np.diag(r) < 0.0, -1.0, 1.0)
    return (signs[:, None] * r).T


def numerical_jacobian(func, x: np.ndarray, eps: float = 1e-6) -> np.ndarray:
    """Compute Jacobian of ``func(x)`` using central finite differences."""
    y0 = np.asarray(func(x), dtype=float)
    jac = np.zeros((y0.size, x.size), dtype=float)
    for index in range(x.size):
        dx = np.zeros_like(x)
        dx[index] = eps
        y_plus = np.asarray(func(x + dx), dtype=float)
        y_minus = np.asarray(func(x - dx), dtype=float)
        jac[:, index] = (y_plus - y_minus) / (2.0 * eps)
    return jac


def numerical_manifold_jacobian(func, state, eps: float = 1e-6) -> np.ndarray:
    """Central-difference Jacobian of ``func`` w.r.t. the right tangent space of ``state``.

    ``func`` may return a manifold element (differences taken with ``rminus``)
    or a plain array.
    """
    y0 = func(state)
    columns = []
    for index in range(state.dof):
        dx = np.zeros(state.dof, dtype=float)
        dx[index] = eps
        d_plus = _difference(func(state.rplus(dx)), y0)
        d_minus = _difference(func(state.rplus(-dx)), y0)
        columns.append((d_plus - d_minus) / (2.0 * eps))
    return np.column_stack(columns)


def _difference(value, reference) -> np.ndarray:
    if hasattr(value, "rminus"):
        return value.rminus(reference)
    return np.asarray(value, dtype=float) - np.asarray(reference, dtype=float)


def covariance_ellipse_params(
    mean_xy: np.ndarray,
    covariance_xy: np.ndarray,
    n_std: float = 2.0,
) -> tuple[np.ndarray, float, float, float]:
    """Return covariance ellipse geometry for efficient artist updates.

    Returns
    -------
    tuple[np.ndarray, float, float, float]
        ``(center_xy, width, height, angle_deg)`` for Matplotlib-style ellipses.
    """
    eigenvalues, eigenvectors = np.linalg.eigh(covariance_xy)
    order = np.argsort(eigenvalues)[::-1]
    eigenvalues = eigenvalues[order]
    eigenvectors = eigenvectors[:, order]

    width, height = 2.0 * n_std * np.sqrt(np.maximum(eigenvalues, 0.0))
    angle_deg = np.degrees(np.arctan2(eigenvectors[1, 0], eigenvectors[0, 0]))
    return np.asarray(mean_xy, dtype=float), float(width), float(height), float(angle_deg)
