r"""SE(2): rigid motions of the plane.

An element is stored as ``(x, y, angle)`` and represents

.. math::
   X = \begin{bmatrix} \cos\theta & -\sin\theta & x \\
                       \sin\theta & \cos\theta & y \\
                       0 & 0 & 1 \end{bmatrix}

Tangent vectors are ordered :math:`\tau = [\rho_x, \rho_y, \theta]`. The
exponential map follows the arc of radius :math:`\|\rho\| / \theta`:

.. math::
   \operatorname{Exp}(\tau) = (V(\theta)\rho, \theta), \quad
   V(\theta) = \begin{bmatrix} A & -B \\ B & A \end{bmatrix}, \quad
   A = \frac{\sin\theta}{\theta}, \; B = \frac{1-\cos\theta}{\theta}

Below machine epsilon the Taylor expansions of ``A`` and ``B`` are used, so a
zero angle gives an exact straight-line translation.

Jacobians follow the right-perturbation convention
``J = d(f(X ⊕ δ) ⊖ f(X)) / dδ``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from lie_kalman.math_utils import wrap_angle

_EPS = float(np.finfo(float).eps)


def _arc_coefficients(theta: float) -> tuple[float, float]:
    """Return ``(sin(t)/t, (1-cos(t))/t)`` with a series expansion near zero."""
    theta_sq = theta * theta
    if theta_sq < _EPS:
        return 1.0 - theta_sq / 6.0, 0.5 * theta - theta * theta_sq / 24.0
    half_sin = np.sin(0.5 * theta)
    return float(np.sin(theta) / theta), float(2.0 * half_sin * half_sin / theta)


@dataclass(frozen=True, slots=True)
class SE2:
    """Planar pose ``(x, y, angle)`` with angle wrapped to ``[-pi, pi)``."""

    DOF: ClassVar[int] = 3

    x: float = 0.0
    y: float = 0.0
    angle: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", float(self.x))
        object.__setattr__(self, "y", float(self.y))
        object.__setattr__(self, "angle", float(wrap_angle(float(self.angle))))

    @property
    def dof(self) -> int:
        return self.DOF

    @classmethod
    def identity(cls) -> "SE2":
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def from_array(cls, values: np.ndarray) -> "SE2":
        """Build from ``[x, y, angle]``."""
        x, y, angle = np.asarray(values, dtype=float)
        return cls(x, y, angle)

    def as_array(self) -> np.ndarray:
        """Return ``[x, y, angle]`` as a numpy array."""
        return np.array([self.x, self.y, self.angle], dtype=float)

    def translation(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)

    def rotation(self) -> np.ndarray:
        c, s = np.cos(self.angle), np.sin(self.angle)
        return np.array([[c, -s], [s, c]], dtype=float)

    def transform(self) -> np.ndarray:
        """Return the 3x3 homogeneous matrix."""
        matrix = np.eye(3, dtype=float)
        matrix[:2, :2] = self.rotation()
        matrix[:2, 2] = self.translation()
        return matrix

    # Group operations -----------------------------------------------------

    def compose(self, other: "SE2") -> "SE2":
        t = self.translation() + self.rotation() @ other.translation()
        return SE2(t[0], t[1], self.angle + other.angle)

    def inverse(self) -> "SE2":
        t = -self.rotation().T @ self.translation()
        return SE2(t[0], t[1], -self.angle)

    def between(self, other: "SE2") -> "SE2":
        """Return ``self^-1 ∘ other``."""
        return self.inverse().compose(other)

    def act(self, point: np.ndarray) -> np.ndarray:
        """Transform a point from the local frame to the world frame."""
        return self.translation() + self.rotation() @ np.asarray(point, dtype=float)

    def inverse_act(self, point: np.ndarray) -> np.ndarray:
        """Transform a world-frame point into the local frame, ``X^-1 · p``."""
        return self.rotation().T @ (np.asarray(point, dtype=float) - self.translation())

    # Exp / Log --------------------------------------------------------------

    @classmethod
    def exp(cls, tau: np.ndarray) -> "SE2":
        rho_x, rho_y, theta = np.asarray(tau, dtype=float)
        a, b = _arc_coefficients(theta)
        return cls(a * rho_x - b * rho_y, b * rho_x + a * rho_y, theta)

    def log(self) -> np.ndarray:
        theta = self.angle
        a, b = _arc_coefficients(theta)
        den = a * a + b * b
        rho_x = (a * self.x + b * self.y) / den
        rho_y = (-b * self.x + a * self.y) / den
        return np.array([rho_x, rho_y, theta], dtype=float)

    def rplus(self, tau: np.ndarray) -> "SE2":
        """Return ``self ∘ Exp(tau)``."""
        return self.compose(SE2.exp(tau))

    def rminus(self, other: "SE2") -> np.ndarray:
        """Return ``Log(other^-1 ∘ self)``."""
        return other.between(self).log()

    def lplus(self, tau: np.ndarray) -> "SE2":
        """Return ``Exp(tau) ∘ self``."""
        return SE2.exp(tau).compose(self)

    def lminus(self, other: "SE2") -> np.ndarray:
        """Return ``Log(self ∘ other^-1)``."""
        return self.compose(other.inverse()).log()

    # Jacobians --------------------------------------------------------------

    def adj(self) -> np.ndarray:
        c, s = np.cos(self.angle), np.sin(self.angle)
        return np.array([[c, -s, self.y], [s, c, -self.x], [0.0, 0.0, 1.0]], dtype=float)

    @staticmethod
    def rjac(tau: np.ndarray) -> np.ndarray:
        """Right Jacobian of SE(2) at ``tau``."""
        rho_x, rho_y, theta = np.asarray(tau, dtype=float)
        a, b = _arc_coefficients(theta)
        theta_sq = theta * theta
        if theta_sq < _EPS:
            j02 = -0.5 * rho_y + theta * rho_x / 6.0
            j12 = 0.5 * rho_x + theta * rho_y / 6.0
        else:
            c, s = np.cos(theta), np.sin(theta)
            j02 = (theta * rho_x - rho_y + rho_y * c - rho_x * s) / theta_sq
            j12 = (rho_x + theta * rho_y - rho_x * c - rho_y * s) / theta_sq
        return np.array([[a, b, j02], [-b, a, j12], [0.0, 0.0, 1.0]], dtype=float)

    @staticmethod
    def ljac(tau: np.ndarray) -> np.ndarray:
        """Left Jacobian, ``Jl(tau) = Jr(-tau)``."""
        return SE2.rjac(-np.asarray(tau, dtype=float))

    @staticmethod
    def rjacinv(tau: np.ndarray) -> np.ndarray:
        return np.linalg.inv(SE2.rjac(tau))

    @staticmethod
    def ljacinv(tau: np.ndarray) -> np.ndarray:
        return np.linalg.inv(SE2.ljac(tau))

    def compose_jacobians(self, other: "SE2") -> tuple[np.ndarray, np.ndarray]:
        """Return ``(J_self, J_other)`` of ``self ∘ other``."""
        return other.inverse().adj(), np.eye(3, dtype=float)

    def inverse_jacobian(self) -> np.ndarray:
        return -self.adj()

    def rplus_jacobians(self, tau: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(J_self, J_tau)`` of ``self ⊕ tau``."""
        tau = np.asarray(tau, dtype=float)
        return SE2.exp(-tau).adj(), SE2.rjac(tau)

    def rminus_jacobians(self, other: "SE2") -> tuple[np.ndarray, np.ndarray]:
        """Return ``(J_self, J_other)`` of ``self ⊖ other``."""
        tau = self.rminus(other)
        return SE2.rjacinv(tau), -SE2.ljacinv(tau)

    def is_approx(self, other: "SE2", tol: float = 1e-9) -> bool:
        return bool(np.linalg.norm(self.rminus(other)) <= tol)
