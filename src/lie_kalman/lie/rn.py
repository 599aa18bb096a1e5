"""R^n as an additive group, so plain vectors can live inside a :class:`Bundle`."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, slots=True, eq=False)
class Rn:
    """Real vector of fixed dimension. All Jacobians are identities."""

    coeffs: np.ndarray

    def __post_init__(self) -> None:
        coeffs = np.array(self.coeffs, dtype=float).reshape(-1)
        coeffs.setflags(write=False)
        object.__setattr__(self, "coeffs", coeffs)

    def __repr__(self) -> str:
        return f"Rn({self.coeffs.tolist()})"

    @property
    def dof(self) -> int:
        return int(self.coeffs.size)

    @classmethod
    def identity(cls, dim: int) -> "Rn":
        return cls(np.zeros(dim, dtype=float))

    def as_array(self) -> np.ndarray:
        return self.coeffs.copy()

    def compose(self, other: "Rn") -> "Rn":
        return Rn(self.coeffs + other.coeffs)

    def inverse(self) -> "Rn":
        return Rn(-self.coeffs)

    def between(self, other: "Rn") -> "Rn":
        return Rn(other.coeffs - self.coeffs)

    @classmethod
    def exp(cls, tau: np.ndarray) -> "Rn":
        return cls(tau)

    def log(self) -> np.ndarray:
        return self.coeffs.copy()

    def rplus(self, tau: np.ndarray) -> "Rn":
        return Rn(self.coeffs + np.asarray(tau, dtype=float))

    lplus = rplus

    def rminus(self, other: "Rn") -> np.ndarray:
        return self.coeffs - other.coeffs

    lminus = rminus

    def adj(self) -> np.ndarray:
        return np.eye(self.dof, dtype=float)

    @staticmethod
    def rjac(tau: np.ndarray) -> np.ndarray:
        return np.eye(np.asarray(tau).size, dtype=float)

    ljac = rjac
    rjacinv = rjac
    ljacinv = rjac

    def compose_jacobians(self, other: "Rn") -> tuple[np.ndarray, np.ndarray]:
        return np.eye(self.dof, dtype=float), np.eye(self.dof, dtype=float)

    def inverse_jacobian(self) -> np.ndarray:
        return -np.eye(self.dof, dtype=float)

    def rplus_jacobians(self, tau: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        return np.eye(self.dof, dtype=float), np.eye(self.dof, dtype=float)

    def rminus_jacobians(self, other: "Rn") -> tuple[np.ndarray, np.ndarray]:
        return np.eye(self.dof, dtype=float), -np.eye(self.dof, dtype=float)

    def is_approx(self, other: "Rn", tol: float = 1e-9) -> bool:
        return bool(np.linalg.norm(self.rminus(other)) <= tol)
