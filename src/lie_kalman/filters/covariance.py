"""Covariance carriers: a full matrix or a lower-triangular square-root factor.

Both expose ``matrix`` so callers can query the covariance without knowing
how a filter stores it.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from lie_kalman.math_utils import psd_sqrt, symmetrize, triangular_factor


@dataclass(slots=True)
class FullCovariance:
    """Symmetric covariance stored as is."""

    _matrix: np.ndarray

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> "FullCovariance":
        return cls(symmetrize(np.asarray(matrix, dtype=float)))

    @property
    def dim(self) -> int:
        return int(self._matrix.shape[0])

    @property
    def matrix(self) -> np.ndarray:
        return self._matrix

    @matrix.setter
    def matrix(self, value: np.ndarray) -> None:
        self._matrix = symmetrize(np.asarray(value, dtype=float))


@dataclass(slots=True)
class SquareRootCovariance:
    """Covariance ``P = S @ S.T`` carried through its lower-triangular factor ``S``."""

    _factor: np.ndarray

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> "SquareRootCovariance":
        return cls(psd_sqrt(matrix))

    @property
    def dim(self) -> int:
        return int(self._factor.shape[0])

    @property
    def factor(self) -> np.ndarray:
        return self._factor

    @factor.setter
    def factor(self, value: np.ndarray) -> None:
        self._factor = np.asarray(value, dtype=float)

    def set_from_root(self, root: np.ndarray) -> None:
        """Store any (possibly rectangular) root ``A`` of ``P = A @ A.T`` in triangular form."""
        self._factor = triangular_factor(root)

    @property
    def matrix(self) -> np.ndarray:
        return self._factor @ self._factor.T
