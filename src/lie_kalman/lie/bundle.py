r"""Composite manifold made of an ordered tuple of elements.

A bundle ``(X_0, X_1, ...)`` has tangent space ``T_0 x T_1 x ...``. Every
operation acts element-wise and every Jacobian is block-diagonal, with blocks
laid out in declaration order:

.. math::
   \tau = [\tau_0^T, \tau_1^T, \ldots]^T, \quad
   J = \operatorname{diag}(J_0, J_1, \ldots)

The filters only rely on this interface, so the same code runs on a bare
:class:`~lie_kalman.lie.se2.SE2`, on ``Bundle(SE2, Rn(3))`` or on larger
layouts.
"""

from __future__ import annotations

from typing import Iterator

import numpy as np
from scipy.linalg import block_diag


class Bundle:
    """Immutable ordered aggregate of manifold elements."""

    __slots__ = ("_elements", "_blocks")

    def __init__(self, *elements) -> None:
        if not elements:
            raise ValueError("A bundle needs at least one element")
        self._elements = tuple(elements)
        blocks = []
        start = 0
        for element in self._elements:
            blocks.append(slice(start, start + element.dof))
            start += element.dof
        self._blocks = tuple(blocks)

    def __repr__(self) -> str:
        inner = ", ".join(repr(element) for element in self._elements)
        return f"Bundle({inner})"

    def __len__(self) -> int:
        return len(self._elements)

    def __iter__(self) -> Iterator:
        return iter(self._elements)

    def __getitem__(self, index: int):
        return self._elements[index]

    @property
    def elements(self) -> tuple:
        return self._elements

    @property
    def dof(self) -> int:
        return self._blocks[-1].stop

    def element(self, index: int):
        return self._elements[index]

    def block(self, index: int) -> slice:
        """Slice of element ``index`` in the bundle tangent layout."""
        return self._blocks[index]

    def with_element(self, index: int, element) -> "Bundle":
        """Return a copy with element ``index`` replaced."""
        if element.dof != self._elements[index].dof:
            raise ValueError(
                f"Element {index} has {self._elements[index].dof} DoF, replacement has {element.dof}"
            )
        elements = list(self._elements)
        elements[index] = element
        return Bundle(*elements)

    def as_array(self) -> np.ndarray:
        return np.concatenate([element.as_array() for element in self._elements])

    def _split(self, tau: np.ndarray) -> list[np.ndarray]:
        tau = np.asarray(tau, dtype=float).reshape(-1)
        if tau.size != self.dof:
            raise ValueError(f"Tangent vector has size {tau.size}, bundle has {self.dof} DoF")
        return [tau[block] for block in self._blocks]

    def _zip(self, other: "Bundle"):
        if len(other) != len(self):
            raise ValueError("Bundles have different layouts")
        return zip(self._elements, other.elements)

    # Group operations -----------------------------------------------------

    def compose(self, other: "Bundle") -> "Bundle":
        return Bundle(*(a.compose(b) for a, b in self._zip(other)))

    def inverse(self) -> "Bundle":
        return Bundle(*(element.inverse() for element in self._elements))

    def between(self, other: "Bundle") -> "Bundle":
        return Bundle(*(a.between(b) for a, b in self._zip(other)))

    def exp(self, tau: np.ndarray) -> "Bundle":
        """Exponential map laid out like this bundle.

        Only the element types and sizes of the receiver are used. A tangent
        vector alone does not fix the layout, so unlike the element types this
        is not a classmethod; ``element.exp(tau)`` works the same on every type.
        """
        return Bundle(*(element.exp(chunk) for element, chunk in zip(self._elements, self._split(tau))))

    def log(self) -> np.ndarray:
        return np.concatenate([element.log() for element in self._elements])

    def rplus(self, tau: np.ndarray) -> "Bundle":
        return Bundle(*(element.rplus(chunk) for element, chunk in zip(self._elements, self._split(tau))))

    def rminus(self, other: "Bundle") -> np.ndarray:
        return np.concatenate([a.rminus(b) for a, b in self._zip(other)])

    def lplus(self, tau: np.ndarray) -> "Bundle":
        return Bundle(*(element.lplus(chunk) for element, chunk in zip(self._elements, self._split(tau))))

    def lminus(self, other: "Bundle") -> np.ndarray:
        return np.concatenate([a.lminus(b) for a, b in self._zip(other)])

    # Jacobians --------------------------------------------------------------

    def adj(self) -> np.ndarray:
        return block_diag(*(element.adj() for element in self._elements))

    def rjac(self, tau: np.ndarray) -> np.ndarray:
        return block_diag(*(element.rjac(chunk) for element, chunk in zip(self._elements, self._split(tau))))

    def ljac(self, tau: np.ndarray) -> np.ndarray:
        return block_diag(*(element.ljac(chunk) for element, chunk in zip(self._elements, self._split(tau))))

    def rjacinv(self, tau: np.ndarray) -> np.ndarray:
        return block_diag(*(element.rjacinv(chunk) for element, chunk in zip(self._elements, self._split(tau))))

    def ljacinv(self, tau: np.ndarray) -> np.ndarray:
        return block_diag(*(element.ljacinv(chunk) for element, chunk in zip(self._elements, self._split(tau))))

    def compose_jacobians(self, other: "Bundle") -> tuple[np.ndarray, np.ndarray]:
        pairs = [a.compose_jacobians(b) for a, b in self._zip(other)]
        return block_diag(*(p[0] for p in pairs)), block_diag(*(p[1] for p in pairs))

    def inverse_jacobian(self) -> np.ndarray:
        return block_diag(*(element.inverse_jacobian() for element in self._elements))

    def rplus_jacobians(self, tau: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        pairs = [element.rplus_jacobians(chunk) for element, chunk in zip(self._elements, self._split(tau))]
        return block_diag(*(p[0] for p in pairs)), block_diag(*(p[1] for p in pairs))

    def rminus_jacobians(self, other: "Bundle") -> tuple[np.ndarray, np.ndarray]:
        pairs = [a.rminus_jacobians(b) for a, b in self._zip(other)]
        return block_diag(*(p[0] for p in pairs)), block_diag(*(p[1] for p in pairs))

    def is_approx(self, other: "Bundle", tol: float = 1e-9) -> bool:
        return bool(np.linalg.norm(self.rminus(other)) <= tol)
