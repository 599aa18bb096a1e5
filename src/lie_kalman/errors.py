"""Exceptions raised by the filters.

Every failure is local to the filter instance that raised it. Callers driving
several filters can catch :class:`FilterError` around each one and keep the
others running.
"""

from __future__ import annotations

import numpy as np


class FilterError(Exception):
    """Base class for all estimation failures."""


class FilterConstructionError(FilterError, ValueError):
    """Initial state and covariance are inconsistent, or the covariance is not symmetric PSD."""


class SingularInnovationError(FilterError, np.linalg.LinAlgError):
    """The innovation covariance of an update is not positive definite."""


class ConvergenceError(FilterError, RuntimeError):
    """An iterative on-manifold mean did not converge within its iteration bound."""

    def __init__(self, message: str, iterations: int, residual_norm: float) -> None:
        super().__init__(message)
        self.iterations = iterations
        self.residual_norm = residual_norm
