"""
Error taxonomy for the positioning filters.

Hard errors derive from the built-in exceptions the estimators already raise
(``ValueError`` for bad inputs, ``numpy.linalg.LinAlgError`` for failed
factorizations), so existing handlers keep working.

Conditions that are compensated locally (covariance repair, degenerate
particle weights) are reported with :class:`NumericalDegeneracyWarning`
and never raised.
"""

import numpy as np


class PositioningError(Exception):
    """Base class for errors raised by the positioning core."""


class InsufficientAnchorsError(PositioningError, ValueError):
    """Fewer active anchors than the filter or initializer requires."""

    def __init__(self, required: int, available: int, context: str = ""):
        self.required = required
        self.available = available
        where = f" for {context}" if context else ""
        super().__init__(
            f"Need at least {required} active anchor(s){where}, got {available}"
        )


class UnderdeterminedGeometryError(PositioningError, ValueError):
    """Anchor geometry does not determine a unique position (e.g. colinear)."""


class SingularMatrixError(PositioningError, np.linalg.LinAlgError):
    """LU factorization hit a (near-)zero pivot."""


class NumericalDegeneracyWarning(RuntimeWarning):
    """A numerically degenerate quantity was repaired in place."""
