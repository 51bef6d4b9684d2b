"""
Utility functions for the positioning filters.

This module provides the shared linear-algebra primitives (inversion,
Cholesky factorization, covariance repair, Gaussian sampling) and geometric
helpers used across the estimators.
"""

from .linalg import (
    as_generator,
    cholesky_factor,
    enforce_covariance,
    invert,
    repair_to_positive_definite,
    sample_gaussian,
)
from .geometry import (
    anchors_collinear,
    covariance_ellipse,
    normalize_jacobian_singularities,
)

__all__ = [
    'as_generator',
    'cholesky_factor',
    'enforce_covariance',
    'invert',
    'repair_to_positive_definite',
    'sample_gaussian',
    'anchors_collinear',
    'covariance_ellipse',
    'normalize_jacobian_singularities',
]
