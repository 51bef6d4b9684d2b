"""
Geometric utilities for range-based positioning.

Provides functions for:
- Singularity handling in range Jacobians
- Anchor collinearity checks
- Covariance ellipse parameters for display
"""

import warnings
from typing import Tuple

import numpy as np

from indoorloc.exceptions import NumericalDegeneracyWarning

# Ranges at or below this value are treated as "tag sits on the anchor"
EPSILON_RANGE = 1e-10


def normalize_jacobian_singularities(
    diff: np.ndarray,
    ranges: np.ndarray,
    epsilon: float = EPSILON_RANGE
) -> np.ndarray:
    """
    Safely compute normalized range Jacobian rows, avoiding singularities.

    Computes H[i] = diff[i] / range[i] with protection against division by
    zero when the tag position coincides with an anchor.

    Args:
        diff: Difference vectors (position - anchor), shape (N, 2)
        ranges: Range values, shape (N,)
        epsilon: Ranges at or below this threshold are singular

    Returns:
        Normalized Jacobian rows, shape (N, 2). Singular rows are zero.

    Example:
        >>> diff = np.array([[3.0, 4.0], [0.0, 0.0]])
        >>> ranges = np.array([5.0, 0.0])
        >>> normalize_jacobian_singularities(diff, ranges)[1]
        array([0., 0.])
    """
    diff = np.asarray(diff, dtype=float)
    ranges = np.asarray(ranges, dtype=float).reshape(-1)

    singular_mask = ranges <= epsilon
    ranges_safe = np.where(singular_mask, 1.0, ranges)

    H = diff / ranges_safe[:, np.newaxis]

    if np.any(singular_mask):
        H[singular_mask, :] = 0.0
        warnings.warn(
            f"{int(np.sum(singular_mask))} range measurement(s) at singularity "
            "(position coincides with anchor). Setting Jacobian rows to zero.",
            NumericalDegeneracyWarning
        )

    return H


def covariance_ellipse(covariance: np.ndarray) -> Tuple[float, float, float]:
    """
    Ellipse parameters of a 2D position covariance.

    Args:
        covariance: Covariance matrix whose upper-left 2×2 block is the
            position covariance.

    Returns:
        Tuple of (major_variance, minor_variance, angle):
            - major_variance: larger eigenvalue
            - minor_variance: smaller eigenvalue
            - angle: orientation of the major axis w.r.t. the x axis, radians
              in (-pi/2, pi/2]

    Example:
        >>> major, minor, angle = covariance_ellipse(np.diag([4.0, 1.0]))
        >>> (major, minor, angle)
        (4.0, 1.0, 0.0)
    """
    P = np.asarray(covariance, dtype=float)[:2, :2]
    P = 0.5 * (P + P.T)

    eigenvalues, eigenvectors = np.linalg.eigh(P)
    minor, major = float(eigenvalues[0]), float(eigenvalues[1])

    vx, vy = eigenvectors[:, 1]
    angle = float(np.arctan2(vy, vx))
    # Axis direction is sign-free
    if angle <= -np.pi / 2:
        angle += np.pi
    elif angle > np.pi / 2:
        angle -= np.pi

    return major, minor, angle


def anchors_collinear(positions: np.ndarray, rtol: float = 1e-9) -> bool:
    """
    Check whether 2D anchor positions lie on a single line.

    Collinear anchors cannot fix a 2D position by ranging alone: the mirror
    image across the line fits the ranges equally well.

    Args:
        positions: Anchor positions, shape (N, 2)
        rtol: Relative tolerance on the smaller singular value of the
            centered positions

    Returns:
        True if fewer than 3 anchors or all anchors are (nearly) collinear.

    Example:
        >>> anchors_collinear(np.array([[0, 0], [1, 1], [2, 2]]))
        True
        >>> anchors_collinear(np.array([[0, 0], [10, 0], [0, 10]]))
        False
    """
    positions = np.asarray(positions, dtype=float)
    if len(positions) < 3:
        return True

    centered = positions - positions.mean(axis=0)
    singular_values = np.linalg.svd(centered, compute_uv=False)
    if singular_values[0] == 0.0:
        return True
    return bool(singular_values[-1] <= rtol * singular_values[0])
