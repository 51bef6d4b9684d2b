"""
Closed-form multilateration for filter initialization.

Turns one set of ranges into a position seed, with a dedicated rule for each
anchor count:

- 1 anchor: a random point on the range circle
- 2 anchors: circle-circle intersection, with fallbacks when the circles do
  not intersect
- 3+ anchors: linearized least squares (last anchor as reference)

The least-squares branch linearizes the range equations by subtracting the
reference equation from the others:

    -2 (x_i - x_n) x - 2 (y_i - y_n) y = d_i² - d_n² - (x_i² - x_n²) - (y_i² - y_n²)
"""

import numpy as np

from indoorloc.exceptions import (
    InsufficientAnchorsError,
    SingularMatrixError,
    UnderdeterminedGeometryError,
)
from indoorloc.utils import anchors_collinear, as_generator, invert
from indoorloc.utils.linalg import RandomSource


def _validate(anchor_positions: np.ndarray, distances: np.ndarray):
    anchors = np.asarray(anchor_positions, dtype=float)
    ranges = np.asarray(distances, dtype=float).reshape(-1)

    if anchors.size == 0:
        raise InsufficientAnchorsError(1, 0, "multilateration")
    anchors = np.atleast_2d(anchors)
    if anchors.ndim != 2 or anchors.shape[1] != 2:
        raise ValueError(f"Anchors must be (N, 2) array, got shape {anchors.shape}")
    if len(ranges) != len(anchors):
        raise ValueError(f"Expected {len(anchors)} distances, got {len(ranges)}")

    return anchors, ranges


def multilaterate(
    anchor_positions: np.ndarray,
    distances: np.ndarray,
    rng: RandomSource = None,
) -> np.ndarray:
    """
    Initial position estimate from ranges to the active anchors.

    Args:
        anchor_positions: Active anchor positions, shape (N, 2).
        distances: Measured range to each anchor, shape (N,).
        rng: Random source for the single-anchor case.

    Returns:
        Position estimate [x, y].

    Raises:
        InsufficientAnchorsError: If no anchor is given.
        UnderdeterminedGeometryError: If 3+ anchors are collinear.
        ValueError: If shapes are inconsistent.

    Example:
        >>> anchors = np.array([[0.0, 0.0], [10.0, 0.0], [0.0, 10.0]])
        >>> multilaterate(anchors, np.array([5.0, np.sqrt(65.0), np.sqrt(45.0)]))
        array([3., 4.])
    """
    anchors, ranges = _validate(anchor_positions, distances)

    if len(anchors) == 1:
        return point_on_circle(anchors[0], ranges[0], rng)
    if len(anchors) == 2:
        return circle_intersection(anchors[0], ranges[0], anchors[1], ranges[1])
    return least_squares_position(anchors, ranges)


def point_on_circle(
    center: np.ndarray,
    radius: float,
    rng: RandomSource = None,
) -> np.ndarray:
    """Point at a uniformly random bearing on the circle around ``center``."""
    rng = as_generator(rng)
    theta = rng.uniform(0.0, 2.0 * np.pi)
    center = np.asarray(center, dtype=float)
    return center + radius * np.array([np.cos(theta), np.sin(theta)])


def circle_intersection(
    p0: np.ndarray,
    r0: float,
    p1: np.ndarray,
    r1: float,
) -> np.ndarray:
    """
    One intersection point of two range circles.

    Fallbacks, checked in order:
        1. Circles do not reach each other (r0 + r1 < d): the point at
           distance r0 from p0 on the segment toward p1.
        2. One circle lies inside the other (|r0 - r1| > d), including
           coincident anchors: p0 + (r0, 0).
        3. Otherwise the intersection on the right-hand side of p0 -> p1.

    Args:
        p0: First anchor position (2,).
        r0: Range to the first anchor.
        p1: Second anchor position (2,).
        r1: Range to the second anchor.

    Returns:
        Position estimate [x, y].

    Example:
        >>> circle_intersection(np.array([0.0, 0.0]), 6.0, np.array([10.0, 0.0]), 8.0)
        array([ 3.6, -4.8])
    """
    p0 = np.asarray(p0, dtype=float)
    p1 = np.asarray(p1, dtype=float)
    delta = p1 - p0
    d = float(np.hypot(delta[0], delta[1]))

    if r0 + r1 < d:
        return p0 + r0 * delta / d

    if abs(r0 - r1) > d or d == 0.0:
        return p0 + np.array([r0, 0.0])

    # Distance from p0 to the chord midpoint, and half chord length
    a = (r0**2 - r1**2 + d**2) / (2.0 * d)
    h = np.sqrt(max(r0**2 - a**2, 0.0))

    x2, y2 = p0 + a * delta / d
    return np.array([
        x2 + h * delta[1] / d,
        y2 - h * delta[0] / d,
    ])


def least_squares_position(anchor_positions: np.ndarray, distances: np.ndarray) -> np.ndarray:
    """
    Linearized least-squares position from 3 or more ranges.

    Solves A p = b with A⁻¹ b for exactly 3 anchors and with the normal
    equations (AᵀA)⁻¹ Aᵀ b otherwise.

    Args:
        anchor_positions: Anchor positions, shape (N, 2), N >= 3.
        distances: Ranges, shape (N,).

    Returns:
        Position estimate [x, y].

    Raises:
        InsufficientAnchorsError: If fewer than 3 anchors are given.
        UnderdeterminedGeometryError: If the anchors are collinear.
    """
    anchors, ranges = _validate(anchor_positions, distances)
    n = len(anchors)
    if n < 3:
        raise InsufficientAnchorsError(3, n, "least-squares positioning")

    if anchors_collinear(anchors):
        raise UnderdeterminedGeometryError(
            f"{n} anchors are collinear; position is ambiguous"
        )

    ref, d_ref = anchors[-1], ranges[-1]
    others, d_others = anchors[:-1], ranges[:-1]

    A = -2.0 * (others - ref)
    b = (
        d_others**2 - d_ref**2
        - (others[:, 0]**2 - ref[0]**2)
        - (others[:, 1]**2 - ref[1]**2)
    )

    try:
        if n == 3:
            return invert(A) @ b
        return invert(A.T @ A) @ A.T @ b
    except SingularMatrixError as e:
        raise UnderdeterminedGeometryError(
            f"Anchor geometry is degenerate: {e}"
        ) from e
