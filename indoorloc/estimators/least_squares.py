"""
Unfiltered positioning by linearized least squares.

Used when no Bayesian filtering is configured: every cycle re-solves the
position from the current ranges alone, with no motion model and no
uncertainty tracking.
"""

from typing import Optional, Sequence

import numpy as np

from indoorloc.config import FilterConfiguration
from indoorloc.estimators.base import BayesianFilter
from indoorloc.estimators.multilateration import least_squares_position
from indoorloc.models.types import Anchor, anchor_positions


class LeastSquaresFilter(BayesianFilter):
    """
    Per-cycle least-squares position fix.

    State: x = [px, py]; no covariance is tracked.

    Example:
        >>> anchors = [Anchor(1, (0, 0), True), Anchor(2, (10, 0), True), Anchor(3, (0, 10), True)]
        >>> ls = LeastSquaresFilter(anchors, [5.0, 65 ** 0.5, 45 ** 0.5])
        >>> np.round(ls.position, 6)
        array([3., 4.])
    """

    def __init__(
        self,
        anchors: Sequence[Anchor],
        distances: np.ndarray,
        config: Optional[FilterConfiguration] = None,
    ):
        """
        Initialize from a first set of ranges.

        Args:
            anchors: Active anchors (at least 3).
            distances: Range to each anchor.
            config: Filter configuration (defaults if None).

        Raises:
            InsufficientAnchorsError: If fewer than 3 anchors are active.
            UnderdeterminedGeometryError: If the anchors are collinear.
        """
        super().__init__(2, config or FilterConfiguration())
        self.update(anchors, distances)

    def predict(self, u: Optional[np.ndarray] = None) -> None:
        """No motion model: the previous fix is kept until the next update."""
        pass

    def update(self, anchors: Sequence[Anchor], z: np.ndarray) -> None:
        """
        Replace the position with the least-squares fix of this cycle.

        Args:
            anchors: Active anchors (at least 3).
            z: Range to each anchor.
        """
        anchors = self._sync_anchors(anchors, "least-squares positioning")
        self.state = least_squares_position(anchor_positions(anchors), z)
