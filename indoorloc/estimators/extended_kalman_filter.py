"""
Extended Kalman Filter for range-only tag tracking.

State: x = [px, py, vx, vy] under a constant-velocity model driven by the
accelerometer reading of the previous cycle as control input.
Measurement: z = [r_1, ..., r_N], ranges to the active anchors.

Prediction:
    x̂_k^- = F x̂_{k-1} + B u_k
    P_k^- = F P_{k-1} Fᵀ + Q,   Q = G Gᵀ q

Update (ranges linearized at x̂_k^-):
    H_k = ∂h/∂x|_{x̂_k^-}
    K_k = P_k^- H_kᵀ (H_k P_k^- H_kᵀ + R)⁻¹
    x̂_k = x̂_k^- + K_k (z - h(x̂_k^-))
    P_k = P_k^- - K_k H_k P_k^-
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from indoorloc.config import FilterConfiguration
from indoorloc.estimators.kalman_filter import KalmanFilter
from indoorloc.models.measurement_models import (
    RangeMeasurement2D,
    measurement_noise_covariance,
)
from indoorloc.models.motion_models import ConstantVelocity2D
from indoorloc.models.types import Anchor, MeasurementFrame
from indoorloc.utils.linalg import RandomSource


class ExtendedKalmanFilter(KalmanFilter):
    """
    Extended Kalman Filter with acceleration as control input.

    Seeded by multilateration of the first ranges with zero velocity and
    initial covariance P0 = 10 · distance_uncertainty · I.

    Example:
        >>> anchors = [Anchor(1, (0, 0), True), Anchor(2, (10, 0), True), Anchor(3, (0, 10), True)]
        >>> ekf = ExtendedKalmanFilter(anchors, [5.0, 65 ** 0.5, 45 ** 0.5])
        >>> ekf.covariance[0, 0]
        1000.0
    """

    motion_model = ConstantVelocity2D
    uses_control_input = True

    # Initial covariance is this multiple of the range variance
    INITIAL_COVARIANCE_SCALE = 10.0

    def __init__(
        self,
        anchors: Sequence[Anchor],
        distances: np.ndarray,
        config: Optional[FilterConfiguration] = None,
        rng: RandomSource = None,
    ):
        """
        Initialize from the first set of ranges.

        Args:
            anchors: Active anchors (at least 1).
            distances: Range to each anchor.
            config: Filter configuration (defaults if None).
            rng: Random source for the single-anchor seed.

        Raises:
            InsufficientAnchorsError: If no anchor is active.
            UnderdeterminedGeometryError: If 3+ anchors are collinear.
        """
        super().__init__(anchors, distances, None, config, rng)

    def _initial_estimate(
        self, seed: np.ndarray, acceleration: Optional[np.ndarray]
    ) -> Tuple[np.ndarray, np.ndarray]:
        x0 = np.array([seed[0], seed[1], 0.0, 0.0])
        P0 = self.INITIAL_COVARIANCE_SCALE * self.config.distance_uncertainty * np.eye(4)
        return x0, P0

    def _build_measurement(self, positions: np.ndarray):
        model = RangeMeasurement2D(positions)
        R = measurement_noise_covariance(len(positions), self.config.distance_uncertainty)
        return model, R

    def measurement_vector(self, frame: MeasurementFrame) -> np.ndarray:
        """Measurement vector z for a frame: the ranges."""
        return np.asarray(frame.distances, dtype=float)

    def predict(self, u: Optional[np.ndarray] = None) -> None:
        """
        Perform prediction step over one update interval.

        Args:
            u: Control input [ax, ay], the previous accelerometer reading.
                If None, assumes zero control.
        """
        super().predict(u)
