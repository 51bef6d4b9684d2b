"""
Kalman filter for range-plus-accelerometer tag tracking.

State: x = [px, py, vx, vy, ax, ay] under a constant-acceleration model.
Measurement: z = [r_1, ..., r_N, ax, ay], ranges to the active anchors
followed by the accelerometer reading. The range rows are linearized around
the predicted state at every update; the acceleration rows are linear.

Prediction:
    x_{k|k-1} = F x_{k-1}
    P_{k|k-1} = F P_{k-1} Fᵀ + Q,   Q = G Gᵀ q

Update:
    S = H P Hᵀ + R
    K = P Hᵀ S⁻¹
    x_k = x_{k|k-1} + K (z - h(x_{k|k-1}))
    P_k = P_{k|k-1} - K H P_{k|k-1}
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from indoorloc.config import FilterConfiguration
from indoorloc.estimators.base import BayesianFilter
from indoorloc.estimators.multilateration import multilaterate
from indoorloc.models.measurement_models import (
    RangeAccelerationMeasurement2D,
    measurement_noise_covariance,
)
from indoorloc.models.motion_models import ConstantAcceleration2D
from indoorloc.models.types import Anchor, MeasurementFrame, anchor_ids, anchor_positions
from indoorloc.utils import enforce_covariance, invert
from indoorloc.utils.linalg import RandomSource


class KalmanFilter(BayesianFilter):
    """
    Kalman filter with acceleration observed in the measurement vector.

    The filter is seeded by multilateration of the first ranges, with zero
    velocity and the first accelerometer reading, and unit initial
    covariance.

    Attributes:
        motion_model: Process model providing F, B, G and Q.
        uses_control_input: Whether predict() expects the acceleration as
            control input (False: acceleration is part of z).
        measurement_model: Measurement model for the current anchor set.
        R: Measurement noise covariance for the current anchor set.

    Example:
        >>> anchors = [Anchor(1, (0, 0), True), Anchor(2, (10, 0), True), Anchor(3, (0, 10), True)]
        >>> kf = KalmanFilter(anchors, [5.0, 65 ** 0.5, 45 ** 0.5], acceleration=[0.0, 0.0])
        >>> kf.predict()
        >>> kf.update(anchors, np.array([5.0, 65 ** 0.5, 45 ** 0.5, 0.0, 0.0]))
        >>> np.allclose(kf.position, (3.0, 4.0))
        True
    """

    motion_model = ConstantAcceleration2D
    uses_control_input = False
    _checkpoint_attributes = ("state", "covariance", "measurement_model", "R")

    def __init__(
        self,
        anchors: Sequence[Anchor],
        distances: np.ndarray,
        acceleration: Optional[np.ndarray] = None,
        config: Optional[FilterConfiguration] = None,
        rng: RandomSource = None,
    ):
        """
        Initialize from the first measurement.

        Args:
            anchors: Active anchors (at least 1).
            distances: Range to each anchor.
            acceleration: First accelerometer reading [ax, ay] (zero if None).
            config: Filter configuration (defaults if None).
            rng: Random source for the single-anchor seed.

        Raises:
            InsufficientAnchorsError: If no anchor is active.
            UnderdeterminedGeometryError: If 3+ anchors are collinear.
        """
        super().__init__(self.motion_model.state_dim, config or FilterConfiguration())
        self.measurement_model = None
        self.R: Optional[np.ndarray] = None

        anchors = self._sync_anchors(anchors, "Kalman filter initialization")
        distances = np.asarray(distances, dtype=float).reshape(-1)
        if len(distances) != len(anchors):
            raise ValueError(f"Expected {len(anchors)} distances, got {len(distances)}")

        seed = multilaterate(anchor_positions(anchors), distances, rng)
        self.state, self.covariance = self._initial_estimate(seed, acceleration)

    def _initial_estimate(
        self, seed: np.ndarray, acceleration: Optional[np.ndarray]
    ) -> Tuple[np.ndarray, np.ndarray]:
        if acceleration is None:
            acceleration = np.zeros(2)
        ax, ay = np.asarray(acceleration, dtype=float).reshape(2)
        x0 = np.array([seed[0], seed[1], 0.0, 0.0, ax, ay])
        return x0, np.eye(self.state_dim)

    def _build_measurement(self, positions: np.ndarray):
        model = RangeAccelerationMeasurement2D(positions)
        R = measurement_noise_covariance(
            len(positions),
            self.config.distance_uncertainty,
            self.config.acceleration_uncertainty,
        )
        return model, R

    def _on_anchor_set_changed(self, positions: np.ndarray) -> None:
        self.measurement_model, self.R = self._build_measurement(positions)

    def measurement_vector(self, frame: MeasurementFrame) -> np.ndarray:
        """Measurement vector z for a frame: ranges then acceleration."""
        return np.concatenate([frame.distances, frame.acceleration])

    def predict(self, u: Optional[np.ndarray] = None) -> None:
        """
        Perform prediction step over one update interval.

        Args:
            u: Control input [ax, ay]; ignored by the constant-acceleration
                model, whose acceleration comes from the measurement.
        """
        dt = self.config.update_interval
        F = self.motion_model.F(dt)
        Q = self.motion_model.Q(dt, self.config.process_uncertainty)

        self.state = self.motion_model.f(self.state, u, dt)
        self.covariance = F @ self.covariance @ F.T + Q

    def update(self, anchors: Sequence[Anchor], z: np.ndarray) -> None:
        """
        Perform measurement update.

        A change of the active anchor set (by id sequence) rebuilds the
        measurement model and R before the update; nothing else is reset.

        Args:
            anchors: Active anchors, ordered like the range part of z.
            z: Measurement vector.

        Raises:
            InsufficientAnchorsError: If no anchor is active.
            SingularMatrixError: If the innovation covariance cannot be
                inverted; state and covariance are left untouched.
        """
        anchors = self._sync_anchors(anchors)
        z = self._check_measurement(z, self.measurement_model)

        z_pred = self.measurement_model.h(self.state)
        H = self.measurement_model.H(self.state)

        S = H @ self.covariance @ H.T + self.R
        K = self.covariance @ H.T @ invert(S)

        self.state = self.state + K @ (z - z_pred)
        self.covariance = enforce_covariance(self.covariance - K @ H @ self.covariance)

    def get_innovation(
        self, anchors: Sequence[Anchor], z: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute innovation (measurement residual) and its covariance.

        Useful for consistency checking and outlier detection. Does not
        modify the filter.

        Args:
            anchors: Active anchors, ordered like the range part of z.
            z: Measurement vector.

        Returns:
            Tuple of (innovation, innovation_covariance).
                - innovation: ν = z - h(x̂) (m,)
                - innovation_covariance: S = H P Hᵀ + R (m×m)
        """
        anchors = tuple(anchors)
        if anchor_ids(anchors) == self._anchor_ids:
            model, R = self.measurement_model, self.R
        else:
            model, R = self._build_measurement(anchor_positions(anchors))
        z = self._check_measurement(z, model)

        H = model.H(self.state)
        innovation = z - model.h(self.state)
        innovation_cov = H @ self.covariance @ H.T + R
        return innovation, innovation_cov

    @staticmethod
    def _check_measurement(z: np.ndarray, model) -> np.ndarray:
        z = np.asarray(z, dtype=float).reshape(-1)
        if len(z) != model.measurement_dim:
            raise ValueError(
                f"Measurement must have {model.measurement_dim} entries, got {len(z)}"
            )
        return z
