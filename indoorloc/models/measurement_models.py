"""
Range measurement models for tag positioning.

Provides the measurement models used by the positioning filters:
- Ranges to the active anchors (EKF, particle filter)
- Ranges plus the accelerometer reading (linear Kalman filter)
- Diagonal measurement noise covariance
- Vectorized Gaussian log-likelihood for particle weighting

All models include singularity handling and input validation.
"""

from typing import Optional, Tuple

import numpy as np

from indoorloc.utils import normalize_jacobian_singularities


class RangeMeasurement2D:
    """
    Range-only measurement model for 2D positioning.

    Measurement: z = ||p - anchor|| + noise
    where p = [px, py] is position from state x

    Example:
        >>> anchors = np.array([[0, 0], [10, 0], [10, 10], [0, 10]])
        >>> model = RangeMeasurement2D(anchors)
        >>> x = np.array([5, 5, 1, 0.5])  # [px, py, vx, vy]
        >>> model.h(x).shape
        (4,)
    """

    def __init__(self, anchors: np.ndarray, state_position_indices: Tuple[int, int] = (0, 1)):
        """
        Initialize range measurement model.

        Args:
            anchors: Active anchor positions, shape (N, 2)
            state_position_indices: Indices of [px, py] in state vector (default: (0, 1))
        """
        self.anchors = np.asarray(anchors, dtype=float)
        if self.anchors.ndim != 2 or self.anchors.shape[1] != 2:
            raise ValueError(f"Anchors must be (N, 2) array, got shape {self.anchors.shape}")

        self.n_anchors = len(self.anchors)
        self.pos_idx = state_position_indices

    @property
    def measurement_dim(self) -> int:
        return self.n_anchors

    def h(self, x: np.ndarray) -> np.ndarray:
        """
        Measurement function: predicted ranges.

        Accepts a single state (n,) or a stack of states (M, n), e.g. a
        particle population.

        Args:
            x: State vector(s) containing position at self.pos_idx

        Returns:
            Predicted ranges, shape (N,) or (M, N)
        """
        x = np.asarray(x, dtype=float)
        position = x[..., list(self.pos_idx)]
        diff = position[..., np.newaxis, :] - self.anchors
        return np.linalg.norm(diff, axis=-1)

    def H(self, x: np.ndarray) -> np.ndarray:
        """
        Measurement Jacobian with singularity handling.

        Rows whose range is zero (tag on the anchor) are all zero.

        Args:
            x: State vector

        Returns:
            Jacobian matrix, shape (N, len(x))
        """
        x = np.asarray(x, dtype=float)
        n_states = len(x)
        position = x[list(self.pos_idx)]

        diff = position - self.anchors  # (N, 2)
        ranges = np.linalg.norm(diff, axis=1)  # (N,)

        H_pos = normalize_jacobian_singularities(diff, ranges)  # (N, 2)

        H = np.zeros((self.n_anchors, n_states))
        H[:, self.pos_idx[0]] = H_pos[:, 0]
        H[:, self.pos_idx[1]] = H_pos[:, 1]

        return H


class RangeAccelerationMeasurement2D(RangeMeasurement2D):
    """
    Ranges to the active anchors plus a direct acceleration observation.

    Measurement: z = [r_1, ..., r_N, ax, ay]
    for the constant-acceleration state [px, py, vx, vy, ax, ay].

    The two acceleration rows are linear; their Jacobian block is the
    identity on the acceleration components.

    Example:
        >>> model = RangeAccelerationMeasurement2D(np.array([[0.0, 0.0]]))
        >>> model.h(np.array([3.0, 4.0, 0.0, 0.0, 1.0, -1.0]))
        array([ 5.,  1., -1.])
    """

    def __init__(
        self,
        anchors: np.ndarray,
        state_position_indices: Tuple[int, int] = (0, 1),
        state_acceleration_indices: Tuple[int, int] = (4, 5),
    ):
        super().__init__(anchors, state_position_indices)
        self.acc_idx = state_acceleration_indices

    @property
    def measurement_dim(self) -> int:
        return self.n_anchors + 2

    def h(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        ranges = super().h(x)
        acceleration = x[..., list(self.acc_idx)]
        return np.concatenate([ranges, acceleration], axis=-1)

    def H(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        H_range = super().H(x)

        H_acc = np.zeros((2, len(x)))
        H_acc[0, self.acc_idx[0]] = 1.0
        H_acc[1, self.acc_idx[1]] = 1.0

        return np.vstack([H_range, H_acc])


def measurement_noise_covariance(
    n_anchors: int,
    distance_uncertainty: float,
    acceleration_uncertainty: Optional[float] = None,
) -> np.ndarray:
    """
    Diagonal measurement noise covariance.

    Args:
        n_anchors: Number of active anchors (range rows).
        distance_uncertainty: Variance of each range measurement.
        acceleration_uncertainty: Variance of each accelerometer axis; when
            given, two acceleration rows are appended.

    Returns:
        R matrix, shape (N, N) or (N+2, N+2).

    Example:
        >>> measurement_noise_covariance(2, 100.0, 25.0).diagonal()
        array([100., 100.,  25.,  25.])
    """
    if n_anchors < 0:
        raise ValueError(f"n_anchors must be non-negative, got {n_anchors}")

    diagonal = [float(distance_uncertainty)] * n_anchors
    if acceleration_uncertainty is not None:
        diagonal += [float(acceleration_uncertainty)] * 2
    return np.diag(diagonal)


def gaussian_log_likelihood(
    z: np.ndarray,
    z_pred: np.ndarray,
    R_diagonal: np.ndarray,
) -> np.ndarray:
    """
    Log of the Gaussian likelihood p(z | x) with diagonal noise.

    log p = -0.5 * (m·log(2π) + Σ log σ²_j + Σ (z_j - ẑ_j)² / σ²_j)

    The determinant of a diagonal covariance is the product of its
    diagonal, so no factorization is needed.

    Args:
        z: Measurement vector (m,).
        z_pred: Predicted measurement(s), shape (m,) or (M, m).
        R_diagonal: Measurement noise variances (m,).

    Returns:
        Log-likelihood, scalar or shape (M,).
    """
    z = np.asarray(z, dtype=float)
    z_pred = np.asarray(z_pred, dtype=float)
    R_diagonal = np.asarray(R_diagonal, dtype=float).reshape(-1)

    if z.shape[-1:] != R_diagonal.shape or z_pred.shape[-1] != len(R_diagonal):
        raise ValueError(
            f"Measurement size mismatch: z {z.shape}, z_pred {z_pred.shape}, "
            f"R {R_diagonal.shape}"
        )
    if np.any(R_diagonal <= 0):
        raise ValueError("Measurement variances must be positive")

    m = len(R_diagonal)
    residual = z - z_pred
    mahalanobis = np.sum(residual**2 / R_diagonal, axis=-1)
    log_det = np.sum(np.log(R_diagonal))

    return -0.5 * (m * np.log(2.0 * np.pi) + log_det + mahalanobis)
