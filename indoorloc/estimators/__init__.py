"""
Positioning filters.

Available estimators:
    - Multilateration initializer (1, 2 and 3+ anchors)
    - Least-squares positioning (no filtering)
    - Kalman Filter (constant acceleration, acceleration measured)
    - Extended Kalman Filter (constant velocity, acceleration as input)
    - Particle Filter (bootstrap and regularized)
"""

from indoorloc.estimators.base import BayesianFilter, FilterSnapshot
from indoorloc.estimators.multilateration import (
    circle_intersection,
    least_squares_position,
    multilaterate,
    point_on_circle,
)
from indoorloc.estimators.least_squares import LeastSquaresFilter
from indoorloc.estimators.kalman_filter import KalmanFilter
from indoorloc.estimators.extended_kalman_filter import ExtendedKalmanFilter
from indoorloc.estimators.particle_filter import Particle, ParticleFilter, optimal_bandwidth

__all__ = [
    # Interface
    "BayesianFilter",
    "FilterSnapshot",
    # Initialization
    "multilaterate",
    "point_on_circle",
    "circle_intersection",
    "least_squares_position",
    # Filters
    "LeastSquaresFilter",
    "KalmanFilter",
    "ExtendedKalmanFilter",
    "ParticleFilter",
    "Particle",
    "optimal_bandwidth",
]
