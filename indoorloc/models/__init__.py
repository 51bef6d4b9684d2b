"""
Data types, motion models and measurement models for tag positioning.
"""

from .types import (
    Anchor,
    MeasurementFrame,
    active_anchors,
    anchor_ids,
    anchor_positions,
    build_measurement_frame,
    validate_unique_ids,
)
from .motion_models import ConstantAcceleration2D, ConstantVelocity2D
from .measurement_models import (
    RangeAccelerationMeasurement2D,
    RangeMeasurement2D,
    gaussian_log_likelihood,
    measurement_noise_covariance,
)

__all__ = [
    'Anchor',
    'MeasurementFrame',
    'active_anchors',
    'anchor_ids',
    'anchor_positions',
    'build_measurement_frame',
    'validate_unique_ids',
    'ConstantVelocity2D',
    'ConstantAcceleration2D',
    'RangeMeasurement2D',
    'RangeAccelerationMeasurement2D',
    'gaussian_log_likelihood',
    'measurement_noise_covariance',
]
