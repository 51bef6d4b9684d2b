"""Range-based indoor tag positioning.

This package contains the filter bank and its supporting components:
- estimators: Multilateration, least squares, KF, EKF and particle filter
- models: Anchors, measurement frames, motion and measurement models
- utils: Linear-algebra primitives and geometry helpers
- session: Per-tag positioning loop with staged configuration changes
"""

import logging

from indoorloc.config import (
    FilterConfiguration,
    FilterKind,
    KalmanKind,
    ParticleKind,
)
from indoorloc.estimators import (
    BayesianFilter,
    ExtendedKalmanFilter,
    FilterSnapshot,
    KalmanFilter,
    LeastSquaresFilter,
    ParticleFilter,
    multilaterate,
)
from indoorloc.exceptions import (
    InsufficientAnchorsError,
    NumericalDegeneracyWarning,
    PositioningError,
    SingularMatrixError,
    UnderdeterminedGeometryError,
)
from indoorloc.models import Anchor, MeasurementFrame
from indoorloc.session import PositioningSession, create_filter

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Anchor",
    "MeasurementFrame",
    "FilterConfiguration",
    "FilterKind",
    "KalmanKind",
    "ParticleKind",
    "BayesianFilter",
    "FilterSnapshot",
    "LeastSquaresFilter",
    "KalmanFilter",
    "ExtendedKalmanFilter",
    "ParticleFilter",
    "multilaterate",
    "PositioningSession",
    "create_filter",
    "PositioningError",
    "InsufficientAnchorsError",
    "UnderdeterminedGeometryError",
    "SingularMatrixError",
    "NumericalDegeneracyWarning",
]
