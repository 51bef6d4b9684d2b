"""
Positioning session: owns the anchors, the configuration and the active
filter, and runs one predict/update cycle per measurement frame.

A session replaces process-wide "current filter" state. Each cycle:

1. A staged configuration, if any, is swapped in and the filter dropped.
2. Without a filter, one is built from the frame and its seed is published.
3. Otherwise the filter predicts (control input: the previous frame's
   acceleration) and updates with the frame's measurement vector.

Readers only see immutable :class:`FilterSnapshot` values.
"""

import logging
import threading
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np

from indoorloc.config import FilterConfiguration, FilterKind, KalmanKind
from indoorloc.estimators.base import BayesianFilter, FilterSnapshot
from indoorloc.estimators.extended_kalman_filter import ExtendedKalmanFilter
from indoorloc.estimators.kalman_filter import KalmanFilter
from indoorloc.estimators.least_squares import LeastSquaresFilter
from indoorloc.estimators.particle_filter import ParticleFilter
from indoorloc.exceptions import PositioningError, SingularMatrixError
from indoorloc.models.types import (
    Anchor,
    MeasurementFrame,
    build_measurement_frame,
    validate_unique_ids,
)
from indoorloc.utils import as_generator
from indoorloc.utils.linalg import RandomSource

logger = logging.getLogger(__name__)


def create_filter(
    config: FilterConfiguration,
    anchors: Sequence[Anchor],
    distances: np.ndarray,
    acceleration: Optional[np.ndarray] = None,
    rng: RandomSource = None,
) -> BayesianFilter:
    """
    Build the filter selected by a configuration from a first measurement.

    Args:
        config: Filter configuration.
        anchors: Active anchors.
        distances: Range to each active anchor.
        acceleration: Accelerometer reading [ax, ay].
        rng: Random source for stochastic initialization.

    Returns:
        Initialized filter.

    Raises:
        InsufficientAnchorsError: If the filter needs more active anchors.
        UnderdeterminedGeometryError: If the anchor geometry is degenerate.

    Example:
        >>> anchors = [Anchor(1, (0, 0), True), Anchor(2, (10, 0), True), Anchor(3, (0, 10), True)]
        >>> ranges = [5.0, 65 ** 0.5, 45 ** 0.5]
        >>> type(create_filter(FilterConfiguration(), anchors, ranges)).__name__
        'ExtendedKalmanFilter'
    """
    if config.filter_kind is FilterKind.NONE:
        return LeastSquaresFilter(anchors, distances, config)

    if config.filter_kind is FilterKind.KALMAN:
        if config.kalman_kind is KalmanKind.LINEAR:
            return KalmanFilter(anchors, distances, acceleration, config, rng)
        return ExtendedKalmanFilter(anchors, distances, config, rng)

    if config.filter_kind is FilterKind.PARTICLE:
        return ParticleFilter(anchors, distances, config, rng)

    raise ValueError(f"Unsupported filter kind: {config.filter_kind}")


class PositioningSession:
    """
    Single-tag positioning loop.

    Cycles are serialized; published snapshots can be read from any thread.

    Attributes:
        skipped_cycles: Number of cycles dropped after a singular update.

    Example:
        >>> session = PositioningSession(
        ...     [Anchor(1, (0, 0)), Anchor(2, (10, 0)), Anchor(3, (0, 10))]
        ... )
        >>> frame = session.frame_from_ranges({1: 5.0, 2: 65 ** 0.5, 3: 45 ** 0.5})
        >>> snapshot = session.process_frame(frame)
        >>> np.allclose(snapshot.position, (3.0, 4.0))
        True
    """

    def __init__(
        self,
        anchors: Sequence[Anchor] = (),
        config: Optional[FilterConfiguration] = None,
        rng: RandomSource = None,
    ):
        anchors = tuple(anchors)
        validate_unique_ids(anchors)

        self._anchors: Tuple[Anchor, ...] = anchors
        self._config = config or FilterConfiguration()
        self._pending_config: Optional[FilterConfiguration] = None
        self._rng = as_generator(rng)

        self._filter: Optional[BayesianFilter] = None
        self._previous_acceleration: Optional[np.ndarray] = None
        self._snapshot: Optional[FilterSnapshot] = None
        self.skipped_cycles = 0

        self._cycle_lock = threading.Lock()
        self._snapshot_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Anchors and configuration
    # ------------------------------------------------------------------

    @property
    def anchors(self) -> Tuple[Anchor, ...]:
        return self._anchors

    @property
    def config(self) -> FilterConfiguration:
        """Configuration in effect (a staged one applies from the next cycle)."""
        return self._config

    @property
    def is_initialized(self) -> bool:
        return self._filter is not None

    def add_anchor(self, anchor: Anchor) -> None:
        """Register an anchor; ids must be unique."""
        with self._cycle_lock:
            anchors = self._anchors + (anchor,)
            validate_unique_ids(anchors)
            self._anchors = anchors

    def remove_anchor(self, anchor_id: int) -> Anchor:
        """Unregister an anchor by id and return it."""
        with self._cycle_lock:
            for anchor in self._anchors:
                if anchor.id == anchor_id:
                    self._anchors = tuple(a for a in self._anchors if a.id != anchor_id)
                    return anchor
        raise KeyError(f"No anchor with id {anchor_id}")

    def configure(self, config: FilterConfiguration) -> None:
        """
        Stage a new configuration.

        The current filter keeps running until the start of the next cycle,
        where it is replaced by a filter built from the new configuration.
        """
        if not isinstance(config, FilterConfiguration):
            raise TypeError(f"Expected FilterConfiguration, got {type(config)}")
        with self._cycle_lock:
            self._pending_config = config
        logger.info(f"Staged configuration change: {config.filter_kind.value} filter")

    def reset(self) -> None:
        """Drop the filter; the next frame re-initializes it."""
        with self._cycle_lock:
            self._filter = None
            self._previous_acceleration = None

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def frame_from_ranges(
        self,
        ranges_by_id: Mapping[int, float],
        acceleration: Optional[Sequence[float]] = None,
    ) -> MeasurementFrame:
        """
        Mark anchors active from one round of ranging and build a frame.

        Args:
            ranges_by_id: Reported range per anchor id (0 = no range).
            acceleration: Accelerometer reading (ax, ay).

        Returns:
            Measurement frame over the active anchors.
        """
        with self._cycle_lock:
            self._anchors, frame = build_measurement_frame(
                self._anchors, ranges_by_id, acceleration
            )
        return frame

    def process_frame(self, frame: MeasurementFrame) -> Optional[FilterSnapshot]:
        """
        Run one filter cycle and publish the resulting snapshot.

        Args:
            frame: Measurement frame over the active anchors.

        Returns:
            The published snapshot. After a skipped cycle this is the
            previously published snapshot.

        Raises:
            InsufficientAnchorsError: Too few active anchors for the filter.
            UnderdeterminedGeometryError: Degenerate anchor geometry at
                initialization.
        """
        with self._cycle_lock:
            self._apply_pending_config()
            if self._filter is None:
                return self._initialize(frame)
            return self._step(frame)

    def process_ranges(
        self,
        ranges_by_id: Mapping[int, float],
        acceleration: Optional[Sequence[float]] = None,
    ) -> Optional[FilterSnapshot]:
        """Build a frame from raw ranges and process it."""
        return self.process_frame(self.frame_from_ranges(ranges_by_id, acceleration))

    def _apply_pending_config(self) -> None:
        if self._pending_config is None:
            return
        self._config = self._pending_config
        self._pending_config = None
        self._filter = None
        self._previous_acceleration = None
        logger.info(f"Applied configuration: {self._config.to_dict()}")

    def _initialize(self, frame: MeasurementFrame) -> FilterSnapshot:
        self._filter = create_filter(
            self._config, frame.anchors, frame.distances, frame.acceleration, self._rng
        )
        self._previous_acceleration = frame.acceleration
        logger.info(
            f"Initialized {type(self._filter).__name__} from "
            f"{frame.n_anchors} anchor(s)"
        )
        return self._publish(self._filter.snapshot())

    def _step(self, frame: MeasurementFrame) -> Optional[FilterSnapshot]:
        estimator = self._filter
        saved = estimator.checkpoint()
        u = self._previous_acceleration if estimator.uses_control_input else None

        try:
            estimator.predict(u)
            estimator.update(frame.anchors, estimator.measurement_vector(frame))
        except SingularMatrixError as e:
            estimator.restore(saved)
            self.skipped_cycles += 1
            logger.warning(f"Skipping cycle, singular update: {e}")
            return self.latest_snapshot()
        except PositioningError:
            estimator.restore(saved)
            raise

        self._previous_acceleration = frame.acceleration
        snapshot = self._publish(estimator.snapshot())
        logger.debug(
            f"Cycle with {frame.n_anchors} anchor(s): position "
            f"({snapshot.position[0]:.1f}, {snapshot.position[1]:.1f})"
        )
        return snapshot

    # ------------------------------------------------------------------
    # Published output
    # ------------------------------------------------------------------

    def _publish(self, snapshot: FilterSnapshot) -> FilterSnapshot:
        with self._snapshot_lock:
            self._snapshot = snapshot
        return snapshot

    def latest_snapshot(self) -> Optional[FilterSnapshot]:
        """Last published snapshot, None before the first cycle."""
        with self._snapshot_lock:
            return self._snapshot

    @property
    def snapshot(self) -> Optional[FilterSnapshot]:
        return self.latest_snapshot()
