"""Data types for range-based tag positioning.

This module defines the anchors the tag ranges against and the per-cycle
measurement frame handed to the filters.

Units: positions and distances in cm, accelerations in cm/s².
"""

import dataclasses
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class Anchor:
    """Fixed ranging reference point.

    Attributes:
        id: Unique anchor identifier (hardware network id).
        position: (x, y) position in the floor plane.
        is_active: True when the anchor delivered a range this cycle.

    Example:
        >>> anchor = Anchor(0x666D, (425.0, 0.0))
        >>> anchor.with_active(True).is_active
        True
    """

    id: int
    position: Tuple[float, float]
    is_active: bool = False

    def __post_init__(self) -> None:
        """Validate the anchor and normalize its position to a float tuple."""
        if isinstance(self.id, bool) or not isinstance(self.id, (int, np.integer)):
            raise TypeError(f"Anchor id must be an integer, got {type(self.id)}")

        position = np.asarray(self.position, dtype=float)
        if position.shape != (2,):
            raise ValueError(f"Anchor position must be (x, y), got shape {position.shape}")
        if not np.all(np.isfinite(position)):
            raise ValueError(f"Anchor position must be finite, got {self.position}")

        object.__setattr__(self, "id", int(self.id))
        object.__setattr__(self, "position", (float(position[0]), float(position[1])))
        object.__setattr__(self, "is_active", bool(self.is_active))

    @property
    def x(self) -> float:
        return self.position[0]

    @property
    def y(self) -> float:
        return self.position[1]

    def with_active(self, is_active: bool) -> "Anchor":
        """Copy of this anchor with a different activity flag."""
        return dataclasses.replace(self, is_active=is_active)


def anchor_positions(anchors: Sequence[Anchor]) -> np.ndarray:
    """Anchor positions as an (N, 2) array."""
    if len(anchors) == 0:
        return np.zeros((0, 2))
    return np.array([anchor.position for anchor in anchors], dtype=float)


def anchor_ids(anchors: Sequence[Anchor]) -> Tuple[int, ...]:
    """Anchor ids in sequence order."""
    return tuple(anchor.id for anchor in anchors)


def active_anchors(anchors: Sequence[Anchor]) -> Tuple[Anchor, ...]:
    """Order-preserving subsequence of the active anchors."""
    return tuple(anchor for anchor in anchors if anchor.is_active)


def validate_unique_ids(anchors: Sequence[Anchor]) -> None:
    """Raise ValueError if two anchors share an id."""
    ids = anchor_ids(anchors)
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValueError(f"Anchor ids must be unique, duplicated: {duplicates}")


@dataclass(frozen=True, eq=False)
class MeasurementFrame:
    """One cycle of ranging data.

    Attributes:
        anchors: Active anchors, ordered like ``distances``.
        distances: Measured range to each active anchor, shape (N,).
        acceleration: Accelerometer reading (ax, ay), shape (2,).

    Arrays are stored read-only; the frame is consumed and discarded by the
    filter within one cycle.
    """

    anchors: Tuple[Anchor, ...]
    distances: np.ndarray
    acceleration: np.ndarray = dataclasses.field(default_factory=lambda: np.zeros(2))

    def __post_init__(self) -> None:
        """Validate the frame structure."""
        anchors = tuple(self.anchors)
        for anchor in anchors:
            if not isinstance(anchor, Anchor):
                raise TypeError(f"Frame anchors must be Anchor instances, got {type(anchor)}")
        validate_unique_ids(anchors)

        distances = np.array(self.distances, dtype=float).reshape(-1)
        if len(distances) != len(anchors):
            raise ValueError(
                f"Got {len(distances)} distances for {len(anchors)} active anchors"
            )
        if not np.all(np.isfinite(distances)) or np.any(distances < 0):
            raise ValueError(f"Distances must be finite and non-negative, got {distances}")

        acceleration = np.array(self.acceleration, dtype=float).reshape(-1)
        if acceleration.shape != (2,):
            raise ValueError(
                f"Acceleration must be (ax, ay), got shape {acceleration.shape}"
            )
        if not np.all(np.isfinite(acceleration)):
            raise ValueError(f"Acceleration must be finite, got {acceleration}")

        distances.setflags(write=False)
        acceleration.setflags(write=False)
        object.__setattr__(self, "anchors", anchors)
        object.__setattr__(self, "distances", distances)
        object.__setattr__(self, "acceleration", acceleration)

    @property
    def n_anchors(self) -> int:
        return len(self.anchors)


def build_measurement_frame(
    anchors: Sequence[Anchor],
    ranges_by_id: Mapping[int, float],
    acceleration: Optional[Sequence[float]] = None,
) -> Tuple[Tuple[Anchor, ...], MeasurementFrame]:
    """
    Mark anchors active/inactive from one round of ranging and build a frame.

    An anchor is active when a range was reported for its id and that range
    is non-zero; the ranging hardware reports 0 for failed exchanges.

    Args:
        anchors: All known anchors.
        ranges_by_id: Reported range per anchor id.
        acceleration: Accelerometer reading (ax, ay); missing means zero.

    Returns:
        Tuple of (anchors with updated activity flags, measurement frame).

    Example:
        >>> anchors = [Anchor(1, (0, 0)), Anchor(2, (10, 0)), Anchor(3, (0, 10))]
        >>> updated, frame = build_measurement_frame(anchors, {1: 5.0, 2: 0.0, 3: 7.0})
        >>> [a.is_active for a in updated]
        [True, False, True]
        >>> frame.distances
        array([5., 7.])
    """
    updated = []
    distances = []
    for anchor in anchors:
        distance = ranges_by_id.get(anchor.id)
        is_active = distance is not None and float(distance) != 0.0
        updated.append(anchor.with_active(is_active))
        if is_active:
            distances.append(float(distance))

    if acceleration is None:
        acceleration = (0.0, 0.0)

    updated = tuple(updated)
    frame = MeasurementFrame(active_anchors(updated), np.array(distances), acceleration)
    return updated, frame
