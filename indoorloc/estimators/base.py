"""
Base classes for the positioning filters.

This module defines the capability interface shared by every filter in the
bank and the immutable snapshot a filter publishes after each cycle.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from indoorloc.config import FilterConfiguration
from indoorloc.exceptions import InsufficientAnchorsError
from indoorloc.models.types import Anchor, MeasurementFrame, anchor_ids, anchor_positions
from indoorloc.utils import covariance_ellipse


def _read_only(array: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if array is None:
        return None
    array = np.array(array, dtype=float)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class FilterSnapshot:
    """Immutable estimate published after a filter cycle.

    Attributes:
        position: Estimated (x, y).
        state: Full state vector (read-only).
        covariance: State covariance (read-only), None for filters that do
            not track one.
        particles: Particle (x, y) positions for particle filters, else None.

    Example:
        >>> snap = FilterSnapshot((1.0, 2.0), np.zeros(4), np.diag([4.0, 1.0, 1.0, 1.0]))
        >>> snap.variance
        (4.0, 1.0)
    """

    position: Tuple[float, float]
    state: np.ndarray
    covariance: Optional[np.ndarray] = None
    particles: Optional[Tuple[Tuple[float, float], ...]] = None

    def __post_init__(self) -> None:
        x, y = self.position
        object.__setattr__(self, "position", (float(x), float(y)))
        object.__setattr__(self, "state", _read_only(self.state))
        object.__setattr__(self, "covariance", _read_only(self.covariance))
        if self.particles is not None:
            object.__setattr__(
                self,
                "particles",
                tuple((float(px), float(py)) for px, py in self.particles),
            )

    @property
    def variance(self) -> Optional[Tuple[float, float]]:
        """Position variances (varX, varY)."""
        if self.covariance is None:
            return None
        return float(self.covariance[0, 0]), float(self.covariance[1, 1])

    @property
    def ellipse(self) -> Optional[Tuple[float, float, float]]:
        """Position covariance ellipse (major_variance, minor_variance, angle)."""
        if self.covariance is None:
            return None
        return covariance_ellipse(self.covariance)


class BayesianFilter(ABC):
    """Abstract base class for the positioning filters.

    Concrete filters are chosen at configuration time
    (see :func:`indoorloc.session.create_filter`); callers only rely on this
    interface.

    Attributes:
        state_dim: Dimension of the state vector.
        config: Configuration the filter was built from.
        state: Current state estimate.
        covariance: Current state covariance (None if not tracked).
    """

    # Whether predict() takes the previous acceleration as control input
    uses_control_input = True

    # Attributes saved by checkpoint() and put back by restore()
    _checkpoint_attributes: Tuple[str, ...] = ("state", "covariance")

    def __init__(self, state_dim: int, config: FilterConfiguration):
        """
        Initialize the filter.

        Args:
            state_dim: Dimension of the state vector.
            config: Filter configuration.
        """
        self.state_dim = state_dim
        self.config = config
        self.state: Optional[np.ndarray] = None
        self.covariance: Optional[np.ndarray] = None
        self._anchor_ids: Tuple[int, ...] = ()

    @abstractmethod
    def predict(self, u: Optional[np.ndarray] = None) -> None:
        """
        Perform prediction step (time update) over one update interval.

        Args:
            u: Optional control input (acceleration [ax, ay]).
        """
        pass

    @abstractmethod
    def update(self, anchors: Sequence[Anchor], z: np.ndarray) -> None:
        """
        Perform measurement update (correction step).

        Args:
            anchors: Active anchors, ordered like the range part of z.
            z: Measurement vector.
        """
        pass

    def measurement_vector(self, frame: MeasurementFrame) -> np.ndarray:
        """Measurement vector z this filter expects for a frame."""
        return np.asarray(frame.distances, dtype=float)

    def get_state(self) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """
        Get current state estimate and covariance.

        Returns:
            Tuple of (state_vector, covariance_matrix or None).
        """
        if self.state is None:
            raise RuntimeError("Filter not initialized.")
        covariance = None if self.covariance is None else self.covariance.copy()
        return self.state.copy(), covariance

    @property
    def position(self) -> Tuple[float, float]:
        """Estimated (x, y)."""
        state, _ = self.get_state()
        return float(state[0]), float(state[1])

    def particle_positions(self) -> Optional[np.ndarray]:
        """Particle positions (N, 2); None for filters without particles."""
        return None

    def snapshot(self) -> FilterSnapshot:
        """Immutable copy of the current estimate."""
        state, covariance = self.get_state()
        return FilterSnapshot(
            position=(state[0], state[1]),
            state=state,
            covariance=covariance,
            particles=self.particle_positions(),
        )

    def checkpoint(self) -> Dict[str, Any]:
        """Copy of the mutable filter state, for :meth:`restore`."""
        saved = {
            name: copy.deepcopy(getattr(self, name))
            for name in self._checkpoint_attributes
        }
        saved["_anchor_ids"] = self._anchor_ids
        return saved

    def restore(self, checkpoint: Dict[str, Any]) -> None:
        """Roll the filter back to a :meth:`checkpoint`."""
        for name, value in checkpoint.items():
            setattr(self, name, copy.deepcopy(value))

    def _sync_anchors(
        self, anchors: Sequence[Anchor], context: str = "update"
    ) -> Tuple[Anchor, ...]:
        """
        Track the active anchor set by id sequence.

        Calls :meth:`_on_anchor_set_changed` with the new positions when the
        id sequence differs from the previous cycle.

        Raises:
            InsufficientAnchorsError: If no anchor is active.
        """
        anchors = tuple(anchors)
        if len(anchors) == 0:
            raise InsufficientAnchorsError(1, 0, context)

        ids = anchor_ids(anchors)
        if ids != self._anchor_ids:
            self._anchor_ids = ids
            self._on_anchor_set_changed(anchor_positions(anchors))
        return anchors

    def _on_anchor_set_changed(self, positions: np.ndarray) -> None:
        """Hook to rebuild measurement-dependent members for new anchors."""
        pass
