"""Filter configuration for the positioning session.

This module defines the filter-kind enumerations and the immutable
configuration value that selects and parameterizes the active filter.
A configuration is never mutated in place: changing any field means building
a new value and handing it to the session, which swaps in a freshly
constructed filter before the next cycle.

Units follow the ranging hardware: distances in cm, accelerations in cm/s²,
uncertainties are variances in the corresponding squared units.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar


class FilterKind(Enum):
    """Which estimator drives the positioning loop."""

    NONE = "none"          # plain least-squares multilateration, no filtering
    KALMAN = "kalman"
    PARTICLE = "particle"


class KalmanKind(Enum):
    """Kalman variant used when ``FilterKind.KALMAN`` is selected."""

    EXTENDED = "extended"  # constant velocity, acceleration as control input
    LINEAR = "linear"      # constant acceleration, acceleration measured


class ParticleKind(Enum):
    """Particle filter variant."""

    BOOTSTRAP = "bootstrap"
    REGULARIZED = "regularized"


_E = TypeVar("_E", bound=Enum)


def _coerce_enum(enum_cls: Type[_E], value: Any, field_name: str) -> _E:
    """Accept an enum member, its value or its (case-insensitive) name."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if value == member.value or value.upper() == member.name:
                return member
    valid = ", ".join(m.value for m in enum_cls)
    raise ValueError(f"{field_name} must be one of [{valid}], got {value!r}")


@dataclass(frozen=True)
class FilterConfiguration:
    """Parameters selecting and tuning the active positioning filter.

    Attributes:
        filter_kind: Estimator family (none, kalman, particle).
        kalman_kind: Kalman variant (extended or linear).
        particle_kind: Particle filter variant (bootstrap or regularized).
        acceleration_uncertainty: Variance of accelerometer readings, used in
            the measurement noise of the linear Kalman filter.
        distance_uncertainty: Variance of range measurements.
        process_uncertainty: Scale of the process noise Q = G·Gᵀ·q.
        particle_count: Number of particles N.
        resample_threshold: Resample when the effective sample size drops
            below this value; must lie in (0, particle_count]. None means
            particle_count.
        update_interval: Fixed time between measurement frames in seconds.

    Example:
        >>> config = FilterConfiguration(filter_kind="particle", particle_count=500)
        >>> config.resample_threshold
        500.0
        >>> config.with_changes(particle_kind="regularized").particle_kind
        <ParticleKind.REGULARIZED: 'regularized'>
    """

    filter_kind: FilterKind = FilterKind.KALMAN
    kalman_kind: KalmanKind = KalmanKind.EXTENDED
    particle_kind: ParticleKind = ParticleKind.BOOTSTRAP
    acceleration_uncertainty: float = 25.0
    distance_uncertainty: float = 100.0
    process_uncertainty: float = 5000.0
    particle_count: int = 1500
    resample_threshold: Optional[float] = None
    update_interval: float = 0.145

    def __post_init__(self) -> None:
        """Validate and normalize the configuration."""
        # frozen dataclass: normalized values go through object.__setattr__
        object.__setattr__(
            self, "filter_kind", _coerce_enum(FilterKind, self.filter_kind, "filter_kind")
        )
        object.__setattr__(
            self, "kalman_kind", _coerce_enum(KalmanKind, self.kalman_kind, "kalman_kind")
        )
        object.__setattr__(
            self,
            "particle_kind",
            _coerce_enum(ParticleKind, self.particle_kind, "particle_kind"),
        )

        for name in (
            "acceleration_uncertainty",
            "distance_uncertainty",
            "process_uncertainty",
            "update_interval",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"{name} must be numeric, got {type(value)}")
            if not value > 0:
                raise ValueError(f"{name} must be positive, got {value}")
            object.__setattr__(self, name, float(value))

        if isinstance(self.particle_count, bool) or not isinstance(self.particle_count, int):
            raise TypeError(
                f"particle_count must be an integer, got {type(self.particle_count)}"
            )
        if self.particle_count < 1:
            raise ValueError(f"particle_count must be >= 1, got {self.particle_count}")

        threshold = self.resample_threshold
        if threshold is None:
            threshold = self.particle_count
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise TypeError(f"resample_threshold must be numeric, got {type(threshold)}")
        if not 0 < threshold <= self.particle_count:
            raise ValueError(
                f"resample_threshold must lie in (0, {self.particle_count}], got {threshold}"
            )
        object.__setattr__(self, "resample_threshold", float(threshold))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FilterConfiguration":
        """Build a configuration from a plain mapping.

        Args:
            data: Field names to values; enum fields accept values or names.

        Returns:
            Validated configuration.

        Raises:
            ValueError: If the mapping contains unknown keys.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**dict(data))

    def to_dict(self) -> Dict[str, Any]:
        """Plain-mapping representation with enum values as strings."""
        result = dataclasses.asdict(self)
        for key, value in result.items():
            if isinstance(value, Enum):
                result[key] = value.value
        return result

    def with_changes(self, **changes: Any) -> "FilterConfiguration":
        """Return a new configuration with the given fields replaced.

        A resample threshold that tracked the particle count keeps tracking
        it when only ``particle_count`` changes.
        """
        if (
            "particle_count" in changes
            and "resample_threshold" not in changes
            and self.resample_threshold == self.particle_count
        ):
            changes["resample_threshold"] = None
        return dataclasses.replace(self, **changes)
