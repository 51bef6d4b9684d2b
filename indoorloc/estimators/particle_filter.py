"""
Particle Filter for range-only tag tracking.

State: x = [px, py, vx, vy] under the constant-velocity model with the
previous accelerometer reading as control input.

Implements the bootstrap (sampling importance resampling) filter:
    - Propagation: x_k⁽ⁱ⁾ = F x_{k-1}⁽ⁱ⁾ + B u_k + sqrt(q) G z,  z ~ N(0, I₂)
    - Weighting: log w_k⁽ⁱ⁾ = log w_{k-1}⁽ⁱ⁾ + log p(z_k | x_k⁽ⁱ⁾)
    - Systematic resampling when N_eff = 1 / Σ(wᵢ²) drops below a threshold

and the regularized variant, which jitters every particle right after
resampling with a Gaussian kernel scaled by the optimal bandwidth

    h_opt = (4 / (n + 2))^(1/(n + 4)) · N^(-1/(n + 4))

Weights are kept in the log domain and normalized with log-sum-exp.
"""

import warnings
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.special import logsumexp

from indoorloc.config import FilterConfiguration, ParticleKind
from indoorloc.estimators.base import BayesianFilter
from indoorloc.estimators.multilateration import multilaterate
from indoorloc.exceptions import NumericalDegeneracyWarning
from indoorloc.models.measurement_models import (
    RangeMeasurement2D,
    gaussian_log_likelihood,
    measurement_noise_covariance,
)
from indoorloc.models.motion_models import ConstantVelocity2D
from indoorloc.models.types import Anchor, anchor_positions
from indoorloc.utils import as_generator, cholesky_factor, sample_gaussian
from indoorloc.utils.linalg import RandomSource


@dataclass(frozen=True, eq=False)
class Particle:
    """A weighted state hypothesis.

    Attributes:
        state: State vector [px, py, vx, vy] (read-only).
        log_weight: Normalized log-weight.
    """

    state: np.ndarray
    log_weight: float

    def __post_init__(self) -> None:
        state = np.array(self.state, dtype=float)
        state.setflags(write=False)
        object.__setattr__(self, "state", state)
        object.__setattr__(self, "log_weight", float(self.log_weight))

    @property
    def weight(self) -> float:
        return float(np.exp(self.log_weight))


def optimal_bandwidth(n_particles: int, state_dim: int) -> float:
    """
    Optimal kernel bandwidth for a Gaussian regularization kernel.

    Args:
        n_particles: Number of particles N.
        state_dim: State dimension n.

    Returns:
        h_opt = (4 / (n + 2))^(1/(n + 4)) · N^(-1/(n + 4))
    """
    exponent = 1.0 / (state_dim + 4)
    return (4.0 / (state_dim + 2)) ** exponent * n_particles ** (-exponent)


class ParticleFilter(BayesianFilter):
    """
    Bootstrap / regularized Particle Filter for tag positioning.

    The population is initialized from the first ranges: with two or more
    anchors, Gaussian around the multilateration seed (std
    sqrt(distance_uncertainty) per axis, zero velocity); with one anchor,
    each particle is placed on the range circle at a random bearing with a
    Gaussian radius perturbation.

    Attributes:
        n_particles: Number of particles N.
        rng: Random generator driving every stochastic step.
        last_update_resampled: Whether the last update resampled.
        state: Weighted mean of the particles.
        covariance: Weighted covariance of the particles.

    Example:
        >>> anchors = [Anchor(1, (0, 0), True), Anchor(2, (10, 0), True), Anchor(3, (0, 10), True)]
        >>> config = FilterConfiguration(filter_kind="particle", particle_count=200)
        >>> pf = ParticleFilter(anchors, [5.0, 65 ** 0.5, 45 ** 0.5], config, rng=0)
        >>> pf.get_particles()[0].shape
        (200, 4)
    """

    motion_model = ConstantVelocity2D
    _checkpoint_attributes = (
        "state",
        "covariance",
        "measurement_model",
        "R",
        "_states",
        "_log_weights",
        "last_update_resampled",
    )

    def __init__(
        self,
        anchors: Sequence[Anchor],
        distances: np.ndarray,
        config: Optional[FilterConfiguration] = None,
        rng: RandomSource = None,
    ):
        """
        Initialize the particle population from the first ranges.

        Args:
            anchors: Active anchors (at least 1).
            distances: Range to each anchor.
            config: Filter configuration (defaults if None).
            rng: Random source (None, seed or numpy Generator).

        Raises:
            InsufficientAnchorsError: If no anchor is active.
            UnderdeterminedGeometryError: If 3+ anchors are collinear.
        """
        super().__init__(self.motion_model.state_dim, config or FilterConfiguration())
        self.rng = as_generator(rng)
        self.n_particles = self.config.particle_count
        self.measurement_model = None
        self.R: Optional[np.ndarray] = None

        anchors = self._sync_anchors(anchors, "particle filter initialization")
        distances = np.asarray(distances, dtype=float).reshape(-1)
        if len(distances) != len(anchors):
            raise ValueError(f"Expected {len(anchors)} distances, got {len(distances)}")

        self._states = np.zeros((self.n_particles, self.state_dim))
        self._states[:, :2] = self._initial_positions(anchor_positions(anchors), distances)
        self._log_weights = np.full(self.n_particles, -np.log(self.n_particles))
        self.last_update_resampled = False

        self._update_state_estimate()

    def _initial_positions(self, positions: np.ndarray, distances: np.ndarray) -> np.ndarray:
        std = np.sqrt(self.config.distance_uncertainty)
        n = self.n_particles

        if len(positions) >= 2:
            seed = multilaterate(positions, distances, self.rng)
            return sample_gaussian(seed, std * np.eye(2), self.rng, size=n)

        radii = distances[0] + std * self.rng.standard_normal(n)
        theta = self.rng.uniform(0.0, 2.0 * np.pi, size=n)
        offsets = np.column_stack([np.cos(theta), np.sin(theta)])
        return positions[0] + radii[:, np.newaxis] * offsets

    def _on_anchor_set_changed(self, positions: np.ndarray) -> None:
        self.measurement_model = RangeMeasurement2D(positions)
        self.R = measurement_noise_covariance(len(positions), self.config.distance_uncertainty)

    @property
    def weights(self) -> np.ndarray:
        """Normalized linear-domain weights (N,)."""
        return np.exp(self._log_weights)

    @property
    def particles(self) -> Tuple[Particle, ...]:
        """Immutable view of the population."""
        return tuple(
            Particle(state, log_weight)
            for state, log_weight in zip(self._states, self._log_weights)
        )

    def _update_state_estimate(self) -> None:
        """
        Update state and covariance estimates from particles and weights.

        Uses weighted mean and covariance of particles.
        """
        w = self.weights

        # Weighted mean: x̂ = Σ wᵢ xᵢ
        self.state = w @ self._states

        # Weighted covariance: P = Σ wᵢ (xᵢ - x̂)(xᵢ - x̂)ᵀ
        diff = self._states - self.state
        self.covariance = (w[:, np.newaxis] * diff).T @ diff

    def predict(self, u: Optional[np.ndarray] = None) -> None:
        """
        Propagate every particle through the noisy motion model.

        Args:
            u: Control input [ax, ay], the previous accelerometer reading.
                If None, assumes zero control.
        """
        dt = self.config.update_interval
        F = self.motion_model.F(dt)
        G = self.motion_model.G(dt)

        mean = self._states @ F.T
        if u is not None:
            mean = mean + self.motion_model.B(dt) @ np.asarray(u, dtype=float)

        noise_factor = np.sqrt(self.config.process_uncertainty) * G
        self._states = sample_gaussian(mean, noise_factor, self.rng, size=self.n_particles)

        self._update_state_estimate()

    def update(self, anchors: Sequence[Anchor], z: np.ndarray) -> None:
        """
        Reweight particles by the range likelihood and resample if needed.

        Degenerate weights (all likelihoods zero, or NaN) fall back to
        uniform weights with a :class:`NumericalDegeneracyWarning`.

        Args:
            anchors: Active anchors, ordered like z.
            z: Range to each anchor.

        Raises:
            InsufficientAnchorsError: If no anchor is active.
        """
        anchors = self._sync_anchors(anchors)
        z = np.asarray(z, dtype=float).reshape(-1)
        if len(z) != self.measurement_model.measurement_dim:
            raise ValueError(
                f"Measurement must have {self.measurement_model.measurement_dim} "
                f"entries, got {len(z)}"
            )

        z_pred = self.measurement_model.h(self._states)
        log_likelihood = gaussian_log_likelihood(z, z_pred, np.diag(self.R))
        self._log_weights = self._log_weights + log_likelihood
        self._normalize_weights()

        self.last_update_resampled = False
        if self.effective_sample_size() < self.config.resample_threshold:
            self.resample()
            if self.config.particle_kind is ParticleKind.REGULARIZED:
                self._regularize()
            self.last_update_resampled = True

        self._update_state_estimate()

    def _normalize_weights(self) -> None:
        with np.errstate(divide="ignore", invalid="ignore"):
            total = logsumexp(self._log_weights)

        if not np.isfinite(total):
            warnings.warn(
                "Particle weights degenerated (zero or NaN total likelihood); "
                "resetting to uniform weights.",
                NumericalDegeneracyWarning,
            )
            self._log_weights = np.full(self.n_particles, -np.log(self.n_particles))
            return

        self._log_weights = self._log_weights - total

    def effective_sample_size(self) -> float:
        """
        Compute effective sample size.

        N_eff = 1 / Σ(wᵢ²)

        Returns:
            Effective sample size in [1, N].
        """
        return float(1.0 / np.sum(self.weights**2))

    def resample(self) -> None:
        """
        Perform systematic resampling of particles.

        A single uniform offset u0 ~ U[0, 1/N) places N evenly spaced
        pointers over the cumulative weights. Weights are reset to uniform.
        """
        n = self.n_particles

        cumsum = np.cumsum(self.weights)
        cumsum[-1] = 1.0  # guard against round-off below the last pointer

        u0 = self.rng.uniform(0.0, 1.0 / n)
        pointers = u0 + np.arange(n) / n
        indices = np.searchsorted(cumsum, pointers, side="left")

        self._states = self._states[indices]
        self._log_weights = np.full(n, -np.log(n))

    def _regularize(self) -> None:
        """
        Jitter every particle with h_opt · D · z, z ~ N(0, I).

        D is the Cholesky factor of the weighted sample covariance of the
        (just resampled) population.
        """
        n = self.n_particles
        w = self.weights

        mean = w @ self._states
        diff = self._states - mean
        covariance = (w[:, np.newaxis] * diff).T @ diff

        # Unbiased weighted estimate
        correction = 1.0 - np.sum(w**2)
        if correction > 0.0:
            covariance = covariance / correction

        D = cholesky_factor(covariance)
        h_opt = optimal_bandwidth(n, self.state_dim)
        self._states = sample_gaussian(self._states, h_opt * D, self.rng, size=n)

    def get_particles(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get current particles and weights.

        Returns:
            Tuple of (particles, weights).
                - particles: (n_particles, state_dim)
                - weights: (n_particles,)
        """
        return self._states.copy(), self.weights

    def particle_positions(self) -> np.ndarray:
        """Particle positions (N, 2)."""
        return self._states[:, :2].copy()
