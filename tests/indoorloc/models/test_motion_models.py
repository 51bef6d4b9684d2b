"""Unit tests for indoorloc.models.motion_models."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from indoorloc.models.motion_models import ConstantAcceleration2D, ConstantVelocity2D


class TestConstantVelocity2D:
    """Test suite for the constant velocity model with acceleration input."""

    def test_transition_without_input(self):
        x = np.array([1.0, 2.0, 3.0, -4.0])
        assert_allclose(ConstantVelocity2D.f(x, dt=0.5), [2.5, 0.0, 3.0, -4.0])

    def test_transition_with_input(self):
        """Test acceleration enters position with dt²/2 and velocity with dt."""
        x = np.array([0.0, 0.0, 1.0, 0.5])
        u = np.array([2.0, -2.0])

        x_next = ConstantVelocity2D.f(x, u, dt=0.5)

        assert_allclose(x_next, [0.5 + 0.25, 0.25 - 0.25, 2.0, -0.5])

    def test_noise_shaping_matches_control(self):
        assert_allclose(ConstantVelocity2D.G(0.145), ConstantVelocity2D.B(0.145))

    def test_process_noise(self):
        """Test Q = G Gᵀ q is symmetric positive semi-definite."""
        dt, q = 0.145, 5000.0
        G = ConstantVelocity2D.G(dt)
        Q = ConstantVelocity2D.Q(dt, q)

        assert Q.shape == (4, 4)
        assert_allclose(Q, q * G @ G.T)
        assert_allclose(Q, Q.T)
        assert np.min(np.linalg.eigvalsh(Q)) > -1e-9
        assert Q[2, 2] == pytest.approx(q * dt**2)

    def test_wrong_state_shape_raises(self):
        with pytest.raises(ValueError):
            ConstantVelocity2D.f(np.zeros(6), dt=1.0)


class TestConstantAcceleration2D:
    """Test suite for the constant acceleration model."""

    def test_transition(self):
        x = np.array([0.0, 0.0, 1.0, 0.0, 2.0, -2.0])
        x_next = ConstantAcceleration2D.f(x, dt=1.0)
        assert_allclose(x_next, [2.0, -1.0, 3.0, -2.0, 2.0, -2.0])

    def test_control_is_ignored(self):
        x = np.arange(6.0)
        assert_allclose(
            ConstantAcceleration2D.f(x, np.array([10.0, 10.0]), dt=0.2),
            ConstantAcceleration2D.F(0.2) @ x,
        )
        assert_allclose(ConstantAcceleration2D.B(0.2), np.zeros((6, 2)))

    def test_process_noise(self):
        dt, q = 0.145, 5000.0
        Q = ConstantAcceleration2D.Q(dt, q)

        assert Q.shape == (6, 6)
        assert_allclose(Q, Q.T)
        assert Q[4, 4] == pytest.approx(q)
        assert Q[0, 4] == pytest.approx(q * dt**2 / 2)
        # Rank 2: disturbance enters through two axes only
        assert np.linalg.matrix_rank(Q) == 2

    def test_wrong_state_shape_raises(self):
        with pytest.raises(ValueError):
            ConstantAcceleration2D.f(np.zeros(4), dt=1.0)
