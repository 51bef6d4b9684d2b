"""
Unit tests for the range measurement models.

Tests cover:
    - Predicted ranges for single states and particle stacks
    - Analytical Jacobians against finite differences
    - Jacobian singularity guard
    - Measurement noise covariance and Gaussian log-likelihood
"""

import unittest

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.stats import multivariate_normal

from indoorloc.exceptions import NumericalDegeneracyWarning
from indoorloc.models.measurement_models import (
    RangeAccelerationMeasurement2D,
    RangeMeasurement2D,
    gaussian_log_likelihood,
    measurement_noise_covariance,
)


def numerical_jacobian(h, x, eps=1e-6):
    """Central-difference Jacobian of h at x."""
    z0 = h(x)
    J = np.zeros((len(z0), len(x)))
    for j in range(len(x)):
        dx = np.zeros(len(x))
        dx[j] = eps
        J[:, j] = (h(x + dx) - h(x - dx)) / (2 * eps)
    return J


class TestRangeMeasurement2D(unittest.TestCase):
    """Test range-only measurement model."""

    def setUp(self):
        self.anchors = np.array([[0.0, 0.0], [600.0, 0.0], [600.0, 400.0]])
        self.model = RangeMeasurement2D(self.anchors)

    def test_ranges(self):
        x = np.array([300.0, 400.0, 5.0, -5.0])
        assert_allclose(self.model.h(x), [500.0, 500.0, 300.0])

    def test_batched_ranges(self):
        """Test h over a stack of states matches per-state evaluation."""
        rng = np.random.default_rng(0)
        states = rng.uniform(0, 600, size=(20, 4))

        batched = self.model.h(states)

        self.assertEqual(batched.shape, (20, 3))
        for i, state in enumerate(states):
            assert_allclose(batched[i], self.model.h(state))

    def test_jacobian_matches_finite_difference(self):
        x = np.array([123.0, 321.0, 1.0, 2.0])
        assert_allclose(
            self.model.H(x), numerical_jacobian(self.model.h, x), atol=1e-6
        )

    def test_jacobian_velocity_columns_zero(self):
        H = self.model.H(np.array([100.0, 100.0, 3.0, 4.0]))
        assert_allclose(H[:, 2:], 0.0)

    def test_jacobian_singularity(self):
        """Test the row of an anchor at the tag position is all zero."""
        x = np.array([600.0, 0.0, 0.0, 0.0])

        with pytest.warns(NumericalDegeneracyWarning):
            H = self.model.H(x)

        assert_allclose(H[1], 0.0)
        self.assertTrue(np.all(np.isfinite(H)))

    def test_invalid_anchor_shape(self):
        with self.assertRaises(ValueError):
            RangeMeasurement2D(np.array([1.0, 2.0, 3.0]))


class TestRangeAccelerationMeasurement2D(unittest.TestCase):
    """Test range-plus-accelerometer measurement model."""

    def setUp(self):
        self.anchors = np.array([[0.0, 0.0], [600.0, 0.0]])
        self.model = RangeAccelerationMeasurement2D(self.anchors)

    def test_measurement_layout(self):
        x = np.array([300.0, 400.0, 1.0, 1.0, 12.0, -7.0])
        assert_allclose(self.model.h(x), [500.0, 500.0, 12.0, -7.0])
        self.assertEqual(self.model.measurement_dim, 4)

    def test_jacobian(self):
        x = np.array([150.0, 80.0, 1.0, 1.0, 12.0, -7.0])
        H = self.model.H(x)

        self.assertEqual(H.shape, (4, 6))
        assert_allclose(H[2:, 4:], np.eye(2))
        assert_allclose(H[2:, :4], 0.0)
        assert_allclose(H, numerical_jacobian(self.model.h, x), atol=1e-6)


class TestNoiseAndLikelihood:
    """Test noise covariance and log-likelihood helpers."""

    def test_range_only_covariance(self):
        assert_allclose(measurement_noise_covariance(3, 100.0), 100.0 * np.eye(3))

    def test_covariance_with_acceleration_rows(self):
        R = measurement_noise_covariance(2, 100.0, 25.0)
        assert_allclose(np.diag(R), [100.0, 100.0, 25.0, 25.0])
        assert_allclose(R - np.diag(np.diag(R)), 0.0)

    def test_log_likelihood_matches_scipy(self):
        z = np.array([150.0, 260.0, 300.0])
        z_pred = np.array([155.0, 250.0, 301.0])
        R_diag = np.array([100.0, 100.0, 50.0])

        expected = multivariate_normal(mean=z_pred, cov=np.diag(R_diag)).logpdf(z)

        assert gaussian_log_likelihood(z, z_pred, R_diag) == pytest.approx(expected)

    def test_log_likelihood_vectorized(self):
        rng = np.random.default_rng(4)
        z = np.array([10.0, 20.0])
        z_pred = z + rng.normal(0.0, 5.0, size=(50, 2))
        R_diag = np.array([25.0, 25.0])

        batched = gaussian_log_likelihood(z, z_pred, R_diag)

        assert batched.shape == (50,)
        for i in range(50):
            assert batched[i] == pytest.approx(gaussian_log_likelihood(z, z_pred[i], R_diag))

    def test_log_likelihood_far_measurement_is_finite(self):
        """Test very unlikely measurements stay finite in the log domain."""
        value = gaussian_log_likelihood(np.array([1e6]), np.array([0.0]), np.array([1.0]))
        assert np.isfinite(value)
        assert value < -1e11

    def test_size_mismatch_raises(self):
        with pytest.raises(ValueError):
            gaussian_log_likelihood(np.zeros(2), np.zeros(3), np.ones(2))
