"""
Unit tests for indoorloc.utils.linalg.

Tests cover:
    - LU inversion and singularity detection
    - Cholesky factorization and positive-definite repair
    - Eigenvalue repair of indefinite matrices
    - Random source normalization and Gaussian sampling
"""

import unittest
import warnings

import numpy as np
import pytest
from numpy.testing import assert_allclose

from indoorloc.exceptions import NumericalDegeneracyWarning, SingularMatrixError
from indoorloc.utils.linalg import (
    EIGENVALUE_REPLACEMENT,
    as_generator,
    cholesky_factor,
    enforce_covariance,
    invert,
    repair_to_positive_definite,
    sample_gaussian,
)


class TestInvert(unittest.TestCase):
    """Test LU-based matrix inversion."""

    def test_inverse_2x2(self):
        """Test inverse of a small well-conditioned matrix."""
        A = np.array([[4.0, 7.0], [2.0, 6.0]])
        expected = np.array([[0.6, -0.7], [-0.2, 0.4]])
        assert_allclose(invert(A), expected, atol=1e-12)

    def test_inverse_identity_product(self):
        """Test A·A⁻¹ = I for a random diagonally dominant matrix."""
        rng = np.random.default_rng(3)
        A = rng.normal(size=(6, 6)) + 6.0 * np.eye(6)

        A_inv = invert(A)

        assert_allclose(A @ A_inv, np.eye(6), atol=1e-10)
        assert_allclose(A_inv @ A, np.eye(6), atol=1e-10)

    def test_inverse_needs_pivoting(self):
        """Test a matrix with a zero leading entry (requires row exchange)."""
        A = np.array([[0.0, 1.0], [1.0, 0.0]])
        assert_allclose(invert(A), A, atol=1e-12)

    def test_singular_matrix_raises(self):
        """Test rank-deficient matrix raises SingularMatrixError."""
        A = np.array([[1.0, 2.0], [2.0, 4.0]])
        with self.assertRaises(SingularMatrixError):
            invert(A)

    def test_singular_error_is_linalg_error(self):
        """Test SingularMatrixError can be caught as LinAlgError."""
        with self.assertRaises(np.linalg.LinAlgError):
            invert(np.zeros((3, 3)))

    def test_non_finite_raises(self):
        """Test NaN entries raise SingularMatrixError."""
        A = np.array([[1.0, np.nan], [0.0, 1.0]])
        with self.assertRaises(SingularMatrixError):
            invert(A)

    def test_non_square_raises(self):
        """Test non-square input raises ValueError."""
        with self.assertRaises(ValueError):
            invert(np.ones((2, 3)))


class TestCholeskyFactor(unittest.TestCase):
    """Test Cholesky factorization with repair fallback."""

    def test_reconstruction_2x2(self):
        """Test L·Lᵀ reproduces a positive-definite matrix."""
        S = np.array([[4.0, 2.0], [2.0, 3.0]])
        L = cholesky_factor(S)

        assert_allclose(L @ L.T, S, atol=1e-12)
        assert_allclose(L, np.linalg.cholesky(S), atol=1e-12)

    def test_lower_triangular(self):
        """Test the factor has no entries above the diagonal."""
        rng = np.random.default_rng(7)
        M = rng.normal(size=(5, 5))
        S = M @ M.T + 5.0 * np.eye(5)

        L = cholesky_factor(S)

        assert_allclose(np.triu(L, k=1), 0.0)
        assert_allclose(L @ L.T, S, atol=1e-10)
        self.assertTrue(np.all(np.diag(L) > 0))

    def test_positive_definite_does_not_warn(self):
        """Test no warning is emitted for a positive-definite input."""
        with warnings.catch_warnings():
            warnings.simplefilter("error", NumericalDegeneracyWarning)
            cholesky_factor(np.diag([1.0, 2.0, 3.0]))

    def test_indefinite_matrix_is_repaired(self):
        """Test an indefinite matrix is repaired instead of failing."""
        S = np.array([[1.0, 2.0], [2.0, 1.0]])  # eigenvalues 3, -1

        with pytest.warns(NumericalDegeneracyWarning):
            L = cholesky_factor(S)

        assert_allclose(L @ L.T, repair_to_positive_definite(S), atol=1e-9)
        self.assertTrue(np.all(np.isfinite(L)))

    def test_zero_matrix_is_repaired(self):
        """Test the zero matrix factors as sqrt(replacement)·I."""
        with pytest.warns(NumericalDegeneracyWarning):
            L = cholesky_factor(np.zeros((3, 3)))

        assert_allclose(L, np.sqrt(EIGENVALUE_REPLACEMENT) * np.eye(3), atol=1e-12)

    def test_zero_variance_block_is_repaired(self):
        """Test a covariance with zero-variance states still factors."""
        S = np.diag([100.0, 100.0, 0.0, 0.0])

        with pytest.warns(NumericalDegeneracyWarning):
            L = cholesky_factor(S)

        assert_allclose(np.diag(L)[:2], [10.0, 10.0], atol=1e-9)
        self.assertTrue(np.all(np.diag(L)[2:] > 0))


class TestRepairToPositiveDefinite(unittest.TestCase):
    """Test eigenvalue-based repair."""

    def test_positive_definite_unchanged(self):
        """Test matrices with all eigenvalues above the floor are kept."""
        S = np.array([[4.0, 1.0], [1.0, 3.0]])
        assert_allclose(repair_to_positive_definite(S), S, atol=1e-12)

    def test_negative_eigenvalues_lifted(self):
        """Test negative eigenvalues are replaced by the replacement value."""
        S = np.array([[1.0, 2.0], [2.0, 1.0]])

        repaired = repair_to_positive_definite(S)
        eigenvalues = np.linalg.eigvalsh(repaired)

        assert_allclose(eigenvalues, [EIGENVALUE_REPLACEMENT, 3.0], atol=1e-9)
        assert_allclose(repaired, repaired.T)

    def test_repaired_matrix_factors_without_warning(self):
        """Test repair followed by Cholesky needs no second repair."""
        rng = np.random.default_rng(11)
        M = rng.normal(size=(4, 4))
        S = M + M.T  # symmetric, generally indefinite

        repaired = repair_to_positive_definite(S)

        with warnings.catch_warnings():
            warnings.simplefilter("error", NumericalDegeneracyWarning)
            L = cholesky_factor(repaired)
        assert_allclose(L @ L.T, repaired, atol=1e-9)

    def test_custom_floor_and_replacement(self):
        """Test floor and replacement parameters."""
        repaired = repair_to_positive_definite(np.diag([0.5, 2.0]), floor=1.0, replacement=1.0)
        assert_allclose(repaired, np.diag([1.0, 2.0]), atol=1e-12)


class TestEnforceCovariance:
    """Test covariance symmetrization and repair."""

    def test_symmetrizes(self):
        """Test asymmetric round-off is removed."""
        P = np.array([[2.0, 1.0 + 1e-9], [1.0 - 1e-9, 2.0]])
        result = enforce_covariance(P)
        assert_allclose(result, result.T)
        assert_allclose(result, [[2.0, 1.0], [1.0, 2.0]], atol=1e-12)

    def test_indefinite_is_repaired(self):
        """Test a covariance with a negative eigenvalue is repaired."""
        P = np.array([[1.0, 2.0], [2.0, 1.0]])
        with pytest.warns(NumericalDegeneracyWarning):
            result = enforce_covariance(P)
        assert np.min(np.linalg.eigvalsh(result)) > 0


class TestRandomHelpers:
    """Test random source normalization and Gaussian sampling."""

    def test_generator_passthrough(self):
        """Test an existing Generator is returned as-is."""
        rng = np.random.default_rng(0)
        assert as_generator(rng) is rng

    def test_seed_is_reproducible(self):
        """Test equal seeds give equal streams."""
        a = as_generator(5).standard_normal(3)
        b = as_generator(5).standard_normal(3)
        assert_allclose(a, b)

    def test_invalid_source_raises(self):
        """Test unsupported random sources are rejected."""
        with pytest.raises(TypeError):
            as_generator("seed")

    def test_sample_shapes(self):
        """Test single and batched sample shapes."""
        rng = np.random.default_rng(1)
        G = np.ones((4, 2))

        assert sample_gaussian(np.zeros(4), G, rng).shape == (4,)
        assert sample_gaussian(np.zeros(4), G, rng, size=10).shape == (10, 4)
        assert sample_gaussian(np.zeros((10, 4)), G, rng, size=10).shape == (10, 4)

    def test_sample_covariance(self):
        """Test samples have covariance factor·factorᵀ."""
        rng = np.random.default_rng(2)
        S = np.array([[4.0, 1.0], [1.0, 2.0]])
        L = cholesky_factor(S)

        samples = sample_gaussian(np.array([1.0, -1.0]), L, rng, size=50000)

        assert_allclose(samples.mean(axis=0), [1.0, -1.0], atol=0.05)
        assert_allclose(np.cov(samples.T), S, atol=0.1)
