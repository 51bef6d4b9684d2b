"""Unit tests for indoorloc.utils.geometry."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from indoorloc.exceptions import NumericalDegeneracyWarning
from indoorloc.utils.geometry import (
    anchors_collinear,
    covariance_ellipse,
    normalize_jacobian_singularities,
)


class TestNormalizeJacobianSingularities:
    """Test suite for range Jacobian normalization."""

    def test_regular_rows(self):
        """Test rows are unit vectors along the difference."""
        diff = np.array([[3.0, 4.0], [-6.0, 8.0]])
        ranges = np.array([5.0, 10.0])

        H = normalize_jacobian_singularities(diff, ranges)

        assert_allclose(H, [[0.6, 0.8], [-0.6, 0.8]])

    def test_singular_row_zeroed(self):
        """Test zero-range rows are zero and a warning is emitted."""
        diff = np.array([[3.0, 4.0], [0.0, 0.0]])
        ranges = np.array([5.0, 0.0])

        with pytest.warns(NumericalDegeneracyWarning):
            H = normalize_jacobian_singularities(diff, ranges)

        assert_allclose(H[0], [0.6, 0.8])
        assert_allclose(H[1], [0.0, 0.0])
        assert np.all(np.isfinite(H))


class TestCovarianceEllipse:
    """Test suite for covariance ellipse parameters."""

    def test_axis_aligned_x(self):
        """Test major axis along x."""
        major, minor, angle = covariance_ellipse(np.diag([4.0, 1.0]))
        assert major == pytest.approx(4.0)
        assert minor == pytest.approx(1.0)
        assert angle == pytest.approx(0.0, abs=1e-12)

    def test_axis_aligned_y(self):
        """Test major axis along y gives +pi/2."""
        major, minor, angle = covariance_ellipse(np.diag([1.0, 4.0]))
        assert major == pytest.approx(4.0)
        assert minor == pytest.approx(1.0)
        assert angle == pytest.approx(np.pi / 2)

    def test_rotated(self):
        """Test orientation of a rotated covariance."""
        theta = np.pi / 6
        R = np.array([[np.cos(theta), -np.sin(theta)], [np.sin(theta), np.cos(theta)]])
        P = R @ np.diag([9.0, 1.0]) @ R.T

        major, minor, angle = covariance_ellipse(P)

        assert major == pytest.approx(9.0)
        assert minor == pytest.approx(1.0)
        assert angle == pytest.approx(theta)

    def test_uses_position_block(self):
        """Test only the upper-left 2x2 block of a state covariance is used."""
        P = np.diag([4.0, 1.0, 100.0, 100.0])
        major, minor, _ = covariance_ellipse(P)
        assert (major, minor) == (pytest.approx(4.0), pytest.approx(1.0))


class TestAnchorsCollinear:
    """Test suite for the collinearity check."""

    def test_collinear_diagonal(self):
        assert anchors_collinear(np.array([[0.0, 0.0], [1.0, 1.0], [5.0, 5.0]]))

    def test_collinear_horizontal(self):
        assert anchors_collinear(np.array([[0.0, 0.0], [300.0, 0.0], [600.0, 0.0], [50.0, 0.0]]))

    def test_triangle_not_collinear(self):
        assert not anchors_collinear(np.array([[0.0, 0.0], [10.0, 0.0], [0.0, 10.0]]))

    def test_fewer_than_three(self):
        assert anchors_collinear(np.array([[0.0, 0.0], [10.0, 0.0]]))

    def test_coincident(self):
        assert anchors_collinear(np.array([[2.0, 2.0], [2.0, 2.0], [2.0, 2.0]]))
