"""
Unit tests for the multilateration initializer.

Tests cover the single-anchor circle draw, the two-anchor intersection and
its fallbacks, and the linearized least-squares branch.
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from indoorloc.estimators.multilateration import (
    circle_intersection,
    least_squares_position,
    multilaterate,
)
from indoorloc.exceptions import InsufficientAnchorsError, UnderdeterminedGeometryError


class TestLeastSquaresBranch(unittest.TestCase):
    """Test 3+ anchor linearized least squares."""

    def test_three_anchors_exact(self):
        """Test exact ranges from three anchors recover the position."""
        anchors = np.array([[0.0, 0.0], [10.0, 0.0], [0.0, 10.0]])
        distances = np.array([5.0, np.sqrt(65.0), np.sqrt(45.0)])

        assert_allclose(multilaterate(anchors, distances), [3.0, 4.0], atol=1e-9)

    def test_four_anchors_exact(self):
        """Test the normal-equation branch with an overdetermined system."""
        anchors = np.array([[0.0, 0.0], [600.0, 0.0], [600.0, 400.0], [0.0, 400.0]])
        true_pos = np.array([250.0, 120.0])
        distances = np.linalg.norm(anchors - true_pos, axis=1)

        assert_allclose(multilaterate(anchors, distances), true_pos, atol=1e-8)

    def test_noisy_ranges_close(self):
        """Test small range noise gives a nearby estimate."""
        rng = np.random.default_rng(42)
        anchors = np.array([[0.0, 0.0], [600.0, 0.0], [600.0, 400.0], [0.0, 400.0]])
        true_pos = np.array([310.0, 220.0])
        distances = np.linalg.norm(anchors - true_pos, axis=1) + rng.normal(0, 1.0, 4)

        estimate = multilaterate(anchors, distances)

        self.assertLess(np.linalg.norm(estimate - true_pos), 10.0)

    def test_collinear_anchors_raise(self):
        anchors = np.array([[0.0, 0.0], [100.0, 0.0], [200.0, 0.0]])
        with self.assertRaises(UnderdeterminedGeometryError):
            multilaterate(anchors, np.array([50.0, 60.0, 150.0]))

    def test_collinear_error_is_value_error(self):
        anchors = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0], [3.0, 3.0]])
        with self.assertRaises(ValueError):
            least_squares_position(anchors, np.ones(4))

    def test_least_squares_needs_three(self):
        with self.assertRaises(InsufficientAnchorsError):
            least_squares_position(np.array([[0.0, 0.0], [1.0, 0.0]]), np.ones(2))


class TestTwoAnchorBranch(unittest.TestCase):
    """Test circle-circle intersection and its fallbacks."""

    def test_intersection(self):
        """Test the right-hand intersection point is returned."""
        anchors = np.array([[0.0, 0.0], [10.0, 0.0]])
        assert_allclose(multilaterate(anchors, np.array([6.0, 8.0])), [3.6, -4.8], atol=1e-12)

    def test_intersection_consistent_with_ranges(self):
        p0, p1 = np.array([290.0, 300.0]), np.array([550.0, 300.0])
        point = circle_intersection(p0, 150.0, p1, 200.0)

        self.assertAlmostEqual(np.linalg.norm(point - p0), 150.0, places=9)
        self.assertAlmostEqual(np.linalg.norm(point - p1), 200.0, places=9)

    def test_tangent_circles(self):
        """Test touching circles give the touching point."""
        point = circle_intersection(np.array([0.0, 0.0]), 4.0, np.array([10.0, 0.0]), 6.0)
        assert_allclose(point, [4.0, 0.0], atol=1e-12)

    def test_circles_do_not_reach(self):
        """Test point at r0 from anchor 0 toward anchor 1."""
        point = circle_intersection(np.array([0.0, 0.0]), 2.0, np.array([0.0, 10.0]), 3.0)
        assert_allclose(point, [0.0, 2.0], atol=1e-12)

    def test_one_circle_contains_other(self):
        """Test containment falls back to anchor0 + (r0, 0)."""
        point = circle_intersection(np.array([5.0, 5.0]), 10.0, np.array([6.0, 5.0]), 2.0)
        assert_allclose(point, [15.0, 5.0])

    def test_coincident_anchors(self):
        point = circle_intersection(np.array([1.0, 1.0]), 3.0, np.array([1.0, 1.0]), 3.0)
        assert_allclose(point, [4.0, 1.0])


class TestSingleAnchorBranch(unittest.TestCase):
    """Test the random point on the range circle."""

    def test_point_on_circle(self):
        anchor = np.array([[100.0, 50.0]])
        for seed in range(10):
            point = multilaterate(anchor, np.array([75.0]), rng=seed)
            self.assertAlmostEqual(np.linalg.norm(point - anchor[0]), 75.0, places=9)

    def test_reproducible_with_seed(self):
        anchor = np.array([[0.0, 0.0]])
        a = multilaterate(anchor, np.array([10.0]), rng=np.random.default_rng(3))
        b = multilaterate(anchor, np.array([10.0]), rng=np.random.default_rng(3))
        assert_allclose(a, b)


class TestInputValidation(unittest.TestCase):
    """Test argument checking."""

    def test_no_anchors_raises(self):
        with self.assertRaises(InsufficientAnchorsError) as ctx:
            multilaterate(np.zeros((0, 2)), np.zeros(0))
        self.assertEqual(ctx.exception.available, 0)

    def test_length_mismatch_raises(self):
        with self.assertRaises(ValueError):
            multilaterate(np.array([[0.0, 0.0], [1.0, 0.0]]), np.array([1.0]))


if __name__ == "__main__":
    unittest.main()
