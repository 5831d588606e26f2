"""
Tests for the PointCloud container: bounds, transforms and concatenation.
"""

import numpy as np
import pytest

from pointcloud_stats.geometry import PointCloud


@pytest.fixture
def tetra_points():
    """Origin plus the three unit axis points."""
    return np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 1.0],
    ])


@pytest.fixture
def full_cloud(tetra_points):
    normals = np.tile([0.0, 0.0, 1.0], (4, 1))
    colors = np.tile([0.5, 0.25, 0.125], (4, 1))
    return PointCloud(tetra_points, normals, colors)


class TestConstruction:
    """Construction, attribute invariants and clearing."""

    def test_empty_cloud(self):
        cloud = PointCloud()
        assert cloud.is_empty()
        assert not cloud.has_points()
        assert not cloud.has_normals()
        assert not cloud.has_colors()
        assert len(cloud) == 0
        assert cloud.points.shape == (0, 3)

    def test_points_are_copied(self, tetra_points):
        cloud = PointCloud(tetra_points)
        tetra_points[0, 0] = 42.0
        assert cloud.points[0, 0] == 0.0

    def test_attribute_length_must_match(self, tetra_points):
        with pytest.raises(ValueError):
            PointCloud(tetra_points, normals=np.zeros((3, 3)))
        with pytest.raises(ValueError):
            PointCloud(tetra_points, colors=np.zeros((5, 3)))

    def test_wrong_shape_rejected(self):
        with pytest.raises(ValueError):
            PointCloud(np.zeros((4, 2)))

    def test_points_setter_checks_attributes(self, full_cloud):
        with pytest.raises(ValueError):
            full_cloud.points = np.zeros((2, 3))

    def test_clear(self, full_cloud):
        result = full_cloud.clear()
        assert result is full_cloud
        assert full_cloud.is_empty()
        assert len(full_cloud.normals) == 0
        assert len(full_cloud.colors) == 0

    def test_repr(self, tetra_points):
        assert repr(PointCloud(tetra_points)) == "PointCloud with 4 points."


class TestBounds:
    """Axis-aligned bounds."""

    def test_empty_bounds_are_zero(self):
        cloud = PointCloud()
        np.testing.assert_array_equal(cloud.get_min_bound(), np.zeros(3))
        np.testing.assert_array_equal(cloud.get_max_bound(), np.zeros(3))

    def test_tetra_bounds(self, tetra_points):
        cloud = PointCloud(tetra_points)
        np.testing.assert_array_equal(cloud.get_min_bound(), [0.0, 0.0, 0.0])
        np.testing.assert_array_equal(cloud.get_max_bound(), [1.0, 1.0, 1.0])

    def test_bounds_are_per_axis(self):
        # No single point holds all three minima
        points = np.array([
            [-1.0, 5.0, 2.0],
            [3.0, -2.0, 7.0],
            [0.0, 1.0, -4.0],
        ])
        cloud = PointCloud(points)
        np.testing.assert_array_equal(cloud.get_min_bound(), [-1.0, -2.0, -4.0])
        np.testing.assert_array_equal(cloud.get_max_bound(), [3.0, 5.0, 7.0])
        assert not any(np.array_equal(p, cloud.get_min_bound()) for p in points)

    def test_random_bounds(self):
        rng = np.random.default_rng(0)
        points = rng.normal(size=(500, 3))
        cloud = PointCloud(points)
        for axis in range(3):
            assert cloud.get_min_bound()[axis] == points[:, axis].min()
            assert cloud.get_max_bound()[axis] == points[:, axis].max()


class TestTransform:
    """Affine transforms of points and normals."""

    def test_translation_skips_normals(self):
        cloud = PointCloud([[0.0, 0.0, 0.0]], normals=[[1.0, 0.0, 0.0]])
        matrix = np.eye(4)
        matrix[0, 3] = 1.0

        cloud.transform(matrix)

        np.testing.assert_allclose(cloud.points, [[1.0, 0.0, 0.0]])
        np.testing.assert_allclose(cloud.normals, [[1.0, 0.0, 0.0]])

    def test_rotation_applies_to_both(self):
        cloud = PointCloud([[1.0, 0.0, 0.0]], normals=[[1.0, 0.0, 0.0]])
        theta = np.pi / 2
        matrix = np.array([
            [np.cos(theta), -np.sin(theta), 0, 5.0],
            [np.sin(theta), np.cos(theta), 0, 0],
            [0, 0, 1, 0],
            [0, 0, 0, 1],
        ])

        cloud.transform(matrix)

        np.testing.assert_allclose(cloud.points, [[5.0, 1.0, 0.0]], atol=1e-12)
        np.testing.assert_allclose(cloud.normals, [[0.0, 1.0, 0.0]], atol=1e-12)

    def test_colors_untouched(self, full_cloud):
        colors_before = full_cloud.colors.copy()
        matrix = np.diag([2.0, 2.0, 2.0, 1.0])
        matrix[:3, 3] = [1.0, 2.0, 3.0]

        full_cloud.transform(matrix)

        np.testing.assert_array_equal(full_cloud.colors, colors_before)

    def test_empty_cloud_transform(self):
        cloud = PointCloud()
        cloud.transform(np.eye(4))
        assert cloud.is_empty()

    def test_invalid_matrix(self, full_cloud):
        with pytest.raises(ValueError):
            full_cloud.transform(np.eye(3))


class TestConcatenate:
    """In-place and non-mutating concatenation."""

    def test_self_append(self, full_cloud):
        original = full_cloud.copy()

        full_cloud += full_cloud

        assert len(full_cloud) == 8
        np.testing.assert_array_equal(full_cloud.points[:4], original.points)
        np.testing.assert_array_equal(full_cloud.points[4:], original.points)
        np.testing.assert_array_equal(full_cloud.normals[4:], original.normals)
        np.testing.assert_array_equal(full_cloud.colors[:4], original.colors)
        assert full_cloud.has_normals()
        assert full_cloud.has_colors()

    def test_append_empty_is_noop(self, full_cloud):
        full_cloud += PointCloud()
        assert len(full_cloud) == 4
        assert full_cloud.has_normals()

    def test_add_is_not_mutating(self, full_cloud, tetra_points):
        other = PointCloud(tetra_points + 10.0)
        result = full_cloud + other
        assert len(result) == 8
        assert len(full_cloud) == 4
        assert len(other) == 4
        np.testing.assert_array_equal(result.points[4:], tetra_points + 10.0)

    @pytest.mark.parametrize(
        "a_points, a_normals, b_normals, expected",
        [
            (True, True, True, True),
            (True, False, True, False),
            (True, True, False, False),
            (True, False, False, False),
            (False, False, True, True),
            (False, False, False, False),
        ],
    )
    def test_attribute_presence_rule(self, tetra_points, a_points, a_normals, b_normals, expected):
        normals = np.tile([0.0, 1.0, 0.0], (4, 1))
        a = PointCloud(
            tetra_points if a_points else None,
            normals if a_normals else None,
            colors=normals if a_normals else None,
        )
        b = PointCloud(
            tetra_points,
            normals if b_normals else None,
            colors=normals if b_normals else None,
        )

        a += b

        assert len(a) == (8 if a_points else 4)
        assert a.has_normals() == expected
        assert a.has_colors() == expected
        if not expected:
            assert len(a.normals) == 0
            assert len(a.colors) == 0

    def test_colors_and_normals_independent(self, tetra_points):
        normals = np.tile([0.0, 1.0, 0.0], (4, 1))
        a = PointCloud(tetra_points, normals=normals)
        b = PointCloud(tetra_points, normals=normals, colors=normals)

        a += b

        assert a.has_normals()
        assert not a.has_colors()
