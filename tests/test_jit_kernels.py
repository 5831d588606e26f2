"""
Tests for JIT-compiled transform kernels.
"""

import numpy as np

from pointcloud_stats.acceleration import apply_linear_jit, apply_transform_jit


class TestApplyTransformJIT:
    """Test apply_transform_jit function."""

    def test_transform_identity(self):
        points = np.array([
            [1.0, 2.0, 3.0],
            [4.0, 5.0, 6.0],
            [7.0, 8.0, 9.0],
        ])

        result = apply_transform_jit(points, np.eye(4))

        np.testing.assert_allclose(result, points, rtol=1e-10)

    def test_transform_translation(self):
        points = np.array([
            [1.0, 2.0, 3.0],
            [4.0, 5.0, 6.0],
        ])
        matrix = np.eye(4)
        matrix[:3, 3] = [10.0, 20.0, 30.0]

        result = apply_transform_jit(points, matrix)

        np.testing.assert_allclose(result, points + np.array([10.0, 20.0, 30.0]), rtol=1e-10)

    def test_transform_matches_homogeneous_product(self):
        rng = np.random.default_rng(0)
        points = rng.normal(size=(50, 3))
        matrix = np.vstack([rng.normal(size=(3, 4)), [0.0, 0.0, 0.0, 1.0]])

        result = apply_transform_jit(points, matrix)

        homogeneous = np.hstack([points, np.ones((50, 1))]) @ matrix.T
        np.testing.assert_allclose(result, homogeneous[:, :3], rtol=1e-10, atol=1e-12)

    def test_input_not_modified(self):
        points = np.array([[1.0, 1.0, 1.0]])
        matrix = np.eye(4)
        matrix[0, 3] = 5.0

        apply_transform_jit(points, matrix)

        np.testing.assert_array_equal(points, [[1.0, 1.0, 1.0]])


class TestApplyLinearJIT:
    """Test apply_linear_jit function."""

    def test_translation_ignored(self):
        normals = np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
        matrix = np.eye(4)
        matrix[:3, 3] = [7.0, 8.0, 9.0]

        result = apply_linear_jit(normals, matrix)

        np.testing.assert_allclose(result, normals)

    def test_rotation(self):
        theta = np.pi / 2
        matrix = np.array([
            [np.cos(theta), -np.sin(theta), 0, 1.0],
            [np.sin(theta), np.cos(theta), 0, 2.0],
            [0, 0, 1, 3.0],
            [0, 0, 0, 1],
        ])

        result = apply_linear_jit(np.array([[1.0, 0.0, 0.0]]), matrix)

        np.testing.assert_allclose(result, [[0.0, 1.0, 0.0]], atol=1e-10)

    def test_matches_homogeneous_product_with_zero_w(self):
        rng = np.random.default_rng(1)
        vectors = rng.normal(size=(20, 3))
        matrix = np.vstack([rng.normal(size=(3, 4)), [0.0, 0.0, 0.0, 1.0]])

        result = apply_linear_jit(vectors, matrix)

        homogeneous = np.hstack([vectors, np.zeros((20, 1))]) @ matrix.T
        np.testing.assert_allclose(result, homogeneous[:, :3], rtol=1e-10, atol=1e-12)
