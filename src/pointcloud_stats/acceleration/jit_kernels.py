"""JIT-compiled kernels for the per-point transform loops.

Points are mapped as homogeneous coordinates with w = 1, direction vectors
(normals) with w = 0 so the translation column never touches them.
"""

from __future__ import annotations

import numba
import numpy as np


@numba.jit(nopython=True, parallel=False)
def apply_transform_jit(points: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Apply 4x4 transformation matrix to points (JIT-compiled).

    Args:
        points: (N, 3) array of XYZ coordinates.
        matrix: (4, 4) transformation matrix.

    Returns:
        Transformed points (N, 3).
    """
    n = points.shape[0]
    result = np.empty_like(points)

    for i in range(n):
        x = points[i, 0]
        y = points[i, 1]
        z = points[i, 2]
        result[i, 0] = matrix[0, 0] * x + matrix[0, 1] * y + matrix[0, 2] * z + matrix[0, 3]
        result[i, 1] = matrix[1, 0] * x + matrix[1, 1] * y + matrix[1, 2] * z + matrix[1, 3]
        result[i, 2] = matrix[2, 0] * x + matrix[2, 1] * y + matrix[2, 2] * z + matrix[2, 3]

    return result


@numba.jit(nopython=True, parallel=False)
def apply_linear_jit(vectors: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Apply the linear part of a 4x4 matrix to direction vectors (JIT-compiled).

    Args:
        vectors: (N, 3) array of directions (e.g. normals).
        matrix: (4, 4) transformation matrix; column 3 is ignored.

    Returns:
        Transformed vectors (N, 3).
    """
    n = vectors.shape[0]
    result = np.empty_like(vectors)

    for i in range(n):
        x = vectors[i, 0]
        y = vectors[i, 1]
        z = vectors[i, 2]
        result[i, 0] = matrix[0, 0] * x + matrix[0, 1] * y + matrix[0, 2] * z
        result[i, 1] = matrix[1, 0] * x + matrix[1, 1] * y + matrix[1, 2] * z
        result[i, 2] = matrix[2, 0] * x + matrix[2, 1] * y + matrix[2, 2] * z

    return result
