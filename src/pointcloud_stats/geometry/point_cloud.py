"""
Point cloud container.

A PointCloud holds an (N, 3) array of coordinates and two optional per-point
attributes, normals and colors. Each attribute is either empty or has exactly
one row per point.
"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np

from ..acceleration.device_mirror import Accelerator, DeviceMirror
from ..acceleration.jit_kernels import apply_linear_jit, apply_transform_jit


def _as_vectors(values: Optional[np.ndarray], what: str) -> np.ndarray:
    """Copy ``values`` into a contiguous (M, 3) float64 array."""
    if values is None:
        return np.empty((0, 3), dtype=np.float64)
    arr = np.array(values, dtype=np.float64, copy=True)
    if arr.size == 0:
        return np.empty((0, 3), dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"Expected Nx3 array of {what}, got shape {arr.shape}")
    return np.ascontiguousarray(arr)


class PointCloud:
    """
    3-D point set with optional normals and colors.

    Args:
        points: (N, 3) coordinates
        normals: Optional (N, 3) normals
        colors: Optional (N, 3) colors
        accelerator: Accelerator for device mirrors (default: process-wide one)

    Example:
        >>> cloud = PointCloud(np.random.rand(100, 3))
        >>> cloud.transform(np.eye(4))
        PointCloud with 100 points.
    """

    def __init__(
        self,
        points: Optional[np.ndarray] = None,
        normals: Optional[np.ndarray] = None,
        colors: Optional[np.ndarray] = None,
        *,
        accelerator: Optional[Accelerator] = None,
    ):
        self._points = _as_vectors(points, "points")
        self._normals = np.empty((0, 3), dtype=np.float64)
        self._colors = np.empty((0, 3), dtype=np.float64)
        self._mirror = DeviceMirror(accelerator)
        self.normals = normals
        self.colors = colors

    # ------------------------------------------------------------------
    # Host arrays
    # ------------------------------------------------------------------

    @property
    def points(self) -> np.ndarray:
        return self._points

    @points.setter
    def points(self, values: Optional[np.ndarray]) -> None:
        points = _as_vectors(values, "points")
        for name, attr in (("normals", self._normals), ("colors", self._colors)):
            if len(attr) and len(attr) != len(points):
                raise ValueError(
                    f"Cannot set {len(points)} points while the cloud has {len(attr)} {name}; "
                    "clear() first"
                )
        self._points = points

    @property
    def normals(self) -> np.ndarray:
        return self._normals

    @normals.setter
    def normals(self, values: Optional[np.ndarray]) -> None:
        self._normals = self._checked_attribute(values, "normals")

    @property
    def colors(self) -> np.ndarray:
        return self._colors

    @colors.setter
    def colors(self, values: Optional[np.ndarray]) -> None:
        self._colors = self._checked_attribute(values, "colors")

    def _checked_attribute(self, values: Optional[np.ndarray], what: str) -> np.ndarray:
        arr = _as_vectors(values, what)
        if len(arr) and len(arr) != len(self._points):
            raise ValueError(
                f"Expected 0 or {len(self._points)} {what}, got {len(arr)}"
            )
        return arr

    def __len__(self) -> int:
        return len(self._points)

    def __repr__(self) -> str:
        return f"PointCloud with {len(self._points)} points."

    def has_points(self) -> bool:
        return len(self._points) > 0

    def has_normals(self) -> bool:
        return self.has_points() and len(self._normals) == len(self._points)

    def has_colors(self) -> bool:
        return self.has_points() and len(self._colors) == len(self._points)

    def is_empty(self) -> bool:
        return not self.has_points()

    def clear(self) -> "PointCloud":
        """Remove all points, normals and colors."""
        self._points = np.empty((0, 3), dtype=np.float64)
        self._normals = np.empty((0, 3), dtype=np.float64)
        self._colors = np.empty((0, 3), dtype=np.float64)
        return self

    def copy(self) -> "PointCloud":
        """Deep copy of the host arrays. Device mirrors are not copied."""
        return PointCloud(
            self._points,
            self._normals,
            self._colors,
            accelerator=self._mirror.assigned_accelerator,
        )

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def get_min_bound(self) -> np.ndarray:
        """Per-axis minimum coordinate; zero vector for an empty cloud."""
        if not self.has_points():
            return np.zeros(3, dtype=np.float64)
        return self._points.min(axis=0)

    def get_max_bound(self) -> np.ndarray:
        """Per-axis maximum coordinate; zero vector for an empty cloud."""
        if not self.has_points():
            return np.zeros(3, dtype=np.float64)
        return self._points.max(axis=0)

    def transform(self, transformation: np.ndarray) -> "PointCloud":
        """
        Apply a 4x4 affine transformation in place.

        Points get the full affine map; normals only the linear 3x3 part.
        Colors are not touched.
        """
        matrix = np.ascontiguousarray(transformation, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 transformation matrix, got shape {matrix.shape}")

        if len(self._points):
            self._points = apply_transform_jit(self._points, matrix)
        if len(self._normals):
            self._normals = apply_linear_jit(self._normals, matrix)
        return self

    def __iadd__(self, cloud: "PointCloud") -> "PointCloud":
        """
        Append ``cloud`` to this cloud.

        The result keeps normals only if ``cloud`` has them and this cloud
        either had them or was empty; otherwise normals are dropped. Colors
        follow the same rule. ``cloud`` may be this cloud itself.
        """
        if not isinstance(cloud, PointCloud):
            return NotImplemented
        if cloud.is_empty():
            return self

        old_n = len(self._points)
        add_n = len(cloud._points)
        new_n = old_n + add_n

        # Decide everything before touching any array, ``cloud`` may be ``self``
        was_empty = not self.has_points()
        keep_normals = (was_empty or self.has_normals()) and cloud.has_normals()
        keep_colors = (was_empty or self.has_colors()) and cloud.has_colors()

        def _append(own: np.ndarray, other: np.ndarray) -> np.ndarray:
            merged = np.empty((new_n, 3), dtype=np.float64)
            merged[:old_n] = own[:old_n]
            merged[old_n:] = other[:add_n]
            return merged

        normals = _append(self._normals, cloud._normals) if keep_normals else np.empty((0, 3))
        colors = _append(self._colors, cloud._colors) if keep_colors else np.empty((0, 3))
        points = _append(self._points, cloud._points)

        self._points = points
        self._normals = normals
        self._colors = colors
        return self

    def __add__(self, cloud: "PointCloud") -> "PointCloud":
        if not isinstance(cloud, PointCloud):
            return NotImplemented
        result = self.copy()
        result += cloud
        return result

    # ------------------------------------------------------------------
    # Device mirrors
    # ------------------------------------------------------------------

    @property
    def accelerator(self) -> Accelerator:
        return self._mirror.accelerator

    @property
    def device_points(self) -> Optional[Any]:
        return self._mirror.handle("points")

    @property
    def device_normals(self) -> Optional[Any]:
        return self._mirror.handle("normals")

    @property
    def device_colors(self) -> Optional[Any]:
        return self._mirror.handle("colors")

    def update_device_points(self) -> bool:
        return self._mirror.refresh("points", self._points)

    def update_device_normals(self) -> bool:
        return self._mirror.refresh("normals", self._normals)

    def update_device_colors(self) -> bool:
        return self._mirror.refresh("colors", self._colors)

    def update_device_memory(self) -> bool:
        """Refresh points, normals and colors mirrors; all three are attempted."""
        return self._mirror.refresh_all(self._points, self._normals, self._colors)

    def release_device_points(self) -> bool:
        return self._mirror.release("points")

    def release_device_normals(self) -> bool:
        return self._mirror.release("normals")

    def release_device_colors(self) -> bool:
        return self._mirror.release("colors")

    def release_device_memory(self) -> bool:
        """Release all device mirrors; all three are attempted."""
        return self._mirror.release_all()
