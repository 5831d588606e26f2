"""
Spatial index capability for k-nearest-neighbor queries.

An index is built once from a snapshot of 3-D coordinates and then answers
any number of queries. It keeps no reference to the cloud it was built
from, so a cloud that changes afterwards needs a new index.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from sklearn.neighbors import KDTree

logger = logging.getLogger(__name__)


@dataclass
class KNNResult:
    """
    Result of a single k-nearest-neighbor query.

    Attributes:
        count: Number of neighbors found (at most k)
        indices: Indices of the neighbors in the indexed point array
        squared_distances: Squared Euclidean distances, ascending
    """

    count: int
    indices: np.ndarray
    squared_distances: np.ndarray


def _as_points(points: np.ndarray, what: str = "points") -> np.ndarray:
    arr = np.asarray(points, dtype=np.float64)
    if arr.size == 0:
        return np.empty((0, 3), dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"Expected Nx3 array of {what}, got shape {arr.shape}")
    return arr


class SpatialIndex(ABC):
    """Build-once, query-many k-NN index over 3-D points."""

    def __init__(self):
        self._n_points = 0
        self._is_built = False

    @property
    def n_points(self) -> int:
        """Number of indexed points."""
        return self._n_points

    @abstractmethod
    def _fit(self, points: np.ndarray) -> None:
        """Index a non-empty (N, 3) float64 array."""

    @abstractmethod
    def _query(self, queries: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Return (distances, indices), each (M, k), distances ascending.

        Only called with 1 <= k <= n_points and M >= 1.
        """

    def build(self, points: np.ndarray) -> "SpatialIndex":
        """
        Index a snapshot of ``points``.

        An empty array yields an index that answers every query with zero
        neighbors.
        """
        snapshot = np.array(_as_points(points), dtype=np.float64, copy=True)
        self._n_points = int(snapshot.shape[0])
        if self._n_points > 0:
            self._fit(snapshot)
        self._is_built = True
        return self

    def search_knn_batch(
        self, queries: np.ndarray, k: int, return_squared: bool = True
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Query the ``k`` nearest indexed points for every row of ``queries``.

        Args:
            queries: (M, 3) query coordinates
            k: Number of neighbors per query
            return_squared: Return squared distances (default). With False
                the backend's Euclidean distances are returned as-is, so a
                caller that needs plain distances takes no extra root.

        Returns:
            Tuple of (counts, indices, distances). ``counts`` has one entry
            per query; the other two are (M, min(k, n_points)) and sorted
            by ascending distance.
        """
        if not self._is_built:
            raise ValueError("Index must be built before it can be queried")
        if k < 1:
            raise ValueError(f"k must be a positive integer, got {k}")

        queries = _as_points(queries, "queries")
        n_queries = queries.shape[0]
        k_found = min(int(k), self._n_points)

        counts = np.full(n_queries, k_found, dtype=np.int64)
        if n_queries == 0 or k_found == 0:
            return (
                counts,
                np.empty((n_queries, k_found), dtype=np.int64),
                np.empty((n_queries, k_found), dtype=np.float64),
            )

        distances, indices = self._query(queries, k_found)
        distances = np.asarray(distances, dtype=np.float64)
        if return_squared:
            distances = distances * distances
        return counts, np.asarray(indices, dtype=np.int64), distances

    def search_knn(self, query: np.ndarray, k: int) -> KNNResult:
        """Query the ``k`` nearest indexed points to a single 3-D point."""
        query = np.asarray(query, dtype=np.float64).reshape(1, 3)
        counts, indices, sq_dists = self.search_knn_batch(query, k)
        return KNNResult(
            count=int(counts[0]),
            indices=indices[0],
            squared_distances=sq_dists[0],
        )


class KDTreeIndex(SpatialIndex):
    """
    KD-tree index backed by scikit-learn.

    Parameters
    ----------
    leaf_size : int, default=30
        Leaf size passed to sklearn.neighbors.KDTree
    """

    def __init__(self, leaf_size: int = 30):
        super().__init__()
        self.leaf_size = leaf_size
        self._tree = None

    def _fit(self, points: np.ndarray) -> None:
        self._tree = KDTree(points, leaf_size=self.leaf_size)

    def _query(self, queries: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
        return self._tree.query(queries, k=k, return_distance=True, sort_results=True)


def create_spatial_index(
    points: np.ndarray,
    backend: str = "kdtree",
    leaf_size: int = 30,
) -> SpatialIndex:
    """
    Build a spatial index over ``points``.

    Args:
        points: (N, 3) coordinates to index
        backend: 'kdtree' (scikit-learn) or 'gpu' (cuML with CPU fallback)
        leaf_size: Leaf size for tree backends

    Returns:
        Built SpatialIndex
    """
    if backend == "kdtree":
        index: SpatialIndex = KDTreeIndex(leaf_size=leaf_size)
    elif backend == "gpu":
        from ..acceleration.gpu_neighbors import GPUNeighborsIndex

        index = GPUNeighborsIndex(leaf_size=leaf_size, use_gpu=True)
    else:
        raise ValueError(f"Unknown spatial index backend: {backend!r}")

    return index.build(points)
