"""
Nearest-neighbor distances between and within point clouds.

Both functions build a spatial index, issue one k-NN query per point and
take the square root of the returned squared distance. Queries are
independent, so the per-point loop is fanned out over contiguous chunks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..acceleration.parallel_executor import ChunkParallelExecutor
from ..geometry.point_cloud import PointCloud
from ..geometry.spatial_index import SpatialIndex, create_spatial_index
from ..utils.config import AppConfig, resolve_config
from ..utils.logging import setup_logger

logger = setup_logger(__name__)


@dataclass
class DistanceStatistics:
    """
    Summary of a per-point distance array.

    Attributes:
        n: Number of distances
        mean: Mean of distances
        median: Median of distances
        rmse: Root mean square of distances
        min: Smallest distance
        max: Largest distance
    """

    n: int
    mean: float
    median: float
    rmse: float
    min: float
    max: float


def summarize_distances(distances: np.ndarray) -> DistanceStatistics:
    """Summary statistics of ``distances``; NaN/inf markers when empty."""
    d = np.asarray(distances, dtype=np.float64)
    if d.size == 0:
        return DistanceStatistics(
            n=0,
            mean=float("nan"),
            median=float("nan"),
            rmse=float("inf"),
            min=float("nan"),
            max=float("nan"),
        )
    return DistanceStatistics(
        n=int(d.size),
        mean=float(np.mean(d)),
        median=float(np.median(d)),
        rmse=float(np.sqrt(np.mean(np.square(d)))),
        min=float(np.min(d)),
        max=float(np.max(d)),
    )


def _knn_distance_chunk(
    start: int,
    stop: int,
    index: SpatialIndex,
    queries: np.ndarray,
    k: int,
    label: str,
) -> np.ndarray:
    """
    Distance to the k-th neighbor for ``queries[start:stop]``.

    Points with fewer than ``k`` neighbors get 0.0.
    """
    counts, _, neighbor_distances = index.search_knn_batch(
        queries[start:stop], k, return_squared=False
    )
    distances = np.zeros(stop - start, dtype=np.float64)

    found = counts >= k
    if found.any():
        distances[found] = neighbor_distances[found, k - 1]

    missing = int(np.count_nonzero(~found))
    if missing:
        logger.debug(f"[{label}] Found {missing} point(s) without neighbors.")
    return distances


def _knn_distances(
    index: SpatialIndex,
    queries: np.ndarray,
    k: int,
    label: str,
    config: AppConfig,
) -> np.ndarray:
    executor = ChunkParallelExecutor.from_config(config)
    return executor.map_ranges(
        n_items=len(queries),
        worker_fn=_knn_distance_chunk,
        worker_kwargs={"index": index, "queries": queries, "k": k, "label": label},
    )


def compute_point_cloud_to_point_cloud_distance(
    source: PointCloud,
    target: PointCloud,
    config: Optional[AppConfig] = None,
) -> np.ndarray:
    """
    Distance from every source point to its nearest point in ``target``.

    A source point that also occurs in ``target`` has distance 0. When
    ``target`` is empty every distance is 0.0.

    Args:
        source: Cloud whose points are queried
        target: Cloud that is indexed
        config: Optional configuration (spatial index and parallel settings)

    Returns:
        (len(source),) array of distances
    """
    config = resolve_config(config)

    index = create_spatial_index(
        target.points,
        backend=config.spatial_index.backend,
        leaf_size=config.spatial_index.leaf_size,
    )
    distances = _knn_distances(
        index, source.points, 1, "compute_point_cloud_to_point_cloud_distance", config
    )

    stats = summarize_distances(distances)
    logger.debug(
        "Cloud-to-cloud distance: src=%d, tgt=%d, mean=%.4f, max=%.4f",
        len(source), len(target), stats.mean, stats.max,
    )
    return distances


def compute_point_cloud_nearest_neighbor_distance(
    cloud: PointCloud,
    config: Optional[AppConfig] = None,
) -> np.ndarray:
    """
    Distance from every point to its nearest other point in the same cloud.

    Each query asks for two neighbors and keeps the second, since the first
    is the point itself. A cloud with a single point yields 0.0.

    Args:
        cloud: Cloud to analyse
        config: Optional configuration (spatial index and parallel settings)

    Returns:
        (len(cloud),) array of distances
    """
    config = resolve_config(config)

    index = create_spatial_index(
        cloud.points,
        backend=config.spatial_index.backend,
        leaf_size=config.spatial_index.leaf_size,
    )
    distances = _knn_distances(
        index, cloud.points, 2, "compute_point_cloud_nearest_neighbor_distance", config
    )

    stats = summarize_distances(distances)
    logger.debug(
        "Nearest neighbor distance: n=%d, mean=%.4f, median=%.4f",
        stats.n, stats.mean, stats.median,
    )
    return distances
