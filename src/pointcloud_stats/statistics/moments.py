"""
First and second order moments of point clouds.

Mean and covariance come from nine running sums (Σx, Σy, Σz and the six
distinct second order products) divided by the point count. The host and
device paths share the kernels in ``acceleration.moment_kernels`` and differ
only in the array module they run on.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ..acceleration.hardware_detection import get_optimal_batch_size
from ..acceleration.moment_kernels import mean_and_covariance
from ..acceleration.parallel_executor import ChunkParallelExecutor
from ..geometry.point_cloud import PointCloud
from ..utils.config import AppConfig, resolve_config
from ..utils.logging import setup_logger

logger = setup_logger(__name__)

MeanAndCovariance = Tuple[np.ndarray, np.ndarray]


def compute_point_cloud_mean_and_covariance(
    cloud: PointCloud,
    config: Optional[AppConfig] = None,
) -> MeanAndCovariance:
    """
    Mean vector and covariance matrix of the cloud's points.

    Args:
        cloud: Input cloud
        config: Optional configuration; only its logging section applies here

    Returns:
        Tuple of ((3,) mean, (3, 3) covariance). An empty cloud yields a
        zero mean and an identity covariance.
    """
    resolve_config(config)
    mean, covariance = mean_and_covariance(cloud.points, xp=np)
    return mean, covariance


def invert_covariance(covariance: np.ndarray) -> np.ndarray:
    """
    Closed-form inverse of a 3x3 matrix.

    There is no singularity check: a singular or near-singular matrix
    produces inf/NaN entries instead of an exception.
    """
    a0, a1, a2 = np.asarray(covariance, dtype=np.float64)
    c0 = np.cross(a1, a2)
    c1 = np.cross(a2, a0)
    c2 = np.cross(a0, a1)
    det = np.dot(a0, c0)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.column_stack([c0, c1, c2]) / det


def _mahalanobis_chunk(
    start: int,
    stop: int,
    points: np.ndarray,
    mean: np.ndarray,
    cov_inv: np.ndarray,
) -> np.ndarray:
    d = points[start:stop] - mean
    with np.errstate(invalid="ignore", over="ignore"):
        return np.sqrt(np.einsum("ij,jk,ik->i", d, cov_inv, d))


def compute_point_cloud_mahalanobis_distance(
    cloud: PointCloud,
    config: Optional[AppConfig] = None,
) -> np.ndarray:
    """
    Mahalanobis distance of every point from the cloud's own distribution.

    Computes sqrt((p - mean)^T cov^-1 (p - mean)) per point. Degenerate
    clouds (coplanar, collinear, single point) have a singular covariance
    and produce non-finite distances.

    Args:
        cloud: Input cloud
        config: Optional configuration (parallel settings)

    Returns:
        (len(cloud),) array of distances
    """
    config = resolve_config(config)

    mean, covariance = compute_point_cloud_mean_and_covariance(cloud, config)
    cov_inv = invert_covariance(covariance)

    executor = ChunkParallelExecutor.from_config(config)
    distances = executor.map_ranges(
        n_items=len(cloud),
        worker_fn=_mahalanobis_chunk,
        worker_kwargs={"points": cloud.points, "mean": mean, "cov_inv": cov_inv},
    )

    n_bad = int(np.count_nonzero(~np.isfinite(distances)))
    if n_bad:
        logger.debug(f"Mahalanobis distance: {n_bad} non-finite values (singular covariance?)")
    return distances


def compute_point_cloud_mean_and_covariance_gpu(
    cloud: PointCloud,
    config: Optional[AppConfig] = None,
) -> Optional[MeanAndCovariance]:
    """
    Mean and covariance computed on the cloud's device mirror.

    Refreshes the device copy of the points, reduces it on the accelerator
    and copies the result back as NumPy arrays. The points mirror stays
    alive afterwards; release it with ``cloud.release_device_points()``.

    Args:
        cloud: Input cloud
        config: Optional configuration (GPU settings)

    Returns:
        Same (mean, covariance) as the host function, or None when the
        mirror refresh or the reduction fails and ``gpu.fallback_to_cpu``
        is disabled.
    """
    config = resolve_config(config)

    if not config.gpu.enabled:
        logger.info("GPU disabled by configuration, computing moments on host")
        return compute_point_cloud_mean_and_covariance(cloud, config)

    if not cloud.update_device_points():
        return _device_failure(cloud, config, "device points mirror could not be refreshed")

    batch_size = config.gpu.batch_size or get_optimal_batch_size(
        len(cloud), max_memory_fraction=config.gpu.max_memory_fraction
    )
    result = cloud.accelerator.run_reduction(cloud.device_points, len(cloud), batch_size)
    if result is None:
        return _device_failure(cloud, config, "device reduction failed")

    mean, covariance = result
    logger.debug(
        "Device moments on %s: n=%d, batch=%d",
        cloud.accelerator.name, len(cloud), batch_size,
    )
    return np.asarray(mean, dtype=np.float64), np.asarray(covariance, dtype=np.float64)


def _device_failure(
    cloud: PointCloud, config: AppConfig, reason: str
) -> Optional[MeanAndCovariance]:
    if config.gpu.fallback_to_cpu:
        logger.warning(f"{reason}, falling back to host reduction")
        return compute_point_cloud_mean_and_covariance(cloud, config)
    logger.warning(reason)
    return None
