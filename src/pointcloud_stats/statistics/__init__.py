"""
Statistics Module

Per-point distances and moments of point clouds:
- Cloud-to-cloud and nearest-neighbor distances
- Mean, covariance and Mahalanobis distance (host and device paths)
"""

from .distances import (
    DistanceStatistics,
    compute_point_cloud_nearest_neighbor_distance,
    compute_point_cloud_to_point_cloud_distance,
    summarize_distances,
)
from .moments import (
    compute_point_cloud_mahalanobis_distance,
    compute_point_cloud_mean_and_covariance,
    compute_point_cloud_mean_and_covariance_gpu,
    invert_covariance,
)

__all__ = [
    "DistanceStatistics",
    "compute_point_cloud_nearest_neighbor_distance",
    "compute_point_cloud_to_point_cloud_distance",
    "summarize_distances",
    "compute_point_cloud_mahalanobis_distance",
    "compute_point_cloud_mean_and_covariance",
    "compute_point_cloud_mean_and_covariance_gpu",
    "invert_covariance",
]
