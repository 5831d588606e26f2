"""
Geometry Module

Point cloud container and the spatial index capability used by the statistics.
"""

from .point_cloud import PointCloud
from .spatial_index import (
    KDTreeIndex,
    KNNResult,
    SpatialIndex,
    create_spatial_index,
)

__all__ = [
    "PointCloud",
    "KDTreeIndex",
    "KNNResult",
    "SpatialIndex",
    "create_spatial_index",
]
