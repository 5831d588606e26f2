"""
Point Cloud Statistics Package

A Python package for spatial statistics over 3-D point clouds: bounding
boxes, affine transforms, concatenation, nearest-neighbor distances within
and between clouds, and mean/covariance/Mahalanobis moments. Neighbor
queries go through a KD-tree index and fan out over a thread pool; the
moment reduction can also run on a CUDA device through CuPy.
"""

__version__ = "0.1.0"

from .geometry import *
from .statistics import *
from .acceleration import *
from .utils import *

__all__ = [
    "geometry",
    "statistics",
    "acceleration",
    "utils",
]
