"""
Utility Functions Module

This module provides common utility functions used across the pointcloud-stats project.
- Logging setup
- Typed YAML configuration
"""

from .logging import configure_logging, setup_logger, set_log_level
from .config import (
    AppConfig,
    GPUConfig,
    LoggingConfig,
    ParallelConfig,
    SpatialIndexConfig,
    load_config,
    resolve_config,
)

__all__ = [
    "setup_logger",
    "set_log_level",
    "configure_logging",
    "AppConfig",
    "GPUConfig",
    "LoggingConfig",
    "ParallelConfig",
    "SpatialIndexConfig",
    "load_config",
    "resolve_config",
]
