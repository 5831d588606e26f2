"""
GPU hardware detection for the optional device path.

Reports whether a CUDA device is usable through CuPy and how much of its
memory a moment reduction may claim. Every device query degrades to "unavailable"
instead of raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# xyz (3 doubles) + nine cumulant columns (9 doubles)
BYTES_PER_POINT_CUMULANTS = 12 * 8


@dataclass
class GPUInfo:
    """GPU device information."""

    available: bool
    device_count: int
    device_name: Optional[str] = None
    memory_gb: Optional[float] = None
    cuda_version: Optional[str] = None
    compute_capability: Optional[tuple] = None
    error_message: Optional[str] = None


def detect_gpu() -> GPUInfo:
    """
    Detect GPU availability and capabilities.

    Attempts to import CuPy and query CUDA device 0. Falls back to an
    unavailable marker when CuPy is missing or no device can be opened.

    Returns:
        GPUInfo with device details, or unavailable marker with error message

    Example:
        >>> info = detect_gpu()
        >>> if not info.available:
        ...     print(f"device path disabled: {info.error_message}")
    """
    try:
        import cupy as cp
    except ImportError as e:
        logger.info(f"CuPy not installed - device mirrors use host memory: {e}")
        return GPUInfo(available=False, device_count=0, error_message="CuPy not installed")

    try:
        if not cp.cuda.is_available():
            logger.info("CUDA not available - device mirrors use host memory")
            return GPUInfo(
                available=False,
                device_count=0,
                error_message="CUDA runtime not available",
            )

        device_count = cp.cuda.runtime.getDeviceCount()
        if device_count == 0:
            logger.info("No CUDA devices found - device mirrors use host memory")
            return GPUInfo(
                available=False,
                device_count=0,
                error_message="No CUDA devices detected",
            )

        device = cp.cuda.Device(0)
        total_bytes = device.mem_info[1]

        # "86" -> (8, 6)
        cc_str = str(device.compute_capability)
        if len(cc_str) >= 2:
            compute_capability = (int(cc_str[0]), int(cc_str[1:]))
        else:
            compute_capability = (int(cc_str), 0)

        device_name = cp.cuda.runtime.getDeviceProperties(0)["name"].decode("utf-8")

        info = GPUInfo(
            available=True,
            device_count=device_count,
            device_name=device_name,
            memory_gb=total_bytes / 1024**3,
            cuda_version=str(cp.cuda.runtime.runtimeGetVersion()),
            compute_capability=compute_capability,
        )
        logger.info(
            f"GPU detected: {info.device_name} "
            f"({info.memory_gb:.1f} GB, "
            f"compute {info.compute_capability[0]}.{info.compute_capability[1]})"
        )
        return info

    except Exception as e:
        logger.warning(f"GPU detection failed - device mirrors use host memory: {e}")
        return GPUInfo(available=False, device_count=0, error_message=str(e))


def check_gpu_memory(required_gb: float) -> tuple[bool, Optional[float]]:
    """
    Check if the GPU has at least ``required_gb`` of free memory.

    Returns:
        Tuple of (has_sufficient_memory, available_gb); available_gb is None
        when no device could be queried.
    """
    if not get_gpu_info().available:
        return False, None

    try:
        import cupy as cp

        free_gb = cp.cuda.Device(0).mem_info[0] / 1024**3
    except Exception as e:
        logger.warning(f"Failed to check GPU memory: {e}")
        return False, None

    has_sufficient = free_gb >= required_gb
    if not has_sufficient:
        logger.warning(
            f"Insufficient GPU memory: {free_gb:.1f} GB available, "
            f"{required_gb:.1f} GB required"
        )
    return has_sufficient, free_gb


def get_optimal_batch_size(
    point_count: int,
    bytes_per_point: int = BYTES_PER_POINT_CUMULANTS,
    max_memory_fraction: float = 0.8,
    min_batch_size: int = 1000,
) -> int:
    """
    Number of points one cumulant batch may hold on the device.

    Args:
        point_count: Total number of points to reduce
        bytes_per_point: Device bytes needed per point in flight
        max_memory_fraction: Maximum fraction of free device memory to use
        min_batch_size: Lower bound for the returned size

    Returns:
        Batch size, or ``point_count`` when no GPU is available
    """
    if point_count <= 0:
        return 0
    if not get_gpu_info().available:
        return point_count

    try:
        import cupy as cp

        available_bytes = cp.cuda.Device(0).mem_info[0] * max_memory_fraction
    except Exception as e:
        logger.warning(f"Failed to calculate batch size: {e}")
        return point_count

    batch_size = int(available_bytes / bytes_per_point)
    batch_size = min(max(batch_size, min_batch_size), point_count)

    logger.debug(
        f"Optimal batch size: {batch_size:,} points "
        f"({batch_size * bytes_per_point / 1024**3:.2f} GB)"
    )
    return batch_size


# Global GPU info cache
_gpu_info_cache: Optional[GPUInfo] = None


def get_gpu_info() -> GPUInfo:
    """
    Get cached GPU information.

    Detects GPU on first call and caches result for subsequent calls.
    """
    global _gpu_info_cache

    if _gpu_info_cache is None:
        _gpu_info_cache = detect_gpu()

    return _gpu_info_cache


def clear_gpu_cache():
    """Clear the GPU info cache, forcing re-detection on next get_gpu_info() call."""
    global _gpu_info_cache
    _gpu_info_cache = None
