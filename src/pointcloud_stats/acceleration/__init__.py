"""
Acceleration Module

This module provides the execution infrastructure for the statistics:
- Chunked thread-pool fan-out for per-point loops (parallel_executor.py)
- GPU detection and NumPy/CuPy switching (hardware_detection.py, gpu_array_ops.py)
- Device mirrors of point cloud arrays (device_mirror.py)
- Cumulant kernels shared by host and device (moment_kernels.py)
- cuML nearest neighbor index (gpu_neighbors.py)
- Numba kernels for transforms (jit_kernels.py)
"""

from .parallel_executor import ChunkParallelExecutor
from .hardware_detection import (
    GPUInfo,
    detect_gpu,
    get_gpu_info,
    clear_gpu_cache,
    check_gpu_memory,
    get_optimal_batch_size,
)
from .gpu_array_ops import (
    ArrayBackend,
    get_array_backend,
    reset_array_backend,
)
from .moment_kernels import (
    accumulate_cumulants,
    cumulants_to_mean_and_covariance,
    mean_and_covariance,
)
from .device_mirror import (
    Accelerator,
    ArrayBackendAccelerator,
    DeviceBuffer,
    DeviceMirror,
    MIRRORED_ARRAYS,
    get_default_accelerator,
    reset_default_accelerator,
)
from .jit_kernels import apply_transform_jit, apply_linear_jit

__all__ = [
    # Parallel processing
    "ChunkParallelExecutor",
    # GPU acceleration
    "GPUInfo",
    "detect_gpu",
    "get_gpu_info",
    "clear_gpu_cache",
    "check_gpu_memory",
    "get_optimal_batch_size",
    "ArrayBackend",
    "get_array_backend",
    "reset_array_backend",
    # Moments
    "accumulate_cumulants",
    "cumulants_to_mean_and_covariance",
    "mean_and_covariance",
    # Device mirrors
    "Accelerator",
    "ArrayBackendAccelerator",
    "DeviceBuffer",
    "DeviceMirror",
    "MIRRORED_ARRAYS",
    "get_default_accelerator",
    "reset_default_accelerator",
    # JIT kernels
    "apply_transform_jit",
    "apply_linear_jit",
]
