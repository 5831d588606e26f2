"""
GPU array operations abstraction layer.

Provides transparent NumPy/CuPy switching so the same reduction code runs on
host arrays and on device arrays.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

import numpy as np

from .hardware_detection import get_gpu_info

logger = logging.getLogger(__name__)

# Type aliases
ArrayType = Union[np.ndarray, Any]  # Any to support cupy.ndarray without import


class ArrayBackend:
    """
    Array backend manager for CPU/GPU operations.

    Exposes the active array module as ``xp`` (``cupy`` when a CUDA device is
    usable, ``numpy`` otherwise) together with host/device transfers.
    """

    def __init__(self, use_gpu: bool = True):
        """
        Initialize array backend.

        Args:
            use_gpu: Whether to use GPU if available (default: True)
        """
        self.use_gpu = use_gpu
        self._gpu_available = False
        self._cp = None

        if use_gpu:
            self._initialize_gpu()

    def _initialize_gpu(self):
        """Initialize GPU backend if available."""
        gpu_info = get_gpu_info()

        if not gpu_info.available:
            logger.info(
                f"GPU not available ({gpu_info.error_message}), using CPU backend"
            )
            return

        try:
            import cupy as cp
        except ImportError as e:
            logger.warning(f"Failed to import CuPy: {e}, using CPU backend")
            return

        self._cp = cp
        self._gpu_available = True
        logger.info(
            f"GPU backend initialized: {gpu_info.device_name} "
            f"({gpu_info.memory_gb:.1f} GB)"
        )

    @property
    def xp(self):
        """Get array module (numpy or cupy)."""
        if self._gpu_available and self._cp is not None:
            return self._cp
        return np

    @property
    def is_gpu(self) -> bool:
        """Check if GPU backend is active."""
        return self._gpu_available

    @property
    def name(self) -> str:
        return "cupy" if self.is_gpu else "numpy"

    def to_cpu(self, arr: ArrayType) -> np.ndarray:
        """Transfer array to CPU (NumPy)."""
        if self._gpu_available and self._cp is not None:
            if isinstance(arr, self._cp.ndarray):
                return self._cp.asnumpy(arr)
        return np.asarray(arr)

    def empty(self, shape, dtype=np.float64) -> ArrayType:
        """Create uninitialized array."""
        return self.xp.empty(shape, dtype=dtype)

    def free_unused_blocks(self) -> None:
        """Return cached, unreferenced device blocks to the driver."""
        if self._gpu_available and self._cp is not None:
            self._cp.get_default_memory_pool().free_all_blocks()


# Global backend instance
_backend: Optional[ArrayBackend] = None


def get_array_backend(use_gpu: bool = True) -> ArrayBackend:
    """
    Get or create global array backend.

    Args:
        use_gpu: Whether to use GPU if available. Only honoured on the first
            call; use reset_array_backend() to switch.

    Example:
        >>> backend = get_array_backend()
        >>> arr = backend.empty((1000, 3))  # GPU if available, else CPU
        >>> cpu_arr = backend.to_cpu(arr)
    """
    global _backend

    if _backend is None:
        _backend = ArrayBackend(use_gpu=use_gpu)

    return _backend


def reset_array_backend():
    """Reset global array backend, forcing reinitialization."""
    global _backend
    _backend = None
