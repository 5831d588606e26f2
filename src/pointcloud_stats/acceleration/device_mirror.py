"""
Device mirrors of point cloud arrays.

A mirror is an explicit copy of a host array (points, normals or colors) in
accelerator memory. It is created and refreshed on request only, and released
on request or when its owning buffer is dropped. Allocation and copy failures
are reported as ``False``/``None`` and never raised.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .gpu_array_ops import ArrayBackend, get_array_backend
from .hardware_detection import check_gpu_memory
from .moment_kernels import mean_and_covariance

logger = logging.getLogger(__name__)

MIRRORED_ARRAYS = ("points", "normals", "colors")

# Failures the array libraries report for allocation and transfers
# (cupy's OutOfMemoryError is a MemoryError, CUDARuntimeError a RuntimeError).
_DEVICE_ERRORS = (MemoryError, RuntimeError, ValueError)


class Accelerator(ABC):
    """Minimal accelerator capability used by device mirrors."""

    name = "abstract"

    @abstractmethod
    def allocate(self, shape: Tuple[int, ...]) -> Optional[Any]:
        """Allocate a float64 device array, or return None on failure."""

    @abstractmethod
    def free(self, handle: Any) -> bool:
        """Give up a device array previously returned by allocate()."""

    def reclaim(self) -> None:
        """Return memory of freed arrays to the device; no-op by default."""

    @abstractmethod
    def copy_host_to_device(self, handle: Any, host: np.ndarray) -> bool:
        """Copy ``host`` into ``handle``; shapes must match."""

    @abstractmethod
    def copy_device_to_host(self, handle: Any) -> np.ndarray:
        """Return a host copy of ``handle``."""

    @abstractmethod
    def run_reduction(
        self, handle: Any, count: int, batch_size: Optional[int] = None
    ) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """Mean and covariance of the first ``count`` rows, or None on failure."""


class ArrayBackendAccelerator(Accelerator):
    """
    Accelerator over the NumPy/CuPy ArrayBackend.

    With a CUDA device the buffers are CuPy arrays; without one they are
    NumPy arrays in host memory, so the mirror lifecycle behaves the same
    on every machine.

    Attributes:
        live_allocations: Number of buffers handed out and not yet freed
        live_bytes: Bytes held by those buffers
    """

    def __init__(self, backend: Optional[ArrayBackend] = None):
        self.backend = backend if backend is not None else get_array_backend()
        self.live_allocations = 0
        self.live_bytes = 0

    @property
    def name(self) -> str:
        return self.backend.name

    @property
    def is_gpu(self) -> bool:
        return self.backend.is_gpu

    def allocate(self, shape: Tuple[int, ...]) -> Optional[Any]:
        if self.is_gpu:
            required_gb = int(np.prod(shape)) * np.dtype(np.float64).itemsize / 1024**3
            has_memory, _ = check_gpu_memory(required_gb)
            if not has_memory:
                logger.warning(f"Device allocation of shape {shape} skipped on {self.name}")
                return None
        try:
            handle = self.backend.empty(shape, dtype=np.float64)
        except _DEVICE_ERRORS as e:
            logger.warning(f"Device allocation of shape {shape} failed on {self.name}: {e}")
            return None
        self.live_allocations += 1
        self.live_bytes += int(handle.nbytes)
        return handle

    def free(self, handle: Any) -> bool:
        if handle is None:
            return True
        self.live_allocations -= 1
        self.live_bytes -= int(handle.nbytes)
        return True

    def reclaim(self) -> None:
        self.backend.free_unused_blocks()

    def copy_host_to_device(self, handle: Any, host: np.ndarray) -> bool:
        if handle.shape != host.shape:
            logger.warning(
                f"Host/device shape mismatch: {host.shape} vs {handle.shape}"
            )
            return False
        try:
            if self.backend.is_gpu:
                handle.set(host)
            else:
                np.copyto(handle, host)
        except _DEVICE_ERRORS as e:
            logger.warning(f"Host to device copy failed on {self.name}: {e}")
            return False
        return True

    def copy_device_to_host(self, handle: Any) -> np.ndarray:
        return np.array(self.backend.to_cpu(handle), dtype=np.float64, copy=True)

    def run_reduction(
        self, handle: Any, count: int, batch_size: Optional[int] = None
    ) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        try:
            mean, covariance = mean_and_covariance(
                handle[:count], xp=self.backend.xp, batch_size=batch_size
            )
            return self.backend.to_cpu(mean), self.backend.to_cpu(covariance)
        except _DEVICE_ERRORS as e:
            logger.warning(f"Device reduction failed on {self.name}: {e}")
            return None


class DeviceBuffer:
    """
    Exclusively owned device array.

    Use :meth:`acquire` to allocate; :meth:`release` gives the memory back
    and may be called any number of times. Also usable as a context manager.
    """

    def __init__(self, accelerator: Accelerator, data: Any):
        self._accelerator = accelerator
        self._data = data

    @classmethod
    def acquire(cls, accelerator: Accelerator, shape: Tuple[int, ...]) -> Optional["DeviceBuffer"]:
        data = accelerator.allocate(shape)
        if data is None:
            return None
        return cls(accelerator, data)

    @property
    def data(self) -> Optional[Any]:
        return self._data

    @property
    def is_released(self) -> bool:
        return self._data is None

    def upload(self, host: np.ndarray) -> bool:
        if self._data is None:
            return False
        return self._accelerator.copy_host_to_device(self._data, host)

    def download(self) -> np.ndarray:
        if self._data is None:
            raise ValueError("Cannot download from a released device buffer")
        return self._accelerator.copy_device_to_host(self._data)

    def release(self) -> bool:
        if self._data is None:
            return True
        data, self._data = self._data, None
        freed = self._accelerator.free(data)
        # The pool can only hand back blocks nothing references any more
        del data
        self._accelerator.reclaim()
        return freed

    def __enter__(self) -> "DeviceBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __del__(self):
        # Keep accounting balanced for buffers dropped without release()
        if getattr(self, "_data", None) is not None:
            self.release()


class DeviceMirror:
    """
    Per-cloud set of device buffers, one slot per mirrored array.

    Every operation returns an explicit bool. A failed refresh leaves its
    slot empty rather than pointing at a stale or half-written buffer.
    """

    def __init__(self, accelerator: Optional[Accelerator] = None):
        self._accelerator = accelerator
        self._buffers: Dict[str, Optional[DeviceBuffer]] = {
            name: None for name in MIRRORED_ARRAYS
        }

    @property
    def accelerator(self) -> Accelerator:
        if self._accelerator is None:
            self._accelerator = get_default_accelerator()
        return self._accelerator

    @property
    def assigned_accelerator(self) -> Optional[Accelerator]:
        """Accelerator given or resolved so far, without resolving the default."""
        return self._accelerator

    @staticmethod
    def _check_name(name: str) -> None:
        if name not in MIRRORED_ARRAYS:
            raise ValueError(f"Unknown mirrored array {name!r}, expected one of {MIRRORED_ARRAYS}")

    def handle(self, name: str) -> Optional[Any]:
        """Device array currently mirroring ``name``, or None."""
        self._check_name(name)
        buffer = self._buffers[name]
        return buffer.data if buffer is not None else None

    def refresh(self, name: str, host: np.ndarray) -> bool:
        """Replace the mirror of ``name`` with a fresh copy of ``host``."""
        self._check_name(name)
        if not self.release(name):
            logger.warning(f"Could not free the previous {name} mirror")
            return False

        host = np.ascontiguousarray(host, dtype=np.float64)
        buffer = DeviceBuffer.acquire(self.accelerator, host.shape)
        if buffer is None:
            return False
        if not buffer.upload(host):
            buffer.release()
            return False

        self._buffers[name] = buffer
        logger.debug(f"Refreshed {name} mirror: {host.shape[0]} rows on {self.accelerator.name}")
        return True

    def refresh_all(self, points: np.ndarray, normals: np.ndarray, colors: np.ndarray) -> bool:
        """Refresh all three mirrors; every refresh is attempted."""
        results = [
            self.refresh("points", points),
            self.refresh("normals", normals),
            self.refresh("colors", colors),
        ]
        return all(results)

    def release(self, name: str) -> bool:
        """Free the mirror of ``name``; succeeds when there is none."""
        self._check_name(name)
        buffer = self._buffers[name]
        if buffer is None:
            return True
        self._buffers[name] = None
        return buffer.release()

    def release_all(self) -> bool:
        """Release all three mirrors; every release is attempted."""
        results = [self.release(name) for name in MIRRORED_ARRAYS]
        return all(results)


# Global accelerator instance
_accelerator: Optional[ArrayBackendAccelerator] = None


def get_default_accelerator() -> ArrayBackendAccelerator:
    """Process-wide accelerator over the global array backend."""
    global _accelerator

    if _accelerator is None:
        _accelerator = ArrayBackendAccelerator(get_array_backend())

    return _accelerator


def reset_default_accelerator():
    """Drop the process-wide accelerator, forcing reinitialization."""
    global _accelerator
    _accelerator = None
