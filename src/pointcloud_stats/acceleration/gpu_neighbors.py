"""
GPU-accelerated nearest neighbor index.

Implements the SpatialIndex capability with:
- GPU: cuML NearestNeighbors (Linux with a CUDA device)
- CPU: scikit-learn KDTree (fallback when cuML or a GPU is unavailable)
"""

import logging
from typing import Optional, Tuple

import numpy as np
from sklearn.neighbors import KDTree

from ..geometry.spatial_index import SpatialIndex
from .hardware_detection import GPUInfo, get_gpu_info

logger = logging.getLogger(__name__)


class GPUNeighborsIndex(SpatialIndex):
    """
    k-NN index that runs on the GPU through cuML when it can.

    Parameters
    ----------
    leaf_size : int, default=30
        Leaf size of the CPU KD-tree fallback
    use_gpu : bool, default=True
        Whether to attempt GPU acceleration

    Attributes
    ----------
    gpu_available_ : bool
        Whether GPU is being used
    backend_ : str
        Backend in use: 'cuml' or 'sklearn-cpu'
    """

    def __init__(self, leaf_size: int = 30, use_gpu: bool = True):
        super().__init__()
        self.leaf_size = leaf_size
        self.use_gpu = use_gpu

        self._model = None
        self._gpu_info: Optional[GPUInfo] = None
        self.gpu_available_ = False
        self.backend_ = 'sklearn-cpu'
        self._initialize_backend()

    def _initialize_backend(self) -> None:
        """Determine which implementation to use."""
        if not self.use_gpu:
            logger.debug("GPU disabled by configuration, using CPU KD-tree")
            return

        self._gpu_info = get_gpu_info()
        if not self._gpu_info.available:
            logger.debug(f"GPU unavailable ({self._gpu_info.error_message}), using CPU KD-tree")
            return

        try:
            import cuml  # noqa: F401
        except ImportError:
            logger.info("cuML not installed, using CPU KD-tree")
            return

        self.backend_ = 'cuml'
        self.gpu_available_ = True
        logger.info(f"Using cuML nearest neighbors on GPU: {self._gpu_info.device_name}")

    def _fit_cpu(self, points: np.ndarray) -> None:
        self.backend_ = 'sklearn-cpu'
        self.gpu_available_ = False
        self._model = KDTree(points, leaf_size=self.leaf_size)

    def _fit(self, points: np.ndarray) -> None:
        if self.backend_ != 'cuml':
            self._fit_cpu(points)
            return

        try:
            import cupy as cp
            from cuml.neighbors import NearestNeighbors as CuMLNN

            self._model = CuMLNN(n_neighbors=1, metric='euclidean')
            self._model.fit(cp.asarray(points))
        except Exception as e:
            logger.warning(f"cuML fit failed ({e}), falling back to CPU KD-tree")
            self._fit_cpu(points)

    def _query(self, queries: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
        if self.backend_ == 'sklearn-cpu':
            return self._model.query(queries, k=k, return_distance=True, sort_results=True)

        import cupy as cp

        distances, indices = self._model.kneighbors(
            cp.asarray(queries), n_neighbors=k, return_distance=True
        )
        return cp.asnumpy(distances), cp.asnumpy(indices)
