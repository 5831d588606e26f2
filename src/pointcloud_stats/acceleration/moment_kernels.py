"""Cumulant-based moment kernels shared by the host and device paths.

Both functions take the array module (``numpy`` or ``cupy``) as ``xp`` so the
exact same arithmetic runs wherever the points live.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

# Σx, Σy, Σz, Σx², Σxy, Σxz, Σy², Σyz, Σz²
N_CUMULANTS = 9


def accumulate_cumulants(points, xp=np, batch_size: Optional[int] = None):
    """Sum first and second order raw moments over an (N, 3) array.

    Args:
        points: (N, 3) float64 array on the backend of ``xp``.
        xp: Array module.
        batch_size: Points reduced per step; None reduces everything at once.

    Returns:
        (9,) array of sums on the backend of ``xp``.
    """
    n = int(points.shape[0])
    cumulants = xp.zeros(N_CUMULANTS, dtype=xp.float64)
    if n == 0:
        return cumulants

    step = n if not batch_size or batch_size <= 0 else int(batch_size)
    for start in range(0, n, step):
        chunk = points[start:start + step]
        x = chunk[:, 0]
        y = chunk[:, 1]
        z = chunk[:, 2]
        cumulants += xp.stack([
            xp.sum(x),
            xp.sum(y),
            xp.sum(z),
            xp.sum(x * x),
            xp.sum(x * y),
            xp.sum(x * z),
            xp.sum(y * y),
            xp.sum(y * z),
            xp.sum(z * z),
        ])
    return cumulants


def cumulants_to_mean_and_covariance(cumulants, count: int, xp=np) -> Tuple:
    """Turn raw sums into a mean vector and covariance matrix.

    All nine sums are divided by ``count`` first; covariance entries are then
    E[xi*xj] - E[xi]*E[xj] on the averaged values. An empty input yields a
    zero mean and an identity covariance.
    """
    if count == 0:
        return xp.zeros(3, dtype=xp.float64), xp.eye(3, dtype=xp.float64)

    c = cumulants / float(count)
    mean = c[0:3].copy()

    covariance = xp.empty((3, 3), dtype=xp.float64)
    covariance[0, 0] = c[3] - c[0] * c[0]
    covariance[1, 1] = c[6] - c[1] * c[1]
    covariance[2, 2] = c[8] - c[2] * c[2]
    covariance[0, 1] = c[4] - c[0] * c[1]
    covariance[1, 0] = covariance[0, 1]
    covariance[0, 2] = c[5] - c[0] * c[2]
    covariance[2, 0] = covariance[0, 2]
    covariance[1, 2] = c[7] - c[1] * c[2]
    covariance[2, 1] = covariance[1, 2]
    return mean, covariance


def mean_and_covariance(points, xp=np, batch_size: Optional[int] = None) -> Tuple:
    """Mean and covariance of an (N, 3) array on the backend of ``xp``."""
    cumulants = accumulate_cumulants(points, xp=xp, batch_size=batch_size)
    return cumulants_to_mean_and_covariance(cumulants, int(points.shape[0]), xp=xp)
