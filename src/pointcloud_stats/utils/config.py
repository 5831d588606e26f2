"""
Configuration management for pointcloud-stats.

Provides a typed pydantic model and YAML loader with sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Literal, Any, Dict

from pydantic import BaseModel, Field, ValidationError
import yaml

from .logging import configure_logging


# -----------------------
# Typed config structures
# -----------------------


class ParallelConfig(BaseModel):
    enabled: bool = Field(default=True, description="Fan per-point loops out over a thread pool")
    n_workers: Optional[int] = Field(
        default=None,
        description="Number of worker threads (None = auto-detect: cpu_count - 1)",
    )
    min_points_per_worker: int = Field(
        default=50_000,
        description="Smallest contiguous range handed to a single worker",
    )


class GPUConfig(BaseModel):
    enabled: bool = Field(default=True, description="Enable GPU acceleration if available (graceful CPU fallback)")
    fallback_to_cpu: bool = Field(
        default=False,
        description="Run the host reduction when the device mirror cannot be refreshed",
    )
    batch_size: Optional[int] = Field(
        default=None,
        description="Points per cumulant batch (None = auto-calculate based on memory)",
    )
    max_memory_fraction: float = Field(
        default=0.8,
        description="Fraction of free GPU memory a single batch may use",
    )


class SpatialIndexConfig(BaseModel):
    # 'kdtree' is the scikit-learn tree; 'gpu' uses cuML when present and
    # falls back to the scikit-learn tree otherwise.
    backend: Literal["kdtree", "gpu"] = Field(default="kdtree")
    leaf_size: int = Field(default=30, description="Leaf size passed to the KD-tree")


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class AppConfig(BaseModel):
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)
    gpu: GPUConfig = Field(default_factory=GPUConfig)
    spatial_index: SpatialIndexConfig = Field(default_factory=SpatialIndexConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Resolve the repository root directory.

    File is at: repo_root/src/pointcloud_stats/utils/config.py
    parents sequence:
      0 -> .../src/pointcloud_stats/utils
      1 -> .../src/pointcloud_stats
      2 -> .../src
      3 -> repo_root
    """
    return Path(__file__).resolve().parents[3]


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Load configuration from YAML into a typed AppConfig.

    Search order when path is None:
    1) repo_root/config/default.yaml
    2) if missing and allow_missing=True: return default AppConfig()

    Args:
        path: Explicit YAML file path.
        allow_missing: If True, returns defaults when file missing; otherwise raises.

    Returns:
        AppConfig instance
    """
    cfg_path: Path
    if path is None:
        cfg_path = _project_root() / "config" / "default.yaml"
    else:
        cfg_path = Path(path)

    if not cfg_path.exists():
        if allow_missing:
            return AppConfig()
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        # Re-raise with context to help users fix the YAML
        raise ValueError(f"Invalid configuration in {cfg_path}: {e}") from e


def resolve_config(config: Optional[AppConfig] = None) -> AppConfig:
    """
    Configuration for one library call.

    ``None`` means defaults and leaves logging untouched; an explicit config
    has its ``logging`` section applied before it is returned.
    """
    if config is None:
        return AppConfig()
    configure_logging(config)
    return config
