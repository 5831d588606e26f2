"""
Tests for logger setup.
"""

import logging

import numpy as np
import pytest

from pointcloud_stats.geometry import PointCloud
from pointcloud_stats.statistics import compute_point_cloud_to_point_cloud_distance
from pointcloud_stats.utils.config import AppConfig, resolve_config
from pointcloud_stats.utils.logging import configure_logging, set_log_level, setup_logger


def test_setup_logger_no_duplicate_handlers():
    logger = setup_logger("pointcloud_stats.tests.dup")
    n_handlers = len(logger.handlers)

    again = setup_logger("pointcloud_stats.tests.dup")

    assert again is logger
    assert len(again.handlers) == n_handlers == 1


def test_setup_logger_with_file(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    logger = setup_logger("pointcloud_stats.tests.file", log_file=str(log_file))

    logger.info("hello file")
    for handler in logger.handlers:
        handler.flush()

    assert log_file.exists()
    assert "hello file" in log_file.read_text()

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_set_log_level_by_name():
    logger = setup_logger("pointcloud_stats.tests.level")

    set_log_level("DEBUG")

    assert logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in logger.handlers)

    set_log_level(logging.INFO)
    assert logger.level == logging.INFO


def test_set_log_level_unknown():
    with pytest.raises(ValueError):
        set_log_level("LOUD")


@pytest.fixture
def restore_package_logging():
    yield
    package_logger = logging.getLogger("pointcloud_stats")
    for handler in list(package_logger.handlers):
        handler.close()
        package_logger.removeHandler(handler)
    set_log_level(logging.INFO)


def test_configure_logging_level(restore_package_logging):
    module_logger = setup_logger("pointcloud_stats.tests.configured")
    config = AppConfig.model_validate({"logging": {"level": "ERROR"}})

    configure_logging(config)

    assert module_logger.getEffectiveLevel() == logging.ERROR
    assert logging.getLogger("pointcloud_stats.acceleration.parallel_executor").getEffectiveLevel() == logging.ERROR


def test_configure_logging_file_attached_once(tmp_path, restore_package_logging):
    log_file = tmp_path / "logs" / "stats.log"
    config = AppConfig.model_validate({"logging": {"level": "DEBUG", "file": str(log_file)}})

    package_logger = configure_logging(config)
    configure_logging(config)

    file_handlers = [h for h in package_logger.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1

    logging.getLogger("pointcloud_stats.tests.child").debug("routed to file")
    file_handlers[0].flush()
    assert "routed to file" in log_file.read_text()


def test_statistics_call_applies_logging_section(restore_package_logging):
    config = AppConfig.model_validate({"logging": {"level": "ERROR"}})
    cloud = PointCloud(np.random.default_rng(0).normal(size=(20, 3)))

    compute_point_cloud_to_point_cloud_distance(cloud, cloud, config)

    distances_logger = logging.getLogger("pointcloud_stats.statistics.distances")
    assert distances_logger.getEffectiveLevel() == logging.ERROR


def test_resolve_config_without_config_keeps_levels(restore_package_logging):
    set_log_level("WARNING")

    resolved = resolve_config(None)

    assert resolved == AppConfig()
    assert logging.getLogger("pointcloud_stats").level == logging.WARNING
