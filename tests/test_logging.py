"""Tests for logging setup."""

from loguru import logger

from planmeter.core.logging import get_current_log_path, get_log_dir, setup_logging


def test_log_path_in_log_dir():
    assert get_current_log_path().parent == get_log_dir()
    assert get_current_log_path().name == "planmeter.log"


def test_setup_writes_log_file(config_manager, tmp_path):
    config_manager.set("logging", "log_console_output", False)
    setup_logging(config_manager, log_dir=tmp_path)
    logger.info("calibration smoke entry")
    logger.complete()
    logger.remove()
    log_file = tmp_path / "planmeter.log"
    assert log_file.exists()
    assert "calibration smoke entry" in log_file.read_text(encoding="utf-8")


def test_setup_without_file(config_manager, tmp_path):
    config_manager.set("logging", "log_to_file", False)
    config_manager.set("logging", "log_console_output", False)
    setup_logging(config_manager, log_dir=tmp_path)
    logger.remove()
    assert not (tmp_path / "planmeter.log").exists()
