"""Shared test fixtures for PlanMeter."""

import pytest
from pathlib import Path


OWNER = "user-owner"
OTHER = "user-other"


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Provide a temporary configuration directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def config_manager(tmp_config_dir):
    """Provide a ConfigManager with a temp directory."""
    from planmeter.config.manager import ConfigManager

    mgr = ConfigManager(config_dir=tmp_config_dir)
    mgr.load()
    return mgr


@pytest.fixture(params=["memory", "json"])
def repository(request, tmp_path):
    """Provide an empty repository, once per storage backend."""
    from planmeter.storage.repository import InMemoryRepository, JsonFileRepository

    if request.param == "json":
        return JsonFileRepository(tmp_path / "data")
    return InMemoryRepository()


@pytest.fixture
def calibrations(repository):
    """CalibrationManager acting as the owner."""
    from planmeter.engine.calibration import CalibrationManager

    return CalibrationManager(repository, user_id=OWNER)


@pytest.fixture
def engine(repository, calibrations, config_manager):
    """MeasurementEngine acting as the owner."""
    from planmeter.engine.measurements import MeasurementEngine

    return MeasurementEngine(repository, calibrations, user_id=OWNER, config=config_manager)


@pytest.fixture
def other_engine(repository):
    """MeasurementEngine acting as a project member who created nothing."""
    from planmeter.engine.calibration import CalibrationManager
    from planmeter.engine.measurements import MeasurementEngine

    return MeasurementEngine(
        repository, CalibrationManager(repository, user_id=OTHER), user_id=OTHER
    )


@pytest.fixture
def project_root():
    """Return the project root directory."""
    return Path(__file__).parent.parent
