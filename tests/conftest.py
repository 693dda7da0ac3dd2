"""Pytest configuration and shared fixtures."""

import io
import itertools

import pytest

from torfetch.monitoring.logger import ScrapeLogger

from tests.fixtures.fakes import RecordingSleeper

_logger_ids = itertools.count()


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "scrape_report.log"


@pytest.fixture
def logger(log_path):
    """Open run logger writing to a temp file and an in-memory stream."""
    scrape_logger = ScrapeLogger(
        log_file=str(log_path),
        level="INFO",
        name=f"torfetch.test.{next(_logger_ids)}",
        stream=io.StringIO(),
    )
    scrape_logger.open()
    yield scrape_logger
    scrape_logger.close()


@pytest.fixture
def sleeper():
    return RecordingSleeper()


@pytest.fixture
def sample_config(tmp_path):
    """Provide a configuration with no real delays for testing."""
    from torfetch.models.config import ScraperConfig

    return ScraperConfig(
        targets_file=str(tmp_path / "targets.yaml"),
        proxy_address="127.0.0.1:9150",
        control_address="",
        settle_delay=0.0,
        navigation_wait=0.0,
        inter_target_delay=0.0,
        log_file=str(tmp_path / "scrape_report.log"),
        output_directory=str(tmp_path / "out"),
    )
