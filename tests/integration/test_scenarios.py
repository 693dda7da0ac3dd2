"""End-to-end runs of the pipeline with a fake browser and a local control port."""

from unittest.mock import patch

import pytest
import yaml

from torfetch.errors import AttemptError, ConfigurationError
from torfetch.fetcher.circuit_controller import CircuitController
from torfetch.fetcher.orchestrator import FetchOrchestrator
from torfetch.pipeline.main import run_pipeline
from torfetch.pipeline.storage import ArtifactStore

from tests.fixtures.fakes import FakeRenderFactory, FakeTorControlServer, RecordingSleeper, artifacts

pytestmark = pytest.mark.integration


def write_targets(config, urls):
    with open(config.targets_file, "w") as f:
        if urls:
            yaml.safe_dump(urls, f)


@pytest.mark.asyncio
async def test_single_target_success(sample_config, logger, log_path):
    write_targets(sample_config, ["http://example.test"])
    render = FakeRenderFactory([artifacts()])

    with patch("torfetch.pipeline.main.RenderSessionFactory.from_config", return_value=render):
        result = await run_pipeline(sample_config.model_copy(update={"verify_tor": False}), logger)

    assert result.summary.succeeded == 1
    assert result.summary.failed == 0
    assert len(list(ArtifactStore.from_config(sample_config).html_directory.iterdir())) == 1
    assert len(list(ArtifactStore.from_config(sample_config).screenshot_directory.iterdir())) == 1
    assert sample_config.report_path.exists()
    assert result.summary.report_file == str(sample_config.report_path)
    assert "Scrape succeeded: http://example.test" in log_path.read_text()


@pytest.mark.asyncio
async def test_exhaustion_without_control_port(sample_config, logger, log_path):
    write_targets(sample_config, ["http://bad.test"])
    render = FakeRenderFactory([AttemptError("navigation timeout")] * 3)

    with patch("torfetch.pipeline.main.RenderSessionFactory.from_config", return_value=render):
        result = await run_pipeline(sample_config.model_copy(update={"verify_tor": False}), logger)

    log = log_path.read_text()
    assert result.summary.succeeded == 0
    assert result.summary.failed == 1
    assert log.count("Scrape error (attempt") == 3
    assert "Requesting new Tor identity" not in log
    assert result.results[0].rotations_requested == 0
    assert not ArtifactStore.from_config(sample_config).html_directory.exists()


@pytest.mark.asyncio
async def test_failed_rotation_does_not_abort_target(logger, log_path):
    render = FakeRenderFactory([AttemptError("navigation timeout"), artifacts()])
    sleeper = RecordingSleeper()

    async with FakeTorControlServer({"AUTHENTICATE": "515 Authentication failed\r\n"}) as server:
        controller = CircuitController(server.address, password="wrong", timeout=5.0)
        orchestrator = FetchOrchestrator(
            render, logger, controller=controller, max_attempts=3, settle_delay=5.0, sleeper=sleeper
        )
        result = await orchestrator.fetch("http://example.test")

    assert result.success is True
    assert render.calls == ["http://example.test", "http://example.test"]
    assert server.commands == ['AUTHENTICATE "wrong"']
    assert result.attempts[1].rotation_requested is True
    assert result.attempts[1].rotation_succeeded is False
    assert sleeper.delays == []
    assert "[WARNING] Could not change IP: authentication failed" in log_path.read_text()


@pytest.mark.asyncio
async def test_rotation_through_control_port(logger, log_path):
    render = FakeRenderFactory([AttemptError("navigation timeout"), AttemptError("navigation timeout"), artifacts()])
    sleeper = RecordingSleeper()

    async with FakeTorControlServer() as server:
        controller = CircuitController(server.address, password="secret", timeout=5.0)
        orchestrator = FetchOrchestrator(
            render, logger, controller=controller, max_attempts=3, settle_delay=5.0, sleeper=sleeper
        )
        result = await orchestrator.fetch("http://example.test")

    assert result.success is True
    assert result.rotations_requested == 2
    assert server.commands == ['AUTHENTICATE "secret"', "SIGNAL NEWNYM"] * 2
    assert sleeper.delays == [5.0, 5.0]
    assert log_path.read_text().count("New Tor identity (IP) acquired.") == 2


@pytest.mark.asyncio
async def test_empty_target_file(sample_config, logger, log_path):
    write_targets(sample_config, [])

    result = await run_pipeline(sample_config.model_copy(update={"verify_tor": False}), logger)

    assert result.summary.total == 0
    assert result.summary.succeeded == 0
    assert result.summary.failed == 0
    assert "Scan complete - Succeeded: 0, Failed: 0" in log_path.read_text()


@pytest.mark.asyncio
async def test_missing_target_file_is_fatal(sample_config, logger):
    with pytest.raises(ConfigurationError, match="cannot open target file"):
        await run_pipeline(sample_config.model_copy(update={"verify_tor": False}), logger)


@pytest.mark.asyncio
async def test_rerun_writes_fresh_artifacts(sample_config, logger):
    write_targets(sample_config, ["http://a.test", "http://b.test"])
    config = sample_config.model_copy(update={"verify_tor": False})

    for _ in range(2):
        render = FakeRenderFactory([artifacts(), artifacts()])
        with patch("torfetch.pipeline.main.RenderSessionFactory.from_config", return_value=render):
            result = await run_pipeline(config, logger)

        assert render.calls == ["http://a.test", "http://b.test"]
        assert result.summary.succeeded == 2
