"""CLI entry point for the Tor page capture pipeline.

Usage:

    torfetch [TARGETS] [PROXY] [CONTROL] [options]

Each positional argument overrides, in order, the target file, the Tor SOCKS
proxy address and the Tor control address. Pass an empty CONTROL ("") to
disable circuit rotation.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from torfetch import __version__
from torfetch.errors import ConfigurationError, PersistenceError, TransportError
from torfetch.fetcher.circuit_controller import CircuitController
from torfetch.fetcher.http_client import TorHTTPClient
from torfetch.fetcher.orchestrator import FetchOrchestrator
from torfetch.fetcher.render_session import RenderSessionFactory
from torfetch.models.config import ConfigManager, ScraperConfig
from torfetch.models.data_models import BatchResult, BatchSummary
from torfetch.monitoring.logger import ScrapeLogger
from torfetch.pipeline.batch import BatchDriver
from torfetch.pipeline.output import JSONReportFormatter
from torfetch.pipeline.storage import ArtifactStore
from torfetch.pipeline.targets import TargetLoader


console = Console()


@click.command()
@click.argument("targets", required=False)
@click.argument("proxy", required=False)
@click.argument("control", required=False)
@click.option(
    "--config",
    "-c",
    type=click.Path(dir_okay=False, path_type=Path),
    default="config/config.yaml",
    help="Path to settings YAML file (used if it exists)",
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False),
    help="Root directory for HTML, screenshots and the report (overrides config)",
)
@click.option("--log-file", help="Append-only log file (overrides config)")
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (overrides config)",
)
@click.option("--max-attempts", type=int, help="Attempt budget per target (overrides config)")
@click.option("--no-verify", is_flag=True, help="Skip the Tor routing check")
@click.option("--no-report", is_flag=True, help="Do not write the JSON run report")
@click.version_option(version=__version__, prog_name="torfetch")
def main(
    targets: Optional[str],
    proxy: Optional[str],
    control: Optional[str],
    config: Path,
    output_dir: Optional[str],
    log_file: Optional[str],
    log_level: Optional[str],
    max_attempts: Optional[int],
    no_verify: bool,
    no_report: bool,
) -> None:
    """
    Tor Scraper - capture rendered HTML and full-page screenshots over Tor.

    Targets are processed one at a time. Each target gets up to three
    attempts; between attempts a new Tor identity is requested through the
    control port.

    Examples:

        # Defaults: targets.yaml, proxy 127.0.0.1:9150, control 127.0.0.1:9151
        $ torfetch

        # System Tor daemon without rotation
        $ torfetch sites.yaml 127.0.0.1:9050 ""
    """
    cli_overrides = {
        "targets_file": targets,
        "proxy_address": proxy,
        "control_address": control,
        "output_directory": output_dir,
        "log_file": log_file,
        "log_level": log_level.upper() if log_level else None,
        "max_attempts": max_attempts,
    }
    if no_verify:
        cli_overrides["verify_tor"] = False
    if no_report:
        cli_overrides["write_report"] = False

    try:
        settings = ConfigManager(config).load_config(cli_overrides)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}", style="bold red")
        sys.exit(1)

    console.print("[bold cyan]TOR SCRAPER (single pass)[/bold cyan]\n")

    logger = ScrapeLogger(settings.log_file, settings.log_level)
    try:
        logger.open()
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}", style="bold red")
        sys.exit(1)

    try:
        result = asyncio.run(run_pipeline(settings, logger))
    except ConfigurationError as e:
        logger.error(str(e))
        console.print(f"[red]Error:[/red] {e}", style="bold red")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Scan interrupted by user[/yellow]")
        sys.exit(130)  # Standard exit code for SIGINT
    finally:
        logger.close()

    _display_results(result)
    sys.exit(0)


async def run_pipeline(config: ScraperConfig, logger: ScrapeLogger) -> BatchResult:
    """
    Load targets, check Tor, and run the batch.

    Raises:
        ConfigurationError: If the target file cannot be loaded
    """
    logger.info("Program started")
    logger.info(f"Target file: {config.targets_file}")
    logger.info(f"Tor proxy: {config.proxy_address}")
    logger.info(f"Tor control: {config.control_address or 'disabled'}")

    targets = TargetLoader(config.targets_file).load()
    logger.info(f"Found {len(targets)} targets")

    if config.verify_tor:
        await verify_transport(config, logger)

    driver = build_driver(config, logger)
    summary = BatchSummary(
        log_file=config.log_file,
        html_directory=str(driver.store.html_directory),
        screenshot_directory=str(driver.store.screenshot_directory),
    )

    logger.info("Starting scan...")
    result = await driver.run(targets, summary)

    if config.write_report:
        try:
            JSONReportFormatter().save(result, str(config.report_path))
            summary.report_file = str(config.report_path)
        except PersistenceError as e:
            logger.error(f"Report save error: {e}")

    return result


async def verify_transport(config: ScraperConfig, logger: ScrapeLogger) -> None:
    """Run the Tor check; failures are logged and never stop the run."""
    logger.info("Checking Tor connection...")
    try:
        async with TorHTTPClient.from_config(config, logger) as client:
            result = await client.verify_tor()
    except TransportError as e:
        logger.warning(f"Tor verification error: {e}")
        logger.warning("Continuing... (make sure the Tor service is running)")
        logger.info("Note: if port 9050 does not work try 9150 (Tor Browser)")
    else:
        if result.ip:
            logger.info(f"Exit IP: {result.ip}")


def build_driver(config: ScraperConfig, logger: ScrapeLogger) -> BatchDriver:
    """Wire the fetch components for one run."""
    controller = CircuitController.from_config(config)
    orchestrator = FetchOrchestrator(
        RenderSessionFactory.from_config(config),
        logger,
        controller=controller,
        max_attempts=config.max_attempts,
        settle_delay=config.settle_delay,
    )
    return BatchDriver(
        orchestrator,
        ArtifactStore.from_config(config),
        logger,
        inter_target_delay=config.inter_target_delay,
    )


def _display_results(result: BatchResult) -> None:
    """Display final results summary."""
    summary = result.summary
    console.print("\n[bold green]SCAN COMPLETE[/bold green]\n")

    summary_table = Table(title="Execution Summary", show_header=False)
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", style="green")

    summary_table.add_row("Total URLs", str(summary.total))
    summary_table.add_row("Succeeded", str(summary.succeeded))
    summary_table.add_row("Failed", str(summary.failed))
    if summary.persistence_errors:
        summary_table.add_row("Save errors", str(summary.persistence_errors))
    summary_table.add_row("Duration", f"{summary.duration_seconds:.2f}s")

    console.print(summary_table)
    console.print()

    console.print(f"[bold]Logs:[/bold] {summary.log_file}")
    console.print(f"[bold]HTML:[/bold] {summary.html_directory}/")
    console.print(f"[bold]Screenshots:[/bold] {summary.screenshot_directory}/")
    if summary.report_file:
        console.print(f"[bold]Report:[/bold] {summary.report_file}")
    console.print()


if __name__ == "__main__":
    main()
