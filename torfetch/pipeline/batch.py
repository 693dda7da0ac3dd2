"""Batch driver running the fetch orchestrator over the target list."""

import asyncio
import time
from typing import Awaitable, Callable, List, Optional, Sequence

from torfetch.errors import PersistenceError
from torfetch.fetcher.orchestrator import FetchOrchestrator
from torfetch.models.data_models import BatchResult, BatchSummary, FetchResult
from torfetch.monitoring.logger import ScrapeLogger
from torfetch.pipeline.storage import ArtifactStore


class BatchDriver:
    """Processes targets strictly in order, one at a time."""

    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        store: ArtifactStore,
        logger: ScrapeLogger,
        inter_target_delay: float = 2.0,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize driver.

        Args:
            orchestrator: Per-target retry/rotation state machine
            store: Artifact persistence sink
            logger: Run logger
            inter_target_delay: Pause between targets in seconds
            sleeper: Async sleep function (default: asyncio.sleep)
            now: Clock function for run duration (default: time.monotonic)
        """
        self.orchestrator = orchestrator
        self.store = store
        self.logger = logger
        self.inter_target_delay = inter_target_delay
        self._sleep = sleeper
        self._now = now

    async def run(self, targets: Sequence[str], summary: Optional[BatchSummary] = None) -> BatchResult:
        """
        Fetch and persist every target.

        Args:
            targets: URLs in processing order
            summary: Summary to fill in (output locations may be preset)

        Returns:
            BatchResult with one FetchResult per target
        """
        summary = summary or BatchSummary()
        summary.total = len(targets)
        results: List[FetchResult] = []
        started = self._now()

        for position, target in enumerate(targets, start=1):
            self.logger.target_start(position, len(targets), target)

            result = await self.orchestrator.fetch(target)
            results.append(result)

            if result.success:
                summary.succeeded += 1
                summary.persistence_errors += self._persist(result)
            else:
                summary.failed += 1
                self.logger.target_failed(target, result.error or "unknown error")

            # Rate limiting between targets, not after the last one
            if position < len(targets):
                await self._sleep(self.inter_target_delay)

        summary.duration_seconds = self._now() - started
        self.logger.info(
            f"Scan complete - Succeeded: {summary.succeeded}, Failed: {summary.failed}"
        )
        return BatchResult(summary=summary, results=results)

    def _persist(self, result: FetchResult) -> int:
        """Save HTML and screenshot independently; returns the number of failures."""
        failures = 0

        try:
            result.html_path = str(self.store.save_html(result.target, result.html or "", result.timestamp))
        except PersistenceError as e:
            failures += 1
            self.logger.error(f"HTML save error: {e}")

        try:
            result.screenshot_path = str(
                self.store.save_screenshot(result.target, result.screenshot or b"", result.timestamp)
            )
        except PersistenceError as e:
            failures += 1
            self.logger.error(f"Screenshot save error: {e}")

        return failures
