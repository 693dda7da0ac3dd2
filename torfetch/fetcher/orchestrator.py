"""Per-target retry and circuit rotation state machine."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from torfetch.errors import AttemptError, ControlProtocolError, ExhaustionError
from torfetch.fetcher.circuit_controller import CircuitController
from torfetch.fetcher.render_session import RenderSessionFactory
from torfetch.models.data_models import Attempt, AttemptOutcome, FetchResult
from torfetch.monitoring.logger import ScrapeLogger


class FetchOrchestrator:
    """
    Drives up to max_attempts render attempts for one target.

    States: Attempting(1) -> Success | Rotating -> Attempting(k+1) ... -> Exhausted

    - Attempt 1 runs immediately; rotation never happens before it
    - Before attempt k > 1 a new Tor identity is requested (if a controller
      is configured) and the settle delay is observed
    - A failed rotation is logged and the attempt proceeds on the current
      circuit without waiting
    - Every error kind counts the same towards the attempt budget
    - Exactly one FetchResult is returned per target
    """

    def __init__(
        self,
        render_factory: RenderSessionFactory,
        logger: ScrapeLogger,
        controller: Optional[CircuitController] = None,
        max_attempts: int = 3,
        settle_delay: float = 5.0,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize orchestrator.

        Args:
            render_factory: Produces one browser session per attempt
            logger: Run logger
            controller: Tor control client, None or disabled to skip rotation
            max_attempts: Attempt budget per target
            settle_delay: Seconds to wait for a new circuit before retrying
            sleeper: Async sleep function (default: asyncio.sleep)
            now: Clock function for durations (default: time.monotonic)
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got: {max_attempts}")
        self.render_factory = render_factory
        self.logger = logger
        self.controller = controller
        self.max_attempts = max_attempts
        self.settle_delay = settle_delay
        self._sleep = sleeper
        self._now = now

    @property
    def rotation_enabled(self) -> bool:
        return self.controller is not None and self.controller.enabled

    async def fetch(self, target: str) -> FetchResult:
        """
        Run the attempt loop for target until success or exhaustion.

        Args:
            target: URL to capture

        Returns:
            FetchResult; html and screenshot are set iff success, error iff not
        """
        result = FetchResult(target=target, success=False, timestamp=datetime.now(timezone.utc))
        started = self._now()
        last_error: Optional[AttemptError] = None

        for index in range(1, self.max_attempts + 1):
            attempt = Attempt(index=index)
            result.attempts.append(attempt)

            if index > 1:
                self.logger.attempt_retry(target, index, self.max_attempts)
                await self._rotate(attempt, result)

            attempt_started = self._now()
            try:
                artifacts = await self.render_factory.capture(target)
            except AttemptError as e:
                e.attempt = index
                last_error = e
            except Exception as e:
                last_error = AttemptError(f"{type(e).__name__}: {e}", attempt=index)
            else:
                attempt.outcome = AttemptOutcome.SUCCESS
                attempt.elapsed_seconds = self._now() - attempt_started
                result.success = True
                result.html = artifacts.html
                result.screenshot = artifacts.screenshot
                result.duration_seconds = self._now() - started
                self.logger.attempt_succeeded(target, result.screenshot_size, result.html_size)
                return result

            attempt.outcome = AttemptOutcome.FAILURE
            attempt.error = str(last_error)
            attempt.elapsed_seconds = self._now() - attempt_started
            self.logger.attempt_failed(target, index, attempt.error)

        result.error = str(ExhaustionError(self.max_attempts, last_error))
        result.duration_seconds = self._now() - started
        return result

    async def _rotate(self, attempt: Attempt, result: FetchResult) -> None:
        """Rotating state between a failed attempt and the next one."""
        if not self.rotation_enabled:
            await self._sleep(self.settle_delay)
            return

        self.logger.rotation_requested()
        attempt.rotation_requested = True
        result.rotations_requested += 1
        try:
            rotated = await self.controller.request_rotation()
        except ControlProtocolError as e:
            # Next attempt reuses the current circuit
            self.logger.rotation_failed(str(e))
            return

        attempt.rotation_succeeded = rotated
        self.logger.rotation_succeeded()
        await self._sleep(self.settle_delay)

