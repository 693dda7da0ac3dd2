"""Dual-sink run logger: console stream plus an append-only durable log."""

import logging
import os
import sys
from typing import IO, Optional

from torfetch.errors import ConfigurationError

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class SyncFileHandler(logging.FileHandler):
    """File handler that forces every record to disk before returning."""

    def flush(self) -> None:
        super().flush()
        if self.stream is not None and not self.stream.closed:
            os.fsync(self.stream.fileno())


class ScrapeLogger:
    """
    Run logger with an explicit lifecycle.

    Every record goes to the interactive stream and to the durable log file
    with a timestamp and one of the INFO, SUCCESS, WARNING or ERROR tags.
    """

    def __init__(
        self,
        log_file: Optional[str] = "scrape_report.log",
        level: str = "INFO",
        name: str = "torfetch",
        stream: Optional[IO[str]] = None,
    ):
        self.log_file = log_file
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.getLevelName(level.upper()))
        self.logger.propagate = False
        self._stream = stream
        self._handlers = []

    def open(self) -> "ScrapeLogger":
        """
        Attach the console and file handlers.

        Raises:
            ConfigurationError: If the log file cannot be opened
        """
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        if self.log_file:
            try:
                file_handler = SyncFileHandler(self.log_file, mode="a", encoding="utf-8")
            except OSError as e:
                raise ConfigurationError(f"cannot open log file {self.log_file}: {e}") from e
            file_handler.setFormatter(formatter)
            self._add_handler(file_handler)

        stream_handler = logging.StreamHandler(self._stream or sys.stdout)
        stream_handler.setFormatter(formatter)
        self._add_handler(stream_handler)
        return self

    def _add_handler(self, handler: logging.Handler) -> None:
        self.logger.addHandler(handler)
        self._handlers.append(handler)

    def close(self) -> None:
        """Detach and close every handler this logger opened."""
        for handler in self._handlers:
            self.logger.removeHandler(handler)
            handler.close()
        self._handlers = []

    def __enter__(self) -> "ScrapeLogger":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def record(self, level: int, message: str) -> None:
        self.logger.log(level, message)

    def info(self, message: str) -> None:
        self.record(logging.INFO, message)

    def success(self, message: str) -> None:
        self.record(SUCCESS, message)

    def warning(self, message: str) -> None:
        self.record(logging.WARNING, message)

    def error(self, message: str) -> None:
        self.record(logging.ERROR, message)

    # Event helpers keep message wording in one place

    def target_start(self, index: int, total: int, target: str) -> None:
        self.info(f"[{index}/{total}] Processing: {target}")

    def attempt_retry(self, target: str, attempt: int, max_attempts: int) -> None:
        self.info(f"Retrying ({attempt}/{max_attempts}): {target}")

    def attempt_succeeded(self, target: str, screenshot_size: int, html_size: int) -> None:
        self.success(
            f"Scrape succeeded: {target} "
            f"({screenshot_size // 1024} KB screenshot, {html_size} bytes HTML)"
        )

    def attempt_failed(self, target: str, attempt: int, error: str) -> None:
        self.warning(f"Scrape error (attempt {attempt}): {target}: {error}")

    def rotation_requested(self) -> None:
        self.info("Requesting new Tor identity...")

    def rotation_succeeded(self) -> None:
        self.success("New Tor identity (IP) acquired.")

    def rotation_failed(self, error: str) -> None:
        self.warning(f"Could not change IP: {error}")

    def target_failed(self, target: str, error: str) -> None:
        self.error(f"FAILED: {target} -> {error}")
