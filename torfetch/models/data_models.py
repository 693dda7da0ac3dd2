"""Core data models for the Tor page capture pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class AttemptOutcome(Enum):
    """Outcome of a single render attempt."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class Attempt:
    """One bounded try to fetch a target."""
    index: int  # 1-based
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    error: Optional[str] = None
    rotation_requested: bool = False
    rotation_succeeded: bool = False
    elapsed_seconds: float = 0.0


@dataclass
class RenderArtifacts:
    """DOM and raster capture produced by one render session."""
    html: str
    screenshot: bytes


@dataclass
class VerificationResult:
    """Outcome of the Tor routing check."""
    is_tor: bool
    ip: Optional[str]
    body: str


@dataclass
class FetchResult:
    """Outcome of all attempts for one target."""
    target: str
    success: bool
    timestamp: datetime
    html: Optional[str] = None
    screenshot: Optional[bytes] = None
    error: Optional[str] = None
    attempts: List[Attempt] = field(default_factory=list)
    rotations_requested: int = 0
    duration_seconds: float = 0.0
    html_path: Optional[str] = None
    screenshot_path: Optional[str] = None

    @property
    def attempts_used(self) -> int:
        return len(self.attempts)

    @property
    def html_size(self) -> int:
        """Size of the serialized DOM in bytes."""
        if self.html is None:
            return 0
        return len(self.html.encode("utf-8"))

    @property
    def screenshot_size(self) -> int:
        return len(self.screenshot) if self.screenshot is not None else 0


@dataclass
class BatchSummary:
    """Counts across all targets of one run."""
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    persistence_errors: int = 0
    duration_seconds: float = 0.0
    log_file: Optional[str] = None
    html_directory: Optional[str] = None
    screenshot_directory: Optional[str] = None
    report_file: Optional[str] = None


@dataclass
class BatchResult:
    """Complete run result."""
    summary: BatchSummary
    results: List[FetchResult]
