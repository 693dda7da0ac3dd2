"""Error taxonomy for the scraper.

Only ConfigurationError is allowed to abort a run. Every other error is
caught by the component that owns it, logged, and turned into a retry
decision or a per-target failure record.
"""

from typing import Optional


class TorFetchError(Exception):
    """Base class for all scraper errors."""


class ConfigurationError(TorFetchError):
    """Log sink, target source or settings could not be loaded."""


class TransportError(TorFetchError):
    """Proxied HTTP client could not be built or Tor routing is unconfirmed."""


class ControlProtocolError(TorFetchError):
    """Tor control port conversation failed."""


class AuthenticationFailed(ControlProtocolError):
    """Control port rejected AUTHENTICATE."""


class RotationFailed(ControlProtocolError):
    """Control port rejected SIGNAL NEWNYM."""


class AttemptError(TorFetchError):
    """A single render attempt failed (navigation, timeout or extraction)."""

    def __init__(self, message: str, attempt: Optional[int] = None):
        super().__init__(message)
        self.attempt = attempt


class ExhaustionError(TorFetchError):
    """Every attempt for a target failed."""

    def __init__(self, attempts: int, last_error: Optional[BaseException]):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"failed after {attempts} attempts: {last_error}")


class PersistenceError(TorFetchError):
    """An artifact or report could not be written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
