"""Filesystem persistence for captured HTML and screenshots."""

from datetime import datetime
from pathlib import Path
from typing import Union

from torfetch.errors import PersistenceError

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def safe_name(url: str) -> str:
    """
    Turn a URL into a filesystem-safe stem.

    >>> safe_name("https://example.com:8080/a/b")
    'example.com_8080_a_b'
    """
    name = url.replace("http://", "").replace("https://", "")
    return name.replace("/", "_").replace(":", "_")


def artifact_key(url: str, timestamp: datetime, extension: str) -> str:
    return f"{safe_name(url)}_{timestamp.strftime(TIMESTAMP_FORMAT)}.{extension}"


class ArtifactStore:
    """
    Writes artifacts into two fixed collections under a root directory.

    HTML goes to <root>/scraped_data and screenshots to <root>/screenshots by
    default. Directories are created on first write.
    """

    def __init__(
        self,
        root: Union[str, Path] = ".",
        html_collection: str = "scraped_data",
        screenshot_collection: str = "screenshots",
    ):
        self.root = Path(root)
        self.html_directory = self.root / html_collection
        self.screenshot_directory = self.root / screenshot_collection

    @classmethod
    def from_config(cls, config) -> "ArtifactStore":
        return cls(config.output_directory, config.html_collection, config.screenshot_collection)

    def save_html(self, url: str, html: str, timestamp: datetime) -> Path:
        """Persist rendered HTML; raises PersistenceError on failure."""
        return self._save(self.html_directory, artifact_key(url, timestamp, "html"), html.encode("utf-8"))

    def save_screenshot(self, url: str, image: bytes, timestamp: datetime) -> Path:
        """Persist a PNG screenshot; raises PersistenceError on failure."""
        return self._save(self.screenshot_directory, artifact_key(url, timestamp, "png"), image)

    def _save(self, directory: Path, key: str, data: bytes) -> Path:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"could not create directory {directory}: {e}", path=str(directory)) from e

        path = directory / key
        try:
            path.write_bytes(data)
        except OSError as e:
            raise PersistenceError(f"could not write file {path}: {e}", path=str(path)) from e
        return path
