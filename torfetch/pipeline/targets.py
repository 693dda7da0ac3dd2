"""Target list loading."""

from pathlib import Path
from typing import List, Union

import yaml

from torfetch.errors import ConfigurationError


class TargetLoader:
    """Reads a YAML sequence of URLs, trimming entries and dropping blanks."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[str]:
        """
        Load targets in file order.

        Returns:
            Cleaned list of target URLs (possibly empty)

        Raises:
            ConfigurationError: If the file is unreadable or not a list of scalars
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"cannot open target file {self.path}: {e}") from e
        except UnicodeDecodeError as e:
            raise ConfigurationError(f"{self.path} is not valid UTF-8: {e}") from e

        try:
            entries = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"YAML error in {self.path}: {e}") from e

        if entries is None:
            return []
        if not isinstance(entries, list):
            raise ConfigurationError(
                f"{self.path} must contain a YAML list of URLs, got {type(entries).__name__}"
            )

        targets = []
        for position, entry in enumerate(entries, start=1):
            if entry is None:
                continue
            if isinstance(entry, (dict, list)):
                raise ConfigurationError(f"entry {position} in {self.path} is not a URL string")
            cleaned = str(entry).strip()
            if cleaned:
                targets.append(cleaned)
        return targets
