"""JSON run report for a batch of captures.

The report complements the log file: it lists every target with its final
outcome, the attempts it took, and where its artifacts were written. HTML and
screenshot bytes themselves are never embedded.
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from torfetch.errors import PersistenceError
from torfetch.models.data_models import BatchResult, BatchSummary, FetchResult


class JSONReportFormatter:
    """
    Formats batch results as JSON.

    Example output structure:
    {
        "summary": {
            "total": 2,
            "succeeded": 1,
            "failed": 1,
            "persistence_errors": 0,
            "duration_seconds": 41.2,
            "outputs": {"log_file": "...", "html_directory": "...", ...}
        },
        "targets": [
            {
                "url": "http://example.test",
                "success": true,
                "timestamp": "2024-01-01T12:00:00+00:00",
                "attempts": [{"index": 1, "outcome": "success", ...}],
                "rotations_requested": 0,
                "html_size": 5120,
                "screenshot_size": 204800,
                "html_path": "scraped_data/example.test_20240101_120000.html",
                "screenshot_path": "screenshots/example.test_20240101_120000.png",
                "error": null
            }
        ]
    }
    """

    def format(self, result: BatchResult) -> Dict[str, Any]:
        """
        Format batch result as JSON-serializable dictionary.

        Args:
            result: Complete batch result

        Returns:
            Dictionary with summary and targets sections
        """
        return {
            "summary": self._format_summary(result.summary),
            "targets": self._format_targets(result.results),
        }

    def _format_summary(self, summary: BatchSummary) -> Dict[str, Any]:
        """Format summary section with aggregate counts."""
        return {
            "total": summary.total,
            "succeeded": summary.succeeded,
            "failed": summary.failed,
            "persistence_errors": summary.persistence_errors,
            "duration_seconds": round(summary.duration_seconds, 2),
            "outputs": {
                "log_file": summary.log_file,
                "html_directory": summary.html_directory,
                "screenshot_directory": summary.screenshot_directory,
            },
        }

    def _format_targets(self, results: List[FetchResult]) -> list:
        return [
            {
                "url": r.target,
                "success": r.success,
                "timestamp": r.timestamp.isoformat(),
                "attempts": [
                    {
                        "index": a.index,
                        "outcome": a.outcome.value,
                        "error": a.error,
                        "rotation_requested": a.rotation_requested,
                        "rotation_succeeded": a.rotation_succeeded,
                        "elapsed_seconds": round(a.elapsed_seconds, 2),
                    }
                    for a in r.attempts
                ],
                "rotations_requested": r.rotations_requested,
                "duration_seconds": round(r.duration_seconds, 2),
                "html_size": r.html_size,
                "screenshot_size": r.screenshot_size,
                "html_path": r.html_path,
                "screenshot_path": r.screenshot_path,
                "error": r.error,
            }
            for r in results
        ]

    def save(self, result: BatchResult, path: str = "report.json") -> None:
        """
        Save formatted result to JSON file.

        Creates parent directories if they don't exist.

        Raises:
            PersistenceError: If the report cannot be written
        """
        output_path = Path(path)
        formatted_data = self.format(result)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', encoding='utf-8') as f:
                json.dump(formatted_data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise PersistenceError(f"could not write report {output_path}: {e}", path=str(output_path)) from e
