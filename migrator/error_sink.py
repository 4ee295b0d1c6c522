"""Per-unit failure artifacts written under ``<source_dir>/errors/<category>/``.

Each failed unit gets one JSON file holding the error and the offending
payload. A category's directory is emptied at the start of every run so it
only ever reflects the latest run.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic_core import to_jsonable_python

from migrator.cache.layout import sanitize_filename
from migrator.logging_config import get_logger

logger = get_logger(__name__)


class ErrorCategory(str, Enum):
    """Error artifact directories."""

    USERS = "users"
    PLAYLISTS = "playlists"
    PLAYLIST_ITEMS = "playListItems"
    AUTH_DELETE = "authDelete"


def artifact_name(unit_id: str) -> str:
    """Sanitized artifact file name for a unit id or file path."""
    name = sanitize_filename(Path(unit_id).name)
    return name if name.endswith(".json") else f"{name}.json"


def describe_error(error: Any) -> tuple[str, str, list]:
    """Message, type name and structured details for an error value."""
    if isinstance(error, BaseException):
        details = getattr(error, "details", None) or []
        return str(error) or type(error).__name__, type(error).__name__, list(details)
    return str(error), "Error", []


class ErrorSink:
    """Writes and clears error artifacts for one source directory."""

    def __init__(self, source_dir: str | Path):
        self.root = Path(source_dir) / "errors"

    def category_dir(self, category: ErrorCategory | str) -> Path:
        return self.root / ErrorCategory(category).value

    def record(
        self,
        category: ErrorCategory | str,
        unit_id: str,
        error: Any,
        payload: Any = None,
    ) -> Optional[Path]:
        """Write one artifact. Failures to write are logged, never raised.

        Returns:
            The artifact path, or None if it could not be written
        """
        message, error_type, details = describe_error(error)
        path = self.category_dir(category) / artifact_name(unit_id)

        try:
            body = {
                "error": message,
                "errorType": error_type,
                "details": details,
                "payload": to_jsonable_python(payload, by_alias=True, fallback=str),
            }
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(body, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            logger.error(
                "Failed to write error artifact",
                category=ErrorCategory(category).value,
                unit=unit_id,
                error=str(e),
            )
            return None

        return path

    def clear(self, category: ErrorCategory | str) -> int:
        """Remove prior artifacts, creating the directory if missing.

        Returns:
            Number of artifacts removed
        """
        directory = self.category_dir(category)
        directory.mkdir(parents=True, exist_ok=True)

        removed = 0
        for path in directory.iterdir():
            if path.is_file():
                path.unlink()
                removed += 1

        if removed:
            logger.info(
                "Cleared error artifacts",
                category=ErrorCategory(category).value,
                count=removed,
            )
        return removed

    def artifacts(self, category: ErrorCategory | str) -> list[Path]:
        """Current artifacts of a category, sorted by name."""
        directory = self.category_dir(category)
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.iterdir() if p.suffix == ".json")

    def read(self, path: Path) -> dict[str, Any]:
        """Load an artifact."""
        return json.loads(path.read_text(encoding="utf-8"))

    def remove(self, path: Path) -> None:
        """Delete a resolved artifact."""
        path.unlink(missing_ok=True)
