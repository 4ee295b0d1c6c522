"""Reads previously extracted documents from the on-disk cache."""

import json
from pathlib import Path
from typing import Any, Optional

from migrator.exceptions import SourceDirectoryNotFoundError
from migrator.logging_config import get_logger

logger = get_logger(__name__)

# Cache folders holding each ingestion category
CATEGORY_FOLDERS: dict[str, tuple[str, ...]] = {
    "users": ("user", "u"),
    "playlists": ("pl",),
}


def normalize_filename(name: str) -> str:
    """Append .json when a single-file filter omits it."""
    return name if name.endswith(".json") else f"{name}.json"


class CacheReader:
    """Lists and loads cached JSON documents under a source directory."""

    def __init__(self, source_dir: str | Path):
        self.source_dir = Path(source_dir)

    def ensure_exists(self) -> None:
        """Raise if the source directory is missing."""
        if not self.source_dir.is_dir():
            raise SourceDirectoryNotFoundError(str(self.source_dir))

    def list_files(
        self,
        category: str,
        single_file: Optional[str] = None,
    ) -> list[Path]:
        """List the category's JSON files, sorted by name.

        A missing category folder is logged and yields no files.

        Args:
            category: "users" or "playlists"
            single_file: Optional file name to restrict the listing to
        """
        self.ensure_exists()

        try:
            folders = CATEGORY_FOLDERS[category]
        except KeyError:
            raise ValueError(f"Unknown category: {category}") from None

        wanted = normalize_filename(single_file) if single_file else None
        files: list[Path] = []

        for folder in folders:
            directory = self.source_dir / folder
            if not directory.is_dir():
                logger.warning("Cache folder not found", folder=str(directory))
                continue
            for path in sorted(directory.iterdir()):
                if path.suffix != ".json" or not path.is_file():
                    continue
                if wanted and path.name != wanted:
                    continue
                files.append(path)

        return files

    def read_json(self, path: str | Path) -> Any:
        """Load one cached document."""
        with open(path, encoding="utf-8") as f:
            return json.load(f)
