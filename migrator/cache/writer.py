"""Writes extracted documents into the on-disk cache."""

import json
import logging
from pathlib import Path
from typing import Any

from migrator.cache.layout import path_for

logger = logging.getLogger(__name__)


class CacheWriter:
    """Dumps one JSON file per document. Existing files are never overwritten."""

    def __init__(self, cache_dir: str | Path):
        self.cache_dir = Path(cache_dir)

    def write(self, doc_id: str, content: dict[str, Any]) -> bool:
        """Write a document to its cache path.

        Returns:
            True if written, False if the file already existed
        """
        path = path_for(self.cache_dir, doc_id)
        if path.exists():
            logger.debug(f"Skipping {path}: already cached")
            return False

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(content, indent=2), encoding="utf-8")
        logger.debug(f"Cached {doc_id} at {path}")
        return True
