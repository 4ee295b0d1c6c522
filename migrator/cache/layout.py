"""Maps source document ids to cache folders and file names."""

import re
from pathlib import Path
from typing import Optional

# Prefixed ids land in a folder named after the prefix
PREFIX_FOLDERS = {
    "pl_": "pl",
    "mc_": "mc",
    "u_": "u",
    "user_": "user",
}

ATTACHMENT_PREFIXES = ("_sync:att:", "_sync:rev:")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_filename(name: str) -> str:
    """Replace every character outside [A-Za-z0-9._-] with an underscore."""
    return _UNSAFE_CHARS.sub("_", name)


def folder_for(doc_id: str) -> Optional[str]:
    """Folder (relative to the cache root) for a document id.

    "pl_abc" -> "pl", "_sync:att:sha1-x" -> "_sync/att", "plain" -> None.
    """
    for prefix, folder in PREFIX_FOLDERS.items():
        if doc_id.startswith(prefix):
            return folder

    parts = doc_id.split(":")
    if len(parts) >= 2:
        return "/".join(parts[:2])

    return None


def filename_for(doc_id: str) -> str:
    """File stem for a document id, prefix stripped."""
    for prefix in PREFIX_FOLDERS:
        if doc_id.startswith(prefix):
            return doc_id[len(prefix):]

    parts = doc_id.split(":")
    if len(parts) >= 2:
        return parts[-1] or doc_id

    return doc_id


def path_for(cache_dir: str | Path, doc_id: str) -> Path:
    """Full JSON path a document is cached at."""
    folder = folder_for(doc_id)
    directory = Path(cache_dir) / folder if folder else Path(cache_dir)
    return directory / f"{sanitize_filename(filename_for(doc_id))}.json"


def is_attachment(doc_id: str) -> bool:
    """Binary attachment and revision documents are never cached."""
    return doc_id.startswith(ATTACHMENT_PREFIXES)
