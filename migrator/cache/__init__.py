"""On-disk document cache: layout, writer and reader."""

from migrator.cache.layout import filename_for, folder_for, path_for, sanitize_filename
from migrator.cache.reader import CATEGORY_FOLDERS, CacheReader, normalize_filename
from migrator.cache.writer import CacheWriter

__all__ = [
    "CATEGORY_FOLDERS",
    "CacheReader",
    "CacheWriter",
    "filename_for",
    "folder_for",
    "normalize_filename",
    "path_for",
    "sanitize_filename",
]
