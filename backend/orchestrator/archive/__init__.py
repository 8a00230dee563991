"""
Archive of terminal jobs.

Archived jobs are immutable snapshots stored separately from the
active queue and searched independently.
"""

from .archiver import Archiver
from .search import (
    ArchiveFilter,
    ArchiveSearchResult,
    DEFAULT_ARCHIVE_LIMIT,
    MAX_ARCHIVE_LIMIT,
    search_archive,
)

__all__ = [
    "Archiver",
    "ArchiveFilter",
    "ArchiveSearchResult",
    "DEFAULT_ARCHIVE_LIMIT",
    "MAX_ARCHIVE_LIMIT",
    "search_archive",
]
