"""
Archive search.

Read-only, paginated view over archived jobs. Results are ordered
newest-first by created_at; the requested limit is clamped to
MAX_ARCHIVE_LIMIT regardless of what the caller asks for.
"""

from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..jobs.models import ArchiveEntry, JobStatus, JobType


DEFAULT_ARCHIVE_LIMIT = 50
MAX_ARCHIVE_LIMIT = 200


class ArchiveFilter(BaseModel):
    """Archive search filters. Empty values match everything."""

    model_config = ConfigDict(extra="forbid")

    search: Optional[str] = None  # Case-insensitive substring of description or id
    type: Optional[JobType] = None
    status: Optional[JobStatus] = None


class ArchiveSearchResult(BaseModel):
    """One page of archive entries. total counts all matches before paging."""

    model_config = ConfigDict(extra="forbid")

    entries: List[ArchiveEntry] = Field(default_factory=list)
    total: int = 0
    limit: int = DEFAULT_ARCHIVE_LIMIT
    offset: int = 0


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_ARCHIVE_LIMIT
    return max(0, min(limit, MAX_ARCHIVE_LIMIT))


def _matches(entry: ArchiveEntry, filters: ArchiveFilter) -> bool:
    if filters.search:
        needle = filters.search.lower()
        if needle not in entry.description.lower() and needle not in entry.id.lower():
            return False
    if filters.type is not None and entry.type != filters.type:
        return False
    if filters.status is not None and entry.status != filters.status:
        return False
    return True


def search_archive(
    entries: Iterable[ArchiveEntry],
    filters: Optional[ArchiveFilter] = None,
    limit: Optional[int] = DEFAULT_ARCHIVE_LIMIT,
    offset: int = 0,
) -> ArchiveSearchResult:
    """
    Filter, sort and paginate archive entries.

    Args:
        entries: Full archive collection
        filters: Optional search/type/status filters
        limit: Requested page size (clamped to 0..MAX_ARCHIVE_LIMIT)
        offset: Entries to skip (negative treated as 0)

    Returns:
        ArchiveSearchResult with the page and the unpaginated match count
    """
    filters = filters or ArchiveFilter()
    limit = clamp_limit(limit)
    offset = max(0, offset or 0)

    matched = [entry for entry in entries if _matches(entry, filters)]
    matched.sort(key=lambda e: (-e.created_at.timestamp(), e.id))

    return ArchiveSearchResult(
        entries=matched[offset:offset + limit],
        total=len(matched),
        limit=limit,
        offset=offset,
    )
