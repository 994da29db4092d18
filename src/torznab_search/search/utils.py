"""Sorting, filtering and formatting helpers for search results.

These are stateless and used by presentation layers after a search has
completed.
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from torznab_search.search.quality import VideoQuality

if TYPE_CHECKING:
    from torznab_search.search.models import TorrentResult


class SortField(str, Enum):
    """Fields results can be sorted by."""

    SEEDERS = "seeders"
    SIZE = "size"
    PUBLISH_DATE = "publishDate"


class SortDirection(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


def _publish_timestamp(result: "TorrentResult") -> float:
    """Publish date as a POSIX timestamp, 0 if missing or unparsable."""
    if not result.publish_date:
        return 0.0
    try:
        parsed = datetime.fromisoformat(result.publish_date)
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.timestamp()


_SORT_KEYS = {
    SortField.SEEDERS: lambda r: r.seeders,
    SortField.SIZE: lambda r: r.size_bytes,
    SortField.PUBLISH_DATE: _publish_timestamp,
}


def sort_results(
    results: Iterable["TorrentResult"],
    field: SortField | str = SortField.SEEDERS,
    direction: SortDirection | str = SortDirection.DESC,
) -> list["TorrentResult"]:
    """Sort results by a field.

    The sort is stable in both directions, so results with equal keys keep
    their input order.

    Args:
        results: Results to sort (not modified).
        field: Field to sort by.
        direction: ``asc`` or ``desc``.

    Returns:
        A new sorted list.

    Raises:
        ValueError: If ``field`` or ``direction`` is not a known value.
    """
    key = _SORT_KEYS[SortField(field)]
    reverse = SortDirection(direction) == SortDirection.DESC
    return sorted(results, key=key, reverse=reverse)


def filter_by_quality(
    results: list["TorrentResult"],
    qualities: Iterable[VideoQuality | str],
) -> list["TorrentResult"]:
    """Keep only results whose quality is in ``qualities``.

    An empty selection means "no filter": the input list is returned as is.
    """
    wanted = {VideoQuality(q) for q in qualities}
    if not wanted:
        return results
    return [r for r in results if r.quality in wanted]


def format_file_size(size_bytes: int) -> str:
    """Format a byte count for display (e.g. ``1536`` -> ``"1.5 KB"``)."""
    if size_bytes <= 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB"]
    exponent = 0
    while size_bytes >= 1024 ** (exponent + 1) and exponent < len(units) - 1:
        exponent += 1
    size = size_bytes / 1024**exponent

    if exponent == 0:
        return f"{size:.0f} {units[exponent]}"
    return f"{size:.1f} {units[exponent]}"
