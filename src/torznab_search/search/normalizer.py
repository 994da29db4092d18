"""Turn raw feed items into search results.

Each item becomes exactly one of:

- ``TorrentResult``: a magnet URI was found or could be built
- ``PendingResult``: only a .torrent file link is available
- ``Dropped``: nothing usable, with the reason
"""

import re
from collections.abc import Iterable
from datetime import UTC, datetime
from urllib.parse import quote

import structlog

from torznab_search.search.feed import RawItem
from torznab_search.search.models import (
    MAGNET_PREFIX,
    DropReason,
    Dropped,
    PendingResult,
    TorrentResult,
)
from torznab_search.search.quality import infer_quality

logger = structlog.get_logger(__name__)

SIZE_MULTIPLIERS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}

_SIZE_WITH_UNIT = re.compile(r"^([\d.]+)\s*(TB|GB|MB|KB|B)?$", re.IGNORECASE)

NormalizedItem = TorrentResult | PendingResult | Dropped


def parse_int(value: str | None) -> int:
    """Parse a non-negative integer attribute, 0 when missing or invalid."""
    if value is None:
        return 0
    try:
        return max(0, int(value))
    except ValueError:
        return 0


def parse_size(value: str | None) -> int:
    """Parse a size attribute to bytes.

    Accepts a bare byte count (``"1610612736"``) or a number with a binary
    unit (``"1.5 GB"``).

    Args:
        value: Raw size attribute.

    Returns:
        Size in bytes, 0 if missing or unparsable.
    """
    if not value:
        return 0
    value = value.strip()

    if value.isdigit():
        return int(value)

    match = _SIZE_WITH_UNIT.match(value)
    if not match:
        return 0

    try:
        number = float(match.group(1))
    except ValueError:
        return 0

    unit = (match.group(2) or "B").upper()
    return round(number * SIZE_MULTIPLIERS[unit])


RSS_DATE_FORMATS = [
    "%a, %d %b %Y %H:%M:%S %z",  # RFC 822
    "%a, %d %b %Y %H:%M:%S %Z",  # RFC 822 with "GMT"/"UTC"
    "%d %b %Y %H:%M:%S %z",
]


def parse_pub_date(value: str | None) -> str | None:
    """Convert an RSS date to ISO-8601.

    Args:
        value: Date like "Sat, 18 Jan 2025 12:00:00 +0000" or
            "Sat, 18 Jan 2025 12:00:00 GMT" (RSS), or an ISO-8601 string.

    Returns:
        ISO-8601 string, or None if missing or unparsable.
    """
    if not value:
        return None
    value = value.strip()

    parsed: datetime | None = None
    for fmt in RSS_DATE_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
            break
        except ValueError:
            continue

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            logger.debug("unparsable_pub_date", value=value)
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.isoformat()


def build_magnet_uri(info_hash: str, title: str) -> str:
    """Build a magnet URI from an info hash and display name."""
    return f"{MAGNET_PREFIX}xt=urn:btih:{info_hash}&dn={quote(title, safe='')}"


def _is_magnet(url: str | None) -> bool:
    return bool(url) and url.startswith(MAGNET_PREFIX)


def _is_http(url: str | None) -> bool:
    return bool(url) and url.lower().startswith(("http://", "https://"))


def _find_links(item: RawItem, title: str) -> tuple[str | None, str | None]:
    """Find (magnet URI, .torrent URL) for an item; at most one is set."""
    magnet_url = item.attr("magneturl")
    if _is_magnet(magnet_url):
        return magnet_url, None

    info_hash = (item.attr("infohash") or "").strip()
    if info_hash:
        return build_magnet_uri(info_hash, title), None

    if _is_magnet(item.enclosure_url):
        return item.enclosure_url, None

    if _is_magnet(item.link):
        return item.link, None

    if item.enclosure_url:
        return None, item.enclosure_url

    # Jackett's magneturl can point at its own /dl/ proxy, which redirects
    # to the magnet; the resolver follows that redirect.
    if _is_http(magnet_url):
        return None, magnet_url

    if _is_http(item.link):
        return None, item.link

    return None, None


def normalize_item(item: RawItem) -> NormalizedItem:
    """Normalize one raw feed item.

    Args:
        item: Parsed feed item.

    Returns:
        A finished result, a pending result needing .torrent resolution,
        or a ``Dropped`` record.
    """
    title = (item.title or "").strip()
    if not title:
        return Dropped(reason=DropReason.MISSING_TITLE)

    magnet_uri, torrent_url = _find_links(item, title)
    if not magnet_uri and not torrent_url:
        return Dropped(reason=DropReason.NO_DOWNLOAD_LINK, title=title)

    seeders = parse_int(item.attr("seeders"))
    if item.attr("leechers") is not None:
        leechers = parse_int(item.attr("leechers"))
    else:
        leechers = max(0, parse_int(item.attr("peers")) - seeders)

    size_bytes = parse_size(item.attr("size"))
    if not size_bytes:
        size_bytes = parse_int(item.enclosure_length)

    fields = {
        "id": item.guid or magnet_uri or torrent_url,
        "title": title,
        "size_bytes": size_bytes,
        "seeders": seeders,
        "leechers": leechers,
        "indexer_name": item.indexer or "Unknown",
        "publish_date": parse_pub_date(item.pub_date),
        "quality": infer_quality(title),
    }

    if magnet_uri:
        return TorrentResult(**fields, magnet_uri=magnet_uri)
    return PendingResult(**fields, torrent_file_url=torrent_url)


def normalize_items(
    items: Iterable[RawItem],
) -> tuple[list[TorrentResult | PendingResult], list[Dropped]]:
    """Normalize a batch of items.

    Returns:
        Tuple of (kept results in feed order, dropped items).
    """
    kept: list[TorrentResult | PendingResult] = []
    dropped: list[Dropped] = []

    for item in items:
        result = normalize_item(item)
        if isinstance(result, Dropped):
            logger.debug("feed_item_dropped", reason=result.reason.value, title=result.title)
            dropped.append(result)
        else:
            kept.append(result)

    return kept, dropped
