"""Search module for Torznab indexers.

This module queries Jackett's Torznab API, normalizes the feed into
``TorrentResult`` objects and resolves .torrent links into magnet URIs.
"""

from torznab_search.search.conversion import BatchConverter
from torznab_search.search.feed import FeedError, FeedParseError, IndexerError, RawItem, parse_feed
from torznab_search.search.jackett import JackettClient, search_torrents
from torznab_search.search.magnet import InvalidTorrentError, MagnetResolver, torrent_to_magnet
from torznab_search.search.models import (
    ConversionOutcome,
    ConversionStatus,
    PendingResult,
    TorrentResult,
)
from torznab_search.search.normalizer import normalize_item, normalize_items
from torznab_search.search.quality import VideoQuality, infer_quality
from torznab_search.search.url_safety import UrlCheck, validate_external_url
from torznab_search.search.utils import (
    SortDirection,
    SortField,
    filter_by_quality,
    format_file_size,
    sort_results,
)

__all__ = [
    # Client
    "JackettClient",
    "search_torrents",
    # Models
    "TorrentResult",
    "PendingResult",
    "ConversionOutcome",
    "ConversionStatus",
    "VideoQuality",
    # Pipeline stages
    "RawItem",
    "parse_feed",
    "normalize_item",
    "normalize_items",
    "infer_quality",
    "validate_external_url",
    "UrlCheck",
    "MagnetResolver",
    "torrent_to_magnet",
    "BatchConverter",
    # Errors
    "FeedError",
    "FeedParseError",
    "IndexerError",
    "InvalidTorrentError",
    # Utilities
    "SortField",
    "SortDirection",
    "sort_results",
    "filter_by_quality",
    "format_file_size",
]
