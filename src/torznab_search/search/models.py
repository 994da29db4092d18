"""Data models for torrent search results.

``TorrentResult`` is the only model callers ever see. ``PendingResult`` and
``ConversionOutcome`` live for the duration of one search request while
.torrent file links are being turned into magnet URIs.
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from torznab_search.search.quality import VideoQuality
from torznab_search.search.utils import format_file_size

MAGNET_PREFIX = "magnet:?"


class _ResultFields(BaseModel):
    """Fields shared by finished and pending results."""

    id: str = Field(..., description="Vendor GUID, or the download link if none")
    title: str = Field(..., description="Full torrent title")
    size_bytes: int = Field(default=0, ge=0, description="Size in bytes, 0 if unknown")
    seeders: int = Field(default=0, ge=0, description="Number of seeders")
    leechers: int = Field(default=0, ge=0, description="Number of leechers")
    indexer_name: str = Field(default="Unknown", description="Indexer/tracker name")
    publish_date: str | None = Field(default=None, description="ISO-8601 publish date")
    quality: VideoQuality = Field(
        default=VideoQuality.UNKNOWN, description="Quality parsed from the title"
    )


class TorrentResult(_ResultFields):
    """A search result that is ready to hand to a torrent client.

    Attributes:
        magnet_uri: Magnet link, always starts with ``magnet:?``.
    """

    magnet_uri: str = Field(..., description="Magnet URI")

    @field_validator("magnet_uri")
    @classmethod
    def validate_magnet_uri(cls, v: str) -> str:
        """Reject anything that is not a magnet URI."""
        if not v.startswith(MAGNET_PREFIX):
            raise ValueError(f"magnet_uri must start with {MAGNET_PREFIX!r}")
        return v

    @classmethod
    def from_pending(cls, pending: "PendingResult", magnet_uri: str) -> "TorrentResult":
        """Promote a pending result once its .torrent file has been resolved."""
        return cls(**pending.model_dump(exclude={"torrent_file_url"}), magnet_uri=magnet_uri)

    def to_display_string(self) -> str:
        """Format result for display to user.

        Returns:
            Formatted string with key information.
        """
        quality_str = (
            f" [{self.quality.value}]" if self.quality != VideoQuality.UNKNOWN else ""
        )
        seeds_str = f"S:{self.seeders}" if self.seeders > 0 else "S:?"
        size_str = format_file_size(self.size_bytes)
        return f"{self.title}{quality_str} | {size_str} | {seeds_str} | {self.indexer_name}"


class PendingResult(_ResultFields):
    """A result that only has a .torrent file link so far."""

    torrent_file_url: str = Field(..., description="URL of the .torrent file")


class DropReason(str, Enum):
    """Why a feed item did not become a result."""

    MISSING_TITLE = "missing_title"
    NO_DOWNLOAD_LINK = "no_download_link"


@dataclass(frozen=True)
class Dropped:
    """A feed item the normalizer discarded, kept for logging and tests."""

    reason: DropReason
    title: str | None = None


class ConversionStatus(str, Enum):
    """Terminal state of one .torrent URL conversion."""

    RESOLVED = "resolved"
    REJECTED = "rejected"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ConversionOutcome:
    """Result of converting one .torrent URL into a magnet URI."""

    url: str
    status: ConversionStatus
    magnet_uri: str | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == ConversionStatus.RESOLVED

    @classmethod
    def resolved(cls, url: str, magnet_uri: str) -> "ConversionOutcome":
        return cls(url=url, status=ConversionStatus.RESOLVED, magnet_uri=magnet_uri)

    @classmethod
    def rejected(cls, url: str, reason: str) -> "ConversionOutcome":
        return cls(url=url, status=ConversionStatus.REJECTED, reason=reason)

    @classmethod
    def failed(cls, url: str, reason: str) -> "ConversionOutcome":
        return cls(url=url, status=ConversionStatus.FAILED, reason=reason)

    @classmethod
    def timed_out(cls, url: str, reason: str = "Timed out") -> "ConversionOutcome":
        return cls(url=url, status=ConversionStatus.TIMED_OUT, reason=reason)
