"""Video quality detection from torrent titles."""

from enum import Enum


class VideoQuality(str, Enum):
    """Coarse video quality parsed from a torrent title."""

    Q_4K = "4K"
    Q_1080P = "1080p"
    Q_720P = "720p"
    Q_480P = "480p"
    UNKNOWN = "Unknown"


# Checked in order, most specific first: "Show.2160p.1080p" is 4K.
QUALITY_MARKERS: list[tuple[VideoQuality, tuple[str, ...]]] = [
    (VideoQuality.Q_4K, ("2160p", "4k", "uhd")),
    (VideoQuality.Q_1080P, ("1080p", "1080i")),
    (VideoQuality.Q_720P, ("720p",)),
    (VideoQuality.Q_480P, ("480p", "dvd", "sd")),
]


def infer_quality(title: str) -> VideoQuality:
    """Infer video quality from a torrent title.

    Matching is a case-insensitive substring search, so it is deliberately
    loose: any title containing "sd" counts as 480p unless a higher marker
    is present.

    Args:
        title: Torrent title to analyze.

    Returns:
        Detected quality, ``VideoQuality.UNKNOWN`` if nothing matches.
    """
    title_lower = title.lower()

    for quality, markers in QUALITY_MARKERS:
        if any(marker in title_lower for marker in markers):
            return quality

    return VideoQuality.UNKNOWN
