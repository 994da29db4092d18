"""Resolve .torrent file links into magnet URIs.

Fetches the .torrent file, decodes it with bencodepy, computes the v1 info
hash (SHA-1 of the bencoded ``info`` dictionary) and builds a magnet URI that
carries the file's trackers and web seeds.
"""

import asyncio
import hashlib
from urllib.parse import quote, urljoin

import bencodepy
import httpx
import structlog

from torznab_search.config import settings
from torznab_search.search.models import MAGNET_PREFIX, ConversionOutcome
from torznab_search.search.url_safety import validate_external_url

logger = structlog.get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; TorznabSearch/1.0)"

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


class InvalidTorrentError(Exception):
    """Raised when a response body is not a usable .torrent file."""

    pass


def _decode_text(value: bytes | str) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _collect_trackers(meta: dict) -> list[str]:
    """Trackers from ``announce`` and ``announce-list``, de-duplicated in order."""
    trackers: list[str] = []

    announce = meta.get(b"announce")
    if isinstance(announce, bytes | str):
        trackers.append(_decode_text(announce))

    announce_list = meta.get(b"announce-list")
    if not isinstance(announce_list, list):
        announce_list = []

    for tier in announce_list:
        tier_urls = tier if isinstance(tier, list) else [tier]
        for tracker in tier_urls:
            if isinstance(tracker, bytes | str):
                trackers.append(_decode_text(tracker))

    return list(dict.fromkeys(t for t in trackers if t))


def _collect_web_seeds(meta: dict) -> list[str]:
    url_list = meta.get(b"url-list")
    if isinstance(url_list, bytes | str):
        url_list = [url_list]
    if not isinstance(url_list, list):
        return []
    seeds = [_decode_text(u) for u in url_list if isinstance(u, bytes | str)]
    return list(dict.fromkeys(s for s in seeds if s))


def torrent_to_magnet(data: bytes) -> str:
    """Build a magnet URI from the raw bytes of a .torrent file.

    Args:
        data: Bencoded .torrent file content.

    Returns:
        Magnet URI with ``xt``, ``dn`` (when the torrent has a name),
        ``tr`` for each tracker and ``ws`` for each web seed.

    Raises:
        InvalidTorrentError: If the data is not bencoded or has no info dictionary.
    """
    try:
        meta = bencodepy.decode(data)
    except (bencodepy.BencodeDecodeError, ValueError, TypeError, IndexError, KeyError) as e:
        raise InvalidTorrentError(f"Failed to decode torrent: {e}") from e

    if not isinstance(meta, dict):
        raise InvalidTorrentError("Failed to parse torrent: not a dictionary")

    info = meta.get(b"info")
    if not isinstance(info, dict):
        raise InvalidTorrentError("Failed to parse torrent: no infoHash")

    info_hash = hashlib.sha1(bencodepy.encode(info)).hexdigest()

    parts = [f"xt=urn:btih:{info_hash}"]

    name = info.get(b"name.utf-8") or info.get(b"name")
    if isinstance(name, bytes | str) and name:
        parts.append(f"dn={quote(_decode_text(name), safe='')}")

    parts.extend(f"tr={quote(tracker, safe='')}" for tracker in _collect_trackers(meta))
    parts.extend(f"ws={quote(seed, safe='')}" for seed in _collect_web_seeds(meta))

    return MAGNET_PREFIX + "&".join(parts)


class MagnetResolver:
    """Fetch .torrent files and convert them to magnet URIs.

    The resolver never raises for per-URL problems; every call returns a
    ``ConversionOutcome``. Callers are expected to have validated the
    initial URL; redirect targets are validated here.

    Example:
        async with httpx.AsyncClient() as http:
            resolver = MagnetResolver(http)
            outcome = await resolver.resolve("https://indexer.example/file.torrent")
            if outcome.ok:
                print(outcome.magnet_uri)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        fetch_timeout: float | None = None,
        max_redirects: int | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            client: Shared HTTP client (redirects are handled here, not by the client).
            fetch_timeout: Total time allowed for one URL, redirects included.
            max_redirects: Maximum redirect hops to follow.
        """
        self.client = client
        self.fetch_timeout = (
            fetch_timeout if fetch_timeout is not None else settings.torrent_fetch_timeout
        )
        self.max_redirects = (
            max_redirects if max_redirects is not None else settings.torrent_max_redirects
        )

    async def resolve(self, url: str) -> ConversionOutcome:
        """Resolve one .torrent URL.

        Args:
            url: URL of a .torrent file (already validated by the caller).

        Returns:
            ``resolved`` with the magnet URI, ``rejected`` if a redirect points
            somewhere unsafe, ``failed`` on HTTP/parse errors, or ``timed_out``.
        """
        try:
            outcome = await asyncio.wait_for(self._fetch_and_convert(url), self.fetch_timeout)
        except (TimeoutError, httpx.TimeoutException):
            logger.debug("torrent_fetch_timeout", url=url, timeout=self.fetch_timeout)
            return ConversionOutcome.timed_out(url, "Fetch timeout")
        except httpx.HTTPError as e:
            logger.debug("torrent_fetch_error", url=url, error=str(e))
            return ConversionOutcome.failed(url, f"Request failed: {e}")

        if not outcome.ok:
            logger.debug(
                "torrent_conversion_unsuccessful",
                url=url,
                status=outcome.status.value,
                reason=outcome.reason,
            )
        return outcome

    async def _fetch_and_convert(self, url: str) -> ConversionOutcome:
        current_url = url

        for _ in range(self.max_redirects + 1):
            response = await self.client.get(
                current_url,
                headers={"User-Agent": USER_AGENT},
                follow_redirects=False,
            )

            if response.status_code in REDIRECT_STATUSES:
                location = response.headers.get("location")
                if not location:
                    return ConversionOutcome.failed(url, "Redirect without Location header")

                # Indexer download proxies often redirect straight to the magnet
                if location.startswith(MAGNET_PREFIX):
                    return ConversionOutcome.resolved(url, location)

                next_url = urljoin(current_url, location)
                check = validate_external_url(next_url)
                if not check.ok:
                    return ConversionOutcome.rejected(url, f"Redirect {check.reason}")
                current_url = next_url
                continue

            if not 200 <= response.status_code < 300:
                return ConversionOutcome.failed(url, f"HTTP {response.status_code}")

            try:
                magnet_uri = torrent_to_magnet(response.content)
            except InvalidTorrentError as e:
                return ConversionOutcome.failed(url, str(e))

            return ConversionOutcome.resolved(url, magnet_uri)

        return ConversionOutcome.failed(url, f"Too many redirects (>{self.max_redirects})")
