"""Jackett (Torznab) search client.

Queries Jackett's aggregated Torznab endpoint, parses the RSS response and
returns results that all carry a magnet URI. Items that only expose a .torrent
file link are resolved by fetching the file; items that cannot be resolved are
dropped rather than failing the search.

Only a failure of the feed request itself (missing API key, network error,
timeout, non-2xx status, indexer error document) is raised to the caller.
"""

from urllib.parse import urljoin

import httpx
import structlog

from torznab_search.config import TorznabCategory, settings
from torznab_search.errors import APIError, ConfigurationError, ValidationError
from torznab_search.search.conversion import BatchConverter
from torznab_search.search.feed import FeedParseError, IndexerError, parse_feed
from torznab_search.search.magnet import MagnetResolver
from torznab_search.search.models import PendingResult, TorrentResult
from torznab_search.search.normalizer import normalize_items

logger = structlog.get_logger(__name__)

FEED_ACCEPT = "application/rss+xml, application/xml, text/xml"


class JackettClient:
    """Async client for searching torrents through Jackett.

    Example:
        async with JackettClient() as client:
            results = await client.search("Dune 2021", TorznabCategory.MOVIES)
            for result in results:
                print(result.title, result.magnet_uri)
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        search_path: str | None = None,
        max_results: int | None = None,
        timeout: float | None = None,
        fetch_timeout: float | None = None,
        max_concurrency: int | None = None,
        batch_timeout: float | None = None,
    ) -> None:
        """Initialize Jackett client.

        Any argument left as None is taken from settings.

        Args:
            base_url: Jackett base URL.
            api_key: Jackett API key.
            search_path: Torznab endpoint path.
            max_results: Result limit sent to Jackett.
            timeout: Feed request timeout in seconds.
            fetch_timeout: Per-.torrent fetch timeout in seconds.
            max_concurrency: Maximum simultaneous .torrent fetches.
            batch_timeout: Time budget for all .torrent fetches of one search.
        """
        if api_key is None and settings.jackett_api_key is not None:
            api_key = settings.jackett_api_key.get_secret_value()

        self.base_url = base_url or settings.jackett_url
        self.api_key = api_key
        self.search_path = search_path or settings.jackett_search_path
        self.max_results = max_results or settings.jackett_max_results
        self.timeout = timeout or settings.jackett_timeout
        self.fetch_timeout = fetch_timeout or settings.torrent_fetch_timeout
        self.max_concurrency = max_concurrency or settings.torrent_max_concurrency
        self.batch_timeout = batch_timeout or settings.torrent_batch_timeout
        self._client: httpx.AsyncClient | None = None
        self._torrent_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "JackettClient":
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"Accept": FEED_ACCEPT},
            follow_redirects=True,
        )
        self._torrent_client = httpx.AsyncClient(timeout=httpx.Timeout(self.fetch_timeout))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._torrent_client:
            await self._torrent_client.aclose()
            self._torrent_client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the feed HTTP client.

        Raises:
            RuntimeError: If client is not initialized (not in context manager).
        """
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._client

    @property
    def torrent_client(self) -> httpx.AsyncClient:
        """Get the HTTP client used for .torrent file fetches."""
        if self._torrent_client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._torrent_client

    @property
    def search_url(self) -> str:
        return urljoin(self.base_url.rstrip("/") + "/", self.search_path.lstrip("/"))

    @property
    def has_credentials(self) -> bool:
        """Check if an API key is configured."""
        return bool(self.api_key)

    def _get_api_key(self) -> str:
        if not self.has_credentials:
            raise ConfigurationError("JACKETT_API_KEY environment variable is not set")
        return self.api_key

    def _build_params(self, query: str, category: TorznabCategory | None) -> dict[str, str]:
        params = {
            "apikey": self._get_api_key(),
            "t": "search",
            "q": query,
            "limit": str(self.max_results),
        }
        if category is not None:
            params["cat"] = category.code
        return params

    async def _fetch_feed(self, params: dict[str, str]) -> bytes:
        """Fetch the Torznab feed.

        Raises:
            APIError: On timeout (504), non-2xx status, or transport failure.
        """
        try:
            response = await self.client.get(self.search_url, params=params)
        except httpx.TimeoutException as e:
            logger.error("jackett_timeout", url=self.search_url, timeout=self.timeout)
            raise APIError("Jackett search timed out", 504) from e
        except httpx.HTTPError as e:
            logger.error("jackett_request_error", url=self.search_url, error=str(e))
            raise APIError(f"Jackett search failed: {e}", 500) from e

        if not 200 <= response.status_code < 300:
            logger.error("jackett_http_error", status=response.status_code)
            raise APIError(
                f"Jackett search failed: HTTP {response.status_code}", response.status_code
            )

        return response.content

    async def _resolve_pending(
        self, results: list[TorrentResult | PendingResult]
    ) -> list[TorrentResult]:
        """Replace pending results with resolved ones, dropping failures.

        Output order matches input order.
        """
        pending_urls = [r.torrent_file_url for r in results if isinstance(r, PendingResult)]
        if not pending_urls:
            return [r for r in results if isinstance(r, TorrentResult)]

        resolver = MagnetResolver(self.torrent_client, fetch_timeout=self.fetch_timeout)
        converter = BatchConverter(
            resolver,
            max_concurrency=self.max_concurrency,
            batch_timeout=self.batch_timeout,
        )
        outcomes = await converter.convert_all(pending_urls)

        resolved: list[TorrentResult] = []
        for result in results:
            if isinstance(result, TorrentResult):
                resolved.append(result)
                continue
            outcome = outcomes[result.torrent_file_url]
            if outcome.ok and outcome.magnet_uri:
                resolved.append(TorrentResult.from_pending(result, outcome.magnet_uri))

        return resolved

    async def search(
        self,
        query: str,
        category: TorznabCategory | str | None = None,
    ) -> list[TorrentResult]:
        """Search all Jackett indexers.

        Args:
            query: Free-text search query.
            category: Optional category (``TorznabCategory`` or its value,
                e.g. ``"moviesHD"``).

        Returns:
            Results in feed order, every one with a magnet URI. Empty for a
            blank query or an unparsable feed.

        Raises:
            ConfigurationError: If no API key is configured.
            ValidationError: If ``category`` is not a known category.
            APIError: If the feed request fails.
        """
        query = query.strip()
        if not query:
            return []

        if category is not None and not isinstance(category, TorznabCategory):
            try:
                category = TorznabCategory(category)
            except ValueError as e:
                raise ValidationError(f"Unknown category: {category}") from e

        params = self._build_params(query, category)
        logger.info(
            "jackett_search",
            query=query,
            category=category.value if category else None,
        )

        body = await self._fetch_feed(params)

        try:
            items = parse_feed(body)
        except FeedParseError as e:
            logger.warning("jackett_feed_unparsable", error=str(e))
            return []
        except IndexerError as e:
            logger.error("jackett_indexer_error", code=e.code, description=e.description)
            raise APIError(f"Jackett returned an error: {e.description}", 502) from e

        kept, dropped = normalize_items(items)
        results = await self._resolve_pending(kept)

        logger.info(
            "jackett_search_completed",
            query=query,
            items=len(items),
            dropped=len(dropped),
            pending=sum(isinstance(r, PendingResult) for r in kept),
            results=len(results),
        )
        return results


async def search_torrents(
    query: str,
    category: TorznabCategory | str | None = None,
) -> list[TorrentResult]:
    """Search Jackett with settings from the environment.

    Convenience function that creates a client and performs a search.

    Example:
        results = await search_torrents("Dune 2021", "moviesHD")
        for r in results:
            print(r.to_display_string())
    """
    async with JackettClient() as client:
        return await client.search(query, category=category)
