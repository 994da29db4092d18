"""Batch conversion of .torrent URLs with bounded concurrency.

URLs are processed in chunks of ``max_concurrency``: every URL in a chunk is
resolved concurrently, and the next chunk starts only when the whole chunk has
finished. A batch deadline is checked before each chunk is dispatched; once it
has passed, remaining URLs are not fetched and are marked ``timed_out``.

In-flight work is never cancelled by the batch deadline. Each resolution is
bounded by the resolver's own per-URL timeout, so a batch can overrun its
deadline by at most one fetch timeout.
"""

import asyncio
import time
from collections import Counter
from collections.abc import Iterable
from typing import Protocol

import structlog

from torznab_search.config import settings
from torznab_search.search.models import ConversionOutcome
from torznab_search.search.url_safety import validate_external_url

logger = structlog.get_logger(__name__)


class Resolver(Protocol):
    """Anything that turns a .torrent URL into a ConversionOutcome."""

    async def resolve(self, url: str) -> ConversionOutcome: ...


class BatchConverter:
    """Convert many .torrent URLs, guaranteeing one outcome per URL."""

    def __init__(
        self,
        resolver: Resolver,
        max_concurrency: int | None = None,
        batch_timeout: float | None = None,
    ) -> None:
        """Initialize converter.

        Args:
            resolver: Resolver used for URLs that pass validation.
            max_concurrency: Chunk size, i.e. maximum simultaneous fetches.
            batch_timeout: Seconds after which no further chunks are started.
        """
        self.resolver = resolver
        self.max_concurrency = (
            max_concurrency if max_concurrency is not None else settings.torrent_max_concurrency
        )
        self.batch_timeout = (
            batch_timeout if batch_timeout is not None else settings.torrent_batch_timeout
        )
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

    async def _convert_one(self, url: str) -> ConversionOutcome:
        check = validate_external_url(url)
        if not check.ok:
            logger.debug("torrent_url_rejected", url=url, reason=check.reason)
            return ConversionOutcome.rejected(url, check.reason or "Blocked URL")

        try:
            return await self.resolver.resolve(url)
        except Exception as e:
            # A misbehaving resolver must not take the rest of the chunk down
            logger.warning("torrent_resolver_crashed", url=url, error=str(e))
            return ConversionOutcome.failed(url, f"Unexpected error: {e}")

    async def convert_all(self, urls: Iterable[str]) -> dict[str, ConversionOutcome]:
        """Convert all URLs.

        Args:
            urls: .torrent file URLs. Duplicates are converted once.

        Returns:
            Mapping of every distinct input URL to exactly one outcome.
        """
        unique_urls = list(dict.fromkeys(urls))
        outcomes: dict[str, ConversionOutcome] = {}

        if not unique_urls:
            return outcomes

        deadline = time.monotonic() + self.batch_timeout
        chunks = [
            unique_urls[i : i + self.max_concurrency]
            for i in range(0, len(unique_urls), self.max_concurrency)
        ]

        for index, chunk in enumerate(chunks):
            if time.monotonic() >= deadline:
                logger.warning(
                    "torrent_batch_deadline_reached",
                    chunks_done=index,
                    chunks_total=len(chunks),
                    timeout=self.batch_timeout,
                )
                break

            chunk_outcomes = await asyncio.gather(*(self._convert_one(url) for url in chunk))
            for url, outcome in zip(chunk, chunk_outcomes, strict=True):
                outcomes[url] = outcome

        for url in unique_urls:
            if url not in outcomes:
                outcomes[url] = ConversionOutcome.timed_out(url, "Batch timeout")

        counts = Counter(outcome.status.value for outcome in outcomes.values())
        logger.info("torrent_batch_converted", total=len(unique_urls), **counts)
        return outcomes
