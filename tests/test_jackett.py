"""Tests for the Jackett search client.

Covers request building, feed error handling and the full search flow from
Torznab feed to magnet-bearing results.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import bencodepy
import httpx
import pytest

from torznab_search.config import TorznabCategory
from torznab_search.errors import APIError, ConfigurationError, ValidationError
from torznab_search.search.jackett import JackettClient, search_torrents
from torznab_search.search.models import TorrentResult
from torznab_search.search.quality import VideoQuality

# =============================================================================
# Sample Feeds
# =============================================================================

INFO_HASH = "ABCD1234567890ABCD1234567890ABCD12345678"

MIXED_FEED = f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:torznab="http://torznab.com/schemas/2015/feed">
  <channel>
    <item>
      <title>Movie.1080p.mkv</title>
      <guid>item-1</guid>
      <jackettindexer id="one">Indexer One</jackettindexer>
      <pubDate>Sat, 18 Jan 2025 12:00:00 +0000</pubDate>
      <torznab:attr name="infohash" value="{INFO_HASH}" />
      <torznab:attr name="seeders" value="20" />
      <torznab:attr name="peers" value="25" />
      <torznab:attr name="size" value="1.5 GB" />
    </item>
    <item>
      <title>Movie.720p.mkv</title>
      <guid>item-2</guid>
      <enclosure url="https://indexer.example/dl/2.torrent" length="1000"
                 type="application/x-bittorrent" />
    </item>
  </channel>
</rss>
""".encode()

TORRENT_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:torznab="http://torznab.com/schemas/2015/feed">
  <channel>
    <item>
      <title>First.2160p</title>
      <enclosure url="https://indexer.example/dl/a.torrent" length="10" />
    </item>
    <item>
      <title>Second.1080p</title>
      <torznab:attr name="magneturl" value="magnet:?xt=urn:btih:SECOND" />
    </item>
    <item>
      <title>Third.Internal</title>
      <enclosure url="http://192.168.1.10/c.torrent" length="10" />
    </item>
  </channel>
</rss>
"""

ERROR_FEED = b'<?xml version="1.0"?><error code="100" description="Invalid API Key" />'

TORRENT_FILE = bencodepy.encode(
    {
        b"announce": b"udp://tracker.example:80/announce",
        b"info": {
            b"name": b"First.2160p",
            b"length": 10,
            b"piece length": 16384,
            b"pieces": b"\x00" * 20,
        },
    }
)


def make_response(status_code=200, content=b"", headers=None):
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.content = content
    response.headers = headers or {}
    return response


# =============================================================================
# Tests for JackettClient setup
# =============================================================================


class TestJackettClientSetup:
    """Tests for client construction and context management."""

    def test_search_url_join(self):
        client = JackettClient(
            base_url="http://jackett:9117/",
            search_path="/api/v2.0/indexers/all/results/torznab/",
            api_key="key",
        )
        assert client.search_url == "http://jackett:9117/api/v2.0/indexers/all/results/torznab/"

    def test_search_url_without_slashes(self):
        client = JackettClient(
            base_url="http://jackett:9117",
            search_path="api/v2.0/indexers/all/results/torznab/",
            api_key="key",
        )
        assert client.search_url == "http://jackett:9117/api/v2.0/indexers/all/results/torznab/"

    @pytest.mark.asyncio
    async def test_context_manager(self):
        client = JackettClient(api_key="key")
        assert client._client is None

        async with client:
            assert client._client is not None
            assert client._torrent_client is not None

        assert client._client is None
        assert client._torrent_client is None

    def test_client_property_not_initialized(self):
        client = JackettClient(api_key="key")
        with pytest.raises(RuntimeError, match="not initialized"):
            _ = client.client
        with pytest.raises(RuntimeError, match="not initialized"):
            _ = client.torrent_client

    def test_build_params(self):
        client = JackettClient(api_key="secret", max_results=25)
        params = client._build_params("Dune", TorznabCategory.MOVIES_HD)
        assert params == {
            "apikey": "secret",
            "t": "search",
            "q": "Dune",
            "limit": "25",
            "cat": "2040",
        }

    def test_build_params_without_category(self):
        client = JackettClient(api_key="secret")
        assert "cat" not in client._build_params("Dune", None)

    def test_has_credentials(self):
        client = JackettClient(api_key="key")
        assert client.has_credentials is True
        client.api_key = ""
        assert client.has_credentials is False

    def test_missing_api_key(self):
        client = JackettClient(api_key="key")
        client.api_key = None
        with pytest.raises(ConfigurationError, match="JACKETT_API_KEY"):
            client._build_params("Dune", None)


# =============================================================================
# Tests for search error handling
# =============================================================================


class TestJackettSearchErrors:
    """Tests for search input validation and feed failures."""

    @pytest.mark.asyncio
    async def test_blank_query_makes_no_request(self):
        with patch.object(JackettClient, "_fetch_feed", new_callable=AsyncMock) as mock_fetch:
            async with JackettClient(api_key="key") as client:
                assert await client.search("   ") == []
            mock_fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_api_key_raises(self):
        with patch.object(JackettClient, "_fetch_feed", new_callable=AsyncMock) as mock_fetch:
            async with JackettClient(api_key="key") as client:
                client.api_key = ""
                with pytest.raises(ConfigurationError):
                    await client.search("Dune")
            mock_fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_category(self):
        async with JackettClient(api_key="key") as client:
            with pytest.raises(ValidationError, match="Unknown category"):
                await client.search("Dune", "music")

    @pytest.mark.asyncio
    async def test_category_string_accepted(self):
        with patch.object(JackettClient, "_fetch_feed", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.return_value = b'<rss version="2.0"><channel></channel></rss>'
            async with JackettClient(api_key="key") as client:
                await client.search("Dune", "tv4K")
            params = mock_fetch.call_args.args[0]
            assert params["cat"] == "5045"

    @pytest.mark.asyncio
    async def test_timeout_maps_to_504(self):
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = httpx.ReadTimeout("timed out")
            async with JackettClient(api_key="key") as client:
                with pytest.raises(APIError) as exc_info:
                    await client.search("Dune")
        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_connection_error(self):
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = httpx.ConnectError("Connection refused")
            async with JackettClient(api_key="key") as client:
                with pytest.raises(APIError) as exc_info:
                    await client.search("Dune")
        assert exc_info.value.status_code == 500
        assert exc_info.value.code == "API_ERROR"

    @pytest.mark.asyncio
    async def test_non_2xx_status(self):
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = make_response(401, content=b"Unauthorized")
            async with JackettClient(api_key="key") as client:
                with pytest.raises(APIError) as exc_info:
                    await client.search("Dune")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unparsable_feed_returns_empty(self):
        with patch.object(JackettClient, "_fetch_feed", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.return_value = b"<html><body>Jackett is starting</body></html>"
            async with JackettClient(api_key="key") as client:
                assert await client.search("Dune") == []

    @pytest.mark.asyncio
    async def test_indexer_error_document(self):
        with patch.object(JackettClient, "_fetch_feed", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.return_value = ERROR_FEED
            async with JackettClient(api_key="key") as client:
                with pytest.raises(APIError) as exc_info:
                    await client.search("Dune")
        assert exc_info.value.status_code == 502
        assert "Invalid API Key" in exc_info.value.message


# =============================================================================
# Tests for the full search flow
# =============================================================================


class TestJackettSearch:
    """Tests for search from feed to results."""

    @pytest.mark.asyncio
    async def test_infohash_kept_and_failed_torrent_dropped(self):
        client = JackettClient(api_key="key")

        async def fake_get(url, **kwargs):
            if url == client.search_url:
                assert kwargs["params"]["q"] == "Movie"
                return make_response(content=MIXED_FEED)
            return make_response(404, content=b"Not Found")

        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = fake_get
            async with client:
                results = await client.search("Movie")

        assert len(results) == 1
        result = results[0]
        assert isinstance(result, TorrentResult)
        assert result.id == "item-1"
        assert result.title == "Movie.1080p.mkv"
        assert result.quality == VideoQuality.Q_1080P
        assert result.magnet_uri == f"magnet:?xt=urn:btih:{INFO_HASH}&dn=Movie.1080p.mkv"
        assert result.seeders == 20
        assert result.leechers == 5
        assert result.size_bytes == 1610612736
        assert result.indexer_name == "Indexer One"
        assert result.publish_date == "2025-01-18T12:00:00+00:00"

    @pytest.mark.asyncio
    async def test_resolved_torrent_keeps_feed_order(self):
        client = JackettClient(api_key="key")
        torrent_urls: list[str] = []

        async def fake_get(url, **kwargs):
            if url == client.search_url:
                return make_response(content=TORRENT_FEED)
            torrent_urls.append(url)
            return make_response(content=TORRENT_FILE)

        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = fake_get
            async with client:
                results = await client.search("Movie")

        assert [r.title for r in results] == ["First.2160p", "Second.1080p"]
        assert results[0].quality == VideoQuality.Q_4K
        assert results[0].magnet_uri.startswith("magnet:?xt=urn:btih:")
        assert "&tr=udp%3A%2F%2Ftracker.example%3A80%2Fannounce" in results[0].magnet_uri
        assert all(r.magnet_uri.startswith("magnet:?") for r in results)
        # The internal .torrent link is never requested
        assert torrent_urls == ["https://indexer.example/dl/a.torrent"]

    @pytest.mark.asyncio
    async def test_empty_feed(self):
        with patch.object(JackettClient, "_fetch_feed", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.return_value = b'<rss version="2.0"><channel></channel></rss>'
            async with JackettClient(api_key="key") as client:
                assert await client.search("Nothing") == []

    @pytest.mark.asyncio
    async def test_no_pending_skips_conversion(self):
        feed = f"""<rss version="2.0" xmlns:torznab="http://torznab.com/schemas/2015/feed">
          <channel><item><title>Only</title>
            <torznab:attr name="infohash" value="{INFO_HASH}" />
          </item></channel></rss>""".encode()

        with (
            patch.object(JackettClient, "_fetch_feed", new_callable=AsyncMock) as mock_fetch,
            patch("torznab_search.search.jackett.BatchConverter") as mock_converter,
        ):
            mock_fetch.return_value = feed
            async with JackettClient(api_key="key") as client:
                results = await client.search("Only")

        assert len(results) == 1
        mock_converter.assert_not_called()


class TestSearchTorrents:
    """Tests for the search_torrents convenience function."""

    @pytest.mark.asyncio
    async def test_uses_client(self):
        with patch.object(JackettClient, "search", new_callable=AsyncMock) as mock_search:
            mock_search.return_value = []
            assert await search_torrents("Dune", "movies") == []
            mock_search.assert_called_once_with("Dune", category="movies")
