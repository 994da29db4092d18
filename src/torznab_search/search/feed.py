"""Torznab feed parser.

Torznab is RSS 2.0 with per-item extension attributes::

    <item>
      <title>Movie.2021.1080p.BluRay.x264</title>
      <guid>https://indexer.example/details/123</guid>
      <jackettindexer id="example">Example Indexer</jackettindexer>
      <pubDate>Sat, 18 Jan 2025 12:00:00 +0000</pubDate>
      <enclosure url="https://indexer.example/dl/123.torrent" length="1610612736" />
      <torznab:attr name="seeders" value="42" />
      <torznab:attr name="peers" value="50" />
    </item>

This module only turns the document into ``RawItem`` records. Deciding what
an item means (magnet or .torrent link, sizes, quality) is the normalizer's job.
"""

from dataclasses import dataclass, field
from xml.etree import ElementTree

import structlog

logger = structlog.get_logger(__name__)

TORZNAB_NS = "http://torznab.com/schemas/2015/feed"
NEWZNAB_NS = "http://www.newznab.com/DTD/2010/feeds/attributes/"

# Older indexers emit newznab:attr; Jackett and Prowlarr emit torznab:attr.
ATTR_TAGS = (f"{{{TORZNAB_NS}}}attr", f"{{{NEWZNAB_NS}}}attr")


class FeedError(Exception):
    """Base exception for feed errors."""

    pass


class FeedParseError(FeedError):
    """Raised when the response is not a usable RSS document."""

    pass


class IndexerError(FeedError):
    """Raised when the indexer answered with a Torznab <error> document."""

    def __init__(self, code: str | None, description: str | None) -> None:
        self.code = code
        self.description = description
        super().__init__(f"Indexer error {code}: {description}")


@dataclass
class RawItem:
    """One ``<item>`` of a Torznab feed, with nothing interpreted yet."""

    title: str | None = None
    guid: str | None = None
    link: str | None = None
    pub_date: str | None = None
    enclosure_url: str | None = None
    enclosure_length: str | None = None
    indexer: str | None = None
    attrs: dict[str, str] = field(default_factory=dict)

    def attr(self, name: str) -> str | None:
        """Look up an extension attribute by name."""
        return self.attrs.get(name)


def _text(element: ElementTree.Element | None) -> str | None:
    """Stripped text of an element, None when missing or empty."""
    if element is None or element.text is None:
        return None
    text = element.text.strip()
    return text or None


def _extract_attrs(item: ElementTree.Element) -> dict[str, str]:
    """Collect extension attributes into a name -> value lookup.

    One attribute or many, torznab or newznab namespace, all end up in the
    same dict. The first occurrence of a name wins.
    """
    attrs: dict[str, str] = {}
    for tag in ATTR_TAGS:
        for attr in item.iter(tag):
            name = attr.get("name")
            value = attr.get("value")
            if name and value is not None and name not in attrs:
                attrs[name] = value
    return attrs


def _parse_item(item: ElementTree.Element) -> RawItem:
    enclosure = item.find("enclosure")

    return RawItem(
        title=_text(item.find("title")),
        # <guid isPermaLink="true">...</guid> and <guid>...</guid> read the same
        guid=_text(item.find("guid")),
        link=_text(item.find("link")),
        pub_date=_text(item.find("pubDate")),
        enclosure_url=enclosure.get("url") if enclosure is not None else None,
        enclosure_length=enclosure.get("length") if enclosure is not None else None,
        indexer=_text(item.find("jackettindexer")),
        attrs=_extract_attrs(item),
    )


def parse_feed(xml_content: str | bytes) -> list[RawItem]:
    """Parse a Torznab search response into raw items.

    Args:
        xml_content: Response body. Bytes are preferred so the XML
            declaration decides the encoding.

    Returns:
        Parsed items in feed order. A channel without items yields ``[]``.

    Raises:
        FeedParseError: If the body is not XML or has no rss/channel.
        IndexerError: If the indexer returned an error document.
    """
    try:
        root = ElementTree.fromstring(xml_content)
    except ElementTree.ParseError as e:
        raise FeedParseError(f"Failed to parse feed XML: {e}") from e

    if root.tag == "error":
        raise IndexerError(root.get("code"), root.get("description"))

    channel = root.find("channel")
    if root.tag != "rss" or channel is None:
        raise FeedParseError(f"Unexpected feed structure: <{root.tag}> has no channel")

    items = [_parse_item(item) for item in channel.findall("item")]
    logger.debug("feed_parsed", items=len(items))
    return items
