"""
RSS/Atom Feed Parser
====================

Turns raw feed text into RawItem records using feedparser. HTML inside
descriptions and content is kept raw so the normalizer can still find
images in it.

This module provides:
- RSS 2.0 / RDF and Atom item extraction through one entry point
- Channel metadata extraction
- Whole-document failure on malformed XML
"""

import io
import xml.sax
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

import feedparser

from ..utils.exceptions import FeedParseError
from ..utils.logging import get_logger_for_component

# Forces feedparser to decode our already-decoded text as UTF-8
_RESPONSE_HEADERS = {"content-type": "application/xml; charset=utf-8"}


@dataclass
class MediaReference:
    """URL of an enclosure or media element."""

    url: str
    type: Optional[str] = None
    length: Optional[int] = None


@dataclass
class RawItem:
    """One feed item as found in the document, before normalization."""

    title: str
    link: str
    description: Optional[str] = None
    content: Optional[str] = None
    content_snippet: Optional[str] = None
    pub_date: Optional[str] = None
    iso_date: Optional[str] = None
    creator: Optional[str] = None
    guid: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    enclosure: Optional[MediaReference] = None
    media_content: List[MediaReference] = field(default_factory=list)
    media_thumbnails: List[MediaReference] = field(default_factory=list)


@dataclass
class FeedMetadata:
    """Channel-level feed information."""

    title: str = ""
    description: str = ""
    link: str = ""
    language: Optional[str] = None


@dataclass
class ParsedFeed:
    """Metadata and items from a single parse."""

    format: str
    metadata: FeedMetadata
    items: List[RawItem] = field(default_factory=list)


class FeedParser:
    """feedparser-based RSS 2.0 and Atom parser."""

    def __init__(self):
        self.logger = get_logger_for_component("feed_parser")

    def parse(self, text: str, feed_url: Optional[str] = None) -> List[RawItem]:
        """Parse feed items.

        Args:
            text: Raw feed document
            feed_url: Feed URL, used for error context only

        Returns:
            Items that have both a title and a link

        Raises:
            FeedParseError: If the document is not well-formed XML
        """
        return self.parse_feed(text, feed_url).items

    def parse_metadata(self, text: str, feed_url: Optional[str] = None) -> FeedMetadata:
        """Parse only the channel/feed root.

        Raises:
            FeedParseError: If the document is not well-formed XML
        """
        return self._extract_feed_metadata(self._load(text, feed_url))

    def parse_feed(self, text: str, feed_url: Optional[str] = None) -> ParsedFeed:
        """Parse metadata and items in one pass."""
        parsed = self._load(text, feed_url)
        feed_format = self._detect_format(parsed)

        items = []
        for index, entry in enumerate(parsed.entries):
            item = self._extract_item(entry)
            if item is None:
                self.logger.warning(
                    f"Dropping feed item #{index}: missing title or link",
                    extra={"feed_url": feed_url, "item_index": index},
                )
                continue
            items.append(item)

        self.logger.debug(
            f"Parsed {len(items)} of {len(parsed.entries)} {feed_format} items",
            extra={"feed_url": feed_url},
        )

        return ParsedFeed(
            format=feed_format,
            metadata=self._extract_feed_metadata(parsed),
            items=items,
        )

    def _load(self, text: str, feed_url: Optional[str]) -> Any:
        if not text or not text.strip():
            raise FeedParseError("Feed document is empty", feed_url=feed_url)

        parsed = feedparser.parse(
            io.BytesIO(text.encode("utf-8")),
            response_headers=_RESPONSE_HEADERS,
            sanitize_html=False,
            resolve_relative_uris=False,
        )

        # feedparser falls back to a lenient parser on malformed XML; a
        # malformed document must fail as a whole instead.
        if parsed.get("bozo"):
            error = parsed.get("bozo_exception")
            if isinstance(error, xml.sax.SAXException):
                raise FeedParseError(
                    f"Malformed feed XML: {error}", feed_url=feed_url
                ) from error
            self.logger.debug(f"Feed parse warning: {error}", extra={"feed_url": feed_url})

        if not parsed.get("version") and not parsed.entries and not parsed.feed:
            raise FeedParseError("Document is not an RSS or Atom feed", feed_url=feed_url)

        return parsed

    @staticmethod
    def _detect_format(parsed: Any) -> str:
        version = parsed.get("version") or ""
        return "atom" if version.startswith("atom") else "rss"

    def _extract_feed_metadata(self, parsed: Any) -> FeedMetadata:
        feed = parsed.feed
        return FeedMetadata(
            title=(feed.get("title") or "").strip(),
            description=(feed.get("description") or feed.get("subtitle") or "").strip(),
            link=(feed.get("link") or "").strip(),
            language=feed.get("language"),
        )

    def _extract_item(self, entry: Any) -> Optional[RawItem]:
        """Map one feedparser entry; None when title or link is missing."""
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        if not title or not link:
            return None

        content = None
        if entry.get("content"):
            content = entry.content[0].get("value") or None
        summary = entry.get("summary") or None

        pub_date = entry.get("published") or entry.get("updated")
        iso_date = None
        parsed_date = entry.get("published_parsed") or entry.get("updated_parsed")
        if parsed_date:
            try:
                iso_date = datetime(*parsed_date[:6], tzinfo=timezone.utc).isoformat()
            except (TypeError, ValueError):
                iso_date = None

        categories = []
        for tag in entry.get("tags") or []:
            term = (tag.get("term") or tag.get("label") or "").strip()
            if term:
                categories.append(term)

        enclosures = [
            MediaReference(url=enc.get("href"), type=enc.get("type"), length=_as_int(enc.get("length")))
            for enc in entry.get("enclosures") or []
            if enc.get("href")
        ]
        media_content = _media_references(entry.get("media_content"))
        media_thumbnails = _media_references(entry.get("media_thumbnail"))

        candidates = enclosures[:1] + media_content[:1] + media_thumbnails[:1]

        return RawItem(
            title=title,
            link=link,
            description=summary or content,
            content=content or summary,
            pub_date=pub_date,
            iso_date=iso_date,
            creator=entry.get("author"),
            guid=entry.get("id"),
            categories=categories,
            enclosure=candidates[0] if candidates else None,
            media_content=media_content,
            media_thumbnails=media_thumbnails,
        )


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _media_references(elements: Optional[List[dict]]) -> List[MediaReference]:
    return [
        MediaReference(url=el["url"], type=el.get("type"), length=_as_int(el.get("fileSize")))
        for el in elements or []
        if el.get("url")
    ]


def parse_feed_text(text: str) -> List[RawItem]:
    """Convenience function to parse feed items."""
    return FeedParser().parse(text)
