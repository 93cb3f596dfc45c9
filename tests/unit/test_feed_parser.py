"""
Tests for FeedParser
====================

RSS 2.0 and Atom parsing into RawItem records, feed metadata, and
whole-document failure on malformed XML.
"""

import logging

import pytest

from newsarena.ingestion.feed_parser import FeedParser, RawItem, parse_feed_text
from newsarena.utils.exceptions import ErrorCode, FeedParseError


class TestFeedParser:
    """Test suite for FeedParser."""

    @pytest.fixture
    def parser(self):
        return FeedParser()

    def test_parse_rss_items(self, parser, sample_rss):
        """Items with title and link are returned in document order."""
        items = parser.parse(sample_rss, "https://techdaily.example.com/rss")

        assert len(items) == 2
        assert all(isinstance(item, RawItem) for item in items)
        assert items[0].title == "New AI startup raises record funding round"
        assert items[0].link.startswith("https://techdaily.example.com/ai-startup")
        assert items[1].title == "Football season opens with a surprise match result"

    def test_item_without_link_is_dropped(self, parser, sample_rss):
        """Items missing a link never reach the result."""
        items = parser.parse(sample_rss)
        assert "Item without a link is dropped" not in [i.title for i in items]

    def test_items_missing_title_or_link_are_dropped(self, parser, partial_rss, caplog):
        with caplog.at_level(logging.WARNING, logger="newsarena.feed_parser"):
            items = parser.parse(partial_rss, "https://partial.example.com/rss")

        assert [(i.title, i.link) for i in items] == [
            ("Valid item title here", "https://partial.example.com/valid")
        ]
        dropped = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert [r.item_index for r in dropped] == [0, 1]

    def test_rss_item_fields(self, parser, sample_rss):
        """Dates, author, categories and enclosure are carried through."""
        item = parser.parse(sample_rss)[0]

        assert "artificial intelligence company" in item.description
        assert item.pub_date == "Mon, 06 Jan 2025 10:30:00 +0100"
        assert item.iso_date == "2025-01-06T09:30:00+00:00"
        assert item.creator == "Jane Writer"
        assert item.guid == "https://techdaily.example.com/ai-startup"
        assert item.categories == ["Technology", "Funding"]
        assert item.enclosure is not None
        assert item.enclosure.url == "https://cdn.example.com/images/ai.jpg"
        assert item.enclosure.type == "image/jpeg"
        assert item.enclosure.length == 12345

    def test_media_thumbnail_becomes_enclosure(self, parser, sample_rss):
        """Without an enclosure, the first media element is used."""
        item = parser.parse(sample_rss)[1]

        assert item.enclosure is not None
        assert item.enclosure.url == "https://cdn.example.com/images/football.png"
        assert [m.url for m in item.media_thumbnails] == [
            "https://cdn.example.com/images/football.png"
        ]

    def test_parse_atom_entry(self, parser, sample_atom):
        """Atom entries map onto the same RawItem fields."""
        items = parser.parse(sample_atom)

        assert len(items) == 1
        item = items[0]
        assert item.title == "Parliament passes new government budget"
        assert item.link == "https://worldreport.example.com/budget"
        assert item.description.startswith("Lawmakers approved the spending plan after")
        assert "<img" in item.content
        assert item.iso_date == "2025-01-08T11:00:00+00:00"
        assert item.creator == "Sam Reporter"

    def test_parse_feed_detects_format(self, parser, sample_rss, sample_atom):
        """parse_feed reports the dialect alongside the items."""
        assert parser.parse_feed(sample_rss).format == "rss"
        assert parser.parse_feed(sample_atom).format == "atom"

    def test_parse_metadata_rss(self, parser, sample_rss):
        """Channel title, description, link and language are read."""
        metadata = parser.parse_metadata(sample_rss)

        assert metadata.title == "Tech Daily"
        assert metadata.description == "Daily technology news"
        assert metadata.link == "https://techdaily.example.com"
        assert metadata.language == "en-us"

    def test_parse_metadata_atom(self, parser, sample_atom):
        """Atom subtitle is used as the description."""
        metadata = parser.parse_metadata(sample_atom)

        assert metadata.title == "World Report"
        assert metadata.description == "International news coverage"

    def test_empty_channel_returns_no_items(self, parser):
        """A well-formed feed with zero items is not an error."""
        text = """<?xml version="1.0"?>
        <rss version="2.0"><channel><title>Quiet</title>
        <link>https://quiet.example.com</link><description>Nothing</description>
        </channel></rss>"""

        assert parser.parse(text) == []

    def test_malformed_xml_fails_whole_document(self, parser):
        """Broken XML raises instead of returning partial items."""
        text = """<?xml version="1.0"?>
        <rss version="2.0"><channel><title>Broken</title>
        <item><title>Only item</title><link>https://broken.example.com/1</link>
        </channel></rss>"""

        with pytest.raises(FeedParseError) as exc_info:
            parser.parse(text, "https://broken.example.com/rss")

        assert exc_info.value.error_code == ErrorCode.FEED_PARSE_ERROR
        assert exc_info.value.context["feed_url"] == "https://broken.example.com/rss"

    @pytest.mark.parametrize("text", ["", "   \n  "])
    def test_blank_document_rejected(self, parser, text):
        """Empty responses are parse errors."""
        with pytest.raises(FeedParseError):
            parser.parse(text)

    def test_parse_feed_text_convenience(self, sample_rss):
        """Module-level helper uses a default parser."""
        assert len(parse_feed_text(sample_rss)) == 2
