"""
Tests for Deduplicator
======================

In-batch removal over raw items and cross-run removal against stored
content hashes.
"""

from unittest.mock import Mock

import pytest

from newsarena.ingestion.content_normalizer import ContentNormalizer, NormalizationOptions
from newsarena.ingestion.deduplicator import Deduplicator
from newsarena.ingestion.feed_parser import RawItem
from newsarena.storage.article_repository import ArticleRepository
from newsarena.utils.exceptions import DatabaseError


def raw(title: str, link: str) -> RawItem:
    return RawItem(
        title=title,
        link=link,
        description="A description long enough to pass summary validation.",
    )


class TestInBatchDeduplication:
    """Test suite for deduplicate_raw_items."""

    @pytest.fixture
    def deduplicator(self):
        return Deduplicator(Mock(spec=ArticleRepository))

    def test_first_occurrence_kept(self, deduplicator):
        items = [
            raw("Headline number one", "https://a.example.com/1"),
            raw("Headline number two", "https://a.example.com/2"),
            raw("Headline number one", "https://a.example.com/1"),
        ]

        unique, removed = deduplicator.deduplicate_raw_items(items)

        assert unique == items[:2]
        assert removed == 1

    def test_same_link_different_title_kept(self, deduplicator):
        """The key is link and title together."""
        items = [
            raw("Original headline text", "https://a.example.com/1"),
            raw("Updated headline text", "https://a.example.com/1"),
        ]

        unique, removed = deduplicator.deduplicate_raw_items(items)

        assert len(unique) == 2
        assert removed == 0

    def test_empty_batch(self, deduplicator):
        assert deduplicator.deduplicate_raw_items([]) == ([], 0)


class TestPersistedDeduplication:
    """Test suite for filter_persisted against a real article table."""

    @pytest.fixture
    def article_repo(self, table_store):
        return ArticleRepository(table_store)

    @pytest.fixture
    def normalizer(self):
        return ContentNormalizer(NormalizationOptions())

    def test_stored_articles_filtered(self, article_repo, normalizer):
        stored = normalizer.process_item(raw("Already stored headline", "https://a.example.com/1"), "Src")
        fresh = normalizer.process_item(raw("Brand new headline here", "https://a.example.com/2"), "Src")
        article_repo.store_articles([stored])

        deduplicator = Deduplicator(article_repo)
        remaining, removed = deduplicator.filter_persisted([stored, fresh])

        assert [a.content_hash for a in remaining] == [fresh.content_hash]
        assert removed == 1

    def test_empty_input_skips_lookup(self):
        repo = Mock(spec=ArticleRepository)

        assert Deduplicator(repo).filter_persisted([]) == ([], 0)
        repo.find_existing_hashes.assert_not_called()

    def test_lookup_failure_propagates(self, normalizer):
        """A failed hash lookup is not treated as 'nothing stored'."""
        repo = Mock(spec=ArticleRepository)
        repo.find_existing_hashes.side_effect = DatabaseError("lookup failed")
        article = normalizer.process_item(raw("Some headline text", "https://a.example.com/1"), "Src")

        with pytest.raises(DatabaseError):
            Deduplicator(repo).filter_persisted([article])
