"""
Tests for Storage Components
============================

Test suite for SQLiteTableStore and the source, article and ingestion log
repositories built on it.
"""

import sqlite3
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from newsarena.database.models import (
    ArticleStatus,
    CanonicalArticle,
    IngestionCounts,
    IngestionStatus,
    NewsSource,
)
from newsarena.storage.article_repository import ArticleRepository
from newsarena.storage.ingestion_log_repository import IngestionLogRepository
from newsarena.storage.source_repository import SourceRepository
from newsarena.storage.table_store import Filter, SQLiteTableStore, TableStore
from newsarena.utils.exceptions import DatabaseError, ErrorCode, ValidationError


def make_article(n: int, canonical: str = None) -> CanonicalArticle:
    url = f"https://news.example.com/story-{n}"
    return CanonicalArticle(
        title=f"Story number {n} headline",
        slug=f"story-number-{n}-headline",
        summary="A summary that is comfortably long enough.",
        article_url=url,
        canonical_url=canonical or url,
        source_name="Daily Ledger",
        category="general",
        tags=["alpha", "beta"],
        language="en",
        published_at=datetime(2025, 1, n, 12, 0, tzinfo=timezone.utc),
        content_hash=f"hash-{n}",
    )


class TestSQLiteTableStore:
    """Test suite for SQLiteTableStore."""

    def test_insert_and_select(self, table_store):
        row = table_store.insert("news_sources", {"name": "Alpha", "feed_url": "https://a.example.com/rss"})

        assert row["id"]
        rows = table_store.select("news_sources", filters=[Filter.eq("id", row["id"])])
        assert len(rows) == 1
        assert rows[0]["name"] == "Alpha"
        assert rows[0]["is_active"] is True

    def test_upsert_ignore_duplicates(self, table_store):
        first = make_article(1).to_db_row()
        clash = make_article(2, canonical=first["original_url"]).to_db_row()

        written = table_store.upsert(
            "news_articles", [first, clash], conflict_key="original_url", ignore_duplicates=True
        )

        assert written == 1
        rows = table_store.select("news_articles")
        assert len(rows) == 1
        assert rows[0]["title"] == "Story number 1 headline"
        assert rows[0]["tags"] == ["alpha", "beta"]
        assert rows[0]["is_featured"] is False

    def test_upsert_update_on_conflict(self, table_store):
        table_store.upsert("news_articles", [make_article(1).to_db_row()], conflict_key="original_url")
        changed = make_article(1).to_db_row()
        changed["title"] = "Rewritten headline text"

        table_store.upsert("news_articles", [changed], conflict_key="original_url")

        rows = table_store.select("news_articles")
        assert len(rows) == 1
        assert rows[0]["title"] == "Rewritten headline text"

    def test_filters(self, table_store):
        table_store.insert("news_sources", {"name": "With feed", "feed_url": "https://a.example.com/rss"})
        table_store.insert("news_sources", {"name": "No feed", "feed_url": None})

        with_feed = table_store.select("news_sources", filters=[Filter.not_null("feed_url")])
        without_feed = table_store.select("news_sources", filters=[Filter.is_null("feed_url")])
        by_name = table_store.select("news_sources", filters=[Filter.in_("name", ["No feed", "Other"])])

        assert [r["name"] for r in with_feed] == ["With feed"]
        assert [r["name"] for r in without_feed] == ["No feed"]
        assert [r["name"] for r in by_name] == ["No feed"]
        assert table_store.select("news_sources", filters=[Filter.in_("name", [])]) == []

    def test_update_with_guard_filter(self, table_store):
        row = table_store.insert("news_sources", {"name": "Alpha", "feed_url": "https://a.example.com/rss"})

        assert table_store.update("news_sources", row["id"], {"name": "Beta"}, [Filter.eq("is_active", False)]) == 0
        assert table_store.update("news_sources", row["id"], {"name": "Beta"}) == 1
        assert table_store.select("news_sources")[0]["name"] == "Beta"

    def test_invalid_identifier_rejected(self, table_store):
        with pytest.raises(DatabaseError):
            table_store.select("news_sources; DROP TABLE news_sources")

    def test_sqlite_error_wrapped(self, table_store):
        with pytest.raises(DatabaseError) as exc_info:
            table_store.select("missing_table")
        assert exc_info.value.error_code == ErrorCode.DATABASE_ERROR
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)

    def test_is_table_store(self, table_store):
        assert isinstance(table_store, TableStore)


class TestSourceRepository:
    """Test suite for SourceRepository."""

    @pytest.fixture
    def repo(self, table_store):
        return SourceRepository(table_store)

    def test_active_sources_exclude_inactive_and_feedless(self, repo, table_store, sample_sources):
        table_store.insert("news_sources", {"name": "No Feed Source", "feed_url": None})

        active = repo.get_active_sources()

        assert [s.name for s in active] == ["Tech Daily", "World Report"]
        assert all(isinstance(s, NewsSource) for s in active)

    def test_get_all_sources(self, repo, sample_sources):
        assert len(repo.get_all_sources()) == 3

    def test_get_source(self, repo, sample_sources):
        source = repo.get_source(sample_sources[0].id)
        assert source.name == "Tech Daily"
        assert source.site_url == "https://techdaily.example.com"
        assert repo.get_source("missing-id") is None

    def test_create_source_validates_feed_url(self, repo):
        with pytest.raises(ValidationError) as exc_info:
            repo.create_source(name="Bad", feed_url="ftp://bad.example.com/rss")
        assert exc_info.value.error_code == ErrorCode.FEED_INVALID_URL

    def test_create_source_requires_feed_url(self, repo):
        with pytest.raises(ValidationError) as exc_info:
            repo.create_source(name="Missing", feed_url="")
        assert exc_info.value.error_code == ErrorCode.VALIDATION_REQUIRED_FIELD

    def test_set_active(self, repo, sample_sources):
        assert repo.set_active(sample_sources[2].id, True) is True
        assert len(repo.get_active_sources()) == 3
        assert repo.set_active("missing-id", False) is False


class TestArticleRepository:
    """Test suite for ArticleRepository."""

    @pytest.fixture
    def repo(self, table_store):
        return ArticleRepository(table_store)

    def test_store_articles(self, repo):
        assert repo.store_articles([make_article(1), make_article(2)]) == 2
        assert repo.count_articles() == 2

    def test_store_articles_empty(self, repo):
        assert repo.store_articles([]) == 0

    def test_store_articles_counts_attempted(self, repo):
        """Conflicting rows are skipped but still counted."""
        repo.store_articles([make_article(1)])

        assert repo.store_articles([make_article(1), make_article(2)]) == 2
        assert repo.count_articles() == 2

    def test_stored_defaults(self, repo):
        repo.store_articles([make_article(3)])

        stored = repo.get_articles_by_source("Daily Ledger")[0]
        assert stored.status == ArticleStatus.PENDING_APPROVAL
        assert stored.view_count == 0
        assert stored.is_featured is False
        assert stored.original_url == "https://news.example.com/story-3"
        assert stored.tags == ["alpha", "beta"]
        assert stored.published_at == datetime(2025, 1, 3, 12, 0, tzinfo=timezone.utc)

    def test_find_existing_hashes(self, repo):
        repo.store_articles([make_article(1), make_article(2)])

        existing = repo.find_existing_hashes(["hash-1", "hash-2", "hash-9", "hash-1"])

        assert existing == {"hash-1", "hash-2"}

    def test_find_existing_hashes_large_input(self, repo):
        repo.store_articles([make_article(1)])
        hashes = [f"other-{i}" for i in range(1200)] + ["hash-1"]

        assert repo.find_existing_hashes(hashes) == {"hash-1"}

    def test_get_articles_by_source_newest_first(self, repo):
        repo.store_articles([make_article(1), make_article(5), make_article(3)])

        articles = repo.get_articles_by_source("Daily Ledger", limit=2)

        assert [a.content_hash for a in articles] == ["hash-5", "hash-3"]


class TestIngestionLogRepository:
    """Test suite for IngestionLogRepository."""

    @pytest.fixture
    def repo(self, table_store):
        return IngestionLogRepository(table_store)

    def test_start_creates_in_progress_entry(self, repo, sample_sources):
        log_id = repo.start(sample_sources[0])

        logs = repo.get_logs()
        assert log_id is not None
        assert len(logs) == 1
        assert logs[0].id == log_id
        assert logs[0].status == IngestionStatus.IN_PROGRESS
        assert logs[0].source_name == "Tech Daily"
        assert logs[0].completed_at is None

    def test_finish_success(self, repo, sample_sources):
        log_id = repo.start(sample_sources[0])

        assert repo.finish(log_id, IngestionStatus.SUCCESS, IngestionCounts(10, 8, 2)) is True

        entry = repo.get_logs()[0]
        assert entry.status == IngestionStatus.SUCCESS
        assert (entry.articles_fetched, entry.articles_processed, entry.articles_duplicates) == (10, 8, 2)
        assert entry.completed_at is not None
        assert entry.duration_seconds >= 0

    def test_finish_error_message(self, repo, sample_sources):
        log_id = repo.start(sample_sources[0])

        repo.finish(log_id, IngestionStatus.ERROR, IngestionCounts(), "HTTP 500: Internal Server Error")

        entry = repo.get_logs()[0]
        assert entry.status == IngestionStatus.ERROR
        assert entry.error_message == "HTTP 500: Internal Server Error"

    def test_finish_only_once(self, repo, sample_sources):
        """A finished entry is never changed again."""
        log_id = repo.start(sample_sources[0])
        repo.finish(log_id, IngestionStatus.SUCCESS, IngestionCounts(1, 1, 0))

        assert repo.finish(log_id, IngestionStatus.ERROR, IngestionCounts(), "late") is False
        assert repo.get_logs()[0].status == IngestionStatus.SUCCESS

    def test_finish_refuses_in_progress(self, repo, sample_sources):
        log_id = repo.start(sample_sources[0])
        assert repo.finish(log_id, IngestionStatus.IN_PROGRESS, IngestionCounts()) is False

    def test_finish_without_log_id(self, repo):
        assert repo.finish(None, IngestionStatus.SUCCESS, IngestionCounts()) is False

    def test_storage_failures_absorbed(self, sample_sources):
        store = Mock(spec=SQLiteTableStore)
        store.insert.side_effect = DatabaseError("disk full")
        store.update.side_effect = DatabaseError("disk full")
        store.select.side_effect = DatabaseError("disk full")
        repo = IngestionLogRepository(store)

        assert repo.start(sample_sources[0]) is None
        assert repo.finish("some-id", IngestionStatus.SUCCESS, IngestionCounts()) is False
        assert repo.get_logs() == []

    def test_logs_by_source(self, repo, sample_sources):
        repo.start(sample_sources[0])
        repo.start(sample_sources[1])
        repo.start(sample_sources[0])

        assert len(repo.get_logs_by_source(sample_sources[0].id)) == 2
        assert len(repo.get_logs(limit=1)) == 1
