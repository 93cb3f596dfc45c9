"""
Ingestion Pipeline Integration Tests
====================================

Runs the real fetcher, parser, normalizer, deduplicator and SQLite storage
together. Only the single HTTP request is replaced.
"""

from unittest.mock import patch

import aiohttp
import pytest

from newsarena.database.models import IngestionStatus
from newsarena.ingestion.feed_fetcher import FeedFetcher
from newsarena.ingestion.orchestrator import IngestionService
from newsarena.scheduler.ingestion_scheduler import IngestionScheduler, SchedulerConfig
from newsarena.utils.exceptions import FeedFetchError


@pytest.mark.integration
class TestIngestionPipeline:
    """End-to-end ingestion over a temporary database."""

    @pytest.fixture
    def service(self, table_store, test_settings):
        return IngestionService(table_store, settings=test_settings)

    @pytest.fixture
    def http(self, sample_rss, sample_atom):
        """Fake HTTP layer: first request to World Report drops the connection."""
        calls = []

        async def request(session, url):
            calls.append(url)
            if url == "https://worldreport.example.com/feed.xml" and calls.count(url) == 1:
                raise aiohttp.ClientConnectionError("connection reset by peer")
            if url == "https://techdaily.example.com/rss":
                return sample_rss
            if url == "https://worldreport.example.com/feed.xml":
                return sample_atom
            raise FeedFetchError("HTTP 404: Not Found", feed_url=url)

        with patch.object(FeedFetcher, "_request", side_effect=request):
            yield calls

    @pytest.mark.asyncio
    async def test_full_run_stores_canonical_articles(self, service, http, sample_sources):
        results = await service.ingest_from_all_sources()

        assert [r.success for r in results] == [True, True]
        # World Report needed a second attempt; the inactive source was never requested
        assert http.count("https://worldreport.example.com/feed.xml") == 2
        assert "https://dormant.example.com/rss" not in http

        tech = service.articles.get_articles_by_source("Tech Daily")
        assert sorted(a.title for a in tech) == [
            "Football season opens with a surprise match result",
            "New AI startup raises record funding round",
        ]
        ai_article = next(a for a in tech if a.title.startswith("New AI"))
        assert ai_article.article_url == "https://techdaily.example.com/ai-startup?id=42"
        assert ai_article.category == "technology"
        assert ai_article.slug == "new-ai-startup-raises-record-funding-round"
        assert ai_article.status.value == "pending_approval"
        assert ai_article.view_count == 0
        assert ai_article.is_featured is False

        world = service.articles.get_articles_by_source("World Report")
        assert len(world) == 1
        assert world[0].category == "politics"
        assert world[0].image_url == "https://cdn.example.com/budget.webp"

        logs = await service.get_ingestion_logs()
        assert len(logs) == 2
        assert all(log.status == IngestionStatus.SUCCESS for log in logs)

    @pytest.mark.asyncio
    async def test_repeated_runs_are_idempotent(self, service, http, sample_sources):
        await service.ingest_from_all_sources()
        first_count = service.articles.count_articles()

        results = await service.ingest_from_all_sources()

        assert service.articles.count_articles() == first_count == 3
        assert [r.articles_stored for r in results] == [0, 0]
        assert [r.articles_duplicates for r in results] == [2, 1]

    @pytest.mark.asyncio
    async def test_scheduler_manual_trigger(self, service, http, sample_sources):
        summaries = []
        scheduler = IngestionScheduler(
            service,
            SchedulerConfig(interval_minutes=60, max_retries=0),
            on_success=lambda results: summaries.append(service.generate_summary(results)),
        )

        results = await scheduler.trigger_manual()

        assert len(results) == 2
        assert summaries[0].successful == 2
        assert summaries[0].total_stored == 3
