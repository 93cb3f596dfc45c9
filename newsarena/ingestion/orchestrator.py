"""
Ingestion Orchestrator
======================

Runs the per-source pipeline (fetch, parse, dedupe, normalize, dedupe
against storage, store) with an audit log entry around every run, and the
sequential multi-source driver on top of it.
"""

import asyncio
from dataclasses import asdict
from typing import List, Optional

from ..config.settings import NewsArenaSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import (
    IngestionLog,
    IngestionResult,
    IngestionStatus,
    IngestionSummary,
    NewsSource,
)
from ..storage.article_repository import ArticleRepository
from ..storage.ingestion_log_repository import IngestionLogRepository
from ..storage.source_repository import SourceRepository
from ..storage.table_store import SQLiteTableStore, TableStore
from ..utils.exceptions import EmptyFeedError, get_error_message
from ..utils.logging import (
    PerformanceLogger,
    get_ingestion_logger,
    get_logger_for_component,
)
from ..utils.validators import URLValidator
from .content_normalizer import ContentNormalizer, NormalizationOptions
from .deduplicator import Deduplicator
from .feed_fetcher import FeedFetcher
from .feed_parser import FeedParser

UNKNOWN_SOURCE_NAME = "Unknown"


class IngestionService:
    """Coordinates feed ingestion for one or many news sources.

    Per-source failures never propagate: they are recorded in the result and
    in the ingestion log, and the next source is processed.
    """

    def __init__(
        self,
        store: TableStore,
        settings: Optional[NewsArenaSettings] = None,
        fetcher: Optional[FeedFetcher] = None,
        parser: Optional[FeedParser] = None,
        normalizer: Optional[ContentNormalizer] = None,
    ):
        """Initialize ingestion service.

        Args:
            store: Table store holding sources, articles and ingestion logs
            settings: Application settings (global settings when omitted)
            fetcher: Feed fetcher override
            parser: Feed parser override
            normalizer: Content normalizer override
        """
        self.settings = settings or get_settings()
        self.logger = get_logger_for_component("ingestion_service")

        self.sources = SourceRepository(store)
        self.articles = ArticleRepository(store)
        self.ingestion_logs = IngestionLogRepository(store)

        self.fetcher = fetcher or FeedFetcher(settings=self.settings)
        self.parser = parser or FeedParser()
        self.normalizer = normalizer or ContentNormalizer(
            NormalizationOptions.from_settings(self.settings)
        )
        self.deduplicator = Deduplicator(self.articles)

        self.source_delay = self.settings.ingestion.source_delay_seconds

    @classmethod
    def from_settings(cls, settings: Optional[NewsArenaSettings] = None) -> "IngestionService":
        """Build a service over the configured SQLite database."""
        settings = settings or get_settings()
        db = DatabaseConnection(settings.database.path, settings.database.pool_size)
        return cls(SQLiteTableStore(db), settings=settings)

    async def ingest_from_source(self, source: NewsSource) -> IngestionResult:
        """Ingest one source.

        Returns:
            Result with counts; ``success`` is False and ``errors`` holds the
            message when any stage failed
        """
        logger = get_ingestion_logger(source_name=source.name, source_id=source.id)

        log_id = await asyncio.to_thread(self.ingestion_logs.start, source)
        result = IngestionResult(
            success=False,
            source_id=source.id,
            source_name=source.name,
            log_id=log_id,
        )

        try:
            with PerformanceLogger(logger, f"ingestion of {source.name}"):
                await self._run_pipeline(source, result, logger)
        except Exception as e:
            message = get_error_message(e)
            result.success = False
            result.errors.append(message)
            logger.error(f"Error ingesting from {source.name}: {message}")

            await asyncio.to_thread(
                self.ingestion_logs.finish,
                log_id,
                IngestionStatus.ERROR,
                result.counts,
                message,
            )
            return result

        result.success = True
        await asyncio.to_thread(
            self.ingestion_logs.finish, log_id, IngestionStatus.SUCCESS, result.counts
        )
        logger.info(f"Successfully ingested {result.articles_stored} articles from {source.name}")
        return result

    async def _run_pipeline(self, source: NewsSource, result: IngestionResult, logger) -> None:
        """Pipeline stages; counters on ``result`` are updated as each stage completes."""
        feed_url = URLValidator.validate_feed_url(source.feed_url)

        logger.info(f"Fetching RSS feed from {source.name}")
        text = await self.fetcher.fetch(feed_url)

        raw_items = self.parser.parse(text, feed_url)
        result.articles_fetched = len(raw_items)
        if not raw_items:
            raise EmptyFeedError("No articles found in feed", feed_url=feed_url)

        unique_items, in_batch_duplicates = self.deduplicator.deduplicate_raw_items(raw_items)
        result.articles_duplicates = in_batch_duplicates

        logger.info(f"Processing {len(unique_items)} articles from {source.name}")
        articles = self.normalizer.process_items(unique_items, source.name, source.site_url)
        result.articles_processed = len(articles)

        fresh, persisted_duplicates = await asyncio.to_thread(
            self.deduplicator.filter_persisted, articles
        )
        result.articles_duplicates += persisted_duplicates

        if fresh:
            result.articles_stored = await asyncio.to_thread(self.articles.store_articles, fresh)

    async def ingest_from_multiple_sources(self, sources: List[NewsSource]) -> List[IngestionResult]:
        """Ingest sources one after another, skipping inactive ones."""
        results = []

        for source in sources:
            if not source.is_active:
                self.logger.info(f"Skipping inactive source: {source.name}")
                continue

            if results and self.source_delay > 0:
                await asyncio.sleep(self.source_delay)

            results.append(await self.ingest_from_source(source))

        return results

    async def ingest_from_all_sources(self) -> List[IngestionResult]:
        """Ingest every active source that has a feed URL.

        Returns:
            Per-source results; empty when sources cannot be loaded
        """
        try:
            sources = await asyncio.to_thread(self.sources.get_active_sources)
        except Exception as e:
            self.logger.error(f"Failed to load active sources: {get_error_message(e)}")
            return []

        if not sources:
            self.logger.warning("No active sources with RSS URLs found")
            return []

        self.logger.info(f"Starting ingestion from {len(sources)} sources")
        results = await self.ingest_from_multiple_sources(sources)

        summary = self.generate_summary(results)
        self.logger.info(
            f"Ingestion summary: {summary.successful}/{summary.total_sources} sources succeeded, "
            f"{summary.total_fetched} fetched, {summary.total_stored} stored, "
            f"{summary.total_duplicates} duplicates",
            extra={"summary": asdict(summary)},
        )
        return results

    async def trigger_manual_ingestion(self, source_id: str) -> IngestionResult:
        """Ingest a single source by ID, outside any schedule."""
        try:
            source = await asyncio.to_thread(self.sources.get_source, source_id)
        except Exception as e:
            self.logger.error(f"Failed to load source {source_id}: {get_error_message(e)}")
            source = None

        if source is None:
            return IngestionResult(
                success=False,
                source_id=source_id,
                source_name=UNKNOWN_SOURCE_NAME,
                errors=["Source not found"],
            )

        return await self.ingest_from_source(source)

    async def get_ingestion_logs(self, limit: int = 50) -> List[IngestionLog]:
        return await asyncio.to_thread(self.ingestion_logs.get_logs, limit)

    async def get_ingestion_logs_by_source(self, source_id: str, limit: int = 20) -> List[IngestionLog]:
        return await asyncio.to_thread(self.ingestion_logs.get_logs_by_source, source_id, limit)

    @staticmethod
    def generate_summary(results: List[IngestionResult]) -> IngestionSummary:
        return IngestionSummary.from_results(results)
