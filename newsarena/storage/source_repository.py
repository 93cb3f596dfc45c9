"""
Source Repository
=================

Read access to the configured news sources for the ingestion service, and
the admin mutations (create, enable/disable) used by the CLI.
"""

from typing import List, Optional

from ..database.models import NewsSource
from ..utils.logging import get_logger_for_component
from ..utils.validators import SourceValidator, URLValidator
from .table_store import Filter, TableStore

TABLE = "news_sources"


class SourceRepository:
    """Repository for news sources."""

    def __init__(self, store: TableStore):
        """Initialize source repository.

        Args:
            store: Table store holding the news_sources table
        """
        self.store = store
        self.logger = get_logger_for_component("source_repository")

    def get_active_sources(self) -> List[NewsSource]:
        """Active sources that have a feed URL, oldest first.

        Raises:
            DatabaseError: If the store read fails
        """
        rows = self.store.select(
            TABLE,
            filters=[Filter.eq("is_active", True), Filter.not_null("feed_url")],
            order_by="created_at",
        )
        return [NewsSource.from_db_row(row) for row in rows]

    def get_all_sources(self) -> List[NewsSource]:
        rows = self.store.select(TABLE, order_by="created_at")
        return [NewsSource.from_db_row(row) for row in rows]

    def get_source(self, source_id: str) -> Optional[NewsSource]:
        rows = self.store.select(TABLE, filters=[Filter.eq("id", source_id)], limit=1)
        return NewsSource.from_db_row(rows[0]) if rows else None

    def create_source(
        self,
        name: str,
        feed_url: str,
        site_url: Optional[str] = None,
        logo_url: Optional[str] = None,
        is_active: bool = True,
    ) -> NewsSource:
        """Create a new news source.

        Raises:
            ValidationError: If a field is invalid
            DatabaseError: If the insert fails
        """
        source = NewsSource(
            name=SourceValidator.validate_name(name),
            feed_url=URLValidator.validate_feed_url(feed_url),
            site_url=SourceValidator.validate_optional_url(site_url, "site_url"),
            logo_url=SourceValidator.validate_optional_url(logo_url, "logo_url"),
            is_active=is_active,
        )
        self.store.insert(TABLE, source.model_dump())
        self.logger.info(f"Created news source {source.name}", extra={"source_id": source.id})
        return source

    def set_active(self, source_id: str, is_active: bool) -> bool:
        """Enable or disable a source.

        Returns:
            True if a source was updated
        """
        changed = self.store.update(TABLE, source_id, {"is_active": is_active})
        if changed:
            self.logger.info(
                f"Source {source_id} {'enabled' if is_active else 'disabled'}",
                extra={"source_id": source_id},
            )
        return changed > 0
