"""
Article Repository
==================

Storage writer for normalized articles. Writes go through a
conflict-ignoring upsert on ``original_url`` so the first stored copy of an
article always wins.
"""

from typing import Iterable, List, Set

from ..database.models import CanonicalArticle, StoredArticle
from ..utils.logging import get_logger_for_component
from .table_store import Filter, TableStore

TABLE = "news_articles"

# SQLite's default bound-parameter limit is well above this
HASH_LOOKUP_CHUNK = 500


class ArticleRepository:
    """Repository for persisted articles."""

    def __init__(self, store: TableStore):
        """Initialize article repository.

        Args:
            store: Table store holding the news_articles table
        """
        self.store = store
        self.logger = get_logger_for_component("article_repository")

    def store_articles(self, articles: List[CanonicalArticle]) -> int:
        """Upsert articles, skipping any whose canonical URL is already stored.

        Returns:
            Number of articles attempted. Rows skipped by the conflict rule
            are still counted, so this is an upper bound on rows inserted.

        Raises:
            DatabaseError: If the upsert fails
        """
        if not articles:
            return 0

        rows = [article.to_db_row() for article in articles]
        written = self.store.upsert(
            TABLE, rows, conflict_key="original_url", ignore_duplicates=True
        )

        self.logger.info(
            f"Stored {len(rows)} articles",
            extra={"attempted": len(rows), "written": written},
        )
        return len(rows)

    def find_existing_hashes(self, content_hashes: Iterable[str]) -> Set[str]:
        """Return the subset of ``content_hashes`` already persisted.

        Raises:
            DatabaseError: If the lookup fails
        """
        unique = list(dict.fromkeys(h for h in content_hashes if h))
        existing: Set[str] = set()

        for start in range(0, len(unique), HASH_LOOKUP_CHUNK):
            chunk = unique[start:start + HASH_LOOKUP_CHUNK]
            rows = self.store.select(
                TABLE,
                filters=[Filter.in_("content_hash", chunk)],
                columns=["content_hash"],
            )
            existing.update(row["content_hash"] for row in rows)

        return existing

    def count_articles(self) -> int:
        return len(self.store.select(TABLE, columns=["id"]))

    def get_articles_by_source(self, source_name: str, limit: int = 20) -> List[StoredArticle]:
        rows = self.store.select(
            TABLE,
            filters=[Filter.eq("source_name", source_name)],
            order_by="published_at",
            descending=True,
            limit=limit,
        )
        return [StoredArticle.from_db_row(row) for row in rows]
