"""
Deduplicator
============

Two exact set-membership filters: one over raw items within a single fetch,
one over normalized articles against what is already persisted.
"""

from typing import List, Tuple

from ..database.models import CanonicalArticle
from ..storage.article_repository import ArticleRepository
from ..utils.logging import get_logger_for_component
from .feed_parser import RawItem


class Deduplicator:
    """In-batch and cross-run duplicate removal."""

    def __init__(self, article_repository: ArticleRepository):
        self.article_repository = article_repository
        self.logger = get_logger_for_component("deduplicator")

    @staticmethod
    def item_key(item: RawItem) -> str:
        return f"{item.link}::{item.title}"

    def deduplicate_raw_items(self, items: List[RawItem]) -> Tuple[List[RawItem], int]:
        """Keep the first occurrence of each link+title pair.

        Returns:
            (unique items in original order, number removed)
        """
        seen = set()
        unique = []

        for item in items:
            key = self.item_key(item)
            if key in seen:
                continue
            seen.add(key)
            unique.append(item)

        removed = len(items) - len(unique)
        if removed:
            self.logger.debug(f"Removed {removed} in-batch duplicates")
        return unique, removed

    def filter_persisted(
        self, articles: List[CanonicalArticle]
    ) -> Tuple[List[CanonicalArticle], int]:
        """Drop articles whose content hash is already stored.

        Returns:
            (articles not yet stored, number removed)

        Raises:
            DatabaseError: If the hash lookup fails
        """
        if not articles:
            return [], 0

        existing = self.article_repository.find_existing_hashes(
            a.content_hash for a in articles
        )
        fresh = [a for a in articles if a.content_hash not in existing]

        removed = len(articles) - len(fresh)
        if removed:
            self.logger.debug(f"Removed {removed} previously stored articles")
        return fresh, removed
