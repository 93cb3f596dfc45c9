"""
NewsArena Storage Layer
=======================

Repository implementations over an abstract table store.

This module provides:
- Table store interface and its SQLite implementation
- Source repository (source provider for ingestion)
- Article repository (storage writer with conflict-ignoring upserts)
- Ingestion log repository (audit trail of per-source runs)
"""

from .table_store import Filter, SQLiteTableStore, TableStore
from .source_repository import SourceRepository
from .article_repository import ArticleRepository
from .ingestion_log_repository import IngestionLogRepository

__all__ = [
    "Filter",
    "TableStore",
    "SQLiteTableStore",
    "SourceRepository",
    "ArticleRepository",
    "IngestionLogRepository",
]
