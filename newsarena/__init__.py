"""
NewsArena - News Aggregation Backend
====================================

RSS ingestion pipeline that turns publisher feeds into normalized,
deduplicated articles awaiting editorial approval.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: Environment variables with Pydantic validation
- Ingestion: Feed fetching, parsing, normalization and deduplication
- Storage: Table store and repositories for sources, articles and logs
- Scheduler: Recurring ingestion with whole-run retries
"""

__version__ = "1.0.0"
__author__ = "NewsArena Development Team"
__description__ = "RSS ingestion pipeline for news aggregation"

# Core imports for easy access
from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import NewsArenaError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "NewsArenaError",
]
