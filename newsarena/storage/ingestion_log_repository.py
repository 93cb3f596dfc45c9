"""
Ingestion Log Repository
========================

Records the start and end of each per-source ingestion run. Logging must
never break ingestion: every storage failure here is logged and absorbed.
"""

from typing import List, Optional

from ..database.models import (
    IngestionCounts,
    IngestionLog,
    IngestionStatus,
    NewsSource,
    utc_now,
)
from ..utils.logging import get_logger_for_component
from .table_store import Filter, TableStore

TABLE = "ingestion_logs"


class IngestionLogRepository:
    """Append-only ingestion audit log."""

    def __init__(self, store: TableStore):
        self.store = store
        self.logger = get_logger_for_component("ingestion_log")

    def start(self, source: NewsSource) -> Optional[str]:
        """Create an in_progress entry for ``source``.

        Returns:
            The new log ID, or None if the entry could not be written
        """
        entry = IngestionLog(source_id=source.id, source_name=source.name)

        try:
            self.store.insert(TABLE, entry.model_dump())
        except Exception as e:
            self.logger.error(
                f"Failed to create ingestion log for {source.name}: {e}",
                extra={"source_id": source.id},
            )
            return None

        return entry.id

    def finish(
        self,
        log_id: Optional[str],
        status: IngestionStatus,
        counts: IngestionCounts,
        error_message: Optional[str] = None,
    ) -> bool:
        """Move an in_progress entry to its terminal status.

        Entries already finished are left untouched.

        Returns:
            True if an entry was updated
        """
        if not log_id:
            return False

        if status == IngestionStatus.IN_PROGRESS:
            self.logger.error(f"Refusing to finish ingestion log {log_id} as in_progress")
            return False

        patch = {
            "status": status.value,
            "articles_fetched": counts.articles_fetched,
            "articles_processed": counts.articles_processed,
            "articles_duplicates": counts.articles_duplicates,
            "error_message": error_message,
            "completed_at": utc_now(),
        }

        try:
            changed = self.store.update(
                TABLE,
                log_id,
                patch,
                filters=[Filter.eq("status", IngestionStatus.IN_PROGRESS.value)],
            )
        except Exception as e:
            self.logger.error(f"Failed to update ingestion log {log_id}: {e}")
            return False

        if not changed:
            self.logger.warning(f"Ingestion log {log_id} was not in progress; left unchanged")
        return changed > 0

    def get_logs(self, limit: int = 50) -> List[IngestionLog]:
        """Most recent log entries first."""
        return self._select([], limit)

    def get_logs_by_source(self, source_id: str, limit: int = 20) -> List[IngestionLog]:
        """Most recent log entries for one source first."""
        return self._select([Filter.eq("source_id", source_id)], limit)

    def _select(self, filters: List[Filter], limit: int) -> List[IngestionLog]:
        try:
            rows = self.store.select(
                TABLE,
                filters=filters,
                order_by="started_at",
                descending=True,
                limit=limit,
            )
        except Exception as e:
            self.logger.error(f"Failed to read ingestion logs: {e}")
            return []

        return [IngestionLog.from_db_row(row) for row in rows]
