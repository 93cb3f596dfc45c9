"""
NewsArena Database Schema
=========================

SQLite schema for the ingestion pipeline:
- news_sources: admin-managed RSS sources
- news_articles: normalized articles, unique on original_url
- ingestion_logs: append-only audit trail of per-source runs
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"news_sources", "news_articles", "ingestion_logs"}


class DatabaseSchema:
    """Database schema manager for the NewsArena SQLite database."""

    def __init__(self, db_path: str = "data/newsarena.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables and indexes."""
        with sqlite3.connect(self.db_path) as conn:
            self._create_sources_table(conn)
            self._create_articles_table(conn)
            self._create_ingestion_logs_table(conn)
            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_sources_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS news_sources (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                feed_url TEXT,
                site_url TEXT,
                logo_url TEXT,
                is_active BOOLEAN NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
            )
        """
        )

    def _create_articles_table(self, conn: sqlite3.Connection) -> None:
        """Articles keyed by canonical URL; conflicting inserts are ignored by the store."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS news_articles (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                slug TEXT NOT NULL,
                summary TEXT NOT NULL,
                content_snippet TEXT,
                image_url TEXT NOT NULL DEFAULT '',
                article_url TEXT NOT NULL,
                original_url TEXT NOT NULL UNIQUE,
                source_name TEXT NOT NULL,
                source_url TEXT,
                category TEXT NOT NULL,
                tags TEXT NOT NULL DEFAULT '[]',
                language TEXT NOT NULL,
                published_at TEXT NOT NULL,
                content_hash TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending_approval',
                view_count INTEGER NOT NULL DEFAULT 0,
                is_featured BOOLEAN NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
            )
        """
        )

    def _create_ingestion_logs_table(self, conn: sqlite3.Connection) -> None:
        # No foreign key: logs outlive their sources
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS ingestion_logs (
                id TEXT PRIMARY KEY,
                source_id TEXT,
                source_name TEXT NOT NULL,
                status TEXT NOT NULL
                    CHECK (status IN ('in_progress', 'success', 'error')),
                articles_fetched INTEGER NOT NULL DEFAULT 0,
                articles_processed INTEGER NOT NULL DEFAULT 0,
                articles_duplicates INTEGER NOT NULL DEFAULT 0,
                error_message TEXT,
                started_at TEXT NOT NULL,
                completed_at TEXT
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_sources_active ON news_sources(is_active)",
            "CREATE INDEX IF NOT EXISTS idx_articles_hash ON news_articles(content_hash)",
            "CREATE INDEX IF NOT EXISTS idx_articles_published ON news_articles(published_at)",
            "CREATE INDEX IF NOT EXISTS idx_articles_source ON news_articles(source_name)",
            "CREATE INDEX IF NOT EXISTS idx_logs_source ON ingestion_logs(source_id)",
            "CREATE INDEX IF NOT EXISTS idx_logs_started ON ingestion_logs(started_at)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def drop_tables(self) -> None:
        """Drop all tables (for testing/reset purposes)."""
        with sqlite3.connect(self.db_path) as conn:
            for table in ("ingestion_logs", "news_articles", "news_sources"):
                conn.execute(f"DROP TABLE IF EXISTS {table}")
            conn.commit()
            logger.info("All database tables dropped")

    def verify_schema(self) -> bool:
        """Verify all expected tables exist."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    "SELECT name FROM sqlite_master "
                    "WHERE type='table' AND name NOT LIKE 'sqlite_%'"
                )
                tables = {row[0] for row in cursor.fetchall()}
        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False

        missing = EXPECTED_TABLES - tables
        if missing:
            logger.error(f"Missing tables: {sorted(missing)}")
            return False

        logger.info("Database schema verification passed")
        return True


def create_tables(db_path: str = "data/newsarena.db") -> None:
    """Convenience function to create database tables."""
    DatabaseSchema(db_path).create_tables()
