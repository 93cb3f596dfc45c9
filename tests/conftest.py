"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for NewsArena tests.

- File-backed temporary SQLite databases (one per test)
- Settings with retry and inter-source delays disabled
- Sample RSS 2.0 and Atom documents
"""

import pytest
import tempfile
import os
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
_test_dir = Path(tempfile.gettempdir()) / "newsarena_tests"
os.environ["NEWSARENA_DATABASE__PATH"] = str(_test_dir / "newsarena_test.db")
os.environ["NEWSARENA_LOGGING__FILE_PATH"] = ""
os.environ["NEWSARENA_LOGGING__CONSOLE_LOGGING"] = "false"
os.environ["NEWSARENA_INGESTION__SOURCE_DELAY_SECONDS"] = "0"
os.environ["NEWSARENA_INGESTION__RETRY_BASE_DELAY"] = "0"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def temp_db():
    """Temporary database file with the full schema."""
    from newsarena.database.schema import DatabaseSchema

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    DatabaseSchema(db_path).create_tables()

    yield db_path

    # Cleanup
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(db_path + suffix)
        except FileNotFoundError:
            pass


@pytest.fixture
def db_connection(temp_db):
    """Create a database connection manager for testing."""
    from newsarena.database.connection import DatabaseConnection

    connection = DatabaseConnection(temp_db, pool_size=2)
    yield connection

    # Cleanup connections
    connection.close_all_connections()


@pytest.fixture
def table_store(db_connection):
    """SQLite table store over the temporary database."""
    from newsarena.storage.table_store import SQLiteTableStore

    return SQLiteTableStore(db_connection)


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def test_settings(temp_db):
    """Settings pointing at the temporary database, with no delays."""
    from newsarena.config.settings import (
        DatabaseSettings,
        IngestionSettings,
        LoggingSettings,
        NewsArenaSettings,
    )

    return NewsArenaSettings(
        database=DatabaseSettings(path=temp_db, pool_size=2),
        ingestion=IngestionSettings(
            source_delay_seconds=0,
            retry_base_delay=0,
            request_timeout=5,
        ),
        logging=LoggingSettings(file_path=None, console_logging=False),
    )


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_sources(table_store):
    """Two active sources and one inactive source, persisted."""
    from newsarena.storage.source_repository import SourceRepository

    repo = SourceRepository(table_store)
    return [
        repo.create_source(
            name="Tech Daily",
            feed_url="https://techdaily.example.com/rss",
            site_url="https://techdaily.example.com",
        ),
        repo.create_source(
            name="World Report",
            feed_url="https://worldreport.example.com/feed.xml",
            site_url="https://worldreport.example.com",
        ),
        repo.create_source(
            name="Dormant News",
            feed_url="https://dormant.example.com/rss",
            is_active=False,
        ),
    ]


SAMPLE_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/" xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>Tech Daily</title>
    <link>https://techdaily.example.com</link>
    <description>Daily technology news</description>
    <language>en-us</language>
    <item>
      <title>New AI startup raises record funding round</title>
      <link>https://techdaily.example.com/ai-startup?utm_source=rss&amp;id=42</link>
      <description>&lt;p&gt;An artificial intelligence company closed the largest seed round of the year.&lt;/p&gt;</description>
      <pubDate>Mon, 06 Jan 2025 10:30:00 +0100</pubDate>
      <guid>https://techdaily.example.com/ai-startup</guid>
      <dc:creator>Jane Writer</dc:creator>
      <category>Technology</category>
      <category>Funding</category>
      <enclosure url="https://cdn.example.com/images/ai.jpg" type="image/jpeg" length="12345"/>
    </item>
    <item>
      <title>Football season opens with a surprise match result</title>
      <link>https://techdaily.example.com/football-opener</link>
      <description>The opening match of the season ended with an unexpected scoreline.</description>
      <pubDate>Tue, 07 Jan 2025 08:00:00 GMT</pubDate>
      <media:thumbnail url="https://cdn.example.com/images/football.png"/>
    </item>
    <item>
      <title>Item without a link is dropped</title>
      <description>This item has no link element.</description>
    </item>
  </channel>
</rss>
"""

SAMPLE_ATOM = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>World Report</title>
  <subtitle>International news coverage</subtitle>
  <link href="https://worldreport.example.com/"/>
  <updated>2025-01-08T12:00:00Z</updated>
  <id>urn:uuid:60a76c80-d399-11d9-b93C-0003939e0af6</id>
  <entry>
    <title>Parliament passes new government budget</title>
    <link href="https://worldreport.example.com/budget"/>
    <id>urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a</id>
    <updated>2025-01-08T11:00:00Z</updated>
    <summary>Lawmakers approved the spending plan after a long debate in the chamber.</summary>
    <content type="html">&lt;p&gt;Lawmakers approved the spending plan.&lt;/p&gt;&lt;img src="https://cdn.example.com/budget.webp"/&gt;</content>
    <author><name>Sam Reporter</name></author>
  </entry>
</feed>
"""


@pytest.fixture
def sample_rss():
    """RSS 2.0 document: two valid items and one without a link."""
    return SAMPLE_RSS


@pytest.fixture
def sample_atom():
    """Atom document with a single entry."""
    return SAMPLE_ATOM

PARTIAL_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Partial Feed</title>
    <link>https://partial.example.com</link>
    <description>Items with missing required fields</description>
    <item>
      <link>https://partial.example.com/untitled</link>
      <description>This item has no title element.</description>
    </item>
    <item>
      <title>Headline without any link</title>
      <description>This item has no link element.</description>
    </item>
    <item>
      <title>Valid item title here</title>
      <link>https://partial.example.com/valid</link>
      <description>The only complete item in this feed.</description>
    </item>
  </channel>
</rss>
"""


@pytest.fixture
def partial_rss():
    """RSS 2.0 document: one item without a title, one without a link, one valid."""
    return PARTIAL_RSS
