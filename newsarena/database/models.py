"""
NewsArena Data Models
=====================

Pydantic models for the stored entities (sources, articles, ingestion logs)
and dataclasses for ingestion run results.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
from pydantic import BaseModel, Field, field_validator
import json
import uuid


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ArticleStatus(str, Enum):
    """Editorial status of a stored article."""
    PENDING_APPROVAL = "pending_approval"
    PUBLISHED = "published"
    REJECTED = "rejected"


class IngestionStatus(str, Enum):
    """Lifecycle of an ingestion log entry."""
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    ERROR = "error"


class NewsSource(BaseModel):
    """Admin-managed RSS news source."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Source ID")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    feed_url: Optional[str] = Field(default=None, description="RSS/Atom feed URL")
    site_url: Optional[str] = Field(default=None, description="Publisher homepage")
    logo_url: Optional[str] = Field(default=None, description="Publisher logo")
    is_active: bool = Field(default=True, description="Whether the source is ingested")
    created_at: Optional[datetime] = Field(default_factory=utc_now)

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "NewsSource":
        return cls(**dict(row))

    def __str__(self) -> str:
        return f"NewsSource({self.name}:{self.id})"


class CanonicalArticle(BaseModel):
    """Normalized article ready for persistence.

    Length rules (title, summary) are checked by the normalizer's validation
    step rather than by the model, so invalid articles can be reported
    instead of raising.
    """
    title: str = Field(..., description="Cleaned article title")
    slug: str = Field(..., description="URL-safe slug derived from the title")
    summary: str = Field(..., description="Clean-text summary, truncated at a word boundary")
    content_snippet: Optional[str] = Field(default=None, description="Longer clean-text excerpt")
    image_url: str = Field(default="", description="Extracted image URL or empty string")
    article_url: str = Field(..., description="Article URL with tracking parameters removed")
    canonical_url: str = Field(..., description="scheme://host/path of article_url")
    source_name: str = Field(..., description="Name of the originating source")
    source_url: Optional[str] = Field(default=None, description="Homepage of the originating source")
    category: str = Field(..., description="Inferred category")
    tags: List[str] = Field(default_factory=list, max_length=10, description="Lowercased tags")
    language: str = Field(..., description="Detected language code")
    published_at: datetime = Field(..., description="Publication time in UTC")
    content_hash: str = Field(..., description="sha256 of cleaned URL and title")
    status: ArticleStatus = Field(default=ArticleStatus.PENDING_APPROVAL)

    @field_validator("published_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Store every timestamp as timezone-aware UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    def to_db_row(self) -> Dict[str, Any]:
        """Row for the news_articles table, keyed on original_url."""
        return {
            "id": str(uuid.uuid4()),
            "title": self.title,
            "slug": self.slug,
            "summary": self.summary,
            "content_snippet": self.content_snippet,
            "image_url": self.image_url,
            "article_url": self.article_url,
            "original_url": self.canonical_url,
            "source_name": self.source_name,
            "source_url": self.source_url,
            "category": self.category,
            "tags": list(self.tags),
            "language": self.language,
            "published_at": self.published_at,
            "content_hash": self.content_hash,
            "status": self.status.value,
            "view_count": 0,
            "is_featured": False,
        }

    def __str__(self) -> str:
        return f"CanonicalArticle({self.title[:50]})"


class StoredArticle(BaseModel):
    """Article as read back from news_articles."""
    id: str
    title: str
    slug: str
    summary: str
    image_url: str = ""
    article_url: str
    original_url: str
    source_name: str
    category: str
    tags: List[str] = Field(default_factory=list)
    language: str
    published_at: datetime
    content_hash: str
    status: ArticleStatus = ArticleStatus.PENDING_APPROVAL
    view_count: int = 0
    is_featured: bool = False

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "StoredArticle":
        data = dict(row)
        if isinstance(data.get("tags"), str):
            data["tags"] = json.loads(data["tags"])
        return cls(**{k: v for k, v in data.items() if k in cls.model_fields})


class IngestionLog(BaseModel):
    """Audit record of one per-source ingestion run."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source_id: Optional[str] = Field(default=None, description="Source ID, if known")
    source_name: str = Field(..., description="Source display name")
    status: IngestionStatus = Field(default=IngestionStatus.IN_PROGRESS)
    articles_fetched: int = Field(default=0, ge=0)
    articles_processed: int = Field(default=0, ge=0)
    articles_duplicates: int = Field(default=0, ge=0)
    error_message: Optional[str] = Field(default=None)
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = Field(default=None)

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "IngestionLog":
        return cls(**dict(row))

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def __str__(self) -> str:
        return f"IngestionLog({self.source_name}:{self.status.value})"


@dataclass
class IngestionCounts:
    """Counters reported when an ingestion log entry is finished."""
    articles_fetched: int = 0
    articles_processed: int = 0
    articles_duplicates: int = 0


@dataclass
class IngestionResult:
    """Outcome of ingesting a single source."""
    success: bool
    source_id: Optional[str]
    source_name: str
    articles_fetched: int = 0
    articles_processed: int = 0
    articles_duplicates: int = 0
    # Number of rows sent to the conflict-ignoring upsert, not rows inserted
    articles_stored: int = 0
    errors: List[str] = field(default_factory=list)
    log_id: Optional[str] = None

    @property
    def counts(self) -> IngestionCounts:
        return IngestionCounts(
            articles_fetched=self.articles_fetched,
            articles_processed=self.articles_processed,
            articles_duplicates=self.articles_duplicates,
        )


@dataclass
class IngestionSummary:
    """Aggregate over the results of a multi-source run."""
    total_sources: int = 0
    successful: int = 0
    failed: int = 0
    total_fetched: int = 0
    total_stored: int = 0
    total_duplicates: int = 0

    @classmethod
    def from_results(cls, results: List[IngestionResult]) -> "IngestionSummary":
        return cls(
            total_sources=len(results),
            successful=sum(1 for r in results if r.success),
            failed=sum(1 for r in results if not r.success),
            total_fetched=sum(r.articles_fetched for r in results),
            total_stored=sum(r.articles_stored for r in results),
            total_duplicates=sum(r.articles_duplicates for r in results),
        )
