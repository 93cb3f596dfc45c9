"""
Content Normalizer
==================

Maps RawItem records onto the canonical article schema.

This module provides:
- HTML-to-text cleaning and word-boundary truncation
- Slug, tracking-free URL and canonical URL derivation
- Image extraction from enclosures, media elements and inline HTML
- Keyword-table category inference, tag and language detection
- Deterministic content hashing and article validation
"""

import hashlib
import re
import string
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from ..config.settings import NewsArenaSettings, get_settings
from ..database.models import CanonicalArticle
from ..utils.exceptions import ContentValidationError
from ..utils.logging import get_logger_for_component
from .feed_parser import RawItem

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "politics": ["election", "government", "president", "parliament", "minister", "political"],
    "technology": ["tech", "ai", "software", "startup", "crypto", "blockchain", "digital"],
    "business": ["business", "economy", "market", "stock", "finance", "trade", "company"],
    "sports": ["sport", "football", "basketball", "soccer", "tennis", "olympics", "match"],
    "entertainment": ["entertainment", "movie", "music", "celebrity", "film", "concert", "album"],
    "health": ["health", "medical", "vaccine", "disease", "doctor", "hospital", "wellness"],
    "science": ["science", "research", "study", "discovery", "scientist", "experiment"],
    "world": ["world", "international", "global", "country", "nation", "foreign"],
}

_LANGUAGE_SCRIPTS = [
    ("ru", re.compile(r"[\u0400-\u04FF]")),
    ("ar", re.compile(r"[\u0600-\u06FF]")),
    ("zh", re.compile(r"[\u4E00-\u9FFF]")),
    ("ja", re.compile(r"[\u3040-\u309F\u30A0-\u30FF]")),
    ("ko", re.compile(r"[\uAC00-\uD7AF]")),
]


@dataclass
class NormalizationOptions:
    """Per-source overrides for normalization defaults."""

    default_category: str = "general"
    default_language: str = "en"
    max_summary_length: int = 300
    max_snippet_length: int = 500
    max_tags: int = 10

    @classmethod
    def from_settings(cls, settings: NewsArenaSettings) -> "NormalizationOptions":
        ingestion = settings.ingestion
        return cls(
            default_category=ingestion.default_category,
            default_language=ingestion.default_language,
            max_summary_length=ingestion.max_summary_length,
            max_snippet_length=ingestion.max_snippet_length,
            max_tags=ingestion.max_tags,
        )


class ContentNormalizer:
    """Pure RawItem -> CanonicalArticle transformation."""

    WHITESPACE_PATTERN = re.compile(r"\s+")
    TAG_PATTERN = re.compile(r"<[a-zA-Z/!][^>]*>")
    SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
    IMAGE_EXTENSION_PATTERN = re.compile(
        r"\.(?:jpe?g|png|gif|webp|svg)(?:$|[?#&/])", re.IGNORECASE
    )
    NIGERIAN_ENGLISH_PATTERN = re.compile(
        r"\b(?:naira|lagos|abuja|nigeria|buhari)\b", re.IGNORECASE
    )

    MAX_SLUG_LENGTH = 100
    MAX_TITLE_TAGS = 5
    MIN_TAG_WORD_LENGTH = 5
    MIN_TITLE_LENGTH = 10
    MIN_SUMMARY_LENGTH = 20

    def __init__(self, options: Optional[NormalizationOptions] = None):
        self.options = options or NormalizationOptions.from_settings(get_settings())
        self.logger = get_logger_for_component("content_normalizer")
        self.parser = "html.parser"

    # Batch processing

    def process_items(
        self,
        items: List[RawItem],
        source_name: str,
        source_url: Optional[str] = None,
        options: Optional[NormalizationOptions] = None,
    ) -> List[CanonicalArticle]:
        """Normalize and validate a batch; invalid or failing items are dropped."""
        processed = []

        for item in items:
            try:
                article = self.process_item(item, source_name, source_url, options)
                self.ensure_valid(article)
            except ContentValidationError as e:
                self.logger.info(
                    f"Dropping invalid article '{item.title[:60]}': {e.message}",
                    extra={"source_name": source_name, "article_url": item.link},
                )
                continue
            except Exception as e:
                self.logger.warning(
                    f"Failed to normalize item {item.link}: {e}",
                    extra={"source_name": source_name},
                )
                continue

            processed.append(article)

        return processed

    def process_item(
        self,
        item: RawItem,
        source_name: str,
        source_url: Optional[str] = None,
        options: Optional[NormalizationOptions] = None,
    ) -> CanonicalArticle:
        """Normalize a single raw item."""
        options = options or self.options

        title = self.clean_text(item.title)
        article_url = self.clean_url(item.link)

        return CanonicalArticle(
            title=title,
            slug=self.generate_slug(title),
            summary=self.extract_summary(item, options.max_summary_length),
            content_snippet=self.extract_content_snippet(item, options.max_snippet_length),
            image_url=self.extract_image_url(item),
            article_url=article_url,
            canonical_url=self.create_canonical_url(article_url),
            source_name=source_name,
            source_url=source_url,
            category=self.infer_category(item, options.default_category),
            tags=self.extract_tags(item, options.max_tags),
            language=self.detect_language(item, options.default_language),
            published_at=self.normalize_date(item),
            content_hash=self.generate_content_hash(article_url, title),
        )

    # Text

    def clean_text(self, text: Optional[str]) -> str:
        """Strip HTML tags and collapse whitespace.

        Plain text (no markup) is returned without entity decoding.
        """
        if not text:
            return ""

        if self.TAG_PATTERN.search(text):
            text = BeautifulSoup(text, self.parser).get_text()

        return self.WHITESPACE_PATTERN.sub(" ", text).strip()

    @staticmethod
    def truncate(text: str, max_length: int) -> str:
        """Cut at the last word boundary at or before ``max_length`` and add '...'.

        A single token longer than the limit is hard-cut.
        """
        if len(text) <= max_length:
            return text

        cut = text[:max_length]
        if not text[max_length].isspace():
            last_space = cut.rfind(" ")
            if last_space > 0:
                cut = cut[:last_space]

        return cut.rstrip() + "..."

    def extract_summary(self, item: RawItem, max_length: Optional[int] = None) -> str:
        max_length = max_length or self.options.max_summary_length

        for candidate in (item.description, item.content_snippet, item.content, item.title):
            cleaned = self.clean_text(candidate)
            if cleaned:
                return self.truncate(cleaned, max_length)
        return ""

    def extract_content_snippet(
        self, item: RawItem, max_length: Optional[int] = None
    ) -> Optional[str]:
        source = item.content or item.description
        if not source:
            return None

        cleaned = self.clean_text(source)
        if not cleaned:
            return None
        return self.truncate(cleaned, max_length or self.options.max_snippet_length)

    def generate_slug(self, title: str) -> str:
        slug = self.SLUG_PATTERN.sub("-", title.lower()).strip("-")
        return slug[: self.MAX_SLUG_LENGTH].rstrip("-")

    # Images

    def is_image_url(self, url: Optional[str]) -> bool:
        return bool(url) and bool(self.IMAGE_EXTENSION_PATTERN.search(url))

    def extract_image_url(self, item: RawItem) -> str:
        """First image found in priority order, or an empty string."""
        if item.enclosure and self.is_image_url(item.enclosure.url):
            return item.enclosure.url

        for media in item.media_content:
            if self.is_image_url(media.url):
                return media.url

        for thumbnail in item.media_thumbnails:
            if self.is_image_url(thumbnail.url):
                return thumbnail.url

        if item.content:
            soup = BeautifulSoup(item.content, self.parser)

            og_image = soup.find("meta", attrs={"property": "og:image"})
            if og_image and og_image.get("content"):
                return og_image["content"].strip()

            image = self._first_img_src(soup)
            if image:
                return image

        if item.description:
            image = self._first_img_src(BeautifulSoup(item.description, self.parser))
            if image:
                return image

        return ""

    def _first_img_src(self, soup: BeautifulSoup) -> Optional[str]:
        img = soup.find("img", src=True)
        if img is None:
            return None
        src = img["src"].strip()
        return src if self.is_image_url(src) else None

    # URLs

    @staticmethod
    def clean_url(url: str) -> str:
        """Remove utm_* tracking parameters; non-absolute input is returned unchanged."""
        url = (url or "").strip()
        try:
            parts = urlsplit(url)
        except ValueError:
            return url

        if not parts.scheme or not parts.netloc:
            return url

        query = parse_qsl(parts.query, keep_blank_values=True)
        kept = [(k, v) for k, v in query if not k.lower().startswith("utm_")]
        if len(kept) == len(query):
            return url

        return urlunsplit(parts._replace(query=urlencode(kept)))

    @staticmethod
    def create_canonical_url(url: str) -> str:
        """scheme://host[:port]/path, without userinfo, query or fragment."""
        try:
            parts = urlsplit(url)
            hostname = parts.hostname
            port = parts.port
        except ValueError:
            return url

        if not parts.scheme or not hostname:
            return url

        host = f"{hostname}:{port}" if port else hostname
        return f"{parts.scheme.lower()}://{host}{parts.path or '/'}"

    # Classification

    def infer_category(self, item: RawItem, default_category: Optional[str] = None) -> str:
        if item.categories:
            first = self.clean_text(item.categories[0])
            if first:
                return self._match_category(first) or first.lower()

        text = f"{self.clean_text(item.title)} {self.clean_text(item.description)}"
        return self._match_category(text) or default_category or self.options.default_category

    @staticmethod
    def _match_category(text: str) -> Optional[str]:
        """Plain substring match: "biotech" and "esports" both count."""
        text = text.lower()
        for category, keywords in CATEGORY_KEYWORDS.items():
            if any(keyword in text for keyword in keywords):
                return category
        return None

    def extract_tags(self, item: RawItem, max_tags: Optional[int] = None) -> List[str]:
        tags: "OrderedDict[str, None]" = OrderedDict()

        for category in item.categories:
            tag = self.clean_text(category).lower()
            if tag:
                tags[tag] = None

        title_words = [
            word.strip(string.punctuation)
            for word in self.clean_text(item.title).lower().split()
        ]
        long_words = [w for w in title_words if len(w) >= self.MIN_TAG_WORD_LENGTH]
        for word in long_words[: self.MAX_TITLE_TAGS]:
            tags[word] = None

        return list(tags)[: max_tags or self.options.max_tags]

    def detect_language(self, item: RawItem, default_language: Optional[str] = None) -> str:
        text = f"{item.title} {item.description or ''}"

        if self.NIGERIAN_ENGLISH_PATTERN.search(text):
            return "en-NG"

        for language, pattern in _LANGUAGE_SCRIPTS:
            if pattern.search(text):
                return language

        return default_language or self.options.default_language

    # Dates and hashing

    def normalize_date(self, item: RawItem) -> datetime:
        """Publication time in UTC; now when missing or unparsable."""
        for value in (item.iso_date, item.pub_date):
            parsed = self._parse_date(value)
            if parsed is not None:
                return parsed
        return datetime.now(timezone.utc)

    @staticmethod
    def _parse_date(value: Optional[str]) -> Optional[datetime]:
        if not value or not value.strip():
            return None
        value = value.strip()

        parsed = None
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = parsedate_to_datetime(value)
            except (TypeError, ValueError, IndexError):
                return None

        if parsed is None:
            return None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    @staticmethod
    def generate_content_hash(url: str, title: str) -> str:
        return hashlib.sha256(f"{url}::{title}".encode("utf-8")).hexdigest()

    def validate_article(self, article: CanonicalArticle) -> Tuple[bool, List[str]]:
        """Check minimum field requirements.

        Returns:
            (is_valid, list of error messages)
        """
        errors = []

        if not article.title or len(article.title) < self.MIN_TITLE_LENGTH:
            errors.append(f"Title must be at least {self.MIN_TITLE_LENGTH} characters")
        if not article.summary or len(article.summary) < self.MIN_SUMMARY_LENGTH:
            errors.append(f"Summary must be at least {self.MIN_SUMMARY_LENGTH} characters")
        if not article.article_url:
            errors.append("Article URL is required")
        if not article.source_name:
            errors.append("Source name is required")
        if not article.published_at:
            errors.append("Published date is required")

        return len(errors) == 0, errors

    def ensure_valid(self, article: CanonicalArticle) -> CanonicalArticle:
        """Raise ContentValidationError when ``validate_article`` fails."""
        is_valid, errors = self.validate_article(article)
        if not is_valid:
            raise ContentValidationError(
                "; ".join(errors), errors=errors, article_url=article.article_url
            )
        return article


def normalize_items(
    items: List[RawItem], source_name: str, source_url: Optional[str] = None
) -> List[CanonicalArticle]:
    """Convenience function to normalize a batch with default options."""
    return ContentNormalizer().process_items(items, source_name, source_url)
