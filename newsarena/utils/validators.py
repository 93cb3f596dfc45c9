"""
NewsArena Input Validators
==========================

URL and source input validation used by the fetcher, the ingestion service
and the admin CLI.
"""

from urllib.parse import urlparse
from typing import Optional

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation utilities."""

    ALLOWED_SCHEMES = {"http", "https"}

    @classmethod
    def is_http_url(cls, url: Optional[str]) -> bool:
        """Check whether a value is an absolute http(s) URL with a host."""
        if not url or not isinstance(url, str):
            return False
        try:
            parsed = urlparse(url.strip())
        except ValueError:
            return False
        return parsed.scheme.lower() in cls.ALLOWED_SCHEMES and bool(parsed.netloc)

    @classmethod
    def validate_feed_url(cls, url: Optional[str]) -> str:
        """Validate an RSS feed URL.

        Args:
            url: URL to validate

        Returns:
            The stripped URL

        Raises:
            ValidationError: If the URL is missing or not http(s)
        """
        if not url or not isinstance(url, str) or not url.strip():
            raise ValidationError(
                "RSS URL is missing",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="feed_url",
            )

        url = url.strip()
        if not cls.is_http_url(url):
            raise ValidationError(
                "Invalid RSS URL format",
                error_code=ErrorCode.FEED_INVALID_URL,
                field_name="feed_url",
                context={"feed_url": url},
            )

        return url


class SourceValidator:
    """Validation for admin-supplied news source fields."""

    MAX_NAME_LENGTH = 200

    @classmethod
    def validate_name(cls, name: Optional[str]) -> str:
        if not name or not name.strip():
            raise ValidationError(
                "Source name is required",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="name",
            )
        name = " ".join(name.split())
        if len(name) > cls.MAX_NAME_LENGTH:
            raise ValidationError(
                f"Source name must be at most {cls.MAX_NAME_LENGTH} characters",
                error_code=ErrorCode.VALIDATION_OUT_OF_RANGE,
                field_name="name",
            )
        return name

    @classmethod
    def validate_optional_url(
        cls, url: Optional[str], field_name: str
    ) -> Optional[str]:
        if url is None or not url.strip():
            return None
        if not URLValidator.is_http_url(url):
            raise ValidationError(
                f"{field_name} must be an http(s) URL",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name=field_name,
            )
        return url.strip()
