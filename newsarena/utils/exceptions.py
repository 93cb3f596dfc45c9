"""
NewsArena Custom Exceptions
===========================

Exception hierarchy for the NewsArena ingestion pipeline with error codes,
context information, and user-friendly error messages.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_ERROR = "D006"

    # Feed ingestion errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_HTTP_ERROR = "F005"
    FEED_EMPTY = "F007"

    # Content processing errors (P001-P099)
    CONTENT_INVALID = "P001"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_OUT_OF_RANGE = "V003"

    # Resource management errors (R001-R099)
    RESOURCE_NOT_FOUND = "R002"


class NewsArenaError(Exception):
    """Base exception for all NewsArena errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize NewsArena error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {self.message}"
        return self.message


def _passthrough(kwargs: Dict[str, Any], *consumed: str) -> Dict[str, Any]:
    return {k: v for k, v in kwargs.items() if k not in consumed}


class ConfigurationError(NewsArenaError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            user_message=kwargs.get("user_message", f"Configuration error: {message}"),
            **_passthrough(kwargs, "context", "error_code", "user_message"),
        )


class DatabaseError(NewsArenaError):
    """Database-related errors."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        """Initialize database error.

        Args:
            message: Error message
            query: SQL query that caused the error
            **kwargs: Additional arguments for NewsArenaError
        """
        context = kwargs.get("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.DATABASE_CONNECTION),
            context=context,
            user_message=kwargs.get("user_message", "Database operation failed"),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(
                kwargs, "context", "error_code", "user_message", "recoverable"
            ),
        )


class FeedError(NewsArenaError):
    """Feed fetching and parsing errors."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        """Initialize feed error.

        Args:
            message: Error message
            feed_url: Feed URL that caused the error
            **kwargs: Additional arguments for NewsArenaError
        """
        context = kwargs.get("context", {})
        if feed_url:
            context["feed_url"] = feed_url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.FEED_NETWORK_ERROR),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Feed processing failed: {message}"
            ),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(
                kwargs, "context", "error_code", "user_message", "recoverable"
            ),
        )


class FeedFetchError(FeedError):
    """RSS feed fetching errors."""

    pass


class FeedParseError(FeedError):
    """Malformed feed document."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FEED_PARSE_ERROR)
        kwargs.setdefault("recoverable", False)
        super().__init__(message, feed_url=feed_url, **kwargs)


class EmptyFeedError(FeedError):
    """Feed parsed successfully but contained no usable items."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FEED_EMPTY)
        kwargs.setdefault("recoverable", False)
        super().__init__(message, feed_url=feed_url, **kwargs)


class ProcessingError(NewsArenaError):
    """Content processing errors."""

    def __init__(self, message: str, article_url: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if article_url:
            context["article_url"] = article_url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONTENT_INVALID),
            context=context,
            user_message=kwargs.get("user_message", "Article processing failed"),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(
                kwargs, "context", "error_code", "user_message", "recoverable"
            ),
        )


class ContentValidationError(ProcessingError):
    """Normalized article failed validation."""

    def __init__(
        self,
        message: str,
        errors: Optional[list] = None,
        **kwargs,
    ):
        context = kwargs.get("context", {})
        if errors:
            context["validation_errors"] = list(errors)
        kwargs["context"] = context

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.CONTENT_INVALID),
            user_message=kwargs.pop(
                "user_message", f"Content validation failed: {message}"
            ),
            **kwargs,
        )


class ValidationError(NewsArenaError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        """Initialize validation error.

        Args:
            message: Error message
            field_name: Field name that failed validation
            **kwargs: Additional arguments for NewsArenaError
        """
        context = kwargs.get("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Invalid {field_name or 'input'}: {message}"
            ),
            recoverable=kwargs.get("recoverable", False),
            **_passthrough(
                kwargs, "context", "error_code", "user_message", "recoverable"
            ),
        )


class SourceNotFoundError(NewsArenaError):
    """Requested news source does not exist."""

    def __init__(self, source_id: str):
        super().__init__(
            message="Source not found",
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
            context={"source_id": source_id},
            user_message=f"News source {source_id} not found",
            recoverable=False,
        )


# Exception handling utilities


def get_error_message(exception: BaseException) -> str:
    """Plain error message without the error code prefix."""
    if isinstance(exception, NewsArenaError):
        return exception.message
    return str(exception) or exception.__class__.__name__


def get_user_friendly_message(exception: Exception) -> str:
    """Get user-friendly error message for any exception."""
    if isinstance(exception, NewsArenaError):
        return exception.user_message

    return "An unexpected error occurred. Please try again later."
