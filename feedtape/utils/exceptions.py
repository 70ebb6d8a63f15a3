"""
FeedTape Custom Exceptions
=========================

Exception hierarchy for the FeedTape pipeline with error codes, context
information, and user-friendly messages for the presentation layer.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"

    # Feed ingestion errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_HTTP_ERROR = "F005"
    FEED_DIRECTORY_ERROR = "F006"

    # Content processing errors (P001-P099)
    CONTENT_INVALID = "P001"
    CONTENT_EXTRACTION_FAILED = "P002"

    # Pipeline state errors (S001-S099)
    STATE_INVALID_TRANSITION = "S001"
    STATE_UNKNOWN_FEED = "S002"

    # Generic
    UNEXPECTED = "X001"


class FeedTapeError(Exception):
    """Base exception for all FeedTape errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize FeedTape error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether a retry may succeed
        """
        super().__init__(message)
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
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


def _split_kwargs(kwargs: Dict[str, Any], *consumed: str) -> Dict[str, Any]:
    return {k: v for k, v in kwargs.items() if k not in consumed}


class ConfigurationError(FeedTapeError):
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
            **_split_kwargs(kwargs, "context", "error_code", "user_message"),
        )


class FeedError(FeedTapeError):
    """Feed ingestion and parsing errors.

    Feed errors are scoped to a single feed run and surface through
    ``FeedState.error``; they are recoverable through a manual retry.
    """

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
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
            **_split_kwargs(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class FeedFetchError(FeedError):
    """Transport-level or HTTP failure while retrieving a feed document."""

    pass


class FeedTimeoutError(FeedFetchError):
    """Feed document was not retrieved within the fetch ceiling."""

    def __init__(
        self,
        message: str,
        feed_url: Optional[str] = None,
        timeout: Optional[float] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if timeout is not None:
            context["timeout_seconds"] = timeout
        kwargs.setdefault("error_code", ErrorCode.FEED_FETCH_TIMEOUT)
        kwargs.setdefault("user_message", "Feed took too long to respond")
        super().__init__(message, feed_url=feed_url, context=context, **kwargs)


class FeedParseError(FeedError):
    """Feed document could not be parsed as RSS or Atom."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FEED_PARSE_ERROR)
        kwargs.setdefault("user_message", "Feed document is not a valid RSS or Atom feed")
        super().__init__(message, feed_url=feed_url, **kwargs)


class FeedDirectoryError(FeedError):
    """The feed directory collaborator could not list feeds."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FEED_DIRECTORY_ERROR)
        kwargs.setdefault("user_message", "Could not load your feeds")
        super().__init__(message, **kwargs)


class ProcessingError(FeedTapeError):
    """Entry content processing errors."""

    def __init__(self, message: str, entry_id: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if entry_id:
            context["entry_id"] = entry_id

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONTENT_INVALID),
            context=context,
            user_message=kwargs.get("user_message", "Entry processing failed"),
            recoverable=kwargs.get("recoverable", False),
            **_split_kwargs(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class ContentRejectedError(ProcessingError):
    """Cleaner produced no usable text for an entry."""

    pass


class FeedStateError(FeedTapeError):
    """Illegal feed lifecycle transition."""

    def __init__(self, message: str, feed_id: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if feed_id:
            context["feed_id"] = feed_id

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.STATE_INVALID_TRANSITION),
            context=context,
            user_message=kwargs.get("user_message", "Feed state update rejected"),
            **_split_kwargs(kwargs, "context", "error_code", "user_message"),
        )


# Exception handling utilities


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> FeedTapeError:
    """Convert generic exceptions to FeedTape exceptions with proper logging.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information

    Returns:
        FeedTape exception with proper categorization
    """
    context = context or {}
    context["operation"] = operation
    context["original_exception_type"] = type(exception).__name__

    if isinstance(exception, FeedTapeError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    if isinstance(exception, TimeoutError):
        error = FeedTimeoutError(
            f"Timed out during {operation}: {exception}", context=context
        )
    elif isinstance(exception, ConnectionError):
        error = FeedFetchError(
            f"Network error during {operation}: {exception}",
            error_code=ErrorCode.FEED_NETWORK_ERROR,
            context=context,
            user_message="Network connection failed",
        )
    else:
        error = FeedTapeError(
            message=f"Unexpected error during {operation}: {exception}",
            error_code=ErrorCode.UNEXPECTED,
            context=context,
            user_message="An unexpected error occurred",
            recoverable=True,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def get_user_friendly_message(exception: Exception) -> str:
    """Get user-friendly error message for any exception."""
    if isinstance(exception, FeedTapeError):
        return exception.user_message
    return "An unexpected error occurred. Please try again later."
