"""Error classification and connect-time retry for database access.

Repository operations never retry; classification is used to label the
failures they report. Only pool creation retries, with exponential backoff.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorCategory(Enum):
    """Classification of storage errors."""

    TRANSIENT = "transient"  # Network issues, timeouts - safe to retry
    PERMANENT = "permanent"  # Auth errors, bad statements - don't retry
    CONFLICT = "conflict"  # Constraint violations


# Exception type names (asyncpg, aiosqlite, builtins) that are transient
TRANSIENT_ERROR_TYPES = (
    "ConnectionRefusedError",
    "ConnectionResetError",
    "ConnectionError",
    "TimeoutError",
    "OSError",
    "ConnectionDoesNotExistError",
    "InterfaceError",
    "TooManyConnectionsError",
    "CannotConnectNowError",
)

# Exception type names that signal a constraint violation
CONFLICT_ERROR_TYPES = (
    "UniqueViolationError",
    "ForeignKeyViolationError",
    "IntegrityError",
)

TRANSIENT_ERROR_MESSAGES = (
    "connection is closed",
    "connection was closed",
    "timeout",
    "network",
    "connection refused",
    "connection reset",
    "broken pipe",
    "no route to host",
    "pool is closed",
    "database is locked",
)

CONFLICT_ERROR_MESSAGES = (
    "duplicate key",
    "unique constraint",
    "foreign key constraint",
    "violates",
)

PERMANENT_ERROR_MESSAGES = (
    "authentication failed",
    "permission denied",
    "syntax error",
    "does not exist",
    "no such table",
    "no such column",
    "invalid input",
)


def classify_error(exception: BaseException) -> ErrorCategory:
    """Classify an exception raised by a query executor.

    Args:
        exception: The exception to classify

    Returns:
        ErrorCategory for logging and retry decisions
    """
    error_type = type(exception).__name__
    error_msg = str(exception).lower()

    if error_type in CONFLICT_ERROR_TYPES or any(
        indicator in error_msg for indicator in CONFLICT_ERROR_MESSAGES
    ):
        return ErrorCategory.CONFLICT

    if error_type in TRANSIENT_ERROR_TYPES:
        return ErrorCategory.TRANSIENT

    for indicator in TRANSIENT_ERROR_MESSAGES:
        if indicator in error_msg:
            return ErrorCategory.TRANSIENT

    for indicator in PERMANENT_ERROR_MESSAGES:
        if indicator in error_msg:
            return ErrorCategory.PERMANENT

    # Unknown errors are treated as transient, logged so they can be added above
    logger.debug("Unclassified error type %s: %s", error_type, exception)
    return ErrorCategory.TRANSIENT


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_factor: float = 2.0,
    on_retry: Optional[Callable[[int, float, Exception], None]] = None,
) -> T:
    """Execute an async operation with exponential backoff retry.

    Args:
        operation: Async callable to execute
        max_retries: Maximum number of retry attempts (default: 3)
        initial_delay: Initial delay between retries in seconds (default: 1.0)
        max_delay: Maximum delay between retries in seconds (default: 10.0)
        backoff_factor: Multiplier for delay after each retry (default: 2.0)
        on_retry: Optional callback(attempt, delay, error) called before each retry

    Returns:
        Result of the operation

    Raises:
        Exception: The last exception if all retries fail, or immediately
                   for permanent errors and conflicts
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            category = classify_error(e)

            if category in (ErrorCategory.PERMANENT, ErrorCategory.CONFLICT):
                logger.error("Permanent error (no retry): %s", e)
                raise

            if attempt >= max_retries:
                logger.error("Max retries (%d) exceeded: %s", max_retries, e)
                raise

            logger.warning(
                "Transient error (attempt %d/%d), retrying in %.1fs: %s",
                attempt + 1, max_retries + 1, delay, e,
            )

            if on_retry:
                on_retry(attempt + 1, delay, e)

            await asyncio.sleep(delay)
            delay = min(delay * backoff_factor, max_delay)

    raise RuntimeError("Retry loop completed without result or exception")
