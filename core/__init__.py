"""
Core utilities and configuration for the collection sync service.

This package provides foundational components used throughout the sync engine:

Modules:
    config: Application configuration and environment variable management
    database: Explicitly constructed database handle with open/close lifecycle
    exceptions: Structured exception hierarchy (kind + retryable flag)
    logging: Logging configuration
    retry: Retry policy engine with backoff, jitter and Retry-After handling

Usage:
    from core.config import settings
    from core.database import Database
    from core.exceptions import RateLimitError, PersistenceError
    from core.logging import setup_logging
    from core.retry import RetryPolicy, with_retry

Example:
    setup_logging()

    database = Database(settings.DATABASE_URL).open()
    async with database.session() as session:
        ...
    await database.close()
"""

__all__ = [
    "settings",
    "Database",
    "setup_logging",
    "RetryPolicy",
    "with_retry",
    # Exceptions
    "SyncError",
    "RetryableError",
    "NonRetryableError",
    "ConfigurationError",
    "ExtractionError",
    "CatalogAPIError",
    "AuthenticationError",
    "HandshakeTicketError",
    "ResourceNotFoundError",
    "RateLimitError",
    "TransientError",
    "ServerError",
    "DataFormatError",
    "RetriesExhaustedError",
    "PersistenceError",
    "SyncInProgressError",
]
