"""Core domain models, settings, logging configuration, and exceptions."""

from propertyfeed.core.exceptions import (
    ConfigError,
    MalformedListingError,
    NormalizationError,
    PersistenceError,
    PropertyFeedError,
    StorageError,
)
from propertyfeed.core.logging_config import (
    JsonFormatter,
    LogSink,
    StdlibLogSink,
    configure_logging,
    configure_logging_from_settings,
)
from propertyfeed.core.models import (
    CanonicalListing,
    ImageRecord,
    ListingType,
    RemovalQueueEntry,
)
from propertyfeed.core.settings import Settings

__all__ = [
    # Logging
    "configure_logging",
    "configure_logging_from_settings",
    "JsonFormatter",
    "LogSink",
    "StdlibLogSink",
    # Domain models
    "CanonicalListing",
    "ListingType",
    "RemovalQueueEntry",
    "ImageRecord",
    # Settings
    "Settings",
    # Exceptions
    "PropertyFeedError",
    "ConfigError",
    "NormalizationError",
    "MalformedListingError",
    "StorageError",
    "PersistenceError",
]
