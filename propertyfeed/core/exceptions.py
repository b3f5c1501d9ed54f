"""Propertyfeed exception taxonomy.

Every custom exception inherits from :class:`PropertyFeedError`.  Exceptions
are organised by architectural layer so callers can catch at the right
granularity:

    Layer hierarchy
    ---------------
    PropertyFeedError
    ├── ConfigError
    ├── NormalizationError
    │   └── MalformedListingError
    └── StorageError
        └── PersistenceError

Usage:

    from propertyfeed.core.exceptions import PersistenceError

    raise PersistenceError("create", "ABC-123") from exc
"""

from __future__ import annotations

__all__ = [
    "PropertyFeedError",
    # Config
    "ConfigError",
    # Normalisation
    "NormalizationError",
    "MalformedListingError",
    # Storage
    "StorageError",
    "PersistenceError",
]

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class PropertyFeedError(Exception):
    """Root exception for all propertyfeed errors."""


# ---------------------------------------------------------------------------
# Config layer
# ---------------------------------------------------------------------------


class ConfigError(PropertyFeedError):
    """Raised when the store configuration is invalid or incomplete.

    Examples:
        - Neither a connection handle nor a database path was supplied.
        - An environment variable contains an unrecognised value.
    """


# ---------------------------------------------------------------------------
# Normalisation layer
# ---------------------------------------------------------------------------


class NormalizationError(PropertyFeedError):
    """Base class for errors raised while normalising a raw feed record."""


class MalformedListingError(NormalizationError):
    """Raised when a raw record lacks a field its category requires.

    This is never a recoverable condition: the record is rejected before
    any store interaction takes place.

    Args:
        system_id: The record's ``ObjectSystemID`` if it could be read,
            otherwise ``None``.
        detail: Human-readable description of what is missing or invalid.
    """

    def __init__(self, system_id: str | None, detail: str) -> None:
        self.system_id = system_id
        self.detail = detail
        subject = repr(system_id) if system_id is not None else "<unknown>"
        super().__init__(f"Malformed listing {subject}: {detail}")


# ---------------------------------------------------------------------------
# Storage layer
# ---------------------------------------------------------------------------


class StorageError(PropertyFeedError):
    """Raised when a database or persistence operation fails."""


class PersistenceError(StorageError):
    """Raised when a critical-path store operation did not happen.

    The underlying driver error is always chained as ``__cause__``.

    Args:
        operation: Name of the store operation (``"create"``, ``"remove"``…).
        system_id: Listing identifier the operation targeted, if any.
    """

    def __init__(self, operation: str, system_id: str | None = None) -> None:
        self.operation = operation
        self.system_id = system_id
        target = f" for listing {system_id!r}" if system_id is not None else ""
        super().__init__(f"Store operation {operation!r} failed{target}")
