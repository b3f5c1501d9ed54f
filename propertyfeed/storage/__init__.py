"""SQLite-backed listing store with its removal queue and media catalog."""

from propertyfeed.storage.database import (
    DEFAULT_DB_PATH,
    MEMORY_DB,
    ConnectionSource,
    create_schema,
    open_db,
)
from propertyfeed.storage.media import MediaCatalog, MediaUpdater
from propertyfeed.storage.policy import BEST_EFFORT, CRITICAL, best_effort, critical
from propertyfeed.storage.removal_queue import RemovalQueue
from propertyfeed.storage.store import ListingInput, ListingStore

__all__ = [
    "DEFAULT_DB_PATH",
    "MEMORY_DB",
    "open_db",
    "create_schema",
    "ConnectionSource",
    "ListingStore",
    "ListingInput",
    "RemovalQueue",
    "MediaCatalog",
    "MediaUpdater",
    "CRITICAL",
    "BEST_EFFORT",
    "critical",
    "best_effort",
]
