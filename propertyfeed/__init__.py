"""Normalise real-estate feed objects and persist them with their images and removal schedule."""

from propertyfeed.core.exceptions import (
    ConfigError,
    MalformedListingError,
    PersistenceError,
    PropertyFeedError,
)
from propertyfeed.core.models import CanonicalListing, ImageRecord, ListingType, RemovalQueueEntry
from propertyfeed.feed.normalizer import normalize
from propertyfeed.storage.store import ListingStore

__version__ = "0.1.0"

__all__ = [
    "normalize",
    "ListingStore",
    "CanonicalListing",
    "ListingType",
    "ImageRecord",
    "RemovalQueueEntry",
    "PropertyFeedError",
    "ConfigError",
    "MalformedListingError",
    "PersistenceError",
]
