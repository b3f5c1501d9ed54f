"""Structured log event name constants for the listing store.

Every key transition in the store emits a log record with an ``event``
field (passed via ``extra={"event": events.X}``).  In ``LOG_FORMAT=json``
mode, ``event`` is a top-level key of each emitted JSON object.

Usage example::

    import logging
    from propertyfeed.core import events

    logger = logging.getLogger(__name__)

    logger.debug("Created property %s", sid, extra={"event": events.LISTING_CREATED})
"""

from __future__ import annotations

__all__ = [
    # Listing lifecycle
    "LISTING_CREATED",
    "LISTING_UPDATED",
    "LISTING_REMOVED",
    # Removal queue
    "REMOVAL_QUEUED",
    # Media
    "IMAGE_ADDED",
    "IMAGE_REMOVED",
    "IMAGES_REMOVED",
    "DISPLAY_ORDER_UPDATED",
    # Failures
    "STORE_ERROR",
    "STORE_NOTICE",
    "BEST_EFFORT_DEGRADED",
]

# ---------------------------------------------------------------------------
# Listing lifecycle
# ---------------------------------------------------------------------------

#: A canonical listing row was inserted.
LISTING_CREATED: str = "LISTING_CREATED"

#: The mutable fields of a listing row were overwritten.
LISTING_UPDATED: str = "LISTING_UPDATED"

#: A listing row was deleted after its images were cascaded away.
LISTING_REMOVED: str = "LISTING_REMOVED"

# ---------------------------------------------------------------------------
# Removal queue
# ---------------------------------------------------------------------------

#: A deferred removal was appended to ``remove_queue``.
REMOVAL_QUEUED: str = "REMOVAL_QUEUED"

# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------

IMAGE_ADDED: str = "IMAGE_ADDED"
IMAGE_REMOVED: str = "IMAGE_REMOVED"

#: Every image of one listing was deleted (removal cascade).
IMAGES_REMOVED: str = "IMAGES_REMOVED"

DISPLAY_ORDER_UPDATED: str = "DISPLAY_ORDER_UPDATED"

# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

#: Emitted by the log sink for every ERR-level report.
STORE_ERROR: str = "STORE_ERROR"

#: Emitted by the log sink for reports below ERR level.
STORE_NOTICE: str = "STORE_NOTICE"

#: A best-effort operation failed and resolved with its fallback value.
BEST_EFFORT_DEGRADED: str = "BEST_EFFORT_DEGRADED"
