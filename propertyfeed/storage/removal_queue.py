"""Deferred-removal queue for listings.

When a listing disappears from the feed it is not deleted at once: a
removal date is recorded in ``remove_queue``, and an external scheduler
later asks :meth:`RemovalQueue.get_ready_for_removal` which listings are due
and calls :meth:`~propertyfeed.storage.store.ListingStore.remove` for each.

The queue never deletes its own entries, and every operation is
best-effort: failures reach the log sink and resolve with a degraded value.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime

from propertyfeed.core import events
from propertyfeed.core.logging_config import LogSink
from propertyfeed.core.models import RemovalQueueEntry
from propertyfeed.storage.database import ConnectionSource
from propertyfeed.storage.policy import best_effort

__all__ = ["RemovalQueue", "coerce_date"]

logger = logging.getLogger(__name__)


def coerce_date(value: date | datetime | str) -> date:
    """Return *value* as a :class:`~datetime.date`.

    Strings are read as ``YYYY-MM-DD``; anything after the tenth character
    (a time part) is ignored.

    Raises:
        ValueError: If a string does not start with a valid ISO date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


class RemovalQueue:
    """Data-access object for the ``remove_queue`` table.

    Args:
        source: Connection handle shared with the owning store.
        log: Sink receiving every failed operation.
    """

    def __init__(self, source: ConnectionSource, log: LogSink) -> None:
        self._source = source
        self._log = log

    @best_effort("Error adding to removal queue for date '{removal_date}'")
    async def queue_removal(self, system_id: str, removal_date: date | datetime | str) -> None:
        """Schedule *system_id* for removal on *removal_date*.

        Repeated calls accumulate entries; nothing is deduplicated.

        Raises:
            ValueError: If *removal_date* is a string that is not a date.
        """
        when = coerce_date(removal_date)
        conn = await self._source.acquire()
        await conn.execute(
            "INSERT INTO remove_queue (systemId, removalDate) VALUES (?, ?)",
            (system_id, when.isoformat()),
        )
        await conn.commit()
        logger.debug(
            "Queued %s for removal on %s",
            system_id,
            when,
            extra={"system_id": system_id, "event": events.REMOVAL_QUEUED},
        )

    @best_effort("Error retrieving removal queue status", fallback=lambda: False)
    async def is_queued(self, system_id: str) -> bool:
        """``True`` if at least one entry exists for *system_id*, whatever its date."""
        conn = await self._source.acquire()
        cursor = await conn.execute(
            "SELECT 1 FROM remove_queue WHERE systemId = ? LIMIT 1",
            (system_id,),
        )
        row = await cursor.fetchone()
        return row is not None

    @best_effort("Error retrieving removal queue", fallback=list, subject=lambda _: None)
    async def get_removal_queue(self) -> list[RemovalQueueEntry]:
        """Every queued entry, oldest first."""
        conn = await self._source.acquire()
        cursor = await conn.execute(
            "SELECT systemId, removalDate FROM remove_queue ORDER BY id"
        )
        rows = await cursor.fetchall()
        return [
            RemovalQueueEntry(system_id=row["systemId"], removal_date=row["removalDate"])
            for row in rows
        ]

    @best_effort("Error retrieving removal queue", fallback=list, subject=lambda _: None)
    async def get_ready_for_removal(self, *, today: date | None = None) -> list[str]:
        """Listing ids whose removal date is on or before *today*.

        Args:
            today: Reference date; defaults to the current UTC date.

        Returns:
            One id per due entry, so an id queued twice may appear twice.
        """
        reference = today or datetime.now(UTC).date()
        conn = await self._source.acquire()
        cursor = await conn.execute(
            "SELECT systemId FROM remove_queue WHERE removalDate <= ? ORDER BY removalDate, id",
            (reference.isoformat(),),
        )
        rows = await cursor.fetchall()
        return [row["systemId"] for row in rows]
