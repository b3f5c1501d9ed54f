"""Ordered image attachments per listing.

:class:`MediaCatalog` owns the ``image`` table.  Images are added without a
position (the column default, ``0``) and ordered afterwards with one bulk
:meth:`~MediaCatalog.update_display_order` call.

The reorder is a single set-based ``UPDATE``: the filename sequence is bound
as one JSON array parameter and expanded with SQLite's ``json_each``, whose
``key`` column is the array index.  Readers therefore never observe a
half-renumbered listing.

Everything except :meth:`~MediaCatalog.remove_all` is best-effort.
``remove_all`` runs inside the listing removal cascade and must fail loudly
so the listing row is kept when its images could not be deleted.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import aiosqlite

from propertyfeed.core import events
from propertyfeed.core.logging_config import LogSink
from propertyfeed.core.models import ImageRecord
from propertyfeed.storage.database import ConnectionSource
from propertyfeed.storage.policy import best_effort, critical

__all__ = ["MediaCatalog", "MediaUpdater"]

logger = logging.getLogger(__name__)

_IMAGE_COLUMNS = "systemId, filename, localName, displayOrder"

_REORDER_SQL = """
    UPDATE image
    SET displayOrder = ordering.key
    FROM json_each(?) AS ordering
    WHERE image.systemId = ? AND image.filename = ordering.value
"""


@runtime_checkable
class MediaUpdater(Protocol):
    """Collaborator that discards every media asset of one listing.

    :meth:`~propertyfeed.storage.store.ListingStore.remove` awaits
    :meth:`remove_all` before deleting the listing row; an exception aborts
    the removal.
    """

    async def remove_all(self, system_id: str) -> None: ...


def _to_record(row: aiosqlite.Row) -> ImageRecord:
    return ImageRecord(
        system_id=row["systemId"],
        filename=row["filename"],
        local_name=row["localName"],
        display_order=row["displayOrder"],
    )


class MediaCatalog:
    """Data-access object for the ``image`` table.

    Also the default :class:`MediaUpdater` of a
    :class:`~propertyfeed.storage.store.ListingStore`.

    Args:
        source: Connection handle shared with the owning store.
        log: Sink receiving every failed operation.
    """

    def __init__(self, source: ConnectionSource, log: LogSink) -> None:
        self._source = source
        self._log = log

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    @best_effort("Error retrieving images", fallback=list)
    async def get_images(self, system_id: str) -> list[ImageRecord]:
        """All images of *system_id*, lowest ``display_order`` first."""
        conn = await self._source.acquire()
        cursor = await conn.execute(
            f"SELECT {_IMAGE_COLUMNS} FROM image WHERE systemId = ? "
            "ORDER BY displayOrder ASC, id ASC",
            (system_id,),
        )
        rows = await cursor.fetchall()
        return [_to_record(row) for row in rows]

    @best_effort("Error retrieving main image")
    async def get_main_image(self, system_id: str) -> ImageRecord | None:
        """The image with the lowest ``display_order``, or ``None``."""
        conn = await self._source.acquire()
        cursor = await conn.execute(
            f"SELECT {_IMAGE_COLUMNS} FROM image WHERE systemId = ? "
            "ORDER BY displayOrder ASC, id ASC LIMIT 1",
            (system_id,),
        )
        row = await cursor.fetchone()
        return _to_record(row) if row is not None else None

    # ------------------------------------------------------------------
    # Write helpers
    # ------------------------------------------------------------------

    @best_effort("Error adding image '{filename}'")
    async def add_image(self, system_id: str, filename: str, local_name: str | None) -> None:
        """Attach *filename* to *system_id*; ``display_order`` starts at 0.

        A filename already attached to the listing violates the
        ``(systemId, filename)`` constraint and is reported, not raised.
        """
        conn = await self._source.acquire()
        await conn.execute(
            "INSERT INTO image (systemId, filename, localName) VALUES (?, ?, ?)",
            (system_id, filename, local_name),
        )
        await conn.commit()
        logger.debug(
            "Added image %s to %s",
            filename,
            system_id,
            extra={"system_id": system_id, "event": events.IMAGE_ADDED},
        )

    @best_effort("Error updating display order")
    async def update_display_order(self, system_id: str, filenames: Sequence[str] | str) -> None:
        """Number *filenames* ``0, 1, 2, …`` in sequence order.

        Args:
            system_id: Listing whose images are reordered.
            filenames: Filenames in display order.  A single filename is
                accepted as a one-element sequence.  Images not named keep
                their current position; an empty sequence is a no-op.
        """
        if isinstance(filenames, str):
            filenames = [filenames]
        ordering = [str(name) for name in filenames]
        if not ordering:
            return

        conn = await self._source.acquire()
        cursor = await conn.execute(_REORDER_SQL, (json.dumps(ordering), system_id))
        await conn.commit()
        logger.debug(
            "Reordered %d of %d images for %s",
            cursor.rowcount,
            len(ordering),
            system_id,
            extra={"system_id": system_id, "event": events.DISPLAY_ORDER_UPDATED},
        )

    @best_effort("Error removing image '{filename}'")
    async def remove_image(self, system_id: str, filename: str) -> None:
        """Detach *filename* from *system_id*; no-op if it is not attached."""
        conn = await self._source.acquire()
        await conn.execute(
            "DELETE FROM image WHERE systemId = ? AND filename = ?",
            (system_id, filename),
        )
        await conn.commit()
        logger.debug(
            "Removed image %s from %s",
            filename,
            system_id,
            extra={"system_id": system_id, "event": events.IMAGE_REMOVED},
        )

    @critical("remove_all", "Error removing images of property '{system_id}'")
    async def remove_all(self, system_id: str) -> None:
        """Delete every image row of *system_id*.

        Raises:
            PersistenceError: If the rows could not be deleted.
        """
        conn = await self._source.acquire()
        cursor = await conn.execute("DELETE FROM image WHERE systemId = ?", (system_id,))
        await conn.commit()
        logger.debug(
            "Removed %d images of %s",
            cursor.rowcount,
            system_id,
            extra={"system_id": system_id, "event": events.IMAGES_REMOVED},
        )
