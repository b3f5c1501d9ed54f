"""Listing store: create / read / update / remove canonical listings.

Provides :class:`ListingStore`, the single entry point for persisting feed
objects.  It owns the connection handle and composes the two
sub-components that share it:

* :class:`~propertyfeed.storage.removal_queue.RemovalQueue`: deferred
  removals;
* :class:`~propertyfeed.storage.media.MediaCatalog`: ordered images.

The general ingestion contract is:

1. **Normalise**: :meth:`create` / :meth:`update` accept a raw feed mapping
   and normalise it first; a malformed record raises
   :class:`~propertyfeed.core.exceptions.MalformedListingError` before any
   query runs.
2. **Persist**: :meth:`create` for new ``systemId`` values, :meth:`update`
   for known ones (check with :meth:`get_ids` / :meth:`get`).
3. **Retire**: :meth:`queue_removal` when the object leaves the feed; an
   external scheduler polls :meth:`get_ready_for_removal` and calls
   :meth:`remove`.

Listing operations are critical (failures raise
:class:`~propertyfeed.core.exceptions.PersistenceError`); queue and media
operations are best-effort.  See :mod:`propertyfeed.storage.policy`.

Typical usage::

    from propertyfeed.storage import ListingStore

    async with ListingStore(database_path="data/propertyfeed.db") as store:
        if raw["ObjectSystemID"] in await store.get_ids():
            await store.update(raw["ObjectSystemID"], raw)
        else:
            await store.create(raw)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from pathlib import Path
from types import TracebackType
from typing import Any

import aiosqlite

from propertyfeed.core import events
from propertyfeed.core.exceptions import StorageError
from propertyfeed.core.logging_config import LogSink, StdlibLogSink
from propertyfeed.core.models import CanonicalListing, ImageRecord, RemovalQueueEntry
from propertyfeed.core.settings import Settings
from propertyfeed.feed.normalizer import normalize
from propertyfeed.storage.database import ConnectionSource
from propertyfeed.storage.media import MediaCatalog, MediaUpdater
from propertyfeed.storage.policy import critical
from propertyfeed.storage.removal_queue import RemovalQueue

__all__ = ["ListingStore", "ListingInput"]

logger = logging.getLogger(__name__)

#: What :meth:`ListingStore.create` and :meth:`ListingStore.update` accept.
ListingInput = Mapping[str, Any] | CanonicalListing

#: ``property`` column ↔ :class:`CanonicalListing` attribute, in insert order.
#: ``systemId`` is bound separately: it is the key and never updated.
_MUTABLE_COLUMNS: tuple[tuple[str, str], ...] = (
    ("type", "type"),
    ("propertyType", "property_type"),
    ("street", "street"),
    ("number", "number"),
    ("numberAddition", "number_addition"),
    ("postcode", "postcode"),
    ("city", "city"),
    ("country", "country"),
    ("rent", "rent"),
    ("buy", "buy"),
    ("rentPrice", "rent_price"),
    ("buyPrice", "buy_price"),
    ("objectCode", "object_code"),
    ("lastChanged", "last_changed"),
    ("raw", "raw"),
    ("objectStatus", "object_status"),
    ("rentPrefix", "rent_prefix"),
    ("buyPrefix", "buy_prefix"),
    ("rentSuffix", "rent_suffix"),
    ("buySuffix", "buy_suffix"),
)

_INSERT_SQL = (
    "INSERT INTO property ("
    + ", ".join(column for column, _ in _MUTABLE_COLUMNS)
    + ", systemId) VALUES ("
    + ", ".join("?" * (len(_MUTABLE_COLUMNS) + 1))
    + ")"
)

_UPDATE_SQL = (
    "UPDATE property SET "
    + ", ".join(f"{column} = ?" for column, _ in _MUTABLE_COLUMNS)
    + " WHERE systemId = ?"
)


def _subject_of(listing: Any) -> str | None:
    """Best available listing id for log lines, from raw or canonical input."""
    if isinstance(listing, CanonicalListing):
        return listing.system_id
    if isinstance(listing, Mapping) and listing.get("ObjectSystemID") is not None:
        return str(listing["ObjectSystemID"])
    return None


def _as_canonical(listing: ListingInput) -> CanonicalListing:
    if isinstance(listing, CanonicalListing):
        return listing
    return normalize(listing)


def _column_values(listing: CanonicalListing) -> list[Any]:
    values: list[Any] = []
    for _, attribute in _MUTABLE_COLUMNS:
        value = getattr(listing, attribute)
        if isinstance(value, date):
            value = value.isoformat()
        elif isinstance(value, bool):
            value = int(value)
        elif attribute == "type":
            value = str(value)
        values.append(value)
    return values


class ListingStore:
    """Persistence and lifecycle for canonical listings.

    Args:
        conn: Pre-built :class:`aiosqlite.Connection`.  The store never
            closes a connection it did not open.
        database_path: Database to open lazily when *conn* is not given.
        log: Sink receiving every failed operation.  Defaults to a
            :class:`~propertyfeed.core.logging_config.StdlibLogSink`.
        media_updater: Collaborator whose ``remove_all`` runs before a
            listing row is deleted.  Defaults to :attr:`media`.

    Raises:
        ConfigError: If neither *conn* nor *database_path* is supplied.
    """

    def __init__(
        self,
        conn: aiosqlite.Connection | None = None,
        *,
        database_path: Path | str | None = None,
        log: LogSink | None = None,
        media_updater: MediaUpdater | None = None,
    ) -> None:
        self._source = ConnectionSource(conn, database_path)
        self._log: LogSink = log or StdlibLogSink()
        self.removal_queue = RemovalQueue(self._source, self._log)
        self.media = MediaCatalog(self._source, self._log)
        self._media_updater: MediaUpdater = media_updater or self.media

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        log: LogSink | None = None,
        media_updater: MediaUpdater | None = None,
    ) -> ListingStore:
        """Build a store that opens ``settings.database_path`` on first use."""
        return cls(
            database_path=settings.database_path_resolved,
            log=log,
            media_updater=media_updater,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ListingStore:
        await self._source.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the connection if the store opened it."""
        await self._source.close()

    # ------------------------------------------------------------------
    # Listings (critical)
    # ------------------------------------------------------------------

    @critical(
        "create",
        "Error creating property '{subject_id}'",
        subject=lambda a: _subject_of(a["listing"]),
    )
    async def create(self, listing: ListingInput) -> None:
        """Insert one listing row.

        Args:
            listing: Raw feed mapping (normalised here) or a canonical record.

        Raises:
            MalformedListingError: If *listing* cannot be normalised.
            PersistenceError: If the insert fails, e.g. on a duplicate
                ``systemId``.
        """
        canonical = _as_canonical(listing)
        conn = await self._source.acquire()
        await conn.execute(_INSERT_SQL, [*_column_values(canonical), canonical.system_id])
        await conn.commit()
        logger.debug(
            "Created property %s (%s/%s)",
            canonical.system_id,
            canonical.type,
            canonical.property_type,
            extra={"system_id": canonical.system_id, "event": events.LISTING_CREATED},
        )

    @critical("get", "Error retrieving property '{system_id}'")
    async def get(self, system_id: str) -> str | None:
        """Return the stored ``raw`` payload, or ``None`` if *system_id* is unknown."""
        conn = await self._source.acquire()
        cursor = await conn.execute(
            "SELECT raw FROM property WHERE systemId = ?",
            (system_id,),
        )
        row = await cursor.fetchone()
        return row["raw"] if row is not None else None

    @critical("get_ids", "Error retrieving property IDs", subject=lambda _: None)
    async def get_ids(self) -> list[str]:
        """Every known ``systemId``; empty list if the store is empty."""
        conn = await self._source.acquire()
        cursor = await conn.execute("SELECT systemId FROM property ORDER BY id")
        rows = await cursor.fetchall()
        return [row["systemId"] for row in rows]

    @critical("update", "Error updating property '{system_id}'")
    async def update(self, system_id: str, listing: ListingInput) -> None:
        """Overwrite every mutable field of the row keyed by *system_id*.

        ``systemId`` itself is never changed.  An unknown *system_id*
        updates nothing and is not an error.

        Raises:
            MalformedListingError: If *listing* cannot be normalised.
            PersistenceError: If the update fails.
        """
        canonical = _as_canonical(listing)
        conn = await self._source.acquire()
        cursor = await conn.execute(_UPDATE_SQL, [*_column_values(canonical), system_id])
        await conn.commit()
        if cursor.rowcount == 0:
            logger.debug("Update of unknown property %s matched no row", system_id)
            return
        logger.debug(
            "Updated property %s",
            system_id,
            extra={"system_id": system_id, "event": events.LISTING_UPDATED},
        )

    @critical("remove", "Error removing property '{system_id}'")
    async def remove(self, system_id: str) -> None:
        """Delete the images of *system_id*, then its listing row.

        The two steps are sequential.  If the media step fails the listing
        row is kept; if the row delete fails after the images are gone, the
        listing survives without images.

        Raises:
            PersistenceError: If either step fails.
        """
        try:
            await self._media_updater.remove_all(system_id)
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"media updater failed for {system_id!r}") from exc

        conn = await self._source.acquire()
        await conn.execute("DELETE FROM property WHERE systemId = ?", (system_id,))
        await conn.commit()
        logger.debug(
            "Removed property %s",
            system_id,
            extra={"system_id": system_id, "event": events.LISTING_REMOVED},
        )

    # ------------------------------------------------------------------
    # Removal queue (best-effort)
    # ------------------------------------------------------------------

    async def queue_removal(self, system_id: str, removal_date: date | datetime | str) -> None:
        """See :meth:`RemovalQueue.queue_removal`."""
        await self.removal_queue.queue_removal(system_id, removal_date)

    async def is_queued(self, system_id: str) -> bool:
        """See :meth:`RemovalQueue.is_queued`."""
        return await self.removal_queue.is_queued(system_id)

    async def get_removal_queue(self) -> list[RemovalQueueEntry]:
        """See :meth:`RemovalQueue.get_removal_queue`."""
        return await self.removal_queue.get_removal_queue()

    async def get_ready_for_removal(self, *, today: date | None = None) -> list[str]:
        """See :meth:`RemovalQueue.get_ready_for_removal`."""
        return await self.removal_queue.get_ready_for_removal(today=today)

    # ------------------------------------------------------------------
    # Media (best-effort)
    # ------------------------------------------------------------------

    async def add_image(self, system_id: str, filename: str, local_name: str | None) -> None:
        """See :meth:`MediaCatalog.add_image`."""
        await self.media.add_image(system_id, filename, local_name)

    async def get_images(self, system_id: str) -> list[ImageRecord]:
        """See :meth:`MediaCatalog.get_images`."""
        return await self.media.get_images(system_id)

    async def get_main_image(self, system_id: str) -> ImageRecord | None:
        """See :meth:`MediaCatalog.get_main_image`."""
        return await self.media.get_main_image(system_id)

    async def update_display_order(self, system_id: str, filenames: Sequence[str] | str) -> None:
        """See :meth:`MediaCatalog.update_display_order`."""
        await self.media.update_display_order(system_id, filenames)

    async def remove_image(self, system_id: str, filename: str) -> None:
        """See :meth:`MediaCatalog.remove_image`."""
        await self.media.remove_image(system_id, filename)
