"""SQLite database initialisation for the listing store.

This module is responsible for:

* Opening (or creating) the SQLite file.
* Configuring low-level PRAGMA settings (WAL journal mode, foreign keys).
* Bootstrapping the schema via ``CREATE TABLE IF NOT EXISTS``, which is
  idempotent and safe to call on every startup.

:class:`~propertyfeed.storage.store.ListingStore` calls :func:`open_db`
lazily when it was configured with a database path.  Callers that manage
their own connection pass it to the store directly, after running
:func:`create_schema` on it.

Typical usage::

    from propertyfeed.storage.database import open_db

    async def main() -> None:
        conn = await open_db(Path("data/propertyfeed.db"))
        store = ListingStore(conn)
        ...
        await conn.close()
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path

import aiosqlite

from propertyfeed.core.exceptions import ConfigError

__all__ = [
    "DEFAULT_DB_PATH",
    "MEMORY_DB",
    "open_db",
    "create_schema",
    "ConnectionSource",
]

logger = logging.getLogger(__name__)

#: Fallback database path when no explicit path is passed to :func:`open_db`.
DEFAULT_DB_PATH: Path = Path("propertyfeed.db")

#: Special path selecting a private in-memory database.
MEMORY_DB: str = ":memory:"

# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

#: One row per canonical listing.
#:
#: Column names are shared with other consumers of the database and keep
#: the feed's camelCase spelling.  ``lastChanged`` holds a ``YYYY-MM-DD``
#: string; ``raw`` holds the full feed object as JSON.
_DDL_PROPERTY = """\
CREATE TABLE IF NOT EXISTS property (
    id              INTEGER  PRIMARY KEY AUTOINCREMENT,
    type            TEXT     NOT NULL,
    propertyType    TEXT,
    street          TEXT,
    number          TEXT,
    numberAddition  TEXT,
    postcode        TEXT,
    city            TEXT,
    country         TEXT,
    rent            INTEGER  NOT NULL DEFAULT 0,
    buy             INTEGER  NOT NULL DEFAULT 0,
    rentPrice       REAL,
    buyPrice        REAL,
    systemId        TEXT     NOT NULL UNIQUE,
    objectCode      TEXT,
    lastChanged     DATE,
    raw             TEXT     NOT NULL,
    objectStatus    TEXT,
    rentPrefix      TEXT,
    buyPrefix       TEXT,
    rentSuffix      TEXT,
    buySuffix       TEXT
)"""

#: Deferred removals.  No uniqueness: repeated queueing accumulates rows.
_DDL_REMOVE_QUEUE = """\
CREATE TABLE IF NOT EXISTS remove_queue (
    id              INTEGER  PRIMARY KEY AUTOINCREMENT,
    systemId        TEXT     NOT NULL,
    removalDate     DATE     NOT NULL
)"""

#: Images per listing.  ``displayOrder`` defaults to 0 until reordered.
_DDL_IMAGE = """\
CREATE TABLE IF NOT EXISTS image (
    id              INTEGER  PRIMARY KEY AUTOINCREMENT,
    systemId        TEXT     NOT NULL,
    filename        TEXT     NOT NULL,
    localName       TEXT,
    displayOrder    INTEGER  NOT NULL DEFAULT 0,
    UNIQUE (systemId, filename)
)"""

_DDL_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_remove_queue_system_id ON remove_queue (systemId)",
    "CREATE INDEX IF NOT EXISTS idx_remove_queue_removal_date ON remove_queue (removalDate)",
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def open_db(path: Path | str | None = None) -> aiosqlite.Connection:
    """Open (or create) the SQLite database and configure it.

    Steps performed on every call:

    1. Create parent directories for the DB file if they do not exist.
    2. Open the ``aiosqlite`` connection.
    3. Set ``row_factory = aiosqlite.Row`` so columns can be accessed by name.
    4. Enable WAL journal mode and foreign-key enforcement.
    5. Call :func:`create_schema` to bootstrap tables (idempotent).

    Args:
        path: Filesystem path for the SQLite file, or ``":memory:"``.
            Defaults to :data:`DEFAULT_DB_PATH`.

    Returns:
        An open, configured :class:`aiosqlite.Connection`.  The caller is
        responsible for closing it.

    Raises:
        aiosqlite.OperationalError: If the database file cannot be opened or
            created.
    """
    if str(path) == MEMORY_DB:
        target: Path | str = MEMORY_DB
    else:
        target = Path(path or DEFAULT_DB_PATH)
        target.parent.mkdir(parents=True, exist_ok=True)

    logger.debug("Opening SQLite database at %s", target)

    conn: aiosqlite.Connection = await aiosqlite.connect(target)
    conn.row_factory = aiosqlite.Row

    await _configure_pragmas(conn)
    await create_schema(conn)

    logger.info("SQLite database ready at %s (schema verified)", target)
    return conn


async def create_schema(conn: aiosqlite.Connection) -> None:
    """Create the ``property``, ``remove_queue`` and ``image`` tables.

    Idempotent; existing data is untouched.

    Args:
        conn: An open :class:`aiosqlite.Connection`.
    """
    for ddl in (_DDL_PROPERTY, _DDL_REMOVE_QUEUE, _DDL_IMAGE, *_DDL_INDEXES):
        await conn.execute(ddl)
    await conn.commit()
    logger.debug("Schema bootstrap complete (property, remove_queue, image)")


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


async def _configure_pragmas(conn: aiosqlite.Connection) -> None:
    """Apply PRAGMA settings that must be set immediately after opening.

    * ``journal_mode=WAL`` lets readers proceed while the writer is active.
    * ``foreign_keys=ON``: SQLite disables FK enforcement by default.
    """
    result = await conn.execute("PRAGMA journal_mode=WAL")
    row = await result.fetchone()
    mode = row[0] if row else "unknown"
    if mode != "wal":
        logger.debug("SQLite journal_mode is %r (expected for ':memory:')", mode)

    await conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Connection ownership
# ---------------------------------------------------------------------------


class ConnectionSource:
    """The single connection handle shared by a store and its sub-components.

    Exactly one of two configurations is accepted:

    * a pre-built :class:`aiosqlite.Connection` (the caller owns it and has
      already bootstrapped the schema); its
      ``row_factory`` is switched to :class:`aiosqlite.Row`, or
    * a database path, opened lazily through :func:`open_db` on the first
      :meth:`acquire` and closed by :meth:`close`.

    Args:
        conn: Pre-built connection handle.
        database_path: Path (or ``":memory:"``) to open on demand.

    Raises:
        ConfigError: If neither *conn* nor *database_path* is supplied.
    """

    def __init__(
        self,
        conn: aiosqlite.Connection | None = None,
        database_path: Path | str | None = None,
    ) -> None:
        if conn is None and database_path is None:
            raise ConfigError("either a connection handle or a database path must be supplied")
        if conn is not None:
            # Queries read columns by name.
            conn.row_factory = aiosqlite.Row
        self._conn = conn
        self._database_path = database_path
        self._owned = conn is None
        self._open_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def acquire(self) -> aiosqlite.Connection:
        """Return the open connection, opening it first if needed."""
        if self._conn is not None:
            return self._conn
        async with self._open_lock:
            if self._conn is None:
                self._conn = await open_db(self._database_path)
        return self._conn

    async def rollback(self) -> None:
        """Roll back the open transaction, if any.

        A failed rollback is logged, not raised.
        """
        if self._conn is None or not self._conn.in_transaction:
            return
        try:
            await self._conn.rollback()
        except sqlite3.Error:
            logger.warning("Rollback after failed store operation failed", exc_info=True)
            return
        logger.debug("Rolled back open transaction on %s", self._database_path or "connection")

    async def close(self) -> None:
        """Close the connection if this source opened it; otherwise no-op."""
        if self._owned and self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.debug("Closed SQLite database at %s", self._database_path)
