"""Unit tests for :class:`~propertyfeed.storage.store.ListingStore`.

Covers:
- Construction and configuration errors.
- create / get / get_ids / update / remove against in-memory SQLite.
- The critical-path failure policy (log, then raise PersistenceError).
- The removal cascade through the media updater.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiosqlite
import pytest

from propertyfeed.core.exceptions import (
    ConfigError,
    MalformedListingError,
    PersistenceError,
)
from propertyfeed.core.settings import Settings
from propertyfeed.feed.normalizer import normalize
from propertyfeed.storage.policy import BEST_EFFORT, CRITICAL
from propertyfeed.storage.store import ListingStore


async def _row(conn: aiosqlite.Connection, system_id: str) -> aiosqlite.Row | None:
    cursor = await conn.execute("SELECT * FROM property WHERE systemId = ?", (system_id,))
    return await cursor.fetchone()


class _FailingMediaUpdater:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def remove_all(self, system_id: str) -> None:
        self.calls.append(system_id)
        raise RuntimeError("media backend offline")


class _RecordingMediaUpdater:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def remove_all(self, system_id: str) -> None:
        self.calls.append(system_id)


# ===========================================================================
# Construction
# ===========================================================================


class TestConstruction:
    def test_requires_connection_or_path(self) -> None:
        with pytest.raises(ConfigError):
            ListingStore()

    async def test_opens_path_lazily_and_closes(self, tmp_path: Path) -> None:
        db_file = tmp_path / "nested" / "feed.db"
        store = ListingStore(database_path=db_file)
        assert not db_file.exists()
        try:
            assert await store.get_ids() == []
            assert db_file.exists()
        finally:
            await store.close()

    async def test_context_manager(self, tmp_path: Path, residential_raw: dict[str, Any]) -> None:
        async with ListingStore(database_path=tmp_path / "feed.db") as store:
            await store.create(residential_raw)
        async with ListingStore(database_path=tmp_path / "feed.db") as reopened:
            assert await reopened.get_ids() == ["RW-1001"]

    async def test_from_settings(
        self, clean_env: None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "settings.db"))
        store = ListingStore.from_settings(Settings())
        try:
            assert await store.get_ids() == []
        finally:
            await store.close()
        assert (tmp_path / "settings.db").exists()

    async def test_close_leaves_injected_connection_open(
        self, memory_conn: aiosqlite.Connection
    ) -> None:
        store = ListingStore(memory_conn)
        await store.close()
        cursor = await memory_conn.execute("SELECT 1")
        assert await cursor.fetchone() is not None

    def test_policies_are_declared(self) -> None:
        for name in ("create", "get", "get_ids", "update", "remove"):
            assert getattr(ListingStore, name).result_policy == CRITICAL
        store_media = ListingStore(database_path=":memory:").media
        assert store_media.add_image.result_policy == BEST_EFFORT
        assert store_media.remove_all.result_policy == CRITICAL


# ===========================================================================
# create / get / get_ids
# ===========================================================================


class TestCreateAndRead:
    async def test_create_then_get_round_trips_raw(
        self, store: ListingStore, residential_raw: dict[str, Any]
    ) -> None:
        await store.create(residential_raw)
        payload = await store.get("RW-1001")
        assert payload is not None
        assert json.loads(payload) == residential_raw

    async def test_create_persists_every_column(
        self,
        store: ListingStore,
        memory_conn: aiosqlite.Connection,
        residential_raw: dict[str, Any],
    ) -> None:
        await store.create(residential_raw)
        row = await _row(memory_conn, "RW-1001")
        assert row is not None
        assert row["type"] == "residential"
        assert row["propertyType"] == "house"
        assert row["street"] == "Keizersgracht"
        assert row["number"] == "12"
        assert row["numberAddition"] == "A"
        assert row["postcode"] == "1015 CS"
        assert row["city"] == "Amsterdam"
        assert row["country"] == "NL"
        assert row["buy"] == 1
        assert row["rent"] == 0
        assert row["buyPrice"] == 450000
        assert row["rentPrice"] is None
        assert row["objectCode"] == "OC-1001"
        assert row["lastChanged"] == "2024-03-15"
        assert row["objectStatus"] == "Beschikbaar"
        assert row["buyPrefix"] == "Vraagprijs"
        assert row["buySuffix"] == "k.k."
        assert row["rentPrefix"] is None

    async def test_create_accepts_canonical_listing(
        self, store: ListingStore, commercial_raw: dict[str, Any]
    ) -> None:
        await store.create(normalize(commercial_raw))
        assert await store.get_ids() == ["RW-2002"]

    async def test_get_unknown_returns_none(self, store: ListingStore) -> None:
        assert await store.get("nope") is None

    async def test_get_ids(
        self,
        store: ListingStore,
        residential_raw: dict[str, Any],
        commercial_raw: dict[str, Any],
        other_raw: dict[str, Any],
    ) -> None:
        assert await store.get_ids() == []
        for raw in (residential_raw, commercial_raw, other_raw):
            await store.create(raw)
        assert await store.get_ids() == ["RW-1001", "RW-2002", "RW-3003"]

    async def test_duplicate_create_raises_and_logs(
        self, store: ListingStore, sink: Any, residential_raw: dict[str, Any]
    ) -> None:
        await store.create(residential_raw)
        with pytest.raises(PersistenceError) as exc_info:
            await store.create(residential_raw)

        assert exc_info.value.system_id == "RW-1001"
        assert exc_info.value.operation == "create"
        assert isinstance(exc_info.value.__cause__, aiosqlite.IntegrityError)

        level, message, subject, error = sink.records[-1]
        assert level == "ERR"
        assert message == "Error creating property 'RW-1001'"
        assert subject == "RW-1001"
        assert isinstance(error, aiosqlite.IntegrityError)

    async def test_malformed_record_never_reaches_store(
        self,
        store: ListingStore,
        sink: Any,
        memory_conn: aiosqlite.Connection,
        residential_raw: dict[str, Any],
    ) -> None:
        del residential_raw["ObjectDetails"]["Adres"]
        with pytest.raises(MalformedListingError):
            await store.create(residential_raw)
        assert await _row(memory_conn, "RW-1001") is None
        assert sink.records == []

    async def test_unreachable_store_raises_persistence_error(
        self, tmp_path: Path, sink: Any, residential_raw: dict[str, Any]
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = ListingStore(database_path=blocker / "feed.db", log=sink)
        with pytest.raises(PersistenceError):
            await store.create(residential_raw)
        assert sink.records[-1][2] == "RW-1001"

    async def test_failed_create_releases_write_lock(
        self, tmp_path: Path, sink: Any, residential_raw: dict[str, Any]
    ) -> None:
        db_file = tmp_path / "feed.db"
        async with ListingStore(database_path=db_file, log=sink) as store:
            await store.create(residential_raw)
            with pytest.raises(PersistenceError):
                await store.create(residential_raw)

            async with aiosqlite.connect(db_file, timeout=0.2) as other_writer:
                await other_writer.execute(
                    "INSERT INTO remove_queue (systemId, removalDate) VALUES (?, ?)",
                    ("RW-1001", "2024-07-01"),
                )
                await other_writer.commit()

            assert await store.is_queued("RW-1001") is True
            assert await store.get_ids() == ["RW-1001"]

    async def test_get_failure_raises_and_logs(
        self, store: ListingStore, sink: Any, memory_conn: aiosqlite.Connection
    ) -> None:
        await memory_conn.execute("DROP TABLE property")

        with pytest.raises(PersistenceError) as exc_info:
            await store.get("RW-1001")

        assert exc_info.value.operation == "get"
        assert exc_info.value.system_id == "RW-1001"
        level, message, subject, error = sink.records[-1]
        assert (level, message, subject) == ("ERR", "Error retrieving property 'RW-1001'", "RW-1001")
        assert isinstance(error, aiosqlite.OperationalError)

    async def test_get_ids_failure_raises_and_logs(
        self, store: ListingStore, sink: Any, memory_conn: aiosqlite.Connection
    ) -> None:
        await memory_conn.execute("DROP TABLE property")

        with pytest.raises(PersistenceError) as exc_info:
            await store.get_ids()

        assert exc_info.value.operation == "get_ids"
        assert exc_info.value.system_id is None
        level, message, subject, error = sink.records[-1]
        assert (level, message, subject) == ("ERR", "Error retrieving property IDs", None)
        assert isinstance(error, aiosqlite.OperationalError)


# ===========================================================================
# update
# ===========================================================================


class TestUpdate:
    async def test_update_overwrites_mutable_fields(
        self,
        store: ListingStore,
        memory_conn: aiosqlite.Connection,
        residential_raw: dict[str, Any],
    ) -> None:
        await store.create(residential_raw)

        residential_raw["ObjectCode"] = "OC-NEW"
        residential_raw["ObjectDetails"]["Koop"]["Koopprijs"] = 425000
        residential_raw["ObjectDetails"]["Koop"]["Prijsvoorvoegsel"] = "prijs op aanvraag"
        residential_raw["ObjectDetails"]["StatusBeschikbaarheid"]["Status"] = "Verkocht"
        residential_raw["ObjectDetails"]["DatumWijziging"] = "2024-06-01"
        await store.update("RW-1001", residential_raw)

        row = await _row(memory_conn, "RW-1001")
        assert row is not None
        assert row["objectCode"] == "OC-NEW"
        assert row["buyPrice"] == 425000
        assert row["buyPrefix"] == "Asking price"
        assert row["buySuffix"] == "on request"
        assert row["objectStatus"] == "Verkocht"
        assert row["lastChanged"] == "2024-06-01"
        assert json.loads(row["raw"]) == residential_raw

    async def test_update_never_changes_system_id(
        self, store: ListingStore, residential_raw: dict[str, Any]
    ) -> None:
        await store.create(residential_raw)
        renamed = dict(residential_raw, ObjectSystemID="RW-9999")
        await store.update("RW-1001", renamed)
        assert await store.get_ids() == ["RW-1001"]

    async def test_update_can_drop_sale_terms(
        self,
        store: ListingStore,
        memory_conn: aiosqlite.Connection,
        residential_raw: dict[str, Any],
    ) -> None:
        await store.create(residential_raw)
        del residential_raw["ObjectDetails"]["Koop"]
        await store.update("RW-1001", residential_raw)
        row = await _row(memory_conn, "RW-1001")
        assert row is not None
        assert row["buy"] == 0
        assert row["buyPrice"] is None
        assert row["buyPrefix"] is None

    async def test_update_unknown_id_is_silent_noop(
        self, store: ListingStore, sink: Any, other_raw: dict[str, Any]
    ) -> None:
        await store.update("RW-3003", other_raw)
        assert await store.get_ids() == []
        assert sink.records == []

    async def test_update_failure_raises(
        self,
        store: ListingStore,
        sink: Any,
        memory_conn: aiosqlite.Connection,
        other_raw: dict[str, Any],
    ) -> None:
        await memory_conn.execute("DROP TABLE property")
        with pytest.raises(PersistenceError):
            await store.update("RW-3003", other_raw)
        assert sink.records[-1][1] == "Error updating property 'RW-3003'"


# ===========================================================================
# remove
# ===========================================================================


class TestRemove:
    async def test_remove_cascades_images(
        self, store: ListingStore, residential_raw: dict[str, Any]
    ) -> None:
        await store.create(residential_raw)
        await store.add_image("RW-1001", "front.jpg", "rw-1001-front.jpg")
        await store.add_image("RW-1001", "garden.jpg", "rw-1001-garden.jpg")

        await store.remove("RW-1001")

        assert await store.get("RW-1001") is None
        assert await store.get_images("RW-1001") == []

    async def test_remove_leaves_other_listings(
        self,
        store: ListingStore,
        residential_raw: dict[str, Any],
        commercial_raw: dict[str, Any],
    ) -> None:
        await store.create(residential_raw)
        await store.create(commercial_raw)
        await store.add_image("RW-2002", "shop.jpg", "rw-2002-shop.jpg")

        await store.remove("RW-1001")

        assert await store.get_ids() == ["RW-2002"]
        assert [image.filename for image in await store.get_images("RW-2002")] == ["shop.jpg"]

    async def test_remove_unknown_is_noop(self, store: ListingStore) -> None:
        await store.remove("nope")

    async def test_remove_uses_injected_media_updater(
        self,
        memory_conn: aiosqlite.Connection,
        sink: Any,
        residential_raw: dict[str, Any],
    ) -> None:
        updater = _RecordingMediaUpdater()
        store = ListingStore(memory_conn, log=sink, media_updater=updater)
        await store.create(residential_raw)
        await store.remove("RW-1001")
        assert updater.calls == ["RW-1001"]
        assert await store.get("RW-1001") is None

    async def test_media_failure_keeps_listing(
        self,
        memory_conn: aiosqlite.Connection,
        sink: Any,
        residential_raw: dict[str, Any],
    ) -> None:
        store = ListingStore(memory_conn, log=sink, media_updater=_FailingMediaUpdater())
        await store.create(residential_raw)

        with pytest.raises(PersistenceError) as exc_info:
            await store.remove("RW-1001")

        assert exc_info.value.operation == "remove"
        assert await store.get("RW-1001") is not None
        level, message, subject, _ = sink.records[-1]
        assert (level, message, subject) == ("ERR", "Error removing property 'RW-1001'", "RW-1001")

    async def test_image_table_failure_keeps_listing(
        self,
        store: ListingStore,
        memory_conn: aiosqlite.Connection,
        residential_raw: dict[str, Any],
    ) -> None:
        await store.create(residential_raw)
        await memory_conn.execute("DROP TABLE image")

        with pytest.raises(PersistenceError):
            await store.remove("RW-1001")
        assert await _row(memory_conn, "RW-1001") is not None
