"""Shared pytest fixtures and configuration for the propertyfeed test suite.

This file is loaded automatically by pytest before any test module.
It provides project-wide fixtures: logging setup, a clean environment,
sample feed objects for each listing category, and an in-memory store.
"""

from __future__ import annotations

import copy
import logging
import os
from collections.abc import AsyncIterator
from typing import Any

import aiosqlite
import pytest
from pydantic_settings import SettingsConfigDict

from propertyfeed.core import configure_logging
from propertyfeed.core.settings import Settings
from propertyfeed.storage.database import create_schema
from propertyfeed.storage.store import ListingStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _configure_test_logging() -> None:
    """Force DEBUG logging in text format for every test."""
    configure_logging(level="DEBUG", fmt="text", force=True)


class RecordingSink:
    """Log sink that keeps every ``(level, message, subject_id, error)`` tuple."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, str | None, BaseException | None]] = []

    def log(
        self,
        level: str,
        message: str,
        subject_id: str | None = None,
        error: BaseException | None = None,
    ) -> None:
        self.records.append((level, message, subject_id, error))


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove store-related env vars and disable ``.env`` loading."""
    for key in list(os.environ):
        if key.startswith(("DATABASE_", "LOG_LEVEL", "LOG_FORMAT")):
            monkeypatch.delenv(key, raising=False)

    monkeypatch.setattr(
        Settings,
        "model_config",
        SettingsConfigDict(
            env_file=None,
            env_file_encoding="utf-8",
            extra="ignore",
        ),
    )


# ---------------------------------------------------------------------------
# Sample feed objects
# ---------------------------------------------------------------------------

_RESIDENTIAL: dict[str, Any] = {
    "ObjectSystemID": "RW-1001",
    "ObjectCode": "OC-1001",
    "Wonen": {"Woonhuis": {"SoortWoning": "eengezinswoning"}},
    "ObjectDetails": {
        "DatumWijziging": "2024-03-15",
        "Adres": {
            "Nederlands": {
                "Straatnaam": "Keizersgracht",
                "Huisnummer": "12",
                "HuisnummerToevoeging": "A",
                "Postcode": "1015 CS",
                "Woonplaats": "Amsterdam",
                "Land": "NL",
            }
        },
        "StatusBeschikbaarheid": {"Status": "Beschikbaar"},
        "Koop": {
            "Prijsvoorvoegsel": "vraagprijs",
            "Koopprijs": 450000,
            "KoopConditie": "kosten koper",
        },
    },
}

_COMMERCIAL: dict[str, Any] = {
    "ObjectSystemID": "RW-2002",
    "ObjectCode": "OC-2002",
    "Gebouw": {"Winkelruimte": {}},
    "ObjectDetails": {
        "DatumWijziging": "2024-04-01",
        "Adres": {
            "Straatnaam": "Coolsingel",
            "Huisnummer": {"Hoofdnummer": "40"},
            "Postcode": "3011 AD",
            "Woonplaats": "Rotterdam",
        },
        "Status": {"StatusType": "Beschikbaar"},
        "Huur": {
            "HuurConditie": "per jaar",
            "PrijsSpecificatie": {"Prijs": 36000},
        },
    },
}

_OTHER: dict[str, Any] = {
    "ObjectSystemID": "RW-3003",
    "ObjectCode": "OC-3003",
    "ObjectDetails": {
        "DatumWijziging": "2024-05-20",
        "Koop": {"Koopprijs": 15000},
    },
}


@pytest.fixture()
def residential_raw() -> dict[str, Any]:
    """A for-sale house with a domestic address."""
    return copy.deepcopy(_RESIDENTIAL)


@pytest.fixture()
def commercial_raw() -> dict[str, Any]:
    """A retail space for rent per year."""
    return copy.deepcopy(_COMMERCIAL)


@pytest.fixture()
def other_raw() -> dict[str, Any]:
    """An object of neither category, for sale."""
    return copy.deepcopy(_OTHER)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@pytest.fixture()
async def memory_conn() -> AsyncIterator[aiosqlite.Connection]:
    """An in-memory SQLite database with the schema applied."""
    conn: aiosqlite.Connection = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await create_schema(conn)
    try:
        yield conn
    finally:
        await conn.close()


@pytest.fixture()
def store(memory_conn: aiosqlite.Connection, sink: RecordingSink) -> ListingStore:
    """A store over :func:`memory_conn` reporting to :func:`sink`."""
    return ListingStore(memory_conn, log=sink)


@pytest.fixture()
def logger() -> logging.Logger:
    return logging.getLogger("tests")
