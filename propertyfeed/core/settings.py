"""Propertyfeed settings loaded from environment and ``.env`` files.

Uses :mod:`pydantic_settings` to parse environment variables (and optionally
an ``.env`` file) into a validated settings object.  The field name is the
**lowercase** version of the env-var name (e.g. ``DATABASE_PATH`` →
``database_path``).

Typical usage::

    from propertyfeed.core import configure_logging_from_settings
    from propertyfeed.core.settings import Settings
    from propertyfeed.storage import ListingStore

    settings = Settings()
    configure_logging_from_settings(settings)
    store = ListingStore.from_settings(settings)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings"]


class Settings(BaseSettings):
    """Central configuration for the listing store.

    Values are loaded in priority order:

    1. Actual environment variables (highest priority).
    2. ``.env`` file in the working directory.
    3. Field defaults (lowest priority).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    database_path: str = Field(
        default="data/propertyfeed.db",
        description="Path to the SQLite database file (':memory:' allowed).",
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = Field(default="INFO", description="Logging level.")
    log_format: str = Field(default="text", description="Log format: 'text' or 'json'.")

    @field_validator("database_path")
    @classmethod
    def _validate_database_path(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("database_path must not be blank")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got {v!r}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, v: str) -> str:
        allowed = {"text", "json"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got {v!r}")
        return v_lower

    @property
    def database_path_resolved(self) -> Path | str:
        """The database path as a resolved :class:`~pathlib.Path`.

        ``":memory:"`` is returned unchanged.
        """
        if self.database_path == ":memory:":
            return self.database_path
        return Path(self.database_path).resolve()
