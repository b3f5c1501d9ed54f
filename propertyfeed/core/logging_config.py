"""Propertyfeed logging configuration and the store's log sink.

Call ``configure_logging()`` once at process startup.  Every other module
must define its own logger at module scope:

    import logging
    logger = logging.getLogger(__name__)

Store failures are reported through a :class:`LogSink`, a narrow collaborator
accepting ``(level, message, subject_id, error)`` tuples.  The default
:class:`StdlibLogSink` forwards those tuples to :mod:`logging`, attaching the
listing identifier as the ``system_id`` record attribute.

Supported environment variables (read at call time):
    LOG_LEVEL   DEBUG | INFO | WARNING | ERROR   (default: INFO)
    LOG_FORMAT  text | json                      (default: text)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from propertyfeed.core import events

if TYPE_CHECKING:
    from propertyfeed.core.settings import Settings

__all__ = [
    "configure_logging",
    "configure_logging_from_settings",
    "JsonFormatter",
    "SubjectContextFilter",
    "LogSink",
    "StdlibLogSink",
]

logger = logging.getLogger(__name__)

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_FORMATS = {"text", "json"}

# ``%(system_id)s`` is injected by :class:`SubjectContextFilter` and resolves
# to the listing the record is about, or ``-`` when it concerns none.
_TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(system_id)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

#: Sink level names mapped onto :mod:`logging` levels.
_SINK_LEVELS: dict[str, int] = {
    "ERR": logging.ERROR,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


class SubjectContextFilter(logging.Filter):
    """Guarantee every log record carries a ``system_id`` attribute.

    Records emitted with ``extra={"system_id": ...}`` keep their value;
    every other record gets ``"-"`` so the text format never fails on a
    missing attribute.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        if getattr(record, "system_id", None) is None:
            record.system_id = "-"
        return True


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    *,
    force: bool = False,
) -> None:
    """Configure the root logger for the entire process.

    Args:
        level: Logging level string (DEBUG/INFO/WARNING/ERROR/CRITICAL).
            Falls back to ``$LOG_LEVEL`` env var, then "INFO".
        fmt: Output format ("text" or "json").
            Falls back to ``$LOG_FORMAT`` env var, then "text".
        force: If True, reconfigure even if logging has already been set up.

    Raises:
        ValueError: If *level* or *fmt* contain an unrecognised value.
    """
    resolved_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    resolved_fmt = (fmt or os.environ.get("LOG_FORMAT", "text")).lower()

    if resolved_level not in _VALID_LEVELS:
        raise ValueError(
            f"Unknown LOG_LEVEL {resolved_level!r}. "
            f"Must be one of: {', '.join(sorted(_VALID_LEVELS))}"
        )
    if resolved_fmt not in _VALID_FORMATS:
        raise ValueError(
            f"Unknown LOG_FORMAT {resolved_fmt!r}. "
            f"Must be one of: {', '.join(sorted(_VALID_FORMATS))}"
        )

    root = logging.getLogger()

    if root.handlers and not force:
        # Already configured (e.g. by pytest's log_cli); only adjust level.
        root.setLevel(resolved_level)
        return

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved_level)
    handler.addFilter(SubjectContextFilter())

    if resolved_fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(fmt=_TEXT_FORMAT, datefmt=_DATE_FORMAT))

    root.setLevel(resolved_level)
    root.addHandler(handler)

    if resolved_level != "DEBUG":
        for noisy in ("aiosqlite", "asyncio"):
            logging.getLogger(noisy).setLevel(logging.WARNING)


def configure_logging_from_settings(settings: Settings, *, force: bool = False) -> None:
    """Configure logging from the ``log_level`` and ``log_format`` of *settings*.

    Call once at startup, before building the store::

        settings = Settings()
        configure_logging_from_settings(settings)
        store = ListingStore.from_settings(settings)
    """
    configure_logging(level=settings.log_level, fmt=settings.log_format, force=force)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Emit one JSON object per log record.

    The listing subject and event name are promoted to top-level keys::

        {
            "ts":        "2026-02-28T12:34:56.789Z",
            "level":     "ERROR",
            "logger":    "propertyfeed.store",
            "system_id": "ABC-123",
            "event":     "STORE_ERROR",
            "message":   "Error creating property 'ABC-123'"
        }

    ``system_id`` and ``event`` are ``null`` when the record has none.
    ``exc_info`` holds the formatted traceback when the record carries one.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        subject = getattr(record, "system_id", None)
        ts = datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds")
        payload: dict[str, Any] = {
            "ts": ts.replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "system_id": None if subject == "-" else subject,
            "event": getattr(record, "event", None),
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


# ---------------------------------------------------------------------------
# Log sink
# ---------------------------------------------------------------------------


@runtime_checkable
class LogSink(Protocol):
    """Collaborator that receives every failed store operation.

    Implementations must never raise back into the caller.
    """

    def log(
        self,
        level: str,
        message: str,
        subject_id: str | None = None,
        error: BaseException | None = None,
    ) -> None: ...


class StdlibLogSink:
    """:class:`LogSink` backed by a :class:`logging.Logger`.

    Args:
        target: Logger to emit on.  Defaults to ``propertyfeed.store``.
    """

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logging.getLogger("propertyfeed.store")

    def log(
        self,
        level: str,
        message: str,
        subject_id: str | None = None,
        error: BaseException | None = None,
    ) -> None:
        levelno = _SINK_LEVELS.get(level.upper(), logging.ERROR)
        exc_info = (type(error), error, error.__traceback__) if error is not None else None
        event = events.STORE_ERROR if levelno >= logging.ERROR else events.STORE_NOTICE
        try:
            self._logger.log(
                levelno,
                message,
                exc_info=exc_info,
                extra={"system_id": subject_id, "event": event},
            )
        except Exception:  # noqa: BLE001
            # A sink must never raise into the store; fall back to stderr.
            print(f"propertyfeed: log sink failure: {message}", file=sys.stderr)  # noqa: T201
