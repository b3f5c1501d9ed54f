"""Result policies for store operations.

Every public store coroutine is wrapped in exactly one of two policies, so
its failure behaviour is part of its definition rather than buried in its
body:

+-----------------+----------------------------------------------------------+
| Policy          | On a store-level failure                                 |
+=================+==========================================================+
| ``critical``    | report to the log sink, then raise                       |
|                 | :class:`~propertyfeed.core.exceptions.PersistenceError`  |
|                 | chained from the driver error.                           |
+-----------------+----------------------------------------------------------+
| ``best_effort`` | report to the log sink, then resolve with a fallback     |
|                 | value (``[]``, ``False``, ``None``).                     |
+-----------------+----------------------------------------------------------+

Store-level failures are driver errors (:class:`sqlite3.Error`, which
``aiosqlite`` re-exports), :class:`OSError` and
:class:`~propertyfeed.core.exceptions.StorageError`.  Anything else is a
programming error and propagates untouched under both policies.

The wrapped object must expose its :class:`~propertyfeed.core.LogSink` as
``self._log`` and its
:class:`~propertyfeed.storage.database.ConnectionSource` as ``self._source``.
Under both policies a transaction left open by the failed statement is
rolled back before the failure is reported, so the shared connection never
holds the write lock past a failed operation.  The applied policy is
readable as ``func.result_policy``.

Typical usage::

    class MediaCatalog:
        @best_effort("Error retrieving images", fallback=list)
        async def get_images(self, system_id: str) -> list[ImageRecord]:
            ...
"""

from __future__ import annotations

import functools
import inspect
import logging
import sqlite3
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from propertyfeed.core import events
from propertyfeed.core.exceptions import PersistenceError, StorageError

__all__ = [
    "CRITICAL",
    "BEST_EFFORT",
    "STORE_ERRORS",
    "critical",
    "best_effort",
]

logger = logging.getLogger(__name__)

CRITICAL: str = "critical"
BEST_EFFORT: str = "best_effort"

#: Exception types treated as store-level failures.
STORE_ERRORS: tuple[type[BaseException], ...] = (sqlite3.Error, OSError, StorageError)

_R = TypeVar("_R")

#: Resolves the subject (listing id) from the bound call arguments.
SubjectResolver = Callable[[dict[str, Any]], str | None]


def _subject_from(subject: str | SubjectResolver) -> SubjectResolver:
    if callable(subject):
        return subject
    return lambda arguments: arguments.get(subject)


def _bind(
    signature: inspect.Signature,
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> dict[str, Any]:
    bound = signature.bind(*args, **kwargs)
    bound.apply_defaults()
    return dict(bound.arguments)


def critical(
    operation: str,
    message: str,
    *,
    subject: str | SubjectResolver = "system_id",
) -> Callable[[Callable[..., Awaitable[_R]]], Callable[..., Awaitable[_R]]]:
    """Wrap a store coroutine in the critical-path policy.

    Args:
        operation: Operation name recorded on the raised error.
        message: Log message; ``str.format`` fields are filled from the
            call's bound arguments plus ``subject_id``
            (e.g. ``"Error removing property '{system_id}'"``).
        subject: Argument name holding the listing id, or a callable that
            derives it from the bound arguments.
    """
    resolve_subject = _subject_from(subject)

    def decorator(func: Callable[..., Awaitable[_R]]) -> Callable[..., Awaitable[_R]]:
        signature = inspect.signature(func)

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> _R:
            try:
                return await func(*args, **kwargs)
            except STORE_ERRORS as exc:
                arguments = _bind(signature, args, kwargs)
                await arguments["self"]._source.rollback()
                subject_id = resolve_subject(arguments)
                arguments["self"]._log.log(
                    "ERR", message.format(**arguments, subject_id=subject_id), subject_id, exc
                )
                raise PersistenceError(operation, subject_id) from exc

        wrapper.result_policy = CRITICAL  # type: ignore[attr-defined]
        return wrapper

    return decorator


def best_effort(
    message: str,
    *,
    fallback: Callable[[], _R] | None = None,
    subject: str | SubjectResolver = "system_id",
) -> Callable[[Callable[..., Awaitable[_R]]], Callable[..., Awaitable[_R]]]:
    """Wrap a store coroutine in the best-effort policy.

    Args:
        message: Log message; formatted like :func:`critical`'s.
        fallback: Zero-argument factory for the degraded result.  ``None``
            resolves the call with ``None``.
        subject: Argument name holding the listing id, or a resolver.
    """
    resolve_subject = _subject_from(subject)

    def decorator(func: Callable[..., Awaitable[_R]]) -> Callable[..., Awaitable[_R]]:
        signature = inspect.signature(func)

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> _R:
            try:
                return await func(*args, **kwargs)
            except STORE_ERRORS as exc:
                arguments = _bind(signature, args, kwargs)
                await arguments["self"]._source.rollback()
                subject_id = resolve_subject(arguments)
                arguments["self"]._log.log(
                    "ERR", message.format(**arguments, subject_id=subject_id), subject_id, exc
                )
                logger.debug(
                    "%s degraded to its fallback value",
                    func.__qualname__,
                    extra={"system_id": subject_id, "event": events.BEST_EFFORT_DEGRADED},
                )
                return fallback() if fallback is not None else None  # type: ignore[return-value]

        wrapper.result_policy = BEST_EFFORT  # type: ignore[attr-defined]
        return wrapper

    return decorator
