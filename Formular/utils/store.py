# -*- coding: utf-8 -*-
"""Key-value store contract with TTL, and its SQL implementation.

The cooldown enforcer only relies on ``set_if_absent`` being atomic across every process sharing the store.
``SqlKeyValueStore`` gets that from the primary key on ``KeyValueEntry.Key``: the first insert wins, and an
expired row can only be taken over by one conditional ``UPDATE ... WHERE ExpiresAt <= now``.

A worker thread cannot be cancelled, so a write may still commit after its caller gave up on it. Callers are
told such a write failed, and ``SqlKeyValueStore`` deletes it again as soon as it lands.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from functools import partial
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.keyvalue import KeyValueEntry, as_utc
from utils.errors import StoreUnavailableError

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


def utcnow() -> datetime:
    return datetime.now(UTC)


class KeyValueStore(ABC):
    """Expiring key-value store. Every method raises ``StoreUnavailableError`` when the store cannot answer."""

    @abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl: timedelta) -> bool:
        """Store ``value`` under ``key`` for ``ttl`` unless a live value exists. Returns True if stored."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Returns the live value for ``key``, or None if it is absent or expired."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Removes ``key``. Returns True if a live or expired value was removed."""

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Removes every key starting with ``prefix``. Returns how many were removed."""

    async def purge_expired(self) -> int:
        """Drop expired values. Stores that expire keys on their own have nothing to do."""
        return 0


class SqlKeyValueStore(KeyValueStore):
    """``KeyValueStore`` on top of the bot's SQLAlchemy engine.

    Blocking database calls run in a worker thread and are bounded by ``timeout`` seconds.
    """

    def __init__(self, session_factory, timeout: float = DEFAULT_TIMEOUT, clock: Callable[[], datetime] = utcnow):
        self._session_factory = session_factory
        self.timeout = timeout
        self._clock = clock
        self._undo_tasks: set[asyncio.Task] = set()

    def _now(self) -> datetime:
        return as_utc(self._clock())

    @contextmanager
    def _session_scope(self):
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    async def _run(self, operation, *args, on_late_result=None):
        work = asyncio.ensure_future(asyncio.to_thread(operation, *args))
        try:
            return await asyncio.wait_for(asyncio.shield(work), timeout=self.timeout)
        except TimeoutError as ex:
            work.add_done_callback(on_late_result or _drop_late_result)
            raise StoreUnavailableError(f"The key-value store did not answer within {self.timeout}s.") from ex
        except SQLAlchemyError as ex:
            raise StoreUnavailableError("The key-value store is unavailable.") from ex

    def _undo_late_write(self, key: str, value: str, work: asyncio.Future) -> None:
        if work.cancelled() or work.exception() is not None or not work.result():
            return
        log.warning("store: write of %s committed after its deadline, removing it", key)
        task = asyncio.ensure_future(self._undo(key, value))
        self._undo_tasks.add(task)
        task.add_done_callback(self._undo_tasks.discard)

    async def _undo(self, key: str, value: str) -> None:
        try:
            await self._run(self._delete, key, value)
        except StoreUnavailableError as ex:
            log.error("store: could not remove late write of %s: %s", key, ex)

    # -- blocking implementations ----------------------------------------------

    def _set_if_absent(self, key: str, value: str, ttl: timedelta) -> bool:
        now = self._now()
        expires_at = now + ttl
        with self._session_scope() as session:
            session.add(KeyValueEntry(Key=key, Value=value, ExpiresAt=expires_at))
            try:
                session.flush()
                return True
            except IntegrityError:
                session.rollback()
            return KeyValueEntry.take_over_expired(key, value, expires_at, now, session)

    def _get(self, key: str) -> str | None:
        with self._session_scope() as session:
            entry = KeyValueEntry.get_live(key, self._now(), session)
            return entry.Value if entry is not None else None

    def _delete(self, key: str, value: str | None = None) -> bool:
        with self._session_scope() as session:
            return KeyValueEntry.delete_key(key, session, value=value)

    def _delete_prefix(self, prefix: str) -> int:
        with self._session_scope() as session:
            return KeyValueEntry.delete_prefix(prefix, session)

    def _purge_expired(self) -> int:
        with self._session_scope() as session:
            return KeyValueEntry.purge_expired(self._now(), session)

    # -- KeyValueStore ---------------------------------------------------------

    async def set_if_absent(self, key: str, value: str, ttl: timedelta) -> bool:
        if ttl <= timedelta(0):
            raise ValueError(f"ttl must be positive, got {ttl}")
        return await self._run(
            self._set_if_absent, key, value, ttl, on_late_result=partial(self._undo_late_write, key, value)
        )

    async def get(self, key: str) -> str | None:
        return await self._run(self._get, key)

    async def delete(self, key: str) -> bool:
        return await self._run(self._delete, key)

    async def delete_prefix(self, prefix: str) -> int:
        return await self._run(self._delete_prefix, prefix)

    async def purge_expired(self) -> int:
        return await self._run(self._purge_expired)


def _drop_late_result(work: asyncio.Future) -> None:
    if not work.cancelled() and work.exception() is not None:
        log.debug("store: call failed after its deadline: %s", work.exception())
