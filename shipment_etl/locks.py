"""
Distributed Import Lock

Cross-process mutual exclusion for import runs, backed by PostgreSQL
session-level advisory locks. The lock lives as long as the session that
took it, so the backend keeps a dedicated connection open for the whole run
and closes it on release.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

import psycopg2
from psycopg2 import errors

from db.connection import DatabaseConnection
from shipment_etl.errors import LockUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_RESOURCE = "ImportShipmentDataLock"


def advisory_key(resource: str) -> int:
    """Stable signed 64-bit advisory lock key for a resource name."""
    digest = hashlib.blake2b(resource.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class LockToken:
    """
    Handle for a held lock. Created only by a lock backend.
    """

    def __init__(self, resource: str, key: int, connection: Any):
        self.resource = resource
        self.key = key
        self.connection = connection
        self.released = False

    def __repr__(self) -> str:
        state = "released" if self.released else "held"
        return f"LockToken(resource={self.resource!r}, {state})"


class DistributedExclusiveLock(ABC):
    """
    Named exclusive lock shared by every process that talks to the same
    database.

    ``timeout_ms == 0`` fails immediately when the lock is held elsewhere;
    ``None`` waits indefinitely.
    """

    @abstractmethod
    def acquire(self, resource: str, timeout_ms: Optional[int] = 0) -> Optional[LockToken]:
        """Return a token, or None when the lock is unavailable."""

    @abstractmethod
    def release(self, token: LockToken) -> bool:
        """
        Release a token. Safe to call more than once.

        Returns:
            True if the lock was released cleanly; callers may ignore it
        """

    @contextmanager
    def hold(self, resource: str, timeout_ms: Optional[int] = 0) -> Iterator[LockToken]:
        """
        Hold the lock for the duration of a block.

        Raises:
            LockUnavailableError: If another session holds the lock
        """
        token = self.acquire(resource, timeout_ms)
        if token is None:
            raise LockUnavailableError(resource, timeout_ms)
        try:
            yield token
        finally:
            self.release(token)


class PostgresAdvisoryLock(DistributedExclusiveLock):
    """
    Advisory lock backend using pg_try_advisory_lock / pg_advisory_lock.
    """

    def __init__(self, connect: Callable[[], Any] = DatabaseConnection.connect_dedicated):
        """
        Args:
            connect: Factory for a dedicated (non-pooled) autocommit connection
        """
        self._connect = connect

    def acquire(self, resource: str, timeout_ms: Optional[int] = 0) -> Optional[LockToken]:
        """
        Try to take the lock on a fresh session.

        Args:
            resource: Lock name
            timeout_ms: 0 for no wait, None to wait forever, else max wait

        Returns:
            LockToken holding the session, or None if the lock is held elsewhere
        """
        key = advisory_key(resource)
        conn = self._connect()

        try:
            acquired = self._take(conn, key, timeout_ms)
        except Exception:
            _close_quietly(conn)
            raise

        if not acquired:
            _close_quietly(conn)
            logger.warning(f"Lock '{resource}' is held by another session")
            return None

        logger.info(f"Acquired lock '{resource}' (key={key})")
        return LockToken(resource, key, conn)

    @staticmethod
    def _take(conn, key: int, timeout_ms: Optional[int]) -> bool:
        with conn.cursor() as cursor:
            if timeout_ms == 0:
                cursor.execute("SELECT pg_try_advisory_lock(%s);", (key,))
                return bool(cursor.fetchone()[0])

            cursor.execute("SELECT set_config('lock_timeout', %s, false);", (f"{timeout_ms or 0}ms",))
            try:
                cursor.execute("SELECT pg_advisory_lock(%s);", (key,))
            except errors.LockNotAvailable:
                return False
            finally:
                cursor.execute("SELECT set_config('lock_timeout', '0', false);")
            return True

    def release(self, token: LockToken) -> bool:
        """
        Unlock and close the session. Errors are logged, not raised.

        Args:
            token: Token returned by acquire

        Returns:
            True if unlock succeeded (or the token was already released)
        """
        if token.released:
            return True

        clean = True
        try:
            with token.connection.cursor() as cursor:
                cursor.execute("SELECT pg_advisory_unlock(%s);", (token.key,))
                row = cursor.fetchone()
                clean = bool(row and row[0])
        except psycopg2.Error as e:
            clean = False
            logger.warning(f"Unlocking '{token.resource}' failed, closing session instead: {e}")
        finally:
            clean = _close_quietly(token.connection) and clean
            token.released = True

        logger.info(f"Released lock '{token.resource}'")
        return clean


def _close_quietly(conn) -> bool:
    try:
        conn.close()
        return True
    except psycopg2.Error as e:
        logger.warning(f"Closing lock connection failed: {e}")
        return False
