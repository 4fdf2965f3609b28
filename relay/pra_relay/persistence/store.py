"""SQLite-backed conversation reference store.

Holds one row per installed conversation with the addressing data needed to
push notifications into it later. All rows live under a single logical
partition; writes are last-write-wins upserts.

The connection is opened lazily by ``StoreHandle.ensure_ready()``. A failed
initialization leaves the handle closed, so the next operation retries it
instead of poisoning the process.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from datetime import datetime, timezone

import aiosqlite
import pydantic

from pra_relay.errors import DecodeError, StorageUnavailable
from pra_relay.schemas.activity import ConversationReference

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "/app/data/conversation_references.db"
PARTITION_KEY = "channel"

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS conversation_references (
    partition_key TEXT NOT NULL,
    row_key TEXT NOT NULL,
    reference TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (partition_key, row_key)
)
"""


def _db_path(connection_string: str) -> str:
    prefix = "sqlite:///"
    if connection_string.startswith(prefix):
        return connection_string[len(prefix):]
    return connection_string


class StoreHandle:
    """Lazily opened, shared SQLite connection with self-healing init."""

    def __init__(self, connection_string: str = DEFAULT_DB_PATH) -> None:
        self.db_path = _db_path(connection_string)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._conn is not None

    async def ensure_ready(self) -> aiosqlite.Connection:
        """Open the connection and create the table if needed. Idempotent."""
        if self._conn is not None:
            return self._conn
        async with self._lock:
            if self._conn is not None:
                return self._conn
            conn: aiosqlite.Connection | None = None
            try:
                conn = await aiosqlite.connect(self.db_path)
                await conn.execute(_CREATE_TABLE)
                await conn.commit()
            except (aiosqlite.Error, OSError) as e:
                if conn is not None:
                    await conn.close()
                logger.error("Reference store initialization failed: %s", e)
                raise StorageUnavailable(
                    f"Reference store unavailable: {e}"
                ) from e
            self._conn = conn
            logger.info("Reference store ready at %s", self.db_path)
            return conn

    async def reset(self) -> None:
        """Drop the current connection so the next call re-initializes."""
        conn, self._conn = self._conn, None
        if conn is not None:
            try:
                await conn.close()
            except aiosqlite.Error:
                logger.debug("Ignoring error while closing broken connection")

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None


class ReferenceStore:
    """Durable mapping from conversation id to its ConversationReference."""

    def __init__(self, connection_string: str = DEFAULT_DB_PATH) -> None:
        self.handle = StoreHandle(connection_string)

    async def ensure_ready(self) -> None:
        await self.handle.ensure_ready()

    async def upsert(self, ref: ConversationReference) -> None:
        """Insert or overwrite the reference for ref.conversation_id."""
        conn = await self.handle.ensure_ready()
        try:
            await conn.execute(
                """
                INSERT INTO conversation_references
                    (partition_key, row_key, reference, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(partition_key, row_key) DO UPDATE SET
                    reference = excluded.reference,
                    updated_at = excluded.updated_at
                """,
                (PARTITION_KEY, ref.conversation_id, ref.to_json(), _now_iso()),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            await self.handle.reset()
            raise StorageUnavailable(f"Could not store reference: {e}") from e
        logger.info("Stored conversation reference %s", ref.conversation_id)

    async def get(self, conversation_id: str) -> ConversationReference | None:
        """Look up one reference. A corrupt row reads as missing."""
        conn = await self.handle.ensure_ready()
        try:
            cursor = await conn.execute(
                "SELECT row_key, reference FROM conversation_references "
                "WHERE partition_key = ? AND row_key = ?",
                (PARTITION_KEY, conversation_id),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            await self.handle.reset()
            raise StorageUnavailable(f"Could not read reference: {e}") from e
        if row is None:
            return None
        try:
            return _decode(row[0], row[1])
        except DecodeError as e:
            logger.error("%s", e)
            return None

    async def list_all(self) -> AsyncIterator[ConversationReference]:
        """Yield every stored reference, skipping entries that fail to decode.

        Each call runs a fresh query, so the sequence can be restarted.
        """
        conn = await self.handle.ensure_ready()
        try:
            async with conn.execute(
                "SELECT row_key, reference FROM conversation_references "
                "WHERE partition_key = ?",
                (PARTITION_KEY,),
            ) as cursor:
                async for row in cursor:
                    try:
                        yield _decode(row[0], row[1])
                    except DecodeError as e:
                        logger.error("Skipping stored reference: %s", e)
        except aiosqlite.Error as e:
            await self.handle.reset()
            raise StorageUnavailable(f"Could not list references: {e}") from e

    async def remove(self, conversation_id: str) -> bool:
        """Delete a reference. Returns True if a row was removed."""
        conn = await self.handle.ensure_ready()
        try:
            cursor = await conn.execute(
                "DELETE FROM conversation_references "
                "WHERE partition_key = ? AND row_key = ?",
                (PARTITION_KEY, conversation_id),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            await self.handle.reset()
            raise StorageUnavailable(f"Could not remove reference: {e}") from e
        removed = cursor.rowcount > 0
        if removed:
            logger.info("Removed conversation reference %s", conversation_id)
        return removed

    async def close(self) -> None:
        await self.handle.close()


def _decode(row_key: str, payload: str) -> ConversationReference:
    try:
        return ConversationReference.model_validate(json.loads(payload))
    except (json.JSONDecodeError, TypeError, pydantic.ValidationError) as e:
        raise DecodeError(f"Corrupt reference for {row_key}: {e}") from e


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat()
