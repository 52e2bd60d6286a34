"""Record stores behind the in-process backend.

Both stores enforce one record per ``(owner, content_hash)``: the first
insert wins and later inserts get the stored record back.
"""

import asyncio
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import Any

from semantic_memory.core.logging import get_logger
from semantic_memory.domain.models import MemoryRecord

logger = get_logger(__name__)


class RecordStore(ABC):
    """Persistence for memory records without any ranking logic."""

    @abstractmethod
    async def insert(self, record: MemoryRecord) -> MemoryRecord:
        """Insert unless the owner already has this content hash; return the survivor."""

    @abstractmethod
    async def get_by_hash(self, owner: str, content_hash: str) -> MemoryRecord | None: ...

    @abstractmethod
    async def list_records(self, owner: str, namespace: str) -> list[MemoryRecord]: ...

    @abstractmethod
    async def delete(self, owner: str, namespace: str, source: str | None = None) -> int: ...

    async def close(self) -> None:
        pass


class InMemoryRecordStore(RecordStore):
    """Dict-backed store; contents are lost with the process."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], MemoryRecord] = {}
        self._lock = asyncio.Lock()

    async def insert(self, record: MemoryRecord) -> MemoryRecord:
        key = (record.owner, record.content_hash)
        async with self._lock:
            existing = self._records.get(key)
            if existing is not None:
                return existing
            self._records[key] = record
            return record

    async def get_by_hash(self, owner: str, content_hash: str) -> MemoryRecord | None:
        return self._records.get((owner, content_hash))

    async def list_records(self, owner: str, namespace: str) -> list[MemoryRecord]:
        return [r for r in self._records.values() if r.owner == owner and r.namespace == namespace]

    async def delete(self, owner: str, namespace: str, source: str | None = None) -> int:
        async with self._lock:
            doomed = [
                key
                for key, record in self._records.items()
                if record.owner == owner
                and record.namespace == namespace
                and (source is None or record.source == source)
            ]
            for key in doomed:
                del self._records[key]
            return len(doomed)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS vector_memories (
    id TEXT PRIMARY KEY,
    owner TEXT NOT NULL,
    namespace TEXT NOT NULL,
    content TEXT NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}',
    source TEXT,
    source_id TEXT,
    chunk_index INTEGER NOT NULL DEFAULT 0,
    embedding_vector TEXT NOT NULL,
    embedding_provider TEXT NOT NULL,
    embedding_model TEXT NOT NULL,
    embedding_dimensions INTEGER NOT NULL,
    embedding_norm REAL NOT NULL,
    content_hash TEXT NOT NULL,
    token_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    UNIQUE (owner, content_hash)
);
CREATE INDEX IF NOT EXISTS idx_vector_memories_owner_namespace
    ON vector_memories (owner, namespace);
"""

_COLUMNS = (
    "id",
    "owner",
    "namespace",
    "content",
    "metadata",
    "source",
    "source_id",
    "chunk_index",
    "embedding_vector",
    "embedding_provider",
    "embedding_model",
    "embedding_dimensions",
    "embedding_norm",
    "content_hash",
    "token_count",
    "created_at",
)
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM vector_memories"


class SqliteRecordStore(RecordStore):
    """SQLite-backed store.

    Calls run in a worker thread via ``asyncio.to_thread``; a single
    connection is shared and serialized with a lock.
    """

    def __init__(self, path: str | None = None):
        self.path = path or ":memory:"
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn_lock = threading.Lock()
        with self._conn_lock:
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        logger.debug("Opened SQLite record store", path=self.path)

    @staticmethod
    def _to_row(record: MemoryRecord) -> tuple[Any, ...]:
        document = record.to_document()
        document["metadata"] = json.dumps(record.metadata, sort_keys=True)
        document["embedding_vector"] = json.dumps(record.embedding_vector)
        return tuple(document[column] for column in _COLUMNS)

    @staticmethod
    def _to_record(row: sqlite3.Row) -> MemoryRecord:
        data = dict(row)
        data["metadata"] = json.loads(data["metadata"] or "{}")
        data["embedding_vector"] = json.loads(data["embedding_vector"])
        return MemoryRecord.model_validate(data)

    def _insert_sync(self, record: MemoryRecord) -> MemoryRecord:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._conn_lock:
            self._conn.execute(
                f"INSERT OR IGNORE INTO vector_memories ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                self._to_row(record),
            )
            self._conn.commit()
            row = self._conn.execute(
                f"{_SELECT} WHERE owner = ? AND content_hash = ?",
                (record.owner, record.content_hash),
            ).fetchone()
        return self._to_record(row)

    def _get_by_hash_sync(self, owner: str, content_hash: str) -> MemoryRecord | None:
        with self._conn_lock:
            row = self._conn.execute(
                f"{_SELECT} WHERE owner = ? AND content_hash = ?",
                (owner, content_hash),
            ).fetchone()
        return self._to_record(row) if row else None

    def _list_sync(self, owner: str, namespace: str) -> list[MemoryRecord]:
        with self._conn_lock:
            rows = self._conn.execute(
                f"{_SELECT} WHERE owner = ? AND namespace = ?",
                (owner, namespace),
            ).fetchall()
        return [self._to_record(row) for row in rows]

    def _delete_sync(self, owner: str, namespace: str, source: str | None) -> int:
        query = "DELETE FROM vector_memories WHERE owner = ? AND namespace = ?"
        params: tuple[Any, ...] = (owner, namespace)
        if source is not None:
            query += " AND source = ?"
            params += (source,)
        with self._conn_lock:
            cursor = self._conn.execute(query, params)
            self._conn.commit()
            return cursor.rowcount

    async def insert(self, record: MemoryRecord) -> MemoryRecord:
        return await asyncio.to_thread(self._insert_sync, record)

    async def get_by_hash(self, owner: str, content_hash: str) -> MemoryRecord | None:
        return await asyncio.to_thread(self._get_by_hash_sync, owner, content_hash)

    async def list_records(self, owner: str, namespace: str) -> list[MemoryRecord]:
        return await asyncio.to_thread(self._list_sync, owner, namespace)

    async def delete(self, owner: str, namespace: str, source: str | None = None) -> int:
        return await asyncio.to_thread(self._delete_sync, owner, namespace, source)

    async def close(self) -> None:
        with self._conn_lock:
            self._conn.close()
