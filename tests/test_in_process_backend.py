"""In-process backend specifics: SQLite persistence and store failures."""

import pytest
from conftest import blend, make_record, unit

from semantic_memory.core.base import ErrorCode, OperationStage
from semantic_memory.core.errors import BackendError
from semantic_memory.infrastructure.backends import InProcessVectorBackend, SqliteRecordStore


class TestSqlitePersistence:
    """Records survive reopening the database file."""

    @pytest.mark.asyncio
    async def test_records_reloaded_from_file(self, tmp_path):
        path = str(tmp_path / "memories.db")
        first = InProcessVectorBackend(SqliteRecordStore(path))
        record = make_record("Persisted memory.", blend(0.9), metadata={"tags": ["a", "b"]})
        await first.store(record)
        await first.close()

        reopened = InProcessVectorBackend(SqliteRecordStore(path))
        results = await reopened.search("agent-1", "default", unit(0), limit=5, threshold=0.5)

        assert [r.id for r in results] == [record.id]
        assert results[0].metadata == {"tags": ["a", "b"]}
        assert results[0].record.created_at == record.created_at
        await reopened.close()

    @pytest.mark.asyncio
    async def test_duplicate_insert_keeps_first_row(self, tmp_path):
        store = SqliteRecordStore(str(tmp_path / "memories.db"))
        first = make_record("Same text.", unit(0))

        await store.insert(first)
        survivor = await store.insert(make_record("Same text.", unit(1)))

        assert survivor.id == first.id
        assert len(await store.list_records("agent-1", "default")) == 1
        await store.close()


class TestStoreFailures:
    """sqlite errors surface as backend errors."""

    @pytest.mark.asyncio
    async def test_closed_database_search(self):
        store = SqliteRecordStore()
        backend = InProcessVectorBackend(store)
        await store.close()

        with pytest.raises(BackendError) as exc_info:
            await backend.search("agent-1", "default", unit(0), limit=5, threshold=0.0)

        assert exc_info.value.code == ErrorCode.BACKEND_QUERY
        assert exc_info.value.stage == OperationStage.SEARCH

    @pytest.mark.asyncio
    async def test_closed_database_store(self):
        store = SqliteRecordStore()
        backend = InProcessVectorBackend(store)
        await store.close()

        with pytest.raises(BackendError) as exc_info:
            await backend.store(make_record("Too late.", unit(0)))

        assert exc_info.value.code == ErrorCode.BACKEND_WRITE
