"""Tests for the in-memory store and its blob persistence"""
import base64

import pytest

from data_access import WorkspaceDB
from database import DB_STORAGE_KEY, PersistentStore, decode_dump, encode_dump
from errors import CorruptBlobError
from storage import MemoryStorage
from tests.conftest import make_user


@pytest.mark.asyncio
async def test_initialize_creates_schema_and_persists(storage):
    store = PersistentStore(storage)
    await store.initialize()
    try:
        blob = storage.get(DB_STORAGE_KEY)
        assert blob
        script = decode_dump(blob)
        for table in ("users", "teams", "team_members", "meetings", "documents", "files", "messages"):
            assert f'CREATE TABLE {table}' in script or f'CREATE TABLE "{table}"' in script
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_initialize_is_idempotent(store):
    engine = store.engine
    await store.initialize()
    assert store.engine is engine
    assert store.is_initialized


@pytest.mark.asyncio
async def test_export_requires_initialize():
    store = PersistentStore(MemoryStorage())
    with pytest.raises(RuntimeError):
        await store.export_blob()


def test_blob_encoding_is_base64_text():
    blob = encode_dump("CREATE TABLE t(x);")
    assert base64.b64decode(blob) == b"CREATE TABLE t(x);"
    assert decode_dump(blob) == "CREATE TABLE t(x);"


def test_decode_rejects_garbage():
    with pytest.raises(CorruptBlobError):
        decode_dump("not base64 at all!")


@pytest.mark.asyncio
async def test_restart_restores_rows(storage, db, ana):
    restarted = PersistentStore(storage)
    await restarted.initialize()
    try:
        users = await WorkspaceDB(restarted).list_users()
        assert users == [ana]
    finally:
        await restarted.close()


@pytest.mark.asyncio
async def test_corrupt_blob_is_set_aside(storage):
    storage.set(DB_STORAGE_KEY, "%%% definitely not a database %%%")
    store = PersistentStore(storage)
    await store.initialize()
    try:
        assert storage.get(f"{DB_STORAGE_KEY}.corrupt") == "%%% definitely not a database %%%"
        assert await WorkspaceDB(store).list_users() == []
        # A fresh schema replaced the unreadable blob
        assert decode_dump(storage.get(DB_STORAGE_KEY))
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_invalid_sql_blob_is_set_aside(storage):
    storage.set(DB_STORAGE_KEY, encode_dump("THIS IS NOT SQL;"))
    store = PersistentStore(storage)
    await store.initialize()
    try:
        assert storage.get(f"{DB_STORAGE_KEY}.corrupt") is not None
        assert await WorkspaceDB(store).list_teams() == []
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_persist_failure_keeps_memory_state(storage, store, db):
    # Freeze the quota at what is stored right now
    storage.quota_bytes = len(DB_STORAGE_KEY) + len(storage.get(DB_STORAGE_KEY))
    saved = storage.get(DB_STORAGE_KEY)

    result = await db.signup("Ana", "ana@x.com", "pw1")
    assert result.success
    assert result.persisted is False
    assert store.unsaved_changes is True
    assert storage.get(DB_STORAGE_KEY) == saved
    assert [u.email for u in await db.list_users()] == ["ana@x.com"]

    storage.quota_bytes = None
    assert await store.persist() is True
    assert store.unsaved_changes is False


@pytest.mark.asyncio
async def test_session_rolls_back_on_error(store, db):
    from models import UserRow

    with pytest.raises(ValueError):
        async with store.session() as session:
            session.add(UserRow(id="user_x", name="X", email="x@x.com", password="h"))
            await session.flush()
            raise ValueError("boom")
    assert await db.list_users() == []


@pytest.mark.asyncio
async def test_separate_stores_are_isolated():
    first = PersistentStore(MemoryStorage())
    second = PersistentStore(MemoryStorage())
    await first.initialize()
    await second.initialize()
    try:
        await make_user(WorkspaceDB(first), "Ana", "ana@x.com")
        assert await WorkspaceDB(second).list_users() == []
    finally:
        await first.close()
        await second.close()
