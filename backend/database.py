# database.py - In-memory async SQLite store with blob persistence
import os
import base64
import binascii
import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from errors import CorruptBlobError, StorageError
from models import Base
from storage import KeyValueStorage

logger = logging.getLogger("collaborax.database")

# Database configuration
DB_STORAGE_KEY = os.getenv("COLLABORAX_DB_KEY", "collaborax_db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# One shared connection keeps the in-memory database alive for the session
MEMORY_DATABASE_URL = "sqlite+aiosqlite://"


def encode_dump(script: str) -> str:
    return base64.b64encode(script.encode("utf-8")).decode("ascii")


def decode_dump(blob: str) -> str:
    try:
        return base64.b64decode(blob.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise CorruptBlobError(f"Stored database is not valid base64 text: {e}") from e


async def _driver_connection(conn):
    """The aiosqlite connection behind an AsyncConnection"""
    raw = await conn.get_raw_connection()
    return raw.driver_connection


class PersistentStore:
    """Owns the live database and its serialized copy in durable storage.

    The blob is the base64 of a full SQL dump. Every persist() rewrites it;
    there is no incremental save.
    """

    def __init__(self, storage: KeyValueStorage, key: str = DB_STORAGE_KEY, echo: bool = SQL_ECHO):
        self.storage = storage
        self.key = key
        self.echo = echo
        self.engine: Optional[AsyncEngine] = None
        self.session_maker: Optional[async_sessionmaker] = None
        self.unsaved_changes = False
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def _create_engine(self) -> AsyncEngine:
        return create_async_engine(
            MEMORY_DATABASE_URL,
            echo=self.echo,
            poolclass=StaticPool,
        )

    async def initialize(self) -> None:
        """Restore the saved database or create a fresh schema"""
        if self._initialized:
            return

        blob = self.storage.get(self.key)
        engine = self._create_engine()
        created = True

        if blob:
            try:
                await self._restore(engine, decode_dump(blob))
                created = False
            except (CorruptBlobError, sqlite3.DatabaseError) as e:
                logger.error(f"Could not restore stored database, starting fresh: {e}")
                await engine.dispose()
                engine = self._create_engine()
                self._quarantine(blob)

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.engine = engine
        self.session_maker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self._initialized = True

        if created:
            await self.persist()
            logger.info("✅ Workspace database created")
        else:
            logger.info("✅ Workspace database restored from storage")

    async def _restore(self, engine: AsyncEngine, script: str) -> None:
        async with engine.connect() as conn:
            driver = await _driver_connection(conn)
            await driver.executescript(script)

    def _quarantine(self, blob: str) -> None:
        try:
            self.storage.set(f"{self.key}.corrupt", blob)
        except StorageError as e:
            logger.warning(f"Could not keep a copy of the unreadable database: {e}")

    def _require_engine(self) -> AsyncEngine:
        if not self._initialized or self.engine is None:
            raise RuntimeError("PersistentStore.initialize() has not been awaited")
        return self.engine

    async def export_blob(self) -> str:
        """Serialize the full database to base64 text"""
        engine = self._require_engine()
        async with engine.connect() as conn:
            driver = await _driver_connection(conn)
            lines = [line async for line in driver.iterdump()]
        return encode_dump("\n".join(lines))

    async def persist(self) -> bool:
        """Overwrite the durable blob. Storage failures are non-fatal."""
        blob = await self.export_blob()
        try:
            self.storage.set(self.key, blob)
        except StorageError as e:
            self.unsaved_changes = True
            logger.warning(f"⚠️  Workspace changes were not saved and will be lost on reload: {e}")
            return False
        self.unsaved_changes = False
        return True

    @asynccontextmanager
    async def session(self):
        """Unit of work: commits on success, rolls back on error"""
        self._require_engine()
        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self.session_maker = None
        self._initialized = False
