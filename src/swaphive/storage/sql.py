"""Key-value store persisted through SQLAlchemy (async).

Any async SQLAlchemy URL works; the default is a local SQLite file through
aiosqlite.
"""

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from swaphive.storage.base import KeyValueStore
from swaphive.storage.models import Base, KeyValueEntry

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Use the aiosqlite driver for plain sqlite URLs."""
    if url.startswith("sqlite:///") and "aiosqlite" not in url:
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return url


def ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a SQLite database file."""
    if not url.startswith("sqlite") or ":memory:" in url or ":///" not in url:
        return
    path = url.split(":///", 1)[1]
    if path:
        Path(path).parent.mkdir(parents=True, exist_ok=True)


class SQLStore(KeyValueStore):
    """Scoped key-value store backed by the ``kv_entries`` table."""

    def __init__(self, engine: AsyncEngine, scope: str = "swaphive"):
        super().__init__(scope)
        self.engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_url(cls, database_url: str, scope: str = "swaphive", echo: bool = False) -> "SQLStore":
        ensure_sqlite_directory(database_url)
        engine = create_async_engine(normalize_database_url(database_url), echo=echo)
        return cls(engine, scope=scope)

    async def init(self) -> None:
        """Create tables if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back on error."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def get(self, key: str, default: Optional[Any] = None) -> Any:
        async with self.session() as session:
            result = await session.execute(
                select(KeyValueEntry.value).where(KeyValueEntry.key == self.scoped(key))
            )
            raw = result.scalar_one_or_none()

        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error(f"Corrupt value stored under {self.scoped(key)}: {e}")
            return default

    async def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        async with self.session() as session:
            entry = await session.get(KeyValueEntry, self.scoped(key))
            if entry is None:
                session.add(KeyValueEntry(key=self.scoped(key), value=encoded))
            else:
                entry.value = encoded

    async def delete(self, key: str) -> None:
        async with self.session() as session:
            await session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == self.scoped(key)))
