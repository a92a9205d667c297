"""
KeyValueStore interface for pluggable save-game backends.

The game only needs a durable key -> text store (the browser version used
``localStorage``). This module provides the abstract interface and three
concrete implementations:

1. InMemoryStore - Dict-based storage, data lost on exit (testing, prototyping)
2. JsonFileStore - One human-readable JSON file (single player, local play)
3. PostgresStore - Table-backed storage, many players in one database

Key responsibilities:
- get/set/delete text values by key
- Batch writes so a save touches the backend once
- Report backend failures as StorageUnavailableError, never as driver errors

Async design rationale:
- File and database I/O happen at the session boundary only; ledger and
  index operations stay synchronous and finish before any await
- initialize() and close() manage connection lifecycle (pools, files, etc.)

Usage pattern:
    store = JsonFileStore("geocoin_save.json")
    await store.initialize()
    await store.set_many({"player": "[]", "caches": "[]"})
    await store.close()
"""

import asyncio
import contextlib
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import AsyncIterator, Dict, List, Mapping, Optional

from .config import Config
from .logging_utils import log_error

try:  # Optional dependency (only needed for PostgresStore)
    import asyncpg
except ImportError:  # pragma: no cover - asyncpg may not be installed for json/memory usage
    asyncpg = None


class StorageUnavailableError(Exception):
    """Raised when the backing store cannot be read or written.

    Sessions catch this on save: the in-memory game stays authoritative and
    the player is warned that progress may not persist.
    """

    def __init__(self, operation: str, key: Optional[str] = None, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.key = key
        self.cause = cause
        target = f" '{key}'" if key else ""
        detail = f": {cause}" if cause else ""
        super().__init__(f"Storage unavailable during {operation}{target}{detail}")


class KeyValueStore(ABC):
    """Abstract base class for save-game storage.

    Method categories:
    1. Lifecycle: initialize(), close()
    2. Single keys: get(), set(), delete()
    3. Bulk: set_many(), clear(), keys()

    Concrete implementations:
    - InMemoryStore: Fast, ephemeral, no dependencies (testing/prototyping)
    - JsonFileStore: Human-readable file, atomic replace on every write
    - PostgresStore: Shared database, one namespace per player
    - Custom: Implement this interface for Redis, S3, browser bridges, etc.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Open files/connections. Called once before the first read."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release files/connections. Data must survive for the next initialize()."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored text for ``key``, or None if absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key."""
        pass

    @abstractmethod
    async def keys(self) -> List[str]:
        """List stored keys."""
        pass

    async def set_many(self, items: Mapping[str, str]) -> None:
        """Store several keys. Backends override this to write once."""
        for key, value in items.items():
            await self.set(key, value)


class InMemoryStore(KeyValueStore):
    """In-memory store using a Python dict (no database, no files).

    Data is ephemeral and lost when the process exits. Zero dependencies,
    perfect for tests and throwaway sessions.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        # Data is kept so callers can inspect what was saved
        pass

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)

    async def clear(self) -> None:
        self.data.clear()

    async def keys(self) -> List[str]:
        return sorted(self.data)


class JsonFileStore(KeyValueStore):
    """File-based store keeping every key in one JSON object.

    File format:
    ```
    {
      "player": "[{\\"i\\": 369894, ...}]",
      "caches": "[...]",
      ...
    }
    ```

    Values stay as text so the file mirrors the ``localStorage`` layout of the
    browser version. Every write replaces the whole file atomically (temp
    file + ``os.replace``), so a crash mid-save leaves the previous save.

    An unreadable file is moved aside to ``<name>.corrupt`` and the store
    starts empty, rather than refusing to start the game.

    Async operations:
    - All file I/O runs in thread pool (asyncio.to_thread)
    - The in-memory copy is updated before the write, so reads reflect the
      latest set() even if the disk write fails
    """

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path or Config.SAVE_PATH)
        self._data: Dict[str, str] = {}
        # Serializes flushes so overlapping saves never share the temp file
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        self._data = await asyncio.to_thread(self._load)

    async def close(self) -> None:
        # Every write is flushed immediately; nothing to clean up
        return None

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        await self.set_many({key: value})

    async def set_many(self, items: Mapping[str, str]) -> None:
        self._data.update(items)
        key = next(iter(items)) if len(items) == 1 else None
        await self._flush("write", key)

    async def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            await self._flush("delete", key)

    async def clear(self) -> None:
        self._data.clear()
        await self._flush("clear")

    async def keys(self) -> List[str]:
        return sorted(self._data)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text("utf-8"))
        except OSError as exc:
            raise StorageUnavailableError("initialize", cause=exc) from exc
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            return self._quarantine(exc)

        if not isinstance(payload, dict):
            return self._quarantine(ValueError("top-level value is not an object"))
        return {str(key): value for key, value in payload.items() if isinstance(value, str)}

    def _quarantine(self, reason: Exception) -> Dict[str, str]:
        aside = self.path.with_name(self.path.name + ".corrupt")
        log_error(f"[Storage] Save file {self.path} is unreadable ({reason}); moved to {aside}")
        try:
            os.replace(self.path, aside)
        except OSError as exc:
            raise StorageUnavailableError("initialize", cause=exc) from exc
        return {}

    async def _flush(self, operation: str, key: Optional[str] = None) -> None:
        async with self._write_lock:
            snapshot = dict(self._data)

            def _write() -> None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp = self.path.with_name(self.path.name + ".tmp")
                tmp.write_text(json.dumps(snapshot, indent=2, sort_keys=True), "utf-8")
                os.replace(tmp, self.path)

            try:
                await asyncio.to_thread(_write)
            except OSError as exc:
                raise StorageUnavailableError(operation, key, exc) from exc


class PostgresStore(KeyValueStore):
    """PostgreSQL-backed store for hosting many players in one database.

    Table layout (created on initialize if missing):
    - geocoin_store(namespace TEXT, key TEXT, value TEXT, PRIMARY KEY(namespace, key))

    ``namespace`` separates players/save slots; every method only touches its
    own namespace. Connection pool managed by asyncpg.
    """

    CREATE_TABLE = """
        CREATE TABLE IF NOT EXISTS geocoin_store (
            namespace TEXT NOT NULL,
            key TEXT NOT NULL,
            value TEXT NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            PRIMARY KEY (namespace, key)
        )
    """

    UPSERT = """
        INSERT INTO geocoin_store (namespace, key, value)
        VALUES ($1, $2, $3)
        ON CONFLICT (namespace, key) DO UPDATE SET value = $3, updated_at = now()
    """

    def __init__(self, database_url: Optional[str] = None, namespace: str = "default"):
        if asyncpg is None:  # pragma: no cover - handled during runtime when dependency missing
            raise ImportError(
                "asyncpg is required for PostgresStore. Install with `pip install geocoin[postgres]`."
            )

        self.database_url = database_url or Config.DATABASE_URL
        self.namespace = namespace
        self.pool: Optional["asyncpg.Pool"] = None

    async def initialize(self) -> None:
        if self.pool is not None:
            return
        async with self._translate("initialize"):
            self.pool = await asyncpg.create_pool(self.database_url)
            async with self.pool.acquire() as conn:
                await conn.execute(self.CREATE_TABLE)

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    async def get(self, key: str) -> Optional[str]:
        assert self.pool is not None, "Store not initialized"
        query = "SELECT value FROM geocoin_store WHERE namespace = $1 AND key = $2"
        async with self._translate("read", key):
            async with self.pool.acquire() as conn:
                return await conn.fetchval(query, self.namespace, key)

    async def set(self, key: str, value: str) -> None:
        await self.set_many({key: value})

    async def set_many(self, items: Mapping[str, str]) -> None:
        assert self.pool is not None, "Store not initialized"
        if not items:
            return
        records = [(self.namespace, key, value) for key, value in items.items()]
        async with self._translate("write"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(self.UPSERT, records)

    async def delete(self, key: str) -> None:
        assert self.pool is not None, "Store not initialized"
        query = "DELETE FROM geocoin_store WHERE namespace = $1 AND key = $2"
        async with self._translate("delete", key):
            async with self.pool.acquire() as conn:
                await conn.execute(query, self.namespace, key)

    async def clear(self) -> None:
        assert self.pool is not None, "Store not initialized"
        async with self._translate("clear"):
            async with self.pool.acquire() as conn:
                await conn.execute("DELETE FROM geocoin_store WHERE namespace = $1", self.namespace)

    async def keys(self) -> List[str]:
        assert self.pool is not None, "Store not initialized"
        query = "SELECT key FROM geocoin_store WHERE namespace = $1 ORDER BY key"
        async with self._translate("read"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, self.namespace)
        return [row["key"] for row in rows]

    @contextlib.asynccontextmanager
    async def _translate(self, operation: str, key: Optional[str] = None) -> AsyncIterator[None]:
        try:
            yield
        except (asyncpg.PostgresError, OSError) as exc:
            raise StorageUnavailableError(operation, key, exc) from exc
