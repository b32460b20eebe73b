"""Cache storage backends holding named response partitions."""

import asyncio
import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

import httpx
from sqlmodel import SQLModel, create_engine

from .errors import UnsupportedRequestError
from .logging_config import get_logger
from .models import CacheEntry, CachePartitionRecord, InterceptedRequest, StoredResponse

logger = get_logger(__name__)

RequestLike = InterceptedRequest | str


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Ensure a datetime object is timezone-aware, assuming UTC if naive."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def request_key(request: RequestLike) -> str | None:
    """Return the cache key for a request, or None if it can never be cached."""
    if isinstance(request, str):
        return request
    if request.method != "GET":
        return None
    return request.url


def storable_key(request: RequestLike) -> str:
    """Return the cache key for a request that is about to be written."""
    key = request_key(request)
    if key is None:
        raise UnsupportedRequestError(f"Only GET requests can be cached, got {request.method}")
    return key


class CachePartition(Protocol):
    """Port for a single named partition."""

    name: str

    async def match(self, request: RequestLike) -> httpx.Response | None:
        """Return a fresh copy of the stored response, or None."""
        ...

    async def put(self, request: RequestLike, response: httpx.Response) -> None:
        """Store a response, overwriting any previous one."""
        ...

    async def put_all(self, items: list[tuple[RequestLike, httpx.Response]]) -> None:
        """Store several responses in one all-or-nothing write."""
        ...

    async def delete(self, request: RequestLike) -> bool:
        """Remove a stored response."""
        ...

    async def keys(self) -> list[str]:
        """List stored request URLs."""
        ...


class CacheStorage(Protocol):
    """Port for the collection of named partitions."""

    async def open(self, name: str) -> CachePartition:
        """Open a partition, creating it if needed."""
        ...

    async def has(self, name: str) -> bool:
        ...

    async def delete(self, name: str) -> bool:
        """Delete a whole partition."""
        ...

    async def keys(self) -> list[str]:
        """List partition names in creation order."""
        ...

    async def match(self, request: RequestLike) -> httpx.Response | None:
        """Look a request up across every partition."""
        ...


class MemoryCachePartition:
    """Partition kept in process memory."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: dict[str, StoredResponse] = {}

    async def match(self, request: RequestLike) -> httpx.Response | None:
        key = request_key(request)
        if key is None:
            return None
        stored = self._entries.get(key)
        return stored.to_response() if stored else None

    async def put(self, request: RequestLike, response: httpx.Response) -> None:
        key = storable_key(request)
        self._entries[key] = StoredResponse.from_response(key, response)

    async def put_all(self, items: list[tuple[RequestLike, httpx.Response]]) -> None:
        # Snapshot everything first so a bad item leaves the partition untouched
        snapshots = {}
        for request, response in items:
            key = storable_key(request)
            snapshots[key] = StoredResponse.from_response(key, response)
        self._entries.update(snapshots)

    async def delete(self, request: RequestLike) -> bool:
        key = request_key(request)
        return self._entries.pop(key, None) is not None if key else False

    async def keys(self) -> list[str]:
        return list(self._entries)


class MemoryCacheStorage:
    """In-process cache storage; partitions live as long as the process."""

    def __init__(self) -> None:
        self._partitions: dict[str, MemoryCachePartition] = {}

    async def open(self, name: str) -> MemoryCachePartition:
        if name not in self._partitions:
            logger.debug(f"Creating cache partition {name}")
            self._partitions[name] = MemoryCachePartition(name)
        return self._partitions[name]

    async def has(self, name: str) -> bool:
        return name in self._partitions

    async def delete(self, name: str) -> bool:
        return self._partitions.pop(name, None) is not None

    async def keys(self) -> list[str]:
        return list(self._partitions)

    async def match(self, request: RequestLike) -> httpx.Response | None:
        for partition in list(self._partitions.values()):
            response = await partition.match(request)
            if response is not None:
                return response
        return None


class SQLiteCachePartition:
    """Partition stored in the SQLite cache database."""

    def __init__(self, storage: "SQLiteCacheStorage", name: str) -> None:
        self.storage = storage
        self.name = name

    async def match(self, request: RequestLike) -> httpx.Response | None:
        key = request_key(request)
        if key is None:
            return None
        stored = await asyncio.to_thread(self.storage.get_entry, self.name, key)
        return stored.to_response() if stored else None

    async def put(self, request: RequestLike, response: httpx.Response) -> None:
        key = storable_key(request)
        await asyncio.to_thread(self.storage.save_entries, self.name, [StoredResponse.from_response(key, response)])

    async def put_all(self, items: list[tuple[RequestLike, httpx.Response]]) -> None:
        snapshots = []
        for request, response in items:
            key = storable_key(request)
            snapshots.append(StoredResponse.from_response(key, response))
        await asyncio.to_thread(self.storage.save_entries, self.name, snapshots)

    async def delete(self, request: RequestLike) -> bool:
        key = request_key(request)
        if key is None:
            return False
        return await asyncio.to_thread(self.storage.delete_entry, self.name, key)

    async def keys(self) -> list[str]:
        return await asyncio.to_thread(self.storage.get_entry_urls, self.name)


class SQLiteCacheStorage:
    """Cache storage persisted in a SQLite database so it survives restarts."""

    def __init__(self, db_path: Path) -> None:
        """Initialize storage with database path."""
        self.db_path = db_path
        self._init_database()

    def _init_database(self) -> None:
        """Create the database file and its tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(f"sqlite:///{self.db_path}")
        SQLModel.metadata.create_all(
            engine,
            tables=[CachePartitionRecord.__table__, CacheEntry.__table__],  # type: ignore[attr-defined]
        )
        engine.dispose()

    # Partition methods
    def create_partition(self, name: str) -> None:
        """Record a partition if it does not exist yet."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT OR IGNORE INTO cache_partitions (name, created_at) VALUES (?, ?)",
                (name, datetime.now(UTC).isoformat())
            )
            conn.commit()

    def partition_exists(self, name: str) -> bool:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("SELECT 1 FROM cache_partitions WHERE name = ?", (name,))
            return cursor.fetchone() is not None

    def drop_partition(self, name: str) -> bool:
        """Delete a partition and all of its entries."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM cache_entries WHERE cache_name = ?", (name,))
            cursor = conn.execute("DELETE FROM cache_partitions WHERE name = ?", (name,))
            conn.commit()
            return cursor.rowcount > 0

    def get_partition_names(self) -> list[str]:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("SELECT name FROM cache_partitions ORDER BY created_at, rowid")
            return [row[0] for row in cursor.fetchall()]

    # Entry methods
    def get_entry(self, name: str, url: str) -> StoredResponse | None:
        """Get a stored response."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT status_code, headers, body, stored_at FROM cache_entries WHERE cache_name = ? AND url = ?",
                (name, url)
            )
            row = cursor.fetchone()

            if row is None:
                return None

            status_code, headers_str, body, stored_at = row
            return StoredResponse(
                url=url,
                status_code=status_code,
                headers=[tuple(pair) for pair in json.loads(headers_str)],
                body=body or b"",
                stored_at=ensure_timezone_aware(datetime.fromisoformat(stored_at)),
            )

    def find_entry(self, url: str) -> StoredResponse | None:
        """Get a stored response from whichever partition was created first."""
        for name in self.get_partition_names():
            stored = self.get_entry(name, url)
            if stored is not None:
                return stored
        return None

    def save_entries(self, name: str, entries: list[StoredResponse]) -> None:
        """Write responses in a single transaction, replacing existing ones."""
        if not entries:
            return

        with sqlite3.connect(self.db_path) as conn:
            for entry in entries:
                conn.execute("""
                    INSERT OR REPLACE INTO cache_entries
                    (cache_name, url, status_code, headers, body, stored_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    name,
                    entry.url,
                    entry.status_code,
                    entry.headers_json(),
                    entry.body,
                    entry.stored_at.isoformat(),
                ))
            conn.commit()

    def delete_entry(self, name: str, url: str) -> bool:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM cache_entries WHERE cache_name = ? AND url = ?", (name, url)
            )
            conn.commit()
            return cursor.rowcount > 0

    def get_entry_urls(self, name: str) -> list[str]:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT url FROM cache_entries WHERE cache_name = ? ORDER BY stored_at", (name,)
            )
            return [row[0] for row in cursor.fetchall()]

    # Storage API
    async def open(self, name: str) -> SQLiteCachePartition:
        await asyncio.to_thread(self.create_partition, name)
        return SQLiteCachePartition(self, name)

    async def has(self, name: str) -> bool:
        return await asyncio.to_thread(self.partition_exists, name)

    async def delete(self, name: str) -> bool:
        return await asyncio.to_thread(self.drop_partition, name)

    async def keys(self) -> list[str]:
        return await asyncio.to_thread(self.get_partition_names)

    async def match(self, request: RequestLike) -> httpx.Response | None:
        key = request_key(request)
        if key is None:
            return None
        stored = await asyncio.to_thread(self.find_entry, key)
        return stored.to_response() if stored else None


def create_storage(backend: str, db_path: Path | None = None) -> CacheStorage:
    """Create the configured storage backend."""
    if backend == "sqlite":
        if db_path is None:
            raise ValueError("SQLite cache backend needs a database path")
        logger.info(f"Using SQLite cache storage at {db_path}")
        return SQLiteCacheStorage(db_path)
    if backend == "memory":
        logger.info("Using in-memory cache storage")
        return MemoryCacheStorage()
    raise ValueError(f"Unknown cache backend: {backend}")
