from __future__ import annotations

import asyncio
import re
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, Sequence

import asyncpg

from config.defaults import DEFAULT_DATABASE_URL
from config.defaults import DEFAULT_DB_MAX_CONNECTIONS

_PG_STATUS_COUNT_RE = re.compile(r"(\d+)\s*$")


def is_postgres_url(database_url: str) -> bool:
    url = str(database_url or "").strip().lower()
    return url.startswith("postgres:") or url.startswith("postgresql:")


def sqlite_path_from_url(database_url: str) -> str:
    path = str(database_url or "").strip()
    for prefix in ("sqlite://", "sqlite:"):
        if path.startswith(prefix):
            path = path[len(prefix):]
            break
    path = path.split("?", 1)[0]
    if not path:
        return ":memory:"
    return path


def to_numbered_placeholders(sql: str) -> str:
    """Rewrite ``?`` placeholders as ``$1..$n``, leaving quoted literals alone."""
    out: list[str] = []
    n = 0
    quote: str | None = None
    for ch in sql:
        if quote:
            out.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
            out.append(ch)
        elif ch == "?":
            n += 1
            out.append(f"${n}")
        else:
            out.append(ch)
    return "".join(out)


def coerce_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


class StorageBackend:
    """Positional-parameter statement runner shared by every store.

    Call sites always write ``?`` placeholders. Subclasses own everything
    dialect specific: placeholder style, identity retrieval, idempotent
    insert syntax and the current-timestamp expression.
    """

    dialect: str = ""
    now_sql: str = "CURRENT_TIMESTAMP"

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        raise NotImplementedError

    async def fetch_optional(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        raise NotImplementedError

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        raise NotImplementedError

    async def insert_returning_id(self, sql: str, params: Sequence[Any] = ()) -> int:
        raise NotImplementedError

    async def insert_ignore(self, table: str, values: dict[str, Any], conflict_column: str) -> bool:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any]:
        row = await self.fetch_optional(sql, params)
        if row is None:
            raise LookupError("query returned no rows")
        return row


class _SqliteConnectionPool:
    def __init__(self, path: str, max_size: int):
        self.path = path
        # every :memory: connection is its own database
        self.max_size = 1 if path == ":memory:" else max(1, int(max_size))
        self._idle: asyncio.Queue[sqlite3.Connection] = asyncio.Queue()
        self._all: list[sqlite3.Connection] = []
        self._slots = asyncio.Semaphore(self.max_size)

    def _connect(self) -> sqlite3.Connection:
        # check_same_thread=False because statements run via asyncio.to_thread
        conn = sqlite3.connect(self.path, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        cur = conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON;")
        if self.path != ":memory:":
            cur.execute("PRAGMA journal_mode=WAL;")
            cur.execute("PRAGMA synchronous=NORMAL;")
        conn.commit()
        return conn

    @asynccontextmanager
    async def acquire(self):
        async with self._slots:
            if self._idle.empty():
                conn = await asyncio.to_thread(self._connect)
                self._all.append(conn)
            else:
                conn = self._idle.get_nowait()
            try:
                yield conn
            finally:
                self._idle.put_nowait(conn)

    async def run(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run ``func(conn, *args)`` on a worker thread with a pooled connection.

        A cancelled caller still holds the connection until the worker thread
        is done with it; only then does it return to the pool.
        """
        async with self.acquire() as conn:
            work = asyncio.ensure_future(asyncio.to_thread(func, conn, *args))
            try:
                return await asyncio.shield(work)
            except asyncio.CancelledError:
                while not work.done():
                    try:
                        await asyncio.wait([work])
                    except asyncio.CancelledError:
                        continue
                if not work.cancelled() and work.exception() is not None:
                    print(f"[DB] statement abandoned by a cancelled caller failed: {work.exception()}")
                raise

    async def close(self) -> None:
        conns, self._all = self._all, []
        while not self._idle.empty():
            self._idle.get_nowait()
        for conn in conns:
            await asyncio.to_thread(conn.close)


def _sqlite_execute_sync(conn: sqlite3.Connection, sql: str, params: Sequence[Any]) -> tuple[int, int | None]:
    cur = conn.cursor()
    try:
        cur.execute(sql, tuple(params))
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    return (max(int(cur.rowcount), 0), cur.lastrowid)


def _sqlite_fetch_sync(conn: sqlite3.Connection, sql: str, params: Sequence[Any], limit: int | None) -> list[dict[str, Any]]:
    cur = conn.cursor()
    cur.execute(sql, tuple(params))
    rows = cur.fetchmany(limit) if limit is not None else cur.fetchall()
    return [dict(row) for row in rows]


class SqliteBackend(StorageBackend):
    dialect = "sqlite"
    now_sql = "strftime('%Y-%m-%d %H:%M:%f', 'now')"

    def __init__(self, path: str, *, max_connections: int = DEFAULT_DB_MAX_CONNECTIONS):
        self.path = path
        self._pool = _SqliteConnectionPool(path, max_connections)

    @property
    def max_connections(self) -> int:
        return self._pool.max_size

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        rowcount, _ = await self._pool.run(_sqlite_execute_sync, sql, params)
        return rowcount

    async def fetch_optional(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        rows = await self._pool.run(_sqlite_fetch_sync, sql, params, 1)
        return rows[0] if rows else None

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        return await self._pool.run(_sqlite_fetch_sync, sql, params, None)

    async def insert_returning_id(self, sql: str, params: Sequence[Any] = ()) -> int:
        _, lastrowid = await self._pool.run(_sqlite_execute_sync, sql, params)
        if lastrowid is None:
            raise sqlite3.OperationalError("insert did not produce a rowid")
        return int(lastrowid)

    async def insert_ignore(self, table: str, values: dict[str, Any], conflict_column: str) -> bool:
        cols = list(values.keys())
        if conflict_column not in cols:
            raise ValueError(f"conflict column {conflict_column!r} missing from values")
        sql = (
            f"INSERT OR IGNORE INTO {table} ({', '.join(cols)}) "
            f"VALUES ({', '.join('?' for _ in cols)})"
        )
        return await self.execute(sql, [values[c] for c in cols]) > 0

    async def close(self) -> None:
        await self._pool.close()


def _pg_status_count(status: str | None) -> int:
    m = _PG_STATUS_COUNT_RE.search(str(status or ""))
    return int(m.group(1)) if m else 0


class PostgresBackend(StorageBackend):
    dialect = "postgres"
    now_sql = "(NOW() AT TIME ZONE 'utc')"

    def __init__(self, pool: Any):
        self._pool = pool

    @classmethod
    async def connect(cls, dsn: str, *, max_connections: int = DEFAULT_DB_MAX_CONNECTIONS) -> "PostgresBackend":
        pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=1,
            max_size=max(1, int(max_connections)),
        )
        return cls(pool)

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        status = await self._pool.execute(to_numbered_placeholders(sql), *params)
        return _pg_status_count(status)

    async def fetch_optional(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        row = await self._pool.fetchrow(to_numbered_placeholders(sql), *params)
        return dict(row) if row is not None else None

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        rows = await self._pool.fetch(to_numbered_placeholders(sql), *params)
        return [dict(row) for row in rows]

    async def insert_returning_id(self, sql: str, params: Sequence[Any] = ()) -> int:
        stmt = to_numbered_placeholders(sql.rstrip().rstrip(";")) + " RETURNING id"
        value = await self._pool.fetchval(stmt, *params)
        return int(value)

    async def insert_ignore(self, table: str, values: dict[str, Any], conflict_column: str) -> bool:
        cols = list(values.keys())
        if conflict_column not in cols:
            raise ValueError(f"conflict column {conflict_column!r} missing from values")
        sql = (
            f"INSERT INTO {table} ({', '.join(cols)}) "
            f"VALUES ({', '.join('?' for _ in cols)}) "
            f"ON CONFLICT ({conflict_column}) DO NOTHING"
        )
        return await self.execute(sql, [values[c] for c in cols]) > 0

    async def close(self) -> None:
        await self._pool.close()


async def open_backend(
    database_url: str = DEFAULT_DATABASE_URL,
    *,
    max_connections: int = DEFAULT_DB_MAX_CONNECTIONS,
) -> StorageBackend:
    if is_postgres_url(database_url):
        print(f"[DB] Connecting to PostgreSQL (max_connections={max_connections})")
        return await PostgresBackend.connect(database_url, max_connections=max_connections)

    path = sqlite_path_from_url(database_url)
    print(f"[DB] Using SQLite path={path} (max_connections={max_connections})")
    return SqliteBackend(path, max_connections=max_connections)
