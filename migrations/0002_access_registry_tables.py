from __future__ import annotations

from db.backend import StorageBackend


SQLITE_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS whitelist_users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL UNIQUE,
        username TEXT,
        added_by INTEGER NOT NULL,
        added_at TIMESTAMP DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
        notes TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS admins (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL UNIQUE,
        username TEXT,
        is_super INTEGER DEFAULT 0,
        added_at TIMESTAMP DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now'))
    )
    """,
)

POSTGRES_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS whitelist_users (
        id SERIAL PRIMARY KEY,
        user_id BIGINT NOT NULL UNIQUE,
        username TEXT,
        added_by BIGINT NOT NULL,
        added_at TIMESTAMP DEFAULT (NOW() AT TIME ZONE 'utc'),
        notes TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS admins (
        id SERIAL PRIMARY KEY,
        user_id BIGINT NOT NULL UNIQUE,
        username TEXT,
        is_super BOOLEAN DEFAULT FALSE,
        added_at TIMESTAMP DEFAULT (NOW() AT TIME ZONE 'utc')
    )
    """,
)


async def upgrade(backend: StorageBackend) -> None:
    statements = POSTGRES_STATEMENTS if backend.dialect == "postgres" else SQLITE_STATEMENTS
    for sql in statements:
        await backend.execute(sql)
