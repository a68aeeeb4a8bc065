from __future__ import annotations

from db.backend import StorageBackend


SQLITE_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        chat_id INTEGER NOT NULL,
        created_at TIMESTAMP DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
        updated_at TIMESTAMP DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id INTEGER NOT NULL,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        timestamp TIMESTAMP DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
        FOREIGN KEY (session_id) REFERENCES sessions(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sessions_chat_id ON sessions(chat_id)",
    "CREATE INDEX IF NOT EXISTS idx_messages_session_ts ON messages(session_id, timestamp, id)",
)

POSTGRES_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id SERIAL PRIMARY KEY,
        chat_id BIGINT NOT NULL,
        created_at TIMESTAMP DEFAULT (NOW() AT TIME ZONE 'utc'),
        updated_at TIMESTAMP DEFAULT (NOW() AT TIME ZONE 'utc')
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id SERIAL PRIMARY KEY,
        session_id INTEGER NOT NULL,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        timestamp TIMESTAMP DEFAULT (NOW() AT TIME ZONE 'utc'),
        FOREIGN KEY (session_id) REFERENCES sessions(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sessions_chat_id ON sessions(chat_id)",
    "CREATE INDEX IF NOT EXISTS idx_messages_session_ts ON messages(session_id, timestamp, id)",
)


async def upgrade(backend: StorageBackend) -> None:
    statements = POSTGRES_STATEMENTS if backend.dialect == "postgres" else SQLITE_STATEMENTS
    for sql in statements:
        await backend.execute(sql)
