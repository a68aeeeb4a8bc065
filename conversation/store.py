from __future__ import annotations

from typing import Any

from config.defaults import MESSAGE_ROLES
from conversation.models import ChatTurn
from conversation.models import Session
from db.backend import StorageBackend
from db.backend import coerce_timestamp


def _row_to_session(row: dict[str, Any] | None) -> Session | None:
    if row is None:
        return None
    return Session(
        id=int(row["id"]),
        chat_id=int(row["chat_id"]),
        created_at=coerce_timestamp(row.get("created_at")),
        updated_at=coerce_timestamp(row.get("updated_at")),
    )


async def fetch_session(backend: StorageBackend, chat_id: int) -> Session | None:
    row = await backend.fetch_optional(
        """
        SELECT id, chat_id, created_at, updated_at
        FROM sessions
        WHERE chat_id = ?
        ORDER BY id ASC
        LIMIT 1
        """,
        (int(chat_id),),
    )
    return _row_to_session(row)


async def find_or_create_session(backend: StorageBackend, chat_id: int) -> int:
    # Read-then-write without a lock: two first contacts for the same chat
    # can both insert. The lowest id is the one every later lookup returns.
    row = await backend.fetch_optional(
        "SELECT id FROM sessions WHERE chat_id = ? ORDER BY id ASC LIMIT 1",
        (int(chat_id),),
    )
    if row is not None:
        session_id = int(row["id"])
        await backend.execute(
            f"UPDATE sessions SET updated_at = {backend.now_sql} WHERE id = ?",
            (session_id,),
        )
        return session_id

    return await backend.insert_returning_id(
        "INSERT INTO sessions (chat_id) VALUES (?)",
        (int(chat_id),),
    )


async def clear_history(backend: StorageBackend, chat_id: int) -> None:
    # messages first: sessions(id) is referenced by messages(session_id)
    await backend.execute(
        """
        DELETE FROM messages
        WHERE session_id IN (SELECT id FROM sessions WHERE chat_id = ?)
        """,
        (int(chat_id),),
    )
    await backend.execute("DELETE FROM sessions WHERE chat_id = ?", (int(chat_id),))


async def append_message(backend: StorageBackend, session_id: int, role: str, content: str) -> None:
    if role not in MESSAGE_ROLES:
        raise ValueError(f"unsupported message role: {role!r}")
    await backend.execute(
        "INSERT INTO messages (session_id, role, content) VALUES (?, ?, ?)",
        (int(session_id), role, str(content)),
    )


async def fetch_recent_messages(backend: StorageBackend, session_id: int, limit: int) -> list[ChatTurn]:
    lim = int(limit)
    if lim < 0:
        raise ValueError("limit must be >= 0")
    if lim == 0:
        return []

    rows = await backend.fetch_all(
        """
        SELECT role, content
        FROM (
            SELECT id, role, content, timestamp
            FROM messages
            WHERE session_id = ?
            ORDER BY timestamp DESC, id DESC
            LIMIT ?
        ) AS recent
        ORDER BY timestamp ASC, id ASC
        """,
        (int(session_id), lim),
    )
    return [ChatTurn(role=str(r["role"]), content=str(r["content"])) for r in rows]


async def count_messages(backend: StorageBackend, session_id: int) -> int:
    row = await backend.fetch_one(
        "SELECT COUNT(*) AS n FROM messages WHERE session_id = ?",
        (int(session_id),),
    )
    return int(row["n"])
