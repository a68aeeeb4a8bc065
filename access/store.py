from __future__ import annotations

from typing import Any

from access.models import AdminEntry
from access.models import WhitelistEntry
from db.backend import StorageBackend
from db.backend import coerce_timestamp


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _row_to_whitelist_entry(row: dict[str, Any]) -> WhitelistEntry:
    return WhitelistEntry(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        username=row.get("username"),
        added_by=int(row["added_by"]),
        added_at=coerce_timestamp(row.get("added_at")),
        notes=row.get("notes"),
    )


def _row_to_admin_entry(row: dict[str, Any]) -> AdminEntry:
    return AdminEntry(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        username=row.get("username"),
        is_super=bool(row.get("is_super")),
        added_at=coerce_timestamp(row.get("added_at")),
    )


# =========================
# CHECKS
# =========================
async def is_admin(backend: StorageBackend, user_id: int) -> bool:
    row = await backend.fetch_optional(
        "SELECT 1 AS hit FROM admins WHERE user_id = ? LIMIT 1",
        (int(user_id),),
    )
    return row is not None


async def is_super_admin(backend: StorageBackend, user_id: int) -> bool:
    # is_super = ? keeps the boolean literal out of the SQL text (1 vs TRUE)
    row = await backend.fetch_optional(
        "SELECT 1 AS hit FROM admins WHERE user_id = ? AND is_super = ? LIMIT 1",
        (int(user_id), True),
    )
    return row is not None


async def is_whitelisted(backend: StorageBackend, user_id: int) -> bool:
    row = await backend.fetch_optional(
        "SELECT 1 AS hit FROM whitelist_users WHERE user_id = ? LIMIT 1",
        (int(user_id),),
    )
    return row is not None


# =========================
# WHITELIST
# =========================
async def add_whitelist_user(
    backend: StorageBackend,
    user_id: int,
    *,
    added_by: int,
    username: str | None = None,
    notes: str | None = None,
) -> bool:
    """Grant access to ``user_id``; an existing entry is left untouched.

    Returns True when a row was written, False when the user was already
    whitelisted.
    """
    return await backend.insert_ignore(
        "whitelist_users",
        {
            "user_id": int(user_id),
            "username": _clean_text(username),
            "added_by": int(added_by),
            "notes": _clean_text(notes),
        },
        conflict_column="user_id",
    )


async def remove_whitelist_user(backend: StorageBackend, user_id: int) -> bool:
    deleted = await backend.execute(
        "DELETE FROM whitelist_users WHERE user_id = ?",
        (int(user_id),),
    )
    return deleted > 0


async def list_whitelist_users(backend: StorageBackend) -> list[WhitelistEntry]:
    rows = await backend.fetch_all(
        """
        SELECT id, user_id, username, added_by, added_at, notes
        FROM whitelist_users
        ORDER BY added_at DESC, id DESC
        """
    )
    return [_row_to_whitelist_entry(r) for r in rows]


# =========================
# ADMINS
# =========================
async def add_admin(
    backend: StorageBackend,
    user_id: int,
    *,
    username: str | None = None,
    is_super: bool = False,
) -> bool:
    """Idempotent like add_whitelist_user; an existing admin keeps its tier."""
    return await backend.insert_ignore(
        "admins",
        {
            "user_id": int(user_id),
            "username": _clean_text(username),
            "is_super": bool(is_super),
        },
        conflict_column="user_id",
    )


async def list_admins(backend: StorageBackend) -> list[AdminEntry]:
    rows = await backend.fetch_all(
        """
        SELECT id, user_id, username, is_super, added_at
        FROM admins
        ORDER BY is_super DESC, added_at ASC, id ASC
        """
    )
    return [_row_to_admin_entry(r) for r in rows]
