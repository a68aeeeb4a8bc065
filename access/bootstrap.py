from __future__ import annotations

import re

from access.store import add_admin
from db.backend import StorageBackend


_ADMIN_ID_RE = re.compile(r"^-?[0-9]+$")


def parse_admin_ids(raw: str | None) -> tuple[list[int], list[str]]:
    """Split a comma-separated id list into (valid ids, rejected tokens).

    Order is preserved and duplicates are dropped.
    """
    ids: list[int] = []
    invalid: list[str] = []
    if not raw or not raw.strip():
        return (ids, invalid)

    seen: set[int] = set()
    for token in raw.split(","):
        text = token.strip()
        if not _ADMIN_ID_RE.match(text):
            invalid.append(token)
            continue
        admin_id = int(text)
        if admin_id in seen:
            continue
        seen.add(admin_id)
        ids.append(admin_id)
    return (ids, invalid)


async def seed_super_admins(backend: StorageBackend, raw: str | None) -> list[int]:
    ids, invalid = parse_admin_ids(raw)
    if not ids and not invalid:
        print("[Access] ADMIN_USER_IDS not set; starting without initial admins")
        return []

    for token in invalid:
        print(f"[Access] invalid admin id {token!r}; skipped")

    for admin_id in ids:
        await add_admin(backend, admin_id, is_super=True)
        print(f"[Access] ensured initial super admin exists: {admin_id}")
    return ids
