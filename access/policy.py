from __future__ import annotations

from dataclasses import dataclass

from access.store import is_admin
from access.store import is_super_admin
from access.store import is_whitelisted
from db.backend import StorageBackend


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str


async def check_chat_access(backend: StorageBackend, user_id: int) -> AccessDecision:
    # admins never need a whitelist row
    if await is_admin(backend, user_id):
        return AccessDecision(True, "admin")
    if await is_whitelisted(backend, user_id):
        return AccessDecision(True, "whitelisted")
    return AccessDecision(False, "not_whitelisted")


async def user_may_chat(backend: StorageBackend, user_id: int) -> bool:
    return (await check_chat_access(backend, user_id)).allowed


async def user_may_manage_whitelist(backend: StorageBackend, user_id: int) -> bool:
    return await is_admin(backend, user_id)


async def user_may_grant_admin(backend: StorageBackend, user_id: int) -> bool:
    return await is_super_admin(backend, user_id)
