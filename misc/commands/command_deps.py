from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from typing import Callable


async def _default_false(*args, **kwargs) -> bool:
    return False


@dataclass(frozen=True)
class CommandDeps:
    # Core/shared
    backend: Any = None
    send_chunked: Callable | None = None

    # Conversation store
    clear_history_func: Callable | None = None

    # Access registry
    add_whitelist_user_func: Callable | None = None
    remove_whitelist_user_func: Callable | None = None
    list_whitelist_users_func: Callable | None = None
    add_admin_func: Callable | None = None
    list_admins_func: Callable | None = None

    # Lookups
    parse_user_id_token: Callable[[str], int | None] | None = None
    resolve_username: Callable[[int], str | None] | None = None


@dataclass(frozen=True)
class CommandGates:
    ensure_chat_access: Callable[[Any], Any] = _default_false
    user_is_admin: Callable[[int], Any] = _default_false
    user_is_super_admin: Callable[[int], Any] = _default_false
