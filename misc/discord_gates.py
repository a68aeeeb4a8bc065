from __future__ import annotations

import re
from typing import Any

import discord

from access.policy import check_chat_access
from db.backend import StorageBackend


DENIED_TEXT = "⚠️ You are not allowed to use this bot. Ask an admin to add you to the whitelist."
CHECK_FAILED_TEXT = "Could not check the whitelist right now. Try again later or contact an admin."
UNKNOWN_USER_TEXT = "Could not identify you. Please contact an admin."

_USER_MENTION_RE = re.compile(r"^<@!?([0-9]+)>$")
_USER_ID_RE = re.compile(r"^[0-9]+$")


def parse_user_id_token(token: str | None) -> int | None:
    t = (token or "").strip()
    if not t:
        return None
    m = _USER_MENTION_RE.match(t)
    if m:
        return int(m.group(1))
    if _USER_ID_RE.match(t):
        return int(t)
    return None


def find_voice_attachment(message: discord.Message) -> discord.Attachment | None:
    for attachment in getattr(message, "attachments", None) or []:
        is_voice = getattr(attachment, "is_voice_message", None)
        if callable(is_voice) and is_voice():
            return attachment
    return None


async def ensure_chat_access(author: Any, channel: Any, *, backend: StorageBackend) -> bool:
    """Admins and whitelisted users pass; anything else, errors included, is denied."""
    user_id = int(getattr(author, "id", 0) or 0)
    if not user_id:
        print("[Access] message without an identifiable author")
        await channel.send(UNKNOWN_USER_TEXT)
        return False

    try:
        decision = await check_chat_access(backend, user_id)
    except Exception as e:
        print(f"[Access] whitelist check failed for user={user_id}: {e}")
        await channel.send(CHECK_FAILED_TEXT)
        return False

    if not decision.allowed:
        print(f"[Access] denied user={user_id} reason={decision.reason}")
        await channel.send(DENIED_TEXT)
        return False
    return True
