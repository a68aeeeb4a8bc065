from __future__ import annotations

from typing import Any

from conversation.store import append_message
from conversation.store import fetch_recent_messages
from conversation.store import find_or_create_session
from db.backend import StorageBackend
from relay.llm import complete_chat


async def relay_chat_message(
    text: str,
    *,
    chat_id: int,
    backend: StorageBackend,
    client: Any,
    openai_model: str,
    temperature: float,
    context_limit: int,
) -> str:
    """Record ``text`` as a user turn, ask the model, record and return its reply.

    The reply is stored only after the model call succeeds, so a failed call
    leaves the user turn in place and no assistant turn behind it.
    """
    session_id = await find_or_create_session(backend, chat_id)
    await append_message(backend, session_id, "user", text)

    turns = await fetch_recent_messages(backend, session_id, context_limit)
    print(f"[Relay] chat={chat_id} session={session_id} turns={len(turns)} model={openai_model}")

    reply = await complete_chat(
        client,
        model=openai_model,
        turns=turns,
        temperature=temperature,
    )
    await append_message(backend, session_id, "assistant", reply)
    return reply
