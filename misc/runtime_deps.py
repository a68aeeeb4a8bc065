from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class RuntimeDeps:
    # core
    backend: Any
    send_chunked: Callable
    ensure_chat_access: Callable

    # llm
    client: Any
    openai_model: str
    transcribe_model: str
    temperature: float
    context_limit: int

    # relay
    relay_chat_message_func: Callable
    transcribe_audio_func: Callable


@dataclass(frozen=True)
class RuntimeBootDeps:
    database_dialect: str
    seeded_admin_ids: list[int]
