from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Session:
    id: int
    chat_id: int
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(frozen=True)
class ChatTurn:
    role: str
    content: str

    def as_openai_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}
