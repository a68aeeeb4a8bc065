from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class WhitelistEntry:
    id: int
    user_id: int
    username: str | None
    added_by: int
    added_at: datetime | None
    notes: str | None


@dataclass(frozen=True)
class AdminEntry:
    id: int
    user_id: int
    username: str | None
    is_super: bool
    added_at: datetime | None
