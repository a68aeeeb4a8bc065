from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from config.defaults import DEFAULT_CONTEXT_LIMIT
from config.defaults import DEFAULT_DATABASE_URL
from config.defaults import DEFAULT_DB_MAX_CONNECTIONS
from config.defaults import DEFAULT_OPENAI_MODEL
from config.defaults import DEFAULT_TEMPERATURE
from config.defaults import DEFAULT_TRANSCRIBE_MODEL


@dataclass(frozen=True)
class RelaySettings:
    discord_token: str
    openai_api_key: str
    openai_model: str = DEFAULT_OPENAI_MODEL
    transcribe_model: str = DEFAULT_TRANSCRIBE_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    database_url: str = DEFAULT_DATABASE_URL
    admin_user_ids_raw: str = ""
    context_limit: int = DEFAULT_CONTEXT_LIMIT
    db_max_connections: int = DEFAULT_DB_MAX_CONNECTIONS


def _env_str(env: Mapping[str, str], key: str, default: str) -> str:
    raw = env.get(key)
    if raw is None:
        return default
    return raw.strip() or default


def _env_int(env: Mapping[str, str], key: str, default: int, *, minimum: int = 0) -> int:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        print(f"[CFG] invalid {key}={raw!r}; falling back to {default!r}")
        return default
    if value < minimum:
        print(f"[CFG] {key}={value} below minimum {minimum}; falling back to {default!r}")
        return default
    return value


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"[CFG] invalid {key}={raw!r}; falling back to {default!r}")
        return default


def load_settings(environ: Mapping[str, str] | None = None) -> RelaySettings:
    env = os.environ if environ is None else environ

    discord_token = (env.get("DISCORD_TOKEN") or "").strip()
    openai_api_key = (env.get("OPENAI_API_KEY") or "").strip()
    if not discord_token:
        raise RuntimeError("Missing DISCORD_TOKEN env var")
    if not openai_api_key:
        raise RuntimeError("Missing OPENAI_API_KEY env var")

    settings = RelaySettings(
        discord_token=discord_token,
        openai_api_key=openai_api_key,
        openai_model=_env_str(env, "OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
        transcribe_model=_env_str(env, "OPENAI_TRANSCRIBE_MODEL", DEFAULT_TRANSCRIBE_MODEL),
        temperature=_env_float(env, "RELAY_TEMPERATURE", DEFAULT_TEMPERATURE),
        database_url=_env_str(env, "DATABASE_URL", DEFAULT_DATABASE_URL),
        admin_user_ids_raw=(env.get("ADMIN_USER_IDS") or "").strip(),
        context_limit=_env_int(env, "RELAY_CONTEXT_LIMIT", DEFAULT_CONTEXT_LIMIT, minimum=1),
        db_max_connections=_env_int(env, "RELAY_DB_MAX_CONNECTIONS", DEFAULT_DB_MAX_CONNECTIONS, minimum=1),
    )
    print(
        f"[CFG] model={settings.openai_model} transcribe_model={settings.transcribe_model} "
        f"temperature={settings.temperature} context_limit={settings.context_limit} "
        f"db_max_connections={settings.db_max_connections}"
    )
    return settings
