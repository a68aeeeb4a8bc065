from __future__ import annotations

DEFAULT_DATABASE_URL = "sqlite:chat_database.db"
DEFAULT_DB_MAX_CONNECTIONS = 5

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_TRANSCRIBE_MODEL = "whisper-1"
DEFAULT_TEMPERATURE = 0.7

# Turns handed to the model per request (inbound turn included).
DEFAULT_CONTEXT_LIMIT = 10

MESSAGE_ROLES = frozenset({"user", "assistant"})

VOICE_FILENAME = "voice.ogg"
VOICE_CONTENT_TYPE = "audio/ogg"

COMMAND_PREFIX = "!"
DISCORD_MAX_MESSAGE_LEN = 1900  # keep under 2000 hard limit
