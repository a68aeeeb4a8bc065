from __future__ import annotations

import asyncio
from typing import Any, Sequence

import openai

from config.defaults import VOICE_CONTENT_TYPE
from config.defaults import VOICE_FILENAME
from conversation.models import ChatTurn


class RelayUpstreamError(RuntimeError):
    """A remote model call failed; ``str(err)`` is safe to show to the user."""

    def __init__(self, service: str, detail: str, *, status: int | None = None):
        self.service = service
        self.detail = detail
        self.status = status
        prefix = f"{service} API error"
        if status is not None:
            prefix += f" ({status})"
        super().__init__(f"{prefix}: {detail}")


def _upstream_error(service: str, exc: openai.OpenAIError) -> RelayUpstreamError:
    status = getattr(exc, "status_code", None)
    detail = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    return RelayUpstreamError(service, str(detail), status=status)


async def complete_chat(
    client: Any,
    *,
    model: str,
    turns: Sequence[ChatTurn],
    temperature: float,
) -> str:
    try:
        resp = await asyncio.to_thread(
            client.chat.completions.create,
            model=model,
            messages=[t.as_openai_message() for t in turns],
            temperature=temperature,
        )
    except openai.OpenAIError as e:
        raise _upstream_error("chat completion", e) from e

    choices = getattr(resp, "choices", None) or []
    content = choices[0].message.content if choices else None
    if not content:
        raise RelayUpstreamError("chat completion", "response did not contain a reply")
    return content


async def transcribe_audio(
    client: Any,
    audio: bytes,
    *,
    model: str,
    filename: str = VOICE_FILENAME,
    content_type: str = VOICE_CONTENT_TYPE,
) -> str:
    try:
        resp = await asyncio.to_thread(
            client.audio.transcriptions.create,
            model=model,
            file=(filename, audio, content_type),
        )
    except openai.OpenAIError as e:
        raise _upstream_error("transcription", e) from e

    text = getattr(resp, "text", None)
    if text is None:
        raise RelayUpstreamError("transcription", "response did not contain text")
    return str(text)
