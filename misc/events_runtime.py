from __future__ import annotations

import discord
from discord.ext import commands

from config.defaults import COMMAND_PREFIX
from misc.discord_gates import find_voice_attachment
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps
from relay.llm import RelayUpstreamError


THINKING_TEXT = "🤔 Thinking..."
VOICE_PROCESSING_TEXT = "Processing your voice message, please wait..."
RELAY_FAILED_TEXT = "Something went wrong while processing your message. Please try again later."


async def relay_and_reply(channel, text: str, *, deps: RuntimeDeps) -> None:
    chat_id = int(channel.id)
    thinking = await channel.send(THINKING_TEXT)
    try:
        reply = await deps.relay_chat_message_func(
            text,
            chat_id=chat_id,
            backend=deps.backend,
            client=deps.client,
            openai_model=deps.openai_model,
            temperature=deps.temperature,
            context_limit=deps.context_limit,
        )
    except RelayUpstreamError as e:
        print(f"[OpenAI] Error: {e}")
        await thinking.edit(content=f"Could not get a reply: {e}")
        return
    except Exception as e:
        print(f"[Relay] Error for chat={chat_id}: {e}")
        await thinking.edit(content=RELAY_FAILED_TEXT)
        return

    await thinking.delete()
    await deps.send_chunked(channel, reply)


async def handle_voice_message(message: discord.Message, attachment: discord.Attachment, *, deps: RuntimeDeps) -> None:
    status = await message.channel.send(VOICE_PROCESSING_TEXT)
    try:
        audio = await attachment.read()
        text = await deps.transcribe_audio_func(
            deps.client,
            audio,
            model=deps.transcribe_model,
        )
    except RelayUpstreamError as e:
        print(f"[Voice] Error: {e}")
        await status.edit(content=f"Error while processing the voice message: {e}")
        return
    except discord.HTTPException as e:
        print(f"[Voice] download failed: {e}")
        await status.edit(content="Error while downloading the voice message.")
        return

    text = (text or "").strip()
    if not text:
        await status.edit(content="The voice message did not contain any speech.")
        return

    await status.edit(content=f"Voice message: {text}")
    await relay_and_reply(message.channel, text, deps=deps)


def register_runtime_events(
    bot: commands.Bot,
    *,
    deps: RuntimeDeps,
    boot: RuntimeBootDeps,
) -> None:
    @bot.event
    async def on_ready():
        print(
            f"Relay is online as {bot.user} "
            f"(db={boot.database_dialect} seeded_admins={len(boot.seeded_admin_ids)})"
        )

    @bot.event
    async def on_message(message: discord.Message):
        if message.author.bot:
            return

        content = (message.content or "").strip()
        if content.startswith(COMMAND_PREFIX):
            await bot.process_commands(message)
            return

        voice = find_voice_attachment(message)
        if voice is None and not content:
            return

        if not await deps.ensure_chat_access(message.author, message.channel):
            return

        if voice is not None:
            await handle_voice_message(message, voice, deps=deps)
            return

        await relay_and_reply(message.channel, content, deps=deps)
