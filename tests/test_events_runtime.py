from __future__ import annotations

import contextlib
import io
import unittest

try:
    import discord
    from discord.ext import commands
    from misc.events_runtime import RELAY_FAILED_TEXT
    from misc.events_runtime import THINKING_TEXT
    from misc.events_runtime import handle_voice_message
    from misc.events_runtime import relay_and_reply
    from misc.events_runtime import register_runtime_events
    from misc.runtime_deps import RuntimeBootDeps
    from misc.runtime_deps import RuntimeDeps
except ModuleNotFoundError:
    discord = None

from relay.llm import RelayUpstreamError


class FakeSentMessage:
    def __init__(self, content):
        self.content = content
        self.edits: list[str] = []
        self.deleted = False

    async def edit(self, content):
        self.edits.append(content)

    async def delete(self):
        self.deleted = True


class FakeChannel:
    def __init__(self, channel_id=42):
        self.id = channel_id
        self.sent: list[FakeSentMessage] = []

    async def send(self, text):
        msg = FakeSentMessage(text)
        self.sent.append(msg)
        return msg


class FakeAttachment:
    def __init__(self, data=b"OggS"):
        self.data = data

    def is_voice_message(self):
        return True

    async def read(self):
        return self.data


class FakeMessage:
    def __init__(self, channel):
        self.channel = channel


def _deps(*, relay=None, transcribe=None, replies=None):
    replies = replies if replies is not None else []

    async def _send_chunked(channel, text):
        replies.append(text)

    async def _allow(author, channel):
        return True

    async def _transcribe(client, audio, *, model):
        return "hello from voice"

    return RuntimeDeps(
        backend=object(),
        send_chunked=_send_chunked,
        ensure_chat_access=_allow,
        client=object(),
        openai_model="gpt-4o-mini",
        transcribe_model="whisper-1",
        temperature=0.7,
        context_limit=10,
        relay_chat_message_func=relay,
        transcribe_audio_func=transcribe or _transcribe,
    )


@unittest.skipIf(discord is None, "discord.py not installed")
class RelayAndReplyTests(unittest.IsolatedAsyncioTestCase):
    async def test_reply_replaces_thinking_message(self):
        calls = []
        replies = []

        async def _relay(text, **kwargs):
            calls.append((text, kwargs["chat_id"], kwargs["context_limit"]))
            return "hi"

        channel = FakeChannel(42)
        await relay_and_reply(channel, "hello", deps=_deps(relay=_relay, replies=replies))

        self.assertEqual(calls, [("hello", 42, 10)])
        self.assertEqual(channel.sent[0].content, THINKING_TEXT)
        self.assertTrue(channel.sent[0].deleted)
        self.assertEqual(replies, ["hi"])

    async def test_upstream_error_is_shown_to_user(self):
        async def _relay(text, **kwargs):
            raise RelayUpstreamError("chat completion", "Rate limit reached", status=429)

        channel = FakeChannel()
        replies = []
        with contextlib.redirect_stdout(io.StringIO()):
            await relay_and_reply(channel, "hello", deps=_deps(relay=_relay, replies=replies))

        self.assertEqual(
            channel.sent[0].edits,
            ["Could not get a reply: chat completion API error (429): Rate limit reached"],
        )
        self.assertEqual(replies, [])

    async def test_unexpected_error_gets_generic_text(self):
        async def _relay(text, **kwargs):
            raise RuntimeError("disk full")

        channel = FakeChannel()
        with contextlib.redirect_stdout(io.StringIO()):
            await relay_and_reply(channel, "hello", deps=_deps(relay=_relay))
        self.assertEqual(channel.sent[0].edits, [RELAY_FAILED_TEXT])


@unittest.skipIf(discord is None, "discord.py not installed")
class VoiceMessageTests(unittest.IsolatedAsyncioTestCase):
    async def test_transcript_is_relayed_once(self):
        relayed = []

        async def _relay(text, **kwargs):
            relayed.append(text)
            return "sure"

        channel = FakeChannel()
        replies = []
        await handle_voice_message(FakeMessage(channel), FakeAttachment(), deps=_deps(relay=_relay, replies=replies))

        self.assertEqual(relayed, ["hello from voice"])
        self.assertEqual(channel.sent[0].edits, ["Voice message: hello from voice"])
        self.assertEqual(replies, ["sure"])

    async def test_transcription_error_stops_before_relay(self):
        relayed = []

        async def _relay(text, **kwargs):
            relayed.append(text)
            return "sure"

        async def _transcribe(client, audio, *, model):
            raise RelayUpstreamError("transcription", "Invalid file format", status=400)

        channel = FakeChannel()
        with contextlib.redirect_stdout(io.StringIO()):
            await handle_voice_message(
                FakeMessage(channel),
                FakeAttachment(),
                deps=_deps(relay=_relay, transcribe=_transcribe),
            )

        self.assertEqual(relayed, [])
        self.assertIn("Invalid file format", channel.sent[0].edits[0])

    async def test_silent_audio_is_not_relayed(self):
        relayed = []

        async def _relay(text, **kwargs):
            relayed.append(text)
            return "sure"

        async def _transcribe(client, audio, *, model):
            return "   "

        channel = FakeChannel()
        await handle_voice_message(
            FakeMessage(channel),
            FakeAttachment(),
            deps=_deps(relay=_relay, transcribe=_transcribe),
        )
        self.assertEqual(relayed, [])
        self.assertEqual(channel.sent[0].edits, ["The voice message did not contain any speech."])


class FakeMessageAuthor:
    def __init__(self, user_id, bot=False):
        self.id = user_id
        self.bot = bot


class FakeInboundMessage:
    def __init__(self, content="", *, author=None, attachments=None, channel=None):
        self.content = content
        self.author = author or FakeMessageAuthor(55)
        self.attachments = attachments or []
        self.channel = channel or FakeChannel()


class FakePlainAttachment:
    def is_voice_message(self):
        return False


@unittest.skipIf(discord is None, "discord.py not installed")
class OnMessageRoutingTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.relayed: list[str] = []
        self.transcribed: list[bytes] = []
        self.access_checks: list[int] = []
        self.commands_seen: list[str] = []
        self.allowed_ids = {55}

        async def _relay(text, **kwargs):
            self.relayed.append(text)
            return "ok"

        async def _transcribe(client, audio, *, model):
            self.transcribed.append(audio)
            return "spoken words"

        async def _ensure_chat_access(author, channel):
            self.access_checks.append(author.id)
            return author.id in self.allowed_ids

        async def _send_chunked(channel, text):
            await channel.send(text)

        deps = RuntimeDeps(
            backend=object(),
            send_chunked=_send_chunked,
            ensure_chat_access=_ensure_chat_access,
            client=object(),
            openai_model="gpt-4o-mini",
            transcribe_model="whisper-1",
            temperature=0.7,
            context_limit=10,
            relay_chat_message_func=_relay,
            transcribe_audio_func=_transcribe,
        )
        self.bot = commands.Bot(command_prefix="!", intents=discord.Intents.none())

        async def _process_commands(message):
            self.commands_seen.append(message.content)

        self.bot.process_commands = _process_commands
        register_runtime_events(
            self.bot,
            deps=deps,
            boot=RuntimeBootDeps(database_dialect="sqlite", seeded_admin_ids=[]),
        )

    async def test_allowed_text_is_relayed(self):
        await self.bot.on_message(FakeInboundMessage("  hello  "))
        self.assertEqual(self.access_checks, [55])
        self.assertEqual(self.relayed, ["hello"])
        self.assertEqual(self.commands_seen, [])

    async def test_denied_author_never_reaches_relay(self):
        await self.bot.on_message(FakeInboundMessage("hello", author=FakeMessageAuthor(9)))
        self.assertEqual(self.access_checks, [9])
        self.assertEqual(self.relayed, [])
        self.assertEqual(self.transcribed, [])

    async def test_denied_author_voice_is_not_transcribed(self):
        msg = FakeInboundMessage(author=FakeMessageAuthor(9), attachments=[FakeAttachment(b"OggS")])
        await self.bot.on_message(msg)
        self.assertEqual(self.transcribed, [])
        self.assertEqual(self.relayed, [])

    async def test_voice_takes_priority_over_text(self):
        msg = FakeInboundMessage("caption text", attachments=[FakeAttachment(b"OggS")])
        await self.bot.on_message(msg)
        self.assertEqual(self.transcribed, [b"OggS"])
        self.assertEqual(self.relayed, ["spoken words"])

    async def test_prefixed_content_goes_only_to_commands(self):
        await self.bot.on_message(FakeInboundMessage("!ping", author=FakeMessageAuthor(9)))
        self.assertEqual(self.commands_seen, ["!ping"])
        self.assertEqual(self.access_checks, [])
        self.assertEqual(self.relayed, [])

    async def test_bot_authors_are_ignored(self):
        await self.bot.on_message(FakeInboundMessage("hello", author=FakeMessageAuthor(55, bot=True)))
        await self.bot.on_message(FakeInboundMessage("!ping", author=FakeMessageAuthor(55, bot=True)))
        self.assertEqual((self.access_checks, self.relayed, self.commands_seen), ([], [], []))

    async def test_empty_message_without_voice_is_ignored(self):
        await self.bot.on_message(FakeInboundMessage("   ", attachments=[FakePlainAttachment()]))
        self.assertEqual(self.access_checks, [])
        self.assertEqual(self.relayed, [])


if __name__ == "__main__":
    unittest.main()
