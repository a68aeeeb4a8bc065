from __future__ import annotations

from discord.ext import commands
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates


WELCOME_TEXT = (
    "👋 Welcome! Send me a message to chat, or send a voice message and I'll transcribe it first.\n"
    "Use `!help` to see every command."
)


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @bot.command(name="start")
    async def cmd_start(ctx: commands.Context):
        """Show the welcome message."""
        await ctx.send(WELCOME_TEXT)

    @bot.command(name="ping")
    async def cmd_ping(ctx: commands.Context):
        """Check that the bot is online."""
        await ctx.send("I'm online!")

    @bot.command(name="clear")
    async def cmd_clear(ctx: commands.Context):
        """Forget this channel's conversation history."""
        if not await gates.ensure_chat_access(ctx):
            return

        chat_id = int(ctx.channel.id)
        try:
            await deps.clear_history_func(deps.backend, chat_id)
        except Exception as e:
            print(f"[Relay] clear history failed for chat={chat_id}: {e}")
            await ctx.send("Error while clearing the chat history.")
            return

        print(f"[Relay] cleared history chat={chat_id} by={ctx.author.id}")
        await ctx.send("Chat history cleared!")
