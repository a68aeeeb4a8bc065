import asyncio

import discord
from discord.ext import commands
from openai import OpenAI

from access.bootstrap import seed_super_admins
from config.defaults import COMMAND_PREFIX
from config.settings import load_settings
from db.backend import open_backend
from db.migrate import apply_migrations
from db.migrate import list_schema_migrations
from misc.messaging import send_chunked
from misc.runtime_wiring import wire_bot_runtime


# =========================
# ENV
# =========================
SETTINGS = load_settings()

client = OpenAI(api_key=SETTINGS.openai_api_key)

# =========================
# DISCORD BOT
# =========================
intents = discord.Intents.default()
intents.message_content = True

bot = commands.Bot(command_prefix=COMMAND_PREFIX, intents=intents)


async def main() -> None:
    backend = await open_backend(
        SETTINGS.database_url,
        max_connections=SETTINGS.db_max_connections,
    )
    try:
        applied = await apply_migrations(backend)
        print(f"[DB] migrations applied this boot: {applied or 'none'}")
        for version, name, applied_at in await list_schema_migrations(backend, limit=20):
            print(f"[DB] schema {version}_{name} @ {applied_at}")

        seeded = await seed_super_admins(backend, SETTINGS.admin_user_ids_raw)

        wire_bot_runtime(
            bot,
            backend=backend,
            client=client,
            send_chunked=send_chunked,
            openai_model=SETTINGS.openai_model,
            transcribe_model=SETTINGS.transcribe_model,
            temperature=SETTINGS.temperature,
            context_limit=SETTINGS.context_limit,
            seeded_admin_ids=seeded,
        )

        async with bot:
            await bot.start(SETTINGS.discord_token)
    finally:
        await backend.close()


if __name__ == "__main__":
    asyncio.run(main())
