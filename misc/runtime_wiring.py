from __future__ import annotations

from access.store import add_admin
from access.store import add_whitelist_user
from access.store import list_admins
from access.store import list_whitelist_users
from access.store import remove_whitelist_user
from access.policy import user_may_grant_admin
from access.policy import user_may_manage_whitelist
from conversation.store import clear_history
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_access import register as register_access
from misc.commands.commands_chat import register as register_chat
from misc.discord_gates import ensure_chat_access as ensure_chat_access_gate
from misc.discord_gates import parse_user_id_token
from misc.events_runtime import register_runtime_events
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps
from relay.llm import transcribe_audio
from relay.service import relay_chat_message


def wire_bot_runtime(
    bot,
    *,
    backend,
    client,
    send_chunked,
    openai_model: str,
    transcribe_model: str,
    temperature: float,
    context_limit: int,
    seeded_admin_ids: list[int],
) -> None:
    async def ensure_chat_access(author, channel) -> bool:
        return await ensure_chat_access_gate(author, channel, backend=backend)

    async def ensure_ctx_chat_access(ctx) -> bool:
        return await ensure_chat_access(ctx.author, ctx.channel)

    async def user_is_admin(user_id: int) -> bool:
        return await user_may_manage_whitelist(backend, user_id)

    async def user_is_super_admin(user_id: int) -> bool:
        return await user_may_grant_admin(backend, user_id)

    def resolve_username(user_id: int) -> str | None:
        user = bot.get_user(int(user_id))
        return str(user) if user is not None else None

    command_deps = CommandDeps(
        backend=backend,
        send_chunked=send_chunked,
        clear_history_func=clear_history,
        add_whitelist_user_func=add_whitelist_user,
        remove_whitelist_user_func=remove_whitelist_user,
        list_whitelist_users_func=list_whitelist_users,
        add_admin_func=add_admin,
        list_admins_func=list_admins,
        parse_user_id_token=parse_user_id_token,
        resolve_username=resolve_username,
    )
    command_gates = CommandGates(
        ensure_chat_access=ensure_ctx_chat_access,
        user_is_admin=user_is_admin,
        user_is_super_admin=user_is_super_admin,
    )

    register_chat(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_access(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_runtime_events(
        bot,
        deps=RuntimeDeps(
            backend=backend,
            send_chunked=send_chunked,
            ensure_chat_access=ensure_chat_access,
            client=client,
            openai_model=openai_model,
            transcribe_model=transcribe_model,
            temperature=temperature,
            context_limit=context_limit,
            relay_chat_message_func=relay_chat_message,
            transcribe_audio_func=transcribe_audio,
        ),
        boot=RuntimeBootDeps(
            database_dialect=backend.dialect,
            seeded_admin_ids=list(seeded_admin_ids),
        ),
    )
