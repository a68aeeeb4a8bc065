from __future__ import annotations

from typing import Any, Callable

from discord.ext import commands
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates


def _fmt_ts(value: Any) -> str:
    if value is None:
        return "unknown"
    try:
        return value.strftime("%Y-%m-%d %H:%M")
    except AttributeError:
        return str(value)


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    async def _allowed(ctx: commands.Context, check: Callable, *, denied: str, label: str) -> bool:
        author_id = int(getattr(ctx.author, "id", 0) or 0)
        if not author_id:
            return False
        try:
            ok = await check(author_id)
        except Exception as e:
            print(f"[Access] {label} check failed for user={author_id}: {e}")
            await ctx.send(f"Error while checking {label} permissions.")
            return False
        if not ok:
            await ctx.send(denied)
            return False
        return True

    def _username_for(user_id: int) -> str | None:
        if deps.resolve_username is None:
            return None
        return deps.resolve_username(user_id)

    @bot.command(name="adduser")
    async def cmd_adduser(ctx: commands.Context, user: str = "", *, notes: str = ""):
        """Whitelist a user (admins only): !adduser <user_id> [notes]"""
        if not await _allowed(
            ctx,
            gates.user_is_admin,
            denied="⚠️ You are not an admin and cannot add whitelisted users.",
            label="admin",
        ):
            return

        user_id = deps.parse_user_id_token(user)
        if user_id is None:
            await ctx.send("Please provide a valid user id. Usage: `!adduser <user_id> [notes]`")
            return

        try:
            inserted = await deps.add_whitelist_user_func(
                deps.backend,
                user_id,
                added_by=int(ctx.author.id),
                username=_username_for(user_id),
                notes=(notes or "").strip() or None,
            )
        except Exception as e:
            print(f"[Access] adduser failed for user={user_id}: {e}")
            await ctx.send("Error while adding the user to the whitelist.")
            return

        if inserted:
            print(f"[Access] whitelisted user={user_id} by={ctx.author.id}")
            await ctx.send(f"✅ Added user {user_id} to the whitelist.")
        else:
            await ctx.send(f"User {user_id} is already whitelisted.")

    @bot.command(name="removeuser")
    async def cmd_removeuser(ctx: commands.Context, user: str = ""):
        """Remove a user from the whitelist (admins only): !removeuser <user_id>"""
        if not await _allowed(
            ctx,
            gates.user_is_admin,
            denied="⚠️ You are not an admin and cannot remove whitelisted users.",
            label="admin",
        ):
            return

        user_id = deps.parse_user_id_token(user)
        if user_id is None:
            await ctx.send("Please provide a valid user id. Usage: `!removeuser <user_id>`")
            return

        try:
            removed = await deps.remove_whitelist_user_func(deps.backend, user_id)
        except Exception as e:
            print(f"[Access] removeuser failed for user={user_id}: {e}")
            await ctx.send("Error while removing the user.")
            return

        if removed:
            print(f"[Access] removed user={user_id} by={ctx.author.id}")
            await ctx.send(f"✅ Removed user {user_id} from the whitelist.")
        else:
            await ctx.send(f"⚠️ User {user_id} is not on the whitelist.")

    @bot.command(name="listusers")
    async def cmd_listusers(ctx: commands.Context):
        """List whitelisted users (admins only)."""
        if not await _allowed(
            ctx,
            gates.user_is_admin,
            denied="⚠️ You are not an admin and cannot view whitelisted users.",
            label="admin",
        ):
            return

        try:
            entries = await deps.list_whitelist_users_func(deps.backend)
        except Exception as e:
            print(f"[Access] listusers failed: {e}")
            await ctx.send("Error while fetching the whitelist.")
            return

        if not entries:
            await ctx.send("The whitelist is empty.")
            return

        lines = [f"Whitelisted users ({len(entries)}):"]
        for entry in entries:
            name = f" ({entry.username})" if entry.username else ""
            note = f" notes={entry.notes}" if entry.notes else ""
            lines.append(
                f"- {entry.user_id}{name} added_by={entry.added_by} at={_fmt_ts(entry.added_at)}{note}"
            )
        await deps.send_chunked(ctx.channel, "\n".join(lines))

    @bot.command(name="addadmin")
    async def cmd_addadmin(ctx: commands.Context, user: str = ""):
        """Grant admin rights (super admins only): !addadmin <user_id>"""
        if not await _allowed(
            ctx,
            gates.user_is_super_admin,
            denied="⚠️ You are not a super admin and cannot add admins.",
            label="super admin",
        ):
            return

        user_id = deps.parse_user_id_token(user)
        if user_id is None:
            await ctx.send("Please provide a valid user id. Usage: `!addadmin <user_id>`")
            return

        try:
            inserted = await deps.add_admin_func(
                deps.backend,
                user_id,
                username=_username_for(user_id),
                is_super=False,
            )
        except Exception as e:
            print(f"[Access] addadmin failed for user={user_id}: {e}")
            await ctx.send("Error while adding the admin.")
            return

        if inserted:
            print(f"[Access] granted admin user={user_id} by={ctx.author.id}")
            await ctx.send(f"✅ Added admin {user_id}.")
        else:
            await ctx.send(f"User {user_id} is already an admin.")

    @bot.command(name="listadmins")
    async def cmd_listadmins(ctx: commands.Context):
        """List admins (admins only)."""
        if not await _allowed(
            ctx,
            gates.user_is_admin,
            denied="⚠️ You are not an admin and cannot view the admin list.",
            label="admin",
        ):
            return

        try:
            admins = await deps.list_admins_func(deps.backend)
        except Exception as e:
            print(f"[Access] listadmins failed: {e}")
            await ctx.send("Error while fetching the admin list.")
            return

        if not admins:
            await ctx.send("No admins configured.")
            return

        lines = [f"Admins ({len(admins)}):"]
        for admin in admins:
            tier = "super" if admin.is_super else "admin"
            name = f" ({admin.username})" if admin.username else ""
            lines.append(f"- {admin.user_id}{name} [{tier}] since {_fmt_ts(admin.added_at)}")
        await deps.send_chunked(ctx.channel, "\n".join(lines))
