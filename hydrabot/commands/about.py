"""
/about - shows the bot version, uptime and what it's running.
"""

from __future__ import annotations

from datetime import datetime, timezone

import discord

from hydrabot import __version__
from hydrabot.modules.base import Command, CommandContext, Manifest

ABOUT_COLOR = 0x0074E0


def format_uptime(started_at: datetime | None, now: datetime | None = None) -> str:
    """Format the time since started_at, e.g. '2d 3h 4m'."""
    if started_at is None:
        return "not started"
    now = now or datetime.now(timezone.utc)
    minutes = int((now - started_at).total_seconds() // 60)
    days, rest = divmod(minutes, 60 * 24)
    hours, minutes = divmod(rest, 60)
    parts = [f"{days}d"] if days else []
    if days or hours:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")
    return " ".join(parts)


def make_about_embed(client: discord.Client) -> discord.Embed:
    handlers = ", ".join(handler.name for handler in getattr(client, "handlers", [])) or "none"
    tasks = ", ".join(task.name for task in getattr(client, "tasks", [])) or "none"

    embed = discord.Embed(title="HydraBot", color=ABOUT_COLOR)
    embed.add_field(name="Version", value=__version__, inline=True)
    embed.add_field(name="Uptime", value=format_uptime(getattr(client, "started_at", None)), inline=True)
    embed.add_field(name="Message handlers", value=handlers, inline=False)
    embed.add_field(name="Tasks", value=tasks, inline=False)
    return embed


class AboutCommand(Command):
    """Provides the /about slash command."""

    manifest = Manifest(name="about", description="Shows information about the bot.")

    async def execute(self, interaction: discord.Interaction, ctx: CommandContext) -> None:
        await interaction.response.send_message(embed=make_about_embed(ctx.client), ephemeral=True)
