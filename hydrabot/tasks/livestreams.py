"""
Livestreams task - keeps a list of who's live on Twitch in each guild.

The streamers to list are read from the guild's settings channel. Each
cycle queries their stream status, remembers when each of them was last
seen live, and edits the guild's livestreams message to show who's live,
who's streaming another game and who's offline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import discord

from hydrabot.bot.remote import EmojiDecorator, get_bot_remote_settings, get_user_role_metadata, make_emoji_decorator
from hydrabot.bot.roles import RACE_ORDER, RANK_ORDER
from hydrabot.bot.static_message import StaticMessage
from hydrabot.config.schema import GuildConfig
from hydrabot.config.store import read_guild_cache, write_guild_cache
from hydrabot.modules.base import Manifest, Task, TaskContext
from hydrabot.services.twitch import StreamStatus, TwitchClient, get_current_streaming_status
from hydrabot.util.format import format_dynamic_timestamp, format_user_reference, plural
from hydrabot.util.settings_message import StreamUser

LIVESTREAMS_LOGO = "https://i.imgur.com/kukgWMD.png"
LIVESTREAMS_COLOR = 0x6441A5

LAST_LIVE_KEY = "livestreamsLastLive"

# Streams of this game are listed as "Currently live"; others as "Playing something else"
STARCRAFT_GAME_NAME = "StarCraft"

# Discord's limit for embed descriptions
MAX_DESCRIPTION_LENGTH = 4096


@dataclass
class LivestreamUser:
    """A streamer with their Discord roles, stream status and last live time."""

    username: str
    twitch_url: str
    twitch_username: str
    meta: dict[str, Any] = field(default_factory=dict)
    member: discord.Member | None = None
    status: StreamStatus | None = None
    last_live: datetime | None = None

    @property
    def is_live(self) -> bool:
        return self.status is not None

    @property
    def sort_key(self) -> tuple:
        return (
            not self.is_live,
            self.meta.get("rank_order", RANK_ORDER["unknown"]),
            self.meta.get("race_order", RACE_ORDER["unknown"]),
            self.username,
        )


def parse_last_live(cache: dict[str, Any]) -> dict[str, datetime]:
    """Read the last live times from a guild cache record, skipping bad values."""
    result = {}
    for username, value in (cache.get(LAST_LIVE_KEY) or {}).items():
        try:
            result[username] = datetime.fromisoformat(value)
        except (TypeError, ValueError):
            continue
    return result


def combine_user_data(
    users: list[StreamUser],
    status: dict[str, StreamStatus | None],
    metadata: dict[str, dict[str, Any]],
    last_live: dict[str, datetime],
) -> list[LivestreamUser]:
    """
    Combine settings, stream status, role metadata and last live times per user.

    Ordered live first, then by rank, race and username.
    """
    combined = [
        LivestreamUser(
            username=user.username,
            twitch_url=user.twitch_url,
            twitch_username=user.twitch_username,
            meta=metadata.get(user.username, {}).get("meta", {}),
            member=metadata.get(user.username, {}).get("member"),
            status=status.get(user.username),
            last_live=last_live.get(user.username),
        )
        for user in users
    ]
    return sorted(combined, key=lambda user: user.sort_key)


def make_user_line(user: LivestreamUser) -> str:
    rank = user.meta.get("rank", "u")
    race = user.meta.get("race", "question").replace("/", "_")
    name = format_user_reference(user.member) if user.member is not None else user.username

    if user.is_live:
        link = f"[{user.status.title}]({user.twitch_url})"
        details = (
            f"\n live to {plural(user.status.viewers, 'viewer')}, "
            f"since {format_dynamic_timestamp(user.status.started_at, 'R')}"
        )
    else:
        link = f"[twitch.tv/{user.twitch_username}]({user.twitch_url})"
        details = f" (last live {format_dynamic_timestamp(user.last_live, 'R')})" if user.last_live else ""
    return f"* :rank{rank}: :{race}: {name} - {link}{details}"


def make_user_list(users: list[LivestreamUser], fallback: str, format_emoji: EmojiDecorator) -> str:
    if not users:
        return fallback
    return "\n".join(format_emoji(make_user_line(user)) for user in users)


def make_livestreams_embed(
    users: list[LivestreamUser], format_emoji: EmojiDecorator, now: datetime | None = None
) -> discord.Embed:
    """Create the embed listing live, otherwise occupied and offline streamers."""
    now = now or datetime.now(timezone.utc)
    live = [user for user in users if user.is_live]
    live_starcraft = [user for user in live if user.status.game_name == STARCRAFT_GAME_NAME]
    live_other = [user for user in live if user.status.game_name != STARCRAFT_GAME_NAME]
    offline = [user for user in users if not user.is_live]

    empty = format_emoji("None. :harold:")
    segments = [
        f"Last updated {format_dynamic_timestamp(now, 't')}.",
        "### Currently live",
        make_user_list(live_starcraft, empty, format_emoji),
    ]
    if live_other:
        segments += ["### Playing something else", make_user_list(live_other, empty, format_emoji)]
    segments += ["### Offline", make_user_list(offline, empty, format_emoji)]

    description = "\n".join(segments)
    if len(description) > MAX_DESCRIPTION_LENGTH:
        description = f"{description[: MAX_DESCRIPTION_LENGTH - 1]}…"

    embed = discord.Embed(description=description, color=LIVESTREAMS_COLOR, timestamp=now)
    embed.set_author(name="Twitch streams", icon_url=LIVESTREAMS_LOGO)
    return embed


async def update_last_live(
    cache_path: Path, guild_id: int, status: dict[str, StreamStatus | None], now: datetime
) -> dict[str, datetime]:
    """Record now as the last live time of every live user, and return all last live times."""
    last_live = parse_last_live(await read_guild_cache(cache_path, guild_id))
    live = [username for username, stream in status.items() if stream is not None]
    if live:
        for username in live:
            last_live[username] = now
        serialized = {username: date.isoformat() for username, date in last_live.items()}
        await write_guild_cache(cache_path, guild_id, {LAST_LIVE_KEY: serialized})
    return last_live


async def publish_livestreams(
    guild_config: GuildConfig, ctx: TaskContext, twitch: TwitchClient, logger: logging.Logger
) -> None:
    """Update one guild's livestreams message."""
    client = ctx.client
    settings_channel_id = guild_config.channel_ids.settings
    if settings_channel_id is None:
        logger.debug(f"Guild {guild_config.id} has no settings channel")
        return

    settings = (await get_bot_remote_settings(client, settings_channel_id)).livestreams
    if settings.channel_id is None:
        logger.debug(f"Guild {guild_config.id} has no livestreams channel")
        return

    guild = client.get_guild(guild_config.id) or await client.fetch_guild(guild_config.id)
    format_emoji = make_emoji_decorator(guild.emojis, guild_config.emoji_mapping)
    metadata = await get_user_role_metadata(guild, [user.username for user in settings.users])
    status = await get_current_streaming_status(settings.users, twitch)

    now = datetime.now(timezone.utc)
    last_live = await update_last_live(ctx.cache_path, guild_config.id, status, now)

    users = combine_user_data(settings.users, status, metadata, last_live)
    message = await StaticMessage.fetch(client, guild_config.id, settings.channel_id, logger=logger)
    await message.update(
        content=settings.description or None,
        embed=make_livestreams_embed(users, format_emoji, now),
    )


class LivestreamsTask(Task):
    """Posts who's currently live on Twitch."""

    manifest = Manifest(
        name="livestreams",
        description="Displays who's currently live on Twitch.",
        interval=timedelta(seconds=60),
        run_on_startup=True,
    )

    async def run(self, ctx: TaskContext) -> None:
        twitch = getattr(ctx.client, "twitch", None)
        if twitch is None:
            ctx.logger.warning("Twitch is not configured; skipping livestreams update")
            return

        for guild_config in ctx.config.discord.guilds:
            try:
                await publish_livestreams(guild_config, ctx, twitch, ctx.logger)
            except Exception as e:
                ctx.logger.error(f"Could not update livestreams for guild {guild_config.id}: {e}")

        if ctx.n == 0:
            ctx.logger.info("Initial update of the livestreams list")
