"""
Data the bot reads from a guild: custom emoji, settings messages and member roles.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import Any

import discord

from hydrabot.bot.roles import role_metadata
from hydrabot.config.logging import get_logger
from hydrabot.util.format import unwrap_code_block
from hydrabot.util.settings_message import RemoteSettings, extract_settings_from_message

logger = get_logger(__name__)

SETTINGS_MESSAGE_LIMIT = 20

# Internal emoji name -> the name(s) a guild typically uses for it. Guilds
# can override entries with emojiMapping in the config file.
DEFAULT_EMOJI_MAPPING: dict[str, list[str]] = {
    "terran": ["terran"],
    "protoss": ["protoss"],
    "zerg": ["zerg"],
    "random": ["random"],
    "racepick_random": ["random"],
    "racepicker": ["racepicker"],
    "ranks": ["ranks"],
    "ranka": ["ranka"],
    "rankb": ["rankb"],
    "rankc": ["rankc"],
    "rankd": ["rankd"],
    "ranke": ["ranke"],
    "rankf": ["rankf"],
    "ranku": ["ranku"],
}

EmojiDecorator = Callable[[str], str]


def make_emoji_decorator(
    emojis: Iterable[discord.Emoji], guild_mapping: dict[str, list[str]] | None = None
) -> EmojiDecorator:
    """
    Return a function that replaces :name: codes with a guild's custom emoji.

    Internal names from the emoji mapping are replaced first, e.g. :ranks:
    becomes the guild's "s_rank" emoji if the mapping says so. After that,
    any :name: that matches one of the guild's own emoji is replaced too.
    """
    mapping = {**DEFAULT_EMOJI_MAPPING, **(guild_mapping or {})}

    # Guild emoji name -> internal names it stands for
    lookup: dict[str, list[str]] = {}
    for internal_name, guild_names in mapping.items():
        if guild_names:
            lookup.setdefault(guild_names[0], []).append(internal_name)

    emojis = list(emojis)
    known = [emoji for emoji in emojis if emoji.name in lookup]
    other = [emoji for emoji in emojis if emoji.name not in lookup]

    def replace(text: str, name: str, emoji: discord.Emoji) -> str:
        # The lookbehind skips codes that are already part of an emoji tag
        return re.sub(f"(?<!<)(?<!<a):{re.escape(name)}:", lambda _: str(emoji), text)

    def decorate(text: str) -> str:
        for emoji in known:
            for internal_name in lookup[emoji.name]:
                text = replace(text, internal_name, emoji)
        for emoji in other:
            text = replace(text, emoji.name, emoji)
        return text

    return decorate


async def get_bot_remote_settings(client: discord.Client, channel_id: int) -> RemoteSettings:
    """Read the bot's settings from the messages in a settings channel."""
    channel = client.get_channel(channel_id) or await client.fetch_channel(channel_id)
    messages = [message async for message in channel.history(limit=SETTINGS_MESSAGE_LIMIT)]
    messages.sort(key=lambda message: message.created_at)
    lines = (unwrap_code_block(message.content).strip() for message in messages)
    return extract_settings_from_message("\n".join(line for line in lines if line))


def split_discord_username(username: str) -> tuple[str, str | None]:
    """Split 'name#1234' into ('name', '1234'). Names without a discriminator get None."""
    name, sep, discriminator = username.partition("#")
    return (name, discriminator) if sep else (username, None)


async def get_user_role_metadata(
    guild: discord.Guild, usernames: Iterable[str]
) -> dict[str, dict[str, Any]]:
    """
    Look up guild members by username and return their race/rank metadata.

    Returns a dict of username -> {"meta": {...}, "member": discord.Member}.
    Users who can't be found are left out.
    """
    # TODO: query all members in one request once usernames can be matched exactly
    result: dict[str, dict[str, Any]] = {}
    for username in usernames:
        name, discriminator = split_discord_username(username)
        members = await guild.query_members(query=name, limit=5)
        if discriminator is not None:
            members = [member for member in members if member.discriminator == discriminator]
        if not members:
            logger.debug(f"Member not found in guild {guild.id}: {username}")
            continue
        member = members[0]
        result[username] = {
            "meta": role_metadata([role.name for role in member.roles]),
            "member": member,
        }
    return result
