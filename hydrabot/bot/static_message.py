"""
StaticMessage - a single message that is edited in place to show current status.

The message can be identified by id, or found as the bot's most recent
message in its channel. The second form suits a locked channel that only
ever contains this one message.
"""

from __future__ import annotations

import logging

import discord

from hydrabot.config.logging import get_logger

HISTORY_LIMIT = 20


class StaticMessage:
    """
    A status message that is kept up to date by editing it.

    Use StaticMessage.fetch() to create one. If no message exists yet, the
    first update() posts it.
    """

    def __init__(
        self,
        channel: discord.abc.Messageable | None,
        message: discord.Message | None = None,
        error: Exception | None = None,
    ) -> None:
        self.channel = channel
        self.message = message
        self.error = error

    @classmethod
    async def fetch(
        cls,
        client: discord.Client,
        guild_id: int,
        channel_id: int,
        message_id: int | None = None,
        logger: logging.Logger | None = None,
    ) -> StaticMessage:
        """
        Resolve the channel and any existing message.

        Lookup failures are logged and kept in `error` rather than raised;
        update() raises if the channel itself couldn't be found.
        """
        logger = logger or get_logger(__name__)
        static = cls(None)
        try:
            guild = client.get_guild(guild_id) or await client.fetch_guild(guild_id)
            static.channel = guild.get_channel(channel_id) or await guild.fetch_channel(channel_id)
            static.message = await cls._find_message(client, static.channel, message_id)
        except discord.HTTPException as e:
            logger.error(f"Static message error (guild={guild_id}, channel={channel_id}): {e}")
            static.error = e
        return static

    @staticmethod
    async def _find_message(
        client: discord.Client, channel: discord.abc.Messageable, message_id: int | None
    ) -> discord.Message | None:
        if message_id is not None:
            try:
                return await channel.fetch_message(message_id)
            except discord.NotFound:
                pass
        # Fall back to the latest message the bot posted in the channel
        own = [
            message async for message in channel.history(limit=HISTORY_LIMIT)
            if message.author.id == client.user.id
        ]
        if not own:
            return None
        return max(own, key=lambda message: message.created_at)

    async def update(self, **fields) -> discord.Message:
        """Edit the message, or post it if it doesn't exist yet. Takes Messageable.send() fields."""
        if self.channel is None:
            raise RuntimeError("Static message channel is unavailable") from self.error
        if self.message is not None:
            self.message = await self.message.edit(**fields)
        else:
            self.message = await self.channel.send(**fields)
        return self.message
