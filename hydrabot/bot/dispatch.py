"""
Routing of incoming Discord events to the loaded commands and handlers.

MessageDispatcher offers every message to each handler in turn. A handler's
applies() is awaited, but its handle() is started as a separate task and not
waited for, so a slow handler never holds up the others. Each started task
has its own error boundary.

InteractionDispatcher runs the slash command an interaction names, or tells
the user that the command is unknown.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

import discord

from hydrabot.bot.sysmsg import send_error_reply, send_unknown_command_reply
from hydrabot.config.schema import BotConfig
from hydrabot.modules.base import CHAT_INPUT, Command, CommandContext, HandlerContext, MessageHandler


def is_own_message(client: discord.Client, message: discord.Message) -> bool:
    return client.user is not None and message.author.id == client.user.id


def is_bot_message(message: discord.Message) -> bool:
    return bool(message.author.bot)


def find_interaction_command(commands: Iterable[Command], interaction: discord.Interaction) -> Command | None:
    """Return the command whose name matches the interaction exactly, if any."""
    name = (interaction.data or {}).get("name")
    return next((cmd for cmd in commands if cmd.manifest.name == name), None)


def _guild_id(obj: discord.Message | discord.Interaction) -> int | None:
    return obj.guild.id if obj.guild is not None else None


class MessageDispatcher:
    """
    Offers incoming messages to message handlers.

    Args:
        client: The bot client
        config: The bot config file
        handlers: Loaded message handlers, in the order they are offered messages
        logger: Logger for dispatch failures
    """

    def __init__(
        self,
        client: discord.Client,
        config: BotConfig,
        handlers: list[MessageHandler],
        logger: logging.Logger,
    ) -> None:
        self.client = client
        self.config = config
        self.handlers = handlers
        self.logger = logger
        # Keeps a reference to running handle() calls until they finish
        self.pending: set[asyncio.Task] = set()

    def _context(self, handler: MessageHandler, message: discord.Message) -> HandlerContext:
        return HandlerContext(
            client=self.client,
            guild_config=self.config.find_guild(_guild_id(message)),
            logger=handler.logger,
        )

    def _log_error(self, handler: MessageHandler, error: BaseException) -> None:
        name = getattr(handler, "name", None) or "unknown"
        self.logger.error(f"Message handler {name} failed: {error}", exc_info=error)

    async def _handle(self, handler: MessageHandler, message: discord.Message, ctx: HandlerContext) -> None:
        try:
            await handler.handle(message, ctx)
        except Exception as e:
            self._log_error(handler, e)

    async def dispatch(self, message: discord.Message) -> list[asyncio.Task]:
        """
        Offer a message to every handler.

        Returns:
            The started handle() tasks, one per handler that applied
        """
        if is_own_message(self.client, message) or is_bot_message(message):
            return []

        started = []
        for handler in self.handlers:
            ctx = self._context(handler, message)
            try:
                if not await handler.applies(message, ctx):
                    continue
            except Exception as e:
                self._log_error(handler, e)
                continue
            task = asyncio.create_task(self._handle(handler, message, ctx))
            self.pending.add(task)
            task.add_done_callback(self.pending.discard)
            started.append(task)
        return started


class InteractionDispatcher:
    """
    Runs slash commands.

    Args:
        client: The bot client
        config: The bot config file
        commands: Loaded commands
        logger: Logger for command usage and failures
    """

    def __init__(
        self,
        client: discord.Client,
        config: BotConfig,
        commands: list[Command],
        logger: logging.Logger,
    ) -> None:
        self.client = client
        self.config = config
        self.commands = commands
        self.logger = logger

    @staticmethod
    def is_chat_input(interaction: discord.Interaction) -> bool:
        return (
            interaction.type == discord.InteractionType.application_command
            and (interaction.data or {}).get("type") == CHAT_INPUT
        )

    async def dispatch(self, interaction: discord.Interaction) -> None:
        """Run the command named by an interaction. Interactions other than slash commands are ignored."""
        if not self.is_chat_input(interaction):
            return

        command = find_interaction_command(self.commands, interaction)
        if command is None:
            await send_unknown_command_reply(interaction, self.logger)
            return

        user = interaction.user
        self.logger.info(f"Command {command.name} used by user {user} ({user.id})")
        ctx = CommandContext(
            client=self.client,
            guild_config=self.config.find_guild(_guild_id(interaction)),
            logger=command.logger,
        )
        try:
            await command.execute(interaction, ctx)
        except Exception as e:
            self.logger.error(f"Command {command.name} failed: {e}", exc_info=e)
            try:
                await send_error_reply(interaction, e, self.logger)
            except discord.HTTPException as reply_error:
                self.logger.warning(f"Could not send error reply for command {command.name}: {reply_error}")
