"""
Interfaces for the bot's pluggable units: commands, message handlers and tasks.

Every unit declares a Manifest as a class attribute. The registry (see
registry.py) instantiates units, drops the ones with an invalid manifest,
and gives each survivor its own logger.

Example::

    class PingCommand(Command):
        manifest = Manifest(name="ping", description="Replies with pong.")

        async def execute(self, interaction, ctx):
            await interaction.response.send_message("pong")
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    import discord

    from hydrabot.config.schema import BotConfig, GuildConfig

# Discord's application command type for slash commands
CHAT_INPUT = 1


class Manifest(BaseModel):
    """Static metadata describing a command, handler or task."""

    name: str = Field(default="", description="Unique name within the unit's kind")
    description: str = ""
    interval: timedelta | None = Field(
        default=None, description="Time between task cycles (tasks only)"
    )
    run_on_startup: bool = Field(
        default=False, description="Run the first task cycle immediately instead of after one interval"
    )

    model_config = ConfigDict(frozen=True)


@dataclass
class CommandContext:
    client: discord.Client
    guild_config: GuildConfig | None
    logger: logging.Logger


@dataclass
class HandlerContext:
    client: discord.Client
    guild_config: GuildConfig | None
    logger: logging.Logger


@dataclass
class TaskContext:
    client: discord.Client
    config: BotConfig
    logger: logging.Logger
    n: int
    cache_path: Path


class Module(ABC):
    """Base for all units. The registry sets `logger` when the unit is loaded."""

    manifest: ClassVar[Manifest | None] = None
    logger: logging.Logger

    @property
    def name(self) -> str:
        return self.manifest.name if self.manifest else "unknown"


class Command(Module):
    """A slash command."""

    # Discord application command option schema
    options: ClassVar[list[dict[str, Any]]] = []

    def to_dict(self) -> dict[str, Any]:
        """Return the payload used to register this command with Discord."""
        return {
            "name": self.manifest.name,
            "description": self.manifest.description,
            "type": CHAT_INPUT,
            "options": list(self.options),
        }

    @abstractmethod
    async def execute(self, interaction: discord.Interaction, ctx: CommandContext) -> None:
        """Respond to an invocation of this command."""


class MessageHandler(Module):
    """Reacts to incoming messages that it applies to."""

    @abstractmethod
    async def applies(self, message: discord.Message, ctx: HandlerContext) -> bool:
        """Return whether handle() should run for this message."""

    @abstractmethod
    async def handle(self, message: discord.Message, ctx: HandlerContext) -> None:
        """Process the message."""


class Task(Module):
    """Work that runs periodically, every manifest.interval."""

    # Set by the scheduler once this task has been started
    queued: bool = False

    @abstractmethod
    async def run(self, ctx: TaskContext) -> None:
        """Run one cycle."""
