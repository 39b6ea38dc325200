"""
Slash command deployment.

Commands are registered per guild with a single "replace all guild commands"
request. The hash of the deployed command set is stored in the guild cache,
and a guild whose stored hash matches the current one is left alone, so
restarting the bot does not re-register unchanged commands.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from hydrabot.config.schema import GuildConfig
from hydrabot.config.store import read_guild_cache, write_guild_cache
from hydrabot.modules.base import Command
from hydrabot.modules.registry import calc_command_hash, command_definitions

HASH_KEY = "commandHash"


class CommandRegistrationAPI(Protocol):
    """The part of discord.py's HTTP client used to register guild commands."""

    async def bulk_upsert_guild_commands(
        self, application_id: int, guild_id: int, payload: list[dict[str, Any]]
    ) -> list[dict[str, Any]]: ...


class CommandDeployer:
    """
    Keeps every configured guild's slash commands in sync with the loaded ones.

    Args:
        api: Command registration API (the client's `http` attribute)
        application_id: The bot's application id
        guilds: Guilds to deploy to
        cache_path: Directory holding the guild caches
        logger: Logger for deployment progress and failures
    """

    def __init__(
        self,
        api: CommandRegistrationAPI,
        application_id: int,
        guilds: Iterable[GuildConfig],
        cache_path: Path,
        logger: logging.Logger,
    ) -> None:
        self.api = api
        self.application_id = application_id
        self.guilds = list(guilds)
        self.cache_path = cache_path
        self.logger = logger

    async def deploy(self, commands: Iterable[Command]) -> list[int]:
        """
        Register commands with every guild whose stored hash differs.

        A failure for one guild is logged and the remaining guilds are still
        attempted.

        Returns:
            Ids of the guilds that commands were deployed to
        """
        definitions = command_definitions(commands)
        command_hash = calc_command_hash(definitions)
        deployed = []

        for guild in self.guilds:
            try:
                cache = await read_guild_cache(self.cache_path, guild.id)
                if cache.get(HASH_KEY) == command_hash:
                    self.logger.debug(f"Commands for guild {guild.id} are up to date")
                    continue
                await self.api.bulk_upsert_guild_commands(self.application_id, guild.id, definitions)
                await write_guild_cache(self.cache_path, guild.id, {HASH_KEY: command_hash})
            except Exception as e:
                self.logger.error(f"Could not deploy commands to guild {guild.id}: {e}")
                continue
            self.logger.info(
                f"Deployed {len(definitions)} command(s) to guild {guild.id}, hash 0x{int(command_hash):08x}"
            )
            deployed.append(guild.id)

        return deployed
