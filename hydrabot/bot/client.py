"""
HydraBot - discord.py bot client.

Manages the full bot lifecycle:
- Initializes once at startup: config file, commands/handlers/tasks, instance
  lock, Twitch client, replay parser and map renderer
- Deploys slash commands to each configured guild before connecting
- Dispatches messages and interactions, and runs periodic tasks once ready
- Cleans up all resources on shutdown via AsyncExitStack
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from datetime import datetime, timezone

import discord

from hydrabot.bot.deploy import CommandDeployer
from hydrabot.bot.dispatch import InteractionDispatcher, MessageDispatcher
from hydrabot.bot.scheduler import TaskScheduler
from hydrabot.config.logging import DiscordChannelHandler, LogContext
from hydrabot.config.schema import BotConfig
from hydrabot.config.settings import Settings
from hydrabot.config.store import ensure_dir, read_config
from hydrabot.modules.base import Command, MessageHandler, Task, TaskContext
from hydrabot.modules.registry import load_command_files, load_message_handlers, load_task_files
from hydrabot.services.mapimage import CommandMapRenderer, MapImageRenderer
from hydrabot.services.replay import ReplayParser, ScrepParser
from hydrabot.services.twitch import TwitchClient, create_twitch_client
from hydrabot.util.lock import DirectoryLock

LOG_SINK_KIND = "discord"


class HydraBot(discord.Client):
    """
    Discord bot for a StarCraft community.

    Holds shared application state (config, loaded units, external services)
    and exposes it to commands, handlers and tasks through their contexts.

    Args:
        settings: Process settings (paths, logging, external tools)
        log: Logging context created by setup_logging()
    """

    def __init__(self, settings: Settings, log: LogContext) -> None:
        intents = discord.Intents.default()
        intents.members = True  # Required to look up members' race and rank roles
        intents.message_content = True  # Required to see replay attachments
        super().__init__(intents=intents)
        self.settings = settings
        self.log = log
        self.logger = log.sub_logger("discord")

        self.config: BotConfig | None = None
        self.bot_commands: list[Command] = []
        self.handlers: list[MessageHandler] = []
        self.tasks: list[Task] = []

        self.lock = DirectoryLock(settings.cache_path)
        self.twitch: TwitchClient | None = None
        self.replay_parser: ReplayParser | None = None
        self.map_renderer: MapImageRenderer | None = None
        self.started_at: datetime | None = None

        self.scheduler: TaskScheduler | None = None
        self.message_dispatcher: MessageDispatcher | None = None
        self.interaction_dispatcher: InteractionDispatcher | None = None

        self._initialized = False
        self._log_sink_runner: asyncio.Task | None = None
        self._exit_stack = AsyncExitStack()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Prepare everything needed to connect. Calling this again does nothing.

        Raises:
            ConfigMissing, ConfigParseError: If config.json can't be used
            LockHeld: If another instance is running against the same cache directory
        """
        if self._initialized:
            return

        ensure_dir(self.settings.config_path)
        ensure_dir(self.settings.cache_path)
        self.config = await read_config(self.settings.config_path)

        # --- 1. Commands, handlers and tasks ---
        self.bot_commands = load_command_files(log=self.log)
        self.handlers = load_message_handlers(log=self.log)
        self.tasks = load_task_files(log=self.log)
        self.logger.info(
            f"Loaded {len(self.bot_commands)} command(s), {len(self.handlers)} handler(s), "
            f"{len(self.tasks)} task(s)"
        )

        # --- 2. Instance lock ---
        self.lock.acquire()
        self.lock.start_refreshing()
        self._exit_stack.callback(self.lock.release)

        try:
            # --- 3. Twitch (optional) ---
            if self.config.twitch is not None:
                self.twitch = await create_twitch_client(self.config.twitch, self.settings.cache_path)
                self._exit_stack.push_async_callback(self.twitch.aclose)
                self.log.sub_logger("twitch", "api").info("Twitch client ready")
            else:
                self.logger.info("Twitch is not configured; livestream updates are disabled")

            # --- 4. Replay tools ---
            replay_settings = self.settings.replay
            self.replay_parser = ScrepParser(replay_settings.screp_path)
            if replay_settings.map_renderer_command:
                self.map_renderer = CommandMapRenderer(
                    replay_settings.map_renderer_command, replay_settings.map_image_extension
                )
            else:
                self.logger.info("Map renderer not configured; replays are posted without map images")
        except BaseException:
            await self._exit_stack.aclose()
            raise

        # --- 5. Dispatchers ---
        self.message_dispatcher = MessageDispatcher(self, self.config, self.handlers, self.logger)
        self.interaction_dispatcher = InteractionDispatcher(self, self.config, self.bot_commands, self.logger)
        self.scheduler = TaskScheduler(self.tasks, self.make_task_context, self.logger)

        self._initialized = True

    def make_task_context(self, task: Task, n: int) -> TaskContext:
        return TaskContext(
            client=self,
            config=self.config,
            logger=task.logger,
            n=n,
            cache_path=self.settings.cache_path,
        )

    async def launch(self) -> None:
        """Log in and run until the connection is closed."""
        if not self._initialized:
            raise RuntimeError("HydraBot.initialize() must be called before launch()")
        self.started_at = datetime.now(timezone.utc)
        await self.start(self.config.discord.credentials.bot_token)

    async def setup_hook(self) -> None:
        """
        Called after login, before connecting to the Gateway.

        Deploys slash commands to every guild whose command set changed.
        """
        deployer = CommandDeployer(
            api=self.http,
            application_id=self.config.discord.credentials.client_id,
            guilds=self.config.discord.guilds,
            cache_path=self.settings.cache_path,
            logger=self.logger,
        )
        await deployer.deploy(self.bot_commands)

    async def on_ready(self) -> None:
        """Called when the bot connects to Discord, and again after reconnects."""
        self.logger.info(f"Logged in as {self.user} (id: {self.user.id})")
        self.logger.info(f"Connected to {len(self.guilds)} guild(s)")
        await self.attach_log_channel()
        self.scheduler.start()

    async def attach_log_channel(self) -> None:
        """Mirror log output to the configured log channel, if there is one."""
        channel_id = self.config.discord.log_channel_id
        if channel_id is None or LOG_SINK_KIND in self.log.external_sinks:
            return
        try:
            channel = self.get_channel(channel_id) or await self.fetch_channel(channel_id)
        except discord.HTTPException as e:
            self.logger.warning(f"Could not find log channel {channel_id}: {e}")
            return
        handler = DiscordChannelHandler(channel, level=getattr(logging, self.settings.log_channel_level))
        self.log.add_external_sink(LOG_SINK_KIND, handler)
        self._log_sink_runner = asyncio.create_task(handler.run(), name="log-channel")
        self.logger.debug(f"Mirroring log output to channel {channel_id}")

    async def on_message(self, message: discord.Message) -> None:
        await self.message_dispatcher.dispatch(message)

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        await self.interaction_dispatcher.dispatch(interaction)

    async def close(self) -> None:
        """Graceful shutdown - stop tasks and clean up all resources before disconnecting."""
        self.logger.info("Shutting down HydraBot...")
        if self.scheduler is not None:
            await self.scheduler.stop()
        self.log.remove_external_sink(LOG_SINK_KIND)
        if self._log_sink_runner is not None:
            self._log_sink_runner.cancel()
            self._log_sink_runner = None
        await self._exit_stack.aclose()
        await super().close()
