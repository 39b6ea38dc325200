"""
Logging configuration and setup.

Console output is colored and every line carries a UTC timestamp and a
bracketed component prefix, e.g.:

    [14:30:57Z] [task livestreams] INFO Initial update of the livestreams list

setup_logging() returns a LogContext, which is passed to the bot. It hands out
component loggers and manages external sinks: handlers that mirror log output
somewhere other than the console, such as a Discord channel.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

import discord

if TYPE_CHECKING:
    from hydrabot.config.settings import Settings

ROOT_LOGGER_NAME = "hydrabot"

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def _component_name(logger_name: str) -> str:
    """hydrabot.task.livestreams -> 'task livestreams'"""
    name = logger_name.removeprefix(f"{ROOT_LOGGER_NAME}.")
    if name == ROOT_LOGGER_NAME:
        return "hydrabot"
    return name.replace(".", " ")


class PrefixFormatter(logging.Formatter):
    """Formatter that adds the UTC timestamp and component prefix."""

    converter = time.gmtime

    def __init__(self, fmt: str, include_dates: bool = False) -> None:
        datefmt = "%Y-%m-%d %H:%M:%SZ" if include_dates else "%H:%M:%SZ"
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        record.component = _component_name(record.name)
        return super().format(record)


class ColoredFormatter(PrefixFormatter):
    """Formatter that adds color to console output."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with color."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            # Other handlers share the record
            record.levelname = levelname

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return f"{self.DIM}{super().formatTime(record, datefmt)}{self.RESET}"


CONSOLE_FORMAT = "[%(asctime)s] [%(component)s] %(levelname)s %(message)s"
FILE_FORMAT = "[%(asctime)s] [%(component)s] %(levelname)s %(funcName)s:%(lineno)d - %(message)s"
REMOTE_FORMAT = "[%(component)s] %(levelname)s %(message)s"


class LogContext:
    """
    Logging state for one bot process.

    Replaces module-level logger globals: the bot receives this object and
    uses it to create component loggers and to add or remove external sinks.

    Args:
        root: The package root logger that all component loggers descend from
        include_dates: Whether timestamps include the date
    """

    def __init__(self, root: logging.Logger, include_dates: bool = False) -> None:
        self.root = root
        self.include_dates = include_dates
        self._external_sinks: dict[str, logging.Handler] = {}

    def sub_logger(self, name: str, sub_name: str | None = None) -> logging.Logger:
        """Return a component logger, e.g. sub_logger('task', 'livestreams')."""
        full_name = f"{name}.{sub_name}" if sub_name else name
        return self.root.getChild(full_name)

    def add_external_sink(self, kind: str, handler: logging.Handler) -> None:
        """Mirror all log output to an extra handler. Replaces any sink of the same kind."""
        self.remove_external_sink(kind)
        if handler.formatter is None:
            handler.setFormatter(PrefixFormatter(REMOTE_FORMAT, self.include_dates))
        self._external_sinks[kind] = handler
        self.root.addHandler(handler)

    def remove_external_sink(self, kind: str) -> logging.Handler | None:
        handler = self._external_sinks.pop(kind, None)
        if handler is not None:
            self.root.removeHandler(handler)
        return handler

    @property
    def external_sinks(self) -> dict[str, logging.Handler]:
        return dict(self._external_sinks)


class DiscordChannelHandler(logging.Handler):
    """
    External sink that mirrors log records to a Discord channel.

    emit() only queues the formatted text; run() delivers queued lines in code
    blocks. Colors are stripped since Discord doesn't render them. Records
    from this module are never mirrored, so delivery problems can be logged
    without feeding back into the channel.
    """

    MAX_LENGTH = 1900

    def __init__(self, channel: discord.abc.Messageable, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self.channel = channel
        self.queue: asyncio.Queue[str] = asyncio.Queue()
        self.addFilter(lambda record: record.name != __name__)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(strip_ansi(self.format(record)))
        except Exception:
            self.handleError(record)

    def _drain(self, first: str) -> str:
        lines = [first]
        size = len(first)
        while not self.queue.empty():
            line = self.queue.get_nowait()
            if size + len(line) + 1 > self.MAX_LENGTH:
                # Put it back for the next message
                self.queue.put_nowait(line)
                break
            lines.append(line)
            size += len(line) + 1
        return "\n".join(lines)[: self.MAX_LENGTH]

    async def run(self) -> None:
        """Deliver queued log lines forever."""
        log = logging.getLogger(__name__)
        while True:
            text = self._drain(await self.queue.get())
            try:
                await self.channel.send(f"```\n{text}\n```")
            except discord.HTTPException as e:
                log.warning(f"Could not mirror log output to Discord: {e}")


def setup_logging(settings: Settings) -> LogContext:
    """
    Configure logging based on settings.

    Args:
        settings: Process settings containing log configuration

    Returns:
        LogContext for the configured root logger
    """
    # Create root logger
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, settings.log_level))

    # Remove existing handlers
    root_logger.handlers.clear()

    # Console handler with color
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, settings.log_level))
    console_handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, settings.log_include_dates))
    root_logger.addHandler(console_handler)

    # File handler if configured
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(getattr(logging, settings.log_level))
        file_handler.setFormatter(PrefixFormatter(FILE_FORMAT, include_dates=True))
        root_logger.addHandler(file_handler)

    # Don't propagate to root logger
    root_logger.propagate = False

    root_logger.debug(f"Logging initialized - Level: {settings.log_level}")
    if settings.log_file:
        root_logger.debug(f"Logging to file: {settings.log_file}")

    return LogContext(root_logger, include_dates=settings.log_include_dates)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger under the hydrabot root logger
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
