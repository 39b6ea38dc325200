"""
Loading commands, message handlers and tasks.

Units are registered statically in hydrabot.commands, hydrabot.handlers and
hydrabot.tasks. Loading instantiates each registered class, validates its
manifest and attaches a component logger. A unit with a missing or nameless
manifest is skipped without an error, so a half-finished unit never stops the
bot from starting.
"""

from __future__ import annotations

import json
import logging
import zlib
from collections.abc import Iterable
from typing import Any, TypeVar

from hydrabot.config.logging import LogContext, get_logger
from hydrabot.modules.base import Command, MessageHandler, Module, Task

logger = get_logger(__name__)

M = TypeVar("M", bound=Module)


def _sub_logger(log: LogContext | None, prefix: str, name: str) -> logging.Logger:
    if log is not None:
        return log.sub_logger(prefix, name)
    return get_logger(f"{prefix}.{name}")


def _load_units(
    units: Iterable[type[M]],
    kind: type[M],
    prefix: str,
    log: LogContext | None,
) -> list[M]:
    loaded: list[M] = []
    names: set[str] = set()
    for unit in units:
        manifest = getattr(unit, "manifest", None)
        if manifest is None or not manifest.name:
            logger.debug(f"Skipping {unit!r}: no manifest name")
            continue
        if not issubclass(unit, kind):
            logger.warning(f"Skipping {manifest.name!r}: not a {kind.__name__}")
            continue
        if manifest.name in names:
            logger.warning(f"Skipping {manifest.name!r}: duplicate {kind.__name__} name")
            continue
        instance = unit()
        instance.logger = _sub_logger(log, prefix, manifest.name)
        names.add(manifest.name)
        loaded.append(instance)
    return loaded


def load_command_files(
    units: Iterable[type[Command]] | None = None, log: LogContext | None = None
) -> list[Command]:
    """Load slash commands (default: hydrabot.commands.COMMANDS)."""
    if units is None:
        from hydrabot.commands import COMMANDS as units
    return _load_units(units, Command, "cmd", log)


def load_message_handlers(
    units: Iterable[type[MessageHandler]] | None = None, log: LogContext | None = None
) -> list[MessageHandler]:
    """Load message handlers (default: hydrabot.handlers.HANDLERS)."""
    if units is None:
        from hydrabot.handlers import HANDLERS as units
    return _load_units(units, MessageHandler, "msg", log)


def load_task_files(
    units: Iterable[type[Task]] | None = None, log: LogContext | None = None
) -> list[Task]:
    """
    Load periodic tasks (default: hydrabot.tasks.TASKS).

    Tasks without an interval can't be scheduled and are skipped. Every
    loaded task starts out with queued = False.
    """
    if units is None:
        from hydrabot.tasks import TASKS as units
    tasks = []
    for task in _load_units(units, Task, "task", log):
        if task.manifest.interval is None or task.manifest.interval.total_seconds() <= 0:
            logger.warning(f"Skipping task {task.name!r}: no interval")
            continue
        task.queued = False
        tasks.append(task)
    return tasks


def command_definitions(commands: Iterable[Command]) -> list[dict[str, Any]]:
    """Return registration payloads for all commands, sorted by name."""
    return [cmd.to_dict() for cmd in sorted(commands, key=lambda cmd: cmd.manifest.name)]


def calc_command_hash(definitions: Iterable[dict[str, Any]]) -> str:
    """
    Return a fingerprint of a set of command definitions.

    Used only to detect whether a guild's commands need to be redeployed.
    Definitions are sorted by name, so the order they were loaded in
    doesn't matter.
    """
    ordered = sorted(definitions, key=lambda definition: definition["name"])
    data = json.dumps(ordered, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return str(zlib.crc32(data.encode("utf-8")))
