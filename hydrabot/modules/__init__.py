"""
Pluggable units: slash commands, message handlers and periodic tasks.
"""

from hydrabot.modules.base import (
    Command,
    CommandContext,
    HandlerContext,
    Manifest,
    MessageHandler,
    Task,
    TaskContext,
)
from hydrabot.modules.registry import (
    calc_command_hash,
    command_definitions,
    load_command_files,
    load_message_handlers,
    load_task_files,
)

__all__ = [
    "Command",
    "CommandContext",
    "HandlerContext",
    "Manifest",
    "MessageHandler",
    "Task",
    "TaskContext",
    "calc_command_hash",
    "command_definitions",
    "load_command_files",
    "load_message_handlers",
    "load_task_files",
]
