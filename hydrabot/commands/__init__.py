"""
Slash commands.

Every command class listed in COMMANDS is loaded at startup and deployed to
the configured guilds.
"""

from hydrabot.commands.about import AboutCommand

COMMANDS = [AboutCommand]

__all__ = ["COMMANDS", "AboutCommand"]
