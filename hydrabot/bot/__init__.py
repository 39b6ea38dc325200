"""
Discord Bot Layer.

Handles the bot lifecycle, command deployment, task scheduling and routing
of messages and interactions to the loaded commands and handlers.
"""

from hydrabot.bot.client import HydraBot

__all__ = ["HydraBot"]
