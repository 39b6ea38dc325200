"""
HydraBot - Discord chat bot for a StarCraft community.

Posts replay file information, keeps a live Twitch streams list up to date,
and deploys the bot's slash commands to each configured guild.
"""

__version__ = "0.1.0"
