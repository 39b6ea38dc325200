"""
Generic replies to interactions the bot couldn't handle.
"""

from __future__ import annotations

import logging
import traceback

import discord

from hydrabot.util.format import wrap_code_block

# Discord rejects message content longer than this
MAX_CONTENT_LENGTH = 2000


def get_error_message(error: BaseException) -> str:
    """Return a readable version of an exception, including its traceback if it has one."""
    if error.__traceback__ is not None:
        return "".join(traceback.format_exception(error)).rstrip()
    return str(error)


async def _reply(interaction: discord.Interaction, content: str) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(content, ephemeral=True)
    else:
        await interaction.response.send_message(content, ephemeral=True)


async def send_unknown_command_reply(interaction: discord.Interaction, logger: logging.Logger) -> None:
    """Tell the user the command they used isn't one we know."""
    name = (interaction.data or {}).get("name", "?")
    logger.warning(f"Interaction yielded unknown command (id={interaction.id}, name={name})")
    await _reply(interaction, f"Unknown command: **{name}**.")


async def send_error_reply(
    interaction: discord.Interaction, error: BaseException, logger: logging.Logger
) -> None:
    """Tell the user something went wrong while handling their interaction."""
    error_message = get_error_message(error)
    logger.warning(f"Interaction error (id={interaction.id}):\n{error_message}")

    header = "An error occurred while handling this interaction.\n"
    # Keep the end of the traceback, which names the actual error
    room = MAX_CONTENT_LENGTH - len(header) - len(wrap_code_block(""))
    await _reply(interaction, header + wrap_code_block(error_message[-room:]))
