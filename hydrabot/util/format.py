"""
Text formatting helpers for Discord messages.
"""

from __future__ import annotations

import re
from datetime import datetime

import discord

_CODE_BLOCK_RE = re.compile(r"^```[^\n]*\n(.*?)```", re.DOTALL)

_SI_UNITS = ["B", "kB", "MB", "GB", "TB"]


def wrap_code_block(text: str, lang: str = "") -> str:
    """Wrap a string in a Markdown code block."""
    return f"```{lang}\n{text}\n```"


def unwrap_code_block(text: str) -> str:
    """
    Return the content of a code block.

    Text that isn't a code block (or an unterminated one) is returned as is.
    """
    match = _CODE_BLOCK_RE.match(text.strip())
    if not match:
        return text
    return match.group(1)


def format_filesize(size: int) -> str:
    """Format a byte count with SI units, e.g. 1234 -> '1.23 kB'."""
    if size < 1000:
        return f"{size} B"
    value = float(size)
    for unit in _SI_UNITS[1:]:
        value /= 1000
        if value < 1000 or unit == _SI_UNITS[-1]:
            break
    # Three significant digits, without scientific notation
    return f"{float(f'{value:.3g}'):g} {unit}"


def format_game_duration(duration_ms: int | float) -> str:
    """Format a duration as m:ss or h:mm:ss, e.g. 625000 -> '10:25'."""
    total_seconds = int(duration_ms // 1000)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def format_user_reference(user: discord.abc.Snowflake | None = None, user_id: int | None = None) -> str:
    """Return a mention for a user object or raw user id."""
    return f"<@{user.id if user is not None else user_id}>"


def format_dynamic_timestamp(date: datetime, style: str = "f") -> str:
    """Return a timestamp that each Discord client renders in its own timezone."""
    return discord.utils.format_dt(date, style)


def plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"
