"""
Replay handler - posts information about replay files attached to messages.

For each attached .rep file the handler downloads the file, renders a map
image if a renderer is configured, and parses it. Parsed replays get an
embed; replays that can't be parsed get a one-line error. If more than one
replay was posted, a summary with the total game length is added. The
reply doesn't ping the author.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import discord

from hydrabot.bot.remote import EmojiDecorator, make_emoji_decorator
from hydrabot.errors import ReplayErrorType, ReplayParseError
from hydrabot.modules.base import HandlerContext, Manifest, MessageHandler
from hydrabot.services.mapimage import MapImage, MapImageError, MapImageRenderer
from hydrabot.services.replay import ReplayInfo, ReplayParser, ScrepParser
from hydrabot.util.format import (
    format_dynamic_timestamp,
    format_filesize,
    format_game_duration,
    plural,
    wrap_code_block,
)

BATTLE_NET_LOGO = "https://i.imgur.com/C8izhrY.png"
BATTLE_NET_COLOR = 0x0074E0

REPLAY_EXTENSION = ".rep"

# Discord allows 10 embeds per message; one is kept free for the summary
MAX_REPLAYS = 9

# Discord's limit for embed field values
MAX_FIELD_LENGTH = 1024


@dataclass
class ReplayResult:
    """The outcome of processing one attachment."""

    attachment: discord.Attachment
    info: ReplayInfo | None = None
    error: ReplayParseError | None = None
    image: MapImage | None = None


@dataclass
class ReplayReply:
    """Everything that goes into the reply message."""

    errors: list[str] = field(default_factory=list)
    embeds: list[discord.Embed] = field(default_factory=list)
    files: list[discord.File] = field(default_factory=list)

    @property
    def content(self) -> str | None:
        return "\n".join(self.errors) or None


def get_replay_attachments(attachments: list[discord.Attachment]) -> list[discord.Attachment]:
    """Return the attachments that are replay files."""
    replays = [a for a in attachments if a.filename.lower().endswith(REPLAY_EXTENSION)]
    return replays[:MAX_REPLAYS]


def _truncate(text: str, limit: int = MAX_FIELD_LENGTH) -> str:
    return text if len(text) <= limit else f"{text[: limit - 1]}…"


def make_replay_embed(
    info: ReplayInfo,
    attachment: discord.Attachment,
    image: MapImage | None,
    format_emoji: EmojiDecorator,
) -> discord.Embed:
    """Create an embed describing a parsed replay."""
    embed = discord.Embed(
        title=format_emoji(info.matchup_title),
        url=attachment.url,
        color=BATTLE_NET_COLOR,
        timestamp=datetime.now(timezone.utc),
    )
    embed.set_author(name="Replay file information", icon_url=BATTLE_NET_LOGO)

    players = "\n".join(f"• {format_emoji(player.name_formatted)}" for player in info.players)
    if info.start_time is not None:
        played = (
            f"📅 {format_dynamic_timestamp(info.start_time, 'f')}, "
            f"{format_dynamic_timestamp(info.start_time, 'R')}"
        )
    else:
        played = "Unknown"
    chat_lines = "\n".join(info.chat)
    chat = f"||{_truncate(chat_lines, MAX_FIELD_LENGTH - 4)}||" if chat_lines else "*No messages.*"

    embed.add_field(name="Players", value=_truncate(players or "*No players.*"), inline=False)
    embed.add_field(name="Map", value=f"🗺️ {info.map_name or 'Unknown'}", inline=True)
    embed.add_field(name="Length", value=format_game_duration(info.duration_ms), inline=True)
    embed.add_field(name="Played", value=played, inline=False)
    embed.add_field(
        name="Download",
        value=f"📁 [{attachment.filename} ({format_filesize(attachment.size)})]({attachment.url})",
        inline=False,
    )
    embed.add_field(name="Chat messages (click to reveal)", value=chat, inline=False)

    if image is not None:
        embed.set_thumbnail(url=f"attachment://{image.filename}")
    return embed


def make_summary_embed(count: int, duration_ms: int) -> discord.Embed:
    """Create an embed with the number of replays and their total length."""
    return discord.Embed(
        description=f"**Summary:** {plural(count, 'replay')} for a total length of "
                    f"{format_game_duration(duration_ms)}.",
        color=BATTLE_NET_COLOR,
    )


def make_error_message(error: ReplayParseError, attachment: discord.Attachment) -> str:
    """Create a Markdown line explaining why a replay couldn't be parsed."""
    base = f"Could not parse the replay file `{attachment.filename}` ({format_filesize(attachment.size)}):"
    if error.error_type == ReplayErrorType.UNSUPPORTED_OLD:
        return f"{base} only *StarCraft: Remastered* replay files are supported."
    return f"{base} unknown what went wrong. Here's the error:\n{wrap_code_block(str(error))}"


def build_reply(results: list[ReplayResult], format_emoji: EmojiDecorator) -> ReplayReply:
    """Turn processed replays into the reply's error lines, embeds and files."""
    reply = ReplayReply()
    total_ms = 0
    attached: set[str] = set()
    for result in results:
        if result.image is not None and result.image.map_hash not in attached:
            attached.add(result.image.map_hash)
            reply.files.append(discord.File(io.BytesIO(result.image.data), filename=result.image.filename))
        if result.info is not None:
            total_ms += result.info.duration_ms
            reply.embeds.append(make_replay_embed(result.info, result.attachment, result.image, format_emoji))
        else:
            reply.errors.append(make_error_message(result.error, result.attachment))

    if len(results) > 1 and reply.embeds:
        reply.embeds.append(make_summary_embed(len(results), total_ms))
    return reply


async def process_replay(
    attachment: discord.Attachment,
    parser: ReplayParser,
    renderer: MapImageRenderer | None,
    logger: logging.Logger,
) -> ReplayResult:
    """Download, render and parse one replay attachment."""
    data = await attachment.read()
    result = ReplayResult(attachment)

    if renderer is not None:
        try:
            result.image = await renderer.render(data)
        except MapImageError as e:
            logger.warning(f"Could not create map image for url: {attachment.url}: {e}")

    try:
        result.info = await parser.parse(data)
    except ReplayParseError as e:
        result.error = e
    return result


class ReplayHandler(MessageHandler):
    """Replies to messages with replay attachments."""

    manifest = Manifest(
        name="replay",
        description="Displays information about replay file attachments in messages.",
    )

    async def applies(self, message: discord.Message, ctx: HandlerContext) -> bool:
        return bool(get_replay_attachments(message.attachments))

    async def handle(self, message: discord.Message, ctx: HandlerContext) -> None:
        attachments = get_replay_attachments(message.attachments)
        parser = getattr(ctx.client, "replay_parser", None) or ScrepParser()
        renderer = getattr(ctx.client, "map_renderer", None)

        results = [await process_replay(a, parser, renderer, ctx.logger) for a in attachments]

        emojis = message.guild.emojis if message.guild is not None else []
        mapping = ctx.guild_config.emoji_mapping if ctx.guild_config is not None else None
        reply = build_reply(results, make_emoji_decorator(emojis, mapping))

        fields = {"content": reply.content, "embeds": reply.embeds, "mention_author": False}
        if reply.files:
            fields["files"] = reply.files
        await message.reply(**fields)
        ctx.logger.info(f"Parsed {plural(len(attachments), 'replay file')}")
