"""
Models for the bot config file (config.json).

The file uses camelCase keys; the models expose snake_case attributes and
accept either form. All models are frozen: the config is read once at
startup and never modified afterwards.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ConfigModel(BaseModel):
    """Base for config file models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class DiscordCredentials(ConfigModel):
    client_id: int = Field(description="Application (client) id")
    bot_token: str = Field(min_length=1, description="Bot token used to log in")


class ChannelIds(ConfigModel):
    settings: int | None = Field(
        default=None, description="Channel whose messages hold the bot's remote settings"
    )

    model_config = ConfigDict(extra="allow")


class GuildConfig(ConfigModel):
    """Per-guild configuration."""

    id: int
    channel_ids: ChannelIds = Field(default_factory=ChannelIds)
    emoji_mapping: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Internal emoji name -> the guild's name(s) for that emoji",
    )


class DiscordConfig(ConfigModel):
    credentials: DiscordCredentials
    guilds: list[GuildConfig] = Field(default_factory=list)
    log_channel_id: int | None = Field(
        default=None, description="If set, log output is mirrored to this channel"
    )


class TwitchAppCredentials(ConfigModel):
    client_id: str
    client_secret: str
    redirect_uri: str = "http://localhost"


class TwitchApiCredentials(ConfigModel):
    auth_code: str = Field(description="One-time authorization code, exchanged on first run")
    user_name: str = Field(description="Twitch account the bot acts as")


class TwitchConfig(ConfigModel):
    app_credentials: TwitchAppCredentials
    api_credentials: TwitchApiCredentials


class BotConfig(ConfigModel):
    """Root of config.json."""

    discord: DiscordConfig
    twitch: TwitchConfig | None = None

    def find_guild(self, guild_id: int | None) -> GuildConfig | None:
        """Return the config for a guild, or None if the guild isn't configured."""
        if guild_id is None:
            return None
        return next((guild for guild in self.discord.guilds if guild.id == guild_id), None)
