"""
Bot settings stored as Discord messages.

A guild's settings channel holds one or more messages (optionally in code
blocks) that together form an INI document, e.g.:

    [livestreams]
    channelId = 1131303837393039470
    description = Who's live right now?
    users[] = Dada <https://twitch.tv/dada78641>
    users[] = Someone <https://www.twitch.tv/someone>

This lets guild admins change what the bot displays without touching the
config file. Keys ending in [] collect into lists.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_SECTION_RE = re.compile(r"^\[(.+)\]$")
_USER_RE = re.compile(r"^(.+?)<(.+?)>$")
_TWITCH_NAME_RE = re.compile(r"twitch\.tv/(.+?)/?$")


class StreamUser(BaseModel):
    """A Discord user and the Twitch channel they stream on."""

    username: str
    twitch_url: str
    twitch_username: str


class LivestreamSettings(BaseModel):
    channel_id: int | None = None
    description: str = ""
    users: list[StreamUser] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RemoteSettings(BaseModel):
    livestreams: LivestreamSettings = Field(default_factory=LivestreamSettings)

    model_config = ConfigDict(extra="allow")


def parse_ini(content: str) -> dict[str, Any]:
    """
    Parse INI text into nested dicts.

    Lines before the first section go to the top level. Comments start with
    ; or #. Keys ending in [] are collected into lists.
    """
    data: dict[str, Any] = {}
    section = data
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line[0] in ";#":
            continue
        if match := _SECTION_RE.match(line):
            section = data.setdefault(match.group(1).strip(), {})
            continue
        if "=" not in line:
            continue
        key, value = (part.strip() for part in line.split("=", 1))
        if key.endswith("[]"):
            section.setdefault(key[:-2], []).append(value)
        else:
            section[key] = value
    return data


def parse_stream_user(line: str) -> StreamUser | None:
    """Parse 'Name <https://twitch.tv/name>'. Returns None for malformed lines."""
    match = _USER_RE.match(line.strip())
    if not match:
        return None
    url = match.group(2).strip()
    twitch_name = _TWITCH_NAME_RE.search(url)
    if not twitch_name:
        return None
    return StreamUser(
        username=match.group(1).strip(),
        twitch_url=url,
        twitch_username=twitch_name.group(1).strip(),
    )


def extract_settings_from_message(content: str) -> RemoteSettings:
    """Build RemoteSettings from the settings channel's text. Malformed user lines are dropped."""
    data = parse_ini(content)
    livestreams = dict(data.get("livestreams", {}))
    users = livestreams.get("users", [])
    if isinstance(users, str):
        users = [users]
    livestreams["users"] = [user for user in map(parse_stream_user, users) if user is not None]
    if not livestreams.get("channelId"):
        livestreams.pop("channelId", None)
    return RemoteSettings.model_validate({**data, "livestreams": livestreams})
