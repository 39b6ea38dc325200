"""
StarCraft replay parsing.

ReplayParser is the interface the replay handler depends on. ScrepParser
implements it by running the screp command line tool
(https://github.com/icza/screp), which prints a replay's header and
computed data as JSON.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from hydrabot.config.logging import get_logger
from hydrabot.errors import ReplayErrorType, ReplayParseError

logger = get_logger(__name__)

# Game frames last 42 ms on "fastest" speed
FRAME_MS = 42

# Substrings in parser errors that mean the file predates the supported format
_UNSUPPORTED_MARKERS = ("unsupported replay version", "unsupported version", "not a replay file")


class ReplayPlayer(BaseModel):
    name: str
    race: str = "unknown"
    team: int = 0
    is_observer: bool = False

    @property
    def race_emoji(self) -> str:
        """Internal emoji code for the player's race, e.g. ':zerg:'."""
        race = self.race.lower()
        return f":{race if race in ('terran', 'protoss', 'zerg') else 'question'}:"

    @property
    def name_formatted(self) -> str:
        return f"{self.race_emoji} {self.name}"


class ReplayInfo(BaseModel):
    """Metadata of a parsed replay."""

    title: str = ""
    map_name: str = ""
    players: list[ReplayPlayer] = Field(default_factory=list)
    duration_ms: int = 0
    start_time: datetime | None = None
    chat: list[str] = Field(default_factory=list)
    engine: str = ""

    @property
    def matchup_title(self) -> str:
        """The replay title, or 'A vs B' built from the players if it has none."""
        if self.title.strip():
            return self.title.strip()
        teams: dict[int, list[str]] = {}
        for player in self.players:
            if not player.is_observer:
                teams.setdefault(player.team, []).append(f"{player.race_emoji} {player.name}")
        return " vs ".join(", ".join(names) for _, names in sorted(teams.items())) or "Replay"


def classify_error(message: str) -> ReplayErrorType:
    lowered = message.lower()
    if any(marker in lowered for marker in _UNSUPPORTED_MARKERS):
        return ReplayErrorType.UNSUPPORTED_OLD
    return ReplayErrorType.UNKNOWN


def replay_info_from_screp(data: dict[str, Any]) -> ReplayInfo:
    """Convert screp's JSON output to ReplayInfo."""
    header = data.get("Header") or {}
    computed = data.get("Computed") or {}

    players = []
    names_by_slot: dict[int, str] = {}
    names_by_id: dict[int, str] = {}
    for player in header.get("Players") or []:
        name = player.get("Name", "")
        names_by_slot[player.get("SlotID", -1)] = name
        names_by_id[player.get("ID", -1)] = name
        players.append(ReplayPlayer(
            name=name,
            race=(player.get("Race") or {}).get("Name", "unknown"),
            team=player.get("Team", 0),
            is_observer=bool(player.get("Observer", False)),
        ))

    chat = []
    for cmd in computed.get("ChatCmds") or []:
        if "SenderSlotID" in cmd:
            sender = names_by_slot.get(cmd["SenderSlotID"], "?")
        else:
            sender = names_by_id.get(cmd.get("PlayerID", -1), "?")
        chat.append(f"{sender}: {cmd.get('Message', '')}")

    return ReplayInfo(
        title=header.get("Title", ""),
        map_name=header.get("Map", ""),
        players=players,
        duration_ms=int(header.get("Frames", 0)) * FRAME_MS,
        start_time=header.get("StartTime") or None,
        chat=chat,
        engine=(header.get("Engine") or {}).get("Name", ""),
    )


class ReplayParser(ABC):
    """Turns raw replay bytes into ReplayInfo."""

    @abstractmethod
    async def parse(self, data: bytes) -> ReplayInfo:
        """
        Parse a replay file.

        Raises:
            ReplayParseError: If the file can't be parsed; its error_type tells
                              an unsupported old format apart from other failures
        """


class ScrepParser(ReplayParser):
    """
    Replay parser backed by the screp executable.

    Args:
        screp_path: Path to (or name of) the screp executable
    """

    def __init__(self, screp_path: str = "screp") -> None:
        self.screp_path = screp_path

    async def _run(self, path: str) -> tuple[int, bytes, bytes]:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.screp_path, "-computed", path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ReplayParseError(f"screp executable not found: {self.screp_path}") from e
        stdout, stderr = await proc.communicate()
        return proc.returncode, stdout, stderr

    async def parse(self, data: bytes) -> ReplayInfo:
        # screp reads from a file, not stdin
        fd, path = tempfile.mkstemp(suffix=".rep")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            returncode, stdout, stderr = await self._run(path)
        finally:
            os.unlink(path)

        if returncode != 0:
            message = stderr.decode("utf-8", "replace").strip() or f"screp exited with code {returncode}"
            logger.debug(f"screp failed on {len(data)} byte replay: {message}")
            raise ReplayParseError(message, classify_error(message))
        try:
            return replay_info_from_screp(json.loads(stdout))
        except (json.JSONDecodeError, ValueError) as e:
            raise ReplayParseError(f"could not read screp output: {e}") from e
