"""
Map images for replay embeds.

Rendering is done by an external command: the replay file is written to its
stdin and the image is read from its stdout.
"""

from __future__ import annotations

import asyncio
import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass


class MapImageError(Exception):
    """The map image could not be rendered."""


@dataclass
class MapImage:
    data: bytes
    filename: str
    map_hash: str


class MapImageRenderer(ABC):
    """Renders a map image for a replay."""

    @abstractmethod
    async def render(self, replay: bytes) -> MapImage:
        """
        Render the map of a replay.

        Raises:
            MapImageError: If rendering failed
        """


class CommandMapRenderer(MapImageRenderer):
    """
    Renderer that pipes the replay through an external command.

    Args:
        command: Program and arguments, e.g. ["bwmapimage", "--stdin"]
        extension: File extension of the produced image
    """

    def __init__(self, command: list[str], extension: str = ".webp") -> None:
        if not command:
            raise ValueError("Map renderer command must not be empty")
        self.command = command
        self.extension = extension

    async def render(self, replay: bytes) -> MapImage:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise MapImageError(f"could not start {self.command[0]}: {e}") from e
        stdout, stderr = await proc.communicate(replay)
        if proc.returncode != 0 or not stdout:
            reason = stderr.decode("utf-8", "replace").strip() or f"exit code {proc.returncode}"
            raise MapImageError(f"{self.command[0]} failed: {reason}")
        map_hash = hashlib.sha1(stdout).hexdigest()
        return MapImage(data=stdout, filename=f"{map_hash}{self.extension}", map_hash=map_hash)
