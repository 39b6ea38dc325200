"""
Config and cache files on disk.

The config file is read once at startup. Guild caches and token caches are
small JSON objects that are merged on write: keys in the patch overwrite
existing keys, everything else is kept. Writes are read-then-write with no
locking beyond the process-wide instance lock.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiofiles
from pydantic import ValidationError

from hydrabot.config.logging import get_logger
from hydrabot.config.schema import BotConfig
from hydrabot.errors import CacheReadError, ConfigMissing, ConfigParseError

logger = get_logger(__name__)

CONFIG_FILENAME = "config.json"


def ensure_dir(path: str | Path) -> Path:
    """Create a directory and its parents if missing. Safe to call repeatedly."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def guild_cache_path(cache_dir: str | Path, guild_id: int | str) -> Path:
    return Path(cache_dir) / f"guild_{guild_id}.json"


def token_cache_path(cache_dir: str | Path, name: str | None = None) -> Path:
    return Path(cache_dir) / (f"token_{name}.json" if name else "token.json")


async def read_config(config_dir: str | Path) -> BotConfig:
    """
    Read and validate config.json from the config directory.

    Raises:
        ConfigMissing: If the file does not exist
        ConfigParseError: If the file is not valid JSON or fails validation
    """
    path = ensure_dir(config_dir) / CONFIG_FILENAME
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
    except FileNotFoundError:
        raise ConfigMissing(path) from None

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigParseError(path, str(e)) from e

    try:
        return BotConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigParseError(path, str(e)) from e


async def _read_json_object(path: Path, create: bool) -> dict[str, Any]:
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
    except FileNotFoundError:
        if create:
            async with aiofiles.open(path, "w", encoding="utf-8") as f:
                await f.write("{}")
        return {}
    except OSError as e:
        raise CacheReadError(path, str(e)) from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise CacheReadError(path, str(e)) from e
    if not isinstance(data, dict):
        raise CacheReadError(path, f"expected a JSON object, got {type(data).__name__}")
    return data


async def _merge_json_object(path: Path, patch: dict[str, Any], create: bool) -> dict[str, Any]:
    merged = {**await _read_json_object(path, create), **patch}
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(json.dumps(merged, indent=2))
    return merged


async def read_guild_cache(cache_dir: str | Path, guild_id: int | str) -> dict[str, Any]:
    """
    Return the cache record for a guild.

    If the cache file is not found, an empty file is created and {} is returned.

    Raises:
        CacheReadError: If the file exists but can't be read or decoded
    """
    ensure_dir(cache_dir)
    return await _read_json_object(guild_cache_path(cache_dir, guild_id), create=True)


async def write_guild_cache(
    cache_dir: str | Path, guild_id: int | str, patch: dict[str, Any]
) -> dict[str, Any]:
    """Merge patch into a guild's cache record and return the new record."""
    ensure_dir(cache_dir)
    path = guild_cache_path(cache_dir, guild_id)
    merged = await _merge_json_object(path, patch, create=True)
    logger.debug(f"Updated guild cache {path.name}: {sorted(patch)}")
    return merged


async def read_token_cache(cache_dir: str | Path, name: str | None = None) -> dict[str, Any]:
    """Return a stored OAuth token, or {} if none has been stored yet."""
    ensure_dir(cache_dir)
    return await _read_json_object(token_cache_path(cache_dir, name), create=False)


async def write_token_cache(
    cache_dir: str | Path, name: str | None, token: dict[str, Any]
) -> dict[str, Any]:
    """Merge a new token into the token cache file."""
    ensure_dir(cache_dir)
    return await _merge_json_object(token_cache_path(cache_dir, name), token, create=False)
