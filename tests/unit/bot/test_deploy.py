"""
Tests for CommandDeployer.

Covers:
- Unchanged hash → no registration call
- Changed hash → exactly one call, cache updated afterwards
- One failing guild doesn't stop the others
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from hydrabot.bot.deploy import HASH_KEY, CommandDeployer
from hydrabot.config.schema import GuildConfig
from hydrabot.config.store import read_guild_cache, write_guild_cache
from hydrabot.modules.base import Command, Manifest
from hydrabot.modules.registry import calc_command_hash, command_definitions, load_command_files


class PingCommand(Command):
    manifest = Manifest(name="ping", description="Replies with pong.")

    async def execute(self, interaction, ctx):
        pass


@pytest.fixture
def commands():
    return load_command_files([PingCommand])


@pytest.fixture
def current_hash(commands):
    return calc_command_hash(command_definitions(commands))


def _deployer(api, guild_ids, cache_path):
    return CommandDeployer(
        api=api,
        application_id=1234,
        guilds=[GuildConfig(id=guild_id) for guild_id in guild_ids],
        cache_path=cache_path,
        logger=MagicMock(),
    )


class TestCommandDeployer:
    @pytest.mark.asyncio
    async def test_unchanged_hash_skips_registration(self, tmp_path, commands, current_hash):
        await write_guild_cache(tmp_path, 555, {HASH_KEY: current_hash})
        api = MagicMock()
        api.bulk_upsert_guild_commands = AsyncMock()

        deployed = await _deployer(api, [555], tmp_path).deploy(commands)

        api.bulk_upsert_guild_commands.assert_not_called()
        assert deployed == []

    @pytest.mark.asyncio
    async def test_changed_hash_registers_and_updates_cache(self, tmp_path, commands, current_hash):
        await write_guild_cache(tmp_path, 555, {HASH_KEY: "1", "livestreamsLastLive": {}})
        api = MagicMock()
        api.bulk_upsert_guild_commands = AsyncMock(return_value=[])

        deployed = await _deployer(api, [555], tmp_path).deploy(commands)

        api.bulk_upsert_guild_commands.assert_awaited_once_with(
            1234, 555, command_definitions(commands)
        )
        assert deployed == [555]
        cache = await read_guild_cache(tmp_path, 555)
        assert cache == {HASH_KEY: current_hash, "livestreamsLastLive": {}}

    @pytest.mark.asyncio
    async def test_fresh_guild_is_deployed(self, tmp_path, commands):
        api = MagicMock()
        api.bulk_upsert_guild_commands = AsyncMock(return_value=[])

        assert await _deployer(api, [555], tmp_path).deploy(commands) == [555]

    @pytest.mark.asyncio
    async def test_failing_guild_does_not_stop_others(self, tmp_path, commands, current_hash):
        api = MagicMock()
        api.bulk_upsert_guild_commands = AsyncMock(side_effect=[RuntimeError("403"), []])
        deployer = _deployer(api, [111, 222], tmp_path)

        deployed = await deployer.deploy(commands)

        assert deployed == [222]
        assert api.bulk_upsert_guild_commands.await_count == 2
        assert HASH_KEY not in await read_guild_cache(tmp_path, 111)
        assert (await read_guild_cache(tmp_path, 222))[HASH_KEY] == current_hash
        deployer.logger.error.assert_called_once()

    @pytest.mark.asyncio
    async def test_second_deploy_is_a_no_op(self, tmp_path, commands):
        api = MagicMock()
        api.bulk_upsert_guild_commands = AsyncMock(return_value=[])
        deployer = _deployer(api, [555], tmp_path)

        await deployer.deploy(commands)
        await deployer.deploy(commands)

        assert api.bulk_upsert_guild_commands.await_count == 1
