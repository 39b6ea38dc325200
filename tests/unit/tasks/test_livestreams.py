"""
Tests for the livestreams task.

Covers:
- User ordering: live first, then rank, race and username
- Embed sections for StarCraft, other games and offline users
- Last live times recorded in the guild cache
- One failing guild doesn't stop the others; no Twitch → skipped
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from hydrabot.config.schema import BotConfig
from hydrabot.config.store import read_guild_cache, write_guild_cache
from hydrabot.modules.base import TaskContext
from hydrabot.services.twitch import StreamStatus
from hydrabot.tasks.livestreams import (
    LAST_LIVE_KEY,
    LivestreamsTask,
    combine_user_data,
    make_livestreams_embed,
    parse_last_live,
    update_last_live,
)
from hydrabot.util.settings_message import LivestreamSettings, RemoteSettings, StreamUser

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _user(name):
    return StreamUser(username=name, twitch_url=f"https://twitch.tv/{name}", twitch_username=name)


def _stream(name, game="StarCraft", viewers=10):
    return StreamStatus(
        id="1",
        user_id="2",
        user_login=name,
        user_name=name,
        game_name=game,
        title=f"{name}'s stream",
        viewers=viewers,
        started_at=NOW - timedelta(hours=1),
    )


def _no_emoji(text):
    return text


class TestCombineUserData:
    def test_ordering(self):
        users = [_user(n) for n in ("dave", "carol", "bob", "alice", "eve")]
        status = {"alice": None, "bob": _stream("bob"), "carol": None, "dave": _stream("dave"), "eve": None}
        metadata = {
            "alice": {"meta": {"rank": "a", "rank_order": 1, "race": "zerg", "race_order": 2}},
            "bob": {"meta": {"rank": "c", "rank_order": 3}},
            "carol": {"meta": {"rank": "a", "rank_order": 1, "race": "terran", "race_order": 0}},
            "dave": {"meta": {"rank": "s", "rank_order": 0}},
        }

        combined = combine_user_data(users, status, metadata, {})

        assert [u.username for u in combined] == ["dave", "bob", "carol", "alice", "eve"]
        assert combined[0].is_live
        assert combined[-1].meta == {}


class TestEmbed:
    def test_sections(self):
        users = combine_user_data(
            [_user("flash"), _user("jaedong"), _user("bisu")],
            {"flash": _stream("flash"), "jaedong": _stream("jaedong", game="Just Chatting"), "bisu": None},
            {},
            {"bisu": NOW - timedelta(days=1)},
        )

        description = make_livestreams_embed(users, _no_emoji, NOW).description

        live, rest = description.split("### Playing something else")
        other, offline = rest.split("### Offline")
        assert "[flash's stream](https://twitch.tv/flash)" in live
        assert "live to 10 viewers" in live
        assert "jaedong" in other
        assert "[twitch.tv/bisu](https://twitch.tv/bisu)" in offline
        assert "last live <t:" in offline

    def test_empty_lists(self):
        description = make_livestreams_embed([], _no_emoji, NOW).description
        assert "### Playing something else" not in description
        assert description.count("None. :harold:") == 2

    def test_member_mention_and_role_emoji(self):
        member = MagicMock(id=42)
        users = combine_user_data(
            [_user("flash")], {"flash": None}, {"flash": {"meta": {"rank": "s", "race": "terran"}, "member": member}}, {}
        )
        description = make_livestreams_embed(users, _no_emoji, NOW).description
        assert "* :ranks: :terran: <@42> - [twitch.tv/flash](https://twitch.tv/flash)" in description


class TestLastLive:
    @pytest.mark.asyncio
    async def test_live_users_are_recorded(self, tmp_path):
        earlier = NOW - timedelta(days=3)
        await write_guild_cache(tmp_path, 555, {LAST_LIVE_KEY: {"bisu": earlier.isoformat()}, "commandHash": "1"})

        last_live = await update_last_live(tmp_path, 555, {"flash": _stream("flash"), "bisu": None}, NOW)

        assert last_live == {"bisu": earlier, "flash": NOW}
        cache = await read_guild_cache(tmp_path, 555)
        assert cache[LAST_LIVE_KEY] == {"bisu": earlier.isoformat(), "flash": NOW.isoformat()}
        assert cache["commandHash"] == "1"

    @pytest.mark.asyncio
    async def test_nobody_live_leaves_cache_alone(self, tmp_path):
        assert await update_last_live(tmp_path, 555, {"bisu": None}, NOW) == {}
        assert await read_guild_cache(tmp_path, 555) == {}

    def test_bad_values_are_skipped(self):
        assert parse_last_live({LAST_LIVE_KEY: {"a": "yesterday", "b": NOW.isoformat()}}) == {"b": NOW}


CONFIG = BotConfig.model_validate({
    "discord": {
        "credentials": {"clientId": 1234, "botToken": "token"},
        "guilds": [
            {"id": 111, "channelIds": {"settings": 11}},
            {"id": 222, "channelIds": {"settings": 22}},
        ],
    },
})


def _context(tmp_path, twitch=True, n=0):
    client = MagicMock()
    client.twitch = MagicMock() if twitch else None
    return TaskContext(client=client, config=CONFIG, logger=MagicMock(), n=n, cache_path=tmp_path)


class TestLivestreamsTask:
    @pytest.mark.asyncio
    async def test_updates_every_guild(self, tmp_path):
        settings = RemoteSettings(livestreams=LivestreamSettings(channel_id=99, description="Streams", users=[_user("flash")]))
        static = MagicMock()
        static.update = AsyncMock()
        ctx = _context(tmp_path)

        with patch("hydrabot.tasks.livestreams.get_bot_remote_settings", AsyncMock(return_value=settings)), \
             patch("hydrabot.tasks.livestreams.get_user_role_metadata", AsyncMock(return_value={})), \
             patch("hydrabot.tasks.livestreams.get_current_streaming_status",
                   AsyncMock(return_value={"flash": _stream("flash")})), \
             patch("hydrabot.tasks.livestreams.StaticMessage.fetch", AsyncMock(return_value=static)) as fetch:
            await LivestreamsTask().run(ctx)

        assert static.update.await_count == 2
        assert [call.args[1:3] for call in fetch.call_args_list] == [(111, 99), (222, 99)]
        kwargs = static.update.call_args.kwargs
        assert kwargs["content"] == "Streams"
        assert "flash" in kwargs["embed"].description
        assert "flash" in (await read_guild_cache(tmp_path, 111))[LAST_LIVE_KEY]
        ctx.logger.info.assert_called_once_with("Initial update of the livestreams list")

    @pytest.mark.asyncio
    async def test_failing_guild_does_not_stop_others(self, tmp_path):
        empty = RemoteSettings(livestreams=LivestreamSettings(channel_id=99))
        static = MagicMock()
        static.update = AsyncMock()
        ctx = _context(tmp_path, n=5)

        with patch("hydrabot.tasks.livestreams.get_bot_remote_settings",
                   AsyncMock(side_effect=[RuntimeError("Missing Access"), empty])), \
             patch("hydrabot.tasks.livestreams.get_user_role_metadata", AsyncMock(return_value={})), \
             patch("hydrabot.tasks.livestreams.get_current_streaming_status", AsyncMock(return_value={})), \
             patch("hydrabot.tasks.livestreams.StaticMessage.fetch", AsyncMock(return_value=static)):
            await LivestreamsTask().run(ctx)

        static.update.assert_awaited_once()
        ctx.logger.error.assert_called_once()
        ctx.logger.info.assert_not_called()

    @pytest.mark.asyncio
    async def test_guild_without_livestreams_channel_is_skipped(self, tmp_path):
        ctx = _context(tmp_path)
        with patch("hydrabot.tasks.livestreams.get_bot_remote_settings",
                   AsyncMock(return_value=RemoteSettings())), \
             patch("hydrabot.tasks.livestreams.StaticMessage.fetch", AsyncMock()) as fetch:
            await LivestreamsTask().run(ctx)
        fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_without_twitch_is_skipped(self, tmp_path):
        ctx = _context(tmp_path, twitch=False)
        with patch("hydrabot.tasks.livestreams.get_bot_remote_settings", AsyncMock()) as remote:
            await LivestreamsTask().run(ctx)
        remote.assert_not_called()
        ctx.logger.warning.assert_called_once()

    def test_manifest(self):
        manifest = LivestreamsTask.manifest
        assert manifest.interval == timedelta(seconds=60)
        assert manifest.run_on_startup is True
