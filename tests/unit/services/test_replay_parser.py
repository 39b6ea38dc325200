"""
Tests for replay parsing.

screp itself is never run; its JSON output is fed in directly, or the
subprocess call is patched.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from hydrabot.errors import ReplayErrorType, ReplayParseError
from hydrabot.services.replay import (
    FRAME_MS,
    ReplayInfo,
    ReplayPlayer,
    ScrepParser,
    classify_error,
    replay_info_from_screp,
)

SCREP_OUTPUT = {
    "Header": {
        "Engine": {"Name": "Brood War", "ID": 1},
        "Frames": 14881,
        "StartTime": "2024-04-28T19:33:12Z",
        "Title": "",
        "Map": "Polypoid 1.65",
        "Players": [
            {"ID": 0, "SlotID": 4, "Name": "Flash", "Race": {"Name": "Terran"}, "Team": 1, "Observer": False},
            {"ID": 1, "SlotID": 0, "Name": "Bisu", "Race": {"Name": "Protoss"}, "Team": 2, "Observer": False},
            {"ID": 2, "SlotID": 7, "Name": "Tasteless", "Race": {"Name": "Zerg"}, "Team": 3, "Observer": True},
        ],
    },
    "Computed": {
        "ChatCmds": [
            {"SenderSlotID": 4, "Message": "gl hf"},
            {"SenderSlotID": 0, "Message": "gg"},
            {"SenderSlotID": 9, "Message": "who?"},
        ],
    },
}


class TestReplayInfoFromScrep:
    def test_header_and_computed(self):
        info = replay_info_from_screp(SCREP_OUTPUT)

        assert info.map_name == "Polypoid 1.65"
        assert info.duration_ms == 14881 * FRAME_MS
        assert info.start_time == datetime(2024, 4, 28, 19, 33, 12, tzinfo=timezone.utc)
        assert info.engine == "Brood War"
        assert [p.name for p in info.players] == ["Flash", "Bisu", "Tasteless"]
        assert info.players[2].is_observer
        assert info.chat == ["Flash: gl hf", "Bisu: gg", "?: who?"]

    def test_chat_without_slot_uses_player_id(self):
        data = {
            "Header": {"Players": [{"ID": 3, "SlotID": 1, "Name": "Stork"}]},
            "Computed": {"ChatCmds": [{"PlayerID": 3, "Message": "gg"}]},
        }
        assert replay_info_from_screp(data).chat == ["Stork: gg"]

    def test_minimal_output(self):
        info = replay_info_from_screp({"Header": {"StartTime": ""}})
        assert info.start_time is None
        assert info.players == []
        assert info.chat == []
        assert info.duration_ms == 0


class TestMatchupTitle:
    def test_built_from_teams_without_observers(self):
        info = replay_info_from_screp(SCREP_OUTPUT)
        assert info.matchup_title == ":terran: Flash vs :protoss: Bisu"

    def test_team_games(self):
        info = ReplayInfo(players=[
            ReplayPlayer(name="A", race="Zerg", team=1),
            ReplayPlayer(name="B", race="Terran", team=2),
            ReplayPlayer(name="C", race="Protoss", team=1),
        ])
        assert info.matchup_title == ":zerg: A, :protoss: C vs :terran: B"

    def test_title_wins(self):
        assert ReplayInfo(title=" ASL S17 Final ").matchup_title == "ASL S17 Final"

    def test_no_players(self):
        assert ReplayInfo().matchup_title == "Replay"

    def test_unknown_race(self):
        assert ReplayPlayer(name="X", race="Random").name_formatted == ":question: X"


class TestClassifyError:
    def test_old_replays(self):
        assert classify_error("Error: Unsupported replay version") == ReplayErrorType.UNSUPPORTED_OLD
        assert classify_error("not a replay file") == ReplayErrorType.UNSUPPORTED_OLD

    def test_anything_else(self):
        assert classify_error("unexpected EOF") == ReplayErrorType.UNKNOWN


def _process(returncode, stdout=b"", stderr=b""):
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    return proc


class TestScrepParser:
    @pytest.mark.asyncio
    async def test_parse(self):
        proc = _process(0, json.dumps(SCREP_OUTPUT).encode())
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as exec_:
            info = await ScrepParser("/opt/screp").parse(b"replay bytes")

        assert info.map_name == "Polypoid 1.65"
        args = exec_.call_args.args
        assert args[0] == "/opt/screp"
        assert args[1] == "-computed"
        assert args[2].endswith(".rep")

    @pytest.mark.asyncio
    async def test_old_replay(self):
        proc = _process(1, stderr=b"Failed to parse replay: unsupported replay version\n")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(ReplayParseError) as exc_info:
                await ScrepParser().parse(b"old")

        assert exc_info.value.error_type == ReplayErrorType.UNSUPPORTED_OLD
        assert str(exc_info.value) == "Failed to parse replay: unsupported replay version"

    @pytest.mark.asyncio
    async def test_bad_output(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=_process(0, b"not json"))):
            with pytest.raises(ReplayParseError) as exc_info:
                await ScrepParser().parse(b"data")
        assert exc_info.value.error_type == ReplayErrorType.UNKNOWN

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError())):
            with pytest.raises(ReplayParseError, match="not found"):
                await ScrepParser("nope").parse(b"data")
