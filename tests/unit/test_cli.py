"""
Tests for the hydrabot command line.

These tests verify that:
- The parser accepts the path, test and log level flags
- cmd_run reports startup failures with exit code 1
- --test initializes, closes the bot and exits 0 without connecting
"""

import argparse
import logging
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from hydrabot.__main__ import cmd_run, create_parser, prog_error
from hydrabot.config.logging import LogContext
from hydrabot.errors import ConfigMissing, LockHeld


class TestParser:
    def test_defaults(self):
        args = create_parser().parse_args([])
        assert args.test is False
        assert args.cfg_path is None
        assert args.cfg_cache is None
        assert args.log_level is None

    def test_paths(self):
        args = create_parser().parse_args(["--cfg-path", "/etc/hydrabot", "--cfg-cache", "/var/cache/hydrabot"])
        assert args.cfg_path == Path("/etc/hydrabot")
        assert args.cfg_cache == Path("/var/cache/hydrabot")

    def test_test_flag(self):
        assert create_parser().parse_args(["-t"]).test is True
        assert create_parser().parse_args(["--test"]).test is True

    def test_invalid_log_level_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--log-level", "LOUD"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--version"])
        assert capsys.readouterr().out.startswith("HydraBot ")


def test_prog_error():
    assert prog_error("boom") == "hydrabot: error: boom"


def _args(test=False):
    return argparse.Namespace(test=test)


def _log():
    return LogContext(logging.getLogger("hydrabot.test_cli"))


class TestCmdRun:
    @pytest.mark.asyncio
    async def test_second_instance(self, capsys):
        bot = MagicMock()
        bot.initialize = AsyncMock(side_effect=LockHeld(Path("/tmp/cache")))
        with patch("hydrabot.bot.HydraBot", return_value=bot):
            assert await cmd_run(_args(), MagicMock(), _log()) == 1

        assert capsys.readouterr().err.strip() == "hydrabot: error: another instance is already running."

    @pytest.mark.asyncio
    async def test_missing_config(self, capsys):
        bot = MagicMock()
        bot.initialize = AsyncMock(side_effect=ConfigMissing(Path("/etc/hydrabot/config.json")))
        with patch("hydrabot.bot.HydraBot", return_value=bot):
            assert await cmd_run(_args(), MagicMock(), _log()) == 1

        assert "config file not found" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_test_mode_does_not_connect(self):
        bot = MagicMock()
        bot.initialize = AsyncMock()
        bot.launch = AsyncMock()
        bot.close = AsyncMock()
        with patch("hydrabot.bot.HydraBot", return_value=bot):
            assert await cmd_run(_args(test=True), MagicMock(), _log()) == 0

        bot.launch.assert_not_awaited()
        bot.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_closes_bot(self):
        bot = MagicMock()
        bot.initialize = AsyncMock()
        bot.launch = AsyncMock()
        bot.close = AsyncMock()
        with patch("hydrabot.bot.HydraBot", return_value=bot):
            assert await cmd_run(_args(), MagicMock(), _log()) == 0

        bot.launch.assert_awaited_once()
        bot.close.assert_awaited_once()
