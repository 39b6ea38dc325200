"""
Tests for parsing the settings channel's INI-style text.
"""

from hydrabot.util.settings_message import (
    RemoteSettings,
    extract_settings_from_message,
    parse_ini,
    parse_stream_user,
)

SETTINGS_TEXT = """
; Livestreams list
[livestreams]
channelId = 123456789
description = Who's streaming right now
users[] = Dada <https://twitch.tv/dada78641>
users[] = Flash <https://www.twitch.tv/flash/>
users[] = not a user line
"""


class TestParseIni:
    def test_sections_and_lists(self):
        data = parse_ini("top = 1\n[a]\nx = y\nlist[] = 1\nlist[] = 2\n# comment\n")
        assert data == {"top": "1", "a": {"x": "y", "list": ["1", "2"]}}

    def test_value_may_contain_equals_sign(self):
        assert parse_ini("[a]\nurl = https://x.test/?a=b") == {"a": {"url": "https://x.test/?a=b"}}

    def test_lines_without_equals_are_ignored(self):
        assert parse_ini("[a]\nnonsense\n") == {"a": {}}


class TestParseStreamUser:
    def test_valid_line(self):
        user = parse_stream_user("Dada <https://twitch.tv/dada78641>")
        assert user.username == "Dada"
        assert user.twitch_url == "https://twitch.tv/dada78641"
        assert user.twitch_username == "dada78641"

    def test_trailing_slash(self):
        assert parse_stream_user("Flash <https://www.twitch.tv/flash/>").twitch_username == "flash"

    def test_non_twitch_url(self):
        assert parse_stream_user("Someone <https://example.com/someone>") is None

    def test_malformed_line(self):
        assert parse_stream_user("no brackets here") is None


class TestExtractSettings:
    def test_livestreams_section(self):
        settings = extract_settings_from_message(SETTINGS_TEXT)
        assert settings.livestreams.channel_id == 123456789
        assert settings.livestreams.description == "Who's streaming right now"
        assert [u.username for u in settings.livestreams.users] == ["Dada", "Flash"]

    def test_empty_text_gives_defaults(self):
        settings = extract_settings_from_message("")
        assert settings == RemoteSettings()
        assert settings.livestreams.channel_id is None
        assert settings.livestreams.users == []

    def test_empty_channel_id_is_ignored(self):
        settings = extract_settings_from_message("[livestreams]\nchannelId =\n")
        assert settings.livestreams.channel_id is None
