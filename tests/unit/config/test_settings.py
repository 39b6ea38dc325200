"""
Tests for process settings loaded from the environment.
"""

from pathlib import Path

from hydrabot.config.settings import Settings, get_settings, load_settings


class TestSettings:
    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)  # no stray .env
        settings = Settings()
        assert settings.log_level == "INFO"
        assert settings.config_path == Path.home() / ".config" / "hydrabot"
        assert settings.cache_path == Path.home() / ".cache" / "hydrabot"
        assert settings.replay.screp_path == "screp"
        assert settings.replay.map_renderer_command == []

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HYDRABOT_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("HYDRABOT_CACHE_PATH", str(tmp_path / "cache"))
        monkeypatch.setenv("HYDRABOT_REPLAY__SCREP_PATH", "/opt/screp")
        monkeypatch.setenv("HYDRABOT_REPLAY__MAP_RENDERER_COMMAND", '["bwmapimage", "-"]')

        settings = Settings()
        assert settings.log_level == "DEBUG"
        assert settings.cache_path == tmp_path / "cache"
        assert settings.replay.screp_path == "/opt/screp"
        assert settings.replay.map_renderer_command == ["bwmapimage", "-"]

    def test_load_settings_from_env_file(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        env_file = tmp_path / "custom.env"
        env_file.write_text("HYDRABOT_LOG_INCLUDE_DATES=true\n")

        settings = load_settings(env_file=env_file)
        assert settings.log_include_dates is True
        assert get_settings() is settings
