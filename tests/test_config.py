"""Tests for linkanime.config and linkanime.settings."""

import json

import pytest

from linkanime.config import Config, LibraryPaths, load_config, resolve_paths
from linkanime.settings import DEFAULT_SETTINGS, SettingsManager

LA_VARS = ("LA_DATA_DIR", "LA_DOWNLOAD_DIR", "LA_MEDIA_DIR", "LA_MOVIES_DIR", "LA_VIDEO_EXTENSIONS")


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # setenv first so variables loaded from .env files are removed on teardown
    for key in LA_VARS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestLoadConfig:
    def test_defaults(self, clean_env):
        config = load_config(use_env_files=False)

        assert config.download_dir == "/data/downloads/complete/anime"
        assert config.media_dir == "/data/media/anime"
        assert config.movies_dir == "/data/media/anime-movies"
        assert config.video_extensions == ["mkv", "mp4", "avi"]
        assert config.db_path.name == "linkanime.db"

    def test_environment_overrides(self, clean_env, tmp_path):
        clean_env.setenv("LA_DATA_DIR", str(tmp_path / "data"))
        clean_env.setenv("LA_MEDIA_DIR", "/mnt/anime")
        clean_env.setenv("LA_VIDEO_EXTENSIONS", "mkv, webm ,")

        config = load_config(use_env_files=False)

        assert config.db_path == tmp_path / "data" / "linkanime.db"
        assert config.settings_path == tmp_path / "data" / "settings.json"
        assert config.media_dir == "/mnt/anime"
        assert config.video_extensions == ["mkv", "webm"]

    def test_blank_variable_uses_default(self, clean_env):
        clean_env.setenv("LA_MOVIES_DIR", "   ")
        assert load_config(use_env_files=False).movies_dir == "/data/media/anime-movies"

    def test_dotenv_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("LA_DOWNLOAD_DIR=/from/dotenv\nLA_MEDIA_DIR=/ignored\n")
        clean_env.setenv("LA_MEDIA_DIR", "/from/env")

        config = load_config()

        assert config.download_dir == "/from/dotenv"
        assert config.media_dir == "/from/env"


class TestResolvePaths:
    def test_without_settings(self):
        config = Config(download_dir="/dl", media_dir="/media", movies_dir="/movies")
        assert resolve_paths(config) == LibraryPaths("/dl", "/media", "/movies")

    def test_settings_override_config(self, tmp_path):
        settings = SettingsManager(tmp_path / "settings.json")
        settings.set("media_dir", "/custom/media")
        settings.set("movies_dir", "  ")
        config = Config(download_dir="/dl", media_dir="/media", movies_dir="/movies")

        paths = resolve_paths(config, settings)

        assert paths == LibraryPaths("/dl", "/custom/media", "/movies")
        assert paths.roots() == ("/custom/media", "/movies")


class TestSettingsManager:
    def test_defaults_when_missing(self, tmp_path):
        mgr = SettingsManager(tmp_path / "settings.json")
        assert mgr.all() == DEFAULT_SETTINGS
        assert mgr.get("media_dir") == ""
        assert mgr.get("unknown", 5) == 5

    def test_save_and_reload(self, tmp_path):
        path = tmp_path / "nested" / "settings.json"
        mgr = SettingsManager(path)
        mgr.set("download_dir", "/downloads")

        assert mgr.save() is True
        assert json.loads(path.read_text())["download_dir"] == "/downloads"
        assert SettingsManager(path).get("download_dir") == "/downloads"

    def test_reload_picks_up_external_change(self, tmp_path):
        path = tmp_path / "settings.json"
        mgr = SettingsManager(path)
        path.write_text(json.dumps({"media_dir": "/elsewhere"}))

        mgr.reload()

        assert mgr.get("media_dir") == "/elsewhere"

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
    def test_bad_file_ignored(self, tmp_path, caplog, content):
        path = tmp_path / "settings.json"
        path.write_text(content)

        mgr = SettingsManager(path)

        assert mgr.all() == DEFAULT_SETTINGS
        assert "Ignoring" in caplog.text
