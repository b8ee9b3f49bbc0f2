# Tests for config.py
# Created: 2026-10-17

import json

import pytest

from pelicanclient.config import DEFAULT_STORAGE_SCOPE, Settings, get_config_dir, get_config_path


@pytest.fixture(autouse=True)
def config_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("PELICAN_CONFIG_DIR", str(tmp_path / "cfg"))
    return tmp_path / "cfg"


def test_config_dir_created(config_dir):
    assert get_config_dir() == config_dir
    assert config_dir.is_dir()


def test_defaults():
    settings = Settings.load()
    assert settings.authorization_scope == DEFAULT_STORAGE_SCOPE
    assert settings.registration_scope.startswith("openid ")
    assert settings.list_cache_ttl == 300
    assert settings.get_session_path() == get_config_dir() / "session.json"


def test_save_and_load():
    Settings(callback_port=9000, client_name="Tester").save()
    loaded = Settings.load()
    assert loaded.callback_port == 9000
    assert loaded.client_name == "Tester"


def test_env_wins_over_file(monkeypatch):
    get_config_path().write_text(json.dumps({"http_timeout": 5, "log_level": "DEBUG"}))
    monkeypatch.setenv("PELICAN_HTTP_TIMEOUT", "12")
    loaded = Settings.load()
    assert loaded.http_timeout == 12
    assert loaded.log_level == "DEBUG"


def test_unreadable_file_falls_back():
    get_config_path().write_text("{oops")
    assert Settings.load().callback_port == 8765
