"""Test configuration loading"""

import pytest

from release_bot.core.config import DEFAULT_SCOPES, load_config
from release_bot.core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


def write_config(tmp_path, content):
    path = tmp_path / "custom.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:
    """Test load_config"""

    def test_defaults_without_file(self, tmp_path):
        config = load_config(environ={})

        assert config.spotify.client_id == ""
        assert config.spotify.scopes == DEFAULT_SCOPES
        assert config.spotify.market == "US"
        assert config.retry.attempts == 3
        assert config.retry.delay_ms == 2000
        assert config.scheduler.interval_hours == 12
        assert config.storage.store_path == tmp_path.resolve() / "data" / "store.json"
        assert config.logging.directory == tmp_path.resolve() / "data" / "logs"

    def test_reads_cwd_config_yaml(self, tmp_path):
        (tmp_path / "config.yaml").write_text("spotify:\n  market: SE\n", encoding="utf-8")

        assert load_config(environ={}).spotify.market == "SE"

    def test_explicit_file(self, tmp_path):
        path = write_config(tmp_path, """
spotify:
  client_id: "file-id"
  scopes: "playlist-read-private playlist-modify-private"
retry:
  attempts: 5
  delay_ms: 0
scheduler:
  interval_hours: 6
""")
        config = load_config(path, environ={})

        assert config.spotify.client_id == "file-id"
        assert config.spotify.scopes == ("playlist-read-private", "playlist-modify-private")
        assert config.retry.attempts == 5
        assert config.retry.delay_ms == 0
        assert config.scheduler.interval_hours == 6

    def test_environment_overrides_file(self, tmp_path):
        path = write_config(tmp_path, "spotify:\n  client_id: file-id\n")
        environ = {
            "SPOTIFY_CLIENT_ID": "env-id",
            "SPOTIFY_CLIENT_SECRET": "env-secret",
            "TARGET_PLAYLIST_ID": "pl",
            "SCAN_INTERVAL_HOURS": "1.5",
            "RELEASE_BOT_DATA_DIR": str(tmp_path / "state"),
        }

        config = load_config(path, environ=environ)

        assert config.spotify.client_id == "env-id"
        assert config.spotify.client_secret == "env-secret"
        assert config.spotify.default_playlist_id == "pl"
        assert config.scheduler.interval_hours == 1.5
        assert config.storage.tokens_path == (tmp_path / "state").resolve() / "tokens.json"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "nope.yaml", environ={})

    def test_invalid_yaml(self, tmp_path):
        path = write_config(tmp_path, "spotify: [unclosed\n")

        with pytest.raises(ConfigError):
            load_config(path, environ={})

    @pytest.mark.parametrize("content", [
        "retry:\n  attempts: 0\n",
        "retry:\n  attempts: true\n",
        "retry:\n  delay_ms: -1\n",
        "network:\n  request_timeout: 0\n",
        "scheduler:\n  interval_hours: soon\n",
        "logging:\n  verbose: sometimes\n",
        "spotify: just-a-string\n",
    ])
    def test_invalid_values(self, tmp_path, content):
        with pytest.raises(ConfigError):
            load_config(write_config(tmp_path, content), environ={})


class TestRequire:
    """Test Config.require"""

    def test_lists_missing_fields(self):
        config = load_config(environ={"SPOTIFY_CLIENT_ID": "id"})

        with pytest.raises(ConfigError) as exc_info:
            config.require("spotify.client_id", "spotify.client_secret")

        assert exc_info.value.details["missing_fields"] == ["spotify.client_secret"]

    def test_passes_when_present(self):
        config = load_config(environ={"SPOTIFY_CLIENT_ID": "id", "SPOTIFY_CLIENT_SECRET": "secret"})
        config.require("spotify.client_id", "spotify.client_secret")
