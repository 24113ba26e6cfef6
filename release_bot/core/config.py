"""
Configuration management for release-bot.

This module handles loading, validating, and providing access to the
application configuration. Values come from three layers, later layers
overriding earlier ones:

    1. Built-in defaults
    2. config.yaml (optional, current working directory or --config)
    3. Environment variables (a .env file is loaded if present)

Credentials are normally kept in the environment / .env file, while
behavioural settings live in config.yaml.

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      redirect_uri: "http://127.0.0.1:8888/callback"
      market: "US"
      default_playlist_id: null

    retry:
      attempts: 3
      delay_ms: 2000

    network:
      request_timeout: 30

    storage:
      data_directory: "data"

    scheduler:
      interval_hours: 12

    logging:
      directory: null  # Defaults to <data_directory>/logs
      verbose: false

Environment Variables:
    SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET, SPOTIFY_REDIRECT_URI,
    TARGET_PLAYLIST_ID, SCAN_INTERVAL_HOURS, RELEASE_BOT_DATA_DIR
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from release_bot.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"
DEFAULT_SCOPES = (
    "playlist-read-private",
    "playlist-modify-public",
    "playlist-modify-private",
    "user-follow-read",
)
DEFAULT_MARKET = "US"
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_MS = 2000
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_INTERVAL_HOURS = 12
DEFAULT_DATA_DIRECTORY = "data"

STORE_FILENAME = "store.json"
TOKENS_FILENAME = "tokens.json"

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "SPOTIFY_CLIENT_ID": ("spotify", "client_id"),
    "SPOTIFY_CLIENT_SECRET": ("spotify", "client_secret"),
    "SPOTIFY_REDIRECT_URI": ("spotify", "redirect_uri"),
    "TARGET_PLAYLIST_ID": ("spotify", "default_playlist_id"),
    "SCAN_INTERVAL_HOURS": ("scheduler", "interval_hours"),
    "RELEASE_BOT_DATA_DIR": ("storage", "data_directory"),
}


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify application credentials and API settings.

    These credentials are obtained from the Spotify Developer Dashboard:
    https://developer.spotify.com/dashboard

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
        redirect_uri: OAuth redirect URI registered for the application.
                      The local callback server listens on its host and port.
        scopes: OAuth scopes requested during authorization.
        market: Market code used when listing artist releases.
        default_playlist_id: Playlist used when no active playlist is selected.
    """
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    market: str = DEFAULT_MARKET
    default_playlist_id: str | None = None


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry policy for remote calls.

    Attributes:
        attempts: Maximum attempts for non-rate-limit failures.
        delay_ms: Base delay; attempt N waits delay_ms * N before retrying.
    """
    attempts: int = DEFAULT_RETRY_ATTEMPTS
    delay_ms: int = DEFAULT_RETRY_DELAY_MS


@dataclass(frozen=True)
class NetworkConfig:
    """Transport settings passed to the Spotify client."""
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


@dataclass(frozen=True)
class StorageConfig:
    """
    Location of persistent state.

    Attributes:
        data_directory: Directory holding store.json and tokens.json.
    """
    data_directory: Path

    @property
    def store_path(self) -> Path:
        return self.data_directory / STORE_FILENAME

    @property
    def tokens_path(self) -> Path:
        return self.data_directory / TOKENS_FILENAME


@dataclass(frozen=True)
class SchedulerConfig:
    """Interval between automatic scans in 24/7 mode."""
    interval_hours: float = DEFAULT_INTERVAL_HOURS


@dataclass(frozen=True)
class LoggingConfig:
    """
    Log output settings.

    Attributes:
        directory: Where the per-run log files are written.
        verbose: Show DEBUG messages on the console (same as --verbose).
    """
    directory: Path
    verbose: bool = False


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable (frozen dataclass).

    Attributes:
        spotify: Spotify credentials and API settings.
        retry: Retry policy.
        network: Transport settings.
        storage: Persistent state location.
        scheduler: 24/7 mode settings.
        logging: Log file location.

    Example:
        config = load_config()
        config.require("spotify.client_id", "spotify.client_secret")
        print(f"Scanning every {config.scheduler.interval_hours} hours")
    """
    spotify: SpotifyConfig
    retry: RetryConfig
    network: NetworkConfig
    storage: StorageConfig
    scheduler: SchedulerConfig
    logging: LoggingConfig

    def require(self, *fields: str) -> None:
        """
        Ensure the given dotted fields have non-empty values.

        Args:
            *fields: Dotted field names, e.g. "spotify.client_id".

        Raises:
            ConfigError: Listing every missing field.
        """
        missing = []
        for dotted in fields:
            section_name, _, key = dotted.partition(".")
            section = getattr(self, section_name, None)
            value = getattr(section, key, None) if section is not None else None
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(dotted)

        if missing:
            raise ConfigError(
                f"Missing required configuration: {', '.join(missing)}",
                details={"missing_fields": missing}
            )


def load_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None
) -> Config:
    """
    Load and validate configuration from config.yaml and the environment.

    Args:
        config_path: Optional explicit path to config file. If given, the
                     file must exist. If None, CWD/config.yaml is used when
                     present and skipped otherwise.
        environ: Environment mapping to read overrides from. Defaults to
                 os.environ after loading a .env file.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is unreadable, has invalid YAML
                     syntax, or contains invalid values.

    Note:
        Credentials are NOT required here, so commands such as `artists`
        work without them. Call Config.require() before talking to Spotify.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    raw_config = _read_config_file(config_path)
    _apply_env_overrides(raw_config, environ)

    spotify_section = _section(raw_config, "spotify")
    storage = _parse_storage_config(_section(raw_config, "storage"))

    return Config(
        spotify=_parse_spotify_config(spotify_section),
        retry=_parse_retry_config(_section(raw_config, "retry")),
        network=_parse_network_config(_section(raw_config, "network")),
        storage=storage,
        scheduler=_parse_scheduler_config(_section(raw_config, "scheduler")),
        logging=_parse_logging_config(_section(raw_config, "logging"), storage)
    )


def _read_config_file(config_path: Path | None) -> dict[str, Any]:
    """
    Read the YAML file into a dictionary.

    Returns an empty dictionary when no explicit path is given and
    CWD/config.yaml does not exist.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME
        if not config_path.exists():
            return {}
    elif not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return raw_config


def _apply_env_overrides(raw_config: dict[str, Any], environ: Mapping[str, str]) -> None:
    """Copy non-empty environment values into the raw configuration."""
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_var)
        if value:
            section_data = raw_config.get(section)
            if not isinstance(section_data, dict):
                section_data = {}
                raw_config[section] = section_data
            section_data[key] = value


def _section(raw_config: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a section dictionary, or an empty one if the section is absent."""
    section = raw_config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(
            f"Section '{name}' must be a dictionary",
            details={"section": name}
        )
    return section


def _optional_string(section: dict[str, Any], key: str, field: str) -> str | None:
    value = section.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(
            f"'{field}' must be a string",
            details={"field": field, "value": value}
        )
    return value.strip() or None


def _positive_number(value: Any, field: str, allow_zero: bool = False) -> float:
    """Coerce a YAML or environment value to a number and validate its sign."""
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(
            f"'{field}' must be a number",
            details={"field": field, "value": value}
        ) from e

    if number < 0 or (number == 0 and not allow_zero):
        requirement = "a non-negative" if allow_zero else "a positive"
        raise ConfigError(
            f"'{field}' must be {requirement} number",
            details={"field": field, "value": value}
        )
    return number


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse the Spotify configuration section.

    Raises:
        ConfigError: If a value has the wrong type or the scopes list is empty.
    """
    scopes = spotify_section.get("scopes", DEFAULT_SCOPES)
    if isinstance(scopes, str):
        scopes = scopes.split()
    if not isinstance(scopes, (list, tuple)) or not scopes:
        raise ConfigError(
            "'spotify.scopes' must be a non-empty list",
            details={"field": "spotify.scopes"}
        )

    return SpotifyConfig(
        client_id=_optional_string(spotify_section, "client_id", "spotify.client_id") or "",
        client_secret=_optional_string(
            spotify_section, "client_secret", "spotify.client_secret"
        ) or "",
        redirect_uri=_optional_string(
            spotify_section, "redirect_uri", "spotify.redirect_uri"
        ) or DEFAULT_REDIRECT_URI,
        scopes=tuple(str(scope) for scope in scopes),
        market=_optional_string(spotify_section, "market", "spotify.market") or DEFAULT_MARKET,
        default_playlist_id=_optional_string(
            spotify_section, "default_playlist_id", "spotify.default_playlist_id"
        )
    )


def _parse_retry_config(retry_section: dict[str, Any]) -> RetryConfig:
    """
    Parse the retry section.

    Raises:
        ConfigError: If attempts is not a positive integer or delay_ms is negative.
    """
    attempts = retry_section.get("attempts", DEFAULT_RETRY_ATTEMPTS)
    if isinstance(attempts, bool) or not isinstance(attempts, int) or attempts < 1:
        raise ConfigError(
            "'retry.attempts' must be a positive integer",
            details={"field": "retry.attempts", "value": attempts}
        )

    delay_ms = _positive_number(
        retry_section.get("delay_ms", DEFAULT_RETRY_DELAY_MS),
        "retry.delay_ms",
        allow_zero=True
    )
    return RetryConfig(attempts=attempts, delay_ms=int(delay_ms))


def _parse_network_config(network_section: dict[str, Any]) -> NetworkConfig:
    timeout = _positive_number(
        network_section.get("request_timeout", DEFAULT_REQUEST_TIMEOUT),
        "network.request_timeout"
    )
    return NetworkConfig(request_timeout=timeout)


def _parse_storage_config(storage_section: dict[str, Any]) -> StorageConfig:
    """
    Parse the storage section.

    Expands ~ and makes the data directory absolute. The directory itself
    is created lazily by the store on first write.
    """
    directory = _optional_string(
        storage_section, "data_directory", "storage.data_directory"
    ) or DEFAULT_DATA_DIRECTORY
    return StorageConfig(data_directory=Path(directory).expanduser().resolve())


def _parse_scheduler_config(scheduler_section: dict[str, Any]) -> SchedulerConfig:
    interval = _positive_number(
        scheduler_section.get("interval_hours", DEFAULT_INTERVAL_HOURS),
        "scheduler.interval_hours"
    )
    return SchedulerConfig(interval_hours=interval)


def _parse_logging_config(
    logging_section: dict[str, Any],
    storage: StorageConfig
) -> LoggingConfig:
    """Default the log directory to <data_directory>/logs."""
    verbose = logging_section.get("verbose", False)
    if not isinstance(verbose, bool):
        raise ConfigError(
            "'logging.verbose' must be true or false",
            details={"field": "logging.verbose", "value": verbose}
        )

    directory = _optional_string(logging_section, "directory", "logging.directory")
    if directory is None:
        return LoggingConfig(directory=storage.data_directory / "logs", verbose=verbose)
    return LoggingConfig(directory=Path(directory).expanduser().resolve(), verbose=verbose)
