"""
Core module for release-bot.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Logging system with multiple outputs
    - store: Thread-safe JSON store for artists, checkpoint, presets and tokens

Usage:
    from release_bot.core import (
        Config, load_config,
        JsonDocument, ArtistStore,
        setup_logging, get_logger,
        ReleaseBotError, ConfigError, StoreError
    )
"""

from release_bot.core.config import (
    Config,
    LoggingConfig,
    NetworkConfig,
    RetryConfig,
    SchedulerConfig,
    SpotifyConfig,
    StorageConfig,
    load_config,
)
from release_bot.core.exceptions import (
    ConfigError,
    PreconditionError,
    ReleaseBotError,
    SpotifyError,
    StoreError,
    TokenRefreshError,
    UnauthenticatedError,
)
from release_bot.core.logger import (
    get_logger,
    log_scan_failure,
    setup_logging,
    shutdown_logging,
)
from release_bot.core.store import (
    ArtistStore,
    CheckpointStore,
    CredentialStore,
    JsonDocument,
    PlaylistSelection,
    PresetStore,
)

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "RetryConfig",
    "NetworkConfig",
    "StorageConfig",
    "SchedulerConfig",
    "LoggingConfig",
    "load_config",
    # Store
    "JsonDocument",
    "ArtistStore",
    "CheckpointStore",
    "PlaylistSelection",
    "PresetStore",
    "CredentialStore",
    # Exceptions
    "ReleaseBotError",
    "ConfigError",
    "StoreError",
    "SpotifyError",
    "UnauthenticatedError",
    "TokenRefreshError",
    "PreconditionError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_scan_failure",
    "shutdown_logging",
]
