"""
release-bot: Keep a Spotify playlist filled with new releases.

The bot tracks a list of artists, periodically scans their catalogs for
releases published since the last scan and appends the new tracks to a
target playlist, never adding a track the playlist already holds.

Architecture:
    spotify/    - OAuth tokens, retrying Catalog API client, data models
    catalog/    - Release-date filtering, scanning, playlist reconciliation
    core/       - Configuration, JSON store, logging, exceptions
    scheduler   - 24/7 loop running a scan every N hours
    cli         - Command-line interface

Usage:
    Command Line:
        release-bot auth
        release-bot add-artist "Artist Name"
        release-bot select-playlist
        release-bot run

    Python API:
        from release_bot.core import load_config, JsonDocument, ArtistStore
        from release_bot.catalog import CatalogScanner, PlaylistReconciler, ScanOrchestrator

Configuration:
    SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET are read from the
    environment or a .env file. Optional settings live in config.yaml:

        spotify:
          market: "US"
        scheduler:
          interval_hours: 12

Dependencies:
    - spotipy: Spotify Web API client
    - requests: Token endpoint and HTTP session
    - click / rich-click: CLI and colors
    - tqdm: Progress bars
    - pyyaml: Configuration file parsing
    - python-dotenv: .env loading
"""

__version__ = "0.1.0"
__author__ = "release-bot"
__license__ = "MIT"

from release_bot.core import (
    Config,
    ConfigError,
    PreconditionError,
    ReleaseBotError,
    SpotifyError,
    StoreError,
    get_logger,
    load_config,
    setup_logging,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    # Exceptions
    "ReleaseBotError",
    "ConfigError",
    "StoreError",
    "SpotifyError",
    "PreconditionError",
]
