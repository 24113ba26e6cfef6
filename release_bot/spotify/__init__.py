"""
Spotify module for release-bot.

Handles all interaction with the Spotify Web API:
    - auth: Authorization-code flow, token refresh, TokenGuard
    - retry: RetryingCaller with rate-limit handling
    - client: CatalogClient (artists, releases, tracks, playlists)
    - models: Artist, Release, Track, Playlist, TokenState

Usage:
    from release_bot.spotify import CatalogClient, RetryingCaller, TokenGuard, TokenRefresher

    caller = RetryingCaller(attempts=3, delay_ms=2000)
    guard = TokenGuard(credential_store, TokenRefresher(client_id, client_secret), caller)
    client = CatalogClient(guard, caller, market="US")

    for release in client.list_artist_releases(artist_id):
        print(release.name, release.release_date)
"""

from release_bot.spotify.auth import (
    TokenGuard,
    TokenRefresher,
    authorize,
    build_authorize_url,
    exchange_code,
)
from release_bot.spotify.client import CatalogClient, DEFAULT_INCLUDE_GROUPS
from release_bot.spotify.models import (
    Artist,
    Playlist,
    PlaylistItem,
    Release,
    ReleaseDate,
    TokenState,
    Track,
)
from release_bot.spotify.retry import RetryingCaller

__all__ = [
    # Auth
    "TokenGuard",
    "TokenRefresher",
    "authorize",
    "build_authorize_url",
    "exchange_code",
    # Client
    "CatalogClient",
    "DEFAULT_INCLUDE_GROUPS",
    "RetryingCaller",
    # Models
    "Artist",
    "Release",
    "ReleaseDate",
    "Track",
    "PlaylistItem",
    "Playlist",
    "TokenState",
]
