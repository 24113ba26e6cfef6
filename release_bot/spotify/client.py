"""
Spotify Web API client for release-bot.

CatalogClient wraps spotipy and exposes exactly the operations the bot
needs: listing an artist's releases and a release's tracks, reading and
writing playlists, listing followed artists and the user's playlists,
and searching artists.

Every page request:
    1. Asks the TokenGuard for a valid access token
    2. Runs through the RetryingCaller (backoff + 429 compliance)
    3. Translates spotipy.SpotifyException into SpotifyError

The spotipy instance is built on a plain requests.Session, so spotipy
itself never retries; RetryingCaller is the only retry policy.

Usage:
    client = CatalogClient(token_guard, RetryingCaller(), market="US")
    releases = client.list_artist_releases("0TnOYISbd1XYRBk9myaseg")
    client.append_tracks(playlist_id, ["spotify:track:..."])
"""

from typing import Any, Callable, TypeVar

import requests
import spotipy

from release_bot.core.exceptions import SpotifyError
from release_bot.core.logger import get_logger
from release_bot.spotify.auth import TokenGuard
from release_bot.spotify.models import Artist, Playlist, PlaylistItem, Release, Track
from release_bot.spotify.retry import RetryingCaller
from release_bot.utils import chunked


logger = get_logger(__name__)

T = TypeVar("T")

ARTIST_ALBUMS_PAGE_SIZE = 50
ALBUM_TRACKS_PAGE_SIZE = 50
PLAYLIST_ITEMS_PAGE_SIZE = 100
USER_PLAYLISTS_PAGE_SIZE = 50
FOLLOWED_ARTISTS_PAGE_SIZE = 50
PLAYLIST_WRITE_BATCH_SIZE = 100

DEFAULT_INCLUDE_GROUPS = "album,single"


def _default_spotify_factory(session: requests.Session, request_timeout: float) -> Callable[[str], spotipy.Spotify]:
    """Build spotipy clients without urllib3 retries (429s must surface)."""
    def factory(access_token: str) -> spotipy.Spotify:
        return spotipy.Spotify(
            auth=access_token,
            requests_session=session,
            requests_timeout=request_timeout,
            retries=0,
            status_retries=0
        )
    return factory


class CatalogClient:
    """
    Paginated, retried access to the Spotify catalog and playlists.

    Attributes:
        market: Market code used for artist release listings.

    Thread Safety:
        Intended for the single-threaded scan flow. The TokenGuard it
        uses is safe to share.
    """

    def __init__(
        self,
        token_guard: TokenGuard,
        caller: RetryingCaller,
        market: str = "US",
        request_timeout: float = 30,
        spotify_factory: Callable[[str], Any] | None = None
    ) -> None:
        """
        Initialize the client.

        Args:
            token_guard: Supplies a valid access token for every request.
            caller: Retry policy applied to every page request.
            market: Market code for artist release listings.
            request_timeout: Transport timeout in seconds.
            spotify_factory: Builds a spotipy-compatible client from an
                             access token. Defaults to spotipy.Spotify on a
                             shared requests.Session.
        """
        self._token_guard = token_guard
        self._caller = caller
        self.market = market
        self._factory = spotify_factory or _default_spotify_factory(
            requests.Session(), request_timeout
        )
        self._spotify: Any = None
        self._spotify_token: str | None = None

    # =========================================================================
    # Request plumbing
    # =========================================================================

    def _spotify_for(self, access_token: str) -> Any:
        if self._spotify is None or access_token != self._spotify_token:
            self._spotify = self._factory(access_token)
            self._spotify_token = access_token
        return self._spotify

    def _request(self, operation: Callable[[Any], T], label: str) -> T:
        """
        Run one remote call with a valid token under the retry policy.

        Args:
            operation: Receives the spotipy client and performs one request.
            label: Name used in logs and error messages.
        """
        def attempt() -> T:
            token = self._token_guard.ensure_valid()
            spotify = self._spotify_for(token.access_token)
            try:
                return operation(spotify)
            except spotipy.SpotifyException as e:
                raise self._translate_error(e, label) from e
            except requests.RequestException as e:
                raise SpotifyError(
                    f"Network error during {label}: {e}",
                    details={"label": label, "original_error": str(e)}
                ) from e

        return self._caller.call(attempt, label)

    def _translate_error(self, error: spotipy.SpotifyException, label: str) -> SpotifyError:
        status = error.http_status
        if status == 429:
            headers = error.headers or {}
            retry_after = headers.get("Retry-After") or headers.get("retry-after")
            return SpotifyError(
                f"Rate limited during {label}",
                details={"label": label, "http_status": 429},
                is_rate_limit=True,
                http_status=429,
                retry_after=float(retry_after) if retry_after else None
            )

        if status == 401:
            # Token revoked or expired early; refresh before the next attempt
            self._token_guard.invalidate()
            return SpotifyError(
                f"Unauthorized during {label}: {error.msg}",
                details={"label": label, "http_status": 401},
                is_auth_error=True,
                http_status=401
            )

        return SpotifyError(
            f"Failed {label}: HTTP {status} {error.msg}",
            details={"label": label, "http_status": status, "original_error": str(error)},
            http_status=status
        )

    def _paginate_offset(
        self,
        fetch: Callable[[Any, int], dict[str, Any] | None],
        page_size: int,
        label: str
    ) -> list[dict[str, Any]]:
        """
        Collect all items of an offset/limit paginated endpoint.

        Requests pages until offset >= total (or a page comes back empty).
        """
        items: list[dict[str, Any]] = []
        offset = 0

        while True:
            page = self._request(
                lambda spotify, offset=offset: fetch(spotify, offset),
                f"{label} (offset {offset})"
            ) or {}
            page_items = page.get("items") or []
            items.extend(page_items)

            offset += page_size
            if offset >= (page.get("total") or 0) or not page_items:
                break

        return items

    # =========================================================================
    # Catalog Operations
    # =========================================================================

    def list_artist_releases(
        self,
        artist_id: str,
        include_groups: str = DEFAULT_INCLUDE_GROUPS,
        market: str | None = None
    ) -> list[Release]:
        """
        Get every release of an artist.

        Args:
            artist_id: Spotify artist ID.
            include_groups: Comma-separated release groups, e.g. "album,single".
            market: Market code. Defaults to the client's market.

        Returns:
            All releases, in the order Spotify returns them.

        Raises:
            SpotifyError: If a page still fails after retries (e.g. HTTP 404
                          for an unknown artist id).
        """
        country = market or self.market
        raw_items = self._paginate_offset(
            lambda spotify, offset: spotify.artist_albums(
                artist_id,
                include_groups=include_groups,
                country=country,
                limit=ARTIST_ALBUMS_PAGE_SIZE,
                offset=offset
            ),
            ARTIST_ALBUMS_PAGE_SIZE,
            f"artist albums {artist_id}"
        )
        return [Release.from_spotify_api(item) for item in raw_items if item and item.get("id")]

    def list_release_tracks(self, release_id: str) -> list[Track]:
        """
        Get every track of a release.

        Raises:
            SpotifyError: If a page still fails after retries.
        """
        raw_items = self._paginate_offset(
            lambda spotify, offset: spotify.album_tracks(
                release_id, limit=ALBUM_TRACKS_PAGE_SIZE, offset=offset
            ),
            ALBUM_TRACKS_PAGE_SIZE,
            f"album tracks {release_id}"
        )
        return [Track.from_spotify_api(item) for item in raw_items if item]

    def search_artists(self, query: str, limit: int = 10) -> list[Artist]:
        """
        Search artists by name (single page).

        Returns:
            Up to `limit` matching artists with followers and genres.
        """
        result = self._request(
            lambda spotify: spotify.search(q=query, type="artist", limit=limit),
            f"artist search '{query}'"
        ) or {}
        items = (result.get("artists") or {}).get("items") or []
        return [Artist.from_spotify_api(item) for item in items if item and item.get("id")]

    def list_followed_artists(self) -> list[Artist]:
        """
        Get every artist the user follows.

        Uses cursor pagination: keeps requesting with the last `after`
        cursor until none is returned.
        """
        artists: list[Artist] = []
        after: str | None = None

        while True:
            page = self._request(
                lambda spotify, after=after: spotify.current_user_followed_artists(
                    limit=FOLLOWED_ARTISTS_PAGE_SIZE, after=after
                ),
                "followed artists"
            ) or {}
            artists_page = page.get("artists") or {}
            artists.extend(
                Artist.from_spotify_api(item)
                for item in artists_page.get("items") or []
                if item and item.get("id")
            )

            after = (artists_page.get("cursors") or {}).get("after")
            if not after:
                break

        return artists

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    def list_user_playlists(self) -> list[Playlist]:
        """Get every playlist in the current user's library."""
        raw_items = self._paginate_offset(
            lambda spotify, offset: spotify.current_user_playlists(
                limit=USER_PLAYLISTS_PAGE_SIZE, offset=offset
            ),
            USER_PLAYLISTS_PAGE_SIZE,
            "user playlists"
        )
        return [Playlist.from_spotify_api(item) for item in raw_items if item and item.get("id")]

    def list_playlist_tracks(self, playlist_id: str) -> list[PlaylistItem]:
        """
        Get every item of a playlist, in playlist order.

        Items whose track was removed or is unavailable are returned with
        track=None; callers decide how to treat them.
        """
        raw_items = self._paginate_offset(
            lambda spotify, offset: spotify.playlist_items(
                playlist_id,
                limit=PLAYLIST_ITEMS_PAGE_SIZE,
                offset=offset,
                additional_types=("track",)
            ),
            PLAYLIST_ITEMS_PAGE_SIZE,
            f"playlist items {playlist_id}"
        )
        return [PlaylistItem.from_spotify_api(item) for item in raw_items if item is not None]

    def append_tracks(self, playlist_id: str, uris: list[str]) -> None:
        """
        Append tracks to the end of a playlist.

        Sends sequential batches of at most 100 URIs, preserving order.
        """
        for batch in chunked(uris, PLAYLIST_WRITE_BATCH_SIZE):
            self._request(
                lambda spotify, batch=batch: spotify.playlist_add_items(playlist_id, batch),
                f"add {len(batch)} tracks to {playlist_id}"
            )
            logger.debug(f"Added batch of {len(batch)} tracks to {playlist_id}")

    def replace_all_tracks(self, playlist_id: str, uris: list[str]) -> None:
        """
        Replace a playlist's contents with `uris`, in order.

        The first batch (at most 100) replaces the existing contents, the
        remaining URIs are appended.
        """
        first_batch = list(uris[:PLAYLIST_WRITE_BATCH_SIZE])
        self._request(
            lambda spotify: spotify.playlist_replace_items(playlist_id, first_batch),
            f"replace tracks of {playlist_id}"
        )
        self.append_tracks(playlist_id, list(uris[PLAYLIST_WRITE_BATCH_SIZE:]))
