"""Test configuration and fixtures"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from release_bot.core.exceptions import SpotifyError
from release_bot.core.store import (
    ArtistStore,
    CheckpointStore,
    JsonDocument,
    PlaylistSelection,
    PresetStore,
)
from release_bot.spotify.client import DEFAULT_INCLUDE_GROUPS
from release_bot.spotify.models import (
    Artist,
    PlaylistItem,
    Release,
    TokenState,
    Track,
)
from release_bot.spotify.retry import RetryingCaller


class FakeClock:
    """Mutable clock returning aware UTC datetimes"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingSleep:
    """Stand-in for time.sleep that records requested delays"""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class StaticTokenGuard:
    """Token guard that always hands out the same token"""

    def __init__(self, access_token: str = "access-1"):
        self.state = TokenState(access_token, "refresh-1", expires_at=4_102_444_800_000)
        self.invalidations = 0

    def ensure_valid(self) -> TokenState:
        return self.state

    def invalidate(self) -> None:
        self.invalidations += 1

    def is_authenticated(self) -> bool:
        return True


class FakeCatalogClient:
    """
    In-memory catalog with the CatalogClient methods the scanner and
    reconciler use.
    """

    def __init__(self):
        self.releases = {}
        self.tracks = {}
        self.playlists = {}
        self.failures = {}
        self.append_error = None
        self.append_calls = []
        self.replace_calls = []
        self.include_groups_seen = []

    def add_release(self, artist_id, release, uris):
        self.releases.setdefault(artist_id, []).append(release)
        self.tracks[release.id] = [Track(uri=uri, id=uri.split(":")[-1], name=uri) for uri in uris]

    def list_artist_releases(self, artist_id, include_groups=DEFAULT_INCLUDE_GROUPS, market=None):
        self.include_groups_seen.append(include_groups)
        if artist_id in self.failures:
            raise self.failures[artist_id]
        groups = include_groups.split(",")
        return [r for r in self.releases.get(artist_id, []) if r.album_group in groups]

    def list_release_tracks(self, release_id):
        return list(self.tracks.get(release_id, []))

    def list_playlist_tracks(self, playlist_id):
        return [PlaylistItem(track=Track(uri=uri)) for uri in self.playlists.get(playlist_id, [])]

    def append_tracks(self, playlist_id, uris):
        if self.append_error is not None:
            raise self.append_error
        self.append_calls.append((playlist_id, list(uris)))
        self.playlists.setdefault(playlist_id, []).extend(uris)

    def replace_all_tracks(self, playlist_id, uris):
        self.replace_calls.append((playlist_id, list(uris)))
        self.playlists[playlist_id] = list(uris)


def make_release(release_id, date, precision="day", group="album"):
    """Build a Release the way the client would from an API item"""
    return Release.from_spotify_api({
        "id": release_id,
        "name": f"Release {release_id}",
        "album_type": group,
        "album_group": group,
        "release_date": date,
        "release_date_precision": precision,
        "total_tracks": 1,
    })


@pytest.fixture
def fixed_now():
    return datetime(2024, 3, 15, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now):
    return FakeClock(fixed_now)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def caller(recording_sleep):
    """RetryingCaller that never actually sleeps"""
    return RetryingCaller(attempts=3, delay_ms=2000, sleep=recording_sleep)


@pytest.fixture
def store_path(tmp_path) -> Path:
    return tmp_path / "store.json"


@pytest.fixture
def document(store_path):
    return JsonDocument(store_path)


@pytest.fixture
def artist_store(document):
    return ArtistStore(document)


@pytest.fixture
def checkpoint_store(document):
    return CheckpointStore(document)


@pytest.fixture
def playlist_selection(document):
    return PlaylistSelection(document)


@pytest.fixture
def preset_store(document, artist_store):
    return PresetStore(document, artist_store)


@pytest.fixture
def fake_client():
    return FakeCatalogClient()


@pytest.fixture
def artists():
    return [Artist(id="artist_a", name="Artist A"), Artist(id="artist_b", name="Artist B")]


@pytest.fixture
def not_found_error():
    return SpotifyError("Failed artist albums: HTTP 404 non existing id", http_status=404)


