"""Test the Spotify catalog client against a mocked spotipy"""

from unittest.mock import Mock, call

import pytest
import spotipy

from release_bot.core.exceptions import SpotifyError
from release_bot.spotify.client import CatalogClient
from release_bot.spotify.models import TokenState
from release_bot.spotify.retry import RetryingCaller
from conftest import StaticTokenGuard


def album(index, date="2024-01-01"):
    return {
        "id": f"album{index}",
        "name": f"Album {index}",
        "album_type": "album",
        "album_group": "album",
        "release_date": date,
        "release_date_precision": "day",
        "total_tracks": 10,
    }


def track_item(uri):
    return {"uri": uri, "id": uri.split(":")[-1], "name": uri, "artists": []}


@pytest.fixture
def spotify():
    return Mock()


@pytest.fixture
def guard():
    return StaticTokenGuard()


@pytest.fixture
def client(guard, spotify, recording_sleep):
    caller = RetryingCaller(attempts=3, delay_ms=1000, sleep=recording_sleep)
    return CatalogClient(guard, caller, market="SE", spotify_factory=lambda token: spotify)


class TestPagination:
    """Test that every page is fetched"""

    def test_artist_releases_follow_offsets(self, client, spotify):
        spotify.artist_albums.side_effect = [
            {"items": [album(i) for i in range(50)], "total": 60},
            {"items": [album(i) for i in range(50, 60)], "total": 60},
        ]

        releases = client.list_artist_releases("artist1", include_groups="album")

        assert len(releases) == 60
        assert spotify.artist_albums.call_args_list == [
            call("artist1", include_groups="album", country="SE", limit=50, offset=0),
            call("artist1", include_groups="album", country="SE", limit=50, offset=50),
        ]

    def test_empty_page_stops_pagination(self, client, spotify):
        spotify.album_tracks.side_effect = [
            {"items": [track_item("spotify:track:1")], "total": 500},
            {"items": [], "total": 500},
        ]

        tracks = client.list_release_tracks("album1")

        assert [t.uri for t in tracks] == ["spotify:track:1"]
        assert spotify.album_tracks.call_count == 2

    def test_playlist_items_keep_removed_entries_as_none(self, client, spotify):
        spotify.playlist_items.return_value = {
            "items": [{"track": track_item("spotify:track:1")}, {"track": None}],
            "total": 2,
        }

        items = client.list_playlist_tracks("playlist1")

        assert items[0].track.uri == "spotify:track:1"
        assert items[1].track is None

    def test_followed_artists_use_cursor(self, client, spotify):
        spotify.current_user_followed_artists.side_effect = [
            {"artists": {"items": [{"id": "a1", "name": "One"}], "cursors": {"after": "a1"}}},
            {"artists": {"items": [{"id": "a2", "name": "Two"}], "cursors": {"after": None}}},
        ]

        followed = client.list_followed_artists()

        assert [a.id for a in followed] == ["a1", "a2"]
        assert spotify.current_user_followed_artists.call_args_list == [
            call(limit=50, after=None),
            call(limit=50, after="a1"),
        ]

    def test_search_artists(self, client, spotify):
        spotify.search.return_value = {
            "artists": {"items": [{"id": "a1", "name": "One", "followers": {"total": 5}}]}
        }

        results = client.search_artists("one", limit=5)

        assert results[0].followers == 5
        spotify.search.assert_called_once_with(q="one", type="artist", limit=5)


class TestPlaylistWrites:
    """Test batched playlist writes"""

    def test_append_in_ordered_batches(self, client, spotify):
        uris = [f"spotify:track:{i}" for i in range(250)]

        client.append_tracks("playlist1", uris)

        batches = [c.args[1] for c in spotify.playlist_add_items.call_args_list]
        assert [len(b) for b in batches] == [100, 100, 50]
        assert [uri for batch in batches for uri in batch] == uris

    def test_append_nothing(self, client, spotify):
        client.append_tracks("playlist1", [])
        spotify.playlist_add_items.assert_not_called()

    def test_replace_then_append_rest(self, client, spotify):
        uris = [f"spotify:track:{i}" for i in range(150)]

        client.replace_all_tracks("playlist1", uris)

        spotify.playlist_replace_items.assert_called_once_with("playlist1", uris[:100])
        spotify.playlist_add_items.assert_called_once_with("playlist1", uris[100:])


class TestErrors:
    """Test error translation and retries"""

    def test_rate_limit_waits_retry_after(self, client, spotify, recording_sleep):
        spotify.search.side_effect = [
            spotipy.SpotifyException(429, -1, "rate limited", headers={"Retry-After": "2"}),
            {"artists": {"items": []}},
        ]

        assert client.search_artists("x") == []
        assert recording_sleep.calls == [2.0]

    def test_unauthorized_invalidates_token(self, client, spotify, guard):
        spotify.search.side_effect = [
            spotipy.SpotifyException(401, -1, "token expired"),
            {"artists": {"items": []}},
        ]

        client.search_artists("x")

        assert guard.invalidations == 1

    def test_not_found_keeps_status(self, client, spotify, recording_sleep):
        spotify.artist_albums.side_effect = spotipy.SpotifyException(404, -1, "non existing id")

        with pytest.raises(SpotifyError) as exc_info:
            client.list_artist_releases("bad")

        assert exc_info.value.http_status == 404
        assert spotify.artist_albums.call_count == 3
        assert recording_sleep.calls == [1.0, 2.0]

    def test_new_token_builds_new_spotify_client(self, guard, recording_sleep):
        factory = Mock(return_value=Mock(search=Mock(return_value={"artists": {"items": []}})))
        client = CatalogClient(guard, RetryingCaller(sleep=recording_sleep), spotify_factory=factory)

        client.search_artists("x")
        client.search_artists("y")
        guard.state = TokenState("access-2", "refresh-1", expires_at=guard.state.expires_at)
        client.search_artists("z")

        assert [c.args[0] for c in factory.call_args_list] == ["access-1", "access-2"]
