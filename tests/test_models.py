"""Test Spotify data models"""

from datetime import datetime, timezone

import pytest

from release_bot.spotify.models import (
    Artist,
    Playlist,
    PlaylistItem,
    Release,
    ReleaseDate,
    TokenState,
    Track,
)


class TestReleaseDate:
    """Test ReleaseDate parsing"""

    def test_parse_each_precision(self):
        assert ReleaseDate.parse("2024", "year") == ReleaseDate(2024)
        assert ReleaseDate.parse("2024-03", "month") == ReleaseDate(2024, 3)
        assert ReleaseDate.parse("2024-03-15", "day") == ReleaseDate(2024, 3, 15)

    def test_year_precision_uses_leading_year(self):
        date = ReleaseDate.parse("2019-05-01", "year")
        assert date == ReleaseDate(2019)
        assert date.precision == "year"

    def test_invalid_month(self):
        with pytest.raises(ValueError):
            ReleaseDate.parse("2024-13", "month")

    def test_non_string(self):
        with pytest.raises(ValueError):
            ReleaseDate.parse(None, "day")

    def test_lower_bound_and_str(self):
        date = ReleaseDate(2024, 3)
        assert date.lower_bound() == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert str(date) == "2024-03"
        assert str(ReleaseDate(2024, 3, 5)) == "2024-03-05"


class TestRelease:
    """Test Release creation from API items"""

    def test_from_spotify_api(self):
        release = Release.from_spotify_api({
            "id": "album1",
            "name": "First Album",
            "album_type": "album",
            "album_group": "album",
            "release_date": "2023-06",
            "release_date_precision": "month",
            "total_tracks": 11,
        })

        assert release.id == "album1"
        assert release.release_date == ReleaseDate(2023, 6)
        assert release.release_date_raw == "2023-06"
        assert release.total_tracks == 11

    def test_malformed_date_gives_none(self):
        release = Release.from_spotify_api({
            "id": "album2",
            "name": "Broken",
            "release_date": "0000-00-00",
            "release_date_precision": "day",
        })
        assert release.release_date is None
        assert release.release_date_raw == "0000-00-00"

    def test_missing_date_gives_none(self):
        release = Release.from_spotify_api({"id": "album3", "name": "Undated"})
        assert release.release_date is None


class TestTrackAndPlaylist:
    """Test Track, PlaylistItem and Playlist models"""

    def test_track_from_spotify_api(self):
        track = Track.from_spotify_api({
            "uri": "spotify:track:t1",
            "id": "t1",
            "name": "Song",
            "artists": [{"id": "a1", "name": "One"}, {"id": "a2", "name": "Two"}],
            "duration_ms": 180000,
            "track_number": 4,
        })
        assert track.uri == "spotify:track:t1"
        assert track.artists == ("One", "Two")
        assert track.track_number == 4

    def test_playlist_item_with_removed_track(self):
        item = PlaylistItem.from_spotify_api({"added_at": "2024-01-01T00:00:00Z", "track": None})
        assert item.track is None
        assert item.added_at == "2024-01-01T00:00:00Z"

    def test_playlist_total_from_items_key(self):
        playlist = Playlist.from_spotify_api({
            "id": "p1",
            "name": "New Music",
            "owner": {"id": "me", "display_name": "Me"},
            "items": {"total": 42},
        })
        assert playlist.total_tracks == 42
        assert playlist.owner_name == "Me"

    def test_artist_persisted_form(self):
        artist = Artist.from_spotify_api({
            "id": "a1",
            "name": "Artist",
            "followers": {"total": 1200},
            "genres": ["rock"],
        })
        assert artist.followers == 1200
        assert artist.to_dict() == {"id": "a1", "name": "Artist"}
        assert Artist.from_dict(artist.to_dict()) == Artist(id="a1", name="Artist")


class TestTokenState:
    """Test TokenState expiry and token responses"""

    def test_expires_within(self):
        state = TokenState("a", "r", expires_at=1_000_000)
        assert not state.expires_within(now_ms=600_000, window_ms=300_000)
        assert state.expires_within(now_ms=700_000, window_ms=300_000)

    def test_from_token_response_keeps_previous_refresh_token(self):
        state = TokenState.from_token_response(
            {"access_token": "new", "expires_in": 3600},
            now_ms=1_000,
            previous_refresh_token="old-refresh"
        )
        assert state.access_token == "new"
        assert state.refresh_token == "old-refresh"
        assert state.expires_at == 1_000 + 3_600_000

    def test_from_token_response_uses_rotated_refresh_token(self):
        state = TokenState.from_token_response(
            {"access_token": "new", "refresh_token": "rotated", "expires_in": 60},
            now_ms=0,
            previous_refresh_token="old-refresh"
        )
        assert state.refresh_token == "rotated"

    def test_from_token_response_missing_fields(self):
        with pytest.raises(ValueError):
            TokenState.from_token_response({"expires_in": 3600}, now_ms=0)
