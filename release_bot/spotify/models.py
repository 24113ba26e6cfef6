"""
Data models for Spotify entities.

This module defines immutable dataclasses representing the Spotify objects
the bot works with: artists, releases (albums/singles), tracks, playlist
items, playlists, and the OAuth token state.

Design Decisions:
    - All dataclasses are frozen (immutable) to prevent accidental modification
    - Each model has a from_spotify_api() factory that tolerates missing keys
    - Track identity is its URI; all deduplication is done on URIs
    - Release dates are a value type (ReleaseDate) instead of raw strings

Usage:
    from release_bot.spotify.models import Artist, Release, Track

    release = Release.from_spotify_api(album_item)
    if release.release_date is not None:
        print(release.release_date.lower_bound())
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


PRECISION_YEAR = "year"
PRECISION_MONTH = "month"
PRECISION_DAY = "day"

_YEAR_RE = re.compile(r"^\d{4}$")
_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")
_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class Artist:
    """
    Immutable representation of a tracked Spotify artist.

    Only id and name are persisted; followers and genres are shown when
    searching or importing.

    Attributes:
        id: Spotify artist ID (22-character base62 string).
        name: Display name.
        followers: Follower count, if known.
        genres: Genre tags from the artist profile.
    """
    id: str
    name: str
    followers: int | None = None
    genres: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Artist":
        followers = data.get("followers") or {}
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            followers=followers.get("total"),
            genres=tuple(data.get("genres") or ())
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Artist":
        """Create an Artist from its persisted form."""
        return cls(id=data["id"], name=data.get("name", ""))

    def to_dict(self) -> dict[str, Any]:
        """Persisted form: only id and name."""
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class ReleaseDate:
    """
    A release date known to year, month or day precision.

    Spotify reports release dates as "2024", "2024-03" or "2024-03-15"
    together with a precision tag. Missing components are None.

    Attributes:
        year: Four-digit year.
        month: Month (1-12) or None for year precision.
        day: Day of month or None for year/month precision.

    Example:
        date = ReleaseDate.parse("2024-03", "month")
        date.lower_bound()  # 2024-03-01 00:00:00+00:00
    """
    year: int
    month: int | None = None
    day: int | None = None

    @property
    def precision(self) -> str:
        if self.day is not None:
            return PRECISION_DAY
        if self.month is not None:
            return PRECISION_MONTH
        return PRECISION_YEAR

    @classmethod
    def parse(cls, date_string: str, precision: str | None = None) -> "ReleaseDate":
        """
        Parse a provider date string.

        Args:
            date_string: "YYYY", "YYYY-MM" or "YYYY-MM-DD".
            precision: "year", "month" or "day". Unknown or missing values
                       are inferred from the shape of date_string.

        Returns:
            ReleaseDate: The parsed value.

        Raises:
            ValueError: If the string does not match the precision or is
                        not a valid calendar date.
        """
        if not isinstance(date_string, str):
            raise ValueError(f"Release date must be a string, got {date_string!r}")

        date_string = date_string.strip()
        if precision not in (PRECISION_YEAR, PRECISION_MONTH, PRECISION_DAY):
            precision = _infer_precision(date_string)

        if precision == PRECISION_YEAR:
            # Day-precision strings sometimes come tagged as "year"; only the year is used.
            if not re.match(r"^\d{4}", date_string):
                raise ValueError(f"Invalid year release date: {date_string!r}")
            return cls(year=int(date_string[:4]))

        if precision == PRECISION_MONTH:
            if not (_MONTH_RE.match(date_string) or _DAY_RE.match(date_string)):
                raise ValueError(f"Invalid month release date: {date_string!r}")
            parsed = datetime.strptime(date_string[:7], "%Y-%m")
            return cls(year=parsed.year, month=parsed.month)

        if not _DAY_RE.match(date_string):
            raise ValueError(f"Invalid day release date: {date_string!r}")
        parsed = datetime.strptime(date_string, "%Y-%m-%d")
        return cls(year=parsed.year, month=parsed.month, day=parsed.day)

    def lower_bound(self) -> datetime:
        """Earliest UTC instant covered by this date (midnight of its first day)."""
        return datetime(self.year, self.month or 1, self.day or 1, tzinfo=timezone.utc)

    def __str__(self) -> str:
        if self.day is not None:
            return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"
        if self.month is not None:
            return f"{self.year:04d}-{self.month:02d}"
        return f"{self.year:04d}"


def _infer_precision(date_string: str) -> str:
    """Guess the precision from the string shape."""
    if _DAY_RE.match(date_string):
        return PRECISION_DAY
    if _MONTH_RE.match(date_string):
        return PRECISION_MONTH
    if _YEAR_RE.match(date_string):
        return PRECISION_YEAR
    raise ValueError(f"Unrecognized release date: {date_string!r}")


@dataclass(frozen=True)
class Release:
    """
    An album, single or compilation from an artist's catalog.

    Attributes:
        id: Spotify album ID.
        name: Release title.
        album_type: "album", "single" or "compilation".
        album_group: Relationship to the artist ("album", "single",
                     "appears_on", "compilation"), if reported.
        release_date: Parsed date, or None if the provider string is malformed.
        release_date_raw: The provider string as received (for display).
        total_tracks: Number of tracks on the release.
    """
    id: str
    name: str
    album_type: str = ""
    album_group: str = ""
    release_date: ReleaseDate | None = None
    release_date_raw: str = ""
    total_tracks: int = 0

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Release":
        """
        Create a Release from a simplified album object.

        An unparseable release date yields release_date=None instead of
        raising, so one bad entry never aborts an artist's scan.
        """
        raw_date = data.get("release_date") or ""
        try:
            release_date = ReleaseDate.parse(raw_date, data.get("release_date_precision"))
        except ValueError:
            release_date = None

        return cls(
            id=data["id"],
            name=data.get("name", ""),
            album_type=data.get("album_type") or "",
            album_group=data.get("album_group") or "",
            release_date=release_date,
            release_date_raw=raw_date,
            total_tracks=data.get("total_tracks") or 0
        )


@dataclass(frozen=True)
class Track:
    """
    Immutable representation of a Spotify track.

    Attributes:
        uri: Spotify track URI, e.g. "spotify:track:4cOdK2wGLETKBW3PvgPWqT".
             This is the unit of deduplication. May be empty for
             unavailable tracks.
        id: Spotify track ID.
        name: Track title.
        artists: Names of all credited artists.
        duration_ms: Track duration in milliseconds.
        track_number: Position within its release.
        release_name: Name of the release the track was found on.
                      Set by the scanner, display only.
        artist_name: Name of the tracked artist whose catalog produced it.
                     Set by the scanner, display only.
    """
    uri: str
    id: str = ""
    name: str = ""
    artists: tuple[str, ...] = field(default_factory=tuple)
    duration_ms: int = 0
    track_number: int = 0
    release_name: str = ""
    artist_name: str = ""

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Track":
        album = data.get("album") or {}
        return cls(
            uri=data.get("uri") or "",
            id=data.get("id") or "",
            name=data.get("name", ""),
            artists=tuple(a.get("name", "") for a in data.get("artists") or ()),
            duration_ms=data.get("duration_ms") or 0,
            track_number=data.get("track_number") or 0,
            release_name=album.get("name", "")
        )


@dataclass(frozen=True)
class PlaylistItem:
    """
    One entry of a playlist.

    Attributes:
        track: The track, or None for removed/unavailable items
               (Spotify returns "track": null for those).
        added_at: ISO timestamp of when the item was added.
    """
    track: Track | None
    added_at: str | None = None

    @classmethod
    def from_spotify_api(cls, item: dict[str, Any]) -> "PlaylistItem":
        track_data = item.get("track")
        track = Track.from_spotify_api(track_data) if track_data else None
        return cls(track=track, added_at=item.get("added_at"))


@dataclass(frozen=True)
class Playlist:
    """
    Playlist summary as listed from the user's library.

    Attributes:
        id: Spotify playlist ID.
        name: Playlist name.
        owner_name: Display name of the owner.
        total_tracks: Number of items in the playlist.
    """
    id: str
    name: str
    owner_name: str = ""
    total_tracks: int = 0

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Playlist":
        owner = data.get("owner") or {}
        # Newer API responses report "items" instead of "tracks"
        tracks = data.get("tracks") or data.get("items") or {}
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            owner_name=owner.get("display_name") or owner.get("id") or "",
            total_tracks=tracks.get("total", 0) if isinstance(tracks, dict) else 0
        )


@dataclass(frozen=True)
class TokenState:
    """
    OAuth credentials for the Spotify user.

    Attributes:
        access_token: Bearer token for API calls.
        refresh_token: Long-lived token used to obtain new access tokens.
        expires_at: Expiry of access_token in epoch milliseconds.
    """
    access_token: str
    refresh_token: str
    expires_at: int

    def expires_within(self, now_ms: int, window_ms: int) -> bool:
        """True if the token expires at or before now_ms + window_ms."""
        return now_ms >= self.expires_at - window_ms

    @classmethod
    def from_token_response(
        cls,
        data: dict[str, Any],
        now_ms: int,
        previous_refresh_token: str | None = None
    ) -> "TokenState":
        """
        Build state from a token endpoint response.

        Keeps previous_refresh_token when the response carries no new one.
        """
        refresh_token = data.get("refresh_token") or previous_refresh_token
        if not data.get("access_token") or not refresh_token:
            raise ValueError("Token response is missing access_token or refresh_token")
        return cls(
            access_token=data["access_token"],
            refresh_token=refresh_token,
            expires_at=now_ms + int(data.get("expires_in", 3600)) * 1000
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TokenState":
        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_at=int(data["expires_at"])
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }
