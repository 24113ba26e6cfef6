"""
Catalog scanning: turn tracked artists into candidate tracks.

Two scan modes are supported:

    Incremental (scan_new):
        Keeps only releases dated strictly after the checkpoint (or the
        last 14 days when no checkpoint exists yet). Releases with an
        unparseable date are skipped.

    Full (scan_all):
        Keeps every release of the requested type, optionally bounded by
        an inclusive date range. Undated releases are skipped only when a
        bound is given.

Artists are scanned one after another. A failure on one artist is
recorded in its ArtistScanResult and never aborts the others; only
authentication failures propagate, since every later artist would fail
the same way.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable

from tqdm import tqdm

from release_bot.catalog.dates import ScanFilter
from release_bot.core.exceptions import SpotifyError, TokenRefreshError, UnauthenticatedError
from release_bot.core.logger import get_logger, log_scan_failure
from release_bot.spotify.client import CatalogClient, DEFAULT_INCLUDE_GROUPS
from release_bot.spotify.models import Artist, Release, Track
from release_bot.utils import parse_iso_datetime, utc_now


logger = get_logger(__name__)

DEFAULT_LOOKBACK = timedelta(days=14)

# HTTP statuses meaning the artist id itself is bad, not a transient failure
PERMANENT_FAILURE_STATUSES = (400, 404)


@dataclass(frozen=True)
class ArtistScanResult:
    """
    Outcome of scanning one artist.

    Attributes:
        artist: The scanned artist.
        tracks: Tracks found (empty on failure).
        releases_found: Number of releases that passed the filter.
        error: Failure reason, or None on success.
        permanent: True if the failure is due to an invalid artist id
                   (HTTP 400/404); the artist should be removed.
    """
    artist: Artist
    tracks: tuple[Track, ...] = ()
    releases_found: int = 0
    error: str | None = None
    permanent: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ScanReport:
    """All per-artist results of one scan, in artist order."""
    results: tuple[ArtistScanResult, ...] = ()

    @property
    def tracks(self) -> list[Track]:
        return [track for result in self.results for track in result.tracks]

    @property
    def failures(self) -> list[ArtistScanResult]:
        return [result for result in self.results if not result.ok]

    @property
    def releases_found(self) -> int:
        return sum(result.releases_found for result in self.results)


class CatalogScanner:
    """
    Collects candidate tracks from tracked artists' catalogs.

    Example:
        scanner = CatalogScanner(client)
        report = scanner.scan_new(artists, checkpoint_store.get())
        print(f"{len(report.tracks)} tracks, {len(report.failures)} failures")
    """

    def __init__(
        self,
        client: CatalogClient,
        clock: Callable[[], datetime] = utc_now,
        show_progress: bool = True
    ) -> None:
        """
        Args:
            client: Catalog API access.
            clock: Returns the current aware UTC datetime.
            show_progress: Display a tqdm progress bar over artists.
        """
        self._client = client
        self._clock = clock
        self.show_progress = show_progress

    def scan_new(self, artists: list[Artist], checkpoint: str | datetime | None) -> ScanReport:
        """
        Find tracks on releases published after the checkpoint.

        Args:
            artists: Artists to scan, in order.
            checkpoint: ISO timestamp (or datetime) of the last successful
                        scan. None means look back DEFAULT_LOOKBACK.

        Returns:
            ScanReport: Tracks from releases dated strictly after the cutoff.
        """
        cutoff = self._resolve_cutoff(checkpoint)
        logger.info(f"Scanning {len(artists)} artist(s) for releases after {cutoff.isoformat()}")

        def is_new(release: Release) -> bool:
            return release.release_date is not None and release.release_date.lower_bound() > cutoff

        return self._scan(
            artists,
            lambda artist: self._scan_artist(artist, DEFAULT_INCLUDE_GROUPS, is_new),
            "Scanning new releases"
        )

    def scan_all(self, artists: list[Artist], scan_filter: ScanFilter | None = None) -> ScanReport:
        """
        Find tracks on every release matching the filter.

        Args:
            artists: Artists to scan, in order.
            scan_filter: Release type and optional inclusive date range.
                         Defaults to everything, unbounded.
        """
        scan_filter = scan_filter or ScanFilter()
        logger.info(f"Fetching full catalog ({scan_filter.describe()}) for {len(artists)} artist(s)")
        return self._scan(
            artists,
            lambda artist: self._scan_artist(
                artist,
                scan_filter.release_type.include_groups,
                lambda release: scan_filter.accepts(release.release_date)
            ),
            "Scanning catalogs"
        )

    def scan_artist_catalog(self, artist: Artist, scan_filter: ScanFilter | None = None) -> list[Track]:
        """
        Fetch one artist's tracks, raising on failure.

        Raises:
            SpotifyError: If the artist's releases or tracks cannot be fetched.
        """
        scan_filter = scan_filter or ScanFilter()
        tracks, _ = self._scan_artist(
            artist,
            scan_filter.release_type.include_groups,
            lambda release: scan_filter.accepts(release.release_date)
        )
        return tracks

    def _resolve_cutoff(self, checkpoint: str | datetime | None) -> datetime:
        if isinstance(checkpoint, datetime):
            # naive means UTC, same as a stored ISO checkpoint
            if checkpoint.tzinfo is None:
                checkpoint = checkpoint.replace(tzinfo=timezone.utc)
            return checkpoint.astimezone(timezone.utc)
        if checkpoint:
            try:
                return parse_iso_datetime(checkpoint)
            except ValueError:
                logger.warning(
                    f"Ignoring unreadable checkpoint {checkpoint!r}, "
                    f"looking back {DEFAULT_LOOKBACK.days} days"
                )
        return self._clock() - DEFAULT_LOOKBACK

    def _scan_artist(
        self,
        artist: Artist,
        include_groups: str,
        keep: Callable[[Release], bool]
    ) -> tuple[list[Track], int]:
        """Return (tagged tracks, number of kept releases) for one artist."""
        releases = [
            release
            for release in self._client.list_artist_releases(artist.id, include_groups=include_groups)
            if keep(release)
        ]
        if releases:
            logger.info(f"{artist.name}: {len(releases)} release(s)")

        tracks: list[Track] = []
        for release in releases:
            logger.debug(
                f"  {release.name} ({release.album_type or 'release'}) {release.release_date_raw}"
            )
            for track in self._client.list_release_tracks(release.id):
                tracks.append(replace(track, release_name=release.name, artist_name=artist.name))

        return tracks, len(releases)

    def _scan(
        self,
        artists: list[Artist],
        scan_one: Callable[[Artist], tuple[list[Track], int]],
        description: str
    ) -> ScanReport:
        results: list[ArtistScanResult] = []

        for artist in tqdm(artists, desc=description, unit="artist", disable=not self.show_progress):
            try:
                tracks, releases_found = scan_one(artist)
            except (UnauthenticatedError, TokenRefreshError):
                raise
            except SpotifyError as e:
                permanent = e.http_status in PERMANENT_FAILURE_STATUSES
                log_scan_failure(logger, artist.name, artist.id, e.message, permanent=permanent)
                results.append(ArtistScanResult(artist=artist, error=e.message, permanent=permanent))
                continue

            results.append(
                ArtistScanResult(artist=artist, tracks=tuple(tracks), releases_found=releases_found)
            )

        report = ScanReport(results=tuple(results))
        logger.info(
            f"Found {len(report.tracks)} track(s) on {report.releases_found} release(s)"
            + (f", {len(report.failures)} artist(s) failed" if report.failures else "")
        )
        return report
