"""
Playlist reconciliation: add only what is missing.

Track URIs are the unit of identity. Before writing, the reconciler reads
the whole target playlist once, drops candidates already present or
repeated, and appends the rest in their original order. Running the same
reconciliation twice therefore adds nothing the second time.
"""

import random
from dataclasses import dataclass
from typing import Iterable

from release_bot.catalog.scanner import (
    PERMANENT_FAILURE_STATUSES,
    ArtistScanResult,
    CatalogScanner,
    ScanReport,
)
from release_bot.core.exceptions import SpotifyError, TokenRefreshError, UnauthenticatedError
from release_bot.core.logger import get_logger, log_scan_failure
from release_bot.spotify.client import CatalogClient
from release_bot.spotify.models import Artist, Track


logger = get_logger(__name__)


@dataclass(frozen=True)
class SyncResult:
    """
    Outcome of PlaylistReconciler.sync_all().

    Attributes:
        report: Per-artist catalog results, failures included.
        tracks_added: URIs appended to the playlist.
    """
    report: ScanReport
    tracks_added: int = 0


def missing_uris(candidates: Iterable[Track | None], seen: set[str]) -> list[str]:
    """
    Select candidate URIs not yet in `seen`, de-duplicated in first-occurrence order.

    `seen` is updated in place with every URI selected, so it can be
    carried across several calls.

    Args:
        candidates: Tracks to consider; None entries and tracks without
                    a URI are skipped.
        seen: URIs already present (or already queued).

    Returns:
        New URIs in candidate order.
    """
    selected: list[str] = []
    for track in candidates:
        if track is None or not track.uri:
            continue
        if track.uri in seen:
            continue
        seen.add(track.uri)
        selected.append(track.uri)
    return selected


class PlaylistReconciler:
    """
    Writes scan results into the target playlist without duplicates.

    Example:
        reconciler = PlaylistReconciler(client, scanner)
        added = reconciler.add_missing(report.tracks, playlist_id)
    """

    def __init__(
        self,
        client: CatalogClient,
        scanner: CatalogScanner,
        rng: random.Random | None = None
    ) -> None:
        """
        Args:
            client: Catalog API access.
            scanner: Used by sync_all to fetch each artist's catalog.
            rng: Random source for shuffling; injectable for tests.
        """
        self._client = client
        self._scanner = scanner
        self._rng = rng or random.Random()

    def existing_uris(self, playlist_id: str) -> set[str]:
        """URIs currently in the playlist, ignoring removed/unavailable items."""
        return {
            item.track.uri
            for item in self._client.list_playlist_tracks(playlist_id)
            if item.track is not None and item.track.uri
        }

    def add_missing(self, candidate_tracks: Iterable[Track | None], playlist_id: str) -> int:
        """
        Append candidates that are not already in the playlist.

        Args:
            candidate_tracks: Tracks from a scan, possibly with repeats.
            playlist_id: Target playlist.

        Returns:
            Number of URIs appended. 0 means no write was issued.
        """
        seen = self.existing_uris(playlist_id)
        logger.info(f"Playlist has {len(seen)} existing track(s)")

        to_add = missing_uris(candidate_tracks, seen)
        if not to_add:
            logger.info("No new tracks to add (all already in playlist)")
            return 0

        logger.info(f"Adding {len(to_add)} new track(s) to playlist")
        self._client.append_tracks(playlist_id, to_add)
        return len(to_add)

    def sync_all(self, artists: list[Artist], playlist_id: str) -> SyncResult:
        """
        Add every missing track from every tracked artist's full catalog.

        The playlist is read once; URIs queued for one artist are skipped
        for the following ones. A failing artist is logged, recorded in the
        result and skipped.

        Returns:
            SyncResult: Per-artist results and the number of URIs appended.

        Raises:
            UnauthenticatedError, TokenRefreshError: Stop the whole sync.
            SpotifyError: If the playlist cannot be read or written.
        """
        seen = self.existing_uris(playlist_id)
        logger.info(f"Syncing {len(artists)} artist(s) against {len(seen)} existing track(s)")

        results: list[ArtistScanResult] = []
        to_add: list[str] = []
        for artist in artists:
            try:
                tracks = self._scanner.scan_artist_catalog(artist)
            except (UnauthenticatedError, TokenRefreshError):
                raise
            except SpotifyError as e:
                permanent = e.http_status in PERMANENT_FAILURE_STATUSES
                log_scan_failure(logger, artist.name, artist.id, e.message, permanent=permanent)
                results.append(ArtistScanResult(artist=artist, error=e.message, permanent=permanent))
                continue

            results.append(ArtistScanResult(artist=artist, tracks=tuple(tracks)))
            new_uris = missing_uris(tracks, seen)
            if new_uris:
                logger.info(f"{artist.name}: {len(new_uris)} missing track(s)")
            to_add.extend(new_uris)

        report = ScanReport(results=tuple(results))
        if not to_add:
            logger.info("Playlist is already in sync")
            return SyncResult(report=report)

        logger.info(f"Adding {len(to_add)} missing track(s) to playlist")
        self._client.append_tracks(playlist_id, to_add)
        return SyncResult(report=report, tracks_added=len(to_add))

    def shuffle_and_replace(self, playlist_id: str) -> int:
        """
        Replace the playlist's contents with a uniformly random permutation.

        Entries whose track is gone (removed or unavailable in the market,
        no URI) cannot be written back, so they are not part of the
        permutation and disappear from the playlist after the replace.

        Returns:
            Number of tracks in the shuffled playlist (0 for an empty
            playlist, in which case nothing is written).
        """
        items = self._client.list_playlist_tracks(playlist_id)
        uris = [
            item.track.uri
            for item in items
            if item.track is not None and item.track.uri
        ]
        if not uris:
            logger.info("Playlist is empty, nothing to shuffle")
            return 0

        dropped = len(items) - len(uris)
        if dropped:
            logger.warning(f"{dropped} unavailable playlist item(s) will be dropped by the shuffle")

        # Fisher-Yates
        for i in range(len(uris) - 1, 0, -1):
            j = self._rng.randint(0, i)
            uris[i], uris[j] = uris[j], uris[i]

        logger.info(f"Shuffling {len(uris)} track(s)")
        self._client.replace_all_tracks(playlist_id, uris)
        return len(uris)
