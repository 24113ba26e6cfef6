"""
Top-level bot operations.

ScanOrchestrator ties the stores, scanner and reconciler together for the
operations the CLI and scheduler run:

    run_scan()  - incremental scan, append new tracks, advance the checkpoint
    add_all()   - full catalog scan with type/date filter, append
    sync()      - append every missing track from all tracked artists
    shuffle()   - shuffle the target playlist in place

Every operation checks its preconditions (target playlist, tracked
artists) before touching the network.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from release_bot.catalog.dates import ScanFilter
from release_bot.catalog.reconciler import PlaylistReconciler
from release_bot.catalog.scanner import ArtistScanResult, CatalogScanner
from release_bot.core.exceptions import PreconditionError
from release_bot.core.logger import get_logger
from release_bot.core.store import ArtistStore, CheckpointStore, PlaylistSelection
from release_bot.spotify.models import Artist
from release_bot.utils import format_duration, utc_now


logger = get_logger(__name__)


@dataclass(frozen=True)
class RunSummary:
    """
    Result of one orchestrated operation.

    Attributes:
        operation: "scan", "add-all", "sync" or "shuffle".
        started_at: Start time (aware UTC).
        finished_at: End time (aware UTC).
        tracks_found: Candidate tracks produced by the scan.
        tracks_added: URIs written to the playlist.
        failures: Artists that could not be scanned.
        duration_seconds: Wall-clock duration.
    """
    operation: str
    started_at: datetime
    finished_at: datetime
    tracks_found: int = 0
    tracks_added: int = 0
    failures: tuple[ArtistScanResult, ...] = ()
    duration_seconds: float = 0.0


class ScanOrchestrator:
    """
    Runs bot operations against the persisted state.

    Example:
        orchestrator = ScanOrchestrator(scanner, reconciler, artists, checkpoint, selection)
        summary = orchestrator.run_scan()
        print(f"Added {summary.tracks_added} tracks")
    """

    def __init__(
        self,
        scanner: CatalogScanner,
        reconciler: PlaylistReconciler,
        artist_store: ArtistStore,
        checkpoint_store: CheckpointStore,
        playlist_selection: PlaylistSelection,
        clock: Callable[[], datetime] = utc_now,
        timer: Callable[[], float] = time.monotonic
    ) -> None:
        self._scanner = scanner
        self._reconciler = reconciler
        self._artist_store = artist_store
        self._checkpoint_store = checkpoint_store
        self._playlist_selection = playlist_selection
        self._clock = clock
        self._timer = timer

    def _require_artists(self) -> list[Artist]:
        artists = self._artist_store.all()
        if not artists:
            raise PreconditionError("No artists tracked. Add artists with 'release-bot add-artist'.")
        return artists

    def run_scan(self) -> RunSummary:
        """
        Scan for new releases and append their tracks.

        The checkpoint is set to this scan's start time only after the
        scan and the playlist write both completed, so a failed run is
        retried from the old checkpoint next time.

        Raises:
            PreconditionError: No target playlist or no tracked artists.
            SpotifyError: If the playlist cannot be read or written.
        """
        playlist_id = self._playlist_selection.require()
        artists = self._require_artists()

        started_at = self._clock()
        start = self._timer()
        logger.info(f"Starting scan at {started_at.isoformat()}")

        report = self._scanner.scan_new(artists, self._checkpoint_store.get())
        added = self._reconciler.add_missing(report.tracks, playlist_id)
        self._checkpoint_store.set(started_at.isoformat())

        summary = self._summarize("scan", started_at, start, len(report.tracks), added, report.failures)
        logger.info(
            f"Scan complete in {format_duration(summary.duration_seconds)}, "
            f"{added} track(s) added"
        )
        return summary

    def add_all(self, scan_filter: ScanFilter | None = None) -> RunSummary:
        """
        Append every track of the tracked artists matching the filter.

        The checkpoint is left untouched.
        """
        playlist_id = self._playlist_selection.require()
        artists = self._require_artists()

        started_at = self._clock()
        start = self._timer()

        report = self._scanner.scan_all(artists, scan_filter or ScanFilter())
        added = self._reconciler.add_missing(report.tracks, playlist_id)

        summary = self._summarize("add-all", started_at, start, len(report.tracks), added, report.failures)
        logger.info(f"Done in {format_duration(summary.duration_seconds)}, {added} track(s) added")
        return summary

    def sync(self) -> RunSummary:
        """Append every track missing from the playlist across all tracked artists."""
        playlist_id = self._playlist_selection.require()
        artists = self._require_artists()

        started_at = self._clock()
        start = self._timer()

        result = self._reconciler.sync_all(artists, playlist_id)
        report = result.report

        summary = self._summarize(
            "sync", started_at, start, len(report.tracks), result.tracks_added, report.failures
        )
        logger.info(
            f"Sync complete in {format_duration(summary.duration_seconds)}, "
            f"{result.tracks_added} track(s) added"
        )
        return summary

    def shuffle(self) -> RunSummary:
        """Shuffle the target playlist."""
        playlist_id = self._playlist_selection.require()

        started_at = self._clock()
        start = self._timer()

        count = self._reconciler.shuffle_and_replace(playlist_id)
        return self._summarize("shuffle", started_at, start, count, 0, ())

    def _summarize(
        self,
        operation: str,
        started_at: datetime,
        start: float,
        found: int,
        added: int,
        failures: list[ArtistScanResult] | tuple[ArtistScanResult, ...]
    ) -> RunSummary:
        return RunSummary(
            operation=operation,
            started_at=started_at,
            finished_at=self._clock(),
            tracks_found=found,
            tracks_added=added,
            failures=tuple(failures),
            duration_seconds=self._timer() - start
        )
