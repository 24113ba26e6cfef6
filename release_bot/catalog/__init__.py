"""
Catalog module for release-bot.

Turns tracked artists into playlist additions:
    - dates: Release types, date resolution and the ScanFilter
    - scanner: Incremental and full catalog scans
    - reconciler: Duplicate-free playlist writes and shuffling
    - orchestrator: scan / add-all / sync / shuffle operations
"""

from release_bot.catalog.dates import ReleaseType, ScanFilter, in_range, resolve
from release_bot.catalog.orchestrator import RunSummary, ScanOrchestrator
from release_bot.catalog.reconciler import PlaylistReconciler, SyncResult, missing_uris
from release_bot.catalog.scanner import (
    DEFAULT_LOOKBACK,
    ArtistScanResult,
    CatalogScanner,
    ScanReport,
)

__all__ = [
    "ReleaseType",
    "ScanFilter",
    "resolve",
    "in_range",
    "CatalogScanner",
    "ArtistScanResult",
    "ScanReport",
    "DEFAULT_LOOKBACK",
    "PlaylistReconciler",
    "SyncResult",
    "missing_uris",
    "ScanOrchestrator",
    "RunSummary",
]
