"""
Logging for release-bot.

One call to setup_logging() per process wires the root logger to:
    - the console, through tqdm so scan progress bars stay intact
    - log_full_<ts>.log: every record, DEBUG and up
    - log_errors_<ts>.log: ERROR and CRITICAL only
    - scan_failures_<ts>.log: one block per artist whose scan failed

Modules never configure handlers themselves; they only ask for a named
logger and let records propagate to the root.

Usage:
    from release_bot.core.logger import setup_logging, get_logger

    setup_logging(config.logging.directory, verbose=False)
    logger = get_logger(__name__)
    logger.info("Scanning 12 artists")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


FILE_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# spotipy logs every failed request at WARNING/ERROR on its own; the
# retry layer already reports them.
QUIET_LOGGERS = ("spotipy", "spotipy.client", "urllib3")

_RESET = "\033[0m"
_LEVEL_STYLES = {
    logging.DEBUG: "\033[2m",
    logging.INFO: "\033[36m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}


class ColoredConsoleFormatter(logging.Formatter):
    """
    Short console lines: "08:00:12 WARNING  Rate limited on search, waiting 3s".

    The level tag is colored; INFO lines drop the tag entirely so the
    normal scan output stays readable.
    """

    def __init__(self, use_color: bool = True) -> None:
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        message = record.getMessage()
        if record.exc_info and record.levelno >= logging.ERROR:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        if record.levelno == logging.INFO:
            return f"{clock} {message}"

        tag = f"{record.levelname:<8}"
        if self.use_color:
            tag = f"{_LEVEL_STYLES.get(record.levelno, '')}{tag}{_RESET}"
        return f"{clock} {tag} {message}"


class TqdmLoggingHandler(logging.Handler):
    """Console handler that prints through tqdm.write() above any active bar."""

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self.stream = stream or sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=self.stream)
        except Exception:
            self.handleError(record)


class ScanFailureHandler(logging.Handler):
    """
    Collects per-artist scan failures into a plain-text report.

    Only records produced by log_scan_failure() are written; they carry
    the scan_failed_* extras. Each failure becomes a block:

        Artist Name (0TnOYISbd1XYRBk9myaseg)
        HTTP 404: non existing id
        Permanent failure: consider removing this artist

    The report file is opened by open() and closed by close().
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self._report: TextIO | None = None

    def open(self) -> None:
        self._report = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        artist_id = getattr(record, "scan_failed_artist_id", None)
        if artist_id is None or self._report is None:
            return

        lines = [
            f"{getattr(record, 'scan_failed_artist_name', 'Unknown')} ({artist_id})",
            str(getattr(record, "scan_failed_reason", "")),
        ]
        if getattr(record, "scan_failed_permanent", False):
            lines.append("Permanent failure: consider removing this artist")

        try:
            self._report.write("\n".join(lines) + "\n\n")
            self._report.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        if self._report is not None:
            self._report.close()
            self._report = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """Pass ERROR and CRITICAL records only."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def _file_handler(path: Path, *filters: logging.Filter) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    for log_filter in filters:
        handler.addFilter(log_filter)
    return handler


def setup_logging(logs_dir: Path, verbose: bool = False) -> None:
    """
    Attach the console, log-file and failure-report handlers to the root logger.

    Any handlers already on the root logger are closed and removed first,
    so calling this again (e.g. in tests) starts from a clean slate.

    Args:
        logs_dir: Directory for this run's log files. Created if missing.
        verbose: Also show DEBUG records on the console.

    Note:
        Not thread-safe; call from the main thread before scanning starts.
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    shutdown_logging()

    console = TqdmLoggingHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(ColoredConsoleFormatter(use_color=sys.stderr.isatty()))
    root.addHandler(console)

    root.addHandler(_file_handler(logs_dir / f"log_full_{stamp}.log"))
    root.addHandler(_file_handler(logs_dir / f"log_errors_{stamp}.log", ErrorOnlyFilter()))

    failures = ScanFailureHandler(logs_dir / f"scan_failures_{stamp}.log")
    failures.open()
    root.addHandler(failures)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)


def get_logger(name: str) -> logging.Logger:
    """Named logger that propagates to the handlers set up by setup_logging()."""
    return logging.getLogger(name)


def log_scan_failure(
    logger: logging.Logger,
    artist_name: str,
    artist_id: str,
    reason: str,
    permanent: bool = False
) -> None:
    """
    Log an artist whose catalog could not be scanned.

    Emits one ERROR record carrying the extras ScanFailureHandler turns
    into a scan_failures_<ts>.log entry.

    Args:
        logger: Logger of the calling module.
        artist_name: Display name of the artist.
        artist_id: Spotify artist ID.
        reason: Why the scan failed.
        permanent: The artist ID itself is invalid (HTTP 400/404); the user
                   should remove it instead of waiting for the next run.
    """
    suffix = " (the artist id looks invalid, consider removing it)" if permanent else ""
    logger.error(
        f"Failed to scan {artist_name}: {reason}{suffix}",
        extra={
            "scan_failed_artist_name": artist_name,
            "scan_failed_artist_id": artist_id,
            "scan_failed_reason": reason,
            "scan_failed_permanent": permanent,
        }
    )


def shutdown_logging() -> None:
    """Flush, close and detach every root handler. Safe to call repeatedly."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.flush()
        handler.close()
        root.removeHandler(handler)
