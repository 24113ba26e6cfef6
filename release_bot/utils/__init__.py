"""
Utility functions for release-bot.

This module provides small helpers used across the application:
    - Batching of URI lists for playlist writes
    - Spotify URL / URI / ID normalization
    - Number/range selection parsing for interactive prompts
    - Time formatting and parsing

Usage:
    from release_bot.utils import chunked, extract_playlist_id, parse_selection
"""

import re
from datetime import datetime, timezone
from typing import Iterator, Sequence, TypeVar


T = TypeVar("T")

_RANGE_RE = re.compile(r"^(\d+)-(\d+)$")


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """
    Split a sequence into consecutive batches of at most `size` items.

    Examples:
        list(chunked([1, 2, 3, 4, 5], 2))  # [[1, 2], [3, 4], [5]]
        list(chunked([], 100))             # []
    """
    if size < 1:
        raise ValueError("size must be at least 1")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def extract_spotify_id(url_or_id: str) -> str:
    """
    Extract Spotify ID from a URL or URI, or return a bare ID as-is.

    Handles:
        - https://open.spotify.com/playlist/ID
        - https://open.spotify.com/playlist/ID?si=xxx
        - spotify:playlist:ID
        - Just the ID
    """
    url_or_id = url_or_id.strip()

    if url_or_id.startswith("spotify:"):
        return url_or_id.split(":")[-1]

    if "spotify.com" in url_or_id:
        url_or_id = url_or_id.split("?")[0]
        return url_or_id.rstrip("/").split("/")[-1]

    return url_or_id


def extract_playlist_id(url_or_id: str) -> str:
    """
    Extract a playlist ID from a Spotify playlist URL, URI or bare ID.

    Raises:
        ValueError: If a URL/URI is given that does not point to a playlist.

    Examples:
        extract_playlist_id("https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M")
        # Returns: "37i9dQZF1DXcBWIGoYBM5M"
    """
    value = url_or_id.strip()
    looks_like_link = value.startswith("spotify:") or "spotify.com" in value
    if looks_like_link and "playlist" not in value:
        raise ValueError(f"Not a playlist URL: {url_or_id}")

    playlist_id = extract_spotify_id(value)
    if not playlist_id:
        raise ValueError(f"Empty playlist id: {url_or_id!r}")
    return playlist_id


def parse_selection(text: str, count: int) -> list[int]:
    """
    Parse a selection like "1 3 5", "1-10" or "2, 4-6" into zero-based indexes.

    Numbers are 1-based as shown to the user. "all" selects everything,
    "none" or an empty string selects nothing. Out-of-range numbers are
    ignored, ranges are clamped, and duplicates are removed while keeping
    first-occurrence order.

    Raises:
        ValueError: If a token is neither a number nor a range.

    Examples:
        parse_selection("1 3 5", 10)   # [0, 2, 4]
        parse_selection("2-4", 3)      # [1, 2]
        parse_selection("all", 3)      # [0, 1, 2]
    """
    command = text.strip().lower()
    if command == "all":
        return list(range(count))
    if command in ("", "none"):
        return []

    indexes: list[int] = []
    for part in re.split(r"[\s,]+", command):
        if not part:
            continue
        range_match = _RANGE_RE.match(part)
        if range_match:
            start = max(0, int(range_match.group(1)) - 1)
            end = min(count - 1, int(range_match.group(2)) - 1)
            candidates = range(start, end + 1)
        elif part.isdigit():
            candidates = [int(part) - 1]
        else:
            raise ValueError(f"Invalid selection: {part!r}")

        for index in candidates:
            if 0 <= index < count and index not in indexes:
                indexes.append(index)

    return indexes


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_iso_datetime(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing "Z" and treats naive timestamps as UTC.

    Raises:
        ValueError: If the value is not ISO-8601.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_duration(seconds: float) -> str:
    """
    Format a duration in seconds to a short human-readable string.

    Examples:
        format_duration(4.25)   # "4.2s"
        format_duration(225)    # "3m 45s"
        format_duration(3750)   # "1h 02m 30s"
    """
    if seconds < 60:
        return f"{seconds:.1f}s"

    whole = int(seconds)
    if whole < 3600:
        return f"{whole // 60}m {whole % 60:02d}s"

    hours = whole // 3600
    minutes = (whole % 3600) // 60
    return f"{hours}h {minutes:02d}m {whole % 60:02d}s"
