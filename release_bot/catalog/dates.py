"""
Release-date filtering for catalog scans.

Spotify release dates come at year, month or day precision. For
comparisons each date is mapped to the earliest UTC instant it covers
(its lower bound): "2024" -> 2024-01-01, "2024-03" -> 2024-03-01,
"2024-03-15" -> 2024-03-15. Range checks are inclusive on both ends.

Usage:
    from release_bot.catalog.dates import ReleaseType, ScanFilter, resolve, in_range

    scan_filter = ScanFilter.from_strings("albums", "2020-01-01", None)
    if in_range(resolve("2021", "year"), scan_filter.date_from, scan_filter.date_to):
        ...
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from release_bot.core.exceptions import PreconditionError
from release_bot.spotify.models import ReleaseDate


_DATE_INPUT_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ReleaseType(Enum):
    """Which release groups a full catalog scan includes."""
    EVERYTHING = "everything"
    ALBUMS = "albums"
    SINGLES = "singles"

    @property
    def include_groups(self) -> str:
        """The Spotify include_groups value for this release type."""
        return _INCLUDE_GROUPS[self]

    @classmethod
    def parse(cls, value: "str | ReleaseType") -> "ReleaseType":
        """
        Accept an enum member, its name/value, or the menu numbers 1-3.

        Raises:
            PreconditionError: For anything else.
        """
        if isinstance(value, cls):
            return value

        text = str(value).strip().lower()
        by_number = {"1": cls.EVERYTHING, "2": cls.ALBUMS, "3": cls.SINGLES}
        if text in by_number:
            return by_number[text]
        for member in cls:
            if text in (member.value, member.name.lower()):
                return member
        raise PreconditionError(
            f"Unknown release type: {value}",
            details={"allowed": [member.value for member in cls]}
        )


_INCLUDE_GROUPS = {
    ReleaseType.EVERYTHING: "album,single",
    ReleaseType.ALBUMS: "album",
    ReleaseType.SINGLES: "single",
}


def resolve(date_string: str, precision: str | None) -> datetime:
    """
    Map a provider release date to the UTC lower bound of its interval.

    Args:
        date_string: "YYYY", "YYYY-MM" or "YYYY-MM-DD".
        precision: "year", "month" or "day"; inferred from the string
                   shape when unknown.

    Returns:
        Aware UTC datetime at midnight of the first covered day.

    Raises:
        ValueError: If the date string is malformed.

    Examples:
        resolve("2024", "year")        # 2024-01-01T00:00:00+00:00
        resolve("2024-03", "month")    # 2024-03-01T00:00:00+00:00
        resolve("2024-03-15", "day")   # 2024-03-15T00:00:00+00:00
    """
    return ReleaseDate.parse(date_string, precision).lower_bound()


def in_range(
    instant: datetime,
    date_from: datetime | None = None,
    date_to: datetime | None = None
) -> bool:
    """
    Check date_from <= instant <= date_to, treating a missing bound as open.
    """
    if date_from is not None and instant < date_from:
        return False
    if date_to is not None and instant > date_to:
        return False
    return True


def parse_date_bound(value: str | None, field: str) -> datetime | None:
    """
    Parse a user-entered YYYY-MM-DD bound into a UTC datetime.

    Blank input means "no bound".

    Raises:
        PreconditionError: If the value is not a valid YYYY-MM-DD date.
    """
    if value is None or not value.strip():
        return None

    text = value.strip()
    if not _DATE_INPUT_RE.match(text):
        raise PreconditionError(
            f"Invalid {field} date '{text}', expected YYYY-MM-DD",
            details={"field": field, "value": text}
        )
    try:
        return datetime.strptime(text, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise PreconditionError(
            f"Invalid {field} date '{text}': {e}",
            details={"field": field, "value": text}
        ) from e


@dataclass(frozen=True)
class ScanFilter:
    """
    Filter for a full catalog scan.

    Attributes:
        release_type: Which release groups to request.
        date_from: Inclusive lower bound, or None.
        date_to: Inclusive upper bound, or None.
    """
    release_type: ReleaseType = ReleaseType.EVERYTHING
    date_from: datetime | None = None
    date_to: datetime | None = None

    @property
    def has_bounds(self) -> bool:
        return self.date_from is not None or self.date_to is not None

    def accepts(self, release_date: ReleaseDate | None) -> bool:
        """
        Whether a release with this date passes the filter.

        Undated (unparseable) releases pass only when no bound is set.
        """
        if not self.has_bounds:
            return True
        if release_date is None:
            return False
        return in_range(release_date.lower_bound(), self.date_from, self.date_to)

    def describe(self) -> str:
        """Short label such as "albums from 2020-01-01 to ...", for prompts and logs."""
        label = "all releases" if self.release_type is ReleaseType.EVERYTHING else self.release_type.value
        if not self.has_bounds:
            return label
        start = self.date_from.strftime("%Y-%m-%d") if self.date_from else "..."
        end = self.date_to.strftime("%Y-%m-%d") if self.date_to else "..."
        return f"{label} from {start} to {end}"

    @classmethod
    def from_strings(
        cls,
        release_type: "str | ReleaseType" = ReleaseType.EVERYTHING,
        date_from: str | None = None,
        date_to: str | None = None
    ) -> "ScanFilter":
        """
        Build a filter from user input.

        Raises:
            PreconditionError: On an unknown release type, a malformed
                               date, or date_from after date_to.
        """
        start = parse_date_bound(date_from, "from")
        end = parse_date_bound(date_to, "to")
        if start is not None and end is not None and start > end:
            raise PreconditionError(
                "The 'from' date must not be after the 'to' date",
                details={"from": date_from, "to": date_to}
            )
        return cls(release_type=ReleaseType.parse(release_type), date_from=start, date_to=end)
