"""Test release-date resolution and scan filters"""

from datetime import datetime, timezone

import pytest

from release_bot.catalog.dates import (
    ReleaseType,
    ScanFilter,
    in_range,
    parse_date_bound,
    resolve,
)
from release_bot.core.exceptions import PreconditionError
from release_bot.spotify.models import ReleaseDate


def utc(year, month=1, day=1):
    return datetime(year, month, day, tzinfo=timezone.utc)


class TestResolve:
    """Test mapping provider dates to their lower bound"""

    def test_year_precision(self):
        assert resolve("2024", "year") == utc(2024, 1, 1)

    def test_month_precision(self):
        assert resolve("2024-03", "month") == utc(2024, 3, 1)

    def test_day_precision(self):
        assert resolve("2024-03-15", "day") == utc(2024, 3, 15)

    def test_unknown_precision_is_inferred(self):
        assert resolve("2024-03", "decade") == utc(2024, 3, 1)
        assert resolve("2024-03-15", None) == utc(2024, 3, 15)

    def test_malformed_date_raises(self):
        with pytest.raises(ValueError):
            resolve("March 2024", "day")
        with pytest.raises(ValueError):
            resolve("2024-02-30", "day")

    def test_result_is_timezone_aware(self):
        assert resolve("2024", "year").tzinfo is not None


class TestInRange:
    """Test inclusive range checks"""

    def test_bounds_are_inclusive(self):
        start, end = utc(2024, 1, 1), utc(2024, 12, 31)
        assert in_range(start, start, end)
        assert in_range(end, start, end)

    def test_outside_range(self):
        assert not in_range(utc(2023, 12, 31), utc(2024, 1, 1), None)
        assert not in_range(utc(2025, 1, 1), None, utc(2024, 12, 31))

    def test_missing_bounds_are_open(self):
        assert in_range(utc(1970))
        assert in_range(utc(2024), date_from=utc(2020))
        assert in_range(utc(2024), date_to=utc(2030))


class TestReleaseType:
    """Test release type parsing and include groups"""

    def test_include_groups(self):
        assert ReleaseType.EVERYTHING.include_groups == "album,single"
        assert ReleaseType.ALBUMS.include_groups == "album"
        assert ReleaseType.SINGLES.include_groups == "single"

    @pytest.mark.parametrize("value,expected", [
        ("everything", ReleaseType.EVERYTHING),
        ("ALBUMS", ReleaseType.ALBUMS),
        ("3", ReleaseType.SINGLES),
        (ReleaseType.ALBUMS, ReleaseType.ALBUMS),
    ])
    def test_parse(self, value, expected):
        assert ReleaseType.parse(value) is expected

    def test_parse_unknown(self):
        with pytest.raises(PreconditionError):
            ReleaseType.parse("compilations")


class TestScanFilter:
    """Test full-scan filters"""

    def test_unbounded_filter_accepts_undated_release(self):
        assert ScanFilter().accepts(None)

    def test_bounded_filter_rejects_undated_release(self):
        scan_filter = ScanFilter(date_from=utc(2020))
        assert not scan_filter.accepts(None)

    def test_year_release_on_lower_bound_is_accepted(self):
        scan_filter = ScanFilter(date_from=utc(2024, 1, 1), date_to=utc(2024, 6, 30))
        assert scan_filter.accepts(ReleaseDate(2024))
        assert scan_filter.accepts(ReleaseDate(2024, 6, 30))
        assert not scan_filter.accepts(ReleaseDate(2024, 7))

    def test_from_strings(self):
        scan_filter = ScanFilter.from_strings("singles", "2020-01-01", "")
        assert scan_filter.release_type is ReleaseType.SINGLES
        assert scan_filter.date_from == utc(2020, 1, 1)
        assert scan_filter.date_to is None

    def test_from_after_to_is_rejected(self):
        with pytest.raises(PreconditionError):
            ScanFilter.from_strings("albums", "2024-02-01", "2024-01-01")

    def test_invalid_bound_is_rejected(self):
        with pytest.raises(PreconditionError):
            parse_date_bound("2024/01/01", "from")
        with pytest.raises(PreconditionError):
            parse_date_bound("2024-13-01", "to")

    def test_describe(self):
        assert ScanFilter().describe() == "all releases"
        described = ScanFilter.from_strings("albums", "2020-01-01", None).describe()
        assert described == "albums from 2020-01-01 to ..."
