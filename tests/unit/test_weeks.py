"""Unit tests for ISO week and timezone helpers."""

from datetime import date, datetime, timezone

import pytest

from advanceweekly.weeks import IsoWeek, as_utc, is_valid_timezone, local_week, to_local, utc_now, week_bounds_utc


class TestIsoWeek:
    """Tests for IsoWeek."""

    def test_containing(self):
        """Test any day of the week maps to the same ISO week."""
        assert IsoWeek.containing(date(2026, 10, 12)) == IsoWeek(2026, 42)
        assert IsoWeek.containing(date(2026, 10, 18)) == IsoWeek(2026, 42)

    def test_bounds_are_monday_to_sunday(self):
        """Test start and end dates."""
        week = IsoWeek(2026, 42)
        assert week.start == date(2026, 10, 12)
        assert week.end == date(2026, 10, 18)

    def test_year_boundary(self):
        """Test ISO years differ from calendar years around New Year."""
        assert IsoWeek.containing(date(2025, 12, 29)) == IsoWeek(2026, 1)

    def test_key(self):
        """Test key formatting."""
        assert IsoWeek(2026, 3).key == "2026-W03"
        assert str(IsoWeek(2026, 42)) == "2026-W42"


class TestTimezones:
    """Tests for timezone conversion."""

    def test_naive_treated_as_utc(self):
        """Test naive datetimes are read as UTC."""
        assert as_utc(datetime(2026, 10, 16, 18)).tzinfo == timezone.utc

    def test_utc_now_is_aware(self):
        """Test the current time carries a UTC offset."""
        assert utc_now().tzinfo == timezone.utc

    @pytest.mark.parametrize(
        "instant,expected_hour",
        [
            (datetime(2026, 10, 16, 18, tzinfo=timezone.utc), 14),  # EDT, UTC-4
            (datetime(2026, 1, 16, 18, tzinfo=timezone.utc), 13),  # EST, UTC-5
        ],
    )
    def test_to_local_follows_dst(self, instant, expected_hour):
        """Test New York offsets across daylight saving time."""
        assert to_local(instant, "America/New_York").hour == expected_hour

    def test_local_week_uses_local_date(self):
        """Test the week comes from the local date, not the UTC date."""
        sunday_night_utc = datetime(2026, 10, 18, 23, tzinfo=timezone.utc)
        assert local_week(sunday_night_utc, "UTC") == IsoWeek(2026, 42)
        assert local_week(sunday_night_utc, "Asia/Tokyo") == IsoWeek(2026, 43)

    def test_is_valid_timezone(self):
        """Test IANA name validation."""
        assert is_valid_timezone("Europe/Berlin")
        assert not is_valid_timezone("Mars/Olympus_Mons")


def test_week_bounds_utc_half_open():
    """Test UTC bounds cover Monday 00:00 up to the following Monday."""
    start, end = week_bounds_utc(date(2026, 10, 12), date(2026, 10, 18))
    assert start == datetime(2026, 10, 12, tzinfo=timezone.utc)
    assert end == datetime(2026, 10, 19, tzinfo=timezone.utc)
