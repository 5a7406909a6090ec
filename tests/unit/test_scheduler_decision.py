"""Unit tests for the pure scheduling decision."""

from datetime import datetime, timezone

import pytest
import pytz

from advanceweekly.jobs import decide_enqueue
from advanceweekly.weeks import IsoWeek
from tests.factories import UserPreferenceFactory


class TestDecideEnqueue:
    """Tests for decide_enqueue."""

    @pytest.fixture
    def preference(self):
        return UserPreferenceFactory(preferred_day="friday", preferred_hour=14, timezone="America/New_York")

    def test_friday_at_preferred_hour_enqueues(self, preference):
        """Test Friday 18:00 UTC is 14:00 in New York during daylight time."""
        decision = decide_enqueue(datetime(2026, 10, 16, 18, tzinfo=timezone.utc), preference.timezone, preference)

        assert decision.enqueue
        assert decision.local_time.hour == 14
        assert decision.week == IsoWeek(2026, 42)

    def test_thursday_same_hour_skips(self, preference):
        """Test the same UTC hour on Thursday does not enqueue."""
        decision = decide_enqueue(datetime(2026, 10, 15, 18, tzinfo=timezone.utc), preference.timezone, preference)

        assert not decision.enqueue
        assert decision.week is None
        assert "thursday" in decision.reason

    def test_standard_time_shifts_utc_hour(self, preference):
        """Test in January the preferred 14:00 local is 19:00 UTC."""
        assert not decide_enqueue(datetime(2026, 1, 16, 18, tzinfo=timezone.utc), preference.timezone, preference).enqueue

        decision = decide_enqueue(datetime(2026, 1, 16, 19, tzinfo=timezone.utc), preference.timezone, preference)
        assert decision.enqueue
        assert decision.week == IsoWeek(2026, 3)

    def test_wrong_hour_skips(self, preference):
        """Test the preferred day at another hour does not enqueue."""
        decision = decide_enqueue(datetime(2026, 10, 16, 19, tzinfo=timezone.utc), preference.timezone, preference)
        assert not decision.enqueue

    def test_auto_generate_disabled(self, preference):
        """Test disabled users never enqueue."""
        preference.auto_generate = False
        decision = decide_enqueue(datetime(2026, 10, 16, 18, tzinfo=timezone.utc), preference.timezone, preference)
        assert not decision.enqueue

    def test_week_follows_local_date(self):
        """Test a Monday-morning Tokyo user gets the local week, not the UTC one."""
        preference = UserPreferenceFactory(preferred_day="monday", preferred_hour=8, timezone="Asia/Tokyo")

        decision = decide_enqueue(datetime(2026, 10, 18, 23, tzinfo=timezone.utc), preference.timezone, preference)

        assert decision.enqueue
        assert decision.week == IsoWeek(2026, 43)

    def test_naive_instant_is_utc(self, preference):
        """Test naive instants are interpreted as UTC."""
        assert decide_enqueue(datetime(2026, 10, 16, 18), preference.timezone, preference).enqueue

    def test_unknown_timezone_raises(self, preference):
        """Test an unknown zone surfaces as an error for the caller to isolate."""
        with pytest.raises(pytz.UnknownTimeZoneError):
            decide_enqueue(datetime(2026, 10, 16, 18, tzinfo=timezone.utc), "Nowhere/Special", preference)
