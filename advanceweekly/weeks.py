"""Time and ISO week helpers shared by the scheduler and handlers."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

import pytz


def utc_now() -> datetime:
    """Timezone-aware UTC timestamp, the form every model column stores."""
    return datetime.now(timezone.utc)


def as_utc(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_local(instant: datetime, tz_name: str) -> datetime:
    """Convert an instant to wall-clock time in the named IANA zone."""
    zone = pytz.timezone(tz_name)
    return as_utc(instant).astimezone(zone)


def is_valid_timezone(tz_name: str) -> bool:
    try:
        pytz.timezone(tz_name)
    except pytz.exceptions.UnknownTimeZoneError:
        return False
    return True


@dataclass(frozen=True, order=True)
class IsoWeek:
    """A Monday-start ISO week."""

    year: int
    week: int

    @classmethod
    def containing(cls, day: date) -> "IsoWeek":
        iso = day.isocalendar()
        return cls(year=iso[0], week=iso[1])

    @property
    def start(self) -> date:
        return date.fromisocalendar(self.year, self.week, 1)

    @property
    def end(self) -> date:
        return date.fromisocalendar(self.year, self.week, 7)

    @property
    def key(self) -> str:
        return f"{self.year}-W{self.week:02d}"

    def __str__(self) -> str:
        return self.key


def local_week(instant: datetime, tz_name: str) -> IsoWeek:
    """ISO week of the user's local date at ``instant``."""
    return IsoWeek.containing(to_local(instant, tz_name).date())


def week_bounds_utc(week_start: date, week_end: date) -> tuple[datetime, datetime]:
    """Half-open UTC datetime range covering ``week_start`` through ``week_end``."""
    start = datetime(week_start.year, week_start.month, week_start.day, tzinfo=timezone.utc)
    end = datetime(week_end.year, week_end.month, week_end.day, tzinfo=timezone.utc) + timedelta(days=1)
    return start, end
