from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from fuelstation.config import settings


def now_local() -> datetime:
    return datetime.now(ZoneInfo(settings.timezone))


def today_local() -> date:
    return now_local().date()


def parse_clock(value: str) -> time:
    return time.fromisoformat(value)


def local_date(value: datetime) -> date:
    # naive timestamps come back from SQLite and are stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(settings.timezone)).date()
