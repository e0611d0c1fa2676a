from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from tickerbank.core.config import settings


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.timezone)


def now_local() -> datetime:
    return datetime.now(tz=local_tz())


def today_local() -> date:
    return now_local().date()


def yesterday_local() -> date:
    return today_local() - timedelta(days=1)


def now_ms() -> int:
    return int(datetime.now(tz=local_tz()).timestamp() * 1000)
