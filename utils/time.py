"""Time utilities for source-local naive timestamps.

The novel source publishes "last updated" information as relative Chinese
phrases ("5分钟前", "3天前") or as a plain ``YYYY-MM-DD`` date. Records store
these as naive ``TIMESTAMP`` values that represent Asia/Shanghai wall-clock
time, so every conversion here works on naive datetimes in that zone.
"""

import calendar
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo


_CST = ZoneInfo("Asia/Shanghai")

JUST_NOW = "刚刚"
MINUTES_AGO = "分钟前"
HOURS_AGO = "小时前"
DAYS_AGO = "天前"
MONTHS_AGO = "个月前"


def now_cst_naive() -> datetime:
    """Return the current time as a naive datetime in China Standard Time."""

    return datetime.now(_CST).replace(tzinfo=None)


def _truncate_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def _truncate_to_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _leading_amount(text: str, suffix: str) -> int:
    return int(text.replace(suffix, "").strip())


def minus_months(value: datetime, months: int) -> datetime:
    """Subtract calendar months, clamping the day to the target month's end."""

    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def parse_update_time(text: str, now: datetime) -> datetime:
    """Convert a source "last updated" phrase into an absolute naive datetime.

    Relative phrases are resolved against ``now``. Anything that is not a
    recognised relative phrase must be an ISO calendar date; otherwise
    ``ValueError`` is raised.
    """

    text = (text or "").strip()
    if text == JUST_NOW:
        return now.replace(microsecond=0)
    if MINUTES_AGO in text:
        return _truncate_to_minute(now) - timedelta(minutes=_leading_amount(text, MINUTES_AGO))
    if HOURS_AGO in text:
        return _truncate_to_minute(now) - timedelta(hours=_leading_amount(text, HOURS_AGO))
    if DAYS_AGO in text:
        return _truncate_to_day(now) - timedelta(days=_leading_amount(text, DAYS_AGO))
    if MONTHS_AGO in text:
        return minus_months(_truncate_to_day(now), _leading_amount(text, MONTHS_AGO))

    parsed = date.fromisoformat(text)
    return datetime(parsed.year, parsed.month, parsed.day)
