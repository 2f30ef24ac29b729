import re
from datetime import date, datetime, timezone
from typing import Tuple, Union
from zoneinfo import ZoneInfo

from kas.core.errors import ValidationError

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_YEAR_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


def resolve_timezone(tz: Union[str, timezone, ZoneInfo]):
    if isinstance(tz, str):
        return timezone.utc if tz.upper() == "UTC" else ZoneInfo(tz)
    return tz


def as_utc(value: datetime) -> datetime:
    """Naive timestamps (sqlite hands these back) are taken as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def derive_date_partition(submitted_at: datetime, tz="UTC") -> date:
    """Calendar day of `submitted_at` in the reference timezone."""
    return as_utc(submitted_at).astimezone(resolve_timezone(tz)).date()


def today_partition(tz="UTC") -> date:
    return derive_date_partition(datetime.now(timezone.utc), tz)


def month_partition(day: date) -> str:
    return day.strftime("%Y-%m")


def parse_date(value: str, field: str = "date") -> date:
    if not _DATE_RE.match(value or ""):
        raise ValidationError(f"{field} 格式错误，请使用 YYYY-MM-DD 格式")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} 不是有效日期: {value}")


def parse_year_month(value: str) -> Tuple[int, int]:
    if not _YEAR_MONTH_RE.match(value or ""):
        raise ValidationError("月份格式错误，请使用 YYYY-MM 格式")
    year, month = int(value[:4]), int(value[5:])
    if not (1 <= month <= 12):
        raise ValidationError("Invalid month")
    return year, month


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """[first day of month, first day of next month)"""
    start = date(year, month, 1)
    if month == 12:
        end = date(year + 1, 1, 1)
    else:
        end = date(year, month + 1, 1)
    return start, end
