import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from errors import ValidationError

MONTH_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}")


@dataclass(frozen=True)
class MonthWindow:
    """Half-open UTC interval ``[start, end)`` covering one calendar month."""

    month: str
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= to_utc_naive(moment) < self.end


def month_key(year: int, month: int) -> str:
    return f"{int(year):04d}-{int(month):02d}"


def month_window(value: Optional[str]) -> MonthWindow:
    if not isinstance(value, str) or not MONTH_PATTERN.fullmatch(value):
        raise ValidationError("Invalid month format (expected YYYY-MM)")
    year, month = (int(part) for part in value.split("-"))
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {value}")
    try:
        start = datetime(year, month, 1)
        if month == 12:
            end = datetime(year + 1, 1, 1)
        else:
            end = datetime(year, month + 1, 1)
    except ValueError as exc:
        raise ValidationError(f"Month out of range: {value}") from exc
    return MonthWindow(month=value, start=start, end=end)


def day_window(
    start: Optional[date], end: Optional[date]
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Bounds for a day-inclusive date filter; ``end`` is exclusive."""
    if start and end and start > end:
        raise ValidationError("Start date must be before end date")
    lower = datetime.combine(start, datetime.min.time()) if start else None
    upper = (
        datetime.combine(end + timedelta(days=1), datetime.min.time()) if end else None
    )
    return lower, upper


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
