"""Calendar range controller — the date window shown on the inventory calendar."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


def as_date(value: date | datetime) -> date:
    # datetime is a subclass of date, check it first
    if isinstance(value, datetime):
        return value.date()
    return value


def dates_between(start: date | datetime, end: date | datetime) -> list[date]:
    """Every calendar day from start to end, both inclusive. Empty when end < start."""
    start, end = as_date(start), as_date(end)
    return [start + timedelta(days=d) for d in range((end - start).days + 1)]


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def __post_init__(self):
        object.__setattr__(self, "start", as_date(self.start))
        object.__setattr__(self, "end", as_date(self.end))
        if self.end < self.start:
            raise ValueError("end date must not be before start date")

    @property
    def days(self) -> list[date]:
        return dates_between(self.start, self.end)

    @property
    def length(self) -> int:
        return (self.end - self.start).days + 1

    def __contains__(self, day: date) -> bool:
        return self.start <= as_date(day) <= self.end

    def shift(self, days: int) -> "DateRange":
        delta = timedelta(days=days)
        return DateRange(self.start + delta, self.end + delta)

    def key(self, tenant_id: str) -> str:
        """Storage key for drafts of this window: ``tenant:start:end``."""
        return f"{tenant_id}:{self.start.isoformat()}:{self.end.isoformat()}"


def preset_range(days: int, today: date | None = None) -> DateRange:
    """A window of ``days`` calendar days starting today."""
    if days < 1:
        raise ValueError("a date range needs at least one day")
    start = today or date.today()
    return DateRange(start, start + timedelta(days=days - 1))


RangeListener = Callable[[DateRange], Awaitable[None]]


class CalendarRangeController:
    """Holds the active window and notifies a listener on every change."""

    def __init__(self, date_range: DateRange, on_change: RangeListener | None = None):
        self._range = date_range
        self._on_change = on_change

    @property
    def date_range(self) -> DateRange:
        return self._range

    @property
    def dates(self) -> list[date]:
        return self._range.days

    async def set_range(self, start: date | datetime, end: date | datetime) -> DateRange:
        return await self._activate(DateRange(start, end))

    async def shift_range(self, direction: int) -> DateRange:
        """Move the window back (-1) or forward (+1) by its own length."""
        if direction not in (-1, 1):
            raise ValueError("direction must be -1 or 1")
        return await self._activate(self._range.shift(direction * self._range.length))

    async def preset(self, days: int, today: date | None = None) -> DateRange:
        return await self._activate(preset_range(days, today))

    async def _activate(self, date_range: DateRange) -> DateRange:
        self._range = date_range
        logger.debug(f"Calendar range set to {date_range.start} .. {date_range.end}")
        if self._on_change is not None:
            await self._on_change(date_range)
        return date_range
