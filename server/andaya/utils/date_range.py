"""
Date-range selection with blocked and pending days.

Mirrors the booking calendar: the first click picks the start day, the
second picks the end day (swapping when it falls before the start), and a
selection crossing an unavailable or pending day is refused. Picking the
same day twice is a valid single-day rental.
"""

from datetime import date, datetime
from typing import Iterable, Optional, Set, Tuple, Union

from andaya.utils.dates import format_date_es

DateLike = Union[date, datetime, str]


def to_day(value: DateLike) -> date:
    """Normalize a date, datetime or ISO string (yyyy-MM-dd...) to a calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


class DateRangeSelector:
    """Click-driven start/end day selection over a calendar."""

    def __init__(
        self,
        unavailable_dates: Iterable[DateLike] = (),
        pending_dates: Iterable[DateLike] = (),
        min_date: Optional[DateLike] = None,
        max_date: Optional[DateLike] = None,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
    ):
        self.unavailable: Set[date] = {to_day(d) for d in unavailable_dates}
        self.pending: Set[date] = {to_day(d) for d in pending_dates}
        self.min_date = to_day(min_date) if min_date else None
        self.max_date = to_day(max_date) if max_date else None
        self.start_date = to_day(start_date) if start_date else None
        self.end_date = to_day(end_date) if end_date else None

    @property
    def selection(self) -> Tuple[Optional[date], Optional[date]]:
        return self.start_date, self.end_date

    def is_date_unavailable(self, day: DateLike) -> bool:
        return to_day(day) in self.unavailable

    def is_date_pending(self, day: DateLike) -> bool:
        return to_day(day) in self.pending

    def is_date_disabled(self, day: DateLike) -> bool:
        """Past the bounds, unavailable or pending days cannot be clicked."""
        day = to_day(day)
        if self.min_date and day < self.min_date:
            return True
        if self.max_date and day > self.max_date:
            return True
        return day in self.unavailable or day in self.pending

    def has_blocked_dates_in_range(self, first: DateLike, second: DateLike) -> bool:
        """True when an unavailable or pending day lies within [first, second] (any order)."""
        first, second = to_day(first), to_day(second)
        low, high = min(first, second), max(first, second)
        return any(low <= d <= high for d in self.unavailable | self.pending)

    def click(self, day: DateLike) -> bool:
        """
        Apply a click on ``day``.

        Returns:
            True if the selection changed, False if the click was refused
        """
        day = to_day(day)

        if self.is_date_disabled(day):
            return False

        # No selection yet, or a complete one: start over from this day
        if self.start_date is None or self.end_date is not None:
            self.start_date = day
            self.end_date = None
            return True

        if day == self.start_date:
            self.end_date = day
            return True

        if self.has_blocked_dates_in_range(self.start_date, day):
            return False

        if day < self.start_date:
            self.start_date, self.end_date = day, self.start_date
        else:
            self.end_date = day
        return True

    def select(self, start: DateLike, end: DateLike) -> bool:
        """Select a whole range as two clicks on a fresh selector."""
        self.reset()
        return self.click(start) and self.click(end)

    def is_in_range(self, day: DateLike, hover: Optional[DateLike] = None) -> bool:
        """
        True for days strictly between the range ends.

        While only the start is chosen, ``hover`` previews the range.
        """
        day = to_day(day)
        start, end = self.start_date, self.end_date

        if start is None:
            return False
        if end is None:
            if hover is None:
                return False
            hover = to_day(hover)
            start, end = min(start, hover), max(start, hover)

        return start < day < end

    def is_range_valid(self) -> bool:
        return (
            self.start_date is not None
            and self.end_date is not None
            and self.start_date <= self.end_date
        )

    def rental_days(self) -> int:
        """Calendar days covered by the selection, counting both ends."""
        if not self.is_range_valid():
            return 0
        return (self.end_date - self.start_date).days + 1

    def reset(self) -> None:
        self.start_date = None
        self.end_date = None

    def instruction_text(self) -> str:
        if self.start_date is None:
            return "Selecciona la fecha de inicio"
        if self.end_date is None:
            return "Selecciona la fecha de finalización"
        return (
            f"{format_date_es(self.start_date, with_year=False)} - "
            f"{format_date_es(self.end_date, with_year=False)}, {self.end_date.year}"
        )
