"""
calendar_model.py — Calendar Model for the MediShift scheduling engine

Maps a start/end date to an ordered list of CalendarDay entries and the
academic year onto its 13 rotation blocks. Pure date arithmetic.

Conventions:
  CalendarDay.index   0-based position in the window
  CalendarDay.number  1-based day number (used on roster records and in
                      violation messages: "Day 5: ...")
  Blocks              1..13, each BLOCK_LENGTH_DAYS long from the academic
                      year start; leftover days (365/366) fold into block 13.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import FrozenSet, Iterable, List, Optional, Set, Tuple, Union

from medishift.errors import InvalidRangeError

BLOCKS_PER_YEAR = 13
BLOCK_LENGTH_DAYS = 28

# Fri, Sat, Sun: weekend call is a 24h shift starting Friday
DEFAULT_WEEKEND_DAYS: FrozenSet[int] = frozenset({4, 5, 6})

DayRef = Union[int, date]


@dataclass(frozen=True)
class CalendarDay:
    index: int
    date: date
    is_weekend: bool = False
    is_holiday: bool = False
    is_major_holiday: bool = False

    @property
    def number(self) -> int:
        return self.index + 1

    @property
    def weekday(self) -> int:
        """Monday=0 … Sunday=6."""
        return self.date.weekday()

    @property
    def uses_weekend_call(self) -> bool:
        """Weekend days and holidays are covered by a single 24h Weekend Call."""
        return self.is_weekend or self.is_holiday

    def __str__(self) -> str:
        return f"Day {self.number} ({self.date.isoformat()})"


def resolve_day_numbers(
    entries: Iterable[DayRef],
    start: date,
    end: date,
) -> Set[int]:
    """
    Normalise a mix of dates and 1-based day numbers to day numbers inside
    [start, end]. Entries outside the window are dropped.
    """
    total = (end - start).days + 1
    out: Set[int] = set()
    for entry in entries:
        if isinstance(entry, date):
            number = (entry - start).days + 1
        else:
            number = int(entry)
        if 1 <= number <= total:
            out.add(number)
    return out


def build_calendar(
    start: date,
    end: date,
    holidays: Iterable[DayRef] = (),
    major_holidays: Iterable[DayRef] = (),
    weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS,
) -> List[CalendarDay]:
    """
    Build the ordered day list for [start, end] inclusive.

    Args:
        start, end:      Window bounds.
        holidays:        Stat holidays (dates or 1-based day numbers).
        major_holidays:  Holidays balanced across holiday groups; always
                         treated as holidays as well.
        weekend_days:    Weekdays (Mon=0) covered by Weekend Call.

    Raises:
        InvalidRangeError if end precedes start.
    """
    if end < start:
        raise InvalidRangeError(
            f"End date {end.isoformat()} precedes start date {start.isoformat()}"
        )

    major = resolve_day_numbers(major_holidays, start, end)
    stat = resolve_day_numbers(holidays, start, end) | major
    weekend = frozenset(weekend_days)

    days: List[CalendarDay] = []
    for index in range((end - start).days + 1):
        d = start + timedelta(days=index)
        number = index + 1
        days.append(CalendarDay(
            index=index,
            date=d,
            is_weekend=d.weekday() in weekend,
            is_holiday=number in stat,
            is_major_holiday=number in major,
        ))
    return days


# ---------------------------------------------------------------------------
# Rotation blocks
# ---------------------------------------------------------------------------

def block_for_date(d: date, year_start: date) -> Optional[int]:
    """Return the 1-based block containing d, or None outside the academic year."""
    offset = (d - year_start).days
    if offset < 0:
        return None
    block = offset // BLOCK_LENGTH_DAYS + 1
    if block > BLOCKS_PER_YEAR:
        # 365th/366th day belongs to the last block; anything later is next year
        _, last = block_date_range(BLOCKS_PER_YEAR, year_start)
        if d <= last:
            return BLOCKS_PER_YEAR
        return None
    return block


def block_date_range(block: int, year_start: date) -> Tuple[date, date]:
    """First and last date of a block (block 13 runs to the day before next year_start)."""
    if not 1 <= block <= BLOCKS_PER_YEAR:
        raise ValueError(f"Block must be 1..{BLOCKS_PER_YEAR}, got {block}")
    first = year_start + timedelta(days=(block - 1) * BLOCK_LENGTH_DAYS)
    if block == BLOCKS_PER_YEAR:
        try:
            next_year = year_start.replace(year=year_start.year + 1)
        except ValueError:
            # Feb 29 start
            next_year = year_start + timedelta(days=365)
        return first, next_year - timedelta(days=1)
    return first, first + timedelta(days=BLOCK_LENGTH_DAYS - 1)


def academic_year_start_for(d: date, month: int = 7, day: int = 1) -> date:
    """Academic year containing d (North American residency default: July 1)."""
    candidate = date(d.year, month, day)
    if d < candidate:
        return date(d.year - 1, month, day)
    return candidate
