"""
Stay-date rules shared by the booking engine and the room catalog.

Both the availability quote and the "rooms free in a range" listing decide
conflicts with ``ranges_overlap``; keep every overlap decision going through
it so a range reported free is one that booking creation accepts.
"""
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, List, Optional, Tuple

from errors import InvalidInput, InvalidRange, PastDate


def today() -> date:
    """Current calendar day (UTC); check-ins before it are in the past."""
    return datetime.now(timezone.utc).date()


def parse_stay_date(value: Any, field: str) -> date:
    """Parse ``YYYY-MM-DD`` or a full ISO timestamp into a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise InvalidInput(f"Invalid {field}: expected an ISO date")


def validate_stay(check_in: Any, check_out: Any, current_day: Optional[date] = None) -> Tuple[date, date]:
    """Parse and check a requested stay.

    Raises InvalidInput for missing or unparsable dates, InvalidRange when
    check-out is not after check-in and PastDate when check-in is before
    today.
    """
    if check_in in (None, "") or check_out in (None, ""):
        raise InvalidInput("Please provide room, check-in and check-out dates")
    start = parse_stay_date(check_in, "check-in date")
    end = parse_stay_date(check_out, "check-out date")
    if start >= end:
        raise InvalidRange()
    if start < (current_day or today()):
        raise PastDate()
    return start, end


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Closed-interval overlap: a stay ending on the day another starts
    counts as a conflict (no same-day turnover)."""
    return a_start <= b_end and a_end >= b_start


def count_nights(check_in: date, check_out: date) -> int:
    return math.ceil((check_out - check_in) / timedelta(days=1))


def quote_total(nights: int, nightly_price: float) -> float:
    return nights * nightly_price


def stay_days(check_in: date, check_out: date) -> List[date]:
    """Every calendar day of the closed interval [check_in, check_out].

    Two closed day intervals overlap exactly when these lists share a day,
    which is what the unique (room, night) index relies on.
    """
    return [check_in + timedelta(days=offset) for offset in range((check_out - check_in).days + 1)]


def as_date(value: Any) -> date:
    """Stored booking dates come back as midnight datetimes."""
    if isinstance(value, datetime):
        return value.date()
    return value


def as_datetime(value: date) -> datetime:
    return datetime.combine(value, time.min)


def conflicting_bookings(bookings: Iterable[dict], check_in: date, check_out: date) -> List[dict]:
    return [
        booking
        for booking in bookings
        if ranges_overlap(as_date(booking["checkInDate"]), as_date(booking["checkOutDate"]), check_in, check_out)
    ]
