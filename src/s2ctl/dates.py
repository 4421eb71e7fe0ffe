"""Sensing-window normalization.

Every bound of the sensing window is kept internally as a signed number of
days relative to the current date (negative values lie in the past). Each
search strategy turns the offset into its own vocabulary at the boundary:

- the catalog store uses relative tokens (``NOW``, ``NOW-7DAY``, ``NOW+2DAY``)
- the tile store uses absolute calendar dates (``2024-05-03``)
"""

import re
from datetime import date, datetime, timedelta

from s2ctl.errors import ParseError

# Constants
DEFAULT_START_OFFSET = -7
DEFAULT_END_OFFSET = 0
CATALOG_NOW = "NOW"
DATE_FORMAT = "%Y-%m-%d"

_TOKEN_PATTERN = re.compile(r"^NOW(?:([+-])(\d+)DAYS?)?$")


def _today(today: date | None) -> date:
    return today or date.today()


def parse_date(value: str | date | datetime) -> date:
    """Parse an ISO 8601 calendar date (``yyyy-MM-dd``, a full timestamp is accepted).

    Args:
        value (str | date | datetime): value to parse

    Raises:
        ParseError: when the string is not an ISO 8601 date

    Returns:
        date: the calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    try:
        if len(text) > 10:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise ParseError(f"Invalid date: '{value}' (expected yyyy-MM-dd)") from None


def day_offset(value: str | date | datetime | None, today: date | None = None) -> int | None:
    """Signed number of days between ``today`` and the given date, None when omitted."""
    if value is None:
        return None
    return (parse_date(value) - _today(today)).days


def sensing_window(
    start: str | date | datetime | None = None,
    end: str | date | datetime | None = None,
    today: date | None = None,
) -> tuple[int, int]:
    """Resolve the sensing window into (start, end) day offsets.

    Omitted bounds default to seven days ago and today.
    """
    start_offset = day_offset(start, today)
    end_offset = day_offset(end, today)
    return (
        DEFAULT_START_OFFSET if start_offset is None else start_offset,
        DEFAULT_END_OFFSET if end_offset is None else end_offset,
    )


def to_catalog_token(offset: int) -> str:
    if offset == 0:
        return CATALOG_NOW
    sign = "-" if offset < 0 else "+"
    return f"{CATALOG_NOW}{sign}{abs(offset)}DAY"


def from_catalog_token(token: str) -> int:
    match = _TOKEN_PATTERN.match(token.strip().upper())
    if not match:
        raise ParseError(f"Invalid relative date token: '{token}' (expected NOW, NOW-<n>DAY or NOW+<n>DAY)")
    sign, days = match.groups()
    if days is None:
        return 0
    return -int(days) if sign == "-" else int(days)


def catalog_interval(start: int, end: int) -> str:
    """Interval filter in catalog syntax, e.g. ``[NOW-7DAY TO NOW]``."""
    return f"[{to_catalog_token(start)} TO {to_catalog_token(end)}]"


def to_date(offset: int, today: date | None = None) -> date:
    return _today(today) + timedelta(days=offset)


def to_calendar_date(offset: int, today: date | None = None) -> str:
    return to_date(offset, today).strftime(DATE_FORMAT)
