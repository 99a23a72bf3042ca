# src/schoolcal/timeutil.py
"""Conversions between storage/display formats and date/time objects."""
from datetime import date, time
from typing import Optional

from dateutil import parser as date_parser

WEEKDAY_NAMES = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']
WEEKDAY_SHORT = ['Mo', 'Tu', 'We', 'Th', 'Fr', 'Sa', 'Su']


def parse_weekday(value) -> int:
    """Accept 0..6 (0=Monday) or a weekday name like 'monday' / 'Mon'."""
    if isinstance(value, int):
        if 0 <= value <= 6:
            return value
        raise ValueError(f"Invalid weekday: {value!r}")
    text = str(value).strip().lower()
    if text.isdigit():
        return parse_weekday(int(text))
    for i, name in enumerate(WEEKDAY_NAMES):
        if len(text) >= 2 and name.startswith(text):
            return i
    raise ValueError(f"Invalid weekday: {value!r}")


def weekday_name(weekday: int) -> str:
    return WEEKDAY_NAMES[weekday]


def parse_time(value) -> Optional[time]:
    """'HH:MM' or 'HH:MM:SS' -> time. Empty values give None."""
    if value is None or isinstance(value, time):
        return value
    text = str(value).strip()
    if not text:
        return None
    parts = text.split(':')
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time format: {value!r}")
    h, m = int(parts[0]), int(parts[1])
    s = int(parts[2]) if len(parts) == 3 else 0
    if not (0 <= h <= 23 and 0 <= m <= 59 and 0 <= s <= 59):
        raise ValueError(f"Invalid time value: {value!r}")
    return time(h, m, s)


def format_time(t: Optional[time], seconds: bool = False) -> Optional[str]:
    if t is None:
        return None
    return t.strftime('%H:%M:%S' if seconds else '%H:%M')


def parse_date(value) -> Optional[date]:
    """ISO 'YYYY-MM-DD' or display 'dd/mm/yyyy' -> date."""
    if value is None or isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return date_parser.parse(text, dayfirst=True).date()


def format_date_display(d: Optional[date]) -> str:
    if d is None:
        return '—'
    return d.strftime('%d/%m/%Y')

