# src/schoolcal/calendar_logic.py
"""
Weekly-pattern calendar engine.

Turns weekly patterns, per-date overrides, holidays and ad-hoc single-date
records into the concrete occurrences of a half-open window [start, end).
Everything here is pure: inputs are only read, every call recomputes.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from dateutil.relativedelta import relativedelta, MO, TU, WE, TH, FR, SA, SU
from dateutil.rrule import rrule, WEEKLY

from .errors import CalendarError, InvalidPatternError, InvalidRecordError, InvalidWindowError
from .models import PATTERN, AdHocRecord, Holiday, Occurrence, Override, WeeklyPattern

DEFAULT_ADHOC_SLOT = (time(9, 0), time(10, 0))

_RD_WEEKDAYS = (MO, TU, WE, TH, FR, SA, SU)


def week_window(day: date, week_starts_on: int = 0) -> Tuple[date, date]:
    """The [start, end) week containing `day`."""
    start = day + relativedelta(weekday=_RD_WEEKDAYS[week_starts_on](-1))
    return start, start + timedelta(days=7)


def validate_window(start: date, end: date):
    if end <= start:
        raise InvalidWindowError(start, end)


def validate_pattern(pattern: WeeklyPattern):
    if not 0 <= pattern.weekday <= 6:
        raise InvalidPatternError(pattern.id, f"weekday {pattern.weekday!r} out of range")
    if pattern.start_time >= pattern.end_time:
        raise InvalidPatternError(pattern.id, f"start {pattern.start_time} is not before end {pattern.end_time}")


def expand_pattern(pattern: WeeklyPattern, start: date, end: date) -> Iterator[date]:
    """Lazily yield the pattern's dates inside [start, end) and its validity window."""
    first = max(start, pattern.valid_from) if pattern.valid_from else start
    last = end - timedelta(days=1)
    if pattern.valid_to is not None:
        last = min(last, pattern.valid_to)
    if first > last:
        return
    rule = rrule(WEEKLY, byweekday=pattern.weekday,
                 dtstart=datetime.combine(first, time()),
                 until=datetime.combine(last, time()))
    for dt in rule:
        yield dt.date()


class HolidayFilter:
    """Set of excluded dates. Accepts Holiday rows or plain dates."""

    def __init__(self, holidays: Iterable = ()):
        self._names: Dict[date, Optional[str]] = {}
        for h in holidays:
            if isinstance(h, Holiday):
                self._names[h.day] = h.name
            else:
                self._names[h] = None

    def __contains__(self, day) -> bool:
        return day in self._names

    def __len__(self):
        return len(self._names)

    def name_for(self, day: date) -> Optional[str]:
        return self._names.get(day)

    @classmethod
    def coerce(cls, holidays) -> 'HolidayFilter':
        return holidays if isinstance(holidays, cls) else cls(holidays or ())


class OverrideIndex:
    """
    Overrides keyed by (pattern_id, day).

    `residual` holds the overrides whose day is not one of their pattern's
    natural dates (other weekday, or outside the validity window): one-off moves.
    Without `patterns` every override is indexed and nothing is residual.
    """

    def __init__(self, overrides: Iterable[Override], patterns: Optional[Iterable[WeeklyPattern]] = None):
        self._patterns: Optional[Dict[int, WeeklyPattern]] = (
            {p.id: p for p in patterns} if patterns is not None else None)
        self._by_key: Dict[Tuple[int, date], Override] = {}
        self.dangling: List[Override] = []

        for ov in overrides:
            if self._patterns is not None and ov.pattern_id not in self._patterns:
                logging.warning(f"Override {ov.id} points to unknown pattern {ov.pattern_id}, ignored")
                self.dangling.append(ov)
                continue
            if ov.key in self._by_key:
                logging.warning(f"Duplicate override for pattern {ov.pattern_id} on {ov.day}, "
                                f"keeping {ov.id} over {self._by_key[ov.key].id}")
            self._by_key[ov.key] = ov

        if self._patterns is None:
            self.residual: List[Override] = []
        else:
            self.residual = [ov for ov in self._by_key.values()
                             if not self._patterns[ov.pattern_id].falls_on(ov.day)]

    def get(self, pattern_id, day: date) -> Optional[Override]:
        return self._by_key.get((pattern_id, day))

    def pattern(self, pattern_id) -> Optional[WeeklyPattern]:
        if self._patterns is None:
            return None
        return self._patterns.get(pattern_id)

    def __contains__(self, key) -> bool:
        return key in self._by_key

    def __len__(self):
        return len(self._by_key)

    def __iter__(self):
        return iter(self._by_key.values())


def _sort_key(occ: Occurrence):
    position = occ.position if occ.position is not None else 0
    if occ.kind != PATTERN:
        position = float('inf')
    return (occ.day, position, occ.start_time, occ.key)


def _pattern_occurrence(pattern: WeeklyPattern, day: date, override: Optional[Override] = None,
                        moved: bool = False) -> Occurrence:
    start_time, end_time = pattern.start_time, pattern.end_time
    if override is not None:
        if override.start_time is not None:
            start_time = override.start_time
        if override.end_time is not None:
            end_time = override.end_time
        if start_time >= end_time:
            raise InvalidPatternError(pattern.id, f"override {override.id} on {day} resolves to "
                                                  f"{start_time}-{end_time}")
    return Occurrence(
        kind=PATTERN,
        owner_id=pattern.owner_id,
        day=day,
        start_time=start_time,
        end_time=end_time,
        title=pattern.title,
        pattern_id=pattern.id,
        override_id=override.id if override is not None else None,
        position=pattern.position,
        moved=moved,
    )


def resolve_pattern_occurrences(patterns: Iterable[WeeklyPattern], index: OverrideIndex,
                                holidays: HolidayFilter, start: date, end: date,
                                errors: Optional[List[CalendarError]] = None) -> List[Occurrence]:
    """
    Per-pattern pass over the expanded dates, then a residual pass for moved
    overrides. Each override key contributes at most one occurrence.
    """
    if errors is None:
        errors = []
    consumed = set()
    invalid = set()
    out: List[Occurrence] = []

    for pattern in patterns:
        try:
            validate_pattern(pattern)
        except InvalidPatternError as e:
            logging.warning(f"Skipping pattern: {e}")
            errors.append(e)
            invalid.add(pattern.id)
            continue

        for day in expand_pattern(pattern, start, end):
            if day in holidays:
                continue
            override = index.get(pattern.id, day)
            if override is not None:
                consumed.add(override.key)
                if override.cancelled:
                    continue
            try:
                out.append(_pattern_occurrence(pattern, day, override))
            except InvalidPatternError as e:
                logging.warning(f"Skipping occurrence: {e}")
                errors.append(e)

    for override in index.residual:
        if override.key in consumed or override.cancelled:
            continue
        if not (start <= override.day < end) or override.day in holidays:
            continue
        if override.pattern_id in invalid:
            continue
        pattern = index.pattern(override.pattern_id)
        consumed.add(override.key)
        try:
            out.append(_pattern_occurrence(pattern, override.day, override, moved=True))
        except InvalidPatternError as e:
            logging.warning(f"Skipping moved occurrence: {e}")
            errors.append(e)

    out.sort(key=_sort_key)
    return out


def _adhoc_occurrence(record: AdHocRecord, default_slot) -> Occurrence:
    start_time = record.start_time if record.start_time is not None else default_slot[0]
    end_time = record.end_time if record.end_time is not None else default_slot[1]
    if start_time >= end_time:
        raise InvalidRecordError(record.id, f"start {start_time} is not before end {end_time}")
    return Occurrence(
        kind=record.kind,
        owner_id=record.owner_id,
        day=record.day,
        start_time=start_time,
        end_time=end_time,
        title=record.title,
        adhoc_id=record.id,
    )


def apply_adhoc_overlay(occurrences: Iterable[Occurrence], records: Iterable[AdHocRecord],
                        holidays: HolidayFilter, start: date, end: date,
                        default_slot=DEFAULT_ADHOC_SLOT,
                        errors: Optional[List[CalendarError]] = None) -> List[Occurrence]:
    """
    Fold the first ad-hoc record of each (owner, day) group into the pattern
    occurrence on that key; emit records of unconsumed groups standalone.
    Further records of a consumed group are not surfaced.
    """
    if errors is None:
        errors = []
    groups: Dict[tuple, List[AdHocRecord]] = {}
    for record in records:
        groups.setdefault(record.group_key, []).append(record)

    consumed = set()
    out: List[Occurrence] = []
    for occ in occurrences:
        if occ.kind == PATTERN:
            group = groups.get((occ.owner_id, occ.day))
            if group and occ.owner_id is not None:
                occ = replace(occ, decoration=group[0])
                consumed.add((occ.owner_id, occ.day))
        out.append(occ)

    for key, group in groups.items():
        if key in consumed:
            if len(group) > 1:
                logging.debug(f"{len(group) - 1} extra record(s) for {key} not shown")
            continue
        for record in group:
            if not (start <= record.day < end) or record.day in holidays:
                continue
            try:
                out.append(_adhoc_occurrence(record, default_slot))
            except InvalidRecordError as e:
                logging.warning(f"Skipping record: {e}")
                errors.append(e)

    out.sort(key=_sort_key)
    return out


@dataclass
class CalendarResult:
    occurrences: List[Occurrence] = field(default_factory=list)
    errors: List[CalendarError] = field(default_factory=list)


def resolve_calendar(patterns: Iterable[WeeklyPattern], overrides: Iterable[Override], holidays,
                     adhoc: Iterable[AdHocRecord], start: date, end: date,
                     default_slot=DEFAULT_ADHOC_SLOT) -> CalendarResult:
    """Resolve the window; invalid patterns/records are reported in `errors`."""
    validate_window(start, end)
    patterns = list(patterns)
    holiday_filter = HolidayFilter.coerce(holidays)
    index = OverrideIndex(overrides, patterns)

    errors: List[CalendarError] = []
    occurrences = resolve_pattern_occurrences(patterns, index, holiday_filter, start, end, errors)
    occurrences = apply_adhoc_overlay(occurrences, adhoc, holiday_filter, start, end,
                                      default_slot=default_slot, errors=errors)
    return CalendarResult(occurrences, errors)


def resolve(patterns, overrides, holidays, adhoc, start: date, end: date,
            default_slot=DEFAULT_ADHOC_SLOT) -> List[Occurrence]:
    return resolve_calendar(patterns, overrides, holidays, adhoc, start, end, default_slot).occurrences
