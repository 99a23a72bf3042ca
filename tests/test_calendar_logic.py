# tests/test_calendar_logic.py

import types
from datetime import date, time

import pytest

from schoolcal.calendar_logic import (
    HolidayFilter, OverrideIndex, expand_pattern, resolve, resolve_calendar, week_window,
)
from schoolcal.errors import InvalidPatternError, InvalidWindowError
from schoolcal.models import Holiday, Override, WeeklyPattern

# 2025-01-06 is a Monday
MON1 = date(2025, 1, 6)
WED1 = date(2025, 1, 8)
MON2 = date(2025, 1, 13)
TWO_WEEKS = (date(2025, 1, 6), date(2025, 1, 20))


def make_pattern(pid, weekday=0, start=time(18, 0), end=time(19, 0), **kw):
    pat = WeeklyPattern(owner_id=kw.pop('owner_id', 'class-a'), weekday=weekday,
                        start_time=start, end_time=end, title=kw.pop('title', 'Class A'), **kw)
    pat.id = pid
    return pat


def make_override(oid, pid, day, start=None, end=None, cancelled=False):
    ov = Override(pattern_id=pid, day=day, start_time=start, end_time=end, cancelled=cancelled)
    ov.id = oid
    return ov


def test_every_monday_two_weeks():
    occs = resolve([make_pattern(1)], [], [], [], *TWO_WEEKS)
    assert len(occs) == 2
    assert [o.day for o in occs] == [MON1, MON2]
    assert all(o.day.weekday() == 0 for o in occs)
    assert all((o.start_time, o.end_time) == (time(18), time(19)) for o in occs)
    assert all(not o.is_override_backed for o in occs)


def test_cancelled_override_suppresses_first_monday():
    ov = make_override(10, 1, MON1, cancelled=True)
    occs = resolve([make_pattern(1)], [ov], [], [], *TWO_WEEKS)
    assert [o.day for o in occs] == [MON2]


def test_holiday_suppresses_second_monday():
    # an override elsewhere must not bring the holiday back
    ov = make_override(10, 1, MON1, start=time(17, 0), end=time(18, 0))
    occs = resolve([make_pattern(1)], [ov], [Holiday(MON2, 'Epiphany')], [], *TWO_WEEKS)
    assert [o.day for o in occs] == [MON1]
    assert occs[0].override_id == 10


def test_expand_is_lazy_and_half_open():
    pat = make_pattern(1)
    dates = expand_pattern(pat, date(2025, 1, 6), date(2125, 1, 6))
    assert isinstance(dates, types.GeneratorType)
    assert next(dates) == MON1
    assert next(dates) == MON2
    # end of window is exclusive
    assert list(expand_pattern(pat, MON1, date(2025, 1, 20))) == [MON1, MON2]


def test_expand_respects_validity_window():
    pat = make_pattern(1, valid_from=date(2025, 1, 7), valid_to=date(2025, 1, 22))
    assert list(expand_pattern(pat, date(2025, 1, 1), date(2025, 2, 1))) == [MON2, date(2025, 1, 20)]


def test_expand_validity_closing_mid_week():
    pat = make_pattern(1, valid_to=date(2025, 1, 12))
    assert list(expand_pattern(pat, MON1, date(2025, 1, 27))) == [MON1]


def test_expand_empty_when_validity_outside_window():
    pat = make_pattern(1, valid_to=date(2024, 12, 31))
    assert list(expand_pattern(pat, *TWO_WEEKS)) == []


def test_invalid_window_fails_fast():
    with pytest.raises(InvalidWindowError):
        resolve([make_pattern(1)], [], [], [], MON1, MON1)
    with pytest.raises(InvalidWindowError):
        resolve([make_pattern(1)], [], [], [], MON2, MON1)


def test_invalid_pattern_is_reported_and_others_continue():
    bad = make_pattern(1, start=time(19, 0), end=time(18, 0))
    good = make_pattern(2, weekday=2, owner_id='class-b')
    result = resolve_calendar([bad, good], [], [], [], *TWO_WEEKS)
    assert [o.pattern_id for o in result.occurrences] == [2, 2]
    assert len(result.errors) == 1
    assert isinstance(result.errors[0], InvalidPatternError)
    assert result.errors[0].pattern_id == 1


def test_override_replaces_only_given_times():
    ov = make_override(10, 1, MON1, start=time(18, 30))
    occs = resolve([make_pattern(1)], [ov], [], [], *TWO_WEEKS)
    assert (occs[0].start_time, occs[0].end_time) == (time(18, 30), time(19, 0))
    assert occs[0].override_id == 10


def test_override_resolving_to_empty_slot_is_reported():
    ov = make_override(10, 1, MON1, start=time(19, 30))
    result = resolve_calendar([make_pattern(1)], [ov], [], [], *TWO_WEEKS)
    assert [o.day for o in result.occurrences] == [MON2]
    assert len(result.errors) == 1


def test_moved_override_on_other_weekday():
    ov = make_override(10, 1, WED1, start=time(10, 0), end=time(11, 0))
    occs = resolve([make_pattern(1)], [ov], [], [], *TWO_WEEKS)
    moved = [o for o in occs if o.moved]
    assert len(moved) == 1
    assert (moved[0].day, moved[0].start_time, moved[0].end_time) == (WED1, time(10), time(11))
    assert moved[0].override_id == 10
    assert moved[0].key == f"1-{WED1.isoformat()}-override"


def test_moved_override_outside_window_or_cancelled_is_not_emitted():
    outside = make_override(10, 1, date(2025, 1, 22))
    cancelled = make_override(11, 1, WED1, cancelled=True)
    occs = resolve([make_pattern(1)], [outside, cancelled], [], [], *TWO_WEEKS)
    assert not any(o.moved for o in occs)
    assert len(occs) == 2


def test_moved_override_on_holiday_is_suppressed():
    ov = make_override(10, 1, WED1, start=time(10, 0), end=time(11, 0))
    occs = resolve([make_pattern(1)], [ov], [WED1], [], *TWO_WEEKS)
    assert WED1 not in [o.day for o in occs]


def test_override_on_natural_weekday_outside_validity_is_a_move():
    pat = make_pattern(1, valid_to=date(2025, 1, 12))
    ov = make_override(10, 1, MON2)
    occs = resolve([pat], [ov], [], [], *TWO_WEEKS)
    assert [(o.day, o.moved) for o in occs] == [(MON1, False), (MON2, True)]
    assert occs[1].start_time == time(18)


def test_each_override_contributes_at_most_once():
    overrides = [
        make_override(10, 1, MON1, start=time(17, 0)),
        make_override(11, 1, WED1),
        make_override(12, 1, MON2, cancelled=True),
    ]
    occs = resolve([make_pattern(1)], overrides, [], [], *TWO_WEEKS)
    ids = [o.override_id for o in occs if o.override_id is not None]
    assert sorted(ids) == [10, 11]


def test_ordering_by_date_position_start():
    late_first = make_pattern(1, start=time(20, 0), end=time(21, 0), position=1)
    early_second = make_pattern(2, start=time(16, 0), end=time(17, 0), position=2, owner_id='class-b')
    tuesday = make_pattern(3, weekday=1, position=1, owner_id='class-c')
    occs = resolve([early_second, tuesday, late_first], [], [], [], MON1, date(2025, 1, 8))
    assert [o.pattern_id for o in occs] == [1, 2, 3]


def test_resolution_is_idempotent():
    args = ([make_pattern(1), make_pattern(2, weekday=2)],
            [make_override(10, 1, MON1, cancelled=True), make_override(11, 2, date(2025, 1, 10))],
            [Holiday(MON2)], [], *TWO_WEEKS)
    assert resolve(*args) == resolve(*args)


def test_all_pattern_dates_inside_window_and_on_weekday():
    patterns = [make_pattern(i, weekday=i % 7, valid_from=date(2025, 1, i)) for i in range(1, 10)]
    start, end = date(2025, 1, 3), date(2025, 3, 1)
    for o in resolve(patterns, [], [], [], start, end):
        assert start <= o.day < end
        assert o.day.weekday() == o.pattern_id % 7


def test_week_window():
    assert week_window(WED1) == (MON1, MON2)
    assert week_window(MON1) == (MON1, MON2)
    # week starting on Sunday
    assert week_window(WED1, 6) == (date(2025, 1, 5), date(2025, 1, 12))


def test_holiday_filter_lookup():
    hf = HolidayFilter([Holiday(MON1, 'Epiphany'), MON2])
    assert MON1 in hf and MON2 in hf and WED1 not in hf
    assert hf.name_for(MON1) == 'Epiphany'
    assert hf.name_for(MON2) is None
    assert HolidayFilter.coerce(hf) is hf


def test_override_index_keys_and_residual():
    pat = make_pattern(1)
    natural = make_override(10, 1, MON1)
    moved = make_override(11, 1, WED1)
    dangling = make_override(12, 99, MON1)
    index = OverrideIndex([natural, moved, dangling], [pat])
    assert index.get(1, MON1) is natural
    assert index.get(1, MON2) is None
    assert index.residual == [moved]
    assert index.dangling == [dangling]
    assert len(index) == 2


def test_override_index_duplicate_key_last_wins():
    first = make_override(10, 1, MON1, start=time(17, 0))
    second = make_override(11, 1, MON1, start=time(17, 30))
    index = OverrideIndex([first, second], [make_pattern(1)])
    assert index.get(1, MON1) is second
    assert len(index) == 1
