from datetime import date, time

from schoolcal.calendar_logic import resolve
from schoolcal.models import EVENT, TEST, AdHocRecord, Override, WeeklyPattern
from schoolcal.statistics import count_by_weekday, summarize_occurrences


def _inputs():
    a = WeeklyPattern(owner_id='class-a', weekday=0, start_time=time(18), end_time=time(19, 30))
    a.id = 1
    b = WeeklyPattern(owner_id='class-b', weekday=2, start_time=time(9), end_time=time(10))
    b.id = 2
    moved = Override(pattern_id=2, day=date(2025, 1, 10), start_time=time(11), end_time=time(12))
    moved.id = 10
    retimed = Override(pattern_id=1, day=date(2025, 1, 13), start_time=time(17))
    retimed.id = 11
    test = AdHocRecord(kind=TEST, owner_id='class-a', day=date(2025, 1, 6))
    test.id = 3
    event = AdHocRecord(kind=EVENT, owner_id=None, day=date(2025, 1, 9), start_time=time(12), end_time=time(13))
    event.id = 4
    return [a, b], [moved, retimed], [], [test, event]


def test_summarize_occurrences():
    occs = resolve(*_inputs(), date(2025, 1, 6), date(2025, 1, 20))
    stats = summarize_occurrences(occs)
    # Mondays 6 and 13, Wednesdays 8 and 15, moved Friday 10, event Thursday 9
    assert stats['total'] == 6
    assert stats['by_kind'] == {'pattern': 5, 'event': 1}
    assert stats['minutes_by_owner'] == {'class-a': 90 + 150, 'class-b': 60 * 3}
    assert stats['moved'] == 1
    assert stats['overridden'] == 2
    assert stats['with_test'] == 1


def test_count_by_weekday():
    occs = resolve(*_inputs(), date(2025, 1, 6), date(2025, 1, 20))
    counts = count_by_weekday(occs)
    assert counts[0] == 2 and counts[2] == 2 and counts[3] == 1 and counts[4] == 1
    assert counts[6] == 0
