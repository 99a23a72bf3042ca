from datetime import date, time

from schoolcal.data import Database
from schoolcal.models import Holiday, Override, WeeklyPattern


def test_export_import_roundtrip(tmp_path):
    original = tmp_path / 'original.db'
    db1 = Database(str(original))
    prog = db1.get_or_create_program('school-1')
    pat = WeeklyPattern(owner_id='class-a', weekday=2, start_time=time(16), end_time=time(17),
                        program_id=prog.id, title='Physics')
    db1.save_pattern(pat)
    db1.save_override(Override(pattern_id=pat.id, day=date(2025, 1, 8), cancelled=True))
    db1.save_holiday(Holiday(date(2025, 1, 6), 'Epiphany'))
    dump = tmp_path / 'dump.sql'
    db1.export_to_sql(str(dump))
    db1.close()

    target = tmp_path / 'target.db'
    db2 = Database(str(target))
    db2.save_holiday(Holiday(date(2030, 1, 1), 'stale'))
    db2.import_from_sql(str(dump))

    assert [p.title for p in db2.load_patterns()] == ['Physics']
    assert [(o.day, o.cancelled) for o in db2.load_overrides()] == [(date(2025, 1, 8), True)]
    assert [h.name for h in db2.load_holidays()] == ['Epiphany']
    assert db2.get_or_create_program('school-1').id == prog.id
    db2.close()
