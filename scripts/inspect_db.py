"""Print the raw rows of a schoolcal database and flag override rows the calendar will ignore."""
import sys

from schoolcal.calendar_logic import OverrideIndex
from schoolcal.data import Database

db = Database(sys.argv[1] if len(sys.argv) > 1 else None)
cur = db.conn.cursor()
print('Programs:')
for row in cur.execute("SELECT id, school_id, name FROM programs"):
    print(dict(row))

print('\nPatterns:')
patterns = db.load_patterns()
for p in patterns:
    print(f" - id={p.id} owner={p.owner_id} weekday={p.weekday} {p.start_time}-{p.end_time} "
          f"valid={p.valid_from}..{p.valid_to} pos={p.position}")

print('\nOverrides:')
overrides = db.load_overrides()
for o in overrides:
    print(f" - id={o.id} pattern={o.pattern_id} day={o.day} {o.start_time}-{o.end_time} cancelled={o.cancelled}")

index = OverrideIndex(overrides, patterns)
print('\nMoved (residual) overrides:', [o.id for o in index.residual])
print('Dangling overrides:', [o.id for o in index.dangling])

print('\nHolidays:', [h.day.isoformat() for h in db.load_holidays()])
print('Ad-hoc records:', len(db.load_adhoc()))
db.close()
