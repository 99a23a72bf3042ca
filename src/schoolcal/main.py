# src/schoolcal/main.py
"""
Console entry point.

    schoolcal week [--date D]
    schoolcal pattern add OWNER WEEKDAY START END [--title T] [--from D] [--to D]
    schoolcal pattern list | pattern delete ID
    schoolcal cancel PATTERN DATE
    schoolcal retime PATTERN DATE START END
    schoolcal move PATTERN DATE NEW_DATE [START END]
    schoolcal restore PATTERN DATE
    schoolcal holiday add DATE [NAME] | holiday list | holiday delete DATE
    schoolcal test add OWNER DATE [START END] [--title T]
    schoolcal event add DATE START END NAME
    schoolcal export FILE.csv|FILE.pdf --from D --to D
"""
import argparse
import logging
import sys
from datetime import date, timedelta
from typing import List, Optional

from .calendar_logic import CalendarResult, resolve_calendar, week_window
from .config import db_path, default_test_slot, load_config
from .data import Database
from .errors import CalendarError, PartialMoveError
from .export_utils import export_csv, export_pdf
from .models import EVENT, TEST, AdHocRecord, CancelOne, Holiday, MoveTo, Occurrence, Retime, WeeklyPattern
from .planner import apply_override_writes, plan_mutation
from .statistics import summarize_occurrences
from .timeutil import WEEKDAY_SHORT, format_time, parse_date, parse_time, parse_weekday, weekday_name


def load_calendar(db: Database, program_id: int, start: date, end: date, cfg: dict) -> CalendarResult:
    inputs = db.load_inputs(program_id)
    return resolve_calendar(inputs['patterns'], inputs['overrides'], inputs['holidays'], inputs['adhoc'],
                            start, end, default_slot=default_test_slot(cfg))


def find_occurrence(occurrences: List[Occurrence], pattern_id: int, day: date) -> Optional[Occurrence]:
    for o in occurrences:
        if o.pattern_id == pattern_id and o.day == day:
            return o
    return None


def print_occurrences(occurrences: List[Occurrence]):
    current = None
    for o in occurrences:
        if o.day != current:
            current = o.day
            print(f"\n{WEEKDAY_SHORT[o.day.weekday()]} {o.day.isoformat()}")
        ref = f"[{o.pattern_id}]" if o.pattern_id is not None else f"[{o.kind}]"
        moved = " (moved)" if o.moved else ""
        print(f"  {format_time(o.start_time)}-{format_time(o.end_time)} {ref} {o.label}{moved}")


def _edit(db, program, cfg, pattern_id, day, change):
    result = load_calendar(db, program.id, day, day + timedelta(days=1), cfg)
    occ = find_occurrence(result.occurrences, pattern_id, day)
    if occ is None:
        print(f"No occurrence of pattern {pattern_id} on {day}")
        return 1
    writes = plan_mutation(occ, change, db.load_overrides([pattern_id]))
    apply_override_writes(db, writes)
    print(f"Saved {len(writes)} override(s)")
    return 0


def cmd_week(db, program, cfg, args):
    day = parse_date(args.date) if args.date else date.today()
    start, end = week_window(day, cfg.get('week_starts_on', 0))
    result = load_calendar(db, program.id, start, end, cfg)
    print_occurrences(result.occurrences)
    summary = summarize_occurrences(result.occurrences)
    print(f"\n{summary['total']} occurrence(s), {summary['moved']} moved")
    for err in result.errors:
        print(f"warning: {err}")
    return 0


def cmd_pattern(db, program, cfg, args):
    if args.action == 'list':
        for p in db.load_patterns(program.id):
            print(f"[{p.id}] {weekday_name(p.weekday)} {format_time(p.start_time)}-{format_time(p.end_time)} "
                  f"{p.title or p.owner_id} ({p.valid_from or '…'} – {p.valid_to or '…'})")
        return 0
    if args.action == 'delete':
        if not args.values:
            raise ValueError("ID is required")
        db.delete_pattern(int(args.values[0]))
        return 0
    owner, wd, st, et = args.values[:4]
    pat = WeeklyPattern(owner_id=owner, weekday=parse_weekday(wd), start_time=parse_time(st),
                        end_time=parse_time(et), valid_from=parse_date(args.valid_from),
                        valid_to=parse_date(args.valid_to), program_id=program.id, title=args.title or owner)
    db.save_pattern(pat)
    print(f"Pattern {pat.id} saved")
    return 0


def cmd_cancel(db, program, cfg, args):
    return _edit(db, program, cfg, args.pattern, parse_date(args.date), CancelOne())


def cmd_retime(db, program, cfg, args):
    return _edit(db, program, cfg, args.pattern, parse_date(args.date),
                 Retime(parse_time(args.start), parse_time(args.end)))


def cmd_move(db, program, cfg, args):
    return _edit(db, program, cfg, args.pattern, parse_date(args.date),
                 MoveTo(parse_date(args.new_date), parse_time(args.start), parse_time(args.end)))


def cmd_restore(db, program, cfg, args):
    day = parse_date(args.date)
    if day is None:
        raise ValueError("DATE is required")
    ov = db.get_override(args.pattern, day)
    if ov is None:
        print(f"No override for pattern {args.pattern} on {day}")
        return 1
    db.delete_override(ov.id)
    print(f"Override {ov.id} removed")
    return 0


def cmd_holiday(db, program, cfg, args):
    if args.action == 'list':
        for h in db.load_holidays():
            print(f"{h.day.isoformat()} {h.name or ''}")
        return 0
    day = parse_date(args.date)
    if day is None:
        raise ValueError("DATE is required")
    if args.action == 'delete':
        db.delete_holiday(day)
    else:
        db.save_holiday(Holiday(day, args.name))
    return 0


def cmd_test(db, program, cfg, args):
    db.save_adhoc(AdHocRecord(kind=TEST, owner_id=args.owner, day=parse_date(args.date),
                              start_time=parse_time(args.start), end_time=parse_time(args.end),
                              title=args.title or ''))
    return 0


def cmd_event(db, program, cfg, args):
    db.save_adhoc(AdHocRecord(kind=EVENT, owner_id=None, day=parse_date(args.date),
                              start_time=parse_time(args.start), end_time=parse_time(args.end),
                              title=args.name))
    return 0


def cmd_export(db, program, cfg, args):
    start, end = parse_date(args.date_from), parse_date(args.date_to)
    result = load_calendar(db, program.id, start, end, cfg)
    if args.file.lower().endswith('.pdf'):
        export_pdf(result.occurrences, args.file, start, end, title=program.name)
    else:
        export_csv(result.occurrences, args.file)
    print(f"Exported {len(result.occurrences)} occurrence(s) to {args.file}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='schoolcal', description='Weekly school program calendar')
    parser.add_argument('--db', help='SQLite database file')
    parser.add_argument('--school', help='school id')
    parser.add_argument('-v', '--verbose', action='store_true')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('week', help='show the resolved week')
    p.add_argument('--date')
    p.set_defaults(func=cmd_week)

    p = sub.add_parser('pattern', help='manage weekly patterns')
    p.add_argument('action', choices=['add', 'list', 'delete'])
    p.add_argument('values', nargs='*', help='add: OWNER WEEKDAY START END / delete: ID')
    p.add_argument('--title')
    p.add_argument('--from', dest='valid_from')
    p.add_argument('--to', dest='valid_to')
    p.set_defaults(func=cmd_pattern)

    p = sub.add_parser('cancel', help='cancel one occurrence')
    p.add_argument('pattern', type=int)
    p.add_argument('date')
    p.set_defaults(func=cmd_cancel)

    p = sub.add_parser('retime', help='change the times of one occurrence')
    p.add_argument('pattern', type=int)
    p.add_argument('date')
    p.add_argument('start')
    p.add_argument('end')
    p.set_defaults(func=cmd_retime)

    p = sub.add_parser('move', help='move one occurrence to another date')
    p.add_argument('pattern', type=int)
    p.add_argument('date')
    p.add_argument('new_date')
    p.add_argument('start', nargs='?')
    p.add_argument('end', nargs='?')
    p.set_defaults(func=cmd_move)

    p = sub.add_parser('restore', help='drop the override on one date')
    p.add_argument('pattern', type=int)
    p.add_argument('date')
    p.set_defaults(func=cmd_restore)

    p = sub.add_parser('holiday', help='manage holidays')
    p.add_argument('action', choices=['add', 'list', 'delete'])
    p.add_argument('date', nargs='?')
    p.add_argument('name', nargs='?')
    p.set_defaults(func=cmd_holiday)

    p = sub.add_parser('test', help='add a test for a class')
    p.add_argument('action', choices=['add'])
    p.add_argument('owner')
    p.add_argument('date')
    p.add_argument('start', nargs='?')
    p.add_argument('end', nargs='?')
    p.add_argument('--title')
    p.set_defaults(func=cmd_test)

    p = sub.add_parser('event', help='add a school event')
    p.add_argument('action', choices=['add'])
    p.add_argument('date')
    p.add_argument('start')
    p.add_argument('end')
    p.add_argument('name')
    p.set_defaults(func=cmd_event)

    p = sub.add_parser('export', help='export a period to CSV or PDF')
    p.add_argument('file')
    p.add_argument('--from', dest='date_from', required=True)
    p.add_argument('--to', dest='date_to', required=True)
    p.set_defaults(func=cmd_export)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    cfg = load_config()
    level = logging.INFO if args.verbose else getattr(logging, str(cfg.get('log_level')).upper(), logging.WARNING)
    logging.basicConfig(level=level, format='%(levelname)s %(message)s')

    db = Database(args.db or db_path(cfg))
    try:
        program = db.get_or_create_program(args.school or cfg['school_id'], cfg['program_name'])
        return args.func(db, program, cfg, args)
    except PartialMoveError as e:
        print(f"Move only half applied: the original date stays cancelled ({e})", file=sys.stderr)
        return 2
    except (CalendarError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == '__main__':
    sys.exit(main())
