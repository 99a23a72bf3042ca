import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import date
from typing import Dict, List, Optional

from schoolcal.calendar_logic import validate_pattern
from schoolcal.models import AdHocRecord, Holiday, Override, OverrideWrite, Program, WeeklyPattern
from schoolcal.timeutil import format_time, parse_time


def _iso(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None


def _date(text: Optional[str]) -> Optional[date]:
    return date.fromisoformat(text) if text else None


class Database:
    def __init__(self, db_path: str = None):
        try:
            self.db_path = db_path or os.path.join(os.path.expanduser("~"), ".schoolcal", "schoolcal.db")
            if self.db_path != ':memory:':
                os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
            self.conn = sqlite3.connect(self.db_path)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON;")
            self._ensure_tables()
        except sqlite3.Error as e:
            logging.error(f"Database connection error: {e}")
            raise

    def _ensure_tables(self):
        cur = self.conn.cursor()
        cur.execute("""
        CREATE TABLE IF NOT EXISTS programs (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          school_id TEXT NOT NULL,
          name TEXT NOT NULL,
          description TEXT,
          created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )""")
        cur.execute("""
        CREATE TABLE IF NOT EXISTS patterns (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          program_id INTEGER,
          owner_id TEXT NOT NULL,
          title TEXT NOT NULL DEFAULT '',
          weekday INTEGER NOT NULL,
          position INTEGER,
          start_time TEXT NOT NULL,
          end_time TEXT NOT NULL,
          valid_from TEXT,
          valid_to TEXT,
          subject_id TEXT,
          tutor_id TEXT,
          FOREIGN KEY(program_id) REFERENCES programs(id) ON DELETE CASCADE
        )""")
        # (pattern_id, override_date) is the natural key
        cur.execute("""
        CREATE TABLE IF NOT EXISTS overrides (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          pattern_id INTEGER NOT NULL,
          override_date TEXT NOT NULL,
          start_time TEXT,
          end_time TEXT,
          cancelled INTEGER NOT NULL DEFAULT 0,
          UNIQUE(pattern_id, override_date),
          FOREIGN KEY(pattern_id) REFERENCES patterns(id) ON DELETE CASCADE
        )""")
        cur.execute("""
        CREATE TABLE IF NOT EXISTS holidays (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          day TEXT NOT NULL UNIQUE,
          name TEXT
        )""")
        cur.execute("""
        CREATE TABLE IF NOT EXISTS adhoc_records (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          kind TEXT NOT NULL,
          owner_id TEXT,
          day TEXT NOT NULL,
          start_time TEXT,
          end_time TEXT,
          title TEXT NOT NULL DEFAULT '',
          description TEXT,
          subject_id TEXT
        )""")
        self.conn.commit()

    @contextmanager
    def transaction(self):
        """Commit everything inside the block at once, or roll it back."""
        try:
            yield self
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    # Export/Import
    def export_to_sql(self, filename: str):
        """Dump all tables as SQL statements"""
        with open(filename, 'w', encoding='utf-8') as f:
            for line in self.conn.iterdump():
                f.write(f"{line}\n")

    def import_from_sql(self, filename: str):
        """Drop the existing tables, then run the dump"""
        with open(filename, 'r', encoding='utf-8') as f:
            script = f.read()
        cur = self.conn.cursor()
        for tbl in ('overrides', 'adhoc_records', 'holidays', 'patterns', 'programs'):
            cur.execute(f"DROP TABLE IF EXISTS {tbl}")
        self.conn.commit()
        # dump order is alphabetical, not dependency order
        self.conn.execute("PRAGMA foreign_keys = OFF;")
        try:
            self.conn.executescript(script)
            self.conn.commit()
        finally:
            self.conn.execute("PRAGMA foreign_keys = ON;")

    # Programs
    def get_or_create_program(self, school_id: str, name: str = 'Main program') -> Program:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM programs WHERE school_id=? ORDER BY created_at, id LIMIT 1", (school_id,))
        row = cur.fetchone()
        if row is None:
            cur.execute("INSERT INTO programs (school_id, name) VALUES (?,?)", (school_id, name))
            self.conn.commit()
            logging.info(f"Created default program for school {school_id}")
            cur.execute("SELECT * FROM programs WHERE id=?", (cur.lastrowid,))
            row = cur.fetchone()
        prog = Program(row['school_id'], row['name'], row['description'])
        prog.id = row['id']
        return prog

    # Patterns
    def _pattern_from_row(self, row) -> WeeklyPattern:
        pat = WeeklyPattern(
            owner_id=row['owner_id'],
            weekday=row['weekday'],
            start_time=parse_time(row['start_time']),
            end_time=parse_time(row['end_time']),
            valid_from=_date(row['valid_from']),
            valid_to=_date(row['valid_to']),
            position=row['position'],
            program_id=row['program_id'],
            title=row['title'],
            subject_id=row['subject_id'],
            tutor_id=row['tutor_id'],
        )
        pat.id = row['id']
        return pat

    def load_patterns(self, program_id: int = None) -> List[WeeklyPattern]:
        cur = self.conn.cursor()
        if program_id is None:
            cur.execute("SELECT * FROM patterns ORDER BY weekday, position, id")
        else:
            cur.execute("SELECT * FROM patterns WHERE program_id=? ORDER BY weekday, position, id", (program_id,))
        return [self._pattern_from_row(row) for row in cur.fetchall()]

    def save_pattern(self, pat: WeeklyPattern):
        validate_pattern(pat)
        cur = self.conn.cursor()
        if pat.position is None:
            cur.execute("SELECT COALESCE(MAX(position), 0) FROM patterns WHERE weekday=? AND program_id IS ?",
                        (pat.weekday, pat.program_id))
            pat.position = cur.fetchone()[0] + 1
        values = (pat.program_id, pat.owner_id, pat.title, pat.weekday, pat.position,
                  format_time(pat.start_time, seconds=True), format_time(pat.end_time, seconds=True),
                  _iso(pat.valid_from), _iso(pat.valid_to), pat.subject_id, pat.tutor_id)
        if pat.id is not None:
            cur.execute(
                "UPDATE patterns SET program_id=?, owner_id=?, title=?, weekday=?, position=?, start_time=?, "
                "end_time=?, valid_from=?, valid_to=?, subject_id=?, tutor_id=? WHERE id=?",
                values + (pat.id,)
            )
            logging.info(f"Updated pattern id={pat.id}")
        else:
            cur.execute(
                "INSERT INTO patterns (program_id, owner_id, title, weekday, position, start_time, end_time, "
                "valid_from, valid_to, subject_id, tutor_id) VALUES (?,?,?,?,?,?,?,?,?,?,?)",
                values
            )
            pat.id = cur.lastrowid
            logging.info(f"Inserted new pattern with id={pat.id}")
        self.conn.commit()

    def delete_pattern(self, pattern_id: int):
        cur = self.conn.cursor()
        cur.execute("DELETE FROM patterns WHERE id=?", (pattern_id,))
        self.conn.commit()

    # Overrides
    def _override_from_row(self, row) -> Override:
        ov = Override(
            pattern_id=row['pattern_id'],
            day=date.fromisoformat(row['override_date']),
            start_time=parse_time(row['start_time']),
            end_time=parse_time(row['end_time']),
            cancelled=bool(row['cancelled']),
        )
        ov.id = row['id']
        return ov

    def load_overrides(self, pattern_ids: List[int] = None) -> List[Override]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM overrides ORDER BY override_date, id")
        out = [self._override_from_row(row) for row in cur.fetchall()]
        if pattern_ids is not None:
            wanted = set(pattern_ids)
            out = [ov for ov in out if ov.pattern_id in wanted]
        return out

    def get_override(self, pattern_id: int, day: date) -> Optional[Override]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM overrides WHERE pattern_id=? AND override_date=?",
                    (pattern_id, day.isoformat()))
        row = cur.fetchone()
        return self._override_from_row(row) if row else None

    def upsert_override(self, write: OverrideWrite, commit: bool = True) -> Override:
        """Update the row `write.override_id`, else insert at the natural key (last write wins)."""
        cur = self.conn.cursor()
        st = format_time(write.start_time, seconds=True)
        et = format_time(write.end_time, seconds=True)
        updated = 0
        if write.override_id is not None:
            cur.execute(
                "UPDATE overrides SET start_time=?, end_time=?, cancelled=? WHERE id=?",
                (st, et, int(write.cancelled), write.override_id)
            )
            updated = cur.rowcount
        if not updated:
            cur.execute(
                "INSERT INTO overrides (pattern_id, override_date, start_time, end_time, cancelled) "
                "VALUES (?,?,?,?,?) ON CONFLICT(pattern_id, override_date) DO UPDATE SET "
                "start_time=excluded.start_time, end_time=excluded.end_time, cancelled=excluded.cancelled",
                (write.pattern_id, write.day.isoformat(), st, et, int(write.cancelled))
            )
        if commit:
            self.conn.commit()
        logging.info(f"Override {write.action} for pattern {write.pattern_id} on {write.day} "
                     f"(cancelled={write.cancelled})")
        return self.get_override(write.pattern_id, write.day)

    def save_override(self, ov: Override):
        saved = self.upsert_override(OverrideWrite(ov.pattern_id, ov.day, ov.start_time, ov.end_time,
                                                   ov.cancelled, ov.id))
        ov.id = saved.id

    def delete_override(self, override_id: int):
        cur = self.conn.cursor()
        cur.execute("DELETE FROM overrides WHERE id=?", (override_id,))
        self.conn.commit()

    # Holidays
    def load_holidays(self) -> List[Holiday]:
        cur = self.conn.cursor()
        cur.execute("SELECT id, day, name FROM holidays ORDER BY day")
        out = []
        for row in cur.fetchall():
            h = Holiday(date.fromisoformat(row['day']), row['name'])
            h.id = row['id']
            out.append(h)
        return out

    def save_holiday(self, h: Holiday):
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO holidays (day, name) VALUES (?,?) ON CONFLICT(day) DO UPDATE SET name=excluded.name",
            (h.day.isoformat(), h.name)
        )
        self.conn.commit()
        cur.execute("SELECT id FROM holidays WHERE day=?", (h.day.isoformat(),))
        h.id = cur.fetchone()['id']

    def delete_holiday(self, day: date):
        cur = self.conn.cursor()
        cur.execute("DELETE FROM holidays WHERE day=?", (day.isoformat(),))
        self.conn.commit()

    # Ad-hoc records (tests, school events)
    def load_adhoc(self, start: date = None, end: date = None) -> List[AdHocRecord]:
        cur = self.conn.cursor()
        query = "SELECT * FROM adhoc_records"
        params = []
        if start is not None and end is not None:
            query += " WHERE day >= ? AND day < ?"
            params = [start.isoformat(), end.isoformat()]
        cur.execute(query + " ORDER BY day, id", params)
        out = []
        for row in cur.fetchall():
            rec = AdHocRecord(
                kind=row['kind'],
                owner_id=row['owner_id'],
                day=date.fromisoformat(row['day']),
                start_time=parse_time(row['start_time']),
                end_time=parse_time(row['end_time']),
                title=row['title'],
                description=row['description'],
                subject_id=row['subject_id'],
            )
            rec.id = row['id']
            out.append(rec)
        return out

    def save_adhoc(self, rec: AdHocRecord):
        cur = self.conn.cursor()
        values = (rec.kind, rec.owner_id, rec.day.isoformat(), format_time(rec.start_time, seconds=True),
                  format_time(rec.end_time, seconds=True), rec.title, rec.description, rec.subject_id)
        if rec.id is not None:
            cur.execute(
                "UPDATE adhoc_records SET kind=?, owner_id=?, day=?, start_time=?, end_time=?, title=?, "
                "description=?, subject_id=? WHERE id=?",
                values + (rec.id,)
            )
        else:
            cur.execute(
                "INSERT INTO adhoc_records (kind, owner_id, day, start_time, end_time, title, description, "
                "subject_id) VALUES (?,?,?,?,?,?,?,?)",
                values
            )
            rec.id = cur.lastrowid
        self.conn.commit()

    def delete_adhoc(self, record_id: int):
        cur = self.conn.cursor()
        cur.execute("DELETE FROM adhoc_records WHERE id=?", (record_id,))
        self.conn.commit()

    def load_inputs(self, program_id: int = None) -> Dict[str, list]:
        """The four engine inputs in one go."""
        patterns = self.load_patterns(program_id)
        return {
            'patterns': patterns,
            'overrides': self.load_overrides([p.id for p in patterns] if program_id is not None else None),
            'holidays': self.load_holidays(),
            'adhoc': self.load_adhoc(),
        }

    def close(self):
        """Close the database connection"""
        if self.conn:
            self.conn.close()
            self.conn = None
