# src/schoolcal/models.py
from dataclasses import dataclass, field
from datetime import date, time
from typing import Optional, Union

PATTERN = 'pattern'
TEST = 'test'
EVENT = 'event'


@dataclass
class Program:
    """Named container of weekly patterns, one per school."""
    id: Optional[int] = field(default=None, init=False)    # db primary key
    school_id: str
    name: str
    description: Optional[str] = None


@dataclass
class WeeklyPattern:
    """A recurring weekly slot, e.g. class X every Monday 18:00-19:30."""
    id: Optional[int] = field(default=None, init=False)    # db primary key
    owner_id: str                 # the class
    weekday: int                  # 0=Monday ... 6=Sunday
    start_time: time
    end_time: time
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None   # inclusive
    position: Optional[int] = None
    program_id: Optional[int] = None
    title: str = ''
    subject_id: Optional[str] = None
    tutor_id: Optional[str] = None

    def is_active_on(self, day: date) -> bool:
        if self.valid_from is not None and day < self.valid_from:
            return False
        if self.valid_to is not None and day > self.valid_to:
            return False
        return True

    def falls_on(self, day: date) -> bool:
        """True if `day` is one of the pattern's natural dates."""
        return day.weekday() == self.weekday and self.is_active_on(day)


@dataclass
class Override:
    """Single-date exception to a WeeklyPattern, keyed by (pattern_id, day)."""
    id: Optional[int] = field(default=None, init=False)    # db primary key
    pattern_id: int
    day: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    cancelled: bool = False

    @property
    def key(self):
        return (self.pattern_id, self.day)


@dataclass
class Holiday:
    id: Optional[int] = field(default=None, init=False)    # db primary key
    day: date
    name: Optional[str] = None


@dataclass
class AdHocRecord:
    """Single-date record without recurrence (test or school event)."""
    id: Optional[int] = field(default=None, init=False)    # db primary key
    kind: str                     # TEST or EVENT
    owner_id: Optional[str]       # None for school-wide events
    day: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    title: str = ''
    description: Optional[str] = None
    subject_id: Optional[str] = None

    @property
    def group_key(self):
        return (self.owner_id, self.day)


@dataclass
class Occurrence:
    """Concrete dated instance produced by resolution. Never persisted."""
    kind: str
    owner_id: Optional[str]
    day: date
    start_time: time
    end_time: time
    title: str = ''
    pattern_id: Optional[int] = None
    override_id: Optional[int] = None
    adhoc_id: Optional[int] = None
    position: Optional[int] = None
    moved: bool = False
    decoration: Optional[AdHocRecord] = None

    @property
    def key(self) -> str:
        if self.kind == PATTERN:
            suffix = '-override' if self.moved else ''
            return f"{self.pattern_id}-{self.day.isoformat()}{suffix}"
        return f"{self.kind}-{self.adhoc_id}"

    @property
    def is_override_backed(self) -> bool:
        return self.override_id is not None

    @property
    def label(self) -> str:
        if self.kind == PATTERN:
            if self.decoration is not None and self.decoration.kind == TEST:
                return f"{self.title} · Test"
            return self.title
        if self.kind == TEST:
            return ' · '.join(['Test'] + ([self.title] if self.title else []))
        return self.title

    @property
    def duration_minutes(self) -> int:
        return ((self.end_time.hour * 60 + self.end_time.minute)
                - (self.start_time.hour * 60 + self.start_time.minute))


# Change requests accepted by the mutation planner

@dataclass(frozen=True)
class Retime:
    start_time: time
    end_time: time


@dataclass(frozen=True)
class CancelOne:
    pass


@dataclass(frozen=True)
class MoveTo:
    new_day: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None


Change = Union[Retime, CancelOne, MoveTo]


@dataclass(frozen=True)
class OverrideWrite:
    """One override upsert. override_id set means update in place."""
    pattern_id: int
    day: date
    start_time: Optional[time]
    end_time: Optional[time]
    cancelled: bool
    override_id: Optional[int] = None
    phase: int = 1

    @property
    def action(self) -> str:
        return 'update' if self.override_id is not None else 'insert'
