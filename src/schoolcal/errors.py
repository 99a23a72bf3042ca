# src/schoolcal/errors.py


class CalendarError(Exception):
    """Base class for all calendar engine errors."""


class InvalidWindowError(CalendarError, ValueError):
    def __init__(self, start, end):
        super().__init__(f"Invalid window: end {end} must be after start {start}")
        self.start = start
        self.end = end


class InvalidPatternError(CalendarError, ValueError):
    def __init__(self, pattern_id, message):
        super().__init__(f"Pattern {pattern_id}: {message}")
        self.pattern_id = pattern_id


class InvalidRecordError(CalendarError, ValueError):
    def __init__(self, record_id, message):
        super().__init__(f"Record {record_id}: {message}")
        self.record_id = record_id


class PlanningError(CalendarError):
    pass


class OverrideWriteError(CalendarError):
    """A planned override write failed. Nothing after `write` was attempted."""

    def __init__(self, write, applied=None, message=None):
        self.write = write
        self.phase = write.phase
        self.applied = list(applied or [])
        super().__init__(message or f"Override {write.action} for pattern {write.pattern_id} "
                                    f"on {write.day} failed (phase {write.phase})")


class PartialMoveError(OverrideWriteError):
    """Second write of a move failed; the cancellation of the original date is committed."""
