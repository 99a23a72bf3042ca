# src/schoolcal/planner.py
"""
Single-occurrence edits expressed as override writes.

Planning never touches the weekly pattern itself. A move is two writes:
phase 1 cancels the natural date, phase 2 creates the occurrence on the
new date. The caller executes them (`apply_override_writes`) and resolves
the calendar again afterwards.
"""
import logging
from typing import Iterable, List, Optional, Union

from .calendar_logic import OverrideIndex
from .errors import OverrideWriteError, PartialMoveError, PlanningError
from .models import PATTERN, CancelOne, MoveTo, Occurrence, Override, OverrideWrite, Retime


def _check_times(start_time, end_time):
    if start_time is None or end_time is None:
        raise PlanningError("Start and end time are required")
    if start_time >= end_time:
        raise PlanningError(f"Start {start_time} must be before end {end_time}")


def plan_mutation(occurrence: Occurrence, change,
                  overrides: Optional[Union[OverrideIndex, Iterable[Override]]] = None) -> List[OverrideWrite]:
    """
    Return the override upserts realizing `change` for `occurrence`.

    `overrides` is only needed to find rows on other dates (the target of a
    move); the row backing the occurrence itself comes from `override_id`.
    """
    if occurrence.kind != PATTERN or occurrence.pattern_id is None:
        raise PlanningError(f"Occurrence {occurrence.key} is not pattern based")
    index = overrides if isinstance(overrides, OverrideIndex) else OverrideIndex(overrides or ())
    pattern_id = occurrence.pattern_id
    original = occurrence.day

    def existing_id(day):
        ov = index.get(pattern_id, day)
        if ov is not None:
            return ov.id
        return occurrence.override_id if day == original else None

    def cancel(phase=1):
        return OverrideWrite(pattern_id, original, None, None, True, existing_id(original), phase)

    def retime(day, start_time, end_time, phase=1):
        return OverrideWrite(pattern_id, day, start_time, end_time, False, existing_id(day), phase)

    if isinstance(change, CancelOne):
        return [cancel()]

    if isinstance(change, Retime):
        _check_times(change.start_time, change.end_time)
        return [retime(original, change.start_time, change.end_time)]

    if isinstance(change, MoveTo):
        start_time = change.start_time if change.start_time is not None else occurrence.start_time
        end_time = change.end_time if change.end_time is not None else occurrence.end_time
        _check_times(start_time, end_time)
        if change.new_day == original:
            return [retime(original, start_time, end_time)]
        return [cancel(phase=1), retime(change.new_day, start_time, end_time, phase=2)]

    raise PlanningError(f"Unsupported change: {change!r}")


def _execute(store, writes: List[OverrideWrite], commit: bool) -> List[Override]:
    applied: List[OverrideWrite] = []
    results: List[Override] = []
    for write in writes:
        try:
            results.append(store.upsert_override(write, commit=commit))
        except Exception as e:
            logging.error(f"Override {write.action} failed for pattern {write.pattern_id} "
                          f"on {write.day}: {e}")
            if applied and write.phase > 1:
                raise PartialMoveError(write, applied) from e
            raise OverrideWriteError(write, applied) from e
        applied.append(write)
    return results


def apply_override_writes(store, writes: Iterable[OverrideWrite], atomic: bool = False) -> List[Override]:
    """
    Execute planned writes in phase order against `store`.

    Non-atomic: each row commits on its own; a failure on the second write of
    a move raises PartialMoveError and leaves the cancellation in place.
    Atomic: needs `store.transaction()`; all writes commit or none do.
    """
    writes = sorted(writes, key=lambda w: w.phase)
    if not atomic:
        return _execute(store, writes, commit=True)
    if not hasattr(store, 'transaction'):
        raise PlanningError("Store does not support transactions")
    try:
        with store.transaction():
            return _execute(store, writes, commit=False)
    except OverrideWriteError as e:
        logging.error(f"Rolled back {len(writes)} override write(s)")
        raise OverrideWriteError(e.write, applied=[]) from e
