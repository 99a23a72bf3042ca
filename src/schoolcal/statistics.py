from collections import Counter, defaultdict
from typing import Dict, List

from schoolcal.models import PATTERN, Occurrence


def summarize_occurrences(occurrences: List[Occurrence]) -> Dict:
    """
    Summary of a resolved window:
      total            : number of occurrences
      by_kind          : count per kind (pattern / test / event)
      minutes_by_owner : scheduled minutes per owner (pattern occurrences only)
      moved            : occurrences coming from moved overrides
      overridden       : pattern occurrences backed by an override row
      with_test        : pattern occurrences carrying a folded test
    """
    by_kind = Counter(o.kind for o in occurrences)
    minutes_by_owner = defaultdict(int)
    for o in occurrences:
        if o.kind == PATTERN:
            minutes_by_owner[o.owner_id] += o.duration_minutes

    return {
        'total': len(occurrences),
        'by_kind': dict(by_kind),
        'minutes_by_owner': dict(minutes_by_owner),
        'moved': sum(1 for o in occurrences if o.moved),
        'overridden': sum(1 for o in occurrences if o.kind == PATTERN and o.is_override_backed),
        'with_test': sum(1 for o in occurrences if o.decoration is not None),
    }


def count_by_weekday(occurrences: List[Occurrence]) -> Dict[int, int]:
    """0 -> occurrences on Mondays, ..., 6 -> Sundays"""
    counts = {wd: 0 for wd in range(7)}
    for o in occurrences:
        counts[o.day.weekday()] += 1
    return counts
