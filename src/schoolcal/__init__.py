"""Weekly-pattern school calendar: resolution of recurring slots, overrides, holidays and ad-hoc records."""
from schoolcal.calendar_logic import resolve, resolve_calendar
from schoolcal.planner import apply_override_writes, plan_mutation

__version__ = '0.1.0'
