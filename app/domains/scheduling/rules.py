from __future__ import annotations

import datetime as _dt
from collections.abc import Iterable

from app.domains.scheduling.intervals import at_minute_of_day
from app.domains.scheduling.models import ResolvedWorkingWindow, WorkingHourRule


def day_of_week(day: _dt.date) -> int:
    """Weekday in the persisted numbering: 0 = Sunday .. 6 = Saturday."""
    return (day.weekday() + 1) % 7


def find_salon_rule(salon_rules: Iterable[WorkingHourRule], weekday: int) -> WorkingHourRule | None:
    for rule in salon_rules:
        if rule.weekday == weekday:
            return rule
    return None


def find_employee_rule(
    employee_rules: Iterable[WorkingHourRule], employee_id: str, weekday: int
) -> WorkingHourRule | None:
    for rule in employee_rules:
        if rule.weekday == weekday and str(rule.employee_id or "") == str(employee_id):
            return rule
    return None


def resolve_window(
    salon_rules: Iterable[WorkingHourRule],
    employee_rules: Iterable[WorkingHourRule],
    employee_id: str,
    day: _dt.datetime,
) -> ResolvedWorkingWindow | None:
    """Working window for one employee on the calendar day of ``day``.

    An employee row for the weekday wins outright (closed row means no
    window). Without one, the salon row applies and carries no break.
    Returns None when the day is closed, missing, or misconfigured.
    """
    salon_rules = tuple(salon_rules)
    weekday = day_of_week(day)
    salon_day = find_salon_rule(salon_rules, weekday)
    employee_day = find_employee_rule(employee_rules, employee_id, weekday)

    if employee_day is not None:
        if employee_day.is_closed:
            return None
        open_minute = _first_set(employee_day.open_minute, salon_day.open_minute if salon_day else None)
        close_minute = _first_set(employee_day.close_minute, salon_day.close_minute if salon_day else None)
        if close_minute <= open_minute:
            return None

        break_window = employee_day.break_window
        return ResolvedWorkingWindow(
            start=at_minute_of_day(day, open_minute),
            end=at_minute_of_day(day, close_minute),
            break_start=at_minute_of_day(day, break_window[0]) if break_window else None,
            break_end=at_minute_of_day(day, break_window[1]) if break_window else None,
        )

    if salon_day is None or salon_day.is_closed:
        return None
    open_minute = _first_set(salon_day.open_minute)
    close_minute = _first_set(salon_day.close_minute)
    if close_minute <= open_minute:
        return None

    return ResolvedWorkingWindow(
        start=at_minute_of_day(day, open_minute),
        end=at_minute_of_day(day, close_minute),
    )


def _first_set(*values: int | None) -> int:
    for value in values:
        if value is not None:
            return value
    return 0
