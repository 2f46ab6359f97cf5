from __future__ import annotations

import datetime as _dt
from collections.abc import Iterable, Iterator, Mapping, Sequence

from app.config import Config
from app.domains.scheduling.intervals import add_minutes, align, at_minute_of_day, overlaps
from app.domains.scheduling.models import (
    BusyInterval,
    Slot,
    StaffMember,
    TimeOffInterval,
    WorkingHourRule,
)
from app.domains.scheduling.rules import day_of_week, find_employee_rule


def generate_slots(
    day: _dt.date,
    day_rule: WorkingHourRule | None,
    employee_rule: WorkingHourRule | None,
    duration_minutes: int,
    bookings: Iterable[BusyInterval] = (),
    time_off: Iterable[TimeOffInterval] = (),
    now: _dt.datetime | None = None,
    step_minutes: int = Config.SLOT_STEP_MINUTES,
    employee_id: str | None = None,
    exclude_booking_id: str | None = None,
) -> Iterator[Slot]:
    """Bookable slots for one employee on one day, in ascending start order.

    The salon row bounds the day; an employee row narrows it and supplies the
    break. Candidates are walked on a ``step_minutes`` grid from the window
    start and dropped when they spill past the window end, touch the break,
    time off or an occupying booking, or start sooner than one step from
    ``now``. When ``employee_id`` is given, bookings and time off of other
    employees are ignored.

    Bookings, time off and ``now`` are aligned to the awareness of ``day``
    (see ``align``), so a plain date next to aware timestamps never raises.

    The returned iterator is lazy; calling again with the same inputs yields
    the same sequence.
    """
    if not isinstance(day, _dt.datetime):
        day = _dt.datetime.combine(day, _dt.time())

    if day_rule is None or day_rule.is_closed:
        return iter(())
    if duration_minutes is None or duration_minutes <= 0 or step_minutes <= 0:
        return iter(())

    open_at = at_minute_of_day(day, day_rule.open_minute or 0)
    close_at = at_minute_of_day(day, day_rule.close_minute or 0)
    if close_at <= open_at:
        return iter(())

    range_start, range_end = open_at, close_at
    break_range: tuple[_dt.datetime, _dt.datetime] | None = None

    if employee_rule is not None:
        if employee_rule.is_closed:
            return iter(())
        employee_open = employee_rule.open_minute
        employee_close = employee_rule.close_minute
        employee_start = at_minute_of_day(
            day, employee_open if employee_open is not None else (day_rule.open_minute or 0)
        )
        employee_end = at_minute_of_day(
            day, employee_close if employee_close is not None else (day_rule.close_minute or 0)
        )
        if employee_end <= employee_start:
            return iter(())

        range_start = max(range_start, employee_start)
        range_end = min(range_end, employee_end)
        if range_end <= range_start:
            return iter(())

        window = employee_rule.break_window
        if window is not None:
            break_range = (at_minute_of_day(day, window[0]), at_minute_of_day(day, window[1]))

    busy = tuple(
        (align(row.start, range_start), align(row.end, range_start))
        for row in bookings
        if row.is_occupying
        and (employee_id is None or str(row.employee_id) == str(employee_id))
        and (exclude_booking_id is None or str(row.booking_id) != str(exclude_booking_id))
    )
    blocked = tuple(
        (align(row.start, range_start), align(row.end, range_start))
        for row in time_off
        if employee_id is None or str(row.employee_id) == str(employee_id)
    )
    busy = tuple((start, end) for start, end in busy if end > start)
    blocked = tuple((start, end) for start, end in blocked if end > start)
    earliest = add_minutes(align(now, range_start), step_minutes) if now is not None else None

    return _walk(
        range_start,
        range_end,
        duration_minutes,
        step_minutes,
        break_range,
        blocked,
        busy,
        earliest,
        employee_id,
    )


def _walk(
    range_start: _dt.datetime,
    range_end: _dt.datetime,
    duration_minutes: int,
    step_minutes: int,
    break_range: tuple[_dt.datetime, _dt.datetime] | None,
    blocked: Sequence[tuple[_dt.datetime, _dt.datetime]],
    busy: Sequence[tuple[_dt.datetime, _dt.datetime]],
    earliest: _dt.datetime | None,
    employee_id: str | None,
) -> Iterator[Slot]:
    slot_start = range_start
    while slot_start < range_end:
        slot_end = add_minutes(slot_start, duration_minutes)
        if (
            slot_end <= range_end
            and (earliest is None or slot_start >= earliest)
            and not (break_range and overlaps(slot_start, slot_end, *break_range))
            and not any(overlaps(slot_start, slot_end, start, end) for start, end in blocked)
            and not any(overlaps(slot_start, slot_end, start, end) for start, end in busy)
        ):
            yield Slot(start=slot_start, end=slot_end, employee_id=employee_id)
        slot_start = add_minutes(slot_start, step_minutes)


def generate_auto_assign_slots(
    day: _dt.date,
    day_rule: WorkingHourRule | None,
    staff: Sequence[StaffMember],
    employee_rules: Iterable[WorkingHourRule],
    duration_minutes: int,
    bookings: Iterable[BusyInterval] = (),
    time_off: Iterable[TimeOffInterval] = (),
    now: _dt.datetime | None = None,
    step_minutes: int = Config.SLOT_STEP_MINUTES,
    duration_by_employee: Mapping[str, int] | None = None,
) -> list[Slot]:
    """Union of every eligible employee's slots, one slot per start time.

    ``staff`` is assumed pre-filtered for eligibility and ordered; the first
    employee offering a start time is the one recorded on the slot.
    """
    employee_rules = tuple(employee_rules)
    bookings = tuple(bookings)
    time_off = tuple(time_off)
    weekday = day_of_week(day)

    by_start: dict[_dt.datetime, Slot] = {}
    for member in staff:
        duration = duration_minutes
        if duration_by_employee and member.id in duration_by_employee:
            duration = duration_by_employee[member.id]
        generated = generate_slots(
            day,
            day_rule,
            find_employee_rule(employee_rules, member.id, weekday),
            duration,
            bookings=bookings,
            time_off=time_off,
            now=now,
            step_minutes=step_minutes,
            employee_id=member.id,
        )
        for slot in generated:
            by_start.setdefault(slot.start, slot)

    return [by_start[start] for start in sorted(by_start)]
