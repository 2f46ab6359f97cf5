from __future__ import annotations

import datetime as _dt
from collections.abc import Iterable

from app.domains.scheduling.intervals import align, overlaps
from app.domains.scheduling.models import (
    VALID,
    BusyInterval,
    ErrorKind,
    SchedulingContext,
    TimeOffInterval,
    ValidationResult,
    WorkingHourRule,
)
from app.domains.scheduling.rules import resolve_window


def validate(
    employee_id: str | None,
    start: _dt.datetime,
    end: _dt.datetime,
    bookings: Iterable[BusyInterval] = (),
    time_off: Iterable[TimeOffInterval] = (),
    salon_rules: Iterable[WorkingHourRule] = (),
    employee_rules: Iterable[WorkingHourRule] = (),
    exclude_booking_id: str | None = None,
) -> ValidationResult:
    """Accept or reject a proposed booking.

    Guards run in a fixed order and the first failure wins, so the same
    input always reports the same reason. The result is advisory: the
    write path must still cope with a rejected write.

    Booking and time-off rows whose awareness differs from ``start`` are
    aligned to it before comparing, so mixed naive and aware input is
    judged rather than raising.
    """
    if not employee_id:
        return ValidationResult(ok=False, reason=ErrorKind.MissingEmployee)

    if not _valid_range(start, end):
        return ValidationResult(ok=False, reason=ErrorKind.InvalidRange)

    window = resolve_window(salon_rules, employee_rules, employee_id, start)
    if window is None:
        return ValidationResult(ok=False, reason=ErrorKind.ClosedDay)

    if start < window.start or end > window.end:
        return ValidationResult(ok=False, reason=ErrorKind.OutsideWorkingHours)

    if window.has_break and overlaps(start, end, window.break_start, window.break_end):
        return ValidationResult(ok=False, reason=ErrorKind.InsideBreak)

    for off in time_off:
        if str(off.employee_id) != str(employee_id):
            continue
        off_start, off_end = align(off.start, start), align(off.end, start)
        if off_end > off_start and overlaps(start, end, off_start, off_end):
            return ValidationResult(ok=False, reason=ErrorKind.OnTimeOff)

    for row in bookings:
        if str(row.employee_id) != str(employee_id) or not row.is_occupying:
            continue
        if exclude_booking_id and str(row.booking_id or "") == str(exclude_booking_id):
            continue
        row_start, row_end = align(row.start, start), align(row.end, start)
        if row_end > row_start and overlaps(start, end, row_start, row_end):
            return ValidationResult(ok=False, reason=ErrorKind.OverlapsExistingBooking)

    return VALID


def validate_in_context(
    context: SchedulingContext,
    employee_id: str | None,
    start: _dt.datetime,
    end: _dt.datetime,
    exclude_booking_id: str | None = None,
) -> ValidationResult:
    return validate(
        employee_id,
        start,
        end,
        bookings=context.bookings,
        time_off=context.time_off,
        salon_rules=context.salon_rules,
        employee_rules=context.employee_rules,
        exclude_booking_id=exclude_booking_id,
    )


def _valid_range(start, end) -> bool:
    if not isinstance(start, _dt.datetime) or not isinstance(end, _dt.datetime):
        return False
    # Naive and aware timestamps cannot be ordered against each other.
    if (start.tzinfo is None) != (end.tzinfo is None):
        return False
    return start < end
