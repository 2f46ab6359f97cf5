from __future__ import annotations

import datetime as _dt
from collections.abc import Iterable, Sequence

from app.config import Config
from app.domains.scheduling.intervals import add_minutes, snap
from app.domains.scheduling.models import (
    Assignment,
    SchedulingContext,
    ServiceEligibility,
    ServiceInfo,
    StaffMember,
)
from app.domains.scheduling.validator import validate_in_context


def eligible_staff(
    staff: Iterable[StaffMember],
    eligibility: ServiceEligibility,
    service_id: str | None,
) -> list[StaffMember]:
    """Active staff allowed to perform ``service_id``, in salon sort order."""
    members = [m for m in staff if m.is_active and eligibility.is_eligible(m.id, service_id)]
    return sorted(members, key=lambda m: m.sort_order)


def candidate_employee_ids(
    staff: Iterable[StaffMember],
    eligibility: ServiceEligibility,
    service_id: str | None,
    visible_ids: Sequence[str] | None = None,
    resource_id: str | None = None,
) -> list[str]:
    """Employees worth trying for a booking, in caller order.

    A pinned ``resource_id`` (a calendar column) overrides the visible scope.
    Without either, all active staff are considered.
    """
    known = {str(m.id) for m in staff if m.is_active}
    if resource_id is not None:
        base = [str(resource_id)]
    elif visible_ids:
        base = [str(i) for i in visible_ids]
    else:
        base = [str(m.id) for m in sorted(staff, key=lambda m: m.sort_order) if m.is_active]

    seen: set[str] = set()
    result: list[str] = []
    for employee_id in base:
        if not employee_id or employee_id in seen:
            continue
        seen.add(employee_id)
        if employee_id in known and eligibility.is_eligible(employee_id, service_id):
            result.append(employee_id)
    return result


def resolve_auto_assignment(
    candidates: Sequence[str],
    start: _dt.datetime,
    end: _dt.datetime,
    context: SchedulingContext,
) -> str | None:
    """First candidate, in the given order, whose calendar accepts the interval.

    Greedy first-fit: no load balancing across staff.
    """
    for employee_id in candidates:
        if validate_in_context(context, employee_id, start, end).ok:
            return employee_id
    return None


def booking_duration(service: ServiceInfo) -> int:
    return max(Config.MIN_BOOKING_DURATION_MINUTES, int(service.duration_minutes or Config.DEFAULT_SERVICE_DURATION_MINUTES))


def find_bookable_employee(
    slot_start: _dt.datetime,
    service: ServiceInfo | None,
    context: SchedulingContext,
    candidates: Sequence[str],
    snap_minutes: int = Config.CALENDAR_SNAP_MINUTES,
) -> Assignment | None:
    """Snap a calendar click to the grid and find who can take the service there."""
    if service is None or not candidates:
        return None

    start = snap(slot_start, snap_minutes)
    duration = booking_duration(service)
    end = add_minutes(start, duration)

    employee_id = resolve_auto_assignment(candidates, start, end, context)
    if employee_id is None:
        return None
    return Assignment(employee_id=employee_id, start=start, end=end, duration_minutes=duration)
