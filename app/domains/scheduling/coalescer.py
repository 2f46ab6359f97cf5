from __future__ import annotations

import dataclasses
import datetime as _dt
from collections.abc import Sequence

from app.config import Config
from app.domains.scheduling.intervals import add_minutes, align, at_minute_of_day, merge_adjacent
from app.domains.scheduling.models import Block, SchedulingContext, ServiceEligibility, ServiceInfo
from app.domains.scheduling.validator import validate_in_context


def compute_unavailable_blocks(
    range_start: _dt.datetime,
    range_end: _dt.datetime,
    resources: Sequence[str],
    service: ServiceInfo | None,
    context: SchedulingContext,
    eligibility: ServiceEligibility = ServiceEligibility(),
    aggregate: bool = False,
    step_minutes: int = Config.CALENDAR_SNAP_MINUTES,
    min_hour: int = Config.CALENDAR_MIN_HOUR,
    max_hour: int = Config.CALENDAR_MAX_HOUR,
) -> list[Block]:
    """Background blocks marking where ``service`` cannot start.

    Every grid step between ``min_hour`` and ``max_hour`` of each visible day
    is checked for a booking of the service's full duration. Per resource, a
    step is unavailable when that employee is ineligible or rejects it. In
    ``aggregate`` mode a step is unavailable only when every eligible
    resource rejects it, and the block carries no resource id. Adjacent
    marks are merged per resource.

    Only the calendar dates matter: days run from the date of
    ``range_start`` up to, but not including, the date of ``range_end``,
    which is read as an exclusive midnight. A range ending on its own start
    date covers that single day.
    """
    if service is None or step_minutes <= 0:
        return []

    min_minutes = min_hour * 60
    max_minutes = max_hour * 60
    if max_minutes <= min_minutes:
        return []
    if not aggregate and not resources:
        return []

    duration = max(step_minutes, int(service.duration_minutes or Config.DEFAULT_SERVICE_DURATION_MINUTES))
    eligible = [r for r in resources if eligibility.is_eligible(r, service.id)]

    day_start = _start_of_day(range_start)
    end_day = _start_of_day(align(range_end, range_start))
    end_exclusive = end_day if end_day > day_start else day_start + _dt.timedelta(days=1)

    raw: list[Block] = []
    day_cursor = day_start
    while day_cursor < end_exclusive:
        minute = min_minutes
        while minute + step_minutes <= max_minutes:
            start = at_minute_of_day(day_cursor, minute)
            mark_end = at_minute_of_day(day_cursor, minute + step_minutes)
            booking_end = add_minutes(start, duration)

            if aggregate:
                if all(not validate_in_context(context, r, start, booking_end).ok for r in eligible):
                    raw.append(Block(start=start, end=mark_end))
            else:
                for resource_id in resources:
                    available = resource_id in eligible and validate_in_context(
                        context, resource_id, start, booking_end
                    ).ok
                    if not available:
                        raw.append(Block(start=start, end=mark_end, resource_id=resource_id))

            minute += step_minutes
        day_cursor = day_cursor + _dt.timedelta(days=1)

    merged = merge_adjacent(raw, key=lambda block: block.resource_id)
    return [
        dataclasses.replace(
            block,
            id=f"unavailable-{block.resource_id or 'all'}-{int(block.start.timestamp() * 1000)}-{index}",
        )
        for index, block in enumerate(merged)
    ]


def _start_of_day(moment: _dt.datetime) -> _dt.datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)
