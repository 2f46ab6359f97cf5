import datetime as _dt

import pytest

from app.domains.scheduling.models import (
    BusyInterval,
    SchedulingContext,
    ServiceInfo,
    StaffMember,
    WorkingHourRule,
)


@pytest.fixture
def salon_rules() -> tuple[WorkingHourRule, ...]:
    """Open 10:00-20:00 Monday to Thursday, closed Friday, no weekend rows."""
    open_days = tuple(
        WorkingHourRule(weekday=weekday, open_minute=10 * 60, close_minute=20 * 60) for weekday in (1, 2, 3, 4)
    )
    return open_days + (WorkingHourRule(weekday=5, is_closed=True),)


@pytest.fixture
def context(salon_rules) -> SchedulingContext:
    return SchedulingContext(salon_rules=salon_rules)


@pytest.fixture
def staff() -> tuple[StaffMember, ...]:
    return (
        StaffMember(id="A", name="Anna", sort_order=1),
        StaffMember(id="B", name="Bella", sort_order=2),
    )


@pytest.fixture
def haircut() -> ServiceInfo:
    return ServiceInfo(id="cut", name="Haircut", duration_minutes=30)


@pytest.fixture
def booking_factory():
    def _make(booking_id: str, employee_id: str, start: _dt.datetime, minutes: int, **kwargs) -> BusyInterval:
        return BusyInterval(
            employee_id=employee_id,
            start=start,
            end=start + _dt.timedelta(minutes=minutes),
            booking_id=booking_id,
            **kwargs,
        )

    return _make
