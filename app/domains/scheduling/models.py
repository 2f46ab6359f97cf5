from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime


# ── Enums ────────────────────────────────────────────────────────────────


class BookingStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


OCCUPYING_STATUSES: frozenset[BookingStatus] = frozenset({BookingStatus.pending, BookingStatus.confirmed})


class BookingMode(str, enum.Enum):
    choose_employee = "choose_employee"
    auto_assign = "auto_assign"


class ErrorKind(str, enum.Enum):
    MissingEmployee = "MissingEmployee"
    InvalidRange = "InvalidRange"
    ClosedDay = "ClosedDay"
    OutsideWorkingHours = "OutsideWorkingHours"
    InsideBreak = "InsideBreak"
    OnTimeOff = "OnTimeOff"
    OverlapsExistingBooking = "OverlapsExistingBooking"
    NoEligibleEmployee = "NoEligibleEmployee"
    IneligibleEmployee = "IneligibleEmployee"


REASON_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.MissingEmployee: "Select an employee first.",
    ErrorKind.InvalidRange: "Invalid time range.",
    ErrorKind.ClosedDay: "Employee/salon is closed on this day.",
    ErrorKind.OutsideWorkingHours: "This booking is outside working hours.",
    ErrorKind.InsideBreak: "This time overlaps break hours.",
    ErrorKind.OnTimeOff: "Employee is unavailable in this time range.",
    ErrorKind.OverlapsExistingBooking: "This slot overlaps another booking.",
    ErrorKind.NoEligibleEmployee: "This time slot is not bookable for the selected scope.",
    ErrorKind.IneligibleEmployee: "Selected employee does not provide this service.",
}


# ── Rules and windows ────────────────────────────────────────────────────


@dataclass(frozen=True)
class WorkingHourRule:
    """One weekday of working hours, salon-wide (employee_id None) or per employee.

    Times are minute-of-day; None marks a bound the row did not set.
    """

    weekday: int
    is_closed: bool = False
    open_minute: int | None = None
    close_minute: int | None = None
    break_start: int | None = None
    break_end: int | None = None
    employee_id: str | None = None

    @property
    def break_window(self) -> tuple[int, int] | None:
        if self.break_start is None or self.break_end is None:
            return None
        if self.break_end <= self.break_start:
            return None
        return (self.break_start, self.break_end)


@dataclass(frozen=True)
class ResolvedWorkingWindow:
    start: datetime
    end: datetime
    break_start: datetime | None = None
    break_end: datetime | None = None

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None


# ── Occupied time ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BusyInterval:
    employee_id: str
    start: datetime
    end: datetime
    booking_id: str | None = None
    status: BookingStatus = BookingStatus.pending
    service_id: str | None = None

    @property
    def is_occupying(self) -> bool:
        return self.status in OCCUPYING_STATUSES


@dataclass(frozen=True)
class TimeOffInterval:
    employee_id: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class Candidate:
    employee_id: str
    start: datetime
    end: datetime


# ── Staff and services ───────────────────────────────────────────────────


@dataclass(frozen=True)
class StaffMember:
    id: str
    name: str = ""
    is_active: bool = True
    sort_order: int = 0


@dataclass(frozen=True)
class ServiceInfo:
    id: str
    duration_minutes: int
    name: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class ServiceEligibility:
    """Allow-list of (employee_id, service_id) pairs.

    An empty set means no assignments exist yet for the tenant, so every
    employee is eligible for every service.
    """

    pairs: frozenset[tuple[str, str]] = frozenset()

    @classmethod
    def from_pairs(cls, pairs) -> ServiceEligibility:
        return cls(frozenset((str(e), str(s)) for e, s in pairs if e and s))

    def is_eligible(self, employee_id: str | None, service_id: str | None) -> bool:
        if not employee_id:
            return False
        if not service_id:
            return True
        if not self.pairs:
            return True
        return (str(employee_id), str(service_id)) in self.pairs


# ── Call context and results ─────────────────────────────────────────────


@dataclass(frozen=True)
class SchedulingContext:
    """Read-only snapshot of everything a validation needs."""

    salon_rules: tuple[WorkingHourRule, ...] = ()
    employee_rules: tuple[WorkingHourRule, ...] = ()
    bookings: tuple[BusyInterval, ...] = ()
    time_off: tuple[TimeOffInterval, ...] = ()

    def with_bookings(self, bookings) -> SchedulingContext:
        return SchedulingContext(
            salon_rules=self.salon_rules,
            employee_rules=self.employee_rules,
            bookings=tuple(bookings),
            time_off=self.time_off,
        )


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: ErrorKind | None = None

    @property
    def message(self) -> str:
        if self.reason is None:
            return ""
        return REASON_MESSAGES[self.reason]


VALID = ValidationResult(ok=True)


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
    employee_id: str | None = None

    @property
    def start_iso(self) -> str:
        return self.start.isoformat()

    @property
    def end_iso(self) -> str:
        return self.end.isoformat()


@dataclass(frozen=True)
class Block:
    start: datetime
    end: datetime
    resource_id: str | None = None
    id: str = field(default="", compare=False)
    kind: str = field(default="unavailable", compare=False)


@dataclass(frozen=True)
class Assignment:
    employee_id: str
    start: datetime
    end: datetime
    duration_minutes: int
