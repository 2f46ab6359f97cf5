from __future__ import annotations

import datetime as _dt
from typing import Annotated, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, BeforeValidator, Field, field_validator, model_validator

from app.config import Config
from app.domains.scheduling.models import (
    REASON_MESSAGES,
    BookingMode,
    BookingStatus,
    BusyInterval,
    ErrorKind,
    SchedulingContext,
    ServiceEligibility,
    ServiceInfo,
    StaffMember,
    TimeOffInterval,
    WorkingHourRule,
)
from app.domains.scheduling.service import SchedulingService


def _stringify(value: Any) -> Any:
    if value is None:
        return None
    return str(value)


RowId = Annotated[str, BeforeValidator(_stringify)]


def _first(data: dict, *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _flag(data: dict, key: str) -> Any:
    value = data.get(key)
    return False if value is None else value


def _minute_of_day(value: _dt.time | None) -> int | None:
    if value is None:
        return None
    return value.hour * 60 + value.minute


def localize(moment: _dt.datetime, tz: _dt.tzinfo) -> _dt.datetime:
    """Naive timestamps are salon wall-clock time; aware ones are converted."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


# ── Feed rows ────────────────────────────────────────────────────────────


class WorkingHourRow(BaseModel):
    """Salon or employee working hours for one weekday (0 = Sunday)."""

    day_of_week: int = Field(ge=0, le=6)
    employee_id: RowId | None = None
    open_time: _dt.time | None = None
    close_time: _dt.time | None = None
    is_closed: bool = False
    is_off: bool = False
    break_start: _dt.time | None = None
    break_end: _dt.time | None = None

    @model_validator(mode="before")
    @classmethod
    def _canonical_columns(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            "day_of_week": data.get("day_of_week", data.get("weekday")),
            "employee_id": _first(data, "employee_id", "staff_id"),
            "open_time": _first(data, "start_time", "open_time"),
            "close_time": _first(data, "end_time", "close_time"),
            "is_closed": _flag(data, "is_closed"),
            "is_off": _flag(data, "is_off"),
            "break_start": _first(data, "break_start"),
            "break_end": _first(data, "break_end"),
        }

    @model_validator(mode="after")
    def _break_pair(self) -> WorkingHourRow:
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("break_start and break_end must be set together")
        return self

    def to_domain(self) -> WorkingHourRule:
        return WorkingHourRule(
            weekday=self.day_of_week,
            is_closed=self.is_closed or self.is_off,
            open_minute=_minute_of_day(self.open_time),
            close_minute=_minute_of_day(self.close_time),
            break_start=_minute_of_day(self.break_start),
            break_end=_minute_of_day(self.break_end),
            employee_id=self.employee_id,
        )


class BookingRow(BaseModel):
    id: RowId | None = None
    employee_id: RowId
    service_id: RowId | None = None
    start: _dt.datetime
    end: _dt.datetime
    status: BookingStatus = BookingStatus.pending

    @model_validator(mode="before")
    @classmethod
    def _canonical_columns(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            "id": data.get("id"),
            "employee_id": _first(data, "staff_id", "employee_id"),
            "service_id": data.get("service_id"),
            "start": _first(data, "appointment_start", "start_time", "start"),
            "end": _first(data, "appointment_end", "end_time", "end"),
            "status": data.get("status") or BookingStatus.pending,
        }

    def to_domain(self, tz: _dt.tzinfo) -> BusyInterval:
        return BusyInterval(
            employee_id=self.employee_id,
            start=localize(self.start, tz),
            end=localize(self.end, tz),
            booking_id=self.id,
            status=self.status,
            service_id=self.service_id,
        )


class TimeOffRow(BaseModel):
    employee_id: RowId
    start: _dt.datetime
    end: _dt.datetime

    @model_validator(mode="before")
    @classmethod
    def _canonical_columns(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            "employee_id": _first(data, "staff_id", "employee_id"),
            "start": _first(data, "start_at", "start_time", "appointment_start", "start"),
            "end": _first(data, "end_at", "end_time", "appointment_end", "end"),
        }

    def to_domain(self, tz: _dt.tzinfo) -> TimeOffInterval:
        return TimeOffInterval(
            employee_id=self.employee_id,
            start=localize(self.start, tz),
            end=localize(self.end, tz),
        )


class StaffRow(BaseModel):
    id: RowId
    name: str = ""
    is_active: bool | None = True
    sort_order: int | None = 0

    def to_domain(self) -> StaffMember:
        return StaffMember(
            id=self.id,
            name=self.name,
            is_active=self.is_active is not False,
            sort_order=self.sort_order or 0,
        )


class ServiceRow(BaseModel):
    id: RowId
    name: str = ""
    duration_minutes: int | None = None
    is_active: bool | None = True

    def to_domain(self) -> ServiceInfo:
        return ServiceInfo(
            id=self.id,
            name=self.name,
            duration_minutes=self.duration_minutes or Config.DEFAULT_SERVICE_DURATION_MINUTES,
            is_active=self.is_active is not False,
        )


class StaffServiceRow(BaseModel):
    employee_id: RowId | None = None
    service_id: RowId | None = None

    @model_validator(mode="before")
    @classmethod
    def _canonical_columns(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            "employee_id": _first(data, "staff_id", "employee_id"),
            "service_id": data.get("service_id"),
        }


# ── Requests ─────────────────────────────────────────────────────────────


class SchedulingSnapshot(BaseModel):
    """Rows already fetched by the caller for the viewed date range."""

    timezone: str = Config.DEFAULT_TIMEZONE
    salon_hours: list[WorkingHourRow] = []
    employee_hours: list[WorkingHourRow] = []
    bookings: list[BookingRow] = []
    time_off: list[TimeOffRow] = []
    staff: list[StaffRow] = []
    services: list[ServiceRow] = []
    staff_services: list[StaffServiceRow] = []

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def to_context(self) -> SchedulingContext:
        tz = self.tz
        return SchedulingContext(
            salon_rules=tuple(row.to_domain() for row in self.salon_hours),
            employee_rules=tuple(row.to_domain() for row in self.employee_hours if row.employee_id),
            bookings=tuple(row.to_domain(tz) for row in self.bookings),
            time_off=tuple(row.to_domain(tz) for row in self.time_off),
        )

    def build_service(self) -> SchedulingService:
        return SchedulingService(
            self.to_context(),
            staff=[row.to_domain() for row in self.staff],
            services=[row.to_domain() for row in self.services],
            eligibility=ServiceEligibility.from_pairs(
                (row.employee_id, row.service_id) for row in self.staff_services
            ),
        )


class SlotsRequest(SchedulingSnapshot):
    date: _dt.date
    service_id: RowId
    employee_id: RowId | None = None
    mode: BookingMode = BookingMode.choose_employee
    now: _dt.datetime | None = None


class ValidateRequest(SchedulingSnapshot):
    employee_id: RowId | None = None
    service_id: RowId | None = None
    start: _dt.datetime
    end: _dt.datetime
    exclude_booking_id: RowId | None = None


class AssignRequest(SchedulingSnapshot):
    service_id: RowId
    start: _dt.datetime
    end: _dt.datetime | None = None
    visible_employee_ids: list[RowId] | None = None
    resource_id: RowId | None = None
    snap_to_grid: bool = False


class BlocksRequest(SchedulingSnapshot):
    """``range_end`` is an exclusive midnight: pass the day after the last visible day."""

    range_start: _dt.datetime
    range_end: _dt.datetime = Field(description="Exclusive; only its date is used.")
    service_id: RowId
    visible_employee_ids: list[RowId] | None = None
    aggregate: bool = False


# ── Responses ────────────────────────────────────────────────────────────


class SlotResponse(BaseModel):
    start: _dt.datetime
    end: _dt.datetime
    employee_id: str | None = None


class ValidationResponse(BaseModel):
    ok: bool
    reason: ErrorKind | None = None
    message: str = ""


class AssignResponse(BaseModel):
    employee_id: str | None = None
    start: _dt.datetime | None = None
    end: _dt.datetime | None = None
    reason: ErrorKind | None = None
    message: str = ""

    @classmethod
    def rejected(cls, reason: ErrorKind) -> AssignResponse:
        return cls(reason=reason, message=REASON_MESSAGES[reason])


class BlockResponse(BaseModel):
    id: str
    start: _dt.datetime
    end: _dt.datetime
    resource_id: str | None = None
    kind: str = "unavailable"
