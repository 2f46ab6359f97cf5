from __future__ import annotations

import dataclasses
import datetime as _dt
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable, Sequence

from app.config import Config
from app.domains.scheduling.assignment import (
    booking_duration,
    candidate_employee_ids,
    eligible_staff,
    find_bookable_employee,
    resolve_auto_assignment,
)
from app.domains.scheduling.coalescer import compute_unavailable_blocks
from app.domains.scheduling.models import (
    Assignment,
    Block,
    BookingMode,
    BookingStatus,
    BusyInterval,
    ErrorKind,
    SchedulingContext,
    ServiceEligibility,
    ServiceInfo,
    Slot,
    StaffMember,
    ValidationResult,
)
from app.domains.scheduling.optimistic import (
    CancelBooking,
    InsertBooking,
    Patch,
    UpdateBooking,
    apply_patch,
    confirm,
    revert,
)
from app.domains.scheduling.rules import day_of_week, find_employee_rule, find_salon_rule
from app.domains.scheduling.slots import generate_auto_assign_slots, generate_slots
from app.domains.scheduling.validator import validate_in_context

logger = logging.getLogger(__name__)

# Persists a patch and returns the stored row (or None); raises when the backend rejects it.
BookingWriter = Callable[[Patch], Awaitable[BusyInterval | None]]


@dataclasses.dataclass
class BookingDraft:
    employee_id: str | None
    service_id: str | None
    start: _dt.datetime
    end: _dt.datetime
    booking_id: str | None = None
    status: BookingStatus = BookingStatus.pending


@dataclasses.dataclass
class AssignmentOutcome:
    employee_id: str | None
    reason: ErrorKind | None = None
    end: _dt.datetime | None = None


@dataclasses.dataclass
class SubmitResult:
    """Outcome of a draft submission.

    ``reason`` is a local validation rejection; ``write_error`` is a failure
    reported by the backend after local validation passed. At most one is set.
    """

    ok: bool
    rows: tuple[BusyInterval, ...]
    reason: ErrorKind | None = None
    write_error: str | None = None
    booking: BusyInterval | None = None


class SchedulingService:
    """Single entry point for slot listing, validation, assignment and calendar blocks.

    Holds one immutable snapshot of salon data; build a new instance (or use
    ``with_bookings``) when the snapshot is reloaded.
    """

    def __init__(
        self,
        context: SchedulingContext,
        staff: Iterable[StaffMember] = (),
        services: Iterable[ServiceInfo] = (),
        eligibility: ServiceEligibility = ServiceEligibility(),
        slot_step_minutes: int = Config.SLOT_STEP_MINUTES,
        calendar_step_minutes: int = Config.CALENDAR_SNAP_MINUTES,
    ) -> None:
        self.context = context
        self.staff = tuple(staff)
        self.services = {str(s.id): s for s in services}
        self.eligibility = eligibility
        self.slot_step_minutes = slot_step_minutes
        self.calendar_step_minutes = calendar_step_minutes

    def with_bookings(self, rows: Iterable[BusyInterval]) -> SchedulingService:
        return SchedulingService(
            self.context.with_bookings(rows),
            staff=self.staff,
            services=self.services.values(),
            eligibility=self.eligibility,
            slot_step_minutes=self.slot_step_minutes,
            calendar_step_minutes=self.calendar_step_minutes,
        )

    def get_service(self, service_id: str | None) -> ServiceInfo | None:
        if not service_id:
            return None
        return self.services.get(str(service_id))

    # ── Public booking page ──────────────────────────────────────────────

    def available_slots(
        self,
        day: _dt.datetime,
        service_id: str,
        employee_id: str | None = None,
        mode: BookingMode = BookingMode.choose_employee,
        now: _dt.datetime | None = None,
    ) -> list[Slot]:
        service = self.get_service(service_id)
        if service is None:
            return []
        if now is None:
            now = _dt.datetime.now(day.tzinfo) if isinstance(day, _dt.datetime) else _dt.datetime.now()

        weekday = day_of_week(day)
        day_rule = find_salon_rule(self.context.salon_rules, weekday)

        if mode == BookingMode.auto_assign:
            members = eligible_staff(self.staff, self.eligibility, service.id)
            slots = generate_auto_assign_slots(
                day,
                day_rule,
                members,
                self.context.employee_rules,
                service.duration_minutes,
                bookings=self.context.bookings,
                time_off=self.context.time_off,
                now=now,
                step_minutes=self.slot_step_minutes,
            )
            logger.debug("Auto-assign slots for service %s on %s: %d", service.id, day, len(slots))
            return slots

        if not employee_id or not self.eligibility.is_eligible(employee_id, service.id):
            return []
        return list(
            generate_slots(
                day,
                day_rule,
                find_employee_rule(self.context.employee_rules, employee_id, weekday),
                service.duration_minutes,
                bookings=self.context.bookings,
                time_off=self.context.time_off,
                now=now,
                step_minutes=self.slot_step_minutes,
                employee_id=employee_id,
            )
        )

    # ── Validation and assignment ────────────────────────────────────────

    def validate_booking(
        self,
        employee_id: str | None,
        start: _dt.datetime,
        end: _dt.datetime,
        exclude_booking_id: str | None = None,
    ) -> ValidationResult:
        return validate_in_context(self.context, employee_id, start, end, exclude_booking_id)

    def validate_draft(self, draft: BookingDraft) -> ValidationResult:
        if draft.employee_id and not self.eligibility.is_eligible(draft.employee_id, draft.service_id):
            return ValidationResult(ok=False, reason=ErrorKind.IneligibleEmployee)
        return self.validate_booking(draft.employee_id, draft.start, draft.end, draft.booking_id)

    def candidates_for(
        self,
        service_id: str | None,
        visible_ids: Sequence[str] | None = None,
        resource_id: str | None = None,
    ) -> list[str]:
        return candidate_employee_ids(self.staff, self.eligibility, service_id, visible_ids, resource_id)

    def assign(
        self,
        service_id: str,
        start: _dt.datetime,
        end: _dt.datetime | None = None,
        visible_ids: Sequence[str] | None = None,
        resource_id: str | None = None,
    ) -> AssignmentOutcome:
        service = self.get_service(service_id)
        if end is None:
            if service is None:
                return AssignmentOutcome(employee_id=None, reason=ErrorKind.NoEligibleEmployee)
            end = start + _dt.timedelta(minutes=booking_duration(service))

        candidates = self.candidates_for(service_id, visible_ids, resource_id)
        employee_id = resolve_auto_assignment(candidates, start, end, self.context)
        if employee_id is None:
            logger.info(
                "No employee available for service %s at %s (%d candidates)", service_id, start, len(candidates)
            )
            return AssignmentOutcome(employee_id=None, reason=ErrorKind.NoEligibleEmployee)
        return AssignmentOutcome(employee_id=employee_id, end=end)

    def find_bookable_employee(
        self,
        slot_start: _dt.datetime,
        service_id: str | None,
        visible_ids: Sequence[str] | None = None,
        resource_id: str | None = None,
    ) -> Assignment | None:
        return find_bookable_employee(
            slot_start,
            self.get_service(service_id),
            self.context,
            self.candidates_for(service_id, visible_ids, resource_id),
            snap_minutes=self.calendar_step_minutes,
        )

    # ── Operator calendar ────────────────────────────────────────────────

    def unavailable_blocks(
        self,
        range_start: _dt.datetime,
        range_end: _dt.datetime,
        service_id: str | None,
        visible_ids: Sequence[str] | None = None,
        aggregate: bool = False,
    ) -> list[Block]:
        known = {str(m.id) for m in self.staff if m.is_active}
        if visible_ids:
            resources = [str(i) for i in visible_ids if str(i) in known]
        else:
            resources = [str(m.id) for m in sorted(self.staff, key=lambda m: m.sort_order) if m.is_active]

        blocks = compute_unavailable_blocks(
            range_start,
            range_end,
            resources,
            self.get_service(service_id),
            self.context,
            eligibility=self.eligibility,
            aggregate=aggregate,
            step_minutes=self.calendar_step_minutes,
        )
        logger.debug("Computed %d unavailable blocks for %s..%s", len(blocks), range_start, range_end)
        return blocks

    # ── Writes (check, apply optimistically, then persist) ───────────────

    async def submit_draft(self, draft: BookingDraft, writer: BookingWriter) -> SubmitResult:
        rows = self.context.bookings
        validation = self.validate_draft(draft)
        if not validation.ok:
            logger.info("Draft rejected locally: %s", validation.reason.value)
            return SubmitResult(ok=False, rows=rows, reason=validation.reason)

        row_id = draft.booking_id or f"tmp-{uuid.uuid4().hex}"
        row = BusyInterval(
            employee_id=str(draft.employee_id),
            start=draft.start,
            end=draft.end,
            booking_id=row_id,
            status=draft.status,
            service_id=draft.service_id,
        )
        patch: Patch = UpdateBooking(booking_id=row_id, row=row) if draft.booking_id else InsertBooking(row=row)
        return await self._write(rows, patch, row_id, writer)

    async def cancel_booking(self, booking_id: str, writer: BookingWriter) -> SubmitResult:
        return await self._write(self.context.bookings, CancelBooking(booking_id=booking_id), None, writer)

    async def _write(
        self,
        rows: tuple[BusyInterval, ...],
        patch: Patch,
        row_id: str | None,
        writer: BookingWriter,
    ) -> SubmitResult:
        optimistic_rows, rollback = apply_patch(rows, patch)
        try:
            persisted = await writer(patch)
        except Exception as exc:
            logger.exception("Booking write failed for %s, rolling back", type(patch).__name__)
            return SubmitResult(ok=False, rows=revert(optimistic_rows, rollback), write_error=str(exc))

        if persisted is not None and row_id is not None:
            optimistic_rows = confirm(optimistic_rows, row_id, persisted)
        logger.info("Booking write committed: %s", type(patch).__name__)
        return SubmitResult(ok=True, rows=optimistic_rows, booking=persisted)
