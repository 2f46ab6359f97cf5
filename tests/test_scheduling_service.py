import dataclasses
import datetime as _dt

import pytest

from app.domains.scheduling.models import (
    BookingMode,
    BookingStatus,
    ErrorKind,
    ServiceEligibility,
    ServiceInfo,
    WorkingHourRule,
)
from app.domains.scheduling.optimistic import InsertBooking, UpdateBooking
from app.domains.scheduling.service import BookingDraft, SchedulingService
from tests.salon import MONDAY, NOW, at


@pytest.fixture
def svc(context, staff, haircut, booking_factory):
    ctx = context.with_bookings([booking_factory("a1", "A", at(10), 60), booking_factory("b1", "B", at(15), 30)])
    return SchedulingService(ctx, staff=staff, services=[haircut], slot_step_minutes=15)


class RecordingWriter:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.patches = []

    async def __call__(self, patch):
        self.patches.append(patch)
        if self.fail:
            raise RuntimeError("duplicate key value violates unique constraint")
        if isinstance(patch, InsertBooking):
            return dataclasses.replace(patch.row, booking_id="db-1", status=BookingStatus.confirmed)
        if isinstance(patch, UpdateBooking):
            return patch.row
        return None


class TestQueries:
    def test_slots_for_chosen_employee(self, svc):
        slots = svc.available_slots(_dt.datetime.combine(MONDAY, _dt.time()), "cut", employee_id="A", now=NOW)
        assert slots[0].start == at(11)
        assert all(s.employee_id == "A" for s in slots)

    def test_slots_for_auto_assign(self, svc):
        slots = svc.available_slots(
            _dt.datetime.combine(MONDAY, _dt.time()), "cut", mode=BookingMode.auto_assign, now=NOW
        )
        assert (slots[0].start, slots[0].employee_id) == (at(10), "B")

    def test_slots_require_known_service_and_eligible_employee(self, context, staff, haircut):
        eligibility = ServiceEligibility.from_pairs([("B", "cut")])
        svc = SchedulingService(context, staff=staff, services=[haircut], eligibility=eligibility)
        day = _dt.datetime.combine(MONDAY, _dt.time())

        assert svc.available_slots(day, "unknown", employee_id="B", now=NOW) == []
        assert svc.available_slots(day, "cut", employee_id="A", now=NOW) == []
        assert svc.available_slots(day, "cut", employee_id="B", now=NOW)

    def test_assign_picks_free_employee(self, svc):
        outcome = svc.assign("cut", at(10), at(10, 30))
        assert outcome.employee_id == "B"
        assert outcome.reason is None

    def test_assign_derives_end_from_service(self, svc):
        outcome = svc.assign("cut", at(11))
        assert outcome.employee_id == "A"
        assert outcome.end == at(11, 30)

    def test_assign_reports_exhausted_candidates(self, svc):
        outcome = svc.assign("cut", at(10), at(10, 30), visible_ids=["A"])
        assert outcome.employee_id is None
        assert outcome.reason == ErrorKind.NoEligibleEmployee

    def test_find_bookable_employee_respects_resource_column(self, svc):
        assert svc.find_bookable_employee(at(10, 2), "cut", resource_id="A") is None
        match = svc.find_bookable_employee(at(10, 2), "cut", resource_id="B")
        assert (match.employee_id, match.start) == ("B", at(10))

    def test_unavailable_blocks_use_active_staff_by_default(self, svc):
        blocks = svc.unavailable_blocks(at(0), at(0), "cut")
        assert {b.resource_id for b in blocks} == {"A", "B"}

    def test_validate_draft_checks_eligibility_first(self, context, staff, haircut):
        svc = SchedulingService(
            context, staff=staff, services=[haircut], eligibility=ServiceEligibility.from_pairs([("B", "cut")])
        )
        draft = BookingDraft(employee_id="A", service_id="cut", start=at(9), end=at(9, 30))
        assert svc.validate_draft(draft).reason == ErrorKind.IneligibleEmployee


class TestSubmitDraft:
    @pytest.mark.asyncio
    async def test_create_replaces_optimistic_row_with_persisted(self, svc):
        writer = RecordingWriter()
        draft = BookingDraft(employee_id="A", service_id="cut", start=at(12), end=at(12, 30))

        result = await svc.submit_draft(draft, writer)

        assert result.ok
        assert result.booking.booking_id == "db-1"
        assert [r.booking_id for r in result.rows] == ["a1", "b1", "db-1"]
        assert isinstance(writer.patches[0], InsertBooking)
        assert writer.patches[0].row.booking_id.startswith("tmp-")

    @pytest.mark.asyncio
    async def test_local_rejection_never_reaches_the_writer(self, svc):
        writer = RecordingWriter()
        draft = BookingDraft(employee_id="A", service_id="cut", start=at(10), end=at(10, 30))

        result = await svc.submit_draft(draft, writer)

        assert not result.ok
        assert result.reason == ErrorKind.OverlapsExistingBooking
        assert result.write_error is None
        assert writer.patches == []
        assert result.rows == svc.context.bookings

    @pytest.mark.asyncio
    async def test_rejected_write_rolls_back(self, svc):
        writer = RecordingWriter(fail=True)
        draft = BookingDraft(employee_id="A", service_id="cut", start=at(12), end=at(12, 30))

        result = await svc.submit_draft(draft, writer)

        assert not result.ok
        assert result.reason is None
        assert "unique constraint" in result.write_error
        assert result.rows == svc.context.bookings

    @pytest.mark.asyncio
    async def test_drag_move_updates_in_place(self, svc):
        writer = RecordingWriter()
        draft = BookingDraft(employee_id="A", service_id="cut", start=at(11), end=at(12), booking_id="a1")

        result = await svc.submit_draft(draft, writer)

        assert result.ok
        moved = result.rows[0]
        assert (moved.booking_id, moved.start, moved.end) == ("a1", at(11), at(12))

    @pytest.mark.asyncio
    async def test_failed_move_restores_original_row(self, svc):
        draft = BookingDraft(employee_id="A", service_id="cut", start=at(11), end=at(12), booking_id="a1")

        result = await svc.submit_draft(draft, RecordingWriter(fail=True))

        assert result.rows == svc.context.bookings

    @pytest.mark.asyncio
    async def test_drag_onto_another_booking_is_rejected(self, svc):
        draft = BookingDraft(employee_id="B", service_id="cut", start=at(15), end=at(16), booking_id="a1")

        result = await svc.submit_draft(draft, RecordingWriter())

        assert result.reason == ErrorKind.OverlapsExistingBooking

    @pytest.mark.asyncio
    async def test_cancel_and_failed_cancel(self, svc):
        ok = await svc.cancel_booking("a1", RecordingWriter())
        failed = await svc.cancel_booking("a1", RecordingWriter(fail=True))

        assert [r.booking_id for r in ok.rows] == ["b1"]
        assert isinstance(failed.write_error, str)
        assert failed.rows == svc.context.bookings

    @pytest.mark.asyncio
    async def test_resubmitting_against_new_snapshot_sees_the_booking(self, svc):
        draft = BookingDraft(employee_id="A", service_id="cut", start=at(12), end=at(12, 30))
        first = await svc.submit_draft(draft, RecordingWriter())

        second = await svc.with_bookings(first.rows).submit_draft(draft, RecordingWriter())

        assert second.reason == ErrorKind.OverlapsExistingBooking


def test_employee_override_drives_service_slots(context, staff, haircut):
    ctx = dataclasses.replace(
        context,
        employee_rules=(WorkingHourRule(weekday=1, employee_id="A", open_minute=16 * 60, close_minute=18 * 60),),
    )
    svc = SchedulingService(ctx, staff=staff, services=[haircut], slot_step_minutes=30)

    slots = svc.available_slots(_dt.datetime.combine(MONDAY, _dt.time()), "cut", employee_id="A", now=NOW)

    assert [s.start for s in slots] == [at(16), at(16, 30), at(17), at(17, 30)]


def test_inactive_service_is_still_known(context, staff):
    retired = ServiceInfo(id="old", duration_minutes=30, is_active=False)
    svc = SchedulingService(context, staff=staff, services=[retired])
    assert svc.get_service("old") is retired
    assert svc.get_service(None) is None
