from __future__ import annotations

import datetime as _dt
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.domains.scheduling.dependencies import get_now
from app.domains.scheduling.models import REASON_MESSAGES, ErrorKind
from app.domains.scheduling.schemas import (
    AssignRequest,
    AssignResponse,
    BlockResponse,
    BlocksRequest,
    SlotResponse,
    SlotsRequest,
    ValidateRequest,
    ValidationResponse,
    localize,
)
from app.domains.scheduling.service import BookingDraft, SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/scheduling", tags=["scheduling"])


def _require_service(svc: SchedulingService, service_id: str | None) -> None:
    if service_id and svc.get_service(service_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")


@router.post("/slots", response_model=list[SlotResponse])
async def list_slots(
    body: SlotsRequest,
    now: _dt.datetime = Depends(get_now),
) -> list[SlotResponse]:
    svc = body.build_service()
    _require_service(svc, body.service_id)

    tz = body.tz
    day = _dt.datetime.combine(body.date, _dt.time(), tzinfo=tz)
    current = localize(body.now or now, tz)
    slots = svc.available_slots(day, body.service_id, employee_id=body.employee_id, mode=body.mode, now=current)
    logger.info(
        "Slots for service %s on %s (mode=%s): %d", body.service_id, body.date, body.mode.value, len(slots)
    )
    return [SlotResponse(start=s.start, end=s.end, employee_id=s.employee_id) for s in slots]


@router.post("/validate", response_model=ValidationResponse)
async def validate_booking(body: ValidateRequest) -> ValidationResponse:
    svc = body.build_service()
    _require_service(svc, body.service_id)

    tz = body.tz
    draft = BookingDraft(
        employee_id=body.employee_id,
        service_id=body.service_id,
        start=localize(body.start, tz),
        end=localize(body.end, tz),
        booking_id=body.exclude_booking_id,
    )
    result = svc.validate_draft(draft)
    return ValidationResponse(ok=result.ok, reason=result.reason, message=result.message)


@router.post("/assign", response_model=AssignResponse)
async def assign_employee(body: AssignRequest) -> AssignResponse:
    svc = body.build_service()
    _require_service(svc, body.service_id)

    tz = body.tz
    start = localize(body.start, tz)
    if body.snap_to_grid:
        match = svc.find_bookable_employee(
            start, body.service_id, visible_ids=body.visible_employee_ids, resource_id=body.resource_id
        )
        if match is None:
            return AssignResponse.rejected(ErrorKind.NoEligibleEmployee)
        return AssignResponse(employee_id=match.employee_id, start=match.start, end=match.end)

    end = localize(body.end, tz) if body.end is not None else None
    outcome = svc.assign(
        body.service_id, start, end, visible_ids=body.visible_employee_ids, resource_id=body.resource_id
    )
    if outcome.employee_id is None:
        return AssignResponse.rejected(outcome.reason or ErrorKind.NoEligibleEmployee)
    return AssignResponse(employee_id=outcome.employee_id, start=start, end=outcome.end)


@router.post("/unavailable-blocks", response_model=list[BlockResponse])
async def unavailable_blocks(body: BlocksRequest) -> list[BlockResponse]:
    svc = body.build_service()
    _require_service(svc, body.service_id)

    tz = body.tz
    blocks = svc.unavailable_blocks(
        localize(body.range_start, tz),
        localize(body.range_end, tz),
        body.service_id,
        visible_ids=body.visible_employee_ids,
        aggregate=body.aggregate,
    )
    return [
        BlockResponse(id=b.id, start=b.start, end=b.end, resource_id=b.resource_id, kind=b.kind) for b in blocks
    ]


@router.get("/reasons", response_model=dict[str, str])
async def list_reasons() -> dict[str, str]:
    return {kind.value: message for kind, message in REASON_MESSAGES.items()}
