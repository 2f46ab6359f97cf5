"""Optimistic booking updates with explicit rollback.

The calendar applies a write locally before the backend confirms it. Each
transition here is pure: ``apply_patch`` returns the new rows together with
the inverse patch captured from the rows *before* the change, so a failed
write is undone with ``revert`` and never leaves a booking on screen that was
not persisted.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

from app.domains.scheduling.models import BusyInterval


@dataclass(frozen=True)
class InsertBooking:
    row: BusyInterval
    position: int | None = None


@dataclass(frozen=True)
class UpdateBooking:
    booking_id: str
    row: BusyInterval


@dataclass(frozen=True)
class CancelBooking:
    booking_id: str


@dataclass(frozen=True)
class RemoveBooking:
    booking_id: str


Patch = InsertBooking | UpdateBooking | CancelBooking | RemoveBooking
Rows = tuple[BusyInterval, ...]


def _index_of(rows: Rows, booking_id: str) -> int | None:
    for index, row in enumerate(rows):
        if str(row.booking_id or "") == str(booking_id):
            return index
    return None


def apply_patch(rows: Rows, patch: Patch) -> tuple[Rows, Patch | None]:
    """Apply ``patch`` and return ``(new_rows, rollback)``.

    ``rollback`` is None when the patch did not change anything (for example
    an update of an unknown booking).
    """
    rows = tuple(rows)

    if isinstance(patch, InsertBooking):
        position = len(rows) if patch.position is None else max(0, min(patch.position, len(rows)))
        new_rows = rows[:position] + (patch.row,) + rows[position:]
        return new_rows, RemoveBooking(booking_id=str(patch.row.booking_id))

    index = _index_of(rows, patch.booking_id)
    if index is None:
        return rows, None
    previous = rows[index]

    if isinstance(patch, UpdateBooking):
        replacement = dataclasses.replace(patch.row, booking_id=previous.booking_id)
        new_rows = rows[:index] + (replacement,) + rows[index + 1:]
        return new_rows, UpdateBooking(booking_id=patch.booking_id, row=previous)

    # Cancelled bookings stop occupying time, so they leave the working set.
    new_rows = rows[:index] + rows[index + 1:]
    return new_rows, InsertBooking(row=previous, position=index)


def revert(rows: Rows, rollback: Patch | None) -> Rows:
    if rollback is None:
        return tuple(rows)
    new_rows, _ = apply_patch(rows, rollback)
    return new_rows


def confirm(rows: Rows, temp_id: str, persisted: BusyInterval) -> Rows:
    """Swap the optimistic row ``temp_id`` for the row the backend returned."""
    rows = tuple(rows)
    index = _index_of(rows, temp_id)
    if index is None:
        return rows
    return rows[:index] + (persisted,) + rows[index + 1:]
