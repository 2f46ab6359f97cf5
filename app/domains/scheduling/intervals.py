from __future__ import annotations

import dataclasses
import datetime as _dt
import math
from collections.abc import Callable, Iterable
from typing import TypeVar

T = TypeVar("T")


def at_minute_of_day(day: _dt.datetime, minute_of_day: int) -> _dt.datetime:
    """Set the wall-clock time on a copy of ``day``, keeping its tzinfo."""
    base = day.replace(hour=0, minute=0, second=0, microsecond=0)
    hours, minutes = divmod(minute_of_day, 60)
    if hours >= 24:
        return base + _dt.timedelta(minutes=minute_of_day)
    return base.replace(hour=hours, minute=minutes)


def add_minutes(moment: _dt.datetime, minutes: int) -> _dt.datetime:
    return moment + _dt.timedelta(minutes=minutes)


def snap(moment: _dt.datetime, step_minutes: int) -> _dt.datetime:
    """Round the minute component to the nearest multiple of ``step_minutes``.

    Seconds and microseconds are dropped; a minute rounded up to 60 rolls
    into the next hour.
    """
    snapped = int(math.floor(moment.minute / step_minutes + 0.5)) * step_minutes
    return moment.replace(minute=0, second=0, microsecond=0) + _dt.timedelta(minutes=snapped)


def align(moment: _dt.datetime, reference: _dt.datetime) -> _dt.datetime:
    """Give ``moment`` the same awareness as ``reference`` so the two compare.

    A naive value is read as wall-clock time in the reference zone; an aware
    value compared against a naive reference keeps its own wall clock.
    """
    if (moment.tzinfo is None) == (reference.tzinfo is None):
        return moment
    if moment.tzinfo is None:
        return moment.replace(tzinfo=reference.tzinfo)
    return moment.replace(tzinfo=None)


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    # Half-open: touching intervals do not overlap.
    return a_start < b_end and a_end > b_start


def merge_adjacent(intervals: Iterable[T], key: Callable[[T], object]) -> list[T]:
    """Fold touching or overlapping intervals that share ``key`` into single spans.

    Items must be dataclasses exposing ``start`` and ``end``; merged spans are
    copies of the first item of each run with ``end`` extended.
    """
    ordered = sorted(intervals, key=lambda item: (str(key(item) or ""), item.start))

    merged: list[T] = []
    for item in ordered:
        prev = merged[-1] if merged else None
        if prev is not None and str(key(prev) or "") == str(key(item) or "") and prev.end >= item.start:
            if item.end > prev.end:
                merged[-1] = dataclasses.replace(prev, end=item.end)
            continue
        merged.append(item)
    return merged
