from __future__ import annotations

import datetime as _dt


async def get_now() -> _dt.datetime:
    """Current instant, used for the booking look-ahead; overridden in tests."""
    return _dt.datetime.now(_dt.timezone.utc)
