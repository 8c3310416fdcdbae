from __future__ import annotations
from datetime import datetime, timezone as dt_tz


def get_now() -> datetime:
    """Request-scoped "now". Routes depend on this instead of reading the clock inline."""
    return datetime.now(dt_tz.utc)
