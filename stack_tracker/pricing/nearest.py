from __future__ import annotations

from datetime import date
from typing import Mapping, NamedTuple

DEFAULT_MAX_DAYS = 30


class NearestMatch(NamedTuple):
    date: date
    value: float


def find_nearest(table: Mapping[date, float], target: date, max_days: int = DEFAULT_MAX_DAYS) -> NearestMatch | None:
    """
    Closest entry to `target` by absolute day difference.
    Ties go to the earlier date. Returns None for an empty table or when the
    best match is more than `max_days` away.
    """
    best: tuple[int, date] | None = None
    for key in table:
        candidate = (abs((key - target).days), key)
        if best is None or candidate < best:
            best = candidate
    if best is None or best[0] > max_days:
        return None
    return NearestMatch(best[1], table[best[1]])
