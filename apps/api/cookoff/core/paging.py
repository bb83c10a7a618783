from __future__ import annotations

from typing import Optional

from .schemas import PageOut

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def clamp_limit(raw: Optional[int]) -> int:
    if raw is None:
        return DEFAULT_LIMIT
    try:
        v = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    if v < 1:
        v = 1
    if v > MAX_LIMIT:
        v = MAX_LIMIT
    return v


def clamp_offset(raw: Optional[int]) -> int:
    if raw is None:
        return 0
    try:
        v = int(raw)
    except (TypeError, ValueError):
        return 0
    return max(v, 0)


def page_of(limit: int, offset: int, total: int) -> PageOut:
    return PageOut(offset=offset, limit=limit, total=total, has_more=(offset + limit) < total)
